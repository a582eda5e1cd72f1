"""Flask Application Factory."""
import os

import click
from flask import Flask, jsonify, request
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import DisconnectionError, IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from merkmalverwaltung.config import basedir, config

db = SQLAlchemy()
migrate = Migrate()

from merkmalverwaltung.services.health_monitor import ConnectionHealthMonitor  # noqa: E402

health = ConnectionHealthMonitor()


def create_app(config_name=None):
    """Create and configure the Flask application."""
    if config_name is None:
        config_name = os.environ.get('FLASK_CONFIG', 'default')

    app = Flask(__name__)
    app.config.from_object(config[config_name])
    # Keep field order of the response envelope
    app.json.sort_keys = False

    # SQLite fallback lives in instance/
    if app.config['SQLALCHEMY_DATABASE_URI'].startswith(f'sqlite:///{basedir}'):
        (basedir / 'instance').mkdir(parents=True, exist_ok=True)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    health.init_app(app)

    # Register blueprints
    from merkmalverwaltung.routes import (
        main_bp, merkmalstexte_bp, gruppen_bp, identnrs_bp
    )

    app.register_blueprint(main_bp)
    app.register_blueprint(merkmalstexte_bp)
    app.register_blueprint(gruppen_bp)
    app.register_blueprint(identnrs_bp)

    register_error_handlers(app)

    # Register CLI commands
    register_cli_commands(app)

    if app.config.get('DB_HEALTH_MONITOR_ENABLED') and not app.testing:
        health.start()

    return app


def register_error_handlers(app):
    """Map errors to the JSON response envelope."""
    from merkmalverwaltung.exceptions import MerkmalError, PartialFailureError, TransientStoreError
    from merkmalverwaltung.utils import format_error, format_response

    @app.errorhandler(MerkmalError)
    def handle_merkmal_error(e):
        data = e.partial.to_dict() if isinstance(e, PartialFailureError) else None
        if e.status_code >= 500:
            app.logger.error(f'{request.method} {request.path}: {e.message}')
        return jsonify(format_response(False, data, e.message, e.errors)), e.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e):
        db.session.rollback()
        app.logger.warning(f'Eindeutigkeitsverletzung: {e.orig}')
        return jsonify(format_error(
            'Validierung fehlgeschlagen',
            ['Datensatz verletzt eine Eindeutigkeitsregel (Ident-Nr, Merkmal, Ausprägung, Drucktext)']
        )), 400

    @app.errorhandler(OperationalError)
    @app.errorhandler(DisconnectionError)
    def handle_connection_error(e):
        db.session.rollback()
        app.logger.error(f'Datenbankfehler: {e}')
        if health.is_connection_error(e):
            health.mark_unhealthy()
        error = TransientStoreError(timeout=health.is_timeout(e))
        return jsonify(format_error(error.message)), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        if not request.path.startswith('/api'):
            return e
        return jsonify(format_error(e.description or e.name)), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        db.session.rollback()
        app.logger.exception(f'Unerwarteter Fehler bei {request.method} {request.path}')
        response = format_error('Ein unerwarteter Fehler ist aufgetreten')
        if app.debug:
            response['debug'] = {'error': str(e), 'type': type(e).__name__}
        return jsonify(response), 500


def register_cli_commands(app):
    """Register CLI commands."""

    @app.cli.command('init-db')
    def init_db_command():
        """Initialize the database."""
        db.create_all()
        click.echo('Database initialized!')

    @app.cli.command('seed')
    def seed_command():
        """Seed the database with demo Merkmalstexte."""
        from merkmalverwaltung.models import Merkmalstext

        demo_records = [
            ('T0001', 'Farbe', 'rot', 'Farbe: rot', '', 10, 3, 1),
            ('T0002', 'Farbe', 'rot', 'Farbe: rot', '', 10, 3, 1),
            ('T0003', 'Farbe', 'rot', 'Farbe: rot', '', 10, 3, 1),
            ('T0001', 'Material', 'Holz', 'Material: Buche massiv', '', 20, 0, 0),
            ('T0002', 'Material', 'Kunststoff', 'Material: ABS', 'lebensmittelecht', 20, 0, 0),
            ('T0001', 'Größe', 'XL', 'Größe XL (120 x 80 cm)', '', 30, 0, 0),
            ('T0003', 'Größe', 'XL', 'Größe XL (120 x 80 cm)', '', 30, 0, 0),
            ('T0004', 'Verpackung', 'Karton', 'Im Karton geliefert', '', 40, 6, 0),
        ]

        created = 0
        for identnr, merkmal, auspraegung, drucktext, sondermerkmal, position, maka, fl in demo_records:
            if Merkmalstext.exists_combination(identnr, merkmal, auspraegung, drucktext):
                continue
            db.session.add(Merkmalstext(
                identnr=identnr,
                merkmal=merkmal,
                auspraegung=auspraegung,
                drucktext=drucktext,
                sondermerkmal=sondermerkmal,
                merkmalsposition=position,
                maka=maka,
                fertigungsliste=fl,
            ))
            created += 1
            click.echo(f'Created Merkmalstext: {identnr} {merkmal}/{auspraegung}')

        db.session.commit()
        click.echo(f'Database seeded successfully! ({created} new records)')

    @app.cli.command('check-db')
    def check_db_command():
        """Probe the database connection."""
        if health.check():
            click.echo('Datenbankverbindung OK')
        else:
            click.echo('ERROR: Datenbank nicht erreichbar')
            raise SystemExit(1)

    @app.cli.command('clone-identnr')
    @click.argument('source')
    @click.argument('target')
    def clone_identnr_command(source, target):
        """Clone all Merkmalstexte of SOURCE to TARGET."""
        from merkmalverwaltung.exceptions import MerkmalError
        from merkmalverwaltung.services import IdentnrService

        try:
            result = IdentnrService().clone_identnr(source, target)
        except MerkmalError as e:
            click.echo(f'ERROR: {e.message}')
            for error in e.errors:
                click.echo(f'  - {error}')
            raise SystemExit(1)
        click.echo(f'{result.count} Datensätze von "{source}" zu "{target}" geklont')

    @app.cli.command('list-groups')
    def list_groups_command():
        """Print the virtual groups."""
        from merkmalverwaltung.services import GroupService

        groups = GroupService().list_groups()
        for group in groups:
            key = group.key
            click.echo(
                f'{group.display_id:>4}  {key.merkmal} / {key.auspraegung} / {key.drucktext} '
                f'[Pos {key.merkmalsposition}]  {group.record_count}x: {", ".join(group.identnrs)}'
            )
        click.echo(f'{len(groups)} Gruppen')
