"""Main routes: service status, connectivity probe and the static UI."""
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request, send_from_directory
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from merkmalverwaltung import db
from merkmalverwaltung.models import AuditLog, SonderAbt
from merkmalverwaltung.services.transaction import run_read
from merkmalverwaltung.utils import format_error, format_response, format_success, parse_positive_int

main_bp = Blueprint('main', __name__)


@main_bp.route('/')
def index():
    """Service status.

    Usage:
        curl http://localhost:3001/
    """
    return jsonify(format_success({
        'service': 'Merkmalstexte API',
        'endpoints': {
            'records': '/api/records',
            'groups': '/api/groups',
            'identifiers': '/api/identifiers',
            'auditLog': '/api/audit-log',
            'health': '/health',
            'ui': '/ui/',
        },
        'sonderAbtOptions': [
            {'value': value, 'label': label} for value, label in SonderAbt.choices()
        ],
    }, 'Merkmalstexte API läuft'))


@main_bp.route('/api/audit-log')
def audit_log():
    """Most recent audit entries.

    Query params:
        limit: number of entries (default 50, max 500)
        modul: only entries of this module, e.g. 'gruppen'

    Usage:
        curl "http://localhost:3001/api/audit-log?modul=identnr"
    """
    limit = parse_positive_int(request.args.get('limit'), 50, maximum=500)
    modul = request.args.get('modul')
    entries = run_read(lambda: AuditLog.recent(limit=limit, modul=modul))
    return jsonify(format_success(
        [entry.to_dict() for entry in entries], f'{len(entries)} Protokolleinträge abgerufen'
    ))


@main_bp.route('/health')
def health():
    """Health monitor state; 503 while the database is marked unreachable."""
    monitor = current_app.extensions['health_monitor']
    healthy = monitor.is_healthy()
    data = {
        'database': 'verbunden' if healthy else 'getrennt',
        'monitorRunning': monitor.running,
        'checkedAt': datetime.now(timezone.utc).isoformat(),
    }
    if not healthy:
        return jsonify(format_response(False, data, 'Datenbankverbindung nicht verfügbar')), 503
    return jsonify(format_success(data, 'Service ist betriebsbereit'))


@main_bp.route('/db-test')
def db_test():
    """Run a trivial query against the database.

    Usage:
        curl http://localhost:3001/db-test
    """
    try:
        value = db.session.execute(text('SELECT 1')).scalar()
    except DBAPIError as e:
        db.session.rollback()
        current_app.logger.error(f'Datenbanktest fehlgeschlagen: {e}')
        return jsonify(format_error('Datenbankverbindung fehlgeschlagen')), 503
    return jsonify(format_success({'result': value}, 'Datenbankverbindung erfolgreich'))


@main_bp.route('/ui/')
@main_bp.route('/ui/<path:filename>')
def ui(filename='index.html'):
    """Serve the static UI bundle."""
    return send_from_directory(current_app.config['UI_DIR'], filename)
