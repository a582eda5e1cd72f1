"""Run the API server.

Usage:
    python -m merkmalverwaltung.server --port 3001
"""
import click

from merkmalverwaltung import create_app


@click.command()
@click.option('--host', default='127.0.0.1', show_default=True)
@click.option('--port', type=int, default=None, help='Default: SERVER_PORT from config')
@click.option('--config-name', envvar='FLASK_CONFIG', default='default', show_default=True)
def main(host, port, config_name):
    """Start the Merkmalstexte API server."""
    app = create_app(config_name)
    app.run(host=host, port=port or app.config['SERVER_PORT'], use_reloader=False)


if __name__ == '__main__':
    main()
