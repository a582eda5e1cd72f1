"""Local desktop configuration (config.json).

The file holds the database connection the API server uses:

    {
        "database": {
            "host": "sqlserver01",
            "port": 1433,
            "database": "merkmale",
            "user": "app",
            "password": "...",
            "useWindowsAuth": false
        }
    }
"""
import json
import os
import tempfile
from pathlib import Path

from sqlalchemy import create_engine, text
from sqlalchemy.exc import DBAPIError, NoSuchModuleError

from merkmalverwaltung.config import LOCAL_CONFIG_PATH, build_database_url, engine_options

DEFAULT_DATABASE_CONFIG = {
    'host': 'localhost',
    'port': 1433,
    'database': '',
    'user': '',
    'password': '',
    'useWindowsAuth': False,
}


class LocalConfigStore:
    """Reads and writes the desktop config file."""

    def __init__(self, path=None):
        self.path = Path(path) if path else LOCAL_CONFIG_PATH

    def _read(self) -> dict:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        return data if isinstance(data, dict) else {}

    def get_database_config(self) -> dict:
        """Database section merged over the defaults."""
        config = dict(DEFAULT_DATABASE_CONFIG)
        config.update(self._read().get('database') or {})
        return config

    def save_database_config(self, database_config: dict) -> dict:
        """
        Validate and persist the database section.

        Other top-level sections of the file are kept. The file is replaced
        atomically.

        Returns:
            dict with success and message
        """
        errors = validate_database_config(database_config)
        if errors:
            return {'success': False, 'message': '; '.join(errors)}

        data = self._read()
        section = dict(DEFAULT_DATABASE_CONFIG)
        section.update({k: database_config[k] for k in DEFAULT_DATABASE_CONFIG if k in database_config})
        section['port'] = int(section['port'])
        section['useWindowsAuth'] = bool(section['useWindowsAuth'])
        if section['useWindowsAuth']:
            section['user'] = ''
            section['password'] = ''
        data['database'] = section

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        return {'success': True, 'message': 'Konfiguration gespeichert. Bitte Anwendung neu starten.'}


def validate_database_config(database_config) -> list:
    """German error messages for an invalid database section."""
    if not isinstance(database_config, dict):
        return ['Ungültige Konfiguration']
    errors = []
    if not str(database_config.get('host') or '').strip():
        errors.append('Server ist erforderlich')
    if not str(database_config.get('database') or '').strip():
        errors.append('Datenbank ist erforderlich')
    try:
        port = int(database_config.get('port', DEFAULT_DATABASE_CONFIG['port']))
        if not 0 < port < 65536:
            raise ValueError
    except (TypeError, ValueError):
        errors.append('Port muss zwischen 1 und 65535 liegen')
    if not database_config.get('useWindowsAuth') and not str(database_config.get('user') or '').strip():
        errors.append('Benutzer ist erforderlich (oder Windows-Authentifizierung aktivieren)')
    return errors


def test_connection(database_config: dict, url: str = None) -> dict:
    """
    Try to connect with the given settings and run ``SELECT 1``.

    Args:
        database_config: database section as stored in config.json
        url: explicit SQLAlchemy URL, overrides ``database_config``

    Returns:
        dict with success and message
    """
    if url is None:
        errors = validate_database_config(database_config)
        if errors:
            return {'success': False, 'message': '; '.join(errors)}
        url = build_database_url(database_config)

    options = engine_options(url)
    # No pool for a one-off probe
    for key in ('pool_size', 'pool_timeout', 'pool_recycle'):
        options.pop(key, None)
    try:
        engine = create_engine(url, **options)
    except (NoSuchModuleError, ImportError) as e:
        return {'success': False, 'message': f'Datenbanktreiber nicht verfügbar: {e}'}

    try:
        with engine.connect() as connection:
            connection.execute(text('SELECT 1'))
    except DBAPIError as e:
        return {'success': False, 'message': f'Verbindung fehlgeschlagen: {e.orig}'}
    finally:
        engine.dispose()
    return {'success': True, 'message': 'Verbindung erfolgreich'}
