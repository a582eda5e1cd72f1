"""Flask Application Configuration."""
import json
import os
from pathlib import Path

from sqlalchemy.engine import URL

basedir = Path(__file__).parent.parent.absolute()

# Written by the desktop shell (see merkmalverwaltung.desktop)
LOCAL_CONFIG_PATH = Path(os.environ.get('MERKMAL_CONFIG_PATH', basedir / 'config.json'))


def load_local_database_config(path=None):
    """Read the 'database' section of the desktop config file.

    Returns:
        dict or None if the file is missing, unreadable or has no section
    """
    path = Path(path) if path else LOCAL_CONFIG_PATH
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError):
        return None
    return data.get('database') or None


def build_database_url(db_config):
    """Build a SQL Server URL from a desktop-style database section.

    Args:
        db_config: dict with host, port, database, user, password, useWindowsAuth

    Returns:
        SQLAlchemy URL string
    """
    windows_auth = bool(db_config.get('useWindowsAuth'))
    query = {
        'driver': db_config.get('driver') or 'ODBC Driver 17 for SQL Server',
        'TrustServerCertificate': 'yes',
    }
    if windows_auth:
        query['Trusted_Connection'] = 'yes'

    port = db_config.get('port')
    url = URL.create(
        'mssql+pyodbc',
        username=None if windows_auth else db_config.get('user') or None,
        password=None if windows_auth else db_config.get('password') or None,
        host=db_config.get('host'),
        port=int(port) if port else None,
        database=db_config.get('database'),
        query=query,
    )
    return url.render_as_string(hide_password=False)


def resolve_database_url():
    """Resolve the database URL.

    Order: DATABASE_URL, desktop config.json, DB_* variables, local SQLite.
    """
    # Fix postgres:// → postgresql:// (some tools use deprecated format)
    database_url = os.environ.get('DATABASE_URL', '')
    if database_url.startswith('postgres://'):
        database_url = database_url.replace('postgres://', 'postgresql://', 1)
    if database_url:
        return database_url

    local = load_local_database_config()
    if local and local.get('host'):
        return build_database_url(local)

    if os.environ.get('DB_HOST'):
        return build_database_url({
            'host': os.environ.get('DB_HOST'),
            'port': os.environ.get('DB_PORT'),
            'database': os.environ.get('DB_NAME'),
            'user': os.environ.get('DB_USER'),
            'password': os.environ.get('DB_PASSWORD'),
            # Empty DB_USER means Windows Authentication
            'useWindowsAuth': not os.environ.get('DB_USER'),
        })

    return f'sqlite:///{basedir}/instance/merkmalstexte.db'


def engine_options(database_url):
    """Engine options; pool sizing only applies to server databases."""
    options = {'pool_pre_ping': True}
    if not database_url.startswith('sqlite'):
        options.update({
            'pool_size': 10,
            'pool_timeout': 30,
            'pool_recycle': 1800,
        })
    if database_url.startswith('mssql+pyodbc'):
        options['connect_args'] = {'timeout': 30}
    return options


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    SQLALCHEMY_DATABASE_URI = resolve_database_url()
    SQLALCHEMY_ENGINE_OPTIONS = engine_options(SQLALCHEMY_DATABASE_URI)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Connection health monitoring
    DB_HEALTH_CHECK_INTERVAL = 30
    DB_RETRY_ATTEMPTS = 3
    DB_RETRY_BASE_DELAY = 1.0
    DB_HEALTH_MONITOR_ENABLED = True

    # Static UI bundle served under /ui/
    UI_DIR = Path(__file__).parent / 'static'

    # Listing defaults
    PAGE_SIZE_DEFAULT = 25
    PAGE_SIZE_MAX = 100
    FILTER_PAGE_SIZE_DEFAULT = 50
    FILTER_PAGE_SIZE_MAX = 500000

    SERVER_PORT = int(os.environ.get('PORT', 3001))


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    DB_HEALTH_MONITOR_ENABLED = False
    DB_RETRY_BASE_DELAY = 0


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
