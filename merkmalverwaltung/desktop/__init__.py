"""Desktop shell boundary: local config file and server launcher."""
from merkmalverwaltung.desktop.config_store import (
    LocalConfigStore, DEFAULT_DATABASE_CONFIG, validate_database_config
)

__all__ = ['LocalConfigStore', 'DEFAULT_DATABASE_CONFIG', 'validate_database_config']
