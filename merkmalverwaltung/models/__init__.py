"""Database models."""
from merkmalverwaltung.models.merkmalstext import (
    Merkmalstext, GroupKey, SonderAbt, EMPTY,
    normalize_sondermerkmal, normalize_fertigungsliste
)
from merkmalverwaltung.models.audit_log import AuditLog

__all__ = [
    'Merkmalstext', 'GroupKey', 'SonderAbt', 'EMPTY',
    'normalize_sondermerkmal', 'normalize_fertigungsliste',
    'AuditLog',
]
