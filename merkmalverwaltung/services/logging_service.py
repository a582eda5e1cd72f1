"""Audit-Log Service for tracking important events."""
from merkmalverwaltung import db
from merkmalverwaltung.models import AuditLog


def log_event(
    modul: str,
    aktion: str,
    details: str = None,
    wichtigkeit: str = 'niedrig',
    entity_type: str = None,
    entity_id: int = None
) -> AuditLog:
    """Create an audit log entry.

    This function should be called within an existing database transaction.
    The caller is responsible for calling db.session.commit() after this function.

    Args:
        modul: Module code (e.g. 'merkmalstexte', 'gruppen', 'identnr')
        aktion: Action code (e.g. 'identnr_geklont', 'gruppe_geloescht')
        details: Optional detailed description (human-readable)
        wichtigkeit: Importance level - 'niedrig', 'mittel', 'hoch', 'kritisch'
        entity_type: Optional type of affected entity (e.g. 'Merkmalstext')
        entity_id: Optional ID of affected entity

    Returns:
        AuditLog: The created log entry

    Example:
        ```python
        from merkmalverwaltung.services.logging_service import log_mittel

        log_mittel(
            'identnr',
            'identnr_geklont',
            details='12 Datensätze von "T0001" nach "T0002" geklont'
        )

        db.session.commit()
        ```
    """
    if not modul:
        raise ValueError("Module code is required")

    # Validate importance level
    if wichtigkeit not in AuditLog.WICHTIGKEITEN:
        wichtigkeit = 'niedrig'

    # Get IP address from request if available
    ip_adresse = None
    try:
        from flask import request
        if request:
            ip_adresse = request.remote_addr
    except RuntimeError:
        # Outside of request context
        pass

    log_entry = AuditLog(
        modul=modul,
        aktion=aktion,
        details=details,
        wichtigkeit=wichtigkeit,
        entity_type=entity_type,
        entity_id=entity_id,
        ip_adresse=ip_adresse
    )

    db.session.add(log_entry)

    return log_entry


def log_hoch(modul: str, aktion: str, details: str = None, **kwargs) -> AuditLog:
    """Shortcut for logging high-importance events."""
    return log_event(modul, aktion, details, wichtigkeit='hoch', **kwargs)


def log_mittel(modul: str, aktion: str, details: str = None, **kwargs) -> AuditLog:
    """Shortcut for logging medium-importance events."""
    return log_event(modul, aktion, details, wichtigkeit='mittel', **kwargs)
