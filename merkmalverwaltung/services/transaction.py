"""Unit-of-work helpers shared by the services.

Every store access runs as one transaction through the app's
ConnectionHealthMonitor, so connection drops are retried and surface as
TransientStoreError once retries are exhausted.
"""
from typing import Callable, Optional, TypeVar

from flask import current_app
from sqlalchemy.exc import IntegrityError

from merkmalverwaltung import db
from merkmalverwaltung.exceptions import DuplicateError, MerkmalError
from merkmalverwaltung.models import Merkmalstext

T = TypeVar('T')


def run_in_transaction(work: Callable[[], T]) -> T:
    """Run ``work`` and commit; roll back on any error.

    ``work`` may be invoked more than once when the connection drops, so it
    must start from a clean session state.
    """
    def unit():
        try:
            result = work()
            db.session.commit()
        except MerkmalError:
            db.session.rollback()
            raise
        return result

    monitor = current_app.extensions['health_monitor']
    return monitor.execute(unit)


def run_read(work: Callable[[], T]) -> T:
    """Run a read-only ``work`` through the health monitor."""
    monitor = current_app.extensions['health_monitor']
    return monitor.execute(work)


def ensure_unique(values: dict, exclude_id: Optional[int] = None):
    """Raise DuplicateError if the key combination is taken."""
    if Merkmalstext.exists_combination(
        values['identnr'], values['merkmal'], values['auspraegung'], values['drucktext'],
        exclude_id=exclude_id
    ):
        raise DuplicateError(
            values['identnr'], values['merkmal'], values['auspraegung'], values['drucktext']
        )


def insert_record(values: dict) -> Merkmalstext:
    """Check uniqueness, insert and flush one record.

    The unique constraint is the backstop for concurrent inserts that pass
    the read check.
    """
    ensure_unique(values)
    record = Merkmalstext(**values)
    db.session.add(record)
    flush_unique(values)
    return record


def flush_unique(values: dict):
    """Flush the session, mapping a unique-constraint hit to DuplicateError."""
    try:
        db.session.flush()
    except IntegrityError as e:
        db.session.rollback()
        raise DuplicateError(
            values['identnr'], values['merkmal'], values['auspraegung'], values['drucktext']
        ) from e


def try_insert_record(values: dict) -> Optional[Merkmalstext]:
    """Insert and flush unless the key combination exists; returns None when skipped.

    A concurrent insert of the same combination surfaces as DuplicateError.
    """
    if Merkmalstext.exists_combination(
        values['identnr'], values['merkmal'], values['auspraegung'], values['drucktext']
    ):
        current_app.logger.warning(
            f"Duplikat übersprungen: {values['identnr']} - "
            f"{values['merkmal']}/{values['auspraegung']}/{values['drucktext']}"
        )
        return None
    record = Merkmalstext(**values)
    db.session.add(record)
    flush_unique(values)
    return record
