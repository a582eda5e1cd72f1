"""Error taxonomy for Merkmalstexte operations.

Every error carries an HTTP status code so the API error handlers can turn
it into the standard response envelope without further mapping.
"""
from typing import List, Optional


class MerkmalError(Exception):
    """Base class for all expected application errors."""
    status_code = 500

    def __init__(self, message: str, errors: Optional[List[str]] = None,
                 status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.errors = list(errors) if errors else []
        if status_code is not None:
            self.status_code = status_code


class ValidationError(MerkmalError):
    """Missing, oversized or malformed input."""
    status_code = 400

    def __init__(self, errors, message: str = 'Validierung fehlgeschlagen'):
        if isinstance(errors, str):
            errors = [errors]
        super().__init__(message, errors)


class DuplicateError(MerkmalError):
    """(identnr, merkmal, auspraegung, drucktext) already exists."""
    status_code = 400

    def __init__(self, identnr, merkmal, auspraegung, drucktext):
        detail = (
            f'Datensatz existiert bereits: Ident-Nr "{identnr}" mit der exakten Kombination '
            f'Merkmal "{merkmal}", Ausprägung "{auspraegung}" und Drucktext "{drucktext}"'
        )
        super().__init__('Validierung fehlgeschlagen', [detail])
        self.key = (identnr, merkmal, auspraegung, drucktext)


class NotFoundError(MerkmalError):
    """Record or identnr does not exist."""
    status_code = 404


class ConflictError(MerkmalError):
    """Operation precondition violated, e.g. clone target already populated."""
    status_code = 400


class TransientStoreError(MerkmalError):
    """Database unreachable or timed out; the request may be retried."""
    status_code = 503

    def __init__(self, message: str = 'Datenbankverbindung nicht verfügbar. '
                                      'Bitte versuchen Sie es später erneut.',
                 timeout: bool = False):
        super().__init__(message, status_code=408 if timeout else 503)
        self.timeout = timeout


class PartialFailureError(MerkmalError):
    """A multi-step operation failed after some steps were committed.

    Committed steps are not rolled back. ``partial`` holds what was applied
    before the failure; callers re-read the group before retrying.
    """

    def __init__(self, cause: MerkmalError, partial):
        message = f'Vorgang teilweise ausgeführt: {cause.message}'
        super().__init__(message, cause.errors, status_code=cause.status_code)
        self.cause = cause
        self.partial = partial
