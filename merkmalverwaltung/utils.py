"""Utility functions for merkmalverwaltung."""
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from merkmalverwaltung.exceptions import ValidationError


def format_response(success: bool, data=None, message: Optional[str] = None,
                    errors: Optional[List[str]] = None) -> dict:
    """
    Build the standard API response envelope.

    Args:
        success: Whether the operation succeeded
        data: Optional payload
        message: Optional human-readable message
        errors: Optional list of error strings

    Returns:
        Dict with success, timestamp and the given optional keys

    Examples:
        >>> format_response(True, message='OK')['success']
        True
    """
    response = {
        'success': success,
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }
    if data is not None:
        response['data'] = data
    if message:
        response['message'] = message
    if errors:
        response['errors'] = list(errors)
    return response


def format_success(data=None, message: str = 'Vorgang erfolgreich') -> dict:
    return format_response(True, data, message)


def format_error(message: str = 'Vorgang fehlgeschlagen', errors=None) -> dict:
    return format_response(False, None, message, errors)


def format_validation_error(errors) -> dict:
    return format_response(False, None, 'Validierung fehlgeschlagen', errors)


def parse_id_list(value) -> List[int]:
    """
    Parse a list of record IDs.

    Accepts a comma-separated string (as emitted in a group's id_list) or a
    list of ints/strings. Invalid entries are dropped; any other type
    raises ValidationError.

    Examples:
        >>> parse_id_list('3, 5,x,7')
        [3, 5, 7]
        >>> parse_id_list([1, '2'])
        [1, 2]
        >>> parse_id_list(None)
        []
    """
    if value is None:
        return []
    if isinstance(value, str):
        parts: Iterable = value.split(',')
    elif isinstance(value, int):
        parts = [value]
    elif isinstance(value, (list, tuple)):
        parts = value
    else:
        raise ValidationError(['ID-Liste muss eine Liste oder kommagetrennt sein'])

    ids = []
    for part in parts:
        try:
            parsed = int(str(part).strip())
        except ValueError:
            continue
        if parsed >= 0:
            ids.append(parsed)
    return ids


def split_identnr_list(value) -> List[str]:
    """
    Split an identnr list into trimmed, non-empty entries (order kept).

    Examples:
        >>> split_identnr_list('T0001, T0002,,T0001')
        ['T0001', 'T0002', 'T0001']
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(',')
    elif not isinstance(value, (list, tuple)):
        raise ValidationError(['Ident-Nr-Liste muss eine Liste oder kommagetrennt sein'])
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def unique_in_order(values: Iterable) -> list:
    """
    Remove duplicates while keeping first-seen order.

    Examples:
        >>> unique_in_order(['b', 'a', 'b'])
        ['b', 'a']
    """
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def parse_positive_int(value, default: int, minimum: int = 1,
                       maximum: Optional[int] = None) -> int:
    """
    Parse a query parameter as int, clamped to [minimum, maximum].

    Examples:
        >>> parse_positive_int('500', 25, maximum=100)
        100
        >>> parse_positive_int('abc', 25)
        25
    """
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        parsed = default
    parsed = max(minimum, parsed)
    if maximum is not None:
        parsed = min(parsed, maximum)
    return parsed
