"""Request helpers shared by the API blueprints."""
from flask import request

from merkmalverwaltung.exceptions import ValidationError


def json_body() -> dict:
    """Decoded JSON object body; an empty body counts as ``{}``."""
    if not request.get_data():
        return {}
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError(['Ungültige Anfragedaten: JSON-Objekt erwartet'])
    return data
