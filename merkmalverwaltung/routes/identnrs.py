"""API Blueprint for Ident-Nr operations."""
from flask import Blueprint, jsonify

from merkmalverwaltung.routes.helpers import json_body
from merkmalverwaltung.services import IdentnrService
from merkmalverwaltung.utils import format_success

identnrs_bp = Blueprint('identnrs', __name__, url_prefix='/api/identifiers')


@identnrs_bp.route('', methods=['GET'])
def list_identnrs():
    """Distinct identnrs, sorted.

    Usage:
        curl http://localhost:3001/api/identifiers
    """
    identnrs = IdentnrService().list_identnrs()
    return jsonify(format_success(
        identnrs, f'{len(identnrs)} eindeutige Ident-Nr erfolgreich abgerufen'
    ))


@identnrs_bp.route('/count', methods=['GET'])
def count_identnrs():
    stats = IdentnrService().identnr_stats()
    return jsonify(format_success(
        stats.to_dict(),
        f'{stats.unique_identnrs} eindeutige Ident-Nr gefunden ({stats.total_records} Datensätze insgesamt)'
    ))


@identnrs_bp.route('', methods=['POST'])
def add_identnr():
    """Register a new identnr with a placeholder record.

    Body:
        {"identnr": "T0100"}

    Returns 200 with existed=true if the identnr already has records,
    otherwise 201.
    """
    result = IdentnrService().add_identnr(json_body().get('identnr'))
    if result.existed:
        return jsonify(format_success(result.to_dict(), f'Ident-Nr {result.identnr} existiert bereits'))
    return jsonify(format_success(
        result.to_dict(),
        f'Neue Ident-Nr {result.identnr} erfolgreich hinzugefügt (Platzhalter-Datensatz erstellt)'
    )), 201


@identnrs_bp.route('/clone', methods=['POST'])
def clone_identnr():
    """Clone all records of one identnr to a new identnr.

    Body:
        {"sourceIdentnr": "T0001", "targetIdentnr": "T0099"}

    Usage:
        curl -X POST http://localhost:3001/api/identifiers/clone \\
             -H "Content-Type: application/json" \\
             -d '{"sourceIdentnr": "T0001", "targetIdentnr": "T0099"}'
    """
    data = json_body()
    result = IdentnrService().clone_identnr(data.get('sourceIdentnr'), data.get('targetIdentnr'))
    return jsonify(format_success(
        result.to_dict(),
        f'{result.count} Datensätze erfolgreich von "{result.source_identnr}" '
        f'zu "{result.target_identnr}" geklont'
    )), 201


@identnrs_bp.route('/<identnr>', methods=['GET'])
def records_for_identnr(identnr):
    records = IdentnrService().records_for_identnr(identnr)
    return jsonify(format_success(
        [r.to_dict() for r in records],
        f'{len(records)} Datensätze für Ident-Nr {identnr} gefunden'
    ))


@identnrs_bp.route('/<identnr>', methods=['POST'])
def create_for_identnr(identnr):
    record = IdentnrService().create_for_identnr(identnr, json_body())
    return jsonify(format_success(
        record.to_dict(), f'Datensatz für Ident-Nr {identnr} erfolgreich erstellt'
    )), 201


@identnrs_bp.route('/<identnr>', methods=['DELETE'])
def delete_identnr(identnr):
    deleted = IdentnrService().delete_identnr(identnr)
    return jsonify(format_success(
        {'identnr': identnr, 'deletedCount': deleted},
        f'{deleted} Datensätze für Ident-Nr {identnr} erfolgreich gelöscht'
    ))
