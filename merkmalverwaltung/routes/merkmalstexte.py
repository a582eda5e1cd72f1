"""API Blueprint for single Merkmalstext records.

All responses use the standard envelope {success, timestamp, data?,
message?, errors?}.
"""
from flask import Blueprint, current_app, jsonify, request

from merkmalverwaltung.routes.helpers import json_body
from merkmalverwaltung.services import IdentnrService, RecordService
from merkmalverwaltung.utils import format_success, parse_positive_int

merkmalstexte_bp = Blueprint('merkmalstexte', __name__, url_prefix='/api/records')


# =============================================================================
# LISTING
# =============================================================================

@merkmalstexte_bp.route('', methods=['GET'])
def list_records():
    """Paginated listing.

    Query params:
        page: 1-based page (default 1)
        limit: page size (default 25, max 100)

    Usage:
        curl "http://localhost:3001/api/records?page=2&limit=50"
    """
    page = parse_positive_int(request.args.get('page'), 1)
    limit = parse_positive_int(
        request.args.get('limit'),
        current_app.config['PAGE_SIZE_DEFAULT'],
        maximum=current_app.config['PAGE_SIZE_MAX'],
    )
    result = RecordService().list_records(page, limit)
    return jsonify(format_success(
        result.to_dict(), f'Seite {page} von {result.total_pages} erfolgreich abgerufen'
    ))


@merkmalstexte_bp.route('/filter', methods=['GET'])
def filter_records():
    """Filtered listing.

    Query params:
        identnr, merkmal, auspraegung, drucktext, sondermerkmal: substring
        position, sonderAbt, fertigungsliste: exact
        quickSearch: substring over all text fields (other filters ignored)
        page, limit: default 1 / 50, max limit 500000

    Usage:
        curl "http://localhost:3001/api/records/filter?merkmal=Farbe&sonderAbt=3"
    """
    page = parse_positive_int(request.args.get('page'), 1)
    limit = parse_positive_int(
        request.args.get('limit'),
        current_app.config['FILTER_PAGE_SIZE_DEFAULT'],
        maximum=current_app.config['FILTER_PAGE_SIZE_MAX'],
    )
    result = RecordService().filter_records(request.args, page, limit)
    return jsonify(format_success(
        result.to_dict(),
        f'Seite {page} von {result.total_pages} ({result.total_count} gefilterte Datensätze)'
    ))


@merkmalstexte_bp.route('/check/duplicates', methods=['GET'])
def check_duplicates():
    """Identnrs owning more than one record.

    Usage:
        curl http://localhost:3001/api/records/check/duplicates
    """
    report = RecordService().duplicate_report()
    if report.duplicates:
        message = f'{len(report.duplicates)} Ident-Nr mit mehreren Datensätzen gefunden'
    else:
        message = 'Keine doppelten Ident-Nr gefunden - jede Ident-Nr hat nur einen Datensatz'
    return jsonify(format_success(report.to_dict(), message))


# =============================================================================
# CRUD
# =============================================================================

@merkmalstexte_bp.route('', methods=['POST'])
def create_record():
    """Create one record.

    Usage:
        curl -X POST http://localhost:3001/api/records \\
             -H "Content-Type: application/json" \\
             -d '{"identnr": "T0001", "merkmal": "Farbe", "auspraegung": "rot", "drucktext": "Farbe: rot"}'
    """
    record = RecordService().create_record(json_body())
    return jsonify(format_success(record.to_dict(), 'Datensatz erfolgreich erstellt')), 201


@merkmalstexte_bp.route('/<int:record_id>', methods=['GET'])
def get_record(record_id):
    record = RecordService().get_record(record_id)
    return jsonify(format_success(record.to_dict(), 'Datensatz erfolgreich abgerufen'))


@merkmalstexte_bp.route('/<int:record_id>', methods=['PUT'])
def update_record(record_id):
    """Full update; all required fields must be sent."""
    record = RecordService().update_record(record_id, json_body())
    return jsonify(format_success(record.to_dict(), 'Datensatz erfolgreich aktualisiert'))


@merkmalstexte_bp.route('/<int:record_id>', methods=['PATCH'])
def patch_record(record_id):
    """Partial update; only the sent fields change."""
    record = RecordService().patch_record(record_id, json_body())
    return jsonify(format_success(record.to_dict(), 'Datensatz erfolgreich partiell aktualisiert'))


@merkmalstexte_bp.route('/<int:record_id>', methods=['DELETE'])
def delete_record(record_id):
    affected = RecordService().delete_record(record_id)
    return jsonify(format_success(
        {'deletedId': record_id, 'affectedRows': affected}, 'Datensatz erfolgreich gelöscht'
    ))


# =============================================================================
# RELATED RECORDS
# =============================================================================

@merkmalstexte_bp.route('/<int:record_id>/similar', methods=['GET'])
def similar_records(record_id):
    """Records with the same merkmal, auspraegung, drucktext and sondermerkmal."""
    records = RecordService().similar_records(record_id)
    return jsonify(format_success({
        'originalId': record_id,
        'records': [r.to_dict() for r in records],
        'count': len(records),
    }, f'{len(records)} ähnliche Datensätze gefunden'))


@merkmalstexte_bp.route('/<int:record_id>/copy-to-identnrs', methods=['POST'])
def copy_to_identnrs(record_id):
    """Copy one record to several identnrs.

    Body:
        {"identnrs": ["T0002", "T0003"]}

    Usage:
        curl -X POST http://localhost:3001/api/records/5/copy-to-identnrs \\
             -H "Content-Type: application/json" -d '{"identnrs": ["T0002"]}'
    """
    result = IdentnrService().copy_record_to_identnrs(record_id, json_body().get('identnrs'))
    return jsonify(format_success(
        result.to_dict(), f'Datensatz in {len(result.records)} neue Ident-Nr kopiert'
    )), 201


@merkmalstexte_bp.route('/bulk-position', methods=['POST'])
def bulk_position():
    """Renumber the positions of one identnr + merkmal.

    Body:
        {"identnr": "T0001", "merkmal": "Farbe", "newPosition": 10}
    """
    data = json_body()
    identnr = data.get('identnr')
    merkmal = data.get('merkmal')
    count = RecordService().bulk_update_positions(identnr, merkmal, data.get('newPosition'))
    return jsonify(format_success(
        {'updatedCount': count}, f'Bulk-Position-Update erfolgreich für {identnr}/{merkmal}'
    ))
