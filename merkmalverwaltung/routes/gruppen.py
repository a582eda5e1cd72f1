"""API Blueprint for virtual groups.

Groups carry a listing number ``id`` that is only valid for the listing it
came from. Mutations address rows through the group's ``id_list``.
"""
from flask import Blueprint, jsonify

from merkmalverwaltung.exceptions import ValidationError
from merkmalverwaltung.routes.helpers import json_body
from merkmalverwaltung.services import GroupReconciler, GroupService, GroupState
from merkmalverwaltung.utils import format_success

gruppen_bp = Blueprint('gruppen', __name__, url_prefix='/api/groups')


def _id_list(data: dict):
    """id_list from the body or from its groupData."""
    group_data = data.get('groupData') or {}
    return data.get('id_list', group_data.get('id_list'))


# =============================================================================
# LISTING
# =============================================================================

@gruppen_bp.route('', methods=['GET'])
def list_groups():
    """All groups in one response, ordered by merkmal, auspraegung, drucktext.

    Usage:
        curl http://localhost:3001/api/groups
    """
    groups = GroupService().list_groups()
    return jsonify(format_success({
        'data': [g.to_dict() for g in groups],
        'totalCount': len(groups),
    }, f'{len(groups)} Gruppen erfolgreich abgerufen'))


# =============================================================================
# MUTATIONS
# =============================================================================

@gruppen_bp.route('', methods=['PUT'])
def update_group():
    """Set new fields on all rows of a group.

    Body:
        {"groupData": {"id_list": "1,2,3"}, "newData": {...}}
    """
    data = json_body()
    if not data.get('newData'):
        raise ValidationError(['Original data und neue Daten sind erforderlich'])
    records = GroupService().update_group(_id_list(data), data['newData'])
    return jsonify(format_success({
        'updatedRecords': [r.to_dict() for r in records],
        'updateCount': len(records),
    }, f'{len(records)} Datensätze in der Gruppe erfolgreich aktualisiert'))


@gruppen_bp.route('/reconcile', methods=['PUT'])
def reconcile_group():
    """Converge a group to new fields and a new identnr set.

    Body:
        {
            "originalData": {<group as listed, incl. id_list and identnr_list>},
            "newData": {<group fields>},
            "identnrs": ["T0002", "T0003"]
        }

    Usage:
        curl -X PUT http://localhost:3001/api/groups/reconcile \\
             -H "Content-Type: application/json" -d @reconcile.json
    """
    data = json_body()
    if not data.get('originalData') or not data.get('newData'):
        raise ValidationError(['Original data und neue Daten sind erforderlich'])
    if not isinstance(data['originalData'], dict) or not isinstance(data['newData'], dict):
        raise ValidationError(['Original data und neue Daten müssen Objekte sein'])
    original = GroupState.from_payload(data['originalData'])
    result = GroupReconciler().reconcile(original, data['newData'], data.get('identnrs'))
    return jsonify(format_success(
        result.to_dict(),
        f'Gruppe aktualisiert: {result.added_count} hinzugefügt, '
        f'{result.removed_count} entfernt, {result.updated_count} aktualisiert'
    ))


@gruppen_bp.route('/bulk-delete', methods=['POST'])
def bulk_delete():
    """Delete all rows of a group.

    Body:
        {"groupData": {"id_list": "1,2,3"}}
    """
    data = json_body()
    result = GroupService().bulk_delete(_id_list(data))
    return jsonify(format_success(
        result.to_dict(), f'{result.deleted_count} Datensätze der Gruppe erfolgreich gelöscht'
    ))


# =============================================================================
# COPY
# =============================================================================

@gruppen_bp.route('/copy', methods=['POST'])
def copy_group():
    """Read a group as a template for new rows.

    Body:
        {"merkmal": ..., "auspraegung": ..., "drucktext": ..., "sondermerkmal": ...,
         "position": ..., "sonderAbt": ...}
    """
    template = GroupService().copy_group_template(json_body())
    return jsonify(format_success(
        template.to_dict(), f'{len(template.records)} Datensätze für Gruppenkopie gefunden'
    ))


@gruppen_bp.route('/create-from-copy', methods=['POST'])
def create_from_copy():
    """Create rows for target identnrs from copied group data.

    Body:
        {"records": [{<fields>}, ...] | "template": {<fields>},
         "targetIdentnrs": ["T0005"]}
    """
    data = json_body()
    templates = data.get('records')
    if templates is None and data.get('template'):
        templates = [data['template']]
    targets = data.get('targetIdentnrs')
    created = GroupService().create_from_copy(templates, targets)
    target_count = len(targets) if isinstance(targets, list) else 0
    return jsonify(format_success({
        'createdRecords': [r.to_dict() for r in created],
        'recordCount': len(created),
        'targetIdentnrs': targets,
        'sourceRecordCount': len(templates),
    }, f'{len(created)} neue Datensätze für {target_count} Identnrs erfolgreich erstellt')), 201
