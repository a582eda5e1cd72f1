"""Group Service - virtual groups of Merkmalstexte.

A group is every row sharing the same GroupKey; rows differ only in their
Ident-Nr. Groups are derived on every read and never stored.
"""
from dataclasses import dataclass, field
from typing import Iterable, List

from merkmalverwaltung.exceptions import NotFoundError, ValidationError
from merkmalverwaltung.forms import validate_group_fields
from merkmalverwaltung.models import GroupKey, Merkmalstext
from merkmalverwaltung.services.logging_service import log_hoch, log_mittel
from merkmalverwaltung.services.transaction import (
    ensure_unique, flush_unique, run_in_transaction, run_read, try_insert_record
)
from merkmalverwaltung.utils import parse_id_list, split_identnr_list, unique_in_order


@dataclass
class Group:
    """A virtual group and its member rows (ordered by id)."""
    key: GroupKey
    members: List[Merkmalstext] = field(default_factory=list)
    display_id: int = 0

    @property
    def identnrs(self) -> List[str]:
        """One entry per member row, duplicates kept."""
        return [m.identnr for m in self.members]

    @property
    def ids(self) -> List[int]:
        return [m.id for m in self.members]

    @property
    def record_count(self) -> int:
        return len(self.members)

    def to_dict(self) -> dict:
        fields = self.key.display_fields()
        group_data = {
            'record_count': self.record_count,
            'identnr_list': ', '.join(self.identnrs),
            'id_list': ','.join(str(i) for i in self.ids),
        }
        return {
            'id': self.display_id,
            **fields,
            'position': fields['merkmalsposition'],
            'sonderAbt': fields['maka'],
            **group_data,
            '_groupData': dict(group_data),
        }


def derive_groups(rows: Iterable[Merkmalstext]) -> List[Group]:
    """
    Partition rows into groups.

    Rows are taken in id order so the identnr and id lists of a group line
    up. Groups are sorted by merkmal, auspraegung, drucktext and numbered
    from 1; the number is only valid for this listing.
    """
    groups = {}
    for row in sorted(rows, key=lambda r: r.id):
        key = row.group_key
        if key not in groups:
            groups[key] = Group(key=key)
        groups[key].members.append(row)

    ordered = sorted(groups.values(), key=lambda g: g.key.sort_key)
    for display_id, group in enumerate(ordered, start=1):
        group.display_id = display_id
    return ordered


@dataclass
class BulkDeleteResult:
    deleted_count: int
    deleted_ids: List[int]

    def to_dict(self) -> dict:
        return {'deletedCount': self.deleted_count, 'deletedIds': self.deleted_ids}


@dataclass
class GroupTemplate:
    """Shared field values and members of a group, used to create copies."""
    fields: dict
    identnrs: List[str]
    records: List[Merkmalstext]

    def to_dict(self) -> dict:
        return {
            'template': {
                **self.fields,
                'position': self.fields['merkmalsposition'],
                'sonderAbt': self.fields['maka'],
            },
            'identnrs': self.identnrs,
            'records': [r.to_dict() for r in self.records],
            'recordCount': len(self.records),
        }


class GroupService:
    """Listing, deletion, copy and bulk update of virtual groups."""

    def list_groups(self) -> List[Group]:
        return run_read(lambda: derive_groups(Merkmalstext.query.order_by(Merkmalstext.id).all()))

    def bulk_delete(self, id_list) -> BulkDeleteResult:
        """
        Delete the rows of a group by id.

        Ids that no longer exist are ignored, so deleting a group whose rows
        are already gone succeeds with a count of 0.
        """
        ids = unique_in_order(parse_id_list(id_list))
        if not ids:
            raise ValidationError(['Keine gültigen IDs zum Löschen gefunden'])

        def work():
            deleted = Merkmalstext.query.filter(
                Merkmalstext.id.in_(ids)
            ).delete(synchronize_session=False)
            if deleted:
                log_hoch(
                    'gruppen', 'gruppe_geloescht',
                    details=f'{deleted} Datensätze gelöscht (IDs: {",".join(map(str, ids))})',
                    entity_type='Merkmalstext'
                )
            return BulkDeleteResult(deleted_count=deleted, deleted_ids=ids)

        return run_in_transaction(work)

    def copy_group_template(self, criteria: dict) -> GroupTemplate:
        """
        Read the group described by ``criteria`` as a creation template.

        ``criteria`` holds the group fields (column names or aliases).
        Without ``fertigungsliste`` that field is not compared.
        """
        criteria = criteria or {}
        if not criteria.get('merkmal') or not criteria.get('auspraegung') or not criteria.get('drucktext'):
            raise ValidationError(['Merkmal, Auspraegung und Drucktext sind erforderlich'])
        key = GroupKey.of(criteria)
        match_fertigungsliste = criteria.get('fertigungsliste') is not None

        def matches(row: Merkmalstext) -> bool:
            if match_fertigungsliste:
                return row.group_key == key
            return row.group_key._replace(fertigungsliste=key.fertigungsliste) == key

        def work():
            candidates = Merkmalstext.query_group_candidates(key).order_by(
                Merkmalstext.identnr, Merkmalstext.id
            ).all()
            return [row for row in candidates if matches(row)]

        records = run_read(work)
        if not records:
            raise NotFoundError('Keine passenden Datensätze für die Gruppenkopie gefunden')

        fields = records[0].copy_values()
        fields.pop('identnr')
        identnrs = sorted(set(r.identnr for r in records))
        return GroupTemplate(fields=fields, identnrs=identnrs, records=records)

    def create_from_copy(self, templates: List[dict], target_identnrs) -> List[Merkmalstext]:
        """
        Create one row per target identnr and template.

        Combinations that already exist are skipped. All rows are written in
        one transaction.
        """
        if not templates or not isinstance(templates, list):
            raise ValidationError(['Datensätze zum Kopieren sind erforderlich'])
        targets = unique_in_order(split_identnr_list(target_identnrs))
        if not targets:
            raise ValidationError(['Ziel-Identnrs sind erforderlich'])
        if any(len(t) > 50 for t in targets):
            raise ValidationError(['Identnr muss zwischen 1 und 50 Zeichen lang sein'])
        field_sets = [validate_group_fields(template) for template in templates]

        def work():
            created = []
            for identnr in targets:
                for values in field_sets:
                    record = try_insert_record(dict(values, identnr=identnr))
                    if record is not None:
                        created.append(record)
            if created:
                log_mittel(
                    'gruppen', 'gruppe_kopiert',
                    details=f'{len(created)} Datensätze für {len(targets)} Ident-Nr erstellt',
                    entity_type='Merkmalstext'
                )
            return created

        return run_in_transaction(work)

    def update_group(self, id_list, new_data: dict) -> List[Merkmalstext]:
        """
        Set the group fields on every listed row in one transaction.

        The identnr of each row is kept. Ids that no longer exist are
        ignored.
        """
        ids = unique_in_order(parse_id_list(id_list))
        if not ids:
            raise ValidationError(['Group data ist erforderlich für Gruppenaktualisierung'])
        values = validate_group_fields(new_data)

        def work():
            records = Merkmalstext.query.filter(
                Merkmalstext.id.in_(ids)
            ).order_by(Merkmalstext.id).all()
            for record in records:
                ensure_unique(dict(values, identnr=record.identnr), exclude_id=record.id)
                record.apply(values)
            if records:
                flush_unique(dict(values, identnr=records[0].identnr))
            return records

        return run_in_transaction(work)

