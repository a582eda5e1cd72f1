"""Record Service - CRUD, filtering and maintenance reports for Merkmalstexte."""
import math
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from flask import current_app
from sqlalchemy import func

from merkmalverwaltung import db
from merkmalverwaltung.exceptions import NotFoundError, ValidationError
from merkmalverwaltung.forms import KEY_FIELDS, provided_fields, validate_merkmalstext
from merkmalverwaltung.models import Merkmalstext, normalize_sondermerkmal
from merkmalverwaltung.services.transaction import (
    ensure_unique, flush_unique, insert_record, run_in_transaction, run_read
)

# Query parameter → column for substring filters
TEXT_FILTERS = {
    'identnr': 'identnr',
    'merkmal': 'merkmal',
    'auspraegung': 'auspraegung',
    'drucktext': 'drucktext',
    'sondermerkmal': 'sondermerkmal',
}

# Query parameter → column for exact filters
EXACT_FILTERS = {
    'position': 'merkmalsposition',
    'sonderAbt': 'maka',
    'fertigungsliste': 'fertigungsliste',
}


@dataclass
class RecordPage:
    """One page of a record listing."""
    records: List[Merkmalstext]
    page: int
    page_size: int
    total_count: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.page_size else 0

    def to_dict(self) -> dict:
        return {
            'data': [r.to_dict() for r in self.records],
            'pagination': {
                'currentPage': self.page,
                'totalPages': self.total_pages,
                'totalCount': self.total_count,
                'pageSize': self.page_size,
                'hasNextPage': self.page < self.total_pages,
                'hasPreviousPage': self.page > 1,
            },
        }


@dataclass
class DuplicateReport:
    """Identnrs owning more than one record."""
    duplicates: List[dict] = field(default_factory=list)
    unique_identnrs: int = 0
    total_records: int = 0

    @property
    def avg_records_per_identnr(self) -> float:
        if not self.unique_identnrs:
            return 0
        return round(self.total_records / self.unique_identnrs, 2)

    def to_dict(self) -> dict:
        return {
            'duplicates': self.duplicates,
            'duplicateCount': len(self.duplicates),
            'hasDuplicates': bool(self.duplicates),
            'stats': {
                'uniqueIdentnrs': self.unique_identnrs,
                'totalRecords': self.total_records,
                'duplicateIdentnrs': len(self.duplicates),
                'avgRecordsPerIdentnr': self.avg_records_per_identnr,
            },
        }


def _ordered(query):
    return query.order_by(
        Merkmalstext.merkmalsposition, Merkmalstext.identnr, Merkmalstext.merkmal, Merkmalstext.id
    )


def _paginate(query, page: int, page_size: int) -> RecordPage:
    total_count = query.order_by(None).count()
    records = _ordered(query).offset((page - 1) * page_size).limit(page_size).all()
    return RecordPage(records=records, page=page, page_size=page_size, total_count=total_count)


def _parse_int_filter(name: str, value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError([f'{name} muss eine gültige Zahl sein'])


class RecordService:
    """Operations on single Merkmalstext records."""

    # === READ ===

    def list_records(self, page: int, page_size: int) -> RecordPage:
        """Flat listing ordered by position, identnr, merkmal."""
        return run_read(lambda: _paginate(Merkmalstext.query, page, page_size))

    def filter_records(self, filters: Mapping, page: int, page_size: int) -> RecordPage:
        """
        Filtered listing.

        Text filters match substrings, position/sonderAbt/fertigungsliste
        match exactly. A non-empty ``quickSearch`` searches all text columns
        and the per-field filters are ignored.
        """
        conditions = []
        quick_search = (filters.get('quickSearch') or '').strip()
        if quick_search:
            conditions.append(db.or_(*[
                getattr(Merkmalstext, column).contains(quick_search, autoescape=True)
                for column in TEXT_FILTERS.values()
            ]))
        else:
            for name, column in TEXT_FILTERS.items():
                value = filters.get(name)
                if value:
                    conditions.append(
                        getattr(Merkmalstext, column).contains(value, autoescape=True)
                    )
            for name, column in EXACT_FILTERS.items():
                value = filters.get(name)
                if value not in (None, ''):
                    conditions.append(getattr(Merkmalstext, column) == _parse_int_filter(name, value))

        def work():
            query = Merkmalstext.query
            if conditions:
                query = query.filter(*conditions)
            return _paginate(query, page, page_size)

        return run_read(work)

    def get_record(self, record_id: int) -> Merkmalstext:
        record = run_read(lambda: db.session.get(Merkmalstext, record_id))
        if record is None:
            raise NotFoundError(f'Datensatz mit ID {record_id} nicht gefunden')
        return record

    def similar_records(self, record_id: int) -> List[Merkmalstext]:
        """Records sharing merkmal, auspraegung, drucktext and sondermerkmal.

        Position and Sonder-Abt may differ, so this is wider than a group.
        """
        def work():
            original = db.session.get(Merkmalstext, record_id)
            if original is None:
                raise NotFoundError(f'Datensatz mit ID {record_id} nicht gefunden')
            sondermerkmal = normalize_sondermerkmal(original.sondermerkmal)
            candidates = Merkmalstext.query.filter_by(
                merkmal=original.merkmal,
                auspraegung=original.auspraegung,
                drucktext=original.drucktext,
            ).order_by(Merkmalstext.identnr, Merkmalstext.merkmalsposition, Merkmalstext.id).all()
            return [r for r in candidates if normalize_sondermerkmal(r.sondermerkmal) == sondermerkmal]

        return run_read(work)

    # === WRITE ===

    def create_record(self, payload: dict) -> Merkmalstext:
        """Validate and insert one record; DuplicateError on a taken key."""
        values = validate_merkmalstext(payload)
        return run_in_transaction(lambda: insert_record(values))

    def update_record(self, record_id: int, payload: dict) -> Merkmalstext:
        """Full update. The current position is kept when none is sent."""
        values = validate_merkmalstext(payload)
        if 'position' not in provided_fields(payload):
            values.pop('merkmalsposition')

        def work():
            record = db.session.get(Merkmalstext, record_id)
            if record is None:
                raise NotFoundError(f'Datensatz mit ID {record_id} nicht gefunden')
            ensure_unique(values, exclude_id=record_id)
            record.apply(values)
            flush_unique(values)
            return record

        return run_in_transaction(work)

    def patch_record(self, record_id: int, payload: dict) -> Merkmalstext:
        """Partial update of the fields present in ``payload``."""
        values = validate_merkmalstext(payload, partial=True)

        def work():
            record = db.session.get(Merkmalstext, record_id)
            if record is None:
                raise NotFoundError(f'Datensatz mit ID {record_id} nicht gefunden')
            merged = {name: values.get(name, getattr(record, name)) for name in KEY_FIELDS}
            if any(name in values for name in KEY_FIELDS):
                ensure_unique(merged, exclude_id=record_id)
            record.apply(values)
            flush_unique(merged)
            return record

        return run_in_transaction(work)

    def delete_record(self, record_id: int) -> int:
        """Delete one record, returns the number of deleted rows."""
        def work():
            deleted = Merkmalstext.query.filter_by(id=record_id).delete(synchronize_session=False)
            if not deleted:
                raise NotFoundError(f'Datensatz mit ID {record_id} nicht gefunden')
            return deleted

        return run_in_transaction(work)

    def bulk_update_positions(self, identnr: str, merkmal: str, new_position) -> int:
        """
        Renumber all records of one identnr + merkmal.

        Records are taken in their current position order and receive
        ``new_position``, ``new_position + 1``, ...

        Returns:
            Number of updated records
        """
        if not identnr or not merkmal:
            raise ValidationError(['Identnr und Merkmal sind erforderlich für Bulk-Position-Update'])
        try:
            new_position = int(new_position)
        except (TypeError, ValueError):
            new_position = 0
        if new_position <= 0:
            raise ValidationError(['Neue Position muss eine gültige Zahl größer 0 sein'])

        def work():
            records = Merkmalstext.query.filter_by(identnr=identnr, merkmal=merkmal).order_by(
                Merkmalstext.merkmalsposition, Merkmalstext.id
            ).all()
            for offset, record in enumerate(records):
                record.merkmalsposition = new_position + offset
            return len(records)

        count = run_in_transaction(work)
        current_app.logger.info(
            f'Bulk-Update: {count} Datensätze für {identnr}/{merkmal} ab Position {new_position}'
        )
        return count

    # === REPORTS ===

    def duplicate_report(self) -> DuplicateReport:
        """Identnrs with more than one record, most records first."""
        def work():
            record_count = func.count(Merkmalstext.id).label('record_count')
            rows = db.session.query(
                Merkmalstext.identnr,
                record_count,
                func.min(Merkmalstext.id).label('first_id'),
                func.max(Merkmalstext.id).label('last_id'),
            ).filter(
                Merkmalstext.identnr.isnot(None)
            ).group_by(
                Merkmalstext.identnr
            ).having(
                func.count(Merkmalstext.id) > 1
            ).order_by(
                record_count.desc(), Merkmalstext.identnr
            ).all()

            unique_identnrs, total_records = db.session.query(
                func.count(func.distinct(Merkmalstext.identnr)),
                func.count(Merkmalstext.id),
            ).filter(Merkmalstext.identnr.isnot(None)).one()

            return DuplicateReport(
                duplicates=[
                    {
                        'identnr': row.identnr,
                        'record_count': row.record_count,
                        'first_id': row.first_id,
                        'last_id': row.last_id,
                    }
                    for row in rows
                ],
                unique_identnrs=unique_identnrs or 0,
                total_records=total_records or 0,
            )

        return run_read(work)
