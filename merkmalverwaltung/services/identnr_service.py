"""Identnr Service - operations on all records of an Ident-Nr.

An Ident-Nr is not stored on its own; it exists as long as at least one
Merkmalstext references it.
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from flask import current_app
from sqlalchemy import func

from merkmalverwaltung import db
from merkmalverwaltung.exceptions import ConflictError, NotFoundError, ValidationError
from merkmalverwaltung.forms import validate_merkmalstext
from merkmalverwaltung.models import Merkmalstext
from merkmalverwaltung.services.logging_service import log_event, log_hoch, log_mittel
from merkmalverwaltung.services.transaction import (
    insert_record, run_in_transaction, run_read, try_insert_record
)
from merkmalverwaltung.utils import split_identnr_list, unique_in_order

PLACEHOLDER = 'PLACEHOLDER'
PLACEHOLDER_DRUCKTEXT = 'PLACEHOLDER - Bitte bearbeiten'


@dataclass
class IdentnrStats:
    unique_identnrs: int = 0
    total_records: int = 0

    @property
    def avg_records_per_identnr(self) -> float:
        if not self.unique_identnrs:
            return 0
        return round(self.total_records / self.unique_identnrs, 2)

    def to_dict(self) -> dict:
        return {
            'uniqueIdentnrs': self.unique_identnrs,
            'totalRecords': self.total_records,
            'avgRecordsPerIdentnr': self.avg_records_per_identnr,
        }


@dataclass
class AddIdentnrResult:
    identnr: str
    existed: bool
    placeholder: Optional[Merkmalstext] = None

    def to_dict(self) -> dict:
        data = {'identnr': self.identnr, 'existed': self.existed}
        if self.placeholder is not None:
            data['placeholderRecord'] = self.placeholder.to_dict()
        return data


@dataclass
class CloneResult:
    source_identnr: str
    target_identnr: str
    records: List[Merkmalstext] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.records)

    def to_dict(self) -> dict:
        return {
            'sourceIdentnr': self.source_identnr,
            'targetIdentnr': self.target_identnr,
            'clonedRecords': [r.to_dict() for r in self.records],
            'recordCount': self.count,
        }


@dataclass
class CopyResult:
    original: Merkmalstext
    records: List[Merkmalstext] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def copied_to(self) -> List[str]:
        return [r.identnr for r in self.records]

    def to_dict(self) -> dict:
        return {
            'originalRecord': self.original.to_dict(),
            'createdRecords': [r.to_dict() for r in self.records],
            'copiedToIdentnrs': self.copied_to,
            'skippedIdentnrs': self.skipped,
        }


def _require_identnr(identnr) -> str:
    identnr = (identnr or '').strip() if isinstance(identnr, str) else identnr
    if not identnr:
        raise ValidationError(['Ident-Nr ist erforderlich'])
    return identnr


class IdentnrService:
    """Listing, cloning and copying per Ident-Nr."""

    def list_identnrs(self) -> List[str]:
        """Distinct identnrs, sorted."""
        def work():
            rows = db.session.query(Merkmalstext.identnr).filter(
                Merkmalstext.identnr.isnot(None)
            ).distinct().order_by(Merkmalstext.identnr).all()
            return [row.identnr for row in rows]

        return run_read(work)

    def identnr_stats(self) -> IdentnrStats:
        def work():
            unique_identnrs, total_records = db.session.query(
                func.count(func.distinct(Merkmalstext.identnr)),
                func.count(Merkmalstext.id),
            ).filter(Merkmalstext.identnr.isnot(None)).one()
            return IdentnrStats(unique_identnrs or 0, total_records or 0)

        return run_read(work)

    def records_for_identnr(self, identnr: str) -> List[Merkmalstext]:
        identnr = _require_identnr(identnr)
        return run_read(lambda: Merkmalstext.query.filter_by(identnr=identnr).order_by(
            Merkmalstext.merkmalsposition, Merkmalstext.merkmal, Merkmalstext.id
        ).all())

    def create_for_identnr(self, identnr: str, payload: dict) -> Merkmalstext:
        """Create a record, the identnr from the URL wins over the body."""
        identnr = _require_identnr(identnr)
        values = validate_merkmalstext(dict(payload or {}, identnr=identnr))
        return run_in_transaction(lambda: insert_record(values))

    def delete_identnr(self, identnr: str) -> int:
        """Delete all records of an identnr; NotFoundError if it has none."""
        identnr = _require_identnr(identnr)

        def work():
            deleted = Merkmalstext.query.filter_by(identnr=identnr).delete(synchronize_session=False)
            if not deleted:
                raise NotFoundError(f'Keine Datensätze für Ident-Nr {identnr} gefunden')
            log_hoch(
                'identnr', 'identnr_geloescht',
                details=f'{deleted} Datensätze der Ident-Nr "{identnr}" gelöscht',
                entity_type='Identnr'
            )
            return deleted

        return run_in_transaction(work)

    def add_identnr(self, identnr: str) -> AddIdentnrResult:
        """
        Register a new identnr by creating a placeholder record.

        The placeholder goes to the end of the position order. An identnr
        that already owns records is left untouched.
        """
        identnr = _require_identnr(identnr)
        if len(identnr) > 50:
            raise ValidationError(['Identnr muss zwischen 1 und 50 Zeichen lang sein'])

        def work():
            if Merkmalstext.query.filter_by(identnr=identnr).first() is not None:
                return AddIdentnrResult(identnr=identnr, existed=True)
            max_position = db.session.query(func.max(Merkmalstext.merkmalsposition)).scalar() or 0
            record = insert_record({
                'identnr': identnr,
                'merkmal': PLACEHOLDER,
                'auspraegung': PLACEHOLDER,
                'drucktext': PLACEHOLDER_DRUCKTEXT,
                'sondermerkmal': '',
                'merkmalsposition': max_position + 1,
                'maka': 0,
                'fertigungsliste': 0,
            })
            log_event('identnr', 'identnr_angelegt',
                      details=f'Ident-Nr "{identnr}" mit Platzhalter angelegt',
                      entity_type='Identnr')
            return AddIdentnrResult(identnr=identnr, existed=False, placeholder=record)

        return run_in_transaction(work)

    # === CLONE / COPY ===

    def clone_identnr(self, source_identnr: str, target_identnr: str) -> CloneResult:
        """
        Copy every record of ``source_identnr`` to ``target_identnr``.

        All copies are written in one transaction.

        Raises:
            ValidationError: missing or identical identnrs
            ConflictError: the target already owns records
            NotFoundError: the source owns no records
        """
        source_identnr = source_identnr.strip() if isinstance(source_identnr, str) else source_identnr
        target_identnr = target_identnr.strip() if isinstance(target_identnr, str) else target_identnr
        if not source_identnr or not target_identnr:
            raise ValidationError(['Source Identnr und Target Identnr sind erforderlich'])
        if source_identnr == target_identnr:
            raise ValidationError(['Source und Target Identnr dürfen nicht identisch sein'])
        if len(target_identnr) > 50:
            raise ValidationError(['Identnr muss zwischen 1 und 50 Zeichen lang sein'])

        def work():
            if Merkmalstext.query.filter_by(identnr=target_identnr).first() is not None:
                raise ConflictError(
                    f'Target Identnr "{target_identnr}" hat bereits Datensätze. '
                    f'Bitte wählen Sie eine andere Identnr.'
                )
            sources = Merkmalstext.query.filter_by(identnr=source_identnr).order_by(
                Merkmalstext.merkmalsposition, Merkmalstext.id
            ).all()
            if not sources:
                raise NotFoundError(
                    f'Source Identnr "{source_identnr}" nicht gefunden oder hat keine Datensätze'
                )
            clones = [Merkmalstext(**source.copy_values(target_identnr)) for source in sources]
            db.session.add_all(clones)
            db.session.flush()
            log_mittel(
                'identnr', 'identnr_geklont',
                details=f'{len(clones)} Datensätze von "{source_identnr}" nach "{target_identnr}" geklont',
                entity_type='Identnr'
            )
            return CloneResult(source_identnr, target_identnr, clones)

        return run_in_transaction(work)

    def copy_record_to_identnrs(self, record_id: int, identnrs: Iterable[str]) -> CopyResult:
        """
        Duplicate one record to several identnrs.

        The record's own identnr and key combinations that already exist are
        skipped. Copies keep the original position so they join its group.
        """
        targets = unique_in_order(split_identnr_list(identnrs))
        if not targets:
            raise ValidationError(['Ident-Nr array ist erforderlich und darf nicht leer sein'])
        if any(len(t) > 50 for t in targets):
            raise ValidationError(['Identnr muss zwischen 1 und 50 Zeichen lang sein'])

        def work():
            original = db.session.get(Merkmalstext, record_id)
            if original is None:
                raise NotFoundError('Original Datensatz nicht gefunden')
            created = []
            skipped = []
            for target in targets:
                if target == original.identnr:
                    continue
                record = try_insert_record(original.copy_values(target))
                if record is None:
                    skipped.append(target)
                else:
                    created.append(record)
            if created:
                log_event(
                    'merkmalstexte', 'datensatz_kopiert',
                    details=f'Datensatz {original.id} in {len(created)} Ident-Nr kopiert',
                    entity_type='Merkmalstext', entity_id=original.id
                )
            return CopyResult(original=original, records=created, skipped=skipped)

        result = run_in_transaction(work)
        if result.skipped:
            current_app.logger.warning(
                f'{len(result.skipped)} Ziel-Ident-Nr beim Kopieren von Datensatz {record_id} übersprungen'
            )
        return result
