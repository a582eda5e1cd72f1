"""Group Reconciler - converge a group to a target membership and field set.

Groups are virtual, so membership changes become row inserts and deletes,
and field changes become per-row updates across all kept members.

Each row-level step commits on its own. When a step fails after earlier
steps were committed, PartialFailureError carries what was applied. Running
the reconcile again from a freshly listed group converges: the add phase
skips existing combinations and the remove phase only touches rows still
carrying the original key.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from flask import current_app

from merkmalverwaltung import db
from merkmalverwaltung.exceptions import MerkmalError, PartialFailureError, ValidationError
from merkmalverwaltung.forms import ALIASES, validate_group_fields
from merkmalverwaltung.models import GroupKey, Merkmalstext
from merkmalverwaltung.services.logging_service import log_mittel
from merkmalverwaltung.services.transaction import (
    ensure_unique, flush_unique, run_in_transaction, run_read, try_insert_record
)
from merkmalverwaltung.utils import parse_id_list, split_identnr_list, unique_in_order


@dataclass
class MembershipDiff:
    to_add: List[str]
    to_remove: List[str]
    to_keep: List[str]


def diff_membership(original_identnrs, target_identnrs) -> MembershipDiff:
    """
    Three-way diff of two identnr lists (duplicates ignored).

    Examples:
        >>> d = diff_membership(['A', 'B', 'C'], ['B', 'C', 'D'])
        >>> d.to_add, d.to_remove, d.to_keep
        (['D'], ['A'], ['B', 'C'])
    """
    original = unique_in_order(original_identnrs)
    target = unique_in_order(target_identnrs)
    original_set = set(original)
    target_set = set(target)
    return MembershipDiff(
        to_add=[i for i in target if i not in original_set],
        to_remove=[i for i in original if i not in target_set],
        to_keep=[i for i in target if i in original_set],
    )


# Group key fields with the aliases the listing may use
KEY_FIELDS = (
    ('merkmal',), ('auspraegung',), ('drucktext',), ('merkmalsposition', 'position'),
    ('maka', 'sonderAbt'), ('sondermerkmal',), ('fertigungsliste',),
)


@dataclass
class GroupState:
    """A group as the client last saw it."""
    member_ids: List[int] = field(default_factory=list)
    member_identnrs: List[str] = field(default_factory=list)
    key: Optional[GroupKey] = None
    missing_key_fields: List[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data: dict) -> 'GroupState':
        """Build from a group as emitted by the listing.

        Accepts id_list/identnr_list at top level or under _groupData, as
        comma strings or lists. The key is only taken when every key field
        is present.
        """
        data = data or {}
        group_data = data.get('_groupData') or {}
        id_list = data.get('id_list', group_data.get('id_list'))
        identnr_list = data.get('identnr_list', group_data.get('identnr_list'))
        missing = [names[0] for names in KEY_FIELDS if not any(n in data for n in names)]
        return cls(
            member_ids=parse_id_list(id_list),
            member_identnrs=split_identnr_list(identnr_list),
            key=GroupKey.of(data) if not missing else None,
            missing_key_fields=missing if len(missing) < len(KEY_FIELDS) else [],
        )

    def fallback_key(self) -> Optional[GroupKey]:
        """Key to use once no member row survives."""
        if self.missing_key_fields:
            raise ValidationError(
                [f'Gruppendaten unvollständig, es fehlt: {", ".join(self.missing_key_fields)}']
            )
        return self.key


@dataclass
class ReconcileResult:
    """Identnrs whose rows were added, removed and updated."""
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    added_count: int = 0
    removed_count: int = 0
    updated_count: int = 0

    def to_dict(self) -> dict:
        return {
            'added': self.added,
            'removed': self.removed,
            'updated': self.updated,
            'skipped': self.skipped,
            'addedCount': self.added_count,
            'removedCount': self.removed_count,
            'updatedCount': self.updated_count,
        }

    @property
    def changed(self) -> bool:
        return bool(self.added_count or self.removed_count or self.updated_count)


class GroupReconciler:
    """Applies the add, remove and update phases of a group edit."""

    def reconcile(self, original: GroupState, target_fields: dict,
                  target_identnrs) -> ReconcileResult:
        """
        Converge ``original`` to ``target_fields`` owned by ``target_identnrs``.

        Args:
            original: the group as last listed
            target_fields: new group fields (column names or aliases)
            target_identnrs: identnrs that should own the group afterwards

        Returns:
            ReconcileResult

        Raises:
            ValidationError: before any write
            PartialFailureError: a step failed after others were committed
        """
        values = validate_group_fields(target_fields)
        targets = split_identnr_list(target_identnrs)
        if not targets:
            raise ValidationError(['Mindestens eine Ident-Nr ist erforderlich'])
        if any(len(t) > 50 for t in targets):
            raise ValidationError(['Identnr muss zwischen 1 und 50 Zeichen lang sein'])

        diff = diff_membership(original.member_identnrs, targets)
        key = self._key_from_members(original.member_ids)
        if key is None:
            key = original.fallback_key()
        if key is not None and not self._position_given(target_fields):
            values['merkmalsposition'] = key.merkmalsposition

        result = ReconcileResult()
        try:
            for identnr in diff.to_add:
                self._add(result, identnr, values)
            if key is not None:
                for identnr in diff.to_remove:
                    self._remove(result, identnr, key)
                for identnr in diff.to_keep:
                    self._update(result, identnr, key, values)
        except MerkmalError as e:
            if not result.changed:
                raise
            current_app.logger.error(
                f'Gruppenabgleich nach {result.added_count + result.removed_count + result.updated_count} '
                f'Schritten abgebrochen: {e.message}'
            )
            raise PartialFailureError(e, result) from e

        if result.changed:
            run_in_transaction(lambda: log_mittel(
                'gruppen', 'gruppe_abgeglichen',
                details=(
                    f'{values["merkmal"]}/{values["auspraegung"]}: '
                    f'+{result.added_count} -{result.removed_count} ~{result.updated_count}'
                ),
                entity_type='Merkmalstext'
            ))
        return result

    # === PHASES ===

    def _add(self, result: ReconcileResult, identnr: str, values: dict):
        record = run_in_transaction(lambda: try_insert_record(dict(values, identnr=identnr)))
        if record is None:
            result.skipped.append(identnr)
        else:
            result.added.append(identnr)
            result.added_count += 1

    def _remove(self, result: ReconcileResult, identnr: str, key: GroupKey):
        def work():
            rows = Merkmalstext.get_group_members(key, identnrs=[identnr])
            for row in rows:
                db.session.delete(row)
            return len(rows)

        removed = run_in_transaction(work)
        if removed:
            result.removed.append(identnr)
            result.removed_count += removed

    def _update(self, result: ReconcileResult, identnr: str, key: GroupKey, values: dict):
        def work():
            rows = Merkmalstext.get_group_members(key, identnrs=[identnr])
            for row in rows:
                row_values = dict(values, identnr=row.identnr)
                ensure_unique(row_values, exclude_id=row.id)
                row.apply(row_values)
                flush_unique(row_values)
            return len(rows)

        updated = run_in_transaction(work)
        if updated:
            result.updated.append(identnr)
            result.updated_count += updated

    # === HELPERS ===

    @staticmethod
    def _position_given(target_fields: dict) -> bool:
        names = {ALIASES.get(k, k) for k, v in (target_fields or {}).items() if v not in (None, '')}
        return 'position' in names

    @staticmethod
    def _key_from_members(member_ids: List[int]) -> Optional[GroupKey]:
        """Key of the first surviving member; None for a ghost group."""
        if not member_ids:
            return None

        def work():
            row = Merkmalstext.query.filter(
                Merkmalstext.id.in_(member_ids)
            ).order_by(Merkmalstext.id).first()
            return row.group_key if row is not None else None

        return run_read(work)
