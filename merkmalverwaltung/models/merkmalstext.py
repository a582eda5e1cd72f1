"""
Merkmalstext Model - Merkmalstexte pro Ident-Nr

Jede Zeile ordnet einer Ident-Nr einen Merkmalstext zu:
- Merkmal / Ausprägung / Drucktext (Pflichtfelder)
- Sondermerkmal (optional, leer und NULL sind gleichwertig)
- Merkmalsposition (Sortierung innerhalb einer Gruppe)
- Sonder-Abteilung (maka, 0-7) und Fertigungsliste (0/1)

Gruppen sind virtuell: Zeilen mit gleichem Gruppenschlüssel (siehe GroupKey)
bilden eine Gruppe, die sich nur in der Ident-Nr unterscheidet.
"""
from enum import IntEnum
from typing import NamedTuple, Optional

from merkmalverwaltung import db
from merkmalverwaltung.exceptions import ValidationError

# Sentinel for "no value" in grouping comparisons
EMPTY = 'EMPTY'


class SonderAbt(IntEnum):
    """Sonder-Abteilung (maka) values."""
    KEINE = 0
    SCHWARZ = 1
    BLAU = 2
    ROT = 3
    ORANGE = 4
    GRUEN = 5
    WEISS = 6
    GELB = 7

    @classmethod
    def get_label(cls, value):
        """Get the display label for a maka value."""
        labels = {
            cls.KEINE: 'Keine',
            cls.SCHWARZ: '1 - schwarz',
            cls.BLAU: '2 - blau',
            cls.ROT: '3 - rot',
            cls.ORANGE: '4 - orange',
            cls.GRUEN: '5 - grün',
            cls.WEISS: '6 - weiss',
            cls.GELB: '7 - gelb',
        }
        try:
            return labels[cls(int(value))]
        except (TypeError, ValueError):
            return 'Unbekannt'

    @classmethod
    def choices(cls):
        return [(s.value, cls.get_label(s.value)) for s in cls]


def normalize_sondermerkmal(value) -> str:
    """NULL or whitespace-only → EMPTY, anything else unchanged."""
    if value is None or not str(value).strip():
        return EMPTY
    return value


def normalize_fertigungsliste(value) -> str:
    """NULL or 0 → EMPTY, anything else as string."""
    if value is None or value == 0 or value == '0':
        return EMPTY
    return str(value)


def _as_int(value, label) -> int:
    if value in (None, ''):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError([f'{label} muss eine gültige Zahl sein'])


def _collate(value):
    """Case-insensitive order, raw value as tiebreak."""
    value = value or ''
    return value.casefold(), value


def _get(source, *names):
    """Read the first present attribute or mapping key."""
    for name in names:
        if isinstance(source, dict):
            if name in source:
                return source[name]
        elif hasattr(source, name):
            return getattr(source, name)
    return None


class GroupKey(NamedTuple):
    """Identity of a virtual group.

    Built from a Merkmalstext row or from an API mapping (column names or
    frontend aliases). Two rows belong to the same group iff their keys are
    equal.
    """
    merkmal: str
    auspraegung: str
    drucktext: str
    merkmalsposition: int
    maka: int
    sondermerkmal: str
    fertigungsliste: str

    @classmethod
    def of(cls, source) -> 'GroupKey':
        position = _get(source, 'merkmalsposition', 'position')
        maka = _get(source, 'maka', 'sonderAbt')
        return cls(
            merkmal=_get(source, 'merkmal'),
            auspraegung=_get(source, 'auspraegung'),
            drucktext=_get(source, 'drucktext'),
            merkmalsposition=_as_int(position, 'Position'),
            maka=_as_int(maka, 'Sonder Abt.'),
            sondermerkmal=normalize_sondermerkmal(_get(source, 'sondermerkmal')),
            fertigungsliste=normalize_fertigungsliste(_get(source, 'fertigungsliste')),
        )

    @property
    def sort_key(self):
        return (_collate(self.merkmal), _collate(self.auspraegung), _collate(self.drucktext),
                self.merkmalsposition, self.maka, _collate(self.sondermerkmal), self.fertigungsliste)

    def display_fields(self) -> dict:
        """Field values with the EMPTY sentinel mapped back."""
        return {
            'merkmal': self.merkmal,
            'auspraegung': self.auspraegung,
            'drucktext': self.drucktext,
            'sondermerkmal': '' if self.sondermerkmal == EMPTY else self.sondermerkmal,
            'merkmalsposition': self.merkmalsposition,
            'maka': self.maka,
            'fertigungsliste': 0 if self.fertigungsliste == EMPTY else int(self.fertigungsliste),
        }


class Merkmalstext(db.Model):
    """Merkmalstext einer Ident-Nr."""
    __tablename__ = 'merkmalstexte'

    id = db.Column(db.Integer, primary_key=True)

    # Ident-Nr (Produkt / Artikel)
    identnr = db.Column(db.String(50), nullable=False, index=True)

    merkmal = db.Column(db.String(100), nullable=False)
    auspraegung = db.Column(db.String(100), nullable=False)
    drucktext = db.Column(db.String(255), nullable=False)

    # Optional, '' und NULL sind gleichwertig
    sondermerkmal = db.Column(db.String(100), default='')

    merkmalsposition = db.Column(db.Integer, nullable=False, default=0)

    # Sonder-Abteilung (0-7, 0 = keine)
    maka = db.Column(db.Integer, default=0)

    # 0/1
    fertigungsliste = db.Column(db.Integer, default=0)

    __table_args__ = (
        db.UniqueConstraint(
            'identnr', 'merkmal', 'auspraegung', 'drucktext',
            name='uq_merkmalstexte_identnr_merkmal_auspraegung_drucktext'
        ),
        db.Index('ix_merkmalstexte_gruppe', 'merkmal', 'auspraegung', 'drucktext'),
    )

    # Columns copied when a row is duplicated to another identnr
    COPY_FIELDS = ('merkmal', 'auspraegung', 'drucktext', 'sondermerkmal',
                   'merkmalsposition', 'maka', 'fertigungsliste')

    def __repr__(self):
        return f'<Merkmalstext {self.id}: {self.identnr} {self.merkmal}/{self.auspraegung}>'

    @property
    def group_key(self) -> GroupKey:
        return GroupKey.of(self)

    @property
    def sonder_abt_label(self):
        return SonderAbt.get_label(self.maka or 0)

    def copy_values(self, identnr: Optional[str] = None) -> dict:
        """Field values for a copy owned by ``identnr``."""
        values = {name: getattr(self, name) for name in self.COPY_FIELDS}
        values['identnr'] = identnr if identnr is not None else self.identnr
        values['sondermerkmal'] = values['sondermerkmal'] or ''
        values['maka'] = values['maka'] or 0
        values['fertigungsliste'] = values['fertigungsliste'] or 0
        return values

    def apply(self, values: dict):
        """Set column values from a dict of column names."""
        for name, value in values.items():
            setattr(self, name, value)

    def to_dict(self):
        """Serialization for API, with frontend aliases."""
        return {
            'id': self.id,
            'identnr': self.identnr,
            'merkmal': self.merkmal,
            'auspraegung': self.auspraegung,
            'drucktext': self.drucktext,
            'sondermerkmal': self.sondermerkmal or '',
            'merkmalsposition': self.merkmalsposition,
            'maka': self.maka,
            'fertigungsliste': self.fertigungsliste,
            'position': self.merkmalsposition,
            'sonderAbt': self.maka,
            'sonderAbtLabel': self.sonder_abt_label,
        }

    # === CLASS METHODS ===

    @classmethod
    def exists_combination(cls, identnr, merkmal, auspraegung, drucktext,
                           exclude_id: Optional[int] = None) -> bool:
        """Check the (identnr, merkmal, auspraegung, drucktext) uniqueness rule."""
        query = cls.query.filter_by(
            identnr=identnr,
            merkmal=merkmal,
            auspraegung=auspraegung,
            drucktext=drucktext,
        )
        if exclude_id is not None:
            query = query.filter(cls.id != exclude_id)
        return db.session.query(query.exists()).scalar()

    @classmethod
    def query_group_candidates(cls, key: GroupKey):
        """Rows matching the exact-compare part of a group key.

        Sondermerkmal and Fertigungsliste are normalized, so callers finish
        the match with ``row.group_key == key``.
        """
        query = cls.query.filter_by(
            merkmal=key.merkmal,
            auspraegung=key.auspraegung,
            drucktext=key.drucktext,
            merkmalsposition=key.merkmalsposition,
        )
        if key.maka == 0:
            query = query.filter(db.or_(cls.maka == 0, cls.maka.is_(None)))
        else:
            query = query.filter(cls.maka == key.maka)
        return query

    @classmethod
    def get_group_members(cls, key: GroupKey, identnrs=None):
        """All rows of the group identified by ``key``, ordered by id."""
        query = cls.query_group_candidates(key)
        if identnrs is not None:
            query = query.filter(cls.identnr.in_(list(identnrs)))
        return [row for row in query.order_by(cls.id).all() if row.group_key == key]
