"""Validation of Merkmalstext payloads.

API payloads are JSON, so the forms are plain WTForms forms fed from a
MultiDict built out of the decoded body. Payloads may use column names
(merkmalsposition, maka) or frontend aliases (position, sonderAbt).
"""
from werkzeug.datastructures import MultiDict
from wtforms import Form, IntegerField, StringField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from merkmalverwaltung.exceptions import ValidationError

# column name → form field name
ALIASES = {
    'merkmalsposition': 'position',
    'maka': 'sonderAbt',
}

# form field name → column name
COLUMNS = {
    'identnr': 'identnr',
    'merkmal': 'merkmal',
    'auspraegung': 'auspraegung',
    'drucktext': 'drucktext',
    'sondermerkmal': 'sondermerkmal',
    'position': 'merkmalsposition',
    'sonderAbt': 'maka',
    'fertigungsliste': 'fertigungsliste',
}

KEY_FIELDS = ('identnr', 'merkmal', 'auspraegung', 'drucktext')


class GanzzahlField(IntegerField):
    """IntegerField with a German parse error."""

    def process_formdata(self, valuelist):
        if not valuelist:
            return
        try:
            self.data = int(valuelist[0])
        except ValueError:
            self.data = None
            raise ValueError(f'{self.label.text} muss eine gültige Zahl sein')


class MerkmalstextForm(Form):
    """Form for creating/updating a Merkmalstext."""
    identnr = StringField('Identnr', validators=[
        DataRequired('Identnr ist erforderlich'),
        Length(1, 50, 'Identnr muss zwischen 1 und 50 Zeichen lang sein'),
    ])
    merkmal = StringField('Merkmal', validators=[
        DataRequired('Merkmal ist erforderlich'),
        Length(1, 100, 'Merkmal muss zwischen 1 und 100 Zeichen lang sein'),
    ])
    auspraegung = StringField('Ausprägung', validators=[
        DataRequired('Ausprägung ist erforderlich'),
        Length(1, 100, 'Ausprägung muss zwischen 1 und 100 Zeichen lang sein'),
    ])
    drucktext = StringField('Drucktext', validators=[
        DataRequired('Drucktext ist erforderlich'),
        Length(1, 255, 'Drucktext muss zwischen 1 und 255 Zeichen lang sein'),
    ])
    sondermerkmal = StringField('Sondermerkmal', validators=[
        Optional(strip_whitespace=False),
        Length(max=100, message='Sondermerkmal darf maximal 100 Zeichen lang sein'),
    ])
    position = GanzzahlField('Position', validators=[
        Optional(),
        NumberRange(min=0, message='Position muss eine gültige Zahl sein'),
    ])
    sonderAbt = GanzzahlField('Sonder Abt.', validators=[
        Optional(),
        NumberRange(0, 7, 'Sonder Abt. muss zwischen 0 und 7 liegen'),
    ])
    fertigungsliste = GanzzahlField('Fertigungsliste', validators=[
        Optional(),
        NumberRange(0, 1, 'Fertigungsliste muss 0 oder 1 sein'),
    ])


def _to_formdata(payload: dict) -> MultiDict:
    """Map aliases and stringify values for WTForms."""
    formdata = MultiDict()
    for key, value in payload.items():
        name = ALIASES.get(key, key)
        if name not in COLUMNS or value is None:
            continue
        # Column name and alias both given: the alias wins
        if name != key and name in payload:
            continue
        if isinstance(value, bool):
            value = int(value)
        formdata[name] = str(value)
    return formdata


def provided_fields(payload: dict) -> list:
    """Form field names present in a payload (aliases resolved)."""
    names = []
    for key in payload or {}:
        name = ALIASES.get(key, key)
        if name in COLUMNS and name not in names:
            names.append(name)
    return names


def validate_merkmalstext(payload, partial: bool = False) -> dict:
    """Validate a payload and return column values.

    Args:
        payload: decoded JSON body
        partial: only validate and return the fields present (PATCH)

    Returns:
        dict keyed by column name. Full validation fills defaults:
        sondermerkmal '' and 0 for the integer columns.

    Raises:
        ValidationError: with one German message per problem
    """
    if not isinstance(payload, dict):
        raise ValidationError(['Ungültige Anfragedaten'])

    present = provided_fields(payload)
    if partial and not present:
        raise ValidationError(['Mindestens ein Feld muss zum Aktualisieren bereitgestellt werden'])

    form = MerkmalstextForm(formdata=_to_formdata(payload))
    form.validate()

    errors = []
    for field in form:
        if partial and field.name not in present:
            continue
        errors.extend(field.errors)
    if errors:
        raise ValidationError(errors)

    values = {}
    for field in form:
        if partial and field.name not in present:
            continue
        values[COLUMNS[field.name]] = field.data

    if not partial:
        values['sondermerkmal'] = values.get('sondermerkmal') or ''
        for column in ('merkmalsposition', 'maka', 'fertigungsliste'):
            if values.get(column) is None:
                values[column] = 0
    else:
        if 'sondermerkmal' in values and values['sondermerkmal'] is None:
            values['sondermerkmal'] = ''
        for column in ('merkmalsposition', 'maka', 'fertigungsliste'):
            if column in values and values[column] is None:
                values[column] = 0
    return values


def validate_group_fields(payload) -> dict:
    """Validate the shared fields of a group (everything except identnr)."""
    if not isinstance(payload, dict):
        raise ValidationError(['Ungültige Anfragedaten'])
    values = validate_merkmalstext(dict(payload, identnr='-'))
    values.pop('identnr')
    return values
