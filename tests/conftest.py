"""Test fixtures: app on in-memory SQLite, test client and record factory."""
import pytest

from merkmalverwaltung import create_app, db
from merkmalverwaltung.models import Merkmalstext


@pytest.fixture
def app():
    """Application with a fresh schema per test."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def make_record(app):
    """Insert a Merkmalstext directly, bypassing validation."""
    def _make(identnr='T0001', merkmal='Farbe', auspraegung='rot', drucktext='Farbe: rot',
              sondermerkmal='', merkmalsposition=10, maka=0, fertigungsliste=0):
        record = Merkmalstext(
            identnr=identnr,
            merkmal=merkmal,
            auspraegung=auspraegung,
            drucktext=drucktext,
            sondermerkmal=sondermerkmal,
            merkmalsposition=merkmalsposition,
            maka=maka,
            fertigungsliste=fertigungsliste,
        )
        db.session.add(record)
        db.session.commit()
        return record

    return _make


@pytest.fixture
def group_payload():
    """Field set of the default group created by make_record."""
    return {
        'merkmal': 'Farbe',
        'auspraegung': 'rot',
        'drucktext': 'Farbe: rot',
        'sondermerkmal': '',
        'position': 10,
        'sonderAbt': 0,
        'fertigungsliste': 0,
    }
