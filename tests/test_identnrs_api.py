"""Tests for /api/identifiers."""
from merkmalverwaltung.models import AuditLog, Merkmalstext
from merkmalverwaltung.services.identnr_service import PLACEHOLDER_DRUCKTEXT


class TestListIdentnrs:
    """Tests for GET /api/identifiers and /count."""

    def test_distinct_sorted(self, client, make_record):
        make_record(identnr='T0002')
        make_record(identnr='T0001')
        make_record(identnr='T0001', drucktext='zweiter')

        body = client.get('/api/identifiers').get_json()

        assert body['data'] == ['T0001', 'T0002']

    def test_count(self, client, make_record):
        make_record(identnr='T0001')
        make_record(identnr='T0001', drucktext='zweiter')
        make_record(identnr='T0002')

        data = client.get('/api/identifiers/count').get_json()['data']

        assert data == {'uniqueIdentnrs': 2, 'totalRecords': 3, 'avgRecordsPerIdentnr': 1.5}

    def test_records_for_identnr(self, client, make_record):
        make_record(identnr='T0001', merkmal='Material', merkmalsposition=20)
        make_record(identnr='T0001', merkmalsposition=10)
        make_record(identnr='T0002')

        data = client.get('/api/identifiers/T0001').get_json()['data']

        assert [r['merkmal'] for r in data] == ['Farbe', 'Material']


class TestAddIdentnr:
    """Tests for POST /api/identifiers."""

    def test_creates_placeholder_at_end(self, client, make_record):
        make_record(merkmalsposition=40)

        response = client.post('/api/identifiers', json={'identnr': 'T0100'})

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['existed'] is False
        assert data['placeholderRecord']['drucktext'] == PLACEHOLDER_DRUCKTEXT
        assert data['placeholderRecord']['position'] == 41

    def test_existing_identnr_is_left_alone(self, client, make_record):
        make_record(identnr='T0001')

        response = client.post('/api/identifiers', json={'identnr': 'T0001'})

        assert response.status_code == 200
        assert response.get_json()['data'] == {'identnr': 'T0001', 'existed': True}
        assert Merkmalstext.query.count() == 1

    def test_requires_identnr(self, client):
        response = client.post('/api/identifiers', json={'identnr': '  '})

        assert response.status_code == 400
        assert response.get_json()['errors'] == ['Ident-Nr ist erforderlich']


class TestCreateAndDeleteForIdentnr:
    """Tests for POST and DELETE /api/identifiers/<identnr>."""

    def test_identnr_from_url_wins(self, client):
        response = client.post('/api/identifiers/T0005', json={
            'identnr': 'ANDERE', 'merkmal': 'Farbe', 'auspraegung': 'rot', 'drucktext': 'Farbe: rot',
        })

        assert response.status_code == 201
        assert response.get_json()['data']['identnr'] == 'T0005'

    def test_delete_all_records(self, client, make_record):
        make_record(identnr='T0001')
        make_record(identnr='T0001', drucktext='zweiter')
        make_record(identnr='T0002')

        response = client.delete('/api/identifiers/T0001')

        assert response.get_json()['data'] == {'identnr': 'T0001', 'deletedCount': 2}
        assert Merkmalstext.query.count() == 1
        assert AuditLog.query.filter_by(aktion='identnr_geloescht').count() == 1

    def test_delete_unknown_identnr(self, client):
        response = client.delete('/api/identifiers/T9999')

        assert response.status_code == 404
        assert response.get_json()['message'] == 'Keine Datensätze für Ident-Nr T9999 gefunden'


class TestCloneIdentnr:
    """Tests for POST /api/identifiers/clone."""

    def test_clone_copies_every_record(self, client, make_record):
        make_record(identnr='T0001', merkmalsposition=10, maka=3, sondermerkmal=None)
        make_record(identnr='T0001', merkmal='Material', merkmalsposition=20, fertigungsliste=1)
        make_record(identnr='T0002')

        response = client.post('/api/identifiers/clone', json={
            'sourceIdentnr': 'T0001', 'targetIdentnr': 'T0099'
        })

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['recordCount'] == 2
        clones = Merkmalstext.query.filter_by(identnr='T0099').order_by(Merkmalstext.merkmalsposition).all()
        assert [(c.merkmal, c.maka, c.fertigungsliste, c.sondermerkmal) for c in clones] == [
            ('Farbe', 3, 0, ''), ('Material', 0, 1, '')
        ]
        assert AuditLog.query.filter_by(aktion='identnr_geklont', wichtigkeit='mittel').count() == 1

    def test_clones_join_the_source_groups(self, client, make_record):
        make_record(identnr='T0001')

        client.post('/api/identifiers/clone', json={'sourceIdentnr': 'T0001', 'targetIdentnr': 'T0002'})

        groups = client.get('/api/groups').get_json()['data']['data']
        assert [g['identnr_list'] for g in groups] == ['T0001, T0002']

    def test_target_with_records_conflicts(self, client, make_record):
        make_record(identnr='T0001')
        make_record(identnr='T0002', drucktext='vorhanden')

        response = client.post('/api/identifiers/clone', json={
            'sourceIdentnr': 'T0001', 'targetIdentnr': 'T0002'
        })

        assert response.status_code == 400
        assert response.get_json()['message'] == (
            'Target Identnr "T0002" hat bereits Datensätze. Bitte wählen Sie eine andere Identnr.'
        )
        assert Merkmalstext.query.filter_by(identnr='T0002').count() == 1

    def test_unknown_source(self, client):
        response = client.post('/api/identifiers/clone', json={
            'sourceIdentnr': 'T0404', 'targetIdentnr': 'T0002'
        })

        assert response.status_code == 404
        assert 'T0404' in response.get_json()['message']

    def test_same_source_and_target(self, client, make_record):
        make_record(identnr='T0001')

        response = client.post('/api/identifiers/clone', json={
            'sourceIdentnr': 'T0001', 'targetIdentnr': 'T0001'
        })

        assert response.status_code == 400
        assert response.get_json()['errors'] == ['Source und Target Identnr dürfen nicht identisch sein']

    def test_missing_identnrs(self, client):
        response = client.post('/api/identifiers/clone', json={'sourceIdentnr': 'T0001'})

        assert response.status_code == 400
        assert response.get_json()['errors'] == ['Source Identnr und Target Identnr sind erforderlich']


class TestAuditLog:
    """Tests for GET /api/audit-log."""

    def test_lists_recent_entries_by_module(self, client, make_record):
        make_record(identnr='T0001')
        client.post('/api/identifiers/clone', json={'sourceIdentnr': 'T0001', 'targetIdentnr': 'T0002'})
        client.delete('/api/identifiers/T0002')

        entries = client.get('/api/audit-log?modul=identnr').get_json()['data']

        assert [e['aktion'] for e in entries] == ['identnr_geloescht', 'identnr_geklont']
        assert entries[0]['wichtigkeit'] == 'hoch'
