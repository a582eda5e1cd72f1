"""Tests for /api/groups listing, deletion, copy and bulk update."""
from merkmalverwaltung.models import AuditLog, Merkmalstext


def _listed_group(client, index=0):
    return client.get('/api/groups').get_json()['data']['data'][index]


class TestListGroups:
    """Tests for GET /api/groups."""

    def test_groups_in_one_response(self, client, make_record):
        """Should return every group with its member lists and a total count."""
        a = make_record(identnr='A')
        b = make_record(identnr='B', sondermerkmal=None)
        make_record(identnr='A', merkmal='Material', auspraegung='Holz', drucktext='Holz')

        body = client.get('/api/groups').get_json()

        assert body['data']['totalCount'] == 2
        farbe, material = body['data']['data']
        assert farbe['merkmal'] == 'Farbe'
        assert farbe['id'] == 1
        assert farbe['identnr_list'] == 'A, B'
        assert farbe['id_list'] == f'{a.id},{b.id}'
        assert farbe['_groupData']['record_count'] == 2
        assert material['id'] == 2
        assert material['record_count'] == 1

    def test_empty_table(self, client):
        body = client.get('/api/groups').get_json()

        assert body['data'] == {'data': [], 'totalCount': 0}


class TestBulkDelete:
    """Tests for POST /api/groups/bulk-delete."""

    def test_deletes_group_rows(self, client, make_record):
        make_record(identnr='A')
        make_record(identnr='B')
        make_record(identnr='A', drucktext='andere Gruppe')
        group = next(g for g in client.get('/api/groups').get_json()['data']['data']
                     if g['drucktext'] == 'Farbe: rot')

        response = client.post('/api/groups/bulk-delete', json={'groupData': group['_groupData']})

        assert response.status_code == 200
        assert response.get_json()['data']['deletedCount'] == 2
        assert Merkmalstext.query.count() == 1
        assert AuditLog.query.filter_by(aktion='gruppe_geloescht', wichtigkeit='hoch').count() == 1

    def test_ghost_group_deletes_nothing(self, client, make_record):
        """Deleting a group whose rows are gone should succeed with count 0."""
        make_record(identnr='A')
        group = _listed_group(client)
        client.post('/api/groups/bulk-delete', json={'groupData': group['_groupData']})

        response = client.post('/api/groups/bulk-delete', json={'groupData': group['_groupData']})

        assert response.status_code == 200
        assert response.get_json()['data']['deletedCount'] == 0

    def test_accepts_id_list_at_top_level(self, client, make_record):
        record = make_record()

        response = client.post('/api/groups/bulk-delete', json={'id_list': [record.id]})

        assert response.get_json()['data'] == {'deletedCount': 1, 'deletedIds': [record.id]}

    def test_no_valid_ids(self, client):
        response = client.post('/api/groups/bulk-delete', json={'groupData': {'id_list': 'x,,y'}})

        assert response.status_code == 400
        assert response.get_json()['errors'] == ['Keine gültigen IDs zum Löschen gefunden']


class TestUpdateGroup:
    """Tests for PUT /api/groups."""

    def test_sets_fields_on_all_rows(self, client, make_record, group_payload):
        make_record(identnr='A')
        make_record(identnr='B')
        group = _listed_group(client)

        response = client.put('/api/groups', json={
            'groupData': group['_groupData'],
            'newData': dict(group_payload, drucktext='Rot lackiert', sonderAbt=3),
        })

        assert response.status_code == 200
        assert response.get_json()['data']['updateCount'] == 2
        rows = Merkmalstext.query.order_by(Merkmalstext.identnr).all()
        assert [(r.identnr, r.drucktext, r.maka) for r in rows] == [
            ('A', 'Rot lackiert', 3), ('B', 'Rot lackiert', 3)
        ]

    def test_collision_rolls_back_all_rows(self, client, make_record, group_payload):
        """A duplicate on one row should leave every row unchanged."""
        make_record(identnr='A')
        make_record(identnr='B')
        make_record(identnr='B', drucktext='Rot lackiert', merkmalsposition=50)
        group = next(g for g in client.get('/api/groups').get_json()['data']['data']
                     if g['drucktext'] == 'Farbe: rot')

        response = client.put('/api/groups', json={
            'groupData': group['_groupData'],
            'newData': dict(group_payload, drucktext='Rot lackiert'),
        })

        assert response.status_code == 400
        assert Merkmalstext.query.filter_by(drucktext='Farbe: rot').count() == 2

    def test_requires_new_data(self, client):
        response = client.put('/api/groups', json={'groupData': {'id_list': '1'}})

        assert response.status_code == 400

    def test_requires_id_list(self, client, group_payload):
        response = client.put('/api/groups', json={'newData': group_payload})

        assert response.get_json()['errors'] == ['Group data ist erforderlich für Gruppenaktualisierung']


class TestCopyGroup:
    """Tests for POST /api/groups/copy and /api/groups/create-from-copy."""

    def test_copy_returns_template(self, client, make_record, group_payload):
        make_record(identnr='B', maka=0, fertigungsliste=1)
        make_record(identnr='A', fertigungsliste=0)

        body = client.post('/api/groups/copy', json={
            key: value for key, value in group_payload.items() if key != 'fertigungsliste'
        }).get_json()

        data = body['data']
        assert data['identnrs'] == ['A', 'B']
        assert data['recordCount'] == 2
        assert data['template']['drucktext'] == 'Farbe: rot'
        assert data['template']['position'] == 10

    def test_copy_matches_fertigungsliste_when_given(self, client, make_record, group_payload):
        make_record(identnr='A', fertigungsliste=0)
        make_record(identnr='B', fertigungsliste=1)

        data = client.post('/api/groups/copy', json=dict(group_payload, fertigungsliste=1)).get_json()['data']

        assert data['identnrs'] == ['B']

    def test_copy_requires_texts(self, client):
        response = client.post('/api/groups/copy', json={'merkmal': 'Farbe'})

        assert response.status_code == 400
        assert response.get_json()['errors'] == ['Merkmal, Auspraegung und Drucktext sind erforderlich']

    def test_copy_without_match(self, client, group_payload):
        response = client.post('/api/groups/copy', json=group_payload)

        assert response.status_code == 404

    def test_create_from_copy_skips_existing(self, client, make_record, group_payload):
        make_record(identnr='A')

        response = client.post('/api/groups/create-from-copy', json={
            'template': group_payload,
            'targetIdentnrs': ['A', 'C', 'D'],
        })

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['recordCount'] == 2
        assert sorted(r['identnr'] for r in data['createdRecords']) == ['C', 'D']
        assert Merkmalstext.query.count() == 3

    def test_created_rows_join_the_group(self, client, make_record, group_payload):
        make_record(identnr='A')

        client.post('/api/groups/create-from-copy', json={
            'records': [group_payload], 'targetIdentnrs': ['B'],
        })

        groups = client.get('/api/groups').get_json()['data']['data']
        assert len(groups) == 1
        assert groups[0]['identnr_list'] == 'A, B'

    def test_create_from_copy_requires_targets(self, client, group_payload):
        response = client.post('/api/groups/create-from-copy', json={
            'template': group_payload, 'targetIdentnrs': [],
        })

        assert response.status_code == 400
        assert response.get_json()['errors'] == ['Ziel-Identnrs sind erforderlich']
