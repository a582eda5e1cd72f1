"""Tests for the connection health monitor and its request hook."""
import pytest
from sqlalchemy.exc import DisconnectionError, OperationalError

from merkmalverwaltung.exceptions import TransientStoreError
from merkmalverwaltung.services import RecordService


def _operational_error(message):
    return OperationalError('SELECT 1', {}, Exception(message))


@pytest.fixture
def monitor(app):
    return app.extensions['health_monitor']


class TestExecute:
    """Tests for retrying store operations."""

    def test_returns_result(self, monitor):
        assert monitor.execute(lambda: 42) == 42

    def test_connection_error_is_retried(self, monitor):
        """Should retry and return once the connection is back."""
        calls = []

        def operation():
            calls.append(1)
            if len(calls) < 2:
                raise _operational_error('connection refused')
            return 'ok'

        assert monitor.execute(operation) == 'ok'
        assert len(calls) == 2
        assert monitor.is_healthy()

    def test_exhausted_retries_mark_unhealthy(self, monitor):
        calls = []

        def operation():
            calls.append(1)
            raise _operational_error('connection refused')

        with pytest.raises(TransientStoreError) as excinfo:
            monitor.execute(operation)

        assert len(calls) == monitor.retry_attempts
        assert excinfo.value.status_code == 503
        assert not monitor.is_healthy()

    def test_timeout_maps_to_408(self, monitor):
        def operation():
            raise _operational_error('query timed out')

        with pytest.raises(TransientStoreError) as excinfo:
            monitor.execute(operation)

        assert excinfo.value.status_code == 408
        assert excinfo.value.timeout is True

    def test_other_database_errors_are_not_retried(self, monitor):
        calls = []

        def operation():
            calls.append(1)
            raise _operational_error('no such table: merkmalstexte')

        with pytest.raises(OperationalError):
            monitor.execute(operation)

        assert len(calls) == 1
        assert monitor.is_healthy()


class TestClassification:
    """Tests for connection error detection."""

    def test_disconnection_is_connection_error(self, monitor):
        assert monitor.is_connection_error(DisconnectionError('gone'))

    def test_plain_exception_is_not(self, monitor):
        assert not monitor.is_connection_error(ValueError('connection'))


class TestFailFast:
    """Tests for the 503 short-circuit on /api while unhealthy."""

    def test_api_requests_fail_fast(self, client, monitor, monkeypatch):
        monitor.mark_unhealthy()
        monkeypatch.setattr(monitor, 'check', lambda: False)

        response = client.get('/api/groups')

        assert response.status_code == 503
        assert response.get_json()['success'] is False

    def test_non_api_paths_still_answer(self, client, monitor, monkeypatch):
        monitor.mark_unhealthy()
        monkeypatch.setattr(monitor, 'check', lambda: False)

        assert client.get('/').status_code == 200
        response = client.get('/ui/')
        assert response.status_code == 200
        assert b'<html' in response.data
        response.close()

    def test_recovers_when_probe_succeeds(self, client, monitor):
        """Without the polling thread a request probes once and proceeds."""
        monitor.mark_unhealthy()

        response = client.get('/api/groups')

        assert response.status_code == 200
        assert monitor.is_healthy()

    def test_operational_error_in_route_becomes_503(self, client, monitor, monkeypatch):
        def failing(self, page, page_size):
            raise _operational_error('communication link failure')

        monkeypatch.setattr(RecordService, 'list_records', failing)

        response = client.get('/api/records')

        assert response.status_code == 503
        assert not monitor.is_healthy()


class TestHealthEndpoint:
    """Tests for GET /health."""

    def test_healthy(self, client):
        body = client.get('/health').get_json()

        assert body['success'] is True
        assert body['data']['database'] == 'verbunden'
        assert body['data']['monitorRunning'] is False

    def test_unhealthy(self, client, monitor):
        monitor.mark_unhealthy()

        response = client.get('/health')

        assert response.status_code == 503
        assert response.get_json()['data']['database'] == 'getrennt'

    def test_check_against_working_database(self, monitor):
        assert monitor.check() is True

    def test_db_test_endpoint(self, client):
        assert client.get('/db-test').get_json()['data'] == {'result': 1}

    def test_index_lists_sonder_abt_labels(self, client):
        options = client.get('/').get_json()['data']['sonderAbtOptions']

        assert options[0] == {'value': 0, 'label': 'Keine'}
        assert options[3] == {'value': 3, 'label': '3 - rot'}
        assert len(options) == 8


class TestLifecycle:
    """Tests for the background polling thread."""

    def test_start_and_stop(self, app, monitor):
        monitor.start()
        try:
            assert monitor.running
        finally:
            monitor.stop()

        assert not monitor.running

    def test_start_is_idempotent(self, app, monitor):
        monitor.start()
        thread = monitor._thread
        try:
            monitor.start()
            assert monitor._thread is thread
        finally:
            monitor.stop()
