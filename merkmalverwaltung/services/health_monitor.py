"""Database connection health monitoring.

The monitor owns a background thread that probes the database with
``SELECT 1``. While the database is unreachable, API requests fail fast with
503 instead of waiting for their own timeouts. Store operations run through
``execute()``, which retries connection errors with exponential backoff.
"""
import threading
import time
from typing import Callable, Optional, TypeVar

from flask import Flask, current_app, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, DisconnectionError, OperationalError

from merkmalverwaltung.exceptions import TransientStoreError
from merkmalverwaltung.utils import format_error

T = TypeVar('T')

CONNECTION_ERROR_MARKERS = (
    'connection', 'timeout', 'timed out', 'communication link', 'gone away',
    'could not connect', 'network', 'econnreset', 'econnrefused', 'econnclosed',
    'etimeout', 'enotfound', '08s01', '08001', 'database is locked',
)


class ConnectionHealthMonitor:
    """Tracks whether the database is reachable.

    Usage:
        health = ConnectionHealthMonitor()
        health.init_app(app)
        health.start()
        ...
        health.stop()
    """

    def __init__(self, app: Optional[Flask] = None):
        self._app: Optional[Flask] = None
        self._healthy = True
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.interval = 30.0
        self.retry_attempts = 3
        self.base_delay = 1.0
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask):
        self._app = app
        self._healthy = True
        self.interval = float(app.config.get('DB_HEALTH_CHECK_INTERVAL', 30))
        self.retry_attempts = max(1, int(app.config.get('DB_RETRY_ATTEMPTS', 3)))
        self.base_delay = float(app.config.get('DB_RETRY_BASE_DELAY', 1.0))
        app.extensions['health_monitor'] = self

        @app.before_request
        def fail_fast_when_unhealthy():
            if not request.path.startswith('/api') or self.is_healthy():
                return None
            # Without the polling thread nobody else clears the flag
            if not self.running and self.check():
                return None
            return jsonify(format_error(
                'Datenbankverbindung nicht verfügbar. Bitte versuchen Sie es später erneut.'
            )), 503

    # === STATE ===

    def is_healthy(self) -> bool:
        with self._lock:
            return self._healthy

    def _set_healthy(self, healthy: bool):
        with self._lock:
            changed = self._healthy != healthy
            self._healthy = healthy
        if changed and self._app is not None:
            if healthy:
                self._app.logger.info('Datenbankverbindung wiederhergestellt')
            else:
                self._app.logger.error('Datenbankverbindung als nicht verfügbar markiert')

    def mark_unhealthy(self):
        self._set_healthy(False)

    # === PROBE ===

    def check(self) -> bool:
        """Probe the database once and update the health flag.

        Must be called inside an application context.
        """
        from merkmalverwaltung import db
        try:
            db.session.execute(text('SELECT 1'))
            db.session.rollback()
        except DBAPIError as e:
            db.session.rollback()
            current_app.logger.error(f'Datenbank-Gesundheitsprüfung fehlgeschlagen: {e}')
            # Drop pooled connections so the next probe reconnects
            db.engine.dispose()
            self._set_healthy(False)
            return False
        self._set_healthy(True)
        return True

    # === LIFECYCLE ===

    def start(self):
        """Start the background polling thread (idempotent)."""
        if self._app is None:
            raise RuntimeError('ConnectionHealthMonitor.init_app() was not called')
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name='db-health-monitor', daemon=True
        )
        self._thread.start()
        self._app.logger.info('Datenbank-Gesundheitsüberwachung gestartet')

    def stop(self, timeout: float = 5.0):
        if self._thread is None:
            return
        self._stop_event.set()
        self._thread.join(timeout)
        self._thread = None
        if self._app is not None:
            self._app.logger.info('Datenbank-Gesundheitsüberwachung gestoppt')

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self):
        failures = 0
        while not self._stop_event.is_set():
            with self._app.app_context():
                healthy = self.check()
            if healthy:
                failures = 0
                wait = self.interval
            else:
                # Probe sooner while down, backing off up to the normal interval
                failures += 1
                wait = min(self.interval, self.base_delay * 2 ** (failures - 1))
            self._stop_event.wait(wait)

    # === RETRY ===

    @staticmethod
    def is_connection_error(error: BaseException) -> bool:
        if isinstance(error, DisconnectionError):
            return True
        if isinstance(error, DBAPIError) and error.connection_invalidated:
            return True
        if isinstance(error, OperationalError):
            message = str(error).lower()
            return any(marker in message for marker in CONNECTION_ERROR_MARKERS)
        return False

    @staticmethod
    def is_timeout(error: BaseException) -> bool:
        message = str(error).lower()
        return 'timeout' in message or 'timed out' in message

    def execute(self, operation: Callable[[], T]) -> T:
        """Run a unit of work, retrying connection errors.

        Non-connection errors propagate unchanged. When retries are
        exhausted the store is marked unhealthy and TransientStoreError is
        raised; the background probe clears the flag again.
        """
        from merkmalverwaltung import db

        for attempt in range(1, self.retry_attempts + 1):
            try:
                return operation()
            except (DBAPIError, DisconnectionError) as e:
                db.session.rollback()
                if not self.is_connection_error(e):
                    raise
                current_app.logger.warning(
                    f'Datenbankoperation fehlgeschlagen (Versuch {attempt}/{self.retry_attempts}): {e}'
                )
                if attempt == self.retry_attempts:
                    self.mark_unhealthy()
                    raise TransientStoreError(
                        'Anfrage-Zeitüberschreitung' if self.is_timeout(e) else
                        'Datenbankverbindung unterbrochen',
                        timeout=self.is_timeout(e)
                    ) from e
                time.sleep(self.base_delay * 2 ** (attempt - 1))
