# Overview: Retention sweeps and the background session sweeper.

from __future__ import annotations

import threading
from datetime import timedelta

from ..extensions import db
from ..models import LoginAttempt, SecurityLogEntry
from ..time_utils import utcnow
from .session_service import reclaim_expired_sessions


def cleanup_login_attempts(*, retention_days: int = 90) -> int:
    """Delete login attempts older than retention_days."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(LoginAttempt).filter(
        LoginAttempt.attempt_time < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted


def cleanup_security_logs(*, retention_days: int = 90) -> int:
    """
    Delete security log rows older than retention_days.

    Inventory logs, order history and password history are preserved.
    """
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityLogEntry).filter(
        SecurityLogEntry.event_time < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted


class SessionSweeper:
    """Reclaim expired sessions on a fixed interval, in a daemon thread."""

    def __init__(self, app, interval_seconds: int | None = None):
        self.app = app
        self.interval = interval_seconds or app.config.get("SESSION_SWEEP_INTERVAL_SECONDS", 3600)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            self.app.logger.warning("Session sweeper already running")
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="session-sweeper", daemon=True)
        self._thread.start()
        self.app.logger.info("Started session sweeper (every %ss)", self.interval)

    def stop(self, timeout: float = 5):
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
        self.app.logger.info("Stopped session sweeper")

    def run_once(self) -> int:
        with self.app.app_context():
            try:
                return reclaim_expired_sessions()
            finally:
                db.session.remove()

    def _loop(self):
        while not self._stop.wait(self.interval):
            try:
                self.run_once()
            except Exception:
                # Keep sweeping; the next interval retries
                self.app.logger.exception("Session sweep failed")


def start_session_sweeper(app) -> SessionSweeper:
    sweeper = SessionSweeper(app)
    sweeper.start()
    app.extensions["session_sweeper"] = sweeper
    return sweeper
