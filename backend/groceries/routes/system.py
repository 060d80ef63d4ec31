# backend/groceries/routes/system.py
"""
System health endpoint.

Reports database reachability and the session table backlog, so a stalled
session sweeper shows up as a growing expired_pending_cleanup count.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Product, UserSession
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        now = utcnow()
        active_sessions = db.session.query(UserSession).filter(UserSession.expires_at > now).count()
        expired_sessions = db.session.query(UserSession).filter(UserSession.expires_at <= now).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "active_sessions": active_sessions,
                "expired_pending_cleanup": expired_sessions,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unreachable
    """
    database_health = check_database_health()
    healthy = database_health["status"] == "healthy"

    sweeper = current_app.extensions.get("session_sweeper")
    return {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "session_sweeper_running": bool(sweeper and sweeper.running),
        "checks": {"database": database_health},
    }, (200 if healthy else 503)
