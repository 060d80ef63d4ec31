# Overview: Append-only security event log (lockouts, unlocks, password changes).

from __future__ import annotations

from ..extensions import db
from ..models import SecurityLogEntry


EVENT_ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
EVENT_ACCOUNT_UNLOCKED = "ACCOUNT_UNLOCKED"
EVENT_PASSWORD_CHANGED = "PASSWORD_CHANGED"
EVENT_ACCOUNT_STATUS_CHANGED = "ACCOUNT_STATUS_CHANGED"


def log_security_event(
    *,
    user_id: int | None,
    event_type: str,
    ip_address: str | None = None,
    description: str | None = None,
) -> SecurityLogEntry:
    """
    Append a security log row to the current session.

    Caller owns the transaction: this flushes but never commits, so the entry
    lands or rolls back together with the change it describes.
    """
    entry = SecurityLogEntry(
        user_id=user_id,
        event_type=event_type,
        ip_address=ip_address,
        description=description,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_security_events(*, user_id: int | None = None, event_type: str | None = None, limit: int = 200):
    q = SecurityLogEntry.query
    if user_id is not None:
        q = q.filter_by(user_id=user_id)
    if event_type is not None:
        q = q.filter_by(event_type=event_type)
    return q.order_by(SecurityLogEntry.id.desc()).limit(limit).all()
