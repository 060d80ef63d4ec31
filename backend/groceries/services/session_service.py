# Overview: Server-side login sessions with absolute and idle expiry.

"""
Session Token Management Service

WHY: Secure session management with automatic timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage; the row id IS the hash
- Absolute expiry (SESSION_TTL_SECONDS, 24h) that is never extended
- Idle expiry (SESSION_IDLE_TIMEOUT_SECONDS, 1h) measured from last_activity
- Expired rows are deleted by reclaim_expired_sessions(), which the
  session sweeper runs hourly
"""

from __future__ import annotations

import enum
import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import User, UserSession
from ..errors import AccountLockedError, UserNotFoundError, ValidationError
from ..time_utils import utcnow
from .concurrency import run_with_retry


class SessionStatus(enum.Enum):
    VALID = "valid"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class SessionValidation:
    status: SessionStatus
    session: UserSession | None = None
    user: User | None = None

    @property
    def is_valid(self) -> bool:
        return self.status is SessionStatus.VALID


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _ttl(ttl) -> timedelta:
    if ttl is None:
        return timedelta(seconds=current_app.config.get("SESSION_TTL_SECONDS", 86400))
    if isinstance(ttl, timedelta):
        seconds = ttl.total_seconds()
    elif isinstance(ttl, (int, float)) and not isinstance(ttl, bool):
        seconds = ttl
    else:
        raise ValidationError("ttl must be a number of seconds or a timedelta")
    if seconds <= 0:
        raise ValidationError("ttl must be positive")
    return timedelta(seconds=seconds)


def _idle_timeout() -> timedelta:
    return timedelta(seconds=current_app.config.get("SESSION_IDLE_TIMEOUT_SECONDS", 3600))


def create_session(
    user_id: int,
    ip_address: str,
    user_agent: str | None = None,
    ttl=None,
) -> tuple[UserSession, str]:
    """
    Create a session for user_id.

    Returns (session_record, plaintext_token). The client receives the
    token, the database stores only its hash.

    Raises UserNotFoundError, or AccountLockedError for a locked account.
    """
    lifetime = _ttl(ttl)

    def _op():
        user = db.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        if user.is_locked:
            raise AccountLockedError(user_id)

        token = generate_token()
        now = utcnow()
        session = UserSession(
            id=hash_token(token),
            user_id=user_id,
            ip_address=ip_address or "unknown",
            user_agent=user_agent,
            created_at=now,
            expires_at=now + lifetime,
            last_activity=now,
        )
        db.session.add(session)
        db.session.commit()
        return session, token

    return run_with_retry(_op, operation="create_session")


def _is_expired(session: UserSession, now: datetime) -> bool:
    if session.expires_at <= now:
        return True
    return now - session.last_activity > _idle_timeout()


def validate_session(token: str | None) -> SessionValidation:
    """
    Look up a session by its plaintext token. Read-only: call
    touch_session() to record activity.
    """
    if not token:
        return SessionValidation(SessionStatus.NOT_FOUND)

    session = db.session.get(UserSession, hash_token(token))
    if session is None:
        return SessionValidation(SessionStatus.NOT_FOUND)

    if _is_expired(session, utcnow()):
        return SessionValidation(SessionStatus.EXPIRED, session=session)

    return SessionValidation(SessionStatus.VALID, session=session, user=session.user)


def touch_session(token: str) -> bool:
    """
    Refresh last_activity. expires_at is not moved, so activity can never
    extend a session past its absolute lifetime, and a session already past
    its idle timeout stays expired. Returns False if nothing was refreshed.
    """
    token_hash = hash_token(token)

    def _op():
        now = utcnow()
        touched = db.session.query(UserSession).filter(
            UserSession.id == token_hash,
            UserSession.expires_at > now,
            UserSession.last_activity >= now - _idle_timeout(),
        ).update({UserSession.last_activity: now}, synchronize_session="fetch")
        db.session.commit()
        return touched == 1

    return run_with_retry(_op, operation="touch_session")


def destroy_session(token: str) -> bool:
    """Logout. Returns False if there was no such session."""
    token_hash = hash_token(token)

    def _op():
        deleted = db.session.query(UserSession).filter(UserSession.id == token_hash).delete(
            synchronize_session="fetch"
        )
        db.session.commit()
        return deleted == 1

    return run_with_retry(_op, operation="destroy_session")


def delete_user_sessions(user_id: int) -> int:
    """Delete every session of a user inside the caller's transaction (no commit)."""
    return db.session.query(UserSession).filter(UserSession.user_id == user_id).delete(
        synchronize_session="fetch"
    )


def destroy_user_sessions(user_id: int) -> int:
    """
    Revoke all sessions for a user. Returns the number deleted.

    WHY: Security response (password change, account compromise, etc.)
    Forces re-authentication on all devices.
    """
    def _op():
        deleted = delete_user_sessions(user_id)
        db.session.commit()
        return deleted

    return run_with_retry(_op, operation="destroy_user_sessions")


def reclaim_expired_sessions(now: datetime | None = None) -> int:
    """
    Delete every session past its absolute expiry or idle timeout.

    Idempotent: a second run at the same instant deletes nothing.
    """
    now = now or utcnow()
    idle_cutoff = now - _idle_timeout()

    def _op():
        deleted = db.session.query(UserSession).filter(
            db.or_(UserSession.expires_at <= now, UserSession.last_activity < idle_cutoff)
        ).delete(synchronize_session=False)
        db.session.commit()
        return deleted

    deleted = run_with_retry(_op, operation="reclaim_expired_sessions")
    if deleted:
        current_app.logger.info("Reclaimed %d expired sessions", deleted)
    return deleted
