# Overview: Password changes with reuse prevention and password history.

"""
Credential Vault

change_password() writes the new bcrypt hash and appends it to
password_history in the same transaction.

The history append runs inside a SAVEPOINT. If it fails, only the
savepoint is rolled back, a warning is logged, and the password change
itself still commits: a missing history row must never lock a user out of
changing their password.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import PasswordHistoryEntry, User
from ..errors import PasswordReuseError, UserNotFoundError, ValidationError
from ..time_utils import utcnow
from .auth_service import hash_password, validate_password_strength, verify_password
from .concurrency import acquire_write_lock, run_with_retry
from .security_log_service import EVENT_PASSWORD_CHANGED, log_security_event
from .session_service import delete_user_sessions


def _recent_hashes(user: User, window: int) -> list[str]:
    rows = (
        db.session.query(PasswordHistoryEntry.password_hash)
        .filter(PasswordHistoryEntry.user_id == user.id)
        .order_by(PasswordHistoryEntry.change_date.desc(), PasswordHistoryEntry.id.desc())
        .limit(window)
        .all()
    )
    return [user.password_hash] + [row[0] for row in rows]


def _archive_password_hash(user_id: int, password_hash: str) -> bool:
    """
    Append the new hash to password_history inside a savepoint.

    Returns False (and logs a warning) if the append failed; the outer
    transaction is left intact either way.
    """
    try:
        with db.session.begin_nested():
            db.session.add(PasswordHistoryEntry(user_id=user_id, password_hash=password_hash))
    except SQLAlchemyError as e:
        current_app.logger.warning("Could not record password history for user %s: %s", user_id, e)
        return False
    return True


def change_password(
    user_id: int,
    new_password: str,
    *,
    current_password: str | None = None,
    ip_address: str | None = None,
    revoke_sessions: bool = True,
) -> User:
    """
    Change a user's password.

    - current_password, when given, must match the stored hash
    - new_password must meet strength rules and must not match the current
      password or any of the last PASSWORD_REUSE_WINDOW passwords
    - on success, existing sessions are revoked (unless revoke_sessions is
      False) and PASSWORD_CHANGED is written to the security log
    """
    validate_password_strength(new_password)
    window = current_app.config.get("PASSWORD_REUSE_WINDOW", 3)

    def _op():
        acquire_write_lock()
        user = db.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        if current_password is not None and not verify_password(current_password, user.password_hash):
            raise ValidationError("Current password is incorrect.")

        for old_hash in _recent_hashes(user, window):
            if verify_password(new_password, old_hash):
                raise PasswordReuseError(window)

        new_hash = hash_password(new_password)
        user.password_hash = new_hash
        user.password_changed_date = utcnow()
        db.session.flush()

        _archive_password_hash(user.id, new_hash)

        if revoke_sessions:
            delete_user_sessions(user.id)

        log_security_event(
            user_id=user.id,
            event_type=EVENT_PASSWORD_CHANGED,
            ip_address=ip_address,
            description="Password changed",
        )
        db.session.commit()
        return user

    user = run_with_retry(_op, operation="change_password")
    current_app.logger.info("Password changed for user %s", user_id)
    return user


def list_password_history(user_id: int):
    """History rows, newest first (hashes are not exposed by to_dict)."""
    return (
        PasswordHistoryEntry.query
        .filter_by(user_id=user_id)
        .order_by(PasswordHistoryEntry.change_date.desc(), PasswordHistoryEntry.id.desc())
        .all()
    )
