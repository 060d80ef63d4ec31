# Overview: Failed-login counting and account lockout.

"""
Account Guard

WHY: Stop brute-force password guessing. After LOGIN_LOCKOUT_THRESHOLD
consecutive failures the account is locked until an administrator unlocks
it.

CONCURRENCY:
- The counter is never read-modified-written in Python. Each change is a
  single conditional UPDATE, so N concurrent failures add exactly N.
- Locking is a second conditional UPDATE that only matches rows at or over
  the threshold and not yet locked. Exactly one caller sees rowcount == 1
  and writes the ACCOUNT_LOCKED security event.
- The LoginAttempt row, the counter change, the lock and the security
  event share one transaction.

Locked accounts keep counting and keep logging attempts; they never error.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import LoginAttempt, User
from ..models.auth import ACCOUNT_STATUS_ACTIVE, ACCOUNT_STATUS_INACTIVE, ACCOUNT_STATUS_LOCKED
from ..errors import UserNotFoundError, ValidationError
from ..time_utils import utcnow
from .concurrency import acquire_write_lock, run_with_retry
from .security_log_service import (
    EVENT_ACCOUNT_LOCKED,
    EVENT_ACCOUNT_STATUS_CHANGED,
    EVENT_ACCOUNT_UNLOCKED,
    log_security_event,
)
from .session_service import delete_user_sessions


@dataclass(frozen=True)
class AttemptResult:
    success: bool
    user_id: int | None
    failed_attempts: int
    locked: bool
    newly_locked: bool = False


def _threshold() -> int:
    return current_app.config.get("LOGIN_LOCKOUT_THRESHOLD", 5)


def normalize_email(email: str | None) -> str | None:
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


def record_login_attempt(
    email: str | None,
    ip_address: str,
    user_agent: str | None,
    success: bool,
) -> AttemptResult:
    """
    Record one login attempt and apply its effect on the account.

    The attempt is logged even when the email matches no user. For a known
    user:
    - success: counter reset to 0, last_login_date set
    - failure: counter + 1; lock when it reaches the threshold
    """
    email = normalize_email(email)
    threshold = _threshold()

    def _op():
        acquire_write_lock()

        db.session.add(LoginAttempt(
            email=email,
            ip_address=ip_address or "unknown",
            user_agent=user_agent,
            attempt_time=utcnow(),
            success=bool(success),
        ))
        db.session.flush()

        user_id = None
        if email is not None:
            user_id = db.session.query(User.id).filter(User.email == email).scalar()
        if user_id is None:
            db.session.commit()
            return AttemptResult(success=bool(success), user_id=None, failed_attempts=0, locked=False)

        newly_locked = False
        if success:
            db.session.query(User).filter(User.id == user_id).update(
                {User.failed_login_attempts: 0, User.last_login_date: utcnow()},
                synchronize_session="fetch",
            )
        else:
            db.session.query(User).filter(User.id == user_id).update(
                {User.failed_login_attempts: User.failed_login_attempts + 1},
                synchronize_session="fetch",
            )
            locked_rows = db.session.query(User).filter(
                User.id == user_id,
                User.failed_login_attempts >= threshold,
                User.account_status != ACCOUNT_STATUS_LOCKED,
            ).update(
                {User.account_status: ACCOUNT_STATUS_LOCKED},
                synchronize_session="fetch",
            )
            if locked_rows == 1:
                newly_locked = True
                log_security_event(
                    user_id=user_id,
                    event_type=EVENT_ACCOUNT_LOCKED,
                    ip_address=ip_address,
                    description=f"Account locked after {threshold} failed login attempts",
                )

        failed_attempts, status = db.session.query(
            User.failed_login_attempts, User.account_status
        ).filter(User.id == user_id).one()
        db.session.commit()

        return AttemptResult(
            success=bool(success),
            user_id=user_id,
            failed_attempts=failed_attempts,
            locked=status == ACCOUNT_STATUS_LOCKED,
            newly_locked=newly_locked,
        )

    result = run_with_retry(_op, operation="record_login_attempt")
    if result.newly_locked:
        current_app.logger.warning("Account %s locked after %d failed logins", result.user_id, result.failed_attempts)
    return result


def get_lockout_status(email: str) -> dict:
    """Lockout info for display (e.g., 'N attempts remaining')."""
    email = normalize_email(email)
    threshold = _threshold()
    row = None
    if email is not None:
        row = db.session.query(User.failed_login_attempts, User.account_status).filter(User.email == email).first()

    failed = row[0] if row else 0
    locked = bool(row) and row[1] == ACCOUNT_STATUS_LOCKED
    return {
        "email": email,
        "is_locked": locked,
        "failed_attempts": failed,
        "lockout_threshold": threshold,
        "attempts_remaining": 0 if locked else max(0, threshold - failed),
    }


def unlock_account(user_id: int, admin_user_id: int | None = None, ip_address: str | None = None) -> User:
    """Admin action: reactivate a locked account and reset its counter."""
    def _op():
        acquire_write_lock()
        user = db.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        was_locked = user.is_locked
        db.session.query(User).filter(User.id == user_id).update(
            {User.account_status: ACCOUNT_STATUS_ACTIVE, User.failed_login_attempts: 0},
            synchronize_session="fetch",
        )
        if was_locked:
            by = f" by admin {admin_user_id}" if admin_user_id is not None else ""
            log_security_event(
                user_id=user_id,
                event_type=EVENT_ACCOUNT_UNLOCKED,
                ip_address=ip_address,
                description=f"Account unlocked{by}",
            )
        db.session.commit()
        return user

    user = run_with_retry(_op, operation="unlock_account")
    current_app.logger.info("Account %s unlocked (admin=%s)", user_id, admin_user_id)
    return user


def set_account_status(
    user_id: int,
    status: str,
    *,
    admin_user_id: int | None = None,
    ip_address: str | None = None,
) -> User:
    """
    Admin action: mark an account active or inactive.

    Activating a locked account also resets its failed login counter, the
    same as unlock_account(). Deactivating revokes every session of the
    user in the same transaction. Setting the current status is a no-op.
    """
    if status not in (ACCOUNT_STATUS_ACTIVE, ACCOUNT_STATUS_INACTIVE):
        raise ValidationError(
            f"invalid account status: {status}",
            {"allowed": [ACCOUNT_STATUS_ACTIVE, ACCOUNT_STATUS_INACTIVE]},
        )

    def _op():
        acquire_write_lock()
        user = db.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        previous = user.account_status
        if previous == status:
            db.session.commit()
            return user

        values = {User.account_status: status}
        if status == ACCOUNT_STATUS_ACTIVE:
            values[User.failed_login_attempts] = 0
        db.session.query(User).filter(User.id == user_id).update(values, synchronize_session="fetch")

        if status == ACCOUNT_STATUS_INACTIVE:
            delete_user_sessions(user_id)

        by = f" by admin {admin_user_id}" if admin_user_id is not None else ""
        log_security_event(
            user_id=user_id,
            event_type=EVENT_ACCOUNT_UNLOCKED if previous == ACCOUNT_STATUS_LOCKED else EVENT_ACCOUNT_STATUS_CHANGED,
            ip_address=ip_address,
            description=f"Account status changed from {previous} to {status}{by}",
        )
        db.session.commit()
        return user

    user = run_with_retry(_op, operation="set_account_status")
    current_app.logger.info("Account %s status is now %s (admin=%s)", user_id, user.account_status, admin_user_id)
    return user
