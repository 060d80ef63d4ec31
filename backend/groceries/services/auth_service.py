# Overview: Password hashing, account creation and credential checks.

"""
Authentication Service

WHY: Every order and every admin action must be attributable to an account.
Uses bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, 12 by default)
- Minimum 8 characters, with upper, lower, digit and special character
- Every login attempt is recorded by account_guard_service, including
  attempts for unknown emails and for locked accounts
- Locked or inactive accounts are rejected as a normal result, never an
  exception
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User
from ..models.auth import ACCOUNT_STATUS_ACTIVE, ROLE_ADMIN, ROLE_CUSTOMER
from ..errors import ConflictError, PasswordValidationError, ValidationError
from .account_guard_service import normalize_email, record_login_attempt
from .concurrency import run_with_retry


LOGIN_REASON_INVALID_CREDENTIALS = "invalid_credentials"
LOGIN_REASON_ACCOUNT_LOCKED = "account_locked"
LOGIN_REASON_ACCOUNT_INACTIVE = "account_inactive"

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class LoginResult:
    success: bool
    user: User | None = None
    reason: str | None = None
    failed_attempts: int = 0
    locked: bool = False


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str):
        raise PasswordValidationError("Password is required")

    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Cost comes from BCRYPT_ROUNDS (tests run with 4 to stay fast).
    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash. Malformed hashes never match.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    name: str,
    email: str,
    password: str,
    phone: str | None = None,
    role: str = ROLE_CUSTOMER,
) -> User:
    """
    Create a new account with a bcrypt password hash.

    Raises:
        ValidationError: missing name, malformed email or unknown role
        PasswordValidationError: password doesn't meet requirements
        ConflictError: email already registered
    """
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required")
    email = normalize_email(email)
    if email is None or not _EMAIL_RE.match(email):
        raise ValidationError("a valid email is required")
    if role not in (ROLE_CUSTOMER, ROLE_ADMIN):
        raise ValidationError(f"invalid role: {role}")

    password_hash = hash_password(password)

    def _op():
        if db.session.query(User.id).filter(User.email == email).first() is not None:
            raise ConflictError("Email is already registered.", {"email": email})

        user = User(
            name=name.strip(),
            email=email,
            phone=phone,
            password_hash=password_hash,
            role=role,
            account_status=ACCOUNT_STATUS_ACTIVE,
            failed_login_attempts=0,
        )
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration for the same email
            db.session.rollback()
            raise ConflictError("Email is already registered.", {"email": email})
        return user

    user = run_with_retry(_op, operation="create_user")
    current_app.logger.info("Created %s account %s", role, user.id)
    return user


def authenticate(email: str, password: str, ip_address: str, user_agent: str | None = None) -> LoginResult:
    """
    Check credentials and record the attempt.

    Returns LoginResult(success=True, user=...) on success. Otherwise
    reason is one of invalid_credentials, account_locked, account_inactive;
    a wrong password that crosses the lockout threshold comes back as
    account_locked.
    """
    normalized = normalize_email(email)
    user = None
    if normalized is not None:
        user = db.session.query(User).filter(User.email == normalized).first()

    if user is None:
        record_login_attempt(normalized, ip_address, user_agent, success=False)
        return LoginResult(success=False, reason=LOGIN_REASON_INVALID_CREDENTIALS)

    if user.is_locked:
        attempt = record_login_attempt(normalized, ip_address, user_agent, success=False)
        return LoginResult(
            success=False,
            reason=LOGIN_REASON_ACCOUNT_LOCKED,
            failed_attempts=attempt.failed_attempts,
            locked=True,
        )

    if user.account_status != ACCOUNT_STATUS_ACTIVE:
        attempt = record_login_attempt(normalized, ip_address, user_agent, success=False)
        return LoginResult(
            success=False,
            reason=LOGIN_REASON_ACCOUNT_INACTIVE,
            failed_attempts=attempt.failed_attempts,
            locked=attempt.locked,
        )

    if not verify_password(password, user.password_hash):
        attempt = record_login_attempt(normalized, ip_address, user_agent, success=False)
        return LoginResult(
            success=False,
            reason=LOGIN_REASON_ACCOUNT_LOCKED if attempt.locked else LOGIN_REASON_INVALID_CREDENTIALS,
            failed_attempts=attempt.failed_attempts,
            locked=attempt.locked,
        )

    record_login_attempt(normalized, ip_address, user_agent, success=True)
    user = db.session.get(User, user.id)
    return LoginResult(success=True, user=user)
