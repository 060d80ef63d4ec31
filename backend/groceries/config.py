# backend/groceries/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value not in (None, "") else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/groceries.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///groceries.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Password hashing cost (tests drop this to 4)
    BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)
    PASSWORD_REUSE_WINDOW = _env_int("PASSWORD_REUSE_WINDOW", 3)

    # Account lockout
    LOGIN_LOCKOUT_THRESHOLD = _env_int("LOGIN_LOCKOUT_THRESHOLD", 5)

    # Sessions
    SESSION_TTL_SECONDS = _env_int("SESSION_TTL_SECONDS", 86400)
    SESSION_IDLE_TIMEOUT_SECONDS = _env_int("SESSION_IDLE_TIMEOUT_SECONDS", 3600)
    SESSION_SWEEP_INTERVAL_SECONDS = _env_int("SESSION_SWEEP_INTERVAL_SECONDS", 3600)
    SESSION_SWEEP_ENABLED = _env_bool("SESSION_SWEEP_ENABLED", False)

    # Store access bounds
    STORE_TIMEOUT_SECONDS = _env_int("STORE_TIMEOUT_SECONDS", 10)
    STORE_RETRY_ATTEMPTS = _env_int("STORE_RETRY_ATTEMPTS", 3)


def engine_options_for(database_uri: str, timeout_seconds: int) -> dict:
    """
    SQLAlchemy engine options that bound every store operation by
    timeout_seconds.

    - SQLite: busy timeout on the driver connection
    - PostgreSQL: statement_timeout and lock_timeout on each session
    """
    if database_uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout_seconds}}

    if database_uri.startswith("postgresql"):
        timeout_ms = timeout_seconds * 1000
        return {
            "pool_pre_ping": True,
            "pool_timeout": timeout_seconds,
            "connect_args": {
                "options": f"-c statement_timeout={timeout_ms} -c lock_timeout={timeout_ms}",
            },
        }

    return {"pool_pre_ping": True, "pool_timeout": timeout_seconds}
