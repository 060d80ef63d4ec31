from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


ACCOUNT_STATUS_ACTIVE = "active"
ACCOUNT_STATUS_INACTIVE = "inactive"
ACCOUNT_STATUS_LOCKED = "locked"

ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"


class User(db.Model):
    """
    Customer or administrator account.

    failed_login_attempts is only ever changed by conditional UPDATE
    statements in account_guard_service, never read-modify-write.

    account_status moves to 'locked' once failed_login_attempts reaches the
    lockout threshold and stays there until an administrator unlocks it.

    password_hash is bcrypt. Changing it goes through credential_service,
    which also appends the new hash to password_history.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint(
            "account_status IN ('active', 'inactive', 'locked')",
            name="ck_users_account_status",
        ),
        db.CheckConstraint("failed_login_attempts >= 0", name="ck_users_failed_attempts_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(15), nullable=True)
    email = db.Column(db.String(100), nullable=False, unique=True, index=True)

    # bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(20), nullable=False, default=ROLE_CUSTOMER, index=True)
    account_status = db.Column(db.String(20), nullable=False, default=ACCOUNT_STATUS_ACTIVE)
    failed_login_attempts = db.Column(db.Integer, nullable=False, default=0)

    last_login_date = db.Column(db.DateTime, nullable=True)
    password_changed_date = db.Column(db.DateTime, nullable=True)
    registration_date = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    last_modified = db.Column(
        db.DateTime,
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_locked(self) -> bool:
        return self.account_status == ACCOUNT_STATUS_LOCKED

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} status={self.account_status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "role": self.role,
            "account_status": self.account_status,
            "failed_login_attempts": self.failed_login_attempts,
            "last_login_date": to_utc_z(self.last_login_date),
            "password_changed_date": to_utc_z(self.password_changed_date),
            "registration_date": to_utc_z(self.registration_date),
        }


class UserSession(db.Model):
    """
    Server-side login session.

    SECURITY:
    - id is the SHA-256 of a 32-byte random token; the plaintext token is
      only ever held by the client.
    - expires_at is absolute and never extended. touch_session() only moves
      last_activity.
    - Expired rows are deleted by the session sweep (reclaim_expired_sessions).
    """
    __tablename__ = "user_sessions"

    id = db.Column(db.String(128), primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    ip_address = db.Column(db.String(45), nullable=False)  # IPv6 max length
    user_agent = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)
    last_activity = db.Column(db.DateTime, nullable=False)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True, passive_deletes=True))

    def to_dict(self) -> dict:
        # id is deliberately omitted: it is the token hash
        return {
            "user_id": self.user_id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "created_at": to_utc_z(self.created_at),
            "expires_at": to_utc_z(self.expires_at),
            "last_activity": to_utc_z(self.last_activity),
        }


class PasswordHistoryEntry(db.Model):
    """
    Password history.

    One row per password change holding the NEW hash. Written only as a side
    effect of credential_service.change_password().

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "password_history"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    change_date = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        # password_hash is not exposed
        return {
            "id": self.id,
            "user_id": self.user_id,
            "change_date": to_utc_z(self.change_date),
        }
