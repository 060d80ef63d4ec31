from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class LoginAttempt(db.Model):
    """
    Every login attempt, successful or not.

    email is nullable so attempts with a missing identifier are still
    recorded.

    IMMUTABLE: Never update. Rows are only aged out by the retention sweep.
    """
    __tablename__ = "login_attempts"
    __table_args__ = (
        db.Index("ix_login_attempts_email_time", "email", "attempt_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(100), nullable=True, index=True)
    ip_address = db.Column(db.String(45), nullable=False, index=True)
    user_agent = db.Column(db.String(255), nullable=True)
    attempt_time = db.Column(db.DateTime, nullable=False, server_default=db.func.now(), index=True)
    success = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "attempt_time": to_utc_z(self.attempt_time),
            "success": self.success,
        }


class SecurityLogEntry(db.Model):
    """
    Security event audit log (account locked/unlocked, password changed, ...).

    IMMUTABLE: Never update. Rows are only aged out by the retention sweep.
    """
    __tablename__ = "security_logs"
    __table_args__ = (
        db.Index("ix_security_logs_user_type", "user_id", "event_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    event_type = db.Column(db.String(50), nullable=False, index=True)
    event_time = db.Column(db.DateTime, nullable=False, server_default=db.func.now(), index=True)
    ip_address = db.Column(db.String(45), nullable=True)
    description = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "event_type": self.event_type,
            "event_time": to_utc_z(self.event_time),
            "ip_address": self.ip_address,
            "description": self.description,
        }
