"""
Credential vault tests.

Verifies:
- Each password change appends exactly one history row holding the NEW hash
- Reuse inside the window is rejected
- A failed history append does not block the change
- Sessions are revoked and the change is audited
"""

import pytest
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError

from groceries.errors import PasswordReuseError, PasswordValidationError, ValidationError
from groceries.extensions import db
from groceries.models import PasswordHistoryEntry, SecurityLogEntry, User, UserSession
from groceries.services import credential_service, session_service
from groceries.services.auth_service import verify_password


class TestChangePassword:

    def test_appends_new_hash_only(self, customer):
        old_hash = db.session.get(User, customer.id).password_hash

        credential_service.change_password(customer.id, "Totoro#2024", current_password="Password123!")

        user = db.session.get(User, customer.id)
        history = db.session.query(PasswordHistoryEntry).filter_by(user_id=customer.id).all()
        assert len(history) == 1
        assert history[0].password_hash == user.password_hash
        assert history[0].password_hash != old_hash
        assert verify_password("Totoro#2024", history[0].password_hash)
        assert user.password_changed_date is not None

    def test_wrong_current_password(self, customer):
        with pytest.raises(ValidationError):
            credential_service.change_password(customer.id, "Totoro#2024", current_password="nope")
        assert db.session.query(PasswordHistoryEntry).count() == 0

    def test_weak_password(self, customer):
        with pytest.raises(PasswordValidationError):
            credential_service.change_password(customer.id, "short")

    def test_current_password_cannot_be_reused(self, customer):
        with pytest.raises(PasswordReuseError):
            credential_service.change_password(customer.id, "Password123!")

    def test_reuse_window(self, customer):
        credential_service.change_password(customer.id, "Catbus!2024a")
        credential_service.change_password(customer.id, "Catbus!2024b")

        with pytest.raises(PasswordReuseError):
            credential_service.change_password(customer.id, "Catbus!2024a")

        assert db.session.query(PasswordHistoryEntry).filter_by(user_id=customer.id).count() == 2

    def test_revokes_sessions_and_audits(self, customer):
        session_service.create_session(customer.id, "127.0.0.1")
        session_service.create_session(customer.id, "127.0.0.1")

        credential_service.change_password(customer.id, "Totoro#2024", ip_address="127.0.0.1")

        assert db.session.query(UserSession).filter_by(user_id=customer.id).count() == 0
        assert db.session.query(SecurityLogEntry).filter_by(
            user_id=customer.id, event_type="PASSWORD_CHANGED"
        ).count() == 1

    def test_keep_sessions(self, customer):
        session_service.create_session(customer.id, "127.0.0.1")
        credential_service.change_password(customer.id, "Totoro#2024", revoke_sessions=False)
        assert db.session.query(UserSession).filter_by(user_id=customer.id).count() == 1

    def test_failed_history_append_does_not_block_change(self, customer, caplog):
        def fail_insert(mapper, connection, target):
            raise IntegrityError("INSERT INTO password_history", {}, Exception("disk quota exceeded"))

        event.listen(PasswordHistoryEntry, "before_insert", fail_insert)
        try:
            credential_service.change_password(customer.id, "Totoro#2024")
        finally:
            event.remove(PasswordHistoryEntry, "before_insert", fail_insert)

        user = db.session.get(User, customer.id)
        assert verify_password("Totoro#2024", user.password_hash)
        assert db.session.query(PasswordHistoryEntry).count() == 0
        assert "Could not record password history" in caplog.text

    def test_list_history_hides_hash(self, customer):
        credential_service.change_password(customer.id, "Totoro#2024")
        rows = credential_service.list_password_history(customer.id)
        assert len(rows) == 1
        assert "password_hash" not in rows[0].to_dict()
