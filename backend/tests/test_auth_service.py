"""
Authentication and session token tests.
"""

from datetime import timedelta

import pytest

from pharmapos.models import SessionToken
from pharmapos.services import auth_service, session_service
from pharmapos.services.auth_service import AuthError, PasswordValidationError


class TestAccounts:

    def test_create_user_records_role(self, store, admin_user):
        assert store.get(f"users/{admin_user.uid}") == {"email": "admin@pharmapos.local", "role": "admin"}
        assert admin_user.password_hash != "Password123!"

    def test_duplicate_email(self, admin_user):
        with pytest.raises(AuthError):
            auth_service.create_user("ADMIN@pharmapos.local", "Password123!")

    def test_weak_password(self, db_session):
        with pytest.raises(PasswordValidationError):
            auth_service.create_user("x@pharmapos.local", "short")

    def test_unknown_role(self, db_session):
        with pytest.raises(AuthError):
            auth_service.create_user("x@pharmapos.local", "Password123!", role="owner")

    def test_authenticate(self, admin_user):
        assert auth_service.authenticate("Admin@PharmaPOS.local", "Password123!") is admin_user
        assert auth_service.authenticate("admin@pharmapos.local", "wrong-password") is None
        assert auth_service.authenticate("nobody@pharmapos.local", "Password123!") is None

    def test_inactive_user_cannot_authenticate(self, db_session, admin_user):
        admin_user.is_active = False
        db_session.commit()
        assert auth_service.authenticate("admin@pharmapos.local", "Password123!") is None

    def test_set_role(self, store, cashier_user):
        auth_service.set_role(cashier_user, "admin", store=store)
        assert auth_service.get_role(cashier_user, store=store) == "admin"

    def test_unknown_stored_role_is_ignored(self, store, cashier_user):
        store.set(f"users/{cashier_user.uid}/role", "superuser")
        assert auth_service.get_role(cashier_user, store=store) is None


class TestSessions:

    def test_token_stored_hashed(self, db_session, admin_user):
        session, token = session_service.create_session(admin_user.id)
        assert session.token_hash == session_service.hash_token(token)
        assert session.token_hash != token

    def test_validate_and_revoke(self, admin_user):
        _, token = session_service.create_session(admin_user.id)
        assert session_service.validate_session(token) is admin_user
        assert session_service.revoke_session(token) is True
        assert session_service.validate_session(token) is None
        assert session_service.revoke_session(token) is False

    def test_idle_timeout(self, db_session, admin_user):
        session, token = session_service.create_session(admin_user.id)
        session.last_used_at = session.last_used_at - timedelta(hours=3)
        db_session.commit()
        assert session_service.validate_session(token) is None
        assert db_session.get(SessionToken, session.id).revoked_reason == "idle_timeout"

    def test_absolute_timeout(self, db_session, admin_user):
        session, token = session_service.create_session(admin_user.id)
        session.expires_at = session.created_at - timedelta(seconds=1)
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_unknown_token(self, db_session):
        assert session_service.validate_session("not-a-token") is None
        assert session_service.validate_session("") is None
