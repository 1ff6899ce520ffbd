"""
Admin accounts, password rules and session tokens.
"""

from datetime import timedelta

import pytest

from storeledger.errors import ConflictError, InvalidCredentialsError, ValidationError
from storeledger.models import SessionToken
from storeledger.services import auth_service, session_service
from storeledger.services.auth_service import PasswordValidationError
from storeledger.time_utils import utcnow

from conftest import PASSWORD


class TestPasswords:

    @pytest.mark.parametrize(
        "password",
        ["Short1!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigitsHere!", "NoSpecial123"],
    )
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_hash_and_verify(self):
        hashed = auth_service.hash_password(PASSWORD, rounds=4)
        assert hashed != PASSWORD
        assert auth_service.verify_password(PASSWORD, hashed)
        assert not auth_service.verify_password("Password123?", hashed)
        assert not auth_service.verify_password(PASSWORD, "not-a-bcrypt-hash")


class TestAdmins:

    def test_duplicate_username(self, db_session, editor):
        with pytest.raises(ConflictError):
            auth_service.create_admin(
                username=editor.username,
                email="other@store.test",
                name="Other",
                role="viewer",
                password=PASSWORD,
            )

    def test_unknown_role(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.create_admin(
                username="x", email="x@store.test", name="X", role="cashier", password=PASSWORD,
            )

    def test_authenticate(self, db_session, editor):
        assert auth_service.authenticate(editor.username, PASSWORD).id == editor.id
        assert editor.last_login_at is not None

    def test_inactive_admin_cannot_log_in(self, db_session, editor):
        editor.is_active = False
        db_session.commit()
        with pytest.raises(InvalidCredentialsError):
            auth_service.authenticate(editor.username, PASSWORD)

    def test_reauthenticate(self, db_session, editor):
        auth_service.reauthenticate(editor, PASSWORD)
        with pytest.raises(InvalidCredentialsError):
            auth_service.reauthenticate(editor, None)
        with pytest.raises(InvalidCredentialsError):
            auth_service.reauthenticate(editor, "Password123?")


class TestSessions:

    def test_token_is_stored_hashed(self, db_session, editor):
        session, token = session_service.create_session(editor)
        assert session.token_hash == session_service.hash_token(token)
        assert db_session.query(SessionToken).filter_by(token_hash=token).count() == 0

    def test_validate_and_revoke(self, db_session, editor):
        _, token = session_service.create_session(editor)
        assert session_service.validate_session(token).id == editor.id

        assert session_service.revoke_session(token) is True
        assert session_service.validate_session(token) is None
        assert session_service.revoke_session(token) is False

    def test_expired_session(self, db_session, editor):
        session, token = session_service.create_session(editor)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_idle_session_is_revoked(self, app, db_session, editor):
        session, token = session_service.create_session(editor)
        session.last_used_at = utcnow() - timedelta(minutes=app.config["SESSION_IDLE_MINUTES"] + 1)
        db_session.commit()

        assert session_service.validate_session(token) is None
        assert db_session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_deactivated_admin_session(self, db_session, editor):
        _, token = session_service.create_session(editor)
        editor.is_active = False
        db_session.commit()
        assert session_service.validate_session(token) is None
