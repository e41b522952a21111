"""Tests for registration, login and account operations."""

from unittest.mock import patch

import pytest

from server.exceptions import (
    EmptyUsernameError,
    InvalidCredentialsError,
    InvalidInputError,
    InvalidTokenError,
    RefreshTokenReusedError,
    UserAlreadyExistsError,
    WeakPasswordError,
)
from server.services.auth_service import AuthService


@pytest.fixture
def auth_service(store, token_issuer):
    return AuthService(store, token_issuer)


def _user_id(token_issuer, pair):
    return token_issuer.verify_access_token(pair.access_token).user_id


class TestRegister:

    def test_register_starts_session(self, auth_service, store, token_issuer):
        pair = auth_service.register_user("alice", "password123")

        user = store.users.get_by_username("alice")
        assert _user_id(token_issuer, pair) == user.user_id
        assert user.password_hash.startswith("$argon2id$")
        assert user.password_hash != "password123"

    def test_username_is_trimmed(self, auth_service, store):
        auth_service.register_user("  alice  ", "password123")
        assert store.users.get_by_username("alice") is not None

    @pytest.mark.parametrize("username", ["", "   ", None])
    def test_empty_username(self, auth_service, username):
        with pytest.raises(EmptyUsernameError):
            auth_service.register_user(username, "password123")

    def test_short_password(self, auth_service):
        with pytest.raises(WeakPasswordError):
            auth_service.register_user("alice", "short")

    def test_eight_characters_is_enough(self, auth_service):
        auth_service.register_user("alice", "12345678")

    def test_duplicate_username(self, auth_service):
        auth_service.register_user("alice", "password123")
        with pytest.raises(UserAlreadyExistsError):
            auth_service.register_user("alice", "password456")

    def test_username_errors_are_input_errors(self):
        assert issubclass(UserAlreadyExistsError, InvalidInputError)
        assert issubclass(WeakPasswordError, InvalidInputError)


class TestLogin:

    def test_login_returns_new_session(self, auth_service, token_issuer):
        registered = auth_service.register_user("alice", "password123")

        pair = auth_service.login_user("alice", "password123")

        assert _user_id(token_issuer, pair) == _user_id(token_issuer, registered)
        with pytest.raises(RefreshTokenReusedError):
            auth_service.refresh(registered.refresh_token)

    def test_wrong_password_and_unknown_user_look_the_same(self, auth_service):
        auth_service.register_user("alice", "password123")

        with pytest.raises(InvalidCredentialsError) as wrong_password:
            auth_service.login_user("alice", "wrong-password")
        with pytest.raises(InvalidCredentialsError) as unknown_user:
            auth_service.login_user("nobody", "password123")

        assert str(wrong_password.value) == str(unknown_user.value)

    def test_unknown_user_still_verifies_a_hash(self, auth_service):
        with patch("server.services.auth_service.verify_password", return_value=False) as verify:
            with pytest.raises(InvalidCredentialsError):
                auth_service.login_user("nobody", "password123")
        verify.assert_called_once()

    def test_deactivated_account_cannot_login(self, auth_service, store):
        auth_service.register_user("alice", "password123")
        user = store.users.get_by_username("alice")
        auth_service.deactivate(user.user_id)

        with pytest.raises(InvalidCredentialsError):
            auth_service.login_user("alice", "password123")

    def test_outdated_hash_is_upgraded(self, auth_service, store):
        auth_service.register_user("alice", "password123")
        user = store.users.get_by_username("alice")
        old_hash = user.password_hash

        with patch("server.services.auth_service.password_needs_rehash", return_value=True):
            auth_service.login_user("alice", "password123")

        new_hash = store.users.get_by_username("alice").password_hash
        assert new_hash != old_hash
        auth_service.login_user("alice", "password123")


class TestAccount:

    def test_profile(self, auth_service, store):
        auth_service.register_user("alice", "password123", email="alice@example.com")
        user = store.users.get_by_username("alice")

        profile = auth_service.get_profile(user.user_id)

        assert profile.username == "alice"
        assert profile.email == "alice@example.com"

    def test_profile_of_missing_user(self, auth_service):
        with pytest.raises(InvalidTokenError):
            auth_service.get_profile(999)

    def test_change_password_revokes_sessions(self, auth_service, store):
        pair = auth_service.register_user("alice", "password123")
        user = store.users.get_by_username("alice")

        auth_service.change_password(user.user_id, "password123", "new-password")

        with pytest.raises(RefreshTokenReusedError):
            auth_service.refresh(pair.refresh_token)
        with pytest.raises(InvalidCredentialsError):
            auth_service.login_user("alice", "password123")
        auth_service.login_user("alice", "new-password")

    def test_change_password_needs_old_password(self, auth_service, store):
        auth_service.register_user("alice", "password123")
        user = store.users.get_by_username("alice")

        with pytest.raises(InvalidCredentialsError):
            auth_service.change_password(user.user_id, "not-it", "new-password")

    def test_change_password_validates_new_password(self, auth_service, store):
        auth_service.register_user("alice", "password123")
        user = store.users.get_by_username("alice")

        with pytest.raises(WeakPasswordError):
            auth_service.change_password(user.user_id, "password123", "short")

    def test_update_email(self, auth_service, store):
        auth_service.register_user("alice", "password123")
        user = store.users.get_by_username("alice")

        assert auth_service.update_email(user.user_id, " a@example.com ").email == "a@example.com"
        assert auth_service.update_email(user.user_id, None).email is None

    @pytest.mark.parametrize("email", ["no-at-sign", "@example.com", "alice@"])
    def test_invalid_email(self, auth_service, store, email):
        auth_service.register_user("alice", "password123")
        user = store.users.get_by_username("alice")

        with pytest.raises(InvalidInputError):
            auth_service.update_email(user.user_id, email)

    def test_logout_revokes_refresh(self, auth_service, store):
        pair = auth_service.register_user("alice", "password123")
        user = store.users.get_by_username("alice")

        auth_service.logout(user.user_id)

        with pytest.raises(RefreshTokenReusedError):
            auth_service.refresh(pair.refresh_token)
