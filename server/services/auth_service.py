"""Authentication service for business logic."""

from typing import Optional

from common.logging_config import get_logger
from server import config
from server.auth import (
    dummy_password_hash,
    hash_password,
    password_needs_rehash,
    verify_password,
)
from server.exceptions import (
    EmptyUsernameError,
    InvalidCredentialsError,
    InvalidInputError,
    InvalidTokenError,
    WeakPasswordError,
)
from server.repositories.base import Store
from server.service_locator import get_store, get_token_issuer
from server.services.session_service import SessionService
from server.tokens import TokenIssuer
from server.types import TokenPair, User
from server.utils import utc_now

logger = get_logger(__name__)


def _validate_password(password: str) -> None:
    if len(password) < config.MIN_PASSWORD_LENGTH:
        raise WeakPasswordError(
            f"Password must be at least {config.MIN_PASSWORD_LENGTH} characters"
        )


class AuthService:
    def __init__(self, store: Optional[Store] = None, token_issuer: Optional[TokenIssuer] = None):
        self.store = store or get_store()
        self.sessions = SessionService(self.store, token_issuer or get_token_issuer())

    def register_user(self, username: str, password: str, email: Optional[str] = None) -> TokenPair:
        username = (username or "").strip()
        if not username:
            raise EmptyUsernameError("Username must not be empty")
        _validate_password(password)

        logger.info(f"Attempting to register user: {username}")
        user = self.store.users.create_user(
            username=username,
            password_hash=hash_password(password),
            created_at=utc_now(),
            email=email,
        )
        logger.info(f"Successfully registered user: {username} [user_id={user.user_id}]")

        return self.sessions.issue_session(user.user_id)

    def login_user(self, username: str, password: str) -> TokenPair:
        user = self.authenticate(username, password)
        logger.info(f"Successfully logged in user: {user.username} [user_id={user.user_id}]")
        return self.sessions.issue_session(user.user_id)

    def authenticate(self, username: str, password: str) -> User:
        """
        Check credentials and return the user.

        Unknown usernames are checked against a dummy hash so every failure
        costs one argon2 verification and raises the same error.

        Raises:
            InvalidCredentialsError: unknown user, wrong password or inactive account
        """
        user = self.store.users.get_by_username((username or "").strip())
        password_hash = user.password_hash if user is not None else dummy_password_hash()
        password_ok = verify_password(password or "", password_hash)

        if user is None or not password_ok or not user.active:
            logger.warning(f"Login failed for username '{username}'")
            raise InvalidCredentialsError("Invalid username or password")

        if password_needs_rehash(user.password_hash):
            self.store.users.update_password_hash(user.user_id, hash_password(password))
            logger.info(f"Upgraded password hash parameters [user_id={user.user_id}]")

        return user

    def refresh(self, refresh_token: str) -> TokenPair:
        return self.sessions.rotate(refresh_token)

    def logout(self, user_id: int) -> None:
        revoked = self.sessions.revoke_all(user_id)
        logger.info(f"User logged out [user_id={user_id}] revoked={revoked}")

    def get_profile(self, user_id: int) -> User:
        """
        Raises:
            InvalidTokenError: the token's subject no longer exists
        """
        user = self.store.users.get_by_id(user_id)
        if user is None:
            logger.warning(f"Access token subject not found [user_id={user_id}]")
            raise InvalidTokenError("Unknown user")
        return user

    def change_password(self, user_id: int, old_password: str, new_password: str) -> None:
        user = self.get_profile(user_id)
        if not verify_password(old_password or "", user.password_hash):
            raise InvalidCredentialsError("Invalid username or password")
        _validate_password(new_password)

        self.store.users.update_password_hash(user_id, hash_password(new_password))
        self.sessions.revoke_all(user_id)
        logger.info(f"Password changed, sessions revoked [user_id={user_id}]")

    def update_email(self, user_id: int, email: Optional[str]) -> User:
        if email is not None:
            email = email.strip()
            if "@" not in email or email.startswith("@") or email.endswith("@"):
                raise InvalidInputError("Invalid email address")
        self.get_profile(user_id)
        self.store.users.update_email(user_id, email or None)
        return self.get_profile(user_id)

    def deactivate(self, user_id: int) -> None:
        self.get_profile(user_id)
        self.store.users.set_active(user_id, False)
        self.sessions.revoke_all(user_id)
        logger.info(f"User deactivated [user_id={user_id}]")
