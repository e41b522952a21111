"""Refresh session manager: issues, rotates and revokes refresh tokens."""

from typing import Optional

from common.logging_config import get_logger
from server.auth import generate_refresh_token
from server.exceptions import RefreshTokenReusedError
from server.repositories.base import Store
from server.service_locator import get_store, get_token_issuer
from server.tokens import TokenIssuer
from server.types import TokenPair
from server.utils import utc_now

logger = get_logger(__name__)


class SessionService:
    """
    Each user has at most one live refresh token at a time. Starting a
    session revokes whatever was live before; rotating replaces the live
    token with exactly one successor. A token that was already rotated (or
    never existed) is rejected and is never accepted again.
    """

    def __init__(self, store: Optional[Store] = None, token_issuer: Optional[TokenIssuer] = None):
        self.store = store or get_store()
        self.token_issuer = token_issuer or get_token_issuer()

    def issue_session(self, user_id: int) -> TokenPair:
        refresh_token = generate_refresh_token()
        self.store.refresh_tokens.start_session(user_id, refresh_token, utc_now())
        logger.info(f"Issued new session [user_id={user_id}]")
        return self._token_pair(user_id, refresh_token)

    def rotate(self, refresh_token: str) -> TokenPair:
        """
        Exchange a live refresh token for a new access/refresh pair.

        Raises:
            RefreshTokenReusedError: token unknown or already rotated/revoked.
                A client that presents a used token has leaked it, so it is
                rejected rather than re-accepted.
        """
        new_token = generate_refresh_token()
        rotated = self.store.refresh_tokens.rotate(refresh_token, new_token, utc_now())

        if rotated is None:
            existing = self.store.refresh_tokens.get(refresh_token)
            if existing is not None:
                logger.warning(
                    f"Refresh token reuse detected, possible token leakage [user_id={existing.user_id}]"
                )
            else:
                logger.warning("Refresh rejected: unknown token")
            raise RefreshTokenReusedError("Invalid or reused refresh token")

        logger.info(f"Rotated refresh token [user_id={rotated.user_id}]")
        return self._token_pair(rotated.user_id, rotated.token)

    def revoke_all(self, user_id: int) -> int:
        """
        Revoke every live refresh token of the user. Access tokens already
        handed out stay valid until they expire.
        """
        return self.store.refresh_tokens.revoke_all(user_id, utc_now())

    def _token_pair(self, user_id: int, refresh_token: str) -> TokenPair:
        return TokenPair(
            access_token=self.token_issuer.issue_access_token(user_id),
            refresh_token=refresh_token,
            expires_in=self.token_issuer.ttl_seconds,
        )
