"""Stateless signed access tokens (JWT via PyJWT)."""

import time
import uuid
from typing import Optional

import jwt

from common.logging_config import get_logger
from server.exceptions import ExpiredTokenError, InvalidTokenError, MalformedTokenError
from server.types import AccessClaims

logger = get_logger(__name__)

REQUIRED_CLAIMS = ["sub", "iat", "exp", "jti"]


class TokenIssuer:
    """
    Builds and verifies short-lived access tokens.

    Tokens carry sub (user id), iat, exp = iat + ttl and a random jti, and
    are signed with one process-wide secret. There is no revocation list:
    a token stays valid until exp, which is enforced without leeway.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", ttl_seconds: int = 3600):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds

    def issue_access_token(self, user_id: int, now: Optional[int] = None) -> str:
        issued_at = int(time.time()) if now is None else now
        payload = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": issued_at + self.ttl_seconds,
            "jti": str(uuid.uuid4()),
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify_access_token(self, token: str) -> AccessClaims:
        """
        Verify signature and expiry and return the claims.

        Raises:
            ExpiredTokenError: exp has passed
            MalformedTokenError: token cannot be decoded or the signature is wrong
            InvalidTokenError: any other validation failure
        """
        try:
            decoded = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": REQUIRED_CLAIMS},
                leeway=0,
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Access token rejected: expired")
            raise ExpiredTokenError("Token expired")
        except (jwt.InvalidSignatureError, jwt.DecodeError):
            logger.debug("Access token rejected: malformed or bad signature")
            raise MalformedTokenError("Malformed token")
        except jwt.InvalidTokenError as e:
            logger.debug(f"Access token rejected: {type(e).__name__}")
            raise InvalidTokenError("Invalid token")

        try:
            user_id = int(decoded["sub"])
        except (TypeError, ValueError):
            raise InvalidTokenError("Invalid token")

        return AccessClaims(
            user_id=user_id,
            issued_at=int(decoded["iat"]),
            expires_at=int(decoded["exp"]),
            token_id=str(decoded["jti"]),
        )
