"""Authentication and security utilities."""

import secrets
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from fastapi import Header, Request

from common.logging_config import get_logger
from server import config
from server.exceptions import InvalidTokenError
from server.service_locator import get_token_issuer

logger = get_logger(__name__)

ph = PasswordHasher(
    time_cost=config.ARGON2_TIME_COST,
    memory_cost=config.ARGON2_MEMORY_COST,
    parallelism=config.ARGON2_PARALLELISM,
)

REFRESH_TOKEN_BYTES = 32


def hash_password(password: str) -> str:
    """
    Hash a password with argon2id and a fresh random salt.

    Args:
        password: Plain text password to hash

    Returns:
        Encoded hash (algorithm, parameters, salt and digest in one string)
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against an encoded argon2 hash.

    Mismatches and unreadable hashes both come back as False.
    """
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def password_needs_rehash(password_hash: str) -> bool:
    return ph.check_needs_rehash(password_hash)


_dummy_hash: Optional[str] = None


def init_dummy_password_hash() -> str:
    """
    Compute the hash checked for unknown usernames so login cost does not
    reveal them. Called once at startup, so no login pays for building it.
    """
    global _dummy_hash
    _dummy_hash = ph.hash(secrets.token_urlsafe(16))
    return _dummy_hash


def dummy_password_hash() -> str:
    if _dummy_hash is None:
        return init_dummy_password_hash()
    return _dummy_hash


def generate_refresh_token() -> str:
    """
    Generate an opaque, unguessable refresh token (256 bits, URL-safe).
    """
    return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)


def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Extract the token from an Authorization header value.

    Raises:
        InvalidTokenError: header missing or not in "Bearer <token>" form
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise InvalidTokenError("Missing or invalid authorization header")

    token = authorization[len("Bearer "):].strip()
    if not token:
        raise InvalidTokenError("Missing or invalid authorization header")
    return token


async def get_current_user(request: Request, authorization: Optional[str] = Header(None)) -> int:
    """
    FastAPI dependency to validate an access token and extract user_id.

    Verification is stateless (signature and expiry only). The user id is
    also attached to request.state for logging.

    Returns:
        user_id of the authenticated user

    Raises:
        InvalidTokenError: 401 if the token is missing, malformed or expired
    """
    token = extract_bearer_token(authorization)
    claims = get_token_issuer().verify_access_token(token)
    request.state.user_id = claims.user_id
    return claims.user_id
