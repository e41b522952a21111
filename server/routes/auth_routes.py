"""Authentication API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Response, status

from server.auth import extract_bearer_token, get_current_user
from server.schemas.auth import LoginRequest, RegisterRequest, TokenResponse
from server.services.auth_service import AuthService
from server.types import TokenPair

router = APIRouter(tags=["Authentication"])


def _token_response(pair: TokenPair) -> TokenResponse:
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
    )


@router.post("/register", response_model=TokenResponse)
def register(request: RegisterRequest):
    """
    Register a new user account and start its first session.

    Parameters:
        - username: Unique, non-empty username
        - password: At least 8 characters (hashed with argon2id before storage)
        - email: Optional contact address

    Returns:
        - access_token, refresh_token, expires_in

    Raises:
        - 400: Empty username, weak password or username already taken
    """
    auth_service = AuthService()
    pair = auth_service.register_user(request.username, request.password, request.email)
    return _token_response(pair)


@router.post("/login", response_model=TokenResponse)
def login(request: LoginRequest):
    """
    Authenticate and start a new session. Any refresh token issued before
    for this user stops working.

    Raises:
        - 400: Malformed body
        - 401: Invalid credentials
    """
    auth_service = AuthService()
    pair = auth_service.login_user(request.username, request.password)
    return _token_response(pair)


@router.get("/token/refresh", response_model=TokenResponse)
def refresh(authorization: Optional[str] = Header(None)):
    """
    Rotate a refresh token, sent as "Authorization: Bearer <refresh_token>".

    A refresh token works exactly once. Presenting it again, even right
    after a timed-out request that did succeed, is rejected.

    Raises:
        - 401: Missing, unknown or already used refresh token
    """
    refresh_token = extract_bearer_token(authorization)
    auth_service = AuthService()
    pair = auth_service.refresh(refresh_token)
    return _token_response(pair)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(current_user: int = Depends(get_current_user)):
    """
    Revoke every refresh token of the caller. The access token in hand
    stays valid until it expires.
    """
    auth_service = AuthService()
    auth_service.logout(current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
