"""Account API routes for the authenticated user."""

from fastapi import APIRouter, Depends, Response, status

from server.auth import get_current_user
from server.schemas.auth import ChangePasswordRequest, ProfileResponse, UpdateEmailRequest
from server.services.auth_service import AuthService
from server.types import User

router = APIRouter(prefix="/me", tags=["Account"])


def _profile_response(user: User) -> ProfileResponse:
    return ProfileResponse(
        user_id=user.user_id,
        username=user.username,
        email=user.email,
        created_at=user.created_at.isoformat(),
    )


@router.get("", response_model=ProfileResponse)
def get_me(current_user: int = Depends(get_current_user)):
    auth_service = AuthService()
    return _profile_response(auth_service.get_profile(current_user))


@router.post("/password", status_code=status.HTTP_204_NO_CONTENT)
def change_password(request: ChangePasswordRequest, current_user: int = Depends(get_current_user)):
    """
    Change the caller's password. All refresh sessions are revoked, so
    every client has to log in again once its access token runs out.

    Raises:
        - 400: New password too short
        - 401: Old password wrong
    """
    auth_service = AuthService()
    auth_service.change_password(current_user, request.old_password, request.new_password)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/email", response_model=ProfileResponse)
def update_email(request: UpdateEmailRequest, current_user: int = Depends(get_current_user)):
    """Set or clear (null / empty string) the caller's email address."""
    auth_service = AuthService()
    return _profile_response(auth_service.update_email(current_user, request.email))


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def deactivate(current_user: int = Depends(get_current_user)):
    """
    Deactivate the caller's account. The row is kept, so owned files and
    shares stay intact, but the account can no longer log in or refresh.
    """
    auth_service = AuthService()
    auth_service.deactivate(current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
