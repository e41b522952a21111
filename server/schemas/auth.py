"""Pydantic schemas for authentication and account endpoints."""

from typing import Optional

from pydantic import BaseModel


class RegisterRequest(BaseModel):
    """Request model for user registration."""
    username: str
    password: str
    email: Optional[str] = None


class LoginRequest(BaseModel):
    """Request model for user login."""
    username: str
    password: str


class TokenResponse(BaseModel):
    """Access/refresh token pair returned by register, login and refresh."""
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"


class ProfileResponse(BaseModel):
    user_id: int
    username: str
    email: Optional[str] = None
    created_at: str


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str


class UpdateEmailRequest(BaseModel):
    email: Optional[str] = None
