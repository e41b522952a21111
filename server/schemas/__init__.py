"""Pydantic schemas for API requests and responses."""

from server.schemas.auth import (
    RegisterRequest,
    LoginRequest,
    TokenResponse,
    ProfileResponse,
    ChangePasswordRequest,
    UpdateEmailRequest,
)
from server.schemas.files import (
    UploadResponse,
    FileMetadataResponse,
    FileDetailsResponse,
    ListFilesResponse,
    ShareRequest,
    ShareResponse,
    VisibilityRequest,
)
from server.schemas.common import ErrorResponse, HealthResponse

__all__ = [
    "RegisterRequest",
    "LoginRequest",
    "TokenResponse",
    "ProfileResponse",
    "ChangePasswordRequest",
    "UpdateEmailRequest",
    "UploadResponse",
    "FileMetadataResponse",
    "FileDetailsResponse",
    "ListFilesResponse",
    "ShareRequest",
    "ShareResponse",
    "VisibilityRequest",
    "ErrorResponse",
    "HealthResponse",
]
