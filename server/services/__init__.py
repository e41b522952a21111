"""Service layer for business logic."""

from server.services.auth_service import AuthService
from server.services.file_service import FileService
from server.services.session_service import SessionService
from server.services.transfer_service import TransferService

__all__ = [
    "AuthService",
    "FileService",
    "SessionService",
    "TransferService",
]
