"""Repository layer for data access."""

from typing import Optional

from server.repositories.base import (
    FileRepository,
    PermissionRepository,
    RefreshTokenRepository,
    Store,
    UserRepository,
)
from server.repositories.file_repository import SQLiteFileRepository
from server.repositories.memory import create_memory_store
from server.repositories.permission_repository import SQLitePermissionRepository
from server.repositories.refresh_token_repository import SQLiteRefreshTokenRepository
from server.repositories.user_repository import SQLiteUserRepository


def create_sqlite_store(database_path: Optional[str] = None) -> Store:
    """Build a Store over one SQLite file. The schema must already exist."""
    return Store(
        users=SQLiteUserRepository(database_path),
        files=SQLiteFileRepository(database_path),
        permissions=SQLitePermissionRepository(database_path),
        refresh_tokens=SQLiteRefreshTokenRepository(database_path),
    )


__all__ = [
    "Store",
    "UserRepository",
    "FileRepository",
    "PermissionRepository",
    "RefreshTokenRepository",
    "SQLiteUserRepository",
    "SQLiteFileRepository",
    "SQLitePermissionRepository",
    "SQLiteRefreshTokenRepository",
    "create_sqlite_store",
    "create_memory_store",
]
