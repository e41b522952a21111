"""Server data type definitions shared by repositories and services."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


@dataclass
class User:
    user_id: int
    username: str
    password_hash: str
    active: bool
    created_at: datetime
    email: Optional[str] = None


@dataclass
class FileRecord:
    """
    Metadata row for an uploaded file. The bytes live on disk under a path
    derived from file_id.
    """
    file_id: int
    filename: str
    size: int
    owner_id: int
    is_public: bool
    uploaded_at: datetime
    description: Optional[str] = None


class PermissionType(str, Enum):
    """
    Access tiers. Only SHARED is ever stored: ownership comes from
    FileRecord.owner_id and public access from FileRecord.is_public.
    """
    OWNER = "Owner"
    SHARED = "Shared"
    PUBLIC = "Public"


@dataclass
class Permission:
    permission_id: int
    file_id: int
    user_id: int
    permission_type: PermissionType = PermissionType.SHARED


@dataclass
class RefreshToken:
    """
    One link of a refresh rotation chain. replaced_by is kept for auditing
    only and is never consulted for authorization.
    """
    token: str
    user_id: int
    created_at: datetime
    revoked_at: Optional[datetime] = None
    replaced_by: Optional[str] = None

    @property
    def is_live(self) -> bool:
        return self.revoked_at is None


@dataclass(frozen=True)
class AccessClaims:
    user_id: int
    issued_at: int
    expires_at: int
    token_id: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
