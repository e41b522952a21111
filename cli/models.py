"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal, Optional, Union


@dataclass(frozen=True)
class RegisterCommand:
    """Register a new user account."""

    username: str
    password: str
    email: Optional[str] = None
    command: Literal["register"] = "register"


@dataclass(frozen=True)
class LoginCommand:
    """Login with username and password."""

    username: str
    password: str
    command: Literal["login"] = "login"


@dataclass(frozen=True)
class MeCommand:
    command: Literal["me"] = "me"


@dataclass(frozen=True)
class RefreshCommand:
    command: Literal["refresh"] = "refresh"


@dataclass(frozen=True)
class LogoutCommand:
    command: Literal["logout"] = "logout"


@dataclass(frozen=True)
class HealthCommand:
    command: Literal["health"] = "health"


@dataclass(frozen=True)
class UploadCommand:
    """Upload one local file."""

    path: str
    is_public: bool = False
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class FilesCommand:
    """List files owned by or shared with the current user."""

    command: Literal["files"] = "files"


@dataclass(frozen=True)
class DownloadCommand:
    """Download a file by id, authenticated or via the public route."""

    file_id: int
    output_path: str
    public: bool = False
    command: Literal["download"] = "download"


@dataclass(frozen=True)
class ShareCommand:
    file_id: int
    user_id: int
    command: Literal["share"] = "share"


@dataclass(frozen=True)
class RevokeUserCommand:
    file_id: int
    user_id: int
    command: Literal["revoke-user"] = "revoke-user"


CommandRequest = Union[
    RegisterCommand,
    LoginCommand,
    MeCommand,
    RefreshCommand,
    LogoutCommand,
    HealthCommand,
    UploadCommand,
    FilesCommand,
    DownloadCommand,
    ShareCommand,
    RevokeUserCommand,
]
