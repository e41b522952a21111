"""Storage contract shared by the SQLite and in-memory implementations."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from server.types import FileRecord, Permission, PermissionType, RefreshToken, User


class UserRepository(ABC):
    @abstractmethod
    def create_user(
        self,
        username: str,
        password_hash: str,
        created_at: datetime,
        email: Optional[str] = None,
    ) -> User:
        """
        Insert a user and return it with its store-assigned id.

        Raises:
            UserAlreadyExistsError: username is taken
        """

    @abstractmethod
    def get_by_id(self, user_id: int) -> Optional[User]:
        ...

    @abstractmethod
    def get_by_username(self, username: str) -> Optional[User]:
        ...

    def exists(self, user_id: int) -> bool:
        return self.get_by_id(user_id) is not None

    @abstractmethod
    def set_active(self, user_id: int, active: bool) -> bool:
        ...

    @abstractmethod
    def update_email(self, user_id: int, email: Optional[str]) -> bool:
        ...

    @abstractmethod
    def update_password_hash(self, user_id: int, password_hash: str) -> bool:
        ...


class FileRepository(ABC):
    @abstractmethod
    def create_file(
        self,
        filename: str,
        size: int,
        owner_id: int,
        is_public: bool,
        uploaded_at: datetime,
        description: Optional[str] = None,
    ) -> FileRecord:
        """
        Insert file metadata. The returned file_id is assigned by the store
        and is the only source of file ids.
        """

    @abstractmethod
    def get_by_id(self, file_id: int) -> Optional[FileRecord]:
        ...

    @abstractmethod
    def delete_file(self, file_id: int) -> bool:
        """Delete metadata and any permissions attached to it."""

    @abstractmethod
    def set_public(self, file_id: int, is_public: bool) -> bool:
        ...

    @abstractmethod
    def list_visible(self, user_id: int) -> List[FileRecord]:
        """Files owned by or shared with user_id, ordered by file_id."""


class PermissionRepository(ABC):
    @abstractmethod
    def create_permission(
        self,
        file_id: int,
        user_id: int,
        permission_type: PermissionType = PermissionType.SHARED,
    ) -> Permission:
        """
        Raises:
            PermissionConflictError: a permission for (file_id, user_id) exists
            NotFoundError: file or user does not exist
        """

    @abstractmethod
    def get_by_id(self, permission_id: int) -> Optional[Permission]:
        ...

    @abstractmethod
    def get_by_file_and_user(self, file_id: int, user_id: int) -> Optional[Permission]:
        ...

    @abstractmethod
    def list_by_file(self, file_id: int) -> List[Permission]:
        ...

    @abstractmethod
    def delete_permission(self, permission_id: int) -> bool:
        ...


class RefreshTokenRepository(ABC):
    @abstractmethod
    def start_session(self, user_id: int, token: str, now: datetime) -> RefreshToken:
        """
        Revoke every live token of user_id and insert token as the single
        live one, in one transaction.
        """

    @abstractmethod
    def get(self, token: str) -> Optional[RefreshToken]:
        ...

    @abstractmethod
    def rotate(self, old_token: str, new_token: str, now: datetime) -> Optional[RefreshToken]:
        """
        Revoke old_token iff it is still live, link it to new_token and insert
        new_token for the same user, atomically.

        Returns:
            The new live token, or None when old_token is unknown or already
            revoked. Of two concurrent calls on the same token exactly one
            gets a token back.
        """

    @abstractmethod
    def revoke_all(self, user_id: int, now: datetime) -> int:
        """Revoke every live token of user_id; returns how many were live."""

    @abstractmethod
    def list_for_user(self, user_id: int) -> List[RefreshToken]:
        ...


@dataclass
class Store:
    """The four repositories backing one server instance."""
    users: UserRepository
    files: FileRepository
    permissions: PermissionRepository
    refresh_tokens: RefreshTokenRepository
