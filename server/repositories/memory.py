"""In-process fallback store.

All four repositories share one MemoryState. Every read and write takes the
state's lock for the duration of the dictionary access only; the lock is
never held across I/O and never handed to callers.
"""

import threading
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from common.logging_config import get_logger
from server.exceptions import NotFoundError, PermissionConflictError, UserAlreadyExistsError
from server.repositories.base import (
    FileRepository,
    PermissionRepository,
    RefreshTokenRepository,
    Store,
    UserRepository,
)
from server.types import FileRecord, Permission, PermissionType, RefreshToken, User

logger = get_logger(__name__)


class MemoryState:
    def __init__(self):
        self.lock = threading.Lock()
        self.users: Dict[int, User] = {}
        self.usernames: Dict[str, int] = {}
        self.files: Dict[int, FileRecord] = {}
        self.permissions: Dict[int, Permission] = {}
        self.permission_pairs: Dict[Tuple[int, int], int] = {}
        self.refresh_tokens: Dict[str, RefreshToken] = {}
        self._sequences: Dict[str, int] = {}

    def next_id(self, table: str) -> int:
        # caller holds self.lock
        value = self._sequences.get(table, 0) + 1
        self._sequences[table] = value
        return value


class InMemoryUserRepository(UserRepository):
    def __init__(self, state: MemoryState):
        self._state = state

    def create_user(
        self,
        username: str,
        password_hash: str,
        created_at: datetime,
        email: Optional[str] = None,
    ) -> User:
        with self._state.lock:
            if username in self._state.usernames:
                raise UserAlreadyExistsError(f"Username '{username}' already exists")
            user = User(
                user_id=self._state.next_id("users"),
                username=username,
                password_hash=password_hash,
                active=True,
                created_at=created_at,
                email=email,
            )
            self._state.users[user.user_id] = user
            self._state.usernames[username] = user.user_id

        logger.info(f"User created successfully: {username} [user_id={user.user_id}]")
        return replace(user)

    def get_by_id(self, user_id: int) -> Optional[User]:
        with self._state.lock:
            user = self._state.users.get(user_id)
            return replace(user) if user else None

    def get_by_username(self, username: str) -> Optional[User]:
        with self._state.lock:
            user_id = self._state.usernames.get(username)
            return replace(self._state.users[user_id]) if user_id is not None else None

    def set_active(self, user_id: int, active: bool) -> bool:
        return self._update(user_id, active=active)

    def update_email(self, user_id: int, email: Optional[str]) -> bool:
        return self._update(user_id, email=email)

    def update_password_hash(self, user_id: int, password_hash: str) -> bool:
        return self._update(user_id, password_hash=password_hash)

    def _update(self, user_id: int, **changes) -> bool:
        with self._state.lock:
            user = self._state.users.get(user_id)
            if user is None:
                return False
            self._state.users[user_id] = replace(user, **changes)
            return True


class InMemoryFileRepository(FileRepository):
    def __init__(self, state: MemoryState):
        self._state = state

    def create_file(
        self,
        filename: str,
        size: int,
        owner_id: int,
        is_public: bool,
        uploaded_at: datetime,
        description: Optional[str] = None,
    ) -> FileRecord:
        with self._state.lock:
            if owner_id not in self._state.users:
                raise NotFoundError("Not found")
            record = FileRecord(
                file_id=self._state.next_id("files"),
                filename=filename,
                size=size,
                owner_id=owner_id,
                is_public=is_public,
                uploaded_at=uploaded_at,
                description=description,
            )
            self._state.files[record.file_id] = record

        logger.info(f"File metadata created [file_id={record.file_id}] [owner_id={owner_id}] size={size}")
        return replace(record)

    def get_by_id(self, file_id: int) -> Optional[FileRecord]:
        with self._state.lock:
            record = self._state.files.get(file_id)
            return replace(record) if record else None

    def delete_file(self, file_id: int) -> bool:
        with self._state.lock:
            record = self._state.files.pop(file_id, None)
            if record is None:
                return False
            for pair, permission_id in list(self._state.permission_pairs.items()):
                if pair[0] == file_id:
                    del self._state.permission_pairs[pair]
                    self._state.permissions.pop(permission_id, None)

        logger.info(f"File metadata deleted [file_id={file_id}]")
        return True

    def set_public(self, file_id: int, is_public: bool) -> bool:
        with self._state.lock:
            record = self._state.files.get(file_id)
            if record is None:
                return False
            self._state.files[file_id] = replace(record, is_public=is_public)
            return True

    def list_visible(self, user_id: int) -> List[FileRecord]:
        with self._state.lock:
            shared = {file_id for (file_id, uid) in self._state.permission_pairs if uid == user_id}
            return [
                replace(record)
                for file_id, record in sorted(self._state.files.items())
                if record.owner_id == user_id or file_id in shared
            ]


class InMemoryPermissionRepository(PermissionRepository):
    def __init__(self, state: MemoryState):
        self._state = state

    def create_permission(
        self,
        file_id: int,
        user_id: int,
        permission_type: PermissionType = PermissionType.SHARED,
    ) -> Permission:
        with self._state.lock:
            if file_id not in self._state.files or user_id not in self._state.users:
                raise NotFoundError("Not found")
            if (file_id, user_id) in self._state.permission_pairs:
                raise PermissionConflictError("File is already shared with this user")
            permission = Permission(
                permission_id=self._state.next_id("permissions"),
                file_id=file_id,
                user_id=user_id,
                permission_type=permission_type,
            )
            self._state.permissions[permission.permission_id] = permission
            self._state.permission_pairs[(file_id, user_id)] = permission.permission_id

        logger.info(
            f"Permission created [permission_id={permission.permission_id}] "
            f"[file_id={file_id}] [user_id={user_id}]"
        )
        return replace(permission)

    def get_by_id(self, permission_id: int) -> Optional[Permission]:
        with self._state.lock:
            permission = self._state.permissions.get(permission_id)
            return replace(permission) if permission else None

    def get_by_file_and_user(self, file_id: int, user_id: int) -> Optional[Permission]:
        with self._state.lock:
            permission_id = self._state.permission_pairs.get((file_id, user_id))
            if permission_id is None:
                return None
            return replace(self._state.permissions[permission_id])

    def list_by_file(self, file_id: int) -> List[Permission]:
        with self._state.lock:
            return [
                replace(p)
                for _, p in sorted(self._state.permissions.items())
                if p.file_id == file_id
            ]

    def delete_permission(self, permission_id: int) -> bool:
        with self._state.lock:
            permission = self._state.permissions.pop(permission_id, None)
            if permission is None:
                return False
            self._state.permission_pairs.pop((permission.file_id, permission.user_id), None)

        logger.info(f"Permission deleted [permission_id={permission_id}]")
        return True


class InMemoryRefreshTokenRepository(RefreshTokenRepository):
    def __init__(self, state: MemoryState):
        self._state = state

    def start_session(self, user_id: int, token: str, now: datetime) -> RefreshToken:
        with self._state.lock:
            revoked = self._revoke_live_locked(user_id, now)
            record = RefreshToken(token=token, user_id=user_id, created_at=now)
            self._state.refresh_tokens[token] = record

        logger.info(f"Refresh session started [user_id={user_id}] revoked_previous={revoked}")
        return replace(record)

    def get(self, token: str) -> Optional[RefreshToken]:
        with self._state.lock:
            record = self._state.refresh_tokens.get(token)
            return replace(record) if record else None

    def rotate(self, old_token: str, new_token: str, now: datetime) -> Optional[RefreshToken]:
        with self._state.lock:
            old = self._state.refresh_tokens.get(old_token)
            if old is None or not old.is_live:
                return None
            self._state.refresh_tokens[old_token] = replace(old, revoked_at=now, replaced_by=new_token)
            record = RefreshToken(token=new_token, user_id=old.user_id, created_at=now)
            self._state.refresh_tokens[new_token] = record

        logger.debug(f"Refresh token rotated [user_id={record.user_id}]")
        return replace(record)

    def revoke_all(self, user_id: int, now: datetime) -> int:
        with self._state.lock:
            revoked = self._revoke_live_locked(user_id, now)

        logger.info(f"Revoked {revoked} refresh token(s) [user_id={user_id}]")
        return revoked

    def list_for_user(self, user_id: int) -> List[RefreshToken]:
        with self._state.lock:
            return [replace(t) for t in self._state.refresh_tokens.values() if t.user_id == user_id]

    def _revoke_live_locked(self, user_id: int, now: datetime) -> int:
        revoked = 0
        for token, record in list(self._state.refresh_tokens.items()):
            if record.user_id == user_id and record.is_live:
                self._state.refresh_tokens[token] = replace(record, revoked_at=now)
                revoked += 1
        return revoked


def create_memory_store() -> Store:
    state = MemoryState()
    return Store(
        users=InMemoryUserRepository(state),
        files=InMemoryFileRepository(state),
        permissions=InMemoryPermissionRepository(state),
        refresh_tokens=InMemoryRefreshTokenRepository(state),
    )
