"""File service: metadata, visibility and sharing."""

from typing import List, Optional, Tuple

from common.logging_config import get_logger
from server.access_control import (
    AccessDecision,
    resolve_download,
    resolve_owner_action,
    resolve_public_download,
    resolve_revoke,
    resolve_share,
)
from server.exceptions import NotFoundError, PermissionConflictError
from server.repositories.base import Store
from server.service_locator import get_store
from server.types import FileRecord, Permission, PermissionType

logger = get_logger(__name__)


def _enforce(decision: AccessDecision, context: str) -> None:
    if decision is AccessDecision.NOT_FOUND:
        logger.info(f"Access denied or missing: {context}")
        raise NotFoundError("Not found")
    if decision is AccessDecision.CONFLICT:
        logger.info(f"Conflict: {context}")
        raise PermissionConflictError("File is already shared with this user")


class FileService:
    def __init__(self, store: Optional[Store] = None):
        self.store = store or get_store()

    def authorize_download(self, requester_id: int, file_id: int) -> FileRecord:
        file = self.store.files.get_by_id(file_id)
        permission = None
        if file is not None and file.owner_id != requester_id and not file.is_public:
            permission = self.store.permissions.get_by_file_and_user(file_id, requester_id)

        _enforce(
            resolve_download(requester_id, file, permission),
            f"download [file_id={file_id}] [user_id={requester_id}]",
        )
        return file

    def authorize_public_download(self, file_id: int) -> FileRecord:
        file = self.store.files.get_by_id(file_id)
        _enforce(resolve_public_download(file), f"public download [file_id={file_id}]")
        return file

    def get_metadata(self, requester_id: int, file_id: int) -> Tuple[FileRecord, List[Permission]]:
        file = self.store.files.get_by_id(file_id)
        _enforce(
            resolve_owner_action(requester_id, file),
            f"metadata [file_id={file_id}] [user_id={requester_id}]",
        )
        return file, self.store.permissions.list_by_file(file_id)

    def list_visible_files(self, user_id: int) -> List[FileRecord]:
        return self.store.files.list_visible(user_id)

    def set_visibility(self, requester_id: int, file_id: int, is_public: bool) -> FileRecord:
        file = self.store.files.get_by_id(file_id)
        _enforce(
            resolve_owner_action(requester_id, file),
            f"visibility [file_id={file_id}] [user_id={requester_id}]",
        )
        self.store.files.set_public(file_id, is_public)
        logger.info(f"File visibility changed [file_id={file_id}] is_public={is_public}")
        file.is_public = is_public
        return file

    def share_file(self, owner_id: int, file_id: int, target_user_id: int) -> Permission:
        """
        Grant target_user_id read access to a file owned by owner_id.

        Raises:
            NotFoundError: file missing, caller not the owner, or target unknown
            PermissionConflictError: target already has access
        """
        file = self.store.files.get_by_id(file_id)
        target_exists = False
        existing = None
        if file is not None and file.owner_id == owner_id:
            target_exists = self.store.users.exists(target_user_id)
            existing = self.store.permissions.get_by_file_and_user(file_id, target_user_id)

        _enforce(
            resolve_share(owner_id, file, target_exists, existing, target_user_id),
            f"share [file_id={file_id}] [target_user_id={target_user_id}]",
        )

        # the store's pair constraint settles races between concurrent shares
        permission = self.store.permissions.create_permission(
            file_id, target_user_id, PermissionType.SHARED
        )
        logger.info(
            f"File shared [file_id={file_id}] [user_id={target_user_id}] "
            f"[permission_id={permission.permission_id}]"
        )
        return permission

    def revoke_share(self, owner_id: int, file_id: int, permission_id: int) -> None:
        file = self.store.files.get_by_id(file_id)
        permission = None
        if file is not None and file.owner_id == owner_id:
            permission = self.store.permissions.get_by_id(permission_id)

        _enforce(
            resolve_revoke(owner_id, file, permission),
            f"revoke [file_id={file_id}] [permission_id={permission_id}]",
        )
        if not self.store.permissions.delete_permission(permission_id):
            raise NotFoundError("Not found")

    def revoke_share_by_user(self, owner_id: int, file_id: int, target_user_id: int) -> None:
        file = self.store.files.get_by_id(file_id)
        permission = None
        if file is not None and file.owner_id == owner_id:
            permission = self.store.permissions.get_by_file_and_user(file_id, target_user_id)

        _enforce(
            resolve_revoke(owner_id, file, permission),
            f"revoke [file_id={file_id}] [target_user_id={target_user_id}]",
        )
        if not self.store.permissions.delete_permission(permission.permission_id):
            raise NotFoundError("Not found")
