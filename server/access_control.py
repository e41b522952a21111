"""Access control decisions for files.

Everything here is pure: callers load the file record and permission rows
and pass them in. Ownership is taken from FileRecord.owner_id only; the
permission table holds Shared grants and nothing else.

Any caller without rights to an existing file gets NOT_FOUND, the same
answer as for a file that does not exist.
"""

from enum import Enum
from typing import Optional

from server.types import FileRecord, Permission


class AccessDecision(str, Enum):
    ALLOW = "allow"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


def is_owner(requester_id: Optional[int], file: FileRecord) -> bool:
    return requester_id is not None and file.owner_id == requester_id


def resolve_download(
    requester_id: int,
    file: Optional[FileRecord],
    permission: Optional[Permission],
) -> AccessDecision:
    """
    Owner, a user holding a share on this file, or anyone when the file is
    public, may download.
    """
    if file is None:
        return AccessDecision.NOT_FOUND
    if is_owner(requester_id, file) or file.is_public:
        return AccessDecision.ALLOW
    if permission is not None and permission.file_id == file.file_id and permission.user_id == requester_id:
        return AccessDecision.ALLOW
    return AccessDecision.NOT_FOUND


def resolve_public_download(file: Optional[FileRecord]) -> AccessDecision:
    # no identity, permission rows are not consulted
    if file is not None and file.is_public:
        return AccessDecision.ALLOW
    return AccessDecision.NOT_FOUND


def resolve_owner_action(requester_id: int, file: Optional[FileRecord]) -> AccessDecision:
    """Metadata reads, visibility changes, sharing and revoking are owner-only."""
    if file is None or not is_owner(requester_id, file):
        return AccessDecision.NOT_FOUND
    return AccessDecision.ALLOW


def resolve_share(
    requester_id: int,
    file: Optional[FileRecord],
    target_user_exists: bool,
    existing_permission: Optional[Permission],
    target_user_id: int,
) -> AccessDecision:
    decision = resolve_owner_action(requester_id, file)
    if decision is not AccessDecision.ALLOW:
        return decision
    if not target_user_exists:
        return AccessDecision.NOT_FOUND
    if existing_permission is not None or target_user_id == file.owner_id:
        return AccessDecision.CONFLICT
    return AccessDecision.ALLOW


def resolve_revoke(
    requester_id: int,
    file: Optional[FileRecord],
    permission: Optional[Permission],
) -> AccessDecision:
    decision = resolve_owner_action(requester_id, file)
    if decision is not AccessDecision.ALLOW:
        return decision
    if permission is None or permission.file_id != file.file_id:
        return AccessDecision.NOT_FOUND
    return AccessDecision.ALLOW
