"""Permission repository for database operations."""

import sqlite3
from typing import List, Optional

from common.logging_config import get_logger
from server.database import fits_integer_column, get_db_connection, is_unique_violation, transaction
from server.exceptions import NotFoundError, PermissionConflictError
from server.repositories.base import PermissionRepository
from server.types import Permission, PermissionType

logger = get_logger(__name__)


def _row_to_permission(row: sqlite3.Row) -> Permission:
    return Permission(
        permission_id=row["id"],
        file_id=row["file_id"],
        user_id=row["user_id"],
        permission_type=PermissionType(row["permission_type"]),
    )


class SQLitePermissionRepository(PermissionRepository):
    def __init__(self, database_path: Optional[str] = None):
        self.database_path = database_path

    def create_permission(
        self,
        file_id: int,
        user_id: int,
        permission_type: PermissionType = PermissionType.SHARED,
    ) -> Permission:
        if not fits_integer_column(file_id, user_id):
            raise NotFoundError("Not found")
        with get_db_connection(self.database_path) as conn:
            try:
                with transaction(conn) as cursor:
                    cursor.execute(
                        """
                        INSERT INTO permissions (file_id, user_id, permission_type)
                        VALUES (?, ?, ?)
                        """,
                        (file_id, user_id, permission_type.value)
                    )
                    permission_id = cursor.lastrowid
            except sqlite3.IntegrityError as e:
                if is_unique_violation(e):
                    logger.warning(f"Permission already exists [file_id={file_id}] [user_id={user_id}]")
                    raise PermissionConflictError("File is already shared with this user")
                raise NotFoundError("Not found")

        logger.info(
            f"Permission created [permission_id={permission_id}] [file_id={file_id}] [user_id={user_id}]"
        )
        return Permission(
            permission_id=permission_id,
            file_id=file_id,
            user_id=user_id,
            permission_type=permission_type,
        )

    def get_by_id(self, permission_id: int) -> Optional[Permission]:
        if not fits_integer_column(permission_id):
            return None
        with get_db_connection(self.database_path) as conn:
            row = conn.execute(
                "SELECT id, file_id, user_id, permission_type FROM permissions WHERE id = ?",
                (permission_id,)
            ).fetchone()
        return _row_to_permission(row) if row is not None else None

    def get_by_file_and_user(self, file_id: int, user_id: int) -> Optional[Permission]:
        if not fits_integer_column(file_id, user_id):
            return None
        with get_db_connection(self.database_path) as conn:
            row = conn.execute(
                """
                SELECT id, file_id, user_id, permission_type
                FROM permissions WHERE file_id = ? AND user_id = ? LIMIT 1
                """,
                (file_id, user_id)
            ).fetchone()
        return _row_to_permission(row) if row is not None else None

    def list_by_file(self, file_id: int) -> List[Permission]:
        if not fits_integer_column(file_id):
            return []
        with get_db_connection(self.database_path) as conn:
            rows = conn.execute(
                "SELECT id, file_id, user_id, permission_type FROM permissions WHERE file_id = ? ORDER BY id",
                (file_id,)
            ).fetchall()
        return [_row_to_permission(row) for row in rows]

    def delete_permission(self, permission_id: int) -> bool:
        if not fits_integer_column(permission_id):
            return False
        with get_db_connection(self.database_path) as conn:
            with transaction(conn) as cursor:
                cursor.execute("DELETE FROM permissions WHERE id = ?", (permission_id,))
                deleted = cursor.rowcount == 1

        logger.info(f"Permission deleted [permission_id={permission_id}] deleted={deleted}")
        return deleted
