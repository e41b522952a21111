"""File metadata repository for database operations."""

import sqlite3
from datetime import datetime
from typing import List, Optional

from common.logging_config import get_logger
from server.database import fits_integer_column, get_db_connection, transaction
from server.exceptions import NotFoundError
from server.repositories.base import FileRepository
from server.types import FileRecord
from server.utils import from_db_timestamp, to_db_timestamp

logger = get_logger(__name__)

_COLUMNS = "f.id, f.filename, f.size, f.owner_id, f.is_public, f.uploaded_at, f.description"


def _row_to_file(row: sqlite3.Row) -> FileRecord:
    return FileRecord(
        file_id=row["id"],
        filename=row["filename"],
        size=row["size"],
        owner_id=row["owner_id"],
        is_public=bool(row["is_public"]),
        uploaded_at=from_db_timestamp(row["uploaded_at"]),
        description=row["description"],
    )


class SQLiteFileRepository(FileRepository):
    def __init__(self, database_path: Optional[str] = None):
        self.database_path = database_path

    def create_file(
        self,
        filename: str,
        size: int,
        owner_id: int,
        is_public: bool,
        uploaded_at: datetime,
        description: Optional[str] = None,
    ) -> FileRecord:
        if not fits_integer_column(owner_id):
            raise NotFoundError("Not found")
        with get_db_connection(self.database_path) as conn:
            try:
                with transaction(conn) as cursor:
                    cursor.execute(
                        """
                        INSERT INTO files (filename, size, owner_id, is_public, uploaded_at, description)
                        VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        (filename, size, owner_id, 1 if is_public else 0,
                         to_db_timestamp(uploaded_at), description)
                    )
                    file_id = cursor.lastrowid
            except sqlite3.IntegrityError:
                logger.warning(f"Cannot create file for unknown owner [owner_id={owner_id}]")
                raise NotFoundError("Not found")

        logger.info(f"File metadata created [file_id={file_id}] [owner_id={owner_id}] size={size}")
        return FileRecord(
            file_id=file_id,
            filename=filename,
            size=size,
            owner_id=owner_id,
            is_public=is_public,
            uploaded_at=uploaded_at,
            description=description,
        )

    def get_by_id(self, file_id: int) -> Optional[FileRecord]:
        if not fits_integer_column(file_id):
            return None
        with get_db_connection(self.database_path) as conn:
            row = conn.execute(f"SELECT {_COLUMNS} FROM files f WHERE f.id = ?", (file_id,)).fetchone()
        return _row_to_file(row) if row is not None else None

    def delete_file(self, file_id: int) -> bool:
        if not fits_integer_column(file_id):
            return False
        with get_db_connection(self.database_path) as conn:
            with transaction(conn) as cursor:
                cursor.execute("DELETE FROM permissions WHERE file_id = ?", (file_id,))
                cursor.execute("DELETE FROM files WHERE id = ?", (file_id,))
                deleted = cursor.rowcount == 1

        logger.info(f"File metadata deleted [file_id={file_id}] deleted={deleted}")
        return deleted

    def set_public(self, file_id: int, is_public: bool) -> bool:
        if not fits_integer_column(file_id):
            return False
        with get_db_connection(self.database_path) as conn:
            with transaction(conn) as cursor:
                cursor.execute(
                    "UPDATE files SET is_public = ? WHERE id = ?",
                    (1 if is_public else 0, file_id)
                )
                return cursor.rowcount == 1

    def list_visible(self, user_id: int) -> List[FileRecord]:
        if not fits_integer_column(user_id):
            return []
        with get_db_connection(self.database_path) as conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS}
                FROM files f
                WHERE f.owner_id = ?
                   OR EXISTS (
                        SELECT 1 FROM permissions p
                        WHERE p.file_id = f.id AND p.user_id = ?
                   )
                ORDER BY f.id
                """,
                (user_id, user_id)
            ).fetchall()
        return [_row_to_file(row) for row in rows]
