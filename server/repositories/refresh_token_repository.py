"""Refresh token repository for database operations."""

import sqlite3
from datetime import datetime
from typing import List, Optional

from common.logging_config import get_logger
from server.database import fits_integer_column, get_db_connection, transaction
from server.repositories.base import RefreshTokenRepository
from server.types import RefreshToken
from server.utils import from_db_timestamp, to_db_timestamp

logger = get_logger(__name__)


def _row_to_token(row: sqlite3.Row) -> RefreshToken:
    return RefreshToken(
        token=row["token"],
        user_id=row["user_id"],
        created_at=from_db_timestamp(row["created_at"]),
        revoked_at=from_db_timestamp(row["revoked_at"]),
        replaced_by=row["replaced_by"],
    )


class SQLiteRefreshTokenRepository(RefreshTokenRepository):
    def __init__(self, database_path: Optional[str] = None):
        self.database_path = database_path

    def start_session(self, user_id: int, token: str, now: datetime) -> RefreshToken:
        with get_db_connection(self.database_path) as conn:
            with transaction(conn) as cursor:
                cursor.execute(
                    "UPDATE refresh_tokens SET revoked_at = ? WHERE user_id = ? AND revoked_at IS NULL",
                    (to_db_timestamp(now), user_id)
                )
                revoked = cursor.rowcount
                cursor.execute(
                    "INSERT INTO refresh_tokens (token, user_id, created_at) VALUES (?, ?, ?)",
                    (token, user_id, to_db_timestamp(now))
                )

        logger.info(f"Refresh session started [user_id={user_id}] revoked_previous={revoked}")
        return RefreshToken(token=token, user_id=user_id, created_at=now)

    def get(self, token: str) -> Optional[RefreshToken]:
        with get_db_connection(self.database_path) as conn:
            row = conn.execute(
                """
                SELECT token, user_id, created_at, revoked_at, replaced_by
                FROM refresh_tokens WHERE token = ?
                """,
                (token,)
            ).fetchone()
        return _row_to_token(row) if row is not None else None

    def rotate(self, old_token: str, new_token: str, now: datetime) -> Optional[RefreshToken]:
        with get_db_connection(self.database_path) as conn:
            with transaction(conn) as cursor:
                row = cursor.execute(
                    "SELECT user_id FROM refresh_tokens WHERE token = ? AND revoked_at IS NULL",
                    (old_token,)
                ).fetchone()
                if row is None:
                    return None
                user_id = row["user_id"]

                cursor.execute(
                    """
                    UPDATE refresh_tokens SET revoked_at = ?, replaced_by = ?
                    WHERE token = ? AND revoked_at IS NULL
                    """,
                    (to_db_timestamp(now), new_token, old_token)
                )
                if cursor.rowcount != 1:
                    return None

                cursor.execute(
                    "INSERT INTO refresh_tokens (token, user_id, created_at) VALUES (?, ?, ?)",
                    (new_token, user_id, to_db_timestamp(now))
                )

        logger.debug(f"Refresh token rotated [user_id={user_id}]")
        return RefreshToken(token=new_token, user_id=user_id, created_at=now)

    def revoke_all(self, user_id: int, now: datetime) -> int:
        if not fits_integer_column(user_id):
            return 0
        with get_db_connection(self.database_path) as conn:
            with transaction(conn) as cursor:
                cursor.execute(
                    "UPDATE refresh_tokens SET revoked_at = ? WHERE user_id = ? AND revoked_at IS NULL",
                    (to_db_timestamp(now), user_id)
                )
                revoked = cursor.rowcount

        logger.info(f"Revoked {revoked} refresh token(s) [user_id={user_id}]")
        return revoked

    def list_for_user(self, user_id: int) -> List[RefreshToken]:
        if not fits_integer_column(user_id):
            return []
        with get_db_connection(self.database_path) as conn:
            rows = conn.execute(
                """
                SELECT token, user_id, created_at, revoked_at, replaced_by
                FROM refresh_tokens WHERE user_id = ? ORDER BY created_at, rowid
                """,
                (user_id,)
            ).fetchall()
        return [_row_to_token(row) for row in rows]
