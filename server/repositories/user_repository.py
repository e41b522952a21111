"""User repository for database operations."""

import sqlite3
from datetime import datetime
from typing import Optional

from common.logging_config import get_logger
from server.database import fits_integer_column, get_db_connection, transaction
from server.exceptions import UserAlreadyExistsError
from server.repositories.base import UserRepository
from server.types import User
from server.utils import from_db_timestamp, to_db_timestamp

logger = get_logger(__name__)


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        user_id=row["id"],
        username=row["username"],
        password_hash=row["password_hash"],
        active=bool(row["active"]),
        created_at=from_db_timestamp(row["created_at"]),
        email=row["email"],
    )


class SQLiteUserRepository(UserRepository):
    def __init__(self, database_path: Optional[str] = None):
        self.database_path = database_path

    def create_user(
        self,
        username: str,
        password_hash: str,
        created_at: datetime,
        email: Optional[str] = None,
    ) -> User:
        logger.debug(f"Creating user: {username}")

        with get_db_connection(self.database_path) as conn:
            try:
                with transaction(conn) as cursor:
                    cursor.execute(
                        """
                        INSERT INTO users (username, password_hash, created_at, active, email)
                        VALUES (?, ?, ?, 1, ?)
                        """,
                        (username, password_hash, to_db_timestamp(created_at), email)
                    )
                    user_id = cursor.lastrowid
            except sqlite3.IntegrityError:
                logger.warning(f"Username already taken: {username}")
                raise UserAlreadyExistsError(f"Username '{username}' already exists")

        logger.info(f"User created successfully: {username} [user_id={user_id}]")
        return User(
            user_id=user_id,
            username=username,
            password_hash=password_hash,
            active=True,
            created_at=created_at,
            email=email,
        )

    def get_by_id(self, user_id: int) -> Optional[User]:
        if not fits_integer_column(user_id):
            return None
        with get_db_connection(self.database_path) as conn:
            row = conn.execute(
                "SELECT id, username, password_hash, created_at, active, email FROM users WHERE id = ?",
                (user_id,)
            ).fetchone()

        if row is None:
            logger.debug(f"User not found [user_id={user_id}]")
            return None
        return _row_to_user(row)

    def get_by_username(self, username: str) -> Optional[User]:
        with get_db_connection(self.database_path) as conn:
            row = conn.execute(
                "SELECT id, username, password_hash, created_at, active, email FROM users WHERE username = ?",
                (username,)
            ).fetchone()

        if row is None:
            logger.debug(f"User not found: {username}")
            return None
        return _row_to_user(row)

    def exists(self, user_id: int) -> bool:
        if not fits_integer_column(user_id):
            return False
        with get_db_connection(self.database_path) as conn:
            row = conn.execute("SELECT 1 FROM users WHERE id = ? LIMIT 1", (user_id,)).fetchone()
        return row is not None

    def set_active(self, user_id: int, active: bool) -> bool:
        return self._update_column(user_id, "active", 1 if active else 0)

    def update_email(self, user_id: int, email: Optional[str]) -> bool:
        return self._update_column(user_id, "email", email)

    def update_password_hash(self, user_id: int, password_hash: str) -> bool:
        return self._update_column(user_id, "password_hash", password_hash)

    def _update_column(self, user_id: int, column: str, value) -> bool:
        if not fits_integer_column(user_id):
            return False
        with get_db_connection(self.database_path) as conn:
            with transaction(conn) as cursor:
                cursor.execute(f"UPDATE users SET {column} = ? WHERE id = ?", (value, user_id))
                updated = cursor.rowcount == 1

        logger.debug(f"Updated users.{column} [user_id={user_id}] updated={updated}")
        return updated
