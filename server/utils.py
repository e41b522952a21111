"""Utility helper functions for the server."""

import uuid
from datetime import datetime, timezone
from typing import Optional

from common.constants import TRUTHY_FORM_VALUES


def generate_uuid() -> str:
    """
    Generate a new UUID4 hex string.

    Returns:
        32-character hex string
    """
    return uuid.uuid4().hex


def utc_now() -> datetime:
    """
    Get the current time as a timezone-aware UTC datetime.
    """
    return datetime.now(timezone.utc)


def to_db_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def from_db_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def parse_bool_flag(value: str) -> bool:
    """
    Normalize a boolean-ish form value.

    Args:
        value: Raw text such as "1", "TRUE", " yes ", "on"

    Returns:
        True for 1/true/yes/on (case-insensitive, surrounding space ignored)
    """
    return value.strip().lower() in TRUTHY_FORM_VALUES
