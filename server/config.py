"""Configuration settings for the file sharing server."""

import os

from common.constants import (
    ACCESS_TOKEN_TTL_SECONDS,
    DEFAULT_SERVER_PORT,
    MAX_UPLOAD_SIZE_BYTES,
    TRANSFER_CHUNK_SIZE,
)


DATABASE_PATH = os.environ.get("SFS_DATABASE_PATH", "data/app.db")

UPLOAD_DIR = os.environ.get("SFS_UPLOAD_DIR", "data/uploads")

SERVER_HOST = os.environ.get("SFS_HOST", "0.0.0.0")

SERVER_PORT = int(os.environ.get("SFS_PORT", str(DEFAULT_SERVER_PORT)))

# "sqlite" for the transactional store, "memory" for the in-process fallback
STORE_BACKEND = os.environ.get("SFS_STORE", "sqlite")

DEV_JWT_SECRET = "sfs-development-secret-change-me"

JWT_SECRET = os.environ.get("SFS_JWT_SECRET", DEV_JWT_SECRET)

JWT_ALGORITHM = os.environ.get("SFS_JWT_ALGORITHM", "HS256")

MAX_UPLOAD_BYTES = int(os.environ.get("SFS_MAX_UPLOAD_BYTES", str(MAX_UPLOAD_SIZE_BYTES)))

UPLOAD_CHUNK_SIZE = int(os.environ.get("SFS_UPLOAD_CHUNK_SIZE", str(TRANSFER_CHUNK_SIZE)))

MAX_FORM_FIELD_BYTES = 1024

MIN_PASSWORD_LENGTH = 8

DB_BUSY_TIMEOUT_SECONDS = float(os.environ.get("SFS_DB_BUSY_TIMEOUT", "10"))

# argon2-cffi defaults (RFC 9106 low-memory profile) unless overridden
ARGON2_TIME_COST = int(os.environ.get("SFS_ARGON2_TIME_COST", "3"))
ARGON2_MEMORY_COST = int(os.environ.get("SFS_ARGON2_MEMORY_COST", "65536"))
ARGON2_PARALLELISM = int(os.environ.get("SFS_ARGON2_PARALLELISM", "4"))
