"""Project-wide constants shared by the server and the CLI client."""

DEFAULT_SERVER_PORT: int = 8080

TRANSFER_CHUNK_SIZE: int = 64 * 1024  # 64 KiB read/write granularity

MAX_UPLOAD_SIZE_BYTES: int = 10 * 1024 * 1024  # 10 MiB

ACCESS_TOKEN_TTL_SECONDS: int = 3600

TRUTHY_FORM_VALUES = frozenset({"1", "true", "yes", "on"})
