"""Uploaded file bytes on local disk.

Layout: every object lives directly in one upload directory. Committed
uploads are named {file_id}.bin; uploads in flight are named tmp_{random}
in the same directory so the final rename never crosses filesystems.
"""

import os
from pathlib import Path
from typing import AsyncIterator, BinaryIO

from starlette.concurrency import run_in_threadpool

from common.constants import TRANSFER_CHUNK_SIZE
from common.logging_config import get_logger
from server.exceptions import NotFoundError
from server.utils import generate_uuid

logger = get_logger(__name__)

TEMP_PREFIX = "tmp_"
FINAL_SUFFIX = ".bin"


class DiskStorage:
    def __init__(self, upload_dir, chunk_size: int = TRANSFER_CHUNK_SIZE):
        self.upload_dir = Path(upload_dir)
        self.chunk_size = chunk_size

    def ensure_upload_dir(self) -> None:
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def temp_path(self) -> Path:
        """Fresh, collision-free path for one upload in flight."""
        return self.upload_dir / f"{TEMP_PREFIX}{generate_uuid()}"

    def final_path(self, file_id: int) -> Path:
        return self.upload_dir / f"{int(file_id)}{FINAL_SUFFIX}"

    async def open_temp(self, path: Path) -> BinaryIO:
        await run_in_threadpool(self.ensure_upload_dir)
        return await run_in_threadpool(open, path, "wb")

    async def commit(self, temp_path: Path, file_id: int) -> Path:
        """
        Atomically move a fully written temp file to its final path.

        Raises:
            OSError: rename failed; the temp file is left for the caller to discard
        """
        final_path = self.final_path(file_id)
        await run_in_threadpool(os.replace, temp_path, final_path)
        logger.info(f"Committed upload [file_id={file_id}] path={final_path.name}")
        return final_path

    def discard(self, path: Path) -> bool:
        """
        Delete a file if present.

        Returns:
            True if a file was removed
        """
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Failed to remove {path.name}: {e}")
            return False
        logger.debug(f"Removed {path.name}")
        return True

    async def open_stream(self, file_id: int) -> AsyncIterator[bytes]:
        """
        Open a committed file and return an async iterator over its bytes.

        The file is opened before this returns, so a missing file surfaces
        here rather than halfway through a response.

        Raises:
            NotFoundError: no bytes on disk for file_id
        """
        path = self.final_path(file_id)
        try:
            handle = await run_in_threadpool(open, path, "rb")
        except FileNotFoundError:
            logger.error(f"Metadata exists but bytes are missing [file_id={file_id}]")
            raise NotFoundError("Not found")

        return self._iter_chunks(handle)

    async def _iter_chunks(self, handle: BinaryIO) -> AsyncIterator[bytes]:
        try:
            while True:
                chunk = await run_in_threadpool(handle.read, self.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            handle.close()
