"""Transfer service: uploads and downloads of file bytes."""

from typing import AsyncIterable, Optional

from starlette.concurrency import run_in_threadpool

from common.logging_config import get_logger
from server.repositories.base import Store
from server.service_locator import get_storage, get_store
from server.services.file_service import FileService
from server.storage import DiskStorage
from server.transfer import DownloadHandle, UploadPipeline
from server.types import FileRecord

logger = get_logger(__name__)


class TransferService:
    def __init__(
        self,
        store: Optional[Store] = None,
        storage: Optional[DiskStorage] = None,
        max_upload_bytes: Optional[int] = None,
    ):
        self.store = store or get_store()
        self.storage = storage or get_storage()
        self.max_upload_bytes = max_upload_bytes
        self.files = FileService(self.store)

    async def upload(
        self,
        owner_id: int,
        content_type: Optional[str],
        stream: AsyncIterable[bytes],
    ) -> FileRecord:
        """
        Stream a multipart upload to disk and register it.

        Raises:
            InvalidInputError: malformed form, no file part or no filename
            UploadAbortedError: client disconnected mid-stream
            PayloadTooLargeError: body exceeded the size cap
            StorageError: metadata insert or rename failed
        """
        pipeline = UploadPipeline(self.storage, self.store.files, self.max_upload_bytes)
        return await pipeline.run(owner_id, content_type, stream)

    async def open_download(self, requester_id: int, file_id: int) -> DownloadHandle:
        file = await run_in_threadpool(self.files.authorize_download, requester_id, file_id)
        return await self._open(file)

    async def open_public_download(self, file_id: int) -> DownloadHandle:
        file = await run_in_threadpool(self.files.authorize_public_download, file_id)
        return await self._open(file)

    async def _open(self, file: FileRecord) -> DownloadHandle:
        chunks = await self.storage.open_stream(file.file_id)
        logger.info(f"Streaming file [file_id={file.file_id}] size={file.size}")
        return DownloadHandle(file=file, chunks=chunks)
