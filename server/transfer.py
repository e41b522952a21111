"""Streamed, size-bounded, atomic upload pipeline and download helpers.

Upload states:

    IDLE -> RECEIVING -> FIELDS_COMPLETE -> PERSISTING -> COMMITTING -> DONE
                      +-> SIZE_EXCEEDED
                      +-> ABORTED   (disconnect or malformed body)
    PERSISTING / COMMITTING -> FAILED

The metadata row is inserted only once the whole body has been read, and
its store-assigned id names the final file. A temp file that does not make
it to DONE is always removed, and a metadata row whose bytes could not be
committed is deleted again.
"""

import string
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, AsyncIterable, AsyncIterator, BinaryIO, Dict, List, Optional, Tuple
from urllib.parse import quote

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header
from starlette.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect

from common.logging_config import get_logger
from server import config
from server.exceptions import (
    InvalidInputError,
    PayloadTooLargeError,
    StorageError,
    UploadAbortedError,
)
from server.repositories.base import FileRepository
from server.storage import DiskStorage
from server.types import FileRecord
from server.utils import parse_bool_flag, utc_now

logger = get_logger(__name__)

FILE_FIELD = "file"
PUBLIC_FIELD = "is_public"


class UploadState(str, Enum):
    IDLE = "idle"
    RECEIVING = "receiving"
    SIZE_EXCEEDED = "size_exceeded"
    ABORTED = "aborted"
    FIELDS_COMPLETE = "fields_complete"
    PERSISTING = "persisting"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ReceivedUpload:
    filename: str
    size: int
    is_public: bool


def _decode(value: bytes) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return value.decode("latin-1")


def _clean_filename(raw: bytes) -> str:
    # browsers may send a full client-side path
    name = PurePosixPath(_decode(raw).replace("\\", "/")).name
    return name.strip()


class MultipartReceiver:
    """
    Feeds a multipart/form-data byte stream through python-multipart and
    writes the "file" part to a temp file as it arrives.

    Parser callbacks only queue events; the queue is drained after each
    write() so the disk writes can be awaited. One write() can carry several
    parts, so each headers_finished event holds its own copy of the headers.
    """

    def __init__(
        self,
        storage: DiskStorage,
        temp_path: Path,
        max_bytes: int,
        content_type: Optional[str],
    ):
        self.storage = storage
        self.temp_path = temp_path
        self.max_bytes = max_bytes
        self.boundary = self._parse_boundary(content_type)

        self.size = 0
        self.is_public = False
        self.filename: Optional[str] = None
        self.file_received = False
        self._finished = False

        self._events: List[Tuple[str, Any]] = []
        self._header_field = bytearray()
        self._header_value = bytearray()
        self._headers: Dict[bytes, bytes] = {}
        self._field_name: Optional[str] = None
        self._field_value = bytearray()
        self._file_handle: Optional[BinaryIO] = None

    @staticmethod
    def _parse_boundary(content_type: Optional[str]) -> bytes:
        if not content_type:
            raise InvalidInputError("Content-Type must be multipart/form-data")
        media_type, params = parse_options_header(content_type)
        boundary = params.get(b"boundary")
        if media_type != b"multipart/form-data" or not boundary:
            raise InvalidInputError("Content-Type must be multipart/form-data with a boundary")
        return boundary

    def on_part_begin(self) -> None:
        self._headers = {}
        self._header_field.clear()
        self._header_value.clear()
        self._events.append(("part_begin", None))

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._events.append(("part_data", data[start:end]))

    def on_part_end(self) -> None:
        self._events.append(("part_end", None))

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers[bytes(self._header_field).lower()] = bytes(self._header_value)
        self._header_field.clear()
        self._header_value.clear()

    def on_headers_finished(self) -> None:
        self._events.append(("headers_finished", dict(self._headers)))

    def on_end(self) -> None:
        self._events.append(("end", None))

    async def receive(self, stream: AsyncIterable[bytes]) -> ReceivedUpload:
        """
        Consume the whole stream.

        Raises:
            PayloadTooLargeError: file bytes went past max_bytes (checked per chunk)
            InvalidInputError: malformed body, no file part, no filename,
                more than one file part, or an oversized text field
            ClientDisconnect: the client went away mid-stream
        """
        parser = MultipartParser(
            self.boundary,
            callbacks={
                "on_part_begin": self.on_part_begin,
                "on_part_data": self.on_part_data,
                "on_part_end": self.on_part_end,
                "on_header_field": self.on_header_field,
                "on_header_value": self.on_header_value,
                "on_header_end": self.on_header_end,
                "on_headers_finished": self.on_headers_finished,
                "on_end": self.on_end,
            },
        )
        try:
            async for chunk in stream:
                if not chunk:
                    continue
                try:
                    parser.write(chunk)
                except MultipartParseError as e:
                    raise InvalidInputError(f"Malformed multipart body: {e}")
                await self._drain_events()

            parser.finalize()
            await self._drain_events()
        finally:
            self._close_file()

        if not self._finished:
            raise InvalidInputError("Incomplete multipart body")
        if not self.file_received:
            raise InvalidInputError("Missing 'file' field")

        return ReceivedUpload(filename=self.filename, size=self.size, is_public=self.is_public)

    async def _drain_events(self) -> None:
        events, self._events = self._events, []
        for kind, data in events:
            if kind == "part_begin":
                self._field_name = None
                self._field_value.clear()
            elif kind == "headers_finished":
                await self._start_part(data)
            elif kind == "part_data":
                await self._append(data)
            elif kind == "part_end":
                self._finish_part()
            elif kind == "end":
                self._finished = True

    async def _start_part(self, headers: Dict[bytes, bytes]) -> None:
        disposition = headers.get(b"content-disposition")
        if disposition is None:
            raise InvalidInputError("Multipart part without Content-Disposition")
        _, options = parse_options_header(disposition)
        self._field_name = _decode(options.get(b"name", b""))

        if self._field_name != FILE_FIELD:
            return

        if self.file_received or self._file_handle is not None:
            raise InvalidInputError("Only one 'file' field is allowed per upload")

        raw_filename = options.get(b"filename")
        filename = _clean_filename(raw_filename) if raw_filename is not None else ""
        if not filename:
            raise InvalidInputError("The 'file' field must carry a filename")
        self.filename = filename

        try:
            self._file_handle = await self.storage.open_temp(self.temp_path)
        except OSError as e:
            raise StorageError("Cannot create temporary upload file") from e

    async def _append(self, data: bytes) -> None:
        if self._field_name == FILE_FIELD and self._file_handle is not None:
            self.size += len(data)
            if self.size > self.max_bytes:
                logger.warning(f"Upload exceeded {self.max_bytes} bytes, aborting")
                raise PayloadTooLargeError(f"Upload exceeds {self.max_bytes} bytes")
            try:
                await run_in_threadpool(self._file_handle.write, data)
            except OSError as e:
                raise StorageError("Cannot write temporary upload file") from e
        elif self._field_name == PUBLIC_FIELD:
            self._field_value += data
            if len(self._field_value) > config.MAX_FORM_FIELD_BYTES:
                raise InvalidInputError(f"Field '{PUBLIC_FIELD}' is too long")

    def _finish_part(self) -> None:
        if self._field_name == FILE_FIELD and self._file_handle is not None:
            self._close_file()
            self.file_received = True
        elif self._field_name == PUBLIC_FIELD:
            self.is_public = parse_bool_flag(_decode(bytes(self._field_value)))
        self._field_name = None

    def _close_file(self) -> None:
        if self._file_handle is not None:
            self._file_handle.close()
            self._file_handle = None


class UploadPipeline:
    """One upload from request stream to committed file. Not reusable."""

    def __init__(
        self,
        storage: DiskStorage,
        files: FileRepository,
        max_bytes: Optional[int] = None,
    ):
        self.storage = storage
        self.files = files
        self.max_bytes = config.MAX_UPLOAD_BYTES if max_bytes is None else max_bytes
        self.state = UploadState.IDLE
        self.temp_path = storage.temp_path()
        self.record: Optional[FileRecord] = None

        # guards record/_abandoned between the event loop and the insert thread
        self._lock = threading.Lock()
        self._abandoned = False

    def _transition(self, state: UploadState) -> None:
        logger.debug(f"Upload {self.temp_path.name}: {self.state.value} -> {state.value}")
        self.state = state

    async def run(
        self,
        owner_id: int,
        content_type: Optional[str],
        stream: AsyncIterable[bytes],
    ) -> FileRecord:
        committed = False
        try:
            received = await self._receive(content_type, stream)
            record = await self._persist(owner_id, received)
            await self._commit(record)
            committed = True
            self._transition(UploadState.DONE)
            logger.info(
                f"Upload complete [file_id={record.file_id}] [owner_id={owner_id}] "
                f"size={record.size} is_public={record.is_public}"
            )
            return record
        finally:
            if not committed:
                self._clean_up()

    async def _receive(self, content_type: Optional[str], stream: AsyncIterable[bytes]) -> ReceivedUpload:
        self._transition(UploadState.RECEIVING)
        try:
            receiver = MultipartReceiver(self.storage, self.temp_path, self.max_bytes, content_type)
            received = await receiver.receive(stream)
        except PayloadTooLargeError:
            self._transition(UploadState.SIZE_EXCEEDED)
            raise
        except ClientDisconnect:
            self._transition(UploadState.ABORTED)
            logger.warning(f"Client disconnected during upload {self.temp_path.name}")
            raise UploadAbortedError("Upload aborted by client")
        except InvalidInputError:
            self._transition(UploadState.ABORTED)
            raise
        except StorageError:
            self._transition(UploadState.FAILED)
            raise

        self._transition(UploadState.FIELDS_COMPLETE)
        return received

    async def _persist(self, owner_id: int, received: ReceivedUpload) -> FileRecord:
        self._transition(UploadState.PERSISTING)
        try:
            return await run_in_threadpool(self._insert_metadata, owner_id, received)
        except Exception as e:
            self._transition(UploadState.FAILED)
            logger.error(f"Failed to insert file metadata: {e}", exc_info=True)
            raise StorageError("Failed to store file metadata") from e

    def _insert_metadata(self, owner_id: int, received: ReceivedUpload) -> FileRecord:
        """
        Runs in a worker thread. A cancelled request stops waiting for this
        thread, so the insert may finish after _clean_up has already run;
        in that case the row is removed here.
        """
        record = self.files.create_file(
            filename=received.filename,
            size=received.size,
            owner_id=owner_id,
            is_public=received.is_public,
            uploaded_at=utc_now(),
        )
        with self._lock:
            abandoned = self._abandoned
            if not abandoned:
                self.record = record
        if abandoned:
            self._discard_metadata(record.file_id)
        return record

    async def _commit(self, record: FileRecord) -> None:
        self._transition(UploadState.COMMITTING)
        try:
            await self.storage.commit(self.temp_path, record.file_id)
        except OSError as e:
            self._transition(UploadState.FAILED)
            logger.error(f"Failed to commit upload [file_id={record.file_id}]: {e}", exc_info=True)
            raise StorageError("Failed to store file") from e

    def _clean_up(self) -> None:
        # synchronous so it still runs when the task is being cancelled
        if self.state in (UploadState.PERSISTING, UploadState.COMMITTING):
            self._transition(UploadState.FAILED)

        with self._lock:
            self._abandoned = True
            record = self.record

        if record is not None:
            self._discard_metadata(record.file_id)
            # a cancelled rename may still have completed
            self.storage.discard(self.storage.final_path(record.file_id))

        if self.storage.discard(self.temp_path):
            logger.info(f"Discarded partial upload {self.temp_path.name} state={self.state.value}")

    def _discard_metadata(self, file_id: int) -> None:
        try:
            self.files.delete_file(file_id)
            logger.info(f"Removed metadata of uncommitted upload [file_id={file_id}]")
        except Exception as e:
            logger.error(f"Compensating delete failed [file_id={file_id}]: {e}", exc_info=True)


_SAFE_FILENAME_CHARS = set(string.ascii_letters + string.digits + " .-_()[]+,;=@!#$%&'~")


def content_disposition(filename: str) -> str:
    """
    Build an attachment Content-Disposition header for filename.

    Quotes and control characters are replaced with "_" so the header stays
    well-formed. Non-ASCII names get an ASCII fallback plus an RFC 5987
    filename* parameter.
    """
    neutral = "".join("_" if ch == '"' or ord(ch) < 32 or ord(ch) == 127 else ch for ch in filename)
    fallback = "".join(ch if ch in _SAFE_FILENAME_CHARS else "_" for ch in neutral)
    header = f'attachment; filename="{fallback}"'
    if fallback != neutral:
        header += f"; filename*=UTF-8''{quote(neutral, safe='')}"
    return header


@dataclass
class DownloadHandle:
    file: FileRecord
    chunks: AsyncIterator[bytes]

    @property
    def headers(self) -> dict:
        return {"Content-Disposition": content_disposition(self.file.filename)}
