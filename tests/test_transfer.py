"""Tests for the streamed upload pipeline and download helpers."""

import asyncio
import threading

import pytest
from starlette.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect

from server.exceptions import (
    InvalidInputError,
    NotFoundError,
    PayloadTooLargeError,
    StorageError,
    UploadAbortedError,
)
from server.services.transfer_service import TransferService
from server.transfer import UploadPipeline, UploadState, content_disposition

BOUNDARY = "sfs-test-boundary"
CONTENT_TYPE = f"multipart/form-data; boundary={BOUNDARY}"


def multipart_body(*parts):
    """
    Build a multipart/form-data body from (name, filename, content) tuples;
    filename None makes a plain text field.
    """
    body = b""
    for name, filename, content in parts:
        body += f"--{BOUNDARY}\r\n".encode()
        disposition = f'Content-Disposition: form-data; name="{name}"'
        if filename is not None:
            disposition += f'; filename="{filename}"'
        body += disposition.encode() + b"\r\n"
        if filename is not None:
            body += b"Content-Type: application/octet-stream\r\n"
        body += b"\r\n" + content + b"\r\n"
    body += f"--{BOUNDARY}--\r\n".encode()
    return body


async def split(data, size=None):
    if size is None:
        yield data
        return
    for i in range(0, len(data), size):
        yield data[i:i + size]


@pytest.fixture(params=[None, 7], ids=["one-chunk", "7-byte-chunks"])
def chunked(request):
    """
    Feed a body either in one piece, the way real clients deliver small
    requests, or in 7-byte slices that split every boundary and header.
    """
    def _chunked(data, size=None):
        return split(data, size or request.param)
    return _chunked


async def disconnecting(data, after=20):
    yield data[:after]
    raise ClientDisconnect()


def leftover_files(storage):
    if not storage.upload_dir.exists():
        return []
    return sorted(p.name for p in storage.upload_dir.iterdir())


@pytest.fixture
def owner(make_user):
    return make_user("alice")


@pytest.fixture
def pipeline(storage, store):
    return UploadPipeline(storage, store.files, max_bytes=64)


class TestUploadPipeline:

    @pytest.mark.asyncio
    async def test_successful_upload(self, pipeline, storage, store, owner, chunked):
        body = multipart_body(("file", "hello.txt", b"hello world"))

        record = await pipeline.run(owner.user_id, CONTENT_TYPE, chunked(body))

        assert pipeline.state is UploadState.DONE
        assert record.filename == "hello.txt"
        assert record.size == 11
        assert record.owner_id == owner.user_id
        assert record.is_public is False
        assert storage.final_path(record.file_id).read_bytes() == b"hello world"
        assert leftover_files(storage) == [f"{record.file_id}.bin"]
        assert store.files.get_by_id(record.file_id) is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value,expected", [
        ("1", True), ("true", True), (" YES ", True), ("On", True),
        ("0", False), ("false", False), ("nope", False), ("", False),
    ])
    async def test_public_flag_normalization(self, pipeline, owner, value, expected, chunked):
        body = multipart_body(("is_public", None, value.encode()), ("file", "a.bin", b"xyz"))

        record = await pipeline.run(owner.user_id, CONTENT_TYPE, chunked(body))

        assert record.is_public is expected

    @pytest.mark.asyncio
    async def test_flag_after_file_part(self, pipeline, owner, chunked):
        body = multipart_body(("file", "a.bin", b"xyz"), ("is_public", None, b"true"))
        record = await pipeline.run(owner.user_id, CONTENT_TYPE, chunked(body))
        assert record.is_public is True

    @pytest.mark.asyncio
    async def test_filename_path_is_stripped(self, pipeline, owner, chunked):
        body = multipart_body(("file", "../../etc/passwd", b"xyz"))
        record = await pipeline.run(owner.user_id, CONTENT_TYPE, chunked(body))
        assert record.filename == "passwd"

    @pytest.mark.asyncio
    async def test_exact_limit_is_accepted(self, pipeline, owner, chunked):
        body = multipart_body(("file", "max.bin", b"a" * 64))
        record = await pipeline.run(owner.user_id, CONTENT_TYPE, chunked(body))
        assert record.size == 64

    @pytest.mark.asyncio
    async def test_oversized_upload_leaves_nothing(self, pipeline, storage, store, owner, chunked):
        body = multipart_body(("file", "big.bin", b"a" * 65))

        with pytest.raises(PayloadTooLargeError):
            await pipeline.run(owner.user_id, CONTENT_TYPE, chunked(body))

        assert pipeline.state is UploadState.SIZE_EXCEEDED
        assert leftover_files(storage) == []
        assert store.files.list_visible(owner.user_id) == []

    @pytest.mark.asyncio
    async def test_oversized_upload_stops_reading(self, pipeline, owner):
        consumed = []

        async def endless():
            body = multipart_body(("file", "big.bin", b"a" * 1000))
            for i in range(0, len(body), 10):
                consumed.append(i)
                yield body[i:i + 10]

        with pytest.raises(PayloadTooLargeError):
            await pipeline.run(owner.user_id, CONTENT_TYPE, endless())

        assert len(consumed) < 30

    @pytest.mark.asyncio
    async def test_client_disconnect_aborts(self, pipeline, storage, store, owner):
        body = multipart_body(("file", "a.bin", b"a" * 50))

        with pytest.raises(UploadAbortedError):
            await pipeline.run(owner.user_id, CONTENT_TYPE, disconnecting(body, after=len(body) - 20))

        assert pipeline.state is UploadState.ABORTED
        assert leftover_files(storage) == []
        assert store.files.list_visible(owner.user_id) == []

    @pytest.mark.asyncio
    async def test_truncated_body_is_rejected(self, pipeline, storage, owner, chunked):
        body = multipart_body(("file", "a.bin", b"a" * 50))

        with pytest.raises(InvalidInputError):
            await pipeline.run(owner.user_id, CONTENT_TYPE, chunked(body[:-30]))

        assert leftover_files(storage) == []

    @pytest.mark.asyncio
    async def test_missing_file_part(self, pipeline, owner, chunked):
        body = multipart_body(("is_public", None, b"1"))
        with pytest.raises(InvalidInputError):
            await pipeline.run(owner.user_id, CONTENT_TYPE, chunked(body))

    @pytest.mark.asyncio
    async def test_missing_filename(self, pipeline, storage, owner, chunked):
        body = multipart_body(("file", "", b"abc"))
        with pytest.raises(InvalidInputError):
            await pipeline.run(owner.user_id, CONTENT_TYPE, chunked(body))
        assert leftover_files(storage) == []

    @pytest.mark.asyncio
    async def test_two_file_parts(self, pipeline, storage, owner, chunked):
        body = multipart_body(("file", "a.bin", b"abc"), ("file", "b.bin", b"def"))
        with pytest.raises(InvalidInputError):
            await pipeline.run(owner.user_id, CONTENT_TYPE, chunked(body))
        assert leftover_files(storage) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content_type", [
        None,
        "application/json",
        "multipart/form-data",
    ])
    async def test_bad_content_type(self, pipeline, owner, content_type, chunked):
        body = multipart_body(("file", "a.bin", b"abc"))
        with pytest.raises(InvalidInputError):
            await pipeline.run(owner.user_id, content_type, chunked(body))

    @pytest.mark.asyncio
    async def test_oversized_text_field(self, pipeline, owner, chunked):
        body = multipart_body(("is_public", None, b"1" * 2000), ("file", "a.bin", b"abc"))
        with pytest.raises(InvalidInputError):
            await pipeline.run(owner.user_id, CONTENT_TYPE, chunked(body, size=512))

    @pytest.mark.asyncio
    async def test_failed_rename_removes_metadata_and_temp(self, pipeline, storage, store, owner, monkeypatch, chunked):
        async def broken_commit(temp_path, file_id):
            raise OSError("disk full")

        monkeypatch.setattr(storage, "commit", broken_commit)
        body = multipart_body(("file", "a.bin", b"abc"))

        with pytest.raises(StorageError):
            await pipeline.run(owner.user_id, CONTENT_TYPE, chunked(body))

        assert pipeline.state is UploadState.FAILED
        assert store.files.list_visible(owner.user_id) == []
        assert leftover_files(storage) == []

    @pytest.mark.asyncio
    async def test_failed_metadata_insert_removes_temp(self, pipeline, storage, store, owner, monkeypatch, chunked):
        def broken_create(**kwargs):
            raise RuntimeError("database is locked")

        monkeypatch.setattr(store.files, "create_file", broken_create)
        body = multipart_body(("file", "a.bin", b"abc"))

        with pytest.raises(StorageError):
            await pipeline.run(owner.user_id, CONTENT_TYPE, chunked(body))

        assert pipeline.state is UploadState.FAILED
        assert leftover_files(storage) == []

    @pytest.mark.asyncio
    async def test_cancel_during_metadata_insert_leaves_nothing(self, pipeline, storage, store, owner, monkeypatch):
        inserting = threading.Event()
        release = threading.Event()
        inserted = threading.Event()
        original_create = store.files.create_file

        def slow_create(**kwargs):
            inserting.set()
            release.wait(5)
            try:
                return original_create(**kwargs)
            finally:
                inserted.set()

        monkeypatch.setattr(store.files, "create_file", slow_create)
        body = multipart_body(("file", "a.bin", b"abc"))

        task = asyncio.ensure_future(pipeline.run(owner.user_id, CONTENT_TYPE, split(body)))
        assert await run_in_threadpool(inserting.wait, 5)
        task.cancel()
        release.set()

        with pytest.raises(asyncio.CancelledError):
            await task

        # the insert thread may finish after the task is gone
        assert await run_in_threadpool(inserted.wait, 5)
        for _ in range(200):
            if not store.files.list_visible(owner.user_id):
                break
            await asyncio.sleep(0.01)

        assert pipeline.state is UploadState.FAILED
        assert store.files.list_visible(owner.user_id) == []
        assert leftover_files(storage) == []

    @pytest.mark.asyncio
    async def test_concurrent_uploads_get_distinct_temp_paths(self, storage, store):
        first = UploadPipeline(storage, store.files)
        second = UploadPipeline(storage, store.files)
        assert first.temp_path != second.temp_path


class TestDownload:

    @pytest.mark.asyncio
    async def test_stream_reads_all_chunks(self, storage, store, owner, chunked):
        transfer = TransferService(store, storage, max_upload_bytes=1024)
        payload = bytes(range(256)) * 2
        body = multipart_body(("file", "data.bin", payload))
        record = await transfer.upload(owner.user_id, CONTENT_TYPE, chunked(body, size=100))

        handle = await transfer.open_download(owner.user_id, record.file_id)
        chunks = [chunk async for chunk in handle.chunks]

        assert b"".join(chunks) == payload
        assert all(len(c) <= storage.chunk_size for c in chunks)
        assert handle.headers["Content-Disposition"] == 'attachment; filename="data.bin"'

    @pytest.mark.asyncio
    async def test_missing_bytes_is_not_found(self, storage, store, owner, chunked):
        transfer = TransferService(store, storage)
        body = multipart_body(("file", "data.bin", b"abc"))
        record = await transfer.upload(owner.user_id, CONTENT_TYPE, chunked(body))
        storage.final_path(record.file_id).unlink()

        with pytest.raises(NotFoundError):
            await transfer.open_download(owner.user_id, record.file_id)

    @pytest.mark.asyncio
    async def test_stranger_cannot_open(self, storage, store, owner, make_user, chunked):
        transfer = TransferService(store, storage)
        stranger = make_user("mallory")
        body = multipart_body(("file", "data.bin", b"abc"))
        record = await transfer.upload(owner.user_id, CONTENT_TYPE, chunked(body))

        with pytest.raises(NotFoundError):
            await transfer.open_download(stranger.user_id, record.file_id)
        with pytest.raises(NotFoundError):
            await transfer.open_public_download(record.file_id)


class TestContentDisposition:

    def test_plain_name(self):
        assert content_disposition("report.pdf") == 'attachment; filename="report.pdf"'

    def test_quotes_are_neutralized(self):
        assert content_disposition('evil".txt') == 'attachment; filename="evil_.txt"'

    def test_header_injection_is_neutralized(self):
        header = content_disposition("a\r\nSet-Cookie: x=1.txt")
        assert "\r" not in header and "\n" not in header

    def test_non_ascii_gets_extended_parameter(self):
        header = content_disposition("résumé.pdf")
        assert header.startswith('attachment; filename="r_sum_.pdf"')
        assert "filename*=UTF-8''r%C3%A9sum%C3%A9.pdf" in header
