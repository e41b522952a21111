"""File operation API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, Response, status
from fastapi.responses import StreamingResponse

from server.auth import get_current_user
from server.schemas.files import (
    FileDetailsResponse,
    FileMetadataResponse,
    ListFilesResponse,
    ShareRequest,
    ShareResponse,
    UploadResponse,
    VisibilityRequest,
)
from server.services.file_service import FileService
from server.services.transfer_service import TransferService
from server.transfer import DownloadHandle
from server.types import FileRecord, Permission

router = APIRouter(tags=["Files"])


def _metadata_response(file: FileRecord) -> FileMetadataResponse:
    return FileMetadataResponse(
        file_id=file.file_id,
        filename=file.filename,
        size=file.size,
        owner_id=file.owner_id,
        is_public=file.is_public,
        uploaded_at=file.uploaded_at.isoformat(),
    )


def _share_response(permission: Permission) -> ShareResponse:
    return ShareResponse(
        permission_id=permission.permission_id,
        file_id=permission.file_id,
        user_id=permission.user_id,
        permission_type=permission.permission_type.value,
    )


def _streaming_response(handle: DownloadHandle) -> StreamingResponse:
    return StreamingResponse(
        handle.chunks,
        media_type="application/octet-stream",
        headers=handle.headers,
    )


@router.post("/file/upload", response_model=UploadResponse)
async def upload_file(
    request: Request,
    content_type: Optional[str] = Header(None),
    current_user: int = Depends(get_current_user),
):
    """
    Upload a file as multipart/form-data.

    Parameters:
        - file: File part; its filename is kept as the display name
        - is_public: Optional flag, "1", "true", "yes" or "on" make the file public
        - Authorization header: Bearer <access_token> (required)

    The body is streamed to disk; it is never held in memory.

    Returns:
        - file_id, filename, size, is_public

    Raises:
        - 400: Not multipart, no file part, no filename or aborted upload
        - 401: Invalid or missing access token
        - 413: File larger than the upload cap
        - 500: Storage failure
    """
    transfer_service = TransferService()
    record = await transfer_service.upload(current_user, content_type, request.stream())

    return UploadResponse(
        file_id=record.file_id,
        filename=record.filename,
        size=record.size,
        is_public=record.is_public,
    )


@router.get("/files", response_model=ListFilesResponse)
def list_files(current_user: int = Depends(get_current_user)):
    """List files the caller owns or that were shared with them."""
    file_service = FileService()
    files = file_service.list_visible_files(current_user)
    return ListFilesResponse(files=[_metadata_response(f) for f in files])


@router.get("/file/public/{file_id}")
async def download_public_file(file_id: int):
    """
    Download a public file without authentication.

    Raises:
        - 404: File missing or not public
    """
    transfer_service = TransferService()
    handle = await transfer_service.open_public_download(file_id)
    return _streaming_response(handle)


@router.get("/file/{file_id}")
async def download_file(file_id: int, current_user: int = Depends(get_current_user)):
    """
    Download a file the caller owns, was granted, or that is public.

    Raises:
        - 401: Invalid or missing access token
        - 404: File missing or caller has no access (same response)
    """
    transfer_service = TransferService()
    handle = await transfer_service.open_download(current_user, file_id)
    return _streaming_response(handle)


@router.get("/file/{file_id}/meta", response_model=FileDetailsResponse)
def get_file_metadata(file_id: int, current_user: int = Depends(get_current_user)):
    """Owner-only view of a file with its current shares."""
    file_service = FileService()
    file, permissions = file_service.get_metadata(current_user, file_id)
    return FileDetailsResponse(
        **_metadata_response(file).model_dump(),
        shares=[_share_response(p) for p in permissions],
    )


@router.patch("/file/{file_id}", response_model=FileMetadataResponse)
def set_file_visibility(
    file_id: int,
    request: VisibilityRequest,
    current_user: int = Depends(get_current_user),
):
    file_service = FileService()
    file = file_service.set_visibility(current_user, file_id, request.is_public)
    return _metadata_response(file)


@router.post("/file/{file_id}/share", response_model=ShareResponse)
def share_file(
    file_id: int,
    request: ShareRequest,
    current_user: int = Depends(get_current_user),
):
    """
    Grant another user read access to a file the caller owns.

    Raises:
        - 404: File missing, caller not the owner, or target user unknown
        - 409: Target user already has access
    """
    file_service = FileService()
    permission = file_service.share_file(current_user, file_id, request.user_id)
    return _share_response(permission)


@router.delete("/file/{file_id}/share/user/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_share_by_user(
    file_id: int,
    user_id: int,
    current_user: int = Depends(get_current_user),
):
    file_service = FileService()
    file_service.revoke_share_by_user(current_user, file_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/file/{file_id}/share/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_share(
    file_id: int,
    permission_id: int,
    current_user: int = Depends(get_current_user),
):
    file_service = FileService()
    file_service.revoke_share(current_user, file_id, permission_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
