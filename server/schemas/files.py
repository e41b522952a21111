"""Pydantic schemas for file and sharing endpoints."""

from typing import List

from pydantic import BaseModel


class UploadResponse(BaseModel):
    """Response model for file upload."""
    file_id: int
    filename: str
    size: int
    is_public: bool


class FileMetadataResponse(BaseModel):
    """Response model for file metadata."""
    file_id: int
    filename: str
    size: int
    owner_id: int
    is_public: bool
    uploaded_at: str


class ListFilesResponse(BaseModel):
    """Files owned by or shared with the caller."""
    files: List[FileMetadataResponse]


class ShareRequest(BaseModel):
    user_id: int


class ShareResponse(BaseModel):
    permission_id: int
    file_id: int
    user_id: int
    permission_type: str


class FileDetailsResponse(FileMetadataResponse):
    """Owner view of a file, including who it is shared with."""
    shares: List[ShareResponse]


class VisibilityRequest(BaseModel):
    is_public: bool
