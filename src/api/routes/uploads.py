"""
Upload endpoints.

Two routers:
- `router` is mounted at /uploads and streams stored objects back
  unmodified (GET /uploads/{key})
- `upload_router` is mounted at /api and accepts single-file uploads
  (POST /api/upload)

Uploaded files are addressed by object key; the public path of a key is
always /uploads/{key}.
"""

import logging
from typing import Annotated, Optional
from urllib.parse import quote

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from ...core.storage.errors import InvalidArgument, StorageError
from ...core.storage.keys import sanitize_prefix
from ...infrastructure.storage.client import iter_object
from ...infrastructure.storage.media import save_object
from ..dependencies import SettingsDep, StorageDep
from ..streaming import prime

logger = logging.getLogger(__name__)

router = APIRouter()
upload_router = APIRouter()


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class UploadResponse(BaseModel):
    """Response after storing an uploaded file."""
    ok: bool = True
    filename: str = Field(description="Object key the file was stored under")
    path: str = Field(description="Relative URL served by the /uploads proxy")
    url: str = Field(description="Absolute URL for clients that need one")
    content_type: Optional[str] = Field(None, description="Content type reported by the client")
    size: int = Field(description="Size in bytes")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/{key:path}",
    summary="Download a stored file",
    description="Streams the stored bytes with their stored Content-Type and Cache-Control.",
    responses={404: {"description": "No object with this key"}},
)
async def get_upload(key: str, storage: StorageDep) -> StreamingResponse:
    """Pass-through proxy from /uploads/{key} to the bucket."""
    try:
        stored = await storage.stat(key)
    except StorageError as e:
        logger.error("Upload lookup failed", extra={"key": key, "error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="failed"
        )

    if stored is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    try:
        body = await prime(iter_object(stored), stored.key)
    except Exception as e:
        logger.error("Upload stream failed to start", extra={"key": stored.key, "error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="stream failed"
        )

    return StreamingResponse(
        body,
        media_type=stored.metadata.content_type,
        headers={"Cache-Control": stored.metadata.cache_control},
    )


@upload_router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload a file",
    description="Stores one file under an optional folder prefix and returns its key and URLs.",
)
async def upload_file(
    file: Annotated[UploadFile, File(description="File to store")],
    storage: StorageDep,
    settings: SettingsDep,
    prefix: Annotated[Optional[str], Query(description="Folder prefix, e.g. foods/")] = None,
    form_prefix: Annotated[Optional[str], Form(alias="prefix")] = None,
) -> UploadResponse:
    """
    Store an uploaded file.

    The prefix may come from the query string or the form body; it is
    cleaned so it cannot contain traversal segments or unsafe characters.
    """
    data = await file.read()
    if len(data) > settings.max_upload_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.max_upload_size_mb}MB"
        )

    folder = sanitize_prefix(prefix or form_prefix)

    try:
        saved = await save_object(
            storage,
            data,
            original_filename=file.filename,
            mime_type=file.content_type,
            folder_prefix=folder,
        )
    except InvalidArgument as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageError as e:
        logger.error(
            "Upload failed",
            extra={"original_filename": file.filename, "error": str(e)}
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="upload failed"
        )

    relative = quote(saved.public_path, safe="/")
    return UploadResponse(
        filename=saved.object_key,
        path=relative,
        url=f"{settings.public_base_url.rstrip('/')}{relative}",
        content_type=file.content_type,
        size=len(data),
    )
