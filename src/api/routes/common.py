"""
Image handling shared by the catalog routers.
"""

import logging
from typing import Optional

from fastapi import HTTPException, UploadFile, status
from pydantic import BaseModel

from ...config.settings import Settings
from ...core.storage.errors import StorageError
from ...core.storage.keys import key_from_reference
from ...infrastructure.storage.client import StorageService
from ...infrastructure.storage.media import save_object

logger = logging.getLogger(__name__)


class DeleteResponse(BaseModel):
    message: str


async def store_image(
    image_file: Optional[UploadFile],
    storage: StorageService,
    settings: Settings,
    prefix: str,
) -> Optional[str]:
    """Save an optional uploaded image and return its public path."""
    if image_file is None or not image_file.filename:
        return None

    data = await image_file.read()
    if not data:
        return None
    if len(data) > settings.max_upload_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Image exceeds {settings.max_upload_size_mb}MB"
        )

    try:
        saved = await save_object(
            storage,
            data,
            original_filename=image_file.filename,
            mime_type=image_file.content_type,
            folder_prefix=prefix,
        )
    except StorageError as e:
        logger.error(
            "Image upload failed",
            extra={"prefix": prefix, "original_filename": image_file.filename, "error": str(e)}
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Image upload failed"
        )
    return saved.public_path


async def remove_image(storage: StorageService, image: Optional[str]) -> None:
    """Best-effort delete of an item's stored image. Never raises."""
    key = key_from_reference(image)
    if key:
        await storage.delete(key)
