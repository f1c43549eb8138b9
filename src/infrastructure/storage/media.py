"""
Upload helper shared by the catalog and upload routes.

Keeps key building and public path construction in one place so every
upload is addressable through /uploads/{key}.
"""

import logging
from typing import Optional

from ...core.storage.keys import build_object_key, public_path
from ...core.storage.models import DEFAULT_CACHE_CONTROL, DEFAULT_CONTENT_TYPE, SavedObject
from .client import StorageService

logger = logging.getLogger(__name__)


async def save_object(
    storage: StorageService,
    data: bytes,
    original_filename: Optional[str],
    mime_type: Optional[str] = None,
    folder_prefix: Optional[str] = "",
) -> SavedObject:
    """
    Store an uploaded file and return its key and public path.

    Raises InvalidArgument for an empty buffer; StorageError if the write fails.
    """
    object_key = build_object_key(original_filename, folder_prefix)
    stored_key = await storage.put(
        object_key,
        data,
        content_type=mime_type or DEFAULT_CONTENT_TYPE,
        cache_control=DEFAULT_CACHE_CONTROL,
    )

    logger.info(
        "Saved upload",
        extra={
            "object_key": stored_key,
            "original_filename": original_filename,
            "size_bytes": len(data),
        }
    )

    return SavedObject(object_key=stored_key, public_path=public_path(stored_key))
