"""
Image proxy endpoint.

GET /img/{key}?w=640&q=75&fmt=auto

Resizes and transcodes stored raster images on demand. Anything that is
not a raster image is streamed through untouched. Responses vary on
Accept because fmt=auto negotiates the output format from it.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Header, HTTPException, Query, status
from fastapi.responses import JSONResponse, Response, StreamingResponse

from ...core.storage.errors import StorageError, TransformFailure
from ...infrastructure.images.transform import (
    is_transformable,
    render_transformed,
    resolve_options,
)
from ...infrastructure.storage.client import iter_object
from ..dependencies import SettingsDep, StorageDep
from ..streaming import prime

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/{key:path}",
    summary="Resized image",
    description=(
        "Streams a stored image resized to fit within `w` pixels (never enlarged), "
        "encoded as `fmt` at quality `q`. Non-image objects are passed through."
    ),
    responses={
        400: {"description": "Missing key"},
        404: {"description": "No object with this key"},
        500: {"description": "Image transform failed"},
    },
)
async def get_image(
    key: str,
    storage: StorageDep,
    settings: SettingsDep,
    w: Annotated[Optional[str], Query(description="Target width in pixels")] = None,
    q: Annotated[Optional[str], Query(description="Quality, 30-95")] = None,
    fmt: Annotated[Optional[str], Query(description="jpeg | png | webp | avif | auto; anything else is served as webp")] = None,
    accept: Annotated[Optional[str], Header()] = None,
) -> Response:
    key = key.lstrip("/")
    if not key:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="missing key")

    try:
        stored = await storage.stat(key)
    except StorageError as e:
        logger.error("Image lookup failed", extra={"key": key, "error": str(e)})
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed")

    if stored is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    metadata = stored.metadata
    headers = {"Cache-Control": metadata.cache_control, "Vary": "Accept"}

    # Pass-through for anything we don't resize
    if not is_transformable(metadata.content_type):
        try:
            body = await prime(iter_object(stored), stored.key)
        except Exception as e:
            logger.error("Image passthrough failed to start", extra={"key": stored.key, "error": str(e)})
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="stream failed"
            )
        return StreamingResponse(body, media_type=metadata.content_type, headers=headers)

    options = resolve_options(
        w=w,
        q=q,
        fmt=fmt,
        accept=accept,
        max_width=settings.img_max_width,
        default_quality=settings.img_default_quality,
    )

    try:
        body = await prime(render_transformed(stored, options), stored.key)
    except TransformFailure as e:
        logger.error(
            "Image transform failed",
            extra={"key": stored.key, "format": options.fmt, "error": str(e)}
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Image transform failed"},
        )

    return StreamingResponse(body, media_type=options.mime_type, headers=headers)
