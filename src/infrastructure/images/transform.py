"""
On-demand image resizing and transcoding using Pillow.

Used by the /img proxy:
1. Decide whether the stored object is a raster image we can transform
2. Turn the w / q / fmt query parameters and the Accept header into options
3. Decode the source incrementally, resize (fit within width, never
   enlarge), encode, and hand the result back in chunks

Source bytes are fed to Pillow's incremental parser chunk by chunk as
they arrive from storage rather than downloaded into one buffer first.
WebP and AVIF are the exception: Pillow cannot decode them incrementally,
so they are collected first and opened in one go.
Pillow decodes to a full raster before encoding, so the encoded output
is produced in one piece and then sliced into response chunks.
"""

import asyncio
import io
import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import AsyncIterator, BinaryIO, Optional

from PIL import Image, ImageFile, ImageOps, features

from ...core.storage.errors import TransformFailure
from ...core.storage.models import StoredObject

logger = logging.getLogger(__name__)

QUALITY_MIN = 30
QUALITY_MAX = 95
READ_CHUNK_SIZE = 64 * 1024
WRITE_CHUNK_SIZE = 64 * 1024

# Pillow has no incremental decoder for these; its parser would re-read the
# whole accumulated buffer on every feed
BUFFERED_TYPES = frozenset({"image/webp", "image/avif"})

TRANSFORMABLE_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/avif",
    "image/gif",
})

# fmt value -> (Pillow format name, response mime type)
OUTPUT_FORMATS = {
    "jpeg": ("JPEG", "image/jpeg"),
    "png": ("PNG", "image/png"),
    "webp": ("WEBP", "image/webp"),
    "avif": ("AVIF", "image/avif"),
}
FORMAT_ALIASES = {"jpg": "jpeg"}
DEFAULT_FORMAT = "webp"


@dataclass(frozen=True)
class TransformOptions:
    """Resolved, bounded transform parameters."""
    width: Optional[int]
    quality: int
    fmt: str

    @property
    def pillow_format(self) -> str:
        return OUTPUT_FORMATS[self.fmt][0]

    @property
    def mime_type(self) -> str:
        return OUTPUT_FORMATS[self.fmt][1]


def _media_type(content_type: Optional[str]) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


def is_transformable(content_type: Optional[str]) -> bool:
    """True for the raster image types the proxy resizes."""
    return _media_type(content_type) in TRANSFORMABLE_TYPES


@lru_cache(maxsize=1)
def avif_supported() -> bool:
    """Whether this Pillow build can encode AVIF."""
    return bool(features.check("avif"))


def clamp_int(
    value: Optional[str],
    low: int,
    high: int,
    default: Optional[int] = None,
) -> Optional[int]:
    """
    Parse a query value and clamp it into [low, high].

    Non-numeric or missing values give the default. Fractions are floored.
    """
    if value is None or str(value).strip() == "":
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return max(low, min(high, math.floor(number)))


def negotiate_format(
    fmt: Optional[str],
    accept: Optional[str],
    avif_available: bool = True,
) -> str:
    """
    Pick the output format.

    An explicit fmt wins. "auto" or no fmt falls back to the Accept header
    (avif preferred over webp) and finally to webp. AVIF is never chosen
    when the encoder is unavailable; an explicit request for it gets webp.
    An unknown fmt is also served as webp.
    """
    requested = (fmt or "").strip().lower()
    requested = FORMAT_ALIASES.get(requested, requested)

    if requested and requested != "auto":
        if requested not in OUTPUT_FORMATS:
            logger.info("Unknown image format requested, serving webp", extra={"fmt": fmt})
            return DEFAULT_FORMAT
        if requested == "avif" and not avif_available:
            logger.info("AVIF encoder unavailable, serving webp instead")
            return DEFAULT_FORMAT
        return requested

    accepted = (accept or "").lower()
    if avif_available and "image/avif" in accepted:
        return "avif"
    if "image/webp" in accepted:
        return "webp"
    return DEFAULT_FORMAT


def resolve_options(
    w: Optional[str],
    q: Optional[str],
    fmt: Optional[str],
    accept: Optional[str],
    max_width: int,
    default_quality: int,
) -> TransformOptions:
    """Turn raw query parameters into bounded TransformOptions."""
    return TransformOptions(
        width=clamp_int(w, 1, max_width),
        quality=clamp_int(q, QUALITY_MIN, QUALITY_MAX, default_quality),
        fmt=negotiate_format(fmt, accept, avif_supported()),
    )


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def decode_stream(
    reader: BinaryIO,
    content_type: Optional[str] = None,
    chunk_size: int = READ_CHUNK_SIZE,
) -> Image.Image:
    """
    Decode a binary stream into a loaded image.

    Most formats go through Pillow's incremental parser chunk by chunk.
    WebP and AVIF sources are collected into one buffer and opened
    directly.
    """
    if _media_type(content_type) in BUFFERED_TYPES:
        data = bytearray()
        while True:
            chunk = reader.read(chunk_size)
            if not chunk:
                break
            data.extend(chunk)
        image = Image.open(io.BytesIO(data))
        image.load()
        return image

    parser = ImageFile.Parser()
    while True:
        chunk = reader.read(chunk_size)
        if not chunk:
            break
        parser.feed(chunk)
    return parser.close()


def fit_within_width(image: Image.Image, width: Optional[int]) -> Image.Image:
    """Resize to at most `width` pixels wide, keeping aspect ratio. Never enlarges."""
    if not width or image.width <= width:
        return image
    height = max(1, round(image.height * width / image.width))
    return image.resize((width, height), Image.Resampling.LANCZOS)


def _prepare_mode(image: Image.Image, pillow_format: str) -> Image.Image:
    has_alpha = image.mode in ("RGBA", "LA") or (
        image.mode == "P" and "transparency" in image.info
    )

    if pillow_format == "JPEG":
        if has_alpha:
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel("A"))
            return background
        if image.mode not in ("RGB", "L"):
            return image.convert("RGB")
        return image

    if image.mode in ("RGB", "RGBA"):
        return image
    return image.convert("RGBA" if has_alpha else "RGB")


def _encoder_options(options: TransformOptions) -> dict:
    if options.fmt == "jpeg":
        return {"quality": options.quality, "optimize": True, "progressive": True}
    if options.fmt == "webp":
        return {"quality": options.quality, "method": 4}
    if options.fmt == "avif":
        return {"quality": options.quality, "speed": 6}
    return {"optimize": True}


def transform_image(
    reader: BinaryIO,
    options: TransformOptions,
    content_type: Optional[str] = None,
) -> bytes:
    """
    Decode, resize and encode one image.

    Blocking; callers run it in a worker thread.

    Raises:
        TransformFailure: the source could not be read or decoded, or the
            encoder failed.
    """
    try:
        image = decode_stream(reader, content_type)
        image = ImageOps.exif_transpose(image)
        image = fit_within_width(image, options.width)
        image = _prepare_mode(image, options.pillow_format)

        output = io.BytesIO()
        image.save(output, format=options.pillow_format, **_encoder_options(options))
        return output.getvalue()
    except TransformFailure:
        raise
    except Exception as e:
        raise TransformFailure(f"Image transform failed: {e}") from e


async def render_transformed(
    stored: StoredObject,
    options: TransformOptions,
    chunk_size: int = WRITE_CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """
    Async generator yielding the transformed image in chunks.

    The source reader is closed as soon as decoding finishes or fails.
    Transform errors surface on the first iteration, which lets the route
    answer with an error status before any header is sent.
    """
    try:
        reader = await asyncio.to_thread(stored.open)
    except Exception as e:
        raise TransformFailure(f"Could not open source: {e}") from e

    try:
        encoded = await asyncio.to_thread(
            transform_image, reader, options, stored.metadata.content_type
        )
    finally:
        reader.close()

    logger.debug(
        "Transformed image",
        extra={
            "key": stored.key,
            "source_bytes": stored.metadata.size,
            "output_bytes": len(encoded),
            "format": options.fmt,
            "width": options.width,
            "quality": options.quality,
        }
    )

    view = memoryview(encoded)
    for start in range(0, len(view), chunk_size):
        yield bytes(view[start:start + chunk_size])
