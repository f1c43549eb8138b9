"""
Object key rules.

Every storage operation addresses objects by a normalized relative path,
and every upload derives its key from the original filename. Both rules
live here so the facade, the upload routes and the catalog all agree on
what a key looks like.

Key invariants:
- no leading slash, no empty / "." / ".." segments, "/" separated
- normalize_path(normalize_path(p)) == normalize_path(p)
- built keys contain only [a-z0-9.-] plus "/" from the prefix
"""

import re
import time
from typing import Optional
from urllib.parse import unquote, urlsplit

PUBLIC_PREFIX = "/uploads/"
DEFAULT_EXTENSION = ".bin"
DEFAULT_STEM = "file"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_PREFIX_UNSAFE = re.compile(r"[^A-Za-z0-9_-]+")


def normalize_path(relative_path: Optional[str]) -> str:
    """
    Normalize a caller-supplied relative path into an object key.

    Leading slashes are stripped, the path is split on "/", empty segments
    and "." / ".." segments are dropped, and the rest is rejoined.
    Dropping ".." (rather than resolving it) means a key can never climb
    out of the bucket namespace.
    """
    text = str(relative_path or "").lstrip("/")
    segments = [s for s in text.split("/") if s and s not in (".", "..")]
    return "/".join(segments)


def slugify(value: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to "-", trim hyphens."""
    return _NON_ALNUM.sub("-", value.lower()).strip("-")


def split_filename(original_filename: str) -> tuple[str, str]:
    """
    Split a filename into (stem, extension) at the last dot.

    The extension keeps its leading dot, is case-folded and reduced to
    alphanumerics; ".bin" is used when there is no usable extension.
    """
    dot = original_filename.rfind(".")
    if dot < 0:
        return original_filename, DEFAULT_EXTENSION

    ext = _NON_ALNUM.sub("", original_filename[dot + 1:].lower())
    return original_filename[:dot], f".{ext}" if ext else DEFAULT_EXTENSION


def build_object_key(
    original_filename: Optional[str],
    prefix: Optional[str] = "",
    now_ms: Optional[int] = None,
) -> str:
    """
    Derive a storage key from an uploaded file's original name.

    Format: "{prefix}/{millis}-{slug}{ext}" (prefix omitted when empty).

    Uniqueness rests on the millisecond timestamp plus the stem. Two uploads
    of the same name within one millisecond produce the same key and the
    later write wins; callers that need strict uniqueness must add their
    own randomness to the prefix or filename.
    """
    stem, ext = split_filename(original_filename or f"{DEFAULT_STEM}{DEFAULT_EXTENSION}")
    slug = slugify(stem) or DEFAULT_STEM
    ts = now_ms if now_ms is not None else int(time.time() * 1000)

    base = f"{ts}-{slug}{ext}"
    clean_prefix = str(prefix or "").strip("/")
    return f"{clean_prefix}/{base}" if clean_prefix else base


def sanitize_prefix(raw: Optional[str]) -> str:
    """
    Clean a client-supplied folder prefix (e.g. "foods/", "banners").

    Traversal segments are dropped and each remaining segment keeps only
    letters, digits, "_" and "-".
    """
    segments = []
    for segment in normalize_path(raw).split("/"):
        cleaned = _PREFIX_UNSAFE.sub("", segment)
        if cleaned:
            segments.append(cleaned)
    return "/".join(segments)


def public_path(object_key: str) -> str:
    """The URL path under which the /uploads proxy serves a key."""
    return f"{PUBLIC_PREFIX}{object_key}"


def key_from_reference(reference: Optional[str]) -> str:
    """
    Turn a catalog image reference back into an object key.

    Accepts "/uploads/foods/1-x.jpg", an absolute URL pointing at the same
    path, or a bare key. One leading "uploads" segment is removed; this is
    kept out of normalize_path so that normalization stays idempotent.
    """
    if not reference:
        return ""

    path = urlsplit(reference).path if "://" in reference else reference
    key = normalize_path(unquote(path))
    head, _, rest = key.partition("/")
    if head.lower() == "uploads":
        return rest
    return key
