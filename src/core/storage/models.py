"""
Domain types for stored objects.

These describe what the bucket reports about an object; they carry no
reference to a particular storage SDK.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, Callable, Optional

DEFAULT_CONTENT_TYPE = "application/octet-stream"
ONE_YEAR_SECONDS = 31536000
DEFAULT_CACHE_CONTROL = f"public, max-age={ONE_YEAR_SECONDS}, immutable"


@dataclass(frozen=True)
class ObjectMetadata:
    """
    Read-only metadata as reported by storage.

    Missing upstream values are filled with the same defaults used on write,
    so callers never need to special-case them.
    """
    content_type: str = DEFAULT_CONTENT_TYPE
    cache_control: str = DEFAULT_CACHE_CONTROL
    size: int = 0
    updated_at: Optional[datetime] = None
    etag: Optional[str] = None

    @classmethod
    def from_reported(
        cls,
        content_type: Optional[str] = None,
        cache_control: Optional[str] = None,
        size: Optional[int] = None,
        updated_at: Optional[datetime] = None,
        etag: Optional[str] = None,
    ) -> "ObjectMetadata":
        return cls(
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            cache_control=cache_control or DEFAULT_CACHE_CONTROL,
            size=int(size or 0),
            updated_at=updated_at,
            etag=etag,
        )

    def to_dict(self) -> dict:
        return {
            "content_type": self.content_type,
            "cache_control": self.cache_control,
            "size": self.size,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "etag": self.etag,
        }


@dataclass(frozen=True)
class StoredObject:
    """
    Result of a successful stat: metadata plus a way to read the bytes.

    The reader is opened lazily so a stat that is only used for metadata
    (health checks, HEAD-style diagnostics) never starts a download.
    """
    key: str
    metadata: ObjectMetadata
    opener: Callable[[], BinaryIO]

    def open(self) -> BinaryIO:
        """Open a readable binary stream over the object's bytes."""
        return self.opener()


@dataclass(frozen=True)
class SavedObject:
    """What an upload hands back to catalog handlers."""
    object_key: str
    public_path: str
