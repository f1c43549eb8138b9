"""
Storage error taxonomy.

Startup-fatal errors (MissingCredentials, StorageUnreachable) stop the
process before it serves traffic. The rest are per-request and get mapped
to HTTP responses at the route boundary.
"""

from typing import Optional


class StorageError(Exception):
    """Base class for storage failures."""
    pass


class MissingCredentials(StorageError):
    """No credential source yielded a complete service account."""
    pass


class StorageUnreachable(StorageError):
    """The bucket handle was built but the reachability check failed."""

    def __init__(self, bucket_name: str, cause: Optional[BaseException] = None) -> None:
        self.bucket_name = bucket_name
        self.cause = cause
        super().__init__(
            f'Storage bucket "{bucket_name}" access failed: {cause}'
        )


class NotInitialized(StorageError):
    """Storage was used before init() completed."""

    def __init__(self, message: str = "Storage not initialized") -> None:
        super().__init__(message)


class InvalidArgument(StorageError, ValueError):
    """Caller passed an empty buffer or path."""
    pass


class ObjectNotFound(StorageError):
    """Raised by bucket backends when an object does not exist."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Object not found: {key}")


class TransformFailure(StorageError):
    """Image decode or encode failed in the transform proxy."""
    pass
