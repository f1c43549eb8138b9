"""
Storage domain: object key rules, metadata types and the error taxonomy.
"""

from .errors import (
    InvalidArgument,
    MissingCredentials,
    NotInitialized,
    ObjectNotFound,
    StorageError,
    StorageUnreachable,
    TransformFailure,
)
from .keys import (
    build_object_key,
    key_from_reference,
    normalize_path,
    public_path,
    sanitize_prefix,
    slugify,
)
from .models import (
    DEFAULT_CACHE_CONTROL,
    DEFAULT_CONTENT_TYPE,
    ObjectMetadata,
    SavedObject,
    StoredObject,
)

__all__ = [
    "DEFAULT_CACHE_CONTROL",
    "DEFAULT_CONTENT_TYPE",
    "InvalidArgument",
    "MissingCredentials",
    "NotInitialized",
    "ObjectMetadata",
    "ObjectNotFound",
    "SavedObject",
    "StorageError",
    "StorageUnreachable",
    "StoredObject",
    "TransformFailure",
    "build_object_key",
    "key_from_reference",
    "normalize_path",
    "public_path",
    "sanitize_prefix",
    "slugify",
]
