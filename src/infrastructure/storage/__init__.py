"""
Object storage integration for uploaded catalog images and files.

Backed by Firebase / Google Cloud Storage with service account credentials.
Includes mock mode for local development without credentials.
"""

from .client import (
    GCSBucket,
    InMemoryBucket,
    StorageService,
    create_storage_service,
    iter_object,
)
from .credentials import Credentials, resolve_credentials
from .media import save_object

__all__ = [
    "Credentials",
    "GCSBucket",
    "InMemoryBucket",
    "StorageService",
    "create_storage_service",
    "iter_object",
    "resolve_credentials",
    "save_object",
]
