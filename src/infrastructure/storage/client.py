"""
Object storage facade over a Firebase / Google Cloud Storage bucket.

StorageService is the storage context for the whole process. It is created
once by the application factory, initialized during startup (credentials,
bucket handle, reachability check) and then handed to request handlers
through FastAPI dependencies. Handlers never construct their own clients.

Every operation addresses objects by a normalized relative path, so
"/foods//a.jpg", "foods/./a.jpg" and "foods/a.jpg" are the same object.

The google-cloud-storage SDK is blocking; calls are moved off the event
loop with asyncio.to_thread. No retries or timeouts are added on top of
what the SDK and transport provide.

Mock mode swaps the GCS bucket for an in-memory one, enabling API testing
without provisioning a real bucket.
"""

import asyncio
import io
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator, BinaryIO, Callable, Optional, Protocol

from ...config.settings import Settings
from ...core.storage.errors import (
    InvalidArgument,
    MissingCredentials,
    NotInitialized,
    ObjectNotFound,
    StorageError,
    StorageUnreachable,
)
from ...core.storage.keys import normalize_path
from ...core.storage.models import (
    DEFAULT_CACHE_CONTROL,
    DEFAULT_CONTENT_TYPE,
    ObjectMetadata,
    StoredObject,
)
from .credentials import Credentials, resolve_credentials

logger = logging.getLogger(__name__)

MOCK_BUCKET_NAME = "mock-bucket"
CHUNK_SIZE = 256 * 1024


class Bucket(Protocol):
    """
    Protocol for the bucket backends behind StorageService.

    Keys passed in are already normalized. Methods are blocking.
    """

    name: str

    def check_access(self) -> None:
        """Raise if the bucket cannot be listed with the current credentials."""
        ...

    def upload(self, key: str, data: bytes, content_type: str, cache_control: str) -> None:
        ...

    def get_metadata(self, key: str) -> Optional[ObjectMetadata]:
        """Return metadata, or None when the object does not exist."""
        ...

    def open_reader(self, key: str) -> BinaryIO:
        ...

    def delete(self, key: str) -> None:
        """Delete the object. Raises ObjectNotFound when it does not exist."""
        ...


class GCSBucket:
    """
    Google Cloud Storage bucket authenticated with a service account.

    We import the Google libraries here (not at module level) because
    mock mode doesn't need them.
    """

    def __init__(self, credentials: Credentials, bucket_name: str) -> None:
        from google.api_core.exceptions import NotFound
        from google.cloud import storage
        from google.oauth2 import service_account

        sa_credentials = service_account.Credentials.from_service_account_info(
            credentials.to_service_account_info()
        )
        self.name = bucket_name
        self._not_found = NotFound
        self._client = storage.Client(
            project=credentials.project_id,
            credentials=sa_credentials,
        )
        self._bucket = self._client.bucket(bucket_name)

        logger.info(
            "Initialized GCS bucket handle",
            extra={"bucket": bucket_name, "project_id": credentials.project_id}
        )

    def check_access(self) -> None:
        # listing a single object proves both existence and read access
        blobs = self._client.list_blobs(self._bucket, max_results=1)
        next(iter(blobs), None)

    def upload(self, key: str, data: bytes, content_type: str, cache_control: str) -> None:
        blob = self._bucket.blob(key)
        blob.cache_control = cache_control
        # the SDK sends payloads up to 8 MiB as a single multipart request
        blob.upload_from_string(
            data,
            content_type=content_type,
            checksum="crc32c",
        )

    def get_metadata(self, key: str) -> Optional[ObjectMetadata]:
        blob = self._bucket.get_blob(key)
        if blob is None:
            return None

        return ObjectMetadata.from_reported(
            content_type=blob.content_type,
            cache_control=blob.cache_control,
            size=blob.size,
            updated_at=blob.updated,
            etag=blob.etag,
        )

    def open_reader(self, key: str) -> BinaryIO:
        return self._bucket.blob(key).open("rb", chunk_size=CHUNK_SIZE)

    def delete(self, key: str) -> None:
        try:
            self._bucket.blob(key).delete()
        except self._not_found:
            raise ObjectNotFound(key)


class InMemoryBucket:
    """
    In-memory bucket for local development and tests.

    Objects live in a dictionary keyed by object key. Not suitable for
    production, but it honors the same contract as GCSBucket.
    """

    def __init__(self, name: str = MOCK_BUCKET_NAME, reachable: bool = True) -> None:
        self.name = name
        self.reachable = reachable
        self._objects: dict[str, tuple[bytes, ObjectMetadata]] = {}
        logger.info("Initialized mock storage bucket (in-memory)", extra={"bucket": name})

    def check_access(self) -> None:
        if not self.reachable:
            raise ConnectionError(f"mock bucket {self.name} is unreachable")

    def upload(self, key: str, data: bytes, content_type: str, cache_control: str) -> None:
        metadata = ObjectMetadata(
            content_type=content_type,
            cache_control=cache_control,
            size=len(data),
            updated_at=datetime.now(timezone.utc),
            etag=f"mock-{len(self._objects)}-{len(data)}",
        )
        self._objects[key] = (bytes(data), metadata)

    def get_metadata(self, key: str) -> Optional[ObjectMetadata]:
        entry = self._objects.get(key)
        return entry[1] if entry else None

    def open_reader(self, key: str) -> BinaryIO:
        entry = self._objects.get(key)
        if entry is None:
            raise ObjectNotFound(key)
        return io.BytesIO(entry[0])

    def delete(self, key: str) -> None:
        if self._objects.pop(key, None) is None:
            raise ObjectNotFound(key)

    def keys(self) -> list[str]:
        return sorted(self._objects)


BucketFactory = Callable[[Optional[Credentials], str], Bucket]
CredentialResolver = Callable[[Settings], Optional[Credentials]]


def gcs_bucket_factory(credentials: Optional[Credentials], bucket_name: str) -> Bucket:
    if credentials is None:
        raise MissingCredentials("GCS bucket requires service account credentials")
    return GCSBucket(credentials, bucket_name)


def mock_bucket_factory(credentials: Optional[Credentials], bucket_name: str) -> Bucket:
    return InMemoryBucket(bucket_name)


def _no_credentials(settings: Settings) -> Optional[Credentials]:
    return None


@dataclass
class StorageStatus:
    """Snapshot used by health endpoints."""
    initialized: bool
    bucket_name: Optional[str]
    project_id: Optional[str]
    mock_mode: bool


class StorageService:
    """
    Process-wide storage context.

    Lifecycle:
    1. Constructed by the application factory (no I/O)
    2. init() awaited during startup; failures stop the process
    3. put/stat/delete used by request handlers for the process lifetime

    init() is idempotent and guarded by a lock, so concurrent callers
    cannot build two bucket handles.
    """

    def __init__(
        self,
        settings: Settings,
        bucket_factory: BucketFactory = gcs_bucket_factory,
        credential_resolver: CredentialResolver = resolve_credentials,
        mock_mode: bool = False,
    ) -> None:
        self._settings = settings
        self._bucket_factory = bucket_factory
        self._resolve = credential_resolver
        self._mock_mode = mock_mode
        self._init_lock = asyncio.Lock()

        self._initialized = False
        self._bucket: Optional[Bucket] = None
        self._bucket_name: Optional[str] = None
        self._project_id: Optional[str] = None

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    @property
    def ready(self) -> bool:
        return self._initialized

    @property
    def bucket_name(self) -> Optional[str]:
        return self._bucket_name

    async def init(self) -> None:
        """
        Resolve credentials, build the bucket handle and check access to it.

        Raises:
            MissingCredentials: no credential source was usable
            StorageUnreachable: listing the bucket failed
        """
        async with self._init_lock:
            if self._initialized:
                return

            credentials = self._resolve(self._settings)
            bucket_name = self._effective_bucket_name(credentials)

            try:
                bucket = self._bucket_factory(credentials, bucket_name)
            except StorageError:
                raise
            except Exception as e:
                raise MissingCredentials(
                    f"Could not build storage client from credentials: {e}"
                ) from e

            try:
                await asyncio.to_thread(bucket.check_access)
            except Exception as e:
                logger.error(
                    "Storage reachability check failed",
                    extra={"bucket": bucket_name, "error": str(e)}
                )
                raise StorageUnreachable(bucket_name, e) from e

            self._bucket = bucket
            self._bucket_name = bucket_name
            self._project_id = credentials.project_id if credentials else None
            self._initialized = True

            logger.info(
                "Storage initialized",
                extra={
                    "project_id": self._project_id,
                    "bucket": bucket_name,
                    "mock_mode": self._mock_mode,
                }
            )

    def _effective_bucket_name(self, credentials: Optional[Credentials]) -> str:
        if self._settings.firebase_storage_bucket:
            return self._settings.firebase_storage_bucket
        if credentials is None:
            return MOCK_BUCKET_NAME
        return credentials.bucket_name or credentials.default_bucket_name

    def get_bucket(self) -> Bucket:
        """Return the cached bucket handle. Raises NotInitialized before init()."""
        if not self._initialized or self._bucket is None:
            raise NotInitialized()
        return self._bucket

    def describe(self) -> StorageStatus:
        return StorageStatus(
            initialized=self._initialized,
            bucket_name=self._bucket_name,
            project_id=self._project_id,
            mock_mode=self._mock_mode,
        )

    # ------------------------------------------------------------------
    # Object operations
    # ------------------------------------------------------------------

    async def put(
        self,
        relative_path: str,
        data: bytes,
        content_type: Optional[str] = None,
        cache_control: Optional[str] = None,
    ) -> str:
        """
        Write bytes under a normalized key and return the key.

        The write goes out as one request only while data is at most
        8 MiB. Larger payloads make the GCS SDK switch to a chunked
        resumable upload. The crc32c checksum is verified either way.

        Raises:
            InvalidArgument: empty data or a path that normalizes to nothing.
                Nothing is written in that case.
            StorageError: the upload failed.
        """
        if not data:
            raise InvalidArgument("put requires a non-empty buffer")
        key = normalize_path(relative_path)
        if not key:
            raise InvalidArgument("put requires a non-empty path")

        bucket = self.get_bucket()
        content_type = content_type or DEFAULT_CONTENT_TYPE
        cache_control = cache_control or DEFAULT_CACHE_CONTROL

        try:
            await asyncio.to_thread(
                bucket.upload, key, bytes(data), content_type, cache_control
            )
        except Exception as e:
            logger.error(
                "Failed to upload object",
                extra={"key": key, "size_bytes": len(data), "error": str(e)}
            )
            raise StorageError(f"Upload failed: {e}") from e

        logger.debug(
            "Uploaded object",
            extra={"key": key, "size_bytes": len(data), "content_type": content_type}
        )
        return key

    async def stat(self, relative_path: str) -> Optional[StoredObject]:
        """
        Look an object up.

        Returns None when it does not exist; absence is a normal outcome,
        not an error.
        """
        key = normalize_path(relative_path)
        if not key:
            return None

        bucket = self.get_bucket()
        try:
            metadata = await asyncio.to_thread(bucket.get_metadata, key)
        except Exception as e:
            logger.error("Failed to stat object", extra={"key": key, "error": str(e)})
            raise StorageError(f"Stat failed: {e}") from e

        if metadata is None:
            return None

        return StoredObject(
            key=key,
            metadata=metadata,
            opener=lambda: bucket.open_reader(key),
        )

    async def delete(self, relative_path: str) -> None:
        """
        Best-effort delete.

        Missing objects count as deleted. Any other failure is logged and
        swallowed so cleanup never fails the caller's primary operation.
        """
        key = normalize_path(relative_path)
        if not key:
            return

        try:
            bucket = self.get_bucket()
            await asyncio.to_thread(bucket.delete, key)
            logger.debug("Deleted object", extra={"key": key})
        except ObjectNotFound:
            logger.debug("Delete skipped, object already absent", extra={"key": key})
        except Exception as e:
            logger.warning("Failed to delete object", extra={"key": key, "error": str(e)})


async def iter_object(stored: StoredObject, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
    """
    Stream an object's bytes in chunks.

    The upstream reader is closed when iteration ends for any reason,
    including cancellation when the client disconnects mid-response.
    """
    reader = await asyncio.to_thread(stored.open)
    try:
        while True:
            chunk = await asyncio.to_thread(reader.read, chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        reader.close()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_service(settings: Settings) -> StorageService:
    """
    Create the storage context based on configuration.

    Factory function pattern because:
    - Centralizes the mock vs real decision
    - Keeps construction free of I/O (init() does the network work)
    """
    if settings.storage_mock_mode:
        return StorageService(
            settings,
            bucket_factory=mock_bucket_factory,
            credential_resolver=_no_credentials,
            mock_mode=True,
        )

    return StorageService(settings)
