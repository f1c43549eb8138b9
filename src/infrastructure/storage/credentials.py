"""
Service account credential resolution.

Credentials can come from four places, tried in order:
1. FIREBASE_PROJECT_ID / FIREBASE_CLIENT_EMAIL / FIREBASE_PRIVATE_KEY
2. FIREBASE_SERVICE_ACCOUNT_BASE64 (base64 of the service account JSON)
3. FIREBASE_SERVICE_ACCOUNT_JSON (the JSON itself)
4. FIREBASE_CREDENTIALS_FILE (defaults to ./serviceAccountKey.json)

Each source is a plain function returning Optional[Credentials]. The first
non-None result wins; sources are never merged. A source that is present
but unparseable counts as absent so a stale blob cannot block a good file.

Resolution is pure: nothing here talks to Google. The storage client
turns Credentials into a google-auth credential object.
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from ...config.settings import Settings
from ...core.storage.errors import MissingCredentials

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"

ACCEPTED_SOURCES = (
    "FIREBASE_PROJECT_ID / FIREBASE_CLIENT_EMAIL / FIREBASE_PRIVATE_KEY",
    "FIREBASE_SERVICE_ACCOUNT_BASE64",
    "FIREBASE_SERVICE_ACCOUNT_JSON",
    "FIREBASE_CREDENTIALS_FILE (default ./serviceAccountKey.json)",
)


@dataclass(frozen=True)
class Credentials:
    """
    A resolved service account identity.

    Frozen because credentials are resolved once at startup and never
    change for the life of the process.
    """
    project_id: str
    client_email: str
    private_key: str
    bucket_name: Optional[str] = None
    private_key_id: Optional[str] = None
    token_uri: str = DEFAULT_TOKEN_URI
    source: str = ""

    def __post_init__(self) -> None:
        if not (self.project_id and self.client_email and self.private_key):
            raise ValueError("project_id, client_email and private_key are required")

    @property
    def default_bucket_name(self) -> str:
        return f"{self.project_id}.appspot.com"

    def to_service_account_info(self) -> dict[str, Any]:
        """Shape expected by google.oauth2.service_account."""
        info = {
            "type": "service_account",
            "project_id": self.project_id,
            "client_email": self.client_email,
            "private_key": self.private_key,
            "token_uri": self.token_uri,
        }
        if self.private_key_id:
            info["private_key_id"] = self.private_key_id
        return info

    def __repr__(self) -> str:
        # keep the key out of logs and tracebacks
        return (
            f"Credentials(project_id={self.project_id!r}, "
            f"client_email={self.client_email!r}, source={self.source!r})"
        )


def normalize_private_key(raw: str) -> str:
    """
    Make a PEM key usable no matter how the platform mangled it.

    Strips one pair of wrapping quotes when the whole value is quoted and
    turns literal backslash-n sequences into real newlines. Everything else
    is left untouched.
    """
    key = raw
    if len(key) >= 2 and key[0] == key[-1] and key[0] in ("'", '"'):
        key = key[1:-1]
    return key.replace("\\n", "\n")


def credentials_from_info(info: Any, source: str) -> Optional[Credentials]:
    """Build Credentials from a parsed service account dict, or None if incomplete."""
    if not isinstance(info, dict):
        return None

    project_id = info.get("project_id")
    client_email = info.get("client_email")
    private_key = info.get("private_key")
    if not (project_id and client_email and private_key):
        return None

    return Credentials(
        project_id=str(project_id),
        client_email=str(client_email),
        private_key=normalize_private_key(str(private_key)),
        bucket_name=info.get("storage_bucket") or None,
        private_key_id=info.get("private_key_id") or None,
        token_uri=info.get("token_uri") or DEFAULT_TOKEN_URI,
        source=source,
    )


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

def from_explicit_fields(settings: Settings) -> Optional[Credentials]:
    """Source 1: the three individual settings."""
    project_id = (settings.firebase_project_id or "").strip()
    client_email = (settings.firebase_client_email or "").strip()
    private_key = settings.firebase_private_key or ""
    if not (project_id and client_email and private_key.strip()):
        return None

    return Credentials(
        project_id=project_id,
        client_email=client_email,
        private_key=normalize_private_key(private_key),
        source="env",
    )


def from_base64_blob(settings: Settings) -> Optional[Credentials]:
    """Source 2: base64-encoded service account JSON."""
    # `base64 file.json` wraps lines at 76 columns
    blob = "".join((settings.firebase_service_account_base64 or "").split())
    if not blob:
        return None

    try:
        decoded = base64.b64decode(blob, validate=True).decode("utf-8")
        info = json.loads(decoded)
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        logger.warning(
            "Ignoring unparseable FIREBASE_SERVICE_ACCOUNT_BASE64",
            extra={"error": str(e)}
        )
        return None

    return credentials_from_info(info, source="base64")


def from_json_string(settings: Settings) -> Optional[Credentials]:
    """Source 3: raw service account JSON."""
    raw = (settings.firebase_service_account_json or "").strip()
    if not raw:
        return None

    try:
        info = json.loads(raw)
    except ValueError as e:
        logger.warning(
            "Ignoring unparseable FIREBASE_SERVICE_ACCOUNT_JSON",
            extra={"error": str(e)}
        )
        return None

    return credentials_from_info(info, source="json")


def from_credentials_file(settings: Settings) -> Optional[Credentials]:
    """Source 4: service account key file on disk."""
    path = Path(settings.firebase_credentials_file or "./serviceAccountKey.json")
    if not path.is_file():
        return None

    try:
        info = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(
            "Ignoring unreadable credentials file",
            extra={"path": str(path), "error": str(e)}
        )
        return None

    return credentials_from_info(info, source=f"file:{path}")


CredentialSource = Callable[[Settings], Optional[Credentials]]

DEFAULT_SOURCES: tuple[CredentialSource, ...] = (
    from_explicit_fields,
    from_base64_blob,
    from_json_string,
    from_credentials_file,
)


def resolve_credentials(
    settings: Settings,
    sources: tuple[CredentialSource, ...] = DEFAULT_SOURCES,
) -> Credentials:
    """
    Return credentials from the first source that yields a complete set.

    Raises:
        MissingCredentials: no source produced project id, client email
            and private key. The message lists every accepted setting.
    """
    for source in sources:
        creds = source(settings)
        if creds is not None:
            logger.info(
                "Resolved storage credentials",
                extra={"project_id": creds.project_id, "source": creds.source}
            )
            return creds

    raise MissingCredentials(
        "Firebase credentials missing. Set one of: " + "; ".join(ACCEPTED_SOURCES)
    )
