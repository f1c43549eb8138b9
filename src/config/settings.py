"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- One named field for every recognized credential source
- Easy testing with different configurations

Mock mode enables local development without a real storage bucket.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Chicken & Rice API"
    api_version: str = "v1"
    public_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL used to build absolute links to uploaded files."
    )

    # Firebase / GCS credentials, source 1: explicit triplet
    firebase_project_id: Optional[str] = Field(
        default=None,
        description="Service account project id"
    )
    firebase_client_email: Optional[str] = Field(
        default=None,
        description="Service account client email"
    )
    firebase_private_key: Optional[str] = Field(
        default=None,
        description="Service account PEM private key. Escaped \\n sequences are accepted."
    )

    # Source 2: base64-encoded service account JSON
    firebase_service_account_base64: Optional[str] = Field(
        default=None,
        description="Base64-encoded service account JSON (for deployment platforms without multiline env)"
    )

    # Source 3: raw service account JSON
    firebase_service_account_json: Optional[str] = Field(
        default=None,
        description="Raw service account JSON string"
    )

    # Source 4: credentials file
    firebase_credentials_file: str = Field(
        default="./serviceAccountKey.json",
        description="Path to a service account key file"
    )

    # Bucket
    firebase_storage_bucket: Optional[str] = Field(
        default=None,
        description="Bucket name. Defaults to {project_id}.appspot.com when unset."
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use an in-memory bucket instead of GCS. Enables local dev without credentials."
    )

    # Image proxy
    img_max_width: int = Field(
        default=2560,
        description="Upper bound for the ?w= parameter of the image proxy"
    )
    img_default_quality: int = Field(
        default=70,
        description="Encoder quality used when ?q= is absent or invalid"
    )

    # Uploads
    max_upload_size_mb: int = Field(
        default=20,
        description="Maximum size of a single uploaded file in MB. Keeps server memory bounded."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,https://chickenandrice.net,https://www.chickenandrice.net",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    def validate_required_fields(self) -> list[str]:
        """
        Validate settings that can be checked without touching the network.

        Returns list of problems. Credential completeness is not checked
        here because any one of four sources may supply it; the credential
        resolver reports that at startup.
        """
        missing = []

        if self.img_max_width < 1:
            missing.append("IMG_MAX_WIDTH (must be >= 1)")

        if not 30 <= self.img_default_quality <= 95:
            missing.append("IMG_DEFAULT_QUALITY (must be between 30 and 95)")

        if self.max_upload_size_mb < 1:
            missing.append("MAX_UPLOAD_SIZE_MB (must be >= 1)")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    This is safe because settings don't change during runtime.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
