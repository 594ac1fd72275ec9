"""Application configuration."""

from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Settings
    APP_NAME: str = "Workflow Preview Service"
    APP_VERSION: str = "1.0.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CORS Settings
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:8080"

    # Storage Settings
    STORAGE_MODE: str = "local"  # local or s3
    LOCAL_STORAGE_PATH: str = "./storage/previews"
    LOCAL_PUBLIC_URL: str = ""  # defaults to the file-serving route below API_V1_PREFIX

    S3_BUCKET: str = "sim-studio-previews"
    S3_REGION: Optional[str] = None
    S3_ENDPOINT_URL: Optional[str] = None
    S3_PUBLIC_URL: str = ""  # defaults to https://{bucket}.s3.amazonaws.com
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""

    # Preview Settings
    PREVIEW_CACHE_CONTROL: str = "max-age=31536000"  # one year
    PREVIEW_ACL: str = "public-read"
    PREVIEW_DEFAULT_SELECTOR: str = ".react-flow"
    PREVIEW_DEFAULT_PADDING: int = 32
    PREVIEW_DEFAULT_SCALE: float = 1.5
    PREVIEW_DEFAULT_FORMAT: str = "webp"
    PREVIEW_DEFAULT_QUALITY: int = 80
    PREVIEW_DEFAULT_WIDTH: int = 1200
    PREVIEW_DEFAULT_HEIGHT: int = 630
    PREVIEW_MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Headless browser (server-side capture)
    BROWSER_HEADLESS: bool = True
    CAPTURE_TIMEOUT_MS: int = 30000
    CAPTURE_ALLOWED_HOSTS: str = ""  # comma-separated; empty allows any host

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or text

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def is_local_storage(self) -> bool:
        return self.STORAGE_MODE.lower() == "local"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse ALLOWED_ORIGINS string into a list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def capture_allowed_hosts_list(self) -> list[str]:
        """Parse CAPTURE_ALLOWED_HOSTS string into a list of lowercase host names."""
        return [
            host.strip().lower()
            for host in self.CAPTURE_ALLOWED_HOSTS.split(",")
            if host.strip()
        ]

    @property
    def local_public_url(self) -> str:
        """Base URL under which locally stored previews are reachable."""
        if self.LOCAL_PUBLIC_URL:
            return self.LOCAL_PUBLIC_URL.rstrip("/")
        return f"{self.API_V1_PREFIX}/workflow-preview/files"

    @property
    def s3_public_url(self) -> str:
        """Base URL under which uploaded S3 objects are publicly reachable."""
        if self.S3_PUBLIC_URL:
            return self.S3_PUBLIC_URL.rstrip("/")
        return f"https://{self.S3_BUCKET}.s3.amazonaws.com"

    def validate_storage(self) -> None:
        """Validate the storage configuration before the app starts serving.

        Raises:
            RuntimeError: If STORAGE_MODE is unknown, or production S3 mode has no bucket
        """
        mode = self.STORAGE_MODE.lower()
        if mode not in ("local", "s3"):
            raise RuntimeError(
                f"CRITICAL: STORAGE_MODE must be 'local' or 's3', got '{self.STORAGE_MODE}'."
            )
        if self.is_production and mode == "s3" and not self.S3_BUCKET:
            raise RuntimeError(
                "CRITICAL: S3_BUCKET environment variable must be set in production."
            )

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings.

    Uses caching to ensure settings are loaded only once.

    Returns:
        Settings object with all configuration values
    """
    return Settings()
