import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _require_env(key: str) -> str:
    """Get required environment variable or raise error."""
    value = os.getenv(key)
    if not value:
        raise ValueError(f"{key} environment variable is required")
    return value


def _env_bool(key: str, default: str) -> bool:
    return os.getenv(key, default).lower() in ("true", "1", "yes")


class Settings:
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
    DATABASE_URL: str = _require_env("DATABASE_URL")
    ENCRYPTION_KEY: str = os.getenv("ENCRYPTION_KEY", "dev-encryption-key-32bytes!")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_EXPIRATION_HOURS: int = int(os.getenv("JWT_EXPIRATION_HOURS", "24"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Server settings
    DEFAULT_PORT: int = int(os.getenv("PORT", "8767"))
    DEFAULT_HOST: str = os.getenv("HOST", "127.0.0.1")

    # Video provider endpoints
    OPENAI_API_BASE: str = os.getenv("OPENAI_API_BASE", "https://api.openai.com/v1")
    WAVESPEED_API_BASE: str = os.getenv("WAVESPEED_API_BASE", "https://api.wavespeed.ai/api/v3")
    PROVIDER_TIMEOUT_SECONDS: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "60"))

    # Status polling (5s x 120 = 10 minutes)
    VIDEO_POLL_INTERVAL_SECONDS: float = float(os.getenv("VIDEO_POLL_INTERVAL_SECONDS", "5"))
    VIDEO_POLL_MAX_ATTEMPTS: int = int(os.getenv("VIDEO_POLL_MAX_ATTEMPTS", "120"))
    VIDEO_POLL_TIMEOUT_IS_TERMINAL: bool = _env_bool("VIDEO_POLL_TIMEOUT_IS_TERMINAL", "false")

    # S3-compatible blob storage (Cloudflare R2, MinIO, AWS S3)
    BLOB_ENDPOINT_URL: str = os.getenv("BLOB_ENDPOINT_URL", "")
    BLOB_BUCKET: str = os.getenv("BLOB_BUCKET", "")
    BLOB_ACCESS_KEY_ID: str = os.getenv("BLOB_ACCESS_KEY_ID", "")
    BLOB_SECRET_ACCESS_KEY: str = os.getenv("BLOB_SECRET_ACCESS_KEY", "")
    BLOB_REGION: str = os.getenv("BLOB_REGION", "auto")


settings = Settings()


@dataclass(frozen=True)
class VideoConfig:
    """Video generation behaviour, passed explicitly to services and the poller."""
    openai_api_base: str = "https://api.openai.com/v1"
    wavespeed_api_base: str = "https://api.wavespeed.ai/api/v3"
    provider_timeout_seconds: float = 60.0

    max_prompt_length: int = 4000
    default_aspect_ratio: str = "16:9"
    fallback_model: str = "sora-2"
    # Sora only accepts these clip lengths; anything else falls back to the provider default
    valid_durations: tuple = (4, 8, 12)

    poll_interval_seconds: float = 5.0
    poll_max_attempts: int = 120
    mark_timeout_as_error: bool = False

    blob_endpoint_url: Optional[str] = None
    blob_bucket: Optional[str] = None
    blob_access_key_id: Optional[str] = None
    blob_secret_access_key: Optional[str] = None
    blob_region: str = "auto"

    @classmethod
    def from_settings(cls, s: Settings) -> "VideoConfig":
        return cls(
            openai_api_base=s.OPENAI_API_BASE,
            wavespeed_api_base=s.WAVESPEED_API_BASE,
            provider_timeout_seconds=s.PROVIDER_TIMEOUT_SECONDS,
            poll_interval_seconds=s.VIDEO_POLL_INTERVAL_SECONDS,
            poll_max_attempts=s.VIDEO_POLL_MAX_ATTEMPTS,
            mark_timeout_as_error=s.VIDEO_POLL_TIMEOUT_IS_TERMINAL,
            blob_endpoint_url=s.BLOB_ENDPOINT_URL or None,
            blob_bucket=s.BLOB_BUCKET or None,
            blob_access_key_id=s.BLOB_ACCESS_KEY_ID or None,
            blob_secret_access_key=s.BLOB_SECRET_ACCESS_KEY or None,
            blob_region=s.BLOB_REGION,
        )

    @property
    def blob_storage_enabled(self) -> bool:
        return bool(self.blob_bucket)
