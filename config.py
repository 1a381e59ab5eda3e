"""
Configuration loading for Site Inspector.

Reads settings from environment variables (optionally via a .env file).
Provider credentials are validated once, when settings are loaded or when
a client is constructed, never per request.
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10 MiB


class ConfigurationError(ValueError):
    """Raised when a required setting or credential is missing."""
    pass


@dataclass(frozen=True)
class Settings:
    """Process-wide, read-only configuration."""
    openweather_api_key: str | None = None
    google_maps_api_key: str | None = None
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o"
    openai_report_model: str = "gpt-4-turbo"
    storage_root: str = "storage"
    storage_public_url: str | None = None
    photo_bucket: str = "photos"
    http_timeout: float = 10.0
    http_max_retries: int = 3
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES


def require(name: str, value: str | None) -> str:
    """
    Return a credential or raise if it is missing.

    Args:
        name: Environment variable name (used in the error message).
        value: The configured value.

    Raises:
        ConfigurationError: If the value is empty or None.
    """
    if not value:
        raise ConfigurationError(
            f"{name} environment variable is required. "
            "Please set it in your .env file."
        )
    return value


def load_settings(
    require_enrichment: bool = True,
    require_analysis: bool = False,
) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        require_enrichment: Fail if weather/geocoding keys are missing.
        require_analysis: Fail if the OpenAI key is missing.

    Returns:
        Populated Settings instance.

    Raises:
        ConfigurationError: If a required credential is missing.
    """
    settings = Settings(
        openweather_api_key=os.getenv("OPENWEATHER_API_KEY"),
        google_maps_api_key=os.getenv("GOOGLE_MAPS_API_KEY"),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
        openai_report_model=os.getenv("OPENAI_REPORT_MODEL", "gpt-4-turbo"),
        storage_root=os.getenv("STORAGE_ROOT", "storage"),
        storage_public_url=os.getenv("STORAGE_PUBLIC_URL"),
        photo_bucket=os.getenv("PHOTO_BUCKET", "photos"),
        http_timeout=float(os.getenv("HTTP_TIMEOUT", "10")),
        http_max_retries=int(os.getenv("HTTP_MAX_RETRIES", "3")),
        max_upload_bytes=int(
            os.getenv("MAX_UPLOAD_BYTES", str(DEFAULT_MAX_UPLOAD_BYTES))
        ),
    )

    if require_enrichment:
        require("OPENWEATHER_API_KEY", settings.openweather_api_key)
        require("GOOGLE_MAPS_API_KEY", settings.google_maps_api_key)

    if require_analysis:
        require("OPENAI_API_KEY", settings.openai_api_key)

    logger.debug(
        f"Settings loaded (storage_root={settings.storage_root}, "
        f"bucket={settings.photo_bucket}, timeout={settings.http_timeout}s)"
    )
    return settings
