"""
Request layer configuration.

Settings are read from ``FASTPRESS_*`` environment variables (or a ``.env``
file) through pydantic-settings. Field names match the environment variable
suffix, e.g. ``FASTPRESS_CSRF_HEADER``.
"""

import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RequestSettings(BaseSettings):
    """
    Names of the reserved fields, headers and session keys used by Request.
    """

    # CSRF
    CSRF_SESSION_KEY: str = Field(
        default="_csrf_token", description="Session key holding the CSRF token"
    )
    CSRF_FORM_FIELD: str = Field(default="_token", description="Form field carrying the CSRF token")
    CSRF_HEADER: str = Field(default="X-CSRF-TOKEN", description="Header carrying the CSRF token")
    CSRF_SAFE_METHODS: List[str] = Field(
        default=["GET", "HEAD", "OPTIONS"],
        description="Transport methods exempt from CSRF verification",
    )

    # Method override
    METHOD_OVERRIDE_HEADER: str = Field(
        default="X-HTTP-Method-Override", description="Header overriding a POST method"
    )
    METHOD_OVERRIDE_FIELD: str = Field(
        default="_method", description="Form field overriding a POST method"
    )

    LOG_LEVEL: str = Field(default="INFO", description="Log level")

    model_config = SettingsConfigDict(
        env_prefix="FASTPRESS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> RequestSettings:
    """Return the process-wide settings, loaded on first use."""
    return RequestSettings()


def configure_logging(settings: Optional[RequestSettings] = None) -> logging.Logger:
    """Apply LOG_LEVEL to the ``fastpress`` package logger and return it."""
    settings = settings or get_settings()
    package_logger = logging.getLogger("fastpress")
    package_logger.setLevel(settings.LOG_LEVEL.upper())
    return package_logger
