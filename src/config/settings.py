# src/config/settings.py — v2
"""Typed deployment settings loaded from .env via pydantic-settings.

Covers everything that is not part of the favicon configuration itself:
remote endpoint, cache location, retry/timeout policy, logging and watch
polling. Environment variables use the ``RFG_`` prefix (``RFG_API_KEY``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rfgbuild.core.errors import ConfigurationError

API_KEY_ENV_VAR = "RFG_API_KEY"


class Settings(BaseSettings):
    """Application settings loaded from .env file and RFG_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="RFG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Remote service ===
    api_key: str = ""
    api_url: str = "https://realfavicongenerator.net/api/favicon"
    request_timeout_s: float = 60.0
    max_retries: int = 2
    retry_base_delay_s: float = 1.0

    # === Cache ===
    cache_root: Path = Path("~/.cache/rfgbuild")

    # === Watch ===
    watch_poll_interval_s: float = 0.5

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.request_timeout_s <= 0:
            errors.append("RFG_REQUEST_TIMEOUT_S must be > 0")

        if self.watch_poll_interval_s <= 0:
            errors.append("RFG_WATCH_POLL_INTERVAL_S must be > 0")

        if not self.api_url.lower().startswith(("http://", "https://")):
            errors.append(f"RFG_API_URL must be an http(s) URL, got {self.api_url!r}")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    @property
    def cache_root_path(self) -> Path:
        return self.cache_root.expanduser()


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
