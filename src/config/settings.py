# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings: storage root,
feed sources, fingerprint cache, generation gateway, pipeline limits,
retry policy and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# API keys that ship in sample .env files and never authenticate.
_PLACEHOLDER_API_KEYS = frozenset({"test-key", "changeme", "your-api-key"})


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Storage ===
    data_root: Path = Path("./data")

    # === Sources ===
    feed_urls: str = ""
    fetch_timeout_s: float = 30.0
    fetch_max_retries: int = 3
    fetch_retry_base_delay_s: float = 2.0
    fetch_retry_max_delay_s: float = 10.0
    wake_host_suffixes: str = "onrender.com"
    wake_probe_timeout_s: float = 10.0
    wake_grace_s: float = 2.0

    # === Normalization ===
    normalize_max_workers: int = 10

    # === Fingerprint cache ===
    cache_backend: Literal["memory", "redis"] = "memory"
    cache_redis_url: str = "redis://localhost:6379/0"
    cache_key_prefix: str = "newsweaver:processed:"
    cache_ttl_s: int = 30 * 24 * 3600

    # === Generation gateway ===
    llm_provider: str = "google"
    llm_model: str = "gemini-1.5-flash"
    llm_temperature: float = 0.4
    llm_max_tokens: int = 2000
    llm_timeout_s: float = 60.0
    google_api_key: str = ""

    # === Pipeline ===
    enrich_max_workers: int = 5
    batch_deadline_s: float = 30 * 60

    # === Postprocessing ===
    max_title_length: int = 60
    max_description_length: int = 160
    min_content_length: int = 50
    default_category: str = "General"

    # === Retry / dead-letter ===
    retry_max_attempts: int = 3
    retry_delay_s: float = 300.0
    retry_cycle_interval_s: float = 300.0

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator(
        "normalize_max_workers", "enrich_max_workers", "retry_max_attempts"
    )
    @classmethod
    def validate_positive(cls, v: int, info) -> int:  # noqa: N805
        """Worker pools and retry budgets need at least one slot."""
        if v < 1:
            raise ValueError(f"{info.field_name} must be >= 1")
        return v

    @field_validator("max_title_length", "max_description_length")
    @classmethod
    def validate_length_limit(cls, v: int, info) -> int:  # noqa: N805
        """Truncation appends a 3-char ellipsis, so limits must exceed it."""
        if v <= 3:
            raise ValueError(f"{info.field_name} must be > 3")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.cache_backend == "redis" and not self.cache_redis_url:
            errors.append("CACHE_REDIS_URL must be set when CACHE_BACKEND=redis")

        if self.fetch_retry_max_delay_s < self.fetch_retry_base_delay_s:
            errors.append(
                "FETCH_RETRY_MAX_DELAY_S must be >= FETCH_RETRY_BASE_DELAY_S"
            )

        if self.batch_deadline_s <= 0:
            errors.append("BATCH_DEADLINE_S must be positive")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def feed_urls_list(self) -> list[str]:
        """Parse comma-separated feed URLs."""
        return [u.strip() for u in self.feed_urls.split(",") if u.strip()]

    @property
    def wake_host_suffixes_list(self) -> list[str]:
        """Parse comma-separated host suffixes that need a wake-up probe."""
        return [
            s.strip().lower() for s in self.wake_host_suffixes.split(",") if s.strip()
        ]

    @property
    def has_generation_credentials(self) -> bool:
        """Whether a usable gateway API key is configured."""
        key = self.google_api_key.strip()
        return bool(key) and key not in _PLACEHOLDER_API_KEYS


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or CLI flags).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
