# src/config/settings.py - v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for every tunable of a file organization run:
window geometry, merge thresholds, blank page policy, conversion wait,
LLM provider, storage backend and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fileorganizer.core.errors import ErrorKind, FileOrganizationError

BlankPageHandling = Literal["join_previous", "create_blank_group", "discard"]

MIN_WINDOW_SIZE = 2
MAX_WINDOW_SIZE = 100


class ConfigurationError(FileOrganizationError):
    """Raised when configuration is internally inconsistent."""

    kind = ErrorKind.CONFIG


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Comparison windows ===
    window_size: int = 5
    window_overlap: int = 1
    max_concurrent_windows: int = 4

    # === Merge ===
    group_confidence_threshold: int = 3
    adjacency_boundary_threshold: int = 2
    blank_page_handling: BlankPageHandling = "join_previous"
    null_group_resolution_enabled: bool = False

    # === Group confidence / absorption ===
    low_confidence_max: int = 3
    high_confidence_min: int = 4
    low_confidence_page_threshold: int = 3

    # === Duplicate groups ===
    name_similarity_threshold: float = 0.7
    duplicate_sample_size: int = 3

    # === Source conversion wait ===
    transcode_poll_interval_s: float = 5.0
    transcode_timeout_s: float = 120.0

    # === LLM ===
    llm_provider: str = "anthropic"
    llm_model: str = "claude-sonnet-4-20250514"
    llm_temperature: float = 0.0
    llm_max_tokens: int = 4096
    anthropic_api_key: str = ""
    openai_api_key: str = ""

    # === Storage ===
    store_backend: Literal["local", "memory"] = "local"
    output_path: Path = Path("~/.fileorganizer")

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator(
        "group_confidence_threshold",
        "adjacency_boundary_threshold",
        "low_confidence_max",
        "high_confidence_min",
        "low_confidence_page_threshold",
    )
    @classmethod
    def validate_score_bounds(cls, v: int) -> int:  # noqa: N805
        """Confidence and adjacency scores live on the 0-5 scale."""
        if not 0 <= v <= 5:
            raise ValueError("score thresholds must be between 0 and 5")
        return v

    @field_validator("name_similarity_threshold")
    @classmethod
    def validate_similarity(cls, v: float) -> float:  # noqa: N805
        if not 0.0 <= v <= 1.0:
            raise ValueError("name_similarity_threshold must be between 0 and 1")
        return v

    @field_validator("max_concurrent_windows", "duplicate_sample_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if not MIN_WINDOW_SIZE <= self.window_size <= MAX_WINDOW_SIZE:
            errors.append(
                f"WINDOW_SIZE must be between {MIN_WINDOW_SIZE} and {MAX_WINDOW_SIZE}"
            )

        if not 1 <= self.window_overlap < self.window_size:
            errors.append("WINDOW_OVERLAP must be >= 1 and < WINDOW_SIZE")

        if self.low_confidence_max > self.high_confidence_min:
            errors.append("LOW_CONFIDENCE_MAX must be <= HIGH_CONFIDENCE_MIN")

        if self.transcode_poll_interval_s <= 0 or self.transcode_timeout_s <= 0:
            errors.append("Transcode poll interval and timeout must be positive")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def llm_api_key(self) -> str:
        """API key of the configured provider (empty when unknown)."""
        return {
            "anthropic": self.anthropic_api_key,
            "openai": self.openai_api_key,
        }.get(self.llm_provider, "")


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
