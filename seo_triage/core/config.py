"""
Configuration system with environment-based settings.
Uses pydantic-settings for validation and type safety.

Every tunable constant of the triage engine lives here so tests can exercise
boundary behavior by constructing a Settings instance directly.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TRIAGE_",
        case_sensitive=True,
        frozen=True,
    )

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    # Rules
    RULES_DIR: Path = Path(__file__).parent.parent / "rules" / "definitions"

    # Classification
    PRIORITY_CRITERIA_THRESHOLD: int = Field(default=2, ge=1, le=4)

    # Context-aware threshold (continuous, same scale as the criteria count)
    CONTEXT_BASE_THRESHOLD: float = 2.0
    CONTEXT_MIN_THRESHOLD: float = 1.0
    CONTEXT_MAX_THRESHOLD: float = 3.0

    # Normalization
    ISSUE_KEY_MAX_LENGTH: int = Field(default=100, gt=0)
    NORMALIZED_TEXT_MAX_LENGTH: int = Field(default=50, gt=0)

    # Template detection
    TEMPLATE_MIN_PAGES: int = Field(default=3, ge=1)
    TEMPLATE_SIMILARITY_THRESHOLD: float = Field(default=0.7, ge=0.0, le=1.0)
    TEMPLATE_EFFICIENT_MIN_PAGES: int = Field(default=5, ge=1)
    LONG_SEGMENT_LENGTH: int = Field(default=20, gt=0)

    # Effort refinement (score scale: low=1, medium=2, high=3)
    EFFORT_HIGH_CUTOFF: float = 2.5
    EFFORT_MEDIUM_CUTOFF: float = 1.5

    # Severity escalation for non-template groups
    ESCALATE_MEDIUM_AT_PAGES: int = Field(default=10, ge=1)
    ESCALATE_LOW_AT_PAGES: int = Field(default=5, ge=1)

    # Priority scoring
    TEMPLATE_PAGE_IMPACT_FACTOR: float = Field(default=2.0, gt=0.0)
    INDIVIDUAL_PAGE_IMPACT_CAP: int = Field(default=5, ge=1)

    # Reporting
    REPORT_TOP_N: int = Field(default=10, ge=0)
    PRIORITY_RATIO_MIN: float = Field(default=0.05, ge=0.0, le=1.0)
    PRIORITY_RATIO_MAX: float = Field(default=0.3, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def check_ordering(self) -> "Settings":
        if self.EFFORT_MEDIUM_CUTOFF >= self.EFFORT_HIGH_CUTOFF:
            raise ValueError("EFFORT_MEDIUM_CUTOFF must be below EFFORT_HIGH_CUTOFF")
        if not self.CONTEXT_MIN_THRESHOLD <= self.CONTEXT_BASE_THRESHOLD <= self.CONTEXT_MAX_THRESHOLD:
            raise ValueError("CONTEXT_BASE_THRESHOLD must lie within the min/max clamp")
        if self.PRIORITY_RATIO_MIN > self.PRIORITY_RATIO_MAX:
            raise ValueError("PRIORITY_RATIO_MIN must not exceed PRIORITY_RATIO_MAX")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance - created once per process."""
    return Settings()
