"""Configuration settings loaded from .env file."""

from pathlib import Path
from typing import Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

from config.exceptions import InvalidConfigError


class Settings(BaseSettings):
    """Application settings, loaded from .env file.

    With ``auth_mode="cli"`` the Claude Agent SDK authenticates through the
    locally installed Claude Code CLI and no key is needed. ``auth_mode="api_key"``
    requires ``ANTHROPIC_API_KEY``; the check runs before any generation call
    (see ``check_generation_ready``).
    """

    # LLM models, one per pipeline role
    llm_model_planning: str = "claude-sonnet-4-5"   # MilestoneDiscoverer / NarrativePlanner
    llm_model_writing: str = "claude-sonnet-4-5"    # ChapterGenerator / style example
    llm_model_study: str = "claude-haiku-4-5"       # Study section / handbook intro

    # Auth
    auth_mode: str = "cli"
    anthropic_api_key: Optional[str] = None

    # LLM call behaviour
    llm_timeout_seconds: float = 300.0
    llm_max_retries: int = 1

    # Storage
    output_dir: Path = Path("./data/handbooks")
    milestone_cache_dir: Path = Path("./data/milestones")
    concept_dir: Path = Path("./data/concepts")
    sqlite_db_path: Path = Path("./data/handbooks.db")

    # Chapter length
    words_per_minute: int = 165
    chapter_min_words: int = 500
    chapter_max_words: int = 1400
    minutes_per_chapter: float = 5.0
    default_target_minutes: float = 5.0
    min_chapters: int = 8
    max_chapters: int = 18

    # Presentation
    chapter_label: str = "Chapter"
    handbook_language: str = "English"
    link_mode: str = "hash"

    # Concept pages
    sources_count: int = 8

    # Logging
    log_dir: Path = Path("./data/logs")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("auth_mode")
    @classmethod
    def validate_auth_mode(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("cli", "api_key"):
            raise ValueError("auth_mode must be 'cli' or 'api_key'")
        return v

    @field_validator("link_mode")
    @classmethod
    def validate_link_mode(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("hash", "none"):
            raise ValueError("link_mode must be 'hash' or 'none'")
        return v

    @field_validator("llm_max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0 or v > 1:
            raise ValueError("llm_max_retries must be 0 or 1")
        return v

    @field_validator("llm_timeout_seconds", "minutes_per_chapter", "default_target_minutes")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @field_validator("sources_count")
    @classmethod
    def validate_sources_count(cls, v: int) -> int:
        if v < 5 or v > 12:
            raise ValueError("sources_count must be between 5 and 12")
        return v

    @field_validator("words_per_minute")
    @classmethod
    def validate_words_per_minute(cls, v: int) -> int:
        if v < 160 or v > 170:
            raise ValueError("words_per_minute must be between 160 and 170")
        return v

    @field_validator("chapter_min_words", "chapter_max_words", "min_chapters", "max_chapters")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Count must be non-negative")
        return v

    @field_validator("sqlite_db_path", "log_dir")
    @classmethod
    def ensure_parent_dirs(cls, v: Path) -> Path:
        v.parent.mkdir(parents=True, exist_ok=True)
        return v

    @model_validator(mode="after")
    def validate_ranges(self) -> "Settings":
        if self.chapter_min_words >= self.chapter_max_words:
            raise ValueError(
                f"chapter_min_words ({self.chapter_min_words}) must be less than "
                f"chapter_max_words ({self.chapter_max_words})"
            )
        if self.min_chapters > self.max_chapters:
            raise ValueError(
                f"min_chapters ({self.min_chapters}) must not exceed "
                f"max_chapters ({self.max_chapters})"
            )
        return self

    def check_generation_ready(self) -> None:
        """Raise InvalidConfigError if generation cannot authenticate."""
        if self.auth_mode == "api_key" and not (self.anthropic_api_key or "").strip():
            raise InvalidConfigError(
                "ANTHROPIC_API_KEY is required when auth_mode is 'api_key'",
                {"auth_mode": self.auth_mode},
            )


_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
