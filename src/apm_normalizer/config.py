"""Agent configuration management using Pydantic Settings.

This module defines the `Settings` class, which loads the normalization
parameters from environment variables and a `.env` file: the four source
context line counters, the request body capture switch and size limit, the
project root used for relative filenames, and the logging level.

The `get_settings` function provides a cached, singleton instance of the
configuration, ensuring consistent settings throughout the agent.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict as _SettingsConfigDict

from .models.records import SourceLinePolicy

DEFAULT_MAX_HTTP_BODY_CHARS = 2048


class Settings(BaseSettings):
    """Defines all normalization configuration parameters.

    Values come from environment variables or a `.env` file. The source line
    counters are split by frame class (error vs span) and frame origin
    (application vs library); `source_line_policy` bundles them for the
    call-site normalizer.
    """

    model_config = _SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # ---------------- Source context -----------------
    SOURCE_LINES_ERROR_APP_FRAMES: int = Field(
        default=5, ge=0, description="Lines of source context for application frames of errors"
    )
    SOURCE_LINES_ERROR_LIBRARY_FRAMES: int = Field(
        default=5, ge=0, description="Lines of source context for library frames of errors"
    )
    SOURCE_LINES_SPAN_APP_FRAMES: int = Field(
        default=0, ge=0, description="Lines of source context for application frames of spans"
    )
    SOURCE_LINES_SPAN_LIBRARY_FRAMES: int = Field(
        default=0, ge=0, description="Lines of source context for library frames of spans"
    )
    SOURCE_CACHE_ENABLED: bool = Field(
        default=True,
        description="Keep a process-wide read-through cache of source file lines",
    )
    PROJECT_ROOT: Optional[str] = Field(
        default=None,
        description="Base directory for relative frame filenames (defaults to the CWD)",
    )

    # ---------------- HTTP bodies -----------------
    CAPTURE_BODY: bool = Field(
        default=False,
        description="If false, request bodies are replaced with '[REDACTED]'",
    )
    MAX_HTTP_BODY_CHARS: int = Field(
        default=DEFAULT_MAX_HTTP_BODY_CHARS,
        gt=0,
        description="Maximum characters of a captured request body (longer bodies are sliced)",
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    @field_validator("PROJECT_ROOT", mode="before")
    @classmethod
    def normalize_project_root(cls, v: Any) -> Optional[str]:
        """Trim whitespace and normalize blank -> None for the project root."""
        if v is None:
            return None
        if isinstance(v, str):
            trimmed = v.strip()
            return trimmed or None
        return None

    def source_line_policy(self) -> SourceLinePolicy:
        """Bundle the four source line counters into a `SourceLinePolicy`."""
        return SourceLinePolicy(
            error_app_frames=self.SOURCE_LINES_ERROR_APP_FRAMES,
            error_library_frames=self.SOURCE_LINES_ERROR_LIBRARY_FRAMES,
            span_app_frames=self.SOURCE_LINES_SPAN_APP_FRAMES,
            span_library_frames=self.SOURCE_LINES_SPAN_LIBRARY_FRAMES,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:  # pragma: no cover - trivial
    """Return a cached, singleton instance of the agent settings."""
    return Settings()
