"""
Pydantic v2 configuration models for KBMirror.

- HTTP client settings (timeouts, User-Agent, retry policy)
- Output layout (destination directory, file names, content extension)
- Top-level MirrorConfig as single source of truth

All models use extra="forbid" for strict validation. Environment variables
and CLI overrides follow: file < env < CLI precedence.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import ClassVar, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HttpSettings(BaseModel):
    """HTTP client configuration."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    timeout_connect_s: float = Field(default=10.0, description="Connection timeout in seconds")
    timeout_read_s: float = Field(default=60.0, description="Read timeout in seconds")
    user_agent: Optional[str] = Field(
        default=None,
        description="Fixed User-Agent; a random desktop browser UA is used when unset",
    )
    max_attempts: int = Field(default=3, description="Attempts per request, including the first")
    backoff_base_s: float = Field(default=0.5, description="Initial backoff in seconds")
    backoff_max_s: float = Field(default=8.0, description="Backoff cap in seconds")
    retry_statuses: List[int] = Field(
        default=[429, 500, 502, 503, 504],
        description="HTTP status codes that trigger a retry",
    )

    @field_validator("max_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_attempts must be >= 1")
        return v

    @field_validator("timeout_connect_s", "timeout_read_s")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be > 0")
        return v

    @field_validator("backoff_base_s", "backoff_max_s")
    @classmethod
    def validate_backoff(cls, v: float) -> float:
        if v < 0:
            raise ValueError("backoff values must be >= 0")
        return v


class MirrorConfig(BaseModel):
    """
    Single source of truth for a mirroring run.

    Loaded from file (YAML/JSON), overlaid with environment variables,
    and finally overridden by CLI arguments. Precedence: file < env < CLI.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid", validate_assignment=True)

    dist_dir: Path = Field(default=Path("download"), description="Directory books are mirrored into")
    ignore_images: bool = Field(
        default=False, description="Keep remote image links instead of downloading them"
    )
    content_extension: str = Field(default=".md", description="Suffix for article files")
    progress_file: str = Field(default="progress.jsonl", description="Progress log file name")
    summary_file: str = Field(default="SUMMARY.md", description="Table-of-contents file name")
    api_base: str = Field(
        default="https://www.yuque.com/api/docs",
        description="Base URL of the article content API",
    )
    http: HttpSettings = Field(default_factory=HttpSettings, description="HTTP client settings")

    @field_validator("content_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        if not v.startswith(".") or "/" in v:
            raise ValueError("content_extension must start with '.' and contain no '/'")
        return v

    @field_validator("progress_file", "summary_file")
    @classmethod
    def validate_file_name(cls, v: str) -> str:
        if not v or "/" in v or "\\" in v:
            raise ValueError("file names must be non-empty and contain no path separators")
        return v

    @field_validator("api_base")
    @classmethod
    def validate_api_base(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("api_base must be an http(s) URL")
        return v.rstrip("/")

    def config_hash(self) -> str:
        """Deterministic SHA256 of the normalized config."""

        normalized = json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(normalized.encode()).hexdigest()
