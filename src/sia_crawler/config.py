"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables
  - Fall back to a .env file
  - Validate types and constraints at startup (bad regexes, bad OIDs)

Only AppSettings is a BaseSettings instance. Sub-settings are plain BaseModel
classes populated via env_nested_delimiter="__", so CRAWL__ANCHOR maps to
crawl.anchor, BUNDLE__OUTPUT maps to bundle.output, etc.

Command-line flags are applied on top by main.apply_overrides().
"""

from __future__ import annotations

import re
import tempfile
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sia_crawler.adapters.extensions import DEFAULT_REQUIRED_POLICY_OID
from sia_crawler.adapters.fetcher import DEFAULT_USER_AGENT

_ENV_FILE = Path(__file__).parent.parent.parent / ".env"

DEFAULT_ANCHOR = "http://http.fpki.gov/fcpca/fcpca.crt"
DEFAULT_EXCLUDES = ["CN=DOD EMAIL CA", "CN=DOD ID SW CA"]
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _default_work_dir() -> Path:
    return Path(tempfile.gettempdir()) / "SIACrawlerCache"


class CrawlSettings(BaseModel):
    """Where the crawl starts and which certificates it keeps."""

    anchor: str = Field(default=DEFAULT_ANCHOR, description="Trust anchor path or URL")
    required_policy_oid: str = Field(default=DEFAULT_REQUIRED_POLICY_OID)
    exclude_subjects: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDES),
        description="Regular expressions searched in the subject DN",
    )

    @field_validator("required_policy_oid")
    @classmethod
    def validate_oid(cls, value: str) -> str:
        value = value.strip()
        if not re.fullmatch(r"\d+(\.\d+)+", value):
            raise ValueError(f"Not a dotted OID: {value!r}")
        return value

    @field_validator("exclude_subjects")
    @classmethod
    def validate_patterns(cls, value: list[str]) -> list[str]:
        for pattern in value:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid exclude pattern {pattern!r}: {e}") from e
        return value


class FetchSettings(BaseModel):
    timeout_seconds: float = Field(default=10, gt=0)
    user_agent: str = Field(default=DEFAULT_USER_AGENT)


class BundleSettings(BaseModel):
    """Bundle destination and the per-run working directory."""

    output: Path = Field(default=Path("./ca_bundle.pem"))
    work_dir: Path = Field(default_factory=_default_work_dir)
    delete_work_dir: bool = Field(default=False)
    archive_certificates: bool = Field(default=True)


class AppSettings(BaseSettings):
    """
    Root application settings.

    Load order (highest priority first):
      1. Command-line flags (applied by main)
      2. Environment variables
      3. .env file
      4. Default values
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    crawl: CrawlSettings = Field(default_factory=CrawlSettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    bundle: BundleSettings = Field(default_factory=BundleSettings)

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {value!r}")
        return level
