"""Configuration management using Pydantic Settings."""

from __future__ import annotations

import re
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from scanframe.core.errors import ConfigurationError


class LogLevel(str, Enum):
    """Log level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _compile_all(patterns: list[str]) -> list[str]:
    for pattern in patterns:
        try:
            re.compile(pattern)
        except re.error as e:
            raise ValueError(f"Invalid regular expression {pattern!r}: {e}") from e
    return patterns


class RedundancyRule(BaseModel):
    """
    Limits how many URLs matching ``pattern`` the spider will follow.

    ``count`` is decremented by the spider as matching URLs are followed,
    which is why the framework keeps a pristine copy for the reports.
    """
    pattern: str
    count: int = Field(default=1, ge=0)

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        """Make sure the pattern compiles."""
        _compile_all([v])
        return v


class ScopeConfig(BaseModel):
    """Scan scope configuration."""
    include_subdomains: bool = False
    include_patterns: list[str] = Field(default_factory=list)
    exclude_patterns: list[str] = Field(default_factory=list)
    exclude_extensions: list[str] = Field(
        default_factory=lambda: [
            "jpg", "jpeg", "png", "gif", "ico", "svg", "woff", "woff2",
            "ttf", "eot", "mp3", "mp4", "avi", "zip", "gz", "pdf",
        ]
    )
    redundant: list[RedundancyRule] = Field(default_factory=list)
    # 0 means unlimited
    link_count_limit: int = Field(default=0, ge=0)

    @field_validator("include_patterns", "exclude_patterns")
    @classmethod
    def validate_patterns(cls, v: list[str]) -> list[str]:
        """Make sure every pattern compiles."""
        return _compile_all(v)


class HttpConfig(BaseModel):
    """HTTP client configuration."""
    timeout: float = 10.0
    max_concurrency: int = Field(default=20, ge=1)
    follow_redirects: bool = False
    verify_tls: bool = True
    headers: dict[str, str] = Field(default_factory=dict)
    user_agent: str = "ScanFrame/0.3.0"


class SessionConfig(BaseModel):
    """Authenticated session check configuration."""
    login_check_url: Optional[str] = None
    login_check_pattern: Optional[str] = None

    @property
    def enabled(self) -> bool:
        """Whether a login check has been configured."""
        return bool(self.login_check_url and self.login_check_pattern)


class Settings(BaseSettings):
    """Main scan settings."""

    model_config = SettingsConfigDict(
        env_prefix="SCANFRAME_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # General settings
    app_name: str = "ScanFrame"
    debug: bool = False
    log_level: LogLevel = LogLevel.INFO
    log_json: bool = False

    # Target
    url: Optional[str] = None
    restrict_paths: list[str] = Field(default_factory=list)

    # Components to load (names as registered)
    modules: list[str] = Field(default_factory=list)
    plugins: dict[str, dict[str, Any]] = Field(default_factory=dict)
    reports: dict[str, dict[str, Any]] = Field(default_factory=dict)

    # Only report confirmed positives while the scan runs
    only_positives: bool = False

    # Retrain on module-triggered responses
    train: bool = True

    # Regex filters applied by the list_* introspection helpers
    lsmod: list[str] = Field(default_factory=list)
    lsrep: list[str] = Field(default_factory=list)
    lsplug: list[str] = Field(default_factory=list)

    # Seconds between checks while paused
    pause_poll_interval: float = Field(default=1.0, gt=0)

    # Paths
    output_dir: Path = Field(default_factory=lambda: Path.cwd() / "output")

    scope: ScopeConfig = Field(default_factory=ScopeConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        """The scan target must be an absolute HTTP(S) URL."""
        if v is None:
            return v
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Target URL must be absolute http(s), got {v!r}")
        return v

    @field_validator("lsmod", "lsrep", "lsplug")
    @classmethod
    def validate_filters(cls, v: list[str]) -> list[str]:
        """Make sure every filter compiles."""
        return _compile_all(v)

    def link_count_limit_reached(self, count: int) -> bool:
        """Whether ``count`` discovered links exhausts the configured limit."""
        limit = self.scope.link_count_limit
        return bool(limit) and count >= limit

    def ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.output_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from YAML file."""
        import yaml

        if not path.exists():
            return cls()

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Cannot parse {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a mapping at the top level")

        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings in {path}: {e}") from e

    def to_yaml(self, path: Path) -> None:
        """Save settings to YAML file."""
        import yaml

        data = self.model_dump(mode="json")

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load settings from config file or environment."""
    if config_path and config_path.exists():
        return Settings.from_yaml(config_path)
    return Settings()
