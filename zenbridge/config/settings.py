"""
Zen Bridge Settings
===================

Runtime settings, read from ``ZENBRIDGE_*`` environment variables (nested
groups use ``__``, e.g. ``ZENBRIDGE_DATABASE__PATH``) and an optional
``.env`` file. Anything not set falls back to the defaults below.

The ``feed`` group only seeds the stored RSS configuration on ``init-db``;
after that the stored row is authoritative.
"""

from enum import Enum
from pathlib import Path
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..utils.exceptions import ConfigurationError, ErrorCode


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ProcessingSettings(BaseModel):
    compliance_delay_seconds: float = Field(
        default=1.0, ge=0.0, le=60.0,
        description="Seconds an article stays in 'processing' before it is classified",
    )
    watch_interval_minutes: Optional[int] = Field(
        default=None, ge=1, le=1440,
        description="Replaces the stored check interval for 'watch' when set",
    )


class LimitsSettings(BaseModel):
    request_timeout: int = Field(default=30, ge=5, le=300, description="Source feed download timeout, seconds")
    user_agent: str = Field(default="ZenBridge/1.0 (RSS Reader)")


class DatabaseSettings(BaseModel):
    path: str = Field(default="data/zenbridge.db", description="SQLite file")
    pool_size: int = Field(default=5, ge=1, le=20)


class LoggingSettings(BaseModel):
    level: LogLevel = LogLevel.INFO
    file_path: Optional[str] = Field(
        default="logs/zenbridge.log",
        description="JSON log file; empty disables file logging",
    )
    structured_logging: bool = Field(default=False, description="JSON on the console as well")
    console_logging: bool = True


class FeedSettings(BaseModel):
    """Values copied into the RSS configuration by ``init-db``."""

    source_url: str = "https://neiromantra.ru/12583-feed.xml"
    title: str = "RSS to Zen Bridge"
    description: str = "Automated RSS to Yandex Zen publishing service"
    site_link: str = "https://neiromantra.ru"
    language: str = "ru"
    check_interval: int = Field(default=30, ge=1, le=1440, description="Minutes between sync cycles")

    @field_validator("source_url", "site_link")
    @classmethod
    def require_http(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return value


class ZenBridgeSettings(BaseSettings):
    """All settings groups plus application-level switches."""

    model_config = SettingsConfigDict(
        env_prefix="ZENBRIDGE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Zen Bridge"
    version: str = "1.0.0"
    debug: bool = Field(default=False, description="Forces DEBUG logging")

    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)
    limits: LimitsSettings = Field(default_factory=LimitsSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    feed: FeedSettings = Field(default_factory=FeedSettings)

    def _writable_parents(self) -> List[Path]:
        parents = [Path(self.database.path).parent]
        if self.logging.file_path:
            parents.append(Path(self.logging.file_path).parent)
        return parents

    def validate_configuration(self) -> None:
        """Create the database and log directories, failing if either cannot be made."""
        problems = []
        for directory in self._writable_parents():
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                problems.append(f"{directory}: {e}")

        if problems:
            raise ConfigurationError(
                "Cannot prepare directories: " + "; ".join(problems),
                error_code=ErrorCode.CONFIG_INVALID,
            )

    def get_effective_log_level(self) -> str:
        return LogLevel.DEBUG.value if self.debug else self.logging.level.value


def load_settings() -> ZenBridgeSettings:
    """Read ``.env`` into the environment, build settings and prepare directories.

    Raises:
        ConfigurationError: A value fails validation or a directory cannot be created
    """
    from dotenv import load_dotenv

    load_dotenv()

    try:
        settings = ZenBridgeSettings()
    except ValueError as e:
        raise ConfigurationError(f"Invalid settings: {e}", error_code=ErrorCode.CONFIG_INVALID) from e

    settings.validate_configuration()
    return settings


_settings: Optional[ZenBridgeSettings] = None


def get_settings(reload: bool = False) -> ZenBridgeSettings:
    """Process-wide settings, loaded on first use."""
    global _settings

    if reload or _settings is None:
        _settings = load_settings()
    return _settings
