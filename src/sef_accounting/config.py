"""Settings for the accounting core, read from ``SEF_*`` environment variables.

A ``.env`` file in the working directory is honoured as well. Values are
validated once and cached; tests reset the cache with
``get_settings.cache_clear()``.
"""

from decimal import Decimal
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

IN_MEMORY = ":memory:"


class Environment(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Runtime configuration.

    Examples:
        SEF_SQLITE_PATH=/var/lib/sef/accounting.db
        SEF_LOCK_TIMEOUT_SECONDS=2.5
        SEF_DEFAULT_PROPORTIONAL_DEDUCTION_RATE=62.5
        SEF_ENVIRONMENT=production
    """

    model_config = SettingsConfigDict(
        env_prefix="SEF_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "SEF Accounting Core"
    app_version: str = "0.1.0"
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False

    sqlite_path: Path = Field(
        default=Path("sef_accounting.db"),
        description="SQLite database file, or ':memory:'",
    )

    log_level: LogLevel = LogLevel.INFO
    log_format: Literal["json", "console"] | None = Field(
        default=None,
        validate_default=True,
        description="JSON in production, console elsewhere, unless set",
    )
    log_file: Path | None = None

    api_host: str = "127.0.0.1"
    api_port: int = Field(default=8000, ge=1, le=65535)
    api_reload: bool = False

    default_currency: str = Field(default="RSD", min_length=3, max_length=3)
    lock_timeout_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Seconds to wait for a per-entity lock before failing",
    )
    default_proportional_deduction_rate: Decimal = Field(
        default=Decimal("100"),
        ge=0,
        le=100,
        description="Share of input VAT that may be deducted, in percent",
    )

    @field_validator("sqlite_path", mode="after")
    @classmethod
    def expand_sqlite_path(cls, v: Path) -> Path:
        if str(v) == IN_MEMORY:
            return v
        return v.expanduser()

    @field_validator("log_format", mode="after")
    @classmethod
    def default_log_format(cls, v: str | None, info: ValidationInfo) -> str:
        if v is None:
            if info.data.get("environment") == Environment.PRODUCTION:
                return "json"
            return "console"
        return v

    @field_validator("default_currency", mode="after")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING

    @property
    def uses_memory_database(self) -> bool:
        return str(self.sqlite_path) == IN_MEMORY


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings; cleared with ``get_settings.cache_clear()``."""
    return Settings()
