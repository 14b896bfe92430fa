"""
Configuration management using Pydantic Settings
"""
import re
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# config.py is at: backend/reminder/core/config.py
_current_file = Path(__file__).resolve()
_backend_dir = _current_file.parent.parent.parent
_project_root = _backend_dir.parent
ENV_FILE = _project_root / ".env"
if not ENV_FILE.exists():
    ENV_FILE = _backend_dir / ".env"
if ENV_FILE.exists():
    load_dotenv(ENV_FILE, override=False)

ENV_PREFIX = "REMINDER_"

SUPPORTED_EVENT_DRIVERS = ("sql",)
SUPPORTED_SCHEMA_ADAPTERS = ("postgres",)

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration string such as "1h30m", "90s" or "250ms"

    A bare number is read as seconds. A leading "-" yields a negative duration
    so that range checks can report it.
    """
    text = value.strip()
    if not text:
        raise ValueError("empty duration")

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    try:
        return timedelta(seconds=sign * float(text))
    except ValueError:
        pass

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            raise ValueError(f"invalid duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text) or pos == 0:
        raise ValueError(f"invalid duration: {value!r}")
    return timedelta(seconds=sign * total)


def format_duration(value: timedelta) -> str:
    """Render a timedelta back into the compact "1h2m3s" form"""
    seconds = value.total_seconds()
    if seconds == 0:
        return "0s"
    sign = "-" if seconds < 0 else ""
    seconds = abs(seconds)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    out = ""
    if hours:
        out += f"{int(hours)}h"
    if minutes:
        out += f"{int(minutes)}m"
    if secs:
        out += f"{secs:g}s"
    return sign + out


class DatabaseConfig(BaseModel):
    """Connection settings for a PostgreSQL database"""
    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, ge=1, le=65535, description="Database port")
    user: str = Field(default="postgres", description="Database user")
    password: str = Field(default="postgres", description="Database password")
    name: str = Field(default="minder", description="Database name")
    sslmode: str = Field(default="disable", description="libpq sslmode")
    dsn: Optional[str] = Field(
        default=None,
        description="Full SQLAlchemy URL; overrides the individual fields when set"
    )
    pool_size: int = Field(default=5, ge=1, description="Connection pool size")
    max_overflow: int = Field(default=5, ge=0, description="Connection pool overflow")

    @property
    def url(self) -> str:
        """Construct database URL"""
        if self.dsn:
            return self.dsn
        return (
            f"postgresql://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.name}?sslmode={self.sslmode}"
        )


class RecurrenceConfig(BaseModel):
    """How often reminders are sent and which entities qualify"""
    interval: timedelta = Field(default=timedelta(hours=1), description="Tick period")
    batch_size: int = Field(default=100, ge=1, description="Maximum entities fetched per tick")
    min_elapsed: timedelta = Field(
        default=timedelta(hours=1),
        description="Minimum age of the oldest evaluation before an entity is reminded"
    )

    @field_validator("interval", "min_elapsed", mode="before")
    @classmethod
    def parse_go_duration(cls, v):
        """Accept duration strings like "1h" or "30m" besides pydantic's own formats"""
        if isinstance(v, str):
            return parse_duration(v)
        return v

    @field_validator("interval", "min_elapsed")
    @classmethod
    def check_not_negative(cls, v: timedelta, info) -> timedelta:
        if v < timedelta(0):
            raise ValueError(f"{info.field_name} {format_duration(v)} cannot be negative")
        return v


class MetricsConfig(BaseModel):
    """Embedded Prometheus exporter"""
    enabled: bool = Field(default=True, description="Serve /metrics")
    address: str = Field(default="127.0.0.1:9091", description="Bind address (host:port)")
    track_new_entities: bool = Field(
        default=False,
        description="Remember reminded entity ids in memory to feed new_send_delay"
    )


class SQLEventConfig(BaseModel):
    """SQL outbox used as the event bus"""
    connection: DatabaseConfig = Field(default_factory=lambda: DatabaseConfig(name="watermill"))
    schema_adapter: str = Field(default="postgres", description="Outbox table layout")
    auto_initialize_schema: bool = Field(default=True, description="Create outbox tables on first use")

    @field_validator("schema_adapter")
    @classmethod
    def check_schema_adapter(cls, v: str) -> str:
        if v not in SUPPORTED_SCHEMA_ADAPTERS:
            raise ValueError(f"schema adapter {v} is not supported")
        return v


class EventsConfig(BaseModel):
    """Event bus settings"""
    driver: str = Field(default="sql", description="Event driver")
    sql: SQLEventConfig = Field(default_factory=SQLEventConfig)

    @field_validator("driver")
    @classmethod
    def check_driver(cls, v: str) -> str:
        if v not in SUPPORTED_EVENT_DRIVERS:
            raise ValueError(f"{v} is not supported")
        return v


class LoggingSettings(BaseModel):
    """Logging settings"""
    level: str = Field(default="INFO", description="Root logging level")
    format: str = Field(default="json", description="'json' for structured logging, 'text' for plain text")
    module_levels: Optional[str] = Field(
        default=None,
        description='Module-specific log levels (JSON string, e.g., {"reminder.services": "DEBUG"})'
    )
    file_enabled: bool = Field(default=False, description="Enable file logging")
    file_path: str = Field(default="logs/reminder.log", description="Log file path (relative to project root)")
    file_retention: int = Field(default=7, ge=1, description="Number of rotated log files to keep")
    log_sensitive_data: bool = Field(default=False, description="Disable secret masking - NOT RECOMMENDED")


class TracingConfig(BaseModel):
    """OpenTelemetry tracing"""
    enabled: bool = Field(default=False, description="Enable OpenTelemetry tracing")
    service_name: str = Field(default="reminder", description="Service name for tracing")
    exporter: str = Field(default="console", description="Tracing exporter: 'console' or 'otlp'")
    otlp_endpoint: Optional[str] = Field(
        default=None,
        description="OTLP endpoint URL (e.g., http://localhost:4318/v1/traces)"
    )


class Settings(BaseSettings):
    """Reminder settings"""

    app_env: str = Field(default="development", description="Application environment")
    recurrence: RecurrenceConfig = Field(default_factory=RecurrenceConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    events: EventsConfig = Field(default_factory=EventsConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    tracing: TracingConfig = Field(default_factory=TracingConfig)

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
