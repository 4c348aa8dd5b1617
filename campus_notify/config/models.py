"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .duration import DurationParseError, parse_duration, validate_duration_range

DEFAULT_RETENTION_DAYS = 30


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class EmailConfig(BaseModel):
    """Email channel settings."""

    enabled: bool = Field(True, description="Attempt email delivery for derived notices")
    use_tls: bool = Field(True, description="Use STARTTLS on non-465 ports")
    timeout_seconds: float = Field(
        30.0, gt=0, le=300, description="SMTP connection timeout in seconds"
    )


class RetentionConfig(BaseModel):
    """Retention sweep settings."""

    retention_days: int = Field(
        DEFAULT_RETENTION_DAYS,
        ge=1,
        le=3650,
        description="Notices older than this many days are deleted by the sweeper",
    )
    sweep_interval: str = Field("24h", description="How often the scheduler runs a sweep")

    # Computed field
    sweep_interval_seconds: Optional[int] = None

    @field_validator("sweep_interval")
    @classmethod
    def validate_sweep_interval(cls, v: str) -> str:
        """Sweep at most every 5 minutes and at least once a week."""
        try:
            validate_duration_range(parse_duration(v), label="Sweep interval")
        except DurationParseError as e:
            raise ValueError(str(e)) from e
        return v

    @model_validator(mode="after")
    def compute_interval_seconds(self):
        self.sweep_interval_seconds = parse_duration(self.sweep_interval)
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object for campus-notify."""

    email: EmailConfig = Field(default_factory=EmailConfig, description="Email settings")
    retention: RetentionConfig = Field(
        default_factory=RetentionConfig, description="Retention sweep settings"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
