"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from expiry_notifier.domain.models import ContactTier

from .duration import DurationParseError, parse_duration, validate_duration_range

DEFAULT_TRIGGER_DAYS = [90, 60, 30, 15, 7, 1]


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


class TierBreakpoint(BaseModel):
    """Lowest days_remaining value at which a contact tier applies."""

    tier: ContactTier = Field(..., description="Contact slot to use")
    min_days: int = Field(..., ge=0, description="Applies when days_remaining >= min_days")


def _default_breakpoints() -> List[TierBreakpoint]:
    return [
        TierBreakpoint(tier=ContactTier.ALERT3, min_days=60),
        TierBreakpoint(tier=ContactTier.ALERT2, min_days=30),
        TierBreakpoint(tier=ContactTier.ALERT1, min_days=10),
    ]


class NotificationsConfig(BaseModel):
    """Expiry window, trigger days, and contact tier breakpoints.

    trigger_days decides *when* a notification goes out; tier_breakpoints
    decides *who* receives it. The two tables are independent.
    """

    lookahead_days: int = Field(90, ge=1, le=366, description="Expiry lookahead window")
    trigger_days: List[int] = Field(
        default_factory=lambda: list(DEFAULT_TRIGGER_DAYS),
        description="Exact days_remaining values that trigger a notification",
    )
    urgent_threshold_days: int = Field(
        30, ge=0, description="Messages are flagged urgent at or below this many days"
    )
    tier_breakpoints: List[TierBreakpoint] = Field(
        default_factory=_default_breakpoints,
        description="Contact tiers evaluated from the highest min_days down",
    )
    fallback_tier: ContactTier = Field(
        ContactTier.ESCALATION, description="Tier used below every breakpoint"
    )

    @field_validator("trigger_days")
    @classmethod
    def normalize_trigger_days(cls, v: List[int]) -> List[int]:
        """Sort trigger days descending and reject duplicates or non-positive days."""
        if not v:
            raise ValueError("trigger_days must contain at least one day")
        if len(set(v)) != len(v):
            raise ValueError("trigger_days contains duplicate values")
        for day in v:
            if day < 1:
                raise ValueError(f"trigger_days values must be positive, got: {day}")
        return sorted(v, reverse=True)

    @field_validator("tier_breakpoints")
    @classmethod
    def sort_breakpoints(cls, v: List[TierBreakpoint]) -> List[TierBreakpoint]:
        """Order breakpoints from the highest threshold to the lowest."""
        return sorted(v, key=lambda bp: bp.min_days, reverse=True)

    @model_validator(mode="after")
    def validate_tables(self):
        """Check trigger days fit the window and breakpoints are unambiguous."""
        out_of_window = [d for d in self.trigger_days if d > self.lookahead_days]
        if out_of_window:
            raise ValueError(
                f"trigger_days outside the {self.lookahead_days}-day lookahead window: "
                f"{', '.join(str(d) for d in out_of_window)}"
            )

        tiers = [bp.tier for bp in self.tier_breakpoints]
        if len(set(tiers)) != len(tiers):
            raise ValueError("tier_breakpoints lists the same tier more than once")
        if self.fallback_tier in tiers:
            raise ValueError(
                f"fallback_tier '{ContactTier(self.fallback_tier).value}' "
                "cannot also appear in tier_breakpoints"
            )

        thresholds = [bp.min_days for bp in self.tier_breakpoints]
        if len(set(thresholds)) != len(thresholds):
            raise ValueError("tier_breakpoints min_days values must be distinct")

        return self


class EmailConfig(BaseModel):
    """Email delivery settings."""

    use_tls: bool = Field(True, description="Use STARTTLS when the port is not 465")
    max_retries: int = Field(
        2, ge=0, le=10, description="Number of retry attempts per recipient"
    )
    retry_backoff_multiplier: float = Field(
        2.0, ge=1.0, le=5.0, description="Exponential backoff multiplier for retries"
    )
    retry_initial_delay: float = Field(
        5, ge=0, le=60, description="Initial retry delay in seconds"
    )
    send_timeout_seconds: int = Field(
        30, ge=1, le=300, description="SMTP socket timeout for a single send"
    )
    subject_prefix: str = Field("", description="Prepended to every subject line")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class ApiConfig(BaseModel):
    """HTTP server settings."""

    host: str = Field("127.0.0.1", min_length=1)
    port: int = Field(8000, ge=1, le=65535)
    history_limit: int = Field(100, ge=1, le=1000, description="Rows returned by the history endpoint")


class AppConfig(BaseModel):
    """Root configuration object for the Expiry Notifier."""

    check_interval: str = Field("24h", description="Interval between scheduled checks")
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    email: EmailConfig = Field(default_factory=EmailConfig, description="Email settings")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    api: ApiConfig = Field(default_factory=ApiConfig, description="HTTP API settings")

    # Computed field
    check_interval_seconds: Optional[int] = None

    @field_validator("check_interval")
    @classmethod
    def validate_check_interval(cls, v: str) -> str:
        """Validate and parse the check interval."""
        try:
            seconds = parse_duration(v)
            validate_duration_range(seconds)
            return v
        except DurationParseError as e:
            raise ValueError(str(e)) from e

    @model_validator(mode="after")
    def compute_fields(self):
        """Compute derived fields."""
        self.check_interval_seconds = parse_duration(self.check_interval)
        return self
