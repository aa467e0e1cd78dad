"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .duration import DurationParseError, parse_duration, validate_duration_range

DEFAULT_LISTING_URL = "https://api.github.com/repos/quacs/quacs-data/contents/semester_data"
DEFAULT_DATA_URL_TEMPLATE = (
    "https://raw.githubusercontent.com/quacs/quacs-data/master/{path}/courses.json"
)


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


class CatalogConfig(BaseModel):
    """Where and how the course catalog is fetched."""

    listing_url: str = Field(
        DEFAULT_LISTING_URL,
        description="Directory listing of catalog releases; the last entry is current",
    )
    data_url_template: str = Field(
        DEFAULT_DATA_URL_TEMPLATE,
        description="URL of a release's course data, with a {path} placeholder",
    )
    http_request_timeout: int = Field(
        30, ge=5, le=300, description="Request timeout for catalog calls (seconds)"
    )
    user_agent: str = Field(
        "Birdwatch/1.0", min_length=1, description="User-Agent string for HTTP requests"
    )

    @field_validator("listing_url", "user_agent")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Field cannot be empty or whitespace-only")
        return stripped

    @field_validator("data_url_template")
    @classmethod
    def require_path_placeholder(cls, v: str) -> str:
        v = v.strip()
        if "{path}" not in v:
            raise ValueError("data_url_template must contain a {path} placeholder")
        return v


class EmailConfig(BaseModel):
    """Email delivery settings."""

    use_tls: bool = Field(True, description="Use STARTTLS (ignored on port 465, which is implicit TLS)")
    smtp_timeout: int = Field(30, ge=1, le=300, description="SMTP socket timeout (seconds)")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(LogFormat.KEY_VALUE, description="Log output format (json or key-value)")

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object for Birdwatch."""

    scan_interval: str = Field("30m", description="How often the catalog is rescanned")
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Computed from scan_interval
    scan_interval_seconds: Optional[int] = None

    @field_validator("scan_interval")
    @classmethod
    def validate_scan_interval(cls, v: str) -> str:
        try:
            validate_duration_range(parse_duration(v))
        except DurationParseError as e:
            raise ValueError(str(e)) from e
        return v

    @model_validator(mode="after")
    def compute_interval_seconds(self):
        self.scan_interval_seconds = parse_duration(self.scan_interval)
        return self
