"""Environment variable loading and validation."""

import os
from typing import Optional

from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./data/birdwatch.db"
DEFAULT_SENDER_NAME = "QuACS Birdwatch"
DEFAULT_ENVIRONMENT = "local"

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class EnvironmentConfig:
    """Secrets and deployment settings read from the environment."""

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int,
        smtp_user: Optional[str] = None,
        smtp_pass: Optional[str] = None,
        smtp_sender_name: Optional[str] = None,
        log_level: Optional[str] = None,
        database_url: Optional[str] = None,
        environment: Optional[str] = None,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_pass = smtp_pass
        self.smtp_sender_name = smtp_sender_name or DEFAULT_SENDER_NAME
        self.log_level = log_level
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.environment = environment or DEFAULT_ENVIRONMENT


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Required:
    - MAILER_HOST: SMTP server hostname
    - MAILER_PORT: SMTP server port (1-65535)

    Optional:
    - MAILER_USER / MAILER_PASS: SMTP credentials (both or neither); MAILER_USER
      is also the sender address
    - MAILER_SENDER_NAME: Display name for the sender (default "QuACS Birdwatch")
    - LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL
    - DATABASE_URL: SQLite SQLAlchemy URL (default sqlite:///./data/birdwatch.db)
    - ENVIRONMENT: Deployment name stamped on every log record (default "local")

    Raises:
        ConfigurationError: Listing every missing or invalid variable
    """
    errors = []

    smtp_host = os.getenv("MAILER_HOST")
    smtp_port_str = os.getenv("MAILER_PORT")
    smtp_user = os.getenv("MAILER_USER") or None
    smtp_pass = os.getenv("MAILER_PASS") or None
    smtp_sender_name = os.getenv("MAILER_SENDER_NAME")
    log_level = os.getenv("LOG_LEVEL")
    database_url = os.getenv("DATABASE_URL")
    environment = os.getenv("ENVIRONMENT")

    if not smtp_host:
        errors.append("Missing required environment variable: MAILER_HOST")

    smtp_port = None
    if not smtp_port_str:
        errors.append("Missing required environment variable: MAILER_PORT")
    else:
        try:
            smtp_port = int(smtp_port_str)
        except ValueError:
            errors.append(f"Invalid MAILER_PORT: '{smtp_port_str}'. Must be a valid integer.")
        else:
            if not 1 <= smtp_port <= 65535:
                errors.append(f"Invalid MAILER_PORT: {smtp_port}. Must be between 1 and 65535.")

    if bool(smtp_user) != bool(smtp_pass):
        errors.append("MAILER_USER and MAILER_PASS must be set together for authentication.")

    if log_level and log_level.upper() not in _VALID_LOG_LEVELS:
        errors.append(
            f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(_VALID_LOG_LEVELS)}"
        )

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your mail server settings",
                "Verify MAILER_PORT is a number between 1 and 65535",
            ],
        )

    return EnvironmentConfig(
        smtp_host=smtp_host,
        smtp_port=smtp_port,
        smtp_user=smtp_user,
        smtp_pass=smtp_pass,
        smtp_sender_name=smtp_sender_name,
        log_level=log_level.upper() if log_level else None,
        database_url=database_url,
        environment=environment,
    )
