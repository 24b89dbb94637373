"""Environment variable loading and validation."""

import os
from typing import Optional

from expiry_notifier.utils.addresses import is_valid_address

from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./data/expiry_notifier.db"
DEFAULT_SENDER_NAME = "Expiry Notifier"
DEFAULT_SMTP_PORT = 587

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


class EnvironmentConfig:
    """Environment variable configuration holder."""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: int = DEFAULT_SMTP_PORT,
        smtp_secure: bool = False,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        smtp_from: Optional[str] = None,
        smtp_sender_name: Optional[str] = None,
        log_level: Optional[str] = None,
        database_url: Optional[str] = None,
        environment: Optional[str] = None,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_secure = smtp_secure
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.smtp_from = smtp_from
        self.smtp_sender_name = smtp_sender_name or DEFAULT_SENDER_NAME
        self.log_level = log_level
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.environment = environment or "development"

    @property
    def smtp_configured(self) -> bool:
        """True when an SMTP host is available for sending."""
        return bool(self.smtp_host)

    @property
    def from_address(self) -> Optional[str]:
        """Envelope sender: SMTP_FROM, falling back to SMTP_USER."""
        return self.smtp_from or self.smtp_user

    @property
    def uses_implicit_tls(self) -> bool:
        """SMTP over SSL from the first byte (SMTP_SECURE or port 465)."""
        return self.smtp_secure or self.smtp_port == 465


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    All variables are optional. SMTP_HOST may be missing at load time;
    sending then fails with SMTPConfigurationError so that the rest of
    the service (queries, history, HTTP) keeps working.

    Variables:
    - SMTP_HOST: SMTP server hostname
    - SMTP_PORT: SMTP server port (1-65535, default 587)
    - SMTP_SECURE: "true" for implicit TLS (SMTP over SSL)
    - SMTP_USER / SMTP_PASSWORD: SMTP authentication (both or neither)
    - SMTP_FROM: sender address (defaults to SMTP_USER)
    - SMTP_SENDER_NAME: display name for the sender
    - DATABASE_URL: SQLAlchemy URL (default: sqlite:///./data/expiry_notifier.db)
    - LOG_LEVEL: override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - ENVIRONMENT: deployment label stamped on every log line

    Raises:
        ConfigurationError: If a provided value is invalid
    """
    errors = []

    smtp_host = _blank_to_none(os.getenv("SMTP_HOST"))
    smtp_port_str = _blank_to_none(os.getenv("SMTP_PORT"))
    smtp_secure_str = os.getenv("SMTP_SECURE", "")
    smtp_user = _blank_to_none(os.getenv("SMTP_USER"))
    smtp_password = _blank_to_none(os.getenv("SMTP_PASSWORD"))
    smtp_from = _blank_to_none(os.getenv("SMTP_FROM"))
    smtp_sender_name = _blank_to_none(os.getenv("SMTP_SENDER_NAME"))
    log_level = _blank_to_none(os.getenv("LOG_LEVEL"))
    database_url = _blank_to_none(os.getenv("DATABASE_URL"))
    environment = _blank_to_none(os.getenv("ENVIRONMENT"))

    smtp_port = DEFAULT_SMTP_PORT
    if smtp_port_str:
        try:
            smtp_port = int(smtp_port_str)
            if smtp_port < 1 or smtp_port > 65535:
                errors.append(
                    f"Invalid SMTP_PORT: {smtp_port}. Must be between 1 and 65535."
                )
        except ValueError:
            errors.append(
                f"Invalid SMTP_PORT: '{smtp_port_str}'. Must be a valid integer."
            )

    smtp_secure = False
    secure_normalized = smtp_secure_str.strip().lower()
    if secure_normalized in _TRUE_VALUES:
        smtp_secure = True
    elif secure_normalized not in _FALSE_VALUES:
        errors.append(
            f"Invalid SMTP_SECURE: '{smtp_secure_str}'. Use true or false."
        )

    if smtp_from and not is_valid_address(smtp_from):
        errors.append(f"Invalid email address format in SMTP_FROM: '{smtp_from}'")

    if log_level:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if log_level.upper() not in valid_levels:
            errors.append(
                f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(valid_levels)}"
            )

    if smtp_user and not smtp_password:
        errors.append(
            "SMTP_USER is set but SMTP_PASSWORD is not. Both must be set for authentication."
        )
    elif smtp_password and not smtp_user:
        errors.append(
            "SMTP_PASSWORD is set but SMTP_USER is not. Both must be set for authentication."
        )

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your credentials",
                "Check that SMTP_FROM is a valid email address",
                "Verify SMTP_PORT is a number between 1 and 65535",
            ],
        )

    return EnvironmentConfig(
        smtp_host=smtp_host,
        smtp_port=smtp_port,
        smtp_secure=smtp_secure,
        smtp_user=smtp_user,
        smtp_password=smtp_password,
        smtp_from=smtp_from,
        smtp_sender_name=smtp_sender_name,
        log_level=log_level.upper() if log_level else None,
        database_url=database_url,
        environment=environment,
    )


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None
