"""SMTP transport for alert emails.

A thin layer over smtplib: one connection per message, STARTTLS or
implicit TLS, optional login, bounded socket timeout, and retry with
exponential backoff for transient failures.
"""

import smtplib
import ssl
import time
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Callable, List, Optional

from email_validator import EmailNotValidError

from expiry_notifier.config.environment import EnvironmentConfig
from expiry_notifier.config.models import EmailConfig
from expiry_notifier.logging import get_logger
from expiry_notifier.utils.addresses import check_address

from .models import SMTPConfigurationError, SMTPDeliveryError

logger = get_logger(__name__, component="smtp")

MAX_RETRY_DELAY_SECONDS = 60.0


class SMTPClient:
    """Sends one message per call through the configured SMTP server.

    Args:
        env_config: SMTP host, port, credentials and sender
        email_config: TLS, retry and timeout settings
        smtp_factory: Replaces smtplib.SMTP (tests)
        smtp_ssl_factory: Replaces smtplib.SMTP_SSL (tests)
        sleep: Replaces time.sleep between retries (tests)
    """

    def __init__(
        self,
        env_config: EnvironmentConfig,
        email_config: Optional[EmailConfig] = None,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.env_config = env_config
        self.email_config = email_config or EmailConfig()
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL
        self.sleep = sleep

    def send(self, to: str, subject: str, html: str, text: Optional[str] = None) -> None:
        """Deliver one message to a single recipient.

        Returns once the server has accepted the message.

        Raises:
            SMTPConfigurationError: SMTP_HOST is not set (not retried)
            SMTPDeliveryError: Every attempt failed
        """
        self._require_configured()
        message = self.build_message(to, subject, html, text)

        max_attempts = self.email_config.max_retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay = min(
                    self.email_config.retry_initial_delay
                    * self.email_config.retry_backoff_multiplier ** (attempt - 2),
                    MAX_RETRY_DELAY_SECONDS,
                )
                logger.warning(
                    f"Retrying delivery to {to} (attempt {attempt}/{max_attempts}) after {delay:.1f}s",
                    extra={"event": "smtp.send.retry", "attempt": attempt, "recipient": to},
                )
                self.sleep(delay)

            try:
                self._deliver(message)
            except (smtplib.SMTPException, OSError) as e:
                last_error = e
                logger.warning(
                    f"SMTP delivery to {to} failed (attempt {attempt}/{max_attempts}): {e}",
                    extra={
                        "event": "smtp.send.failure",
                        "attempt": attempt,
                        "recipient": to,
                        "error_type": type(e).__name__,
                        "retry_remaining": attempt < max_attempts,
                    },
                )
                continue

            logger.info(
                f"Email accepted for {to}",
                extra={"event": "smtp.send.success", "attempt": attempt, "recipient": to},
            )
            return

        raise SMTPDeliveryError(
            f"Failed to send email to {to} after {max_attempts} attempt(s): {last_error}"
        ) from last_error

    def check_connection(self) -> bool:
        """Connect, negotiate TLS, log in and NOOP. True when all succeed."""
        try:
            self._require_configured()
            smtp = self._connect()
            try:
                smtp.noop()
            finally:
                _close_quietly(smtp)
        except (SMTPConfigurationError, smtplib.SMTPException, OSError) as e:
            logger.warning(
                f"SMTP connectivity check failed: {e}",
                extra={"event": "smtp.check.failed", "error_type": type(e).__name__},
            )
            return False
        return True

    def build_message(self, to: str, subject: str, html: str, text: Optional[str] = None) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = build_sender_address(self.env_config)
        message["To"] = to
        message["Message-ID"] = make_msgid(domain=self.env_config.smtp_host)
        message.set_content(text or "This message requires an HTML-capable email client.")
        message.add_alternative(html, subtype="html")
        return message

    def _require_configured(self) -> None:
        if not self.env_config.smtp_configured:
            raise SMTPConfigurationError(
                "SMTP configuration is missing. Set SMTP_HOST (and SMTP_PORT) in the environment."
            )

    def _deliver(self, message: EmailMessage) -> None:
        smtp = self._connect()
        try:
            smtp.send_message(message)
        finally:
            _close_quietly(smtp)

    def _connect(self):
        """Open a connection, upgrade it to TLS and log in as configured."""
        env = self.env_config
        timeout = self.email_config.send_timeout_seconds

        if env.uses_implicit_tls:
            smtp = self.smtp_ssl_factory(
                env.smtp_host, env.smtp_port, timeout=timeout, context=ssl.create_default_context()
            )
        else:
            smtp = self.smtp_factory(env.smtp_host, env.smtp_port, timeout=timeout)
            if self.email_config.use_tls:
                try:
                    smtp.starttls(context=ssl.create_default_context())
                except Exception:
                    smtp.close()
                    raise

        if env.smtp_user and env.smtp_password:
            try:
                smtp.login(env.smtp_user, env.smtp_password)
            except Exception:
                smtp.close()
                raise
        return smtp


def parse_recipients(recipient_string: str) -> List[str]:
    """Parse and validate a comma-separated list of addresses.

    Raises:
        ValueError: If any entry is malformed or no address is present
    """
    recipients = []
    for raw in recipient_string.split(","):
        address = raw.strip()
        if not address:
            continue
        try:
            check_address(address)
        except EmailNotValidError as e:
            raise ValueError(f"Invalid email address: '{address}' - {e}") from e
        recipients.append(address)

    if not recipients:
        raise ValueError("No valid email addresses found")
    return recipients


def build_sender_address(env_config: EnvironmentConfig) -> str:
    """Format the From header, e.g. "Expiry Notifier <alerts@acme.io>".

    Falls back to noreply@<smtp host> when neither SMTP_FROM nor SMTP_USER is set.
    """
    sender_email = env_config.from_address or f"noreply@{env_config.smtp_host or 'localhost'}"
    return formataddr((env_config.smtp_sender_name, sender_email))


def _close_quietly(smtp) -> None:
    try:
        smtp.quit()
    except (smtplib.SMTPException, OSError) as e:
        logger.warning(
            f"Error closing SMTP connection: {e}",
            extra={"event": "smtp.close.failed"},
        )
        smtp.close()
