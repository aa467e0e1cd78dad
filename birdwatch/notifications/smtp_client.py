"""SMTP client wrapper for email delivery."""

import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Callable, Iterable, List, Optional

from email_validator import EmailNotValidError, validate_email

from birdwatch.config.environment import EnvironmentConfig

from .models import SMTPDeliveryError

logger = logging.getLogger(__name__)


class SMTPClient:
    """Thin wrapper around smtplib.

    Port 465 uses implicit TLS; any other port upgrades with STARTTLS when
    ``use_tls`` is set. Credentials are used only when both user and password
    are configured. The connection is always closed.
    """

    def __init__(
        self,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
    ):
        """
        Args:
            smtp_factory: Replacement for smtplib.SMTP (tests)
            smtp_ssl_factory: Replacement for smtplib.SMTP_SSL (tests)
        """
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL

    def send(
        self,
        message: EmailMessage,
        env_config: EnvironmentConfig,
        use_tls: bool = True,
        timeout: int = 30,
    ) -> None:
        """Deliver ``message``.

        Raises:
            SMTPDeliveryError: On any SMTP, network or unexpected failure
        """
        host, port = env_config.smtp_host, env_config.smtp_port
        smtp = None
        try:
            if port == 465:
                logger.debug(f"Connecting to {host}:{port} with implicit TLS")
                smtp = self.smtp_ssl_factory(
                    host, port, timeout=timeout, context=ssl.create_default_context()
                )
            else:
                logger.debug(f"Connecting to {host}:{port}")
                smtp = self.smtp_factory(host, port, timeout=timeout)
                if use_tls:
                    smtp.starttls(context=ssl.create_default_context())

            if env_config.smtp_user and env_config.smtp_pass:
                smtp.login(env_config.smtp_user, env_config.smtp_pass)

            smtp.send_message(message)
            logger.debug(f"Message sent to {message['To']}")

        except smtplib.SMTPException as e:
            raise SMTPDeliveryError(f"SMTP error during message delivery: {e}") from e
        except OSError as e:
            raise SMTPDeliveryError(f"Network error during SMTP connection: {e}") from e
        except Exception as e:
            raise SMTPDeliveryError(f"Unexpected error during SMTP delivery: {e}") from e
        finally:
            if smtp is not None:
                try:
                    smtp.quit()
                except Exception as e:
                    logger.warning(f"Error closing SMTP connection: {e}")


def normalize_recipients(emails: Iterable[str]) -> List[str]:
    """Validate addresses and return the valid ones, normalized and sorted.

    Invalid addresses are dropped with a warning rather than failing the
    whole message.
    """
    recipients = set()

    for email in emails:
        email = (email or "").strip()
        if not email:
            continue
        try:
            recipients.add(validate_email(email, check_deliverability=False).normalized)
        except EmailNotValidError as e:
            logger.warning(
                f"Dropping invalid recipient '{email}': {e}",
                extra={"event": "notification.recipient.invalid"},
            )

    return sorted(recipients)


def build_sender_address(env_config: EnvironmentConfig) -> str:
    """Return the From header, e.g. ``QuACS Birdwatch <birdwatch@example.com>``.

    Falls back to ``noreply@<smtp host>`` when no SMTP user is configured.
    """
    address = env_config.smtp_user or f"noreply@{env_config.smtp_host}"
    return f"{env_config.smtp_sender_name} <{address}>"
