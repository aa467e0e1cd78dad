"""Notification service for seat availability alerts.

Delivery is best effort and attempted once per call. Every failure is logged
and reported in the returned NotificationResult; nothing is raised to the
caller, so a broken mail server can never stop a subscription from being
retired.
"""

import logging
from email.message import EmailMessage
from typing import Iterable, Optional

from birdwatch.config.environment import EnvironmentConfig
from birdwatch.config.models import EmailConfig
from birdwatch.logging import get_logger
from birdwatch.logging.context import log_context
from birdwatch.matching.models import SeatMatch

from .models import NotificationResult, NotifyError
from .smtp_client import SMTPClient, build_sender_address, normalize_recipients
from .templates import TemplateRenderer, build_seat_alert_context

logger = get_logger(__name__, component="notification")


class NotificationService:
    """Sends one email per matched section to all of its subscribers."""

    def __init__(
        self,
        env_config: EnvironmentConfig,
        email_config: Optional[EmailConfig] = None,
        template_renderer: Optional[TemplateRenderer] = None,
        smtp_client: Optional[SMTPClient] = None,
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.env_config = env_config
        self.email_config = email_config or EmailConfig()
        self.template_renderer = template_renderer or TemplateRenderer()
        self.smtp_client = smtp_client or SMTPClient()
        self.logger = logger_instance or logger

    def notify_seat_available(self, match: SeatMatch) -> NotificationResult:
        """Render the seat alert for ``match`` and send it to its subscribers."""
        with log_context(crn=match.crn):
            try:
                rendered = self.template_renderer.render(build_seat_alert_context(match))
            except NotifyError as e:
                self.logger.error(
                    f"Could not render alert for CRN {match.crn}: {e}",
                    extra={"event": "notification.render.failed", "error_type": type(e).__name__},
                )
                return NotificationResult(
                    recipients=sorted(match.emails), status="failed", error=str(e)
                )

            return self.notify(match.emails, rendered["subject"], rendered["text_body"])

    def notify(self, emails: Iterable[str], subject: str, body: str) -> NotificationResult:
        """Send a plain-text message to every address in ``emails``.

        Returns:
            NotificationResult with status "sent", "skipped" when no valid
            recipient remains, or "failed" when delivery raised
        """
        recipients = normalize_recipients(emails)

        if not recipients:
            self.logger.info(
                "No valid recipients, skipping notification",
                extra={"event": "notification.skip", "reason": "no_recipients"},
            )
            return NotificationResult(recipients=[], status="skipped", subject=subject)

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = build_sender_address(self.env_config)
        message["To"] = ", ".join(recipients)
        message.set_content(body)

        self.logger.info(
            f"Emailing [{', '.join(recipients)}]",
            extra={"event": "notification.send.attempt", "recipient_count": len(recipients)},
        )

        try:
            self.smtp_client.send(
                message,
                self.env_config,
                use_tls=self.email_config.use_tls,
                timeout=self.email_config.smtp_timeout,
            )
        except Exception as e:  # SMTPDeliveryError, or a broken injected client
            return self._failed(recipients, subject, e)

        self.logger.info(
            "Notification sent",
            extra={"event": "notification.send.success", "recipients": recipients},
        )
        return NotificationResult(recipients=recipients, status="sent", subject=subject)

    def _failed(self, recipients, subject: str, error: Exception) -> NotificationResult:
        self.logger.error(
            f"Notification delivery failed: {error}",
            exc_info=True,
            extra={
                "event": "notification.send.failure",
                "error_type": type(error).__name__,
                "recipients": recipients,
            },
        )
        return NotificationResult(
            recipients=recipients, status="failed", subject=subject, error=str(error)
        )
