"""Result type and exceptions for the notification service."""

from dataclasses import dataclass, field
from typing import List, Optional


class NotifyError(Exception):
    """Base exception for notification failures.

    Never propagated out of the notification service: failures are logged
    and reported through NotificationResult.
    """


class NotificationTemplateError(NotifyError):
    """A template is missing or could not be rendered."""


class SMTPDeliveryError(NotifyError):
    """The SMTP server rejected the message or could not be reached."""


@dataclass
class NotificationResult:
    """Outcome of one notification attempt.

    Attributes:
        recipients: Addresses the message was (or would have been) sent to
        status: "sent", "skipped" (no valid recipients) or "failed"
        subject: Subject line used
        error: Error message when status is "failed"
    """

    recipients: List[str] = field(default_factory=list)
    status: str = "sent"
    subject: str = ""
    error: Optional[str] = None

    @property
    def sent(self) -> bool:
        return self.status == "sent"

    @property
    def failed(self) -> bool:
        return self.status == "failed"
