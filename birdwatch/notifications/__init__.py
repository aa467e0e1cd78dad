"""Email notifications for open seats.

- NotificationService: renders and sends seat alerts, never raises
- TemplateRenderer: Jinja2 subject/body templates
- SMTPClient: smtplib wrapper with TLS/SSL support
"""

from .models import NotificationResult, NotificationTemplateError, NotifyError, SMTPDeliveryError
from .service import NotificationService
from .smtp_client import SMTPClient, build_sender_address, normalize_recipients
from .templates import TemplateRenderer, build_seat_alert_context

__all__ = [
    "NotificationService",
    "NotificationResult",
    "NotifyError",
    "NotificationTemplateError",
    "SMTPDeliveryError",
    "TemplateRenderer",
    "SMTPClient",
    "build_seat_alert_context",
    "build_sender_address",
    "normalize_recipients",
]
