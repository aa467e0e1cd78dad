"""Jinja2 rendering of seat alert emails."""

import logging
from typing import Any, Dict

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError, select_autoescape

from birdwatch.matching.models import SeatMatch

from .models import NotificationTemplateError

logger = logging.getLogger(__name__)


def build_seat_alert_context(match: SeatMatch) -> Dict[str, Any]:
    """Template variables for a seat alert."""
    return {
        "crn": match.crn,
        "course_title": match.course_title,
        "section_label": match.section_label,
        "remaining": match.remaining,
        "capacity": match.capacity,
    }


class TemplateRenderer:
    """Renders the subject line and plain-text body of seat alerts.

    Templates live in ``birdwatch/notifications/email_templates`` and are
    cached by the Jinja2 environment after the first load. Missing variables
    raise instead of rendering as empty strings.
    """

    def __init__(
        self,
        template_dir: str = "email_templates",
        subject_template: str = "seat_alert_subject.j2",
        text_template: str = "seat_alert_body.txt.j2",
    ):
        self.subject_template_name = subject_template
        self.text_template_name = text_template

        # Plain-text only: course titles such as "Data Structures & Algorithms"
        # must not be HTML-escaped
        self.env = Environment(
            loader=PackageLoader("birdwatch.notifications", template_dir),
            autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
            undefined=StrictUndefined,
        )

    def render(self, context: Dict[str, Any]) -> Dict[str, str]:
        """Render ``subject`` (single line) and ``text_body``.

        Raises:
            NotificationTemplateError: If a template is missing or fails to render
        """
        try:
            subject = self.env.get_template(self.subject_template_name).render(context)
            text_body = self.env.get_template(self.text_template_name).render(context)
        except TemplateError as e:
            logger.error(f"Template rendering failed: {e}")
            raise NotificationTemplateError(f"Template rendering failed: {e}") from e

        return {
            "subject": subject.strip().replace("\n", " "),
            "text_body": text_body.strip(),
        }
