"""Jinja2 rendering of expiry alert emails.

Templates live in expiry_notifier/notifications/email_templates and are
rendered with StrictUndefined so a missing context key fails loudly. Only
the HTML templates are autoescaped; subject and text bodies stay verbatim.
"""

from typing import Any, Dict

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError, select_autoescape

from expiry_notifier.logging import get_logger

from .models import NotificationTemplateError

logger = get_logger(__name__, component="templates")


class TemplateRenderer:
    """Renders subject, HTML body and plain-text body for one alert."""

    def __init__(
        self,
        template_dir: str = "email_templates",
        subject_template: str = "expiry_alert_subject.j2",
        html_template: str = "expiry_alert_body.html.j2",
        text_template: str = "expiry_alert_body.txt.j2",
    ):
        self.subject_template_name = subject_template
        self.html_template_name = html_template
        self.text_template_name = text_template

        self.env = Environment(
            loader=PackageLoader("expiry_notifier.notifications", template_dir),
            autoescape=select_autoescape(enabled_extensions=("html.j2",), default=False),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, context: Dict[str, Any]) -> Dict[str, str]:
        """Render all three templates.

        Returns:
            Dict with "subject" (single line), "html_body" and "text_body"

        Raises:
            NotificationTemplateError: If any template fails to load or render
        """
        try:
            subject = self.env.get_template(self.subject_template_name).render(context)
            html_body = self.env.get_template(self.html_template_name).render(context)
            text_body = self.env.get_template(self.text_template_name).render(context)
        except TemplateError as e:
            logger.error(
                f"Template rendering failed: {e}",
                extra={"event": "notification.template.failed", "item_id": context.get("item_id")},
                exc_info=True,
            )
            raise NotificationTemplateError(f"Template rendering failed: {e}") from e

        return {
            "subject": " ".join(subject.split()),
            "html_body": html_body,
            "text_body": text_body,
        }

    def render_test_email(self) -> str:
        """HTML body of the fixed connectivity test message."""
        try:
            return self.env.get_template("test_email.html.j2").render()
        except TemplateError as e:
            raise NotificationTemplateError(f"Template rendering failed: {e}") from e
