"""Email template rendering using Jinja2.

Each email kind has three templates in the ``email_templates`` package
directory: ``<kind>_subject.j2``, ``<kind>_body.txt.j2`` and
``<kind>_body.html.j2``. Undefined variables are errors, and only HTML
templates are auto-escaped.
"""

import logging
from typing import Any, Dict, Mapping

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError, select_autoescape

from .models import NotificationTemplateError, RenderedEmail

logger = logging.getLogger(__name__)

GRADE_UPDATE = "grade_update"
ATTENDANCE_ALERT = "attendance_alert"
FEE_REMINDER = "fee_reminder"
GENERIC = "generic"

TEMPLATE_KEYS = (GRADE_UPDATE, ATTENDANCE_ALERT, FEE_REMINDER, GENERIC)


class TemplateRenderer:
    """Renders per-kind subject, plain-text and HTML bodies.

    Templates are loaded lazily and cached by the Jinja2 environment.
    """

    def __init__(self, template_dir: str = "email_templates"):
        """Initialize the Jinja2 environment.

        Args:
            template_dir: Directory name within the campus_notify.notifications package
        """
        self.env = Environment(
            loader=PackageLoader("campus_notify.notifications", template_dir),
            autoescape=select_autoescape(
                enabled_extensions=("html.j2",), default_for_string=False, default=False
            ),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )

        logger.debug(f"Initialized TemplateRenderer with templates from {template_dir}")

    def render(self, template_key: str, context: Mapping[str, Any]) -> RenderedEmail:
        """Render the subject and both bodies for one email kind.

        Args:
            template_key: Email kind (grade_update, attendance_alert, fee_reminder, generic)
            context: Template variables

        Returns:
            RenderedEmail with a single-line subject

        Raises:
            NotificationTemplateError: If a template is missing or a variable is undefined
        """
        variables: Dict[str, Any] = dict(context)
        try:
            subject = self.env.get_template(f"{template_key}_subject.j2").render(variables)
            text_body = self.env.get_template(f"{template_key}_body.txt.j2").render(variables)
            html_body = self.env.get_template(f"{template_key}_body.html.j2").render(variables)
        except TemplateError as e:
            error_msg = f"Template rendering failed for '{template_key}': {e}"
            logger.error(error_msg, exc_info=True)
            raise NotificationTemplateError(error_msg) from e

        return RenderedEmail(
            subject=" ".join(subject.split()),
            text_body=text_body,
            html_body=html_body,
        )
