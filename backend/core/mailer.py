"""
Outgoing mail.  Messages are rendered from Jinja2 templates in
backend/templates and delivered over SMTP with the credentials from
settings.
"""

import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.config import Settings, settings
from core.logger import logger

APP_NAME = "Cherry Studio"

_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


class MailError(RuntimeError):
    """Raised when a message could not be rendered or handed to SMTP."""


class Mailer:
    def __init__(self, config: Settings):
        self._config = config
        self._templates = Environment(
            loader=FileSystemLoader(str(_TEMPLATE_DIR)),
            autoescape=select_autoescape(["html"]),
        )

    def render(self, template: str, **context) -> str:
        return self._templates.get_template(f"{template}.html").render(
            app_name=APP_NAME, **context
        )

    def send(self, to: str, subject: str, html: str) -> None:
        config = self._config
        if not config.email_host:
            raise MailError("SMTP host is not configured")

        message = EmailMessage()
        message["From"] = formataddr((APP_NAME, config.email_from))
        message["To"] = to
        message["Subject"] = subject
        message.set_content("Please view this message in an HTML-capable mail client.")
        message.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(config.email_host, config.email_port, timeout=30) as smtp:
                if config.email_use_tls:
                    smtp.starttls()
                if config.email_username:
                    smtp.login(config.email_username, config.email_password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailError(f"Could not deliver mail to {to}") from exc
        logger.info("Sent '%s' mail to %s", subject, to)

    def send_password_reset(self, to: str, name: str, reset_url: str) -> None:
        html = self.render(
            "reset_password",
            name=name,
            reset_url=reset_url,
            expires_minutes=self._config.password_reset_expire_minutes,
        )
        self.send(to, f"{APP_NAME} password reset", html)


_mailer: Optional[Mailer] = None


def get_mailer() -> Mailer:
    """FastAPI dependency returning the process-wide mailer."""
    global _mailer
    if _mailer is None:
        _mailer = Mailer(settings)
    return _mailer
