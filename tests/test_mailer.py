"""Reset mail rendering and SMTP error handling."""
import smtplib

import pytest

from core.config import settings
from core.mailer import MailError, Mailer


def test_reset_template_renders_link_escaped():
    mailer = Mailer(settings)

    html = mailer.render(
        "reset_password",
        name="<Ann>",
        reset_url="https://api.example.com/reset/abc",
        expires_minutes=10,
    )

    assert "https://api.example.com/reset/abc" in html
    assert "&lt;Ann&gt;" in html
    assert "10" in html


def test_send_without_smtp_host_fails():
    with pytest.raises(MailError):
        Mailer(settings).send_password_reset("ann@example.com", "Ann", "https://x/reset/abc")


def test_smtp_errors_become_mail_error(monkeypatch):
    config = settings.model_copy(update={"email_host": "smtp.example.com"})

    class RefusingSMTP:
        def __init__(self, *args, **kwargs):
            raise smtplib.SMTPConnectError(421, b"busy")

    monkeypatch.setattr(smtplib, "SMTP", RefusingSMTP)

    with pytest.raises(MailError):
        Mailer(config).send_password_reset("ann@example.com", "Ann", "https://x/reset/abc")
