"""
SMTP relay client for account mail (welcome, password reset).

Delivery problems surface as MailError; whether that fails the request is the
caller's decision.
"""
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from backend.config import Settings

logger = logging.getLogger(__name__)


class MailError(Exception):
    pass


class SMTPMailer:
    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.use_tls = settings.smtp_use_tls
        self.from_email = settings.smtp_from_email

    def is_configured(self) -> bool:
        return bool(self.host)

    def send(self, to: str, subject: str, text: Optional[str] = None, html: Optional[str] = None) -> None:
        if not self.is_configured():
            raise MailError("SMTP not configured (missing SMTP_HOST)")

        msg = MIMEMultipart("alternative")
        msg["From"] = self.from_email
        msg["To"] = to
        msg["Subject"] = subject
        if text:
            msg.attach(MIMEText(text, "plain", "utf-8"))
        if html:
            msg.attach(MIMEText(html, "html", "utf-8"))

        try:
            with smtplib.SMTP(self.host, self.port) as server:
                if self.use_tls:
                    server.starttls(context=ssl.create_default_context())
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.sendmail(self.from_email, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            raise MailError(f"SMTP delivery to {to} failed: {exc}") from exc
        logger.info("SMTP: email sent to %s", to)


def welcome_email(name: str) -> dict:
    return {
        "subject": "Welcome to SyncEdge Tasks",
        "text": f"Welcome, {name}! Your account has been created successfully.",
    }


def password_reset_email(frontend_url: str, token: str) -> dict:
    link = f"{frontend_url}/reset-password/{token}"
    return {
        "subject": "Password Reset Request",
        "html": (
            "<p>You are receiving this email because you (or someone else) has requested the reset "
            "of the password for your account.</p>"
            "<p>Please click on the following link, or paste this into your browser to complete "
            "the process:</p>"
            f'<a href="{link}">{link}</a>'
            "<p>If you did not request this, please ignore this email and your password will "
            "remain unchanged.</p>"
        ),
    }
