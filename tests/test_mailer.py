# tests/test_mailer.py

from __future__ import annotations

import pytest

from backend.config import Settings
from backend.mailer import MailError, SMTPMailer, password_reset_email, welcome_email


def test_unconfigured_relay_raises() -> None:
    mailer = SMTPMailer(Settings())
    assert not mailer.is_configured()
    with pytest.raises(MailError):
        mailer.send("a@acme.io", "hi", text="hello")


def test_reset_email_links_to_frontend() -> None:
    mail = password_reset_email("https://tasks.example.org", "tok123")
    assert mail["subject"] == "Password Reset Request"
    assert 'href="https://tasks.example.org/reset-password/tok123"' in mail["html"]


def test_welcome_email_greets_by_name() -> None:
    assert welcome_email("Alice")["text"].startswith("Welcome, Alice!")
