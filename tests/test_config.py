# tests/test_config.py

from __future__ import annotations

from fastapi.testclient import TestClient

import backend.main
from backend.config import load_settings
from backend.main import create_app

from .fakes import FakeMailer, fake_repositories


def test_gemini_timeout_accepts_fractions(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_TIMEOUT", "2.5")
    assert load_settings().gemini_timeout == 2.5


def test_gemini_timeout_falls_back_on_garbage(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_TIMEOUT", "soon")
    assert load_settings().gemini_timeout == 20.0

    monkeypatch.setenv("GEMINI_TIMEOUT", "")
    assert load_settings().gemini_timeout == 20.0


def test_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example.org, https://b.example.org")
    monkeypatch.setenv("SESSION_COOKIE_SECURE", "false")
    monkeypatch.setenv("FRONTEND_URL", "https://tasks.example.org/")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = load_settings()

    assert settings.cors_origins == ["https://a.example.org", "https://b.example.org"]
    assert settings.session_cookie_secure is False
    assert settings.frontend_url == "https://tasks.example.org"
    assert settings.log_level == "DEBUG"


def test_logging_is_configured_at_startup(monkeypatch, settings) -> None:
    levels = []
    monkeypatch.setattr(backend.main, "setup_logging", levels.append)
    app = create_app(repositories=fake_repositories(), settings=settings, mailer=FakeMailer())

    assert levels == []
    with TestClient(app) as client:
        assert client.get("/").status_code == 200

    assert levels == ["INFO"]
