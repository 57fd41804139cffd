"""Settings loaded from environment variables (+ optional .env)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


@dataclass(frozen=True)
class Settings:
    # Sessions
    secret_key: str = "dev-secret-key-change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    session_cookie_name: str = "jwt"
    session_cookie_secure: bool = True

    # Web
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])
    frontend_url: str = "http://localhost:3000"
    reset_token_expire_minutes: int = 60

    # Mail relay
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    smtp_from_email: str = "noreply@syncedge.app"

    # Description generation
    gemini_api_url: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_timeout: float = 20.0

    log_level: str = "INFO"
    port: int = 8000


def load_settings() -> Settings:
    return Settings(
        secret_key=_env("SECRET_KEY", "dev-secret-key-change-me"),
        algorithm=_env("JWT_ALGORITHM", "HS256"),
        access_token_expire_minutes=_env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60),
        session_cookie_name=_env("SESSION_COOKIE_NAME", "jwt"),
        session_cookie_secure=_env_bool("SESSION_COOKIE_SECURE", True),
        cors_origins=_env_list("CORS_ORIGINS", ["http://localhost:3000"]),
        frontend_url=_env("FRONTEND_URL", "http://localhost:3000").rstrip("/"),
        reset_token_expire_minutes=_env_int("RESET_TOKEN_EXPIRE_MINUTES", 60),
        smtp_host=os.getenv("SMTP_HOST") or None,
        smtp_port=_env_int("SMTP_PORT", 587),
        smtp_username=os.getenv("SMTP_USERNAME") or None,
        smtp_password=os.getenv("SMTP_PASSWORD") or None,
        smtp_use_tls=_env_bool("SMTP_USE_TLS", True),
        smtp_from_email=_env("SMTP_FROM_EMAIL", "noreply@syncedge.app"),
        gemini_api_url=os.getenv("GEMINI_API_URL") or None,
        gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
        gemini_timeout=_env_float("GEMINI_TIMEOUT", 20.0),
        log_level=_env("LOG_LEVEL", "INFO").upper(),
        port=_env_int("PORT", 8000),
    )
