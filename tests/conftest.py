# tests/conftest.py

from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from backend.config import Settings
from backend.main import create_app
from backend.security import create_access_token, get_password_hash
from schemas import Group, User

from .fakes import PASSWORD, FakeMailer, fake_repositories


@pytest.fixture(scope="session")
def password_hash() -> str:
    # bcrypt is slow on purpose; hash once per run.
    return get_password_hash(PASSWORD)


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        secret_key="test-secret",
        session_cookie_secure=False,
        cors_origins=["http://testserver"],
        frontend_url="https://tasks.example.org",
        gemini_api_url="https://gemini.example.org/v1/models/x:generateContent",
        gemini_api_key="test-key",
    )


@pytest.fixture()
def repos():
    return fake_repositories()


@pytest.fixture()
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture()
def app(repos, settings, mailer):
    return create_app(repositories=repos, settings=settings, mailer=mailer)


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def make_user(repos, settings, password_hash):
    """
    Create a user straight in the store and return a namespace with its id
    and ready-to-use auth headers.
    """

    def _make(name: str, username: str | None = None) -> SimpleNamespace:
        username = username or f"{name.lower()}@acme.io"
        user_id = repos.users.create(User(name=name, username=username, password_hash=password_hash))
        token = create_access_token({"sub": user_id}, settings)
        return SimpleNamespace(
            id=user_id,
            name=name,
            username=username,
            token=token,
            headers={"Authorization": f"Bearer {token}"},
        )

    return _make


@pytest.fixture()
def make_group(repos):
    def _make(owner_id: str, members: list[str], name: str = "Core") -> dict:
        return repos.groups.create(Group(name=name, owner=owner_id, members=members))

    return _make
