"""Shared pytest fixtures for the pr-welcome test suite."""

from __future__ import annotations

import hashlib
import hmac
from pathlib import Path
from typing import Any, Callable

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
)

from pr_welcome.config import AppConfig
from pr_welcome.github.commenter import CommentRequest

WEBHOOK_SECRET = "test-webhook-secret"
MESSAGE = "Thanks for opening this pull request!\n"


class FakeCommentPoster:
    """Records comment requests instead of calling GitHub."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.requests: list[CommentRequest] = []

    async def create_comment(self, request: CommentRequest) -> dict[str, Any]:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return {"id": len(self.requests), "body": request.body}


@pytest.fixture(scope="session")
def private_key_pem() -> str:
    """A freshly generated RSA private key in PKCS8 PEM form."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return private_key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()).decode()


@pytest.fixture()
def key_file(tmp_path: Path, private_key_pem: str) -> Path:
    key_path = tmp_path / "app.pem"
    key_path.write_text(private_key_pem)
    return key_path


@pytest.fixture()
def app_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, key_file: Path
) -> Path:
    """Populate the environment and working directory for a valid startup.

    Returns the working directory, which holds message.md.
    """
    for name in ("ENTERPRISE_HOSTNAME", "PORT", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("APP_ID", "12345")
    monkeypatch.setenv("PRIVATE_KEY_PATH", str(key_file))
    monkeypatch.setenv("WEBHOOK_SECRET", WEBHOOK_SECRET)
    (tmp_path / "message.md").write_text(MESSAGE)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture()
def app_config(private_key_pem: str) -> AppConfig:
    return AppConfig(
        app_id="12345",
        private_key=private_key_pem,
        webhook_secret=WEBHOOK_SECRET,
        comment_template=MESSAGE,
    )


@pytest.fixture()
def fake_poster() -> Callable[..., FakeCommentPoster]:
    """Factory fixture for FakeCommentPoster instances."""

    def _factory(error: Exception | None = None) -> FakeCommentPoster:
        return FakeCommentPoster(error=error)

    return _factory


@pytest.fixture()
def sign() -> Callable[..., str]:
    """Compute the X-Hub-Signature-256 value for a body."""

    def _sign(payload: bytes, secret: str = WEBHOOK_SECRET) -> str:
        return "sha256=" + hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()

    return _sign


@pytest.fixture()
def opened_payload() -> dict[str, Any]:
    """A minimal pull_request.opened payload for acme/widgets#42."""
    return {
        "action": "opened",
        "number": 42,
        "pull_request": {"number": 42, "title": "Add sprockets"},
        "repository": {
            "name": "widgets",
            "full_name": "acme/widgets",
            "owner": {"login": "acme"},
        },
        "installation": {"id": 777},
    }
