"""
Pytest fixtures for the PaperWriter backend.

Provides:
- An isolated SQLite database and upload directory per test session
- A logged-in API client
- A helper to switch the client between users
"""

import os
import tempfile
import uuid

import pytest

# Settings are cached on first import, so the environment must be ready first.
_TEST_ROOT = tempfile.mkdtemp(prefix="paperwriter-tests-")
os.environ["DEBUG"] = "true"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_ROOT}/test.db"
os.environ["UPLOAD_DIR"] = os.path.join(_TEST_ROOT, "uploads")
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["OPENAI_API_KEY"] = "test-key"
os.environ["AI4SCHOLAR_API_KEY"] = ""
os.environ.pop("PDF_FONT_PATH", None)

from fastapi.testclient import TestClient  # noqa: E402

API = "/api/v1"
PASSWORD = "secret123"


@pytest.fixture(scope="session")
def client():
    from app.main import app

    with TestClient(app) as test_client:
        yield test_client


def register_user(client: TestClient, name: str = "Tester") -> dict:
    """Register a fresh user; the client is logged in as that user afterwards."""
    email = f"{name.lower()}-{uuid.uuid4().hex[:8]}@example.com"
    resp = client.post(f"{API}/auth/register", json={"email": email, "password": PASSWORD, "name": name})
    assert resp.status_code == 201, resp.text
    return {**resp.json(), "password": PASSWORD}


def login_as(client: TestClient, user: dict) -> None:
    resp = client.post(f"{API}/auth/login", data={"username": user["email"], "password": user["password"]})
    assert resp.status_code == 200, resp.text


@pytest.fixture
def user(client):
    return register_user(client)


@pytest.fixture
def paper(client, user):
    resp = client.post(f"{API}/papers", json={"title": "基于深度学习的图像识别研究", "type": "graduation"})
    assert resp.status_code == 201, resp.text
    return resp.json()
