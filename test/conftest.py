"""
Shared fixtures: an app wired to in-memory SQLite, local storage under
tmp_path and a zero-delay seeded analyzer. No network or external services.
"""
import os
import base64
import random
import tempfile

# Settings are read at import time; point them at throwaway locations first
_TMP_ROOT = tempfile.mkdtemp(prefix="teeth-analysis-tests-")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["USE_S3"] = "false"
os.environ["UPLOADS_DIR"] = os.path.join(_TMP_ROOT, "uploads")
os.environ["LOGS_DIR"] = os.path.join(_TMP_ROOT, "logs")
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASSWORD"] = ""
os.environ["ADMIN_ALERT_EMAIL"] = ""
os.environ["OWNER_OPEN_ID"] = ""

import pytest
from fastapi.testclient import TestClient

import config
from app import create_app
from auth.security import create_access_token
from core.dental_analyzer import DentalAnalyzer
from database.connection import Database
from database.models import UserRole
from services.auth_service import AuthService
from storage.local_storage import LocalStorage


class FixedIssuesAnalyzer(DentalAnalyzer):
    """Analyzer that always reports the given issues."""

    def __init__(self, issues):
        super().__init__(min_delay=0, max_delay=0, rng=random.Random(0))
        self.issues = issues

    def generate_issues(self):
        return [dict(issue) for issue in self.issues]


def issue(issue_type="cavity", severity="low", location="tooth_1"):
    return {
        "type": issue_type,
        "location": location,
        "severity": severity,
        "confidence": 0.9,
        "description": f"{issue_type} finding",
    }


def jpeg_bytes(size: int) -> bytes:
    """Fake JPEG payload of exactly ``size`` bytes."""
    header = b"\xff\xd8\xff\xe0"
    return header + b"\x00" * (size - len(header))


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_tables()
    yield db
    db.dispose()


@pytest.fixture
def db_session(database):
    with database.get_session() as session:
        yield session


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(tmp_path / "uploads")


@pytest.fixture
def analyzer():
    return DentalAnalyzer(min_delay=0, max_delay=0, rng=random.Random(42))


@pytest.fixture
def app(database, storage, analyzer):
    return create_app(
        database=database,
        storage=storage,
        analyzer=analyzer,
        auto_analyze=False,
        rate_limit=False,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_headers():
    """Build bearer headers for an identity."""
    def _make(open_id: str, **claims) -> dict:
        token = create_access_token({"sub": open_id, **claims})
        return {"Authorization": f"Bearer {token}"}
    return _make


@pytest.fixture
def user_headers(make_headers):
    return make_headers("student-1", name="Ana Reyes", email="ana@example.edu", loginMethod="google")


@pytest.fixture
def other_user_headers(make_headers):
    return make_headers("student-2", name="Ben Cruz", email="ben@example.edu")


@pytest.fixture
def make_admin(client, database, make_headers):
    """Sign an identity in and promote it to admin; returns its headers."""
    def _make(open_id: str = "admin-1", email: str = "admin@example.edu") -> dict:
        headers = make_headers(open_id, name="Dr. Admin", email=email)
        assert client.get("/api/auth/me", headers=headers).status_code == 200
        with database.get_session() as db:
            user = AuthService.get_user_by_open_id(db, open_id)
            AuthService.set_role(db, user, UserRole.ADMIN)
        return headers
    return _make


@pytest.fixture
def admin_headers(make_admin):
    return make_admin()


@pytest.fixture
def upload_payload():
    """Build an upload request body."""
    def _payload(size: int = 1024, mime_type: str = "image/jpeg", file_name: str = "molars.jpg", **overrides) -> dict:
        data = jpeg_bytes(size)
        payload = {
            "fileName": file_name,
            "fileSize": len(data),
            "mimeType": mime_type,
            "imageQuality": "good",
            "imageBase64": base64.b64encode(data).decode(),
        }
        payload.update(overrides)
        return payload
    return _payload


@pytest.fixture
def upload(client, upload_payload):
    """Upload an image as the given user and return the response JSON."""
    def _upload(headers: dict, **kwargs) -> dict:
        response = client.post("/api/submissions", json=upload_payload(**kwargs), headers=headers)
        assert response.status_code == 200, response.text
        return response.json()
    return _upload


@pytest.fixture
def alert_email(monkeypatch):
    monkeypatch.setattr(config, "ADMIN_ALERT_EMAIL", "alerts@example.edu")
    return "alerts@example.edu"


@pytest.fixture
def make_issue():
    return issue


@pytest.fixture
def fixed_analyzer():
    """Build an analyzer that reports the given issues."""
    return FixedIssuesAnalyzer
