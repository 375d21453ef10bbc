import uuid
from datetime import datetime, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

from playbookd import db as real_db
from playbookd.auth import create_access_token, get_password_hash
from playbookd.main import app
from playbookd.roles import default_permissions
from playbookd.services import mailer

# module attribute -> collection name
COLLECTIONS = {
    "users": "users",
    "revoked_tokens": "revoked_tokens",
    "activity_logs": "activity_logs",
    "audit_events": "audit_events",
    "creator_profiles": "creator_profiles",
    "coach_profiles": "coach_profiles",
    "creators_index": "creators_index",
    "creator_public": "creatorPublic",
    "baked_profiles": "baked_profiles",
    "slug_mappings": "slug_mappings",
    "system_cache": "system_cache",
    "invitations": "invitations",
    "messages": "messages",
    "notifications": "notifications",
    "moderation_alerts": "moderation_alerts",
    "coach_followers": "coach_followers",
    "submissions": "submissions",
    "reviews": "reviews",
    "comments": "comments",
    "lessons": "lessons",
}


@pytest.fixture(autouse=True)
def mock_db(monkeypatch):
    # replace mongodb collections with mongomock in-memory
    mock_client = mongomock.MongoClient()
    mock_db = mock_client["test_db"]

    monkeypatch.setattr(real_db, "db", mock_db)
    for attr, name in COLLECTIONS.items():
        monkeypatch.setattr(real_db, attr, mock_db[name])
    monkeypatch.setattr(real_db, "MONGO_TRANSACTIONS", False)

    yield mock_db


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    """Every email the app tries to send, as (to, subject, body)."""
    sent = []
    monkeypatch.setattr(mailer, "send_email", lambda to, subject, body: sent.append((to, subject, body)))
    return sent


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_user(mock_db):
    def _make(role="athlete", email=None, display_name=None, password=None, **extra):
        uid = uuid.uuid4().hex
        now = datetime.now(timezone.utc)
        doc = {
            "_id": uid,
            "email": email or f"{role}-{uid[:6]}@example.com",
            "displayName": display_name or f"Test {role.title()}",
            "role": role,
            "permissions": default_permissions(role),
            "createdAt": now,
            "updatedAt": now,
            **extra,
        }
        if password:
            doc["password"] = get_password_hash(password)
        mock_db.users.insert_one(doc)
        return doc

    return _make


@pytest.fixture
def headers_for():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user['_id'])}"}

    return _headers


@pytest.fixture
def athlete(make_user):
    return make_user("athlete", display_name="Alex Athlete", subscription={"tier": "elite", "status": "active"})


@pytest.fixture
def coach(make_user):
    return make_user("coach", display_name="Casey Coach")


@pytest.fixture
def admin(make_user):
    return make_user("admin", display_name="Ada Admin")


@pytest.fixture
def superadmin(make_user):
    return make_user("superadmin", display_name="Sam Super")
