"""Shared pytest fixtures: in-memory MongoDB, test settings and an API client."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Callable, Dict, List, Tuple

import httpx
import mongomock
import pytest
from fastapi.testclient import TestClient

from config import EmailSettings, Settings, get_settings
from database import get_db
from main import app
from notifier import EmailNotifier, get_notifier
from security import create_access_token, hash_password


@pytest.fixture()
def mongo_db():
    """Fresh in-memory database per test."""
    return mongomock.MongoClient()["nawartu_test"]


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        jwt_secret="test-secret",
        upload_dir=str(tmp_path / "uploads"),
        email=EmailSettings(service_id="svc", template_id="tpl", user_id="usr"),
    )


@pytest.fixture()
def sent_emails() -> List[Dict[str, Any]]:
    return []


@pytest.fixture()
def notifier(settings: Settings, sent_emails: List[Dict[str, Any]]) -> EmailNotifier:
    def handler(request: httpx.Request) -> httpx.Response:
        sent_emails.append(json.loads(request.content))
        return httpx.Response(200, text="OK")

    return EmailNotifier(settings.email, transport=httpx.MockTransport(handler))


@pytest.fixture()
def client(mongo_db, settings: Settings, notifier: EmailNotifier):
    app.dependency_overrides[get_db] = lambda: mongo_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def make_user(mongo_db, settings: Settings) -> Callable[..., Tuple[Dict[str, Any], Dict[str, str]]]:
    """Insert a user and return it with ready-to-use auth headers."""
    counter = {"n": 0}

    def _make(role: str = "guest", password: str = "secret123", **fields: Any):
        counter["n"] += 1
        doc = {
            "name": fields.pop("name", f"User {counter['n']}"),
            "email": fields.pop("email", f"user{counter['n']}@example.com"),
            "password_hash": hash_password(password),
            "role": role,
            "favorites": [],
            "created_at": datetime(2024, 1, 1),
        }
        doc.update(fields)
        doc["_id"] = mongo_db["user"].insert_one(doc).inserted_id
        token = create_access_token(str(doc["_id"]), settings)
        return doc, {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture()
def make_property(mongo_db) -> Callable[..., Dict[str, Any]]:
    def _make(host_id: str, **fields: Any) -> Dict[str, Any]:
        doc = {
            "host_id": host_id,
            "title": "Old Damascus House",
            "description": "Courtyard house near the Umayyad Mosque",
            "price": 100.0,
            "property_type": "house",
            "category": None,
            "location": {"address": "Bab Touma 1", "neighborhood": "Bab Touma", "city": "Damascus"},
            "capacity": {"guests": 4, "bedrooms": 2, "bathrooms": 1},
            "amenities": ["wifi", "kitchen"],
            "images": [],
            "is_available": True,
            "rating": {"average": 0, "count": 0},
            "reviews": [],
            "created_at": datetime(2024, 1, 1),
        }
        doc.update(fields)
        doc["_id"] = mongo_db["property"].insert_one(doc).inserted_id
        return doc

    return _make
