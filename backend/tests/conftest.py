# tests/conftest.py

import os

# Must be set before settings are imported
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("CLEANUP_ENABLED", "false")
os.environ.setdefault("EMAIL_ENABLED", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ADMIN_PASSCODE", "test-passcode")

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from summit_registration.core.security import create_access_token
from summit_registration.db.base import utcnow
from summit_registration.db.session import Database
from summit_registration.main import create_app
from summit_registration.models import AccessCode
from summit_registration.services.email import DeliveryResult, EmailService


# --- Test Database Setup ---
@pytest.fixture(scope="function")
def database(tmp_path):
    """A fresh SQLite file per test; file-backed so several threads can share it"""
    db = Database(f"sqlite:///{tmp_path / 'summit_test.db'}")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture(scope="function")
def db(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def make_code(db):
    """Insert an access code directly, bypassing the generator"""

    def _make(code="X7K2P9QT", hours=72, is_used=False, event_name=None):
        record = AccessCode(
            code=code,
            is_used=is_used,
            expires_at=utcnow() + timedelta(hours=hours),
            used_at=utcnow() if is_used else None,
            event_name=event_name,
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    return _make


@pytest.fixture
def participant_data():
    """Registration form body; pass keyword overrides to change fields"""

    def _data(**overrides):
        data = {
            "accessCode": "X7K2P9QT",
            "firstName": "Aminata",
            "lastName": "Kamara",
            "email": "aminata.kamara@example.com",
            "phone": "+23276123456",
            "age": 24,
            "occupation": "Software Developer",
            "gender": "Female",
            "district": "Western Area Urban",
            "interest": "Innovation & Entrepreneurship",
        }
        data.update(overrides)
        return data

    return _data


# --- Mock Dependencies Setup ---
@pytest.fixture
def email_service():
    """An email collaborator that records calls and always succeeds"""
    service = MagicMock(spec=EmailService)
    service.configured = True
    service.send_confirmation.return_value = DeliveryResult(success=True, message_id="msg_123")
    return service


# --- Test Client Fixtures ---
@pytest.fixture(scope="function")
def client(database, email_service):
    app = create_app(database=database, email_service=email_service, start_scheduler=False)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers():
    token = create_access_token(data={"sub": "admin", "role": "admin"})
    return {"Authorization": f"Bearer {token}"}
