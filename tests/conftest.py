import os

# Set testing environment before the app reads its settings
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

import pytest
import fakeredis
from datetime import timedelta
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from clinic.main import app
from clinic.core.database import get_db, get_redis, Base
from clinic.core.security import utcnow
from clinic import models  # noqa: F401

from .helpers import API, bearer

# Create test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db

@pytest.fixture(scope="function")
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def db_session(test_db):
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)

@pytest.fixture
def client(test_db, fake_redis):
    app.dependency_overrides[get_redis] = lambda: fake_redis
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.pop(get_redis, None)

@pytest.fixture
def register(client):
    """Register a user and return the token response plus auth headers."""
    def _register(email, name="Test User", password="Password123", **extra):
        payload = {"name": name, "email": email, "password": password}
        payload.update(extra)
        response = client.post(f"{API}/auth/register", json=payload)
        assert response.status_code == 201, response.text

        data = response.json()
        data["headers"] = bearer(data["access_token"])

        profile = client.get(f"{API}/auth/profile", headers=data["headers"]).json()
        data["doctor_id"] = profile.get("doctor_id")
        data["patient_id"] = profile.get("patient_id")
        return data

    return _register

@pytest.fixture
def patient(register):
    return register("alice@patients.com", name="Alice Patient")

@pytest.fixture
def other_patient(register):
    return register("bob@patients.com", name="Bob Patient")

@pytest.fixture
def doctor(register):
    return register("house@doctors.com", name="Gregory House", specialization="Diagnostics")

@pytest.fixture
def other_doctor(register):
    return register("wilson@doctors.com", name="James Wilson", specialization="Oncology")

@pytest.fixture
def admin(register):
    return register("root@admin.com", name="Admin")

@pytest.fixture
def future_time():
    """An instant a week ahead at 10:00, as an ISO string."""
    moment = (utcnow() + timedelta(days=7)).replace(hour=10, minute=0, second=0, microsecond=0)
    return moment.isoformat()

@pytest.fixture
def book(client):
    def _book(patient, doctor, date_time, reason=None):
        payload = {"doctorId": doctor["doctor_id"], "dateTime": date_time}
        if reason is not None:
            payload["reason"] = reason
        response = client.post(
            f"{API}/patients/appointments", json=payload, headers=patient["headers"]
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _book
