import pytest
from fastapi.testclient import TestClient

import db
from config import Settings
from fastapi_service import create_app


@pytest.fixture
def store():
    """A fresh in-memory store for each test."""
    s = db.StudentStore(':memory:')
    yield s
    try:
        s.close()
    except Exception:
        pass


@pytest.fixture
def client(store):
    app = create_app(store, settings=Settings())
    return TestClient(app)


@pytest.fixture
def jane():
    return {
        "rfidUID": "A1",
        "name": "Jane",
        "enrollmentNumber": "E100",
        "course": "CS",
        "year": "2025",
        "status": "Current Student",
    }
