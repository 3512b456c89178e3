"""
College ERP - test configuration and fixtures
"""
import os
import tempfile

import pytest

# Set testing environment before the app modules read it
os.environ["JWT_TOKEN"] = "test-jwt-secret-for-testing-only"
os.environ["PEPPER"] = "test-pepper"
os.environ["AUDIT_FAIL_CLOSED"] = "false"
os.environ.setdefault("ERP_WORKBOOK", os.path.join(tempfile.gettempdir(), "erp-test-unused.xlsx"))

from fastapi.testclient import TestClient

from Auth.users import UserService
from main import app
from Store.database import get_store
from Store.table import MemoryStore

ADMIN = {"username": "admin", "email": "admin@college.edu", "password": "admin123",
         "role": "admin", "display_name": "System Administrator"}


@pytest.fixture
def store() -> MemoryStore:
    """A fresh in-memory spreadsheet with every sheet provisioned"""
    return MemoryStore.provisioned()


@pytest.fixture
def users(store) -> UserService:
    return UserService(store)


@pytest.fixture
def client(store):
    """Test client whose store dependency points at the in-memory store"""
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(users):
    """Create a user with a given role, returning (profile, password)"""
    def _make(role: str, email: str, password: str = "secret-pw"):
        result = users.create_user({"username": email.split("@")[0], "email": email,
                                    "password": password, "role": role})
        assert result["success"], result
        return result["user"], password
    return _make


@pytest.fixture
def login_headers(client):
    def _login(email: str, password: str):
        response = client.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.json()
        return {"Authorization": f"Bearer {response.json()['data']['access_token']}"}
    return _login


@pytest.fixture
def admin(users):
    result = users.create_user(ADMIN)
    assert result["success"], result
    return result["user"]


@pytest.fixture
def admin_headers(admin, login_headers):
    return login_headers(ADMIN["email"], ADMIN["password"])
