import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure project root is on sys.path so 'src' is importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("SUPABASE_DISABLED", "1")
os.environ.setdefault("APP_ROLES", "admin,user")
os.environ.setdefault("APP_DEFAULT_ROLE", "user")


@pytest.fixture(scope="session")
def client() -> TestClient:
    # lazy import after env configured
    from src.main import create_app

    app = create_app()
    return TestClient(app)


@pytest.fixture(autouse=True)
def clean_memory_stores():
    """Each test starts from empty in-memory auth and tables."""
    from src.infrastructure.auth.session_store import get_memory_directory
    from src.infrastructure.database.repositories import (
        meal_repository,
        profile_repository,
        restaurant_repository,
    )

    get_memory_directory().clear()
    profile_repository._MEM_PROFILES.clear()
    restaurant_repository._MEM_RESTAURANTS.clear()
    meal_repository._MEM_MEALS.clear()
    yield


@pytest.fixture()
def register(client):
    """Sign up through the API and return the access token."""

    def _register(email: str, role: str = "user", **extra) -> str:
        body = {
            "email": email,
            "password": "secret123",
            "confirm_password": "secret123",
            "display_name": email.split("@")[0],
            "role": role,
            **extra,
        }
        r = client.post("/auth/sign-up", json=body)
        assert r.status_code == 201, r.text
        return r.json()["access_token"]

    return _register
