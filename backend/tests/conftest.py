"""Pytest configuration and fixtures."""

import os
import secrets

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

# Settings are read once at import time, so these must be set first
os.environ.setdefault("JWT_SECRET_KEY", _TEST_JWT_SECRET)
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RETRY_BACKOFF_SECONDS"] = "0"

from app.main import app  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.auth import create_access_token  # noqa: E402
from app.config import get_settings  # noqa: E402
from app.database import get_job_service, get_media, get_query_service  # noqa: E402
from lak.jobs import (  # noqa: E402
    InMemoryJobStorage,
    InMemoryMediaStore,
    JobQueryService,
    JobService,
)

# Use clearly invalid test IDs that cannot collide with production IDs
OWNER_ID = "usr_TEST_OWNER_000000"
DRIVER_ID = "usr_TEST_DRIVER_00001"
OTHER_DRIVER_ID = "usr_TEST_DRIVER_00002"


@pytest.fixture
def job_backend():
    """Fresh in-memory storage and media store wired into the app."""
    settings = get_settings()
    storage = InMemoryJobStorage(timeout=1.0, retry_backoff=0)
    media = InMemoryMediaStore()
    config = settings.jobs_config()

    app.dependency_overrides[get_job_service] = lambda: JobService(storage, media, config)
    app.dependency_overrides[get_query_service] = lambda: JobQueryService(storage, config)
    app.dependency_overrides[get_media] = lambda: media
    yield storage, media
    app.dependency_overrides.clear()


@pytest.fixture
def client(job_backend):
    """Create a test client."""
    return TestClient(app)


def headers_for(user_id: str) -> dict:
    token = create_access_token(user_id, get_settings())
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner_id():
    return OWNER_ID


@pytest.fixture
def driver_id():
    return DRIVER_ID


@pytest.fixture
def other_driver_id():
    return OTHER_DRIVER_ID


@pytest.fixture
def owner_headers():
    """Auth headers for the job owner."""
    return headers_for(OWNER_ID)


@pytest.fixture
def driver_headers():
    return headers_for(DRIVER_ID)


@pytest.fixture
def other_driver_headers():
    return headers_for(OTHER_DRIVER_ID)


@pytest.fixture
def create_job(client, owner_headers):
    """Post a job as the owner and return its id."""

    def _create(**fields):
        data = {
            "title": "Move a fridge",
            "description": "Ground floor to the van",
            "location": "5 Mill Lane",
            "pay": "60",
        }
        data.update(fields)
        response = client.post("/api/jobs", data=data, headers=owner_headers)
        assert response.status_code == 201, response.text
        return response.json()["jobId"]

    return _create
