"""
Pytest fixtures and test configuration for LAK tests.
"""

import pytest

from lak.jobs import (
    ImageUpload,
    InMemoryJobStorage,
    InMemoryMediaStore,
    JobQueryService,
    JobsConfig,
    JobService,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture
def make_payload():
    """Factory for a valid create payload."""

    def _make(**overrides):
        payload = {
            "title": "Move a couch",
            "description": "Two-seater couch from the garage to the truck",
            "location": "12 Harbor Rd",
            "pay": 40,
        }
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture
def make_image():
    """Factory for a small PNG upload."""

    def _make(name="photo.png", content=PNG_BYTES, content_type="image/png"):
        return ImageUpload(content=content, content_type=content_type, filename=name)

    return _make


@pytest.fixture
def config():
    """Create test configuration."""
    return JobsConfig(repository_timeout_seconds=1.0, retry_backoff_seconds=0.0)


@pytest.fixture
def storage(config):
    """Create in-memory storage for testing."""
    return InMemoryJobStorage(
        timeout=config.repository_timeout_seconds,
        retry_backoff=config.retry_backoff_seconds,
    )


@pytest.fixture
def media():
    return InMemoryMediaStore()


@pytest.fixture
def service(storage, media, config):
    """Create job service for testing."""
    return JobService(storage=storage, media=media, config=config)


@pytest.fixture
def queries(storage, config):
    """Create query service for testing."""
    return JobQueryService(storage=storage, config=config)
