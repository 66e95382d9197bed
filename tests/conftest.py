# Pytest configuration and shared fixtures for the EduSocial test suite
import sys
import os
from datetime import datetime, timedelta, UTC

import pytest

# Add the project root to Python path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from edusocial.db.db_factory import DatabaseFactory
from edusocial.db.memory_provider import MemoryProvider
from edusocial.models.schemas import Post


# Configure pytest markers
def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Unit tests for isolated components")
    config.addinivalue_line("markers", "integration: Integration tests for multiple components")
    config.addinivalue_line("markers", "real: Tests that use real external services")
    config.addinivalue_line("markers", "slow: Tests that take longer to run")


SAMPLE_CATEGORY_ROWS = [
    ("TYT", "Matematik"),
    ("TYT", "Türkçe"),
    ("TYT", "Fizik"),
    ("AYT", "Matematik"),
    ("AYT", "Kimya"),
]


@pytest.fixture
def memory_db():
    """Install a fresh in-memory provider for the duration of a test."""
    previous = DatabaseFactory._instance
    provider = MemoryProvider()
    DatabaseFactory.set_provider(provider)
    yield provider
    DatabaseFactory._instance = previous


@pytest.fixture
def seeded_db(memory_db):
    """Memory provider with the sample categories, two users and one admin."""
    for main_category, sub_category in SAMPLE_CATEGORY_ROWS:
        memory_db.insert_exam_category(main_category, sub_category)
    memory_db.insert_profile({"user_id": "user-1", "display_name": "Ayşe"})
    memory_db.insert_profile({"user_id": "user-2", "display_name": "Mehmet"})
    memory_db.insert_profile({"user_id": "admin-1", "display_name": "Yönetici"})
    memory_db.upsert_user_role("admin-1", "admin")
    return memory_db


@pytest.fixture
def sample_taxonomy():
    return {
        "AYT": ["Kimya", "Matematik"],
        "TYT": ["Fizik", "Matematik", "Türkçe"],
    }


@pytest.fixture
def fast_retry(monkeypatch):
    """Skip the delay between read retries."""
    monkeypatch.setattr("edusocial.utils.retry.time.sleep", lambda seconds: None)


@pytest.fixture
def fixed_now():
    return datetime(2024, 5, 20, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def make_post(fixed_now):
    """Build Post models with sensible defaults."""
    counter = {"n": 0}

    def _make(age=timedelta(days=1), **fields):
        counter["n"] += 1
        data = {
            "id": f"post-{counter['n']}",
            "user_id": "user-1",
            "content": "Soru",
            "created_at": fixed_now - age if age is not None else None,
        }
        data.update(fields)
        return Post(**data)

    return _make
