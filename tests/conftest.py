# tests/conftest.py
import os
import tempfile

# Point the app at a throwaway SQLite database before jobrunner is imported;
# the engine is built from settings at import time.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="jobrunner-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_DIR}/test.db"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["MARKET_DATA_API_KEY"] = "test-api-key"
os.environ["MARKET_DATA_BASE_URL"] = "https://market.example.com"
os.environ["NEWS_FEED_URL"] = "https://news.example.com/feed"
os.environ["JOB_TIMER_ENABLED"] = "false"
os.environ["RUN_MIGRATIONS"] = "false"
os.environ["DEBUG"] = "false"

import pytest
from fastapi.testclient import TestClient

from jobrunner import models  # noqa: F401
from jobrunner.core.config import clear_settings_cache, get_settings
from jobrunner.database import Base, async_session, engine
from jobrunner.dependencies import get_job_scheduler
from jobrunner.main import app
from jobrunner.services.job_scheduler import JobScheduler
from tests.mocks.job_store import InMemoryJobStore

CRON_SECRET = "test-cron-secret"


@pytest.fixture
def settings():
    """Provide test settings"""
    clear_settings_cache()
    return get_settings()


@pytest.fixture(scope="function")
async def test_engine():
    """Create the tables on the test database for one test, drop them after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine):
    """Provide a database session for tests"""
    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def memory_store():
    return InMemoryJobStore()


@pytest.fixture
def memory_scheduler(memory_store):
    """Scheduler over the in-memory store with the real registry"""
    return JobScheduler(store=memory_store)


@pytest.fixture
def test_client(memory_scheduler):
    """Provide a test client whose endpoints use the in-memory scheduler"""
    app.dependency_overrides[get_job_scheduler] = lambda: memory_scheduler
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {CRON_SECRET}"}


# Mock fixtures for external services
@pytest.fixture
def mock_market_client(mocker):
    """Provide a mocked MarketDataClient as seen by the job handlers"""
    return mocker.patch("jobrunner.services.job_handlers.MarketDataClient")
