"""
Pytest configuration and shared fixtures for the practice backend test suite.
"""

import asyncio
import os
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

# Set test environment before importing app
os.environ["PRACTICE_ENVIRONMENT"] = "test"
os.environ["PRACTICE_SESSION_SECRET"] = "test-secret"
os.environ["PRACTICE_S3_BUCKET_NAME"] = "test-bucket"
os.environ["PRACTICE_AWS_REGION"] = "ap-northeast-1"
os.environ["PRACTICE_ADVICE_API_KEY"] = "test-key"
os.environ["PRACTICE_PASSWORD_HASH_ROUNDS"] = "4"
os.environ["PRACTICE_LOG_FORMAT"] = "console"
# Disable rate limiting for tests
os.environ["PRACTICE_RATE_LIMIT_REQUESTS"] = "999999"
# Mock URLs for external services to avoid network calls
os.environ["PRACTICE_EXECUTION_BASE"] = "http://mock-piston:2000/api/v2/piston"
os.environ["PRACTICE_ADVICE_BASE"] = "http://mock-advice:8080/v1"

from practice.config import get_settings  # noqa: E402
from practice.db import base  # noqa: E402
from practice.services.activity_log import ActivityLogStore  # noqa: E402
from practice.services.context import Context  # noqa: E402
from practice.services.envelopes import EnvelopeBuilder  # noqa: E402
from practice.services.users import UserService  # noqa: E402
from tests.doubles import InMemoryObjectStore, InMemoryRedis, SteppingClock  # noqa: E402

TEST_USERS = [
    {"username": "user1", "password": "password1", "userId": "user_001"},
    {"username": "user2", "password": "password2", "userId": "user_002"},
]


@pytest.fixture(autouse=True)
def test_db(tmp_path, monkeypatch):
    """Point the credential database at a fresh SQLite file per test."""
    monkeypatch.setenv("PRACTICE_DB_URL", f"sqlite+aiosqlite:///{tmp_path / 'practice.db'}")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def seeded_users(test_db):
    """Create the default accounts before the app starts."""

    async def seed():
        async with base.session_scope() as session:
            service = UserService(session)
            for entry in TEST_USERS:
                await service.create_user(
                    username=entry["username"],
                    password=entry["password"],
                    user_id=entry["userId"],
                )
        await base.close_db()

    asyncio.run(seed())
    return TEST_USERS


@pytest.fixture
def object_store():
    return InMemoryObjectStore()


@pytest.fixture
def redis_double():
    return InMemoryRedis()


@pytest.fixture
def log_store(object_store):
    return ActivityLogStore(object_store, prefix="log")


@pytest.fixture
def context():
    return Context(user_id="user_001", username="user1", task_number=1)


@pytest.fixture
def clock():
    return SteppingClock(datetime(2025, 4, 1, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def builder(clock):
    counter = iter(range(1, 10_000))
    return EnvelopeBuilder(clock=clock, id_factory=lambda: f"id{next(counter):04d}")


@pytest.fixture
def piston_result():
    return {
        "language": "c",
        "version": "10.2.0",
        "run": {"stdout": "", "stderr": "", "code": 0, "signal": None, "output": ""},
    }


@pytest.fixture
def advice_result():
    return {
        "estimated_stage": "処理の大枠決定",
        "processing_structure": [
            {"level": 1, "text": "入力を読む", "status": "done"},
            {"level": 1, "text": "合計を計算する", "status": "in_progress"},
            {"level": 2, "text": "ループで加算する", "status": "todo"},
        ],
        "advice": [
            {"level": 1, "text": "処理の流れをコメントで書き出しましょう"},
            {"level": 2, "text": "ループ変数の範囲を確認しましょう"},
            {"level": 3, "text": "for文で1からnまで加算してみましょう"},
        ],
    }


@pytest.fixture
def mock_execution_client(piston_result):
    """Mock execution client to avoid external API calls."""
    mock_client = AsyncMock()
    mock_client.execute.return_value = piston_result
    return mock_client


@pytest.fixture
def mock_advice_client(advice_result):
    """Mock advice client to avoid external API calls."""
    mock_client = AsyncMock()
    mock_client.get_advice.return_value = advice_result
    return mock_client


@pytest.fixture
def app(object_store, redis_double, mock_execution_client, mock_advice_client):
    """Full app with in-memory stores and mocked upstream clients."""
    from practice.server import create_app

    test_app = create_app(object_store=object_store, redis=redis_double)
    test_app.state.test_clients = {
        "execution": mock_execution_client,
        "advice": mock_advice_client,
    }
    return test_app


@pytest.fixture
def client(app, seeded_users):
    """Test client with the app started; upstream clients mocked."""
    with TestClient(app) as test_client:
        coordinator = app.state.coordinator
        coordinator.execution = app.state.test_clients["execution"]
        coordinator.advice = app.state.test_clients["advice"]
        yield test_client


@pytest.fixture
def auth_client(client):
    """Test client logged in as user1."""
    response = client.post("/login", json={"username": "user1", "password": "password1"})
    assert response.status_code == 200
    return client
