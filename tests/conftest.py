"""
Shared fixtures.

Environment is configured before any app module is imported so the global
engine points at an in-memory database.
"""

import os

os.environ.setdefault("TOOL_GATEWAY__DB_URL", "sqlite:///:memory:")
os.environ.setdefault("TOOL_GATEWAY__JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("TOOL_GATEWAY__INTERNAL_API_KEY", "test-internal-key")
os.environ.setdefault("TOOL_GATEWAY__LOG_LEVEL", "DEBUG")

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, List

import pytest
import pytest_asyncio
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.config import config
from app.models.database import Base
from app.services.api_key_service import DelegateApiKeyService
from app.services.delegate_manager import DelegateManager
from app.services.dispatcher import ToolDispatcher
from app.services.tool_registry import ToolRegistry
from app.services.tool_result_manager import ToolResultManager


class FakeChannel:
    """Delegate channel that records every message sent to it"""

    def __init__(self, fail: bool = False):
        self.sent: List[Any] = []
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionError("channel closed")
        self.sent.append(data)


@pytest.fixture
def channel():
    return FakeChannel()


@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def key_service():
    return DelegateApiKeyService(key_prefix="dak_")


@pytest.fixture
def result_manager():
    return ToolResultManager()


@pytest.fixture
def delegate_manager(result_manager):
    return DelegateManager(result_manager=result_manager, call_timeout=5.0)


@pytest.fixture
def registry(delegate_manager):
    return ToolRegistry(delegate_manager)


@pytest.fixture
def dispatcher(registry):
    return ToolDispatcher(registry)


def make_token(user_id: str, expires_in: int = 3600, **claims) -> str:
    """Signed access token accepted by the auth middleware"""
    payload = {
        "sub": user_id,
        "type": "access",
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        **claims,
    }
    return jwt.encode(payload, config.jwt_secret, algorithm=config.jwt_algorithm)


@pytest.fixture
def user_id():
    return f"user-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def auth_headers(user_id):
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def channel_factory():
    return FakeChannel


@pytest.fixture
def token_factory():
    return make_token
