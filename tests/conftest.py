"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from summaryscribe.api.dependencies import (
    get_crm_client,
    get_llm_client,
    get_optional_user,
    get_slack_client,
)
from summaryscribe.infrastructure.crm_clients import CRMClient
from summaryscribe.infrastructure.database import get_session
from summaryscribe.infrastructure.llm_client import LLMClient
from summaryscribe.infrastructure.models import Base
from summaryscribe.infrastructure.slack_client import SlackClient
from summaryscribe.infrastructure.supabase_auth import CurrentUser
from summaryscribe.main import app

# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    # pysqlite's implicit transactions break SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _explicit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def test_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session


@pytest.fixture
def current_user() -> CurrentUser:
    """The signed-in caller used by API tests."""
    return CurrentUser(id="user-1", email="ada@example.com", name="Ada")


def make_completion(content: str | None, model: str = "test/model") -> MagicMock:
    """Build an object shaped like an OpenAI chat completion."""
    completion = MagicMock()
    completion.model = model
    choice = MagicMock()
    choice.message.content = content
    completion.choices = [choice]
    return completion


@pytest.fixture
def llm_client() -> LLMClient:
    """LLMClient whose SDK client is a mock returning a canned summary."""
    client = LLMClient(api_key="test-key", base_url="http://llm.test", model="test/model")
    sdk = MagicMock()
    sdk.chat.completions.create = AsyncMock(return_value=make_completion("Launch set for Friday."))
    client._client = sdk
    return client


@pytest.fixture
def slack_client() -> AsyncMock:
    """Mock Slack Web API client."""
    client = AsyncMock(spec=SlackClient)
    client.post_message.return_value = "1700000000.000100"
    client.open_dm.return_value = "D0DM"
    return client


@pytest.fixture
def crm_client() -> AsyncMock:
    """Mock CRM client."""
    client = AsyncMock(spec=CRMClient)
    client.push_hubspot_note.return_value = "hs-1"
    client.push_salesforce_note.return_value = "sf-1"
    client.push_notion_page.return_value = "notion-1"
    return client


def _override_dependencies(test_session, llm_client, slack_client, crm_client, user) -> None:
    async def _session():
        yield test_session

    async def _user():
        return user

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_optional_user] = _user
    app.dependency_overrides[get_llm_client] = lambda: llm_client
    app.dependency_overrides[get_slack_client] = lambda: slack_client
    app.dependency_overrides[get_crm_client] = lambda: crm_client


@pytest.fixture
async def client(
    test_session, llm_client, slack_client, crm_client, current_user
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client signed in as ``current_user``."""
    _override_dependencies(test_session, llm_client, slack_client, crm_client, current_user)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def anon_client(
    test_session, llm_client, slack_client, crm_client
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client with no session."""
    _override_dependencies(test_session, llm_client, slack_client, crm_client, None)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
