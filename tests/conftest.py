"""Shared pytest fixtures: mocked session, callers, and an app client."""

import uuid
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import src.models  # noqa: F401  (registers every mapper)
from src.app import app
from src.database.session import get_db
from src.modules.auth.dependencies import AuthenticatedUser, get_current_user


def make_user(org_type: str = "BUYER", organization_id: uuid.UUID | None = None) -> AuthenticatedUser:
    return AuthenticatedUser(
        id=uuid.uuid4(),
        email="test@marketplace.test",
        organization_id=organization_id or uuid.uuid4(),
        organization_type=org_type,
        role="ADMIN",
    )


@pytest.fixture
def mock_db():
    """Create a mock AsyncSession."""
    session = AsyncMock()
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def buyer_user() -> AuthenticatedUser:
    return make_user("BUYER")


@pytest.fixture
def supplier_user() -> AuthenticatedUser:
    return make_user("SUPPLIER")


@pytest_asyncio.fixture
async def async_client(mock_db, buyer_user) -> AsyncGenerator[AsyncClient, None]:
    """httpx client against the app with the session and caller overridden.

    Tests that need a different caller set
    ``app.dependency_overrides[get_current_user]`` themselves.
    """

    async def override_get_db() -> AsyncGenerator:
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: buyer_user

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
