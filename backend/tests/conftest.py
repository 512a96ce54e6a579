"""Pytest configuration and shared fixtures."""

import json
import os
from typing import Callable, Dict, List

# Keep tests off the network-facing defaults before booktracker.config loads
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("QUOTA_BACKEND", "memory")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from booktracker.models import Base
from booktracker.services.quota_service import InMemoryQuotaStore, QuotaTracker


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)

    def calls_to(self, host: str) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.host == host]


def json_response(payload: Dict, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=json.dumps(payload).encode(),
        headers={"Content-Type": "application/json"},
    )


def html_response(body: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, text=body, headers={"Content-Type": "text/html"})


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest.fixture
def make_client():
    """Build an httpx.AsyncClient served by a recording mock transport."""
    clients: List[httpx.AsyncClient] = []

    def _make(handler: Callable[[httpx.Request], httpx.Response]):
        transport = RecordingTransport(handler)
        client = httpx.AsyncClient(transport=transport, follow_redirects=True)
        clients.append(client)
        return client, transport

    return _make


@pytest.fixture
def memory_tracker() -> QuotaTracker:
    """Quota tracker with a small ceiling backed by process memory."""
    return QuotaTracker(InMemoryQuotaStore(), daily_limit=5, timezone_name="America/New_York")


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory for a fresh file-backed SQLite database.

    A file (not :memory:) with NullPool gives every session its own
    connection, so concurrent transactions really contend.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'quota.db'}",
        poolclass=NullPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()
