"""pytest configuration and shared fixtures.

Provides an in-memory SQLite database for the execution log store, a
node registry, execution loggers, the execution engine and an HTTP
client bound to the FastAPI app.
"""

from collections.abc import AsyncGenerator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from flowengine.api.deps import get_engine
from flowengine.main import app
from flowengine.models import Base
from flowengine.schemas.execution import ExecutionOptions
from flowengine.schemas.workflow import WorkflowDefinition
from flowengine.services.executors.http_client import HttpRequestClient
from flowengine.services.workflow.engine import WorkflowExecutionEngine
from flowengine.services.workflow.execution_logger import (
    ExecutionLogger,
    InMemoryLogStore,
    SqlAlchemyLogStore,
)
from flowengine.services.workflow.nodes.http_request import HttpRequestNode
from flowengine.services.workflow.nodes.registry import (
    NodeRegistry,
    create_default_registry,
    get_registry,
)

# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


# =============================================================================
# DATABASE FIXTURES (SQLite In-Memory for Tests)
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an async SQLite in-memory engine with all tables.

    Yields:
        AsyncEngine: SQLAlchemy async engine backed by SQLite in-memory.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def async_session_maker(
    async_engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to the test engine."""
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# =============================================================================
# HTTP MOCK FIXTURES
# =============================================================================


def json_handler(
    payload: Any = None,
    status_code: int = 200,
) -> Callable[[httpx.Request], httpx.Response]:
    """Build a MockTransport handler answering every request with JSON."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = payload if payload is not None else {"url": str(request.url)}
        return httpx.Response(status_code, json=body)

    return handler


@pytest.fixture
def make_http_client() -> Callable[..., HttpRequestClient]:
    """Factory of HTTP clients answering every request from a MockTransport.

    Call it with a JSON payload and status code, or with a custom handler.
    """

    def factory(
        payload: Any = None,
        status_code: int = 200,
        handler: Callable[[httpx.Request], httpx.Response] | None = None,
    ) -> HttpRequestClient:
        transport = httpx.MockTransport(handler or json_handler(payload, status_code))
        return HttpRequestClient(transport=transport)

    return factory


@pytest.fixture
def mock_http_client(make_http_client: Callable[..., HttpRequestClient]) -> HttpRequestClient:
    """HTTP client answering ``{"ok": true}`` to every request."""
    return make_http_client({"ok": True})


# =============================================================================
# ENGINE FIXTURES
# =============================================================================


@pytest.fixture
def registry(mock_http_client: HttpRequestClient) -> NodeRegistry:
    """Default registry whose HTTP node talks to a mock transport."""

    class MockHttpRequestNode(HttpRequestNode):
        def __init__(self) -> None:
            super().__init__(client=mock_http_client)

    registry = create_default_registry()
    registry.register(MockHttpRequestNode, replace=True)
    return registry


@pytest.fixture
def execution_logger() -> ExecutionLogger:
    return ExecutionLogger(InMemoryLogStore())


@pytest_asyncio.fixture
async def db_execution_logger(
    async_session_maker: async_sessionmaker[AsyncSession],
) -> ExecutionLogger:
    return ExecutionLogger(SqlAlchemyLogStore(async_session_maker))


@pytest.fixture
def engine(registry: NodeRegistry, execution_logger: ExecutionLogger) -> WorkflowExecutionEngine:
    return WorkflowExecutionEngine(registry, execution_logger)


@pytest.fixture
def fast_options() -> ExecutionOptions:
    """Options with short timeouts and no retry delay."""
    return ExecutionOptions(timeout=5.0, node_timeout=2.0, retry_delay=0.0)


@pytest.fixture
def linear_workflow() -> WorkflowDefinition:
    """Manual trigger -> set variable -> HTTP request."""
    return WorkflowDefinition.model_validate(
        {
            "id": "wf-linear",
            "name": "Linear",
            "nodes": [
                {"id": "start", "type": "manual_trigger"},
                {
                    "id": "set",
                    "type": "set_variable",
                    "parameters": {
                        "variables": [
                            {"name": "symbol", "value": "{{input.symbol}}"},
                            {"name": "limit", "value": 10},
                        ]
                    },
                },
                {
                    "id": "http",
                    "type": "http_request",
                    "parameters": {
                        "url": "https://api.example.com/quotes/{{set.symbol}}",
                        "method": "GET",
                    },
                },
            ],
            "connections": [
                {"source": "start", "target": "set"},
                {"source": "set", "target": "http"},
            ],
        }
    )


# =============================================================================
# HTTP CLIENT FIXTURES
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_client(
    engine: WorkflowExecutionEngine,
) -> AsyncGenerator[AsyncClient]:
    """Async HTTP client for testing API endpoints.

    Uses ASGI transport to test the FastAPI app without running a server.
    The engine and registry dependencies are overridden with the test
    engine and its registry.

    Yields:
        AsyncClient: Configured async HTTP client.
    """
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_registry] = lambda: engine.registry
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as client:
            yield client
    finally:
        app.dependency_overrides.clear()
