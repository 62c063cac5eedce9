"""Pytest configuration and fixtures for FormWizard tests.

Provides a two-step test wizard, an in-memory session store, and an
httpx client bound to a freshly built app.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from formwizard.config import settings
from formwizard.main import create_app
from formwizard.schemas.state import WizardState
from formwizard.services.controller import WizardController
from formwizard.services.step_graph import WizardDefinition
from formwizard.stores.memory import MemorySessionStore
from formwizard.wizards import WizardRegistry


# ── Wizard Fixtures ──────────────────────────────────────────────

TWO_STEP_CONFIG = [
    {
        "step": "a",
        "name": "Step A",
        "forms": {"onSave": {"validation": {"name": "required"}}},
    },
    {
        "step": "b",
        "name": "Step B",
        "forms": {"onSave": {"validation": {"email": "required|email"}}},
    },
]


@pytest.fixture
def two_step_wizard() -> WizardDefinition:
    """Wizard "test" at /wizard/{step}: a(name) → b(email)."""
    return WizardDefinition(name="test", route="/wizard/{step}", steps=TWO_STEP_CONFIG)


@pytest.fixture
def controller(two_step_wizard: WizardDefinition) -> WizardController:
    return WizardController(two_step_wizard)


@pytest.fixture
def empty_state() -> WizardState:
    return WizardState()


# ── App Fixtures ─────────────────────────────────────────────────

@pytest.fixture
def memory_store() -> MemorySessionStore:
    return MemorySessionStore(ttl=settings.session_ttl_seconds)


@pytest.fixture
def test_app(two_step_wizard: WizardDefinition, memory_store: MemorySessionStore):
    """App serving the two-step wizard and the sample sign-up wizard."""
    registry = WizardRegistry.from_modules("formwizard.wizards.signup")
    registry.register(two_step_wizard)
    return create_app(wizards=registry, store=memory_store)


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Create test client; cookies persist across requests like a browser."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def ajax_headers() -> dict:
    return {"X-Requested-With": "XMLHttpRequest", settings.handler_header: "onSave"}


# ── Redis Fixtures ───────────────────────────────────────────────

@pytest_asyncio.fixture
async def redis_client():
    """Redis client for store tests; skips when no server is reachable."""
    import redis.asyncio as redis

    client = redis.from_url(settings.redis_url, decode_responses=True)
    try:
        await client.ping()
    except (redis.RedisError, OSError):
        await client.aclose()
        pytest.skip("Redis is not reachable")

    yield client

    async for key in client.scan_iter(match="formwizard-test:*"):
        await client.delete(key)
    await client.aclose()


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: HTTP-level tests")
    config.addinivalue_line("markers", "store: Session store tests")
    config.addinivalue_line("markers", "slow: Slow tests")
