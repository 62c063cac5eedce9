"""Session store back-ends.

A session store is a small async key-value map of JSON-serialisable
dicts. The wizard keeps one entry per (browser session, wizard) pair:

    "<session_id>:wizard_steps-<wizard name>" → {"stepCurrent": 1, "validations": {...}}

Back-ends:
  memory    → in-process dict, for development and tests
  redis     → redis.asyncio with per-key TTL
  database  → SQLAlchemy table `wizard_sessions`
"""

from typing import Any, Optional, Protocol

from fastapi import Request

from formwizard.middleware.exceptions import ConfigurationError


class SessionStore(Protocol):
    async def get(self, key: str, default: Optional[dict[str, Any]] = None) -> Optional[dict[str, Any]]: ...

    async def set(self, key: str, value: dict[str, Any]) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


def create_session_store(settings) -> SessionStore:
    """Build the back-end named by `settings.session_backend`."""
    backend = settings.session_backend.strip().lower()
    ttl = settings.session_ttl_seconds

    if backend == "memory":
        from formwizard.stores.memory import MemorySessionStore

        return MemorySessionStore(ttl=ttl)

    if backend == "redis":
        from formwizard.stores.redis import RedisSessionStore

        return RedisSessionStore(settings.redis_url, ttl=ttl)

    if backend == "database":
        from formwizard.database import get_sessionmaker
        from formwizard.stores.database import DatabaseSessionStore

        return DatabaseSessionStore(get_sessionmaker(), ttl=ttl)

    raise ConfigurationError(
        f"Unknown session backend {settings.session_backend!r} (use memory, redis or database)"
    )


def get_session_store(request: Request) -> SessionStore:
    """FastAPI dependency: the store created for this app."""
    return request.app.state.session_store
