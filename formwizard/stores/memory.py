"""In-process session store.

Values are kept JSON-encoded so callers never share mutable state with
the store and non-serialisable values fail here, as they would in Redis.
Not shared between worker processes.
"""

import json
import time
from typing import Any, Callable, Optional


class MemorySessionStore:
    def __init__(self, ttl: int = 7200, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._data: dict[str, tuple[float, str]] = {}

    async def get(self, key: str, default: Optional[dict[str, Any]] = None) -> Optional[dict[str, Any]]:
        entry = self._data.get(key)
        if entry is None:
            return default
        expires_at, raw = entry
        if expires_at <= self._clock():
            del self._data[key]
            return default
        return json.loads(raw)

    async def set(self, key: str, value: dict[str, Any]) -> None:
        encoded = json.dumps(value)
        self._sweep()
        self._data[key] = (self._clock() + self.ttl, encoded)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._data.clear()

    def _sweep(self) -> None:
        """Drop every expired entry, including sessions that never come back."""
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._data.items() if expires_at <= now]
        for key in expired:
            del self._data[key]

    def __len__(self) -> int:
        return len(self._data)
