import asyncio
import time
from typing import Dict, Optional, Protocol, Tuple


class InsightsCache(Protocol):
    async def set_string(self, key: str, value: str, ttl: Optional[int] = None) -> None: ...

    async def get_string(self, key: str) -> Optional[str]: ...


class InMemoryInsightsCache:
    """String key-value cache with optional per-key expiry (seconds)"""

    def __init__(self, clock=time.monotonic):
        self._lock = asyncio.Lock()
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    async def set_string(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl if ttl is not None else None
        async with self._lock:
            self._data[key] = (value, expires_at)

    async def get_string(self, key: str) -> Optional[str]:
        async with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= self._clock():
                del self._data[key]
                return None
            return value

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)
