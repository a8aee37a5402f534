"""
Plugin-scoped key-value store.

The adapter persists exactly two keys per plugin: ``settings`` and
``transactionHistory``. Values are plain JSON-compatible structures.
"""

from __future__ import annotations

import copy
import json
import logging
from typing import Any, Dict, Optional, Protocol

import redis.asyncio as redis

from app.core.config import settings

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...


class InMemoryStore:
    """Process-local store. Values are deep-copied on the way in and out."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._data: Dict[str, Any] = {}

    async def get(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)


class RedisStore:
    """JSON values under ``{name}:{key}`` in Redis."""

    def __init__(self, name: str, client: redis.Redis) -> None:
        self.name = name
        self.client = client

    def _key(self, key: str) -> str:
        return f"{self.name}:{key}"

    async def get(self, key: str) -> Any:
        raw = await self.client.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        await self.client.set(self._key(key), json.dumps(value, default=str))


def create_store(name: Optional[str] = None) -> KeyValueStore:
    """Build the store configured by STORE_BACKEND."""
    name = name or settings.PAYONE_PLUGIN_NAME
    if settings.STORE_BACKEND == "redis":
        client = redis.from_url(
            settings.REDIS_URL,
            password=settings.REDIS_PASSWORD or None,
            decode_responses=True,
        )
        logger.info(f"[store] using Redis store for {name}")
        return RedisStore(name, client)

    logger.info(f"[store] using in-memory store for {name}")
    return InMemoryStore(name)
