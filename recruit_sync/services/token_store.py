"""
Per-owner Vincere credential storage.

Each owner (the user who connected Vincere) has a short-lived id token used
as the bearer credential and a long-lived refresh token used to mint new id
tokens. The Redis store keeps both in one hash per owner; the refresh token
TTL is extended every time a rotated token is saved.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

REFRESH_TOKEN_FIELD = "rt"
ID_TOKEN_FIELD = "idt"
DEFAULT_TTL_DAYS = 45


def token_key(owner_key: str) -> str:
    """Redis key holding an owner's tokens."""
    return f"vincere:rt:{owner_key}"


class TokenStore(ABC):
    """Abstract credential store keyed by owner."""

    @abstractmethod
    async def get_id_token(self, owner_key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def save_id_token(self, owner_key: str, id_token: str) -> None:
        pass

    @abstractmethod
    async def get_refresh_token(self, owner_key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def save_refresh_token(self, owner_key: str, refresh_token: Optional[str]) -> None:
        pass

    @abstractmethod
    async def clear(self, owner_key: str) -> None:
        pass


class InMemoryTokenStore(TokenStore):
    """Process-local store for single-instance deployments and tests."""

    def __init__(self):
        self._tokens: Dict[str, Dict[str, str]] = {}

    async def get_id_token(self, owner_key: str) -> Optional[str]:
        return self._tokens.get(owner_key, {}).get(ID_TOKEN_FIELD)

    async def save_id_token(self, owner_key: str, id_token: str) -> None:
        if not owner_key:
            return
        self._tokens.setdefault(owner_key, {})[ID_TOKEN_FIELD] = id_token

    async def get_refresh_token(self, owner_key: str) -> Optional[str]:
        if not owner_key:
            return None
        return self._tokens.get(owner_key, {}).get(REFRESH_TOKEN_FIELD)

    async def save_refresh_token(self, owner_key: str, refresh_token: Optional[str]) -> None:
        if not owner_key or not refresh_token:
            return
        self._tokens.setdefault(owner_key, {})[REFRESH_TOKEN_FIELD] = refresh_token

    async def clear(self, owner_key: str) -> None:
        self._tokens.pop(owner_key, None)


class RedisTokenStore(TokenStore):
    """Redis-backed store shared by every runner instance."""

    def __init__(self, redis: Redis, ttl_days: int = DEFAULT_TTL_DAYS):
        self._redis = redis
        self.ttl_seconds = ttl_days * 86400

    async def get_id_token(self, owner_key: str) -> Optional[str]:
        if not owner_key:
            return None
        return await self._redis.hget(token_key(owner_key), ID_TOKEN_FIELD)

    async def save_id_token(self, owner_key: str, id_token: str) -> None:
        if not owner_key:
            return
        await self._redis.hset(token_key(owner_key), mapping={ID_TOKEN_FIELD: id_token or ""})

    async def get_refresh_token(self, owner_key: str) -> Optional[str]:
        if not owner_key:
            return None
        return await self._redis.hget(token_key(owner_key), REFRESH_TOKEN_FIELD)

    async def save_refresh_token(self, owner_key: str, refresh_token: Optional[str]) -> None:
        if not owner_key or not refresh_token:
            return
        key = token_key(owner_key)
        await self._redis.hset(key, mapping={REFRESH_TOKEN_FIELD: refresh_token})
        await self._redis.expire(key, self.ttl_seconds)
        logger.debug(f"Stored refresh token for {owner_key} (ttl={self.ttl_seconds}s)")

    async def clear(self, owner_key: str) -> None:
        if not owner_key:
            return
        await self._redis.delete(token_key(owner_key))
