"""
Per-guild write serialization for grant edits.

Edits are read-modify-write against the store. Holding the guild's lock
across the whole cycle keeps two concurrent edits from overwriting each
other. Reads never take the lock.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import LockError, RedisError

from shared.logging import get_logger
from shared.errors import PersistenceFailure


class GuildLocks(ABC):
    """Hands out an exclusive write section per guild."""

    async def start(self):
        """Open connections."""

    async def stop(self):
        """Close connections."""

    @abstractmethod
    def hold(self, guild_id: str) -> AsyncContextManager[None]:
        """Async context manager held across one read-modify-write."""


class LocalGuildLocks(GuildLocks):
    """asyncio locks, one per guild, for a single bot process.

    A guild's lock lives only while some edit holds or waits on it.
    """

    def __init__(self, timeout: float = 10.0, logger=None):
        self.timeout = timeout
        self.logger = logger or get_logger("permissions.locks.local")
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, guild_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(guild_id)
        if lock is None:
            lock = self._locks[guild_id] = asyncio.Lock()
        self._users[guild_id] = self._users.get(guild_id, 0) + 1

        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
            except asyncio.TimeoutError:
                self.logger.error("Timed out waiting for guild write lock", guild_id=guild_id)
                raise PersistenceFailure("Permissions are busy, try again", details={"guild_id": guild_id})

            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[guild_id] -= 1
            if not self._users[guild_id]:
                del self._users[guild_id]
                del self._locks[guild_id]


class RedisGuildLocks(GuildLocks):
    """Redis locks, for several bot processes sharing one store."""

    LOCK_PREFIX = "perms:lock:"

    def __init__(self, redis_url: str, timeout: float = 10.0, logger=None):
        self.redis_url = redis_url
        self.timeout = timeout
        self.logger = logger or get_logger("permissions.locks.redis")
        self.redis: Optional[redis.Redis] = None

    async def start(self):
        try:
            self.redis = redis.from_url(
                self.redis_url,
                socket_connect_timeout=5,
                socket_timeout=5,
                health_check_interval=30
            )
            await self.redis.ping()
            self.logger.info("Redis guild locks started")

        except RedisError as e:
            self.logger.error("Failed to start Redis guild locks", error=str(e))
            raise PersistenceFailure("Could not connect to lock service", details={"error": str(e)})

    async def stop(self):
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis guild locks stopped")

    @asynccontextmanager
    async def hold(self, guild_id: str) -> AsyncIterator[None]:
        if self.redis is None:
            raise PersistenceFailure("Lock service is not started")

        # Lease outlives a slow store call; released explicitly below
        lock = self.redis.lock(
            f"{self.LOCK_PREFIX}{guild_id}",
            timeout=self.timeout * 2,
            blocking_timeout=self.timeout
        )
        try:
            acquired = await lock.acquire()
        except RedisError as e:
            self.logger.error("Error acquiring guild write lock", guild_id=guild_id, error=str(e))
            raise PersistenceFailure("Could not lock permissions", details={"guild_id": guild_id})

        if not acquired:
            self.logger.error("Timed out waiting for guild write lock", guild_id=guild_id)
            raise PersistenceFailure("Permissions are busy, try again", details={"guild_id": guild_id})

        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError as e:
                self.logger.warning("Guild write lock expired before release", guild_id=guild_id, error=str(e))
            except RedisError as e:
                # Lease expires on its own
                self.logger.warning("Error releasing guild write lock", guild_id=guild_id, error=str(e))
