"""
PostgreSQL persistence for guild grant records.
"""

import json
from typing import Optional

import asyncpg

from shared.logging import get_logger
from shared.errors import PersistenceFailure
from ..entities.models import GrantRecord
from .store import PermissionStore


STORAGE_ERRORS = (OSError, asyncpg.PostgresError, asyncpg.InterfaceError)


class PostgresPermissionStore(PermissionStore):
    """One row per guild; grants held as a JSONB object of level -> id list."""

    def __init__(self, dsn: str, command_timeout: float = 5.0, logger=None):
        self.dsn = dsn
        self.command_timeout = command_timeout
        self.logger = logger or get_logger("permissions.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=1,
                max_size=10,
                command_timeout=self.command_timeout,
                init=self._init_connection
            )
            await self._create_tables()
            self.logger.info("PostgreSQL persistence started")

        except STORAGE_ERRORS as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise PersistenceFailure("Could not connect to grant storage", details={"error": str(e)})

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL persistence stopped")

    @staticmethod
    async def _init_connection(conn):
        await conn.set_type_codec(
            "jsonb",
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog"
        )

    async def _create_tables(self):
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS guild_permissions (
                    guild_id VARCHAR(32) PRIMARY KEY,
                    grants JSONB NOT NULL DEFAULT '{}',
                    updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise PersistenceFailure("Grant storage is not started")
        return self.pool

    async def read(self, guild_id: str) -> GrantRecord:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow("""
                    SELECT grants FROM guild_permissions WHERE guild_id = $1
                """, guild_id)

        except STORAGE_ERRORS as e:
            self.logger.error("Error loading grant record", guild_id=guild_id, error=str(e))
            raise PersistenceFailure("Could not load permissions", details={"guild_id": guild_id})

        if not row:
            return GrantRecord.empty(guild_id)

        return GrantRecord.from_payload(guild_id, row["grants"])

    async def upsert(self, record: GrantRecord) -> None:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                if record.is_empty():
                    await conn.execute("""
                        DELETE FROM guild_permissions WHERE guild_id = $1
                    """, record.guild_id)
                    self.logger.info("Pruned empty grant record", guild_id=record.guild_id)
                    return

                await conn.execute("""
                    INSERT INTO guild_permissions (guild_id, grants, updated_at)
                    VALUES ($1, $2, NOW())
                    ON CONFLICT (guild_id) DO UPDATE SET
                        grants = EXCLUDED.grants,
                        updated_at = EXCLUDED.updated_at
                """, record.guild_id, record.to_payload())

                self.logger.info("Grant record saved", guild_id=record.guild_id)

        except STORAGE_ERRORS as e:
            self.logger.error("Error saving grant record", guild_id=record.guild_id, error=str(e))
            raise PersistenceFailure("Could not save permissions", details={"guild_id": record.guild_id})

    async def health_check(self) -> bool:
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except STORAGE_ERRORS:
            return False
