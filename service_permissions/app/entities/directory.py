"""
Guild membership lookup against the bot gateway.
"""

from abc import ABC, abstractmethod
from typing import Dict

import httpx

from shared.logging import get_logger
from shared.errors import ExternalServiceError, ValidationError
from shared.retry import retry_on_exception, RetryConfig, RetryError
from .models import Guild


class GuildDirectory(ABC):
    """Source of guild snapshots."""

    @abstractmethod
    async def get_guild(self, guild_id: str) -> Guild:
        """Snapshot of the guild, or an error if it is unknown."""


class StaticGuildDirectory(GuildDirectory):
    """Directory over fixed snapshots, for embedding and tests."""

    def __init__(self, guilds=()):
        self.guilds: Dict[str, Guild] = {g.id: g for g in guilds}

    def put(self, guild: Guild):
        self.guilds[guild.id] = guild

    async def get_guild(self, guild_id: str) -> Guild:
        guild = self.guilds.get(guild_id)
        if guild is None:
            raise ValidationError(f"Unknown guild {guild_id}", details={"guild_id": guild_id})
        return guild


class HttpGuildDirectory(GuildDirectory):
    """Fetches guild roles and members from the bot gateway over HTTP."""

    def __init__(self, base_url: str, timeout: float = 10.0, logger=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.logger = logger or get_logger("permissions.directory")

    async def get_guild(self, guild_id: str) -> Guild:
        try:
            payload = await self._fetch_guild(guild_id)
        except RetryError as e:
            self.logger.error("Guild directory unavailable", guild_id=guild_id, error=str(e.last_exception))
            raise ExternalServiceError(
                "guild_directory",
                "Guild directory unavailable",
                details={"guild_id": guild_id, "http_error": str(e.last_exception)}
            )
        except httpx.HTTPStatusError as e:
            self.logger.error(
                "Guild directory error",
                guild_id=guild_id,
                status_code=e.response.status_code
            )
            raise ExternalServiceError(
                "guild_directory",
                f"Unexpected status {e.response.status_code}",
                details={"guild_id": guild_id, "status_code": e.response.status_code}
            )

        return Guild.from_payload(payload)

    @retry_on_exception((httpx.TransportError,), config=RetryConfig(max_attempts=3, base_delay=0.5))
    async def _fetch_guild(self, guild_id: str) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(f"{self.base_url}/guilds/{guild_id}")
            response.raise_for_status()
            return response.json()
