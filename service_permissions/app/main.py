"""
Guild permissions service.
"""

import shlex
from typing import Dict, Optional

from fastapi import Query
from pydantic import BaseModel, Field

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import ValidationError
from shared.logging import set_command_context

from .commands.permissions import PermissionsCommandGroup
from .commands.replies import CommandReply
from .entities.directory import GuildDirectory, HttpGuildDirectory
from .entities.models import Guild, Member, PermissionLevel
from .entities.resolver import EntityResolver
from .grants.editor import GrantEditor
from .grants.query import PermissionQueryService
from .levels.hierarchy import PermissionLevelHierarchy
from .persistence.locks import GuildLocks, LocalGuildLocks, RedisGuildLocks
from .persistence.postgres import PostgresPermissionStore
from .persistence.store import InMemoryPermissionStore, PermissionStore


class CommandRequest(BaseModel):
    """A `perms` command as typed by an operator."""
    operator_id: str = Field(..., description="Member id of the operator")
    content: str = Field(..., description="Command text after the prefix, e.g. 'perms mod add Moder'")


class PermissionsService(BaseService):
    """Permissions service implementation."""

    def __init__(self,
                 config: Optional[ServiceConfig] = None,
                 store: Optional[PermissionStore] = None,
                 directory: Optional[GuildDirectory] = None,
                 locks: Optional[GuildLocks] = None):
        super().__init__("permissions", 8020, config=config or get_config("permissions", 8020))

        self.store = store or self._build_store()
        self.locks = locks or self._build_locks()
        self.directory = directory or HttpGuildDirectory(
            self.config.directory_service_url,
            timeout=self.config.directory_timeout_seconds
        )

        self.hierarchy = PermissionLevelHierarchy(owner_id=self.config.bot_owner_id)
        self.resolver = EntityResolver()
        self.editor = GrantEditor(
            self.store,
            self.hierarchy,
            resolver=self.resolver,
            locks=self.locks,
            store_timeout=self.config.store_timeout_seconds
        )
        self.query = PermissionQueryService(
            self.store,
            self.hierarchy,
            store_timeout=self.config.store_timeout_seconds
        )
        self.commands = PermissionsCommandGroup(self.editor, self.query, prefix=self.config.command_prefix)

        self._setup_permissions_routes()

    def _build_store(self) -> PermissionStore:
        if self.config.store_backend == "memory":
            return InMemoryPermissionStore()
        return PostgresPermissionStore(self.config.postgres_dsn, command_timeout=self.config.store_timeout_seconds)

    def _build_locks(self) -> GuildLocks:
        if self.config.lock_backend == "redis":
            return RedisGuildLocks(self.config.redis_url, timeout=self.config.lock_timeout_seconds)
        return LocalGuildLocks(timeout=self.config.lock_timeout_seconds)

    async def startup(self):
        await self.store.start()
        await self.locks.start()

    async def shutdown(self):
        await self.locks.stop()
        await self.store.stop()

    async def _check_dependencies(self) -> Dict[str, str]:
        healthy = await self.store.health_check()
        return {"store": "ok" if healthy else "error"}

    async def _load(self, guild_id: str, operator_id: str):
        set_command_context(guild_id=guild_id, operator_id=operator_id)
        guild: Guild = await self.directory.get_guild(guild_id)
        operator: Optional[Member] = guild.get_member_by_id(operator_id)
        if operator is None:
            raise ValidationError(
                f"Operator {operator_id} is not a member of guild {guild_id}",
                details={"guild_id": guild_id, "operator_id": operator_id}
            )
        return guild, operator

    def _setup_permissions_routes(self):
        """Set up permissions-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "permissions",
                "message": "Guild permissions service",
                "version": "1.0.0",
                "levels": [level.name for level in self.hierarchy.ORDER]
            }

        @self.app.post("/guilds/{guild_id}/permissions/commands", response_model=CommandReply)
        async def run_command(guild_id: str, request: CommandRequest):
            """Run a `perms` command on behalf of an operator."""
            guild, operator = await self._load(guild_id, request.operator_id)
            try:
                tokens = shlex.split(request.content)
            except ValueError:
                tokens = request.content.split()
            return await self.commands.invoke(guild, operator, tokens)

        @self.app.get("/guilds/{guild_id}/permissions/{level}", response_model=CommandReply)
        async def list_grants(
            guild_id: str,
            level: PermissionLevel,
            operator_id: str = Query(..., description="Member id of the operator")
        ):
            """List the roles and members holding a level."""
            guild, operator = await self._load(guild_id, operator_id)
            command = self.commands.get(level.value)
            if command is None:
                raise ValidationError(f"`{level.name}` has no grants", details={"level": level.value})
            return await command.invoke(guild, operator, ["list"])


def create_app():
    """Create permissions service application."""
    service = PermissionsService()
    return service.app


if __name__ == "__main__":
    service = PermissionsService()
    service.run()
