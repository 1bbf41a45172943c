"""
Listing of a level's current grants.
"""

import asyncio

from shared.logging import get_logger
from shared.errors import PersistenceFailure
from ..entities.models import EntityKind, Guild, Member, PermissionLevel
from ..levels.hierarchy import PermissionLevelHierarchy
from ..persistence.store import PermissionStore
from .editor import resolve_ids
from .results import GrantListing


class PermissionQueryService:
    """Read-only view of grants; takes no locks."""

    def __init__(self,
                 store: PermissionStore,
                 hierarchy: PermissionLevelHierarchy,
                 store_timeout: float = 5.0,
                 logger=None):
        self.store = store
        self.hierarchy = hierarchy
        self.store_timeout = store_timeout
        self.logger = logger or get_logger("permissions.query")

    async def list(self, guild: Guild, operator: Member, level: PermissionLevel) -> GrantListing:
        """Grants of `level` split into roles and members.

        Ids that no longer resolve to a role or member are left out and only
        counted. Raises PersistenceFailure if the record cannot be read.
        """
        try:
            record = await asyncio.wait_for(self.store.read(guild.id), timeout=self.store_timeout)
        except asyncio.TimeoutError:
            self.logger.error("Timed out reading grant record", guild_id=guild.id)
            raise PersistenceFailure("Could not load permissions", details={"guild_id": guild.id})

        ids = record.get(level)
        entities = resolve_ids(guild, ids)
        stale = len(ids) - len(entities)
        if stale:
            self.logger.debug("Skipped stale grants", guild_id=guild.id, permission_level=level.name, stale=stale)

        operator_level = self.hierarchy.effective_level(operator, guild, record)
        return GrantListing(
            level=level,
            roles=[e for e in entities if e.kind == EntityKind.ROLE],
            members=[e for e in entities if e.kind == EntityKind.MEMBER],
            stale_count=stale,
            operator_name=operator.effective_name,
            operator_has=self.hierarchy.satisfies(operator_level, level),
            operator_level=operator_level,
        )
