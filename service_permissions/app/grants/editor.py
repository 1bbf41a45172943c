"""
Adding and removing grants for a permission level.
"""

import asyncio
from typing import List, Optional

from shared.logging import get_logger
from shared.errors import (
    AmbiguousMatch, InsufficientPermission, LevelNotEditable,
    PermissionsException, PersistenceFailure
)
from ..entities.models import GRANTABLE_LEVELS, EntityRef, GrantRecord, Guild, Member, PermissionLevel
from ..entities.resolver import EntityResolver
from ..levels.hierarchy import PermissionLevelHierarchy
from ..persistence.locks import GuildLocks, LocalGuildLocks
from ..persistence.store import PermissionStore
from .results import EditResult


# Editing any level's grants requires ADMIN, whichever level is edited
EDIT_LEVEL = PermissionLevel.ADMIN


class GrantEditor:
    """Resolves a search term and applies an add or remove to a guild's grants.

    Every failure is turned into an unsuccessful EditResult; nothing raises
    past `add` or `remove`. The grant record is never changed in place: a new
    record is built and written back whole while the guild's write lock is
    held.
    """

    def __init__(self,
                 store: PermissionStore,
                 hierarchy: PermissionLevelHierarchy,
                 resolver: Optional[EntityResolver] = None,
                 locks: Optional[GuildLocks] = None,
                 store_timeout: float = 5.0,
                 logger=None):
        self.store = store
        self.hierarchy = hierarchy
        self.resolver = resolver or EntityResolver()
        self.locks = locks or LocalGuildLocks()
        self.store_timeout = store_timeout
        self.logger = logger or get_logger("permissions.editor")

    async def add(self, guild: Guild, operator: Member, level: PermissionLevel, term: str) -> EditResult:
        """Grant `level` to the entity `term` resolves to."""
        return await self._edit(guild, operator, level, term, adding=True)

    async def remove(self, guild: Guild, operator: Member, level: PermissionLevel, term: str) -> EditResult:
        """Revoke `level` from the granted entity `term` resolves to."""
        return await self._edit(guild, operator, level, term, adding=False)

    async def _edit(self, guild: Guild, operator: Member, level: PermissionLevel,
                    term: str, adding: bool) -> EditResult:
        action = "add" if adding else "remove"
        try:
            if level not in GRANTABLE_LEVELS:
                raise LevelNotEditable(f"`{level.name}` cannot be granted.")

            await self.authorize(guild, operator)
            term = self.resolver.normalize(term)

            async with self.locks.hold(guild.id):
                record = await self.read(guild.id)
                if adding:
                    selected = self._select_addable(guild, record, level, term)
                    updated = record.with_added(level, selected.id)
                else:
                    selected = self._select_removable(guild, record, level, term)
                    updated = record.with_removed(level, selected.id)

                await self._write(updated)

        except AmbiguousMatch as e:
            self.logger.info("Grant edit rejected", action=action, guild_id=guild.id, permission_level=level.name, code=e.code)
            names = "\n".join(f"{c.kind.value} {c.name} ({c.id})" for c in e.candidates)
            return EditResult(
                ok=False,
                code=e.code,
                message=f"{e.message}\n```\n{names}\n```",
                level=level,
                candidates=EditResult.candidate_views(e.candidates)
            )

        except PermissionsException as e:
            self.logger.info("Grant edit rejected", action=action, guild_id=guild.id, permission_level=level.name, code=e.code)
            return EditResult(ok=False, code=e.code, message=e.message, level=level)

        self.logger.info(
            "Grant edited",
            action=action,
            guild_id=guild.id,
            permission_level=level.name,
            entity_id=selected.id,
            entity_kind=selected.kind.value,
            operator_id=operator.id
        )
        if adding:
            message = f"Added `{selected.name}` to `{level.name}`."
        else:
            message = f"Removed `{selected.name}` from `{level.name}`."

        return EditResult(
            ok=True,
            message=message,
            level=level,
            entity_id=selected.id,
            entity_name=selected.name
        )

    async def authorize(self, guild: Guild, operator: Member) -> None:
        """Raise InsufficientPermission unless the operator holds ADMIN."""
        record = await self.read(guild.id)
        decision = self.hierarchy.check(operator, guild, record, EDIT_LEVEL)
        if not decision.allowed:
            raise InsufficientPermission(
                decision.message,
                details={"required": EDIT_LEVEL.name, "effective": decision.effective.name}
            )

    def _select_addable(self, guild: Guild, record: GrantRecord,
                        level: PermissionLevel, term: str) -> EntityRef:
        granted = set(record.get(level))
        candidates = [e for e in self.resolver.search(guild, term) if e.id not in granted]
        return self.resolver.disambiguate(candidates, term)

    def _select_removable(self, guild: Guild, record: GrantRecord,
                          level: PermissionLevel, term: str) -> EntityRef:
        pool = resolve_ids(guild, record.get(level))
        return self.resolver.disambiguate(self.resolver.match(pool, term), term)

    async def read(self, guild_id: str) -> GrantRecord:
        try:
            return await asyncio.wait_for(self.store.read(guild_id), timeout=self.store_timeout)
        except asyncio.TimeoutError:
            self.logger.error("Timed out reading grant record", guild_id=guild_id)
            raise PersistenceFailure("Could not load permissions", details={"guild_id": guild_id})

    async def _write(self, record: GrantRecord) -> None:
        try:
            await asyncio.wait_for(self.store.upsert(record), timeout=self.store_timeout)
        except asyncio.TimeoutError:
            self.logger.error("Timed out saving grant record", guild_id=record.guild_id)
            raise PersistenceFailure("Could not save permissions", details={"guild_id": record.guild_id})


def resolve_ids(guild: Guild, ids) -> List[EntityRef]:
    """Entities for the ids that still exist in the guild, in stored order."""
    out: List[EntityRef] = []
    for entity_id in ids:
        entity = guild.get_entity_by_id(entity_id)
        if entity is not None:
            out.append(entity)
    return out
