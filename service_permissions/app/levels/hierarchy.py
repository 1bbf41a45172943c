"""
Ordering of permission levels and the checks built on it.
"""

from dataclasses import dataclass
from typing import Optional

from shared.logging import get_logger
from ..entities.models import GRANTABLE_LEVELS, GrantRecord, Guild, Member, PermissionLevel


@dataclass(frozen=True)
class AuthorizationDecision:
    """Outcome of checking an operator against a required level."""
    allowed: bool
    effective: PermissionLevel
    required: PermissionLevel
    message: Optional[str] = None


class PermissionLevelHierarchy:
    """Total order PUBLIC < MOD < ADMIN < OWNER.

    OWNER belongs to exactly one operator, the configured bot owner, and is
    never read from a guild's grant record.
    """

    ORDER = (
        PermissionLevel.PUBLIC,
        PermissionLevel.MOD,
        PermissionLevel.ADMIN,
        PermissionLevel.OWNER,
    )

    def __init__(self, owner_id: Optional[str] = None, logger=None):
        self.owner_id = owner_id
        self.logger = logger or get_logger("permissions.hierarchy")

    def rank(self, level: PermissionLevel) -> int:
        return self.ORDER.index(level)

    def satisfies(self, effective: PermissionLevel, required: PermissionLevel) -> bool:
        if effective == PermissionLevel.OWNER:
            return True
        return self.rank(effective) >= self.rank(required)

    def effective_level(self, member: Member, guild: Guild, record: GrantRecord) -> PermissionLevel:
        """Highest level granted to the member directly or through any of its roles.

        The guild's own owner always holds at least ADMIN, so a fresh guild
        has someone able to hand out the first grants.
        """
        if self.owner_id is not None and member.id == self.owner_id:
            return PermissionLevel.OWNER

        if guild.owner_id is not None and member.id == guild.owner_id:
            return PermissionLevel.ADMIN

        held = {member.id, *member.role_ids}
        everyone = guild.everyone_role
        if everyone is not None:
            held.add(everyone.id)

        for level in sorted(GRANTABLE_LEVELS, key=self.rank, reverse=True):
            if held.intersection(record.get(level)):
                return level

        return PermissionLevel.PUBLIC

    def check(self, member: Member, guild: Guild, record: GrantRecord,
              required: PermissionLevel) -> AuthorizationDecision:
        effective = self.effective_level(member, guild, record)
        if self.satisfies(effective, required):
            return AuthorizationDecision(allowed=True, effective=effective, required=required)

        self.logger.info(
            "Permission check failed",
            member_id=member.id,
            required=required.name,
            effective=effective.name
        )
        return AuthorizationDecision(
            allowed=False,
            effective=effective,
            required=required,
            message=(
                f"You don't have permission to run this command! "
                f"This command requires `{required.name}` but you only have `{effective.name}`."
            )
        )
