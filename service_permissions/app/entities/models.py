"""
Data models for guild permission grants.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Iterable, List, Mapping, Optional, Tuple

from shared.errors import ValidationError


class PermissionLevel(str, Enum):
    """Permission levels, lowest first."""
    PUBLIC = "public"
    MOD = "mod"
    ADMIN = "admin"
    OWNER = "owner"

    def __str__(self) -> str:
        return self.name


# Levels that can hold grants; OWNER is bound to the configured bot owner
GRANTABLE_LEVELS: Tuple[PermissionLevel, ...] = (
    PermissionLevel.PUBLIC,
    PermissionLevel.MOD,
    PermissionLevel.ADMIN,
)


class EntityKind(str, Enum):
    """Kinds of guild entities that can be granted a level."""
    ROLE = "role"
    MEMBER = "member"


class EntityRef(ABC):
    """A role or member of a guild.

    Identity is the snowflake id alone, so a role and a member never
    compare equal unless the platform hands out the same id twice.
    """

    kind: EntityKind
    id: str
    name: str

    @property
    @abstractmethod
    def mention(self) -> str:
        ...

    @abstractmethod
    def search_names(self) -> Tuple[str, ...]:
        """Names the resolver matches a term against."""

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EntityRef):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


@dataclass(frozen=True, eq=False)
class Role(EntityRef):
    """Guild role."""
    id: str
    name: str
    is_everyone: bool = False
    kind: EntityKind = field(default=EntityKind.ROLE, init=False)

    @property
    def mention(self) -> str:
        # The public role is already named "@everyone"
        if self.is_everyone:
            return "@everyone"
        return f"<@&{self.id}>"

    def search_names(self) -> Tuple[str, ...]:
        return (self.name,)


@dataclass(frozen=True, eq=False)
class Member(EntityRef):
    """Guild member. `username` is the account name, `display_name` the guild nickname."""
    id: str
    username: str
    display_name: Optional[str] = None
    role_ids: Tuple[str, ...] = ()
    kind: EntityKind = field(default=EntityKind.MEMBER, init=False)

    @property
    def name(self) -> str:
        return self.username

    @property
    def effective_name(self) -> str:
        return self.display_name or self.username

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"

    def search_names(self) -> Tuple[str, ...]:
        if self.display_name and self.display_name != self.username:
            return (self.username, self.display_name)
        return (self.username,)


@dataclass(frozen=True)
class Guild:
    """Snapshot of a guild's roles and members."""
    id: str
    roles: Tuple[Role, ...] = ()
    members: Tuple[Member, ...] = ()
    owner_id: Optional[str] = None

    def get_role_by_id(self, role_id: str) -> Optional[Role]:
        for role in self.roles:
            if role.id == role_id:
                return role
        return None

    def get_member_by_id(self, member_id: str) -> Optional[Member]:
        for member in self.members:
            if member.id == member_id:
                return member
        return None

    def get_entity_by_id(self, entity_id: str) -> Optional[EntityRef]:
        """Look up a role first, then a member."""
        return self.get_role_by_id(entity_id) or self.get_member_by_id(entity_id)

    @property
    def everyone_role(self) -> Optional[Role]:
        for role in self.roles:
            if role.is_everyone:
                return role
        return None

    def entities(self) -> List[EntityRef]:
        """All roles followed by all members."""
        return [*self.roles, *self.members]

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Guild":
        """Build a snapshot from the bot gateway's guild JSON."""
        guild_id = str(payload["id"])
        roles = tuple(
            Role(
                id=str(r["id"]),
                name=r["name"],
                # The platform gives the public role the guild's own id
                is_everyone=bool(r.get("is_everyone", str(r["id"]) == guild_id)),
            )
            for r in payload.get("roles", [])
        )
        members = tuple(
            Member(
                id=str(m["id"]),
                username=m["username"],
                display_name=m.get("nick") or m.get("display_name"),
                role_ids=tuple(str(rid) for rid in m.get("roles", [])),
            )
            for m in payload.get("members", [])
        )
        owner_id = payload.get("owner_id")
        return cls(
            id=guild_id,
            roles=roles,
            members=members,
            owner_id=str(owner_id) if owner_id is not None else None,
        )


@dataclass(frozen=True)
class GrantRecord:
    """Grants of one guild, per level. Immutable; edits return a new record."""
    guild_id: str
    grants: Dict[PermissionLevel, Tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self):
        for level, ids in self.grants.items():
            if level not in GRANTABLE_LEVELS:
                raise ValidationError(
                    f"Level {level.name} cannot hold grants",
                    details={"guild_id": self.guild_id, "level": level.value}
                )
            if any(not entity_id for entity_id in ids):
                raise ValidationError(
                    "Grant identifiers must not be empty",
                    details={"guild_id": self.guild_id, "level": level.value}
                )
            if len(set(ids)) != len(ids):
                raise ValidationError(
                    "Duplicate grant identifiers",
                    details={"guild_id": self.guild_id, "level": level.value}
                )

    def get(self, level: PermissionLevel) -> Tuple[str, ...]:
        return self.grants.get(level, ())

    def contains(self, level: PermissionLevel, entity_id: str) -> bool:
        return entity_id in self.get(level)

    def with_added(self, level: PermissionLevel, entity_id: str) -> "GrantRecord":
        if self.contains(level, entity_id):
            return self
        return self._replace(level, self.get(level) + (entity_id,))

    def with_removed(self, level: PermissionLevel, entity_id: str) -> "GrantRecord":
        if not self.contains(level, entity_id):
            return self
        return self._replace(level, tuple(i for i in self.get(level) if i != entity_id))

    def _replace(self, level: PermissionLevel, ids: Tuple[str, ...]) -> "GrantRecord":
        grants = dict(self.grants)
        if ids:
            grants[level] = ids
        else:
            grants.pop(level, None)
        return GrantRecord(guild_id=self.guild_id, grants=grants)

    def is_empty(self) -> bool:
        return not any(self.grants.values())

    def to_payload(self) -> Dict[str, List[str]]:
        """Serialize as level value -> ordered id list, all grantable levels present."""
        return {level.value: list(self.get(level)) for level in GRANTABLE_LEVELS}

    @classmethod
    def from_payload(cls, guild_id: str, payload: Optional[Mapping[str, Iterable[str]]]) -> "GrantRecord":
        """Parse a stored payload, skipping empty ids left behind by older writers."""
        grants: Dict[PermissionLevel, Tuple[str, ...]] = {}
        grantable = {level.value: level for level in GRANTABLE_LEVELS}
        for key, ids in (payload or {}).items():
            level = grantable.get(key)
            if level is None:
                raise ValidationError(
                    f"Unknown permission level {key!r} in stored grants",
                    details={"guild_id": guild_id, "level": key}
                )
            cleaned: List[str] = []
            for entity_id in ids:
                entity_id = str(entity_id)
                if entity_id and entity_id not in cleaned:
                    cleaned.append(entity_id)
            if cleaned:
                grants[level] = tuple(cleaned)
        return cls(guild_id=guild_id, grants=grants)

    @classmethod
    def empty(cls, guild_id: str) -> "GrantRecord":
        return cls(guild_id=guild_id)
