"""
Result models for grant edits and listings.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import BaseModel, Field

from ..entities.models import EntityRef, Member, PermissionLevel, Role


class CandidateView(BaseModel):
    """An entity offered back to the operator after an ambiguous search."""
    id: str
    kind: str
    name: str


class EditResult(BaseModel):
    """Outcome of an add or remove. `code` is OK or an error code."""
    ok: bool = Field(..., description="Whether the grant set changed")
    code: str = Field("OK", description="OK or the error code of the rejected edit")
    message: str = Field(..., description="User-facing message")
    level: PermissionLevel
    entity_id: Optional[str] = None
    entity_name: Optional[str] = None
    candidates: List[CandidateView] = Field(default_factory=list)

    @staticmethod
    def candidate_views(candidates: List[EntityRef]) -> List[CandidateView]:
        return [CandidateView(id=c.id, kind=c.kind.value, name=c.name) for c in candidates]


@dataclass
class GrantListing:
    """Resolved grants of one level, plus where the operator stands."""
    level: PermissionLevel
    roles: List[Role] = field(default_factory=list)
    members: List[Member] = field(default_factory=list)
    stale_count: int = 0
    operator_name: str = ""
    operator_has: bool = False
    operator_level: PermissionLevel = PermissionLevel.PUBLIC

    @property
    def role_names(self) -> List[str]:
        return ["@everyone" if r.is_everyone else r.name for r in self.roles]

    @property
    def role_mentions(self) -> List[str]:
        return [r.mention for r in self.roles]

    @property
    def member_mentions(self) -> List[str]:
        return [m.mention for m in self.members]
