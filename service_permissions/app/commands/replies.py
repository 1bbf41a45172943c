"""
Reply payloads handed back to the chat transport.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from ..grants.results import CandidateView, GrantListing


NONE_PLACEHOLDER = "<none>"
CHECK_MARK = ":white_check_mark:"
CROSS_MARK = ":x:"


class ReplyField(BaseModel):
    """One embed field."""
    name: str
    value: str
    inline: bool = True


class CommandReply(BaseModel):
    """Plain message or embed-style reply to a permissions command."""
    ok: bool = True
    code: str = "OK"
    message: Optional[str] = Field(None, description="Plain text reply")
    title: Optional[str] = Field(None, description="Embed title")
    author: Optional[str] = Field(None, description="Embed author line")
    fields: List[ReplyField] = Field(default_factory=list)
    candidates: List[CandidateView] = Field(default_factory=list)

    @classmethod
    def text(cls, operator_name: str, message: str, ok: bool = True, code: str = "OK",
             candidates: Optional[List[CandidateView]] = None) -> "CommandReply":
        """Plain reply addressed to the operator."""
        return cls(
            ok=ok,
            code=code,
            message=f"**{operator_name}**: {message}",
            candidates=candidates or []
        )

    @classmethod
    def from_listing(cls, listing: GrantListing) -> "CommandReply":
        roles = "\n".join(listing.role_mentions) or NONE_PLACEHOLDER
        members = "\n".join(listing.member_mentions) or NONE_PLACEHOLDER
        mark = CHECK_MARK if listing.operator_has else CROSS_MARK

        return cls(
            title=f"Users and roles with the {listing.level.name} permissions",
            author=listing.operator_name,
            fields=[
                ReplyField(name="Roles", value=roles),
                ReplyField(name="Members", value=members),
                ReplyField(
                    name=listing.operator_name,
                    value=f"{mark} ({listing.operator_level.name})",
                    inline=False
                ),
            ]
        )

    def field(self, name: str) -> Optional[ReplyField]:
        for f in self.fields:
            if f.name == name:
                return f
        return None
