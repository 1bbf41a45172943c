"""
Search-term resolution for guild roles and members.

A term is matched against a pool of entities in four tiers, and the first
tier that produces any hit wins:

1. exact snowflake id
2. mention syntax (``<@&id>`` for roles, ``<@id>`` or ``<@!id>`` for members)
3. case-insensitive exact name
4. case-insensitive substring of a name

Member names are the account name and the guild nickname.
"""

import re
from typing import Callable, List, Optional, Sequence

from shared.errors import AmbiguousMatch, MissingArgument, NoMatch
from shared.logging import get_logger
from .models import EntityKind, EntityRef, Guild


ROLE_MENTION = re.compile(r"^<@&(\d+)>$")
MEMBER_MENTION = re.compile(r"^<@!?(\d+)>$")


class EntityResolver:
    """Resolves operator search terms to guild entities."""

    def __init__(self, logger=None):
        self.logger = logger or get_logger("permissions.resolver")

    def search(self, guild: Guild, term: str) -> List[EntityRef]:
        """Search all roles and members of the guild."""
        term = self.normalize(term)
        return self._match(guild.entities(), term)

    def match(self, pool: Sequence[EntityRef], term: str) -> List[EntityRef]:
        """Search a pre-selected candidate pool."""
        term = self.normalize(term)
        return self._match(pool, term)

    def disambiguate(self, candidates: Sequence[EntityRef], term: str) -> EntityRef:
        """Return the single candidate, or raise NoMatch / AmbiguousMatch."""
        if not candidates:
            raise NoMatch(term)
        if len(candidates) > 1:
            raise AmbiguousMatch(term, candidates)
        return candidates[0]

    def normalize(self, term: Optional[str]) -> str:
        if term is None or not term.strip():
            raise MissingArgument("A search term is required")
        return term.strip()

    def _match(self, pool: Sequence[EntityRef], term: str) -> List[EntityRef]:
        lowered = term.lower()
        tiers: List[Callable[[EntityRef], bool]] = [
            lambda e: term.isdigit() and e.id == term,
            self._mention_matcher(term),
            lambda e: any(n.lower() == lowered for n in e.search_names()),
            lambda e: any(lowered in n.lower() for n in e.search_names()),
        ]

        for tier, predicate in enumerate(tiers, start=1):
            hits = self._dedupe(e for e in pool if predicate(e))
            if hits:
                self.logger.debug("Search term resolved", term=term, tier=tier, hits=len(hits))
                return hits

        self.logger.debug("Search term matched nothing", term=term, pool_size=len(pool))
        return []

    @staticmethod
    def _mention_matcher(term: str) -> Callable[[EntityRef], bool]:
        role = ROLE_MENTION.match(term)
        if role:
            return lambda e: e.kind == EntityKind.ROLE and e.id == role.group(1)

        member = MEMBER_MENTION.match(term)
        if member:
            return lambda e: e.kind == EntityKind.MEMBER and e.id == member.group(1)

        return lambda e: False

    @staticmethod
    def _dedupe(entities) -> List[EntityRef]:
        seen = set()
        out: List[EntityRef] = []
        for entity in entities:
            if entity.id not in seen:
                seen.add(entity.id)
                out.append(entity)
        return out
