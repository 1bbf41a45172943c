"""
Grant record storage interface and in-memory implementation.
"""

from abc import ABC, abstractmethod
from typing import Dict, List

from shared.logging import get_logger
from ..entities.models import GrantRecord


class PermissionStore(ABC):
    """Reads and upserts whole guild grant records.

    `read` returns an empty record for a guild that was never written.
    `upsert` replaces the stored record wholesale; last write wins.
    Implementations raise PersistenceFailure when storage is unavailable.
    """

    async def start(self):
        """Open connections."""

    async def stop(self):
        """Close connections."""

    @abstractmethod
    async def read(self, guild_id: str) -> GrantRecord:
        ...

    @abstractmethod
    async def upsert(self, record: GrantRecord) -> None:
        ...

    async def health_check(self) -> bool:
        return True


class InMemoryPermissionStore(PermissionStore):
    """Process-local store keyed by guild id."""

    def __init__(self, logger=None):
        self.logger = logger or get_logger("permissions.persistence.memory")
        self.records: Dict[str, Dict[str, List[str]]] = {}

    async def read(self, guild_id: str) -> GrantRecord:
        return GrantRecord.from_payload(guild_id, self.records.get(guild_id))

    async def upsert(self, record: GrantRecord) -> None:
        if record.is_empty():
            self.records.pop(record.guild_id, None)
            self.logger.debug("Pruned empty grant record", guild_id=record.guild_id)
            return

        self.records[record.guild_id] = record.to_payload()
        self.logger.debug("Grant record saved", guild_id=record.guild_id)
