from __future__ import annotations

from .storage.schema import MemorySchemaMixin
from .storage.tone_rules import MemoryToneRulesMixin
from .storage.turns import MemoryTurnsMixin
from .storage.utils import _sqlite_memory_connection


class DocumentStore(
    MemorySchemaMixin,
    MemoryToneRulesMixin,
    MemoryTurnsMixin,
):
    """Append-only conversation log plus the tone_rules lookup table, backed by SQLite."""

    backend_name = "sqlite"

    async def ping(self) -> None:
        async with _sqlite_memory_connection(self.db_path) as db:
            await db.execute("SELECT 1")

    async def close(self) -> None:
        return None
