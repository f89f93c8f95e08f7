from __future__ import annotations

from typing import List

import aiosqlite

from ..models import Direction, Turn
from .utils import _format_timestamp, _parse_timestamp, _sqlite_memory_connection


class MemoryTurnsMixin:
    async def save_turn(self, turn: Turn) -> int:
        async with _sqlite_memory_connection(self.db_path) as db:
            cursor = await db.execute(
                """
                INSERT INTO messages (sender, text, media_ref, timestamp, direction)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    turn.identity,
                    turn.text,
                    turn.media_ref,
                    _format_timestamp(turn.timestamp),
                    turn.direction.value,
                ),
            )
            await db.commit()
            return int(cursor.lastrowid)

    async def get_recent_turns(self, identity: str, limit: int) -> List[Turn]:
        async with _sqlite_memory_connection(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                """
                SELECT id, sender, text, media_ref, timestamp, direction
                FROM messages
                WHERE sender = ?
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
                """,
                (identity, max(1, int(limit))),
            ) as cursor:
                rows = await cursor.fetchall()

        return [
            Turn(
                identity=str(row["sender"]),
                text=str(row["text"]),
                direction=Direction(str(row["direction"])),
                timestamp=_parse_timestamp(row["timestamp"]),
                media_ref=row["media_ref"],
                turn_id=int(row["id"]),
            )
            for row in reversed(rows)
        ]

    async def count_turns(self, identity: str) -> int:
        async with _sqlite_memory_connection(self.db_path) as db:
            async with db.execute("SELECT COUNT(*) FROM messages WHERE sender = ?", (identity,)) as cursor:
                row = await cursor.fetchone()
        return int(row[0]) if row else 0
