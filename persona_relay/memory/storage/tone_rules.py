from __future__ import annotations

from typing import Optional

import aiosqlite

from ..models import ToneProfile
from .utils import _sqlite_memory_connection


def _row_to_profile(row: aiosqlite.Row) -> ToneProfile:
    phone = row["phone_number"]
    return ToneProfile(
        profile_id=str(row["id"]),
        instruction_text=str(row["instruction_text"] or ""),
        phone_number=str(phone) if phone is not None else None,
    )


class MemoryToneRulesMixin:
    async def upsert_tone_rule(self, profile: ToneProfile) -> None:
        async with _sqlite_memory_connection(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO tone_rules (id, phone_number, instruction_text, updated_at)
                VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(id) DO UPDATE SET
                    phone_number = excluded.phone_number,
                    instruction_text = excluded.instruction_text,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (profile.profile_id, profile.phone_number, profile.instruction_text),
            )
            await db.commit()

    async def get_tone_rule_by_phone(self, phone_number: str) -> Optional[ToneProfile]:
        async with _sqlite_memory_connection(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                """
                SELECT id, phone_number, instruction_text
                FROM tone_rules
                WHERE phone_number = ?
                ORDER BY updated_at DESC
                LIMIT 1
                """,
                (phone_number,),
            ) as cursor:
                row = await cursor.fetchone()
        if row is None:
            return None
        return _row_to_profile(row)

    async def get_tone_rule(self, profile_id: str) -> Optional[ToneProfile]:
        async with _sqlite_memory_connection(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT id, phone_number, instruction_text FROM tone_rules WHERE id = ?",
                (profile_id,),
            ) as cursor:
                row = await cursor.fetchone()
        if row is None:
            return None
        return _row_to_profile(row)
