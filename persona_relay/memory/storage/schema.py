from __future__ import annotations

import os
from pathlib import Path

import aiosqlite

from .utils import _sqlite_memory_connection


class MemorySchemaMixin:
    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _allow_destructive_reset_on_mismatch() -> bool:
        raw = os.getenv("MEMORY_SQLITE_RESET_ON_SCHEMA_MISMATCH", "")
        return raw.strip().lower() in {"1", "true", "yes", "y", "on"}

    async def _has_user_tables(self, db: aiosqlite.Connection) -> bool:
        async with db.execute(
            """
            SELECT 1
            FROM sqlite_master
            WHERE type = 'table'
              AND name NOT LIKE 'sqlite_%'
            LIMIT 1
            """
        ) as cursor:
            row = await cursor.fetchone()
        return bool(row)

    async def init(self) -> None:
        async with _sqlite_memory_connection(self.db_path) as db:
            await db.execute("PRAGMA journal_mode=WAL")
            async with db.execute("PRAGMA user_version") as cursor:
                row = await cursor.fetchone()
            version = int(row[0]) if row else 0
            has_tables = await self._has_user_tables(db)

            if version > self.SCHEMA_VERSION:
                if has_tables and self._allow_destructive_reset_on_mismatch():
                    await self._reset_schema(db)
                    await db.execute(f"PRAGMA user_version = {self.SCHEMA_VERSION}")
                    await db.commit()
                    return
                raise RuntimeError(
                    "SQLite schema version mismatch detected (database is newer than this build). "
                    f"Found user_version={version}, supported={self.SCHEMA_VERSION}. "
                    "Set MEMORY_SQLITE_RESET_ON_SCHEMA_MISMATCH=1 to allow destructive reset."
                )

            await self._create_schema(db)
            if version != self.SCHEMA_VERSION:
                await db.execute(f"PRAGMA user_version = {self.SCHEMA_VERSION}")

            await db.commit()

    async def _reset_schema(self, db: aiosqlite.Connection) -> None:
        for table in ("messages", "tone_rules"):
            await db.execute(f"DROP TABLE IF EXISTS {table}")
        await self._create_schema(db)

    async def _create_schema(self, db: aiosqlite.Connection) -> None:
        await db.executescript(
            """
            CREATE TABLE IF NOT EXISTS messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                sender TEXT NOT NULL,
                text TEXT NOT NULL,
                media_ref TEXT,
                timestamp TEXT NOT NULL,
                direction TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_messages_sender_timestamp
            ON messages(sender, timestamp DESC, id DESC);

            CREATE TABLE IF NOT EXISTS tone_rules (
                id TEXT PRIMARY KEY,
                phone_number TEXT,
                instruction_text TEXT NOT NULL,
                updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_tone_rules_phone
            ON tone_rules(phone_number);
            """
        )
