from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

import asyncpg

from .models import Direction, ToneProfile, Turn


logger = logging.getLogger("persona_relay")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class PostgresDocumentStore:
    """Postgres-backed document store implementing the same API as DocumentStore."""

    SCHEMA_VERSION = 1
    backend_name = "postgres"

    def __init__(self, dsn: str) -> None:
        self.dsn = dsn.strip()
        if not self.dsn:
            raise ValueError("MEMORY_POSTGRES_DSN cannot be empty")
        self._pool: "asyncpg.Pool | None" = None
        self._init_lock = asyncio.Lock()
        self._initialized = False

    async def _ensure_pool(self) -> "asyncpg.Pool":
        if self._pool is None:
            self._pool = await asyncpg.create_pool(
                dsn=self.dsn,
                min_size=1,
                max_size=6,
                command_timeout=30.0,
            )
        return self._pool

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
        self._initialized = False

    async def ping(self) -> None:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            await conn.execute("SELECT 1")

    async def init(self) -> None:
        async with self._init_lock:
            if self._initialized:
                return
            pool = await self._ensure_pool()
            async with pool.acquire() as conn:
                async with conn.transaction():
                    version = await self._get_schema_version(conn)
                    if version > self.SCHEMA_VERSION:
                        raise RuntimeError(
                            f"Postgres memory schema version {version} is newer than supported {self.SCHEMA_VERSION}. "
                            "Upgrade persona-relay before starting."
                        )
                    await self._create_schema(conn)
                    if version != self.SCHEMA_VERSION:
                        await self._set_schema_version(conn, self.SCHEMA_VERSION)
            self._initialized = True
            logger.info("[store.init] postgres schema v%s ready", self.SCHEMA_VERSION)

    async def _create_schema(self, conn: "asyncpg.Connection") -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS messages (
                id BIGSERIAL PRIMARY KEY,
                sender TEXT NOT NULL,
                text TEXT NOT NULL,
                media_ref TEXT,
                timestamp TIMESTAMPTZ NOT NULL,
                direction TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_messages_sender_timestamp
            ON messages(sender, timestamp DESC, id DESC);

            CREATE TABLE IF NOT EXISTS tone_rules (
                id TEXT PRIMARY KEY,
                phone_number TEXT,
                instruction_text TEXT NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            );

            CREATE INDEX IF NOT EXISTS idx_tone_rules_phone
            ON tone_rules(phone_number);
            """
        )

    async def _get_schema_version(self, conn: "asyncpg.Connection") -> int:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS memory_meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )
        row = await conn.fetchrow("SELECT value FROM memory_meta WHERE key = 'schema_version'")
        if row is None:
            return 0
        try:
            return int(str(row["value"]))
        except ValueError:
            return 0

    async def _set_schema_version(self, conn: "asyncpg.Connection", version: int) -> None:
        await conn.execute(
            """
            INSERT INTO memory_meta (key, value, updated_at)
            VALUES ('schema_version', $1, NOW())
            ON CONFLICT(key) DO UPDATE SET
                value = EXCLUDED.value,
                updated_at = NOW()
            """,
            str(int(version)),
        )

    async def save_turn(self, turn: Turn) -> int:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            turn_id = await conn.fetchval(
                """
                INSERT INTO messages (sender, text, media_ref, timestamp, direction)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING id
                """,
                turn.identity,
                turn.text,
                turn.media_ref,
                _as_utc(turn.timestamp),
                turn.direction.value,
            )
        return int(turn_id)

    async def get_recent_turns(self, identity: str, limit: int) -> List[Turn]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, sender, text, media_ref, timestamp, direction
                FROM messages
                WHERE sender = $1
                ORDER BY timestamp DESC, id DESC
                LIMIT $2
                """,
                identity,
                max(1, int(limit)),
            )
        return [
            Turn(
                identity=str(row["sender"]),
                text=str(row["text"]),
                direction=Direction(str(row["direction"])),
                timestamp=_as_utc(row["timestamp"]),
                media_ref=row["media_ref"],
                turn_id=int(row["id"]),
            )
            for row in reversed(rows)
        ]

    async def count_turns(self, identity: str) -> int:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            value = await conn.fetchval("SELECT COUNT(*) FROM messages WHERE sender = $1", identity)
        return int(value or 0)

    async def upsert_tone_rule(self, profile: ToneProfile) -> None:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO tone_rules (id, phone_number, instruction_text, updated_at)
                VALUES ($1, $2, $3, NOW())
                ON CONFLICT(id) DO UPDATE SET
                    phone_number = EXCLUDED.phone_number,
                    instruction_text = EXCLUDED.instruction_text,
                    updated_at = NOW()
                """,
                profile.profile_id,
                profile.phone_number,
                profile.instruction_text,
            )

    async def get_tone_rule_by_phone(self, phone_number: str) -> Optional[ToneProfile]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT id, phone_number, instruction_text
                FROM tone_rules
                WHERE phone_number = $1
                ORDER BY updated_at DESC
                LIMIT 1
                """,
                phone_number,
            )
        return self._row_to_profile(row)

    async def get_tone_rule(self, profile_id: str) -> Optional[ToneProfile]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT id, phone_number, instruction_text FROM tone_rules WHERE id = $1",
                profile_id,
            )
        return self._row_to_profile(row)

    @staticmethod
    def _row_to_profile(row: "asyncpg.Record | None") -> Optional[ToneProfile]:
        if row is None:
            return None
        phone = row["phone_number"]
        return ToneProfile(
            profile_id=str(row["id"]),
            instruction_text=str(row["instruction_text"] or ""),
            phone_number=str(phone) if phone is not None else None,
        )
