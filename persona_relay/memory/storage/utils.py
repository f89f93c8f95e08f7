from __future__ import annotations

import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

import aiosqlite


def _sqlite_busy_timeout_ms() -> int:
    raw = os.getenv("MEMORY_SQLITE_BUSY_TIMEOUT_MS", "5000").strip()
    try:
        timeout = int(raw)
    except ValueError:
        timeout = 5000
    return max(0, min(timeout, 60000))


@asynccontextmanager
async def _sqlite_memory_connection(db_path: str | Path) -> AsyncIterator[aiosqlite.Connection]:
    async with aiosqlite.connect(db_path) as db:
        timeout_ms = _sqlite_busy_timeout_ms()
        if timeout_ms > 0:
            await db.execute(f"PRAGMA busy_timeout={timeout_ms}")
        yield db


def _format_timestamp(value: datetime) -> str:
    # Fixed-width UTC text so lexical ORDER BY matches chronological order.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_timestamp(raw: object) -> datetime:
    if isinstance(raw, datetime):
        parsed = raw
    else:
        parsed = datetime.fromisoformat(str(raw).strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
