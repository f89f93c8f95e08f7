from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import timedelta
from typing import Any, List, Sequence

from ..errors import HistoryUnavailableError, HistoryWriteError
from .models import Direction, Turn, utc_now
from .summarizer import Summarizer


logger = logging.getLogger("persona_relay")


def window_from_turns(turns: Sequence[Turn]) -> List[Turn]:
    """Cut a chronological slice so it starts at its most recent summary turn."""
    for index in range(len(turns) - 1, -1, -1):
        if turns[index].is_summary:
            return list(turns[index:])
    return list(turns)


class HistoryStore:
    """Bounded short-term window over the append-only turn log of one identity."""

    def __init__(
        self,
        store: Any,
        summarizer: Summarizer,
        *,
        limit: int = 15,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.store = store
        self.summarizer = summarizer
        self.limit = max(2, int(limit))
        self.timeout_seconds = float(timeout_seconds)

    async def retrieve(self, identity: str, limit: int | None = None) -> List[Turn]:
        size = self.limit if limit is None else max(1, int(limit))
        try:
            turns = await asyncio.wait_for(
                self.store.get_recent_turns(identity, size),
                timeout=self.timeout_seconds,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise HistoryUnavailableError(f"history lookup failed for {identity}: {exc}") from exc
        return window_from_turns(turns)

    def should_compact(self, window: Sequence[Turn]) -> bool:
        return len(window) >= self.limit

    async def compact(self, identity: str, window: Sequence[Turn]) -> List[Turn]:
        summary_text = await self.summarizer.summarize(window)
        timestamp = utc_now()
        if window and window[-1].timestamp >= timestamp:
            # The summary must sort after every turn it replaces.
            timestamp = window[-1].timestamp + timedelta(microseconds=1)
        summary = Turn(
            identity=identity,
            text=summary_text,
            direction=Direction.SUMMARY,
            timestamp=timestamp,
        )
        stored = await self.append(identity, summary)
        logger.info(
            "[history.compact] identity=%s turns=%s summary_id=%s",
            identity,
            len(window),
            stored.turn_id,
        )
        return [stored]

    async def append(self, identity: str, turn: Turn) -> Turn:
        if turn.identity != identity:
            turn = replace(turn, identity=identity)
        try:
            turn_id = await asyncio.wait_for(self.store.save_turn(turn), timeout=self.timeout_seconds)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise HistoryWriteError(f"failed to append {turn.direction.value} turn for {identity}: {exc}") from exc
        return turn.with_id(turn_id)
