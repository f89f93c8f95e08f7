from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, Sequence

from ..conversation.common import collapse_spaces, truncate
from ..prompts.memory import (
    SUMMARY_PLACEHOLDER,
    SUMMARY_SYSTEM_PROMPT,
    build_summary_user_prompt,
    speaker_label,
)
from .models import Turn


logger = logging.getLogger("persona_relay")


class ChatModel(Protocol):
    async def chat(self, messages: list[dict[str, Any]]) -> str: ...


def render_dialogue_lines(window: Sequence[Turn]) -> list[str]:
    lines: list[str] = []
    for turn in window:
        text = collapse_spaces(turn.text)
        if not text:
            continue
        lines.append(f"{speaker_label(turn.direction.value)}: {text}")
    return lines


class Summarizer:
    """Compresses a full conversation window into one paragraph.

    Never raises: a failing, slow or empty model answer yields the placeholder
    text so compaction can still persist a summary turn.
    """

    def __init__(self, llm: ChatModel, *, max_chars: int = 1100, timeout_seconds: float = 30.0) -> None:
        self.llm = llm
        self.max_chars = max(200, int(max_chars))
        self.timeout_seconds = float(timeout_seconds)

    async def summarize(self, window: Sequence[Turn]) -> str:
        messages = [
            {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
            {"role": "user", "content": build_summary_user_prompt(render_dialogue_lines(window))},
        ]
        try:
            raw = await asyncio.wait_for(self.llm.chat(messages), timeout=self.timeout_seconds)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("[history.summarize] failed (%s: %s); using placeholder", type(exc).__name__, exc)
            return SUMMARY_PLACEHOLDER

        summary = collapse_spaces(str(raw or ""))
        if not summary:
            logger.warning("[history.summarize] empty summary; using placeholder")
            return SUMMARY_PLACEHOLDER
        return truncate(summary, self.max_chars)
