from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Protocol, Tuple

from ..errors import CompletionError, SemanticMemoryError
from ..memory.history import HistoryStore
from ..memory.models import Direction, Turn, utc_now
from ..memory.persona import FALLBACK_PERSONA_TEXT, PersonaResolver
from ..memory.semantic import SemanticMemoryStore
from .assembler import ContextAssembler
from .common import truncate


logger = logging.getLogger("persona_relay")

STATUS_SENT = "sent"
STATUS_UNDELIVERED = "undelivered"
STATUS_PAUSED = "paused"


class ChatModel(Protocol):
    async def chat(self, messages: list[dict[str, Any]]) -> str: ...


class DeliveryGateway(Protocol):
    async def send(self, identity: str, text: str) -> Any: ...


@dataclass(slots=True, frozen=True)
class InboundMessage:
    identity: str
    text: str
    media_ref: str | None = None
    received_at: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class TurnOutcome:
    status: str
    reply: str = ""
    persona_source: str | None = None
    compacted: bool = False
    semantic_hits: Tuple[str, ...] = ()
    remembered: bool = False
    delivery_error: str | None = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "reply": self.reply,
            "persona_source": self.persona_source,
            "compacted": self.compacted,
            "semantic_hits": list(self.semantic_hits),
            "remembered": self.remembered,
        }


def _after(previous: datetime | None) -> datetime:
    now = utc_now()
    if previous is not None and previous >= now:
        return previous + timedelta(microseconds=1)
    return now


class ConversationPipeline:
    """Runs one inbound message through persona, memory, the model and delivery.

    Every step is a plain await on the caller's task; concurrent turns for the
    same identity are not serialized.
    """

    def __init__(
        self,
        *,
        persona: PersonaResolver,
        history: HistoryStore,
        semantic: SemanticMemoryStore,
        llm: ChatModel,
        delivery: DeliveryGateway,
        assembler: ContextAssembler | None = None,
        failure_policy: str = "pause",
        fallback_text: str = FALLBACK_PERSONA_TEXT,
        timeout_seconds: float = 30.0,
    ) -> None:
        if failure_policy not in {"pause", "fallback"}:
            raise ValueError("failure_policy must be 'pause' or 'fallback'")
        self.persona = persona
        self.history = history
        self.semantic = semantic
        self.llm = llm
        self.delivery = delivery
        self.assembler = assembler or ContextAssembler()
        self.failure_policy = failure_policy
        self.fallback_text = (fallback_text or "").strip() or FALLBACK_PERSONA_TEXT
        self.timeout_seconds = float(timeout_seconds)

    async def _semantic_hits(self, identity: str, text: str) -> List[str]:
        try:
            return await self.semantic.retrieve(identity, text)
        except SemanticMemoryError as exc:
            logger.warning("[semantic.retrieve] identity=%s degraded to no context: %s", identity, exc)
            return []

    async def _complete(self, messages: List[Dict[str, Any]]) -> str:
        try:
            raw = await asyncio.wait_for(self.llm.chat(messages), timeout=self.timeout_seconds)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise CompletionError(f"model call failed: {type(exc).__name__}: {exc}") from exc
        reply = str(raw or "").strip()
        if not reply:
            raise CompletionError("model returned an empty reply")
        return reply

    async def _remember(self, identity: str, text: str) -> bool:
        try:
            return await self.semantic.maybe_store(identity, text)
        except SemanticMemoryError as exc:
            logger.warning("[semantic.store] identity=%s skipped: %s", identity, exc)
            return False

    async def _deliver(self, identity: str, reply: str) -> Tuple[bool, str | None]:
        try:
            result = await asyncio.wait_for(self.delivery.send(identity, reply), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error("[delivery] to=%s timed out after %.1fs", identity, self.timeout_seconds)
            return False, "delivery timed out"
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("[delivery] to=%s failed: %s: %s", identity, type(exc).__name__, exc)
            return False, f"{type(exc).__name__}: {exc}"
        ok = bool(getattr(result, "ok", False))
        return ok, None if ok else str(getattr(result, "error", None) or "delivery failed")

    async def _pause(self, message: InboundMessage, reason: str) -> TurnOutcome:
        ignored = Turn(
            identity=message.identity,
            text=message.text,
            direction=Direction.INBOUND_IGNORED,
            timestamp=message.received_at,
            media_ref=message.media_ref,
        )
        await self.history.append(message.identity, ignored)
        logger.warning("[turn.paused] identity=%s reason=%s", message.identity, reason)
        return TurnOutcome(status=STATUS_PAUSED)

    async def process_turn(self, message: InboundMessage) -> TurnOutcome:
        identity = message.identity
        logger.info("[msg.user] identity=%s text=%s", identity, truncate(message.text, 120))

        resolution = await self.persona.resolve(identity)
        if resolution.resolved:
            persona_text, persona_source = resolution.text, resolution.source
        elif self.failure_policy == "pause":
            return await self._pause(message, resolution.reason)
        else:
            persona_text, persona_source = self.fallback_text, "fallback"

        window = await self.history.retrieve(identity)
        compacted = False
        if self.history.should_compact(window):
            window = await self.history.compact(identity, window)
            compacted = True

        hits = await self._semantic_hits(identity, message.text)

        current = Turn(
            identity=identity,
            text=message.text,
            direction=Direction.INBOUND,
            timestamp=message.received_at,
            media_ref=message.media_ref,
        )
        messages = self.assembler.assemble(persona_text, hits, window, current)
        reply = await self._complete(messages)
        logger.info("[turn.reply] identity=%s reply=%s", identity, truncate(reply, 120))

        inbound = await self.history.append(
            identity,
            Turn(
                identity=identity,
                text=current.text,
                direction=Direction.INBOUND,
                timestamp=_after(window[-1].timestamp if window else None),
                media_ref=current.media_ref,
            ),
        )
        await self.history.append(
            identity,
            Turn(
                identity=identity,
                text=reply,
                direction=Direction.OUTBOUND,
                timestamp=_after(inbound.timestamp),
            ),
        )
        remembered = await self._remember(identity, message.text)

        delivered, delivery_error = await self._deliver(identity, reply)
        return TurnOutcome(
            status=STATUS_SENT if delivered else STATUS_UNDELIVERED,
            reply=reply,
            persona_source=persona_source,
            compacted=compacted,
            semantic_hits=tuple(hits),
            remembered=remembered,
            delivery_error=delivery_error,
        )

    async def inspect(self, identity: str, text: str) -> Dict[str, Any]:
        """Persona and long-term memory for ``identity`` without calling the model or writing anything."""
        resolution = await self.persona.resolve(identity)
        return {
            "identity": identity,
            "persona_resolved": resolution.resolved,
            "persona_source": getattr(resolution, "source", None),
            "tone_instruction": getattr(resolution, "text", None),
            "unresolved_reason": getattr(resolution, "reason", None),
            "semantic_memories": await self._semantic_hits(identity, text),
        }

