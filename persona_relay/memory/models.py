from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Union

SUMMARY_MARKER = "Previous context summary: "
DEFAULT_PROFILE_ID = "DEFAULT_UNKNOWN"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Direction(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"
    SUMMARY = "summary"
    INBOUND_IGNORED = "inbound_ignored"


_CHAT_ROLES = {
    Direction.INBOUND: "user",
    Direction.INBOUND_IGNORED: "user",
    Direction.OUTBOUND: "assistant",
    Direction.SUMMARY: "system",
}


@dataclass(slots=True, frozen=True)
class Turn:
    """One logged message of a conversation. Never mutated once persisted."""

    identity: str
    text: str
    direction: Direction
    timestamp: datetime = field(default_factory=utc_now)
    media_ref: str | None = None
    turn_id: int | None = None

    @property
    def is_summary(self) -> bool:
        return self.direction is Direction.SUMMARY

    def with_id(self, turn_id: int) -> "Turn":
        return replace(self, turn_id=int(turn_id))

    def to_chat_message(self) -> Dict[str, str]:
        role = _CHAT_ROLES[self.direction]
        content = self.text
        if self.is_summary:
            content = f"{SUMMARY_MARKER}{self.text}"
        return {"role": role, "content": content}


@dataclass(slots=True, frozen=True)
class ToneProfile:
    profile_id: str
    instruction_text: str
    phone_number: str | None = None


@dataclass(slots=True, frozen=True)
class SemanticRecord:
    record_id: str
    vector: List[float]
    content: str
    identity: str
    timestamp: datetime = field(default_factory=utc_now)

    def payload(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "identity": self.identity,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(slots=True, frozen=True)
class Resolved:
    text: str
    source: str

    @property
    def resolved(self) -> bool:
        return True


@dataclass(slots=True, frozen=True)
class Unresolved:
    reason: str

    @property
    def resolved(self) -> bool:
        return False


PersonaResolution = Union[Resolved, Unresolved]
