from __future__ import annotations

import asyncio
import logging
import re
import uuid
from typing import Any, Iterable, List, Protocol

from ..conversation.common import collapse_spaces, truncate
from ..errors import SemanticMemoryError
from .models import SemanticRecord, utc_now


logger = logging.getLogger("persona_relay")

DEFAULT_TRIGGER_KEYWORDS = ("prefer", "always", "remember")
_RECORD_NAMESPACE = uuid.UUID("6f1c1d7e-3b8a-5c52-9a51-2f8d3c0e4b17")


class RememberPolicy(Protocol):
    def should_remember(self, text: str) -> bool: ...


class KeywordRememberPolicy:
    """Remembers text that contains one of the trigger keywords anywhere, ignoring case."""

    def __init__(self, keywords: Iterable[str] = DEFAULT_TRIGGER_KEYWORDS) -> None:
        cleaned = tuple(word.strip().lower() for word in keywords if word and word.strip())
        if not cleaned:
            raise ValueError("KeywordRememberPolicy needs at least one keyword")
        self.keywords = cleaned
        self._pattern = re.compile(
            "|".join(re.escape(word) for word in cleaned),
            flags=re.IGNORECASE,
        )

    def should_remember(self, text: str) -> bool:
        return bool(self._pattern.search(text or ""))


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


class VectorIndex(Protocol):
    async def ensure_collection(self, name: str, size: int, distance: str = "Cosine") -> bool: ...

    async def upsert(self, name: str, points: list[dict[str, Any]]) -> None: ...

    async def search(
        self,
        name: str,
        vector: list[float],
        limit: int,
        query_filter: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]: ...


def record_id_for(identity: str, text: str) -> str:
    normalized = collapse_spaces(text).casefold()
    return str(uuid.uuid5(_RECORD_NAMESPACE, f"{identity}\n{normalized}"))


def identity_filter(identity: str) -> dict[str, Any]:
    return {"must": [{"key": "identity", "match": {"value": identity}}]}


class SemanticMemoryStore:
    """Identity-scoped long-term memory over an embedding model and a vector index."""

    def __init__(
        self,
        embedder: Embedder,
        index: VectorIndex,
        *,
        collection: str = "agent_memory",
        dimension: int = 1536,
        top_k: int = 3,
        policy: RememberPolicy | None = None,
        timeout_seconds: float = 30.0,
        enabled: bool = True,
    ) -> None:
        self.embedder = embedder
        self.index = index
        self.collection = collection
        self.dimension = int(dimension)
        self.top_k = max(1, int(top_k))
        self.policy = policy or KeywordRememberPolicy()
        self.timeout_seconds = float(timeout_seconds)
        self.enabled = bool(enabled)

    async def _call(self, operation: str, awaitable: Any) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.CancelledError:
            raise
        except SemanticMemoryError:
            raise
        except Exception as exc:
            raise SemanticMemoryError(f"{operation} failed: {exc}") from exc

    async def ensure_collection(self) -> bool:
        if not self.enabled:
            return False
        return bool(
            await self._call(
                "ensure_collection",
                self.index.ensure_collection(self.collection, self.dimension, "Cosine"),
            )
        )

    async def _embed(self, text: str) -> List[float]:
        vector = await self._call("embed", self.embedder.embed(text))
        if len(vector) != self.dimension:
            raise SemanticMemoryError(
                f"embedding has {len(vector)} dimensions, expected {self.dimension}"
            )
        return [float(value) for value in vector]

    async def store(self, identity: str, text: str, *, record_id: str | None = None) -> str:
        content = (text or "").strip()
        if not content:
            raise ValueError("cannot store empty memory text")
        record = SemanticRecord(
            record_id=record_id or record_id_for(identity, content),
            vector=await self._embed(content),
            content=content,
            identity=identity,
            timestamp=utc_now(),
        )
        point = {"id": record.record_id, "vector": record.vector, "payload": record.payload()}
        await self._call("upsert", self.index.upsert(self.collection, [point]))
        logger.info("[semantic.store] identity=%s id=%s text=%s", identity, record.record_id, truncate(content, 80))
        return record.record_id

    async def maybe_store(self, identity: str, text: str) -> bool:
        if not self.enabled or not (text or "").strip():
            return False
        if not self.policy.should_remember(text):
            return False
        await self.store(identity, text)
        return True

    async def retrieve(self, identity: str, query_text: str, k: int | None = None) -> List[str]:
        if not self.enabled or not (query_text or "").strip():
            return []
        limit = self.top_k if k is None else max(1, int(k))
        vector = await self._embed(query_text)
        hits = await self._call(
            "search",
            self.index.search(self.collection, vector, limit, identity_filter(identity)),
        )

        contents: List[str] = []
        for hit in hits:
            payload = hit.get("payload") or {}
            if payload.get("identity") != identity:
                logger.warning("[semantic.retrieve] dropped hit scoped to another identity")
                continue
            content = str(payload.get("content") or "").strip()
            if content:
                contents.append(content)
            if len(contents) >= limit:
                break
        return contents
