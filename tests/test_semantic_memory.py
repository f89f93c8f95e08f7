from __future__ import annotations

import asyncio
import math
import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from persona_relay.errors import SemanticMemoryError  # noqa: E402
from persona_relay.memory.semantic import (  # noqa: E402
    KeywordRememberPolicy,
    SemanticMemoryStore,
    identity_filter,
    record_id_for,
)


ALICE = "15551234567@c.us"
BOB = "15550000000@c.us"

# Near-duplicate statements share a direction; unrelated text is orthogonal.
FIXTURE_VECTORS = {
    "I prefer green tea over coffee": [1.0, 0.0, 0.0, 0.0],
    "I always prefer green tea": [0.98, 0.05, 0.0, 0.0],
    "What should I drink?": [1.0, 0.0, 0.0, 0.0],
    "Remember my flight is on Friday": [0.0, 1.0, 0.0, 0.0],
    "When is my flight?": [0.05, 0.99, 0.0, 0.0],
}


class _FixtureEmbedder:
    def __init__(self, dimension: int = 4) -> None:
        self.dimension = dimension
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        vector = FIXTURE_VECTORS.get(text, [0.0, 0.0, 0.0, 1.0])
        return (vector + [0.0] * self.dimension)[: self.dimension]


def _cosine(left: list[float], right: list[float]) -> float:
    dot = sum(a * b for a, b in zip(left, right))
    norm = math.sqrt(sum(a * a for a in left)) * math.sqrt(sum(b * b for b in right))
    return dot / norm if norm else 0.0


class _MemoryIndex:
    def __init__(self, *, honor_filter: bool = True) -> None:
        self.honor_filter = honor_filter
        self.collections: dict[str, tuple[int, str]] = {}
        self.points: dict[str, dict[str, object]] = {}
        self.searches: list[dict[str, object]] = []

    async def ensure_collection(self, name: str, size: int, distance: str = "Cosine") -> bool:
        if name in self.collections:
            return False
        self.collections[name] = (size, distance)
        return True

    async def upsert(self, name: str, points):  # type: ignore[no-untyped-def]
        for point in points:
            self.points[str(point["id"])] = point

    async def search(self, name, vector, limit, query_filter=None):  # type: ignore[no-untyped-def]
        self.searches.append({"name": name, "limit": limit, "filter": query_filter})
        must = (query_filter or {}).get("must", []) if self.honor_filter else []

        def matches(point) -> bool:  # type: ignore[no-untyped-def]
            payload = point["payload"]
            return all(payload.get(cond["key"]) == cond["match"]["value"] for cond in must)

        scored = sorted(
            ((_cosine(vector, point["vector"]), point) for point in self.points.values() if matches(point)),
            key=lambda item: item[0],
            reverse=True,
        )
        return [{"id": point["id"], "score": score, "payload": point["payload"]} for score, point in scored[:limit]]


class _FailingIndex(_MemoryIndex):
    async def search(self, name, vector, limit, query_filter=None):  # type: ignore[no-untyped-def]
        raise RuntimeError("Qdrant error 503: unavailable")


def _store(index=None, embedder=None, **kwargs) -> SemanticMemoryStore:  # type: ignore[no-untyped-def]
    return SemanticMemoryStore(
        embedder or _FixtureEmbedder(),
        index if index is not None else _MemoryIndex(),
        dimension=4,
        timeout_seconds=5.0,
        **kwargs,
    )


def test_keyword_policy_matches_anywhere_case_insensitively() -> None:
    policy = KeywordRememberPolicy()

    assert policy.should_remember("I PREFER window seats")
    assert policy.should_remember("my preferences changed")
    assert policy.should_remember("Always call me Sam")
    assert policy.should_remember("please remember this")
    assert policy.should_remember("I keep misremembering names")
    assert policy.should_remember("unalwaysly phrased")
    assert not policy.should_remember("what time is it?")
    assert not policy.should_remember("")
    assert KeywordRememberPolicy(["allergic"]).should_remember("I am allergic to nuts")
    with pytest.raises(ValueError):
        KeywordRememberPolicy([" "])


def test_maybe_store_only_keeps_trigger_statements() -> None:
    async def scenario() -> None:
        index = _MemoryIndex()
        memory = _store(index)

        assert await memory.maybe_store(ALICE, "I prefer green tea over coffee") is True
        assert await memory.maybe_store(ALICE, "hello there") is False
        assert len(index.points) == 1
        point = next(iter(index.points.values()))
        assert point["payload"]["identity"] == ALICE
        assert point["payload"]["content"] == "I prefer green tea over coffee"
        assert "timestamp" in point["payload"]

    asyncio.run(scenario())


def test_retrieve_ranks_near_duplicates_and_respects_k() -> None:
    async def scenario() -> None:
        memory = _store(top_k=3)
        await memory.store(ALICE, "I prefer green tea over coffee")
        await memory.store(ALICE, "I always prefer green tea")
        await memory.store(ALICE, "Remember my flight is on Friday")

        drink = await memory.retrieve(ALICE, "What should I drink?", k=2)
        flight = await memory.retrieve(ALICE, "When is my flight?", k=1)

        assert drink == ["I prefer green tea over coffee", "I always prefer green tea"]
        assert flight == ["Remember my flight is on Friday"]

    asyncio.run(scenario())


def test_retrieve_never_leaks_other_identities() -> None:
    async def scenario() -> None:
        for honor_filter in (True, False):
            index = _MemoryIndex(honor_filter=honor_filter)
            memory = _store(index)
            await memory.store(BOB, "I prefer green tea over coffee")
            await memory.store(ALICE, "Remember my flight is on Friday")

            hits = await memory.retrieve(ALICE, "What should I drink?")

            assert hits == ["Remember my flight is on Friday"]
            assert index.searches[-1]["filter"] == identity_filter(ALICE)

    asyncio.run(scenario())


def test_repeated_statement_reuses_record_id() -> None:
    async def scenario() -> None:
        index = _MemoryIndex()
        memory = _store(index)

        first = await memory.store(ALICE, "I prefer green tea over coffee")
        second = await memory.store(ALICE, "  I prefer green   tea over coffee ")
        other = await memory.store(BOB, "I prefer green tea over coffee")
        explicit = await memory.store(ALICE, "I prefer green tea over coffee", record_id="manual-1")

        assert first == second == record_id_for(ALICE, "I prefer green tea over coffee")
        assert other != first
        assert explicit == "manual-1"
        assert len(index.points) == 3

    asyncio.run(scenario())


def test_dimension_mismatch_and_collaborator_failures_raise() -> None:
    with pytest.raises(SemanticMemoryError, match="dimensions"):
        asyncio.run(_store(embedder=_FixtureEmbedder(dimension=3)).store(ALICE, "remember this"))
    with pytest.raises(SemanticMemoryError, match="search failed"):
        asyncio.run(_store(_FailingIndex()).retrieve(ALICE, "When is my flight?"))
    with pytest.raises(ValueError):
        asyncio.run(_store().store(ALICE, "   "))


def test_disabled_memory_is_inert() -> None:
    async def scenario() -> None:
        index = _MemoryIndex()
        embedder = _FixtureEmbedder()
        memory = _store(index, embedder, enabled=False)

        assert await memory.ensure_collection() is False
        assert await memory.maybe_store(ALICE, "remember I prefer tea") is False
        assert await memory.retrieve(ALICE, "anything") == []
        assert embedder.calls == []
        assert index.collections == {}

    asyncio.run(scenario())


def test_ensure_collection_is_idempotent() -> None:
    async def scenario() -> None:
        index = _MemoryIndex()
        memory = _store(index, collection="agent_memory")

        assert await memory.ensure_collection() is True
        assert await memory.ensure_collection() is False
        assert index.collections == {"agent_memory": (4, "Cosine")}

    asyncio.run(scenario())
