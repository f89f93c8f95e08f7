from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from persona_relay.services.openai_client import OpenAIClient  # noqa: E402
from persona_relay.services.qdrant_client import QdrantClient  # noqa: E402
from persona_relay.services.ultramsg_client import DeliveryResult, UltraMsgClient  # noqa: E402


def _recorder(responses: list[object]):  # type: ignore[no-untyped-def]
    calls: list[dict[str, object]] = []

    async def fake_request(method, path, payload=None, *, retries=3):  # type: ignore[no-untyped-def]
        calls.append({"method": method, "path": path, "payload": payload, "retries": retries})
        response = responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    return calls, fake_request


def _openai() -> OpenAIClient:
    return OpenAIClient(
        api_key="sk-test",
        chat_model="gpt-4o-mini",
        embedding_model="text-embedding-3-small",
        temperature=0.3,
    )


def test_openai_chat_builds_completion_request() -> None:
    client = _openai()
    calls, fake_request = _recorder([{"choices": [{"message": {"content": "  Hello!  "}}]}])
    client._request = fake_request  # type: ignore[method-assign]

    reply = asyncio.run(
        client.chat(
            [
                {"role": "system", "content": "Be kind."},
                {"role": "tool", "content": "odd role"},
                {"role": "assistant", "content": "   "},
                {"role": "user", "content": [{"type": "text", "text": "hi"}]},
            ]
        )
    )

    assert reply == "Hello!"
    call = calls[0]
    assert call["method"] == "POST"
    assert call["path"] == "/v1/chat/completions"
    payload = call["payload"]
    assert payload["model"] == "gpt-4o-mini"
    assert payload["temperature"] == 0.3
    assert payload["messages"] == [
        {"role": "system", "content": "Be kind."},
        {"role": "user", "content": "odd role"},
        {"role": "user", "content": [{"type": "text", "text": "hi"}]},
    ]
    assert client._headers()["Authorization"] == "Bearer sk-test"


def test_openai_embed_parses_vector_and_rejects_empty_payload() -> None:
    client = _openai()
    calls, fake_request = _recorder([{"data": [{"embedding": [0.1, 0.2, 0.3]}]}, {"data": []}])
    client._request = fake_request  # type: ignore[method-assign]

    assert asyncio.run(client.embed("I prefer tea")) == [0.1, 0.2, 0.3]
    assert calls[0]["path"] == "/v1/embeddings"
    assert calls[0]["payload"] == {"model": "text-embedding-3-small", "input": "I prefer tea"}
    with pytest.raises(RuntimeError, match="no data"):
        asyncio.run(client.embed("again"))


def test_openai_requires_api_key() -> None:
    with pytest.raises(ValueError):
        OpenAIClient(api_key=" ", chat_model="gpt-4o-mini", embedding_model="text-embedding-3-small")


def test_qdrant_creates_missing_collection_only_once() -> None:
    client = QdrantClient(url="http://localhost:6333/", api_key="secret")
    calls, fake_request = _recorder(
        [
            {"result": {"collections": [{"name": "other"}]}},
            {"result": True},
            {"result": {"collections": [{"name": "agent_memory"}]}},
        ]
    )
    client._request = fake_request  # type: ignore[method-assign]

    assert asyncio.run(client.ensure_collection("agent_memory", 1536)) is True
    assert asyncio.run(client.ensure_collection("agent_memory", 1536)) is False

    assert [(call["method"], call["path"]) for call in calls] == [
        ("GET", "/collections"),
        ("PUT", "/collections/agent_memory"),
        ("GET", "/collections"),
    ]
    assert calls[1]["payload"] == {"vectors": {"size": 1536, "distance": "Cosine"}}
    assert client.base_url == "http://localhost:6333"
    assert client._headers()["api-key"] == "secret"


def test_qdrant_upsert_and_search_payloads() -> None:
    client = QdrantClient(url="http://localhost:6333")
    hit = {"id": "abc", "score": 0.91, "payload": {"content": "likes tea", "identity": "1@c.us"}}
    calls, fake_request = _recorder([{"result": {"status": "completed"}}, {"result": [hit, "junk"]}])
    client._request = fake_request  # type: ignore[method-assign]
    point = {"id": "abc", "vector": [0.1, 0.2], "payload": hit["payload"]}
    query_filter = {"must": [{"key": "identity", "match": {"value": "1@c.us"}}]}

    asyncio.run(client.upsert("agent_memory", [point]))
    hits = asyncio.run(client.search("agent_memory", [0.1, 0.2], 3, query_filter))

    assert calls[0]["method"] == "PUT"
    assert calls[0]["path"] == "/collections/agent_memory/points?wait=true"
    assert calls[0]["payload"] == {"points": [point]}
    assert calls[1]["path"] == "/collections/agent_memory/points/search"
    assert calls[1]["payload"] == {"vector": [0.1, 0.2], "limit": 3, "with_payload": True, "filter": query_filter}
    assert hits == [hit]
    assert "Content-Type" in client._headers()
    assert "api-key" not in client._headers()


def test_ultramsg_send_reports_outcomes_without_raising() -> None:
    client = UltraMsgClient(instance_id="instance42", token="tok")
    calls, fake_request = _recorder(
        [
            {"sent": "true", "message": "ok", "id": 7},
            {"error": "Wrong token"},
            RuntimeError("UltraMsg request failed after retries: timeout"),
        ]
    )
    client._request = fake_request  # type: ignore[method-assign]

    assert asyncio.run(client.send("1@c.us", "hello")) == DeliveryResult(ok=True)
    assert asyncio.run(client.send("1@c.us", "hello")) == DeliveryResult(ok=False, error="Wrong token")
    failed = asyncio.run(client.send("1@c.us", "hello"))

    assert failed.ok is False
    assert "timeout" in str(failed.error)
    assert calls[0]["method"] == "POST"
    assert calls[0]["path"] == "/instance42/messages/chat"
    assert calls[0]["payload"] == {"token": "tok", "to": "1@c.us", "body": "hello"}


def test_ultramsg_without_credentials_never_calls_out() -> None:
    client = UltraMsgClient(instance_id="", token="")
    calls, fake_request = _recorder([])
    client._request = fake_request  # type: ignore[method-assign]

    result = asyncio.run(client.send("1@c.us", "hello"))

    assert result.ok is False
    assert calls == []
