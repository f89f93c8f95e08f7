from __future__ import annotations

import logging
from typing import Any

from .http import JsonHttpClient


logger = logging.getLogger("persona_relay")


class QdrantClient(JsonHttpClient):
    service_name = "Qdrant"

    def __init__(self, *, url: str, api_key: str = "", timeout_seconds: float = 30.0) -> None:
        super().__init__(base_url=url, timeout_seconds=timeout_seconds)
        self.api_key = (api_key or "").strip()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["api-key"] = self.api_key
        return headers

    async def list_collections(self) -> list[str]:
        data = await self._request("GET", "/collections")
        result = data.get("result") or {}
        collections = result.get("collections") if isinstance(result, dict) else None
        return [str(item.get("name")) for item in collections or [] if isinstance(item, dict)]

    async def ensure_collection(self, name: str, size: int, distance: str = "Cosine") -> bool:
        """Create ``name`` when missing. Returns True when a collection was created."""
        if name in await self.list_collections():
            logger.info("[qdrant] collection %s already exists", name)
            return False
        await self._request(
            "PUT",
            f"/collections/{name}",
            {"vectors": {"size": int(size), "distance": distance}},
        )
        logger.info("[qdrant] collection %s created size=%s distance=%s", name, size, distance)
        return True

    async def upsert(self, name: str, points: list[dict[str, Any]]) -> None:
        if not points:
            return
        await self._request("PUT", f"/collections/{name}/points?wait=true", {"points": points})

    async def search(
        self,
        name: str,
        vector: list[float],
        limit: int,
        query_filter: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        payload: dict[str, Any] = {
            "vector": vector,
            "limit": max(1, int(limit)),
            "with_payload": True,
        }
        if query_filter:
            payload["filter"] = query_filter
        data = await self._request("POST", f"/collections/{name}/points/search", payload)
        result = data.get("result")
        if not isinstance(result, list):
            return []
        return [hit for hit in result if isinstance(hit, dict)]
