from __future__ import annotations

import asyncio
import json
import random
from typing import Any

import aiohttp

RETRIABLE_STATUSES = {408, 409, 429, 500, 502, 503, 504}


class JsonHttpClient:
    """Shared aiohttp session handling and bounded retries for the REST adapters."""

    service_name = "http"

    def __init__(self, *, base_url: str, timeout_seconds: float = 30.0) -> None:
        self.base_url = (base_url or "").strip().rstrip("/")
        if not self.base_url:
            raise ValueError(f"{self.service_name} base URL cannot be empty")
        self.timeout = aiohttp.ClientTimeout(total=max(1.0, float(timeout_seconds)))
        self._session: aiohttp.ClientSession | None = None

    async def start(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        *,
        retries: int = 3,
    ) -> dict[str, Any]:
        if self._session is None or self._session.closed:
            await self.start()
        assert self._session is not None

        last_error: Exception | None = None
        for attempt in range(1, retries + 1):
            try:
                async with self._session.request(
                    method,
                    self._url(path),
                    json=payload,
                    headers=self._headers(),
                ) as response:
                    text = await response.text()
                    if 200 <= response.status < 300:
                        parsed = json.loads(text) if text.strip() else {}
                        if isinstance(parsed, dict):
                            return parsed
                        raise RuntimeError(f"{self.service_name} returned non-object JSON response")
                    if response.status not in RETRIABLE_STATUSES:
                        raise RuntimeError(f"{self.service_name} error {response.status}: {text}")
                    last_error = RuntimeError(f"{self.service_name} retriable error {response.status}: {text}")
            except asyncio.CancelledError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as exc:
                last_error = exc
            if attempt < retries:
                await asyncio.sleep(min(4.0, 0.35 * attempt + random.random() * 0.2))

        if last_error is not None:
            raise RuntimeError(f"{self.service_name} request failed after retries: {last_error}")
        raise RuntimeError(f"{self.service_name} request failed without explicit error")
