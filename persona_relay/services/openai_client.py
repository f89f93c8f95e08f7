from __future__ import annotations

from typing import Any

from .http import JsonHttpClient


class OpenAIClient(JsonHttpClient):
    """Chat completions and embeddings over the OpenAI REST API."""

    service_name = "OpenAI"

    def __init__(
        self,
        *,
        api_key: str,
        chat_model: str,
        embedding_model: str,
        base_url: str = "https://api.openai.com",
        timeout_seconds: int = 60,
        temperature: float = 0.7,
    ) -> None:
        super().__init__(base_url=base_url, timeout_seconds=max(5, int(timeout_seconds)))
        self.api_key = (api_key or "").strip()
        if not self.api_key:
            raise ValueError("OpenAI API key cannot be empty")
        self.chat_model = chat_model
        self.embedding_model = embedding_model
        self.temperature = float(temperature)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _sanitize_messages(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        mapped: list[dict[str, Any]] = []
        for msg in messages:
            role = str(msg.get("role", "")).strip().lower() or "user"
            if role not in {"system", "user", "assistant"}:
                role = "user"
            content = msg.get("content", "")
            if isinstance(content, list):
                if not content:
                    continue
                mapped.append({"role": role, "content": content})
                continue
            text = str(content or "").strip()
            if not text:
                continue
            mapped.append({"role": role, "content": text})
        return mapped

    @staticmethod
    def _extract_message_text(data: dict[str, Any]) -> str:
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message") if isinstance(choices[0], dict) else None
            if isinstance(message, dict):
                content = message.get("content")
                if isinstance(content, str):
                    return content.strip()
        return ""

    async def chat(
        self,
        messages: list[dict[str, Any]],
        temperature: float | None = None,
        max_output_tokens: int | None = None,
    ) -> str:
        mapped = self._sanitize_messages(messages)
        if not mapped:
            return ""
        payload: dict[str, Any] = {
            "model": self.chat_model,
            "messages": mapped,
            "temperature": float(self.temperature if temperature is None else temperature),
        }
        if max_output_tokens:
            payload["max_tokens"] = int(max_output_tokens)
        data = await self._request("POST", "/v1/chat/completions", payload)
        return self._extract_message_text(data)

    async def embed(self, text: str) -> list[float]:
        payload = {"model": self.embedding_model, "input": text}
        data = await self._request("POST", "/v1/embeddings", payload)
        items = data.get("data")
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            raise RuntimeError("OpenAI embeddings response has no data")
        vector = items[0].get("embedding")
        if not isinstance(vector, list):
            raise RuntimeError("OpenAI embeddings response has no embedding vector")
        return [float(value) for value in vector]
