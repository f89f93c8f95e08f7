from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ..conversation.common import truncate
from .http import JsonHttpClient


logger = logging.getLogger("persona_relay")


@dataclass(slots=True, frozen=True)
class DeliveryResult:
    ok: bool
    error: str | None = None


class UltraMsgClient(JsonHttpClient):
    """Outbound WhatsApp delivery through the UltraMsg chat endpoint. Never raises on send."""

    service_name = "UltraMsg"

    def __init__(
        self,
        *,
        instance_id: str,
        token: str,
        base_url: str = "https://api.ultramsg.com",
        timeout_seconds: float = 30.0,
    ) -> None:
        super().__init__(base_url=base_url, timeout_seconds=timeout_seconds)
        self.instance_id = (instance_id or "").strip()
        self.token = (token or "").strip()

    @property
    def configured(self) -> bool:
        return bool(self.instance_id and self.token)

    async def send(self, identity: str, text: str) -> DeliveryResult:
        if not self.configured:
            logger.error("[delivery] ULTRAMSG_INSTANCE_ID or ULTRAMSG_TOKEN is missing")
            return DeliveryResult(ok=False, error="delivery credentials missing")

        payload = {"token": self.token, "to": identity, "body": text}
        try:
            data = await self._request("POST", f"/{self.instance_id}/messages/chat", payload, retries=2)
        except asyncio.CancelledError:
            raise
        except (RuntimeError, ValueError) as exc:
            logger.error("[delivery] to=%s failed: %s", identity, exc)
            return DeliveryResult(ok=False, error=str(exc))

        api_error = data.get("error")
        if api_error:
            logger.error("[delivery] to=%s rejected by UltraMsg: %s", identity, api_error)
            return DeliveryResult(ok=False, error=str(api_error))
        logger.info("[delivery] to=%s queued text=%s", identity, truncate(text, 80))
        return DeliveryResult(ok=True)
