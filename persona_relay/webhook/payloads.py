from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..conversation.pipeline import InboundMessage
from ..prompts.dialogue import MEDIA_PLACEHOLDER_TEXT

USER_ID_SUFFIX = "@c.us"
MEDIA_MESSAGE_TYPES = {"image", "sticker"}


@dataclass(slots=True, frozen=True)
class IgnoredWebhook:
    reason: str


def parse_incoming(body: Any) -> InboundMessage | IgnoredWebhook:
    """Map an UltraMsg ``message_received`` webhook body onto an inbound message."""
    data = body.get("data") if isinstance(body, dict) else None
    if not isinstance(data, dict):
        return IgnoredWebhook("missing data")
    if data.get("fromMe") is True:
        return IgnoredWebhook("own message")

    sender = str(data.get("from") or "").strip()
    if not sender.endswith(USER_ID_SUFFIX):
        return IgnoredWebhook(f"non-user id {sender or '(empty)'}")

    text = str(data.get("body") or "").strip()
    media_ref = None
    media = str(data.get("media") or "").strip()
    if media and str(data.get("type") or "").strip().lower() in MEDIA_MESSAGE_TYPES:
        media_ref = media
        # Image bodies carry the caption; a bare URL body is not user text.
        if text == media:
            text = ""
    return InboundMessage(identity=sender, text=text or MEDIA_PLACEHOLDER_TEXT, media_ref=media_ref)
