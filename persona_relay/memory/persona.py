from __future__ import annotations

import asyncio
import logging
from typing import Any

from .models import DEFAULT_PROFILE_ID, PersonaResolution, Resolved, ToneProfile, Unresolved


logger = logging.getLogger("persona_relay")

FALLBACK_PERSONA_TEXT = "You are a helpful AI assistant."


def _usable(profile: ToneProfile | None) -> str:
    if profile is None:
        return ""
    return (profile.instruction_text or "").strip()


class PersonaResolver:
    """Picks the tone instruction for an identity: own profile, then the default profile, then fallback."""

    def __init__(self, store: Any, *, fallback_text: str = FALLBACK_PERSONA_TEXT, timeout_seconds: float = 30.0) -> None:
        self.store = store
        self.fallback_text = (fallback_text or "").strip() or FALLBACK_PERSONA_TEXT
        self.timeout_seconds = float(timeout_seconds)

    async def _lookup(self, coro: Any) -> ToneProfile | None:
        return await asyncio.wait_for(coro, timeout=self.timeout_seconds)

    async def resolve(self, identity: str) -> PersonaResolution:
        try:
            text = _usable(await self._lookup(self.store.get_tone_rule_by_phone(identity)))
            if text:
                logger.info("[persona] identity=%s source=identity", identity)
                return Resolved(text=text, source="identity")

            text = _usable(await self._lookup(self.store.get_tone_rule(DEFAULT_PROFILE_ID)))
            if text:
                logger.info("[persona] identity=%s source=default", identity)
                return Resolved(text=text, source="default")
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("[persona] identity=%s lookup failed: %s: %s", identity, type(exc).__name__, exc)
            return Unresolved(reason=f"tone store lookup failed: {type(exc).__name__}: {exc}")

        logger.info("[persona] identity=%s source=fallback", identity)
        return Resolved(text=self.fallback_text, source="fallback")
