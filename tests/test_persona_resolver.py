from __future__ import annotations

import asyncio
import sys
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from persona_relay.memory.models import DEFAULT_PROFILE_ID, Resolved, ToneProfile, Unresolved  # noqa: E402
from persona_relay.memory.persona import FALLBACK_PERSONA_TEXT, PersonaResolver  # noqa: E402
from persona_relay.memory.store import DocumentStore  # noqa: E402


IDENTITY = "15551234567@c.us"


class _FailingToneStore:
    def __init__(self, fail_on: str = "phone") -> None:
        self.fail_on = fail_on

    async def get_tone_rule_by_phone(self, phone_number: str):  # type: ignore[no-untyped-def]
        if self.fail_on == "phone":
            raise ConnectionError("firestore unavailable")
        return None

    async def get_tone_rule(self, profile_id: str):  # type: ignore[no-untyped-def]
        raise ConnectionError("firestore unavailable")


def test_identity_profile_wins_over_default(tmp_path: Path) -> None:
    async def scenario() -> None:
        store = DocumentStore(tmp_path / "memory.db")
        await store.init()
        await store.upsert_tone_rule(ToneProfile(DEFAULT_PROFILE_ID, "Be formal."))
        await store.upsert_tone_rule(ToneProfile("vip", "Be playful and use emojis.", phone_number=IDENTITY))

        resolution = await PersonaResolver(store).resolve(IDENTITY)
        other = await PersonaResolver(store).resolve("15550000000@c.us")

        assert resolution == Resolved(text="Be playful and use emojis.", source="identity")
        assert other == Resolved(text="Be formal.", source="default")

    asyncio.run(scenario())


def test_blank_rows_fall_through_to_fallback(tmp_path: Path) -> None:
    async def scenario() -> None:
        store = DocumentStore(tmp_path / "memory.db")
        await store.init()
        await store.upsert_tone_rule(ToneProfile(DEFAULT_PROFILE_ID, "   "))
        await store.upsert_tone_rule(ToneProfile("blank", "", phone_number=IDENTITY))

        resolution = await PersonaResolver(store).resolve(IDENTITY)

        assert resolution == Resolved(text=FALLBACK_PERSONA_TEXT, source="fallback")
        assert resolution.text

    asyncio.run(scenario())


def test_blank_configured_fallback_uses_builtin_text(tmp_path: Path) -> None:
    async def scenario() -> None:
        store = DocumentStore(tmp_path / "memory.db")
        await store.init()
        resolution = await PersonaResolver(store, fallback_text="  ").resolve(IDENTITY)
        assert resolution == Resolved(text="You are a helpful AI assistant.", source="fallback")

    asyncio.run(scenario())


def test_store_failure_is_unresolved_not_fallback() -> None:
    for fail_on in ("phone", "default"):
        resolution = asyncio.run(PersonaResolver(_FailingToneStore(fail_on)).resolve(IDENTITY))

        assert isinstance(resolution, Unresolved)
        assert not resolution.resolved
        assert "firestore unavailable" in resolution.reason


def test_slow_store_is_unresolved() -> None:
    class _SlowStore:
        async def get_tone_rule_by_phone(self, phone_number: str):  # type: ignore[no-untyped-def]
            await asyncio.sleep(1.0)

    resolution = asyncio.run(PersonaResolver(_SlowStore(), timeout_seconds=0.05).resolve(IDENTITY))

    assert isinstance(resolution, Unresolved)
