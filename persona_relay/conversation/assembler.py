from __future__ import annotations

from typing import Any, Dict, Iterable, List, Sequence

from ..memory.models import Turn
from ..prompts.dialogue import build_system_prompt


class ContextAssembler:
    """Builds the ordered chat payload: system prompt, window turns, then the current user turn."""

    def system_message(self, persona_text: str, semantic_hits: Iterable[str]) -> Dict[str, str]:
        return {"role": "system", "content": build_system_prompt(persona_text, semantic_hits)}

    @staticmethod
    def current_message(current: Turn) -> Dict[str, Any]:
        if not current.media_ref:
            return {"role": "user", "content": current.text}
        return {
            "role": "user",
            "content": [
                {"type": "image_url", "image_url": {"url": current.media_ref}},
                {"type": "text", "text": current.text},
            ],
        }

    def assemble(
        self,
        persona_text: str,
        semantic_hits: Sequence[str],
        window: Sequence[Turn],
        current: Turn,
    ) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = [self.system_message(persona_text, semantic_hits)]
        messages.extend(turn.to_chat_message() for turn in window)
        messages.append(self.current_message(current))
        return messages
