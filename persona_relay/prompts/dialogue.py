from __future__ import annotations

from typing import Any, Iterable

from .json_loader import load_prompt_json, prompt_text

_DEFAULTS: dict[str, Any] = {
    "long_term_context_header": "Relevant long-term context:",
    "long_term_context_line_template": "- {content}",
    "persona_footer": "Follow persona rules strictly.",
    "media_placeholder_text": "User sent media",
}

_CFG = load_prompt_json("dialogue.json", _DEFAULTS)

LONG_TERM_CONTEXT_HEADER = prompt_text(_CFG, _DEFAULTS, "long_term_context_header")
LONG_TERM_CONTEXT_LINE_TEMPLATE = prompt_text(_CFG, _DEFAULTS, "long_term_context_line_template")
MEDIA_PLACEHOLDER_TEXT = prompt_text(_CFG, _DEFAULTS, "media_placeholder_text")
# An empty footer in dialogue.json switches the footer off.
PERSONA_FOOTER = str(_CFG.get("persona_footer") or "").strip()


def build_system_prompt(persona_text: str, semantic_hits: Iterable[str]) -> str:
    parts = [persona_text.strip()]
    lines = [
        LONG_TERM_CONTEXT_LINE_TEMPLATE.format(content=str(hit).strip())
        for hit in semantic_hits
        if str(hit).strip()
    ]
    if lines:
        parts.append(LONG_TERM_CONTEXT_HEADER + "\n" + "\n".join(lines))
    if PERSONA_FOOTER:
        parts.append(PERSONA_FOOTER)
    return "\n\n".join(parts)
