from __future__ import annotations

from typing import Any, Iterable

from .json_loader import load_prompt_json, prompt_text

_DEFAULTS: dict[str, Any] = {
    "summary_system_prompt": (
        "Compress the conversation into one cohesive paragraph. "
        "Retain the topic and any action items. Use a neutral tone."
    ),
    "summary_user_prompt_template": "Conversation (oldest -> newest):\n{dialogue_lines}\n\nReturn the summary paragraph.",
    "summary_placeholder": "Topic unknown due to memory limits, continue contextually.",
    "speaker_labels": {
        "inbound": "User",
        "inbound_ignored": "User",
        "outbound": "Assistant",
        "summary": "Earlier summary",
    },
}

_CFG = load_prompt_json("memory.json", _DEFAULTS)

SUMMARY_SYSTEM_PROMPT = prompt_text(_CFG, _DEFAULTS, "summary_system_prompt")
SUMMARY_USER_PROMPT_TEMPLATE = prompt_text(_CFG, _DEFAULTS, "summary_user_prompt_template")
SUMMARY_PLACEHOLDER = prompt_text(_CFG, _DEFAULTS, "summary_placeholder")

_LABELS = _CFG["speaker_labels"] if isinstance(_CFG.get("speaker_labels"), dict) else _DEFAULTS["speaker_labels"]
SPEAKER_LABELS = {str(key): str(value) for key, value in _LABELS.items()}


def speaker_label(direction: str) -> str:
    return SPEAKER_LABELS.get(direction, direction)


def build_summary_user_prompt(dialogue_lines: Iterable[str]) -> str:
    joined = "\n".join(str(line) for line in dialogue_lines if str(line))
    return SUMMARY_USER_PROMPT_TEMPLATE.format(dialogue_lines=joined or "(empty)")
