from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger("persona_relay.prompts")

DATA_DIR = Path(__file__).with_name("data")


def _overlay(defaults: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    result = copy.deepcopy(dict(defaults))
    for key, value in overrides.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = _overlay(current, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _read_overrides(path: Path) -> Mapping[str, Any]:
    if not path.is_file():
        logger.warning("[prompts] %s not found, using built-in wording", path)
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8-sig"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("[prompts] %s unreadable (%s), using built-in wording", path, exc)
        return {}
    if not isinstance(payload, dict):
        logger.warning("[prompts] %s must hold a JSON object, using built-in wording", path)
        return {}
    return payload


def load_prompt_json(filename: str, defaults: Mapping[str, Any], data_dir: Path | None = None) -> dict[str, Any]:
    """Built-in prompt wording for one module, overlaid with ``data/<filename>``.

    The prompt modules call this once at import time; edits to the JSON files
    take effect on the next process start.
    """
    return _overlay(defaults, _read_overrides((data_dir or DATA_DIR) / filename))


def prompt_text(cfg: Mapping[str, Any], defaults: Mapping[str, Any], key: str) -> str:
    value = cfg.get(key)
    if isinstance(value, str) and value.strip():
        return value
    return str(defaults[key])
