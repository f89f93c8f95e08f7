from __future__ import annotations

import re


def collapse_spaces(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    if limit <= 3:
        return text[:limit]

    window = text[:limit]
    cut = max(window.rfind(". "), window.rfind("! "), window.rfind("? "), window.rfind("; "))
    if cut >= int(limit * 0.62):
        return window[: cut + 1].strip()

    cut = window.rfind(" ")
    if cut >= int(limit * 0.7):
        return window[:cut].strip()

    return (window[: limit - 3].rstrip() + "...").strip()
