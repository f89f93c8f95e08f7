from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


load_dotenv()


def _env_lookup(name: str, aliases: tuple[str, ...] = ()) -> str | None:
    for key in (name, *aliases):
        # Be tolerant to UTF-8 BOM accidentally saved in .env key names.
        for candidate in (key, f"\ufeff{key}"):
            raw = os.getenv(candidate)
            if raw is not None:
                return raw
    return None


def _env_bool(name: str, default: bool, aliases: tuple[str, ...] = ()) -> bool:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int, aliases: tuple[str, ...] = ()) -> int:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float, aliases: tuple[str, ...] = ()) -> float:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _env_str(name: str, default: str, aliases: tuple[str, ...] = ()) -> str:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    value = raw.strip()
    return value if value else default


def _env_csv(name: str, default: tuple[str, ...], aliases: tuple[str, ...] = ()) -> tuple[str, ...]:
    raw = (_env_lookup(name, aliases) or "").strip()
    if not raw:
        return default
    values = tuple(chunk.strip() for chunk in raw.split(",") if chunk.strip())
    return values or default


PERSONA_FAILURE_POLICIES = {"pause", "fallback"}
MEMORY_BACKENDS = {"sqlite", "postgres"}


@dataclass(slots=True)
class Settings:
    openai_api_key: str
    openai_base_url: str
    openai_chat_model: str
    openai_embedding_model: str
    openai_timeout_seconds: int
    openai_temperature: float
    embedding_dimension: int

    memory_backend: str
    sqlite_path: Path
    postgres_dsn: str
    history_limit: int
    summary_max_chars: int

    qdrant_url: str
    qdrant_api_key: str
    qdrant_collection: str
    semantic_top_k: int
    semantic_memory_enabled: bool
    memory_trigger_keywords: tuple[str, ...]

    persona_fallback_text: str
    persona_failure_policy: str
    external_call_timeout_seconds: float

    ultramsg_instance_id: str
    ultramsg_token: str
    ultramsg_base_url: str

    server_host: str
    server_port: int
    log_level: str

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openai_api_key=_env_str("OPENAI_API_KEY", ""),
            openai_base_url=_env_str("OPENAI_BASE_URL", "https://api.openai.com"),
            openai_chat_model=_env_str("OPENAI_CHAT_MODEL", "gpt-4o-mini", aliases=("OPENAI_MODEL",)),
            openai_embedding_model=_env_str("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small"),
            openai_timeout_seconds=_env_int("OPENAI_TIMEOUT_SECONDS", 60),
            openai_temperature=_env_float("OPENAI_TEMPERATURE", 0.7),
            embedding_dimension=_env_int("EMBEDDING_DIMENSION", 1536),
            memory_backend=_env_str("MEMORY_BACKEND", "sqlite").lower(),
            sqlite_path=Path(_env_str("SQLITE_PATH", "./data/persona_relay.db")).expanduser(),
            postgres_dsn=_env_str("MEMORY_POSTGRES_DSN", ""),
            history_limit=_env_int("HISTORY_LIMIT", 15, aliases=("MAX_HISTORY_MESSAGES",)),
            summary_max_chars=_env_int("SUMMARY_MAX_CHARS", 1100),
            qdrant_url=_env_str("QDRANT_URL", "http://localhost:6333"),
            qdrant_api_key=_env_str("QDRANT_API_KEY", ""),
            qdrant_collection=_env_str("QDRANT_COLLECTION", "agent_memory"),
            semantic_top_k=_env_int("SEMANTIC_TOP_K", 3),
            semantic_memory_enabled=_env_bool("SEMANTIC_MEMORY_ENABLED", True, aliases=("LONG_MEMORY_ENABLED",)),
            memory_trigger_keywords=_env_csv("MEMORY_TRIGGER_KEYWORDS", ("prefer", "always", "remember")),
            persona_fallback_text=_env_str("PERSONA_FALLBACK_TEXT", "You are a helpful AI assistant."),
            persona_failure_policy=_env_str("PERSONA_FAILURE_POLICY", "pause").lower(),
            external_call_timeout_seconds=_env_float("EXTERNAL_CALL_TIMEOUT_SECONDS", 30.0),
            ultramsg_instance_id=_env_str("ULTRAMSG_INSTANCE_ID", ""),
            ultramsg_token=_env_str("ULTRAMSG_TOKEN", ""),
            ultramsg_base_url=_env_str("ULTRAMSG_BASE_URL", "https://api.ultramsg.com"),
            server_host=_env_str("SERVER_HOST", "0.0.0.0"),
            server_port=_env_int("SERVER_PORT", 3000, aliases=("PORT",)),
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> None:
        if not self.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required")
        if self.openai_api_key == "put_your_openai_api_key_here":
            raise ValueError("OPENAI_API_KEY is still placeholder")
        if self.openai_timeout_seconds < 5:
            raise ValueError("OPENAI_TIMEOUT_SECONDS must be >= 5")
        if self.openai_temperature < 0.0 or self.openai_temperature > 2.0:
            raise ValueError("OPENAI_TEMPERATURE must be in [0, 2]")
        if self.embedding_dimension < 1:
            raise ValueError("EMBEDDING_DIMENSION must be >= 1")

        if self.memory_backend not in MEMORY_BACKENDS:
            raise ValueError("MEMORY_BACKEND must be 'sqlite' or 'postgres'")
        if self.memory_backend == "postgres" and not self.postgres_dsn:
            raise ValueError("MEMORY_POSTGRES_DSN is required when MEMORY_BACKEND=postgres")
        if self.history_limit < 2:
            raise ValueError("HISTORY_LIMIT must be >= 2")
        if self.summary_max_chars < 200:
            raise ValueError("SUMMARY_MAX_CHARS must be >= 200")

        if not self.qdrant_url:
            raise ValueError("QDRANT_URL cannot be empty")
        if not self.qdrant_collection:
            raise ValueError("QDRANT_COLLECTION cannot be empty")
        if self.semantic_top_k < 1:
            raise ValueError("SEMANTIC_TOP_K must be >= 1")
        if not self.memory_trigger_keywords:
            raise ValueError("MEMORY_TRIGGER_KEYWORDS must list at least one keyword")

        if self.persona_failure_policy not in PERSONA_FAILURE_POLICIES:
            raise ValueError("PERSONA_FAILURE_POLICY must be 'pause' or 'fallback'")
        if self.external_call_timeout_seconds <= 0:
            raise ValueError("EXTERNAL_CALL_TIMEOUT_SECONDS must be > 0")

        if self.server_port < 1 or self.server_port > 65535:
            raise ValueError("SERVER_PORT must be in [1, 65535]")

    @property
    def delivery_enabled(self) -> bool:
        return bool(self.ultramsg_instance_id and self.ultramsg_token)
