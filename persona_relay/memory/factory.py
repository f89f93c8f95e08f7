from __future__ import annotations

from typing import Any

from ..config import MEMORY_BACKENDS, Settings
from .store import DocumentStore


def build_document_store(settings: Settings) -> Any:
    backend = settings.memory_backend.strip().lower()
    if backend not in MEMORY_BACKENDS:
        raise ValueError("MEMORY_BACKEND must be 'sqlite' or 'postgres'")
    if backend == "sqlite":
        return DocumentStore(settings.sqlite_path)

    if not settings.postgres_dsn:
        raise ValueError("MEMORY_POSTGRES_DSN is required when MEMORY_BACKEND=postgres")

    from .postgres_store import PostgresDocumentStore

    return PostgresDocumentStore(settings.postgres_dsn)
