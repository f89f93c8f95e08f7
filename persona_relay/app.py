from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .config import Settings
from .conversation.assembler import ContextAssembler
from .conversation.pipeline import ConversationPipeline
from .errors import SemanticMemoryError
from .memory.factory import build_document_store
from .memory.history import HistoryStore
from .memory.persona import PersonaResolver
from .memory.semantic import KeywordRememberPolicy, SemanticMemoryStore
from .memory.summarizer import Summarizer
from .services.openai_client import OpenAIClient
from .services.qdrant_client import QdrantClient
from .services.ultramsg_client import UltraMsgClient

logger = logging.getLogger("persona_relay")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


@dataclass(slots=True)
class RelayAgent:
    """Process-wide collaborators shared by every turn."""

    settings: Settings
    store: Any
    llm: OpenAIClient
    qdrant: QdrantClient
    delivery: UltraMsgClient
    semantic: SemanticMemoryStore
    pipeline: ConversationPipeline

    async def start(self) -> None:
        await self.store.init()
        await self.store.ping()
        await self.llm.start()
        await self.qdrant.start()
        await self.delivery.start()
        try:
            await self.semantic.ensure_collection()
        except SemanticMemoryError as exc:
            # Retrieval degrades per turn; the webhook can still reply without long-term memory.
            logger.warning("[startup] vector collection bootstrap failed: %s", exc)
        if not self.settings.delivery_enabled:
            logger.warning("[startup] ULTRAMSG credentials missing; replies will be undelivered")
        logger.info("[startup] persona-relay ready backend=%s", getattr(self.store, "backend_name", "?"))

    async def close(self) -> None:
        await self.delivery.close()
        await self.qdrant.close()
        await self.llm.close()
        await self.store.close()


def build_agent(settings: Settings) -> RelayAgent:
    timeout = settings.external_call_timeout_seconds
    store = build_document_store(settings)
    llm = OpenAIClient(
        api_key=settings.openai_api_key,
        chat_model=settings.openai_chat_model,
        embedding_model=settings.openai_embedding_model,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.openai_timeout_seconds,
        temperature=settings.openai_temperature,
    )
    qdrant = QdrantClient(url=settings.qdrant_url, api_key=settings.qdrant_api_key, timeout_seconds=timeout)
    delivery = UltraMsgClient(
        instance_id=settings.ultramsg_instance_id,
        token=settings.ultramsg_token,
        base_url=settings.ultramsg_base_url,
        timeout_seconds=timeout,
    )
    semantic = SemanticMemoryStore(
        llm,
        qdrant,
        collection=settings.qdrant_collection,
        dimension=settings.embedding_dimension,
        top_k=settings.semantic_top_k,
        policy=KeywordRememberPolicy(settings.memory_trigger_keywords),
        timeout_seconds=timeout,
        enabled=settings.semantic_memory_enabled,
    )
    history = HistoryStore(
        store,
        Summarizer(llm, max_chars=settings.summary_max_chars, timeout_seconds=timeout),
        limit=settings.history_limit,
        timeout_seconds=timeout,
    )
    persona = PersonaResolver(store, fallback_text=settings.persona_fallback_text, timeout_seconds=timeout)
    pipeline = ConversationPipeline(
        persona=persona,
        history=history,
        semantic=semantic,
        llm=llm,
        delivery=delivery,
        assembler=ContextAssembler(),
        failure_policy=settings.persona_failure_policy,
        fallback_text=settings.persona_fallback_text,
        timeout_seconds=timeout,
    )
    return RelayAgent(
        settings=settings,
        store=store,
        llm=llm,
        qdrant=qdrant,
        delivery=delivery,
        semantic=semantic,
        pipeline=pipeline,
    )


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    settings.validate()

    import uvicorn

    from .webhook.app import create_app

    app = create_app(build_agent(settings))
    try:
        uvicorn.run(app, host=settings.server_host, port=settings.server_port, log_config=None)
    except KeyboardInterrupt:
        logger.info("Shutdown requested, exiting.")
