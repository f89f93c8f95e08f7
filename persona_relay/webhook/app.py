from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from ..errors import PersonaRelayError
from .payloads import IgnoredWebhook, parse_incoming

logger = logging.getLogger("persona_relay")

TEST_IDENTITY = "+919999999999"
HEALTH_TEXT = "persona-relay running with semantic memory and conversation history"


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


def create_app(agent: Any) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await agent.start()
        try:
            yield
        finally:
            await agent.close()

    app = FastAPI(title="persona-relay", lifespan=lifespan)

    @app.get("/", response_class=PlainTextResponse)
    async def health() -> str:
        return HEALTH_TEXT

    @app.post("/whatsapp/incoming")
    async def whatsapp_incoming(request: Request):
        parsed = parse_incoming(await _json_body(request))
        if isinstance(parsed, IgnoredWebhook):
            logger.info("[webhook] ignored: %s", parsed.reason)
            return {"status": "ignored"}

        try:
            outcome = await agent.pipeline.process_turn(parsed)
        except PersonaRelayError as exc:
            logger.error("[webhook] identity=%s processing failed: %s", parsed.identity, exc)
            return JSONResponse(status_code=500, content={"error": "failed"})
        return {"status": outcome.status}

    @app.post("/test")
    async def local_test(request: Request):
        body = await _json_body(request)
        body = body if isinstance(body, dict) else {}
        identity = str(body.get("identity") or TEST_IDENTITY)
        message = str(body.get("message") or "test message")
        logger.info("[webhook.test] identity=%s", identity)
        return await agent.pipeline.inspect(identity, message)

    return app
