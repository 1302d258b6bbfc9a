"""FastAPI application proxying chat prompts upstream with per-thread disk history."""
from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError
from starlette.concurrency import run_in_threadpool

from .auth import Authorizer, SharedSecretAuthorizer
from .config import ProxySettings, load_settings
from .context import ContextAssembler
from .memory import HistoryStore, HistoryStoreError
from .service import ChatService
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)


# -----------------------------
# Pydantic request models
# -----------------------------
class ChatRequest(BaseModel):
    thread_id: Optional[str] = Field(default="default", description="Conversation key.")
    # Checked in the route so a missing prompt gets its own message.
    prompt: Optional[str] = None
    model: Optional[str] = Field(default=None, description="Upstream model; falls back to the default.")


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    body: Dict[str, Any] = {"error": message}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


# -----------------------------
# App factory
# -----------------------------
def create_app(
    config_path: Optional[str] = None,
    settings: Optional[ProxySettings] = None,
    store: Optional[HistoryStore] = None,
    upstream: Optional[UpstreamClient] = None,
    authorizer: Optional[Authorizer] = None,
) -> FastAPI:
    settings = settings or load_settings(config_path)

    # Services
    owns_upstream = upstream is None
    store = store or HistoryStore(settings.threads_dir)
    upstream = upstream or UpstreamClient.from_settings(settings)
    authorizer = authorizer or SharedSecretAuthorizer(settings.api_key)
    service = ChatService(
        store,
        upstream,
        ContextAssembler.from_settings(settings),
        settings.default_model,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        logger.info("Chat proxy ready; upstream %s, threads in %s", settings.upstream_base, settings.threads_dir)
        yield
        if owns_upstream:
            upstream.close()

    app = FastAPI(title="Chat Proxy", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins) or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {
            "ok": True,
            "threads_dir": str(store.root),
            "upstream": settings.upstream_base,
        }

    @app.get("/v1/models")
    def models():
        try:
            return upstream.list_models()
        except Exception as e:
            logger.error("Failed to fetch models: %s", e)
            return _error(500, "Failed to fetch models", details=str(e))

    @app.post("/v1/chat")
    async def chat(request: Request, background_tasks: BackgroundTasks):
        # Authorize before the body is parsed or validated.
        if not authorizer.authorize(request.headers):
            return _error(401, "Invalid MCP Key")

        try:
            raw = await request.body()
            req = ChatRequest.model_validate(json.loads(raw) if raw else {})
        except ValidationError as e:
            errors = e.errors()
            return _error(400, str(errors[0].get("msg", "Invalid request")) if errors else "Invalid request")
        except ValueError:
            return _error(400, "Invalid JSON body")

        if not req.prompt:
            return _error(400, "Prompt required")
        # Only an absent/null thread_id falls back; "" maps to key "thread_".
        thread_id = "default" if req.thread_id is None else req.thread_id

        try:
            result = await run_in_threadpool(service.chat, thread_id, req.prompt, req.model)
        except HistoryStoreError as e:
            logger.exception("Failed to load history for %s: %s", thread_id, e)
            return _error(500, "Failed to load history")
        except Exception as e:
            logger.exception("Chat failed for thread %s: %s", thread_id, e)
            return _error(500, str(e))

        # Persist after the response goes out.
        background_tasks.add_task(store.save, thread_id, result.history)
        return {"ok": True, "thread_id": thread_id, "reply": result.reply}

    @app.get("/v1/history/{thread_id}")
    def history(thread_id: str):
        try:
            messages = store.load(thread_id)
        except Exception as e:
            logger.exception("Failed to load history for %s: %s", thread_id, e)
            return _error(500, "Failed to load history")
        return {"ok": True, "history": [m.to_dict() for m in messages]}

    return app
