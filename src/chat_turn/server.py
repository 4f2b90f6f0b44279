"""FastAPI application exposing a single conversation over HTTP."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import load_config, redact
from .handler import ChatTurnHandler, create_handler
from .llm import RemoteCallError

logger = logging.getLogger(__name__)


# -----------------------------
# Pydantic request/response
# -----------------------------
class ChatRequest(BaseModel):
    message: str = Field(default="", description="Raw user utterance.")


class ChatResponse(BaseModel):
    response: str
    stop_listening: bool = False


class MessageOut(BaseModel):
    role: str
    content: str


# -----------------------------
# App factory
# -----------------------------
def create_app(
    config_path: Optional[str] = None,
    handler: Optional[ChatTurnHandler] = None,
) -> FastAPI:
    cfg = load_config(config_path)

    cors_origins = cfg.get("server", {}).get("cors_origins", ["*"])

    handler = handler or create_handler(cfg)
    # One in-flight turn per handler.
    turn_lock = asyncio.Lock()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        aclose = getattr(handler.service, "aclose", None)
        if aclose is not None:
            await aclose()

    app = FastAPI(title="Chat Turn Server", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {
            "ok": True,
            "messages": len(handler.transcript),
            "evicted": handler.transcript.evicted,
        }

    @app.get("/config")
    def get_config() -> JSONResponse:
        return JSONResponse(redact(cfg))

    @app.get("/transcript", response_model=List[MessageOut])
    def get_transcript() -> List[Dict[str, str]]:
        return handler.transcript.to_dicts()

    @app.post("/chat", response_model=ChatResponse)
    async def chat(req: ChatRequest) -> ChatResponse:
        async with turn_lock:
            try:
                result = await handler.handle_turn(req.message)
            except RemoteCallError as e:
                raise HTTPException(status_code=502, detail=str(e)) from e
        return ChatResponse(
            response=result.response_text,
            stop_listening=result.termination_requested,
        )

    return app
