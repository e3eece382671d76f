# src/taskflow/functions/app.py

"""
HTTP surface for the edge functions.

Routes mirror the hosted layout (/functions/v1/<name>) so the client transport
works against either the hosted functions or this server.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..core.ports import Embedder, LLMClient, TableBackend
from .generate import handle_generate_subtasks
from .search import DEFAULT_MATCH_COUNT, DEFAULT_THRESHOLD, handle_embed_task, handle_search

logger = logging.getLogger(__name__)


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


def create_app(
    *,
    backend: TableBackend,
    embedder: Embedder,
    llm: LLMClient,
    bearer: str | None = None,
    cors_origins: list[str] | None = None,
    threshold: float = DEFAULT_THRESHOLD,
    match_count: int = DEFAULT_MATCH_COUNT,
) -> FastAPI:
    """
    Build the function server.

    If `bearer` is set, every function call must carry `Authorization: Bearer <bearer>`.
    """
    app = FastAPI(
        title="TaskFlow Functions",
        description="Semantic task search and AI subtask generation",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=False,
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    def _unauthorized(request: Request) -> JSONResponse | None:
        if not bearer:
            return None
        if request.headers.get("authorization", "") != f"Bearer {bearer}":
            return JSONResponse({"error": "Unauthorized"}, status_code=401)
        return None

    @app.get("/health")
    def health_check():
        return {"status": "healthy"}

    @app.post("/functions/v1/smart-search")
    async def smart_search(request: Request):
        if (denied := _unauthorized(request)) is not None:
            return denied
        status, body = await handle_search(
            await _read_json(request),
            backend=backend,
            embedder=embedder,
            threshold=threshold,
            match_count=match_count,
        )
        return JSONResponse(body, status_code=status)

    @app.post("/functions/v1/generate-subtasks")
    async def generate_subtasks(request: Request):
        if (denied := _unauthorized(request)) is not None:
            return denied
        status, body = await handle_generate_subtasks(await _read_json(request), llm=llm)
        return JSONResponse(body, status_code=status)

    @app.post("/functions/v1/embed-task")
    async def embed_task(request: Request):
        if (denied := _unauthorized(request)) is not None:
            return denied
        status, body = await handle_embed_task(await _read_json(request), backend=backend, embedder=embedder)
        return JSONResponse(body, status_code=status)

    return app
