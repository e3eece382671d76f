# src/taskflow/functions/search.py

"""
smart-search edge function.

Embeds the query, then asks the backend's similarity RPC for the caller's
closest tasks. Also hosts the indexer that stores a task's embedding.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from ..core.errors import BackendError
from ..core.ports import Embedder, TableBackend

logger = logging.getLogger(__name__)

SIMILARITY_RPC = "search_tasks_by_similarity"
EMBEDDINGS_TABLE = "task_embeddings"

DEFAULT_THRESHOLD = 0.3
DEFAULT_MATCH_COUNT = 5

Response = tuple[int, dict[str, Any]]


def _text(payload: Any, key: str) -> str:
    if not isinstance(payload, dict):
        return ""
    value = payload.get(key)
    return value.strip() if isinstance(value, str) else ""


def task_text(title: str, notes: str = "") -> str:
    """What gets embedded for a task."""
    return f"{title.strip()}\n{notes.strip()}".strip()


async def handle_search(
    payload: Any,
    *,
    backend: TableBackend,
    embedder: Embedder,
    threshold: float = DEFAULT_THRESHOLD,
    match_count: int = DEFAULT_MATCH_COUNT,
) -> Response:
    query = _text(payload, "query")
    user_id = _text(payload, "userId")
    if not query or not user_id:
        return 400, {"error": "Query and userId are required"}

    try:
        embedding = await asyncio.to_thread(embedder.embed, query)
    except Exception:
        logger.exception("smart-search: embedding failed")
        return 500, {"error": "Internal server error"}

    try:
        rows = await backend.rpc(
            SIMILARITY_RPC,
            {
                "query_embedding": embedding,
                "user_id": user_id,
                "match_threshold": threshold,
                "match_count": match_count,
            },
        )
    except BackendError as e:
        logger.error("smart-search: similarity lookup failed: %s", e)
        return 500, {"error": "Search failed"}

    results = sorted(rows or [], key=lambda r: float(r.get("similarity") or 0.0), reverse=True)
    logger.info("smart-search user=%s -> %d results", user_id, len(results))
    return 200, {"results": results[:match_count]}


async def handle_embed_task(
    payload: Any,
    *,
    backend: TableBackend,
    embedder: Embedder,
) -> Response:
    task_id = _text(payload, "taskId")
    user_id = _text(payload, "userId")
    text = _text(payload, "text")
    if not task_id or not user_id or not text:
        return 400, {"error": "taskId, userId and text are required"}

    try:
        embedding = await asyncio.to_thread(embedder.embed, text)
    except Exception:
        logger.exception("embed-task: embedding failed")
        return 500, {"error": "Internal server error"}

    try:
        await backend.upsert(
            EMBEDDINGS_TABLE,
            {"task_id": task_id, "user_id": user_id, "embedding": json.dumps(embedding)},
            on_conflict="task_id",
        )
    except BackendError as e:
        logger.error("embed-task: store failed task=%s: %s", task_id, e)
        return 500, {"error": "Failed to index task"}

    logger.debug("embed-task task=%s dim=%d", task_id, len(embedding))
    return 200, {"ok": True}
