# src/taskflow/functions/local.py

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..core.ports import Embedder, LLMClient, TableBackend
from .generate import handle_generate_subtasks
from .search import DEFAULT_MATCH_COUNT, DEFAULT_THRESHOLD, handle_embed_task, handle_search

logger = logging.getLogger(__name__)


class LocalFunctionsTransport:
    """FunctionsTransport that runs the edge-function handlers in-process (local backend mode)."""

    def __init__(
        self,
        *,
        backend: TableBackend,
        embedder: Embedder,
        llm: LLMClient,
        threshold: float = DEFAULT_THRESHOLD,
        match_count: int = DEFAULT_MATCH_COUNT,
    ) -> None:
        self._backend = backend
        self._embedder = embedder
        self._llm = llm
        self._threshold = threshold
        self._match_count = match_count

    async def invoke(self, name: str, payload: Mapping[str, Any]) -> tuple[int, Any]:
        body = dict(payload)
        if name == "smart-search":
            return await handle_search(
                body,
                backend=self._backend,
                embedder=self._embedder,
                threshold=self._threshold,
                match_count=self._match_count,
            )
        if name == "generate-subtasks":
            return await handle_generate_subtasks(body, llm=self._llm)
        if name == "embed-task":
            return await handle_embed_task(body, backend=self._backend, embedder=self._embedder)
        logger.info("local function not found: %s", name)
        return 404, {"error": f"Function not found: {name}"}

    async def aclose(self) -> None:
        return None
