# src/taskflow/ai/search.py

from __future__ import annotations

import logging
from typing import Any

from ..core.errors import BackendError, friendly_error_message
from ..core.ports import FunctionsTransport, Identity
from ..functions.search import task_text
from ..tasks.task_models import ROW_ERRORS, SearchResult, Task

logger = logging.getLogger(__name__)

SEARCH_FUNCTION = "smart-search"
SEARCH_FAILED = "Search failed"
INDEX_FUNCTION = "embed-task"
INDEX_FAILED = "Failed to index task"


def error_from_payload(status: int, body: Any, fallback: str) -> str | None:
    """Return the error string for a failed edge-function response, or None if it succeeded."""
    payload_error = body.get("error") if isinstance(body, dict) else None
    if 200 <= status < 300 and not payload_error:
        return None
    if isinstance(payload_error, str) and payload_error.strip():
        return payload_error.strip()
    return fallback


class SmartSearchClient:
    """
    Semantic task search through the smart-search edge function.

    Each call replaces the previous results; nothing is merged across calls.
    """

    def __init__(self, transport: FunctionsTransport, identity: Identity | None) -> None:
        self._transport = transport
        self._identity = identity
        self.results: list[SearchResult] = []
        self.error: str | None = None
        self.loading: bool = False

    async def search(self, query: str) -> list[SearchResult] | None:
        """
        Returns the ranked results, [] for a blank query, or None on failure
        (the message is in .error).
        """
        text = (query or "").strip()
        if not text or self._identity is None:
            self.results = []
            return []

        self.loading = True
        self.error = None
        try:
            status, body = await self._transport.invoke(
                SEARCH_FUNCTION, {"query": text, "userId": self._identity.user_id}
            )
            err = error_from_payload(status, body, SEARCH_FAILED)
            if err is not None:
                raise BackendError(err, status=status)

            rows = body.get("results") if isinstance(body, dict) else None
            if rows is not None and not isinstance(rows, list):
                raise BackendError(SEARCH_FAILED, status=status)
            # Ranking is the function's job; keep the order as received.
            self.results = [SearchResult.from_row(r) for r in (rows or [])]
            logger.info("search q=%r -> %d results", text, len(self.results))
            return list(self.results)
        except (BackendError, *ROW_ERRORS) as e:
            if isinstance(e, BackendError):
                self.error = friendly_error_message(e, fallback=SEARCH_FAILED)
            else:
                logger.warning("search q=%r: malformed result row: %r", text, e)
                self.error = SEARCH_FAILED
            self.results = []
            logger.info("search q=%r failed: %s", text, self.error)
            return None
        finally:
            self.loading = False

    def clear(self) -> None:
        self.results = []
        self.error = None


async def index_task(transport: FunctionsTransport, task: Task) -> str | None:
    """Store the task's embedding so search can find it. Returns an error string or None."""
    try:
        status, body = await transport.invoke(
            INDEX_FUNCTION,
            {"taskId": task.id, "userId": task.user_id, "text": task_text(task.title, task.notes)},
        )
    except BackendError as e:
        return friendly_error_message(e, fallback=INDEX_FAILED)
    return error_from_payload(status, body, INDEX_FAILED)
