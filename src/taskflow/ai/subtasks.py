# src/taskflow/ai/subtasks.py

from __future__ import annotations

import logging

from ..core.errors import BackendError, friendly_error_message
from ..core.ports import FunctionsTransport
from ..tasks.subtask_store import SubtaskStore
from ..tasks.task_models import MutationResult, Subtask
from .search import error_from_payload

logger = logging.getLogger(__name__)

GENERATE_FUNCTION = "generate-subtasks"
GENERATE_FAILED = "Failed to generate subtasks"
TITLE_REQUIRED = "Task title is required"


class SubtaskGenerator:
    """Asks the generate-subtasks edge function for subtask titles."""

    def __init__(self, transport: FunctionsTransport) -> None:
        self._transport = transport
        self.error: str | None = None
        self.loading: bool = False

    async def generate(self, task_title: str) -> list[str] | None:
        """
        Returns suggestions (possibly empty) or None on failure.

        A blank title fails immediately without contacting the function.
        """
        if not (task_title or "").strip():
            self.error = TITLE_REQUIRED
            return None

        self.loading = True
        self.error = None
        try:
            status, body = await self._transport.invoke(GENERATE_FUNCTION, {"taskTitle": task_title})
            err = error_from_payload(status, body, GENERATE_FAILED)
            if err is not None:
                raise BackendError(err, status=status)
            raw = body.get("subtasks") if isinstance(body, dict) else None
            if raw is not None and not isinstance(raw, list):
                raise BackendError(GENERATE_FAILED, status=status)
            suggestions = [str(s).strip() for s in (raw or []) if str(s).strip()]
            logger.info("generated %d subtask suggestions for %r", len(suggestions), task_title)
            return suggestions
        except BackendError as e:
            self.error = friendly_error_message(e, fallback=GENERATE_FAILED)
            logger.info("subtask generation failed: %s", self.error)
            return None
        finally:
            self.loading = False


class SuggestionList:
    """
    Transient suggestions for one parent task.

    Accepting a suggestion persists it through the SubtaskStore and, only on
    success, removes it from the list.
    """

    def __init__(self, store: SubtaskStore, suggestions: list[str] | None = None) -> None:
        self._store = store
        self.items: list[str] = list(suggestions or [])

    def replace(self, suggestions: list[str]) -> None:
        self.items = list(suggestions)

    async def accept(self, suggestion: str) -> MutationResult[Subtask]:
        result = await self._store.add(suggestion)
        if result.ok:
            self.items = [s for s in self.items if s != suggestion]
        return result

    def dismiss(self, suggestion: str) -> None:
        self.items = [s for s in self.items if s != suggestion]
