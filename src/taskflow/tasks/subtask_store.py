# src/taskflow/tasks/subtask_store.py

from __future__ import annotations

from typing import Any

from ..core.ports import Identity, TableBackend
from .task_models import SUBTASK_EDITABLE_FIELDS, MutationResult, Subtask, SubtaskDraft
from .task_store import RecordStore


class SubtaskStore(RecordStore[Subtask]):
    """
    Subtasks of one parent task, oldest first.

    New subtasks are appended. Deleting the parent does not cascade here.
    """

    table = "subtasks"
    label = "subtask"
    editable = SUBTASK_EDITABLE_FIELDS
    order_ascending = True

    def __init__(self, backend: TableBackend, identity: Identity | None, parent_task_id: str) -> None:
        super().__init__(backend, identity, Subtask.from_row)
        self.parent_task_id = parent_task_id

    def _collection_fields(self) -> dict[str, Any]:
        return {**self._owner_filter(), "parent_task_id": self.parent_task_id}

    def _place_new(self, record: Subtask) -> None:
        self._records.append(record)

    async def refresh(self) -> MutationResult[list[Subtask]]:
        if not self.parent_task_id:
            self._records = []
            return MutationResult(data=[])
        return await super().refresh()

    async def add(self, draft: SubtaskDraft | str) -> MutationResult[Subtask]:
        if isinstance(draft, str):
            draft = SubtaskDraft(title=draft)
        try:
            row = draft.to_row()
        except ValueError as e:
            return MutationResult(error=str(e))
        return await self._insert(row)
