# src/taskflow/tasks/task_store.py

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, Generic, TypeVar

from ..core.errors import BackendError, friendly_error_message
from ..core.ports import Identity, Row, TableBackend
from .task_models import (
    ROW_ERRORS,
    TASK_EDITABLE_FIELDS,
    MutationResult,
    Task,
    TaskDraft,
    clean_update,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")

NOT_AUTHENTICATED = "User not authenticated"


class RecordStore(Generic[R]):
    """
    In-memory list of rows owned by one identity, kept in sync with a backend table.

    Mutations are remote-confirmed: local state changes only after the backend
    returns the authoritative row. Completions that arrive out of order simply
    replace the record again, so the last resolved response wins.
    """

    table: str = ""
    label: str = "record"
    editable: frozenset[str] = frozenset()
    order_ascending: bool = False

    def __init__(
        self,
        backend: TableBackend,
        identity: Identity | None,
        factory: Callable[[Mapping[str, Any]], R],
    ) -> None:
        self._backend = backend
        self._identity = identity
        self._factory = factory
        self._records: list[R] = []
        self.error: str | None = None
        self.loading: bool = False

    # ---- scope ----

    @property
    def identity(self) -> Identity | None:
        return self._identity

    def _owner_filter(self) -> dict[str, Any]:
        if self._identity is None:
            raise BackendError(NOT_AUTHENTICATED, status=401)
        return {"user_id": self._identity.user_id}

    def _collection_fields(self) -> dict[str, Any]:
        return self._owner_filter()

    # ---- reads ----

    def list(self) -> list[R]:
        return list(self._records)

    def get(self, record_id: str) -> R | None:
        for r in self._records:
            if r.id == record_id:
                return r
        return None

    async def refresh(self) -> MutationResult[list[R]]:
        """Reload all rows for the current scope (newest-first for tasks)."""
        if self._identity is None:
            self._records = []
            return MutationResult(data=[])

        self.loading = True
        try:
            rows = await self._backend.select(
                self.table,
                eq=self._collection_fields(),
                order_by="created_at",
                ascending=self.order_ascending,
            )
            self._records = [self._factory(r) for r in (rows or [])]
            self.error = None
            logger.debug("%s refresh: %d rows", self.table, len(self._records))
            return MutationResult(data=self.list())
        except (BackendError, *ROW_ERRORS) as e:
            return self._fail(e, "load")
        finally:
            self.loading = False

    # ---- mutations ----

    async def _insert(self, row: dict[str, Any]) -> MutationResult[R]:
        if self._identity is None:
            return MutationResult(error=NOT_AUTHENTICATED)
        try:
            stored = await self._backend.insert(self.table, {**row, **self._collection_fields()})
            record = self._factory(stored)
        except (BackendError, *ROW_ERRORS) as e:
            return self._fail(e, "add")
        self._place_new(record)
        logger.info("%s added id=%s", self.label, record.id)
        return MutationResult(data=record)

    def _place_new(self, record: R) -> None:
        self._records.insert(0, record)

    async def update(self, record_id: str, fields: Mapping[str, Any]) -> MutationResult[R]:
        try:
            values = clean_update(fields, self.editable)
        except ValueError as e:
            return MutationResult(error=str(e))
        if self._identity is None:
            return MutationResult(error=NOT_AUTHENTICATED)

        try:
            stored = await self._backend.update(
                self.table, values, eq={"id": record_id, **self._owner_filter()}
            )
            record = self._factory(stored)
        except (BackendError, *ROW_ERRORS) as e:
            return self._fail(e, "update")

        self._replace(record)
        logger.info("%s updated id=%s fields=%s", self.label, record_id, sorted(values))
        return MutationResult(data=record)

    def _replace(self, record: R) -> None:
        self._records = [record if r.id == record.id else r for r in self._records]

    async def delete(self, record_id: str) -> MutationResult[str]:
        if self._identity is None:
            return MutationResult(error=NOT_AUTHENTICATED)
        try:
            await self._backend.delete(self.table, eq={"id": record_id, **self._owner_filter()})
        except BackendError as e:
            return self._fail(e, "delete")
        self._records = [r for r in self._records if r.id != record_id]
        logger.info("%s deleted id=%s", self.label, record_id)
        return MutationResult(data=record_id)

    async def toggle(self, record_id: str) -> MutationResult[R]:
        """Flip between done and pending."""
        current = self.get(record_id)
        if current is None:
            return MutationResult(error=f"{self.label.capitalize()} not found")
        return await self.update(record_id, {"status": current.status.toggled().value})

    def _fail(self, err: Exception, op: str) -> MutationResult[Any]:
        fallback = f"Failed to {op} {self.label}"
        if isinstance(err, BackendError):
            msg = friendly_error_message(err, fallback=fallback)
        else:
            logger.warning("%s %s: malformed row from backend: %r", self.label, op, err)
            msg = fallback
        self.error = msg
        logger.info("%s %s failed: %s", self.label, op, msg)
        return MutationResult(error=msg)


class TaskStore(RecordStore[Task]):
    """Tasks of the signed-in identity, newest first."""

    table = "tasks"
    label = "task"
    editable = TASK_EDITABLE_FIELDS
    order_ascending = False

    def __init__(self, backend: TableBackend, identity: Identity | None) -> None:
        super().__init__(backend, identity, Task.from_row)

    async def add(self, draft: TaskDraft) -> MutationResult[Task]:
        try:
            row: Row = draft.to_row()
        except ValueError as e:
            return MutationResult(error=str(e))
        return await self._insert(row)
