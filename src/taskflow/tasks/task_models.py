# src/taskflow/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any, Generic, Mapping, TypeVar

ALL = "all"

# What from_row raises for a non-mapping row, a missing key or a value outside the enums.
ROW_ERRORS = (AttributeError, KeyError, TypeError, ValueError)

T = TypeVar("T")


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, raw: Any) -> Priority:
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise ValueError(f"invalid priority: {raw!r}") from None


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Completion toggles between DONE and PENDING; IN_PROGRESS is only set explicitly.
    """

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"

    @classmethod
    def parse(cls, raw: Any) -> TaskStatus:
        s = str(raw).strip().lower().replace("_", "-")
        try:
            return cls(s)
        except ValueError:
            raise ValueError(f"invalid status: {raw!r}") from None

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls.parse(raw)
        except ValueError:
            return cls.PENDING

    def toggled(self) -> TaskStatus:
        return TaskStatus.PENDING if self is TaskStatus.DONE else TaskStatus.DONE


@dataclass(slots=True)
class Task:
    id: str
    user_id: str
    title: str
    priority: Priority
    status: TaskStatus
    start_date: str
    notes: str
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Task:
        return cls(
            id=str(row["id"]),
            user_id=str(row.get("user_id") or ""),
            title=str(row.get("title") or ""),
            priority=Priority.parse(row.get("priority") or Priority.MEDIUM),
            status=TaskStatus.from_db(row.get("status")),
            start_date=str(row.get("start_date") or ""),
            notes=str(row.get("notes") or ""),
            created_at=str(row.get("created_at") or ""),
            updated_at=str(row.get("updated_at") or ""),
        )


@dataclass(slots=True)
class Subtask:
    id: str
    parent_task_id: str
    user_id: str
    title: str
    status: TaskStatus
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Subtask:
        return cls(
            id=str(row["id"]),
            parent_task_id=str(row.get("parent_task_id") or ""),
            user_id=str(row.get("user_id") or ""),
            title=str(row.get("title") or ""),
            status=TaskStatus.from_db(row.get("status")),
            created_at=str(row.get("created_at") or ""),
            updated_at=str(row.get("updated_at") or ""),
        )


@dataclass(slots=True)
class SearchResult:
    """A task as returned by semantic search. Never persisted."""

    id: str
    title: str
    priority: Priority
    status: TaskStatus
    start_date: str
    notes: str
    created_at: str
    similarity: float

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> SearchResult:
        similarity = float(row.get("similarity") or 0.0)
        return cls(
            id=str(row["id"]),
            title=str(row.get("title") or ""),
            priority=Priority.parse(row.get("priority") or Priority.MEDIUM),
            status=TaskStatus.from_db(row.get("status")),
            start_date=str(row.get("start_date") or ""),
            notes=str(row.get("notes") or ""),
            created_at=str(row.get("created_at") or ""),
            similarity=max(0.0, min(1.0, similarity)),
        )

    @property
    def match_percent(self) -> int:
        return round(self.similarity * 100)


@dataclass(slots=True)
class TaskDraft:
    """User input for a new task, before the backend assigns id/timestamps."""

    title: str
    priority: Priority | str
    status: TaskStatus | str | None = None
    start_date: str | None = None
    notes: str = ""

    def to_row(self, *, today: date | None = None) -> dict[str, Any]:
        title = (self.title or "").strip()
        if not title:
            raise ValueError("title is required")
        status = TaskStatus.PENDING if self.status is None else TaskStatus.parse(self.status)
        start = self.start_date or (today or date.today()).isoformat()
        return {
            "title": title,
            "priority": Priority.parse(self.priority).value,
            "status": status.value,
            "start_date": start,
            "notes": self.notes or "",
        }


@dataclass(slots=True)
class SubtaskDraft:
    title: str
    status: TaskStatus | str | None = None

    def to_row(self) -> dict[str, Any]:
        title = (self.title or "").strip()
        if not title:
            raise ValueError("title is required")
        status = TaskStatus.PENDING if self.status is None else TaskStatus.parse(self.status)
        return {"title": title, "status": status.value}


TASK_EDITABLE_FIELDS = frozenset({"title", "priority", "status", "start_date", "notes"})
SUBTASK_EDITABLE_FIELDS = frozenset({"title", "status"})


def clean_update(fields: Mapping[str, Any], allowed: frozenset[str]) -> dict[str, Any]:
    """Validate a partial field set. Raises ValueError on unknown fields or bad values."""
    out: dict[str, Any] = {}
    for key, value in fields.items():
        if key not in allowed:
            raise ValueError(f"field cannot be updated: {key}")
        if key == "title":
            value = str(value or "").strip()
            if not value:
                raise ValueError("title is required")
        elif key == "priority":
            value = Priority.parse(value).value
        elif key == "status":
            value = TaskStatus.parse(value).value
        elif key in ("start_date", "notes"):
            value = "" if value is None else str(value)
        out[key] = value
    if not out:
        raise ValueError("nothing to update")
    return out


@dataclass(slots=True)
class MutationResult(Generic[T]):
    """Outcome of a store operation: the authoritative record or an error string."""

    data: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class TaskCounts:
    by_priority: dict[str, int] = field(default_factory=dict)
    by_status: dict[str, int] = field(default_factory=dict)
