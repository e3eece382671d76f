# src/taskflow/tasks/derive.py

"""
Task list derivation: filter -> sort, plus filter-button counts.

Everything here is a pure function of (tasks, priority filter, status filter).
Callers recompute on every change of the collection or either filter.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .task_models import ALL, Priority, Task, TaskCounts, TaskStatus

STATUS_RANK: dict[TaskStatus, int] = {
    TaskStatus.IN_PROGRESS: 4,
    TaskStatus.PENDING: 3,
    TaskStatus.DONE: 1,
}

PRIORITY_RANK: dict[Priority, int] = {
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}

PRIORITY_FILTERS: tuple[str, ...] = (ALL, *(p.value for p in Priority))
STATUS_FILTERS: tuple[str, ...] = (ALL, *(s.value for s in TaskStatus))


def normalize_priority_filter(raw: str | None) -> str:
    if raw is None or str(raw).strip().lower() == ALL:
        return ALL
    return Priority.parse(raw).value


def normalize_status_filter(raw: str | None) -> str:
    if raw is None or str(raw).strip().lower() == ALL:
        return ALL
    return TaskStatus.parse(raw).value


def matches(task: Task, priority_filter: str = ALL, status_filter: str = ALL) -> bool:
    return (priority_filter == ALL or task.priority == priority_filter) and (
        status_filter == ALL or task.status == status_filter
    )


def filter_tasks(tasks: Iterable[Task], priority_filter: str = ALL, status_filter: str = ALL) -> list[Task]:
    pf = normalize_priority_filter(priority_filter)
    sf = normalize_status_filter(status_filter)
    return [t for t in tasks if matches(t, pf, sf)]


def sort_key(task: Task) -> tuple[int, int]:
    return (-STATUS_RANK[task.status], -PRIORITY_RANK[task.priority])


def sort_tasks(tasks: Iterable[Task]) -> list[Task]:
    # sorted() is stable: full ties keep their input order.
    return sorted(tasks, key=sort_key)


def derive_visible(tasks: Iterable[Task], priority_filter: str = ALL, status_filter: str = ALL) -> list[Task]:
    """The ordered list shown to the user."""
    return sort_tasks(filter_tasks(tasks, priority_filter, status_filter))


def count_by_priority(tasks: Sequence[Task], value: str = ALL) -> int:
    """Count over the unfiltered collection, independent of the active status filter."""
    pf = normalize_priority_filter(value)
    return sum(1 for t in tasks if matches(t, priority_filter=pf))


def count_by_status(tasks: Sequence[Task], value: str = ALL) -> int:
    """Count over the unfiltered collection, independent of the active priority filter."""
    sf = normalize_status_filter(value)
    return sum(1 for t in tasks if matches(t, status_filter=sf))


def task_counts(tasks: Sequence[Task]) -> TaskCounts:
    return TaskCounts(
        by_priority={v: count_by_priority(tasks, v) for v in PRIORITY_FILTERS},
        by_status={v: count_by_status(tasks, v) for v in STATUS_FILTERS},
    )
