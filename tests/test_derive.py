# tests/test_derive.py

from __future__ import annotations

import pytest

from taskflow.tasks.derive import (
    count_by_priority,
    count_by_status,
    derive_visible,
    filter_tasks,
    sort_tasks,
    task_counts,
)
from taskflow.tasks.task_models import ALL, Priority, TaskStatus

from .conftest import make_task


def test_sort_orders_by_status_then_priority() -> None:
    t1 = make_task("1", priority=Priority.HIGH, status=TaskStatus.DONE)
    t2 = make_task("2", priority=Priority.LOW, status=TaskStatus.IN_PROGRESS)
    t3 = make_task("3", priority=Priority.HIGH, status=TaskStatus.PENDING)

    assert [t.id for t in sort_tasks([t1, t2, t3])] == ["2", "3", "1"]


def test_sort_keeps_input_order_for_ties() -> None:
    tasks = [make_task(str(i), priority=Priority.LOW) for i in range(5)]
    assert [t.id for t in sort_tasks(tasks)] == ["0", "1", "2", "3", "4"]


def test_priority_within_same_status() -> None:
    low = make_task("low", priority=Priority.LOW)
    high = make_task("high", priority=Priority.HIGH)
    medium = make_task("medium", priority=Priority.MEDIUM)
    assert [t.id for t in sort_tasks([low, high, medium])] == ["high", "medium", "low"]


def test_filter_all_all_is_identity() -> None:
    tasks = [
        make_task("a", priority=Priority.HIGH),
        make_task("b", status=TaskStatus.DONE),
        make_task("c", priority=Priority.LOW, status=TaskStatus.IN_PROGRESS),
    ]
    assert filter_tasks(tasks, ALL, ALL) == tasks


def test_filter_is_idempotent_and_conjunctive() -> None:
    tasks = [
        make_task("a", priority=Priority.HIGH, status=TaskStatus.DONE),
        make_task("b", priority=Priority.HIGH, status=TaskStatus.PENDING),
        make_task("c", priority=Priority.LOW, status=TaskStatus.DONE),
    ]
    once = filter_tasks(tasks, "high", "done")
    assert [t.id for t in once] == ["a"]
    assert filter_tasks(once, "high", "done") == once


def test_derive_visible_combines_filter_and_sort() -> None:
    tasks = [
        make_task("a", priority=Priority.LOW, status=TaskStatus.PENDING),
        make_task("b", priority=Priority.HIGH, status=TaskStatus.DONE),
        make_task("c", priority=Priority.HIGH, status=TaskStatus.IN_PROGRESS),
    ]
    assert [t.id for t in derive_visible(tasks, "high")] == ["c", "b"]
    assert [t.id for t in derive_visible(tasks)] == ["c", "a", "b"]


def test_bad_filter_value_raises() -> None:
    with pytest.raises(ValueError):
        filter_tasks([], "urgent", ALL)


def test_counts_ignore_the_other_filter() -> None:
    tasks = [
        make_task("a", priority=Priority.HIGH, status=TaskStatus.DONE),
        make_task("b", priority=Priority.HIGH, status=TaskStatus.PENDING),
        make_task("c", priority=Priority.LOW, status=TaskStatus.DONE),
    ]
    assert count_by_priority(tasks, "high") == 2
    assert count_by_priority(tasks, ALL) == 3
    assert count_by_status(tasks, "done") == 2
    assert count_by_status(tasks, "in-progress") == 0

    counts = task_counts(tasks)
    assert counts.by_priority == {"all": 3, "high": 2, "medium": 0, "low": 1}
    assert counts.by_status == {"all": 3, "pending": 1, "in-progress": 0, "done": 2}
