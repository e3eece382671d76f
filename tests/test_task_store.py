# tests/test_task_store.py

from __future__ import annotations

import asyncio

import pytest

from taskflow.core.errors import BackendError, NotConfiguredError, TransportError
from taskflow.tasks.subtask_store import SubtaskStore
from taskflow.tasks.task_models import Priority, TaskDraft, TaskStatus
from taskflow.tasks.task_store import NOT_AUTHENTICATED, TaskStore

from .fakes import GatedBackend


@pytest.mark.asyncio
async def test_add_prepends_backend_row(backend, identity) -> None:
    store = TaskStore(backend, identity)
    first = await store.add(TaskDraft(title="first", priority="medium"))
    second = await store.add(TaskDraft(title="  second  ", priority="high"))

    assert first.ok and second.ok
    assert [t.title for t in store.list()] == ["second", "first"]
    assert second.data.priority is Priority.HIGH
    assert second.data.status is TaskStatus.PENDING
    assert second.data.start_date
    assert backend.tables["tasks"][0]["user_id"] == identity.user_id


@pytest.mark.asyncio
async def test_add_failure_leaves_collection_unchanged(backend, identity) -> None:
    store = TaskStore(backend, identity)
    await store.add(TaskDraft(title="kept", priority="medium"))
    backend.fail["insert"] = BackendError("duplicate key value")

    result = await store.add(TaskDraft(title="lost", priority="medium"))

    assert not result.ok
    assert result.error == "duplicate key value"
    assert [t.title for t in store.list()] == ["kept"]


@pytest.mark.asyncio
async def test_add_without_title_is_rejected_locally(backend, identity) -> None:
    store = TaskStore(backend, identity)
    result = await store.add(TaskDraft(title="   ", priority="medium"))
    assert result.error == "title is required"
    assert backend.calls_for("insert") == []


@pytest.mark.asyncio
async def test_signed_out_store_refuses_mutations(backend) -> None:
    store = TaskStore(backend, None)
    assert (await store.add(TaskDraft(title="x", priority="medium"))).error == NOT_AUTHENTICATED
    assert (await store.delete("any")).error == NOT_AUTHENTICATED
    assert (await store.refresh()).data == []
    assert backend.calls == []


@pytest.mark.asyncio
async def test_refresh_loads_newest_first(backend, identity) -> None:
    writer = TaskStore(backend, identity)
    for title in ("a", "b", "c"):
        await writer.add(TaskDraft(title=title, priority="medium"))
    backend.tables["tasks"].append({"id": "other", "user_id": "someone-else", "title": "x", "created_at": "z"})

    store = TaskStore(backend, identity)
    result = await store.refresh()

    assert result.ok
    assert [t.title for t in store.list()] == ["c", "b", "a"]


@pytest.mark.asyncio
async def test_refresh_failure_keeps_previous_records(backend, identity) -> None:
    store = TaskStore(backend, identity)
    await store.add(TaskDraft(title="a", priority="medium"))
    backend.fail["select"] = TransportError("Backend unreachable: ConnectError")

    result = await store.refresh()

    assert result.error == "Failed to load task"
    assert store.error == "Failed to load task"
    assert [t.title for t in store.list()] == ["a"]


@pytest.mark.asyncio
async def test_update_replaces_record_with_backend_row(backend, identity) -> None:
    store = TaskStore(backend, identity)
    task = (await store.add(TaskDraft(title="draft", priority="medium"))).data

    result = await store.update(task.id, {"title": "final", "notes": "done by friday"})

    assert result.ok
    updated = store.get(task.id)
    assert updated.title == "final"
    assert updated.notes == "done by friday"
    assert updated.updated_at != task.updated_at


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields_without_backend_call(backend, identity) -> None:
    store = TaskStore(backend, identity)
    task = (await store.add(TaskDraft(title="x", priority="medium"))).data

    result = await store.update(task.id, {"user_id": "mallory"})

    assert result.error == "field cannot be updated: user_id"
    assert backend.calls_for("update") == []


@pytest.mark.asyncio
async def test_update_failure_keeps_local_record(backend, identity) -> None:
    store = TaskStore(backend, identity)
    task = (await store.add(TaskDraft(title="x", priority="medium"))).data
    backend.fail["update"] = BackendError("permission denied")

    result = await store.update(task.id, {"title": "y"})

    assert result.error == "permission denied"
    assert store.get(task.id).title == "x"


@pytest.mark.asyncio
async def test_delete_removes_only_that_record(backend, identity) -> None:
    store = TaskStore(backend, identity)
    a = (await store.add(TaskDraft(title="a", priority="medium"))).data
    b = (await store.add(TaskDraft(title="b", priority="medium"))).data

    result = await store.delete(a.id)

    assert result.data == a.id
    assert [t.id for t in store.list()] == [b.id]


@pytest.mark.asyncio
async def test_toggle_twice_restores_status(backend, identity) -> None:
    store = TaskStore(backend, identity)
    task = (await store.add(TaskDraft(title="x", priority="medium"))).data

    await store.toggle(task.id)
    assert store.get(task.id).status is TaskStatus.DONE
    await store.toggle(task.id)
    assert store.get(task.id).status is TaskStatus.PENDING


@pytest.mark.asyncio
async def test_toggle_in_progress_completes(backend, identity) -> None:
    store = TaskStore(backend, identity)
    task = (await store.add(TaskDraft(title="x", priority="medium", status="in-progress"))).data

    await store.toggle(task.id)
    assert store.get(task.id).status is TaskStatus.DONE


@pytest.mark.asyncio
async def test_toggle_unknown_task(backend, identity) -> None:
    store = TaskStore(backend, identity)
    assert (await store.toggle("missing")).error == "Task not found"


@pytest.mark.asyncio
async def test_not_configured_backend_message(backend, identity) -> None:
    backend.fail["insert"] = NotConfiguredError()
    store = TaskStore(backend, identity)
    assert (await store.add(TaskDraft(title="x", priority="medium"))).error == "Backend not configured"


@pytest.mark.asyncio
async def test_subtasks_are_scoped_to_parent_and_appended(backend, identity) -> None:
    first = SubtaskStore(backend, identity, "task-1")
    other = SubtaskStore(backend, identity, "task-2")

    await first.add("step one")
    await first.add("step two")
    await other.add("elsewhere")

    assert [s.title for s in first.list()] == ["step one", "step two"]
    assert backend.tables["subtasks"][0]["parent_task_id"] == "task-1"

    reloaded = SubtaskStore(backend, identity, "task-1")
    await reloaded.refresh()
    assert [s.title for s in reloaded.list()] == ["step one", "step two"]


@pytest.mark.asyncio
async def test_subtask_toggle_and_empty_parent(backend, identity) -> None:
    store = SubtaskStore(backend, identity, "task-1")
    sub = (await store.add("write tests")).data

    await store.toggle(sub.id)
    assert store.get(sub.id).status is TaskStatus.DONE

    orphan = SubtaskStore(backend, identity, "")
    assert (await orphan.refresh()).data == []
    assert backend.calls_for("select") == []


def test_draft_requires_priority() -> None:
    with pytest.raises(TypeError):
        TaskDraft(title="x")  # type: ignore[call-arg]


@pytest.mark.asyncio
async def test_out_of_order_updates_keep_last_response(identity) -> None:
    backend = GatedBackend()
    store = TaskStore(backend, identity)
    task = (await store.add(TaskDraft(title="draft", priority="medium"))).data

    first = asyncio.create_task(store.update(task.id, {"title": "first"}))
    second = asyncio.create_task(store.update(task.id, {"title": "second"}))

    async def release_second_then_first() -> None:
        while len(backend.gates) < 2:
            await asyncio.sleep(0)
        backend.gates[1].set()
        await second
        backend.gates[0].set()

    r1, r2, _ = await asyncio.gather(first, second, release_second_then_first())

    assert r1.ok and r2.ok
    # The first request's response resolved last, so its row is what the store keeps.
    assert store.get(task.id).title == "first"
    assert len(store.list()) == 1


@pytest.mark.asyncio
async def test_refresh_with_malformed_row_reports_error(backend, identity) -> None:
    store = TaskStore(backend, identity)
    await store.add(TaskDraft(title="kept", priority="low"))
    backend.tables["tasks"].append(
        {"id": "bad", "user_id": identity.user_id, "title": "x", "priority": "urgent", "created_at": "z"}
    )

    result = await store.refresh()

    assert result.error == "Failed to load task"
    assert [t.title for t in store.list()] == ["kept"]


@pytest.mark.asyncio
async def test_update_with_malformed_response_keeps_record(backend, identity) -> None:
    store = TaskStore(backend, identity)
    task = (await store.add(TaskDraft(title="x", priority="medium"))).data
    backend.tables["tasks"][0]["priority"] = "urgent"

    result = await store.update(task.id, {"title": "y"})

    assert result.error == "Failed to update task"
    assert store.get(task.id).title == "x"


def test_owner_filter_requires_identity(backend) -> None:
    with pytest.raises(BackendError, match=NOT_AUTHENTICATED):
        TaskStore(backend, None)._owner_filter()
