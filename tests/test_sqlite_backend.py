# tests/test_sqlite_backend.py

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from taskflow.backend.sqlite import SqliteBackend, cosine_similarity
from taskflow.core.errors import BackendError
from taskflow.tasks.task_models import TaskDraft
from taskflow.tasks.task_store import TaskStore


@pytest.fixture()
def db(tmp_path: Path) -> SqliteBackend:
    return SqliteBackend(tmp_path / "taskflow.sqlite3")


@pytest.mark.asyncio
async def test_insert_fills_server_defaults(db: SqliteBackend) -> None:
    row = await db.insert("tasks", {"user_id": "u1", "title": "Write report"})

    assert row["id"]
    assert row["status"] == "pending"
    assert row["priority"] == "medium"
    assert row["notes"] == ""
    assert row["start_date"]
    assert row["created_at"] == row["updated_at"]


@pytest.mark.asyncio
async def test_select_filters_and_orders(db: SqliteBackend) -> None:
    for title in ("a", "b", "c"):
        await db.insert("tasks", {"user_id": "u1", "title": title})
    await db.insert("tasks", {"user_id": "u2", "title": "other"})

    rows = await db.select("tasks", eq={"user_id": "u1"}, order_by="created_at", ascending=False)
    assert [r["title"] for r in rows] == ["c", "b", "a"]

    assert await db.select("tasks", eq={"user_id": "nobody"}, single=True) is None


@pytest.mark.asyncio
async def test_update_missing_row_raises(db: SqliteBackend) -> None:
    with pytest.raises(BackendError) as exc:
        await db.update("tasks", {"title": "x"}, eq={"id": "missing"})
    assert exc.value.status == 404


@pytest.mark.asyncio
async def test_database_errors_become_backend_errors(db: SqliteBackend, monkeypatch, identity) -> None:
    def locked() -> sqlite3.Connection:
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(db, "_get_conn", locked)

    with pytest.raises(BackendError, match="database is locked") as exc:
        await db.select("tasks")
    assert exc.value.status == 500

    result = await TaskStore(db, identity).refresh()
    assert result.error == "Local database error: database is locked"


@pytest.mark.asyncio
async def test_unknown_column_is_rejected(db: SqliteBackend) -> None:
    with pytest.raises(BackendError):
        await db.insert("tasks", {"user_id": "u1", "title": "x", "color": "red"})


@pytest.mark.asyncio
async def test_preference_flags_round_trip_as_bools(db: SqliteBackend) -> None:
    await db.insert("user_preferences", {"user_id": "u1"})
    row = await db.upsert(
        "user_preferences",
        {"user_id": "u1", "theme": "classic-dark", "feature_previews": True},
        on_conflict="user_id",
    )

    assert row["theme"] == "classic-dark"
    assert row["feature_previews"] is True
    assert row["command_menu_enabled"] is True
    assert len(await db.select("user_preferences")) == 1


@pytest.mark.asyncio
async def test_similarity_rpc_ranks_and_thresholds(db: SqliteBackend) -> None:
    near = await db.insert("tasks", {"user_id": "u1", "title": "near"})
    far = await db.insert("tasks", {"user_id": "u1", "title": "far"})
    mid = await db.insert("tasks", {"user_id": "u1", "title": "mid"})
    foreign = await db.insert("tasks", {"user_id": "u2", "title": "foreign"})

    for task, vec in ((near, [1.0, 0.0]), (far, [0.0, 1.0]), (mid, [0.7, 0.7]), (foreign, [1.0, 0.0])):
        await db.upsert(
            "task_embeddings",
            {"task_id": task["id"], "user_id": task["user_id"], "embedding": vec},
            on_conflict="task_id",
        )

    rows = await db.rpc(
        "search_tasks_by_similarity",
        {"query_embedding": [1.0, 0.0], "user_id": "u1", "match_threshold": 0.3, "match_count": 5},
    )

    assert [r["title"] for r in rows] == ["near", "mid"]
    assert rows[0]["similarity"] == pytest.approx(1.0)
    assert "embedding" not in rows[0]


@pytest.mark.asyncio
async def test_deleting_task_drops_its_embedding(db: SqliteBackend) -> None:
    task = await db.insert("tasks", {"user_id": "u1", "title": "x"})
    await db.upsert("task_embeddings", {"task_id": task["id"], "user_id": "u1", "embedding": [1.0]}, on_conflict="task_id")

    await db.delete("tasks", eq={"id": task["id"], "user_id": "u1"})

    assert await db.select("task_embeddings") == []


def test_schema_migration_adds_missing_columns(tmp_path: Path) -> None:
    path = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE tasks (id TEXT PRIMARY KEY, user_id TEXT NOT NULL, title TEXT NOT NULL)")
    conn.commit()
    conn.close()

    SqliteBackend(path)

    conn = sqlite3.connect(path)
    cols = {row[1] for row in conn.execute("PRAGMA table_info(tasks)")}
    conn.close()
    assert {"notes", "start_date", "created_at"} <= cols


def test_cosine_similarity_edges() -> None:
    assert cosine_similarity([], [1.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_task_store_over_sqlite(db: SqliteBackend, identity) -> None:
    store = TaskStore(db, identity)
    first = (await store.add(TaskDraft(title="first", priority="medium"))).data
    await store.add(TaskDraft(title="second", priority="high"))

    await store.toggle(first.id)

    reloaded = TaskStore(db, identity)
    await reloaded.refresh()
    assert [t.title for t in reloaded.list()] == ["second", "first"]
    assert reloaded.get(first.id).status == "done"
