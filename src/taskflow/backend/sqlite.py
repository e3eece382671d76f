# src/taskflow/backend/sqlite.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import math
import sqlite3
import uuid
from collections.abc import Mapping, Sequence
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from ..core.errors import BackendError
from ..core.ports import Identity, Row

logger = logging.getLogger(__name__)

# table -> {column: declaration}; every column that callers may read or write.
_SCHEMA: dict[str, dict[str, str]] = {
    "tasks": {
        "id": "TEXT PRIMARY KEY",
        "user_id": "TEXT NOT NULL",
        "title": "TEXT NOT NULL",
        "priority": "TEXT NOT NULL DEFAULT 'medium'",
        "status": "TEXT NOT NULL DEFAULT 'pending'",
        "start_date": "TEXT NOT NULL DEFAULT ''",
        "notes": "TEXT NOT NULL DEFAULT ''",
        "created_at": "TEXT NOT NULL",
        "updated_at": "TEXT NOT NULL",
    },
    "subtasks": {
        "id": "TEXT PRIMARY KEY",
        "parent_task_id": "TEXT NOT NULL",
        "user_id": "TEXT NOT NULL",
        "title": "TEXT NOT NULL",
        "status": "TEXT NOT NULL DEFAULT 'pending'",
        "created_at": "TEXT NOT NULL",
        "updated_at": "TEXT NOT NULL",
    },
    "user_preferences": {
        "id": "TEXT PRIMARY KEY",
        "user_id": "TEXT NOT NULL UNIQUE",
        "theme": "TEXT NOT NULL DEFAULT 'light'",
        "feature_previews": "INTEGER NOT NULL DEFAULT 0",
        "command_menu_enabled": "INTEGER NOT NULL DEFAULT 1",
        "created_at": "TEXT NOT NULL",
        "updated_at": "TEXT NOT NULL",
    },
    "task_embeddings": {
        "id": "TEXT PRIMARY KEY",
        "task_id": "TEXT NOT NULL UNIQUE",
        "user_id": "TEXT NOT NULL",
        "embedding": "TEXT NOT NULL DEFAULT '[]'",
        "created_at": "TEXT NOT NULL",
        "updated_at": "TEXT NOT NULL",
    },
}

_BOOL_COLUMNS = {"feature_previews", "command_menu_enabled"}


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    if na == 0.0 or nb == 0.0:
        return 0.0
    return dot / (na * nb)


def parse_embedding(raw: Any) -> list[float]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, list):
        return []
    try:
        return [float(x) for x in raw]
    except (TypeError, ValueError):
        return []


class SqliteBackend:
    """
    Local single-file TableBackend for offline use and development.

    Mirrors what the hosted backend does for the client:
    - server-assigned id / created_at / updated_at
    - column defaults (status=pending, notes='', start_date=today)
    - the search_tasks_by_similarity RPC over stored task embeddings

    The schema is migration-safe: create table if missing, then add any missing
    columns found via PRAGMA table_info. Each call opens its own connection.
    """

    def __init__(self, db_path: str | Path = "taskflow.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("SqliteBackend ready db=%s", self._db_path)

    async def aclose(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return None

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            for table, columns in _SCHEMA.items():
                decl = ", ".join(f"{name} {d}" for name, d in columns.items())
                cur.execute(f"CREATE TABLE IF NOT EXISTS {table} ({decl})")

                cur.execute(f"PRAGMA table_info({table})")
                existing = {row["name"] for row in cur.fetchall()}
                for name, d in columns.items():
                    if name in existing:
                        continue
                    # ALTER TABLE cannot add UNIQUE/PRIMARY KEY columns.
                    safe = d.replace(" UNIQUE", "").replace(" PRIMARY KEY", "")
                    if "NOT NULL" in safe and "DEFAULT" not in safe:
                        safe += " DEFAULT ''"
                    cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {safe}")
                    logger.info("SqliteBackend migration: added column %s.%s", table, name)

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_user ON tasks(user_id, created_at)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_subtasks_parent ON subtasks(parent_task_id, user_id)"
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _columns(table: str) -> dict[str, str]:
        cols = _SCHEMA.get(table)
        if cols is None:
            raise BackendError(f"Unknown table: {table}", status=404)
        return cols

    def _check_columns(self, table: str, names: Sequence[str]) -> None:
        cols = self._columns(table)
        unknown = [n for n in names if n not in cols]
        if unknown:
            raise BackendError(f"Unknown column(s) for {table}: {', '.join(unknown)}", status=400)

    @staticmethod
    def _to_db(name: str, value: Any) -> Any:
        if name in _BOOL_COLUMNS:
            return 1 if value else 0
        if name == "embedding" and not isinstance(value, str):
            return json.dumps(list(value))
        return value

    @staticmethod
    def _from_db(row: sqlite3.Row) -> Row:
        out = dict(row)
        for name in _BOOL_COLUMNS & out.keys():
            out[name] = bool(out[name])
        return out

    def _where(self, table: str, eq: Mapping[str, Any] | None) -> tuple[str, list[Any]]:
        if not eq:
            return "", []
        self._check_columns(table, list(eq))
        parts: list[str] = []
        params: list[Any] = []
        for name, value in eq.items():
            if value is None:
                parts.append(f"{name} IS NULL")
            else:
                parts.append(f"{name} = ?")
                params.append(self._to_db(name, value))
        return " WHERE " + " AND ".join(parts), params

    def _defaults(self, table: str) -> dict[str, Any]:
        now = _now_iso()
        base: dict[str, Any] = {"id": str(uuid.uuid4()), "created_at": now, "updated_at": now}
        if table == "tasks":
            base.update(status="pending", notes="", priority="medium", start_date=date.today().isoformat())
        elif table == "subtasks":
            base.update(status="pending")
        elif table == "user_preferences":
            base.update(theme="light", feature_previews=False, command_menu_enabled=True)
        return base

    # ---- sync implementations (run in a worker thread) ----

    def _select_sync(
        self,
        table: str,
        eq: Mapping[str, Any] | None,
        order_by: str | None,
        ascending: bool,
        single: bool,
    ) -> list[Row] | Row | None:
        self._columns(table)
        where, params = self._where(table, eq)
        sql = f"SELECT * FROM {table}{where}"
        if order_by:
            self._check_columns(table, [order_by])
            direction = "ASC" if ascending else "DESC"
            sql += f" ORDER BY {order_by} {direction}, rowid {direction}"
        if single:
            sql += " LIMIT 1"

        conn = self._get_conn()
        try:
            rows = [self._from_db(r) for r in conn.execute(sql, params).fetchall()]
        finally:
            conn.close()
        if single:
            return rows[0] if rows else None
        return rows

    def _insert_sync(self, table: str, row: Mapping[str, Any]) -> Row:
        values = {**self._defaults(table), **{k: v for k, v in row.items() if v is not None}}
        self._check_columns(table, list(values))
        names = list(values)
        placeholders = ", ".join("?" for _ in names)
        conn = self._get_conn()
        try:
            conn.execute(
                f"INSERT INTO {table} ({', '.join(names)}) VALUES ({placeholders})",
                [self._to_db(n, values[n]) for n in names],
            )
            conn.commit()
            stored = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (values["id"],)).fetchone()
        except sqlite3.IntegrityError as e:
            raise BackendError(f"Constraint violation on {table}: {e}", status=409) from e
        finally:
            conn.close()
        logger.debug("insert %s id=%s", table, values["id"])
        return self._from_db(stored)

    def _update_sync(self, table: str, values: Mapping[str, Any], eq: Mapping[str, Any]) -> Row:
        if not values:
            raise BackendError("Nothing to update", status=400)
        self._check_columns(table, list(values))
        changes = {**values, "updated_at": _now_iso()}
        set_sql = ", ".join(f"{n} = ?" for n in changes)
        where, where_params = self._where(table, eq)
        conn = self._get_conn()
        try:
            ids = [r["id"] for r in conn.execute(f"SELECT id FROM {table}{where}", where_params)]
            if not ids:
                raise BackendError("Record not found", status=404)
            conn.execute(
                f"UPDATE {table} SET {set_sql}{where}",
                [self._to_db(n, v) for n, v in changes.items()] + where_params,
            )
            conn.commit()
            stored = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (ids[0],)).fetchone()
        finally:
            conn.close()
        return self._from_db(stored)

    def _delete_sync(self, table: str, eq: Mapping[str, Any]) -> None:
        where, params = self._where(table, eq)
        if not where:
            raise BackendError("Refusing to delete without a filter", status=400)
        conn = self._get_conn()
        try:
            conn.execute(f"DELETE FROM {table}{where}", params)
            if table == "tasks":
                # Embeddings belong to the search index, not to the user-facing data.
                task_id = eq.get("id")
                if task_id is not None:
                    conn.execute("DELETE FROM task_embeddings WHERE task_id = ?", (task_id,))
            conn.commit()
        finally:
            conn.close()

    def _upsert_sync(self, table: str, row: Mapping[str, Any], on_conflict: str) -> Row:
        self._check_columns(table, [on_conflict, *row])
        key = row.get(on_conflict)
        existing = self._select_sync(table, {on_conflict: key}, None, True, True) if key is not None else None
        if existing is None:
            return self._insert_sync(table, row)
        values = {k: v for k, v in row.items() if k not in ("id", on_conflict)}
        if not values:
            return existing  # type: ignore[return-value]
        return self._update_sync(table, values, {on_conflict: key})

    def _search_tasks_by_similarity(self, params: Mapping[str, Any]) -> list[Row]:
        query = parse_embedding(params.get("query_embedding"))
        user_id = params.get("user_id")
        threshold = float(params.get("match_threshold", 0.0))
        count = int(params.get("match_count", 5))
        if not query or not user_id or count <= 0:
            return []

        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT t.*, e.embedding AS embedding
                FROM tasks t
                JOIN task_embeddings e ON e.task_id = t.id
                WHERE t.user_id = ?
                """,
                (user_id,),
            ).fetchall()
        finally:
            conn.close()

        scored: list[Row] = []
        for r in rows:
            sim = cosine_similarity(query, parse_embedding(r["embedding"]))
            sim = max(0.0, min(1.0, sim))
            if sim > threshold:
                item = self._from_db(r)
                item.pop("embedding", None)
                item["similarity"] = sim
                scored.append(item)
        scored.sort(key=lambda x: x["similarity"], reverse=True)
        return scored[:count]

    def _rpc_sync(self, name: str, params: Mapping[str, Any]) -> list[Row]:
        if name == "search_tasks_by_similarity":
            return self._search_tasks_by_similarity(params)
        raise BackendError(f"Unknown function: {name}", status=404)

    # ---- TableBackend (async) ----

    async def _run(self, fn: Any, *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as e:
            logger.warning("sqlite %s failed: %s", fn.__name__, e)
            raise BackendError(f"Local database error: {e}", status=500) from e

    async def select(
        self,
        table: str,
        *,
        eq: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        ascending: bool = True,
        single: bool = False,
    ) -> list[Row] | Row | None:
        return await self._run(self._select_sync, table, eq, order_by, ascending, single)

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        return await self._run(self._insert_sync, table, row)

    async def update(self, table: str, values: Mapping[str, Any], *, eq: Mapping[str, Any]) -> Row:
        return await self._run(self._update_sync, table, values, eq)

    async def delete(self, table: str, *, eq: Mapping[str, Any]) -> None:
        await self._run(self._delete_sync, table, eq)

    async def upsert(self, table: str, row: Mapping[str, Any], *, on_conflict: str) -> Row:
        return await self._run(self._upsert_sync, table, row, on_conflict)

    async def rpc(self, name: str, params: Mapping[str, Any]) -> list[Row]:
        return await self._run(self._rpc_sync, name, params)


class LocalAuth:
    """AuthBackend for the local backend: a single fixed identity, no passwords."""

    def __init__(self, user_id: str) -> None:
        self._user_id = user_id

    async def sign_in_with_password(self, email: str, password: str) -> Identity:
        return Identity(user_id=self._user_id, email=(email or "").strip() or None)

    async def sign_out(self, identity: Identity) -> None:
        return None
