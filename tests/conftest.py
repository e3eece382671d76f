# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskflow.core.ports import Identity
from taskflow.core.state import AppState
from taskflow.prefs.preferences import PreferencesStore, ThemeContext
from taskflow.tasks.task_models import Priority, Task, TaskStatus

from .fakes import FakeAuth, FakeTransport, InMemoryBackend


@pytest.fixture()
def identity() -> Identity:
    return Identity(user_id="user-1", email="ada@example.com", access_token="token-1")


@pytest.fixture()
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the console commands.

    A SimpleNamespace keeps unit tests isolated from the real environment.
    """
    return SimpleNamespace(
        app_name="taskflow",
        backend_mode="local",
        backend_configured=False,
        email="ada@example.com",
        password="secret",
        auto_index=True,
        data_dir=tmp_path,
        local_db_path=tmp_path / "taskflow.sqlite3",
    )


@pytest.fixture()
def state(settings: SimpleNamespace, backend: InMemoryBackend, transport: FakeTransport, identity: Identity) -> AppState:
    """AppState (signed out) wired with in-memory fakes."""
    theme = ThemeContext()
    return AppState(
        settings=settings,
        backend=backend,
        auth=FakeAuth(identity),
        functions=transport,
        theme=theme,
        preferences=PreferencesStore(backend, theme),
    )


def make_task(
    task_id: str,
    *,
    priority: Priority = Priority.MEDIUM,
    status: TaskStatus = TaskStatus.PENDING,
    title: str | None = None,
) -> Task:
    return Task(
        id=task_id,
        user_id="user-1",
        title=title or f"task {task_id}",
        priority=priority,
        status=status,
        start_date="2024-01-01",
        notes="",
        created_at="2024-01-01T00:00:00+00:00",
        updated_at="2024-01-01T00:00:00+00:00",
    )
