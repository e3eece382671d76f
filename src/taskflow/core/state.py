# src/taskflow/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..ai.search import SmartSearchClient
from ..ai.subtasks import SubtaskGenerator, SuggestionList
from ..prefs.preferences import PreferencesStore, ThemeContext
from ..tasks.subtask_store import SubtaskStore
from ..tasks.task_models import ALL, Task
from ..tasks.task_store import TaskStore
from .ports import AuthBackend, FunctionsTransport, Identity, TableBackend


@dataclass
class AppState:
    """
    Explicit application context passed to every surface (console, tests).

    Built by cli.bootstrap; nothing here is a module-level singleton.
    """

    settings: Any
    backend: TableBackend
    auth: AuthBackend
    functions: FunctionsTransport
    theme: ThemeContext
    preferences: PreferencesStore
    identity: Identity | None = None
    # Backend authorized as `identity` (same object as `backend` unless the backend is remote).
    scoped_backend: TableBackend | None = None

    tasks: TaskStore | None = None
    search: SmartSearchClient | None = None
    generator: SubtaskGenerator | None = None

    priority_filter: str = ALL
    status_filter: str = ALL

    # Last list shown on the console (1-based addressing); None marks a deleted entry.
    shown: list[Task | None] = field(default_factory=list)
    subtask_stores: dict[str, SubtaskStore] = field(default_factory=dict)
    suggestions: dict[str, SuggestionList] = field(default_factory=dict)
    # Parent task of the most recent /suggest.
    suggest_task_id: str | None = None

    def subtasks_for(self, task_id: str) -> SubtaskStore:
        store = self.subtask_stores.get(task_id)
        if store is None:
            store = SubtaskStore(self.scoped_backend or self.backend, self.identity, task_id)
            self.subtask_stores[task_id] = store
        return store

    def suggestions_for(self, task_id: str) -> SuggestionList:
        lst = self.suggestions.get(task_id)
        if lst is None:
            lst = SuggestionList(self.subtasks_for(task_id))
            self.suggestions[task_id] = lst
        return lst
