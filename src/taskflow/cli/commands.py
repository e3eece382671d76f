# src/taskflow/cli/commands.py

from __future__ import annotations

import contextlib
import logging
from collections.abc import Awaitable, Callable

from ..ai.search import index_task
from ..core.state import AppState
from ..prefs.preferences import Theme
from ..tasks.derive import (
    derive_visible,
    normalize_priority_filter,
    normalize_status_filter,
    task_counts,
)
from ..tasks.task_models import ALL, Priority, Task, TaskDraft, TaskStatus
from .bootstrap import sign_in, sign_out

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]

logger = logging.getLogger(__name__)

SIGNED_OUT = "Not signed in. Use /login <email> <password>."


class CommandRegistry:
    """Slash-command registry used by the console connector (/help, /list, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return await handler(state, args, emit)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- formatting ----

_STATUS_MARK = {
    TaskStatus.PENDING: "[ ]",
    TaskStatus.IN_PROGRESS: "[~]",
    TaskStatus.DONE: "[x]",
}


def format_task(index: int, task: Task) -> str:
    line = f"{index:>3}. {_STATUS_MARK[task.status]} {task.title}  ({task.priority}, {task.start_date})"
    if task.notes:
        line += f"\n       {task.notes}"
    return line


def _pick(state: AppState, raw: str | None) -> Task | None:
    """Resolve a 1-based index from the last displayed list."""
    try:
        idx = int(raw or "")
    except ValueError:
        return None
    if 1 <= idx <= len(state.shown):
        return state.shown[idx - 1]
    return None


def _bad_index(raw: str | None) -> str:
    return f"No task #{raw}. Use /list first." if raw else "Task number is required."


async def _reindex(state: AppState, task: Task, emit: CommandEmitter | None) -> None:
    if not state.settings.auto_index:
        return
    err = await index_task(state.functions, task)
    if err is not None:
        logger.info("index task=%s failed: %s", task.id, err)
        if emit:
            with contextlib.suppress(Exception):
                emit(f"[search] Task saved but not indexed: {err}")


# ---- handlers ----


async def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    s = state.settings
    who = state.identity.email or state.identity.user_id if state.identity else "signed out"
    tasks = len(state.tasks.list()) if state.tasks else 0
    return (
        "Status:\n"
        f"  User: {who}\n"
        f"  Backend: {'configured' if s.backend_configured else s.backend_mode}\n"
        f"  Tasks loaded: {tasks}\n"
        f"  Filter: priority={state.priority_filter} status={state.status_filter}\n"
        f"  Theme: {state.theme.theme}"
    )


async def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    email = args[0] if args else None
    password = args[1] if len(args) > 1 else None
    err = await sign_in(state, email, password)
    if err:
        return f"Sign-in failed: {err}"
    return f"Signed in as {state.identity.email or state.identity.user_id}."


async def cmd_logout(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    await sign_out(state)
    return "Signed out."


async def cmd_list(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /list                  -> current filters
    /list high             -> priority filter
    /list all done         -> both filters
    """
    if state.tasks is None:
        return SIGNED_OUT
    try:
        if args:
            state.priority_filter = normalize_priority_filter(args[0])
        if len(args) > 1:
            state.status_filter = normalize_status_filter(args[1])
    except ValueError as e:
        return f"Bad filter: {e}"

    visible = derive_visible(state.tasks.list(), state.priority_filter, state.status_filter)
    state.shown = visible
    if state.tasks.error and not visible:
        return f"Could not load tasks: {state.tasks.error}"
    if not visible:
        return "No tasks."
    header = f"Tasks (priority={state.priority_filter}, status={state.status_filter}):"
    return "\n".join([header, *(format_task(i, t) for i, t in enumerate(visible, start=1))])


async def cmd_refresh(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.tasks is None:
        return SIGNED_OUT
    result = await state.tasks.refresh()
    if result.error:
        return f"Could not load tasks: {result.error}"
    return f"Loaded {len(result.data or [])} tasks."


async def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/add <priority> <title...>  (priority may be omitted -> medium)"""
    if state.tasks is None:
        return SIGNED_OUT
    if not args:
        return "Usage: /add [high|medium|low] <title>"

    priority: Priority | str = Priority.MEDIUM
    words = args
    try:
        priority = Priority.parse(args[0])
        words = args[1:]
    except ValueError:
        pass

    result = await state.tasks.add(TaskDraft(title=" ".join(words), priority=priority))
    if not result.ok:
        return f"Could not add task: {result.error}"
    task = result.data
    await _reindex(state, task, emit)
    return f"Added: {task.title} ({task.priority})"


async def cmd_start(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.tasks is None:
        return SIGNED_OUT
    task = _pick(state, args[0] if args else None)
    if task is None:
        return _bad_index(args[0] if args else None)
    result = await state.tasks.update(task.id, {"status": TaskStatus.IN_PROGRESS.value})
    if not result.ok:
        return f"Could not update task: {result.error}"
    return f"In progress: {result.data.title}"


async def cmd_done(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """Toggle completion (done <-> pending)."""
    if state.tasks is None:
        return SIGNED_OUT
    task = _pick(state, args[0] if args else None)
    if task is None:
        return _bad_index(args[0] if args else None)
    result = await state.tasks.toggle(task.id)
    if not result.ok:
        return f"Could not update task: {result.error}"
    return f"{result.data.title}: {result.data.status}"


async def cmd_note(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.tasks is None:
        return SIGNED_OUT
    task = _pick(state, args[0] if args else None)
    if task is None:
        return _bad_index(args[0] if args else None)
    result = await state.tasks.update(task.id, {"notes": " ".join(args[1:])})
    if not result.ok:
        return f"Could not update task: {result.error}"
    await _reindex(state, result.data, emit)
    return f"Notes saved for: {result.data.title}"


async def cmd_rm(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.tasks is None:
        return SIGNED_OUT
    task = _pick(state, args[0] if args else None)
    if task is None:
        return _bad_index(args[0] if args else None)
    result = await state.tasks.delete(task.id)
    if not result.ok:
        return f"Could not delete task: {result.error}"
    # Keep the other numbers of the listing stable; the freed slot reads as missing.
    state.shown = [None if t is not None and t.id == task.id else t for t in state.shown]
    state.subtask_stores.pop(task.id, None)
    state.suggestions.pop(task.id, None)
    return f"Deleted: {task.title}"


async def cmd_counts(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.tasks is None:
        return SIGNED_OUT
    counts = task_counts(state.tasks.list())
    by_p = ", ".join(f"{k}={v}" for k, v in counts.by_priority.items())
    by_s = ", ".join(f"{k}={v}" for k, v in counts.by_status.items())
    return f"By priority: {by_p}\nBy status: {by_s}"


async def cmd_search(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.search is None:
        return SIGNED_OUT
    query = " ".join(args)
    if not query.strip():
        return "Usage: /search <query>"
    results = await state.search.search(query)
    if results is None:
        return f"Search failed: {state.search.error}"
    if not results:
        return "No matching tasks."

    # Only results backed by a loaded task are listed, so each number maps to a task.
    by_id = {t.id: t for t in state.tasks.list()} if state.tasks else {}
    if state.tasks is not None and any(r.id not in by_id for r in results):
        await state.tasks.refresh()
        by_id = {t.id: t for t in state.tasks.list()}
    hits = [r for r in results if r.id in by_id]
    state.shown = [by_id[r.id] for r in hits]
    if not hits:
        return "No matching tasks."
    lines = [f"Results for {query!r}:"]
    for i, r in enumerate(hits, start=1):
        lines.append(f"{i:>3}. {r.title}  ({r.priority}, {r.status}) {r.match_percent}% match")
    return "\n".join(lines)


async def cmd_clear(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.search is not None:
        state.search.clear()
    state.priority_filter = ALL
    state.status_filter = ALL
    return "Search and filters cleared."


async def cmd_sub(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.tasks is None:
        return SIGNED_OUT
    task = _pick(state, args[0] if args else None)
    if task is None:
        return _bad_index(args[0] if args else None)
    store = state.subtasks_for(task.id)
    result = await store.refresh()
    if result.error:
        return f"Could not load subtasks: {result.error}"
    subtasks = store.list()
    if not subtasks:
        return f"{task.title}: no subtasks."
    lines = [f"Subtasks of {task.title}:"]
    for i, s in enumerate(subtasks, start=1):
        lines.append(f"{i:>3}. {_STATUS_MARK[s.status]} {s.title}")
    return "\n".join(lines)


async def cmd_subadd(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.tasks is None:
        return SIGNED_OUT
    task = _pick(state, args[0] if args else None)
    if task is None:
        return _bad_index(args[0] if args else None)
    result = await state.subtasks_for(task.id).add(" ".join(args[1:]))
    if not result.ok:
        return f"Could not add subtask: {result.error}"
    return f"Subtask added to {task.title}: {result.data.title}"


async def cmd_subdone(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/subdone <n> <k>  toggle subtask k of task n"""
    if state.tasks is None:
        return SIGNED_OUT
    task = _pick(state, args[0] if args else None)
    if task is None:
        return _bad_index(args[0] if args else None)
    store = state.subtasks_for(task.id)
    subtasks = store.list()
    try:
        k = int(args[1])
    except (IndexError, ValueError):
        return "Usage: /subdone <n> <k>"
    if not 1 <= k <= len(subtasks):
        return f"No subtask #{k}. Use /sub {args[0]} first."
    result = await store.toggle(subtasks[k - 1].id)
    if not result.ok:
        return f"Could not update subtask: {result.error}"
    return f"{result.data.title}: {result.data.status}"


async def cmd_suggest(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.generator is None or state.tasks is None:
        return SIGNED_OUT
    task = _pick(state, args[0] if args else None)
    if task is None:
        return _bad_index(args[0] if args else None)

    if emit:
        with contextlib.suppress(Exception):
            emit(f"[AI] Generating subtasks for {task.title!r}...")
    suggestions = await state.generator.generate(task.title)
    if suggestions is None:
        return f"Could not generate subtasks: {state.generator.error}"

    lst = state.suggestions_for(task.id)
    lst.replace(suggestions)
    state.suggest_task_id = task.id
    if not lst.items:
        return "No suggestions."
    lines = [f"Suggestions for {task.title} (/accept <k>, /dismiss <k>):"]
    lines.extend(f"{i:>3}. {s}" for i, s in enumerate(lst.items, start=1))
    return "\n".join(lines)


def _pick_suggestion(state: AppState, args: list[str]) -> tuple[str | None, str | None]:
    if state.suggest_task_id is None:
        return None, "No suggestions. Use /suggest <n> first."
    items = state.suggestions_for(state.suggest_task_id).items
    try:
        k = int(args[0])
    except (IndexError, ValueError):
        return None, "Suggestion number is required."
    if not 1 <= k <= len(items):
        return None, f"No suggestion #{k}."
    return items[k - 1], None


async def cmd_accept(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    suggestion, err = _pick_suggestion(state, args)
    if err:
        return err
    result = await state.suggestions_for(state.suggest_task_id).accept(suggestion)
    if not result.ok:
        return f"Could not add subtask: {result.error}"
    return f"Subtask added: {result.data.title}"


async def cmd_dismiss(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    suggestion, err = _pick_suggestion(state, args)
    if err:
        return err
    state.suggestions_for(state.suggest_task_id).dismiss(suggestion)
    return f"Dismissed: {suggestion}"


async def cmd_theme(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /theme                  -> show
    /theme classic-dark     -> switch (applied immediately, saved in background)
    """
    if not args:
        return f"Theme: {state.theme.theme}. Options: {', '.join(t.value for t in Theme)}."
    try:
        theme = Theme(args[0].strip().lower())
    except ValueError:
        return f"Unknown theme: {args[0]}. Options: {', '.join(t.value for t in Theme)}."
    await state.preferences.update_theme(theme)
    return f"Theme set to {state.theme.theme}."


_ON = {"on", "1", "true", "yes"}
_OFF = {"off", "0", "false", "no"}


async def cmd_prefs(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    prefs = state.preferences.preferences
    if not args:
        return (
            "Preferences:\n"
            f"  theme: {prefs.theme}\n"
            f"  feature_previews: {'on' if prefs.feature_previews else 'off'}\n"
            f"  command_menu_enabled: {'on' if prefs.command_menu_enabled else 'off'}"
        )
    if len(args) < 2 or args[1].lower() not in _ON | _OFF:
        return "Usage: /prefs <feature_previews|command_menu_enabled> on|off"
    try:
        await state.preferences.update_preferences(**{args[0]: args[1].lower() in _ON})
    except ValueError as e:
        return str(e)
    return f"{args[0]} set to {args[1].lower()}."


async def cmd_reindex(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """Rebuild search embeddings for every loaded task."""
    if state.tasks is None:
        return SIGNED_OUT
    tasks = state.tasks.list()
    failed = 0
    for task in tasks:
        if await index_task(state.functions, task) is not None:
            failed += 1
    if failed:
        return f"Indexed {len(tasks) - failed}/{len(tasks)} tasks ({failed} failed, see log)."
    return f"Indexed {len(tasks)} tasks."


registry.register("help", cmd_help, "show this help")
registry.register("status", cmd_status, "show session status")
registry.register("login", cmd_login, "sign in: /login <email> <password>")
registry.register("logout", cmd_logout, "sign out")
registry.register("list", cmd_list, "list tasks: /list [priority] [status]", aliases=["ls"])
registry.register("refresh", cmd_refresh, "reload tasks from the backend")
registry.register("add", cmd_add, "add a task: /add [high|medium|low] <title>")
registry.register("start", cmd_start, "mark task n in progress")
registry.register("done", cmd_done, "toggle completion of task n")
registry.register("note", cmd_note, "set notes: /note <n> <text>")
registry.register("rm", cmd_rm, "delete task n", aliases=["del"])
registry.register("counts", cmd_counts, "task counts by priority and status")
registry.register("search", cmd_search, "semantic search: /search <query>")
registry.register("clear", cmd_clear, "clear search results and filters")
registry.register("sub", cmd_sub, "list subtasks of task n")
registry.register("subadd", cmd_subadd, "add a subtask: /subadd <n> <title>")
registry.register("subdone", cmd_subdone, "toggle subtask: /subdone <n> <k>")
registry.register("suggest", cmd_suggest, "AI subtask suggestions for task n")
registry.register("accept", cmd_accept, "accept suggestion k")
registry.register("dismiss", cmd_dismiss, "dismiss suggestion k")
registry.register("theme", cmd_theme, "show or set theme: /theme [light|classic-dark]")
registry.register("prefs", cmd_prefs, "show or set preferences")
registry.register("reindex", cmd_reindex, "rebuild search embeddings")
