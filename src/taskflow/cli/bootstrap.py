# src/taskflow/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- picks the backend (remote / local sqlite / not configured),
- wires concrete implementations into AppState (tables, auth, functions, LLM),
- signs in and builds the per-identity stores.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI

from ..ai.search import SmartSearchClient
from ..ai.subtasks import SubtaskGenerator
from ..backend.offline import UnconfiguredBackend
from ..backend.rest import HttpFunctionsTransport, RestAuth, RestBackend
from ..backend.sqlite import LocalAuth, SqliteBackend
from ..config import Settings, get_settings
from ..core.errors import BackendError, friendly_error_message
from ..core.ports import Embedder, Identity, LLMClient, TableBackend
from ..core.state import AppState
from ..functions.app import create_app
from ..functions.local import LocalFunctionsTransport
from ..llm.client import OpenAILLMClient
from ..llm.embeddings import HashingEmbedder, OpenAIEmbedder
from ..llm.offline import OfflineLLMClient
from ..prefs.preferences import PreferencesStore, ThemeContext
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def resolve_backend_mode(settings: Settings) -> str:
    """'remote', 'local' or 'unconfigured'."""
    if settings.backend_mode == "local":
        return "local"
    if settings.backend_configured:
        return "remote"
    return "unconfigured"


def build_llm(settings: Settings) -> LLMClient:
    try:
        return OpenAILLMClient(settings)
    except RuntimeError as e:
        # Fallback for demos / local runs without external services.
        logger.info("LLM offline mode: %s", e)
        return OfflineLLMClient()


def build_embedder(settings: Settings) -> Embedder:
    try:
        return OpenAIEmbedder(settings)
    except RuntimeError as e:
        logger.info("Embeddings offline mode: %s", e)
        return HashingEmbedder(settings.embedding_dim)


def create_initial_state(*, settings: Settings | None = None) -> AppState:
    """
    Create AppState from the provided settings (signed out).

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    """
    if settings is None:
        settings = get_settings()

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    mode = resolve_backend_mode(settings)

    backend: Any
    auth: Any
    functions: Any
    if mode == "remote":
        backend = RestBackend(
            settings.supabase_url,
            settings.supabase_anon_key,
            timeout=settings.http_timeout_seconds,
        )
        auth = RestAuth(settings.supabase_url, settings.supabase_anon_key, timeout=settings.http_timeout_seconds)
        functions = HttpFunctionsTransport(
            settings.functions_url,
            settings.supabase_anon_key,
            timeout=max(settings.http_timeout_seconds, 30.0),
        )
    elif mode == "local":
        backend = SqliteBackend(settings.local_db_path)
        auth = LocalAuth(settings.local_user_id)
        functions = LocalFunctionsTransport(
            backend=backend,
            embedder=build_embedder(settings),
            llm=build_llm(settings),
            threshold=settings.search_threshold,
            match_count=settings.search_match_count,
        )
    else:
        logger.warning("Backend is not configured; set TASKFLOW_SUPABASE_URL and TASKFLOW_SUPABASE_ANON_KEY.")
        backend = auth = functions = UnconfiguredBackend()

    logger.info("Backend mode: %s", mode)
    theme = ThemeContext()
    return AppState(
        settings=settings,
        backend=backend,
        auth=auth,
        functions=functions,
        theme=theme,
        preferences=PreferencesStore(backend, theme),
    )


def _scoped_backend(state: AppState, identity: Identity | None) -> TableBackend:
    if isinstance(state.backend, RestBackend):
        return state.backend.with_identity(identity)
    return state.backend


async def apply_identity(state: AppState, identity: Identity | None) -> None:
    """Rebuild the identity-scoped stores and load the identity's data."""
    state.identity = identity
    backend = _scoped_backend(state, identity)
    state.scoped_backend = backend
    state.tasks = TaskStore(backend, identity)
    state.search = SmartSearchClient(state.functions, identity)
    state.generator = SubtaskGenerator(state.functions)
    state.preferences = PreferencesStore(backend, state.theme)
    state.shown = []
    state.subtask_stores = {}
    state.suggestions = {}
    state.suggest_task_id = None

    await state.preferences.set_identity(identity)
    if identity is not None:
        result = await state.tasks.refresh()
        if result.error:
            logger.info("Initial task load failed: %s", result.error)


async def sign_in(state: AppState, email: str | None = None, password: str | None = None) -> str | None:
    """Sign in and load data. Returns an error string, or None on success."""
    settings = state.settings
    email = email if email is not None else settings.email
    password = password if password is not None else settings.password
    try:
        identity = await state.auth.sign_in_with_password(email or "", password or "")
    except ValueError as e:
        return str(e)
    except BackendError as e:
        msg = friendly_error_message(e, fallback="Sign-in failed")
        logger.info("Sign-in failed: %s", msg)
        return msg
    await apply_identity(state, identity)
    logger.info("Signed in as %s", identity.email or identity.user_id)
    return None


async def sign_out(state: AppState) -> None:
    if state.identity is not None:
        try:
            await state.auth.sign_out(state.identity)
        except BackendError as e:
            logger.info("Sign-out failed remotely (%s); clearing local session anyway", e)
    await apply_identity(state, None)


async def shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    for part in (state.backend, state.auth, state.functions):
        close = getattr(part, "aclose", None)
        if close is None:
            continue
        try:
            await close()
        except Exception:
            logger.debug("close failed for %s", type(part).__name__, exc_info=True)


def create_functions_app(*, settings: Settings | None = None) -> FastAPI:
    """
    Build the edge-function server.

    With a service-role key the functions query the hosted tables; otherwise
    they run against the local sqlite backend.
    """
    if settings is None:
        settings = get_settings()

    backend: TableBackend
    if settings.supabase_url and settings.supabase_service_role_key:
        backend = RestBackend(
            settings.supabase_url,
            settings.supabase_service_role_key,
            timeout=settings.http_timeout_seconds,
        )
        logger.info("Functions backend: remote %s", settings.supabase_url)
    else:
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        backend = SqliteBackend(settings.local_db_path)
        logger.info("Functions backend: local %s", settings.local_db_path)

    return create_app(
        backend=backend,
        embedder=build_embedder(settings),
        llm=build_llm(settings),
        bearer=settings.supabase_anon_key or None,
        cors_origins=settings.cors_origins,
        threshold=settings.search_threshold,
        match_count=settings.search_match_count,
    )
