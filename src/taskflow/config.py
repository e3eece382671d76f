# src/taskflow/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Missing backend credentials switch the app into "not configured" mode instead of failing.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

ENV_PREFIX = "TASKFLOW"

BACKEND_MODES = ("auto", "remote", "local")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Backend (auth + tables + edge functions) ----
    backend_mode: str
    supabase_url: str
    supabase_anon_key: str
    supabase_service_role_key: Optional[str]
    functions_url: str
    http_timeout_seconds: float

    # ---- Console sign-in ----
    email: Optional[str]
    password: Optional[str]
    local_user_id: str

    # ---- LLM / embeddings ----
    openai_api_key: Optional[str]
    openai_base_url: str
    llm_models: List[str]
    embedding_model: str
    embedding_dim: int

    # ---- Search tuning ----
    search_threshold: float
    search_match_count: int
    auto_index: bool

    # ---- Edge function server ----
    functions_host: str
    functions_port: int
    cors_origins: List[str]

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    local_db_path: Path

    @property
    def backend_configured(self) -> bool:
        """Both endpoint values must be present for real collaborators to be used."""
        return bool(self.supabase_url.strip() and self.supabase_anon_key.strip())

    @property
    def llm_configured(self) -> bool:
        return bool(self.openai_api_key and self.openai_api_key.strip())

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskflow") or "taskflow"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        backend_mode = _env(_k("BACKEND"), "auto").strip().lower()
        if backend_mode not in BACKEND_MODES:
            backend_mode = "auto"

        supabase_url = (_first_env(_k("SUPABASE_URL"), "SUPABASE_URL", default="") or "").strip().rstrip("/")
        supabase_anon_key = (
            _first_env(_k("SUPABASE_ANON_KEY"), "SUPABASE_ANON_KEY", default="") or ""
        ).strip()
        supabase_service_role_key = _first_env(
            _k("SUPABASE_SERVICE_ROLE_KEY"), "SUPABASE_SERVICE_ROLE_KEY", default=None
        )

        # Edge functions live next to the backend unless overridden (e.g. local FastAPI server).
        default_functions_url = f"{supabase_url}/functions/v1" if supabase_url else ""
        functions_url = _env(_k("FUNCTIONS_URL"), default_functions_url).strip().rstrip("/")

        http_timeout_seconds = _env_float(_k("HTTP_TIMEOUT_SECONDS"), 15.0)

        email = _first_env(_k("EMAIL"), default=None)
        password = _first_env(_k("PASSWORD"), default=None)
        local_user_id = _env(_k("LOCAL_USER_ID"), "local-user").strip() or "local-user"

        openai_api_key = _first_env(_k("OPENAI_API_KEY"), "OPENAI_API_KEY", default=None)
        openai_base_url = _env(_k("OPENAI_BASE_URL"), "https://api.openai.com/v1")
        llm_models = _env_list(_k("LLM_MODELS"), ["gpt-4o-mini"])
        embedding_model = _env(_k("EMBEDDING_MODEL"), "text-embedding-3-small")
        embedding_dim = _env_int(_k("EMBEDDING_DIM"), 384)

        search_threshold = _env_float(_k("SEARCH_THRESHOLD"), 0.3)
        search_match_count = _env_int(_k("SEARCH_MATCH_COUNT"), 5)
        # Re-embed a task after it is added or edited from the console.
        auto_index = _env_bool(_k("AUTO_INDEX"), True)

        functions_host = _env(_k("FUNCTIONS_HOST"), "127.0.0.1")
        functions_port = _env_int(_k("FUNCTIONS_PORT"), 8787)
        cors_origins = _env_list(_k("CORS_ORIGINS"), ["*"])

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskflow"))
        local_db_path = _env_path(_k("LOCAL_DB_PATH"), data_dir / "taskflow.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            backend_mode=backend_mode,
            supabase_url=supabase_url,
            supabase_anon_key=supabase_anon_key,
            supabase_service_role_key=supabase_service_role_key,
            functions_url=functions_url,
            http_timeout_seconds=http_timeout_seconds,
            email=email,
            password=password,
            local_user_id=local_user_id,
            openai_api_key=openai_api_key,
            openai_base_url=openai_base_url,
            llm_models=llm_models,
            embedding_model=embedding_model,
            embedding_dim=embedding_dim,
            search_threshold=search_threshold,
            search_match_count=search_match_count,
            auto_index=auto_index,
            functions_host=functions_host,
            functions_port=functions_port,
            cors_origins=cors_origins,
            data_dir=data_dir,
            local_db_path=local_db_path,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
