# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets; keep them in .env (gitignored).
Unprefixed SUPABASE_* / OPENAI_API_KEY are accepted as fallbacks where noted.
"""

ENV_VARS = {
    # App / logging
    "TASKFLOW_APP_NAME": "App display name (default: taskflow).",
    "TASKFLOW_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Backend
    "TASKFLOW_BACKEND": "auto | remote | local (default: auto = remote if configured, else not configured).",
    "TASKFLOW_SUPABASE_URL": "Backend project URL (fallback: SUPABASE_URL).",
    "TASKFLOW_SUPABASE_ANON_KEY": "Public anon key (fallback: SUPABASE_ANON_KEY).",
    "TASKFLOW_SUPABASE_SERVICE_ROLE_KEY": "Service-role key; only the functions server uses it.",
    "TASKFLOW_FUNCTIONS_URL": "Edge functions base URL (default: <supabase_url>/functions/v1).",
    "TASKFLOW_HTTP_TIMEOUT_SECONDS": "HTTP timeout for backend calls (default: 15).",
    # Console sign-in
    "TASKFLOW_EMAIL": "Email used for the automatic sign-in at startup.",
    "TASKFLOW_PASSWORD": "Password used for the automatic sign-in at startup.",
    "TASKFLOW_LOCAL_USER_ID": "Fixed user id in local mode (default: local-user).",
    # LLM / embeddings
    "TASKFLOW_OPENAI_API_KEY": "OpenAI-compatible API key (fallback: OPENAI_API_KEY). Offline fallbacks without it.",
    "TASKFLOW_OPENAI_BASE_URL": "API base URL (default: https://api.openai.com/v1).",
    "TASKFLOW_LLM_MODELS": "Comma/space separated list of models to try in order (default: gpt-4o-mini).",
    "TASKFLOW_EMBEDDING_MODEL": "Embedding model (default: text-embedding-3-small).",
    "TASKFLOW_EMBEDDING_DIM": "Embedding dimension (default: 384).",
    # Search
    "TASKFLOW_SEARCH_THRESHOLD": "Minimum similarity for a search hit (default: 0.3).",
    "TASKFLOW_SEARCH_MATCH_COUNT": "Maximum search results (default: 5).",
    "TASKFLOW_AUTO_INDEX": "Re-embed tasks after console add/edit (default: true).",
    # Functions server
    "TASKFLOW_FUNCTIONS_HOST": "Bind host for taskflow-functions (default: 127.0.0.1).",
    "TASKFLOW_FUNCTIONS_PORT": "Bind port for taskflow-functions (default: 8787).",
    "TASKFLOW_CORS_ORIGINS": "Allowed CORS origins (default: *).",
    # Paths (gitignored)
    "TASKFLOW_DATA_DIR": "Local data directory for logs and the local db (default: .local/taskflow).",
    "TASKFLOW_LOCAL_DB_PATH": "SQLite path for local mode (default: <data_dir>/taskflow.sqlite3).",
}
