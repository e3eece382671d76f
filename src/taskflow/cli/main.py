# src/taskflow/cli/main.py

"""
CLI entrypoints.

- `taskflow`: initializes logging, builds AppState, signs in and runs the console REPL.
- `taskflow-functions`: serves the edge functions (smart-search, generate-subtasks, embed-task).
"""

from __future__ import annotations

import asyncio
import logging

import uvicorn

from ..cli.bootstrap import create_functions_app, create_initial_state, shutdown, sign_in
from ..config import Settings, get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _setup(settings: Settings) -> None:
    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)


async def _run(settings: Settings) -> None:
    state = create_initial_state(settings=settings)
    try:
        err = await sign_in(state)
        if err:
            # Stay in the REPL; /login can be retried.
            print(f"Sign-in failed: {err}")
        await run_console_loop(state)
    finally:
        await shutdown(state)


def main() -> None:
    settings = get_settings()
    _setup(settings)
    logger.info("Starting %s...", settings.app_name)

    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


def functions_main() -> None:
    settings = get_settings()
    _setup(settings)
    logger.info("Starting edge functions on %s:%d", settings.functions_host, settings.functions_port)

    app = create_functions_app(settings=settings)
    uvicorn.run(app, host=settings.functions_host, port=settings.functions_port, log_config=None)


if __name__ == "__main__":
    main()
