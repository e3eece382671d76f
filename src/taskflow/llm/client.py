# src/taskflow/llm/client.py

from __future__ import annotations

import contextlib
import logging
import time
from typing import Any, Dict, Iterable, List, Optional

import httpx
import openai
from openai import OpenAI

from ..config import Settings
from ..core.ports import ChatMessage

logger = logging.getLogger(__name__)

# How long a model that answered 404 is skipped.
MODEL_COOLDOWN_SECONDS = 3600.0

# Failure kinds -> message raised when every model failed with that kind.
_EXHAUSTED = {
    "rate_limit": "LLM is rate-limited. Try again later.",
    "network": "LLM network/timeout error. Try again later or change models.",
}


def classify_llm_error(exc: Exception) -> str:
    """'auth', 'missing_model', 'rate_limit', 'network' or 'other'."""
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return "auth"
    if isinstance(exc, openai.NotFoundError):
        return "missing_model"
    if isinstance(exc, openai.RateLimitError):
        return "rate_limit"
    if isinstance(exc, (openai.APIConnectionError, httpx.TimeoutException)):
        return "network"
    return "other"


def build_openai_client(settings: Settings) -> OpenAI:
    """
    Create the OpenAI-compatible client used for chat and embeddings.

    Raises RuntimeError without an API key; callers then fall back to offline clients.
    SDK retries are off so a failing model hands over to the next one quickly.
    """
    api_key = (settings.openai_api_key or "").strip()
    if not api_key:
        raise RuntimeError("LLM API key is not set. Set TASKFLOW_OPENAI_API_KEY in your .env.")

    timeout = httpx.Timeout(
        connect=5.0,
        read=max(settings.http_timeout_seconds, 10.0),
        write=10.0,
        pool=5.0,
    )
    return OpenAI(
        base_url=(settings.openai_base_url or "").strip() or None,
        api_key=api_key,
        timeout=timeout,
        max_retries=0,
    )


class OpenAILLMClient:
    """
    Streaming chat client that walks TASKFLOW_LLM_MODELS in order.

    A model answering 404 is parked for MODEL_COOLDOWN_SECONDS. Auth failures stop
    the walk immediately; anything else moves on to the next model.
    """

    def __init__(self, settings: Settings, client: OpenAI | None = None) -> None:
        self._models: List[str] = [m.strip() for m in settings.llm_models if m and m.strip()]
        if not self._models:
            raise RuntimeError("LLM model list is empty. Set TASKFLOW_LLM_MODELS in your .env.")
        self._client = client or build_openai_client(settings)
        self._parked: Dict[str, float] = {}  # model -> monotonic time it may be retried

    def _available_models(self) -> list[str]:
        now = time.monotonic()
        return [m for m in self._models if self._parked.get(m, 0.0) <= now]

    def _stream_model(self, model: str, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        stream = self._client.chat.completions.create(
            model=model,
            stream=True,
            messages=[{"role": "system", "content": system_prompt}, *messages],
        )
        try:
            for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta is not None and delta.content:
                    yield delta.content
        finally:
            close = getattr(stream, "close", None)
            if callable(close):
                with contextlib.suppress(Exception):
                    close()

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        last_kind: Optional[str] = None
        last_error: Optional[Exception] = None

        for model in self._available_models():
            t0 = time.monotonic()
            produced = False
            try:
                for piece in self._stream_model(model, messages, system_prompt):
                    if not produced:
                        logger.info("LLM: first token from model=%s (%.2fs)", model, time.monotonic() - t0)
                        produced = True
                    yield piece
            except Exception as e:
                # Once text went out, switching models would splice two replies.
                if produced:
                    raise RuntimeError(f"LLM stream from {model} broke off.") from e
                kind = classify_llm_error(e)
                last_kind, last_error = kind, e
                if kind == "auth":
                    raise RuntimeError(
                        "LLM authentication failed. Check your API key (TASKFLOW_OPENAI_API_KEY)."
                    ) from e
                if kind == "missing_model":
                    self._parked[model] = time.monotonic() + MODEL_COOLDOWN_SECONDS
                logger.info("LLM: model=%s failed (%s), trying next", model, kind)
                continue

            if produced:
                return
            logger.info("LLM: model=%s returned no content", model)
            last_kind, last_error = "other", None

        raise RuntimeError(_EXHAUSTED.get(last_kind or "", "All LLM models failed.")) from last_error


def complete_text(llm: Any, messages: list[ChatMessage], system_prompt: str) -> str:
    """Collect a streamed reply into one string."""
    return "".join(llm.stream_chat(messages, system_prompt))
