# tests/test_llm_client.py

from __future__ import annotations

from types import SimpleNamespace

import httpx
import pytest

from taskflow.llm.client import OpenAILLMClient, classify_llm_error, complete_text
from taskflow.llm.offline import OfflineLLMClient


def _chunk(text: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


class FakeCompletions:
    def __init__(self, plan: dict) -> None:
        self.plan = plan
        self.models: list[str] = []

    def create(self, *, model, stream, messages):
        self.models.append(model)
        outcome = self.plan[model]
        if isinstance(outcome, Exception):
            raise outcome
        return [_chunk(t) for t in outcome]


def _client(plan: dict) -> tuple[OpenAILLMClient, FakeCompletions]:
    completions = FakeCompletions(plan)
    fake = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    settings = SimpleNamespace(llm_models=list(plan))
    return OpenAILLMClient(settings, client=fake), completions


def test_falls_back_to_next_model() -> None:
    llm, completions = _client({"m1": ValueError("bad gateway"), "m2": ["He", None, "llo"]})

    assert complete_text(llm, [{"role": "user", "content": "hi"}], "sys") == "Hello"
    assert completions.models == ["m1", "m2"]


def test_all_models_failing_raises_runtime_error() -> None:
    llm, _ = _client({"m1": [], "m2": httpx.ReadTimeout("slow")})

    with pytest.raises(RuntimeError, match="network/timeout"):
        complete_text(llm, [], "sys")


def test_empty_model_list_is_rejected() -> None:
    with pytest.raises(RuntimeError):
        OpenAILLMClient(SimpleNamespace(llm_models=[" "]), client=object())


def test_classify_unknown_errors() -> None:
    assert classify_llm_error(ValueError("x")) == "other"
    assert classify_llm_error(httpx.ConnectTimeout("x")) == "network"


def test_offline_client_plans_subtasks() -> None:
    text = complete_text(OfflineLLMClient(), [{"role": "user", "content": "Paint fence."}], "subtask planner")
    assert "Clarify the goal of: Paint fence" in text
