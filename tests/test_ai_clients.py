# tests/test_ai_clients.py

from __future__ import annotations

import pytest

from taskflow.ai.search import SmartSearchClient, index_task
from taskflow.ai.subtasks import SubtaskGenerator, SuggestionList
from taskflow.core.errors import BackendError, TransportError
from taskflow.tasks.subtask_store import SubtaskStore

from .conftest import make_task
from .fakes import FakeTransport


def _row(task_id: str, similarity: float) -> dict:
    return {
        "id": task_id,
        "title": f"task {task_id}",
        "priority": "high",
        "status": "pending",
        "start_date": "2024-01-01",
        "notes": "",
        "created_at": "2024-01-01T00:00:00+00:00",
        "similarity": similarity,
    }


@pytest.mark.asyncio
async def test_blank_query_makes_no_call(identity) -> None:
    transport = FakeTransport()
    client = SmartSearchClient(transport, identity)
    client.results = ["stale"]  # type: ignore[list-item]

    assert await client.search("   ") == []
    assert client.results == []
    assert transport.calls == []


@pytest.mark.asyncio
async def test_signed_out_search_makes_no_call() -> None:
    transport = FakeTransport()
    assert await SmartSearchClient(transport, None).search("milk") == []
    assert transport.calls == []


@pytest.mark.asyncio
async def test_search_keeps_function_order(identity) -> None:
    transport = FakeTransport({"smart-search": (200, {"results": [_row("a", 0.9), _row("b", 0.4)]})})
    client = SmartSearchClient(transport, identity)

    results = await client.search("  groceries ")

    assert [r.id for r in results] == ["a", "b"]
    assert results[0].match_percent == 90
    assert transport.calls == [("smart-search", {"query": "groceries", "userId": "user-1"})]
    assert client.error is None and client.loading is False


@pytest.mark.asyncio
async def test_search_error_payload_clears_results(identity) -> None:
    transport = FakeTransport({"smart-search": (200, {"results": [_row("a", 0.9)]})})
    client = SmartSearchClient(transport, identity)
    await client.search("first")

    transport.responses["smart-search"] = (500, {"error": "Search failed"})
    assert await client.search("second") is None
    assert client.error == "Search failed"
    assert client.results == []


@pytest.mark.asyncio
async def test_search_transport_failure_uses_fallback(identity) -> None:
    transport = FakeTransport({"smart-search": TransportError("Function unreachable: ConnectError")})
    client = SmartSearchClient(transport, identity)

    assert await client.search("x") is None
    assert client.error == "Search failed"


@pytest.mark.asyncio
async def test_search_clear(identity) -> None:
    transport = FakeTransport({"smart-search": (400, {"error": "Query and userId are required"})})
    client = SmartSearchClient(transport, identity)
    await client.search("x")
    assert client.error == "Query and userId are required"

    client.clear()
    assert client.error is None and client.results == []


@pytest.mark.asyncio
async def test_index_task_sends_text_and_reports_errors() -> None:
    transport = FakeTransport()
    task = make_task("t1", title="Buy milk")

    assert await index_task(transport, task) is None
    name, payload = transport.calls[0]
    assert name == "embed-task"
    assert payload == {"taskId": "t1", "userId": "user-1", "text": "Buy milk"}

    transport.responses["embed-task"] = BackendError("boom")
    assert await index_task(transport, task) == "boom"


@pytest.mark.asyncio
async def test_generator_requires_title() -> None:
    transport = FakeTransport()
    gen = SubtaskGenerator(transport)

    assert await gen.generate("  ") is None
    assert gen.error == "Task title is required"
    assert transport.calls == []


@pytest.mark.asyncio
async def test_generator_returns_suggestions() -> None:
    transport = FakeTransport({"generate-subtasks": (200, {"subtasks": ["a", " ", "b"]})})
    gen = SubtaskGenerator(transport)

    assert await gen.generate("Plan trip") == ["a", "b"]
    assert transport.calls == [("generate-subtasks", {"taskTitle": "Plan trip"})]


@pytest.mark.asyncio
async def test_generator_failure_sets_error() -> None:
    transport = FakeTransport({"generate-subtasks": (500, {"error": "Failed to generate subtasks"})})
    gen = SubtaskGenerator(transport)

    assert await gen.generate("Plan trip") is None
    assert gen.error == "Failed to generate subtasks"
    assert gen.loading is False


@pytest.mark.asyncio
async def test_accepting_a_suggestion_removes_it_only_on_success(backend, identity) -> None:
    store = SubtaskStore(backend, identity, "task-1")
    suggestions = SuggestionList(store, ["book flights", "pack"])

    result = await suggestions.accept("book flights")
    assert result.ok
    assert suggestions.items == ["pack"]
    assert [s.title for s in store.list()] == ["book flights"]

    backend.fail["insert"] = BackendError("insert failed")
    result = await suggestions.accept("pack")
    assert result.error == "insert failed"
    assert suggestions.items == ["pack"]

    suggestions.dismiss("pack")
    assert suggestions.items == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "rows",
    [
        [{"title": "no id"}],
        [{**_row("a", 0.9), "similarity": "high"}],
        [{**_row("a", 0.9), "priority": "urgent"}],
        "not a list",
    ],
)
async def test_malformed_search_payload_is_a_failure(identity, rows) -> None:
    transport = FakeTransport({"smart-search": (200, {"results": rows})})
    client = SmartSearchClient(transport, identity)

    assert await client.search("milk") is None
    assert client.error == "Search failed"
    assert client.results == []
    assert client.loading is False


@pytest.mark.asyncio
async def test_generator_rejects_non_list_payload() -> None:
    transport = FakeTransport({"generate-subtasks": (200, {"subtasks": 42})})
    gen = SubtaskGenerator(transport)

    assert await gen.generate("Plan trip") is None
    assert gen.error == "Failed to generate subtasks"
