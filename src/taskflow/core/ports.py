# src/taskflow/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

Stores and clients depend on Protocols instead of concrete implementations.
This keeps the backend/LLM providers swappable and makes testing easier.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Protocol

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.

Row = dict[str, Any]


@dataclass(frozen=True, slots=True)
class Identity:
    """The authenticated principal every row is scoped to."""

    user_id: str
    email: str | None = None
    access_token: str | None = None


class TableBackend(Protocol):
    """
    Table-oriented persistence collaborator.

    Filters are equality predicates only. Row-level ownership is enforced by the backend.
    """

    async def select(
            self,
            table: str,
            *,
            eq: Mapping[str, Any] | None = None,
            order_by: str | None = None,
            ascending: bool = True,
            single: bool = False,
    ) -> list[Row] | Row | None: ...

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row: ...

    async def update(self, table: str, values: Mapping[str, Any], *, eq: Mapping[str, Any]) -> Row: ...

    async def delete(self, table: str, *, eq: Mapping[str, Any]) -> None: ...

    async def upsert(self, table: str, row: Mapping[str, Any], *, on_conflict: str) -> Row: ...

    async def rpc(self, name: str, params: Mapping[str, Any]) -> list[Row]: ...


class AuthBackend(Protocol):
    async def sign_in_with_password(self, email: str, password: str) -> Identity: ...
    async def sign_out(self, identity: Identity) -> None: ...


class FunctionsTransport(Protocol):
    """POST JSON to a named edge function and return (status, decoded JSON body)."""

    async def invoke(self, name: str, payload: Mapping[str, Any]) -> tuple[int, Any]: ...


class LLMClient(Protocol):
    """Streaming chat completion client (OpenAI-compatible)."""
    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]: ...


class Embedder(Protocol):
    """Fixed-dimension text embeddings, unit-normalized."""

    @property
    def dimension(self) -> int: ...

    def embed(self, text: str) -> list[float]: ...
