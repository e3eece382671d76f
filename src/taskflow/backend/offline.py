# src/taskflow/backend/offline.py

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..core.errors import NotConfiguredError
from ..core.ports import Identity, Row


class UnconfiguredBackend:
    """
    Stand-in used when backend credentials are missing.

    Every call fails with the same NotConfiguredError instead of crashing the app.
    Implements TableBackend, AuthBackend and FunctionsTransport.
    """

    async def select(
        self,
        table: str,
        *,
        eq: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        ascending: bool = True,
        single: bool = False,
    ) -> list[Row] | Row | None:
        raise NotConfiguredError()

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        raise NotConfiguredError()

    async def update(self, table: str, values: Mapping[str, Any], *, eq: Mapping[str, Any]) -> Row:
        raise NotConfiguredError()

    async def delete(self, table: str, *, eq: Mapping[str, Any]) -> None:
        raise NotConfiguredError()

    async def upsert(self, table: str, row: Mapping[str, Any], *, on_conflict: str) -> Row:
        raise NotConfiguredError()

    async def rpc(self, name: str, params: Mapping[str, Any]) -> list[Row]:
        raise NotConfiguredError()

    async def sign_in_with_password(self, email: str, password: str) -> Identity:
        raise NotConfiguredError()

    async def sign_out(self, identity: Identity) -> None:
        return None

    async def invoke(self, name: str, payload: Mapping[str, Any]) -> tuple[int, Any]:
        raise NotConfiguredError()

    async def aclose(self) -> None:
        return None
