# src/taskflow/backend/rest.py

"""
HTTP collaborators for a Supabase-style backend.

- RestBackend: PostgREST table API (/rest/v1) with equality filters.
- RestAuth: GoTrue password sign-in (/auth/v1).
- HttpFunctionsTransport: JSON POST to edge functions (/functions/v1).

All transport failures are raised as TransportError; non-2xx responses as BackendError.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from ..core.errors import BackendError, NotConfiguredError, TransportError
from ..core.ports import Identity, Row

logger = logging.getLogger(__name__)


def _filter_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def _eq_params(eq: Mapping[str, Any] | None) -> dict[str, str]:
    params: dict[str, str] = {}
    for col, value in (eq or {}).items():
        op = "is" if value is None else "eq"
        params[col] = f"{op}.{_filter_value(value)}"
    return params


def _error_message(response: httpx.Response) -> tuple[str, str | None]:
    """Pull a readable message (+ code) out of a PostgREST/GoTrue/function error body."""
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return (text or f"HTTP {response.status_code}"), None
    if isinstance(body, dict):
        for key in ("message", "error_description", "msg", "error"):
            val = body.get(key)
            if isinstance(val, str) and val.strip():
                code = body.get("code")
                return val.strip(), str(code) if code is not None else None
    return f"HTTP {response.status_code}", None


class _HttpBase:
    def __init__(
        self,
        base_url: str,
        anon_key: str,
        *,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url or not anon_key:
            raise NotConfiguredError()
        self._base_url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self, bearer: str | None = None, **extra: str) -> dict[str, str]:
        headers = {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {bearer or self._anon_key}",
            "Content-Type": "application/json",
        }
        headers.update(extra)
        return headers

    async def _send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        params: Mapping[str, str] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        try:
            return await self._client.request(method, url, headers=headers, params=params, json=json)
        except httpx.HTTPError as e:
            logger.info("%s %s unreachable: %s", method, url, e.__class__.__name__)
            raise TransportError(f"Backend unreachable: {e.__class__.__name__}") from e

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        message, code = _error_message(response)
        raise BackendError(message, status=response.status_code, code=code)


class RestBackend(_HttpBase):
    """TableBackend over the PostgREST API. Row-level security scopes rows to the bearer."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        *,
        access_token: str | None = None,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(base_url, anon_key, timeout=timeout, client=client)
        self._access_token = access_token

    def with_identity(self, identity: Identity | None) -> RestBackend:
        """Same connection pool, requests authorized as the given identity."""
        return RestBackend(
            self._base_url,
            self._anon_key,
            access_token=identity.access_token if identity else None,
            client=self._client,
        )

    def _url(self, path: str) -> str:
        return f"{self._base_url}/rest/v1/{path}"

    async def _call(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        extra = {"Prefer": prefer} if prefer else {}
        response = await self._send(
            method,
            self._url(path),
            headers=self._headers(self._access_token, **extra),
            params=params,
            json=json,
        )
        self._raise_for_status(response)
        if not response.content:
            return None
        return response.json()

    async def select(
        self,
        table: str,
        *,
        eq: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        ascending: bool = True,
        single: bool = False,
    ) -> list[Row] | Row | None:
        params = {"select": "*", **_eq_params(eq)}
        if order_by:
            params["order"] = f"{order_by}.{'asc' if ascending else 'desc'}"
        if single:
            params["limit"] = "1"
        rows = await self._call("GET", table, params=params) or []
        if single:
            # "No rows" is not an error for single-row reads.
            return rows[0] if rows else None
        return list(rows)

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        rows = await self._call("POST", table, json=[dict(row)], prefer="return=representation")
        if not rows:
            raise BackendError(f"Insert into {table} returned no row")
        return rows[0]

    async def update(self, table: str, values: Mapping[str, Any], *, eq: Mapping[str, Any]) -> Row:
        rows = await self._call(
            "PATCH",
            table,
            params=_eq_params(eq),
            json=dict(values),
            prefer="return=representation",
        )
        if not rows:
            raise BackendError("Record not found", status=404)
        return rows[0]

    async def delete(self, table: str, *, eq: Mapping[str, Any]) -> None:
        await self._call("DELETE", table, params=_eq_params(eq))

    async def upsert(self, table: str, row: Mapping[str, Any], *, on_conflict: str) -> Row:
        rows = await self._call(
            "POST",
            table,
            params={"on_conflict": on_conflict},
            json=[dict(row)],
            prefer="resolution=merge-duplicates,return=representation",
        )
        if not rows:
            raise BackendError(f"Upsert into {table} returned no row")
        return rows[0]

    async def rpc(self, name: str, params: Mapping[str, Any]) -> list[Row]:
        data = await self._call("POST", f"rpc/{name}", json=dict(params))
        if data is None:
            return []
        return list(data) if isinstance(data, list) else [data]


class RestAuth(_HttpBase):
    """Password sign-in against the GoTrue API."""

    async def sign_in_with_password(self, email: str, password: str) -> Identity:
        if not (email or "").strip() or not password:
            raise ValueError("email and password are required")
        response = await self._send(
            "POST",
            f"{self._base_url}/auth/v1/token",
            headers=self._headers(),
            params={"grant_type": "password"},
            json={"email": email.strip(), "password": password},
        )
        self._raise_for_status(response)
        body = response.json()
        user = body.get("user") or {}
        user_id = str(user.get("id") or "")
        if not user_id:
            raise BackendError("Sign-in response has no user")
        logger.info("signed in user=%s", user_id)
        return Identity(user_id=user_id, email=user.get("email"), access_token=body.get("access_token"))

    async def sign_out(self, identity: Identity) -> None:
        if not identity.access_token:
            return
        response = await self._send(
            "POST",
            f"{self._base_url}/auth/v1/logout",
            headers=self._headers(identity.access_token),
        )
        self._raise_for_status(response)
        logger.info("signed out user=%s", identity.user_id)


class HttpFunctionsTransport:
    """Invoke edge functions with a JSON POST, bearer-authenticated."""

    def __init__(
        self,
        functions_url: str,
        bearer: str,
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not functions_url or not bearer:
            raise NotConfiguredError()
        self._functions_url = functions_url.rstrip("/")
        self._bearer = bearer
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def invoke(self, name: str, payload: Mapping[str, Any]) -> tuple[int, Any]:
        url = f"{self._functions_url}/{name}"
        try:
            response = await self._client.post(
                url,
                json=dict(payload),
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self._bearer}",
                },
            )
        except httpx.HTTPError as e:
            logger.info("function %s unreachable: %s", name, e.__class__.__name__)
            raise TransportError(f"Function unreachable: {e.__class__.__name__}") from e

        try:
            body = response.json()
        except ValueError:
            body = {"error": response.text.strip()} if not response.is_success else {}
        return response.status_code, body
