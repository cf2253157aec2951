from __future__ import annotations

from typing import Any

import httpx

_http: httpx.AsyncClient | None = None


class SupabaseRestError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        message: str,
        code: str | None = None,
        hint: str | None = None,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.hint = hint
        self.details = details


def get_http() -> httpx.AsyncClient:
    global _http
    if _http is None:
        _http = httpx.AsyncClient(timeout=httpx.Timeout(30.0))
    return _http


async def close_http() -> None:
    global _http
    if _http is not None:
        await _http.aclose()
        _http = None


def _str_or_none(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    return value if isinstance(value, str) else None


def _as_rows(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, list):
        return [r for r in data if isinstance(r, dict)]
    if isinstance(data, dict):
        return [data]
    return []


def parse_content_range_total(value: str | None) -> int | None:
    """Total from a PostgREST `Content-Range` header such as `0-49/132` or `*/0`."""
    if not value or "/" not in value:
        return None
    total = value.rsplit("/", 1)[1].strip()
    if not total.isdigit():
        return None
    return int(total)


class SupabaseRest:
    """Thin PostgREST client; every call is scoped by the caller's bearer token."""

    def __init__(self, supabase_url: str, api_key: str):
        self._rest_base = supabase_url.rstrip("/") + "/rest/v1"
        self._api_key = api_key

    def _headers(
        self, bearer_token: str, *, prefer: str | None = None
    ) -> dict[str, str]:
        h = {
            "apikey": self._api_key,
            "authorization": f"Bearer {bearer_token}",
            "accept": "application/json",
        }
        if prefer:
            h["prefer"] = prefer
        return h

    def _raise_for_error(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return

        code: str | None = None
        message: str | None = None
        hint: str | None = None
        details: Any | None = None

        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            code = _str_or_none(payload, "code")
            message = _str_or_none(payload, "message")
            hint = _str_or_none(payload, "hint")
            details = payload.get("details")
        elif isinstance(payload, str):
            message = payload

        if not message:
            message = resp.text.strip() or None

        raise SupabaseRestError(
            status_code=resp.status_code,
            code=code,
            message=message or f"Supabase request failed ({resp.status_code})",
            hint=hint,
            details=details,
        )

    async def select(
        self,
        table: str,
        *,
        bearer_token: str,
        params: dict[str, Any],
    ) -> list[dict[str, Any]]:
        url = f"{self._rest_base}/{table}"
        resp = await get_http().get(
            url, headers=self._headers(bearer_token), params=params
        )
        self._raise_for_error(resp)
        return _as_rows(resp.json())

    async def select_with_count(
        self,
        table: str,
        *,
        bearer_token: str,
        params: dict[str, Any],
    ) -> tuple[list[dict[str, Any]], int]:
        """Select a page of rows plus the exact total matching the filters."""
        url = f"{self._rest_base}/{table}"
        resp = await get_http().get(
            url,
            headers=self._headers(bearer_token, prefer="count=exact"),
            params=params,
        )
        self._raise_for_error(resp)
        rows = _as_rows(resp.json())
        total = parse_content_range_total(resp.headers.get("content-range"))
        return rows, (total if total is not None else len(rows))

    async def upsert_one(
        self,
        table: str,
        *,
        bearer_token: str,
        row: dict[str, Any],
        on_conflict: str,
    ) -> dict[str, Any]:
        url = f"{self._rest_base}/{table}"
        headers = self._headers(
            bearer_token,
            prefer="resolution=merge-duplicates,return=representation",
        )
        resp = await get_http().post(
            url, headers=headers, params={"on_conflict": on_conflict}, json=row
        )
        self._raise_for_error(resp)
        rows = _as_rows(resp.json())
        return rows[0] if rows else {}

    async def insert_one(
        self,
        table: str,
        *,
        bearer_token: str,
        row: dict[str, Any],
    ) -> dict[str, Any]:
        url = f"{self._rest_base}/{table}"
        headers = self._headers(bearer_token, prefer="return=representation")
        resp = await get_http().post(url, headers=headers, json=row)
        self._raise_for_error(resp)
        rows = _as_rows(resp.json())
        return rows[0] if rows else {}

    async def patch(
        self,
        table: str,
        *,
        bearer_token: str,
        params: dict[str, Any],
        row: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Update matching rows; returns the updated representation (empty when nothing matched)."""
        url = f"{self._rest_base}/{table}"
        headers = self._headers(bearer_token, prefer="return=representation")
        resp = await get_http().patch(url, headers=headers, params=params, json=row)
        self._raise_for_error(resp)
        return _as_rows(resp.json())

    async def delete(
        self,
        table: str,
        *,
        bearer_token: str,
        params: dict[str, Any],
    ) -> list[dict[str, Any]]:
        url = f"{self._rest_base}/{table}"
        headers = self._headers(bearer_token, prefer="return=representation")
        resp = await get_http().delete(url, headers=headers, params=params)
        self._raise_for_error(resp)
        if not resp.content:
            return []
        return _as_rows(resp.json())
