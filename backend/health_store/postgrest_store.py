from __future__ import annotations

from typing import Any

import httpx

from .errors import NOT_FOUND_CODE, PersistenceError, RecordNotFound

_OBJECT_MEDIA_TYPE = "application/vnd.pgrst.object+json"


def _filter_params(filters: dict[str, Any]) -> dict[str, str]:
    params: dict[str, str] = {}
    for column, value in filters.items():
        if value is None:
            params[column] = "is.null"
        elif isinstance(value, bool):
            params[column] = f"eq.{str(value).lower()}"
        else:
            params[column] = f"eq.{value}"
    return params


def _store_error(response: httpx.Response) -> PersistenceError:
    message = response.text.strip() or f"HTTP {response.status_code}"
    code = f"http_{response.status_code}"
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        if isinstance(payload.get("code"), str) and payload["code"].strip():
            code = payload["code"].strip()
        if isinstance(payload.get("message"), str) and payload["message"].strip():
            message = payload["message"].strip()
    if code == NOT_FOUND_CODE:
        return RecordNotFound(message)
    return PersistenceError(message, code=code)


class PostgrestRowStore:
    """Row store backed by a PostgREST endpoint such as Supabase's ``/rest/v1``."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = httpx.Timeout(timeout_seconds, connect=5.0)
        self._transport = transport

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        headers.update(extra)
        return headers

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.request(
                    method,
                    f"{self._base_url}/{table}",
                    params=params,
                    json=json_body,
                    headers=headers or self._headers(),
                )
        except httpx.TimeoutException as exc:
            raise PersistenceError(f"Row store timed out on {table}.", code="timeout") from exc
        except httpx.HTTPError as exc:
            raise PersistenceError(f"Row store unreachable: {exc}", code="transport_error") from exc
        if response.status_code >= 400:
            raise _store_error(response)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise PersistenceError(
                f"Row store returned a non-JSON body for {table} (HTTP {response.status_code}).",
                code="invalid_response",
            ) from exc

    def select(self, table: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        params = {"select": "*", **_filter_params(filters)}
        payload = self._request("GET", table, params=params)
        return payload if isinstance(payload, list) else []

    def select_one(self, table: str, filters: dict[str, Any]) -> dict[str, Any]:
        params = {"select": "*", **_filter_params(filters)}
        payload = self._request("GET", table, params=params, headers=self._headers(Accept=_OBJECT_MEDIA_TYPE))
        if not isinstance(payload, dict):
            raise RecordNotFound(f"No {table} row matches {sorted(filters)}.")
        return payload

    def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        payload = self._request(
            "POST",
            table,
            json_body=record,
            headers=self._headers(Prefer="return=representation"),
        )
        rows = payload if isinstance(payload, list) else [payload]
        return rows[0] if rows and isinstance(rows[0], dict) else dict(record)

    def upsert(
        self,
        table: str,
        record: dict[str, Any],
        conflict_key: str,
        *,
        ignore_duplicates: bool = False,
    ) -> dict[str, Any]:
        resolution = "ignore-duplicates" if ignore_duplicates else "merge-duplicates"
        payload = self._request(
            "POST",
            table,
            params={"on_conflict": conflict_key},
            json_body=record,
            headers=self._headers(Prefer=f"resolution={resolution},return=representation"),
        )
        rows = payload if isinstance(payload, list) else [payload]
        if rows and isinstance(rows[0], dict):
            return rows[0]
        if ignore_duplicates:
            # An ignored duplicate returns no representation; the stored row is the answer.
            return self.select_one(table, {conflict_key: record[conflict_key]})
        return dict(record)

    def update(self, table: str, fields: dict[str, Any], filters: dict[str, Any]) -> list[dict[str, Any]]:
        if not filters:
            raise PersistenceError(f"Refusing unfiltered update of {table}.", code="missing_filter")
        payload = self._request(
            "PATCH",
            table,
            params=_filter_params(filters),
            json_body=fields,
            headers=self._headers(Prefer="return=representation"),
        )
        return payload if isinstance(payload, list) else []
