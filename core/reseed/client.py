"""
HTTP client for the data-manager delete/insert endpoints.

One POST per table. The client does not retry: a failed call is reported
back to the caller as a TableOperationError and the pipeline records it
against that table.

Usage:
    async with DataManagerClient("http://127.0.0.1:8080", api_key=key) as client:
        deleted = await client.delete_table("orderItems")
        inserted = await client.insert_table("orderItems", "demo-data")
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog

logger = structlog.get_logger(__name__)

DELETE_TABLE_PATH = "/api/data-manager/delete-table"
INSERT_TABLE_PATH = "/api/data-manager/insert-table"


class TableOperationError(Exception):
    """A delete or insert call for one table failed."""

    def __init__(self, table: str, message: str) -> None:
        super().__init__(message)
        self.table = table
        self.message = message


class TableHTTPError(TableOperationError):
    """The endpoint answered with a non-2xx status."""

    def __init__(self, table: str, status_code: int, error: str | None) -> None:
        super().__init__(table, error or f"HTTP {status_code}")
        self.status_code = status_code
        self.error = error


class TableTransportError(TableOperationError):
    """The request never completed (connection refused, reset, timeout...)."""


class TableEndpoints(Protocol):
    """What the pipeline needs from the data store."""

    async def delete_table(self, table_name: str) -> int: ...

    async def insert_table(self, table_name: str, source_folder: str) -> int: ...


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _record_count(body: dict[str, Any], key: str, table_name: str) -> int:
    """Read a row count from a success body; a missing count is 0."""
    raw = body.get(key) or 0
    try:
        count = int(raw)
    except (TypeError, ValueError):
        raise TableOperationError(table_name, f"Invalid {key} in response: {raw!r}") from None
    if count < 0:
        raise TableOperationError(table_name, f"Invalid {key} in response: {count}")
    return count


class DataManagerClient:
    """Async client for the delete-table / insert-table endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str = "",
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> DataManagerClient:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["X-Api-Key"] = self._api_key
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers=headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def delete_table(self, table_name: str) -> int:
        """Delete every row of a table. Returns the number of rows deleted."""
        body = await self._post(DELETE_TABLE_PATH, {"tableName": table_name}, table_name)
        return _record_count(body, "recordsDeleted", table_name)

    async def insert_table(self, table_name: str, source_folder: str) -> int:
        """Load a table from a seed bundle. Returns the number of rows inserted."""
        body = await self._post(
            INSERT_TABLE_PATH,
            {"tableName": table_name, "sourceFolder": source_folder},
            table_name,
        )
        return _record_count(body, "recordsInserted", table_name)

    async def _post(self, path: str, payload: dict[str, str], table_name: str) -> dict[str, Any]:
        if self._client is None:
            raise RuntimeError("DataManagerClient used outside 'async with'")

        try:
            response = await self._client.post(path, json=payload)
        except httpx.TransportError as exc:
            raise TableTransportError(table_name, str(exc) or type(exc).__name__) from exc

        body = _json_body(response)
        if response.is_success:
            return body

        error = body.get("error") or body.get("detail")
        logger.debug(
            "data_manager_call_failed",
            path=path,
            table=table_name,
            status=response.status_code,
            error=error,
        )
        raise TableHTTPError(table_name, response.status_code, str(error) if error else None)
