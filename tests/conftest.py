"""
Shared test fixtures.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest

from core.reseed.client import TableHTTPError, TableTransportError
from core.reseed.progress import (
    PhaseName,
    PhaseSummary,
    ProgressSink,
    ProgressUpdate,
    TableStatus,
)


@dataclass
class FakeEndpoints:
    """In-memory delete/insert endpoints.

    `deleted` / `inserted` map table -> row count returned on success.
    `http_errors` / `transport_errors` make a table fail instead.
    Every call is recorded in order, with the source folder for inserts.
    """

    deleted: dict[str, int] = field(default_factory=dict)
    inserted: dict[str, int] = field(default_factory=dict)
    http_errors: dict[str, tuple[int, str | None]] = field(default_factory=dict)
    transport_errors: dict[str, str] = field(default_factory=dict)
    crash: dict[str, Exception] = field(default_factory=dict)
    delete_calls: list[str] = field(default_factory=list)
    insert_calls: list[tuple[str, str]] = field(default_factory=list)

    def _maybe_fail(self, table: str) -> None:
        if table in self.http_errors:
            status, error = self.http_errors[table]
            raise TableHTTPError(table, status, error)
        if table in self.transport_errors:
            raise TableTransportError(table, self.transport_errors[table])
        if table in self.crash:
            raise self.crash[table]

    async def delete_table(self, table_name: str) -> int:
        self.delete_calls.append(table_name)
        await asyncio.sleep(0)
        self._maybe_fail(table_name)
        return self.deleted.get(table_name, 0)

    async def insert_table(self, table_name: str, source_folder: str) -> int:
        self.insert_calls.append((table_name, source_folder))
        await asyncio.sleep(0)
        self._maybe_fail(table_name)
        return self.inserted.get(table_name, 0)


@dataclass
class RecordingSink(ProgressSink):
    """Keeps every progress event, in emission order."""

    events: list[tuple[PhaseName, str, ProgressUpdate]] = field(default_factory=list)
    summaries: list[PhaseSummary] = field(default_factory=list)

    def on_deletion_progress(self, table: str, update: ProgressUpdate) -> None:
        self.events.append((PhaseName.DELETION, table, update))

    def on_insertion_progress(self, table: str, update: ProgressUpdate) -> None:
        self.events.append((PhaseName.INSERTION, table, update))

    def on_phase_complete(self, summary: PhaseSummary) -> None:
        self.summaries.append(summary)

    def statuses(self, phase: PhaseName, table: str) -> list[TableStatus]:
        return [u.status for p, t, u in self.events if p is phase and t == table]


@pytest.fixture
def endpoints() -> FakeEndpoints:
    return FakeEndpoints()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def small_deletion_order() -> list[str]:
    return ["orderItems", "orders", "users"]


@pytest.fixture
def small_insertion_order() -> list[str]:
    return ["users", "orders", "orderItems"]
