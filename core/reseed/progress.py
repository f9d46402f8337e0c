"""
Progress model for the reset/reseed pipeline.

One PhaseProgress entry per table per phase. Entries only move forward:

    pending -> running -> completed | failed

Sinks receive a ProgressUpdate for every transition plus a PhaseSummary
when a phase finishes. They never see the pipeline's internal state.
"""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class TableStatus(enum.StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RunPhase(enum.StrEnum):
    """Overall run state."""

    IDLE = "idle"
    DELETING = "deleting"
    DELETION_COMPLETE = "deletion-complete"
    INSERTING = "inserting"
    COMPLETE = "complete"


class PhaseName(enum.StrEnum):
    DELETION = "deletion"
    INSERTION = "insertion"


_ALLOWED_TRANSITIONS: dict[TableStatus, frozenset[TableStatus]] = {
    TableStatus.PENDING: frozenset({TableStatus.RUNNING}),
    TableStatus.RUNNING: frozenset({TableStatus.COMPLETED, TableStatus.FAILED}),
    TableStatus.COMPLETED: frozenset(),
    TableStatus.FAILED: frozenset(),
}


class InvalidTransitionError(Exception):
    """A progress entry was asked to move backwards or skip a state."""


@dataclass(frozen=True)
class ProgressUpdate:
    """Partial update handed to a progress sink."""

    status: TableStatus
    message: str
    records_affected: int | None = None
    error: str | None = None


@dataclass
class PhaseProgress:
    """Status of one table within one phase."""

    table: str
    status: TableStatus = TableStatus.PENDING
    message: str = ""
    records_affected: int | None = None
    error: str | None = None

    def apply(self, update: ProgressUpdate) -> None:
        if update.status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"{self.table}: {self.status.value} -> {update.status.value}"
            )
        self.status = update.status
        self.message = update.message
        if update.status is TableStatus.COMPLETED:
            self.records_affected = update.records_affected or 0
        if update.status is TableStatus.FAILED:
            self.error = update.error or update.message

    @property
    def is_terminal(self) -> bool:
        return self.status in (TableStatus.COMPLETED, TableStatus.FAILED)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass(frozen=True)
class PhaseSummary:
    """Totals for one finished phase. Used for reporting, never for control flow."""

    phase: PhaseName
    tables_attempted: int
    tables_completed: int
    total_records: int
    failed_tables: tuple[str, ...] = ()

    @property
    def tables_failed(self) -> int:
        return len(self.failed_tables)

    @property
    def succeeded(self) -> bool:
        return not self.failed_tables

    @classmethod
    def from_progress(cls, phase: PhaseName, entries: list[PhaseProgress]) -> PhaseSummary:
        completed = [e for e in entries if e.status is TableStatus.COMPLETED]
        return cls(
            phase=phase,
            tables_attempted=sum(1 for e in entries if e.is_terminal),
            tables_completed=len(completed),
            total_records=sum(e.records_affected or 0 for e in completed),
            failed_tables=tuple(e.table for e in entries if e.status is TableStatus.FAILED),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "tables_attempted": self.tables_attempted,
            "tables_completed": self.tables_completed,
            "tables_failed": self.tables_failed,
            "total_records": self.total_records,
            "failed_tables": list(self.failed_tables),
        }


@dataclass(frozen=True)
class RunSummary:
    deletion: PhaseSummary
    insertion: PhaseSummary

    @property
    def succeeded(self) -> bool:
        return self.deletion.succeeded and self.insertion.succeeded


class ProgressSink:
    """Observer for pipeline progress. Override only what you need."""

    def on_deletion_progress(self, table: str, update: ProgressUpdate) -> None:
        pass

    def on_insertion_progress(self, table: str, update: ProgressUpdate) -> None:
        pass

    def on_phase_complete(self, summary: PhaseSummary) -> None:
        pass


class LoggingProgressSink(ProgressSink):
    """Writes every progress event to structlog."""

    def on_deletion_progress(self, table: str, update: ProgressUpdate) -> None:
        self._log(PhaseName.DELETION, table, update)

    def on_insertion_progress(self, table: str, update: ProgressUpdate) -> None:
        self._log(PhaseName.INSERTION, table, update)

    def on_phase_complete(self, summary: PhaseSummary) -> None:
        if summary.succeeded:
            logger.info("phase_completed", **summary.to_dict())
        else:
            logger.warning("phase_completed_with_failures", **summary.to_dict())

    @staticmethod
    def _log(phase: PhaseName, table: str, update: ProgressUpdate) -> None:
        event = f"table_{phase.value}_{update.status.value}"
        if update.status is TableStatus.FAILED:
            logger.warning(event, table=table, error=update.error, message=update.message)
        elif update.status is TableStatus.COMPLETED:
            logger.info(event, table=table, records=update.records_affected)
        else:
            logger.debug(event, table=table)


