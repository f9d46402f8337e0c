"""
TableResetPipeline — ordered two-phase wipe and reseed of the storefront tables.

Run states:

    idle -> deleting -> deletion-complete -> inserting -> complete

Design:
- One endpoint call per table, awaited before the next table starts, so
  the ordering in core.reseed.table_order is never raced.
- A phase is exhaustive: a failed table is recorded and the loop moves on.
  Nothing is rolled back and a failed parent does not skip its children.
- Starting anything while a phase is in progress is ignored.
- No cancellation and no deadline beyond the endpoint's own timeout.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import structlog

from core.reseed.client import (
    TableEndpoints,
    TableHTTPError,
    TableOperationError,
    TableTransportError,
)
from core.reseed.progress import (
    PhaseName,
    PhaseProgress,
    PhaseSummary,
    ProgressSink,
    ProgressUpdate,
    RunPhase,
    RunSummary,
    TableStatus,
)
from core.reseed.table_order import DELETION_ORDER, INSERTION_ORDER, find_duplicates

logger = structlog.get_logger(__name__)

# Per-phase wording shown to the operator.
_PHASE_TEXT: dict[PhaseName, dict[str, str]] = {
    PhaseName.DELETION: {
        "pending": "Waiting to delete...",
        "running": "Deleting records...",
        "completed": "Deleted {records} records",
        "failed": "Deletion failed",
    },
    PhaseName.INSERTION: {
        "pending": "Waiting to insert...",
        "running": "Inserting records...",
        "completed": "Inserted {records} records",
        "failed": "Insertion failed",
    },
}


def _check_unique(tables: Sequence[str], label: str) -> None:
    dupes = find_duplicates(tables)
    if dupes:
        raise ValueError(f"{label} lists tables more than once: {dupes}")


class TableResetPipeline:
    """Drives the deletion and insertion phases and owns their progress state.

    Args:
        endpoints: Delete/insert implementation (normally DataManagerClient).
        deletion_order: Tables to wipe, children before parents.
        insertion_order: Tables to reload, parents before children.
        source_folder: Seed bundle used when an insertion call names none.
        sink: Observer for per-table events and phase summaries.
        transition_delay: Seconds spent in deletion-complete before a full
            run moves on to inserting.
    """

    def __init__(
        self,
        endpoints: TableEndpoints,
        *,
        deletion_order: Sequence[str] = DELETION_ORDER,
        insertion_order: Sequence[str] = INSERTION_ORDER,
        source_folder: str = "demo-data",
        sink: ProgressSink | None = None,
        transition_delay: float = 1.0,
    ) -> None:
        _check_unique(deletion_order, "deletion order")
        _check_unique(insertion_order, "insertion order")
        missing = [t for t in deletion_order if t not in set(insertion_order)]
        if missing:
            raise ValueError(f"deleted tables missing from insertion order: {missing}")

        self._endpoints = endpoints
        self._deletion_order = tuple(deletion_order)
        self._insertion_order = tuple(insertion_order)
        self._source_folder = source_folder
        self._sink = sink or ProgressSink()
        self._transition_delay = transition_delay

        self._phase = RunPhase.IDLE
        self._in_progress = False
        self._deletion: dict[str, PhaseProgress] = {}
        self._insertion: dict[str, PhaseProgress] = {}

    # ── State ────────────────────────────────────────────────

    @property
    def phase(self) -> RunPhase:
        return self._phase

    @property
    def is_running(self) -> bool:
        return self._in_progress

    @property
    def deletion_progress(self) -> list[PhaseProgress]:
        return list(self._deletion.values())

    @property
    def insertion_progress(self) -> list[PhaseProgress]:
        return list(self._insertion.values())

    def snapshot(self) -> dict[str, Any]:
        """JSON-friendly copy of the current run state."""
        return {
            "phase": self._phase.value,
            "is_running": self._in_progress,
            "deletion_progress": [p.to_dict() for p in self._deletion.values()],
            "insertion_progress": [p.to_dict() for p in self._insertion.values()],
        }

    def reset(self) -> bool:
        """Return to idle and drop both progress arrays.

        Refused while a phase is running; returns whether the reset happened.
        """
        if self._in_progress:
            logger.warning("reset_ignored_while_running", phase=self._phase.value)
            return False
        self._phase = RunPhase.IDLE
        self._deletion = {}
        self._insertion = {}
        return True

    # ── Entry points ─────────────────────────────────────────

    async def run(self, source_folder: str | None = None) -> RunSummary | None:
        """Full run: delete everything, pause, reinsert from the seed bundle.

        Returns None when a run is already in progress.
        """
        if not self._claim("run"):
            return None
        try:
            deletion = await self._deletion_phase(self._deletion_order)
            # deletion-complete stays observable for the delay
            await asyncio.sleep(self._transition_delay)
            insertion = await self._insertion_phase(
                self._insertion_order, source_folder or self._source_folder
            )
        finally:
            self._in_progress = False
        return RunSummary(deletion=deletion, insertion=insertion)

    async def run_deletion_phase(self, tables: Sequence[str] | None = None) -> PhaseSummary | None:
        """Wipe each table in order. Returns None when already running."""
        if not self._claim("deletion"):
            return None
        try:
            return await self._deletion_phase(self._ordered(tables, self._deletion_order))
        finally:
            self._in_progress = False

    async def run_insertion_phase(
        self,
        tables: Sequence[str] | None = None,
        source_folder: str | None = None,
    ) -> PhaseSummary | None:
        """Reload each table in order from a seed bundle. Returns None when already running."""
        if not self._claim("insertion"):
            return None
        try:
            return await self._insertion_phase(
                self._ordered(tables, self._insertion_order),
                source_folder or self._source_folder,
            )
        finally:
            self._in_progress = False

    # ── Internals ────────────────────────────────────────────

    def _claim(self, what: str) -> bool:
        if self._in_progress:
            logger.info("start_ignored_already_running", requested=what, phase=self._phase.value)
            return False
        self._in_progress = True
        return True

    @staticmethod
    def _ordered(tables: Sequence[str] | None, default: tuple[str, ...]) -> tuple[str, ...]:
        if tables is None:
            return default
        _check_unique(tables, "table list")
        return tuple(tables)

    async def _deletion_phase(self, tables: tuple[str, ...]) -> PhaseSummary:
        self._phase = RunPhase.DELETING
        self._deletion = self._fresh(PhaseName.DELETION, tables)
        self._insertion = {}
        logger.info("deletion_phase_started", tables=len(tables))

        with structlog.contextvars.bound_contextvars(phase=PhaseName.DELETION.value):
            summary = await self._execute(
                PhaseName.DELETION,
                self._deletion,
                self._endpoints.delete_table,
                self._sink.on_deletion_progress,
            )
        self._phase = RunPhase.DELETION_COMPLETE
        return summary

    async def _insertion_phase(self, tables: tuple[str, ...], source_folder: str) -> PhaseSummary:
        self._phase = RunPhase.INSERTING
        self._insertion = self._fresh(PhaseName.INSERTION, tables)
        logger.info("insertion_phase_started", tables=len(tables), source_folder=source_folder)

        async def insert(table: str) -> int:
            return await self._endpoints.insert_table(table, source_folder)

        with structlog.contextvars.bound_contextvars(phase=PhaseName.INSERTION.value):
            summary = await self._execute(
                PhaseName.INSERTION,
                self._insertion,
                insert,
                self._sink.on_insertion_progress,
            )
        self._phase = RunPhase.COMPLETE
        return summary

    @staticmethod
    def _fresh(phase: PhaseName, tables: tuple[str, ...]) -> dict[str, PhaseProgress]:
        pending = _PHASE_TEXT[phase]["pending"]
        return {t: PhaseProgress(table=t, message=pending) for t in tables}

    async def _execute(
        self,
        phase: PhaseName,
        progress: dict[str, PhaseProgress],
        call: Callable[[str], Awaitable[int]],
        notify: Callable[[str, ProgressUpdate], None],
    ) -> PhaseSummary:
        text = _PHASE_TEXT[phase]

        for table in progress:
            self._emit(progress, notify, table, ProgressUpdate(TableStatus.RUNNING, text["running"]))

            try:
                records = await call(table)
            except TableHTTPError as exc:
                update = ProgressUpdate(
                    TableStatus.FAILED,
                    exc.error or text["failed"],
                    error=exc.error or text["failed"],
                )
            except TableTransportError as exc:
                update = ProgressUpdate(
                    TableStatus.FAILED, f"Network error: {exc.message}", error=exc.message
                )
            except TableOperationError as exc:
                update = ProgressUpdate(TableStatus.FAILED, exc.message, error=exc.message)
            except Exception as exc:
                logger.exception(f"table_{phase.value}_crashed", table=table)
                message = str(exc) or type(exc).__name__
                update = ProgressUpdate(
                    TableStatus.FAILED, f"Network error: {message}", error=message
                )
            else:
                update = ProgressUpdate(
                    TableStatus.COMPLETED,
                    text["completed"].format(records=records),
                    records_affected=records,
                )

            self._emit(progress, notify, table, update)

        summary = PhaseSummary.from_progress(phase, list(progress.values()))
        logger.info(f"{phase.value}_phase_finished", **summary.to_dict())
        try:
            self._sink.on_phase_complete(summary)
        except Exception:
            logger.exception("progress_sink_failed", phase=phase.value)
        return summary

    @staticmethod
    def _emit(
        progress: dict[str, PhaseProgress],
        notify: Callable[[str, ProgressUpdate], None],
        table: str,
        update: ProgressUpdate,
    ) -> None:
        progress[table].apply(update)
        try:
            notify(table, update)
        except Exception:
            logger.exception("progress_sink_failed", table=table, status=update.status.value)
