"""
Reseed orchestrator — command-line driver for the reset/reseed pipeline.

Runs against a live data-manager API (apps.api.main), one HTTP call per
table, printing each table's progress as it happens.

Usage:
    python -m apps.orchestrator.main                      # wipe + load demo-data
    python -m apps.orchestrator.main --source-folder data-db
    python -m apps.orchestrator.main --delete-only
"""

from __future__ import annotations

import asyncio
import sys

import click
import structlog

from core.config import get_settings
from core.config.logging import bind_run_context, new_run_id, setup_logging
from core.reseed.client import DataManagerClient
from core.reseed.pipeline import TableResetPipeline
from core.reseed.progress import (
    LoggingProgressSink,
    PhaseSummary,
    ProgressUpdate,
    TableStatus,
)

logger = structlog.get_logger(__name__)

_STATUS_MARKS = {
    TableStatus.COMPLETED: click.style("✓", fg="green"),
    TableStatus.FAILED: click.style("✗", fg="red"),
}


class ConsoleProgressSink(LoggingProgressSink):
    """Echoes terminal table states to stdout, and logs everything."""

    def on_deletion_progress(self, table: str, update: ProgressUpdate) -> None:
        super().on_deletion_progress(table, update)
        self._echo("delete", table, update)

    def on_insertion_progress(self, table: str, update: ProgressUpdate) -> None:
        super().on_insertion_progress(table, update)
        self._echo("insert", table, update)

    def on_phase_complete(self, summary: PhaseSummary) -> None:
        super().on_phase_complete(summary)
        line = (
            f"{summary.phase.value}: {summary.tables_completed}/{summary.tables_attempted} "
            f"tables, {summary.total_records} records"
        )
        if summary.failed_tables:
            line += f", failed: {', '.join(summary.failed_tables)}"
        click.echo(click.style(line, bold=True))

    @staticmethod
    def _echo(verb: str, table: str, update: ProgressUpdate) -> None:
        mark = _STATUS_MARKS.get(update.status)
        if mark is None:
            return
        click.echo(f"  {mark} {verb:<6} {table:<28} {update.message}")


async def run_reseed(
    *,
    base_url: str,
    source_folder: str,
    delay: float,
    delete: bool = True,
    insert: bool = True,
) -> bool:
    """Run the requested phases. Returns True when no table failed."""
    settings = get_settings()
    run_id = new_run_id()
    bind_run_context(run_id, source_folder=source_folder)

    logger.info(
        "reseed_starting",
        base_url=base_url,
        source_folder=source_folder,
        delete=delete,
        insert=insert,
    )

    async with DataManagerClient(
        base_url,
        api_key=settings.resolved_api_key,
        timeout=settings.request_timeout_seconds,
    ) as client:
        pipeline = TableResetPipeline(
            client,
            source_folder=source_folder,
            sink=ConsoleProgressSink(),
            transition_delay=delay,
        )

        if delete and insert:
            summary = await pipeline.run()
            summaries = [summary.deletion, summary.insertion] if summary else []
        elif delete:
            summaries = [s for s in [await pipeline.run_deletion_phase()] if s]
        else:
            summaries = [s for s in [await pipeline.run_insertion_phase()] if s]

    ok = all(s.succeeded for s in summaries)
    logger.info(
        "reseed_finished" if ok else "reseed_partial_failure",
        phase=pipeline.phase.value,
        failed_tables=[t for s in summaries for t in s.failed_tables],
    )
    return ok


@click.command()
@click.option(
    "--source-folder",
    default=None,
    help="Seed bundle to load. Defaults to DEMO_SOURCE_FOLDER.",
)
@click.option(
    "--base-url",
    default=None,
    help="Data-manager API base URL. Defaults to DATA_MANAGER_BASE_URL.",
)
@click.option(
    "--delay",
    type=float,
    default=None,
    help="Seconds between deletion-complete and insertion.",
)
@click.option("--delete-only", is_flag=True, help="Wipe the tables without reseeding.")
@click.option("--insert-only", is_flag=True, help="Reseed without wiping first.")
def cli(
    source_folder: str | None,
    base_url: str | None,
    delay: float | None,
    delete_only: bool,
    insert_only: bool,
) -> None:
    """Wipe the storefront tables and reload them from a seed bundle."""
    if delete_only and insert_only:
        raise click.UsageError("--delete-only and --insert-only are mutually exclusive")

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    try:
        ok = asyncio.run(
            run_reseed(
                base_url=base_url or settings.data_manager_base_url,
                source_folder=source_folder or settings.demo_source_folder,
                delay=settings.phase_transition_delay_seconds if delay is None else delay,
                delete=not insert_only,
                insert=not delete_only,
            )
        )
    except Exception:
        logger.exception("reseed_crashed")
        sys.exit(1)

    if not ok:
        click.echo(click.style("Finished with failures; see the tables marked ✗ above.", fg="yellow"))


if __name__ == "__main__":
    cli()
