"""
Data-manager API — FastAPI application.

Endpoints:
    GET  /health                              Unauthenticated liveness check
    POST /api/data-manager/delete-table       Delete every row of one table
    POST /api/data-manager/insert-table       Load one table from a seed bundle
    POST /api/data-manager/demo/load          Start a full wipe + demo reseed (background)
    GET  /api/data-manager/demo/status        Per-table progress of the demo load
    POST /api/data-manager/demo/reset         Clear demo load progress

All /api/data-manager routes require the X-Api-Key header.
"""

from __future__ import annotations

import asyncio
import secrets
import sys
from contextlib import asynccontextmanager
from typing import Any

import click
import orjson
import structlog
import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader

from core.config import get_settings
from core.config.logging import bind_run_context, new_run_id, setup_logging
from core.db.engine import get_async_session
from core.db.repositories import SeedTableRepo
from core.reseed.client import DataManagerClient
from core.reseed.pipeline import TableResetPipeline
from core.reseed.progress import LoggingProgressSink
from core.reseed.seed_data import SeedDataError, load_seed_rows, prepare_rows, seed_file_path
from core.reseed.table_order import KNOWN_TABLES, PROTECTED_TABLES, SEED_FILES

from .schemas import (
    DeleteTableRequest,
    DeleteTableResponse,
    DemoLoadRequest,
    DemoLoadResponse,
    DemoStatusResponse,
    HealthResponse,
    InsertTableRequest,
    InsertTableResponse,
)

logger = structlog.get_logger(__name__)

_API_KEY_HEADER = APIKeyHeader(name="X-Api-Key", auto_error=False)


# ── Auth dependency ──────────────────────────────────────────


async def verify_api_key(api_key: str | None = Depends(_API_KEY_HEADER)) -> str:
    """Validate API key using constant-time comparison (timing-attack safe)."""
    expected = get_settings().resolved_api_key

    if not expected:
        raise HTTPException(
            status_code=500,
            detail="DATA_MANAGER_API_KEY not configured on server",
        )

    if api_key is None or not secrets.compare_digest(api_key, expected):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")

    return api_key


# ── Lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate settings and hold one demo load pipeline for the app's lifetime."""
    settings = get_settings()
    if settings.is_production and not settings.resolved_api_key:
        logger.critical("DATA_MANAGER_API_KEY must be set in production")
        sys.exit(1)

    async with DataManagerClient(
        settings.data_manager_base_url,
        api_key=settings.resolved_api_key,
        timeout=settings.request_timeout_seconds,
    ) as client:
        app.state.pipeline = TableResetPipeline(
            client,
            source_folder=settings.demo_source_folder,
            sink=LoggingProgressSink(),
            transition_delay=settings.phase_transition_delay_seconds,
        )
        app.state.demo_task = None
        logger.info("api_started", port=settings.port)
        yield

        task: asyncio.Task[None] | None = app.state.demo_task
        if task is not None and not task.done():
            logger.warning("api_shutdown_during_demo_load", phase=app.state.pipeline.phase.value)
            task.cancel()
    logger.info("api_shutdown")


# ── App ──────────────────────────────────────────────────────

app = FastAPI(
    title="Storefront Data Manager API",
    version="0.1.0",
    lifespan=lifespan,
)


# ── Helpers ──────────────────────────────────────────────────


def _error(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, **extra},
    )


def _demo_busy(app_: FastAPI) -> bool:
    task: asyncio.Task[None] | None = app_.state.demo_task
    return app_.state.pipeline.is_running or (task is not None and not task.done())


async def _run_demo_load(pipeline: TableResetPipeline, source_folder: str, run_id: str) -> None:
    bind_run_context(run_id, source_folder=source_folder)
    try:
        summary = await pipeline.run(source_folder)
    except Exception:
        logger.exception("demo_load_crashed")
        return

    if summary is None:
        return
    if summary.succeeded:
        logger.info(
            "demo_load_completed",
            records_deleted=summary.deletion.total_records,
            records_inserted=summary.insertion.total_records,
        )
    else:
        logger.warning(
            "demo_load_partial_failure",
            deletion_failed=list(summary.deletion.failed_tables),
            insertion_failed=list(summary.insertion.failed_tables),
        )


# ── Endpoints ────────────────────────────────────────────────


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Unauthenticated health check."""
    return HealthResponse()


@app.post(
    "/api/data-manager/delete-table",
    response_model=DeleteTableResponse,
    dependencies=[Depends(verify_api_key)],
)
async def delete_table(body: DeleteTableRequest) -> DeleteTableResponse | JSONResponse:
    """Delete all rows from one storefront table."""
    table = body.table_name
    if not table:
        return _error(400, "Table name is required")

    if table in PROTECTED_TABLES:
        return DeleteTableResponse(
            message=f"{table} table skipped - configuration data preserved",
            table_name=table,
            records_deleted=0,
            skipped=True,
        )

    if table not in KNOWN_TABLES:
        return _error(400, f"Table '{table}' not found")

    session_factory = get_async_session()
    try:
        async with session_factory() as session:
            deleted = await SeedTableRepo(session).delete_all(table)
            await session.commit()
    except Exception as exc:
        logger.exception("delete_table_failed", table=table)
        return _error(500, "Failed to delete table", details=str(exc))

    return DeleteTableResponse(
        message=f"Successfully deleted {deleted} records from {table}",
        table_name=table,
        records_deleted=deleted,
    )


@app.post(
    "/api/data-manager/insert-table",
    response_model=InsertTableResponse,
    dependencies=[Depends(verify_api_key)],
)
async def insert_table(body: InsertTableRequest) -> InsertTableResponse | JSONResponse:
    """Load one storefront table from a seed bundle."""
    settings = get_settings()
    table = body.table_name
    if not table:
        return _error(400, "Table name is required")
    if table not in KNOWN_TABLES:
        return _error(400, f"Table '{table}' not found")

    source_folder = body.source_folder or settings.default_source_folder
    try:
        path = seed_file_path(settings.seed_data_root, source_folder, table)
        rows = prepare_rows(await asyncio.to_thread(load_seed_rows, path))
    except FileNotFoundError:
        return _error(404, f"Seed file not found: {source_folder}/{SEED_FILES[table]}")
    except SeedDataError as exc:
        return _error(400, str(exc))
    except orjson.JSONDecodeError as exc:
        return _error(400, "Invalid JSON data format", details=str(exc))

    logger.info("insert_table_reading", table=table, source_folder=source_folder, rows=len(rows))

    session_factory = get_async_session()
    try:
        async with session_factory() as session:
            repo = SeedTableRepo(session)
            if table == "settings":
                count = await repo.update_settings(rows)
            else:
                count = await repo.insert_rows(table, rows)
            await session.commit()
    except Exception as exc:
        logger.exception("insert_table_failed", table=table, source_folder=source_folder)
        return _error(500, f"Failed to insert into table {table}", details=str(exc))

    if table == "settings":
        return InsertTableResponse(
            message=f"Successfully updated {count} settings records",
            table_name=table,
            records_inserted=count,
            updated=True,
        )
    return InsertTableResponse(
        message=f"Successfully inserted {count} records into {table}",
        table_name=table,
        records_inserted=count,
    )


@app.post(
    "/api/data-manager/demo/load",
    response_model=DemoLoadResponse,
    status_code=202,
    dependencies=[Depends(verify_api_key)],
)
async def load_demo_data(request: Request, body: DemoLoadRequest | None = None) -> DemoLoadResponse:
    """Start a full wipe and demo reseed in the background."""
    if _demo_busy(request.app):
        raise HTTPException(status_code=409, detail="A demo data load is already in progress")

    source_folder = (body.source_folder if body else None) or get_settings().demo_source_folder
    run_id = new_run_id()
    request.app.state.demo_task = asyncio.create_task(
        _run_demo_load(request.app.state.pipeline, source_folder, run_id)
    )
    logger.info("demo_load_triggered", run_id=run_id, source_folder=source_folder)

    return DemoLoadResponse(
        source_folder=source_folder,
        message=f"Demo data load started from {source_folder} ({run_id})",
    )


@app.get(
    "/api/data-manager/demo/status",
    response_model=DemoStatusResponse,
    dependencies=[Depends(verify_api_key)],
)
async def demo_status(request: Request) -> DemoStatusResponse:
    """Per-table progress of the current or last demo load."""
    return DemoStatusResponse(**request.app.state.pipeline.snapshot())


@app.post(
    "/api/data-manager/demo/reset",
    response_model=DemoStatusResponse,
    dependencies=[Depends(verify_api_key)],
)
async def demo_reset(request: Request) -> DemoStatusResponse:
    """Clear demo load progress once a run has finished."""
    pipeline: TableResetPipeline = request.app.state.pipeline
    if _demo_busy(request.app) or not pipeline.reset():
        raise HTTPException(status_code=409, detail="Cannot reset while a demo data load is running")
    return DemoStatusResponse(**pipeline.snapshot())


# ── CLI ──────────────────────────────────────────────────────


@click.command()
@click.option("--host", default="0.0.0.0", help="Bind host")
@click.option("--port", default=None, type=int, help="Bind port (defaults to PORT env)")
def cli(host: str, port: int | None) -> None:
    """Start the data-manager API server."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    port = port or settings.port
    uvicorn.run(
        "apps.api.main:app",
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    cli()
