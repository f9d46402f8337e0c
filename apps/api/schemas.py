"""Pydantic schemas for the data-manager API.

Request and response bodies use the storefront's camelCase field names
on the wire; Python code uses snake_case.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class DeleteTableRequest(_CamelModel):
    """Request body for POST /api/data-manager/delete-table."""

    table_name: str = Field(default="", alias="tableName")


class InsertTableRequest(_CamelModel):
    """Request body for POST /api/data-manager/insert-table."""

    table_name: str = Field(default="", alias="tableName")
    source_folder: str | None = Field(
        default=None,
        alias="sourceFolder",
        description="Seed bundle to read from. Uses DEFAULT_SOURCE_FOLDER if omitted",
    )


class DeleteTableResponse(_CamelModel):
    success: bool = True
    message: str
    table_name: str = Field(alias="tableName")
    records_deleted: int = Field(alias="recordsDeleted")
    skipped: bool = False


class InsertTableResponse(_CamelModel):
    success: bool = True
    message: str
    table_name: str = Field(alias="tableName")
    records_inserted: int = Field(alias="recordsInserted")
    updated: bool = False


class DemoLoadRequest(_CamelModel):
    """Request body for POST /api/data-manager/demo/load."""

    source_folder: str | None = Field(default=None, alias="sourceFolder")


class DemoLoadResponse(BaseModel):
    status: str = "accepted"
    source_folder: str
    message: str


class DemoStatusResponse(BaseModel):
    """Snapshot of the demo load pipeline."""

    phase: str
    is_running: bool
    deletion_progress: list[dict[str, Any]]
    insertion_progress: list[dict[str, Any]]


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    status: str = "ok"
    version: str = "0.1.0"
