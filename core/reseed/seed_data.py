"""
Seed bundle reader for the insert-table endpoint.

A bundle is a folder of JSON arrays, one file per table, exported with
snake_case column names:

    <seed_data_root>/demo-data/users.json
    <seed_data_root>/demo-data/order_items.json
    <seed_data_root>/data-db/...

Rows are lightly coerced so asyncpg accepts them: timestamps become naive UTC
datetimes, nested JSON becomes text, empty ids are dropped so the
column default applies.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import orjson

from core.reseed.table_order import SEED_FILES

_TIMESTAMP_COLUMNS = frozenset({"email_verified", "expires", "DLU"})
_REQUIRED_TIMESTAMPS = frozenset({"created_at", "updated_at"})


class SeedDataError(ValueError):
    """The request names a bundle or table that cannot be read."""


def seed_file_path(root: str | Path, source_folder: str, table: str) -> Path:
    """Resolve the JSON file holding a table's rows in a bundle."""
    if not source_folder or source_folder in (".", "..") or any(
        sep in source_folder for sep in ("/", "\\")
    ):
        raise SeedDataError(f"Invalid source folder '{source_folder}'")
    filename = SEED_FILES.get(table)
    if filename is None:
        raise SeedDataError(f"No JSON file found for table '{table}'")
    return Path(root) / source_folder / filename


def load_seed_rows(path: Path) -> list[dict[str, Any]]:
    """Read a bundle file. Raises FileNotFoundError when it is absent."""
    data = orjson.loads(path.read_bytes())
    if not isinstance(data, list):
        raise SeedDataError("Invalid JSON data format")
    return [row for row in data if isinstance(row, dict)]


def _is_timestamp_column(key: str) -> bool:
    return key.endswith("_at") or key in _TIMESTAMP_COLUMNS


def _naive_utc(dt: datetime) -> datetime:
    # storefront timestamp columns are "without time zone" and hold UTC
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


def parse_timestamp(value: Any) -> datetime | None:
    """Best-effort timestamp parsing: ISO 8601, Postgres text, epoch millis.

    Results are naive UTC; offsets such as the export's trailing ``Z`` are
    folded into the value.

    >>> parse_timestamp("2024-03-01 10:15:00.123")
    datetime.datetime(2024, 3, 1, 10, 15, 0, 123000)
    >>> parse_timestamp("2024-03-01T12:15:00+02:00")
    datetime.datetime(2024, 3, 1, 10, 15)
    >>> parse_timestamp("not a date") is None
    True
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return _naive_utc(datetime.fromtimestamp(value / 1000, tz=UTC))
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            return _naive_utc(datetime.fromisoformat(value.strip()))
        except ValueError:
            return None
    return None


def coerce_value(key: str, value: Any) -> Any:
    if _is_timestamp_column(key):
        parsed = parse_timestamp(value)
        if parsed is None and key in _REQUIRED_TIMESTAMPS:
            return _naive_utc(datetime.now(UTC))
        return parsed
    if isinstance(value, (dict, list)):
        return orjson.dumps(value).decode()
    return value


def prepare_rows(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Coerce seed rows into values the database driver accepts."""
    prepared = []
    for row in rows:
        out = {key: coerce_value(key, value) for key, value in row.items()}
        if out.get("id") in ("", None):
            out.pop("id", None)
        prepared.append(out)
    return prepared
