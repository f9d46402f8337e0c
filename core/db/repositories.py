"""
Database repository layer for the data-manager endpoints.

The storefront tables are owned by the storefront application, not by
this service, so they are addressed with raw SQL via text() rather than
ORM models. Table names always come from core.reseed.table_order (never
from request bodies) before being quoted into a statement.

Callers own the transaction: repository methods execute, the endpoint
commits or rolls back.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import text

from core.db.engine import retry_on_disconnect
from core.reseed.table_order import KNOWN_TABLES, physical_table_name

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger(__name__)


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _sql_table(table: str) -> str:
    if table not in KNOWN_TABLES:
        raise ValueError(f"Table '{table}' not found")
    return _quote(physical_table_name(table))


class SeedTableRepo:
    """Bulk delete/insert against the storefront tables."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @retry_on_disconnect()
    async def delete_all(self, table: str) -> int:
        """Delete every row. Returns the number of rows removed."""
        result = await self.session.execute(text(f"DELETE FROM {_sql_table(table)}"))
        deleted = max(result.rowcount or 0, 0)
        logger.info("table_rows_deleted", table=table, records=deleted)
        return deleted

    @retry_on_disconnect()
    async def insert_rows(self, table: str, rows: list[dict[str, Any]]) -> int:
        """Insert rows, one executemany per distinct column set.

        Seed exports are not guaranteed to carry the same keys on every
        row, so rows are grouped by their column tuple.
        """
        if not rows:
            return 0

        sql_table = _sql_table(table)
        groups: dict[tuple[str, ...], list[dict[str, Any]]] = defaultdict(list)
        for row in rows:
            groups[tuple(row)].append(row)

        for columns, group in groups.items():
            # Bind names are positional so any column name is safe.
            column_sql = ", ".join(_quote(c) for c in columns)
            values_sql = ", ".join(f":p{i}" for i in range(len(columns)))
            params = [
                {f"p{i}": row[c] for i, c in enumerate(columns)}
                for row in group
            ]
            await self.session.execute(
                text(f"INSERT INTO {sql_table} ({column_sql}) VALUES ({values_sql})"),
                params,
            )

        logger.info("table_rows_inserted", table=table, records=len(rows), batches=len(groups))
        return len(rows)

    @retry_on_disconnect()
    async def update_settings(self, rows: list[dict[str, Any]]) -> int:
        """Update existing settings by key instead of inserting.

        The settings table holds live configuration; seed values overwrite
        matching keys and never add or remove rows. Returns the number of
        seed rows that carried a key.
        """
        updated = 0
        for row in rows:
            key = row.get("key")
            if not key:
                continue
            await self.session.execute(
                text(
                    'UPDATE "settings" SET value = :value, description = :description, '
                    "category = :category, is_public = :is_public, updated_at = now() "
                    "WHERE key = :key"
                ),
                {
                    "key": key,
                    "value": row.get("value"),
                    "description": row.get("description"),
                    "category": row.get("category"),
                    "is_public": row.get("is_public"),
                },
            )
            updated += 1
        logger.info("settings_updated", records=updated)
        return updated
