"""
Tests for the seed table repository.

The session is an AsyncMock; assertions look at the SQL handed to it.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.db.engine import is_disconnect, retry_on_disconnect
from core.db.repositories import SeedTableRepo


def _session(rowcount: int = 0) -> AsyncMock:
    session = AsyncMock()
    session.execute.return_value = MagicMock(rowcount=rowcount)
    return session


def _sql(call) -> str:
    return str(call.args[0])


class TestDeleteAll:
    def test_uses_physical_table_name(self) -> None:
        session = _session(rowcount=12)
        deleted = asyncio.run(SeedTableRepo(session).delete_all("orderItems"))

        assert deleted == 12
        assert _sql(session.execute.await_args) == 'DELETE FROM "order_items"'

    def test_legacy_table_names(self) -> None:
        session = _session()
        repo = SeedTableRepo(session)
        asyncio.run(repo.delete_all("apiIntegrations"))
        asyncio.run(repo.delete_all("paymentGatewayHealthChecks"))

        first, second = session.execute.await_args_list
        assert _sql(first) == 'DELETE FROM "api_integration"'
        assert _sql(second) == 'DELETE FROM "gateway_monitoring_logs"'

    def test_negative_rowcount_reported_as_zero(self) -> None:
        session = _session(rowcount=-1)
        assert asyncio.run(SeedTableRepo(session).delete_all("users")) == 0

    def test_unknown_table_never_reaches_sql(self) -> None:
        session = _session()
        with pytest.raises(ValueError, match="not found"):
            asyncio.run(SeedTableRepo(session).delete_all('users"; DROP TABLE x; --'))
        session.execute.assert_not_awaited()


class TestInsertRows:
    def test_groups_rows_by_column_set(self) -> None:
        session = _session()
        rows = [
            {"id": 1, "name": "a"},
            {"id": 2, "name": "b"},
            {"id": 3, "name": "c", "slug": "c"},
        ]

        count = asyncio.run(SeedTableRepo(session).insert_rows("brands", rows))

        assert count == 3
        assert session.execute.await_count == 2
        first, second = session.execute.await_args_list
        assert _sql(first) == 'INSERT INTO "brands" ("id", "name") VALUES (:p0, :p1)'
        assert first.args[1] == [{"p0": 1, "p1": "a"}, {"p0": 2, "p1": "b"}]
        assert '"slug"' in _sql(second)

    def test_empty_bundle_is_a_no_op(self) -> None:
        session = _session()
        assert asyncio.run(SeedTableRepo(session).insert_rows("brands", [])) == 0
        session.execute.assert_not_awaited()


class TestUpdateSettings:
    def test_updates_by_key_and_skips_keyless_rows(self) -> None:
        session = _session()
        rows = [{"key": "store_name", "value": "Demo"}, {"value": "orphan"}]

        count = asyncio.run(SeedTableRepo(session).update_settings(rows))

        assert count == 1
        params = session.execute.await_args.args[1]
        assert params["key"] == "store_name"
        assert params["value"] == "Demo"
        assert "WHERE key = :key" in _sql(session.execute.await_args)


class TestRetryOnDisconnect:
    def test_retries_transient_disconnect(self) -> None:
        calls = {"n": 0}

        @retry_on_disconnect(max_retries=2, base_delay=0)
        async def flaky() -> str:
            calls["n"] += 1
            if calls["n"] < 2:
                raise ConnectionResetError("reset by peer")
            return "ok"

        assert asyncio.run(flaky()) == "ok"
        assert calls["n"] == 2

    def test_sql_errors_are_not_retried(self) -> None:
        calls = {"n": 0}

        @retry_on_disconnect(max_retries=2, base_delay=0)
        async def broken() -> None:
            calls["n"] += 1
            raise ValueError("constraint violated")

        with pytest.raises(ValueError):
            asyncio.run(broken())
        assert calls["n"] == 1

    def test_is_disconnect(self) -> None:
        assert is_disconnect(BrokenPipeError())
        assert not is_disconnect(RuntimeError("nope"))
