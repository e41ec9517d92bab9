"""
Tests for the Postgres repositories and retry helper with the pool mocked out.
"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from launch_ledger.db.helpers import DatabaseError, with_db_retry
from launch_ledger.models.domain.launch_domain import LaunchMetadata, LaunchStatus
from launch_ledger.repositories import app_catalog_repository, launch_repository
from launch_ledger.repositories.app_catalog_repository import AppCatalogRepository
from launch_ledger.repositories.launch_repository import LaunchRepository
from launch_ledger.services.errors import ConflictingActiveLaunch, LaunchAlreadyExists


class FakePool:
    def __init__(self):
        self.conn = MagicMock(name="connection")
        self.transactions = 0

    @asynccontextmanager
    async def connection(self):
        yield self.conn

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        yield self.conn


def _row(**overrides):
    row = {
        "id": "2b7e1d9c-0000-4000-8000-000000000001",
        "launch_date": "2024-05-01",
        "status": "active",
        "apps": ["appA", "appB"],
        "created_at": datetime.now(UTC),
        "flushed_at": None,
        "name": None,
        "created_by": None,
        "manual": None,
        "options": None,
    }
    row.update(overrides)
    return row


@pytest.mark.asyncio
async def test_with_db_retry_retries_recoverable_errors():
    attempts = {"count": 0}

    @with_db_retry(max_retries=2, base_delay=0)
    async def flaky():
        attempts["count"] += 1
        if attempts["count"] < 3:
            raise DatabaseError("connection reset", recoverable=True)
        return "ok"

    assert await flaky() == "ok"
    assert attempts["count"] == 3


@pytest.mark.asyncio
async def test_with_db_retry_does_not_retry_integrity_errors():
    attempts = {"count": 0}

    @with_db_retry(max_retries=3, base_delay=0)
    async def duplicate():
        attempts["count"] += 1
        raise DatabaseError("duplicate key", recoverable=False, constraint="launches_launch_date_key")

    with pytest.raises(DatabaseError):
        await duplicate()
    assert attempts["count"] == 1


@pytest.mark.asyncio
async def test_get_by_date_maps_row(monkeypatch):
    monkeypatch.setattr(launch_repository, "fetch_one", AsyncMock(return_value=_row()))
    repo = LaunchRepository(FakePool())

    launch = await repo.get_by_date("2024-05-01")

    assert launch.status == LaunchStatus.ACTIVE
    assert launch.apps == ["appA", "appB"]
    assert launch.id == "2b7e1d9c-0000-4000-8000-000000000001"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "constraint, expected",
    [
        ("launches_launch_date_key", LaunchAlreadyExists),
        ("launches_single_active_idx", ConflictingActiveLaunch),
    ],
)
async def test_insert_maps_unique_violations(monkeypatch, constraint, expected):
    error = DatabaseError("unique violation", recoverable=False, constraint=constraint)
    monkeypatch.setattr(launch_repository, "fetch_one", AsyncMock(side_effect=error))
    repo = LaunchRepository(FakePool())

    with pytest.raises(expected):
        await repo.insert_active("2024-05-01", ["appA"], LaunchMetadata())


@pytest.mark.asyncio
async def test_insert_propagates_other_database_errors(monkeypatch):
    error = DatabaseError("check violation", recoverable=False, constraint="launches_status_check")
    monkeypatch.setattr(launch_repository, "fetch_one", AsyncMock(side_effect=error))
    repo = LaunchRepository(FakePool())

    with pytest.raises(DatabaseError):
        await repo.insert_active("2024-05-01", ["appA"], LaunchMetadata())


@pytest.mark.asyncio
async def test_transition_status_is_conditional(monkeypatch):
    fetch_one = AsyncMock(return_value=None)
    monkeypatch.setattr(launch_repository, "fetch_one", fetch_one)
    repo = LaunchRepository(FakePool())

    result = await repo.transition_status("2024-05-01", (LaunchStatus.ACTIVE,), LaunchStatus.FLUSHING)

    assert result is None
    params = fetch_one.await_args.args[1]
    assert params == ("flushing", "flushing", "2024-05-01", ["active"])


@pytest.mark.asyncio
async def test_add_launch_votes_runs_in_one_transaction(monkeypatch):
    execute_many = AsyncMock(return_value=2)
    monkeypatch.setattr(app_catalog_repository, "execute_many", execute_many)
    pool = FakePool()
    repo = AppCatalogRepository(pool)

    updated = await repo.add_launch_votes("2024-05-01", {"appA": 0, "appB": 3, "appC": 1})

    assert updated == 2
    assert pool.transactions == 1
    params = execute_many.await_args.args[1]
    assert params == [
        (3, "2024-05-01", "appB", "2024-05-01"),
        (1, "2024-05-01", "appC", "2024-05-01"),
    ]
    assert "last_launched_date IS DISTINCT FROM %s" in execute_many.await_args.args[0]


@pytest.mark.asyncio
async def test_add_launch_votes_skips_when_nothing_to_add(monkeypatch):
    execute_many = AsyncMock()
    monkeypatch.setattr(app_catalog_repository, "execute_many", execute_many)
    pool = FakePool()

    assert await AppCatalogRepository(pool).add_launch_votes("2024-05-01", {"appA": 0}) == 0
    execute_many.assert_not_awaited()
    assert pool.transactions == 0
