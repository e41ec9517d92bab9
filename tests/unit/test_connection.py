"""
Tests for the store connections: Postgres pool manager and Redis counter store.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import redis.asyncio as redis

from launch_ledger.db.pool import DatabasePoolManager
from launch_ledger.services.infrastructure.redis_client import CounterStoreError, RedisCounterStore


def _pool_with_cursor(cursor, stats=None):
    """Mock AsyncConnectionPool whose connections hand out the given cursor."""
    conn = MagicMock()
    conn.cursor.return_value.__aenter__ = AsyncMock(return_value=cursor)
    conn.cursor.return_value.__aexit__ = AsyncMock(return_value=False)

    pool = MagicMock()
    pool.connection.return_value.__aenter__ = AsyncMock(return_value=conn)
    pool.connection.return_value.__aexit__ = AsyncMock(return_value=False)
    pool.get_stats.return_value = stats or {"pool_size": 10, "pool_available": 8}
    return pool


class TestDatabasePool:
    """Tests for the Postgres pool manager."""

    @pytest.mark.asyncio
    async def test_health_check_success(self, test_settings):
        cursor = MagicMock()
        cursor.execute = AsyncMock()
        cursor.fetchone = AsyncMock(return_value={"ok": 1})

        manager = DatabasePoolManager(test_settings)
        manager.pool = _pool_with_cursor(cursor)
        manager._initialized = True

        result = await manager.health_check()

        assert result["healthy"] is True
        assert result["pool_stats"]["pool_utilization_percent"] == 20.0
        cursor.execute.assert_awaited_once_with("SELECT 1 AS ok")

    @pytest.mark.asyncio
    async def test_health_check_query_failure(self, test_settings):
        cursor = MagicMock()
        cursor.execute = AsyncMock(side_effect=Exception("Query failed"))

        manager = DatabasePoolManager(test_settings)
        manager.pool = _pool_with_cursor(cursor)
        manager._initialized = True

        result = await manager.health_check()

        assert result["healthy"] is False
        assert result["error"] == "Query failed"

    @pytest.mark.asyncio
    async def test_health_check_before_initialize(self, test_settings):
        result = await DatabasePoolManager(test_settings).health_check()

        assert result == {"healthy": False, "error": "Pool not initialized", "service": "database_pool"}

    @pytest.mark.asyncio
    async def test_connection_requires_initialize(self, test_settings):
        manager = DatabasePoolManager(test_settings)

        with pytest.raises(RuntimeError):
            async with manager.connection():
                pass


class TestRedisConnection:
    """Tests for the Redis counter store connection lifecycle."""

    @pytest.mark.asyncio
    @patch("launch_ledger.services.infrastructure.redis_client.ConnectionPool.from_url")
    @patch("launch_ledger.services.infrastructure.redis_client.redis.Redis")
    async def test_initialize_success(self, mock_redis, mock_from_url, test_settings):
        mock_client = MagicMock()
        mock_client.ping = AsyncMock(return_value=True)
        mock_redis.return_value = mock_client

        store = RedisCounterStore(test_settings)
        await store.initialize()

        assert store._initialized is True
        assert mock_from_url.call_args.kwargs["decode_responses"] is True
        assert await store.ping() is True

    @pytest.mark.asyncio
    @patch("launch_ledger.services.infrastructure.redis_client.ConnectionPool.from_url")
    @patch("launch_ledger.services.infrastructure.redis_client.redis.Redis")
    async def test_initialize_failure(self, mock_redis, mock_from_url, test_settings):
        mock_client = MagicMock()
        mock_client.ping = AsyncMock(side_effect=redis.ConnectionError("Connection refused"))
        mock_redis.return_value = mock_client

        store = RedisCounterStore(test_settings)

        with pytest.raises(CounterStoreError):
            await store.initialize()
        assert store._initialized is False

    @pytest.mark.asyncio
    @patch("launch_ledger.services.infrastructure.redis_client.ConnectionPool.from_url")
    @patch("launch_ledger.services.infrastructure.redis_client.redis.Redis")
    async def test_ping_never_raises(self, mock_redis, mock_from_url, test_settings):
        mock_client = MagicMock()
        mock_client.ping = AsyncMock(side_effect=redis.ConnectionError("Network error"))
        mock_redis.return_value = mock_client

        assert await RedisCounterStore(test_settings).ping() is False
