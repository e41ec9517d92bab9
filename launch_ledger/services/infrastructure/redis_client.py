# services/infrastructure/redis_client.py
"""
Fast counter store adapter over Redis.

Wraps the handful of Redis primitives the ledger relies on (atomic
increment/decrement, expiry, set membership, MULTI/EXEC batches, and small
Lua scripts for compare-and-act steps) behind methods named after what they
mean for a launch. Every Redis failure surfaces as CounterStoreError.
"""

import secrets

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from launch_ledger.config import Settings
from launch_ledger.infrastructure.observability.logging import get_logger
from launch_ledger.models.domain.vote_keys import (
    ELIGIBILITY_SET_KEY,
    VoteCounterKey,
    VoterMarkerKey,
    lock_key,
)

logger = get_logger(__name__)


class CounterStoreError(Exception):
    """Raised when the fast counter store cannot complete an operation."""

    def __init__(self, message: str, operation: str = "unknown"):
        super().__init__(message)
        self.operation = operation


class RedisCounterStore:
    """Pooled Redis client exposing the launch ledger's counter operations."""

    # Returns {recorded (0 or 1), counter value}
    CAST_VOTE_LUA_SCRIPT = """
    local counter_key = KEYS[1]
    local marker_key = KEYS[2]
    local ttl = tonumber(ARGV[1])

    if redis.call('EXISTS', marker_key) == 1 then
        return {0, tonumber(redis.call('GET', counter_key) or '0')}
    end

    local count = redis.call('INCR', counter_key)
    if redis.call('TTL', counter_key) < 0 then
        redis.call('EXPIRE', counter_key, ttl)
    end
    redis.call('SET', marker_key, '1', 'EX', ttl)
    return {1, count}
    """

    # Returns {retracted (0 or 1), counter value}; the counter never drops below zero
    RETRACT_VOTE_LUA_SCRIPT = """
    local counter_key = KEYS[1]
    local marker_key = KEYS[2]
    local ttl = tonumber(ARGV[1])

    if redis.call('EXISTS', marker_key) == 0 then
        return {0, tonumber(redis.call('GET', counter_key) or '0')}
    end

    local count = redis.call('DECR', counter_key)
    if count < 0 then
        redis.call('SET', counter_key, '0', 'KEEPTTL')
        count = 0
    end
    if redis.call('TTL', counter_key) < 0 then
        redis.call('EXPIRE', counter_key, ttl)
    end
    redis.call('DEL', marker_key)
    return {1, count}
    """

    RELEASE_LOCK_LUA_SCRIPT = """
    if redis.call('GET', KEYS[1]) == ARGV[1] then
        return redis.call('DEL', KEYS[1])
    end
    return 0
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.pool = None
        self.client = None
        self._initialized = False

    async def initialize(self):
        """Initialize connection pool on startup"""
        if self._initialized:
            return

        try:
            logger.info("Attempting Redis connection", url_preview=self.settings.REDIS_URL[:20] + "...")

            self.pool = ConnectionPool.from_url(
                self.settings.REDIS_URL,
                max_connections=self.settings.REDIS_MAX_CONNECTIONS,
                retry_on_timeout=True,
                socket_connect_timeout=10,
                socket_timeout=10,
                health_check_interval=30,
                decode_responses=True,
            )

            self.client = redis.Redis(connection_pool=self.pool)

            result = await self.client.ping()
            logger.info("Redis ping successful", result=result)

            self._initialized = True
            logger.info(
                "Redis counter store initialized successfully",
                max_connections=self.settings.REDIS_MAX_CONNECTIONS,
            )

        except Exception as e:
            logger.error("Failed to initialize Redis counter store", error=str(e))
            self._initialized = False
            raise CounterStoreError("Redis initialization failed", operation="initialize") from e

    async def close(self):
        """Clean shutdown"""
        try:
            if self.client:
                await self.client.aclose()
            if self.pool:
                await self.pool.disconnect()
            self._initialized = False
            logger.info("Redis counter store closed")
        except Exception as e:
            logger.error("Error closing Redis client", error=str(e))

    async def _ensure_initialized(self):
        if not self._initialized:
            logger.warning("Redis not initialized, attempting to initialize")
            await self.initialize()

    def _fail(self, operation: str, error: Exception, **context) -> CounterStoreError:
        logger.error(
            "Redis operation failed",
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
            **context,
        )
        return CounterStoreError(f"Redis {operation} failed: {error}", operation=operation)

    async def ping(self) -> bool:
        """Test Redis connection"""
        try:
            await self._ensure_initialized()
            return bool(await self.client.ping())
        except Exception as e:
            logger.error("Redis ping failed", error=str(e))
            return False

    # =======================================================================
    # ELIGIBILITY SET
    # =======================================================================

    async def replace_eligibility(
        self, app_ids: list[str], ttl_s: int, *, preserve_counters: bool
    ) -> None:
        """
        Atomically rebuild the eligibility set and the per-app counters.

        One MULTI/EXEC batch: delete the set, add every app, expire the set,
        then give each app a counter of 0 with the same expiry. With
        preserve_counters the counter is only created when absent so votes
        already recorded survive.
        """
        counter_keys = [VoteCounterKey(app_id).key for app_id in app_ids]
        try:
            await self._ensure_initialized()
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.delete(ELIGIBILITY_SET_KEY)
                if app_ids:
                    pipe.sadd(ELIGIBILITY_SET_KEY, *app_ids)
                    pipe.expire(ELIGIBILITY_SET_KEY, ttl_s)
                    for key in counter_keys:
                        if preserve_counters:
                            pipe.set(key, 0, nx=True)
                            pipe.expire(key, ttl_s)
                        else:
                            pipe.set(key, 0, ex=ttl_s)
                await pipe.execute()
        except redis.RedisError as e:
            raise self._fail("replace_eligibility", e, apps_count=len(app_ids)) from e

        logger.debug(
            "Eligibility set replaced",
            apps_count=len(app_ids),
            preserve_counters=preserve_counters,
            ttl_s=ttl_s,
        )

    async def eligible_app_ids(self) -> set[str]:
        try:
            await self._ensure_initialized()
            return set(await self.client.smembers(ELIGIBILITY_SET_KEY))
        except redis.RedisError as e:
            raise self._fail("smembers", e) from e

    async def is_eligible(self, app_id: str) -> bool:
        try:
            await self._ensure_initialized()
            return bool(await self.client.sismember(ELIGIBILITY_SET_KEY, app_id))
        except redis.RedisError as e:
            raise self._fail("sismember", e, app_id=app_id) from e

    # =======================================================================
    # VOTES
    # =======================================================================

    async def cast_vote(self, voter_id: str, app_id: str, ttl_s: int) -> tuple[bool, int]:
        """
        Record one vote if the voter has no marker for the app.

        Returns:
            (recorded, count) where count is the counter after the call
        """
        counter = VoteCounterKey(app_id)
        marker = VoterMarkerKey(voter_id, app_id)
        try:
            await self._ensure_initialized()
            result = await self.client.eval(
                self.CAST_VOTE_LUA_SCRIPT,
                2,  # Number of keys
                counter.key,  # KEYS[1]
                marker.key,  # KEYS[2]
                ttl_s,  # ARGV[1]
            )
        except redis.RedisError as e:
            raise self._fail("cast_vote", e, app_id=app_id) from e
        return bool(result[0]), int(result[1])

    async def retract_vote(self, voter_id: str, app_id: str, ttl_s: int) -> tuple[bool, int]:
        """
        Remove one vote if the voter has a marker for the app.

        Returns:
            (retracted, count) where count is the counter after the call, floored at 0
        """
        counter = VoteCounterKey(app_id)
        marker = VoterMarkerKey(voter_id, app_id)
        try:
            await self._ensure_initialized()
            result = await self.client.eval(
                self.RETRACT_VOTE_LUA_SCRIPT,
                2,
                counter.key,
                marker.key,
                ttl_s,
            )
        except redis.RedisError as e:
            raise self._fail("retract_vote", e, app_id=app_id) from e
        return bool(result[0]), int(result[1])

    async def get_count(self, app_id: str) -> int:
        try:
            await self._ensure_initialized()
            value = await self.client.get(VoteCounterKey(app_id).key)
        except redis.RedisError as e:
            raise self._fail("get", e, app_id=app_id) from e
        return int(value) if value else 0

    async def get_counts(self, app_ids: list[str]) -> dict[str, int]:
        """Current counters for app_ids in one MGET; missing keys read as 0."""
        if not app_ids:
            return {}
        keys = [VoteCounterKey(app_id).key for app_id in app_ids]
        try:
            await self._ensure_initialized()
            values = await self.client.mget(keys)
        except redis.RedisError as e:
            raise self._fail("mget", e, keys_count=len(keys)) from e
        return {app_id: int(value) if value else 0 for app_id, value in zip(app_ids, values)}

    async def voted_app_ids(self, voter_id: str, app_ids: list[str]) -> list[str]:
        """Subset of app_ids the voter holds a marker for, in one MGET."""
        if not app_ids:
            return []
        keys = [VoterMarkerKey(voter_id, app_id).key for app_id in app_ids]
        try:
            await self._ensure_initialized()
            values = await self.client.mget(keys)
        except redis.RedisError as e:
            raise self._fail("mget", e, keys_count=len(keys)) from e
        return [app_id for app_id, value in zip(app_ids, values) if value is not None]

    # =======================================================================
    # ADVISORY LOCKS
    # =======================================================================

    async def acquire_lock(self, name: str, ttl_s: int) -> str | None:
        """SET NX EX; returns the owner token, or None when the lock is held."""
        token = secrets.token_hex(16)
        try:
            await self._ensure_initialized()
            acquired = await self.client.set(lock_key(name), token, nx=True, ex=ttl_s)
        except redis.RedisError as e:
            raise self._fail("acquire_lock", e, lock=name) from e
        return token if acquired else None

    async def release_lock(self, name: str, token: str) -> bool:
        """Delete the lock only if it is still owned by token."""
        try:
            await self._ensure_initialized()
            released = await self.client.eval(self.RELEASE_LOCK_LUA_SCRIPT, 1, lock_key(name), token)
        except redis.RedisError as e:
            raise self._fail("release_lock", e, lock=name) from e
        return bool(released)

    # =======================================================================
    # FLUSH CLEANUP
    # =======================================================================

    async def purge_launch(self, app_ids: list[str], scan_batch: int) -> dict[str, int]:
        """
        Delete every fast-store key belonging to a launch.

        Voter markers are found with SCAN (MATCH user:*:vote:<app>, COUNT
        scan_batch) per app. SCAN walks the whole keyspace, so the cost is
        roughly total_keys / scan_batch round trips per app; the collected
        keys, the counters and the eligibility set are then deleted in one
        MULTI/EXEC batch, DEL commands chunked by scan_batch.
        """
        marker_keys: set[str] = set()
        try:
            await self._ensure_initialized()
            for app_id in app_ids:
                pattern = VoterMarkerKey.pattern_for_app(app_id)
                async for key in self.client.scan_iter(match=pattern, count=scan_batch):
                    marker_keys.add(key)

            ordered_markers = sorted(marker_keys)
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.delete(ELIGIBILITY_SET_KEY)
                for app_id in app_ids:
                    pipe.delete(VoteCounterKey(app_id).key)
                for start in range(0, len(ordered_markers), scan_batch):
                    pipe.delete(*ordered_markers[start : start + scan_batch])
                await pipe.execute()
        except redis.RedisError as e:
            raise self._fail("purge_launch", e, apps_count=len(app_ids)) from e

        logger.info(
            "Launch keys purged",
            apps_count=len(app_ids),
            voter_markers_deleted=len(marker_keys),
        )
        return {"counters_deleted": len(app_ids), "voter_markers_deleted": len(marker_keys)}
