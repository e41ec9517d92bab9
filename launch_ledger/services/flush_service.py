"""
Flush engine: reconcile a launch's Redis counters into durable vote totals.

Sequence for one launch date:
1. Load the launch (LaunchNotFound if missing, no-op if already flushed)
2. Take the advisory lock flush:<date> and move active -> flushing, which
   closes voting for the launch. The lock is the only exclusion: a launch
   left in flushing by an earlier failed attempt is picked up again
3. Read all counters and add every nonzero count to total_votes in one
   Postgres transaction. Apps already stamped with this launch date are
   skipped, so a retry after a partial flush adds nothing twice
4. Purge the launch's Redis keys (eligibility set, counters, voter markers)
5. Move flushing -> flushed

Any failure in steps 3-5 moves the launch back to active so voting resumes
and the flush can be retried, and the error propagates to the caller.
"""

from launch_ledger.config import Settings
from launch_ledger.infrastructure.observability.logging import get_logger
from launch_ledger.models.domain.launch_domain import (
    FlushResult,
    LaunchStatus,
    validate_launch_date,
)
from launch_ledger.repositories.app_catalog_repository import AppCatalogRepository
from launch_ledger.repositories.launch_repository import LaunchRepository
from launch_ledger.services.errors import (
    FlushInProgress,
    InvalidLaunchInput,
    LaunchNotActive,
    LaunchNotFound,
)
from launch_ledger.services.infrastructure.redis_client import RedisCounterStore

logger = get_logger(__name__)


class FlushService:
    def __init__(
        self,
        launch_repository: LaunchRepository,
        app_catalog: AppCatalogRepository,
        counter_store: RedisCounterStore,
        settings: Settings,
    ):
        self.launches = launch_repository
        self.app_catalog = app_catalog
        self.counter_store = counter_store
        self.settings = settings

    async def flush_launch(self, launch_date: str) -> FlushResult:
        """
        Flush the launch for launch_date.

        Raises:
            InvalidLaunchInput: Malformed date
            LaunchNotFound: No launch for launch_date
            LaunchNotActive: Launch exists but was never activated
            FlushInProgress: Another caller holds the flush lock for this launch
            DatabaseError, CounterStoreError: Store failure (launch reverted to active)
        """
        try:
            launch_date = validate_launch_date(launch_date)
        except ValueError as e:
            raise InvalidLaunchInput(str(e), launch_date=launch_date) from e

        launch = await self.launches.get_by_date(launch_date)
        if launch is None:
            raise LaunchNotFound(f"Launch not found for date: {launch_date}", launch_date=launch_date)

        if launch.is_flushed:
            logger.info("Launch already flushed", launch_date=launch_date)
            return FlushResult(success=True, message="Launch already flushed", changed=False)

        lock_name = f"flush:{launch_date}"
        lock_token = await self.counter_store.acquire_lock(
            lock_name, self.settings.FLUSH_LOCK_TTL_SECONDS
        )
        if lock_token is None:
            raise FlushInProgress(
                f"Flush already running for {launch_date}", launch_date=launch_date
            )

        try:
            return await self._flush_locked(launch_date)
        finally:
            await self.counter_store.release_lock(lock_name, lock_token)

    async def _flush_locked(self, launch_date: str) -> FlushResult:
        flushing = await self.launches.transition_status(
            launch_date, (LaunchStatus.ACTIVE, LaunchStatus.FLUSHING), LaunchStatus.FLUSHING
        )
        if flushing is None:
            # Status moved since the first read; report what it is now
            current = await self.launches.get_by_date(launch_date)
            if current is not None and current.is_flushed:
                return FlushResult(
                    success=True, message="Launch already flushed", changed=False
                )
            status = current.status.value if current else "missing"
            raise LaunchNotActive(
                f"Launch {launch_date} is {status}, not active", launch_date=launch_date
            )

        logger.info(
            "Flush started",
            launch_date=launch_date,
            apps_count=len(flushing.apps),
        )

        try:
            counts = await self.counter_store.get_counts(flushing.apps)
            vote_counts = {app_id: count for app_id, count in counts.items() if count > 0}

            await self.app_catalog.add_launch_votes(launch_date, vote_counts)

            purged = await self.counter_store.purge_launch(
                flushing.apps, self.settings.VOTER_MARKER_SCAN_BATCH
            )

            flushed = await self.launches.transition_status(
                launch_date, (LaunchStatus.FLUSHING,), LaunchStatus.FLUSHED
            )
            if flushed is None:
                raise RuntimeError(f"Launch {launch_date} left flushing state during flush")

        except Exception as e:
            logger.error(
                "Flush failed, reverting launch to active",
                launch_date=launch_date,
                error=str(e),
                error_type=type(e).__name__,
            )
            await self._revert_to_active(launch_date)
            raise

        logger.info(
            "Flush completed",
            launch_date=launch_date,
            apps_with_votes=len(vote_counts),
            total_votes=sum(vote_counts.values()),
            voter_markers_deleted=purged["voter_markers_deleted"],
        )
        return FlushResult(
            success=True,
            message=f"Flushed {len(vote_counts)} apps with votes",
            vote_counts=vote_counts,
        )

    async def _revert_to_active(self, launch_date: str) -> None:
        try:
            await self.launches.transition_status(
                launch_date, (LaunchStatus.FLUSHING,), LaunchStatus.ACTIVE
            )
        except Exception as e:
            # Caller re-raises the flush error, not this one
            logger.error(
                "Failed to revert launch to active; launch left flushing until the next flush",
                launch_date=launch_date,
                error=str(e),
            )
