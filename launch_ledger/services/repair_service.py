"""
Repair engine: resynchronize Redis eligibility from the durable launch record.

This is the only path that copies state from Postgres into Redis. It is
non-destructive: counters that already exist keep their values, so votes
recorded before the divergence are never lost. Safe to run at any time and
any number of times.
"""

from launch_ledger.config import Settings
from launch_ledger.db.helpers import DatabaseError
from launch_ledger.infrastructure.observability.logging import get_logger
from launch_ledger.models.domain.launch_domain import RepairResult
from launch_ledger.repositories.launch_repository import LaunchRepository
from launch_ledger.services.infrastructure.redis_client import (
    CounterStoreError,
    RedisCounterStore,
)

logger = get_logger(__name__)


class RepairService:
    def __init__(
        self,
        launch_repository: LaunchRepository,
        counter_store: RedisCounterStore,
        settings: Settings,
    ):
        self.launches = launch_repository
        self.counter_store = counter_store
        self.settings = settings

    async def repair_active_launch(self) -> RepairResult:
        """
        Rebuild the eligibility set from the active launch if the two differ.

        Store failures are reported as success=False rather than raised; the
        vote path calls this best-effort.
        """
        try:
            launch = await self.launches.get_active()
            if launch is None:
                return RepairResult(
                    success=True,
                    message="No active launch found - nothing to repair",
                )

            durable_apps = set(launch.apps)
            before = await self.counter_store.eligible_app_ids()

            if before == durable_apps:
                return RepairResult(
                    success=True,
                    message="Eligibility already matches the active launch",
                    details={
                        "launch_date": launch.date,
                        "apps_count": len(durable_apps),
                    },
                )

            logger.warning(
                "Eligibility diverged from active launch, repairing",
                launch_date=launch.date,
                durable_count=len(durable_apps),
                eligible_count=len(before),
                missing=sorted(durable_apps - before)[:20],
                unexpected=sorted(before - durable_apps)[:20],
            )

            await self.counter_store.replace_eligibility(
                launch.apps,
                self.settings.LAUNCH_KEY_TTL_SECONDS,
                preserve_counters=True,
            )
            after = await self.counter_store.eligible_app_ids()

        except (DatabaseError, CounterStoreError) as e:
            logger.error("Eligibility repair failed", error=str(e), error_type=type(e).__name__)
            return RepairResult(success=False, message=f"Repair failed: {e}")

        logger.info(
            "Eligibility repaired",
            launch_date=launch.date,
            before_count=len(before),
            after_count=len(after),
        )
        return RepairResult(
            success=True,
            message=f"Restored {len(after)} eligible apps for launch {launch.date}",
            details={
                "launch_date": launch.date,
                "before_count": len(before),
                "after_count": len(after),
                "apps": launch.apps,
            },
        )
