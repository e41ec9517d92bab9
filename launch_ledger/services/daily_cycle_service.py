"""
Daily launch cycle: flush yesterday's launch, open today's.

Each step returns a StepOutcome instead of raising, so a failed flush never
prevents the create step and both outcomes are reported. The cycle is safe to
re-run for the same day: flush is a no-op for an already flushed launch and
an existing launch for today counts as success.
"""

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from launch_ledger.infrastructure.audit import AuditLogger
from launch_ledger.infrastructure.observability.logging import get_logger
from launch_ledger.models.domain.launch_domain import next_launch_date, today_launch_date
from launch_ledger.repositories.app_catalog_repository import AppCatalogRepository
from launch_ledger.services.errors import LaunchAlreadyExists
from launch_ledger.services.flush_service import FlushService
from launch_ledger.services.launch_service import LaunchService
from launch_ledger.services.revalidation_service import RevalidationService

logger = get_logger(__name__)

CYCLE_NAME = "daily-launch-cycle"


@dataclass(slots=True)
class StepOutcome:
    success: bool
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if data["error"] is None:
            data.pop("error")
        return data


@dataclass(slots=True)
class DailyCycleResult:
    today: str
    flush_previous: StepOutcome
    create_new: StepOutcome
    timestamp: datetime

    @property
    def cycle_complete(self) -> bool:
        return self.flush_previous.success and self.create_new.success

    @property
    def next_cycle(self) -> str:
        return next_launch_date(self.today)

    @property
    def message(self) -> str:
        if self.cycle_complete:
            return "Daily launch cycle completed successfully"
        return "Daily launch cycle completed with some errors"

    def results_dict(self) -> dict[str, Any]:
        return {
            "flushPrevious": self.flush_previous.to_dict(),
            "createNew": self.create_new.to_dict(),
            "cycleComplete": self.cycle_complete,
            "timestamp": self.timestamp.isoformat(),
        }


class DailyCycleService:
    def __init__(
        self,
        launch_service: LaunchService,
        flush_service: FlushService,
        app_catalog: AppCatalogRepository,
        revalidation_service: RevalidationService,
        audit_logger: AuditLogger,
    ):
        self.launch_service = launch_service
        self.flush_service = flush_service
        self.app_catalog = app_catalog
        self.revalidation = revalidation_service
        self.audit_logger = audit_logger

    async def run_daily_cycle(
        self,
        today: str | None = None,
        *,
        route: str | None = None,
        request_id: str | None = None,
    ) -> DailyCycleResult:
        """
        Run one cycle for today (UTC day when omitted).

        Never raises; inspect cycle_complete on the result.
        """
        today = today or today_launch_date()
        logger.info("Daily cycle started", today=today, route=route)
        await self.audit_logger.log(
            "cron",
            "start",
            name=CYCLE_NAME,
            route=route,
            request_id=request_id,
            message="Cron started",
        )

        flush_outcome = await self._flush_previous(today, route)
        create_outcome = await self._create_today(today, route)

        result = DailyCycleResult(
            today=today,
            flush_previous=flush_outcome,
            create_new=create_outcome,
            timestamp=datetime.now(UTC),
        )

        log = logger.info if result.cycle_complete else logger.error
        log(
            "Daily cycle finished",
            today=today,
            cycle_complete=result.cycle_complete,
            flush_success=flush_outcome.success,
            create_success=create_outcome.success,
        )
        await self.audit_logger.log(
            "cron",
            "success" if result.cycle_complete else "error",
            name=CYCLE_NAME,
            route=route,
            request_id=request_id,
            message=result.message,
            payload=result.results_dict(),
        )
        return result

    async def _flush_previous(self, today: str, route: str | None) -> StepOutcome:
        try:
            active = await self.launch_service.get_launch_to_flush()
            if active is None:
                return StepOutcome(success=True, message="No active launch to flush")

            if active.date == today:
                return StepOutcome(
                    success=True,
                    message="Active launch is today's launch - not flushing",
                    details={"launchDate": active.date},
                )

            flush = await self.flush_service.flush_launch(active.date)

        except Exception as e:
            logger.error(
                "Flush step failed",
                today=today,
                error=str(e),
                error_type=type(e).__name__,
            )
            return StepOutcome(
                success=False,
                message="Failed to flush previous launch",
                error=str(e),
            )

        if flush.changed:
            await self.revalidation.revalidate(route=route)

        return StepOutcome(
            success=flush.success,
            message=flush.message,
            details={"launchDate": active.date, "voteCounts": flush.vote_counts},
        )

    async def _create_today(self, today: str, route: str | None) -> StepOutcome:
        try:
            app_ids = await self.app_catalog.app_ids_for_date(today)
            if not app_ids:
                return StepOutcome(
                    success=True,
                    message="No apps scheduled for launch today",
                    details={"date": today, "apps": []},
                )

            try:
                launch = await self.launch_service.create_launch(today, app_ids)
            except LaunchAlreadyExists:
                return StepOutcome(
                    success=True,
                    message="Launch already exists for today",
                    details={"date": today, "apps": app_ids},
                )

        except Exception as e:
            logger.error(
                "Create step failed",
                today=today,
                error=str(e),
                error_type=type(e).__name__,
            )
            return StepOutcome(
                success=False,
                message="Failed to create new launch",
                error=str(e),
            )

        await self.revalidation.revalidate(route=route)

        return StepOutcome(
            success=True,
            message="New launch created successfully",
            details={"launch": launch.summary(), "apps": launch.apps},
        )
