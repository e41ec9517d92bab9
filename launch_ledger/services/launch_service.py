"""
Launch state machine.

Owns the Launch record and its status transitions. Creating a launch is a
two-store operation with no joint transaction: the durable insert is the
commit point, and the Redis eligibility batch that follows is a side effect.
If the batch fails the launch stays active in Postgres and the repair
service is the recovery path.

Service layer returns domain models only - API layer handles HTTP concerns.
"""

from launch_ledger.config import Settings
from launch_ledger.infrastructure.observability.logging import get_logger
from launch_ledger.models.domain.launch_domain import (
    Launch,
    LaunchMetadata,
    LaunchStatus,
    LaunchStatusView,
    normalize_app_ids,
    validate_launch_date,
)
from launch_ledger.repositories.launch_repository import LaunchRepository
from launch_ledger.services.errors import (
    ConflictingActiveLaunch,
    InvalidLaunchInput,
    LaunchAlreadyExists,
)
from launch_ledger.services.infrastructure.redis_client import (
    CounterStoreError,
    RedisCounterStore,
)

logger = get_logger(__name__)


class LaunchService:
    def __init__(
        self,
        launch_repository: LaunchRepository,
        counter_store: RedisCounterStore,
        settings: Settings,
    ):
        self.launches = launch_repository
        self.counter_store = counter_store
        self.settings = settings

    async def create_launch(
        self,
        launch_date: str,
        app_ids: list[str],
        metadata: LaunchMetadata | None = None,
    ) -> Launch:
        """
        Create the active launch for launch_date and open voting for app_ids.

        Args:
            launch_date: YYYY-MM-DD day the launch covers
            app_ids: Apps eligible for votes; duplicates are dropped
            metadata: Free-form metadata stored with the launch

        Returns:
            The created Launch (status=active)

        Raises:
            InvalidLaunchInput: Malformed date or app id
            LaunchAlreadyExists: A launch already exists for launch_date
            ConflictingActiveLaunch: Another launch is active
            CounterStoreError: Eligibility batch failed after the launch was
                committed; the launch needs repair
        """
        try:
            launch_date = validate_launch_date(launch_date)
            app_ids = normalize_app_ids(app_ids)
        except ValueError as e:
            raise InvalidLaunchInput(str(e), launch_date=launch_date) from e

        existing = await self.launches.get_by_date(launch_date)
        if existing:
            logger.info(
                "Launch already exists",
                launch_date=launch_date,
                status=existing.status.value,
            )
            raise LaunchAlreadyExists(
                f"Launch for {launch_date} already exists", launch_date=launch_date
            )

        active = await self.launches.get_active()
        if active:
            logger.warning(
                "Refusing to create launch while another is active",
                launch_date=launch_date,
                active_launch_date=active.date,
            )
            raise ConflictingActiveLaunch(
                f"Launch {active.date} is still active", launch_date=launch_date
            )

        launch = await self.launches.insert_active(
            launch_date, app_ids, metadata or LaunchMetadata()
        )

        try:
            await self.counter_store.replace_eligibility(
                launch.apps,
                self.settings.LAUNCH_KEY_TTL_SECONDS,
                preserve_counters=False,
            )
        except CounterStoreError:
            logger.error(
                "Launch committed but eligibility batch failed; repair required",
                launch_date=launch_date,
                launch_id=launch.id,
                apps_count=len(launch.apps),
            )
            raise

        logger.info(
            "Launch created",
            launch_date=launch_date,
            launch_id=launch.id,
            apps_count=len(launch.apps),
        )
        return launch

    async def get_active_launch(self) -> Launch | None:
        return await self.launches.get_active()

    async def get_launch_to_flush(self) -> Launch | None:
        """Launch left in flushing by an interrupted flush, else the active launch."""
        stuck = await self.launches.list_by_status(LaunchStatus.FLUSHING, limit=1)
        if stuck:
            return stuck[0]
        return await self.launches.get_active()

    async def get_launch_status(self) -> LaunchStatusView:
        """Admission view for voting: is a launch open, and is it mid-flush."""
        current = await self.launches.get_current()
        if current is None:
            return LaunchStatusView(has_active_launch=False, is_flushing_in_progress=False)

        return LaunchStatusView(
            has_active_launch=True,
            is_flushing_in_progress=current.status == LaunchStatus.FLUSHING,
            active_launch_date=current.date,
        )

    async def get_launch_by_date(self, launch_date: str) -> Launch | None:
        try:
            launch_date = validate_launch_date(launch_date)
        except ValueError as e:
            raise InvalidLaunchInput(str(e), launch_date=launch_date) from e
        return await self.launches.get_by_date(launch_date)

    async def list_flushed_launches(self, limit: int = 10) -> list[Launch]:
        """Flushed launches, newest launch date first."""
        return await self.launches.list_by_status(LaunchStatus.FLUSHED, max(1, limit))
