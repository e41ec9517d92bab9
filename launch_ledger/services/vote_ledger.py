"""
Vote ledger: per-app counters and per-voter markers for the current launch.

Counters and markers live only in Redis. Each vote or unvote is a single
server-side script so the marker check and the counter change cannot
interleave with another caller's.
"""

from launch_ledger.config import Settings
from launch_ledger.infrastructure.observability.logging import get_logger
from launch_ledger.models.domain.launch_domain import validate_app_id
from launch_ledger.services.errors import (
    AlreadyVoted,
    AppNotEligible,
    NoActiveLaunch,
    NotVoted,
    VotingClosed,
)
from launch_ledger.services.infrastructure.redis_client import RedisCounterStore
from launch_ledger.services.launch_service import LaunchService
from launch_ledger.services.repair_service import RepairService

logger = get_logger(__name__)


class VoteLedger:
    def __init__(
        self,
        launch_service: LaunchService,
        repair_service: RepairService,
        counter_store: RedisCounterStore,
        settings: Settings,
    ):
        self.launch_service = launch_service
        self.repair_service = repair_service
        self.counter_store = counter_store
        self.settings = settings

    async def _admit(self, app_id: str) -> str:
        """
        Admission check for a new vote.

        Returns:
            Date of the launch the vote belongs to
        """
        try:
            validate_app_id(app_id)
        except ValueError as e:
            raise AppNotEligible(str(e)) from e

        status = await self.launch_service.get_launch_status()
        if not status.has_active_launch:
            raise NoActiveLaunch("No active launch - voting is disabled")
        if status.is_flushing_in_progress:
            raise VotingClosed(
                "Voting closed - launch is being finalized",
                launch_date=status.active_launch_date,
            )

        if await self.counter_store.is_eligible(app_id):
            return status.active_launch_date

        # An empty set while Postgres says a launch is active means Redis lost
        # state (expiry, failed create batch); heal it before answering.
        eligible = await self.counter_store.eligible_app_ids()
        if not eligible:
            logger.warning(
                "Eligibility set empty during active launch, attempting repair",
                launch_date=status.active_launch_date,
                app_id=app_id,
            )
            result = await self.repair_service.repair_active_launch()
            logger.info(
                "Vote path repair finished",
                success=result.success,
                repair_message=result.message,
            )
            if result.success and await self.counter_store.is_eligible(app_id):
                return status.active_launch_date

        raise AppNotEligible(
            f"App {app_id} is not part of today's launch",
            launch_date=status.active_launch_date,
        )

    async def vote(self, voter_id: str, app_id: str) -> int:
        """
        Record a vote from voter_id for app_id.

        Returns:
            The app's counter after the vote

        Raises:
            NoActiveLaunch, VotingClosed, AppNotEligible: Admission failed
            AlreadyVoted: The voter already voted for this app (carries count)
            CounterStoreError: Redis failure
        """
        launch_date = await self._admit(app_id)

        recorded, count = await self.counter_store.cast_vote(
            voter_id, app_id, self.settings.LAUNCH_KEY_TTL_SECONDS
        )
        if not recorded:
            logger.info("Duplicate vote rejected", app_id=app_id, launch_date=launch_date)
            raise AlreadyVoted("Already voted", count=count)

        logger.info("Vote recorded", app_id=app_id, launch_date=launch_date, count=count)
        return count

    async def unvote(self, voter_id: str, app_id: str) -> int:
        """
        Retract voter_id's vote for app_id.

        The counter is floored at zero. Only a launch mid-flush blocks an
        unvote; with no launch, or for an app outside it, there is simply no
        vote to retract.

        Raises:
            VotingClosed: The launch is being flushed
            NotVoted: The voter has no vote for this app (carries count)
            CounterStoreError: Redis failure
        """
        status = await self.launch_service.get_launch_status()
        if status.is_flushing_in_progress:
            raise VotingClosed(
                "Voting closed - launch is being finalized",
                launch_date=status.active_launch_date,
            )
        launch_date = status.active_launch_date

        try:
            validate_app_id(app_id)
        except ValueError:
            raise NotVoted("Not voted yet", count=0) from None

        retracted, count = await self.counter_store.retract_vote(
            voter_id, app_id, self.settings.LAUNCH_KEY_TTL_SECONDS
        )
        if not retracted:
            logger.info("Unvote without prior vote rejected", app_id=app_id, launch_date=launch_date)
            raise NotVoted("Not voted yet", count=count)

        logger.info("Vote retracted", app_id=app_id, launch_date=launch_date, count=count)
        return count

    async def get_current_vote_counts(self, app_ids: list[str]) -> dict[str, int]:
        return await self.counter_store.get_counts(app_ids)

    async def has_voted(self, voter_id: str, app_ids: list[str]) -> list[str]:
        return await self.counter_store.voted_app_ids(voter_id, app_ids)
