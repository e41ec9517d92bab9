"""
Persistence layer for launches.

Launch status changes are conditional UPDATEs (WHERE status = ANY(...)) so a
transition only happens from the state the caller observed.
"""

from psycopg.types.json import Jsonb

from launch_ledger.db.helpers import DatabaseError, fetch_all, fetch_one, with_db_retry
from launch_ledger.db.pool import DatabasePoolManager
from launch_ledger.infrastructure.observability.logging import get_logger
from launch_ledger.models.domain.launch_domain import Launch, LaunchMetadata, LaunchStatus
from launch_ledger.services.errors import ConflictingActiveLaunch, LaunchAlreadyExists

logger = get_logger(__name__)

LAUNCH_DATE_CONSTRAINT = "launches_launch_date_key"
SINGLE_ACTIVE_CONSTRAINT = "launches_single_active_idx"


class LaunchRepository:
    """Durable store access for the launches table."""

    SELECT_COLUMNS = """
        id, launch_date, status, apps, created_at, flushed_at,
        name, created_by, manual, options
    """

    def __init__(self, db_pool: DatabasePoolManager):
        self.db_pool = db_pool

    @staticmethod
    def _row_to_launch(row: dict | None) -> Launch | None:
        if not row:
            return None

        return Launch(
            id=str(row["id"]),
            date=row["launch_date"],
            status=LaunchStatus(row["status"]),
            apps=list(row["apps"] or []),
            created_at=row["created_at"],
            flushed_at=row.get("flushed_at"),
            name=row.get("name"),
            created_by=row.get("created_by"),
            manual=row.get("manual"),
            options=row.get("options"),
        )

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get_by_date(self, launch_date: str) -> Launch | None:
        query = f"SELECT {self.SELECT_COLUMNS} FROM launches WHERE launch_date = %s"
        async with self.db_pool.connection() as conn:
            row = await fetch_one(query, (launch_date,), connection=conn)
        return self._row_to_launch(row)

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get_active(self) -> Launch | None:
        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM launches
            WHERE status = 'active'
            ORDER BY created_at DESC
            LIMIT 1
        """
        async with self.db_pool.connection() as conn:
            row = await fetch_one(query, connection=conn)
        return self._row_to_launch(row)

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get_current(self) -> Launch | None:
        """The launch currently owning the voting window: active or mid-flush."""
        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM launches
            WHERE status IN ('active', 'flushing')
            ORDER BY created_at DESC
            LIMIT 1
        """
        async with self.db_pool.connection() as conn:
            row = await fetch_one(query, connection=conn)
        return self._row_to_launch(row)

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def list_by_status(self, status: LaunchStatus, limit: int) -> list[Launch]:
        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM launches
            WHERE status = %s
            ORDER BY launch_date DESC
            LIMIT %s
        """
        async with self.db_pool.connection() as conn:
            rows = await fetch_all(query, (status.value, limit), connection=conn)
        return [self._row_to_launch(row) for row in rows]

    async def insert_active(
        self, launch_date: str, app_ids: list[str], metadata: LaunchMetadata
    ) -> Launch:
        """
        Insert a launch with status=active.

        The unique date key and the single-active partial index back up the
        service's check-then-insert.

        Raises:
            LaunchAlreadyExists: A row for launch_date already exists
            ConflictingActiveLaunch: Another row is already active
            DatabaseError: Any other durable store failure
        """
        query = f"""
            INSERT INTO launches (
                launch_date, status, apps, name, created_by, manual, options
            )
            VALUES (%s, 'active', %s, %s, %s, %s, %s)
            RETURNING {self.SELECT_COLUMNS}
        """
        params = (
            launch_date,
            app_ids,
            metadata.name,
            metadata.created_by,
            metadata.manual,
            Jsonb(metadata.options) if metadata.options is not None else None,
        )

        try:
            async with self.db_pool.connection() as conn:
                row = await fetch_one(query, params, connection=conn)
        except DatabaseError as e:
            if e.constraint == LAUNCH_DATE_CONSTRAINT:
                raise LaunchAlreadyExists(
                    f"Launch for {launch_date} already exists", launch_date=launch_date
                ) from e
            if e.constraint == SINGLE_ACTIVE_CONSTRAINT:
                raise ConflictingActiveLaunch(
                    "Another launch is already active", launch_date=launch_date
                ) from e
            raise

        launch = self._row_to_launch(row)
        logger.info(
            "Launch row inserted",
            launch_id=launch.id,
            launch_date=launch.date,
            apps_count=len(launch.apps),
        )
        return launch

    async def transition_status(
        self,
        launch_date: str,
        from_statuses: tuple[LaunchStatus, ...],
        to_status: LaunchStatus,
    ) -> Launch | None:
        """
        Move a launch to to_status only if it is currently in from_statuses.

        flushed_at is stamped when moving to FLUSHED.

        Returns:
            The updated launch, or None if no row matched
        """
        query = f"""
            UPDATE launches
            SET status = %s,
                flushed_at = CASE WHEN %s = 'flushed' THEN NOW() ELSE flushed_at END
            WHERE launch_date = %s AND status = ANY(%s)
            RETURNING {self.SELECT_COLUMNS}
        """
        params = (
            to_status.value,
            to_status.value,
            launch_date,
            [status.value for status in from_statuses],
        )
        async with self.db_pool.connection() as conn:
            row = await fetch_one(query, params, connection=conn)

        launch = self._row_to_launch(row)
        logger.info(
            "Launch status transition",
            launch_date=launch_date,
            from_statuses=[status.value for status in from_statuses],
            to_status=to_status.value,
            applied=launch is not None,
        )
        return launch
