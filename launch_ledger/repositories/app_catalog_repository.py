"""
Persistence layer for the app catalog.

The ledger only reads catalog rows and writes two fields: the all-time
total_votes counter and last_launched_date. Everything else about an app is
owned by the catalog CRUD and treated as read-only here.
"""

from launch_ledger.db.helpers import execute_many, fetch_all, with_db_retry
from launch_ledger.db.pool import DatabasePoolManager
from launch_ledger.infrastructure.observability.logging import get_logger
from launch_ledger.models.domain.catalog_domain import CatalogApp

logger = get_logger(__name__)


class AppCatalogRepository:
    def __init__(self, db_pool: DatabasePoolManager):
        self.db_pool = db_pool

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def app_ids_for_date(self, launch_date: str) -> list[str]:
        """Ids of catalog apps scheduled to launch on launch_date, oldest first."""
        query = """
            SELECT id
            FROM catalog_apps
            WHERE launch_date = %s
            ORDER BY created_at ASC, id ASC
        """
        async with self.db_pool.connection() as conn:
            rows = await fetch_all(query, (launch_date,), connection=conn)
        return [row["id"] for row in rows]

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def existing_ids(self, app_ids: list[str]) -> set[str]:
        if not app_ids:
            return set()
        query = "SELECT id FROM catalog_apps WHERE id = ANY(%s)"
        async with self.db_pool.connection() as conn:
            rows = await fetch_all(query, (list(app_ids),), connection=conn)
        return {row["id"] for row in rows}

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get_approved_apps(self, app_ids: list[str]) -> list[CatalogApp]:
        """
        Approved apps among app_ids, premium first, newest first within a tier.
        """
        if not app_ids:
            return []
        query = """
            SELECT id, name, tagline, website_url, logo_url,
                   is_premium, total_votes, created_at
            FROM catalog_apps
            WHERE id = ANY(%s) AND status = 'approved'
            ORDER BY is_premium DESC, created_at DESC
        """
        async with self.db_pool.connection() as conn:
            rows = await fetch_all(query, (list(app_ids),), connection=conn)
        return [CatalogApp(**row) for row in rows]

    async def add_launch_votes(self, launch_date: str, vote_counts: dict[str, int]) -> int:
        """
        Add each app's launch votes to its all-time total and stamp the launch date.

        All increments commit together or not at all. Zero counts are skipped.
        Rows already stamped with launch_date are left alone, so calling this
        again for the same launch adds nothing.

        Returns:
            Number of catalog rows updated
        """
        params = [
            (count, launch_date, app_id, launch_date)
            for app_id, count in vote_counts.items()
            if count > 0
        ]
        if not params:
            return 0

        query = """
            UPDATE catalog_apps
            SET total_votes = total_votes + %s,
                last_launched_date = %s
            WHERE id = %s
              AND last_launched_date IS DISTINCT FROM %s
        """
        async with self.db_pool.transaction() as conn:
            updated = await execute_many(query, params, connection=conn)

        if updated != len(params):
            # Missing apps, or apps already credited by an earlier attempt
            logger.warning(
                "Some launch apps not updated",
                launch_date=launch_date,
                expected=len(params),
                updated=updated,
            )

        logger.info(
            "Launch votes added to catalog totals",
            launch_date=launch_date,
            apps_updated=updated,
            total_votes_added=sum(count for count, _, _, _ in params),
        )
        return updated
