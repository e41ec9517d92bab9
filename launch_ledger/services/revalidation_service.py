"""
Cache invalidation notifications for the public launch page.

Fire-and-forget: failures are logged and audited, never raised.
"""

import httpx

from launch_ledger.config import Settings
from launch_ledger.infrastructure.audit import AuditLogger
from launch_ledger.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class RevalidationService:
    def __init__(self, settings: Settings, audit_logger: AuditLogger):
        self.settings = settings
        self.audit_logger = audit_logger

    async def revalidate(self, path: str | None = None, *, route: str | None = None) -> bool:
        """
        Ask the public site to revalidate path.

        Args:
            path: Page path to revalidate (defaults to REVALIDATION_PATH)
            route: Route that triggered the call, recorded in the audit log

        Returns:
            True if the site acknowledged the request
        """
        path = path or self.settings.REVALIDATION_PATH
        url = self.settings.revalidation_url()

        try:
            async with httpx.AsyncClient(timeout=self.settings.REVALIDATION_TIMEOUT) as client:
                response = await client.post(url, json={"path": path})
        except httpx.HTTPError as e:
            logger.warning("Revalidation request error", url=url, path=path, error=str(e))
            await self.audit_logger.log(
                "revalidation",
                "error",
                name="external-revalidate",
                path=path,
                route=route,
                message="External revalidation exception",
                error=str(e),
            )
            return False

        if response.is_success:
            logger.info("Revalidation succeeded", path=path, status_code=response.status_code)
            await self.audit_logger.log(
                "revalidation",
                "success",
                name="external-revalidate",
                path=path,
                route=route,
                message="External revalidation succeeded",
            )
            return True

        logger.warning(
            "Revalidation rejected",
            path=path,
            status_code=response.status_code,
            body_preview=response.text[:200],
        )
        await self.audit_logger.log(
            "revalidation",
            "error",
            name="external-revalidate",
            path=path,
            route=route,
            message="External revalidation failed",
            payload={"status": response.status_code, "body": response.text[:500]},
        )
        return False
