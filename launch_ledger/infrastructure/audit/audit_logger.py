"""
AuditLogger - Side-channel record of cron runs, revalidations and maintenance.

Every event goes to the structured log first and then to the audit_logs
table. Audit writes are never on the success path: a failed insert is
logged and reported as False, never raised.

Usage:
    await audit_logger.log(
        event_type="cron",
        name="daily-launch-cycle",
        route="/cron/daily-cycle",
        status="start",
        message="Cron started",
    )
"""

from datetime import UTC, datetime
from typing import Any, Literal

from psycopg.types.json import Jsonb

from launch_ledger.db.helpers import DatabaseError, execute_query, fetch_all
from launch_ledger.db.pool import DatabasePoolManager
from launch_ledger.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

AuditEventType = Literal["cron", "revalidation", "maintenance", "other"]
AuditStatus = Literal["success", "error", "info", "start", "end"]


class AuditLogger:
    """
    Centralized audit logging service.

    Writes to:
    1. Structured logs (stdout) - real-time monitoring
    2. Database (audit_logs table) - queryable history for the admin API
    """

    def __init__(self, db_pool: DatabasePoolManager):
        self.db_pool = db_pool

    async def log(
        self,
        event_type: AuditEventType,
        status: AuditStatus,
        *,
        name: str | None = None,
        path: str | None = None,
        route: str | None = None,
        request_id: str | None = None,
        message: str | None = None,
        payload: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> bool:
        """
        Log an audit event to structured logs and the database.

        Returns:
            True if persisted, False if the database write failed (never raises)
        """
        logger.info(
            "Audit event",
            audit_type=event_type,
            audit_name=name,
            audit_status=status,
            path=path,
            route=route,
            request_id=request_id,
            audit_message=message,
        )

        try:
            async with self.db_pool.connection() as conn:
                await execute_query(
                    """
                    INSERT INTO audit_logs (
                        type, name, path, route, request_id,
                        status, message, payload, error, created_at
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        event_type,
                        name,
                        path,
                        route,
                        request_id,
                        status,
                        message,
                        Jsonb(payload) if payload is not None else None,
                        Jsonb({"message": error}) if error else None,
                        datetime.now(UTC),
                    ),
                    connection=conn,
                )
            return True

        except Exception as e:
            # Never fail the caller because of audit logging
            logger.error(
                "Failed to write audit log to database",
                error=str(e),
                error_type=type(e).__name__,
                audit_type=event_type,
                audit_name=name,
                audit_status=status,
            )
            return False

    async def list_recent(
        self, event_type: AuditEventType | None = None, limit: int = 50
    ) -> list[dict[str, Any]]:
        """
        Most recent audit events, newest first.

        Raises:
            DatabaseError: If the query fails
        """
        query = """
            SELECT id, type, name, path, route, request_id, status,
                   message, payload, error, created_at
            FROM audit_logs
            WHERE (%s::text IS NULL OR type = %s)
            ORDER BY created_at DESC
            LIMIT %s
        """
        try:
            async with self.db_pool.connection() as conn:
                rows = await fetch_all(query, (event_type, event_type, limit), connection=conn)
        except DatabaseError:
            logger.error("Failed to list audit logs", audit_type=event_type, limit=limit)
            raise

        return [
            {
                **row,
                "id": str(row["id"]),
                "created_at": row["created_at"].isoformat() if row.get("created_at") else None,
            }
            for row in rows
        ]
