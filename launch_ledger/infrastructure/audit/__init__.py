"""
Audit logging infrastructure for cron runs, revalidations and maintenance actions.
"""

from launch_ledger.infrastructure.audit.audit_logger import AuditLogger

__all__ = ["AuditLogger"]
