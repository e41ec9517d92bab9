"""
Translate service-layer failures into HTTP responses.

Domain errors map by kind; store failures always become 503 so a client
never mistakes an outage for a domain answer.
"""

from fastapi import status
from fastapi.responses import JSONResponse

from launch_ledger.db.helpers import DatabaseError
from launch_ledger.infrastructure.observability.logging import get_logger
from launch_ledger.services.errors import LaunchLedgerError, VoteConflict
from launch_ledger.services.infrastructure.redis_client import CounterStoreError

logger = get_logger(__name__)

STATUS_BY_KIND = {
    "conflict": status.HTTP_409_CONFLICT,
    "precondition": status.HTTP_400_BAD_REQUEST,
    "not_found": status.HTTP_404_NOT_FOUND,
}

STORE_ERRORS = (DatabaseError, CounterStoreError)


def domain_error_response(error: LaunchLedgerError) -> JSONResponse:
    body: dict = {"error": str(error), "code": error.code}
    if isinstance(error, VoteConflict):
        body["count"] = error.count
    return JSONResponse(
        status_code=STATUS_BY_KIND.get(error.error_kind, status.HTTP_400_BAD_REQUEST),
        content=body,
    )


def store_error_response(error: Exception, operation: str) -> JSONResponse:
    logger.error(
        "Store unavailable",
        operation=operation,
        error=str(error),
        error_type=type(error).__name__,
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "Service temporarily unavailable", "code": "STORE_UNAVAILABLE"},
    )
