"""
admin.py
--------
Purpose:
    Operator endpoints for the launch ledger. Every route requires an admin JWT.

Usage:
    1. GET /admin/launches?limit= - Flushed launches, newest first
    2. POST /admin/launches/{date}/flush - Flush one launch now
    3. POST /admin/repair - Resync Redis eligibility from the active launch
    4. POST /admin/daily-cycle - Run the daily cycle immediately
    5. GET /admin/audit?type=&limit= - Recent audit events
"""

from typing import Literal

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from launch_ledger.auth.verify import admin_dependency
from launch_ledger.infrastructure.observability.logging import get_logger
from launch_ledger.models.api.launch_response import (
    AuditListResponse,
    DailyCycleResponse,
    FlushLaunchResponse,
    LaunchListResponse,
    LaunchSummaryResponse,
    RepairResponse,
)
from launch_ledger.routes.errors import STORE_ERRORS, domain_error_response, store_error_response
from launch_ledger.services.container import ServiceContainer, get_services
from launch_ledger.services.errors import LaunchLedgerError

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(admin_dependency)])
logger = get_logger(__name__)


@router.get("/launches", response_model=LaunchListResponse)
async def list_flushed_launches(
    limit: int = Query(default=10, ge=1, le=100),
    services: ServiceContainer = Depends(get_services),
):
    try:
        launches = await services.launch_service.list_flushed_launches(limit)
    except STORE_ERRORS as e:
        return store_error_response(e, "list_flushed_launches")
    return LaunchListResponse(launches=[LaunchSummaryResponse.from_launch(launch) for launch in launches])


@router.post("/launches/{launch_date}/flush", response_model=FlushLaunchResponse)
async def flush_launch(
    launch_date: str,
    request: Request,
    services: ServiceContainer = Depends(get_services),
):
    """
    Flush a launch's votes into durable totals and close it.

    Raises:
        400: Launch is not active, or malformed date
        404: No launch for the date
        409: Flush already running
        503: Store unavailable (launch reverted to active)
    """
    try:
        result = await services.flush_service.flush_launch(launch_date)
        launch = await services.launch_service.get_launch_by_date(launch_date)
    except LaunchLedgerError as e:
        return domain_error_response(e)
    except STORE_ERRORS as e:
        return store_error_response(e, "flush_launch")

    if result.changed:
        await services.revalidation_service.revalidate(route=request.url.path)

    return FlushLaunchResponse(
        success=result.success,
        message=result.message,
        vote_counts=result.vote_counts,
        launch=LaunchSummaryResponse.from_launch(launch) if launch else None,
    )


@router.post("/repair", response_model=RepairResponse)
async def repair_eligibility(
    request: Request,
    services: ServiceContainer = Depends(get_services),
):
    result = await services.repair_service.repair_active_launch()

    await services.audit_logger.log(
        "maintenance",
        "success" if result.success else "error",
        name="repair-eligibility",
        route=request.url.path,
        request_id=getattr(request.state, "request_id", None),
        message=result.message,
        payload=result.details,
    )

    body = RepairResponse(success=result.success, message=result.message, details=result.details)
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(by_alias=True),
        )
    return body


@router.post("/daily-cycle", response_model=DailyCycleResponse)
async def trigger_daily_cycle(
    request: Request,
    services: ServiceContainer = Depends(get_services),
):
    """Manual trigger of the same cycle the scheduler runs."""
    result = await services.daily_cycle_service.run_daily_cycle(
        route=request.url.path,
        request_id=getattr(request.state, "request_id", None),
    )
    body = DailyCycleResponse(
        success=result.cycle_complete,
        message=result.message,
        results=result.results_dict(),
        next_cycle=result.next_cycle,
    )
    if not result.cycle_complete:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(by_alias=True),
        )
    return body


@router.get("/audit", response_model=AuditListResponse)
async def list_audit_events(
    event_type: Literal["cron", "revalidation", "maintenance", "other"] | None = Query(
        default=None, alias="type"
    ),
    limit: int = Query(default=50, ge=1, le=500),
    services: ServiceContainer = Depends(get_services),
):
    try:
        events = await services.audit_logger.list_recent(event_type, limit)
    except STORE_ERRORS as e:
        return store_error_response(e, "list_audit_events")
    return AuditListResponse(events=events)
