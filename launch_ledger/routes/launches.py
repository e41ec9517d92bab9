"""
launches.py
-----------
Purpose:
    Launch lifecycle endpoints.

Usage:
    1. POST /launches - Create today's (or any day's) active launch (admin)
    2. GET /launches/active - Currently active launch, or null
    3. GET /launches/today - Apps of the active launch with live vote counts
"""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from launch_ledger.auth.verify import admin_dependency, resolve_voter_id
from launch_ledger.infrastructure.observability.logging import get_logger
from launch_ledger.models.api.launch_request import CreateLaunchRequest
from launch_ledger.models.api.launch_response import (
    ActiveLaunchResponse,
    CreateLaunchResponse,
    LaunchSummaryResponse,
    TodayLaunchResponse,
)
from launch_ledger.models.domain.launch_domain import (
    LaunchMetadata,
    normalize_app_ids,
    today_launch_date,
)
from launch_ledger.routes.errors import STORE_ERRORS, domain_error_response, store_error_response
from launch_ledger.services.container import ServiceContainer, get_services
from launch_ledger.services.errors import LaunchLedgerError

router = APIRouter(prefix="/launches", tags=["launches"])
logger = get_logger(__name__)


@router.post("", response_model=CreateLaunchResponse)
async def create_launch(
    body: CreateLaunchRequest,
    claims: dict = Depends(admin_dependency),
    services: ServiceContainer = Depends(get_services),
):
    """
    Create an active launch and open voting for its apps.

    Raises:
        400: Invalid date or app ids, or app ids unknown to the catalog
        409: Launch exists for the date, or another launch is active
        503: Store unavailable
    """
    try:
        app_ids = normalize_app_ids(body.app_ids)
    except ValueError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(e), "code": "INVALID_INPUT"},
        )

    try:
        known = await services.app_catalog.existing_ids(app_ids)
        unknown = [app_id for app_id in app_ids if app_id not in known]
        if unknown:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": "Unknown app ids", "code": "INVALID_INPUT", "appIds": unknown},
            )

        metadata = LaunchMetadata(
            name=body.name,
            created_by=claims.get("sub"),
            manual=True,
            options=body.options,
        )
        launch = await services.launch_service.create_launch(body.date, app_ids, metadata)

    except LaunchLedgerError as e:
        return domain_error_response(e)
    except STORE_ERRORS as e:
        return store_error_response(e, "create_launch")

    logger.info("Launch created via API", launch_date=launch.date, created_by=claims.get("sub"))
    return CreateLaunchResponse(launch=LaunchSummaryResponse.from_launch(launch))


@router.get("/active", response_model=ActiveLaunchResponse)
async def get_active_launch(services: ServiceContainer = Depends(get_services)):
    try:
        launch = await services.launch_service.get_active_launch()
    except STORE_ERRORS as e:
        return store_error_response(e, "get_active_launch")

    if launch is None:
        return ActiveLaunchResponse()
    return ActiveLaunchResponse(launch=LaunchSummaryResponse.from_launch(launch))


@router.get("/today", response_model=TodayLaunchResponse, response_model_exclude_none=True)
async def get_today(
    token: str | None = Query(default=None),
    services: ServiceContainer = Depends(get_services),
):
    """
    Apps of the active launch split by premium tier, with a vote snapshot.

    When a voting token is supplied the response also lists the apps that
    voter already voted for; an invalid token is rejected with 401.
    """
    voter_id = None
    if token is not None:
        voter_id = resolve_voter_id(token, services.settings.VOTING_TOKEN_SECRET)

    today = today_launch_date()
    try:
        launch = await services.launch_service.get_active_launch()
        if launch is None:
            return TodayLaunchResponse(date=today)

        apps = await services.app_catalog.get_approved_apps(launch.apps)
        app_ids = [app.id for app in apps]
        vote_counts = await services.vote_ledger.get_current_vote_counts(app_ids)
        voted = None
        if voter_id is not None:
            voted = await services.vote_ledger.has_voted(voter_id, app_ids)

    except STORE_ERRORS as e:
        return store_error_response(e, "get_today")

    return TodayLaunchResponse(
        date=launch.date,
        premium=[app.to_public_dict() for app in apps if app.is_premium],
        non_premium=[app.to_public_dict() for app in apps if not app.is_premium],
        vote_counts=vote_counts,
        voted_app_ids=voted,
    )
