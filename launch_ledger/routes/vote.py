"""
vote.py
-------
Purpose:
    Public voting endpoint called by the launch page.

Usage:
    GET|POST /vote?toolId=<app>&token=<voting token>            - vote
    GET|POST /vote?toolId=<app>&token=<voting token>&action=unvote - retract

    `itemId` is accepted in place of `toolId`, and `unvote=1|true` in place
    of `action=unvote`.
"""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from launch_ledger.auth.verify import voter_dependency
from launch_ledger.infrastructure.observability.logging import get_logger
from launch_ledger.models.api.launch_response import VoteResponse
from launch_ledger.routes.errors import STORE_ERRORS, domain_error_response, store_error_response
from launch_ledger.services.container import ServiceContainer, get_services
from launch_ledger.services.errors import LaunchLedgerError

router = APIRouter(tags=["vote"])
logger = get_logger(__name__)


def is_unvote_request(action: str | None, unvote: str | None) -> bool:
    return (action or "").lower() == "unvote" or (unvote or "").lower() in ("1", "true")


@router.api_route("/vote", methods=["GET", "POST"], response_model=VoteResponse)
async def vote(
    voter_id: str = Depends(voter_dependency),
    tool_id: str | None = Query(default=None, alias="toolId"),
    item_id: str | None = Query(default=None, alias="itemId"),
    action: str | None = Query(default=None),
    unvote: str | None = Query(default=None),
    services: ServiceContainer = Depends(get_services),
):
    """
    Cast or retract a vote for one app of the active launch.

    Raises:
        400: Missing app id, or NO_ACTIVE_LAUNCH / VOTING_CLOSED / APP_NOT_ELIGIBLE
        401: Missing or invalid voting token
        409: Already voted / not voted (body carries the current count)
        503: Store unavailable
    """
    app_id = tool_id or item_id
    if not app_id:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing itemId", "code": "MISSING_ITEM_ID"},
        )

    retract = is_unvote_request(action, unvote)
    try:
        if retract:
            count = await services.vote_ledger.unvote(voter_id, app_id)
        else:
            count = await services.vote_ledger.vote(voter_id, app_id)
    except LaunchLedgerError as e:
        return domain_error_response(e)
    except STORE_ERRORS as e:
        return store_error_response(e, "unvote" if retract else "vote")

    return VoteResponse(count=count)
