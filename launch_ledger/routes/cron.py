"""
cron.py
-------
Purpose:
    Scheduler entry point for the daily launch cycle.

Notes:
    - Requires `Authorization: Bearer <CRON_SECRET>`.
    - Responds 500 when either step failed; the scheduler does not retry on
      its own, and re-running is safe.
"""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from launch_ledger.auth.verify import cron_dependency
from launch_ledger.models.api.launch_response import DailyCycleResponse
from launch_ledger.services.container import ServiceContainer, get_services

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(cron_dependency)])


@router.get("/daily-cycle", response_model=DailyCycleResponse)
async def daily_cycle(request: Request, services: ServiceContainer = Depends(get_services)):
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
