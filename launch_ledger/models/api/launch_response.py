# launch_ledger/models/api/launch_response.py
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from launch_ledger.models.domain.launch_domain import Launch


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LaunchSummaryResponse(CamelModel):
    id: str | None
    date: str
    status: str
    apps: list[str]
    apps_count: int = Field(..., alias="appsCount")
    created_at: datetime = Field(..., alias="createdAt")
    flushed_at: datetime | None = Field(default=None, alias="flushedAt")
    name: str | None = None

    @classmethod
    def from_launch(cls, launch: Launch) -> "LaunchSummaryResponse":
        return cls(
            id=launch.id,
            date=launch.date,
            status=launch.status.value,
            apps=launch.apps,
            apps_count=len(launch.apps),
            created_at=launch.created_at,
            flushed_at=launch.flushed_at,
            name=launch.name,
        )


class CreateLaunchResponse(CamelModel):
    success: bool = True
    launch: LaunchSummaryResponse


class ActiveLaunchResponse(CamelModel):
    """Response for GET /launches/active; launch is null when nothing is active."""

    launch: LaunchSummaryResponse | None = None


class LaunchListResponse(CamelModel):
    launches: list[LaunchSummaryResponse]


class TodayLaunchResponse(CamelModel):
    success: bool = True
    date: str
    premium: list[dict[str, Any]] = Field(default_factory=list)
    non_premium: list[dict[str, Any]] = Field(default_factory=list, alias="nonPremium")
    vote_counts: dict[str, int] = Field(default_factory=dict, alias="voteCounts")
    voted_app_ids: list[str] | None = Field(default=None, alias="votedAppIds")


class VoteResponse(CamelModel):
    count: int


class FlushLaunchResponse(CamelModel):
    success: bool
    message: str
    vote_counts: dict[str, int] = Field(default_factory=dict, alias="voteCounts")
    launch: LaunchSummaryResponse | None = None


class RepairResponse(CamelModel):
    success: bool
    message: str
    details: dict[str, Any] | None = None


class DailyCycleResponse(CamelModel):
    success: bool
    message: str
    results: dict[str, Any]
    next_cycle: str = Field(..., alias="nextCycle")


class AuditListResponse(CamelModel):
    events: list[dict[str, Any]]
