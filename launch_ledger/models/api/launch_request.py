# launch_ledger/models/api/launch_request.py
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CreateLaunchRequest(BaseModel):
    """Request body for POST /launches."""

    model_config = ConfigDict(populate_by_name=True)

    date: str = Field(..., description="Launch day, YYYY-MM-DD")
    app_ids: list[str] = Field(..., alias="appIds", min_length=1)
    name: str | None = Field(default=None, max_length=200)
    options: dict[str, Any] | None = None
