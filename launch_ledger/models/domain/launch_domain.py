# models/domain/launch_domain.py
"""
Launch domain models.

A Launch is the durable record of one day's voting window. Records are
validated here, at the boundary, so services never see a malformed date or
an empty app id.
"""

import re
from datetime import UTC, date, datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

LAUNCH_DATE_FORMAT = "%Y-%m-%d"
APP_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,64}")


class LaunchStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    FLUSHING = "flushing"
    FLUSHED = "flushed"


def validate_launch_date(value: str) -> str:
    """
    Ensure a launch date is a real calendar day in YYYY-MM-DD form.

    Raises:
        ValueError: If the value is not a zero-padded ISO calendar date
    """
    if not isinstance(value, str) or len(value) != 10:
        raise ValueError(f"Launch date must be YYYY-MM-DD, got {value!r}")
    try:
        datetime.strptime(value, LAUNCH_DATE_FORMAT)
    except ValueError as e:
        raise ValueError(f"Launch date must be YYYY-MM-DD, got {value!r}") from e
    return value


def validate_app_id(value: str) -> str:
    """
    Ensure an app id is a non-empty token of letters, digits, '_' or '-'.

    App ids are embedded in Redis keys and SCAN patterns, so glob
    characters and separators are rejected.
    """
    if not isinstance(value, str) or not APP_ID_PATTERN.fullmatch(value):
        raise ValueError(f"App id must match {APP_ID_PATTERN.pattern}, got {value!r}")
    return value


def normalize_app_ids(app_ids: list[str]) -> list[str]:
    """Validate app ids and drop duplicates, keeping first-seen order."""
    seen: dict[str, None] = {}
    for app_id in app_ids:
        seen.setdefault(validate_app_id(app_id), None)
    return list(seen)


def today_launch_date(now: datetime | None = None) -> str:
    """Launch date for the current UTC day."""
    return (now or datetime.now(UTC)).strftime(LAUNCH_DATE_FORMAT)


def next_launch_date(launch_date: str) -> str:
    """Calendar day following launch_date."""
    current = date.fromisoformat(validate_launch_date(launch_date))
    return (current + timedelta(days=1)).isoformat()


class LaunchMetadata(BaseModel):
    """Free-form metadata stored alongside a launch; not interpreted by the ledger."""

    name: str | None = None
    created_by: str | None = None
    manual: bool | None = None
    options: dict[str, Any] | None = None


class Launch(BaseModel):
    """Domain model for a launches row."""

    id: str | None = None
    date: str
    status: LaunchStatus
    apps: list[str] = Field(default_factory=list)
    created_at: datetime
    flushed_at: datetime | None = None
    name: str | None = None
    created_by: str | None = None
    manual: bool | None = None
    options: dict[str, Any] | None = None

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        return validate_launch_date(value)

    @field_validator("apps")
    @classmethod
    def _check_apps(cls, value: list[str]) -> list[str]:
        return normalize_app_ids(value)

    @property
    def is_active(self) -> bool:
        return self.status == LaunchStatus.ACTIVE

    @property
    def is_flushed(self) -> bool:
        return self.status == LaunchStatus.FLUSHED

    def summary(self) -> dict[str, Any]:
        """Compact representation used in API and cycle results."""
        return {
            "id": self.id,
            "date": self.date,
            "status": self.status.value,
            "appsCount": len(self.apps),
            "createdAt": self.created_at.isoformat(),
        }


class LaunchStatusView(BaseModel):
    """Derived view used by the vote admission check."""

    has_active_launch: bool
    is_flushing_in_progress: bool
    active_launch_date: str | None = None


class FlushResult(BaseModel):
    success: bool
    message: str
    vote_counts: dict[str, int] = Field(default_factory=dict)
    # False when the launch was already flushed and nothing changed
    changed: bool = True


class RepairResult(BaseModel):
    success: bool
    message: str
    details: dict[str, Any] | None = None
