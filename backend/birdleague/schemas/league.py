"""
Bird League Backend — Pydantic Request/Response Schemas
========================================================

What:  API contract models, separate from the persisted entities in models/.
Why:   Views combine several entities (a matchup with both submissions and its
       judgment), and we control exactly what is exposed.
How:   Field aliases keep the camelCase JSON the frontend already consumes;
       routes serialize with `response_model_exclude_none=True` so absent
       submissions or judgments are omitted rather than sent as null.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from birdleague.models.league import BackupInfo, Member, StandingRow, WeekStatus


# ══════════════════════════════════════════════════════════════════════════
# Read Views
# ══════════════════════════════════════════════════════════════════════════


class SubmissionSummary(BaseModel):
    """What a matchup card shows for one side."""
    species: str
    desc: str = ""
    media: List[str] = Field(default_factory=list)


class MatchupView(BaseModel):
    """
    One matchup with everything known about it.

    sub1/sub2 are absent until the member submits; judgment is absent until
    the week is judged. Judgment keys other than the identity fields are
    passed through as stored.
    """
    m1: int
    m2: int
    m1_name: str = Field(alias="m1Name")
    m2_name: str = Field(alias="m2Name")
    sub1: Optional[SubmissionSummary] = None
    sub2: Optional[SubmissionSummary] = None
    judgment: Optional[Dict[str, Any]] = None

    model_config = {"populate_by_name": True}


class WeekView(BaseModel):
    week: int
    status: WeekStatus
    matchups: List[MatchupView]


class DataResponse(BaseModel):
    """Full dump for the frontend: members, every week view, standings."""
    members: List[Member]
    schedule: List[WeekView]
    standings: List[StandingRow]


# ══════════════════════════════════════════════════════════════════════════
# Admin
# ══════════════════════════════════════════════════════════════════════════


class BackupListResponse(BaseModel):
    backups: List[BackupInfo]


class RestoreResponse(BaseModel):
    status: str = "restored"
    backup: Optional[str] = Field(default=None, description="Backup name, for named restores")
    members: int
    submissions: int
    judgments: int


class WeekStatusRequest(BaseModel):
    # Plain str: DocumentStore.set_week_status is the single place that validates it
    status: Optional[str] = Field(default=None, description="One of: upcoming, active, completed")


class WeekStatusResponse(BaseModel):
    status: str = "ok"
    week: int
    new_status: WeekStatus = Field(alias="newStatus")

    model_config = {"populate_by_name": True}


class StatusResponse(BaseModel):
    status: str


# ══════════════════════════════════════════════════════════════════════════
# Errors & Health
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "week '9' was not found",
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="'ok' when the store is readable, else 'degraded'")
    name: str
    version: str
    uptime_seconds: float
