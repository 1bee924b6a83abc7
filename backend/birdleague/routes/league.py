"""
Bird League Backend — League Read Routes
=========================================

What:  GET endpoints for members, schedule, standings, the weekly view and
       the full data dump the frontend loads on startup.
How:   Plain `def` handlers: FastAPI runs them in its threadpool, and the
       document store's lock keeps them consistent with concurrent writes.

Caching:
    None. Every call re-reads db.json so an admin restore shows up on the
    next page load.
"""

from typing import List

from fastapi import APIRouter

from birdleague.database import document_store
from birdleague.models.league import Member, StandingRow, Week
from birdleague.schemas.league import DataResponse, ErrorResponse, WeekView
from birdleague.services.league_service import league_service

router = APIRouter(prefix="/api", tags=["League"])


@router.get("/members", response_model=List[Member], summary="List league members")
def list_members() -> List[Member]:
    return document_store.get_members()


@router.get("/schedule", response_model=List[Week], summary="Season schedule")
def get_schedule() -> List[Week]:
    return document_store.get_schedule()


@router.get("/standings", response_model=List[StandingRow], summary="Win/loss standings")
def get_standings() -> List[StandingRow]:
    return document_store.get_standings()


@router.get(
    "/data",
    response_model=DataResponse,
    response_model_exclude_none=True,
    summary="Full dump for the frontend",
)
def get_data() -> DataResponse:
    return league_service.data_view()


@router.get(
    "/week/{week}",
    response_model=WeekView,
    response_model_exclude_none=True,
    responses={404: {"description": "Week not found", "model": ErrorResponse}},
    summary="One week's matchups with submissions and judgments",
)
def get_week(week: int) -> WeekView:
    return league_service.week_view(week)
