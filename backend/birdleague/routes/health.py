"""
Bird League Backend — Health Check Route
=========================================

What:  Liveness/readiness endpoint for the hosting platform.
How:   Loads the dataset once; if db.json cannot be read the service is
       reported as degraded (HTTP 200 still, so the instance is not killed
       while an operator restores a backup).
"""

import logging
import time

from fastapi import APIRouter

from birdleague import __version__
from birdleague.database import document_store
from birdleague.exceptions import BirdLeagueError
from birdleague.schemas.league import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()

SERVICE_NAME = "Bird League API"


@router.get("/", response_model=HealthResponse, summary="Service health check")
@router.get("/health", response_model=HealthResponse, include_in_schema=False)
def health_check() -> HealthResponse:
    status = "ok"
    try:
        document_store.get_full_db()
    except BirdLeagueError as e:
        status = "degraded"
        logger.warning("Health check: document store unreadable: %s", e.message)

    return HealthResponse(
        status=status,
        name=SERVICE_NAME,
        version=__version__,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
