"""
Bird League Backend — Submission Route Handlers
================================================

What:  POST /api/submit/{week}/{member_id} and GET /api/media/... .
Why:   Entry point for the core feature: a member uploads this week's bird.
How:   The raw body is read as bytes and handed to SubmissionService, which
       runs our own multipart parser. FastAPI's UploadFile is deliberately
       not used, so the exact bytes on the wire are what gets parsed.

Request Flow:
    1. Client sends multipart/form-data (species, description, media files)
       or a JSON body {species, description}
    2. Route buffers the body (the whole request is held in memory)
    3. SubmissionService: checks → parse → write media → upsert
    4. 201 Created with the stored Submission
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse

from birdleague.database import document_store
from birdleague.exceptions import NotFoundError
from birdleague.models.league import Submission
from birdleague.schemas.league import ErrorResponse
from birdleague.services.file_service import attachment_storage, content_type_for
from birdleague.services.submission_service import submission_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Submissions"])

MEDIA_CACHE_CONTROL = "public, max-age=86400"


def _content_length(request: Request) -> Optional[int]:
    try:
        return int(request.headers.get("content-length", ""))
    except ValueError:
        return None


@router.post(
    "/submit/{week}/{member_id}",
    status_code=201,
    response_model=Submission,
    response_model_exclude_none=True,
    responses={
        400: {"description": "Invalid submission", "model": ErrorResponse},
        403: {"description": "Submissions closed", "model": ErrorResponse},
        404: {"description": "Week or member not found", "model": ErrorResponse},
    },
    summary="Submit (or resubmit) a member's bird for a week",
)
async def submit(week: int, member_id: int, request: Request) -> Submission:
    body = await request.body()
    content_type = request.headers.get("content-type", "")

    logger.info(
        "Received submission: week=%d member=%d type=%s size=%d bytes",
        week,
        member_id,
        content_type.split(";")[0] or "none",
        len(body),
    )

    return await submission_service.submit(
        week=week,
        member_id=member_id,
        content_type=content_type,
        body=body,
        content_length=_content_length(request),
    )


@router.get(
    "/media/{week}/{member_id}/{filename}",
    response_class=FileResponse,
    responses={404: {"description": "File not found", "model": ErrorResponse}},
    summary="Download a stored submission file",
)
def get_media(week: int, member_id: int, filename: str) -> FileResponse:
    member = document_store.get_member(member_id)
    if member is None:
        raise NotFoundError(resource="member", resource_id=str(member_id))

    path = attachment_storage.resolve_media(week, member.name, filename)
    return FileResponse(
        path,
        media_type=content_type_for(filename),
        headers={"Cache-Control": MEDIA_CACHE_CONTROL},
    )
