"""
Bird League Backend — Admin Route Handlers
===========================================

What:  Backup download, backup listing, restore (uploaded or named), week
       status changes and full reset.
Who:   League admin tooling only. Every route requires
       `Authorization: Bearer <ADMIN_SECRET>`.

Restore semantics:
    Both restore flavours snapshot the current db.json first (through the
    document store's write path), so any restore can itself be undone from
    GET /api/admin/backups.
"""

import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, Response
from starlette.concurrency import run_in_threadpool

from birdleague.config import settings
from birdleague.database import document_store
from birdleague.exceptions import (
    AuthorizationError,
    BackupNotFoundError,
    DatasetShapeError,
    NotFoundError,
)
from birdleague.schemas.league import (
    BackupListResponse,
    RestoreResponse,
    StatusResponse,
    WeekStatusRequest,
    WeekStatusResponse,
)

logger = logging.getLogger(__name__)


def require_admin(authorization: Optional[str] = Header(default=None)) -> None:
    """
    Dependency guarding every admin route.

    An unset ADMIN_SECRET disables admin access entirely.
    """
    secret = settings.admin_secret
    if not secret or not authorization:
        raise AuthorizationError()
    if not hmac.compare_digest(authorization.encode("utf-8"), f"Bearer {secret}".encode("utf-8")):
        raise AuthorizationError()


router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.get("/backup", summary="Download the current db.json")
def download_backup() -> Response:
    document = document_store.get_full_db().to_document()
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    return Response(
        content=json.dumps(document, indent=2, ensure_ascii=False),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="db-backup-{stamp}.json"'},
    )


@router.get("/backups", response_model=BackupListResponse, summary="List automatic backups")
def list_backups() -> BackupListResponse:
    return BackupListResponse(backups=document_store.list_backups())


@router.post("/restore", response_model=RestoreResponse, summary="Replace db.json with an uploaded dataset")
async def restore_uploaded(request: Request) -> RestoreResponse:
    body = await request.body()
    try:
        payload = json.loads(body.decode("utf-8"))
    except ValueError:
        raise DatasetShapeError(message="Restore failed: body is not valid JSON")

    dataset = await run_in_threadpool(document_store.replace_db, payload)
    logger.warning("Database replaced from uploaded file (%d bytes)", len(body))
    return RestoreResponse(
        members=len(dataset.members),
        submissions=len(dataset.submissions),
        judgments=len(dataset.judgments),
    )


@router.post(
    "/restore/{backup_name}",
    response_model=RestoreResponse,
    response_model_exclude_none=True,
    summary="Restore db.json from an automatic backup",
)
def restore_named(backup_name: str) -> RestoreResponse:
    dataset = document_store.restore_backup(backup_name)
    if dataset is None:
        raise BackupNotFoundError(backup_name)
    return RestoreResponse(
        backup=backup_name,
        members=len(dataset.members),
        submissions=len(dataset.submissions),
        judgments=len(dataset.judgments),
    )


@router.post("/week/{week}/status", response_model=WeekStatusResponse, summary="Set a week's status")
def set_week_status(week: int, payload: WeekStatusRequest) -> WeekStatusResponse:
    updated = document_store.set_week_status(week, payload.status)
    if updated is None:
        raise NotFoundError(resource="week", resource_id=str(week))
    return WeekStatusResponse(week=updated.week, new_status=updated.status)


@router.post("/reset", response_model=StatusResponse, summary="Reset to the seed dataset")
def reset() -> StatusResponse:
    document_store.reset()
    return StatusResponse(status="reset complete")
