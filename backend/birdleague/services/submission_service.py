"""
Bird League Backend — Submission Service (Ingestion Orchestrator)
==================================================================

What:  Coordinates check → parse → store media → upsert for one submission.
Why:   Keeps the submit route thin and puts every business rule in one place.
How:   Composes WireFormatParser, AttachmentStorage and the DocumentStore.
Who:   Called by POST /api/submit/{week}/{member_id}.

Orchestration Flow:
    ┌──────────┐   ┌──────────────┐   ┌──────────────┐   ┌──────────────┐
    │  Checks  │──▶│ Parse body   │──▶│ Write media  │──▶│  Upsert in   │
    │ week/mbr │   │ (multipart   │   │ (Attachment  │   │  document    │
    │ /size    │   │  or JSON)    │   │  Storage)    │   │  store       │
    └──────────┘   └──────────────┘   └──────────────┘   └──────────────┘

    On failure after media was written, the files are removed again so a
    rejected submission leaves nothing behind.

Threading:
    DocumentStore calls are synchronous and take a thread lock, and parsing a
    large multipart body is CPU-bound. Both run via starlette's
    run_in_threadpool so neither blocks the event loop.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from starlette.concurrency import run_in_threadpool

from birdleague.database import document_store
from birdleague.exceptions import (
    BirdLeagueError,
    NotFoundError,
    SubmissionClosedError,
    ValidationError,
)
from birdleague.models.league import Member, Submission, WeekStatus
from birdleague.models.upload import Attachment
from birdleague.services.file_service import attachment_storage
from birdleague.services.multipart_parser import extract_boundary, multipart_parser

logger = logging.getLogger(__name__)

MULTIPART_FORM_DATA = "multipart/form-data"


def _parse_json_body(body: bytes) -> Dict[str, Any]:
    """Lenient JSON decode: anything that is not a JSON object yields {}."""
    try:
        data = json.loads(body.decode("utf-8"))
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class SubmissionService:
    """
    Business logic for accepting a member's weekly submission.

    Error Handling Strategy:
        Rule violations raise application exceptions (NotFoundError,
        SubmissionClosedError, ValidationError); the global handlers turn
        them into 4xx responses. Storage failures propagate as
        FileStorageError after cleanup.
    """

    async def _check_eligibility(self, week: int, member_id: int) -> Member:
        week_entry = await run_in_threadpool(document_store.get_week, week)
        if week_entry is None:
            raise NotFoundError(resource="week", resource_id=str(week))
        if week_entry.status == WeekStatus.COMPLETED:
            raise SubmissionClosedError(week=week)

        member = await run_in_threadpool(document_store.get_member, member_id)
        if member is None:
            raise NotFoundError(resource="member", resource_id=str(member_id))

        if not week_entry.has_member(member_id):
            raise ValidationError(
                message="Member not in a matchup this week",
                field="memberId",
                context={"week": week, "member_id": member_id},
            )
        return member

    def _read_fields(
        self, content_type: str, body: bytes
    ) -> Tuple[Dict[str, str], List[Attachment]]:
        if MULTIPART_FORM_DATA in content_type.lower():
            parsed = multipart_parser.parse(body, extract_boundary(content_type))
            if parsed.skipped_parts:
                logger.info("Multipart body had %d unusable parts (dropped)", parsed.skipped_parts)
            return parsed.fields, parsed.attachments

        # application/json, or anything else that happens to be JSON
        data = _parse_json_body(body)
        fields = {
            key: str(data[key]) for key in ("species", "description") if data.get(key) is not None
        }
        return fields, []

    async def submit(
        self,
        week: int,
        member_id: int,
        content_type: Optional[str],
        body: bytes,
        content_length: Optional[int] = None,
    ) -> Submission:
        """
        Accept (or replace) a member's submission for a week.

        Args:
            week:            Week number from the URL.
            member_id:       Member id from the URL.
            content_type:    Raw Content-Type header (carries the boundary).
            body:            Fully buffered request body.
            content_length:  Declared Content-Length, if any.

        Returns:
            The stored Submission.

        Raises:
            NotFoundError:          unknown week or member
            SubmissionClosedError:  week is completed
            ValidationError:        member not scheduled, body too large,
                                    missing boundary, empty species
            FileStorageError:       media or database write failed
        """
        member = await self._check_eligibility(week, member_id)
        attachment_storage.validate_size(len(body), content_length)

        fields, attachments = await run_in_threadpool(self._read_fields, content_type or "", body)
        species = fields.get("species", "")
        description = fields.get("description", "")
        if not species.strip():
            raise ValidationError(message="Species is required", field="species")

        media_files = await attachment_storage.store_attachments(
            week=week,
            member_id=member_id,
            member_name=member.name,
            attachments=attachments,
        )

        try:
            submission = await run_in_threadpool(
                document_store.upsert_submission,
                week,
                member_id,
                species,
                description,
                media_files,
            )
        except BirdLeagueError:
            directory = attachment_storage.member_directory(week, member.name)
            for attachment in attachments:
                await attachment_storage.cleanup_file(str(directory / attachment.storage_name))
            raise

        logger.info(
            "Accepted submission for week %d from member %d (%s): %s, %d media files",
            week,
            member_id,
            member.name,
            species,
            len(media_files),
        )
        return submission


# ── Singleton Instance ────────────────────────────────────────────────────
submission_service = SubmissionService()
