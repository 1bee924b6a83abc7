"""
Bird League Backend — Attachment Storage Service
=================================================

What:  Writes parsed attachments to disk and resolves media references back
       to files.
Why:   Keeps every filesystem touch for submission media in one place, with
       the path-safety checks next to the writes.
How:   Files live under <submissions_root>/week-<n>/<safe member name>/ and
       keep the unique storage name the parser generated. Writes use aiofiles
       so a large video does not block the event loop.
Who:   Called by SubmissionService (store) and the media route (resolve).

Directory Structure:
    submissions/
    └── week-3/
        ├── Trevor___Katie/
        │   ├── 3f2b9c...a1.jpg
        │   └── 77d0e4...9c.mov
        └── Marshall/
            └── c1aa05...42.png

Reference format:
    /api/media/<week>/<member id>/<storage name>
    The member's display name is NOT in the reference; the media route looks
    the member up and rebuilds the directory from the current name.

Safety:
    - Storage names come from uuid4, never from client input
    - resolve_media() rejects any filename with a path component
    - Unique names make concurrent writes collision-free; no locking needed
"""

import logging
import os
import re
from pathlib import Path
from typing import List, Optional

import aiofiles

from birdleague.config import settings
from birdleague.exceptions import FileStorageError, NotFoundError, ValidationError
from birdleague.models.upload import Attachment

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9]")

# Served Content-Type by stored extension
MEDIA_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".webm": "video/webm",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".m4a": "audio/mp4",
}


def safe_directory_name(name: str) -> str:
    """Filesystem-safe transliteration: every non-alphanumeric character becomes '_'."""
    return _UNSAFE_NAME_CHARS.sub("_", name)


def media_reference(week: int, member_id: int, storage_name: str) -> str:
    return f"/api/media/{week}/{member_id}/{storage_name}"


def content_type_for(filename: str) -> str:
    return MEDIA_CONTENT_TYPES.get(Path(filename).suffix.lower(), "application/octet-stream")


class AttachmentStorage:
    """
    Stores submission media under a per-(week, member) directory.

    Lifecycle of an attachment:
        1. WireFormatParser yields Attachment(content=..., storage_name=...)
        2. validate_size() rejects oversized request bodies up front
        3. store_attachments() writes each file and returns media references
        4. cleanup_file() removes files when the submission is rejected later
        5. resolve_media() maps a reference back to a path for download
    """

    def __init__(self, storage_root: Optional[str] = None):
        """
        Args:
            storage_root: Override the default submissions root (used in tests).
        """
        self.storage_root = Path(storage_root or settings.submissions_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("AttachmentStorage initialized with storage_root=%s", self.storage_root)

    def member_directory(self, week: int, member_name: str) -> Path:
        return self.storage_root / f"week-{week}" / safe_directory_name(member_name)

    def validate_size(self, size: int, content_length: Optional[int] = None) -> None:
        """
        Reject request bodies above settings.max_upload_size.

        Checks the declared Content-Length first, then the buffered size,
        since clients can misreport the header.
        """
        limit = settings.max_upload_size
        max_mb = limit / (1024 * 1024)

        if content_length and content_length > limit:
            raise ValidationError(
                message=f"Upload exceeds maximum of {max_mb:.0f}MB.",
                field="body",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )
        if size > limit:
            raise ValidationError(
                message=f"Upload ({size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="body",
                context={"max_size_mb": max_mb, "actual_size": size},
            )

    async def store_attachment(self, directory: Path, attachment: Attachment) -> Path:
        """
        Write one attachment's bytes under `directory`.

        Raises:
            FileStorageError if the directory or file cannot be written.
        """
        path = directory / attachment.storage_name
        try:
            directory.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(attachment.content)
        except OSError as e:
            logger.error("Failed to store attachment at %s: %s", path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded file. Please try again.",
                context={"path": str(path), "os_error": str(e)},
            )

        logger.info(
            "Attachment stored: %s (%s, %d bytes, from %s)",
            attachment.storage_name,
            attachment.media_type,
            attachment.size,
            attachment.original_name,
        )
        return path

    async def store_attachments(
        self,
        week: int,
        member_id: int,
        member_name: str,
        attachments: List[Attachment],
    ) -> List[str]:
        """
        Write every attachment for one submission.

        Returns the media references in attachment order. If any write fails,
        files already written for this call are removed before re-raising.
        """
        directory = self.member_directory(week, member_name)
        written: List[Path] = []
        try:
            for attachment in attachments:
                written.append(await self.store_attachment(directory, attachment))
        except FileStorageError:
            for path in written:
                await self.cleanup_file(str(path))
            raise

        return [media_reference(week, member_id, a.storage_name) for a in attachments]

    def resolve_media(self, week: int, member_name: str, filename: str) -> Path:
        """
        Map a media reference back to a stored file.

        Raises:
            NotFoundError for names with path components or missing files.
        """
        if not filename or filename != Path(filename).name or filename in (".", ".."):
            raise NotFoundError(resource="file", resource_id=filename)

        path = self.member_directory(week, member_name) / filename
        if not path.is_file():
            raise NotFoundError(resource="file", resource_id=filename)
        return path

    async def cleanup_file(self, file_path: str) -> None:
        """
        Remove a stored file. Best effort: missing files are ignored and other
        failures are logged, never raised.
        """
        try:
            path = Path(file_path)
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", path.name)
            else:
                logger.debug("Cleanup: file already gone: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", file_path, str(e))


# ── Singleton Instance ────────────────────────────────────────────────────
attachment_storage = AttachmentStorage()
