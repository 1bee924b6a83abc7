"""
Bird League Backend — Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for the parser, the store and the API.
Why:   Targeted error handling with appropriate HTTP status codes and messages
       that never leak file paths or stack traces to clients.
How:   Each exception carries a message and an optional context dict.
       Global exception handlers (registered in main.py) render them as JSON.

Exception Hierarchy:
    BirdLeagueError (base)
    ├── ValidationError              → 400 Bad Request
    │   ├── MalformedRequestError    → 400 (no multipart boundary)
    │   └── DatasetShapeError        → 400 (replace/restore payload invalid)
    ├── AuthorizationError           → 401 Unauthorized
    ├── SubmissionClosedError        → 403 Forbidden
    ├── NotFoundError                → 404 Not Found
    │   └── BackupNotFoundError      → 404
    ├── FileStorageError             → 500 Internal Server Error
    └── StoreCorruptError            → never reaches a client (store recovers)

Not an exception:
    A multipart segment without a name or without a header/body separator
    is dropped by the parser and counted in ParseResult.skipped_parts.
"""

from typing import Any, Dict, Optional


class BirdLeagueError(Exception):
    """
    Base exception for all Bird League application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only for 4xx details)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(BirdLeagueError):
    """
    Raised when client input fails validation.

    When:    Missing species, oversized body, unknown week status, member
             not scheduled in the requested week.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class MalformedRequestError(ValidationError):
    """
    Raised when a multipart body cannot be parsed at all.

    When:    The content-type carries no boundary token, or the caller passed
             an empty one. Fatal to the single parse call only; the store is
             never touched.
    """

    def __init__(
        self,
        message: str = "Malformed multipart request",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatasetShapeError(ValidationError):
    """
    Raised when a full-dataset import does not look like a dataset.

    When:    replace_db() or restore_backup() is handed a document missing
             `members` or `schedule`, or with entries of the wrong shape.
             Raised before any write, so the primary file is unchanged.
    """

    def __init__(
        self,
        message: str = "Invalid dataset: missing members or schedule",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthorizationError(BirdLeagueError):
    """Raised when an admin endpoint is called without the admin secret."""

    def __init__(
        self,
        message: str = "Unauthorized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class SubmissionClosedError(BirdLeagueError):
    """
    Raised when a member submits for a week whose status is `completed`.

    HTTP:    403 Forbidden
    """

    def __init__(
        self,
        week: int,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["week"] = week
        super().__init__(message="Submissions closed for this week", context=ctx)
        self.week = week


class NotFoundError(BirdLeagueError):
    """
    Raised when a requested resource does not exist.

    What:    Week, member, media file or backup is unknown.
    HTTP:    404 Not Found

    The store itself returns None for missing records; routes and services
    convert None into this exception.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class BackupNotFoundError(NotFoundError):
    """Raised by the admin API when restore_backup() finds no such backup."""

    def __init__(
        self,
        backup_name: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(resource="backup", resource_id=backup_name, context=context)
        self.backup_name = backup_name


class FileStorageError(BirdLeagueError):
    """
    Raised when file system operations fail.

    When:    The primary store file cannot be read or replaced, or an
             attachment cannot be written. Backup failures are NOT raised;
             they are logged and the write continues.
    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StoreCorruptError(BirdLeagueError):
    """
    Raised internally when the primary store file exists but cannot be
    deserialized into a dataset.

    Recovery:
        DocumentStore catches this, logs it at ERROR, and persists a fresh
        default dataset. The corrupt file is snapshotted into backups/ by
        that write, so operators can recover it by hand.
    """

    def __init__(
        self,
        message: str = "Primary store file is corrupt",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
