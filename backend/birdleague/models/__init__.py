"""
Bird League Backend — Persisted Entities
=========================================

What:  Pydantic models for everything stored in db.json, plus the in-memory
       value objects produced by the multipart parser.
Why:   The document store validates on load and on import; a hand-edited
       db.json with the wrong shape is caught here, not deep in a route.
"""

from birdleague.models.league import (
    BackupInfo,
    Dataset,
    Judgment,
    Matchup,
    Member,
    StandingRow,
    Submission,
    Week,
    WeekStatus,
)
from birdleague.models.upload import Attachment, ParseResult

__all__ = [
    "Attachment",
    "BackupInfo",
    "Dataset",
    "Judgment",
    "Matchup",
    "Member",
    "ParseResult",
    "StandingRow",
    "Submission",
    "Week",
    "WeekStatus",
]
