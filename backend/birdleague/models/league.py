"""
Bird League Backend — League Document Models
=============================================

What:  Pydantic models mirroring the JSON layout of db.json.
Why:   db.json is meant to be hand-edited and diffed, so field names on disk
       stay camelCase (`memberId`, `mediaFiles`, `submittedAt`). Python code
       uses snake_case attributes; aliases bridge the two.
How:   Every model sets `populate_by_name`, so both spellings validate.
       Dataset.to_document() serializes with `by_alias=True` and omits only
       the optional fields the store itself leaves unset; every other key,
       null values included, is written as given.

Document shape:
    {
        "members":     [{"id": 1, "name": "Matthew"}, ...],
        "schedule":    [{"week": 1, "status": "completed",
                         "matchups": [{"m1": 2, "m2": 1}, ...]}, ...],
        "submissions": [{"id": "sub-w3-m2", "week": 3, "memberId": 2, ...}],
        "judgments":   [{"week": 1, "m1Id": 2, "m2Id": 1, "winner": "m1", ...}]
    }
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class WeekStatus(str, Enum):
    """Closed set of week states. Anything else is rejected at the store boundary."""

    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


class Member(BaseModel):
    id: int
    name: str


class Matchup(BaseModel):
    m1: int = Field(description="Member id of side one")
    m2: int = Field(description="Member id of side two")

    def involves(self, member_id: int) -> bool:
        return member_id in (self.m1, self.m2)


class Week(BaseModel):
    week: int
    status: WeekStatus = WeekStatus.UPCOMING
    matchups: List[Matchup] = Field(default_factory=list)

    def has_member(self, member_id: int) -> bool:
        return any(mu.involves(member_id) for mu in self.matchups)


class Submission(BaseModel):
    """
    One member's entry for one week.

    Identity:  (week, member_id). The store keeps at most one per key.
    Resubmission:
        A second upsert replaces the entry, copies the old `submitted_at`
        into `previous_submitted_at` and stamps `resubmitted_at`.
    """

    id: str
    week: int
    member_id: int = Field(alias="memberId")
    species: str
    description: str = ""
    media_files: List[str] = Field(default_factory=list, alias="mediaFiles")
    submitted_at: datetime = Field(alias="submittedAt")
    resubmitted_at: Optional[datetime] = Field(default=None, alias="resubmittedAt")
    previous_submitted_at: Optional[datetime] = Field(default=None, alias="previousSubmittedAt")

    model_config = {"populate_by_name": True}

    @staticmethod
    def make_id(week: int, member_id: int) -> str:
        return f"sub-w{week}-m{member_id}"


class Judgment(BaseModel):
    """
    Result of judging one matchup.

    Only the identity fields and `winner` are interpreted here. Everything
    else written by the judging collaborator (summary, per-judge verdicts,
    ...) passes through untouched via `extra="allow"`.
    """

    week: int
    m1_id: int = Field(alias="m1Id")
    m2_id: int = Field(alias="m2Id")
    winner: Optional[str] = Field(default=None, description="'m1', 'm2' or absent")

    model_config = {"populate_by_name": True, "extra": "allow"}

    def key(self) -> tuple:
        return (self.week, self.m1_id, self.m2_id)


class StandingRow(BaseModel):
    """Computed win/loss record. Never persisted."""

    id: int
    name: str
    w: int = 0
    l: int = 0  # noqa: E741


# On-disk keys dropped when null, per collection
_OMIT_WHEN_NULL = {
    "submissions": ("resubmittedAt", "previousSubmittedAt"),
    "judgments": ("winner",),
}


class Dataset(BaseModel):
    """
    The whole persisted document.

    `members` and `schedule` are required: an import without them is not a
    dataset. Unknown top-level keys are preserved on round-trip.
    """

    members: List[Member]
    schedule: List[Week]
    submissions: List[Submission] = Field(default_factory=list)
    judgments: List[Judgment] = Field(default_factory=list)

    model_config = {"extra": "allow"}

    def to_document(self) -> dict:
        """
        JSON-ready dict using the on-disk (camelCase) field names.

        Unset resubmission timestamps and a missing winner are omitted.
        Pass-through keys keep their value even when it is null.
        """
        document = self.model_dump(mode="json", by_alias=True)
        for collection, keys in _OMIT_WHEN_NULL.items():
            for entry in document[collection]:
                for key in keys:
                    if entry.get(key, "") is None:
                        del entry[key]
        return document


class BackupInfo(BaseModel):
    name: str
    size: int = Field(description="Backup file size in bytes")
