"""
Bird League Backend — League Read Views
========================================

What:  Builds the week and full-data views the frontend renders.
Why:   A matchup card needs both members' names, both submissions and the
       judgment. Assembling that is read-side glue, not store logic.
How:   Each view works from ONE dataset snapshot (get_full_db), so a write
       landing mid-request cannot mix old and new state in one response.
"""

from typing import Optional

from birdleague.database import compute_standings, document_store
from birdleague.exceptions import NotFoundError
from birdleague.models.league import Dataset, Submission, Week
from birdleague.schemas.league import DataResponse, MatchupView, SubmissionSummary, WeekView

UNKNOWN_MEMBER = "Unknown"
_JUDGMENT_IDENTITY = {"week", "m1Id", "m2Id"}


def _summary(submission: Optional[Submission]) -> Optional[SubmissionSummary]:
    if submission is None:
        return None
    return SubmissionSummary(
        species=submission.species,
        desc=submission.description,
        media=submission.media_files,
    )


class LeagueService:
    """Read-only views over the league dataset."""

    def _week_view(self, dataset: Dataset, week: Week) -> WeekView:
        names = {m.id: m.name for m in dataset.members}
        submissions = {
            s.member_id: s for s in dataset.submissions if s.week == week.week
        }
        judgments = {
            (j.m1_id, j.m2_id): j for j in dataset.judgments if j.week == week.week
        }

        matchups = []
        for mu in week.matchups:
            judgment = judgments.get((mu.m1, mu.m2))
            matchups.append(
                MatchupView(
                    m1=mu.m1,
                    m2=mu.m2,
                    m1_name=names.get(mu.m1, UNKNOWN_MEMBER),
                    m2_name=names.get(mu.m2, UNKNOWN_MEMBER),
                    sub1=_summary(submissions.get(mu.m1)),
                    sub2=_summary(submissions.get(mu.m2)),
                    judgment=(
                        {
                            k: v
                            for k, v in judgment.model_dump(mode="json", by_alias=True).items()
                            if k not in _JUDGMENT_IDENTITY
                        }
                        if judgment is not None
                        else None
                    ),
                )
            )
        return WeekView(week=week.week, status=week.status, matchups=matchups)

    def week_view(self, week_number: int) -> WeekView:
        """
        Raises:
            NotFoundError if the week is not on the schedule.
        """
        dataset = document_store.get_full_db()
        week = next((w for w in dataset.schedule if w.week == week_number), None)
        if week is None:
            raise NotFoundError(resource="week", resource_id=str(week_number))
        return self._week_view(dataset, week)

    def data_view(self) -> DataResponse:
        dataset = document_store.get_full_db()
        return DataResponse(
            members=dataset.members,
            schedule=[self._week_view(dataset, w) for w in dataset.schedule],
            standings=compute_standings(dataset),
        )


league_service = LeagueService()
