"""Snapshot aggregation from raw activity records.

Everything here is a pure function of its inputs: no I/O, no clock reads.
The caller is responsible for handing over well-formed activity records.
"""

from __future__ import annotations

from datetime import datetime
from typing import FrozenSet, Iterable, List, Optional, Sequence

from .models import (
    GitHubActivity,
    Issue,
    JiraActivity,
    MemberSnapshot,
    PullRequest,
    Snapshot,
    SnapshotType,
    TeamMember,
)
from .stats import round_half_up

# Closed vocabulary: statuses outside it (e.g. "In Review") never count as done.
DONE_STATUSES: FrozenSet[str] = frozenset({"done", "closed", "resolved", "complete", "completed"})

MERGED_STATE = "merged"
OPEN_STATE = "open"

_SECONDS_PER_HOUR = 3600


def is_done(issue: Issue) -> bool:
    """Return whether an issue status is in the done vocabulary (case-insensitive)."""
    return issue.status.lower() in DONE_STATUSES


def average_merge_time_hours(pull_requests: Iterable[PullRequest]) -> Optional[float]:
    """Mean creation-to-merge time in hours, rounded to one decimal.

    Only pull requests with both ``created_at`` and ``merged_at`` take part.
    Returns ``None`` when there are none, which is distinct from ``0.0``.
    """
    durations = [
        (pr.merged_at - pr.created_at).total_seconds() / _SECONDS_PER_HOUR
        for pr in pull_requests
        if pr.created_at is not None and pr.merged_at is not None
    ]
    if not durations:
        return None
    return round_half_up(sum(durations) / len(durations), 1)


def completion_percent(completed: int, total: int) -> int:
    """Completed share of ``total`` as a 0-100 integer; ``0`` for an empty total."""
    if total <= 0:
        return 0
    return int(round_half_up(100 * completed / total))


def build_snapshot(
    team_name: str,
    snapshot_type: SnapshotType,
    period_start: datetime,
    period_end: datetime,
    github: GitHubActivity,
    jira: Optional[JiraActivity] = None,
    sprint_name: Optional[str] = None,
) -> Snapshot:
    """Build a team snapshot from one period of activity.

    Business logic:
    - Commit, pull request and review totals are the record counts.
    - ``closed`` pull requests that were not merged count towards
      ``total_prs`` only.
    - Missing ``additions``/``deletions`` count as ``0``.
    - Jira completion uses :data:`DONE_STATUSES`.
    """
    pull_requests = github.pull_requests
    issues = jira.issues if jira is not None else []

    jira_total = len(issues)
    jira_completed = sum(1 for issue in issues if is_done(issue))

    return Snapshot(
        team_name=team_name,
        snapshot_type=SnapshotType(snapshot_type),
        period_start=period_start,
        period_end=period_end,
        sprint_name=sprint_name,
        total_commits=len(github.commits),
        total_prs=len(pull_requests),
        prs_merged=sum(1 for pr in pull_requests if pr.state == MERGED_STATE),
        prs_open=sum(1 for pr in pull_requests if pr.state == OPEN_STATE),
        total_additions=sum(pr.additions or 0 for pr in pull_requests),
        total_deletions=sum(pr.deletions or 0 for pr in pull_requests),
        total_reviews=len(github.reviews),
        avg_merge_time_h=average_merge_time_hours(pull_requests),
        jira_total=jira_total,
        jira_completed=jira_completed,
        jira_completion_pct=completion_percent(jira_completed, jira_total),
    )


def build_member_snapshots(
    members: Sequence[TeamMember],
    github: GitHubActivity,
    jira: Optional[JiraActivity] = None,
) -> List[MemberSnapshot]:
    """Build one per-member breakdown for each member, in input order.

    GitHub records are attributed by author login (case-insensitive). Jira
    issues are attributed by assignee name when the member has one.
    """
    issues = jira.issues if jira is not None else []
    snapshots: List[MemberSnapshot] = []

    for member in members:
        login = member.github.lower()
        authored = [pr for pr in github.pull_requests if pr.author.lower() == login]
        jira_completed = 0
        if member.jira:
            jira_name = member.jira.lower()
            jira_completed = sum(
                1
                for issue in issues
                if issue.assignee is not None and issue.assignee.lower() == jira_name and is_done(issue)
            )

        snapshots.append(
            MemberSnapshot(
                member_github=member.github,
                commits=sum(1 for commit in github.commits if commit.author.lower() == login),
                prs=len(authored),
                prs_merged=sum(1 for pr in authored if pr.state == MERGED_STATE),
                reviews_given=sum(1 for review in github.reviews if review.author.lower() == login),
                additions=sum(pr.additions or 0 for pr in authored),
                deletions=sum(pr.deletions or 0 for pr in authored),
                jira_completed=jira_completed,
            )
        )

    return snapshots
