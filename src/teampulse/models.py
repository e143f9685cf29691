"""Domain models for engineering activity, snapshots, and trend insights.

Activity dataclasses model only the subset of GitHub and Jira payload fields
that snapshot aggregation needs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class SnapshotType(str, Enum):
    """Period granularity of a snapshot."""

    DAILY = "daily"
    WEEKLY = "weekly"
    SPRINT = "sprint"


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ALERT = "alert"


@dataclass(slots=True)
class Commit:
    """Represents one commit authored within the reporting window."""

    sha: str
    author: str
    date: datetime
    repo: str
    message: str = ""


@dataclass(slots=True)
class PullRequest:
    """Represents the minimal pull request data required for aggregation.

    ``state`` is one of ``open``, ``closed`` or ``merged``. Line counts are
    ``None`` when the provider did not report them.
    """

    number: int
    state: str
    author: str
    created_at: Optional[datetime]
    merged_at: Optional[datetime]
    additions: Optional[int]
    deletions: Optional[int]
    repo: str
    title: str = ""


@dataclass(slots=True)
class Review:
    """Represents one submitted pull request review."""

    pull_request_number: int
    author: str
    state: str
    submitted_at: Optional[datetime]
    repo: str


@dataclass(slots=True)
class GitHubActivity:
    commits: List[Commit] = field(default_factory=list)
    pull_requests: List[PullRequest] = field(default_factory=list)
    reviews: List[Review] = field(default_factory=list)


@dataclass(slots=True)
class Issue:
    """Represents the minimal Jira issue data used for completion metrics."""

    key: str
    status: str
    assignee: Optional[str]
    issue_type: str
    updated_at: Optional[datetime]
    priority: str = ""


@dataclass(slots=True)
class JiraActivity:
    issues: List[Issue] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class TeamMember:
    """A team member's identities on each provider."""

    github: str
    jira: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Aggregate engineering metrics for one team over one period.

    ``avg_merge_time_h`` is ``None`` when no pull request in the period had both
    a creation and a merge time; ``0.0`` means instant merges. ``id`` and
    ``created_at`` are only set once the snapshot has been stored.
    """

    team_name: str
    snapshot_type: SnapshotType
    period_start: datetime
    period_end: datetime

    total_commits: int
    total_prs: int
    prs_merged: int
    prs_open: int
    total_additions: int
    total_deletions: int
    total_reviews: int
    avg_merge_time_h: Optional[float]

    jira_total: int
    jira_completed: int
    jira_completion_pct: int

    sprint_name: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def churn(self) -> int:
        return self.total_additions + self.total_deletions


@dataclass(frozen=True, slots=True)
class MemberSnapshot:
    """Per-member metrics linked to a parent team snapshot."""

    member_github: str
    commits: int
    prs: int
    prs_merged: int
    reviews_given: int
    additions: int
    deletions: int
    jira_completed: int
    snapshot_id: Optional[int] = None
    id: Optional[int] = None


@dataclass(frozen=True, slots=True)
class TrendInsight:
    """One metric compared against the previous period. Never persisted."""

    metric: str
    current: float
    previous: float
    change_percent: int
    direction: Direction
    severity: Severity
    message: str


class AnomalyType(str, Enum):
    STALE_PR = "stale_pr"
    STALE_ISSUE = "stale_issue"
    REVIEW_IMBALANCE = "review_imbalance"
    NO_ACTIVITY = "no_activity"
    HIGH_CHURN = "high_churn"


@dataclass(frozen=True, slots=True)
class Anomaly:
    """An unusual pattern in one period of activity. Never persisted."""

    type: AnomalyType
    severity: Severity
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class DimensionScore:
    score: int
    trend: Direction


@dataclass(frozen=True, slots=True)
class TeamHealthReport:
    """Overall 0-100 health score with its four weighted dimensions."""

    overall_score: int
    velocity: DimensionScore
    throughput: DimensionScore
    review_coverage: DimensionScore
    issue_flow: DimensionScore
    recommendations: Tuple[str, ...] = ()
