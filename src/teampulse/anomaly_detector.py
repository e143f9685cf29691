"""Detection of unusual patterns in one period of team activity.

Pure functions over activity records and per-member breakdowns: no I/O, and
the clock is only read when ``now`` is not given.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import FrozenSet, List, Optional, Sequence

from .models import Anomaly, AnomalyType, Issue, MemberSnapshot, PullRequest, Review, Severity
from .snapshot_builder import OPEN_STATE
from .stats import round_half_up
from .thresholds import DEFAULT_THRESHOLDS, ThresholdConfig
from .trend_analyzer import SEVERITY_ORDER

_SECONDS_PER_DAY = 86400

MIN_TEAM_FOR_IMBALANCE = 2
MIN_REVIEWS_FOR_IMBALANCE = 3
MIN_TEAM_FOR_CHURN = 2

HIGH_PRIORITIES: FrozenSet[str] = frozenset({"highest", "high", "critical", "blocker"})
IN_PROGRESS_STATUSES: FrozenSet[str] = frozenset(
    {"in progress", "in review", "in development", "doing", "active"}
)


def _age_days(now: datetime, then: datetime) -> float:
    return (now - then).total_seconds() / _SECONDS_PER_DAY


def detect_stale_pull_requests(
    pull_requests: Sequence[PullRequest],
    now: datetime,
    thresholds: ThresholdConfig,
) -> List[Anomaly]:
    """Flag open pull requests older than the warning or alert age."""
    anomalies: List[Anomaly] = []

    for pr in pull_requests:
        if pr.state != OPEN_STATE or pr.created_at is None:
            continue
        age = _age_days(now, pr.created_at)
        if age >= thresholds.stale_pr_alert_days:
            severity = Severity.ALERT
        elif age >= thresholds.stale_pr_warning_days:
            severity = Severity.WARNING
        else:
            continue

        whole_days = int(age)
        anomalies.append(
            Anomaly(
                type=AnomalyType.STALE_PR,
                severity=severity,
                message=f'PR #{pr.number} "{pr.title}" has been open for {whole_days} days',
                details={"pr_number": pr.number, "repo": pr.repo, "age_days": whole_days},
            )
        )

    return anomalies


def detect_stale_issues(
    issues: Sequence[Issue],
    now: datetime,
    thresholds: ThresholdConfig,
) -> List[Anomaly]:
    """Flag high-priority issues that are in progress but have not been updated."""
    anomalies: List[Anomaly] = []

    for issue in issues:
        if issue.priority.lower() not in HIGH_PRIORITIES:
            continue
        if issue.status.lower() not in IN_PROGRESS_STATUSES or issue.updated_at is None:
            continue
        stale = _age_days(now, issue.updated_at)
        if stale < thresholds.stale_issue_days:
            continue

        whole_days = int(stale)
        anomalies.append(
            Anomaly(
                type=AnomalyType.STALE_ISSUE,
                severity=Severity.ALERT,
                message=f"{issue.key} ({issue.priority}) hasn't moved in {whole_days} days",
                details={
                    "issue_key": issue.key,
                    "priority": issue.priority,
                    "status": issue.status,
                    "stale_days": whole_days,
                },
            )
        )

    return anomalies


def detect_review_imbalance(
    reviews: Sequence[Review],
    members: Sequence[MemberSnapshot],
    thresholds: ThresholdConfig,
) -> List[Anomaly]:
    """Flag a single reviewer handling at least the imbalance share of all reviews.

    Needs a team of two or more and at least three reviews. On a tie for the
    top count the reviewer seen first wins.
    """
    if len(members) < MIN_TEAM_FOR_IMBALANCE or len(reviews) < MIN_REVIEWS_FOR_IMBALANCE:
        return []

    counts = Counter(review.author for review in reviews)
    top_reviewer, top_count = "", 0
    for author, count in counts.items():
        if count > top_count:
            top_reviewer, top_count = author, count

    ratio = top_count / len(reviews)
    if ratio < thresholds.review_imbalance_threshold:
        return []

    percentage = int(round_half_up(ratio * 100))
    return [
        Anomaly(
            type=AnomalyType.REVIEW_IMBALANCE,
            severity=Severity.WARNING,
            message=f"{top_reviewer} handled {percentage}% of reviews ({top_count} of {len(reviews)})",
            details={
                "reviewer": top_reviewer,
                "review_count": top_count,
                "total_reviews": len(reviews),
                "percentage": percentage,
            },
        )
    ]


def detect_no_activity(members: Sequence[MemberSnapshot]) -> List[Anomaly]:
    return [
        Anomaly(
            type=AnomalyType.NO_ACTIVITY,
            severity=Severity.INFO,
            message=f"{member.member_github} had no GitHub activity in this period",
            details={"username": member.member_github},
        )
        for member in members
        if member.commits + member.prs + member.reviews_given == 0
    ]


def detect_high_churn(members: Sequence[MemberSnapshot], thresholds: ThresholdConfig) -> List[Anomaly]:
    """Flag members whose churn exceeds both the team-average multiple and the minimum."""
    if len(members) < MIN_TEAM_FOR_CHURN:
        return []

    churns = [member.additions + member.deletions for member in members]
    average = sum(churns) / len(members)
    if average == 0:
        return []

    anomalies: List[Anomaly] = []
    for member, churn in zip(members, churns):
        if churn <= average * thresholds.high_churn_multiplier or churn <= thresholds.high_churn_minimum:
            continue
        multiple = int(round_half_up(churn / average))
        anomalies.append(
            Anomaly(
                type=AnomalyType.HIGH_CHURN,
                severity=Severity.WARNING,
                message=(
                    f"{member.member_github} has unusually high code churn "
                    f"(+{member.additions}/-{member.deletions}) - {multiple}x team average"
                ),
                details={
                    "username": member.member_github,
                    "additions": member.additions,
                    "deletions": member.deletions,
                    "churn": churn,
                    "team_avg_churn": int(round_half_up(average)),
                },
            )
        )

    return anomalies


def detect_anomalies(
    pull_requests: Sequence[PullRequest],
    reviews: Sequence[Review],
    issues: Sequence[Issue],
    members: Sequence[MemberSnapshot],
    now: Optional[datetime] = None,
    thresholds: Optional[ThresholdConfig] = None,
) -> List[Anomaly]:
    """Run every detector and return the anomalies ordered alert, warning, info.

    Within a severity, anomalies keep detector order: stale pull requests,
    stale issues, review imbalance, no activity, high churn.
    """
    current_time = now or datetime.now(timezone.utc)
    resolved = thresholds or DEFAULT_THRESHOLDS

    anomalies = [
        *detect_stale_pull_requests(pull_requests, current_time, resolved),
        *detect_stale_issues(issues, current_time, resolved),
        *detect_review_imbalance(reviews, members, resolved),
        *detect_no_activity(members),
        *detect_high_churn(members, resolved),
    ]
    return sorted(anomalies, key=lambda anomaly: SEVERITY_ORDER[anomaly.severity])
