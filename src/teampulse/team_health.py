"""Team health scoring across velocity, throughput, review coverage and issue flow.

Each dimension scores 0-100 against the current snapshot and, where useful,
the average of earlier snapshots. The overall score is a weighted average:

    velocity 20%, throughput 30%, review coverage 25%, issue flow 25%
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from .models import Direction, DimensionScore, MemberSnapshot, Snapshot, TeamHealthReport
from .stats import round_half_up
from .thresholds import DEFAULT_THRESHOLDS, ThresholdConfig

VELOCITY_WEIGHT = 0.2
THROUGHPUT_WEIGHT = 0.3
REVIEW_COVERAGE_WEIGHT = 0.25
ISSUE_FLOW_WEIGHT = 0.25

# Ratios against the historical average inside this band count as stable.
_RATIO_STABLE_BAND = (0.9, 1.1)
# Completion-percentage points either side of the average that count as stable.
_COMPLETION_STABLE_POINTS = 5


def _average(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _clamp(value: int, low: int = 0, high: int = 100) -> int:
    return min(high, max(low, value))


def _round(value: float) -> int:
    return int(round_half_up(value))


def _ratio_trend(ratio: float) -> Direction:
    low, high = _RATIO_STABLE_BAND
    if ratio > high:
        return Direction.UP
    if ratio < low:
        return Direction.DOWN
    return Direction.STABLE


def gini_coefficient(values: Sequence[float]) -> float:
    """Inequality of a distribution: 0 is perfectly even, values near 1 are concentrated."""
    count = len(values)
    total = sum(values)
    if count == 0 or total == 0:
        return 0.0

    ordered = sorted(values)
    numerator = sum((2 * (index + 1) - count - 1) * value for index, value in enumerate(ordered))
    return numerator / (count * total)


def score_velocity(current: Snapshot, history: Sequence[Snapshot]) -> DimensionScore:
    if not history:
        return DimensionScore(score=70 if current.total_commits > 0 else 30, trend=Direction.STABLE)

    previous_average = _average([snapshot.total_commits for snapshot in history])
    if previous_average == 0:
        if current.total_commits > 0:
            return DimensionScore(score=80, trend=Direction.UP)
        return DimensionScore(score=50, trend=Direction.STABLE)

    ratio = current.total_commits / previous_average
    if ratio >= 1.0:
        score = min(100, 80 + _round(ratio * 10))
    else:
        score = max(20, _round(ratio * 80))
    return DimensionScore(score=score, trend=_ratio_trend(ratio))


def score_throughput(
    current: Snapshot,
    history: Sequence[Snapshot],
    thresholds: ThresholdConfig,
) -> DimensionScore:
    """Merge rate as a percentage, penalised for slow average merge times."""
    if current.total_prs == 0:
        return DimensionScore(score=30, trend=Direction.STABLE)

    score = _round(100 * current.prs_merged / current.total_prs)
    merge_time = current.avg_merge_time_h
    if merge_time is not None and merge_time > thresholds.merge_time_alert_h:
        score = max(20, score - 30)
    elif merge_time is not None and merge_time > thresholds.merge_time_warning_h:
        score = max(20, score - 15)

    trend = Direction.STABLE
    previous_merged = _average([snapshot.prs_merged for snapshot in history])
    if previous_merged > 0:
        trend = _ratio_trend(current.prs_merged / previous_merged)

    return DimensionScore(score=_clamp(score), trend=trend)


def score_review_coverage(current: Snapshot, members: Sequence[MemberSnapshot]) -> DimensionScore:
    """How evenly reviews are spread across members (1 - Gini)."""
    if current.total_reviews == 0:
        return DimensionScore(score=30, trend=Direction.STABLE)
    if len(members) <= 1:
        return DimensionScore(score=70, trend=Direction.STABLE)

    review_counts = [member.reviews_given for member in members]
    if sum(review_counts) == 0:
        return DimensionScore(score=30, trend=Direction.STABLE)

    score = _round((1 - gini_coefficient(review_counts)) * 100)
    return DimensionScore(score=_clamp(score), trend=Direction.STABLE)


def score_issue_flow(current: Snapshot, history: Sequence[Snapshot]) -> DimensionScore:
    if current.jira_total == 0:
        return DimensionScore(score=60, trend=Direction.STABLE)

    score = current.jira_completion_pct
    if current.jira_completion_pct >= 90:
        score = min(100, score + 5)

    trend = Direction.STABLE
    previous_completion = _average([snapshot.jira_completion_pct for snapshot in history])
    if previous_completion > 0:
        difference = current.jira_completion_pct - previous_completion
        if difference > _COMPLETION_STABLE_POINTS:
            trend = Direction.UP
        elif difference < -_COMPLETION_STABLE_POINTS:
            trend = Direction.DOWN

    return DimensionScore(score=_clamp(score), trend=trend)


def recommend(
    current: Snapshot,
    members: Sequence[MemberSnapshot],
    velocity: DimensionScore,
    review_coverage: DimensionScore,
    issue_flow: DimensionScore,
    thresholds: ThresholdConfig,
) -> List[str]:
    recommendations: List[str] = []

    if velocity.score < 50 and velocity.trend is Direction.DOWN:
        recommendations.append(
            "Commit velocity is declining - consider whether scope or blockers are slowing the team"
        )

    merge_time = current.avg_merge_time_h
    if merge_time is not None and merge_time > thresholds.merge_time_warning_h:
        recommendations.append(
            f"Average merge time is {_round(merge_time)}h - aim for under "
            f"{thresholds.merge_time_warning_h:g}h to maintain flow"
        )
    if current.prs_open > current.prs_merged and current.prs_open > 3:
        recommendations.append(
            f"{current.prs_open} PRs are open vs {current.prs_merged} merged - review backlog may be growing"
        )

    if review_coverage.score < 50 and len(members) > 1:
        recommendations.append("Review load is unevenly distributed - consider rotating review assignments")

    if issue_flow.score < 60 and issue_flow.trend is Direction.DOWN:
        recommendations.append("Jira completion rate is dropping - review sprint scope or address blockers")
    if 0 < current.jira_completion_pct < 50:
        recommendations.append(
            f"Only {current.jira_completion_pct}% of issues completed - sprint may be over-committed"
        )

    return recommendations


def assess_team_health(
    current: Snapshot,
    history: Sequence[Snapshot],
    members: Sequence[MemberSnapshot],
    thresholds: Optional[ThresholdConfig] = None,
) -> TeamHealthReport:
    """Score the current snapshot against earlier ones.

    Args:
        current: Snapshot being assessed.
        history: Earlier snapshots of the same team and type; may be empty.
        members: Per-member breakdowns of ``current``.
        thresholds: Resolved thresholds; defaults apply when omitted.
    """
    resolved = thresholds or DEFAULT_THRESHOLDS

    velocity = score_velocity(current, history)
    throughput = score_throughput(current, history, resolved)
    review_coverage = score_review_coverage(current, members)
    issue_flow = score_issue_flow(current, history)

    overall = _round(
        velocity.score * VELOCITY_WEIGHT
        + throughput.score * THROUGHPUT_WEIGHT
        + review_coverage.score * REVIEW_COVERAGE_WEIGHT
        + issue_flow.score * ISSUE_FLOW_WEIGHT
    )

    return TeamHealthReport(
        overall_score=overall,
        velocity=velocity,
        throughput=throughput,
        review_coverage=review_coverage,
        issue_flow=issue_flow,
        recommendations=tuple(recommend(current, members, velocity, review_coverage, issue_flow, resolved)),
    )
