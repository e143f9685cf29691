"""Trend analysis between two consecutive snapshots.

Each tracked metric is compared against the previous period and tagged with a
severity. Only regressions (a move in the metric's bad direction) can be
escalated to ``warning`` or ``alert``; improvements always stay ``info``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .models import Direction, Severity, Snapshot, TrendInsight
from .stats import format_number, percent_change
from .thresholds import DEFAULT_THRESHOLDS, ThresholdConfig

# Changes smaller than this are noise and reported as stable. Not configurable.
STABLE_BAND_PERCENT = 5

SEVERITY_ORDER: Dict[Severity, int] = {
    Severity.ALERT: 0,
    Severity.WARNING: 1,
    Severity.INFO: 2,
}


@dataclass(frozen=True)
class TrackedMetric:
    """How one snapshot metric is extracted, judged and described.

    ``describe`` receives the full snapshots so that composite metrics such as
    churn can show their parts.
    """

    name: str
    value: Callable[[Snapshot], Optional[float]]
    up_good: bool
    describe: Callable[[Snapshot, Snapshot], str]
    unit: str = ""
    applies: Callable[[Snapshot, Snapshot], bool] = lambda current, previous: True


def _both_have_merge_time(current: Snapshot, previous: Snapshot) -> bool:
    return current.avg_merge_time_h is not None and previous.avg_merge_time_h is not None


def _both_have_jira(current: Snapshot, previous: Snapshot) -> bool:
    return current.jira_total > 0 and previous.jira_total > 0


def _describe_churn(current: Snapshot, previous: Snapshot) -> str:
    return (
        f"+{current.total_additions}/-{current.total_deletions} lines "
        f"(was +{previous.total_additions}/-{previous.total_deletions})"
    )


TRACKED_METRICS: Tuple[TrackedMetric, ...] = (
    TrackedMetric(
        name="Commits",
        value=lambda s: s.total_commits,
        up_good=True,
        describe=lambda c, p: f"{c.total_commits} commits (was {p.total_commits})",
    ),
    TrackedMetric(
        name="PRs Merged",
        value=lambda s: s.prs_merged,
        up_good=True,
        describe=lambda c, p: f"{c.prs_merged} PRs merged (was {p.prs_merged})",
    ),
    TrackedMetric(
        name="Open PRs",
        value=lambda s: s.prs_open,
        up_good=False,
        describe=lambda c, p: f"{c.prs_open} open PRs (was {p.prs_open})",
    ),
    TrackedMetric(
        name="Code Churn",
        value=lambda s: s.churn,
        up_good=True,
        describe=_describe_churn,
    ),
    TrackedMetric(
        name="Reviews",
        value=lambda s: s.total_reviews,
        up_good=True,
        describe=lambda c, p: f"{c.total_reviews} reviews (was {p.total_reviews})",
    ),
    TrackedMetric(
        name="Avg Merge Time",
        value=lambda s: s.avg_merge_time_h,
        up_good=False,
        unit="h",
        applies=_both_have_merge_time,
        describe=lambda c, p: (
            f"{format_number(c.avg_merge_time_h)}h avg merge time "
            f"(was {format_number(p.avg_merge_time_h)}h)"
        ),
    ),
    TrackedMetric(
        name="Jira Completion",
        value=lambda s: s.jira_completion_pct,
        up_good=True,
        unit="%",
        applies=_both_have_jira,
        describe=lambda c, p: (
            f"{c.jira_completion_pct}% completion rate (was {p.jira_completion_pct}%)"
        ),
    ),
)


def classify_direction(change_percent: int) -> Direction:
    if abs(change_percent) < STABLE_BAND_PERCENT:
        return Direction.STABLE
    return Direction.UP if change_percent > 0 else Direction.DOWN


def classify_severity(
    change_percent: int,
    direction: Direction,
    up_good: bool,
    thresholds: ThresholdConfig,
) -> Severity:
    """Escalate only moves in the metric's bad direction."""
    is_bad_direction = (direction is Direction.UP and not up_good) or (
        direction is Direction.DOWN and up_good
    )
    magnitude = abs(change_percent)

    if is_bad_direction and magnitude >= thresholds.trend_alert_percent:
        return Severity.ALERT
    if is_bad_direction and magnitude >= thresholds.trend_warning_percent:
        return Severity.WARNING
    return Severity.INFO


def compare_metric(
    metric: TrackedMetric,
    current: Snapshot,
    previous: Snapshot,
    thresholds: ThresholdConfig,
) -> TrendInsight:
    """Compare one tracked metric between two snapshots."""
    current_value = metric.value(current)
    previous_value = metric.value(previous)

    change = percent_change(current_value, previous_value)
    direction = classify_direction(change)
    severity = classify_severity(change, direction, metric.up_good, thresholds)

    if direction is Direction.STABLE:
        message = f"{metric.name}: stable at {format_number(current_value)}{metric.unit}"
    else:
        sign = "+" if direction is Direction.UP else ""
        message = f"{metric.name}: {sign}{change}% - {metric.describe(current, previous)}"

    return TrendInsight(
        metric=metric.name,
        current=current_value,
        previous=previous_value,
        change_percent=change,
        direction=direction,
        severity=severity,
        message=message,
    )


def analyze_trends(
    current: Snapshot,
    previous: Optional[Snapshot],
    thresholds: Optional[ThresholdConfig] = None,
) -> List[TrendInsight]:
    """Compare ``current`` against ``previous`` and rank the resulting insights.

    Returns an empty list when there is no previous snapshot. Stable metrics
    are dropped; the rest are ordered alert, warning, info, keeping the
    :data:`TRACKED_METRICS` order within a severity.
    """
    if previous is None:
        return []

    resolved = thresholds or DEFAULT_THRESHOLDS
    insights = [
        compare_metric(metric, current, previous, resolved)
        for metric in TRACKED_METRICS
        if metric.applies(current, previous)
    ]

    changed = [insight for insight in insights if insight.direction is not Direction.STABLE]
    return sorted(changed, key=lambda insight: SEVERITY_ORDER[insight.severity])
