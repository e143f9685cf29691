"""Numeric and formatting helpers for snapshot reporting.

This module provides utilities for:
- Half-up rounding that matches how percentages are shown to users.
- Signed percentage change between two periods.
- Formatting numbers and hour durations for display.
- Building a human-readable report of trends, anomalies and team health.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence

from .models import Anomaly, DimensionScore, Snapshot, TeamHealthReport, TrendInsight


def round_half_up(value: float, digits: int = 0) -> float:
    """Round ``value`` to ``digits`` decimals, with ties rounded towards +inf.

    Python's built-in :func:`round` uses banker's rounding, so ``round(2.5)``
    is ``2``. Reported percentages and hours expect ``3`` here.
    """
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def percent_change(current: float, previous: float) -> int:
    """Return the signed percent change from ``previous`` to ``current``.

    A zero ``previous`` yields ``100`` when ``current`` is positive and ``0``
    otherwise, so "nothing to something" reads as a full-scale increase.
    """
    if previous == 0:
        return 100 if current > 0 else 0
    return int(round_half_up(100 * (current - previous) / previous))


def format_number(value: Optional[float]) -> str:
    """Format counts without a trailing ``.0`` and keep real fractions."""
    if value is None:
        return "n/a"
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def format_hours(hours: Optional[float]) -> str:
    """Format an hour duration as ``"<n>h"`` or ``"n/a"`` when unknown."""
    if hours is None:
        return "n/a"
    return f"{format_number(hours)}h"


def _format_dimension(name: str, dimension: DimensionScore) -> str:
    return f"   {name}: {dimension.score} ({dimension.trend.value})"


def generate_report(
    current: Snapshot,
    previous: Optional[Snapshot],
    insights: Sequence[TrendInsight],
    anomalies: Sequence[Anomaly] = (),
    health: Optional[TeamHealthReport] = None,
) -> str:
    """Generate a human-readable report for a snapshot and its trends.

    The report includes the period header, the headline aggregates of
    ``current``, one line per trend insight in the given order, the detected
    anomalies and, when given, the team health breakdown.

    Args:
        current: Snapshot just built for the period.
        previous: Snapshot the trends were computed against, if any.
        insights: Ordered trend insights.
        anomalies: Ordered anomalies for the period.
        health: Team health assessment, if one was made.

    Returns:
        Formatted multi-line text report.
    """
    period = f"{current.period_start:%Y-%m-%d} to {current.period_end:%Y-%m-%d}"
    title = f"{current.snapshot_type.value.capitalize()} snapshot"
    if current.sprint_name:
        title = f"{title} ({current.sprint_name})"

    lines: List[str] = [
        f"Team: {current.team_name}",
        f"{title}: {period}",
        "",
        "Activity",
        f"   Commits: {current.total_commits}",
        f"   Pull requests: {current.total_prs} "
        f"({current.prs_merged} merged, {current.prs_open} open)",
        f"   Lines: +{current.total_additions}/-{current.total_deletions}",
        f"   Reviews: {current.total_reviews}",
        f"   Avg merge time: {format_hours(current.avg_merge_time_h)}",
    ]

    if current.jira_total > 0:
        lines.append(
            f"   Jira: {current.jira_completed}/{current.jira_total} completed "
            f"({current.jira_completion_pct}%)"
        )

    lines.extend(["", "Trends"])
    if previous is None:
        lines.append("   No previous snapshot to compare against.")
    elif not insights:
        lines.append("   All metrics stable.")
    else:
        for insight in insights:
            lines.append(f"   [{insight.severity.value.upper()}] {insight.message}")

    lines.extend(["", "Anomalies"])
    if not anomalies:
        lines.append("   None detected.")
    for anomaly in anomalies:
        lines.append(f"   [{anomaly.severity.value.upper()}] {anomaly.message}")

    if health is not None:
        lines.extend(
            [
                "",
                f"Team health: {health.overall_score}/100",
                _format_dimension("Velocity", health.velocity),
                _format_dimension("Throughput", health.throughput),
                _format_dimension("Review coverage", health.review_coverage),
                _format_dimension("Issue flow", health.issue_flow),
            ]
        )
        lines.extend(f"   - {recommendation}" for recommendation in health.recommendations)

    return "\n".join(lines)
