"""Tests for numeric helpers and report rendering."""

import sys
from datetime import datetime, timezone
from pathlib import Path

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from teampulse.models import (
    Anomaly,
    AnomalyType,
    DimensionScore,
    Direction,
    Severity,
    Snapshot,
    SnapshotType,
    TeamHealthReport,
    TrendInsight,
)
from teampulse.stats import format_hours, format_number, generate_report, percent_change, round_half_up


def _snapshot(**overrides) -> Snapshot:
    values = dict(
        team_name="platform",
        snapshot_type=SnapshotType.WEEKLY,
        period_start=datetime(2026, 1, 5, tzinfo=timezone.utc),
        period_end=datetime(2026, 1, 12, tzinfo=timezone.utc),
        total_commits=20,
        total_prs=8,
        prs_merged=6,
        prs_open=2,
        total_additions=400,
        total_deletions=100,
        total_reviews=12,
        avg_merge_time_h=None,
        jira_total=0,
        jira_completed=0,
        jira_completion_pct=0,
    )
    values.update(overrides)
    return Snapshot(**values)


def test_round_half_up_rounds_ties_upwards():
    """Verify ties round towards positive infinity, unlike the built-in round."""
    assert round_half_up(2.5) == 3
    assert round_half_up(-2.5) == -2
    assert round_half_up(12.25, 1) == 12.3
    assert round_half_up(1.3333, 1) == 1.3


def test_percent_change_handles_zero_previous():
    """Verify division by zero is avoided for a zero previous value."""
    assert percent_change(5, 0) == 100
    assert percent_change(0, 0) == 0
    assert percent_change(20, 10) == 100
    assert percent_change(5, 10) == -50
    assert percent_change(8, 12) == -33


def test_format_number_and_hours():
    """Verify numbers drop a trailing .0 and missing hours render as n/a."""
    assert format_number(10.0) == "10"
    assert format_number(12.5) == "12.5"
    assert format_number(None) == "n/a"
    assert format_hours(None) == "n/a"
    assert format_hours(20.0) == "20h"


def test_generate_report_without_previous_says_nothing_to_compare():
    """Verify the first snapshot report explains the missing comparison."""
    report = generate_report(_snapshot(), None, [])

    assert "Team: platform" in report
    assert "Weekly snapshot: 2026-01-05 to 2026-01-12" in report
    assert "Commits: 20" in report
    assert "Pull requests: 8 (6 merged, 2 open)" in report
    assert "Lines: +400/-100" in report
    assert "Avg merge time: n/a" in report
    assert "Jira:" not in report
    assert "No previous snapshot to compare against." in report


def test_generate_report_lists_insights_in_order_with_severity():
    """Verify insights are rendered one per line with their severity tag."""
    current = _snapshot(sprint_name="Sprint 7", snapshot_type=SnapshotType.SPRINT, jira_total=4, jira_completed=3, jira_completion_pct=75)
    insights = [
        TrendInsight("Open PRs", 10, 2, 400, Direction.UP, Severity.ALERT, "Open PRs: +400% - 10 open PRs (was 2)"),
        TrendInsight("Commits", 20, 10, 100, Direction.UP, Severity.INFO, "Commits: +100% - 20 commits (was 10)"),
    ]

    report = generate_report(current, _snapshot(), insights)
    lines = report.splitlines()

    assert "Sprint snapshot (Sprint 7): 2026-01-05 to 2026-01-12" in report
    assert "Jira: 3/4 completed (75%)" in report
    alert_index = lines.index("   [ALERT] Open PRs: +400% - 10 open PRs (was 2)")
    info_index = lines.index("   [INFO] Commits: +100% - 20 commits (was 10)")
    assert alert_index < info_index


def test_generate_report_with_no_changes_reports_stable():
    """Verify an empty insight list against a previous snapshot reads as stable."""
    report = generate_report(_snapshot(), _snapshot(), [])

    assert "All metrics stable." in report


def test_generate_report_lists_anomalies_or_none_detected():
    """Verify anomalies get their own section with severity tags."""
    anomaly = Anomaly(AnomalyType.NO_ACTIVITY, Severity.INFO, "bob had no GitHub activity in this period")

    quiet = generate_report(_snapshot(), None, [])
    noisy = generate_report(_snapshot(), None, [], anomalies=[anomaly])

    assert "Anomalies\n   None detected." in quiet
    assert "   [INFO] bob had no GitHub activity in this period" in noisy.splitlines()


def test_generate_report_renders_team_health_with_recommendations():
    """Verify the health section shows the overall score, dimensions and recommendations."""
    health = TeamHealthReport(
        overall_score=74,
        velocity=DimensionScore(70, Direction.STABLE),
        throughput=DimensionScore(75, Direction.UP),
        review_coverage=DimensionScore(100, Direction.STABLE),
        issue_flow=DimensionScore(50, Direction.DOWN),
        recommendations=("Review load is unevenly distributed - consider rotating review assignments",),
    )

    lines = generate_report(_snapshot(), None, [], health=health).splitlines()

    assert "Team health: 74/100" in lines
    assert "   Throughput: 75 (up)" in lines
    assert "   Issue flow: 50 (down)" in lines
    assert "   - Review load is unevenly distributed - consider rotating review assignments" in lines
    assert "Team health: 74/100" not in generate_report(_snapshot(), None, [])
