"""Tests for trend analysis between snapshots."""

import sys
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from teampulse.models import Direction, Severity, Snapshot, SnapshotType
from teampulse.thresholds import resolve_thresholds
from teampulse.trend_analyzer import (
    STABLE_BAND_PERCENT,
    TRACKED_METRICS,
    analyze_trends,
    classify_direction,
    classify_severity,
)


def _snapshot(**overrides) -> Snapshot:
    values = dict(
        team_name="platform",
        snapshot_type=SnapshotType.WEEKLY,
        period_start=datetime(2026, 1, 5, tzinfo=timezone.utc),
        period_end=datetime(2026, 1, 12, tzinfo=timezone.utc),
        total_commits=10,
        total_prs=8,
        prs_merged=6,
        prs_open=2,
        total_additions=400,
        total_deletions=100,
        total_reviews=12,
        avg_merge_time_h=10.0,
        jira_total=10,
        jira_completed=5,
        jira_completion_pct=50,
    )
    values.update(overrides)
    return Snapshot(**values)


def _by_metric(insights):
    return {insight.metric: insight for insight in insights}


def test_analyze_trends_without_previous_returns_empty_list():
    """Verify the first-ever snapshot yields no insights."""
    assert analyze_trends(_snapshot(), None) == []
    assert analyze_trends(_snapshot(), None, resolve_thresholds({"trendAlertPercent": 1})) == []


def test_analyze_trends_identical_snapshots_are_all_stable():
    """Verify unchanged metrics are filtered out entirely."""
    assert analyze_trends(_snapshot(), _snapshot()) == []


def test_commit_increase_is_info_even_when_large():
    """Verify a 100% increase in a good-when-up metric stays informational."""
    insights = analyze_trends(_snapshot(total_commits=20), _snapshot(total_commits=10))

    commits = _by_metric(insights)["Commits"]
    assert commits.change_percent == 100
    assert commits.direction is Direction.UP
    assert commits.severity is Severity.INFO
    assert commits.current == 20
    assert commits.previous == 10
    assert commits.message == "Commits: +100% - 20 commits (was 10)"


def test_open_prs_tripling_is_an_alert():
    """Verify a bad-direction change above the alert threshold is an alert."""
    thresholds = resolve_thresholds({"trendWarningPercent": 25})

    insights = analyze_trends(_snapshot(prs_open=15), _snapshot(prs_open=5), thresholds)

    open_prs = _by_metric(insights)["Open PRs"]
    assert open_prs.change_percent == 200
    assert open_prs.direction is Direction.UP
    assert open_prs.severity is Severity.ALERT


def test_open_prs_doubling_is_an_alert_at_default_thresholds():
    """Verify a 100% rise in open PRs exceeds the default 50% alert threshold."""
    insights = analyze_trends(_snapshot(prs_open=10), _snapshot(prs_open=5))

    open_prs = _by_metric(insights)["Open PRs"]
    assert open_prs.change_percent == 100
    assert open_prs.severity is Severity.ALERT


def test_bad_direction_between_thresholds_is_a_warning():
    """Verify a bad-direction change between warning and alert thresholds is a warning."""
    insights = analyze_trends(_snapshot(total_reviews=8), _snapshot(total_reviews=12))

    reviews = _by_metric(insights)["Reviews"]
    assert reviews.change_percent == -33
    assert reviews.direction is Direction.DOWN
    assert reviews.severity is Severity.WARNING
    assert reviews.message == "Reviews: -33% - 8 reviews (was 12)"


def test_zero_to_zero_is_stable_and_filtered():
    """Verify a metric that stays at zero produces no insight."""
    insights = analyze_trends(_snapshot(total_reviews=0), _snapshot(total_reviews=0))

    assert "Reviews" not in _by_metric(insights)


def test_zero_to_something_counts_as_full_increase():
    """Verify a zero previous value with a positive current value reads as +100%."""
    insights = analyze_trends(_snapshot(total_reviews=3), _snapshot(total_reviews=0))

    reviews = _by_metric(insights)["Reviews"]
    assert reviews.change_percent == 100
    assert reviews.direction is Direction.UP


def test_small_changes_inside_noise_band_are_dropped():
    """Verify changes below the fixed stable band are filtered."""
    insights = analyze_trends(_snapshot(total_commits=104), _snapshot(total_commits=100))

    assert "Commits" not in _by_metric(insights)
    assert classify_direction(STABLE_BAND_PERCENT - 1) is Direction.STABLE
    assert classify_direction(STABLE_BAND_PERCENT) is Direction.UP
    assert classify_direction(-STABLE_BAND_PERCENT) is Direction.DOWN


def test_code_churn_message_shows_additions_and_deletions():
    """Verify churn compares additions plus deletions and describes both parts."""
    insights = analyze_trends(
        _snapshot(total_additions=800, total_deletions=200),
        _snapshot(total_additions=400, total_deletions=100),
    )

    churn = _by_metric(insights)["Code Churn"]
    assert churn.current == 1000
    assert churn.previous == 500
    assert churn.severity is Severity.INFO
    assert churn.message == "Code Churn: +100% - +800/-200 lines (was +400/-100)"


def test_merge_time_is_skipped_when_either_side_has_no_data():
    """Verify a None merge time on either snapshot suppresses the metric."""
    insights = analyze_trends(_snapshot(avg_merge_time_h=None), _snapshot(avg_merge_time_h=10.0))
    assert "Avg Merge Time" not in _by_metric(insights)

    insights = analyze_trends(_snapshot(avg_merge_time_h=30.0), _snapshot(avg_merge_time_h=None))
    assert "Avg Merge Time" not in _by_metric(insights)


def test_merge_time_increase_is_bad_direction():
    """Verify slower merges are flagged since lower is better."""
    insights = analyze_trends(_snapshot(avg_merge_time_h=12.5), _snapshot(avg_merge_time_h=10.0))

    merge_time = _by_metric(insights)["Avg Merge Time"]
    assert merge_time.change_percent == 25
    assert merge_time.severity is Severity.WARNING
    assert merge_time.message == "Avg Merge Time: +25% - 12.5h avg merge time (was 10h)"


def test_merge_time_drop_from_zero_previous_is_not_evaluated_as_missing():
    """Verify a 0.0 merge time is real data and still compared."""
    insights = analyze_trends(_snapshot(avg_merge_time_h=4.0), _snapshot(avg_merge_time_h=0.0))

    merge_time = _by_metric(insights)["Avg Merge Time"]
    assert merge_time.change_percent == 100
    assert merge_time.severity is Severity.ALERT


def test_jira_completion_requires_issues_on_both_sides():
    """Verify Jira completion is only compared when both periods had issues."""
    insights = analyze_trends(
        _snapshot(jira_total=0, jira_completed=0, jira_completion_pct=0),
        _snapshot(jira_total=10, jira_completion_pct=50),
    )
    assert "Jira Completion" not in _by_metric(insights)

    insights = analyze_trends(
        _snapshot(jira_total=10, jira_completion_pct=20),
        _snapshot(jira_total=10, jira_completion_pct=50),
    )
    completion = _by_metric(insights)["Jira Completion"]
    assert completion.change_percent == -60
    assert completion.severity is Severity.ALERT
    assert completion.message == "Jira Completion: -60% - 20% completion rate (was 50%)"


def test_insights_are_sorted_by_severity_with_stable_metric_order():
    """Verify alerts precede warnings precede info, keeping metric order within a severity."""
    current = _snapshot(total_commits=20, prs_merged=3, prs_open=10, total_reviews=8, total_additions=800)
    previous = _snapshot(total_commits=10, prs_merged=6, prs_open=2, total_reviews=12, total_additions=400)

    insights = analyze_trends(current, previous)

    assert [(i.metric, i.severity) for i in insights] == [
        ("PRs Merged", Severity.ALERT),
        ("Open PRs", Severity.ALERT),
        ("Reviews", Severity.WARNING),
        ("Commits", Severity.INFO),
        ("Code Churn", Severity.INFO),
    ]


def test_custom_thresholds_change_severity():
    """Verify resolved thresholds drive the warning and alert boundaries."""
    thresholds = resolve_thresholds({"trendAlertPercent": 200, "trendWarningPercent": 150})

    insights = analyze_trends(_snapshot(prs_open=4), _snapshot(prs_open=2), thresholds)

    assert _by_metric(insights)["Open PRs"].severity is Severity.INFO


@pytest.mark.parametrize(
    "direction, up_good, expected",
    [
        (Direction.UP, True, Severity.INFO),
        (Direction.DOWN, False, Severity.INFO),
        (Direction.UP, False, Severity.ALERT),
        (Direction.DOWN, True, Severity.ALERT),
    ],
)
def test_classify_severity_only_escalates_bad_directions(direction, up_good, expected):
    """Verify polarity decides whether a large change is escalated."""
    thresholds = resolve_thresholds()
    change = 80 if direction is Direction.UP else -80

    assert classify_severity(change, direction, up_good, thresholds) is expected


def test_tracked_metrics_table_order_and_polarity():
    """Verify the tracked metric table."""
    assert [(m.name, m.up_good) for m in TRACKED_METRICS] == [
        ("Commits", True),
        ("PRs Merged", True),
        ("Open PRs", False),
        ("Code Churn", True),
        ("Reviews", True),
        ("Avg Merge Time", False),
        ("Jira Completion", True),
    ]


def test_analyze_trends_does_not_modify_snapshots():
    """Verify snapshots passed in are left untouched."""
    current = _snapshot(total_commits=20)
    previous = _snapshot()
    current_copy = replace(current)

    analyze_trends(current, previous)

    assert current == current_copy
