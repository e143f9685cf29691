"""Application entry point: fetch activity, store a snapshot, report trends."""

from __future__ import annotations

import argparse
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from .anomaly_detector import detect_anomalies
from .cli import parse_args
from .config import Config, TeamConfig, load_config, load_team_config
from .errors import ApiError, AuthenticationError, ConfigurationError, StoreError
from .github_client import GitHubClient
from .history_store import HistoryStore, sqlite_url
from .jira_client import JiraClient
from .models import JiraActivity, SnapshotType
from .snapshot_builder import build_member_snapshots, build_snapshot
from .stats import generate_report
from .team_health import assess_team_health
from .time_range import TimeRange, daily_time_range, sprint_time_range, weekly_time_range
from .trend_analyzer import analyze_trends

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_CONFIGURATION = 2
EXIT_AUTHENTICATION = 3
EXIT_API = 4
EXIT_STORE = 5

WINDOW_END_INSET = timedelta(seconds=1)
# Earlier snapshots averaged when scoring team health.
HEALTH_HISTORY_LIMIT = 4


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def resolve_time_range(args: argparse.Namespace, now: Optional[datetime] = None) -> TimeRange:
    """Pick the reporting window for the requested snapshot type.

    Rolling windows are anchored on the current minute so that runs scheduled
    at the same time of day line up. Each window is closed one second before
    the next one starts, so the window of the previous run ends strictly
    before the current one begins.
    """
    anchor = (now or datetime.now(timezone.utc)).replace(second=0, microsecond=0)
    if args.snapshot_type is SnapshotType.SPRINT:
        window = sprint_time_range(args.sprint_start, args.sprint_end, now=anchor)
    elif args.snapshot_type is SnapshotType.DAILY:
        window = daily_time_range(now=anchor)
    else:
        window = weekly_time_range(weeks_ago=args.weeks_ago, now=anchor)
    return TimeRange(start=window.start, end=window.end - WINDOW_END_INSET)


def fetch_jira_activity(config: Config, team: TeamConfig, time_range: TimeRange) -> Optional[JiraActivity]:
    """Fetch Jira issues when the team uses Jira and credentials are present."""
    if not team.jira_host or not team.jira_projects:
        return None
    if not config.has_jira_credentials:
        logger.warning(
            "Skipping Jira metrics: JIRA_EMAIL and JIRA_API_TOKEN are not both set",
            extra={"team_name": team.team_name},
        )
        return None

    jira_client = JiraClient(
        host=team.jira_host,
        email=config.jira_email or "",
        api_token=config.jira_api_token or "",
    )
    return jira_client.fetch_activity(team.jira_projects, time_range)


def orchestrate_snapshot_report() -> int:
    """Run one snapshot cycle and print the trend report.

    Returns:
        Process exit code: 0 on success, 2 for configuration errors, 3 for
        authentication errors, 4 for API errors, 5 for history store errors
        and 1 for anything unexpected.
    """
    try:
        args = parse_args()
        configure_logging(args.verbose)

        team = load_team_config(args.team_config)
        config = load_config(db_path=args.db)
        time_range = resolve_time_range(args)

        print(
            f"Fetching {args.snapshot_type.value} activity for team '{team.team_name}' "
            f"({time_range.start:%Y-%m-%d %H:%M} to {time_range.end:%Y-%m-%d %H:%M} UTC)..."
        )
        github_client = GitHubClient(token=config.github_token)
        github = github_client.fetch_activity(team.repos, time_range)
        jira = fetch_jira_activity(config, team, time_range)

        snapshot = build_snapshot(
            team_name=team.team_name,
            snapshot_type=args.snapshot_type,
            period_start=time_range.start,
            period_end=time_range.end,
            github=github,
            jira=jira,
            sprint_name=args.sprint_name,
        )

        members = build_member_snapshots(team.members, github, jira)

        with HistoryStore(sqlite_url(config.db_path)) as store:
            previous = store.most_recent_previous(
                team_name=team.team_name,
                snapshot_type=snapshot.snapshot_type,
                before=snapshot.period_start,
            )
            earlier = [
                past
                for past in store.history(team.team_name, snapshot.snapshot_type, limit=HEALTH_HISTORY_LIMIT)
                if past.period_end < snapshot.period_start
            ]
            stored, stored_members = store.append_with_members(snapshot, members)

        insights = analyze_trends(stored, previous, team.thresholds)
        anomalies = detect_anomalies(
            pull_requests=github.pull_requests,
            reviews=github.reviews,
            issues=jira.issues if jira is not None else [],
            members=stored_members,
            now=time_range.end,
            thresholds=team.thresholds,
        )
        health = assess_team_health(stored, earlier, stored_members, team.thresholds)
        print(generate_report(stored, previous, insights, anomalies, health))
        return EXIT_OK
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIGURATION
    except AuthenticationError as exc:
        logger.error("Authentication error: %s", exc)
        return EXIT_AUTHENTICATION
    except ApiError as exc:
        logger.error("API error: %s", exc)
        return EXIT_API
    except StoreError as exc:
        logger.error("History store error: %s", exc)
        return EXIT_STORE
    except Exception:
        logger.exception("Unexpected error while generating the snapshot report")
        return EXIT_UNEXPECTED


def main() -> int:
    return orchestrate_snapshot_report()


if __name__ == "__main__":
    raise SystemExit(main())
