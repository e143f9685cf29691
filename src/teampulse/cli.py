"""Command-line argument parsing for teampulse."""

from __future__ import annotations

import argparse
from datetime import datetime, timezone
from pathlib import Path

from .models import SnapshotType


def _non_negative_int(value: str) -> int:
    """Parse and validate a non-negative integer CLI value.

    Raises:
        argparse.ArgumentTypeError: If value is not a non-negative integer.
    """
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an integer") from exc

    if parsed < 0:
        raise argparse.ArgumentTypeError("must be 0 or greater")

    return parsed


def _iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 date or datetime; values without an offset are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an ISO-8601 date or datetime") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments for a snapshot run.

    Returns:
        Parsed CLI arguments. Sprint runs must also pass ``--sprint-name``,
        ``--sprint-start`` and ``--sprint-end``.
    """
    parser = argparse.ArgumentParser(
        prog="teampulse",
        description=(
            "Capture an engineering activity snapshot for a team and report "
            "trends against the previous snapshot."
        ),
    )

    parser.add_argument(
        "--team-config",
        required=True,
        type=Path,
        help="Path to the team JSON file.",
    )
    parser.add_argument(
        "--type",
        dest="snapshot_type",
        type=SnapshotType,
        choices=list(SnapshotType),
        metavar="{daily,weekly,sprint}",
        default=SnapshotType.WEEKLY,
        help="Snapshot period (default: weekly).",
    )
    parser.add_argument(
        "--weeks-ago",
        type=_non_negative_int,
        default=0,
        help="For weekly snapshots, how many weeks back the period ends (default: 0).",
    )
    parser.add_argument("--sprint-name", help="Sprint name for sprint snapshots.")
    parser.add_argument("--sprint-start", type=_iso_datetime, help="Sprint start (ISO-8601).")
    parser.add_argument("--sprint-end", type=_iso_datetime, help="Sprint end (ISO-8601).")
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="History database path (default: $TEAMPULSE_DB or ~/.teampulse/history.db).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    args = parser.parse_args()

    if args.snapshot_type is SnapshotType.SPRINT and not (
        args.sprint_name and args.sprint_start and args.sprint_end
    ):
        parser.error("--type sprint requires --sprint-name, --sprint-start and --sprint-end")

    return args
