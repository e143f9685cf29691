"""SQLite-backed, append-only history of team snapshots.

Only aggregated numbers are stored, never commit messages, titles or issue
summaries. Rows are inserted once and never updated.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from .errors import StoreError
from .models import MemberSnapshot, Snapshot, SnapshotType

logger = logging.getLogger(__name__)

# Fixed width so that stored timestamps order correctly as text.
_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS snapshots (
      id                  INTEGER PRIMARY KEY AUTOINCREMENT,
      team_name           TEXT NOT NULL,
      snapshot_type       TEXT NOT NULL,
      period_start        TEXT NOT NULL,
      period_end          TEXT NOT NULL,
      sprint_name         TEXT,
      created_at          TEXT NOT NULL,
      total_commits       INTEGER NOT NULL DEFAULT 0,
      total_prs           INTEGER NOT NULL DEFAULT 0,
      prs_merged          INTEGER NOT NULL DEFAULT 0,
      prs_open            INTEGER NOT NULL DEFAULT 0,
      total_additions     INTEGER NOT NULL DEFAULT 0,
      total_deletions     INTEGER NOT NULL DEFAULT 0,
      total_reviews       INTEGER NOT NULL DEFAULT 0,
      avg_merge_time_h    REAL,
      jira_total          INTEGER NOT NULL DEFAULT 0,
      jira_completed      INTEGER NOT NULL DEFAULT 0,
      jira_completion_pct INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS member_snapshots (
      id              INTEGER PRIMARY KEY AUTOINCREMENT,
      snapshot_id     INTEGER NOT NULL REFERENCES snapshots(id),
      member_github   TEXT NOT NULL,
      commits         INTEGER NOT NULL DEFAULT 0,
      prs             INTEGER NOT NULL DEFAULT 0,
      prs_merged      INTEGER NOT NULL DEFAULT 0,
      reviews_given   INTEGER NOT NULL DEFAULT 0,
      additions       INTEGER NOT NULL DEFAULT 0,
      deletions       INTEGER NOT NULL DEFAULT 0,
      jira_completed  INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_snapshots_team_type_period
      ON snapshots (team_name, snapshot_type, period_end)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_member_snapshots_snapshot
      ON member_snapshots (snapshot_id)
    """,
)

_SNAPSHOT_COLUMNS = (
    "team_name, snapshot_type, period_start, period_end, sprint_name, created_at, "
    "total_commits, total_prs, prs_merged, prs_open, total_additions, total_deletions, "
    "total_reviews, avg_merge_time_h, jira_total, jira_completed, jira_completion_pct"
)

_ORDER_NEWEST_FIRST = "ORDER BY period_end DESC, created_at DESC, id DESC"


def _dt_to_sqlite(value: datetime) -> str:
    """Normalise a datetime to a fixed-width UTC string; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_TIMESTAMP_FORMAT)


def _dt_from_sqlite(value: str) -> datetime:
    return datetime.strptime(value, _TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_snapshot(row: Mapping[str, Any]) -> Snapshot:
    return Snapshot(
        id=row["id"],
        team_name=row["team_name"],
        snapshot_type=SnapshotType(row["snapshot_type"]),
        period_start=_dt_from_sqlite(row["period_start"]),
        period_end=_dt_from_sqlite(row["period_end"]),
        sprint_name=row["sprint_name"],
        created_at=_dt_from_sqlite(row["created_at"]),
        total_commits=row["total_commits"],
        total_prs=row["total_prs"],
        prs_merged=row["prs_merged"],
        prs_open=row["prs_open"],
        total_additions=row["total_additions"],
        total_deletions=row["total_deletions"],
        total_reviews=row["total_reviews"],
        avg_merge_time_h=row["avg_merge_time_h"],
        jira_total=row["jira_total"],
        jira_completed=row["jira_completed"],
        jira_completion_pct=row["jira_completion_pct"],
    )


def _row_to_member(row: Mapping[str, Any]) -> MemberSnapshot:
    return MemberSnapshot(
        id=row["id"],
        snapshot_id=row["snapshot_id"],
        member_github=row["member_github"],
        commits=row["commits"],
        prs=row["prs"],
        prs_merged=row["prs_merged"],
        reviews_given=row["reviews_given"],
        additions=row["additions"],
        deletions=row["deletions"],
        jira_completed=row["jira_completed"],
    )


def sqlite_url(path: Path) -> str:
    """Build an SQLAlchemy URL for a SQLite file, creating its directory."""
    path = path.expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _snapshot_params(snapshot: Snapshot) -> Dict[str, Any]:
    return {
        "team_name": snapshot.team_name,
        "snapshot_type": SnapshotType(snapshot.snapshot_type).value,
        "period_start": _dt_to_sqlite(snapshot.period_start),
        "period_end": _dt_to_sqlite(snapshot.period_end),
        "sprint_name": snapshot.sprint_name,
        "total_commits": snapshot.total_commits,
        "total_prs": snapshot.total_prs,
        "prs_merged": snapshot.prs_merged,
        "prs_open": snapshot.prs_open,
        "total_additions": snapshot.total_additions,
        "total_deletions": snapshot.total_deletions,
        "total_reviews": snapshot.total_reviews,
        "avg_merge_time_h": snapshot.avg_merge_time_h,
        "jira_total": snapshot.jira_total,
        "jira_completed": snapshot.jira_completed,
        "jira_completion_pct": snapshot.jira_completion_pct,
    }


_SNAPSHOT_PLACEHOLDERS = ", ".join(f":{name.strip()}" for name in _SNAPSHOT_COLUMNS.split(","))

_INSERT_MEMBER = """
    INSERT INTO member_snapshots (
      snapshot_id, member_github, commits, prs, prs_merged,
      reviews_given, additions, deletions, jira_completed
    ) VALUES (
      :snapshot_id, :member_github, :commits, :prs, :prs_merged,
      :reviews_given, :additions, :deletions, :jira_completed
    )
"""


class HistoryStore:
    """Append-only snapshot history keyed by team, snapshot type and period.

    Each append runs in its own transaction and appends are serialised within
    the process, so readers only ever observe fully written snapshots. Member
    rows must reference a stored snapshot; SQLite enforces this once
    ``foreign_keys`` is switched on for every connection.
    """

    def __init__(self, db_url: str, clock: Optional[Callable[[], datetime]] = None) -> None:
        if not db_url:
            raise StoreError("A database URL is required for the snapshot history.")
        self._clock = clock or _utc_now
        self._lock = threading.Lock()
        try:
            self.engine: Engine = create_engine(db_url, echo=False)
            if self.engine.dialect.name == "sqlite":
                event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
            self.ensure_tables()
        except SQLAlchemyError as exc:
            raise StoreError(f"Unable to open snapshot history at {db_url}") from exc

    def __enter__(self) -> "HistoryStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.engine.dispose()

    def ensure_tables(self) -> None:
        with self.engine.begin() as conn:
            for stmt in _SCHEMA:
                conn.execute(text(stmt))

    def append(self, snapshot: Snapshot) -> Snapshot:
        """Insert ``snapshot`` as a new row and return it with ``id``/``created_at`` set.

        Raises:
            StoreError: If the insert fails.
        """
        stored, _ = self.append_with_members(snapshot, ())
        return stored

    def append_with_members(
        self,
        snapshot: Snapshot,
        members: Sequence[MemberSnapshot],
    ) -> Tuple[Snapshot, List[MemberSnapshot]]:
        """Insert a snapshot and its member breakdowns in one transaction.

        Either everything is stored or nothing is.

        Raises:
            StoreError: If any insert fails.
        """
        try:
            with self._lock, self.engine.begin() as conn:
                row = self._insert_snapshot(conn, snapshot)
                stored_members = self._insert_members(conn, row["id"], members)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to store snapshot for team '{snapshot.team_name}'") from exc

        stored = _row_to_snapshot(row)
        logger.info(
            "Stored snapshot",
            extra={
                "snapshot_id": stored.id,
                "team_name": stored.team_name,
                "snapshot_type": stored.snapshot_type.value,
                "members": len(stored_members),
            },
        )
        return stored, stored_members

    def _insert_snapshot(self, conn: Connection, snapshot: Snapshot) -> Mapping[str, Any]:
        params = _snapshot_params(snapshot)
        params["created_at"] = _dt_to_sqlite(self._clock())
        result = conn.execute(
            text(f"INSERT INTO snapshots ({_SNAPSHOT_COLUMNS}) VALUES ({_SNAPSHOT_PLACEHOLDERS})"),
            params,
        )
        return conn.execute(
            text("SELECT * FROM snapshots WHERE id = :id"),
            {"id": result.lastrowid},
        ).mappings().one()

    def _insert_members(
        self,
        conn: Connection,
        snapshot_id: int,
        members: Sequence[MemberSnapshot],
    ) -> List[MemberSnapshot]:
        stored: List[MemberSnapshot] = []
        for member in members:
            result = conn.execute(
                text(_INSERT_MEMBER),
                {
                    "snapshot_id": snapshot_id,
                    "member_github": member.member_github,
                    "commits": member.commits,
                    "prs": member.prs,
                    "prs_merged": member.prs_merged,
                    "reviews_given": member.reviews_given,
                    "additions": member.additions,
                    "deletions": member.deletions,
                    "jira_completed": member.jira_completed,
                },
            )
            stored.append(replace(member, id=result.lastrowid, snapshot_id=snapshot_id))
        return stored

    def most_recent_previous(
        self,
        team_name: str,
        snapshot_type: SnapshotType,
        before: datetime,
    ) -> Optional[Snapshot]:
        """Latest snapshot of the same team and type whose period ended before ``before``.

        The comparison is strict: a period ending exactly at ``before`` does not
        count. Ties on ``period_end`` go to the most recently created row.
        Returns ``None`` for the first snapshot of a team/type pair.
        """
        rows = self._select(
            "WHERE team_name = :team_name AND snapshot_type = :snapshot_type "
            f"AND period_end < :before {_ORDER_NEWEST_FIRST} LIMIT 1",
            {
                "team_name": team_name,
                "snapshot_type": SnapshotType(snapshot_type).value,
                "before": _dt_to_sqlite(before),
            },
        )
        return _row_to_snapshot(rows[0]) if rows else None

    def latest(self, team_name: str, snapshot_type: SnapshotType) -> Optional[Snapshot]:
        snapshots = self.history(team_name, snapshot_type, limit=1)
        return snapshots[0] if snapshots else None

    def history(self, team_name: str, snapshot_type: SnapshotType, limit: int = 10) -> List[Snapshot]:
        """Snapshots of one team and type, most recent first."""
        rows = self._select(
            f"WHERE team_name = :team_name AND snapshot_type = :snapshot_type "
            f"{_ORDER_NEWEST_FIRST} LIMIT :limit",
            {
                "team_name": team_name,
                "snapshot_type": SnapshotType(snapshot_type).value,
                "limit": limit,
            },
        )
        return [_row_to_snapshot(row) for row in rows]

    def append_members(self, snapshot_id: int, members: Sequence[MemberSnapshot]) -> List[MemberSnapshot]:
        """Store per-member breakdowns for an already stored snapshot in one transaction.

        Raises:
            StoreError: If ``snapshot_id`` does not reference a stored snapshot
                or an insert fails.
        """
        try:
            with self._lock, self.engine.begin() as conn:
                return self._insert_members(conn, snapshot_id, members)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to store member snapshots for snapshot {snapshot_id}") from exc

    def member_snapshots(self, snapshot_id: int) -> List[MemberSnapshot]:
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(
                    text("SELECT * FROM member_snapshots WHERE snapshot_id = :snapshot_id ORDER BY id"),
                    {"snapshot_id": snapshot_id},
                ).mappings().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to read member snapshots for snapshot {snapshot_id}") from exc
        return [_row_to_member(row) for row in rows]

    def _select(self, clause: str, params: Dict[str, Any]) -> List[Mapping[str, Any]]:
        try:
            with self.engine.connect() as conn:
                return list(conn.execute(text(f"SELECT * FROM snapshots {clause}"), params).mappings().all())
        except SQLAlchemyError as exc:
            raise StoreError("Failed to read snapshot history") from exc
