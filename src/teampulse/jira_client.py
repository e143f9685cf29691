"""Jira Cloud REST API client for issue activity retrieval."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from requests.auth import HTTPBasicAuth

from .errors import ApiError
from .http_client import JsonApiClient, parse_datetime
from .models import Issue, JiraActivity
from .time_range import TimeRange

logger = logging.getLogger(__name__)

_ISSUE_FIELDS = ["summary", "status", "priority", "assignee", "issuetype", "updated"]

# JQL literals have minute precision, so the whole minute holding the window end is included.
_JQL_MINUTE = timedelta(minutes=1)


def normalize_host(host: str) -> str:
    """Ensure an ``https://`` prefix and drop any trailing slash."""
    host = host.strip()
    if not host.startswith(("https://", "http://")):
        host = f"https://{host}"
    return host.rstrip("/")


class JiraClient(JsonApiClient):
    """Small, typed client for Jira Cloud issue search (basic auth with an API token)."""

    _PAGE_SIZE = 100
    _PROVIDER = "Jira API"

    def __init__(self, host: str, email: str, api_token: str, timeout_seconds: int = 30) -> None:
        self.host = normalize_host(host)
        super().__init__(base_url=self.host, timeout_seconds=timeout_seconds)
        self._session.auth = HTTPBasicAuth(email, api_token)

    def _format_jql_datetime(self, value: datetime) -> str:
        """Format as a JQL ``yyyy-MM-dd HH:mm`` literal in UTC."""
        return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M")

    def _map_issue(self, item: Dict[str, Any]) -> Optional[Issue]:
        fields = item.get("fields") or {}
        key = item.get("key")
        status = (fields.get("status") or {}).get("name")
        if not key or status is None:
            logger.debug("Skipping Jira issue without key or status", extra={"issue_key": key})
            return None

        assignee = fields.get("assignee") or {}
        return Issue(
            key=str(key),
            status=str(status),
            assignee=assignee.get("displayName"),
            issue_type=str((fields.get("issuetype") or {}).get("name", "")),
            updated_at=parse_datetime(fields.get("updated")),
            priority=str((fields.get("priority") or {}).get("name") or ""),
        )

    def search_issues(self, jql: str) -> List[Issue]:
        """Run a JQL search and return every matching issue.

        Uses offset pagination via ``startAt``/``maxResults`` until ``total``
        issues have been read or a page comes back empty.
        """
        issues: List[Issue] = []
        start_at = 0

        while True:
            payload = self._post_json(
                "rest/api/3/search",
                body={
                    "jql": jql,
                    "fields": _ISSUE_FIELDS,
                    "startAt": start_at,
                    "maxResults": self._PAGE_SIZE,
                },
            )
            if not isinstance(payload, dict):
                raise ApiError("Jira API returned unexpected payload shape: POST rest/api/3/search")

            page_items = payload.get("issues", [])
            for item in page_items:
                issue = self._map_issue(item)
                if issue is not None:
                    issues.append(issue)

            start_at += len(page_items)
            total = int(payload.get("total", start_at))
            if not page_items or start_at >= total:
                break

        return issues

    def fetch_activity(self, project_keys: Sequence[str], time_range: TimeRange) -> JiraActivity:
        """Collect issues of ``project_keys`` updated inside ``time_range``."""
        if not project_keys:
            return JiraActivity()

        projects = ", ".join(f'"{key}"' for key in project_keys)
        jql = (
            f"project in ({projects}) "
            f'AND updated >= "{self._format_jql_datetime(time_range.start)}" '
            f'AND updated < "{self._format_jql_datetime(time_range.end + _JQL_MINUTE)}" '
            "ORDER BY updated DESC"
        )
        issues = self.search_issues(jql)
        logger.info("Fetched Jira activity", extra={"projects": list(project_keys), "issues": len(issues)})
        return JiraActivity(issues=issues)
