"""GitHub REST API client for team activity retrieval."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .errors import ApiError
from .http_client import JsonApiClient, parse_datetime
from .models import Commit, GitHubActivity, PullRequest, Review
from .time_range import TimeRange

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"

# Reviews in these states were never submitted or no longer count.
_IGNORED_REVIEW_STATES = frozenset({"PENDING", "DISMISSED"})


def split_repo(full_name: str) -> Tuple[str, str]:
    """Split ``owner/repo`` into its parts.

    Raises:
        ApiError: If ``full_name`` is not of the form ``owner/repo``.
    """
    owner, _, repo = full_name.strip().partition("/")
    if not owner or not repo or "/" in repo:
        raise ApiError(f"Repository '{full_name}' must be given as 'owner/repo'.")
    return owner, repo


class GitHubClient(JsonApiClient):
    """Small, typed client for the GitHub commit, pull request and review APIs."""

    _PAGE_SIZE = 100
    _PROVIDER = "GitHub API"

    def __init__(self, token: str, base_url: str = GITHUB_API, timeout_seconds: int = 30) -> None:
        super().__init__(base_url=base_url, timeout_seconds=timeout_seconds)
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )

    def _format_datetime(self, value: datetime) -> str:
        """Format a datetime as UTC ISO8601 suitable for GitHub query params."""
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")

    def _get_pages(
        self,
        path: str,
        params: Dict[str, Any],
        stop: Optional[Callable[[Dict[str, Any]], bool]] = None,
    ) -> List[Dict[str, Any]]:
        """Collect the items of a list endpoint using page-number pagination.

        When ``stop`` is given, collection ends at the first item it accepts;
        that item and everything after it are dropped and no further pages
        are requested.
        """
        items: List[Dict[str, Any]] = []
        page = 1

        while True:
            payload = self._get_json(path, params={**params, "per_page": self._PAGE_SIZE, "page": page})
            if not isinstance(payload, list):
                raise ApiError(f"GitHub API returned unexpected payload shape: GET {path}")

            for item in payload:
                if stop is not None and stop(item):
                    return items
                items.append(item)
            if len(payload) < self._PAGE_SIZE:
                break
            page += 1

        return items

    def list_commits(self, owner: str, repo: str, since: datetime, until: datetime) -> List[Commit]:
        """List commits on the default branch inside ``[since, until]``."""
        payload = self._get_pages(
            f"repos/{owner}/{repo}/commits",
            params={"since": self._format_datetime(since), "until": self._format_datetime(until)},
        )
        commits: List[Commit] = []

        for item in payload:
            detail = item.get("commit") or {}
            git_author = detail.get("author") or {}
            date = parse_datetime(git_author.get("date"))
            if date is None:
                continue
            login = (item.get("author") or {}).get("login")

            commits.append(
                Commit(
                    sha=str(item.get("sha", ""))[:7],
                    author=str(login or git_author.get("name", "")),
                    date=date,
                    repo=f"{owner}/{repo}",
                    message=str(detail.get("message") or "").split("\n")[0],
                )
            )

        return commits

    def get_line_counts(self, owner: str, repo: str, number: int) -> Tuple[int, int]:
        """Return ``(additions, deletions)`` for one pull request.

        The list endpoint omits line counts, so they come from the detail endpoint.
        """
        payload = self._get_json(f"repos/{owner}/{repo}/pulls/{number}")
        return int(payload.get("additions") or 0), int(payload.get("deletions") or 0)

    def list_pull_requests(
        self,
        owner: str,
        repo: str,
        since: datetime,
        include_line_counts: bool = True,
    ) -> List[PullRequest]:
        """List pull requests updated at or after ``since``.

        Pull requests are requested most recently updated first, so paging
        stops at the first one last updated before ``since``. State is
        normalised to ``merged``, ``closed`` or ``open``; a closed pull request
        with a merge time is ``merged``.
        """

        def updated_before_since(item: Dict[str, Any]) -> bool:
            updated_at = parse_datetime(item.get("updated_at"))
            return updated_at is not None and updated_at < since

        payload = self._get_pages(
            f"repos/{owner}/{repo}/pulls",
            params={"state": "all", "sort": "updated", "direction": "desc"},
            stop=updated_before_since,
        )
        pull_requests: List[PullRequest] = []

        for item in payload:
            number = item.get("number")
            if number is None:
                raise ApiError(
                    "GitHub pull request payload is missing required fields: "
                    f"repo={owner}/{repo}, payload={item}"
                )

            merged_at = parse_datetime(item.get("merged_at"))
            if merged_at is not None:
                state = "merged"
            elif item.get("state") == "closed":
                state = "closed"
            else:
                state = "open"

            additions = item.get("additions")
            deletions = item.get("deletions")
            if include_line_counts and (additions is None or deletions is None):
                additions, deletions = self.get_line_counts(owner, repo, int(number))

            pull_requests.append(
                PullRequest(
                    number=int(number),
                    state=state,
                    author=str((item.get("user") or {}).get("login", "")),
                    created_at=parse_datetime(item.get("created_at")),
                    merged_at=merged_at,
                    additions=additions,
                    deletions=deletions,
                    repo=f"{owner}/{repo}",
                    title=str(item.get("title") or ""),
                )
            )

        return pull_requests

    def list_reviews(self, owner: str, repo: str, number: int) -> List[Review]:
        """List submitted reviews for a pull request, dropping pending and dismissed ones."""
        payload = self._get_pages(f"repos/{owner}/{repo}/pulls/{number}/reviews", params={})
        reviews: List[Review] = []

        for item in payload:
            state = str(item.get("state") or "")
            if state in _IGNORED_REVIEW_STATES:
                continue

            reviews.append(
                Review(
                    pull_request_number=number,
                    author=str((item.get("user") or {}).get("login", "")),
                    state=state,
                    submitted_at=parse_datetime(item.get("submitted_at")),
                    repo=f"{owner}/{repo}",
                )
            )

        return reviews

    def fetch_activity(self, repos: Sequence[str], time_range: TimeRange) -> GitHubActivity:
        """Collect commits, pull requests and their reviews across ``repos``."""
        activity = GitHubActivity()

        for full_name in repos:
            owner, repo = split_repo(full_name)
            commits = self.list_commits(owner, repo, since=time_range.start, until=time_range.end)
            pull_requests = [
                pr
                for pr in self.list_pull_requests(owner, repo, since=time_range.start)
                if pr.created_at is None or pr.created_at <= time_range.end
            ]
            activity.commits.extend(commits)
            activity.pull_requests.extend(pull_requests)
            for pr in pull_requests:
                activity.reviews.extend(self.list_reviews(owner, repo, pr.number))

            logger.info(
                "Fetched GitHub activity",
                extra={
                    "repo": full_name,
                    "commits": len(commits),
                    "pull_requests": len(pull_requests),
                },
            )

        return activity
