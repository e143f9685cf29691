"""Tests for the GitHub client with mocked HTTP."""

import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from teampulse.errors import ApiError
from teampulse.github_client import GitHubClient, split_repo
from teampulse.models import PullRequest, Review
from teampulse.time_range import TimeRange

SINCE = datetime(2026, 1, 5, tzinfo=timezone.utc)
UNTIL = datetime(2026, 1, 12, tzinfo=timezone.utc)


def _build_client() -> GitHubClient:
    return GitHubClient(token="gh-token")


def _pr_item(number: int, state: str = "open", merged_at: str | None = None, updated_at: str = "2026-01-08T00:00:00Z"):
    return {
        "number": number,
        "state": state,
        "title": f"PR {number}",
        "user": {"login": "alice"},
        "created_at": "2026-01-06T00:00:00Z",
        "updated_at": updated_at,
        "merged_at": merged_at,
    }


def _commit_item(sha: str, login: str | None = "alice"):
    return {
        "sha": sha,
        "author": {"login": login} if login else None,
        "commit": {
            "message": "Fix bug\n\nlong body",
            "author": {"name": "Alice Git", "date": "2026-01-07T09:30:00Z"},
        },
    }


def test_client_sends_bearer_token_and_github_headers():
    """Verify the session is authenticated for the GitHub REST API."""
    client = _build_client()

    assert client._session.headers["Authorization"] == "Bearer gh-token"
    assert client._session.headers["Accept"] == "application/vnd.github+json"


def test_split_repo_validates_owner_repo_format():
    """Verify repositories must be given as owner/repo."""
    assert split_repo("org/service") == ("org", "service")
    with pytest.raises(ApiError):
        split_repo("service")
    with pytest.raises(ApiError):
        split_repo("org/service/extra")


def test_get_pages_paginates_until_final_partial_page():
    """Verify list endpoints are read page by page until a short page."""
    client = _build_client()
    first_page = [_commit_item(f"sha{i}") for i in range(client._PAGE_SIZE)]
    second_page = [_commit_item("last")]
    client._get_json = Mock(side_effect=[first_page, second_page])

    commits = client.list_commits("org", "repo", since=SINCE, until=UNTIL)

    assert len(commits) == client._PAGE_SIZE + 1
    first_call, second_call = client._get_json.call_args_list
    assert first_call.kwargs["params"]["page"] == 1
    assert second_call.kwargs["params"]["page"] == 2
    assert first_call.kwargs["params"]["since"] == "2026-01-05T00:00:00Z"
    assert first_call.kwargs["params"]["until"] == "2026-01-12T00:00:00Z"


def test_list_commits_maps_fields_and_falls_back_to_git_author_name():
    """Verify commit mapping uses the login when present and the git name otherwise."""
    client = _build_client()
    client._get_json = Mock(return_value=[_commit_item("abcdef123456"), _commit_item("fff000111", login=None)])

    first, second = client.list_commits("org", "repo", since=SINCE, until=UNTIL)

    assert first.sha == "abcdef1"
    assert first.author == "alice"
    assert first.message == "Fix bug"
    assert first.repo == "org/repo"
    assert first.date == datetime(2026, 1, 7, 9, 30, tzinfo=timezone.utc)
    assert second.author == "Alice Git"


def test_list_pull_requests_maps_states_and_filters_by_update_time():
    """Verify merged/closed/open mapping and that stale PRs are dropped."""
    client = _build_client()
    client._get_json = Mock(
        return_value=[
            _pr_item(1, state="closed", merged_at="2026-01-07T00:00:00Z"),
            _pr_item(2, state="closed"),
            _pr_item(3, state="open"),
            _pr_item(4, state="open", updated_at="2025-12-01T00:00:00Z"),
        ]
    )
    client.get_line_counts = Mock(return_value=(10, 2))

    prs = client.list_pull_requests("org", "repo", since=SINCE)

    assert [(pr.number, pr.state) for pr in prs] == [(1, "merged"), (2, "closed"), (3, "open")]
    assert prs[0].merged_at == datetime(2026, 1, 7, tzinfo=timezone.utc)
    assert prs[0].additions == 10
    assert prs[0].deletions == 2
    assert client.get_line_counts.call_count == 3


def test_list_pull_requests_stops_paging_at_first_pull_request_older_than_since():
    """Verify paging ends once results sorted by update time fall before the window."""
    client = _build_client()
    stale_page = [_pr_item(n, updated_at="2020-06-01T00:00:00Z") for n in range(client._PAGE_SIZE)]
    client._get_json = Mock(return_value=stale_page)
    client.get_line_counts = Mock()

    prs = client.list_pull_requests("org", "repo", since=SINCE)

    assert prs == []
    assert client._get_json.call_count == 1
    client.get_line_counts.assert_not_called()


def test_list_pull_requests_keeps_recent_items_before_the_cutoff_on_a_later_page():
    """Verify recent pull requests are kept across pages up to the first stale one."""
    client = _build_client()
    recent_page = [_pr_item(n) for n in range(client._PAGE_SIZE)]
    mixed_page = [_pr_item(500), _pr_item(501, updated_at="2020-06-01T00:00:00Z"), _pr_item(502)]
    client._get_json = Mock(side_effect=[recent_page, mixed_page])

    prs = client.list_pull_requests("org", "repo", since=SINCE, include_line_counts=False)

    assert len(prs) == client._PAGE_SIZE + 1
    assert prs[-1].number == 500
    assert client._get_json.call_count == 2


def test_list_pull_requests_can_skip_line_counts():
    """Verify line counts stay unknown when detail lookups are disabled."""
    client = _build_client()
    client._get_json = Mock(return_value=[_pr_item(1)])
    client.get_line_counts = Mock()

    (pr,) = client.list_pull_requests("org", "repo", since=SINCE, include_line_counts=False)

    assert pr.additions is None
    assert pr.deletions is None
    client.get_line_counts.assert_not_called()


def test_list_pull_requests_missing_number_raises_api_error():
    """Verify malformed pull request payloads are rejected."""
    client = _build_client()
    item = _pr_item(1)
    del item["number"]
    client._get_json = Mock(return_value=[item])

    with pytest.raises(ApiError):
        client.list_pull_requests("org", "repo", since=SINCE)


def test_list_reviews_drops_pending_and_dismissed():
    """Verify only submitted reviews are kept."""
    client = _build_client()
    client._get_json = Mock(
        return_value=[
            {"state": "APPROVED", "user": {"login": "bob"}, "submitted_at": "2026-01-08T00:00:00Z"},
            {"state": "PENDING", "user": {"login": "carol"}},
            {"state": "DISMISSED", "user": {"login": "dave"}, "submitted_at": "2026-01-08T00:00:00Z"},
            {"state": "COMMENTED", "user": {"login": "erin"}, "submitted_at": "2026-01-09T00:00:00Z"},
        ]
    )

    reviews = client.list_reviews("org", "repo", 7)

    assert [(review.author, review.state) for review in reviews] == [("bob", "APPROVED"), ("erin", "COMMENTED")]
    assert all(review.pull_request_number == 7 for review in reviews)


def test_fetch_activity_aggregates_repositories():
    """Verify activity is collected across repos with reviews per pull request."""
    client = _build_client()
    client.list_commits = Mock(return_value=[Mock()])
    pr = PullRequest(
        number=5,
        state="open",
        author="alice",
        created_at=datetime(2026, 1, 6, tzinfo=timezone.utc),
        merged_at=None,
        additions=1,
        deletions=1,
        repo="org/a",
    )
    late_pr = PullRequest(
        number=6,
        state="open",
        author="alice",
        created_at=datetime(2026, 1, 20, tzinfo=timezone.utc),
        merged_at=None,
        additions=1,
        deletions=1,
        repo="org/a",
    )
    client.list_pull_requests = Mock(return_value=[pr, late_pr])
    review = Review(pull_request_number=5, author="bob", state="APPROVED", submitted_at=None, repo="org/a")
    client.list_reviews = Mock(return_value=[review])

    activity = client.fetch_activity(["org/a", "org/b"], TimeRange(start=SINCE, end=UNTIL))

    assert len(activity.commits) == 2
    assert activity.pull_requests == [pr, pr]
    assert activity.reviews == [review, review]
    client.list_reviews.assert_any_call("org", "a", 5)
    client.list_reviews.assert_any_call("org", "b", 5)
