"""Tests for GitHub API fetcher."""

import os
import sys
from datetime import datetime, timezone
from unittest.mock import Mock, patch, MagicMock

import pytest
import requests

sys.path.insert(0, "scripts")

from activity import ActivityMetrics
from fetcher import (
    GraphQLError,
    get_headers,
    graphql,
    handle_rate_limit,
    request_with_retry,
    fetch_repository,
    fetch_repo_issues,
    fetch_repo_prs,
    fetch_all_repos_activity,
    fetch_owner_repos,
    fetch_owner_projects,
    fetch_project_items,
)

UTC = timezone.utc
SINCE = datetime(2025, 1, 1, tzinfo=UTC)
NOW = datetime(2025, 1, 8, tzinfo=UTC)


def json_response(payload, status_code=200):
    resp = Mock()
    resp.status_code = status_code
    resp.json.return_value = payload
    return resp


def empty_metrics(name):
    return ActivityMetrics.create_empty([f"org/{name}"], SINCE, NOW)


class TestHeaders:
    """Token handling."""

    def test_token_required(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="GITHUB_TOKEN"):
                get_headers()

    def test_bearer_header(self):
        with patch.dict(os.environ, {"GITHUB_TOKEN": "secret"}):
            assert get_headers()["Authorization"] == "Bearer secret"


class TestRateLimitHandling:
    """Test rate limit detection and handling."""

    def test_rate_limit_not_hit(self):
        """When remaining > 0, should return False."""
        resp = Mock()
        resp.headers = {"X-RateLimit-Remaining": "100", "X-RateLimit-Reset": "1234567890"}
        assert handle_rate_limit(resp) is False

    def test_rate_limit_hit_waits(self):
        """When remaining = 0, should wait and return True."""
        import time
        resp = Mock()
        reset_time = int(time.time()) + 2
        resp.headers = {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(reset_time)}

        with patch("fetcher.time.sleep") as mock_sleep:
            result = handle_rate_limit(resp)
            assert result is True
            mock_sleep.assert_called_once()

    def test_rate_limit_no_headers(self):
        """When no rate limit headers, should return False."""
        resp = Mock()
        resp.headers = {}
        assert handle_rate_limit(resp) is False


class TestRequestWithRetry:
    """Test retry logic with exponential backoff."""

    @patch("fetcher.requests.get")
    def test_success_first_try(self, mock_get):
        """Successful request on first try."""
        mock_resp = Mock()
        mock_resp.status_code = 200
        mock_get.return_value = mock_resp

        resp = request_with_retry("get", "http://test.com", max_retries=3, timeout=10)
        assert resp.status_code == 200
        assert mock_get.call_count == 1

    @patch("fetcher.time.sleep")
    @patch("fetcher.requests.get")
    def test_retry_on_timeout(self, mock_get, mock_sleep):
        """Should retry on timeout with exponential backoff."""
        mock_get.side_effect = [
            requests.exceptions.Timeout(),
            requests.exceptions.Timeout(),
            Mock(status_code=200),
        ]

        resp = request_with_retry("get", "http://test.com", max_retries=3, timeout=10)
        assert resp.status_code == 200
        assert mock_get.call_count == 3
        # Backoff delays: 1s, 2s
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]

    @patch("fetcher.time.sleep")
    @patch("fetcher.requests.get")
    def test_max_retries_exceeded(self, mock_get, mock_sleep):
        """Should raise after max retries."""
        mock_get.side_effect = requests.exceptions.Timeout()

        with pytest.raises(requests.exceptions.Timeout):
            request_with_retry("get", "http://test.com", max_retries=3, timeout=10)

        assert mock_get.call_count == 3

    @patch("fetcher.requests.post")
    def test_post(self, mock_post):
        """Non-GET methods go through requests.post."""
        mock_post.return_value = Mock(status_code=200)
        request_with_retry("post", "http://test.com", json={"query": "{}"})
        mock_post.assert_called_once()


class TestGraphql:
    """GraphQL envelope handling."""

    @patch("fetcher.get_headers")
    @patch("fetcher.request_with_retry")
    def test_returns_data(self, mock_request, mock_headers):
        mock_request.return_value = json_response({"data": {"viewer": {"login": "me"}}})
        assert graphql("query { viewer { login } }", {}) == {"viewer": {"login": "me"}}

    @patch("fetcher.get_headers")
    @patch("fetcher.request_with_retry")
    def test_errors_raise(self, mock_request, mock_headers):
        """An `errors` list fails the call even with HTTP 200."""
        mock_request.return_value = json_response({"errors": [{"message": "bad"}], "data": None})
        with pytest.raises(GraphQLError, match="bad"):
            graphql("query { x }", {})


class TestFetchRepository:
    @patch("fetcher.get_headers")
    @patch("fetcher.request_with_retry")
    def test_normalized(self, mock_request, mock_headers):
        mock_request.return_value = json_response({
            "id": 1, "name": "repo", "full_name": "org/repo", "owner": {"login": "org", "type": "Organization"},
        })
        repository = fetch_repository("org", "repo")
        assert repository.full_name == "org/repo"
        assert repository.owner_type == "Organization"
        assert mock_request.call_args.args[1] == "https://api.github.com/repos/org/repo"


class TestFetchRepoIssues:
    """Test issue fetching with pagination."""

    @patch("fetcher.get_headers")
    @patch("fetcher.request_with_retry")
    def test_empty_repo_returns_empty(self, mock_request, mock_headers):
        """Empty repo should return an empty list."""
        mock_headers.return_value = {"Authorization": "Bearer test"}
        mock_request.return_value = json_response([])

        assert fetch_repo_issues("org", "repo", SINCE) == []

    @patch("fetcher.get_headers")
    @patch("fetcher.request_with_retry")
    def test_404_returns_empty(self, mock_request, mock_headers):
        """404 should return an empty list (repo doesn't exist or no access)."""
        mock_headers.return_value = {"Authorization": "Bearer test"}
        mock_request.return_value = json_response(None, status_code=404)

        assert fetch_repo_issues("org", "repo", SINCE) == []

    @patch("fetcher.time.sleep")
    @patch("fetcher.get_headers")
    @patch("fetcher.request_with_retry")
    def test_filters_prs_from_issues(self, mock_request, mock_headers, mock_sleep):
        """PRs should be filtered out from issues endpoint."""
        mock_headers.return_value = {"Authorization": "Bearer test"}
        mock_request.return_value = json_response([
            {
                "number": 1,
                "title": "Real issue",
                "html_url": "http://github.com/issue/1",
                "repository_url": "https://api.github.com/repos/org/repo",
                "user": {"login": "user1"},
                "created_at": "2025-01-05T10:00:00Z",
                "closed_at": None,
            },
            {
                "number": 2,
                "title": "This is a PR",
                "html_url": "http://github.com/pr/1",
                "user": {"login": "user2"},
                "created_at": "2025-01-05T10:00:00Z",
                "pull_request": {},  # This makes it a PR
            },
        ])

        result = fetch_repo_issues("org", "repo", SINCE)
        assert len(result) == 1
        assert result[0].title == "Real issue"
        assert result[0].repository == "org/repo"

    @patch("fetcher.time.sleep")
    @patch("fetcher.get_headers")
    @patch("fetcher.request_with_retry")
    def test_null_user_kept_as_unknown(self, mock_request, mock_headers, mock_sleep):
        """Issues from deleted accounts are kept with an unknown creator."""
        mock_headers.return_value = {"Authorization": "Bearer test"}
        mock_request.return_value = json_response([
            {"number": 3, "title": "Issue with null user", "user": None},
        ])

        result = fetch_repo_issues("org", "repo", SINCE)
        assert result[0].creator == "unknown"

    @patch("fetcher.time.sleep")
    @patch("fetcher.get_headers")
    @patch("fetcher.request_with_retry")
    def test_follows_full_pages(self, mock_request, mock_headers, mock_sleep):
        """A full page asks for the next one."""
        config = {"api": {"page_size": 1}}
        mock_request.side_effect = [
            json_response([{"number": 1, "title": "a"}]),
            json_response([]),
        ]

        result = fetch_repo_issues("org", "repo", SINCE, config)
        assert [i.number for i in result] == [1]
        assert mock_request.call_count == 2
        assert mock_request.call_args.kwargs["params"]["page"] == 2


class TestFetchRepoPrs:
    @patch("fetcher.time.sleep")
    @patch("fetcher.get_headers")
    @patch("fetcher.request_with_retry")
    def test_stops_at_older_prs(self, mock_request, mock_headers, mock_sleep):
        """Results are sorted newest first, so the first older PR ends the scan."""
        mock_request.return_value = json_response([
            {"number": 2, "title": "new", "created_at": "2025-01-05T00:00:00Z"},
            {"number": 1, "title": "old", "created_at": "2024-12-01T00:00:00Z"},
        ])

        result = fetch_repo_prs("org", "repo", SINCE)
        assert [pr.number for pr in result] == [2]


class TestFetchAllReposActivity:
    """Test parallel fetching."""

    @patch("fetcher.fetch_repo_activity")
    def test_partial_failure_continues(self, mock_fetch):
        """Should continue and report failed repos."""
        mock_fetch.side_effect = [
            empty_metrics("repo1"),
            Exception("API Error"),
            empty_metrics("repo3"),
        ]

        repos = ["repo1", "repo2", "repo3"]
        config = {"api": {"max_workers": 1}}

        results, failed = fetch_all_repos_activity("org", repos, SINCE, config, NOW)

        # Should have 2 successful results
        assert len(results) == 2
        assert [m.repository_list for m in results] == [("org/repo1",), ("org/repo3",)]
        assert failed == ["repo2"]

    @patch("fetcher.fetch_repo_activity")
    def test_respects_max_workers(self, mock_fetch):
        """Should use max_workers from config."""
        mock_fetch.return_value = empty_metrics("test")

        repos = [f"repo{i}" for i in range(10)]
        config = {"api": {"max_workers": 2}}

        with patch("fetcher.ThreadPoolExecutor") as mock_executor, \
                patch("fetcher.as_completed", return_value=[]):
            mock_executor.return_value.__enter__ = Mock(return_value=MagicMock())
            mock_executor.return_value.__exit__ = Mock(return_value=False)

            fetch_all_repos_activity("org", repos, SINCE, config, NOW)

            mock_executor.assert_called_once_with(max_workers=2)


class TestFetchOwnerRepos:
    @patch("fetcher.graphql")
    def test_skips_archived_and_empty(self, mock_graphql):
        mock_graphql.return_value = {"repositoryOwner": {"repositories": {
            "pageInfo": {"hasNextPage": False, "endCursor": None},
            "nodes": [
                {"name": "a", "isArchived": False, "isEmpty": False},
                {"name": "b", "isArchived": True, "isEmpty": False},
                {"name": "c", "isArchived": False, "isEmpty": True},
            ],
        }}}
        assert fetch_owner_repos("org") == ["a"]

    @patch("fetcher.graphql")
    def test_unknown_owner(self, mock_graphql):
        mock_graphql.return_value = {"repositoryOwner": None}
        with pytest.raises(ValueError, match="owner not found"):
            fetch_owner_repos("nobody")


class TestFetchOwnerProjects:
    """Organization first, then user."""

    PROJECT = {
        "id": "PVT_1",
        "title": "Roadmap",
        "url": "https://github.com/users/me/projects/1",
        "owner": {"__typename": "User", "login": "me"},
        "createdAt": "2024-01-01T00:00:00Z",
        "updatedAt": "2024-02-01T00:00:00Z",
    }

    @patch("fetcher.graphql")
    def test_falls_back_to_user(self, mock_graphql):
        mock_graphql.side_effect = [
            GraphQLError("Could not resolve to an Organization with the login of 'me'"),
            {"user": {"projectsV2": {"nodes": [self.PROJECT, None]}}},
        ]
        projects = fetch_owner_projects("me")
        assert [p.title for p in projects] == ["Roadmap"]
        assert projects[0].owner_type == "USER"

    @patch("fetcher.graphql")
    def test_owner_missing_everywhere(self, mock_graphql):
        mock_graphql.side_effect = [{"organization": None}, {"user": None}]
        with pytest.raises(ValueError, match="owner not found"):
            fetch_owner_projects("nobody")


class TestFetchProjectItems:
    @patch("fetcher.time.sleep")
    @patch("fetcher.graphql")
    def test_pages_followed(self, mock_graphql, mock_sleep):
        mock_graphql.side_effect = [
            {"node": {"items": {
                "pageInfo": {"hasNextPage": True, "endCursor": "c1"},
                "nodes": [{"id": "PVTI_1", "type": "DRAFT_ISSUE", "content": {"title": "Idea"}}],
            }}},
            {"node": {"items": {
                "pageInfo": {"hasNextPage": False, "endCursor": None},
                "nodes": [{"id": "PVTI_2", "type": "ISSUE", "content": {"title": "Bug", "number": 4}}],
            }}},
        ]
        items = fetch_project_items("PVT_1")
        assert [i.id for i in items] == ["PVTI_1", "PVTI_2"]
        assert all(i.project_id == "PVT_1" for i in items)
        assert mock_graphql.call_args.args[1]["cursor"] == "c1"

    @patch("fetcher.graphql")
    def test_unknown_project(self, mock_graphql):
        mock_graphql.return_value = {"node": None}
        with pytest.raises(ValueError, match="project not found"):
            fetch_project_items("PVT_missing")
