"""Tests for orchestration of fetch, normalize and aggregate."""

import re
import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import requests

sys.path.insert(0, "scripts")

from activity import ActivityMetrics
from collector import (
    collect_activity,
    collect_project_items,
    collect_project_summary,
    collect_projects,
    collect_repository,
    indexed,
    normalize_payload,
)
from keys import registered_keys
from project import Project, ProjectItem
from repository import Repository

UTC = timezone.utc
NOW = datetime(2025, 1, 31, tzinfo=UTC)
SINCE = NOW - timedelta(days=30)
CONFIG = {"api": {}, "analysis": {"since_days": 30}}

INDEXED_KEY = re.compile(r"^PROJECT(_ITEM)?_\d+_")


def unregistered(data):
    """Keys outside the registry, ignoring per-index entity keys."""
    return [key for key in data if key not in registered_keys() and not INDEXED_KEY.match(key)]


def make_repository(name="galaxy"):
    return Repository.from_rest_response({
        "id": 1,
        "name": name,
        "full_name": f"org/{name}",
        "owner": {"login": "org", "type": "Organization"},
        "language": "Python",
        "stargazers_count": 40,
    })


def make_metrics(name, commits, logins=()):
    return ActivityMetrics.from_aggregated_data([f"org/{name}"], SINCE, NOW, {
        "commits": commits,
        "contributors": {"total": len(logins), "active": len(logins)},
        "contributor_logins": list(logins),
        "active_logins": list(logins),
    })


class TestIndexed:
    def test_prefix_renumbered(self):
        data = {"PROJECT_TITLE": "t", "PROJECT_ID": "1", "OTHER": "x"}
        assert indexed(data, "PROJECT", 2) == {"PROJECT_2_TITLE": "t", "PROJECT_2_ID": "1"}


class TestCollectRepository:
    @patch("collector.fetch_repository")
    def test_success(self, mock_fetch):
        mock_fetch.return_value = make_repository()
        result = collect_repository("org", "galaxy", CONFIG)
        assert result.exit_code() == 0
        assert result.get_data()["REPOSITORY_FULL_NAME"] == "org/galaxy"
        assert result.get_actions()[0]["result"] == "success"

    @patch("collector.fetch_repository")
    def test_http_error(self, mock_fetch):
        """Fetch failures become the terminal error with recovery steps."""
        mock_fetch.side_effect = requests.exceptions.HTTPError("404 Client Error: Not Found")
        result = collect_repository("org", "missing", CONFIG)
        assert result.has_error()
        assert result.exit_code() == 1
        assert result.get_actions()[0]["result"] == "failed"
        assert result.get_error().context == {"owner": "org", "repository": "missing"}
        assert result.get_error().recovery_instructions[-1] == "Run: generate_summary.py --help"


class TestCollectActivity:
    @patch("collector.fetch_all_repos_activity")
    def test_partial_failure_reported(self, mock_fetch):
        mock_fetch.return_value = ([make_metrics("a", 2, ["x"]), make_metrics("b", 5, ["y"])], ["c"])
        result = collect_activity("org", ["a", "b", "c"], SINCE, CONFIG, now=NOW)
        data = result.get_data()
        assert not result.has_error()
        assert data["ACTIVITY_COMMITS_COUNT"] == "7"
        assert data["ACTIVITY_CONTRIBUTORS_COUNT"] == "2"
        assert data["ACTIVITY_RANKED_REPOSITORIES"] == "org/b, org/a"
        assert data["ACTIVITY_FAILED_REPOSITORIES"] == "c"
        assert [a["result"] for a in result.get_actions()] == ["success", "success", "failed"]
        assert unregistered(data) == []

    @patch("collector.fetch_all_repos_activity")
    def test_all_failed(self, mock_fetch):
        mock_fetch.return_value = ([], ["a", "b"])
        result = collect_activity("org", ["a", "b"], SINCE, CONFIG, now=NOW)
        assert result.has_error()
        assert "all 2 repositories" in result.get_error().message


class TestCollectProjectSummary:
    """Three phases, stopping at the first failure."""

    @patch("collector.fetch_all_repos_activity")
    @patch("collector.fetch_repository")
    def test_all_phases(self, mock_repo, mock_activity):
        mock_repo.return_value = make_repository()
        mock_activity.return_value = ([make_metrics("galaxy", 60, ["x", "y"])], [])

        result = collect_project_summary("org", ["galaxy"], SINCE, CONFIG, now=NOW)
        data = result.get_data()
        assert result.exit_code() == 0
        assert data["EXECUTION_PHASE"] == "summary"
        assert data["REPOSITORY_FULL_NAME"] == "org/galaxy"
        assert data["ACTIVITY_COMMITS_COUNT"] == "60"
        assert data["PROJECT_SUMMARY_NAME"] == "galaxy"
        assert data["PROJECT_SUMMARY_OWNER"] == "org"
        assert data["PROJECT_SUMMARY_COMMITS_LAST_30_DAYS"] == "60"
        assert data["ANALYZED_AT"] == "2025-01-31T00:00:00.000Z"
        assert data["PROJECT_FACTS_STATUS"] == "COMPLETED"
        assert data["PROJECT_FACTS_AVERAGE_STARS_PER_REPO"] == "40"
        assert data["PROJECT_FACTS_COMMITS_TO_ISSUES_RATIO"] == "0"
        assert unregistered(data) == []
        assert len(result.get_instructions()) == 2

    @patch("collector.fetch_all_repos_activity")
    @patch("collector.fetch_repository")
    def test_multi_repo_summary_named_after_owner(self, mock_repo, mock_activity):
        mock_repo.side_effect = [make_repository("a"), make_repository("b")]
        mock_activity.return_value = ([make_metrics("a", 1), make_metrics("b", 1)], [])

        data = collect_project_summary("org", ["a", "b"], SINCE, CONFIG, now=NOW).get_data()
        assert data["PROJECT_SUMMARY_NAME"] == "org"
        assert data["PROJECT_SUMMARY_REPOSITORY_COUNT"] == "2"
        assert "REPOSITORY_FULL_NAME" not in data

    @patch("collector.fetch_all_repos_activity")
    @patch("collector.fetch_repository")
    def test_stops_at_failed_phase(self, mock_repo, mock_activity):
        mock_repo.side_effect = Exception("connection reset")

        result = collect_project_summary("org", ["galaxy"], SINCE, CONFIG, now=NOW)
        assert result.has_error()
        assert result.get_data()["EXECUTION_PHASE"] == "repository_data"
        assert result.get_error().context["phase"] == "repository_data"
        mock_activity.assert_not_called()
        assert "STOP PROCESSING" in result.serialize()


class TestCollectProjects:
    PROJECT = {
        "id": "PVT_{n}",
        "title": "Board {n}",
        "url": "https://github.com/orgs/org/projects/{n}",
        "owner": {"__typename": "Organization", "login": "org"},
        "createdAt": "2024-01-01T00:00:00Z",
        "updatedAt": "2024-02-01T00:00:00Z",
    }

    def make_project(self, n):
        return Project.from_graphql_response({k: v.format(n=n) if isinstance(v, str) else v
                                              for k, v in self.PROJECT.items()})

    @patch("collector.fetch_owner_projects")
    def test_indexed_projects(self, mock_fetch):
        mock_fetch.return_value = [self.make_project(1), self.make_project(2)]
        data = collect_projects("org", CONFIG).get_data()
        assert data["PROJECT_0_TITLE"] == "Board 1"
        assert data["PROJECT_1_TITLE"] == "Board 2"
        assert data["PROJECT_COUNT"] == "2"
        assert unregistered(data) == []

    @patch("collector.fetch_owner_projects")
    def test_failure(self, mock_fetch):
        mock_fetch.side_effect = ValueError("GitHub owner not found: nobody")
        result = collect_projects("nobody", CONFIG)
        assert result.has_error()
        assert result.get_error().context == {"owner": "nobody"}


class TestCollectProjectItems:
    @patch("collector.fetch_project_items")
    def test_indexed_items(self, mock_fetch):
        mock_fetch.return_value = [ProjectItem.create_draft_issue("PVTI_1", "PVT_1", "Idea", {"Status": "Todo"})]
        data = collect_project_items("PVT_1", CONFIG).get_data()
        assert data["PROJECT_ITEM_0_STATUS"] == "Todo"
        assert data["PROJECT_ITEM_0_TYPE"] == "DRAFT_ISSUE"
        assert data["PROJECT_ITEM_TOTAL"] == "1"
        assert unregistered(data) == []


class TestNormalizePayload:
    def test_graphql_issue(self):
        result = normalize_payload("issue", "graphql", {"closed": True})
        assert result.get_data()["ISSUE_STATE"] == "closed"
        assert result.exit_code() == 0

    def test_context_passed(self):
        result = normalize_payload("project_item", "graphql", {"id": "PVTI_1"}, project_id="PVT_9")
        assert result.get_data()["PROJECT_ITEM_PROJECT_ID"] == "PVT_9"

    def test_null_payload(self):
        result = normalize_payload("repository", "rest", None)
        assert result.has_error()
        assert "response is null, undefined, or not an object" in result.get_error().message
        assert result.get_data() == {}

    def test_unknown_entity(self):
        result = normalize_payload("gist", "rest", {})
        assert result.has_error()
        assert "Unknown entity" in result.get_error().message

    def test_unknown_source(self):
        result = normalize_payload("issue", "xml", {})
        assert result.has_error()
        assert result.get_error().context == {"entity": "issue", "source": "xml"}
