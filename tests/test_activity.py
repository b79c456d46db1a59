"""Tests for activity metrics, ranking and combination."""

import sys
from datetime import datetime, timedelta, timezone

import pytest

sys.path.insert(0, "scripts")

from activity import ActivityMetrics, combine_activity, rank_repositories
from commit import Commit
from errors import PayloadShapeError
from issue import Issue
from pull_request import PullRequest

UTC = timezone.utc
NOW = datetime(2024, 6, 30, tzinfo=UTC)
SINCE = NOW - timedelta(days=30)


def make_issue(number, creator, state="open"):
    return Issue.from_rest_response({
        "number": number,
        "title": f"Issue {number}",
        "state": state,
        "user": {"login": creator},
        "repository_url": "https://api.github.com/repos/o/r",
    })


def make_pr(number, creator, merged=False):
    return PullRequest.from_rest_response({
        "number": number,
        "title": f"PR {number}",
        "state": "closed" if merged else "open",
        "merged_at": "2024-06-20T00:00:00Z" if merged else None,
        "user": {"login": creator},
        "additions": 5,
    })


def make_commit(sha, author):
    return Commit.from_rest_response({
        "sha": sha,
        "commit": {"message": "change", "author": {"name": author, "date": "2024-06-20T00:00:00Z"}},
        "stats": {"additions": 2, "deletions": 1},
        "files": [{"filename": "a.py"}],
    })


class TestZeroWindow:
    """Zero-day windows never divide by zero."""

    def test_averages_are_zero(self):
        metrics = ActivityMetrics.from_aggregated_data(["o/r"], NOW, NOW, {"commits": 5})
        assert metrics.analysis_period_days == 0
        assert metrics.avg_commits_per_day == 0
        assert metrics.get_average_daily_activity() == 0
        assert metrics.to_data()["ACTIVITY_AVG_COMMITS_PER_DAY"] == "0"

    def test_empty_metrics(self):
        metrics = ActivityMetrics.create_empty(["o/a", "o/b"], SINCE, NOW)
        assert metrics.repositories_count == 2
        assert metrics.get_total_activity() == 0
        assert metrics.get_issue_resolution_rate() == 0
        assert metrics.get_merge_rate() == 0
        assert metrics.get_contributor_engagement_ratio() == 0
        data = metrics.to_data()
        assert data["ACTIVITY_MOST_ACTIVE_CONTRIBUTOR"] == ""
        assert data["ACTIVITY_REPOSITORY_LIST"] == "o/a, o/b"
        assert len(data) == 23


class TestAggregatedData:
    def test_rates(self):
        metrics = ActivityMetrics.from_aggregated_data(["o/r"], NOW - timedelta(days=10), NOW, {
            "commits": 25,
            "issues": {"total": 4, "open": 1, "closed": 3},
            "pull_requests": {"total": 3, "open": 1, "merged": 2},
            "contributors": {"total": 4, "active": 3, "most_active": "x"},
        })
        assert metrics.analysis_period_days == 10
        assert metrics.avg_commits_per_day == 2.5
        assert metrics.get_issue_resolution_rate() == 75
        assert metrics.get_merge_rate() == 67
        assert metrics.get_contributor_engagement_ratio() == 0.75
        assert metrics.is_actively_developed()

    def test_quiet_window_not_actively_developed(self):
        metrics = ActivityMetrics.from_aggregated_data(["o/r"], SINCE, NOW, {
            "commits": 2,
            "contributors": {"total": 1, "active": 1},
        })
        assert not metrics.is_actively_developed()


class TestTimeWindow:
    def test_rows_summed(self):
        metrics = ActivityMetrics.from_time_window(["o/a", "o/b"], 7, {
            "commit_data": [
                {"repo": "o/a", "count": 5, "additions": 10, "deletions": 2, "files": 3},
                {"repo": "o/b", "count": 8, "additions": 1, "deletions": 1, "files": 1},
            ],
            "issue_data": [{"repo": "o/a", "total": 2, "open": 1, "closed": 1}],
            "pr_data": [{"repo": "o/b", "total": 1, "open": 0, "merged": 1}],
            "contributor_data": [
                {"repo": "o/a", "contributors": ["x", "y"], "active_contributors": ["x"]},
                {"repo": "o/b", "contributors": ["y", "z"], "active_contributors": ["x", "z"]},
            ],
            "release_data": [{"repo": "o/a", "releases": 1}],
        }, now=NOW)
        assert metrics.commits_count == 13
        assert metrics.most_active_repository == "o/b"
        assert metrics.contributors_count == 3
        assert metrics.active_contributors == 2
        assert metrics.most_active_contributor == "x"
        assert metrics.total_additions == 11
        assert metrics.release_count == 1
        assert metrics.avg_commits_per_day == 1.86
        assert metrics.analysis_period_start == NOW - timedelta(days=7)


class TestRepositoryFacts:
    def test_counts_from_value_objects(self):
        metrics = ActivityMetrics.from_repository_facts(
            "o/r",
            [make_issue(1, "u1"), make_issue(2, "u2", state="closed")],
            [make_pr(3, "u3", merged=True)],
            [make_commit("a" * 40, "A"), make_commit("b" * 40, "A")],
            SINCE,
            now=NOW,
        )
        assert metrics.analysis_period_days == 30
        assert metrics.total_issues_count == 2
        assert metrics.closed_issues_count == 1
        assert metrics.merged_prs_count == 1
        assert metrics.contributors_count == 4
        assert metrics.active_contributors == 2
        assert metrics.most_active_contributor == "A"
        assert metrics.total_additions == 4
        assert metrics.total_files_changed == 2
        assert metrics.most_active_repository == "o/r"
        assert metrics.commit_authors == (("A", 2),)
        assert metrics.commit_dates == (datetime(2024, 6, 20, tzinfo=UTC),) * 2
        assert "ACTIVITY_COMMIT_AUTHORS" not in metrics.to_data()

    def test_no_activity(self):
        metrics = ActivityMetrics.from_repository_facts("o/r", [], [], [], SINCE, now=NOW)
        assert metrics.most_active_repository is None
        assert metrics.get_total_activity() == 0


class TestAdapters:
    def test_cli_sheet(self):
        metrics = ActivityMetrics.from_tool_output({
            "repositories": ["o/r"],
            "periodStart": "2024-01-01T00:00:00Z",
            "periodEnd": "2024-01-11T00:00:00Z",
            "commits": 20,
            "totalIssues": 5,
            "closedIssues": 5,
        })
        assert metrics.analysis_period_days == 10
        assert metrics.avg_commits_per_day == 2
        assert metrics.get_issue_resolution_rate() == 100

    def test_rest_sheet_with_days(self):
        metrics = ActivityMetrics.from_rest_response({"repositories": ["o/a", "o/b"], "period_days": 14, "commits": 7})
        assert metrics.analysis_period_days == 14
        assert metrics.avg_commits_per_day == 0.5

    def test_graphql_repository_node(self):
        metrics = ActivityMetrics.from_graphql_response({"repository": {
            "nameWithOwner": "o/r",
            "issues": {"totalCount": 10},
            "openIssues": {"totalCount": 4},
            "closedIssues": {"totalCount": 6},
            "pullRequests": {"totalCount": 2},
            "mergedPullRequests": {"totalCount": 1},
            "defaultBranchRef": {"target": {"history": {"totalCount": 30}}},
        }}, since=SINCE, until=NOW)
        assert metrics.repository_list == ("o/r",)
        assert metrics.commits_count == 30
        assert metrics.get_issue_resolution_rate() == 60
        assert metrics.most_active_repository == "o/r"

    def test_null_payload(self):
        with pytest.raises(PayloadShapeError, match="Invalid GitHub activity metrics REST response"):
            ActivityMetrics.from_rest_response(None)


class TestCombine:
    """Per-repository metrics merged into one record."""

    def setup_method(self):
        self.a = ActivityMetrics.from_aggregated_data(["o/a"], SINCE, NOW, {
            "commits": 2,
            "issues": {"total": 1, "open": 1},
            "contributors": {"total": 2, "active": 1},
            "contributor_logins": ["x", "y"],
            "active_logins": ["x"],
        })
        self.b = ActivityMetrics.from_aggregated_data(["o/b"], SINCE, NOW, {
            "commits": 5,
            "pull_requests": {"total": 2, "merged": 1},
            "contributors": {"total": 2, "active": 2},
            "contributor_logins": ["y", "z"],
            "active_logins": ["y", "z"],
        })

    def test_rank(self):
        ranked = rank_repositories([self.a, self.b])
        assert [r["name"] for r in ranked] == ["o/b", "o/a"]
        assert ranked[0]["activity_score"] == 7

    def test_combined_totals(self):
        combined = combine_activity([self.a, self.b], SINCE, now=NOW)
        assert combined.repository_list == ("o/a", "o/b")
        assert combined.commits_count == 7
        assert combined.total_issues_count == 1
        assert combined.merged_prs_count == 1
        assert combined.contributors_count == 3
        assert combined.active_contributors == 3
        assert combined.most_active_contributor == "x"
        assert combined.most_active_repository == "o/b"
        assert combined.analysis_period_days == 30

    def test_combine_nothing(self):
        combined = combine_activity([], SINCE, now=NOW)
        assert combined.repositories_count == 0
        assert combined.get_total_activity() == 0

    def test_summary(self):
        combined = combine_activity([self.a, self.b], SINCE, now=NOW)
        assert combined.get_summary() == "2 repositories, 30 days: 7 commits, 1 issues, 2 PRs (0.33 avg daily activity)"
