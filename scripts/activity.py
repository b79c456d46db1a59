"""Activity metrics over an analysis window, for one repository or many."""

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta

from keys import ActivityKeys
from normalize import (
    SourceAdapted,
    SourceKind,
    age_in_days,
    dig,
    format_value,
    integer,
    optional_text,
    parse_timestamp,
    require_object,
    safe_ratio,
    string_list,
    utc_now,
)
from stats import average_per_day, find_top_n, ratio

ENTITY = "activity metrics"
DEFAULT_WINDOW_DAYS = 30


def _period(start, end, days=None) -> tuple[datetime, datetime]:
    """Resolve a window from explicit bounds, falling back to `days` before now."""
    end = parse_timestamp(end) or utc_now()
    start = parse_timestamp(start)
    if start is None:
        start = end - timedelta(days=integer(days, DEFAULT_WINDOW_DAYS))
    return start, end


@dataclass(frozen=True)
class ActivityMetrics(SourceAdapted):
    repositories_count: int
    repository_list: tuple[str, ...]
    analysis_period_start: datetime
    analysis_period_end: datetime
    analysis_period_days: int
    commits_count: int
    total_issues_count: int
    open_issues_count: int
    closed_issues_count: int
    total_prs_count: int
    open_prs_count: int
    merged_prs_count: int
    contributors_count: int
    active_contributors: int
    most_active_contributor: str | None
    most_active_repository: str | None
    release_count: int
    total_additions: int
    total_deletions: int
    total_files_changed: int
    avg_commits_per_day: float
    avg_issues_per_day: float
    avg_prs_per_day: float
    # kept so per-repository metrics can be combined without double counting people
    contributor_logins: tuple[str, ...] = ()
    active_logins: tuple[str, ...] = ()
    # raw inputs for cross-repository distribution and velocity facts
    commit_authors: tuple[tuple[str, int], ...] = ()
    commit_dates: tuple[datetime, ...] = ()

    @classmethod
    def create_empty(cls, repositories: list[str], period_start: datetime, period_end: datetime):
        return cls.from_aggregated_data(repositories, period_start, period_end, {})

    @classmethod
    def from_aggregated_data(cls, repositories: list[str], period_start: datetime,
                             period_end: datetime, metrics: dict):
        """Build from pre-counted totals.

        metrics may hold commits, releases, most_active_repo and the nested
        groups issues (total/open/closed), pull_requests (total/open/merged),
        contributors (total/active/most_active) and code_changes
        (additions/deletions/files_changed). Anything absent counts as zero.
        """
        days = age_in_days(period_start, period_end)
        issues = metrics.get("issues") or {}
        prs = metrics.get("pull_requests") or {}
        people = metrics.get("contributors") or {}
        changes = metrics.get("code_changes") or {}
        commits = integer(metrics.get("commits"))
        total_issues = integer(issues.get("total"))
        total_prs = integer(prs.get("total"))
        return cls(
            repositories_count=len(repositories),
            repository_list=tuple(repositories),
            analysis_period_start=period_start,
            analysis_period_end=period_end,
            analysis_period_days=days,
            commits_count=commits,
            total_issues_count=total_issues,
            open_issues_count=integer(issues.get("open")),
            closed_issues_count=integer(issues.get("closed")),
            total_prs_count=total_prs,
            open_prs_count=integer(prs.get("open")),
            merged_prs_count=integer(prs.get("merged")),
            contributors_count=integer(people.get("total")),
            active_contributors=integer(people.get("active")),
            most_active_contributor=optional_text(people.get("most_active")),
            most_active_repository=optional_text(metrics.get("most_active_repo")),
            release_count=integer(metrics.get("releases")),
            total_additions=integer(changes.get("additions")),
            total_deletions=integer(changes.get("deletions")),
            total_files_changed=integer(changes.get("files_changed")),
            avg_commits_per_day=average_per_day(commits, days),
            avg_issues_per_day=average_per_day(total_issues, days),
            avg_prs_per_day=average_per_day(total_prs, days),
            contributor_logins=tuple(metrics.get("contributor_logins") or ()),
            active_logins=tuple(metrics.get("active_logins") or ()),
            commit_authors=tuple(sorted((metrics.get("commit_authors") or {}).items())),
            commit_dates=tuple(sorted(metrics.get("commit_dates") or ())),
        )

    @classmethod
    def from_time_window(cls, repositories: list[str], time_window: int, raw_metrics: dict,
                         now: datetime | None = None):
        """Sum per-repository rows over the last `time_window` days.

        raw_metrics holds lists of rows keyed by repo: commit_data
        (count/additions/deletions/files), issue_data (total/open/closed),
        pr_data (total/open/merged), contributor_data (contributors and
        active_contributors login lists) and release_data (releases).
        """
        end = now or utc_now()
        start = end - timedelta(days=time_window)
        commit_rows = raw_metrics.get("commit_data", [])
        issue_rows = raw_metrics.get("issue_data", [])
        pr_rows = raw_metrics.get("pr_data", [])
        people_rows = raw_metrics.get("contributor_data", [])

        contributors = []
        active = Counter()
        for row in people_rows:
            for login in row.get("contributors", []):
                if login not in contributors:
                    contributors.append(login)
            active.update(row.get("active_contributors", []))

        busiest = max(commit_rows, key=lambda row: row.get("count", 0), default=None)
        most_active_repo = busiest["repo"] if busiest and busiest.get("count", 0) > 0 else None

        commits = sum(row.get("count", 0) for row in commit_rows)
        total_issues = sum(row.get("total", 0) for row in issue_rows)
        total_prs = sum(row.get("total", 0) for row in pr_rows)
        return cls(
            repositories_count=len(repositories),
            repository_list=tuple(repositories),
            analysis_period_start=start,
            analysis_period_end=end,
            analysis_period_days=time_window,
            commits_count=commits,
            total_issues_count=total_issues,
            open_issues_count=sum(row.get("open", 0) for row in issue_rows),
            closed_issues_count=sum(row.get("closed", 0) for row in issue_rows),
            total_prs_count=total_prs,
            open_prs_count=sum(row.get("open", 0) for row in pr_rows),
            merged_prs_count=sum(row.get("merged", 0) for row in pr_rows),
            contributors_count=len(contributors),
            active_contributors=len(active),
            most_active_contributor=active.most_common(1)[0][0] if active else None,
            most_active_repository=most_active_repo,
            release_count=sum(row.get("releases", 0) for row in raw_metrics.get("release_data", [])),
            total_additions=sum(row.get("additions", 0) for row in commit_rows),
            total_deletions=sum(row.get("deletions", 0) for row in commit_rows),
            total_files_changed=sum(row.get("files", 0) for row in commit_rows),
            avg_commits_per_day=average_per_day(commits, time_window),
            avg_issues_per_day=average_per_day(total_issues, time_window),
            avg_prs_per_day=average_per_day(total_prs, time_window),
            contributor_logins=tuple(contributors),
            active_logins=tuple(active),
        )

    @classmethod
    def from_repository_facts(cls, repository: str, issues: list, pull_requests: list, commits: list,
                              since: datetime, now: datetime | None = None):
        """Count one repository's issues, pull requests and commits since `since`."""
        everyone = [i.creator for i in issues] + [p.creator for p in pull_requests]
        everyone += [c.author_name for c in commits]
        contributors = list(dict.fromkeys(login for login in everyone if login != "unknown"))
        doers = Counter(c.author_name for c in commits)
        doers.update(p.creator for p in pull_requests)
        doers.pop("unknown", None)
        authors = Counter(c.author_name for c in commits if c.author_name != "unknown")

        has_activity = bool(issues or pull_requests or commits)
        metrics = {
            "commits": len(commits),
            "issues": {
                "total": len(issues),
                "open": sum(1 for i in issues if i.is_open()),
                "closed": sum(1 for i in issues if i.is_closed()),
            },
            "pull_requests": {
                "total": len(pull_requests),
                "open": sum(1 for p in pull_requests if p.is_open()),
                "merged": sum(1 for p in pull_requests if p.merged),
            },
            "contributors": {
                "total": len(contributors),
                "active": len(doers),
                "most_active": doers.most_common(1)[0][0] if doers else None,
            },
            "code_changes": {
                "additions": sum(c.additions for c in commits),
                "deletions": sum(c.deletions for c in commits),
                "files_changed": sum(c.files_changed for c in commits),
            },
            "most_active_repo": repository if has_activity else None,
            "contributor_logins": contributors,
            "active_logins": list(doers),
            "commit_authors": dict(authors),
            "commit_dates": [c.author_date for c in commits],
        }
        return cls.from_aggregated_data([repository], since, now or utc_now(), metrics)

    @classmethod
    def from_tool_output(cls, payload):
        """Build from a flat camelCase fact sheet produced by the CLI tooling."""
        data = require_object(payload, ENTITY, SourceKind.CLI)
        start, end = _period(data.get("periodStart"), data.get("periodEnd"), data.get("periodDays"))
        return cls.from_aggregated_data(string_list(data.get("repositories")), start, end, {
            "commits": data.get("commits"),
            "issues": {"total": data.get("totalIssues"), "open": data.get("openIssues"),
                       "closed": data.get("closedIssues")},
            "pull_requests": {"total": data.get("totalPrs"), "open": data.get("openPrs"),
                              "merged": data.get("mergedPrs")},
            "contributors": {"total": data.get("contributors"), "active": data.get("activeContributors"),
                             "most_active": data.get("mostActiveContributor")},
            "code_changes": {"additions": data.get("additions"), "deletions": data.get("deletions"),
                             "files_changed": data.get("filesChanged")},
            "most_active_repo": data.get("mostActiveRepository"),
            "releases": data.get("releases"),
        })

    @classmethod
    def from_rest_response(cls, payload):
        """Build from a flat snake_case fact sheet."""
        data = require_object(payload, ENTITY, SourceKind.REST)
        start, end = _period(data.get("period_start"), data.get("period_end"), data.get("period_days"))
        return cls.from_aggregated_data(string_list(data.get("repositories")), start, end, {
            "commits": data.get("commits"),
            "issues": {"total": data.get("total_issues"), "open": data.get("open_issues"),
                       "closed": data.get("closed_issues")},
            "pull_requests": {"total": data.get("total_prs"), "open": data.get("open_prs"),
                              "merged": data.get("merged_prs")},
            "contributors": {"total": data.get("contributors"), "active": data.get("active_contributors"),
                             "most_active": data.get("most_active_contributor")},
            "code_changes": {"additions": data.get("additions"), "deletions": data.get("deletions"),
                             "files_changed": data.get("files_changed")},
            "most_active_repo": data.get("most_active_repository"),
            "releases": data.get("releases"),
        })

    @classmethod
    def from_graphql_response(cls, payload, since=None, until=None):
        """Build from a GraphQL `repository` node carrying totalCount connections."""
        data = require_object(payload, ENTITY, SourceKind.GRAPHQL)
        node = data.get("repository") if isinstance(data.get("repository"), dict) else data
        start, end = _period(since, until)
        name = optional_text(node.get("nameWithOwner"))
        commits = integer(dig(node, "defaultBranchRef", "target", "history"))
        issues = integer(node.get("issues"))
        prs = integer(node.get("pullRequests"))
        return cls.from_aggregated_data([name] if name else [], start, end, {
            "commits": commits,
            "issues": {"total": issues, "open": integer(node.get("openIssues")),
                       "closed": integer(node.get("closedIssues"))},
            "pull_requests": {"total": prs, "open": integer(node.get("openPullRequests")),
                              "merged": integer(node.get("mergedPullRequests"))},
            "contributors": {"total": integer(node.get("mentionableUsers")),
                             "active": integer(node.get("activeContributors"))},
            "most_active_repo": name if commits or issues or prs else None,
            "releases": integer(node.get("releases")),
        })

    def get_total_activity(self) -> int:
        return self.commits_count + self.total_issues_count + self.total_prs_count

    def get_average_daily_activity(self) -> float:
        return average_per_day(self.get_total_activity(), self.analysis_period_days)

    def get_contributor_engagement_ratio(self) -> float:
        return ratio(self.active_contributors, self.contributors_count)

    def get_issue_resolution_rate(self) -> int:
        return safe_ratio(self.closed_issues_count, self.total_issues_count)

    def get_merge_rate(self) -> int:
        return safe_ratio(self.merged_prs_count, self.total_prs_count)

    def is_actively_developed(self) -> bool:
        """At least one commit per week of the window and someone doing it."""
        return self.commits_count >= self.analysis_period_days / 7 and self.active_contributors > 0

    def get_summary(self) -> str:
        repos = "repository" if self.repositories_count == 1 else "repositories"
        return (f"{self.repositories_count} {repos}, {self.analysis_period_days} days: "
                f"{self.commits_count} commits, {self.total_issues_count} issues, "
                f"{self.total_prs_count} PRs ({format_value(self.get_average_daily_activity())} avg daily activity)")

    def to_data(self) -> dict[str, str]:
        return {
            ActivityKeys.ACTIVE_CONTRIBUTORS.value: format_value(self.active_contributors),
            ActivityKeys.ANALYSIS_PERIOD_DAYS.value: format_value(self.analysis_period_days),
            ActivityKeys.ANALYSIS_PERIOD_END.value: format_value(self.analysis_period_end),
            ActivityKeys.ANALYSIS_PERIOD_START.value: format_value(self.analysis_period_start),
            ActivityKeys.AVG_COMMITS_PER_DAY.value: format_value(self.avg_commits_per_day),
            ActivityKeys.AVG_ISSUES_PER_DAY.value: format_value(self.avg_issues_per_day),
            ActivityKeys.AVG_PRS_PER_DAY.value: format_value(self.avg_prs_per_day),
            ActivityKeys.CLOSED_ISSUES_COUNT.value: format_value(self.closed_issues_count),
            ActivityKeys.COMMITS_COUNT.value: format_value(self.commits_count),
            ActivityKeys.CONTRIBUTORS_COUNT.value: format_value(self.contributors_count),
            ActivityKeys.MERGED_PRS_COUNT.value: format_value(self.merged_prs_count),
            ActivityKeys.MOST_ACTIVE_CONTRIBUTOR.value: format_value(self.most_active_contributor),
            ActivityKeys.MOST_ACTIVE_REPOSITORY.value: format_value(self.most_active_repository),
            ActivityKeys.OPEN_ISSUES_COUNT.value: format_value(self.open_issues_count),
            ActivityKeys.OPEN_PRS_COUNT.value: format_value(self.open_prs_count),
            ActivityKeys.RELEASE_COUNT.value: format_value(self.release_count),
            ActivityKeys.REPOSITORIES_COUNT.value: format_value(self.repositories_count),
            ActivityKeys.REPOSITORY_LIST.value: format_value(self.repository_list),
            ActivityKeys.TOTAL_ADDITIONS.value: format_value(self.total_additions),
            ActivityKeys.TOTAL_DELETIONS.value: format_value(self.total_deletions),
            ActivityKeys.TOTAL_FILES_CHANGED.value: format_value(self.total_files_changed),
            ActivityKeys.TOTAL_ISSUES_COUNT.value: format_value(self.total_issues_count),
            ActivityKeys.TOTAL_PRS_COUNT.value: format_value(self.total_prs_count),
        }


def rank_repositories(metrics: list[ActivityMetrics]) -> list[dict]:
    """Per-repository stats sorted by total activity, busiest first."""
    repo_stats = []
    for m in metrics:
        repo_stats.append({
            "name": ", ".join(m.repository_list),
            "commits": m.commits_count,
            "issues": m.total_issues_count,
            "prs": m.total_prs_count,
            "activity_score": m.get_total_activity(),
        })
    return find_top_n(repo_stats, len(repo_stats), "activity_score")


def combine_activity(metrics: list[ActivityMetrics], since: datetime,
                     now: datetime | None = None) -> ActivityMetrics:
    """Merge per-repository metrics into one record over [since, now]."""
    end = now or utc_now()
    repositories = []
    for m in metrics:
        repositories.extend(r for r in m.repository_list if r not in repositories)
    if not metrics:
        return ActivityMetrics.create_empty(repositories, since, end)

    # Count people by login where known, otherwise fall back to summing counts
    logins = list(dict.fromkeys(login for m in metrics for login in m.contributor_logins))
    active = Counter(login for m in metrics for login in m.active_logins)
    total_people = len(logins) if logins else sum(m.contributors_count for m in metrics)
    active_people = len(active) if active else sum(m.active_contributors for m in metrics)

    ranked = [r for r in rank_repositories(metrics) if r["activity_score"] > 0]
    leaders = active or Counter(m.most_active_contributor for m in metrics if m.most_active_contributor)

    return ActivityMetrics.from_aggregated_data(repositories, since, end, {
        "commits": sum(m.commits_count for m in metrics),
        "issues": {
            "total": sum(m.total_issues_count for m in metrics),
            "open": sum(m.open_issues_count for m in metrics),
            "closed": sum(m.closed_issues_count for m in metrics),
        },
        "pull_requests": {
            "total": sum(m.total_prs_count for m in metrics),
            "open": sum(m.open_prs_count for m in metrics),
            "merged": sum(m.merged_prs_count for m in metrics),
        },
        "contributors": {
            "total": total_people,
            "active": active_people,
            "most_active": leaders.most_common(1)[0][0] if leaders else None,
        },
        "code_changes": {
            "additions": sum(m.total_additions for m in metrics),
            "deletions": sum(m.total_deletions for m in metrics),
            "files_changed": sum(m.total_files_changed for m in metrics),
        },
        "most_active_repo": ranked[0]["name"] if ranked else None,
        "releases": sum(m.release_count for m in metrics),
        "contributor_logins": logins,
        "active_logins": list(active),
    })
