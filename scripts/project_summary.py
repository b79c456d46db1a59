"""Project-level summary built from repository facts and activity metrics."""

from collections import Counter
from dataclasses import dataclass
from datetime import datetime

from errors import MissingFieldsError, PayloadShapeError
from keys import ProjectSummaryKeys
from normalize import (
    SourceAdapted,
    SourceKind,
    age_in_days,
    dig,
    format_value,
    integer,
    is_missing,
    require_fields,
    require_object,
    safe_ratio,
    string_list,
    text,
    timestamp_or_now,
)

ENTITY = "project summary"
DEFAULT_DESCRIPTION = "No description available"
UNKNOWN_LANGUAGE = "Unknown"
ACTIVITY_LEVELS = ("high", "medium", "low")

HEALTH_BANDS = [
    (80, "Excellent"),
    (60, "Good"),
    (40, "Fair"),
    (20, "Poor"),
]

ACTIVITY_DESCRIPTIONS = {
    "high": "Very active with frequent commits and updates",
    "medium": "Moderately active with regular updates",
    "low": "Low activity with infrequent updates",
}


def _validated(data, label: str) -> dict:
    if not isinstance(data, dict):
        raise PayloadShapeError(f"Invalid {label}: data is null, undefined, or not an object")
    missing = [f for f in ("name", "owner") if is_missing(data.get(f)) or not isinstance(data.get(f), str)]
    if missing:
        raise MissingFieldsError(f"Invalid {label}: missing required fields: {', '.join(missing)}", missing)
    return data


def activity_level(average_daily_activity: float) -> str:
    """Bucket average daily events (commits + issues + PRs) into high/medium/low."""
    if average_daily_activity >= 5:
        return "high"
    if average_daily_activity >= 1:
        return "medium"
    return "low"


@dataclass(frozen=True)
class ProjectSummary(SourceAdapted):
    name: str
    owner: str
    description: str
    url: str
    primary_language: str
    languages: tuple[str, ...]
    created_at: datetime
    updated_at: datetime
    repository_count: int
    active_repositories: int
    stars_total: int
    total_commits: int
    commits_last_30_days: int
    total_contributors: int
    active_contributors: int
    issues_total_count: int
    issues_open_count: int
    issues_closed_ratio: int
    average_issue_age_days: float
    prs_total_count: int
    prs_open_count: int
    prs_merged_ratio: int
    average_pr_age_days: float
    recent_activity_level: str
    health_score: int

    @classmethod
    def from_aggregated_data(cls, summary: dict):
        """Build from a snake_case dict; only name and owner are required."""
        data = _validated(summary, "project summary data")
        issues_total = integer(data.get("issues_total_count"))
        issues_open = integer(data.get("issues_open_count"))
        prs_total = integer(data.get("prs_total_count"))
        prs_open = integer(data.get("prs_open_count"))
        closed_ratio = safe_ratio(issues_total - issues_open, issues_total)
        merged_ratio = safe_ratio(prs_total - prs_open, prs_total)
        level = data.get("recent_activity_level")

        return cls(
            name=data["name"],
            owner=data["owner"],
            description=text(data.get("description"), DEFAULT_DESCRIPTION),
            url=text(data.get("url")),
            primary_language=text(data.get("primary_language"), UNKNOWN_LANGUAGE),
            languages=tuple(data.get("languages") or ()),
            created_at=timestamp_or_now(data.get("created_at")),
            updated_at=timestamp_or_now(data.get("updated_at")),
            repository_count=integer(data.get("repository_count")),
            active_repositories=integer(data.get("active_repositories")),
            stars_total=integer(data.get("stars_total")),
            total_commits=integer(data.get("total_commits")),
            commits_last_30_days=integer(data.get("commits_last_30_days")),
            total_contributors=integer(data.get("total_contributors")),
            active_contributors=integer(data.get("active_contributors")),
            issues_total_count=issues_total,
            issues_open_count=issues_open,
            issues_closed_ratio=closed_ratio,
            average_issue_age_days=data.get("average_issue_age_days") or 0,
            prs_total_count=prs_total,
            prs_open_count=prs_open,
            prs_merged_ratio=merged_ratio,
            average_pr_age_days=data.get("average_pr_age_days") or 0,
            recent_activity_level=level if level in ACTIVITY_LEVELS else "low",
            # a zero score counts as unset
            health_score=integer(data.get("health_score")) or safe_ratio(closed_ratio + merged_ratio, 2, scale=1),
        )

    @classmethod
    def from_basic_data(cls, basic: dict):
        """Identity only; every metric starts at zero."""
        data = _validated(basic, "basic project data")
        return cls.from_aggregated_data({
            "name": data["name"],
            "owner": data["owner"],
            "description": data.get("description"),
            "url": data.get("url"),
            "created_at": data.get("created_at"),
            "updated_at": data.get("updated_at"),
        })

    @classmethod
    def from_activity(cls, name: str, owner: str, metrics, repositories=(), extra: dict | None = None):
        """Build from combined ActivityMetrics and the Repository objects they cover."""
        languages = Counter(r.language for r in repositories if r.language)
        if repositories:
            active = sum(1 for r in repositories if r.is_actively_maintained())
        else:
            active = metrics.repositories_count if metrics.get_total_activity() else 0
        summary = {
            "name": name,
            "owner": owner,
            "repository_count": metrics.repositories_count,
            "active_repositories": active,
            "stars_total": sum(r.stargazers_count for r in repositories),
            "languages": [lang for lang, _ in languages.most_common()],
            "primary_language": languages.most_common(1)[0][0] if languages else None,
            "created_at": min((r.created_at for r in repositories), default=None),
            "updated_at": max((r.updated_at for r in repositories), default=None),
            "total_commits": metrics.commits_count,
            "commits_last_30_days": metrics.commits_count if metrics.analysis_period_days <= 30 else 0,
            "total_contributors": metrics.contributors_count,
            "active_contributors": metrics.active_contributors,
            "issues_total_count": metrics.total_issues_count,
            "issues_open_count": metrics.open_issues_count,
            "prs_total_count": metrics.total_prs_count,
            "prs_open_count": metrics.open_prs_count,
            "recent_activity_level": activity_level(metrics.get_average_daily_activity()),
        }
        if len(repositories) == 1:
            summary["description"] = repositories[0].description
            summary["url"] = repositories[0].url
        summary.update(extra or {})
        return cls.from_aggregated_data(summary)

    @classmethod
    def from_tool_output(cls, payload):
        """Build from `gh repo view --json ...` output with count connections."""
        data = require_object(payload, ENTITY, SourceKind.CLI)
        require_fields(data, ["name", "owner"], ENTITY, SourceKind.CLI)
        owner = data["owner"]
        return cls.from_aggregated_data({
            "name": str(data["name"]),
            "owner": text(dig(owner, "login") if isinstance(owner, dict) else owner, "unknown"),
            "description": data.get("description"),
            "url": data.get("url"),
            "primary_language": dig(data, "primaryLanguage", "name"),
            "languages": string_list(data.get("languages"), ("node", "name"))
            or string_list(data.get("languages"), "name"),
            "created_at": data.get("createdAt"),
            "updated_at": data.get("updatedAt"),
            "repository_count": 1,
            "stars_total": integer(data.get("stargazerCount")),
            "issues_total_count": integer(data.get("issues")),
            "issues_open_count": integer(data.get("openIssues")),
            "prs_total_count": integer(data.get("pullRequests")),
            "prs_open_count": integer(data.get("openPullRequests")),
        })

    @classmethod
    def from_rest_response(cls, payload):
        """Build from GET /repos/{owner}/{repo}; REST carries only open issue counts."""
        data = require_object(payload, ENTITY, SourceKind.REST)
        require_fields(data, ["name", "owner"], ENTITY, SourceKind.REST)
        owner = data["owner"]
        language = data.get("language")
        return cls.from_aggregated_data({
            "name": str(data["name"]),
            "owner": text(dig(owner, "login") if isinstance(owner, dict) else owner, "unknown"),
            "description": data.get("description"),
            "url": data.get("html_url") or data.get("url"),
            "primary_language": language,
            "languages": [language] if language else [],
            "created_at": data.get("created_at"),
            "updated_at": data.get("updated_at"),
            "repository_count": 1,
            "stars_total": integer(data.get("stargazers_count")),
            "issues_total_count": integer(data.get("open_issues_count")),
            "issues_open_count": integer(data.get("open_issues_count")),
        })

    @classmethod
    def from_graphql_response(cls, payload):
        """Build from a GraphQL `Repository` node with aliased count connections."""
        data = require_object(payload, ENTITY, SourceKind.GRAPHQL)
        require_fields(data, ["name", "owner"], ENTITY, SourceKind.GRAPHQL)
        owner = data["owner"]
        commits = integer(dig(data, "defaultBranchRef", "target", "history"))
        return cls.from_aggregated_data({
            "name": str(data["name"]),
            "owner": text(dig(owner, "login") if isinstance(owner, dict) else owner, "unknown"),
            "description": data.get("description"),
            "url": data.get("url"),
            "primary_language": dig(data, "primaryLanguage", "name"),
            "languages": string_list(data.get("languages"), "name"),
            "created_at": data.get("createdAt"),
            "updated_at": data.get("updatedAt"),
            "repository_count": 1,
            "stars_total": integer(data.get("stargazerCount")),
            "total_commits": commits,
            "total_contributors": integer(data.get("mentionableUsers")),
            "issues_total_count": integer(data.get("issues")),
            "issues_open_count": integer(data.get("openIssues")),
            "prs_total_count": integer(data.get("pullRequests")),
            "prs_open_count": integer(data.get("openPullRequests")),
        })

    def get_health_status(self) -> str:
        for threshold, label in HEALTH_BANDS:
            if self.health_score >= threshold:
                return label
        return "Critical"

    def get_activity_description(self) -> str:
        return ACTIVITY_DESCRIPTIONS.get(self.recent_activity_level, "Activity level unknown")

    def get_age_in_days(self, reference: datetime | None = None) -> int:
        return age_in_days(self.created_at, reference)

    def get_days_since_update(self, reference: datetime | None = None) -> int:
        return age_in_days(self.updated_at, reference)

    def has_recent_activity(self, days: int = 30, reference: datetime | None = None) -> bool:
        return self.get_days_since_update(reference) <= days

    def is_actively_maintained(self, reference: datetime | None = None) -> bool:
        return (self.has_recent_activity(30, reference)
                and self.active_contributors > 0
                and self.commits_last_30_days > 0
                and self.health_score > 20)

    def get_summary(self, reference: datetime | None = None) -> str:
        language = "" if self.primary_language == UNKNOWN_LANGUAGE else f" ({self.primary_language})"
        repos = f" with {self.repository_count} repositories" if self.repository_count > 1 else ""
        activity = " - actively maintained" if self.is_actively_maintained(reference) else " - low activity"
        return f"{self.owner}/{self.name}{language}{repos}{activity}"

    def to_data(self) -> dict[str, str]:
        return {
            ProjectSummaryKeys.ACTIVE_CONTRIBUTORS.value: format_value(self.active_contributors),
            ProjectSummaryKeys.ACTIVE_REPOSITORIES.value: format_value(self.active_repositories),
            ProjectSummaryKeys.AVERAGE_ISSUE_AGE_DAYS.value: format_value(self.average_issue_age_days),
            ProjectSummaryKeys.AVERAGE_PR_AGE_DAYS.value: format_value(self.average_pr_age_days),
            ProjectSummaryKeys.COMMITS_LAST_30_DAYS.value: format_value(self.commits_last_30_days),
            ProjectSummaryKeys.CREATED_AT.value: format_value(self.created_at),
            ProjectSummaryKeys.DESCRIPTION.value: self.description,
            ProjectSummaryKeys.HEALTH_SCORE.value: format_value(self.health_score),
            ProjectSummaryKeys.ISSUES_CLOSED_RATIO.value: format_value(self.issues_closed_ratio),
            ProjectSummaryKeys.ISSUES_OPEN_COUNT.value: format_value(self.issues_open_count),
            ProjectSummaryKeys.ISSUES_TOTAL_COUNT.value: format_value(self.issues_total_count),
            ProjectSummaryKeys.LANGUAGES.value: format_value(self.languages),
            ProjectSummaryKeys.NAME.value: self.name,
            ProjectSummaryKeys.OWNER.value: self.owner,
            ProjectSummaryKeys.PRIMARY_LANGUAGE.value: self.primary_language,
            ProjectSummaryKeys.PRS_MERGED_RATIO.value: format_value(self.prs_merged_ratio),
            ProjectSummaryKeys.PRS_OPEN_COUNT.value: format_value(self.prs_open_count),
            ProjectSummaryKeys.PRS_TOTAL_COUNT.value: format_value(self.prs_total_count),
            ProjectSummaryKeys.RECENT_ACTIVITY_LEVEL.value: self.recent_activity_level,
            ProjectSummaryKeys.REPOSITORY_COUNT.value: format_value(self.repository_count),
            ProjectSummaryKeys.STARS_TOTAL.value: format_value(self.stars_total),
            ProjectSummaryKeys.TOTAL_COMMITS.value: format_value(self.total_commits),
            ProjectSummaryKeys.TOTAL_CONTRIBUTORS.value: format_value(self.total_contributors),
            ProjectSummaryKeys.UPDATED_AT.value: format_value(self.updated_at),
            ProjectSummaryKeys.URL.value: self.url,
        }
