"""Repository value object and its payload adapters."""

from dataclasses import dataclass, field
from datetime import datetime

from keys import RepositoryKeys
from normalize import (
    SourceAdapted,
    SourceKind,
    age_in_days,
    days_since,
    dig,
    flag,
    format_value,
    integer,
    normalize_owner_type,
    normalize_visibility,
    optional_text,
    parse_timestamp,
    require_fields,
    require_object,
    string_list,
    text,
    timestamp_or_now,
)

ENTITY = "repository"


@dataclass(frozen=True)
class Repository(SourceAdapted):
    id: int
    name: str
    full_name: str
    owner: str
    owner_type: str
    description: str | None
    url: str
    homepage: str | None
    language: str | None
    languages: tuple[str, ...]
    topics: tuple[str, ...]
    license: str | None
    visibility: str
    is_private: bool
    is_fork: bool
    is_archived: bool
    has_issues: bool
    has_projects: bool
    has_wiki: bool
    default_branch: str
    stargazers_count: int
    watchers_count: int
    forks_count: int
    open_issues_count: int
    size: int
    created_at: datetime
    updated_at: datetime
    pushed_at: datetime | None = field(default=None)

    @classmethod
    def from_tool_output(cls, payload):
        """Build from `gh repo view --json ...` output."""
        data = require_object(payload, ENTITY, SourceKind.CLI)
        require_fields(data, ["name"], ENTITY, SourceKind.CLI)

        # gh emits owner as {"login": ...}; older scripts pass a bare login
        owner = data.get("owner")
        if isinstance(owner, dict):
            owner_login = text(owner.get("login"), "unknown")
            owner_type = data.get("ownerType") or owner.get("type")
        else:
            owner_login = text(owner, "unknown")
            owner_type = data.get("ownerType")
        is_private = flag(data.get("isPrivate"))
        language = data.get("primaryLanguage")
        if isinstance(language, dict):
            language = language.get("name")

        return cls(
            id=integer(data.get("id")),
            name=str(data["name"]),
            full_name=text(data.get("nameWithOwner"), f"{owner_login}/{data['name']}"),
            owner=owner_login,
            owner_type=normalize_owner_type(owner_type),
            description=optional_text(data.get("description")),
            url=text(data.get("url")),
            homepage=optional_text(data.get("homepageUrl") or data.get("homepage")),
            language=optional_text(language),
            languages=tuple(string_list(data.get("languages"), ("node", "name"))
                            or string_list(data.get("languages"), "name")),
            topics=tuple(string_list(data.get("repositoryTopics") or data.get("topics"), "name")),
            license=optional_text(dig(data, "licenseInfo", "name") or data.get("license")),
            visibility=normalize_visibility(data.get("visibility"), is_private),
            is_private=is_private,
            is_fork=flag(data.get("isFork")),
            is_archived=flag(data.get("isArchived")),
            has_issues=flag(data.get("hasIssuesEnabled", data.get("hasIssues"))),
            has_projects=flag(data.get("hasProjectsEnabled", data.get("hasProjects"))),
            has_wiki=flag(data.get("hasWikiEnabled", data.get("hasWiki"))),
            default_branch=text(dig(data, "defaultBranchRef", "name") or data.get("defaultBranch"), "main"),
            stargazers_count=integer(data.get("stargazerCount", data.get("stargazersCount"))),
            watchers_count=integer(data.get("watchers", data.get("watchersCount"))),
            forks_count=integer(data.get("forkCount", data.get("forksCount"))),
            open_issues_count=integer(data.get("issues", data.get("openIssuesCount"))),
            size=integer(data.get("diskUsage", data.get("size"))),
            created_at=timestamp_or_now(data.get("createdAt")),
            updated_at=timestamp_or_now(data.get("updatedAt")),
            pushed_at=parse_timestamp(data.get("pushedAt")),
        )

    @classmethod
    def from_rest_response(cls, payload):
        """Build from GET /repos/{owner}/{repo}."""
        data = require_object(payload, ENTITY, SourceKind.REST)
        require_fields(data, ["id", "name", "full_name", "owner"], ENTITY, SourceKind.REST)

        language = optional_text(data.get("language"))
        is_private = data.get("private") is True
        return cls(
            id=integer(data["id"]),
            name=str(data["name"]),
            full_name=str(data["full_name"]),
            owner=text(dig(data, "owner", "login"), "unknown"),
            owner_type=normalize_owner_type(dig(data, "owner", "type")),
            description=optional_text(data.get("description")),
            url=text(data.get("html_url") or data.get("url")),
            homepage=optional_text(data.get("homepage")),
            language=language,
            languages=(language,) if language else (),
            topics=tuple(string_list(data.get("topics"))),
            license=optional_text(dig(data, "license", "name")),
            visibility=normalize_visibility(data.get("visibility"), is_private),
            is_private=is_private,
            is_fork=flag(data.get("fork")),
            is_archived=flag(data.get("archived")),
            has_issues=flag(data.get("has_issues")),
            has_projects=flag(data.get("has_projects")),
            has_wiki=flag(data.get("has_wiki")),
            default_branch=text(data.get("default_branch"), "main"),
            stargazers_count=integer(data.get("stargazers_count")),
            watchers_count=integer(data.get("watchers_count")),
            forks_count=integer(data.get("forks_count")),
            open_issues_count=integer(data.get("open_issues_count")),
            size=integer(data.get("size")),
            created_at=timestamp_or_now(data.get("created_at")),
            updated_at=timestamp_or_now(data.get("updated_at")),
            pushed_at=parse_timestamp(data.get("pushed_at")),
        )

    @classmethod
    def from_graphql_response(cls, payload):
        """Build from a GraphQL `Repository` node."""
        data = require_object(payload, ENTITY, SourceKind.GRAPHQL)
        require_fields(data, ["name", "owner"], ENTITY, SourceKind.GRAPHQL)

        owner = data["owner"]
        owner_login = text(dig(owner, "login") if isinstance(owner, dict) else owner, "unknown")
        owner_type = (dig(owner, "__typename") or dig(owner, "type")) if isinstance(owner, dict) else None
        is_private = flag(data.get("isPrivate"))
        return cls(
            id=integer(data.get("databaseId")),
            name=str(data["name"]),
            full_name=text(data.get("nameWithOwner"), f"{owner_login}/{data['name']}"),
            owner=owner_login,
            owner_type=normalize_owner_type(owner_type),
            description=optional_text(data.get("description")),
            url=text(data.get("url")),
            homepage=optional_text(data.get("homepageUrl")),
            language=optional_text(dig(data, "primaryLanguage", "name")),
            languages=tuple(string_list(data.get("languages"), "name")),
            topics=tuple(string_list(data.get("repositoryTopics"), ("topic", "name"))),
            license=optional_text(dig(data, "licenseInfo", "name")),
            visibility=normalize_visibility(data.get("visibility"), is_private),
            is_private=is_private,
            is_fork=flag(data.get("isFork")),
            is_archived=flag(data.get("isArchived")),
            has_issues=flag(data.get("hasIssuesEnabled")),
            has_projects=flag(data.get("hasProjectsEnabled")),
            has_wiki=flag(data.get("hasWikiEnabled")),
            default_branch=text(dig(data, "defaultBranchRef", "name"), "main"),
            stargazers_count=integer(data.get("stargazerCount")),
            watchers_count=integer(data.get("watchers")),
            forks_count=integer(data.get("forkCount")),
            open_issues_count=integer(data.get("issues")),
            size=integer(data.get("diskUsage")),
            created_at=timestamp_or_now(data.get("createdAt")),
            updated_at=timestamp_or_now(data.get("updatedAt")),
            pushed_at=parse_timestamp(data.get("pushedAt")),
        )

    def get_age_in_days(self, reference: datetime | None = None) -> int:
        return age_in_days(self.created_at, reference)

    def get_days_since_update(self, reference: datetime | None = None) -> int:
        return age_in_days(self.updated_at, reference)

    def get_days_since_last_push(self, reference: datetime | None = None) -> int | None:
        return days_since(self.pushed_at, reference)

    def has_significant_engagement(self) -> bool:
        return self.stargazers_count >= 10 or self.forks_count >= 5 or self.watchers_count >= 5

    def is_actively_maintained(self, reference: datetime | None = None) -> bool:
        """Updated in the last 90 days or pushed in the last 30."""
        if self.get_days_since_update(reference) <= 90:
            return True
        pushed = self.get_days_since_last_push(reference)
        return pushed is not None and pushed <= 30

    def get_summary(self) -> str:
        parts = [self.full_name]
        if self.language:
            parts.append(f"({self.language})")
        parts.append(f"- {self.stargazers_count} stars, {self.forks_count} forks")
        if self.is_archived:
            parts.append("[archived]")
        return " ".join(parts)

    def to_data(self) -> dict[str, str]:
        return {
            RepositoryKeys.CREATED_AT.value: format_value(self.created_at),
            RepositoryKeys.DEFAULT_BRANCH.value: self.default_branch,
            RepositoryKeys.DESCRIPTION.value: format_value(self.description),
            RepositoryKeys.FORKS_COUNT.value: format_value(self.forks_count),
            RepositoryKeys.FULL_NAME.value: self.full_name,
            RepositoryKeys.HAS_ISSUES.value: format_value(self.has_issues),
            RepositoryKeys.HAS_PROJECTS.value: format_value(self.has_projects),
            RepositoryKeys.HAS_WIKI.value: format_value(self.has_wiki),
            RepositoryKeys.HOMEPAGE.value: format_value(self.homepage),
            RepositoryKeys.ID.value: format_value(self.id),
            RepositoryKeys.IS_ARCHIVED.value: format_value(self.is_archived),
            RepositoryKeys.IS_FORK.value: format_value(self.is_fork),
            RepositoryKeys.IS_PRIVATE.value: format_value(self.is_private),
            RepositoryKeys.LANGUAGE.value: format_value(self.language),
            RepositoryKeys.LANGUAGES.value: format_value(self.languages),
            RepositoryKeys.LICENSE.value: format_value(self.license),
            RepositoryKeys.NAME.value: self.name,
            RepositoryKeys.OPEN_ISSUES_COUNT.value: format_value(self.open_issues_count),
            RepositoryKeys.OWNER.value: self.owner,
            RepositoryKeys.OWNER_TYPE.value: self.owner_type,
            RepositoryKeys.PUSHED_AT.value: format_value(self.pushed_at),
            RepositoryKeys.SIZE.value: format_value(self.size),
            RepositoryKeys.STARGAZERS_COUNT.value: format_value(self.stargazers_count),
            RepositoryKeys.TOPICS.value: format_value(self.topics),
            RepositoryKeys.UPDATED_AT.value: format_value(self.updated_at),
            RepositoryKeys.URL.value: self.url,
            RepositoryKeys.VISIBILITY.value: self.visibility,
            RepositoryKeys.WATCHERS_COUNT.value: format_value(self.watchers_count),
        }
