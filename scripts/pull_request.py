"""Pull request value object and its payload adapters.

Each adapter extracts in three groups (basic scalars, relationships, dates)
and the groups are merged into one constructor call.
"""

from dataclasses import dataclass
from datetime import datetime

from keys import PullRequestKeys
from normalize import (
    UNKNOWN_REPOSITORY,
    SourceAdapted,
    SourceKind,
    age_in_days,
    days_since,
    dig,
    flag,
    format_value,
    integer,
    is_missing,
    normalize_state,
    optional_text,
    parse_timestamp,
    repository_from,
    require_fields,
    require_object,
    string_list,
    text,
    timestamp_or_now,
)

ENTITY = "pull request"
DEFAULT_TITLE = "Untitled Pull Request"

GRAPHQL_MERGEABLE = {"MERGEABLE": True, "CONFLICTING": False}


def _mergeable(value) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        upper = value.strip().upper()
        if upper in ("TRUE", "MERGEABLE"):
            return True
        if upper in ("FALSE", "CONFLICTING"):
            return False
    return None


@dataclass(frozen=True)
class PullRequest(SourceAdapted):
    id: str
    number: int
    title: str
    body: str
    state: str
    draft: bool
    locked: bool
    merged: bool
    mergeable: bool | None
    base_branch: str
    head_branch: str
    additions: int
    deletions: int
    changed_files: int
    commits_count: int
    comments_count: int
    review_comments_count: int
    assignees: tuple[str, ...]
    labels: tuple[str, ...]
    requested_reviewers: tuple[str, ...]
    milestone: str | None
    creator: str
    merged_by: str | None
    repository: str
    url: str
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None
    merged_at: datetime | None = None

    # CLI

    @classmethod
    def from_tool_output(cls, payload, repository: str | None = None):
        """Build from `gh pr list/view --json ...` output."""
        data = require_object(payload, ENTITY, SourceKind.CLI)
        return cls(
            **cls._cli_basic(data),
            **cls._cli_relationships(data, repository),
            **cls._cli_dates(data),
        )

    @staticmethod
    def _cli_basic(data: dict) -> dict:
        state = data.get("state")
        return {
            "id": text(data.get("id")),
            "number": integer(data.get("number")),
            "title": text(data.get("title"), DEFAULT_TITLE),
            "body": text(data.get("body")),
            "state": normalize_state(state),
            "draft": flag(data.get("isDraft") or data.get("draft")),
            "locked": flag(data.get("locked")),
            "merged": flag(data.get("merged")) or str(state).upper() == "MERGED"
            or not is_missing(data.get("mergedAt")),
            "mergeable": _mergeable(data.get("mergeable")),
            "base_branch": text(data.get("baseRefName"), "main"),
            "head_branch": text(data.get("headRefName"), "unknown"),
            "additions": integer(data.get("additions")),
            "deletions": integer(data.get("deletions")),
            "changed_files": integer(data.get("changedFiles")),
            "commits_count": _count(data.get("commits")),
            "comments_count": _count(data.get("comments")),
            "review_comments_count": integer(data.get("reviewComments")),
        }

    @staticmethod
    def _cli_relationships(data: dict, repository: str | None) -> dict:
        author = data.get("author") or data.get("user")
        milestone = data.get("milestone")
        if isinstance(milestone, dict):
            milestone = milestone.get("title")
        return {
            "assignees": tuple(string_list(data.get("assignees"), "login")),
            "labels": tuple(string_list(data.get("labels"), "name")),
            "requested_reviewers": tuple(string_list(
                data.get("reviewRequests") or data.get("requestedReviewers"), "login")),
            "milestone": optional_text(milestone),
            "creator": text(dig(author, "login"), "unknown"),
            "merged_by": optional_text(dig(data, "mergedBy", "login")),
            "repository": text(data.get("repository") or repository, UNKNOWN_REPOSITORY),
            "url": text(data.get("url")),
        }

    @staticmethod
    def _cli_dates(data: dict) -> dict:
        return {
            "created_at": timestamp_or_now(data.get("createdAt")),
            "updated_at": timestamp_or_now(data.get("updatedAt")),
            "closed_at": parse_timestamp(data.get("closedAt")),
            "merged_at": parse_timestamp(data.get("mergedAt")),
        }

    # REST

    @classmethod
    def from_rest_response(cls, payload):
        """Build from GET /repos/{owner}/{repo}/pulls[/{number}]."""
        data = require_object(payload, ENTITY, SourceKind.REST)
        require_fields(data, ["number", "title"], ENTITY, SourceKind.REST)
        return cls(
            **cls._rest_basic(data),
            **cls._rest_relationships(data),
            **cls._rest_dates(data),
        )

    @staticmethod
    def _rest_basic(data: dict) -> dict:
        return {
            "id": text(data.get("id"), "0"),
            "number": integer(data.get("number")),
            "title": str(data["title"]),
            "body": text(data.get("body")),
            "state": normalize_state(data.get("state")),
            "draft": flag(data.get("draft")),
            "locked": flag(data.get("locked")),
            # list responses omit `merged`; merged_at is always present
            "merged": flag(data.get("merged")) or not is_missing(data.get("merged_at")),
            "mergeable": _mergeable(data.get("mergeable")),
            "base_branch": text(dig(data, "base", "ref"), "main"),
            "head_branch": text(dig(data, "head", "ref"), "unknown"),
            "additions": integer(data.get("additions")),
            "deletions": integer(data.get("deletions")),
            "changed_files": integer(data.get("changed_files")),
            "commits_count": integer(data.get("commits")),
            "comments_count": integer(data.get("comments")),
            "review_comments_count": integer(data.get("review_comments")),
        }

    @staticmethod
    def _rest_relationships(data: dict) -> dict:
        repository = repository_from(
            dig(data, "base", "repo", "full_name") or dig(data, "repository", "full_name"),
            data.get("repository_url") or data.get("url"),
        )
        return {
            "assignees": tuple(string_list(data.get("assignees"), "login")),
            "labels": tuple(string_list(data.get("labels"), "name")),
            "requested_reviewers": tuple(string_list(data.get("requested_reviewers"), "login")),
            "milestone": optional_text(dig(data, "milestone", "title")),
            "creator": text(dig(data, "user", "login"), "unknown"),
            "merged_by": optional_text(dig(data, "merged_by", "login")),
            "repository": repository,
            "url": text(data.get("html_url")),
        }

    @staticmethod
    def _rest_dates(data: dict) -> dict:
        return {
            "created_at": timestamp_or_now(data.get("created_at")),
            "updated_at": timestamp_or_now(data.get("updated_at")),
            "closed_at": parse_timestamp(data.get("closed_at")),
            "merged_at": parse_timestamp(data.get("merged_at")),
        }

    # GraphQL

    @classmethod
    def from_graphql_response(cls, payload, repository: str = UNKNOWN_REPOSITORY):
        """Build from a GraphQL `PullRequest` node."""
        data = require_object(payload, ENTITY, SourceKind.GRAPHQL)
        return cls(
            **cls._graphql_basic(data),
            **cls._graphql_relationships(data, repository),
            **cls._graphql_dates(data),
        )

    @staticmethod
    def _graphql_basic(data: dict) -> dict:
        state = data.get("state")
        return {
            "id": text(data.get("id")),
            "number": integer(data.get("number")),
            "title": text(data.get("title"), DEFAULT_TITLE),
            "body": text(data.get("body")),
            "state": normalize_state(state, data.get("closed")),
            "draft": flag(data.get("isDraft")),
            "locked": flag(data.get("locked")),
            "merged": flag(data.get("merged")) or str(state).upper() == "MERGED",
            "mergeable": GRAPHQL_MERGEABLE.get(str(data.get("mergeable")).upper()),
            "base_branch": text(data.get("baseRefName"), "main"),
            "head_branch": text(data.get("headRefName"), "unknown"),
            "additions": integer(data.get("additions")),
            "deletions": integer(data.get("deletions")),
            "changed_files": integer(data.get("changedFiles")),
            "commits_count": integer(data.get("commits")),
            "comments_count": integer(data.get("comments")),
            "review_comments_count": integer(data.get("reviewThreads")),
        }

    @staticmethod
    def _graphql_relationships(data: dict, repository: str) -> dict:
        return {
            "assignees": tuple(string_list(data.get("assignees"), "login")),
            "labels": tuple(string_list(data.get("labels"), "name")),
            "requested_reviewers": tuple(string_list(
                data.get("reviewRequests"), ("requestedReviewer", "login"))),
            "milestone": optional_text(dig(data, "milestone", "title")),
            "creator": text(dig(data, "author", "login"), "unknown"),
            "merged_by": optional_text(dig(data, "mergedBy", "login")),
            "repository": repository_from(dig(data, "repository", "nameWithOwner") or repository),
            "url": text(data.get("url")),
        }

    @staticmethod
    def _graphql_dates(data: dict) -> dict:
        return {
            "created_at": timestamp_or_now(data.get("createdAt")),
            "updated_at": timestamp_or_now(data.get("updatedAt")),
            "closed_at": parse_timestamp(data.get("closedAt")),
            "merged_at": parse_timestamp(data.get("mergedAt")),
        }

    # Derived

    def get_net_changes(self) -> int:
        return self.additions - self.deletions

    def get_total_changes(self) -> int:
        return self.additions + self.deletions

    def get_age_in_days(self, reference: datetime | None = None) -> int:
        return age_in_days(self.created_at, reference)

    def get_days_since_update(self, reference: datetime | None = None) -> int:
        return age_in_days(self.updated_at, reference)

    def get_days_since_merge(self, reference: datetime | None = None) -> int | None:
        return days_since(self.merged_at, reference)

    def is_open(self) -> bool:
        return self.state == "open"

    def is_ready_for_review(self) -> bool:
        return self.is_open() and not self.draft

    def is_requested_reviewer(self, login: str) -> bool:
        return login in self.requested_reviewers

    def has_label(self, label: str) -> bool:
        wanted = label.lower()
        return any(existing.lower() == wanted for existing in self.labels)

    def has_recent_activity(self, days: int = 7, reference: datetime | None = None) -> bool:
        return self.get_days_since_update(reference) <= days

    def is_stale(self, days: int = 30, reference: datetime | None = None) -> bool:
        return self.is_open() and self.get_days_since_update(reference) > days

    def get_summary(self) -> str:
        status = "merged" if self.merged else self.state
        if self.draft and self.is_open():
            status = "draft"
        return (f"#{self.number}: {self.title} ({status}) "
                f"{self.head_branch} -> {self.base_branch}, "
                f"+{self.additions}/-{self.deletions}")

    def to_data(self) -> dict[str, str]:
        return {
            PullRequestKeys.ADDITIONS.value: format_value(self.additions),
            PullRequestKeys.ASSIGNEES.value: format_value(self.assignees),
            PullRequestKeys.BASE_BRANCH.value: self.base_branch,
            PullRequestKeys.BODY.value: self.body,
            PullRequestKeys.CHANGED_FILES.value: format_value(self.changed_files),
            PullRequestKeys.CLOSED_AT.value: format_value(self.closed_at),
            PullRequestKeys.COMMENTS_COUNT.value: format_value(self.comments_count),
            PullRequestKeys.COMMITS_COUNT.value: format_value(self.commits_count),
            PullRequestKeys.CREATED_AT.value: format_value(self.created_at),
            PullRequestKeys.CREATOR.value: self.creator,
            PullRequestKeys.DELETIONS.value: format_value(self.deletions),
            PullRequestKeys.DRAFT.value: format_value(self.draft),
            PullRequestKeys.HEAD_BRANCH.value: self.head_branch,
            PullRequestKeys.ID.value: self.id,
            PullRequestKeys.LABELS.value: format_value(self.labels),
            PullRequestKeys.LOCKED.value: format_value(self.locked),
            PullRequestKeys.MERGEABLE.value: format_value(self.mergeable),
            PullRequestKeys.MERGED.value: format_value(self.merged),
            PullRequestKeys.MERGED_AT.value: format_value(self.merged_at),
            PullRequestKeys.MERGED_BY.value: format_value(self.merged_by),
            PullRequestKeys.MILESTONE.value: format_value(self.milestone),
            PullRequestKeys.NUMBER.value: format_value(self.number),
            PullRequestKeys.REPOSITORY.value: self.repository,
            PullRequestKeys.REQUESTED_REVIEWERS.value: format_value(self.requested_reviewers),
            PullRequestKeys.REVIEW_COMMENTS_COUNT.value: format_value(self.review_comments_count),
            PullRequestKeys.STATE.value: self.state,
            PullRequestKeys.TITLE.value: self.title,
            PullRequestKeys.UPDATED_AT.value: format_value(self.updated_at),
            PullRequestKeys.URL.value: self.url,
        }


def _count(value) -> int:
    if isinstance(value, list):
        return len(value)
    return integer(value)
