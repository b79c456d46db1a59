"""Issue value object and its payload adapters."""

from dataclasses import dataclass
from datetime import datetime

from keys import IssueKeys
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

ENTITY = "issue"
DEFAULT_TITLE = "Untitled Issue"


@dataclass(frozen=True)
class Issue(SourceAdapted):
    id: str
    number: int
    title: str
    body: str
    state: str
    locked: bool
    assignees: tuple[str, ...]
    labels: tuple[str, ...]
    milestone: str | None
    creator: str
    repository: str
    url: str
    comments_count: int
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None

    @classmethod
    def from_tool_output(cls, payload, repository: str | None = None):
        """Build from `gh issue list/view --json ...` output."""
        data = require_object(payload, ENTITY, SourceKind.CLI)
        author = data.get("author") or data.get("user")
        milestone = data.get("milestone")
        if isinstance(milestone, dict):
            milestone = milestone.get("title")
        return cls(
            id=text(data.get("id")),
            number=integer(data.get("number")),
            title=text(data.get("title"), DEFAULT_TITLE),
            body=text(data.get("body")),
            state=normalize_state(data.get("state")),
            locked=flag(data.get("locked")),
            assignees=tuple(string_list(data.get("assignees"), "login")),
            labels=tuple(string_list(data.get("labels"), "name")),
            milestone=optional_text(milestone),
            creator=text(dig(author, "login"), "unknown"),
            repository=text(data.get("repository") or repository, UNKNOWN_REPOSITORY),
            url=text(data.get("url")),
            comments_count=_comment_count(data.get("comments")),
            created_at=timestamp_or_now(data.get("createdAt")),
            updated_at=timestamp_or_now(data.get("updatedAt")),
            closed_at=parse_timestamp(data.get("closedAt")),
        )

    @classmethod
    def from_rest_response(cls, payload):
        """Build from an item of GET /repos/{owner}/{repo}/issues."""
        data = require_object(payload, ENTITY, SourceKind.REST)
        require_fields(data, ["number", "title"], ENTITY, SourceKind.REST)
        return cls(
            id=text(data.get("id"), "0"),
            number=integer(data.get("number")),
            title=str(data["title"]),
            body=text(data.get("body")),
            state=normalize_state(data.get("state")),
            locked=flag(data.get("locked")),
            assignees=tuple(string_list(data.get("assignees"), "login")),
            labels=tuple(string_list(data.get("labels"), "name")),
            milestone=optional_text(dig(data, "milestone", "title")),
            creator=text(dig(data, "user", "login"), "unknown"),
            repository=repository_from(dig(data, "repository", "full_name"), data.get("repository_url")),
            url=text(data.get("html_url")),
            comments_count=integer(data.get("comments")),
            created_at=timestamp_or_now(data.get("created_at")),
            updated_at=timestamp_or_now(data.get("updated_at")),
            closed_at=parse_timestamp(data.get("closed_at")),
        )

    @classmethod
    def from_graphql_response(cls, payload, repository: str = UNKNOWN_REPOSITORY):
        """Build from a GraphQL `Issue` node; the node does not carry its repository."""
        data = require_object(payload, ENTITY, SourceKind.GRAPHQL)
        return cls(
            id=text(data.get("id")),
            number=integer(data.get("number")),
            title=text(data.get("title"), DEFAULT_TITLE),
            body=text(data.get("body")),
            state=normalize_state(data.get("state"), data.get("closed")),
            locked=flag(data.get("locked")),
            assignees=tuple(string_list(data.get("assignees"), "login")),
            labels=tuple(string_list(data.get("labels"), "name")),
            milestone=optional_text(dig(data, "milestone", "title")),
            creator=text(dig(data, "author", "login"), "unknown"),
            repository=repository_from(dig(data, "repository", "nameWithOwner") or repository),
            url=text(data.get("url")),
            comments_count=integer(data.get("comments")),
            created_at=timestamp_or_now(data.get("createdAt")),
            updated_at=timestamp_or_now(data.get("updatedAt")),
            closed_at=parse_timestamp(data.get("closedAt")),
        )

    def is_open(self) -> bool:
        return self.state == "open"

    def is_closed(self) -> bool:
        return self.state == "closed"

    def get_age_in_days(self, reference: datetime | None = None) -> int:
        return age_in_days(self.created_at, reference)

    def get_days_since_update(self, reference: datetime | None = None) -> int:
        return age_in_days(self.updated_at, reference)

    def get_days_since_closure(self, reference: datetime | None = None) -> int | None:
        return days_since(self.closed_at, reference)

    def has_recent_activity(self, days: int = 7, reference: datetime | None = None) -> bool:
        return self.get_days_since_update(reference) <= days

    def is_stale(self, days: int = 30, reference: datetime | None = None) -> bool:
        """Open and untouched for more than `days`."""
        return self.is_open() and self.get_days_since_update(reference) > days

    def has_label(self, label: str) -> bool:
        wanted = label.lower()
        return any(existing.lower() == wanted for existing in self.labels)

    def is_assigned_to(self, login: str) -> bool:
        return login in self.assignees

    def get_summary(self) -> str:
        return f"#{self.number}: {self.title} ({self.state}) by {self.creator}"

    def to_data(self) -> dict[str, str]:
        return {
            IssueKeys.ASSIGNEES.value: format_value(self.assignees),
            IssueKeys.BODY.value: self.body,
            IssueKeys.CLOSED_AT.value: format_value(self.closed_at),
            IssueKeys.COMMENTS_COUNT.value: format_value(self.comments_count),
            IssueKeys.CREATED_AT.value: format_value(self.created_at),
            IssueKeys.CREATOR.value: self.creator,
            IssueKeys.ID.value: self.id,
            IssueKeys.LABELS.value: format_value(self.labels),
            IssueKeys.LOCKED.value: format_value(self.locked),
            IssueKeys.MILESTONE.value: format_value(self.milestone),
            IssueKeys.NUMBER.value: format_value(self.number),
            IssueKeys.REPOSITORY.value: self.repository,
            IssueKeys.STATE.value: self.state,
            IssueKeys.TITLE.value: self.title,
            IssueKeys.UPDATED_AT.value: format_value(self.updated_at),
            IssueKeys.URL.value: self.url,
        }


def _comment_count(value) -> int:
    # gh returns the comments themselves, the APIs return a count
    if isinstance(value, list):
        return len(value)
    return integer(value)
