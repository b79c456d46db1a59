"""GitHub Projects (v2) value objects: the project board and its items."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType

from keys import ProjectItemKeys, ProjectKeys
from normalize import (
    SourceAdapted,
    SourceKind,
    age_in_days,
    dig,
    flag,
    format_value,
    integer,
    is_missing,
    optional_text,
    require_fields,
    require_object,
    require_timestamps,
    string_list,
    text,
    timestamp_or_now,
    utc_now,
)

PROJECT_ENTITY = "project"
ITEM_ENTITY = "project item"

ITEM_TYPES = {
    "ISSUE": "ISSUE",
    "PULL_REQUEST": "PULL_REQUEST",
    "PULLREQUEST": "PULL_REQUEST",
    "DRAFT_ISSUE": "DRAFT_ISSUE",
    "DRAFTISSUE": "DRAFT_ISSUE",
}
CONTENT_TYPES = {
    "ISSUE": "Issue",
    "PULL_REQUEST": "PullRequest",
    "DRAFT_ISSUE": "DraftIssue",
}

# GraphQL field value union: typename -> attribute holding the value
FIELD_VALUE_ATTRS = {
    "ProjectV2ItemFieldTextValue": "text",
    "ProjectV2ItemFieldNumberValue": "number",
    "ProjectV2ItemFieldDateValue": "date",
    "ProjectV2ItemFieldSingleSelectValue": "name",
    "ProjectV2ItemFieldIterationValue": "title",
}


def _owner_type(value) -> str:
    if isinstance(value, str) and value.strip().upper() == "ORGANIZATION":
        return "ORGANIZATION"
    return "USER"


def _project_state(state=None, closed=None) -> str:
    if closed is True:
        return "CLOSED"
    if isinstance(state, str) and state.strip().upper() == "CLOSED":
        return "CLOSED"
    return "OPEN"


def _project_visibility(visibility=None, public=None) -> str:
    if public is not None:
        return "PUBLIC" if flag(public) else "PRIVATE"
    if isinstance(visibility, str) and visibility.strip().upper() == "PUBLIC":
        return "PUBLIC"
    return "PRIVATE"


def _repositories(value) -> list[str]:
    names = string_list(value, "nameWithOwner")
    if not names:
        names = string_list(value, "full_name") or string_list(value, "name")
    return names


@dataclass(frozen=True)
class Project(SourceAdapted):
    id: str
    title: str
    url: str
    description: str | None
    owner: str
    owner_type: str
    visibility: str
    state: str
    created_at: datetime
    updated_at: datetime
    item_count: int
    repository_count: int
    repositories: tuple[str, ...]
    short_description: str | None
    readme: str | None

    @classmethod
    def from_tool_output(cls, payload):
        """Build from `gh project view --format json` output."""
        data = require_object(payload, PROJECT_ENTITY, SourceKind.CLI)
        owner = data.get("owner")
        if isinstance(owner, dict):
            owner_login, owner_type = owner.get("login"), owner.get("type")
        else:
            owner_login, owner_type = owner, None
        items = data.get("items")
        repositories = _repositories(data.get("repositories"))
        return cls(
            id=text(data.get("id") or data.get("number")),
            title=text(data.get("title") or data.get("name")),
            url=text(data.get("url")),
            description=optional_text(data.get("body") or data.get("description")),
            owner=text(owner_login, "unknown"),
            owner_type=_owner_type(owner_type),
            visibility=_project_visibility(data.get("visibility"), data.get("public")),
            state=_project_state(data.get("state"), data.get("closed")),
            created_at=timestamp_or_now(data.get("createdAt")),
            updated_at=timestamp_or_now(data.get("updatedAt")),
            item_count=len(items) if isinstance(items, list) else integer(items),
            repository_count=len(repositories),
            repositories=tuple(repositories),
            short_description=optional_text(data.get("shortDescription")),
            readme=optional_text(data.get("readme")),
        )

    @classmethod
    def from_rest_response(cls, payload):
        """Build from GET /orgs/{org}/projectsV2/{number} (or the users variant)."""
        data = require_object(payload, PROJECT_ENTITY, SourceKind.REST)
        require_fields(data, ["id", "title", "owner", "created_at", "updated_at"],
                       PROJECT_ENTITY, SourceKind.REST)
        stamps = require_timestamps(data, ["created_at", "updated_at"], PROJECT_ENTITY, SourceKind.REST)
        repositories = _repositories(data.get("repositories"))
        return cls(
            id=str(data.get("node_id") or data["id"]),
            title=str(data["title"]),
            url=text(data.get("html_url") or data.get("url")),
            description=optional_text(data.get("description")),
            owner=text(dig(data, "owner", "login"), "unknown"),
            owner_type=_owner_type(dig(data, "owner", "type")),
            visibility=_project_visibility(data.get("visibility"), data.get("public")),
            state=_project_state(data.get("state"), not is_missing(data.get("closed_at"))),
            created_at=stamps["created_at"],
            updated_at=stamps["updated_at"],
            item_count=integer(data.get("items_count")),
            repository_count=len(repositories),
            repositories=tuple(repositories),
            short_description=optional_text(data.get("short_description")),
            readme=optional_text(data.get("readme")),
        )

    @classmethod
    def from_graphql_response(cls, payload):
        """Build from a GraphQL `ProjectV2` node."""
        data = require_object(payload, PROJECT_ENTITY, SourceKind.GRAPHQL)
        require_fields(data, ["id", "title", "url", "owner", "createdAt", "updatedAt"],
                       PROJECT_ENTITY, SourceKind.GRAPHQL)
        stamps = require_timestamps(data, ["createdAt", "updatedAt"], PROJECT_ENTITY, SourceKind.GRAPHQL)
        owner = data["owner"]
        repositories = _repositories(data.get("repositories"))
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            url=str(data["url"]),
            description=optional_text(data.get("description")),
            owner=text(dig(owner, "login"), "unknown"),
            owner_type=_owner_type(dig(owner, "__typename") or dig(owner, "type")),
            visibility=_project_visibility(data.get("visibility"), data.get("public")),
            state=_project_state(data.get("state"), data.get("closed")),
            created_at=stamps["createdAt"],
            updated_at=stamps["updatedAt"],
            item_count=integer(data.get("items")),
            repository_count=len(repositories) or integer(dig(data, "repositories", "totalCount")),
            repositories=tuple(repositories),
            short_description=optional_text(data.get("shortDescription")),
            readme=optional_text(data.get("readme")),
        )

    def get_age_in_days(self, reference: datetime | None = None) -> int:
        return age_in_days(self.created_at, reference)

    def get_days_since_update(self, reference: datetime | None = None) -> int:
        return age_in_days(self.updated_at, reference)

    def is_active(self, reference: datetime | None = None) -> bool:
        return self.state == "OPEN" and self.get_days_since_update(reference) <= 30

    def has_repositories(self) -> bool:
        return self.repository_count > 0

    def get_summary(self) -> str:
        return (f"{self.title} ({self.owner}, {self.state.lower()}): "
                f"{self.item_count} items across {self.repository_count} repositories")

    def to_data(self) -> dict[str, str]:
        return {
            ProjectKeys.CREATED_AT.value: format_value(self.created_at),
            ProjectKeys.DESCRIPTION.value: format_value(self.description),
            ProjectKeys.ID.value: self.id,
            ProjectKeys.ITEM_COUNT.value: format_value(self.item_count),
            ProjectKeys.OWNER.value: self.owner,
            ProjectKeys.OWNER_TYPE.value: self.owner_type,
            ProjectKeys.README.value: format_value(self.readme),
            ProjectKeys.REPOSITORIES.value: format_value(self.repositories),
            ProjectKeys.REPOSITORY_COUNT.value: format_value(self.repository_count),
            ProjectKeys.SHORT_DESCRIPTION.value: format_value(self.short_description),
            ProjectKeys.STATE.value: self.state,
            ProjectKeys.TITLE.value: self.title,
            ProjectKeys.UPDATED_AT.value: format_value(self.updated_at),
            ProjectKeys.URL.value: self.url,
            ProjectKeys.VISIBILITY.value: self.visibility,
        }


def _item_type(value, content: dict | None) -> str:
    for candidate in (value, dig(content, "__typename"), dig(content, "type")):
        if isinstance(candidate, str):
            normalized = ITEM_TYPES.get(candidate.strip().upper())
            if normalized:
                return normalized
    return "DRAFT_ISSUE" if not content else "ISSUE"


def _nodes(value) -> list[dict]:
    if isinstance(value, dict):
        value = value.get("nodes")
    if not isinstance(value, list):
        return []
    return [node for node in value if isinstance(node, dict)]


def _graphql_field_values(value) -> dict[str, str]:
    result = {}
    for node in _nodes(value):
        attr = FIELD_VALUE_ATTRS.get(node.get("__typename"))
        name = dig(node, "field", "name")
        if attr is None or not name or is_missing(node.get(attr)):
            continue
        result[str(name)] = format_value(node[attr])
    return result


def _rest_field_values(value) -> dict[str, str]:
    result = {}
    if not isinstance(value, list):
        return result
    for entry in value:
        if not isinstance(entry, dict) or not entry.get("name"):
            continue
        raw = entry.get("value")
        if isinstance(raw, dict):
            raw = raw.get("name") or raw.get("title") or raw.get("text")
        if not is_missing(raw):
            result[str(entry["name"])] = format_value(raw)
    return result


@dataclass(frozen=True)
class ProjectItem(SourceAdapted):
    id: str
    project_id: str
    type: str
    content_id: str | None
    content_type: str | None
    content_title: str
    content_url: str | None
    content_state: str | None
    repository_name: str | None
    content_repository: str | None
    number: int | None
    status: str | None
    labels: tuple[str, ...]
    assignees: tuple[str, ...]
    milestone: str | None
    creator: str | None
    field_values: MappingProxyType = field(default_factory=lambda: MappingProxyType({}))
    is_archived: bool = False
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create_draft_issue(cls, id: str, project_id: str, title: str, field_values: dict | None = None):
        values = dict(field_values or {})
        return cls(
            id=id,
            project_id=project_id,
            type="DRAFT_ISSUE",
            content_id=None,
            content_type="DraftIssue",
            content_title=title,
            content_url=None,
            content_state=None,
            repository_name=None,
            content_repository=None,
            number=None,
            status=values.get("Status"),
            labels=(),
            assignees=(),
            milestone=None,
            creator=None,
            field_values=MappingProxyType(values),
        )

    @classmethod
    def _build(cls, item_id, project_id, item_type, content, field_values, **extra):
        """Shared construction once each adapter has located content and field values."""
        content = content or {}
        repository = content.get("repository")
        if isinstance(repository, dict):
            full_name = optional_text(repository.get("nameWithOwner") or repository.get("full_name"))
            short_name = optional_text(repository.get("name"))
        else:
            full_name = optional_text(repository)
            short_name = None
        if full_name and "/" in full_name:
            full_name = "/".join(full_name.rstrip("/").split("/")[-2:])
        if short_name is None and full_name:
            short_name = full_name.split("/")[-1]
        number = content.get("number")
        state = content.get("state")
        author = content.get("author") or content.get("user") or content.get("creator")
        creator = dig(author, "login") if isinstance(author, dict) else author
        milestone = content.get("milestone")
        if isinstance(milestone, dict):
            milestone = milestone.get("title")

        return cls(
            id=str(item_id),
            project_id=text(project_id),
            type=item_type,
            content_id=optional_text(content.get("node_id") or content.get("id")),
            content_type=CONTENT_TYPES[item_type] if content else None,
            content_title=text(content.get("title") or extra.get("title"), "Untitled"),
            content_url=optional_text(content.get("html_url") or content.get("url")),
            content_state=optional_text(state.lower() if isinstance(state, str) else state),
            repository_name=short_name,
            content_repository=full_name,
            number=None if is_missing(number) else integer(number),
            status=field_values.get("Status") or optional_text(extra.get("status")),
            labels=tuple(string_list(content.get("labels") or extra.get("labels"), "name")),
            assignees=tuple(string_list(content.get("assignees") or extra.get("assignees"), "login")),
            milestone=optional_text(milestone),
            creator=optional_text(creator or extra.get("creator")),
            field_values=MappingProxyType(dict(field_values)),
            is_archived=flag(extra.get("archived", False)),
            created_at=timestamp_or_now(extra.get("created_at")),
            updated_at=timestamp_or_now(extra.get("updated_at")),
        )

    @classmethod
    def from_tool_output(cls, payload, project_id: str = ""):
        """Build from one entry of `gh project item-list --format json`."""
        data = require_object(payload, ITEM_ENTITY, SourceKind.CLI)
        require_fields(data, ["id"], ITEM_ENTITY, SourceKind.CLI)
        content = data.get("content") if isinstance(data.get("content"), dict) else None
        field_values = {str(k): format_value(v) for k, v in (data.get("fields") or {}).items()
                        if not is_missing(v)}
        if not is_missing(data.get("status")):
            field_values.setdefault("Status", format_value(data["status"]))
        return cls._build(
            data["id"], project_id, _item_type(data.get("type"), content), content, field_values,
            title=data.get("title"),
            labels=data.get("labels"),
            assignees=data.get("assignees"),
            archived=data.get("archived"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    @classmethod
    def from_rest_response(cls, payload, project_id: str = ""):
        """Build from one entry of GET /orgs/{org}/projectsV2/{number}/items."""
        data = require_object(payload, ITEM_ENTITY, SourceKind.REST)
        require_fields(data, ["id"], ITEM_ENTITY, SourceKind.REST)
        content = data.get("content") if isinstance(data.get("content"), dict) else None
        return cls._build(
            data.get("node_id") or data["id"], project_id or text(data.get("project_node_id")),
            _item_type(data.get("content_type"), content), content,
            _rest_field_values(data.get("fields")),
            creator=dig(data, "creator", "login"),
            archived=data.get("archived_at") is not None,
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    @classmethod
    def from_graphql_response(cls, payload, project_id: str = ""):
        """Build from a GraphQL `ProjectV2Item` node."""
        data = require_object(payload, ITEM_ENTITY, SourceKind.GRAPHQL)
        require_fields(data, ["id"], ITEM_ENTITY, SourceKind.GRAPHQL)
        content = data.get("content") if isinstance(data.get("content"), dict) else None
        return cls._build(
            data["id"], project_id or text(dig(data, "project", "id")),
            _item_type(data.get("type"), content), content,
            _graphql_field_values(data.get("fieldValues")),
            archived=data.get("isArchived"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def is_draft(self) -> bool:
        return self.type == "DRAFT_ISSUE"

    def is_issue(self) -> bool:
        return self.type == "ISSUE"

    def is_pull_request(self) -> bool:
        return self.type == "PULL_REQUEST"

    def has_label(self, label: str) -> bool:
        wanted = label.lower()
        return any(existing.lower() == wanted for existing in self.labels)

    def is_assigned_to(self, login: str) -> bool:
        return login in self.assignees

    def get_age_in_days(self, reference: datetime | None = None) -> int:
        return age_in_days(self.created_at, reference)

    def get_days_since_update(self, reference: datetime | None = None) -> int:
        return age_in_days(self.updated_at, reference)

    def get_summary(self) -> str:
        ref = f" {self.content_repository}#{self.number}" if self.number is not None else ""
        status = f" [{self.status}]" if self.status else ""
        return f"{self.content_type or self.type}{ref}: {self.content_title}{status}"

    def to_data(self) -> dict[str, str]:
        return {
            ProjectItemKeys.ARCHIVED.value: format_value(self.is_archived),
            ProjectItemKeys.ASSIGNEES.value: format_value(self.assignees),
            ProjectItemKeys.CONTENT_ID.value: format_value(self.content_id),
            ProjectItemKeys.CONTENT_REPOSITORY.value: format_value(self.content_repository),
            ProjectItemKeys.CONTENT_STATE.value: format_value(self.content_state),
            ProjectItemKeys.CONTENT_TITLE.value: self.content_title,
            ProjectItemKeys.CONTENT_TYPE.value: format_value(self.content_type),
            ProjectItemKeys.CONTENT_URL.value: format_value(self.content_url),
            ProjectItemKeys.CREATED_AT.value: format_value(self.created_at),
            ProjectItemKeys.CREATOR.value: format_value(self.creator),
            ProjectItemKeys.FIELD_VALUES.value: json.dumps(dict(self.field_values), sort_keys=True),
            ProjectItemKeys.ID.value: self.id,
            ProjectItemKeys.LABELS.value: format_value(self.labels),
            ProjectItemKeys.MILESTONE.value: format_value(self.milestone),
            ProjectItemKeys.NUMBER.value: format_value(self.number),
            ProjectItemKeys.PROJECT_ID.value: self.project_id,
            ProjectItemKeys.REPOSITORY_NAME.value: format_value(self.repository_name),
            ProjectItemKeys.STATUS.value: format_value(self.status),
            ProjectItemKeys.TYPE.value: self.type,
            ProjectItemKeys.UPDATED_AT.value: format_value(self.updated_at),
        }
