"""Tests for Project and ProjectItem value objects."""

import json
import sys
from datetime import datetime, timezone

import pytest

sys.path.insert(0, "scripts")

from errors import MissingFieldsError, PayloadShapeError
from project import Project, ProjectItem

UTC = timezone.utc

GRAPHQL_PROJECT = {
    "id": "PVT_1",
    "title": "Roadmap",
    "url": "https://github.com/orgs/o/projects/1",
    "owner": {"__typename": "Organization", "login": "o"},
    "createdAt": "2024-01-01T00:00:00Z",
    "updatedAt": "2024-06-01T00:00:00Z",
    "closed": False,
    "public": True,
    "items": {"totalCount": 12},
    "repositories": {"nodes": [{"nameWithOwner": "o/a"}, {"nameWithOwner": "o/b"}]},
}

GRAPHQL_ITEM = {
    "id": "PVTI_1",
    "type": "ISSUE",
    "content": {
        "__typename": "Issue",
        "id": "I_1",
        "number": 7,
        "title": "Bug",
        "url": "https://github.com/o/r/issues/7",
        "state": "OPEN",
        "repository": {"name": "r", "nameWithOwner": "o/r"},
        "labels": {"nodes": [{"name": "bug"}]},
        "assignees": {"nodes": [{"login": "u"}]},
    },
    "fieldValues": {"nodes": [
        {"__typename": "ProjectV2ItemFieldSingleSelectValue", "name": "In Progress", "field": {"name": "Status"}},
        {"__typename": "ProjectV2ItemFieldNumberValue", "number": 3.0, "field": {"name": "Estimate"}},
        {"__typename": "ProjectV2ItemFieldLabelValue", "field": {"name": "Labels"}},
    ]},
}


class TestProject:
    """Project board adapters and derived state."""

    def test_graphql_project(self):
        project = Project.from_graphql_response(GRAPHQL_PROJECT)
        assert project.owner_type == "ORGANIZATION"
        assert project.visibility == "PUBLIC"
        assert project.state == "OPEN"
        assert project.item_count == 12
        assert project.repositories == ("o/a", "o/b")
        assert project.has_repositories()

    def test_active_window(self):
        project = Project.from_graphql_response(GRAPHQL_PROJECT)
        assert project.is_active(datetime(2024, 6, 15, tzinfo=UTC))
        assert not project.is_active(datetime(2024, 8, 1, tzinfo=UTC))

    def test_closed_project_never_active(self):
        project = Project.from_graphql_response({**GRAPHQL_PROJECT, "closed": True})
        assert project.state == "CLOSED"
        assert not project.is_active(datetime(2024, 6, 2, tzinfo=UTC))

    def test_graphql_requires_url(self):
        payload = {k: v for k, v in GRAPHQL_PROJECT.items() if k != "url"}
        with pytest.raises(MissingFieldsError) as exc:
            Project.from_graphql_response(payload)
        assert exc.value.fields == ["url"]

    @pytest.mark.parametrize("field", ["createdAt", "updatedAt"])
    def test_graphql_rejects_unparseable_timestamp(self, field):
        with pytest.raises(MissingFieldsError, match="invalid timestamp fields") as exc:
            Project.from_graphql_response({**GRAPHQL_PROJECT, field: "garbage"})
        assert exc.value.fields == [field]

    def test_rest_rejects_unparseable_timestamps(self):
        with pytest.raises(MissingFieldsError, match="project REST response") as exc:
            Project.from_rest_response({
                "id": 1,
                "title": "T",
                "owner": {"login": "u"},
                "created_at": "yesterday",
                "updated_at": 12,
            })
        assert exc.value.fields == ["created_at", "updated_at"]

    def test_rest_project(self):
        project = Project.from_rest_response({
            "id": 1,
            "node_id": "PVT_x",
            "title": "T",
            "owner": {"login": "u", "type": "User"},
            "created_at": "2024-01-01T00:00:00Z",
            "updated_at": "2024-01-02T00:00:00Z",
            "closed_at": "2024-01-02T00:00:00Z",
            "public": False,
        })
        assert project.id == "PVT_x"
        assert project.state == "CLOSED"
        assert project.visibility == "PRIVATE"
        assert project.owner_type == "USER"

    def test_cli_project(self):
        project = Project.from_tool_output({
            "id": "PVT_2",
            "title": "Board",
            "owner": {"login": "o", "type": "Organization"},
            "items": {"totalCount": 3},
            "closed": False,
            "public": True,
        })
        assert project.owner_type == "ORGANIZATION"
        assert project.item_count == 3
        assert project.get_summary() == "Board (o, open): 3 items across 0 repositories"

    def test_null_payload(self):
        with pytest.raises(PayloadShapeError, match="project CLI response"):
            Project.from_tool_output(None)

    def test_data_pairs(self):
        data = Project.from_graphql_response(GRAPHQL_PROJECT).to_data()
        assert len(data) == 15
        assert data["PROJECT_REPOSITORIES"] == "o/a, o/b"
        assert data["PROJECT_REPOSITORY_COUNT"] == "2"
        assert data["PROJECT_README"] == ""


class TestProjectItem:
    """Project item adapters, field values and content flattening."""

    def test_graphql_item(self):
        item = ProjectItem.from_graphql_response(GRAPHQL_ITEM, project_id="PVT_1")
        assert item.is_issue()
        assert item.project_id == "PVT_1"
        assert item.status == "In Progress"
        assert item.content_state == "open"
        assert item.repository_name == "r"
        assert item.content_repository == "o/r"
        assert item.number == 7
        assert item.has_label("BUG")
        assert item.is_assigned_to("u")
        assert dict(item.field_values) == {"Estimate": "3", "Status": "In Progress"}

    def test_field_values_serialized_sorted(self):
        data = ProjectItem.from_graphql_response(GRAPHQL_ITEM, project_id="PVT_1").to_data()
        assert json.loads(data["PROJECT_ITEM_FIELD_VALUES"]) == {"Estimate": "3", "Status": "In Progress"}
        assert data["PROJECT_ITEM_FIELD_VALUES"].index("Estimate") < data["PROJECT_ITEM_FIELD_VALUES"].index("Status")
        assert len(data) == 20

    def test_type_from_content_typename(self):
        item = ProjectItem.from_graphql_response({"id": "x", "content": {"__typename": "PullRequest", "title": "t"}})
        assert item.is_pull_request()
        assert item.content_type == "PullRequest"

    def test_no_content_is_draft(self):
        item = ProjectItem.from_graphql_response({"id": "x"})
        assert item.is_draft()
        assert item.content_title == "Untitled"
        assert item.content_type is None
        assert item.to_data()["PROJECT_ITEM_CONTENT_TYPE"] == ""
        assert item.get_summary() == "DRAFT_ISSUE: Untitled"

    def test_missing_id(self):
        with pytest.raises(MissingFieldsError, match="project item GraphQL response"):
            ProjectItem.from_graphql_response({"content": {}})

    def test_rest_item(self):
        item = ProjectItem.from_rest_response({
            "id": 5,
            "node_id": "PVTI_5",
            "content_type": "PullRequest",
            "content": {
                "number": 2,
                "title": "Fix",
                "html_url": "https://github.com/o/r/pull/2",
                "state": "closed",
                "user": {"login": "u"},
                "repository": {"full_name": "o/r", "name": "r"},
            },
            "fields": [
                {"name": "Status", "value": {"name": "Done"}},
                {"name": "Notes", "value": None},
            ],
            "archived_at": None,
        }, project_id="PVT_1")
        assert item.id == "PVTI_5"
        assert item.is_pull_request()
        assert item.status == "Done"
        assert item.creator == "u"
        assert not item.is_archived
        assert dict(item.field_values) == {"Status": "Done"}

    def test_cli_item(self):
        item = ProjectItem.from_tool_output({
            "id": "PVTI_9",
            "title": "Draft idea",
            "status": "Todo",
            "labels": ["a"],
            "content": {"type": "DraftIssue", "title": "Draft idea"},
        })
        assert item.is_draft()
        assert item.status == "Todo"
        assert item.labels == ("a",)
        assert item.get_summary() == "DraftIssue: Draft idea [Todo]"

    def test_create_draft_issue(self):
        item = ProjectItem.create_draft_issue("PVTI_d", "PVT_1", "Idea", {"Status": "Todo"})
        assert item.is_draft()
        assert item.content_type == "DraftIssue"
        assert item.status == "Todo"
        data = item.to_data()
        assert data["PROJECT_ITEM_NUMBER"] == ""
        assert data["PROJECT_ITEM_CONTENT_TITLE"] == "Idea"

    def test_summary_with_reference(self):
        item = ProjectItem.from_graphql_response(GRAPHQL_ITEM)
        assert item.get_summary() == "Issue o/r#7: Bug [In Progress]"
