"""Commit value object and its payload adapters."""

from dataclasses import dataclass
from datetime import datetime

from keys import CommitKeys
from normalize import (
    UNKNOWN_REPOSITORY,
    SourceAdapted,
    SourceKind,
    age_in_days,
    dig,
    flag,
    format_value,
    integer,
    is_missing,
    optional_text,
    parse_timestamp,
    repository_from,
    require_fields,
    require_object,
    text,
    utc_now,
)

ENTITY = "commit"
DEFAULT_EMAIL = "unknown@example.com"
DEFAULT_MESSAGE = "No commit message"
SUMMARY_WIDTH = 50


def _people(author: dict, committer: dict, author_date=None, committer_date=None) -> dict:
    """Resolve author and committer, the committer falling back to the author."""
    author = author or {}
    committer = committer or {}
    authored = parse_timestamp(author_date or author.get("date")) or utc_now()
    committed = parse_timestamp(committer_date or committer.get("date")) or authored
    author_name = text(author.get("name"), "unknown")
    author_email = text(author.get("email"), DEFAULT_EMAIL)
    return {
        "author_name": author_name,
        "author_email": author_email,
        "author_date": authored,
        "committer_name": text(committer.get("name"), author_name),
        "committer_email": text(committer.get("email"), author_email),
        "committer_date": committed,
    }


def _verification(data) -> dict:
    data = data or {}
    return {
        "verified": flag(data.get("verified") or data.get("isValid")),
        "verification_reason": text(data.get("reason") or data.get("state"), "unsigned").lower(),
        "verification_signature": optional_text(data.get("signature")),
    }


@dataclass(frozen=True)
class Commit(SourceAdapted):
    sha: str
    short_sha: str
    message: str
    repository: str
    url: str
    author_name: str
    author_email: str
    author_date: datetime
    committer_name: str
    committer_email: str
    committer_date: datetime
    additions: int
    deletions: int
    files_changed: int
    parent_count: int
    verified: bool
    verification_reason: str
    verification_signature: str | None

    @classmethod
    def from_tool_output(cls, payload, repository: str | None = None):
        """Build from `gh pr view --json commits` or `gh api` commit entries."""
        data = require_object(payload, ENTITY, SourceKind.CLI)
        require_fields(data, ["oid"], ENTITY, SourceKind.CLI)
        sha = str(data["oid"])

        # gh lists authors as a list; take the first
        author = data.get("author")
        if isinstance(data.get("authors"), list) and data["authors"]:
            author = data["authors"][0]
        message = data.get("message")
        if is_missing(message) and data.get("messageHeadline"):
            message = _join_message(data.get("messageHeadline"), data.get("messageBody"))
        parents = data.get("parents")

        return cls(
            sha=sha,
            short_sha=sha[:7],
            message=text(message, DEFAULT_MESSAGE),
            repository=text(data.get("repository") or repository, UNKNOWN_REPOSITORY),
            url=text(data.get("url")),
            **_people(author, data.get("committer"), data.get("authoredDate"), data.get("committedDate")),
            additions=integer(data.get("additions")),
            deletions=integer(data.get("deletions")),
            files_changed=integer(data.get("files") or data.get("changedFiles")),
            parent_count=len(parents) if isinstance(parents, list) else integer(parents),
            **_verification(data.get("verification") or data.get("signature")),
        )

    @classmethod
    def from_rest_response(cls, payload):
        """Build from GET /repos/{owner}/{repo}/commits[/{sha}]."""
        data = require_object(payload, ENTITY, SourceKind.REST)
        require_fields(data, ["sha"], ENTITY, SourceKind.REST)
        sha = str(data["sha"])
        commit = data.get("commit") or {}
        files = data.get("files")

        return cls(
            sha=sha,
            short_sha=sha[:7],
            message=text(commit.get("message"), DEFAULT_MESSAGE),
            repository=repository_from(dig(data, "repository", "full_name"), data.get("url")),
            url=text(data.get("html_url") or data.get("url")),
            **_people(commit.get("author") or data.get("author"),
                      commit.get("committer") or data.get("committer")),
            additions=integer(dig(data, "stats", "additions")),
            deletions=integer(dig(data, "stats", "deletions")),
            files_changed=len(files) if isinstance(files, list) else integer(dig(data, "stats", "total")),
            parent_count=len(data.get("parents") or []),
            **_verification(commit.get("verification")),
        )

    @classmethod
    def from_graphql_response(cls, payload, repository: str = UNKNOWN_REPOSITORY):
        """Build from a GraphQL `Commit` node."""
        data = require_object(payload, ENTITY, SourceKind.GRAPHQL)
        require_fields(data, ["oid"], ENTITY, SourceKind.GRAPHQL)
        sha = str(data["oid"])

        message = data.get("message")
        if is_missing(message):
            message = _join_message(data.get("messageHeadline"), data.get("messageBody"))

        return cls(
            sha=sha,
            short_sha=sha[:7],
            message=text(message, DEFAULT_MESSAGE),
            repository=repository_from(dig(data, "repository", "nameWithOwner") or repository),
            url=text(data.get("url")),
            **_people(data.get("author"), data.get("committer"),
                      data.get("authoredDate"), data.get("committedDate")),
            additions=integer(data.get("additions")),
            deletions=integer(data.get("deletions")),
            files_changed=integer(data.get("changedFilesIfAvailable", data.get("changedFiles"))),
            parent_count=integer(data.get("parents")),
            **_verification(data.get("signature")),
        )

    def get_age_in_days(self, reference: datetime | None = None) -> int:
        return age_in_days(self.author_date, reference)

    def get_total_changes(self) -> int:
        return self.additions + self.deletions

    def get_net_changes(self) -> int:
        return self.additions - self.deletions

    def get_first_line(self) -> str:
        return self.message.split("\n", 1)[0]

    def is_merge_commit(self) -> bool:
        return self.parent_count > 1

    def is_verified(self) -> bool:
        return self.verified

    def get_summary(self) -> str:
        first_line = self.get_first_line()
        if len(first_line) > SUMMARY_WIDTH:
            first_line = first_line[:SUMMARY_WIDTH - 3] + "..."
        return f"{self.short_sha} {first_line} ({self.author_name})"

    def to_data(self) -> dict[str, str]:
        return {
            CommitKeys.ADDITIONS.value: format_value(self.additions),
            CommitKeys.AUTHOR_DATE.value: format_value(self.author_date),
            CommitKeys.AUTHOR_EMAIL.value: self.author_email,
            CommitKeys.AUTHOR_NAME.value: self.author_name,
            CommitKeys.COMMITTER_DATE.value: format_value(self.committer_date),
            CommitKeys.COMMITTER_EMAIL.value: self.committer_email,
            CommitKeys.COMMITTER_NAME.value: self.committer_name,
            CommitKeys.DELETIONS.value: format_value(self.deletions),
            CommitKeys.FILES_CHANGED.value: format_value(self.files_changed),
            CommitKeys.MESSAGE.value: self.message,
            CommitKeys.PARENT_COUNT.value: format_value(self.parent_count),
            CommitKeys.REPOSITORY.value: self.repository,
            CommitKeys.SHA.value: self.sha,
            CommitKeys.SHA_SHORT.value: self.short_sha,
            CommitKeys.TOTAL_CHANGES.value: format_value(self.get_total_changes()),
            CommitKeys.URL.value: self.url,
            CommitKeys.VERIFICATION_REASON.value: self.verification_reason,
            CommitKeys.VERIFICATION_SIGNATURE.value: format_value(self.verification_signature),
            CommitKeys.VERIFICATION_VERIFIED.value: format_value(self.verified),
        }


def _join_message(headline, body) -> str | None:
    if headline and body:
        return f"{headline}\n\n{body}".strip()
    return headline or None
