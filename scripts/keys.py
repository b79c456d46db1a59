"""Key registry for the KEY=value output protocol.

Every key written to a ResultAggregator is upper snake case. Generic keys live
in DataKeys; each value object owns its own namespaced enum.
"""

import re
from enum import Enum

KEY_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]*$")


def is_valid_key(key) -> bool:
    if isinstance(key, Enum):
        key = key.value
    return isinstance(key, str) and bool(KEY_PATTERN.match(key))


class DataKeys(str, Enum):
    """Cross-cutting keys not tied to one entity."""

    ANALYZED_AT = "ANALYZED_AT"
    COUNT = "COUNT"
    CREATED_AT = "CREATED_AT"
    DATE = "DATE"
    DESCRIPTION = "DESCRIPTION"
    ERROR_CONTEXT = "ERROR_CONTEXT"
    ERROR_MESSAGE = "ERROR_MESSAGE"
    ERROR_RECOVERY = "ERROR_RECOVERY"
    ERROR_TYPE = "ERROR_TYPE"
    EXECUTION_PHASE = "EXECUTION_PHASE"
    ID = "ID"
    LANGUAGE = "LANGUAGE"
    MESSAGE = "MESSAGE"
    MODE = "MODE"
    NAME = "NAME"
    OWNER = "OWNER"
    STATUS = "STATUS"
    TOTAL = "TOTAL"
    TYPE = "TYPE"
    UPDATED_AT = "UPDATED_AT"
    URL = "URL"
    VALID = "VALID"
    VERSION = "VERSION"


class RepositoryKeys(str, Enum):
    CREATED_AT = "REPOSITORY_CREATED_AT"
    DEFAULT_BRANCH = "REPOSITORY_DEFAULT_BRANCH"
    DESCRIPTION = "REPOSITORY_DESCRIPTION"
    FORKS_COUNT = "REPOSITORY_FORKS_COUNT"
    FULL_NAME = "REPOSITORY_FULL_NAME"
    HAS_ISSUES = "REPOSITORY_HAS_ISSUES"
    HAS_PROJECTS = "REPOSITORY_HAS_PROJECTS"
    HAS_WIKI = "REPOSITORY_HAS_WIKI"
    HOMEPAGE = "REPOSITORY_HOMEPAGE"
    ID = "REPOSITORY_ID"
    IS_ARCHIVED = "REPOSITORY_IS_ARCHIVED"
    IS_FORK = "REPOSITORY_IS_FORK"
    IS_PRIVATE = "REPOSITORY_IS_PRIVATE"
    LANGUAGE = "REPOSITORY_LANGUAGE"
    LANGUAGES = "REPOSITORY_LANGUAGES"
    LICENSE = "REPOSITORY_LICENSE"
    NAME = "REPOSITORY_NAME"
    OPEN_ISSUES_COUNT = "REPOSITORY_OPEN_ISSUES_COUNT"
    OWNER = "REPOSITORY_OWNER"
    OWNER_TYPE = "REPOSITORY_OWNER_TYPE"
    PUSHED_AT = "REPOSITORY_PUSHED_AT"
    SIZE = "REPOSITORY_SIZE"
    STARGAZERS_COUNT = "REPOSITORY_STARGAZERS_COUNT"
    TOPICS = "REPOSITORY_TOPICS"
    UPDATED_AT = "REPOSITORY_UPDATED_AT"
    URL = "REPOSITORY_URL"
    VISIBILITY = "REPOSITORY_VISIBILITY"
    WATCHERS_COUNT = "REPOSITORY_WATCHERS_COUNT"


class IssueKeys(str, Enum):
    ASSIGNEES = "ISSUE_ASSIGNEES"
    BODY = "ISSUE_BODY"
    CLOSED_AT = "ISSUE_CLOSED_AT"
    COMMENTS_COUNT = "ISSUE_COMMENTS_COUNT"
    CREATED_AT = "ISSUE_CREATED_AT"
    CREATOR = "ISSUE_CREATOR"
    ID = "ISSUE_ID"
    LABELS = "ISSUE_LABELS"
    LOCKED = "ISSUE_LOCKED"
    MILESTONE = "ISSUE_MILESTONE"
    NUMBER = "ISSUE_NUMBER"
    REPOSITORY = "ISSUE_REPOSITORY"
    STATE = "ISSUE_STATE"
    TITLE = "ISSUE_TITLE"
    UPDATED_AT = "ISSUE_UPDATED_AT"
    URL = "ISSUE_URL"


class PullRequestKeys(str, Enum):
    ADDITIONS = "PR_ADDITIONS"
    ASSIGNEES = "PR_ASSIGNEES"
    BASE_BRANCH = "PR_BASE_BRANCH"
    BODY = "PR_BODY"
    CHANGED_FILES = "PR_CHANGED_FILES"
    CLOSED_AT = "PR_CLOSED_AT"
    COMMENTS_COUNT = "PR_COMMENTS_COUNT"
    COMMITS_COUNT = "PR_COMMITS_COUNT"
    CREATED_AT = "PR_CREATED_AT"
    CREATOR = "PR_CREATOR"
    DELETIONS = "PR_DELETIONS"
    DRAFT = "PR_DRAFT"
    HEAD_BRANCH = "PR_HEAD_BRANCH"
    ID = "PR_ID"
    LABELS = "PR_LABELS"
    LOCKED = "PR_LOCKED"
    MERGEABLE = "PR_MERGEABLE"
    MERGED = "PR_MERGED"
    MERGED_AT = "PR_MERGED_AT"
    MERGED_BY = "PR_MERGED_BY"
    MILESTONE = "PR_MILESTONE"
    NUMBER = "PR_NUMBER"
    REPOSITORY = "PR_REPOSITORY"
    REQUESTED_REVIEWERS = "PR_REQUESTED_REVIEWERS"
    REVIEW_COMMENTS_COUNT = "PR_REVIEW_COMMENTS_COUNT"
    STATE = "PR_STATE"
    TITLE = "PR_TITLE"
    UPDATED_AT = "PR_UPDATED_AT"
    URL = "PR_URL"


class CommitKeys(str, Enum):
    ADDITIONS = "COMMIT_ADDITIONS"
    AUTHOR_DATE = "COMMIT_AUTHOR_DATE"
    AUTHOR_EMAIL = "COMMIT_AUTHOR_EMAIL"
    AUTHOR_NAME = "COMMIT_AUTHOR_NAME"
    COMMITTER_DATE = "COMMIT_COMMITTER_DATE"
    COMMITTER_EMAIL = "COMMIT_COMMITTER_EMAIL"
    COMMITTER_NAME = "COMMIT_COMMITTER_NAME"
    DELETIONS = "COMMIT_DELETIONS"
    FILES_CHANGED = "COMMIT_FILES_CHANGED"
    MESSAGE = "COMMIT_MESSAGE"
    PARENT_COUNT = "COMMIT_PARENT_COUNT"
    REPOSITORY = "COMMIT_REPOSITORY"
    SHA = "COMMIT_SHA"
    SHA_SHORT = "COMMIT_SHA_SHORT"
    TOTAL_CHANGES = "COMMIT_TOTAL_CHANGES"
    URL = "COMMIT_URL"
    VERIFICATION_REASON = "COMMIT_VERIFICATION_REASON"
    VERIFICATION_SIGNATURE = "COMMIT_VERIFICATION_SIGNATURE"
    VERIFICATION_VERIFIED = "COMMIT_VERIFICATION_VERIFIED"


class ProjectKeys(str, Enum):
    CREATED_AT = "PROJECT_CREATED_AT"
    DESCRIPTION = "PROJECT_DESCRIPTION"
    ID = "PROJECT_ID"
    ITEM_COUNT = "PROJECT_ITEM_COUNT"
    OWNER = "PROJECT_OWNER"
    OWNER_TYPE = "PROJECT_OWNER_TYPE"
    README = "PROJECT_README"
    REPOSITORIES = "PROJECT_REPOSITORIES"
    REPOSITORY_COUNT = "PROJECT_REPOSITORY_COUNT"
    SHORT_DESCRIPTION = "PROJECT_SHORT_DESCRIPTION"
    STATE = "PROJECT_STATE"
    TITLE = "PROJECT_TITLE"
    UPDATED_AT = "PROJECT_UPDATED_AT"
    URL = "PROJECT_URL"
    VISIBILITY = "PROJECT_VISIBILITY"


class ProjectItemKeys(str, Enum):
    ARCHIVED = "PROJECT_ITEM_ARCHIVED"
    ASSIGNEES = "PROJECT_ITEM_ASSIGNEES"
    CONTENT_ID = "PROJECT_ITEM_CONTENT_ID"
    CONTENT_REPOSITORY = "PROJECT_ITEM_CONTENT_REPOSITORY"
    CONTENT_STATE = "PROJECT_ITEM_CONTENT_STATE"
    CONTENT_TITLE = "PROJECT_ITEM_CONTENT_TITLE"
    CONTENT_TYPE = "PROJECT_ITEM_CONTENT_TYPE"
    CONTENT_URL = "PROJECT_ITEM_CONTENT_URL"
    CREATED_AT = "PROJECT_ITEM_CREATED_AT"
    CREATOR = "PROJECT_ITEM_CREATOR"
    FIELD_VALUES = "PROJECT_ITEM_FIELD_VALUES"
    ID = "PROJECT_ITEM_ID"
    LABELS = "PROJECT_ITEM_LABELS"
    MILESTONE = "PROJECT_ITEM_MILESTONE"
    NUMBER = "PROJECT_ITEM_NUMBER"
    PROJECT_ID = "PROJECT_ITEM_PROJECT_ID"
    REPOSITORY_NAME = "PROJECT_ITEM_REPOSITORY_NAME"
    STATUS = "PROJECT_ITEM_STATUS"
    TYPE = "PROJECT_ITEM_TYPE"
    UPDATED_AT = "PROJECT_ITEM_UPDATED_AT"


class ActivityKeys(str, Enum):
    ACTIVE_CONTRIBUTORS = "ACTIVITY_ACTIVE_CONTRIBUTORS"
    ANALYSIS_PERIOD_DAYS = "ACTIVITY_ANALYSIS_PERIOD_DAYS"
    ANALYSIS_PERIOD_END = "ACTIVITY_ANALYSIS_PERIOD_END"
    ANALYSIS_PERIOD_START = "ACTIVITY_ANALYSIS_PERIOD_START"
    AVG_COMMITS_PER_DAY = "ACTIVITY_AVG_COMMITS_PER_DAY"
    AVG_ISSUES_PER_DAY = "ACTIVITY_AVG_ISSUES_PER_DAY"
    AVG_PRS_PER_DAY = "ACTIVITY_AVG_PRS_PER_DAY"
    CLOSED_ISSUES_COUNT = "ACTIVITY_CLOSED_ISSUES_COUNT"
    COMMITS_COUNT = "ACTIVITY_COMMITS_COUNT"
    CONTRIBUTORS_COUNT = "ACTIVITY_CONTRIBUTORS_COUNT"
    MERGED_PRS_COUNT = "ACTIVITY_MERGED_PRS_COUNT"
    MOST_ACTIVE_CONTRIBUTOR = "ACTIVITY_MOST_ACTIVE_CONTRIBUTOR"
    MOST_ACTIVE_REPOSITORY = "ACTIVITY_MOST_ACTIVE_REPOSITORY"
    OPEN_ISSUES_COUNT = "ACTIVITY_OPEN_ISSUES_COUNT"
    OPEN_PRS_COUNT = "ACTIVITY_OPEN_PRS_COUNT"
    RELEASE_COUNT = "ACTIVITY_RELEASE_COUNT"
    REPOSITORIES_COUNT = "ACTIVITY_REPOSITORIES_COUNT"
    REPOSITORY_LIST = "ACTIVITY_REPOSITORY_LIST"
    TOTAL_ADDITIONS = "ACTIVITY_TOTAL_ADDITIONS"
    TOTAL_DELETIONS = "ACTIVITY_TOTAL_DELETIONS"
    TOTAL_FILES_CHANGED = "ACTIVITY_TOTAL_FILES_CHANGED"
    TOTAL_ISSUES_COUNT = "ACTIVITY_TOTAL_ISSUES_COUNT"
    TOTAL_PRS_COUNT = "ACTIVITY_TOTAL_PRS_COUNT"


class ProjectSummaryKeys(str, Enum):
    ACTIVE_CONTRIBUTORS = "PROJECT_SUMMARY_ACTIVE_CONTRIBUTORS"
    ACTIVE_REPOSITORIES = "PROJECT_SUMMARY_ACTIVE_REPOSITORIES"
    AVERAGE_ISSUE_AGE_DAYS = "PROJECT_SUMMARY_AVERAGE_ISSUE_AGE_DAYS"
    AVERAGE_PR_AGE_DAYS = "PROJECT_SUMMARY_AVERAGE_PR_AGE_DAYS"
    COMMITS_LAST_30_DAYS = "PROJECT_SUMMARY_COMMITS_LAST_30_DAYS"
    CREATED_AT = "PROJECT_SUMMARY_CREATED_AT"
    DESCRIPTION = "PROJECT_SUMMARY_DESCRIPTION"
    HEALTH_SCORE = "PROJECT_SUMMARY_HEALTH_SCORE"
    ISSUES_CLOSED_RATIO = "PROJECT_SUMMARY_ISSUES_CLOSED_RATIO"
    ISSUES_OPEN_COUNT = "PROJECT_SUMMARY_ISSUES_OPEN_COUNT"
    ISSUES_TOTAL_COUNT = "PROJECT_SUMMARY_ISSUES_TOTAL_COUNT"
    LANGUAGES = "PROJECT_SUMMARY_LANGUAGES"
    NAME = "PROJECT_SUMMARY_NAME"
    OWNER = "PROJECT_SUMMARY_OWNER"
    PRIMARY_LANGUAGE = "PROJECT_SUMMARY_PRIMARY_LANGUAGE"
    PRS_MERGED_RATIO = "PROJECT_SUMMARY_PRS_MERGED_RATIO"
    PRS_OPEN_COUNT = "PROJECT_SUMMARY_PRS_OPEN_COUNT"
    PRS_TOTAL_COUNT = "PROJECT_SUMMARY_PRS_TOTAL_COUNT"
    RECENT_ACTIVITY_LEVEL = "PROJECT_SUMMARY_RECENT_ACTIVITY_LEVEL"
    REPOSITORY_COUNT = "PROJECT_SUMMARY_REPOSITORY_COUNT"
    STARS_TOTAL = "PROJECT_SUMMARY_STARS_TOTAL"
    TOTAL_COMMITS = "PROJECT_SUMMARY_TOTAL_COMMITS"
    TOTAL_CONTRIBUTORS = "PROJECT_SUMMARY_TOTAL_CONTRIBUTORS"
    UPDATED_AT = "PROJECT_SUMMARY_UPDATED_AT"
    URL = "PROJECT_SUMMARY_URL"


class ProjectFactsKeys(str, Enum):
    """Cross-repository facts computed over a summary run."""

    ACTIVE_REPOSITORIES = "PROJECT_FACTS_ACTIVE_REPOSITORIES"
    ACTIVITY_DENSITY_P25 = "PROJECT_FACTS_ACTIVITY_DENSITY_P25"
    ACTIVITY_DENSITY_P50 = "PROJECT_FACTS_ACTIVITY_DENSITY_P50"
    ACTIVITY_DENSITY_P75 = "PROJECT_FACTS_ACTIVITY_DENSITY_P75"
    ACTIVITY_DENSITY_P90 = "PROJECT_FACTS_ACTIVITY_DENSITY_P90"
    ACTIVITY_DENSITY_STD_DEVIATION = "PROJECT_FACTS_ACTIVITY_DENSITY_STD_DEVIATION"
    ACTIVITY_DENSITY_VARIANCE = "PROJECT_FACTS_ACTIVITY_DENSITY_VARIANCE"
    ACTIVITY_DISTRIBUTION_GINI = "PROJECT_FACTS_ACTIVITY_DISTRIBUTION_GINI"
    ANALYSIS_BUSINESS_DAYS = "PROJECT_FACTS_ANALYSIS_BUSINESS_DAYS"
    ANALYSIS_DAYS = "PROJECT_FACTS_ANALYSIS_DAYS"
    ANALYSIS_HOURS = "PROJECT_FACTS_ANALYSIS_HOURS"
    AVERAGE_COMMITS_PER_REPO = "PROJECT_FACTS_AVERAGE_COMMITS_PER_REPO"
    AVERAGE_ISSUES_PER_REPO = "PROJECT_FACTS_AVERAGE_ISSUES_PER_REPO"
    AVERAGE_PRS_PER_REPO = "PROJECT_FACTS_AVERAGE_PRS_PER_REPO"
    AVERAGE_STARS_PER_REPO = "PROJECT_FACTS_AVERAGE_STARS_PER_REPO"
    COMMIT_DISTRIBUTION_GINI = "PROJECT_FACTS_COMMIT_DISTRIBUTION_GINI"
    COMMIT_VELOCITY_TREND = "PROJECT_FACTS_COMMIT_VELOCITY_TREND"
    COMMIT_VELOCITY_VARIANCE = "PROJECT_FACTS_COMMIT_VELOCITY_VARIANCE"
    COMMITS_TO_ISSUES_RATIO = "PROJECT_FACTS_COMMITS_TO_ISSUES_RATIO"
    COMMITS_TO_PRS_RATIO = "PROJECT_FACTS_COMMITS_TO_PRS_RATIO"
    ISSUES_TO_PRS_RATIO = "PROJECT_FACTS_ISSUES_TO_PRS_RATIO"
    MEAN_ACTIVITY_DENSITY = "PROJECT_FACTS_MEAN_ACTIVITY_DENSITY"
    MEAN_COMMIT_VELOCITY = "PROJECT_FACTS_MEAN_COMMIT_VELOCITY"
    MEAN_COMMITS_PER_CONTRIBUTOR = "PROJECT_FACTS_MEAN_COMMITS_PER_CONTRIBUTOR"
    MEDIAN_ACTIVITY_DENSITY = "PROJECT_FACTS_MEDIAN_ACTIVITY_DENSITY"
    MEDIAN_COMMIT_VELOCITY = "PROJECT_FACTS_MEDIAN_COMMIT_VELOCITY"
    MEDIAN_COMMITS_PER_CONTRIBUTOR = "PROJECT_FACTS_MEDIAN_COMMITS_PER_CONTRIBUTOR"
    REPOSITORIES_ANALYZED = "PROJECT_FACTS_REPOSITORIES_ANALYZED"
    STATUS = "PROJECT_FACTS_STATUS"
    TOP_CONTRIBUTOR_COMMIT_COUNT = "PROJECT_FACTS_TOP_CONTRIBUTOR_COMMIT_COUNT"
    TOP_CONTRIBUTOR_COMMIT_PERCENTAGE = "PROJECT_FACTS_TOP_CONTRIBUTOR_COMMIT_PERCENTAGE"
    TOP_CONTRIBUTOR_LOGIN = "PROJECT_FACTS_TOP_CONTRIBUTOR_LOGIN"
    TOTAL_FORKS = "PROJECT_FACTS_TOTAL_FORKS"
    TOTAL_STARS = "PROJECT_FACTS_TOTAL_STARS"
    TOTAL_WATCHERS = "PROJECT_FACTS_TOTAL_WATCHERS"


class CollectionKeys(str, Enum):
    """Keys describing a run over several entities rather than one of them."""

    FAILED_REPOSITORIES = "ACTIVITY_FAILED_REPOSITORIES"
    PROJECT_COUNT = "PROJECT_COUNT"
    PROJECT_ITEM_TOTAL = "PROJECT_ITEM_TOTAL"
    RANKED_REPOSITORIES = "ACTIVITY_RANKED_REPOSITORIES"


REGISTRY = (
    DataKeys,
    RepositoryKeys,
    IssueKeys,
    PullRequestKeys,
    CommitKeys,
    ProjectKeys,
    ProjectItemKeys,
    ActivityKeys,
    ProjectSummaryKeys,
    ProjectFactsKeys,
    CollectionKeys,
)


def registered_keys() -> set[str]:
    return {member.value for group in REGISTRY for member in group}
