"""GitHub REST and GraphQL calls returning normalized value objects."""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime

import requests

from activity import ActivityMetrics
from commit import Commit
from issue import Issue
from normalize import format_timestamp, parse_timestamp
from project import Project, ProjectItem
from pull_request import PullRequest
from repository import Repository

log = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
GITHUB_GRAPHQL = "https://api.github.com/graphql"

# Defaults (can be overridden via config)
DEFAULT_TIMEOUT = 30
DEFAULT_MAX_RETRIES = 3
DEFAULT_RATE_LIMIT_DELAY = 0.1
DEFAULT_MAX_WORKERS = 3
DEFAULT_PAGE_SIZE = 100

OWNER_REPOS_QUERY = """
query($owner: String!, $cursor: String, $pageSize: Int!) {
  repositoryOwner(login: $owner) {
    repositories(first: $pageSize, after: $cursor, orderBy: {field: UPDATED_AT, direction: DESC}) {
      pageInfo {
        hasNextPage
        endCursor
      }
      nodes {
        name
        isArchived
        isEmpty
      }
    }
  }
}
"""

PROJECT_FIELDS = """
id
title
url
shortDescription
readme
public
closed
createdAt
updatedAt
owner {
  __typename
  ... on Organization { login }
  ... on User { login }
}
items {
  totalCount
}
repositories(first: 50) {
  nodes {
    nameWithOwner
  }
}
"""

OWNER_PROJECTS_QUERY = """
query($owner: String!, $pageSize: Int!) {
  %s(login: $owner) {
    projectsV2(first: $pageSize, orderBy: {field: UPDATED_AT, direction: DESC}) {
      nodes {
        %s
      }
    }
  }
}
"""

PROJECT_ITEMS_QUERY = """
query($projectId: ID!, $cursor: String, $pageSize: Int!) {
  node(id: $projectId) {
    ... on ProjectV2 {
      items(first: $pageSize, after: $cursor) {
        pageInfo {
          hasNextPage
          endCursor
        }
        nodes {
          id
          type
          isArchived
          createdAt
          updatedAt
          content {
            __typename
            ... on Issue {
              id
              number
              title
              url
              state
              repository { name nameWithOwner }
              author { login }
              labels(first: 20) { nodes { name } }
              assignees(first: 10) { nodes { login } }
              milestone { title }
            }
            ... on PullRequest {
              id
              number
              title
              url
              state
              repository { name nameWithOwner }
              author { login }
              labels(first: 20) { nodes { name } }
              assignees(first: 10) { nodes { login } }
              milestone { title }
            }
            ... on DraftIssue {
              id
              title
              creator { login }
            }
          }
          fieldValues(first: 20) {
            nodes {
              __typename
              ... on ProjectV2ItemFieldTextValue { text field { ... on ProjectV2FieldCommon { name } } }
              ... on ProjectV2ItemFieldNumberValue { number field { ... on ProjectV2FieldCommon { name } } }
              ... on ProjectV2ItemFieldDateValue { date field { ... on ProjectV2FieldCommon { name } } }
              ... on ProjectV2ItemFieldSingleSelectValue { name field { ... on ProjectV2FieldCommon { name } } }
              ... on ProjectV2ItemFieldIterationValue { title field { ... on ProjectV2FieldCommon { name } } }
            }
          }
        }
      }
    }
  }
}
"""


class GraphQLError(RuntimeError):
    """The GraphQL endpoint answered with an `errors` list."""


def get_headers():
    token = os.environ.get("GITHUB_TOKEN")
    if not token:
        raise ValueError("GITHUB_TOKEN environment variable required")
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }


def api_settings(config: dict = None) -> dict:
    """Request settings from the `api` config section, with defaults."""
    api_cfg = (config or {}).get("api", {})
    return {
        "timeout": api_cfg.get("request_timeout", DEFAULT_TIMEOUT),
        "max_retries": api_cfg.get("max_retries", DEFAULT_MAX_RETRIES),
        "rate_delay": api_cfg.get("rate_limit_delay", DEFAULT_RATE_LIMIT_DELAY),
        "max_workers": api_cfg.get("max_workers", DEFAULT_MAX_WORKERS),
        "page_size": api_cfg.get("page_size", DEFAULT_PAGE_SIZE),
    }


def handle_rate_limit(response):
    """Check rate limit headers and wait if necessary. Returns True if should retry."""
    remaining = response.headers.get("X-RateLimit-Remaining")
    reset_time = response.headers.get("X-RateLimit-Reset")

    if remaining is not None and int(remaining) == 0:
        if reset_time:
            wait_seconds = int(reset_time) - int(time.time()) + 1
            if 0 < wait_seconds < 300:  # Max 5 min wait
                log.warning(f"Rate limit hit, waiting {wait_seconds}s")
                time.sleep(wait_seconds)
                return True
        log.error("Rate limit exceeded, no reset time available")
    return False


def request_with_retry(method, url, max_retries=DEFAULT_MAX_RETRIES, timeout=DEFAULT_TIMEOUT, **kwargs):
    """Make HTTP request with exponential backoff retry."""
    last_error = None
    for attempt in range(max_retries):
        try:
            if method == "get":
                resp = requests.get(url, timeout=timeout, **kwargs)
            else:
                resp = requests.post(url, timeout=timeout, **kwargs)

            if resp.status_code == 403 and handle_rate_limit(resp):
                continue

            return resp
        except requests.exceptions.Timeout as e:
            last_error = e
            log.warning(f"Request timeout (attempt {attempt + 1}/{max_retries}): {url}")
        except requests.exceptions.RequestException as e:
            last_error = e
            log.warning(f"Request error (attempt {attempt + 1}/{max_retries}): {e}")

        # Exponential backoff: 1s, 2s, 4s
        if attempt < max_retries - 1:
            delay = 2 ** attempt
            log.debug(f"Retrying in {delay}s...")
            time.sleep(delay)

    raise last_error or requests.exceptions.RequestException(f"Failed after {max_retries} retries")


def graphql(query: str, variables: dict, config: dict = None) -> dict:
    """POST a GraphQL query and return its `data` object."""
    settings = api_settings(config)
    resp = request_with_retry(
        "post",
        GITHUB_GRAPHQL,
        max_retries=settings["max_retries"],
        timeout=settings["timeout"],
        headers=get_headers(),
        json={"query": query, "variables": variables},
    )
    resp.raise_for_status()
    data = resp.json()
    if data.get("errors"):
        raise GraphQLError(f"GraphQL error: {data['errors']}")
    return data.get("data") or {}


def get_pages(url: str, params: dict, config: dict = None):
    """Yield items from a paginated REST list endpoint; a 404 yields nothing."""
    settings = api_settings(config)
    headers = get_headers()
    params = dict(params, per_page=settings["page_size"])

    page = 1
    while True:
        params["page"] = page
        resp = request_with_retry(
            "get", url, max_retries=settings["max_retries"], timeout=settings["timeout"],
            headers=headers, params=params
        )
        if resp.status_code == 404:
            log.warning(f"Not found: {url}")
            return
        resp.raise_for_status()
        items = resp.json()

        if not items:
            break
        yield from items

        if len(items) < settings["page_size"]:
            break
        page += 1
        time.sleep(settings["rate_delay"])


def fetch_repository(owner: str, repo: str, config: dict = None) -> Repository:
    settings = api_settings(config)
    resp = request_with_retry(
        "get", f"{GITHUB_API}/repos/{owner}/{repo}",
        max_retries=settings["max_retries"], timeout=settings["timeout"], headers=get_headers()
    )
    resp.raise_for_status()
    return Repository.from_rest_response(resp.json())


def fetch_repo_issues(owner: str, repo: str, since: datetime, config: dict = None) -> list[Issue]:
    """Fetch issues updated since `since`, skipping pull requests."""
    params = {
        "since": format_timestamp(since),
        "state": "all",
        "sort": "updated",
        "direction": "desc",
    }
    issues = []
    for item in get_pages(f"{GITHUB_API}/repos/{owner}/{repo}/issues", params, config):
        # PRs appear in the issues endpoint too
        if "pull_request" in item:
            continue
        issues.append(Issue.from_rest_response(item))
    return issues


def fetch_repo_prs(owner: str, repo: str, since: datetime, config: dict = None) -> list[PullRequest]:
    """Fetch PRs created since `since`."""
    params = {
        "state": "all",
        "sort": "created",
        "direction": "desc",
    }
    prs = []
    for item in get_pages(f"{GITHUB_API}/repos/{owner}/{repo}/pulls", params, config):
        created = parse_timestamp(item.get("created_at"))
        # Sorted by created desc, so everything after this is older
        if created is not None and created < since:
            break
        prs.append(PullRequest.from_rest_response(item))
    return prs


def fetch_repo_commits(owner: str, repo: str, since: datetime, config: dict = None) -> list[Commit]:
    params = {"since": format_timestamp(since)}
    return [
        Commit.from_rest_response(item)
        for item in get_pages(f"{GITHUB_API}/repos/{owner}/{repo}/commits", params, config)
    ]


def fetch_repo_activity(owner: str, repo: str, since: datetime, config: dict = None,
                        now: datetime = None) -> ActivityMetrics:
    """Fetch issues, PRs and commits for a repo and count them."""
    issues = fetch_repo_issues(owner, repo, since, config)
    prs = fetch_repo_prs(owner, repo, since, config)
    commits = fetch_repo_commits(owner, repo, since, config)
    log.debug(f"{owner}/{repo}: {len(issues)} issues, {len(prs)} PRs, {len(commits)} commits")
    return ActivityMetrics.from_repository_facts(f"{owner}/{repo}", issues, prs, commits, since, now)


def fetch_all_repos_activity(
    owner: str, repos: list[str], since: datetime, config: dict = None, now: datetime = None
) -> tuple[list[ActivityMetrics], list[str]]:
    """Fetch activity for all repos in parallel. Returns (metrics, failed repo names)."""
    max_workers = api_settings(config)["max_workers"]

    results = []
    failed_repos = []

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(fetch_repo_activity, owner, name, since, config, now): name
            for name in repos
        }

        for future in as_completed(futures):
            repo_name = futures[future]
            try:
                results.append(future.result())
                log.info(f"Fetched: {repo_name}")
            except Exception as e:
                log.error(f"Error fetching {repo_name}: {e}")
                failed_repos.append(repo_name)

    if failed_repos:
        log.warning(f"Failed to fetch {len(failed_repos)} repos: {', '.join(failed_repos)}")

    # as_completed order is arbitrary
    order = {name: i for i, name in enumerate(repos)}
    results.sort(key=lambda m: order.get(m.repository_list[0].split("/")[-1], len(order)))
    return results, failed_repos


def fetch_owner_repos(owner: str, config: dict = None) -> list[str]:
    """Names of an owner's non-archived, non-empty repos, most recently updated first."""
    settings = api_settings(config)
    repos = []
    cursor = None

    while True:
        variables = {"owner": owner, "cursor": cursor, "pageSize": settings["page_size"]}
        data = graphql(OWNER_REPOS_QUERY, variables, config)
        if not data.get("repositoryOwner"):
            raise ValueError(f"GitHub owner not found: {owner}")

        repo_data = data["repositoryOwner"]["repositories"]
        for node in repo_data["nodes"]:
            if not node["isArchived"] and not node["isEmpty"]:
                repos.append(node["name"])

        if not repo_data["pageInfo"]["hasNextPage"]:
            break
        cursor = repo_data["pageInfo"]["endCursor"]
        time.sleep(settings["rate_delay"])

    return repos


def fetch_owner_projects(owner: str, config: dict = None) -> list[Project]:
    """Projects (v2) of an organization, or of a user when no such organization exists."""
    page_size = api_settings(config)["page_size"]
    for owner_field in ("organization", "user"):
        query = OWNER_PROJECTS_QUERY % (owner_field, PROJECT_FIELDS)
        try:
            data = graphql(query, {"owner": owner, "pageSize": page_size}, config)
        except GraphQLError as e:
            log.debug(f"No {owner_field} {owner}: {e}")
            continue
        if data.get(owner_field):
            nodes = data[owner_field]["projectsV2"]["nodes"]
            return [Project.from_graphql_response(node) for node in nodes if node]
    raise ValueError(f"GitHub owner not found: {owner}")


def fetch_project_items(project_id: str, config: dict = None) -> list[ProjectItem]:
    settings = api_settings(config)
    items = []
    cursor = None

    while True:
        variables = {"projectId": project_id, "cursor": cursor, "pageSize": settings["page_size"]}
        data = graphql(PROJECT_ITEMS_QUERY, variables, config)
        node = data.get("node")
        if not node:
            raise ValueError(f"GitHub project not found: {project_id}")

        item_data = node["items"]
        items.extend(
            ProjectItem.from_graphql_response(item, project_id=project_id)
            for item in item_data["nodes"] if item
        )

        if not item_data["pageInfo"]["hasNextPage"]:
            break
        cursor = item_data["pageInfo"]["endCursor"]
        time.sleep(settings["rate_delay"])

    return items
