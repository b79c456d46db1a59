"""Orchestration: fetch, normalize and aggregate, one ResultAggregator per run."""

import logging
import time
from datetime import datetime

from activity import ActivityMetrics, combine_activity, rank_repositories
from aggregator import ResultAggregator
from commit import Commit
from errors import OrchestratorError
from fetcher import (
    fetch_all_repos_activity,
    fetch_owner_projects,
    fetch_project_items,
    fetch_repository,
)
from issue import Issue
from keys import CollectionKeys, DataKeys
from normalize import utc_now
from project import Project, ProjectItem
from project_facts import project_facts
from project_summary import ProjectSummary
from pull_request import PullRequest
from repository import Repository

log = logging.getLogger(__name__)

COMMAND = "generate_summary.py"

ENTITIES = {
    "repository": Repository,
    "issue": Issue,
    "pull_request": PullRequest,
    "commit": Commit,
    "project": Project,
    "project_item": ProjectItem,
    "activity": ActivityMetrics,
    "project_summary": ProjectSummary,
}

SUMMARY_PHASES = ("repository_data", "activity_analysis", "summary")


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _fail(result: ResultAggregator, error: Exception, **context) -> ResultAggregator:
    return result.set_error(OrchestratorError.from_error(error, context, command=COMMAND))


def indexed(data: dict[str, str], prefix: str, index: int) -> dict[str, str]:
    """Rename PREFIX_FIELD keys to PREFIX_{index}_FIELD so several entities can share one record."""
    head = f"{prefix}_"
    return {f"{head}{index}_{key[len(head):]}": value for key, value in data.items() if key.startswith(head)}


def collect_repository(owner: str, repo: str, config: dict) -> ResultAggregator:
    result = ResultAggregator()
    started = time.monotonic()
    try:
        repository = fetch_repository(owner, repo, config)
    except Exception as e:
        result.add_action("fetch_repository", "failed", f"{owner}/{repo}: {e}", _elapsed_ms(started))
        return _fail(result, e, owner=owner, repository=repo)

    result.add_action("fetch_repository", "success", repository.full_name, _elapsed_ms(started))
    result.add_data_bulk(repository.to_data())
    return result


def _gather_activity(owner: str, repos: list[str], since: datetime, config: dict, now: datetime = None
                     ) -> tuple[ResultAggregator, list[ActivityMetrics], ActivityMetrics | None]:
    result = ResultAggregator()
    now = now or utc_now()
    started = time.monotonic()
    metrics, failed = fetch_all_repos_activity(owner, repos, since, config, now)
    elapsed = _elapsed_ms(started)

    for m in metrics:
        result.add_action("fetch_activity", "success", ", ".join(m.repository_list), elapsed)
    for name in failed:
        result.add_action("fetch_activity", "failed", f"{owner}/{name}", elapsed)

    if repos and not metrics:
        _fail(result, RuntimeError(f"Failed to fetch activity for all {len(repos)} repositories of {owner}"),
              owner=owner)
        return result, metrics, None

    combined = combine_activity(metrics, since, now)
    ranked = [r["name"] for r in rank_repositories(metrics) if r["activity_score"] > 0]
    result.add_data_bulk(combined.to_data())
    result.add_data(CollectionKeys.RANKED_REPOSITORIES, ranked)
    if failed:
        result.add_data(CollectionKeys.FAILED_REPOSITORIES, failed)
    return result, metrics, combined


def collect_activity(owner: str, repos: list[str], since: datetime, config: dict,
                     now: datetime = None) -> ResultAggregator:
    result, _, _ = _gather_activity(owner, repos, since, config, now)
    return result


def collect_project_summary(owner: str, repos: list[str], since: datetime, config: dict,
                            now: datetime = None) -> ResultAggregator:
    """Run repository_data, activity_analysis and summary, stopping at the first failed phase.

    The summary phase carries the project summary and the cross-repository facts.
    """
    result = ResultAggregator()
    now = now or utc_now()
    repositories = []
    per_repository = []
    combined = None

    for phase in SUMMARY_PHASES:
        result.add_data(DataKeys.EXECUTION_PHASE, phase)
        log.info(f"Phase: {phase}")
        try:
            if phase == "repository_data":
                step = ResultAggregator()
                for name in repos:
                    started = time.monotonic()
                    repositories.append(fetch_repository(owner, name, config))
                    step.add_action("fetch_repository", "success", f"{owner}/{name}", _elapsed_ms(started))
                if len(repositories) == 1:
                    step.add_data_bulk(repositories[0].to_data())
            elif phase == "activity_analysis":
                step, per_repository, combined = _gather_activity(owner, repos, since, config, now)
            else:
                step = ResultAggregator()
                name = repositories[0].name if len(repositories) == 1 else owner
                summary = ProjectSummary.from_activity(name, owner, combined, repositories)
                step.add_data_bulk(summary.to_data())
                step.add_data_bulk(project_facts(per_repository, repositories, since, now))
                step.add_data(DataKeys.ANALYZED_AT, now)
                step.add_instruction("Summarize the facts in the DATA section for the user")
                step.add_instruction("Do not report values that are not present in the DATA section")
        except Exception as e:
            step = ResultAggregator()
            step.add_action(phase, "failed", str(e))
            _fail(step, e, phase=phase, owner=owner)

        result.merge(step)
        if result.has_error():
            log.error(f"Stopping at phase {phase}")
            break
    return result


def collect_projects(owner: str, config: dict) -> ResultAggregator:
    result = ResultAggregator()
    started = time.monotonic()
    try:
        projects = fetch_owner_projects(owner, config)
    except Exception as e:
        result.add_action("fetch_projects", "failed", owner, _elapsed_ms(started))
        return _fail(result, e, owner=owner)

    result.add_action("fetch_projects", "success", f"{len(projects)} projects", _elapsed_ms(started))
    for i, project in enumerate(projects):
        result.add_data_bulk(indexed(project.to_data(), "PROJECT", i))
    result.add_data(CollectionKeys.PROJECT_COUNT, len(projects))
    return result


def collect_project_items(project_id: str, config: dict) -> ResultAggregator:
    result = ResultAggregator()
    started = time.monotonic()
    try:
        items = fetch_project_items(project_id, config)
    except Exception as e:
        result.add_action("fetch_project_items", "failed", project_id, _elapsed_ms(started))
        return _fail(result, e, project_id=project_id)

    result.add_action("fetch_project_items", "success", f"{len(items)} items", _elapsed_ms(started))
    for i, item in enumerate(items):
        result.add_data_bulk(indexed(item.to_data(), "PROJECT_ITEM", i))
    result.add_data(CollectionKeys.PROJECT_ITEM_TOTAL, len(items))
    return result


def normalize_payload(entity: str, source: str, payload, **context) -> ResultAggregator:
    """Normalize one raw payload; adapter errors become the terminal error."""
    result = ResultAggregator()
    try:
        cls = ENTITIES.get(entity)
        if cls is None:
            raise ValueError(f"Unknown entity {entity!r}, expected one of: {', '.join(ENTITIES)}")
        value = cls.from_source(source, payload, **context)
    except Exception as e:
        result.add_action("normalize", "failed", f"{entity} ({source})")
        return _fail(result, e, entity=entity, source=source)

    result.add_action("normalize", "success", f"{entity} ({source})")
    result.add_data_bulk(value.to_data())
    return result
