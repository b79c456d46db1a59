#!/usr/bin/env python3
"""Main entry point: collect GitHub facts and print them as KEY=value records."""

import argparse
import json
import logging
import sys
from datetime import datetime, time, timedelta, timezone
from pathlib import Path

import yaml

from aggregator import ResultAggregator
from collector import (
    COMMAND,
    ENTITIES,
    collect_project_items,
    collect_project_summary,
    collect_projects,
    collect_repository,
    normalize_payload,
)
from errors import OrchestratorError
from fetcher import fetch_owner_repos
from normalize import SourceKind, utc_now
from renderer import render_report

# Resolve paths relative to repo root
REPO_ROOT = Path(__file__).parent.parent
DEFAULT_CONFIG = REPO_ROOT / "config.yml"
DEFAULT_TEMPLATE = REPO_ROOT / "templates" / "report.md.j2"

log = logging.getLogger(__name__)

REQUIRED_CONFIG_KEYS = ["api", "analysis"]

API_DEFAULTS = {
    "request_timeout": 30,
    "max_retries": 3,
    "rate_limit_delay": 0.1,
    "max_workers": 3,
    "page_size": 100,
}


def setup_logging(verbose: bool = False):
    """Configure logging for all modules; stdout is reserved for the KEY=value output."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)]
    )


def load_config(config_path: Path) -> dict:
    """Load and validate config file."""
    with open(config_path) as f:
        config = yaml.safe_load(f) or {}

    # Validate required keys
    missing = [k for k in REQUIRED_CONFIG_KEYS if k not in config]
    if missing:
        raise ValueError(f"Missing required config keys: {', '.join(missing)}")

    # Set defaults for optional settings
    config["api"] = config["api"] or {}
    config["analysis"] = config["analysis"] or {}
    for key, value in API_DEFAULTS.items():
        config["api"].setdefault(key, value)
    config["analysis"].setdefault("since_days", 30)
    config.setdefault("excluded_repos", [])

    return config


def get_since(config: dict, since: str = None, days: int = None, now: datetime = None) -> datetime:
    """Start of the analysis window: an explicit date, N days back, or the configured default."""
    if since:
        return datetime.combine(datetime.strptime(since, "%Y-%m-%d").date(), time(), tzinfo=timezone.utc)
    now = now or utc_now()
    if days is None:
        days = config["analysis"]["since_days"]
    return now - timedelta(days=days)


def parse_repo_arg(value: str) -> tuple[str, str]:
    owner, sep, repo = value.partition("/")
    if not sep or not owner or not repo or "/" in repo:
        raise ValueError(f"Expected OWNER/REPO, got {value!r}")
    return owner, repo


def read_payload(path: str = None):
    if not path or path == "-":
        return json.load(sys.stdin)
    with open(path) as f:
        return json.load(f)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collect normalized GitHub facts as KEY=value records")
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG),
        help="Config file path",
    )
    parser.add_argument(
        "--report",
        help="Also write a markdown fact sheet to this path",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    summary = commands.add_parser("summary", help="Activity summary for an owner's repositories")
    summary.add_argument("owner")
    summary.add_argument("repos", nargs="*", help="Repositories (default: all non-archived)")
    window = summary.add_mutually_exclusive_group()
    window.add_argument("--since", help="Start date (YYYY-MM-DD)")
    window.add_argument("--days", type=int, help="Days back from now")

    projects = commands.add_parser("projects", help="GitHub Projects of an organization or user")
    projects.add_argument("owner")

    items = commands.add_parser("items", help="Items of one GitHub Project")
    items.add_argument("project_id", help="Project node id")

    repository = commands.add_parser("repository", help="Facts for a single repository")
    repository.add_argument("repo", help="OWNER/REPO")

    normalize = commands.add_parser("normalize", help="Normalize a raw JSON payload")
    normalize.add_argument("entity", choices=list(ENTITIES))
    normalize.add_argument("source", choices=[kind.value for kind in SourceKind])
    normalize.add_argument("file", nargs="?", default="-", help="JSON file (default: stdin)")
    normalize.add_argument("--repository", help="OWNER/REPO for payloads that lack it")
    normalize.add_argument("--project-id", help="Project id for project item payloads")

    return parser


def run(args, config: dict) -> ResultAggregator:
    """Dispatch one subcommand to the collector."""
    if args.command == "summary":
        since = get_since(config, args.since, args.days)
        repos = args.repos
        if not repos:
            log.info(f"Fetching repos for {args.owner}...")
            excluded = set(config.get("excluded_repos", []))
            repos = [r for r in fetch_owner_repos(args.owner, config) if r not in excluded]
            log.info(f"After exclusions: {len(repos)} repos")
        return collect_project_summary(args.owner, repos, since, config)

    if args.command == "projects":
        return collect_projects(args.owner, config)

    if args.command == "items":
        return collect_project_items(args.project_id, config)

    if args.command == "repository":
        owner, repo = parse_repo_arg(args.repo)
        return collect_repository(owner, repo, config)

    context = {}
    if args.repository:
        context["repository"] = args.repository
    if args.project_id:
        context["project_id"] = args.project_id
    return normalize_payload(args.entity, args.source, read_payload(args.file), **context)


def write_report(result: ResultAggregator, path: Path, title: str):
    markdown = render_report(result.get_data(), DEFAULT_TEMPLATE, title)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(markdown)
    result.add_file(str(path), "write", len(markdown.encode()))
    log.info(f"Report written to: {path}")


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = load_config(Path(args.config))
        result = run(args, config)
    except Exception as e:
        log.error(f"{args.command} failed: {e}")
        result = ResultAggregator()
        result.set_error(OrchestratorError.from_error(e, {"command": args.command}, command=COMMAND))

    if args.report and not result.has_error():
        try:
            write_report(result, Path(args.report), f"{args.command}: {' '.join(_subjects(args))}")
        except OSError as e:
            result.set_error(OrchestratorError.from_error(e, {"report": args.report}, command=COMMAND))

    print(result.serialize())
    return result.exit_code()


def _subjects(args) -> list[str]:
    names = ("owner", "repos", "repo", "project_id", "entity", "source")
    subjects = []
    for name in names:
        value = getattr(args, name, None)
        if isinstance(value, list):
            subjects.extend(value)
        elif value:
            subjects.append(value)
    return subjects


if __name__ == "__main__":
    sys.exit(main())
