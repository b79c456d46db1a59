"""Markdown fact sheet rendering from Jinja2 templates."""

from datetime import datetime, timezone
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

# Longest first so PROJECT_SUMMARY_* is not filed under PROJECT
NAMESPACES = [
    ("PROJECT_SUMMARY", "Project summary"),
    ("PROJECT_FACTS", "Project facts"),
    ("PROJECT_ITEM", "Project items"),
    ("REPOSITORY", "Repository"),
    ("ACTIVITY", "Activity"),
    ("PROJECT", "Projects"),
    ("ISSUE", "Issue"),
    ("COMMIT", "Commit"),
    ("PR", "Pull request"),
]
GENERAL = "General"


def group_by_namespace(data: dict[str, str]) -> dict[str, list[tuple[str, str]]]:
    """Split pairs into sections by key prefix, keeping insertion order inside each."""
    sections = {}
    for key, value in data.items():
        title, label = GENERAL, key
        for prefix, name in NAMESPACES:
            if key.startswith(prefix + "_"):
                title, label = name, key[len(prefix) + 1:]
                break
        sections.setdefault(title, []).append((label.replace("_", " ").capitalize(), value))
    return sections


def render_report(data: dict[str, str], template_path: Path, title: str) -> str:
    """Render aggregated facts to markdown using Jinja2 template."""
    env = Environment(loader=FileSystemLoader(template_path.parent))
    template = env.get_template(template_path.name)

    return template.render(
        title=title,
        sections=group_by_namespace(data),
        generated_at=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
    )
