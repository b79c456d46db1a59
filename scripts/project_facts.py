"""Cross-repository facts for a summary run: totals, ratios, distributions and velocity."""

from collections import Counter
from datetime import datetime

from activity import ActivityMetrics
from keys import ProjectFactsKeys as K
from normalize import format_value, round_half_up
from repository import Repository
from stats import (
    average_per_day,
    bin_by_time,
    business_days_between,
    days_between,
    find_top_n,
    gini_coefficient,
    growth_rate,
    hours_between,
    mean,
    median,
    percentage,
    percentiles,
    ratio,
    std_deviation,
    variance,
)

DENSITY_PERCENTILES = [25, 50, 75, 90]


def activity_density(m: ActivityMetrics) -> float:
    """Commits, issues and PRs per day of the analysis window."""
    return average_per_day(m.get_total_activity(), m.analysis_period_days)


def repository_totals(metrics: list[ActivityMetrics], repositories: list[Repository]) -> dict:
    commits = sum(m.commits_count for m in metrics)
    issues = sum(m.total_issues_count for m in metrics)
    prs = sum(m.total_prs_count for m in metrics)
    stars = sum(r.stargazers_count for r in repositories)
    return {
        K.REPOSITORIES_ANALYZED: len(metrics),
        K.TOTAL_STARS: stars,
        K.TOTAL_FORKS: sum(r.forks_count for r in repositories),
        K.TOTAL_WATCHERS: sum(r.watchers_count for r in repositories),
        K.AVERAGE_COMMITS_PER_REPO: ratio(commits, len(metrics)),
        K.AVERAGE_ISSUES_PER_REPO: ratio(issues, len(metrics)),
        K.AVERAGE_PRS_PER_REPO: ratio(prs, len(metrics)),
        K.AVERAGE_STARS_PER_REPO: ratio(stars, len(repositories)),
        K.COMMITS_TO_ISSUES_RATIO: ratio(commits, issues),
        K.COMMITS_TO_PRS_RATIO: ratio(commits, prs),
        K.ISSUES_TO_PRS_RATIO: ratio(issues, prs),
    }


def density_distribution(metrics: list[ActivityMetrics]) -> dict:
    """Spread of activity density over the repositories that had any."""
    densities = [d for d in (activity_density(m) for m in metrics) if d > 0]
    points = percentiles(densities, DENSITY_PERCENTILES)
    return {
        K.ACTIVE_REPOSITORIES: len(densities),
        K.MEAN_ACTIVITY_DENSITY: mean(densities),
        K.MEDIAN_ACTIVITY_DENSITY: median(densities),
        K.ACTIVITY_DENSITY_VARIANCE: variance(densities),
        K.ACTIVITY_DENSITY_STD_DEVIATION: std_deviation(densities),
        K.ACTIVITY_DENSITY_P25: points.get("P25", 0),
        K.ACTIVITY_DENSITY_P50: points.get("P50", 0),
        K.ACTIVITY_DENSITY_P75: points.get("P75", 0),
        K.ACTIVITY_DENSITY_P90: points.get("P90", 0),
        K.ACTIVITY_DISTRIBUTION_GINI: gini_coefficient(densities),
    }


def contributor_distribution(metrics: list[ActivityMetrics]) -> dict:
    """How evenly commits are spread over their authors."""
    authors = Counter()
    for m in metrics:
        for login, count in m.commit_authors:
            authors[login] += count

    counts = list(authors.values())
    rows = [{"login": login, "commits": count} for login, count in authors.items()]
    top = find_top_n(rows, 1, "commits")
    top_login = top[0]["login"] if top else ""
    top_count = top[0]["commits"] if top else 0
    return {
        K.COMMIT_DISTRIBUTION_GINI: gini_coefficient(counts),
        K.MEAN_COMMITS_PER_CONTRIBUTOR: mean(counts),
        K.MEDIAN_COMMITS_PER_CONTRIBUTOR: median(counts),
        K.TOP_CONTRIBUTOR_LOGIN: top_login,
        K.TOP_CONTRIBUTOR_COMMIT_COUNT: top_count,
        K.TOP_CONTRIBUTOR_COMMIT_PERCENTAGE: percentage(top_count, sum(counts)),
    }


def commit_velocity(metrics: list[ActivityMetrics]) -> dict:
    """Daily commit counts, and the second half of the series against the first."""
    points = [(d, 1) for m in metrics for d in m.commit_dates]
    daily = [b["count"] for b in bin_by_time(points, "day")]
    midpoint = len(daily) // 2
    return {
        K.MEAN_COMMIT_VELOCITY: mean(daily),
        K.MEDIAN_COMMIT_VELOCITY: median(daily),
        K.COMMIT_VELOCITY_VARIANCE: variance(daily),
        K.COMMIT_VELOCITY_TREND: growth_rate(sum(daily[midpoint:]), sum(daily[:midpoint])),
    }


def project_facts(metrics: list[ActivityMetrics], repositories: list[Repository],
                  since: datetime, now: datetime) -> dict[str, str]:
    """All project facts as KEY=value pairs; every key is present even with no data."""
    if not metrics:
        status = "NO_REPOSITORIES"
    elif not any(m.get_total_activity() for m in metrics):
        status = "NO_ACTIVITY_DATA"
    else:
        status = "COMPLETED"

    facts = {
        K.STATUS: status,
        K.ANALYSIS_DAYS: round_half_up(days_between(since, now)),
        K.ANALYSIS_BUSINESS_DAYS: business_days_between(since, now),
        K.ANALYSIS_HOURS: hours_between(since, now),
    }
    facts.update(repository_totals(metrics, repositories))
    facts.update(density_distribution(metrics))
    facts.update(contributor_distribution(metrics))
    facts.update(commit_velocity(metrics))
    return {key.value: format_value(value) for key, value in facts.items()}
