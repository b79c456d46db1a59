"""Numeric helpers for derived metrics.

All helpers return 0 instead of dividing by zero, and round half up to two
decimals unless noted.
"""

import math
from datetime import datetime, timedelta

from normalize import DAY_MS, round_half_up, safe_ratio

BIN_HOURS = {"hour": 1, "day": 24, "week": 168}


def percentage(part, whole) -> float:
    """Share of whole as a percentage with two decimals."""
    return safe_ratio(part, whole, scale=10_000, digits=0) / 100 if whole else 0


def ratio(numerator, denominator) -> float:
    return safe_ratio(numerator, denominator, scale=1, digits=2)


def average_per_day(total, days) -> float:
    return safe_ratio(total, days, scale=1, digits=2)


def mean(values: list) -> float:
    if not values:
        return 0
    return round_half_up(sum(values) / len(values), 2)


def median(values: list) -> float:
    if not values:
        return 0
    ordered = sorted(values)
    middle = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return round_half_up((ordered[middle - 1] + ordered[middle]) / 2, 2)
    return ordered[middle]


def percentiles(values: list, points: list) -> dict:
    """Linear-interpolated percentiles keyed P<point>; points outside 0-100 are skipped."""
    if not values:
        return {}
    ordered = sorted(values)
    result = {}
    for point in points:
        if point < 0 or point > 100:
            continue
        index = point / 100 * (len(ordered) - 1)
        lower = math.floor(index)
        upper = math.ceil(index)
        if lower == upper:
            result[f"P{point}"] = ordered[lower]
        else:
            weight = index - lower
            value = ordered[lower] * (1 - weight) + ordered[upper] * weight
            result[f"P{point}"] = round_half_up(value, 2)
    return result


def variance(values: list) -> float:
    """Population variance; 0 for fewer than two values."""
    if len(values) <= 1:
        return 0
    avg = mean(values)
    return round_half_up(sum((v - avg) ** 2 for v in values) / len(values), 2)


def std_deviation(values: list) -> float:
    return round_half_up(math.sqrt(variance(values)), 2)


def gini_coefficient(values: list) -> float:
    """Inequality of a distribution: 0 is perfectly even."""
    if len(values) <= 1:
        return 0
    ordered = sorted(values)
    n = len(ordered)
    avg = mean(ordered)
    if avg == 0:
        return 0
    total = sum((2 * (i + 1) - n - 1) * v for i, v in enumerate(ordered))
    return round_half_up(total / (n * n * avg), 2)


def growth_rate(current, previous) -> float:
    if previous == 0:
        return 1 if current > 0 else 0
    return round_half_up((current - previous) / previous, 2)


def days_between(start: datetime, end: datetime) -> float:
    ms = abs(end - start) // timedelta(milliseconds=1)
    return round_half_up(ms / DAY_MS, 2)


def hours_between(start: datetime, end: datetime) -> float:
    ms = abs(end - start) // timedelta(milliseconds=1)
    return round_half_up(ms / 3_600_000, 2)


def business_days_between(start: datetime, end: datetime) -> int:
    """Weekdays counted from start (inclusive) to end (exclusive)."""
    if start >= end:
        return 0
    count = 0
    current = start
    while current < end:
        if current.weekday() < 5:
            count += 1
        current += timedelta(days=1)
    return count


def find_top_n(items: list[dict], n: int, sort_by: str) -> list[dict]:
    if not items or n <= 0:
        return []

    def sort_value(item):
        try:
            return float(item.get(sort_by) or 0)
        except (TypeError, ValueError):
            return 0

    return sorted(items, key=sort_value, reverse=True)[:n]


def _bin_start(timestamp: datetime, bin_size: str) -> datetime:
    if bin_size == "hour":
        return timestamp.replace(minute=0, second=0, microsecond=0)
    start = timestamp.replace(hour=0, minute=0, second=0, microsecond=0)
    if bin_size == "week":
        # Weeks start on Sunday
        start -= timedelta(days=(timestamp.weekday() + 1) % 7)
    return start


def bin_by_time(points: list[tuple[datetime, float]], bin_size: str) -> list[dict]:
    """Sum (timestamp, value) points into hour, day or week bins.

    Each bin reports its start, end, summed count and per-hour average.
    """
    if bin_size not in BIN_HOURS:
        raise ValueError(f"Unknown bin size: {bin_size}")
    if not points:
        return []

    bins = {}
    for timestamp, value in points:
        start = _bin_start(timestamp, bin_size)
        if start not in bins:
            bins[start] = {
                "start": start,
                "end": start + timedelta(hours=BIN_HOURS[bin_size]),
                "count": 0,
                "average": 0,
            }
        bins[start]["count"] += value

    result = [bins[k] for k in sorted(bins)]
    for entry in result:
        entry["average"] = round_half_up(entry["count"] / BIN_HOURS[bin_size], 2)
    return result
