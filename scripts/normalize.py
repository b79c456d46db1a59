"""Shared extraction helpers for the CLI, REST and GraphQL payload adapters."""

import inspect
import math
import re
from datetime import date, datetime, timedelta, timezone
from enum import Enum

from errors import MissingFieldsError, PayloadShapeError

DAY_MS = 24 * 60 * 60 * 1000
UNKNOWN_REPOSITORY = "unknown/unknown"

REPO_URL_PATTERN = re.compile(r"/repos/([^/]+/[^/]+)")


class SourceKind(str, Enum):
    """Wire shape a raw payload arrived in."""

    CLI = "cli"
    REST = "rest"
    GRAPHQL = "graphql"


SOURCE_LABELS = {
    SourceKind.CLI: "CLI",
    SourceKind.REST: "REST",
    SourceKind.GRAPHQL: "GraphQL",
}

ADAPTER_NAMES = {
    SourceKind.CLI: "from_tool_output",
    SourceKind.REST: "from_rest_response",
    SourceKind.GRAPHQL: "from_graphql_response",
}


class SourceAdapted:
    """Mixin giving a value object one entry point for all three wire shapes."""

    @classmethod
    def from_source(cls, source, payload, **context):
        kind = SourceKind(source)
        adapter = getattr(cls, ADAPTER_NAMES[kind])
        accepted = inspect.signature(adapter).parameters
        kwargs = {k: v for k, v in context.items() if k in accepted}
        return adapter(payload, **kwargs)


# Validation

def is_missing(value) -> bool:
    return value is None or value == ""


def require_object(payload, entity: str, source: SourceKind) -> dict:
    if not isinstance(payload, dict):
        raise PayloadShapeError(
            f"Invalid GitHub {entity} {SOURCE_LABELS[source]} response: "
            "response is null, undefined, or not an object"
        )
    return payload


def require_fields(payload: dict, fields: list[str], entity: str, source: SourceKind):
    """Raise listing every required field that is absent, None or empty."""
    missing = [f for f in fields if is_missing(payload.get(f))]
    if missing:
        raise MissingFieldsError(
            f"Invalid GitHub {entity} {SOURCE_LABELS[source]} response: "
            f"missing required fields: {', '.join(missing)}",
            missing,
        )


# Field extraction

def dig(payload, *path, default=None):
    """Walk nested dicts, returning default on the first missing step."""
    current = payload
    for step in path:
        if not isinstance(current, dict):
            return default
        current = current.get(step)
        if current is None:
            return default
    return current


def text(value, default: str = "") -> str:
    if is_missing(value):
        return default
    return str(value)


def optional_text(value) -> str | None:
    if is_missing(value):
        return None
    return str(value)


def integer(value, default: int = 0) -> int:
    if isinstance(value, dict):
        value = value.get("totalCount")
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def string_list(value, attr=None) -> list[str]:
    """Flatten a list of strings, objects or a GraphQL `nodes` connection.

    attr names the field to read from object items; a tuple is a nested path.
    """
    if isinstance(value, dict):
        value = value.get("nodes")
    if not isinstance(value, list):
        return []
    result = []
    for item in value:
        if isinstance(item, dict):
            if attr is None:
                continue
            path = attr if isinstance(attr, tuple) else (attr,)
            item = dig(item, *path)
        if not is_missing(item):
            result.append(str(item))
    return result


def repository_from(full_name=None, url=None) -> str:
    """Full name given directly, else parsed from an API URL, else unknown/unknown."""
    if not is_missing(full_name):
        return str(full_name)
    if isinstance(url, str):
        match = REPO_URL_PATTERN.search(url)
        if match:
            return match.group(1)
    return UNKNOWN_REPOSITORY


# Enumerated tags

def normalize_state(state=None, closed=None) -> str:
    """Collapse REST, GraphQL and CLI state spellings to open/closed."""
    if closed is True:
        return "closed"
    if isinstance(state, str) and state.strip().upper() in ("CLOSED", "MERGED"):
        return "closed"
    return "open"


def normalize_owner_type(value) -> str:
    if isinstance(value, str) and value.strip().upper() == "ORGANIZATION":
        return "Organization"
    return "User"


def normalize_visibility(value=None, is_private=None) -> str:
    if is_private is True:
        return "private"
    if isinstance(value, str) and value.strip().upper() == "PRIVATE":
        return "private"
    return "public"


# Time

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO 8601 string (or pass through a datetime) as aware UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def timestamp_or_now(value) -> datetime:
    return parse_timestamp(value) or utc_now()


def require_timestamps(payload: dict, fields: list[str], entity: str,
                       source: SourceKind) -> dict[str, datetime]:
    """Parse required timestamp fields, raising listing every one that is not a date."""
    parsed = {f: parse_timestamp(payload.get(f)) for f in fields}
    invalid = [f for f, value in parsed.items() if value is None]
    if invalid:
        raise MissingFieldsError(
            f"Invalid GitHub {entity} {SOURCE_LABELS[source]} response: "
            f"invalid timestamp fields: {', '.join(invalid)}",
            invalid,
        )
    return parsed


def format_timestamp(value: datetime | None) -> str:
    if value is None:
        return ""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def age_in_days(timestamp: datetime, reference: datetime | None = None) -> int:
    """Whole days between two instants, rounded up."""
    reference = reference or utc_now()
    ms = abs(reference - timestamp) // timedelta(milliseconds=1)
    return math.ceil(ms / DAY_MS)


def days_since(timestamp: datetime | None, reference: datetime | None = None) -> int | None:
    if timestamp is None:
        return None
    return age_in_days(timestamp, reference)


# Numbers and output values

def round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    rounded = math.floor(value * scale + 0.5) / scale
    return int(rounded) if digits == 0 else rounded


def safe_ratio(numerator, denominator, scale: int = 100, digits: int = 0):
    """round(n / d * scale) to the given digits; 0 when the denominator is 0."""
    if not denominator:
        return 0
    return round_half_up(numerator / denominator * scale, digits)


def format_value(value) -> str:
    """Render a field value the way the KEY=value protocol expects."""
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return "0"
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, (list, tuple)):
        return ", ".join(format_value(v) for v in value)
    return str(value)
