"""
Records Module

Normalization and validation of activity records before they are stored.
A record is a plain dict whose keys match the columns of `Activity`.
"""
import logging
from typing import Any, Dict, Mapping

from activity_tracker.errors import ValidationError
from activity_tracker.models import ActivityKind

logger = logging.getLogger(__name__)

TEXT_FIELDS = (
    "language",
    "file",
    "project",
    "computer_id",
    "vcs_type",
    "vcs_repo",
    "vcs_branch",
)

# Column widths: `time` is BIGINT, duration/line/char are INTEGER
INT32_MAX = 2**31 - 1
INT64_MAX = 2**63 - 1

# "code" is what older editor plugins sent for edits
KIND_ALIASES = {
    "open": ActivityKind.OPEN,
    "look": ActivityKind.LOOK,
    "edit": ActivityKind.EDIT,
    "code": ActivityKind.EDIT,
}


def parse_kind(value: Any) -> ActivityKind:
    """Map a kind given as enum, number or name; anything unknown becomes OPEN."""
    if isinstance(value, ActivityKind):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in KIND_ALIASES:
            return KIND_ALIASES[text]
        try:
            value = int(text)
        except ValueError:
            logger.debug(f"Unknown activity kind '{value}', using open")
            return ActivityKind.OPEN
    try:
        return ActivityKind(value)
    except (ValueError, TypeError):
        logger.debug(f"Unknown activity kind '{value}', using open")
        return ActivityKind.OPEN


def _required_int(data: Mapping[str, Any], name: str) -> int:
    value = data.get(name)
    if value is None or isinstance(value, bool):
        raise ValidationError(f"Field '{name}' is required and must be numeric")
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"Field '{name}' must be numeric, got {value!r}")


def _optional_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


def _position(data: Mapping[str, Any], name: str) -> int:
    value = _optional_int(data.get(name))
    if abs(value) > INT32_MAX:
        raise ValidationError(f"Field '{name}' is out of range, got {value}")
    return value


def build_record(data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Build a storable record from loosely typed input.

    Args:
        data: Mapping with at least `timestamp` and `duration`

    Returns:
        Normalized record dict

    Raises:
        ValidationError: if `timestamp` or `duration` is missing or not
            numeric, or any numeric field does not fit its column
    """
    timestamp = _required_int(data, "timestamp")
    duration = _required_int(data, "duration")
    if timestamp <= 0:
        raise ValidationError(f"Field 'timestamp' must be positive, got {timestamp}")
    if timestamp > INT64_MAX:
        raise ValidationError(f"Field 'timestamp' is out of range, got {timestamp}")
    if duration < 0:
        raise ValidationError(f"Field 'duration' must not be negative, got {duration}")
    if duration > INT32_MAX:
        raise ValidationError(f"Field 'duration' is out of range, got {duration}")

    record = {
        "kind": int(parse_kind(data.get("kind"))),
        "timestamp": timestamp,
        "duration": duration,
        "line": _position(data, "line"),
        "char": _position(data, "char"),
    }
    for name in TEXT_FIELDS:
        value = data.get(name)
        record[name] = "" if value is None else str(value)
    return record


def readable_duration(ms: int) -> str:
    """Format milliseconds as `Xm Ys` (or `Ys` under a minute)."""
    seconds = int(ms) // 1000
    minutes, seconds = divmod(seconds, 60)
    return f"{minutes}m {seconds}s" if minutes > 0 else f"{seconds}s"


def describe(record: Mapping[str, Any]) -> str:
    """Human readable one-liner used in storage logs instead of the raw record."""
    kind = ActivityKind(record["kind"]).name.lower()
    return f"{kind} ({record.get('file', '')}) {readable_duration(record['duration'])}"
