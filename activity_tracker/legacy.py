"""
Legacy Format Module

Codec for the flat-file format used before the relational store existed.

Line 1 of a file is the version token. Every other line is one activity,
fields separated by single spaces and free text percent-encoded:

    3.0: kind time duration language file project computer
    4.0: kind time duration language file project computer vcs line char r1 r2

where `vcs` is `type:repo:branch` and `r1`/`r2` are reserved.
"""
from typing import Any, Dict, Mapping
from urllib.parse import quote, unquote

from activity_tracker.errors import ValidationError
from activity_tracker.records import build_record

REQUIRED_FIELDS = {"3.0": 7, "4.0": 12}
SUPPORTED_VERSIONS = tuple(REQUIRED_FIELDS)
CURRENT_VERSION = "4.0"
EMPTY_VCS = "::"


def _decode(value: str) -> str:
    return unquote(value or "")


def _encode(value: Any) -> str:
    return quote(str(value or ""), safe="")


def _int_or_zero(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def parse_line(line: str, version: str) -> Dict[str, Any]:
    """
    Decode one data line of a legacy file.

    Args:
        line: Data line without its line terminator
        version: Version token from the first line of the file

    Returns:
        Normalized record dict

    Raises:
        ValidationError: on an unsupported version, too few fields or
            non-numeric kind/time/duration
    """
    if version not in REQUIRED_FIELDS:
        raise ValidationError(f"Unsupported legacy version: {version}")

    parts = line.split(" ")
    required = REQUIRED_FIELDS[version]
    if len(parts) < required:
        raise ValidationError(
            f"Invalid line for version {version}: "
            f"expected at least {required} fields, got {len(parts)}"
        )

    try:
        kind, timestamp, duration = int(parts[0]), int(parts[1]), int(parts[2])
    except ValueError:
        raise ValidationError("Invalid numeric data in kind/time/duration")

    data = {
        "kind": kind,
        "timestamp": timestamp,
        "duration": duration,
        "language": _decode(parts[3]),
        "file": _decode(parts[4]),
        "project": _decode(parts[5]),
        "computer_id": _decode(parts[6]),
    }

    if version == "4.0":
        vcs = (parts[7] or EMPTY_VCS).split(":")
        vcs += [""] * (3 - len(vcs))
        data["vcs_type"] = _decode(vcs[0])
        data["vcs_repo"] = _decode(vcs[1])
        data["vcs_branch"] = _decode(vcs[2])
        data["line"] = _int_or_zero(parts[8])
        data["char"] = _int_or_zero(parts[9])

    return build_record(data)


def encode_line(record: Mapping[str, Any]) -> str:
    """Encode a normalized record as a version 4.0 data line."""
    vcs = ":".join(
        _encode(record.get(name)) for name in ("vcs_type", "vcs_repo", "vcs_branch")
    )
    fields = [
        str(int(record["kind"])),
        str(int(record["timestamp"])),
        str(int(record["duration"])),
        _encode(record.get("language")),
        _encode(record.get("file")),
        _encode(record.get("project")),
        _encode(record.get("computer_id")),
        vcs,
        str(int(record.get("line") or 0)),
        str(int(record.get("char") or 0)),
        "0",
        "0",
    ]
    return " ".join(fields)
