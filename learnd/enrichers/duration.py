"""Duration parsing for ISO-8601, clock-style and raw-second values."""

from __future__ import annotations

import json
import re
from typing import Any

_ISO_TIME_PATTERN = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)(?:\.\d+)?S)?")


def parse_iso8601_duration(value: str) -> int:
    """Convert a ``PT#H#M#S`` duration to seconds; 0 when nothing matches."""
    match = _ISO_TIME_PATTERN.search(str(value or ""))
    if not match:
        return 0
    hours, minutes, seconds = (int(group) if group else 0 for group in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def _clock_part(part: str) -> int | None:
    trimmed = part.strip().split(".", 1)[0]
    if not trimmed.isdigit():
        return None
    return int(trimmed)


def parse_clock_duration(value: str) -> int:
    """Convert ``MM:SS`` or ``HH:MM:SS`` to seconds; 0 when malformed."""
    parts = [_clock_part(part) for part in value.split(":")]
    if any(part is None for part in parts):
        return 0
    if len(parts) == 2:
        minutes, seconds = parts
        return minutes * 60 + seconds  # type: ignore[operator]
    if len(parts) == 3:
        hours, minutes, seconds = parts
        return hours * 3600 + minutes * 60 + seconds  # type: ignore[operator]
    return 0


def parse_duration_string(value: str) -> int:
    trimmed = str(value or "").strip()
    if not trimmed:
        return 0

    if trimmed.startswith("P"):
        if trimmed.startswith("PT"):
            seconds = parse_iso8601_duration(trimmed)
            if seconds > 0:
                return seconds
        # Date components ("P1DT2H") are ignored; only the time part counts.
        if "T" in trimmed:
            seconds = parse_iso8601_duration("PT" + trimmed.split("T", 1)[1])
            if seconds > 0:
                return seconds

    if ":" in trimmed:
        seconds = parse_clock_duration(trimmed)
        if seconds > 0:
            return seconds

    if trimmed.isdigit():
        return int(trimmed)
    return 0


def parse_duration_value(value: Any) -> int:
    """Seconds from a JSON-LD ``duration`` value of any supported shape."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        return parse_duration_string(value)
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else 0
    if isinstance(value, dict):
        for key in ("value", "@value"):
            if key in value:
                seconds = parse_duration_value(value[key])
                if seconds > 0:
                    return seconds
    return 0


def find_duration_seconds(data: Any) -> int:
    """Depth-first search for the first positive ``duration`` in nested JSON."""
    if isinstance(data, dict):
        if "duration" in data:
            seconds = parse_duration_value(data["duration"])
            if seconds > 0:
                return seconds
        children = data.values()
    elif isinstance(data, list):
        children = data
    else:
        return 0

    for child in children:
        seconds = find_duration_seconds(child)
        if seconds > 0:
            return seconds
    return 0


def parse_jsonld_duration(content: str) -> int:
    content = str(content or "").strip()
    if not content:
        return 0
    try:
        data = json.loads(content)
    except ValueError:
        return 0
    return find_duration_seconds(data)
