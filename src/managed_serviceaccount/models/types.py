"""
Type aliases and value helpers shared by the agent models.

Kubernetes encodes durations with Go's duration grammar and timestamps as
second-precision RFC 3339 strings; this module converts both to and from
their Python counterparts.
"""

import re
from datetime import UTC, datetime, timedelta
from typing import Any, TypeAlias

KubernetesMetadata: TypeAlias = dict[str, Any]
"""
Kubernetes ObjectMeta structure.

Expected structure:
- name: str
- namespace: str
- labels: dict[str, str]
- annotations: dict[str, str]
- uid: str
- resourceVersion: str
- generation: int
"""

KubernetesObject: TypeAlias = dict[str, Any]
"""Raw Kubernetes object as delivered by the watch stream."""

# Unit lengths in seconds
_DURATION_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """
    Parse a Go duration string such as ``"8640h0m0s"`` or ``"1.5h"``.

    Args:
        text: Duration in Go's ``time.ParseDuration`` grammar

    Returns:
        Equivalent timedelta

    Raises:
        ValueError: If the string is not a valid duration
    """
    if not isinstance(text, str) or not text:
        raise ValueError(f"invalid duration {text!r}")

    sign = 1
    body = text
    if body[0] in "+-":
        sign = -1 if body[0] == "-" else 1
        body = body[1:]

    if body == "0":
        return timedelta(0)

    seconds = 0.0
    position = 0
    while position < len(body):
        match = _DURATION_PART.match(body, position)
        if match is None:
            raise ValueError(f"invalid duration {text!r}")
        value, unit = match.groups()
        seconds += float(value) * _DURATION_UNITS[unit]
        position = match.end()

    if position == 0:
        raise ValueError(f"invalid duration {text!r}")

    return timedelta(seconds=sign * seconds)


def format_timestamp(value: datetime) -> str:
    """Render a datetime the way metav1.Time serialises: UTC, second precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
