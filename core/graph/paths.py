"""Property path lookup over JSON-like data.

Paths use the usual dot/bracket notation understood by the visual editor::

    data[0].data.value
    data[items][2]["display name"]

Stray closing brackets are ignored, so ``data[0].value]`` reads the same as
``data[0].value``.
"""

import re
from typing import Any, List, Union

_MISSING = object()

_SEGMENT = re.compile(
    r"""\[\s*(?P<quote>["'])(?P<quoted>.*?)(?P=quote)\s*\]"""
    r"""|(?P<plain>[^.\[\]]+)"""
)

Segment = Union[str, int]


def split_path(path: str) -> List[Segment]:
    """Split a property path into segments; numeric segments become ints."""
    segments: List[Segment] = []
    for match in _SEGMENT.finditer(path):
        if match.group("quote"):
            segments.append(match.group("quoted"))
            continue
        token = match.group("plain").strip()
        if not token:
            continue
        if token.lstrip("-").isdigit():
            segments.append(int(token))
        else:
            segments.append(token)
    return segments


def _step(current: Any, segment: Segment) -> Any:
    if isinstance(current, dict):
        if segment in current:
            return current[segment]
        key = str(segment)
        return current.get(key, _MISSING)

    if isinstance(current, (list, tuple)):
        if isinstance(segment, int):
            if 0 <= segment < len(current):
                return current[segment]
            return _MISSING
        if segment == "length":
            return len(current)
        # A single result record reads through to its only element
        if len(current) == 1:
            return _step(current[0], segment)
        return _MISSING

    return _MISSING


def get_path(data: Any, path: Union[str, List[Segment]], default: Any = None) -> Any:
    """Return the value at ``path`` inside ``data`` or ``default``."""
    segments = split_path(path) if isinstance(path, str) else path
    current = data
    for segment in segments:
        current = _step(current, segment)
        if current is _MISSING:
            return default
    return current
