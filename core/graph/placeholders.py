"""
Placeholder references between nodes.

A parameter value may point at an upstream node's output with
``{{nodeId.field}}`` or an indexed path such as ``{{nodeId.items[0].name}}``.
The references are resolved by the generated script at run time.
"""

import re
from dataclasses import dataclass
from typing import Any, List, Union

PLACEHOLDER_PATTERN = re.compile(
    r"\{\{\s*([A-Za-z_][\w\-]*)((?:\.[A-Za-z_$][\w\-$]*|\[\d+\])*)\s*\}\}"
)

_PATH_TOKEN = re.compile(r"\.?([A-Za-z_$][\w\-$]*)|\[(\d+)\]")


@dataclass(frozen=True)
class PlaceholderRef:
    """A parsed ``{{nodeId.path}}`` reference."""
    node_id: str
    path: str
    raw: str

    @property
    def segments(self) -> List[Union[str, int]]:
        return parse_path(self.path)


def _ref_from_match(match: "re.Match") -> PlaceholderRef:
    return PlaceholderRef(
        node_id=match.group(1),
        path=match.group(2).lstrip("."),
        raw=match.group(0),
    )


def find_placeholders(value: Any) -> List[PlaceholderRef]:
    """Collect every placeholder inside a (possibly nested) parameter value."""
    refs: List[PlaceholderRef] = []
    if isinstance(value, str):
        refs.extend(_ref_from_match(m) for m in PLACEHOLDER_PATTERN.finditer(value))
    elif isinstance(value, dict):
        for item in value.values():
            refs.extend(find_placeholders(item))
    elif isinstance(value, (list, tuple)):
        for item in value:
            refs.extend(find_placeholders(item))
    return refs


def is_pure_placeholder(value: Any) -> bool:
    """True when the whole string is a single placeholder, e.g. ``"{{a.b}}"``."""
    return isinstance(value, str) and PLACEHOLDER_PATTERN.fullmatch(value.strip()) is not None


def split_template(text: str) -> List[Union[str, PlaceholderRef]]:
    """Split a string into literal chunks and placeholder references, in order."""
    parts: List[Union[str, PlaceholderRef]] = []
    position = 0
    for match in PLACEHOLDER_PATTERN.finditer(text):
        if match.start() > position:
            parts.append(text[position:match.start()])
        parts.append(_ref_from_match(match))
        position = match.end()
    if position < len(text):
        parts.append(text[position:])
    return parts


def parse_path(path: str) -> List[Union[str, int]]:
    """``"items[0].name"`` -> ``["items", 0, "name"]``"""
    segments: List[Union[str, int]] = []
    for match in _PATH_TOKEN.finditer(path):
        key, index = match.groups()
        segments.append(int(index) if index is not None else key)
    return segments
