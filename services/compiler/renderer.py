"""
Renders node parameter values as JavaScript expressions.

Placeholders become reads from the per-node output map, e.g.
``{{http_1.body.items[0].id}}`` -> ``getPath_(ctx.outputs["http_1"], "body.items[0].id")``.
"""

import json
from typing import Any, Dict, Optional

from core.graph.placeholders import PLACEHOLDER_PATTERN, PlaceholderRef, split_template
from .base import CompilerReport


def output_ref(node_id: str) -> str:
    """The runtime expression under which a node's output is exposed"""
    return f"ctx.outputs[{json.dumps(node_id)}]"


class ValueRenderer:
    """
    Converts param values into JavaScript source for one node.

    Args:
        positions: Execution index of every node in the bundle
        current_node: The node whose params are rendered
        report: Receives warnings for unresolvable references
        aliases: Extra names usable as ``{{name}}`` (e.g. template bindings)
    """

    def __init__(
        self,
        positions: Dict[str, int],
        current_node: str,
        report: CompilerReport,
        aliases: Optional[Dict[str, str]] = None
    ):
        self.positions = positions
        self.current_node = current_node
        self.report = report
        self.aliases = aliases or {}

    def reference(self, ref: PlaceholderRef, path: str) -> Optional[str]:
        if ref.node_id in self.aliases and not ref.path:
            return self.aliases[ref.node_id]

        if ref.node_id not in self.positions:
            self.report.add_warning(
                "UNRESOLVED_PLACEHOLDER",
                path,
                f"Placeholder {ref.raw} references unknown node '{ref.node_id}'",
                hint="The text is emitted literally"
            )
            return None

        if self.positions[ref.node_id] >= self.positions.get(self.current_node, len(self.positions)):
            self.report.add_warning(
                "PLACEHOLDER_NOT_UPSTREAM",
                path,
                f"Placeholder {ref.raw} reads node '{ref.node_id}', which does not run before '{self.current_node}'",
                hint="Add an edge so the referenced node runs first"
            )

        source = output_ref(ref.node_id)
        if not ref.path:
            return source
        return f"getPath_({source}, {json.dumps(ref.path)})"

    def render(self, value: Any, path: str) -> str:
        if isinstance(value, str):
            return self._render_string(value, path)
        if isinstance(value, dict):
            if not value:
                return "{}"
            items = ", ".join(
                f"{json.dumps(str(key))}: {self.render(item, f'{path}.{key}')}" for key, item in value.items()
            )
            return "{ " + items + " }"
        if isinstance(value, list):
            return "[" + ", ".join(self.render(item, f"{path}[{i}]") for i, item in enumerate(value)) + "]"
        return json.dumps(value)

    def _render_string(self, text: str, path: str) -> str:
        stripped = text.strip()
        match = PLACEHOLDER_PATTERN.fullmatch(stripped)
        if match:
            ref = PlaceholderRef(node_id=match.group(1), path=match.group(2).lstrip("."), raw=match.group(0))
            resolved = self.reference(ref, path)
            return resolved if resolved is not None else json.dumps(text)

        parts = split_template(text)
        if all(isinstance(part, str) for part in parts):
            return json.dumps(text)

        pieces = []
        for part in parts:
            if isinstance(part, str):
                pieces.append(json.dumps(part))
                continue
            resolved = self.reference(part, path)
            pieces.append(f"toText_({resolved})" if resolved is not None else json.dumps(part.raw))
        return " + ".join(pieces)
