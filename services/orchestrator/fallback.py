"""
Deterministic fallbacks used when the model is unavailable or unusable.
"""

import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.catalog import Catalog
from core.config import Settings
from core.graph import Edge, Node, NodeGraph
from core.validator import Diagnostic, Severity

logger = logging.getLogger(__name__)

FALLBACK_TRIGGER_TYPE = "trigger.time.cron"
FALLBACK_ACTION_TYPE = "action.http.request"
FALLBACK_URL = "https://api.example.com/data"
FALLBACK_RATIONALE = "Created basic workflow (LLM planning failed)"

_NODE_INDEX = re.compile(r"^nodes\[(\d+)\]")
_PARAM_NAME = re.compile(r"\.params\.([^.\[]+)")


def create_fallback_graph(prompt: str, catalog: Catalog, app_settings: Settings) -> NodeGraph:
    """
    Minimal workflow: a time-based trigger feeding one outbound HTTP request

    Scopes are computed from the catalog so the graph validates against it.
    """
    title = prompt.strip()
    name = f"Automation: {title[:50]}{'...' if len(title) > 50 else ''}"
    node_types = [FALLBACK_TRIGGER_TYPE, FALLBACK_ACTION_TYPE]

    return NodeGraph(
        id=f"workflow_{int(time.time() * 1000)}",
        name=name,
        version=1,
        nodes=[
            Node(
                id="trigger_1",
                type=FALLBACK_TRIGGER_TYPE,
                label="Schedule Trigger",
                params={"everyMinutes": app_settings.fallback_interval_minutes},
                outputs=["trigger_data"],
            ),
            Node(
                id="action_1",
                type=FALLBACK_ACTION_TYPE,
                label="HTTP Request",
                params={"method": "GET", "url": FALLBACK_URL},
                inputs=["trigger_data"],
            ),
        ],
        edges=[Edge(**{"from": "trigger_1", "to": "action_1"})],
        scopes=catalog.required_scopes_for(node_types),
        secrets=[],
        metadata={
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "complexity": "Simple",
            "description": title,
            "fallback": True,
        },
    )


def placeholder_value(schema: Dict[str, Any], param_name: str) -> Any:
    """A value that conforms to the param schema, to be replaced by the user"""
    if "default" in schema:
        return schema["default"]
    if isinstance(schema.get("enum"), list) and schema["enum"]:
        return schema["enum"][0]

    kind = schema.get("type")
    if kind in ("number", "integer"):
        minimum = schema.get("minimum")
        return minimum if minimum is not None else 1
    if kind == "boolean":
        return False
    if kind == "array":
        return []
    if kind == "object":
        return {}
    return f"REPLACE_WITH_{param_name.upper()}"


def _locate_node(graph: NodeGraph, diagnostic: Diagnostic):
    match = _NODE_INDEX.match(diagnostic.path)
    if match:
        index = int(match.group(1))
        if index < len(graph.nodes):
            return graph.nodes[index]
    if diagnostic.node_id:
        return graph.get_node(diagnostic.node_id)
    return None


def _param_name(diagnostic: Diagnostic) -> Optional[str]:
    match = _PARAM_NAME.search(diagnostic.path)
    if match:
        return match.group(1)
    if ":" in diagnostic.message:
        return diagnostic.message.rsplit(":", 1)[1].strip() or None
    return None


def basic_error_fix(graph: NodeGraph, errors: List[Diagnostic], catalog: Catalog) -> NodeGraph:
    """
    Best-effort repair without the model

    Missing required parameters get a schema-conformant placeholder value on
    the referenced node; missing required scopes are added. Other errors are
    left for the caller to surface.
    """
    fixed = graph.copy_graph()
    repaired = 0

    for diagnostic in errors:
        if diagnostic.severity != Severity.ERROR:
            continue
        message = diagnostic.message.lower()

        if "missing required parameter" in message:
            node = _locate_node(fixed, diagnostic)
            name = _param_name(diagnostic)
            if node is None or not name:
                continue
            spec = catalog.get_node_type(node.type)
            schema = spec.properties.get(name, {}) if spec else {}
            node.params = {**node.params, name: placeholder_value(schema, name)}
            repaired += 1

        elif "missing required scope" in message:
            scope = diagnostic.message.split(":", 1)[1].strip()
            if scope and scope not in fixed.scopes:
                fixed.scopes.append(scope)
                repaired += 1

    logger.info(f"🔧 Fallback repair applied {repaired} of {len(errors)} fixes")
    return fixed
