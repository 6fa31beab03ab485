"""
Ordered validation passes for workflow graphs.

Every pass reads the raw graph document (a dict) so that malformed model
output can be diagnosed without first being coerced into a NodeGraph.
"""

from collections import Counter
from typing import List, Dict, Any, Optional, Tuple

from core.graph.placeholders import is_pure_placeholder
from core.graph.topology import topological_sort
from .models import Rule, Diagnostic, DiagnosticCode, error, warn
from .schema_validator import SchemaValidator

_schema_validator = SchemaValidator()

JSON_TYPE_NAMES = {
    bool: "boolean",
    int: "number",
    float: "number",
    str: "string",
    list: "array",
    dict: "object",
    type(None): "null",
}


class RuleRegistry:
    """Registry of validation passes, run in registration order"""

    def __init__(self):
        self.rules: Dict[str, Rule] = {}

    def register_rule(self, rule: Rule):
        """Register a new pass; re-registering an id replaces it in place"""
        self.rules[rule.id] = rule

    def get_rules(self) -> List[Rule]:
        return list(self.rules.values())

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        return self.rules.get(rule_id)


# ----------------------------------------------------------------------
# Document helpers
# ----------------------------------------------------------------------

def _list_field(doc: Dict[str, Any], name: str) -> List[Any]:
    value = doc.get(name)
    return value if isinstance(value, list) else []


def _indexed_nodes(doc: Dict[str, Any]) -> List[Tuple[int, Dict[str, Any]]]:
    return [(i, node) for i, node in enumerate(_list_field(doc, "nodes")) if isinstance(node, dict)]


def _node_id(node: Dict[str, Any]) -> Optional[str]:
    node_id = node.get("id")
    return node_id if isinstance(node_id, str) and node_id else None


def _unique_node_ids(doc: Dict[str, Any]) -> List[str]:
    ids = [_node_id(node) for _, node in _indexed_nodes(doc)]
    return list(dict.fromkeys(node_id for node_id in ids if node_id))


def _edge_pairs(doc: Dict[str, Any]) -> List[Tuple[str, str]]:
    pairs = []
    for edge in _list_field(doc, "edges"):
        if isinstance(edge, dict) and isinstance(edge.get("from"), str) and isinstance(edge.get("to"), str):
            pairs.append((edge["from"], edge["to"]))
    return pairs


def _json_type(value: Any) -> str:
    return JSON_TYPE_NAMES.get(type(value), type(value).__name__)


def _matches_kind(value: Any, expected: str) -> bool:
    if expected == "string":
        return isinstance(value, str)
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == "integer":
        if isinstance(value, bool):
            return False
        return isinstance(value, int) or (isinstance(value, float) and value.is_integer())
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "array":
        return isinstance(value, list)
    if expected == "object":
        return isinstance(value, dict)
    # Unknown schema kinds are not enforced
    return True


# ----------------------------------------------------------------------
# Passes
# ----------------------------------------------------------------------

def _check_shape(doc: Dict[str, Any], catalog: Any) -> List[Diagnostic]:
    """Required top-level fields present and well-typed"""
    return _schema_validator.validate_document(doc)


def _check_node_ids(doc: Dict[str, Any], catalog: Any) -> List[Diagnostic]:
    """Every node has an id; each duplicated id is reported once"""
    diagnostics = []
    counts = Counter()
    first_duplicate_index: Dict[str, int] = {}

    for i, node in _indexed_nodes(doc):
        node_id = _node_id(node)
        if node_id is None:
            diagnostics.append(error(f"nodes[{i}].id", "Node ID is required", DiagnosticCode.MISSING_NODE_ID))
            continue
        counts[node_id] += 1
        if counts[node_id] == 2:
            first_duplicate_index[node_id] = i

    for node_id, index in first_duplicate_index.items():
        diagnostics.append(error(
            f"nodes[{index}].id",
            f"Duplicate node ID: {node_id} (appears {counts[node_id]} times)",
            DiagnosticCode.DUPLICATE_NODE_ID,
            node_id=node_id
        ))
    return diagnostics


def _check_acyclic(doc: Dict[str, Any], catalog: Any) -> List[Diagnostic]:
    """Kahn's algorithm; a shortfall in the ordered count means a cycle"""
    result = topological_sort(_unique_node_ids(doc), _edge_pairs(doc))
    if result.is_acyclic:
        return []
    return [error(
        "edges",
        f"Graph contains a cycle involving nodes: {', '.join(result.unresolved)}",
        DiagnosticCode.CYCLE_DETECTED
    )]


def _check_node_types(doc: Dict[str, Any], catalog: Any) -> List[Diagnostic]:
    """Every node's type is present in the flattened catalog"""
    diagnostics = []
    for i, node in _indexed_nodes(doc):
        node_type = node.get("type")
        node_id = _node_id(node)
        if not isinstance(node_type, str) or not node_type:
            diagnostics.append(error(
                f"nodes[{i}].type", "Node type is required", DiagnosticCode.MISSING_NODE_TYPE, node_id=node_id
            ))
        elif not catalog.has_type(node_type):
            diagnostics.append(error(
                f"nodes[{i}].type", f"Unknown node type: {node_type}", DiagnosticCode.UNKNOWN_NODE_TYPE,
                node_id=node_id
            ))
    return diagnostics


def _check_param_value(path: str, value: Any, schema: Dict[str, Any], node_id: Optional[str]) -> List[Diagnostic]:
    # A whole-value placeholder is resolved at run time and may take any kind
    if is_pure_placeholder(value):
        return []

    expected = schema.get("type")
    if isinstance(expected, str) and not _matches_kind(value, expected):
        return [error(
            path, f"Expected {expected}, got {_json_type(value)}", DiagnosticCode.PARAM_TYPE_MISMATCH, node_id=node_id
        )]

    diagnostics = []
    allowed = schema.get("enum")
    if isinstance(allowed, list) and value not in allowed:
        diagnostics.append(error(
            path,
            f"Value must be one of: {', '.join(str(v) for v in allowed)}",
            DiagnosticCode.PARAM_ENUM_VIOLATION,
            node_id=node_id
        ))

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        minimum = schema.get("minimum")
        maximum = schema.get("maximum")
        if minimum is not None and value < minimum:
            diagnostics.append(error(
                path, f"Value must be >= {minimum}", DiagnosticCode.PARAM_OUT_OF_RANGE, node_id=node_id
            ))
        if maximum is not None and value > maximum:
            diagnostics.append(error(
                path, f"Value must be <= {maximum}", DiagnosticCode.PARAM_OUT_OF_RANGE, node_id=node_id
            ))
    return diagnostics


def _check_params(doc: Dict[str, Any], catalog: Any) -> List[Diagnostic]:
    """Required params, primitive kinds, enums and numeric bounds"""
    diagnostics = []
    for i, node in _indexed_nodes(doc):
        node_type = node.get("type")
        spec = catalog.get_node_type(node_type) if isinstance(node_type, str) else None
        if spec is None:
            continue
        node_id = _node_id(node)

        params = node.get("params")
        if params is None:
            params = {}
        if not isinstance(params, dict):
            diagnostics.append(error(
                f"nodes[{i}].params", "Params must be an object", DiagnosticCode.INVALID_FIELD, node_id=node_id
            ))
            continue

        for name in spec.required_params:
            if params.get(name) is None:
                diagnostics.append(error(
                    f"nodes[{i}].params.{name}",
                    f"Missing required parameter: {name}",
                    DiagnosticCode.MISSING_PARAM,
                    node_id=node_id
                ))

        properties = spec.properties
        for name, value in params.items():
            schema = properties.get(name)
            if value is None or not isinstance(schema, dict):
                continue
            diagnostics.extend(_check_param_value(f"nodes[{i}].params.{name}", value, schema, node_id))
    return diagnostics


def _check_scopes(doc: Dict[str, Any], catalog: Any) -> List[Diagnostic]:
    """Declared scopes equal the union required by the graph's node types"""
    node_types = [node.get("type") for _, node in _indexed_nodes(doc) if isinstance(node.get("type"), str)]
    required = catalog.required_scopes_for(node_types)
    declared = [scope for scope in _list_field(doc, "scopes") if isinstance(scope, str)]

    diagnostics = []
    for scope in required:
        if scope not in declared:
            diagnostics.append(error("scopes", f"Missing required scope: {scope}", DiagnosticCode.MISSING_SCOPE))
    for scope in dict.fromkeys(declared):
        if scope not in required:
            diagnostics.append(warn("scopes", f"Unnecessary scope: {scope}", DiagnosticCode.UNNECESSARY_SCOPE))
    return diagnostics


def _check_edges(doc: Dict[str, Any], catalog: Any) -> List[Diagnostic]:
    """Edge endpoints are present and name existing nodes"""
    known = set(_unique_node_ids(doc))
    diagnostics = []
    for i, edge in enumerate(_list_field(doc, "edges")):
        if not isinstance(edge, dict):
            continue
        for key, label in (("from", "source"), ("to", "target")):
            endpoint = edge.get(key)
            if not isinstance(endpoint, str) or not endpoint:
                diagnostics.append(error(
                    f"edges[{i}].{key}", f"Edge {label} is required", DiagnosticCode.INVALID_EDGE
                ))
            elif endpoint not in known:
                diagnostics.append(error(
                    f"edges[{i}].{key}", f"Edge references unknown node: {endpoint}", DiagnosticCode.INVALID_EDGE
                ))
    return diagnostics


def create_rule_registry() -> RuleRegistry:
    """Create the registry holding the validator passes in execution order"""
    registry = RuleRegistry()
    registry.register_rule(Rule(id="shape", description="Top-level fields present and well-typed", check=_check_shape))
    registry.register_rule(Rule(id="node_ids", description="Node ids present and unique", check=_check_node_ids))
    registry.register_rule(Rule(id="acyclic", description="Edges form a DAG", check=_check_acyclic))
    registry.register_rule(Rule(id="node_types", description="Node types exist in the catalog", check=_check_node_types))
    registry.register_rule(Rule(id="params", description="Params conform to the node type schema", check=_check_params))
    registry.register_rule(Rule(id="scopes", description="Scopes match the required union", check=_check_scopes))
    registry.register_rule(Rule(id="edges", description="Edge endpoints reference nodes", check=_check_edges))
    return registry


# Global rule registry instance
rule_registry = create_rule_registry()
