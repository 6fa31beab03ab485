"""
Workflow graph model.
NodeGraph/Node/Edge, placeholder references and topological ordering.
"""

from .models import Node, Edge, NodeGraph
from .placeholders import (
    PlaceholderRef,
    find_placeholders,
    is_pure_placeholder,
    split_template,
    parse_path,
)
from .topology import (
    CycleError,
    TopologyResult,
    topological_sort,
    topological_order,
    stable_topological_order,
    reachable_from,
)

__all__ = [
    "Node",
    "Edge",
    "NodeGraph",
    "PlaceholderRef",
    "find_placeholders",
    "is_pure_placeholder",
    "split_template",
    "parse_path",
    "CycleError",
    "TopologyResult",
    "topological_sort",
    "topological_order",
    "stable_topological_order",
    "reachable_from",
]
