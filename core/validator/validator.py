"""
Main validator module: runs every pass over a workflow graph
"""

import logging
import time
from typing import List, Dict, Any, Union

from core.catalog import Catalog
from core.graph.models import NodeGraph
from .models import Diagnostic, DiagnosticCode, error, errors_only
from .rules import RuleRegistry, rule_registry

logger = logging.getLogger(__name__)


def _as_document(graph: Union[NodeGraph, Dict[str, Any], Any]) -> Any:
    if isinstance(graph, NodeGraph):
        return graph.to_dict()
    return graph


def validate_graph(
    graph: Union[NodeGraph, Dict[str, Any]],
    catalog: Catalog,
    registry: RuleRegistry = None
) -> List[Diagnostic]:
    """
    Validate a workflow graph against the catalog

    Pure and deterministic: the same graph and catalog always give the same
    diagnostics in the same order. Never raises for malformed input; problems
    are reported as diagnostics.

    Args:
        graph: A NodeGraph or its raw dict form (e.g. unparsed model output)
        catalog: Catalog snapshot used for type, param and scope checks
        registry: Optional alternative pass registry

    Returns:
        Diagnostics from every pass, in pass order
    """
    start_time = time.time()
    doc = _as_document(graph)

    if not isinstance(doc, dict):
        return [error("", "Graph must be an object", DiagnosticCode.INVALID_GRAPH)]

    diagnostics: List[Diagnostic] = []
    for rule in (registry or rule_registry).get_rules():
        diagnostics.extend(rule.check(doc, catalog))

    elapsed_ms = (time.time() - start_time) * 1000
    error_count = len(errors_only(diagnostics))
    logger.debug(
        f"Validated graph '{doc.get('id', '')}' in {elapsed_ms:.1f}ms: "
        f"{error_count} errors, {len(diagnostics) - error_count} warnings"
    )
    return diagnostics


def has_errors(diagnostics: List[Diagnostic]) -> bool:
    return bool(errors_only(diagnostics))
