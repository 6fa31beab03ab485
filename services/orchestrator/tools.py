"""
Tool surface offered to the model during plan and fix.
"""

import logging
from typing import Any, Callable, Dict, List

from core.catalog import Catalog
from core.validator import validate_graph

logger = logging.getLogger(__name__)

TOOL_SPECS: List[Dict[str, Any]] = [
    {
        "name": "getNodeCatalog",
        "description": "Returns every node type with its param schema and required OAuth scopes",
        "parameters": {},
    },
    {
        "name": "validateGraph",
        "description": "Returns the validation diagnostics for a NodeGraph",
        "parameters": {"graph": "NodeGraph"},
    },
    {
        "name": "searchApps",
        "description": "Finds apps by name, category or description",
        "parameters": {"query": "string"},
    },
    {
        "name": "getAppFunctions",
        "description": "Lists the triggers, actions and transforms of one app",
        "parameters": {"appName": "string"},
    },
]


class LLMTools:
    """Executes tool calls against the catalog and validator"""

    def __init__(self, catalog: Catalog):
        self.catalog = catalog
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Any]] = {
            "getNodeCatalog": lambda args: self.get_node_catalog(),
            "validateGraph": lambda args: self.validate_graph(args.get("graph")),
            "searchApps": lambda args: self.search_apps(args.get("query", "")),
            "getAppFunctions": lambda args: self.get_app_functions(args.get("appName", args.get("appId", ""))),
        }

    @property
    def specs(self) -> List[Dict[str, Any]]:
        return TOOL_SPECS

    def get_node_catalog(self) -> Dict[str, Any]:
        return self.catalog.get_node_catalog().to_dict()

    def validate_graph(self, graph: Any) -> List[Dict[str, Any]]:
        """Same diagnostics the validator produces, in wire shape"""
        return [diagnostic.to_dict() for diagnostic in validate_graph(graph, self.catalog)]

    def search_apps(self, query: str) -> List[Dict[str, Any]]:
        return [app.to_dict() for app in self.catalog.search_apps(str(query))]

    def get_app_functions(self, app_name: str) -> Dict[str, List[Dict[str, Any]]]:
        functions = self.catalog.get_app_functions(str(app_name))
        return {group: [spec.to_dict() for spec in specs] for group, specs in functions.items()}

    def execute(self, name: str, arguments: Dict[str, Any]) -> Any:
        """Run one tool call; failures are returned to the model as an error result"""
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning(f"⚠️  Model requested unknown tool: {name}")
            return {"error": f"Unknown tool: {name}. Available: {', '.join(self._handlers)}"}
        try:
            return handler(arguments or {})
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"⚠️  Tool {name} failed: {e}")
            return {"error": f"{name} failed: {e}"}
