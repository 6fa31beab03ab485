"""
JSON Schema checks for the top-level shape of a workflow graph
"""

import logging
from typing import List, Dict, Any

from jsonschema.validators import Draft202012Validator

from .models import Diagnostic, DiagnosticCode, error

logger = logging.getLogger(__name__)

GRAPH_SHAPE_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "name": {"type": "string", "minLength": 1},
        "version": {"type": "integer", "minimum": 1},
        "nodes": {"type": "array", "items": {"type": "object"}},
        "edges": {"type": "array", "items": {"type": "object"}},
        "scopes": {"type": "array", "items": {"type": "string"}},
        "secrets": {"type": "array", "items": {"type": "string"}},
        "metadata": {"type": "object"},
    },
}

# Field -> (message when missing or malformed)
FIELD_MESSAGES: Dict[str, str] = {
    "id": "Graph ID is required",
    "name": "Graph name is required",
    "version": "Graph version must be an integer >= 1",
    "nodes": "Nodes must be an array",
    "edges": "Edges must be an array",
    "scopes": "Scopes must be an array of strings",
    "secrets": "Secrets must be an array of strings",
    "metadata": "Metadata must be an object",
}

REQUIRED_FIELDS = ["id", "name", "version", "nodes", "edges", "scopes", "secrets"]


class SchemaValidator:
    """Validates the top-level shape of a graph document"""

    def __init__(self, schema: Dict[str, Any] = None):
        self.schema = schema or GRAPH_SHAPE_SCHEMA
        Draft202012Validator.check_schema(self.schema)
        self.validator = Draft202012Validator(self.schema)

    def validate_document(self, doc: Any) -> List[Diagnostic]:
        """
        Validate a graph document's top-level fields

        Args:
            doc: The raw graph document

        Returns:
            One diagnostic per failing path, in field order
        """
        if not isinstance(doc, dict):
            return [error("", "Graph must be an object", DiagnosticCode.INVALID_GRAPH)]

        diagnostics = self.validate_required_fields(doc)
        missing = {d.path for d in diagnostics}

        # jsonschema reports errors in arbitrary order; sort by path for stable output
        schema_errors = sorted(
            self.validator.iter_errors(doc),
            key=lambda e: (self._field_order(e.absolute_path), self._format_error_path(e.absolute_path))
        )
        seen_paths = set(missing)
        for schema_error in schema_errors:
            path = self._format_error_path(schema_error.absolute_path)
            if path in seen_paths:
                continue
            seen_paths.add(path)
            diagnostics.append(error(path, self._message_for(schema_error), DiagnosticCode.INVALID_FIELD))

        return diagnostics

    def validate_required_fields(self, doc: Dict[str, Any]) -> List[Diagnostic]:
        """Report each required top-level field that is absent or null"""
        diagnostics = []
        for field_name in REQUIRED_FIELDS:
            if doc.get(field_name) is None:
                diagnostics.append(error(field_name, FIELD_MESSAGES[field_name], DiagnosticCode.MISSING_FIELD))
        return diagnostics

    def _message_for(self, schema_error) -> str:
        path = list(schema_error.absolute_path)
        if len(path) == 1 and path[0] in FIELD_MESSAGES:
            return FIELD_MESSAGES[path[0]]
        if len(path) == 2 and path[0] == "nodes":
            return "Node must be an object"
        if len(path) == 2 and path[0] == "edges":
            return "Edge must be an object"
        if len(path) == 2 and path[0] in ("scopes", "secrets"):
            return f"{path[0].capitalize()} entries must be strings"
        return schema_error.message

    def _field_order(self, path) -> int:
        parts = list(path)
        if parts and parts[0] in FIELD_MESSAGES:
            return list(FIELD_MESSAGES).index(parts[0])
        return len(FIELD_MESSAGES)

    def _format_error_path(self, path) -> str:
        """Format a jsonschema error path as ``nodes[0].id``"""
        formatted = ""
        for part in path:
            if isinstance(part, int):
                formatted += f"[{part}]"
            elif formatted:
                formatted += f".{part}"
            else:
                formatted = str(part)
        return formatted
