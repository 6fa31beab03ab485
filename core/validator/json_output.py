"""
JSON output formatting for validator results
"""

import json
from typing import Dict, Any, List, Optional
from datetime import datetime, timezone

from .models import Diagnostic, errors_only, warnings_only, summarize


class JSONFormatter:
    """Formats diagnostics as structured JSON"""

    @staticmethod
    def format_diagnostics(diagnostics: List[Diagnostic]) -> List[Dict[str, Any]]:
        """Diagnostics in their wire shape"""
        return [diagnostic.to_dict() for diagnostic in diagnostics]

    @staticmethod
    def format_validation(
        diagnostics: List[Diagnostic],
        graph_id: Optional[str] = None,
        safety: Optional[List[Diagnostic]] = None
    ) -> Dict[str, Any]:
        """Validation report with errors and warnings split out and a summary block"""
        summary = summarize(diagnostics)
        report: Dict[str, Any] = {
            "success": summary["passed"],
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "graphId": graph_id,
            "errors": JSONFormatter.format_diagnostics(errors_only(diagnostics)),
            "warnings": JSONFormatter.format_diagnostics(warnings_only(diagnostics)),
            "summary": {
                "total_diagnostics": summary["total"],
                "total_errors": summary["errors"],
                "total_warnings": summary["warnings"],
                "validation_passed": summary["passed"],
            },
        }
        if safety is not None:
            report["safety"] = JSONFormatter.format_diagnostics(safety)
            report["summary"]["total_safety_warnings"] = len(safety)
        return report


def diagnostics_to_dict(diagnostics: List[Diagnostic]) -> List[Dict[str, Any]]:
    return JSONFormatter.format_diagnostics(diagnostics)


def diagnostics_to_json(diagnostics: List[Diagnostic], indent: int = 2) -> str:
    return json.dumps(diagnostics_to_dict(diagnostics), indent=indent)


def validation_to_json(
    diagnostics: List[Diagnostic],
    graph_id: Optional[str] = None,
    safety: Optional[List[Diagnostic]] = None,
    indent: int = 2
) -> str:
    return json.dumps(JSONFormatter.format_validation(diagnostics, graph_id, safety), indent=indent)
