"""
Type definitions for the workflow graph validator
"""

from typing import List, Dict, Any, Optional, Callable
from enum import Enum
from dataclasses import dataclass, field


class Severity(str, Enum):
    """Diagnostic severities. Only errors block compilation."""
    ERROR = "error"
    WARN = "warn"


class DiagnosticCode(str, Enum):
    """Stable machine codes; not part of the diagnostic wire shape"""
    INVALID_GRAPH = "INVALID_GRAPH"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    MISSING_NODE_ID = "MISSING_NODE_ID"
    DUPLICATE_NODE_ID = "DUPLICATE_NODE_ID"
    CYCLE_DETECTED = "CYCLE_DETECTED"
    MISSING_NODE_TYPE = "MISSING_NODE_TYPE"
    UNKNOWN_NODE_TYPE = "UNKNOWN_NODE_TYPE"
    MISSING_PARAM = "MISSING_PARAM"
    PARAM_TYPE_MISMATCH = "PARAM_TYPE_MISMATCH"
    PARAM_ENUM_VIOLATION = "PARAM_ENUM_VIOLATION"
    PARAM_OUT_OF_RANGE = "PARAM_OUT_OF_RANGE"
    MISSING_SCOPE = "MISSING_SCOPE"
    UNNECESSARY_SCOPE = "UNNECESSARY_SCOPE"
    INVALID_EDGE = "INVALID_EDGE"
    SENSITIVE_DATA = "SENSITIVE_DATA"
    UNBOUNDED_POLLING = "UNBOUNDED_POLLING"
    MISSING_DEDUPE_KEY = "MISSING_DEDUPE_KEY"


@dataclass
class Diagnostic:
    """A single validator finding"""
    path: str
    message: str
    severity: Severity = Severity.ERROR
    node_id: Optional[str] = None
    code: Optional[DiagnosticCode] = field(default=None, compare=False)

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape: ``{path, nodeId?, message, severity}``"""
        data: Dict[str, Any] = {"path": self.path}
        if self.node_id is not None:
            data["nodeId"] = self.node_id
        data["message"] = self.message
        data["severity"] = self.severity.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Diagnostic":
        return cls(
            path=str(data.get("path", "")),
            message=str(data.get("message", "")),
            severity=Severity(data.get("severity", Severity.ERROR.value)),
            node_id=data.get("nodeId"),
        )


def error(path: str, message: str, code: DiagnosticCode, node_id: Optional[str] = None) -> Diagnostic:
    return Diagnostic(path=path, message=message, severity=Severity.ERROR, node_id=node_id, code=code)


def warn(path: str, message: str, code: DiagnosticCode, node_id: Optional[str] = None) -> Diagnostic:
    return Diagnostic(path=path, message=message, severity=Severity.WARN, node_id=node_id, code=code)


def passes(diagnostics: List[Diagnostic]) -> bool:
    """A graph passes iff no diagnostic has error severity."""
    return not any(d.is_error for d in diagnostics)


def errors_only(diagnostics: List[Diagnostic]) -> List[Diagnostic]:
    return [d for d in diagnostics if d.severity == Severity.ERROR]


def warnings_only(diagnostics: List[Diagnostic]) -> List[Diagnostic]:
    return [d for d in diagnostics if d.severity == Severity.WARN]


def summarize(diagnostics: List[Diagnostic]) -> Dict[str, Any]:
    errors = errors_only(diagnostics)
    return {
        "total": len(diagnostics),
        "errors": len(errors),
        "warnings": len(diagnostics) - len(errors),
        "passed": not errors,
    }


# A validation pass reads the raw graph document and the catalog
CheckFn = Callable[[Dict[str, Any], Any], List[Diagnostic]]


@dataclass
class Rule:
    """One ordered validator pass"""
    id: str
    description: str
    check: CheckFn
