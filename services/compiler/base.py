"""
Base compiler class with common functionality and interfaces.
"""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

_UNSAFE_IDENTIFIER_CHARS = re.compile(r"[^A-Za-z0-9_]")


@dataclass
class CompilerReport:
    """Report from compiler operations"""
    warnings: List[Dict[str, Any]] = field(default_factory=list)
    repairs: List[Dict[str, Any]] = field(default_factory=list)
    hints: List[str] = field(default_factory=list)

    def add_warning(self, code: str, path: str, message: str, hint: Optional[str] = None):
        """Add a warning to the report"""
        self.warnings.append({
            "code": code,
            "path": path,
            "message": message,
            "hint": hint
        })

    def add_repair(self, path: str, original: Any, repaired: Any, reason: str):
        """Record a value the compiler adjusted to fit the target runtime"""
        self.repairs.append({
            "path": path,
            "original": original,
            "repaired": repaired,
            "reason": reason
        })

    def add_hint(self, hint: str):
        """Add a hint to the report"""
        if hint not in self.hints:
            self.hints.append(hint)

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {"warnings": self.warnings, "repairs": self.repairs, "hints": self.hints}


class BaseCompiler(ABC):
    """Base class for graph compilers. Per-compile state (the report) is local to ``compile``."""

    @abstractmethod
    def compile(self, graph):
        """Main compilation method - must be implemented by subclasses"""

    @staticmethod
    def js_literal(value: Any) -> str:
        """JSON is valid JavaScript for literals; ASCII escaping keeps U+2028 out of source"""
        return json.dumps(value, ensure_ascii=True)

    @staticmethod
    def js_comment(text: Any) -> str:
        """Text safe to place inside a /* */ block"""
        return str(text).replace("*/", "* /").replace("\n", " ")

    def _identifier_map(self, node_ids: List[str]) -> Dict[str, str]:
        """Stable, unique function-name fragments for node ids"""
        identifiers: Dict[str, str] = {}
        used = set()
        for node_id in node_ids:
            base = _UNSAFE_IDENTIFIER_CHARS.sub("_", node_id) or "node"
            candidate = base
            suffix = 2
            while candidate in used:
                candidate = f"{base}_{suffix}"
                suffix += 1
            used.add(candidate)
            identifiers[node_id] = candidate
        return identifiers
