"""
Output models for compiled bundles.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .base import CompilerReport


@dataclass
class CodeFile:
    """One emitted source file"""
    name: str
    content: str

    @property
    def line_count(self) -> int:
        return len(self.content.splitlines())

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "content": self.content}


@dataclass
class BundleStats:
    """Facts derived by scanning the emitted files"""
    file_count: int = 0
    line_count: int = 0
    has_webhook: bool = False
    has_scheduled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fileCount": self.file_count,
            "lineCount": self.line_count,
            "hasWebhook": self.has_webhook,
            "hasScheduled": self.has_scheduled,
        }


@dataclass
class CompileResult:
    files: List[CodeFile] = field(default_factory=list)
    entry: str = ""
    stats: BundleStats = field(default_factory=BundleStats)
    report: CompilerReport = field(default_factory=CompilerReport)

    def get_file(self, name: str) -> Optional[CodeFile]:
        for code_file in self.files:
            if code_file.name == name:
                return code_file
        return None

    def to_dict(self, include_details: bool = False) -> Dict[str, Any]:
        """Wire shape ``{files: [{name, content}], entry}``, optionally with stats and report"""
        data: Dict[str, Any] = {
            "files": [code_file.to_dict() for code_file in self.files],
            "entry": self.entry,
        }
        if include_details:
            data["stats"] = self.stats.to_dict()
            data["report"] = self.report.to_dict()
        return data
