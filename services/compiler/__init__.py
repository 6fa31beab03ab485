"""
Workflow compiler.
Turns a validated NodeGraph into a Google Apps Script project.
"""

from .base import BaseCompiler, CompilerReport
from .models import CodeFile, BundleStats, CompileResult
from .renderer import ValueRenderer, output_ref
from .templates import EmitContext, TemplateRegistry, templates
from .apps_script import AppsScriptCompiler, compile_graph

__all__ = [
    "BaseCompiler",
    "CompilerReport",
    "CodeFile",
    "BundleStats",
    "CompileResult",
    "ValueRenderer",
    "output_ref",
    "EmitContext",
    "TemplateRegistry",
    "templates",
    "AppsScriptCompiler",
    "compile_graph",
]
