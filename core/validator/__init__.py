"""
Workflow graph validator

Pure validation passes over NodeGraphs plus advisory guardrail policies.
"""

from .validator import validate_graph, has_errors
from .models import (
    Severity,
    DiagnosticCode,
    Diagnostic,
    Rule,
    passes,
    errors_only,
    warnings_only,
    summarize,
)
from .rules import RuleRegistry, rule_registry, create_rule_registry
from .safety import (
    GuardrailPolicy,
    SensitiveDataPolicy,
    PollingTriggerPolicy,
    DEFAULT_GUARDRAILS,
    check_safety,
    PromptCheck,
    check_prompt,
)
from .json_output import (
    diagnostics_to_dict,
    diagnostics_to_json,
    validation_to_json,
    JSONFormatter,
)

__version__ = "1.0.0"
__all__ = [
    "validate_graph",
    "has_errors",
    "Severity",
    "DiagnosticCode",
    "Diagnostic",
    "Rule",
    "passes",
    "errors_only",
    "warnings_only",
    "summarize",
    "RuleRegistry",
    "rule_registry",
    "create_rule_registry",
    "GuardrailPolicy",
    "SensitiveDataPolicy",
    "PollingTriggerPolicy",
    "DEFAULT_GUARDRAILS",
    "check_safety",
    "PromptCheck",
    "check_prompt",
    "diagnostics_to_dict",
    "diagnostics_to_json",
    "validation_to_json",
    "JSONFormatter",
]
