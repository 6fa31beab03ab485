"""
Advisory guardrails for workflow graphs and user prompts.

Guardrail policies never block: they only produce warn-level diagnostics and
are not part of the pass/fail decision. Policies are plain strategy objects,
so stricter or domain-specific ones can be passed to ``check_safety``
without changing the validator passes.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Pattern, Sequence, Union

from core.catalog import Catalog, NodeKind, TriggerDelivery
from core.graph.models import NodeGraph
from .models import Diagnostic, DiagnosticCode, warn

logger = logging.getLogger(__name__)

DEFAULT_SENSITIVE_KEYWORDS = (
    "ssn", "social security", "password", "passport", "phone",
    "address", "date of birth", "credit card", "personal",
)

DEFAULT_SENSITIVE_PATTERNS = (
    re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),                          # SSN
    re.compile(r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b"),     # card number
    re.compile(r"\b\d{3}-\d{3}-\d{4}\b"),                          # phone
    re.compile(r"\(\d{3}\)\s*\d{3}-\d{4}"),                       # phone
)

DEFAULT_OUTBOUND_MESSAGE_TYPES = ("gmail.send", "slack.post_message", "http.request")

INJECTION_PATTERNS = (
    re.compile(r"ignore\s+previous\s+instructions", re.IGNORECASE),
    re.compile(r"forget\s+everything", re.IGNORECASE),
    re.compile(r"system\s*:\s*you\s+are", re.IGNORECASE),
    re.compile(r"\[SYSTEM\]", re.IGNORECASE),
    re.compile(r"###\s*SYSTEM", re.IGNORECASE),
)


def _nodes(doc: Dict[str, Any]):
    nodes = doc.get("nodes")
    if not isinstance(nodes, list):
        return []
    return [(i, node) for i, node in enumerate(nodes) if isinstance(node, dict)]


def _params(node: Dict[str, Any]) -> Dict[str, Any]:
    params = node.get("params")
    return params if isinstance(params, dict) else {}


class GuardrailPolicy(ABC):
    """A replaceable advisory check over a graph document"""

    name: str = "guardrail"

    @abstractmethod
    def check(self, doc: Dict[str, Any], catalog: Optional[Catalog]) -> List[Diagnostic]:
        """Return warn-level diagnostics for the graph"""


class SensitiveDataPolicy(GuardrailPolicy):
    """Flags outbound-message actions whose payload looks like it carries personal data"""

    name = "sensitive_data"

    def __init__(
        self,
        keywords: Sequence[str] = DEFAULT_SENSITIVE_KEYWORDS,
        patterns: Sequence[Pattern] = DEFAULT_SENSITIVE_PATTERNS,
        message_types: Sequence[str] = DEFAULT_OUTBOUND_MESSAGE_TYPES
    ):
        self.keywords = [k.lower() for k in keywords]
        self.patterns = list(patterns)
        self.message_types = tuple(message_types)

    def _is_outbound_message(self, node_type: Any) -> bool:
        return (
            isinstance(node_type, str)
            and NodeKind.from_type_id(node_type) == NodeKind.ACTION
            and any(marker in node_type for marker in self.message_types)
        )

    def matched_terms(self, params: Dict[str, Any]) -> List[str]:
        payload = json.dumps(list(params.values()), default=str)
        lowered = payload.lower()
        hits = [keyword for keyword in self.keywords if keyword in lowered]
        hits.extend(pattern.pattern for pattern in self.patterns if pattern.search(payload))
        return hits

    def check(self, doc: Dict[str, Any], catalog: Optional[Catalog]) -> List[Diagnostic]:
        diagnostics = []
        for i, node in _nodes(doc):
            if not self._is_outbound_message(node.get("type")):
                continue
            hits = self.matched_terms(_params(node))
            if hits:
                diagnostics.append(warn(
                    f"nodes[{i}].params",
                    "Potential sensitive data in outbound message. Please review the content.",
                    DiagnosticCode.SENSITIVE_DATA,
                    node_id=node.get("id")
                ))
        return diagnostics


class PollingTriggerPolicy(GuardrailPolicy):
    """Flags polling triggers with no explicit interval or dedupe key"""

    name = "polling_trigger"

    def _is_polling(self, node: Dict[str, Any], catalog: Optional[Catalog]) -> bool:
        node_type = node.get("type")
        if NodeKind.from_type_id(node_type) != NodeKind.TRIGGER:
            return False
        if _params(node).get("polling"):
            return True
        spec = catalog.get_node_type(node_type) if catalog is not None else None
        return spec is not None and spec.delivery == TriggerDelivery.POLLING

    def check(self, doc: Dict[str, Any], catalog: Optional[Catalog]) -> List[Diagnostic]:
        diagnostics = []
        for i, node in _nodes(doc):
            if not self._is_polling(node, catalog):
                continue
            params = _params(node)
            interval = params.get("intervalMinutes")
            if not isinstance(interval, (int, float)) or isinstance(interval, bool) or interval < 1:
                diagnostics.append(warn(
                    f"nodes[{i}].params.intervalMinutes",
                    "Unbounded polling detected. Set an explicit intervalMinutes.",
                    DiagnosticCode.UNBOUNDED_POLLING,
                    node_id=node.get("id")
                ))
            if not params.get("dedupeKey"):
                diagnostics.append(warn(
                    f"nodes[{i}].params.dedupeKey",
                    "Consider adding a dedupeKey so repeated polls skip items already processed.",
                    DiagnosticCode.MISSING_DEDUPE_KEY,
                    node_id=node.get("id")
                ))
        return diagnostics


DEFAULT_GUARDRAILS = (SensitiveDataPolicy(), PollingTriggerPolicy())


def check_safety(
    graph: Union[NodeGraph, Dict[str, Any]],
    catalog: Optional[Catalog] = None,
    policies: Optional[Iterable[GuardrailPolicy]] = None
) -> List[Diagnostic]:
    """
    Run guardrail policies over a graph

    Args:
        graph: A NodeGraph or its raw dict form
        catalog: Used to recognise polling triggers by delivery mode
        policies: Policies to run instead of the defaults

    Returns:
        Warn-level diagnostics, policy by policy
    """
    doc = graph.to_dict() if isinstance(graph, NodeGraph) else graph
    if not isinstance(doc, dict):
        return []
    diagnostics: List[Diagnostic] = []
    for policy in (DEFAULT_GUARDRAILS if policies is None else policies):
        diagnostics.extend(policy.check(doc, catalog))
    return diagnostics


@dataclass
class PromptCheck:
    valid: bool
    reason: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


def check_prompt(prompt: Any, max_length: int = 50000) -> PromptCheck:
    """Reject empty or oversized prompts; injection-like phrasing is only reported"""
    if not isinstance(prompt, str) or not prompt.strip():
        return PromptCheck(valid=False, reason="Prompt cannot be empty")
    if len(prompt) > max_length:
        return PromptCheck(valid=False, reason=f"Prompt too long (max {max_length:,} characters)")

    warnings = []
    if any(pattern.search(prompt) for pattern in INJECTION_PATTERNS):
        logger.warning("⚠️  Potentially suspicious prompt detected")
        warnings.append("Prompt contains instruction-override phrasing")
    return PromptCheck(valid=True, warnings=warnings)
