"""
Prompt Builder for the orchestrator

Renders the system and user prompts for each phase.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from core.catalog import Capabilities
from core.graph import NodeGraph
from core.validator import Diagnostic
from . import templates

logger = logging.getLogger(__name__)


class PromptBuilder:
    """
    Builds model prompts for the clarify, plan and fix phases.

    Templates use ``{name}`` fields but also contain literal braces
    (JSON examples, placeholder syntax), so rendering uses plain
    substitution instead of ``str.format``.
    """

    @staticmethod
    def _render(template: str, **values: str) -> str:
        rendered = template
        for key, value in values.items():
            rendered = rendered.replace("{" + key + "}", value)
        return rendered

    def tool_instructions(self, tool_specs: Iterable[Dict[str, Any]]) -> str:
        lines = [f"- {spec['name']}({', '.join(spec.get('parameters', {}))}): {spec['description']}"
                 for spec in tool_specs]
        if not lines:
            return ""
        return self._render(templates.TOOL_INSTRUCTIONS, tool_list="\n".join(lines))

    # ------------------------------------------------------------------
    # Clarify
    # ------------------------------------------------------------------

    def clarify_system(self) -> str:
        return templates.CLARIFIER_SYSTEM

    def build_clarify_prompt(self, prompt: str) -> str:
        return self._render(templates.CLARIFY_USER, prompt=prompt.strip())

    # ------------------------------------------------------------------
    # Plan
    # ------------------------------------------------------------------

    def plan_system(self, tool_specs: Iterable[Dict[str, Any]]) -> str:
        return self._render(templates.PLANNER_SYSTEM, tool_instructions=self.tool_instructions(tool_specs))

    def format_capabilities(self, capabilities: Capabilities) -> str:
        """One line per node type: id, required params, optional params and scopes"""
        lines = []
        for spec in capabilities.nodes:
            required = spec.required_params
            optional = [name for name in spec.properties if name not in required]
            parts = [f"- {spec.id}: {spec.description}"]
            if required:
                parts.append(f"required params: {', '.join(required)}")
            if optional:
                parts.append(f"optional params: {', '.join(optional)}")
            if spec.required_scopes:
                parts.append(f"scopes: {', '.join(spec.required_scopes)}")
            lines.append("; ".join(parts))
        return "\n".join(lines)

    def build_plan_prompt(
        self,
        prompt: str,
        answers: Optional[Dict[str, str]],
        capabilities: Capabilities
    ) -> str:
        sections = [f'User goal: "{prompt.strip()}"']
        if answers:
            answer_lines = "\n".join(f"- {question}: {answer}" for question, answer in answers.items())
            sections.append(f"User answers to clarifying questions:\n{answer_lines}")
        sections.append(f"Node catalog:\n{self.format_capabilities(capabilities)}")
        sections.append('Build a complete NodeGraph. Return JSON: {"graph": NodeGraph, "rationale": "explanation"}')
        logger.debug(f"Plan prompt built with {len(capabilities.nodes)} node types")
        return "\n\n".join(sections)

    # ------------------------------------------------------------------
    # Fix
    # ------------------------------------------------------------------

    def fix_system(self, tool_specs: Iterable[Dict[str, Any]]) -> str:
        return self._render(templates.FIXER_SYSTEM, tool_instructions=self.tool_instructions(tool_specs))

    def build_fix_prompt(self, graph: NodeGraph, errors: List[Diagnostic]) -> str:
        error_lines = "\n".join(f"- {e.path}: {e.message} ({e.severity.value})" for e in errors)
        return (
            "Fix these errors in the workflow:\n\n"
            f"Errors:\n{error_lines}\n\n"
            f"Current graph:\n{json.dumps(graph.to_dict(), indent=2)}\n\n"
            "Return the fixed graph as JSON."
        )

    # ------------------------------------------------------------------
    # Follow-up turns
    # ------------------------------------------------------------------

    def tool_result(self, tool: str, result: Any) -> str:
        return self._render(templates.TOOL_RESULT, tool=tool, result=json.dumps(result, default=str))

    def tool_budget_exhausted(self) -> str:
        return templates.TOOL_BUDGET_EXHAUSTED

    def with_retry_feedback(self, prompt: str, error: str) -> str:
        return prompt + self._render(templates.RETRY_FEEDBACK, error=error)
