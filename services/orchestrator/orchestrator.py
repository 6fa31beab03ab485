"""
Orchestrator: clarify -> plan -> fix with a language model as collaborator.

Each phase issues its model calls sequentially. Graph results are always
re-validated here, whatever the model reports about its own output.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, TypeVar

from core.catalog import Catalog, Capabilities
from core.config import Settings, settings as default_settings
from core.graph import NodeGraph
from core.logging_config import get_llm_logger
from core.validator import Diagnostic, check_prompt, errors_only, has_errors, validate_graph
from .ai_client import AnthropicClient, LanguageModel
from .errors import ErrorCode, LLMClientError, OrchestratorError, ResponseParseError
from .fallback import FALLBACK_RATIONALE, basic_error_fix, create_fallback_graph
from .models import (
    ClarifyRequest,
    ClarifyResponse,
    FixRequest,
    FixResponse,
    PlanRequest,
    PlanResponse,
)
from .prompt_builder import PromptBuilder
from .response_parser import ResponseParser
from .tools import LLMTools

logger = logging.getLogger(__name__)
llm_logger = get_llm_logger(__name__)

T = TypeVar("T")

AUTO_FIX_SUFFIX = " (Auto-fixed validation errors)"


class Orchestrator:
    """
    Mediates between a user's intent and a validated NodeGraph.

    Responsibilities:
    - Clarify: decide whether the prompt needs follow-up questions
    - Plan: build a graph with the model, falling back to a fixed minimal graph
    - Fix: resolve error diagnostics, falling back to deterministic repair
    """

    def __init__(
        self,
        catalog: Catalog,
        model: Optional[LanguageModel] = None,
        app_settings: Optional[Settings] = None
    ):
        self.catalog = catalog
        self.settings = app_settings or default_settings
        self.model = model or AnthropicClient(app_settings=self.settings)
        self.tools = LLMTools(catalog)
        self.prompt_builder = PromptBuilder()
        self.parser = ResponseParser()

    def get_capabilities(self) -> Capabilities:
        return self.catalog.get_capabilities()

    # ------------------------------------------------------------------
    # Model conversation
    # ------------------------------------------------------------------

    async def _converse(self, phase: str, prompt: str, system: str, use_tools: bool,
                        model: LanguageModel) -> str:
        """One model exchange, serving tool calls until the model gives a final reply"""
        transcript: List[Dict[str, str]] = []

        def context() -> Dict[str, Any]:
            return {
                "phase": phase,
                "system": system,
                "transcript": list(transcript),
                "tools": self.tools.specs if use_tools else [],
            }

        reply = await model.generate(prompt, context())
        if not use_tools:
            return reply

        for _ in range(self.settings.max_tool_calls):
            call = self.parser.parse_tool_call(reply)
            if call is None:
                return reply
            tool, arguments = call
            result = self.tools.execute(tool, arguments)
            result_text = self.prompt_builder.tool_result(tool, result)
            llm_logger.log_tool_call(tool, arguments, len(result_text))
            transcript.append({"role": "assistant", "content": reply})
            transcript.append({"role": "user", "content": result_text})
            reply = await model.generate(prompt, context())

        if self.parser.parse_tool_call(reply) is not None:
            logger.warning(f"⚠️  [{phase}] Tool budget of {self.settings.max_tool_calls} exhausted")
            transcript.append({"role": "assistant", "content": reply})
            transcript.append({"role": "user", "content": self.prompt_builder.tool_budget_exhausted()})
            reply = await model.generate(prompt, context())
        return reply

    async def _request(
        self,
        phase: str,
        prompt: str,
        system: str,
        interpret: Callable[[Dict[str, Any]], T],
        use_tools: bool = False,
        model: Optional[LanguageModel] = None
    ) -> T:
        """
        Ask the model until its reply can be interpreted

        Raises:
            LLMClientError: if the model cannot be reached
            ResponseParseError: if every attempt returned unusable content
        """
        attempts = max(1, self.settings.llm_max_parse_attempts)
        current_prompt = prompt
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            reply = await self._converse(phase, current_prompt, system, use_tools, model or self.model)
            try:
                return interpret(self.parser.extract_json(reply))
            except ValueError as e:
                last_error = e
                logger.warning(f"⚠️  [{phase}] Unusable model reply (attempt {attempt}/{attempts}): {e}")
                current_prompt = self.prompt_builder.with_retry_feedback(prompt, str(e))

        raise ResponseParseError(f"No usable reply after {attempts} attempts: {last_error}")

    def _model_for(self, request: ClarifyRequest) -> LanguageModel:
        if (request.model or request.api_key) and isinstance(self.model, AnthropicClient):
            return AnthropicClient(
                api_key=request.api_key or self.model.api_key,
                model=request.model or self.model.model,
                app_settings=self.settings
            )
        return self.model

    def _check_prompt(self, prompt: str):
        result = check_prompt(prompt, self.settings.max_prompt_length)
        if not result.valid:
            raise OrchestratorError(ErrorCode.INVALID_PROMPT, result.reason)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def clarify(self, request: ClarifyRequest) -> ClarifyResponse:
        """
        Decide whether the prompt is detailed enough to plan

        Raises:
            OrchestratorError: INVALID_PROMPT for empty or oversized prompts,
                CLARIFICATION_FAILED when the model fails or its reply cannot
                be read as either branch. There is no fallback here.
        """
        self._check_prompt(request.prompt)
        logger.info(f"🔍 Clarifying user intent: {request.prompt[:100]}")

        try:
            response = await self._request(
                "clarify",
                self.prompt_builder.build_clarify_prompt(request.prompt),
                self.prompt_builder.clarify_system(),
                self.parser.parse_clarify,
                model=self._model_for(request)
            )
        except (LLMClientError, ResponseParseError) as e:
            logger.error(f"❌ Clarify step failed: {e}")
            raise OrchestratorError(ErrorCode.CLARIFICATION_FAILED, f"Clarification failed: {e}") from e

        if response.needs_more_info:
            logger.info(f"❓ Clarify asked {len(response.questions)} question(s)")
        else:
            logger.info(f"✅ Clarify ready to plan (confidence {response.confidence:.2f})")
        return response

    async def plan(self, request: PlanRequest) -> PlanResponse:
        """
        Build a graph for the prompt, validating and auto-fixing it

        Model failure or unusable output yields the deterministic fallback
        graph instead of an error.

        Raises:
            OrchestratorError: INVALID_PROMPT for empty or oversized prompts,
                LLM_CALL_FAILED if the model failed and the fallback graph
                does not validate against this catalog
        """
        self._check_prompt(request.prompt)
        logger.info(f"📋 Planning workflow for: {request.prompt[:100]}")
        start_time = time.time()

        capabilities = request.capabilities or self.get_capabilities()
        try:
            graph, rationale = await self._request(
                "plan",
                self.prompt_builder.build_plan_prompt(request.prompt, request.answers, capabilities),
                self.prompt_builder.plan_system(self.tools.specs),
                self.parser.parse_plan,
                use_tools=True
            )
        except (LLMClientError, ResponseParseError) as e:
            logger.warning(f"⚠️  Planning via model failed, using fallback workflow: {e}")
            return self._fallback_plan(request.prompt, str(e))

        if not graph.name:
            graph.name = f"Automation: {request.prompt.strip()[:50]}"

        diagnostics = validate_graph(graph, self.catalog)
        rounds = 0
        while has_errors(diagnostics) and rounds < self.settings.max_fix_rounds:
            rounds += 1
            logger.info(f"🔧 Auto-fix round {rounds}: {len(errors_only(diagnostics))} error(s)")
            fixed = await self.fix(FixRequest(graph=graph, errors=errors_only(diagnostics)))
            graph, diagnostics = fixed.graph, fixed.diagnostics

        if rounds:
            rationale = (rationale or "Planned workflow") + AUTO_FIX_SUFFIX

        elapsed_ms = (time.time() - start_time) * 1000
        logger.info(
            f"✅ Plan finished in {elapsed_ms:.0f}ms: {len(graph.nodes)} nodes, "
            f"{len(errors_only(diagnostics))} remaining error(s)"
        )
        return PlanResponse(graph=graph, rationale=rationale, diagnostics=diagnostics)

    def _fallback_plan(self, prompt: str, reason: str) -> PlanResponse:
        graph = create_fallback_graph(prompt, self.catalog, self.settings)
        diagnostics = validate_graph(graph, self.catalog)
        if has_errors(diagnostics):
            raise OrchestratorError(
                ErrorCode.LLM_CALL_FAILED,
                f"Model call failed ({reason}) and the fallback workflow is not valid for this catalog"
            )
        return PlanResponse(graph=graph, rationale=FALLBACK_RATIONALE, diagnostics=diagnostics, used_fallback=True)

    async def fix(self, request: FixRequest) -> FixResponse:
        """
        Resolve the given error diagnostics

        Only error-severity diagnostics are considered. With none, the graph
        comes back as an unchanged copy and the model is not called. The
        result is always re-validated; callers decide whether to fix again.
        """
        errors = errors_only(request.errors)
        if not errors:
            graph = request.graph.copy_graph()
            return FixResponse(graph=graph, diagnostics=validate_graph(graph, self.catalog))

        logger.info(f"🔧 Fixing workflow errors: {len(errors)}")
        used_fallback = False
        try:
            graph = await self._request(
                "fix",
                self.prompt_builder.build_fix_prompt(request.graph, errors),
                self.prompt_builder.fix_system(self.tools.specs),
                lambda data: self.parser.parse_graph(data, base=request.graph),
                use_tools=True
            )
        except (LLMClientError, ResponseParseError) as e:
            logger.warning(f"⚠️  Fix via model failed, applying fallback repair: {e}")
            graph = basic_error_fix(request.graph, errors, self.catalog)
            used_fallback = True

        diagnostics = validate_graph(graph, self.catalog)
        return FixResponse(graph=graph, diagnostics=diagnostics, used_fallback=used_fallback)
