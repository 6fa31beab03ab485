"""
Workflow orchestrator

Clarify, plan and fix phases backed by a language model, with deterministic
fallbacks when the model is unavailable.
"""

from .orchestrator import Orchestrator, AUTO_FIX_SUFFIX
from .ai_client import LanguageModel, AnthropicClient
from .errors import ErrorCode, OrchestratorError, LLMClientError, ResponseParseError
from .models import (
    ClarifyRequest,
    ClarifyQuestion,
    ClarifyResponse,
    PlanRequest,
    PlanResponse,
    FixRequest,
    FixResponse,
)
from .tools import LLMTools, TOOL_SPECS
from .fallback import create_fallback_graph, basic_error_fix, FALLBACK_RATIONALE

__all__ = [
    "Orchestrator",
    "AUTO_FIX_SUFFIX",
    "LanguageModel",
    "AnthropicClient",
    "ErrorCode",
    "OrchestratorError",
    "LLMClientError",
    "ResponseParseError",
    "ClarifyRequest",
    "ClarifyQuestion",
    "ClarifyResponse",
    "PlanRequest",
    "PlanResponse",
    "FixRequest",
    "FixResponse",
    "LLMTools",
    "TOOL_SPECS",
    "create_fallback_graph",
    "basic_error_fix",
    "FALLBACK_RATIONALE",
]
