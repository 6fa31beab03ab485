"""
Request and response models for the clarify, plan and fix phases.
"""

from typing import List, Dict, Any, Optional
from pydantic import BaseModel, ConfigDict, Field

from core.catalog import Capabilities
from core.graph import NodeGraph
from core.validator import Diagnostic


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)


class ClarifyRequest(_WireModel):
    """Input to the clarify phase"""

    prompt: str = Field(..., description="Natural language description of the desired automation")
    model: Optional[str] = Field(default=None, description="Override for the configured model")
    api_key: Optional[str] = Field(default=None, alias="apiKey", description="Override for the configured API key")


class ClarifyQuestion(_WireModel):
    id: str
    text: str
    type: str = "text"
    required: bool = True


class ClarifyResponse(_WireModel):
    """Either questions for the user or a go-ahead to plan"""

    needs_more_info: bool = Field(..., alias="needsMoreInfo")
    questions: Optional[List[ClarifyQuestion]] = None
    reasoning: Optional[str] = None
    summary: Optional[str] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PlanRequest(_WireModel):
    """Input to the plan phase"""

    prompt: str = Field(..., description="The user's goal")
    answers: Optional[Dict[str, str]] = Field(
        default=None,
        description="Answers to clarification questions keyed by question id"
    )
    capabilities: Optional[Capabilities] = Field(
        default=None,
        description="Capability list; defaults to the orchestrator's catalog"
    )


class PlanResponse(_WireModel):
    graph: NodeGraph
    rationale: str = ""
    diagnostics: List[Diagnostic] = Field(default_factory=list)
    used_fallback: bool = Field(default=False, alias="usedFallback")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "graph": self.graph.to_dict(),
            "rationale": self.rationale,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "usedFallback": self.used_fallback,
        }


class FixRequest(_WireModel):
    """A graph plus the diagnostics to resolve"""

    graph: NodeGraph
    errors: List[Diagnostic] = Field(default_factory=list)


class FixResponse(_WireModel):
    graph: NodeGraph
    diagnostics: List[Diagnostic] = Field(default_factory=list)
    used_fallback: bool = Field(default=False, alias="usedFallback")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "graph": self.graph.to_dict(),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "usedFallback": self.used_fallback,
        }
