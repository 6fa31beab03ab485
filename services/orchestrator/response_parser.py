"""
Response Parser for the orchestrator

Turns raw model replies into JSON objects and then into phase results.
"""

import json
import logging
import re
import uuid
from typing import Any, Dict, Optional, Tuple

from core.graph import NodeGraph
from .errors import ResponseParseError
from .models import ClarifyQuestion, ClarifyResponse

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?\s*\n?|\n?```")

MAX_CLARIFY_QUESTIONS = 2
DEFAULT_CONFIDENCE = 0.8


class ResponseParser:
    """
    Parses model replies for the clarify, plan and fix phases.

    Every ``parse_*`` method raises ResponseParseError when the reply cannot
    be used, which the orchestrator counts as one failed attempt.
    """

    def extract_json(self, text: str) -> Dict[str, Any]:
        """
        Parse a JSON object out of a reply

        Tries the whole reply (with code fences stripped) first, then the
        substring between the first ``{`` and the last ``}``.
        """
        if not isinstance(text, str) or not text.strip():
            raise ResponseParseError("Empty response from model")

        cleaned = _CODE_FENCE.sub("", text).strip()
        try:
            parsed = json.loads(cleaned)
        except json.JSONDecodeError:
            json_start = cleaned.find("{")
            json_end = cleaned.rfind("}") + 1
            if json_start == -1 or json_end <= json_start:
                raise ResponseParseError("No JSON object found in model response")
            try:
                parsed = json.loads(cleaned[json_start:json_end])
            except json.JSONDecodeError as e:
                raise ResponseParseError(f"Invalid JSON in model response: {e}")

        if not isinstance(parsed, dict):
            raise ResponseParseError(f"Expected a JSON object, got {type(parsed).__name__}")
        return parsed

    def parse_tool_call(self, text: str) -> Optional[Tuple[str, Dict[str, Any]]]:
        """Return ``(tool, arguments)`` if the reply is a tool call, otherwise None"""
        try:
            data = self.extract_json(text)
        except ResponseParseError:
            return None
        tool = data.get("tool")
        if not isinstance(tool, str) or "graph" in data:
            return None
        arguments = data.get("arguments")
        return tool, arguments if isinstance(arguments, dict) else {}

    # ------------------------------------------------------------------
    # Phase results
    # ------------------------------------------------------------------

    def parse_clarify(self, data: Dict[str, Any]) -> ClarifyResponse:
        action = data.get("action")

        if action == "ask_questions":
            raw_questions = data.get("questions")
            if not isinstance(raw_questions, list) or not raw_questions:
                raise ResponseParseError("ask_questions reply has no questions")
            texts = []
            for question in raw_questions:
                text = question.get("text") if isinstance(question, dict) else question
                if isinstance(text, str) and text.strip():
                    texts.append(text.strip())
            if not texts:
                raise ResponseParseError("ask_questions reply has no usable question text")
            if len(texts) > MAX_CLARIFY_QUESTIONS:
                logger.info(f"Model asked {len(texts)} questions; keeping the first {MAX_CLARIFY_QUESTIONS}")
            questions = [
                ClarifyQuestion(id=f"clarify_{i}", text=text)
                for i, text in enumerate(texts[:MAX_CLARIFY_QUESTIONS])
            ]
            reasoning = data.get("reasoning")
            return ClarifyResponse(
                needs_more_info=True,
                questions=questions,
                reasoning=reasoning if isinstance(reasoning, str) else ""
            )

        if action == "proceed_to_planning":
            summary = data.get("summary")
            return ClarifyResponse(
                needs_more_info=False,
                summary=summary if isinstance(summary, str) else "",
                confidence=self._confidence(data.get("confidence"))
            )

        raise ResponseParseError(f"Unrecognised clarify action: {action!r}")

    def _confidence(self, value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return DEFAULT_CONFIDENCE
        return min(1.0, max(0.0, float(value)))

    def parse_graph(self, data: Dict[str, Any], base: Optional[NodeGraph] = None) -> NodeGraph:
        """
        Coerce ``{"graph": {...}}`` (or a bare graph object) into a NodeGraph

        Nodes or edges with missing fields are kept so that validation can
        report them. When ``base`` is given (a graph being fixed), a reply
        without ``id``, ``name`` or ``version`` inherits them from it.
        """
        graph_data = data.get("graph", data)
        if not isinstance(graph_data, dict) or not isinstance(graph_data.get("nodes"), list):
            raise ResponseParseError("Reply does not contain a graph")
        try:
            graph = NodeGraph.from_dict(graph_data)
        except ValueError as e:
            raise ResponseParseError(f"Graph does not match the NodeGraph shape: {e}")
        if base is not None:
            if not graph.id:
                graph.id = base.id
            if not graph.name:
                graph.name = base.name
            if graph_data.get("version") is None:
                graph.version = base.version
        if not graph.id:
            graph.id = f"workflow_{uuid.uuid4().hex[:12]}"
        return graph

    def parse_plan(self, data: Dict[str, Any]) -> Tuple[NodeGraph, str]:
        graph = self.parse_graph(data)
        rationale = data.get("rationale")
        return graph, rationale if isinstance(rationale, str) else ""
