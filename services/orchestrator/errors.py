"""
Error types raised by the orchestrator and its model client.
"""

from enum import Enum


class ErrorCode(str, Enum):
    CLARIFICATION_FAILED = "CLARIFICATION_FAILED"
    LLM_CALL_FAILED = "LLM_CALL_FAILED"
    INVALID_PROMPT = "INVALID_PROMPT"


class OrchestratorError(Exception):
    """A phase failure with a stable machine-readable code"""

    def __init__(self, code: ErrorCode, message: str):
        self.code = ErrorCode(code)
        self.message = message
        super().__init__(f"{self.code.value}: {message}")

    def to_dict(self):
        return {"code": self.code.value, "message": self.message}


class LLMClientError(RuntimeError):
    """The language model could not be reached or returned an unusable HTTP response"""


class ResponseParseError(ValueError):
    """The model replied, but the content could not be used for the current phase"""
