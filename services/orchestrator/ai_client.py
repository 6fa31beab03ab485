"""
Language model clients for the orchestrator.

``LanguageModel`` is the seam the orchestrator depends on; ``AnthropicClient``
implements it over the Anthropic messages API with bounded transport
retries. Tests substitute a scripted model.
"""

import logging
import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
from httpx import HTTPStatusError
from tenacity import (
    AsyncRetrying,
    RetryError,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
    before_sleep_log
)

from core.config import Settings, settings as default_settings
from core.logging_config import get_logger, get_llm_logger
from .errors import LLMClientError

logger = get_logger(__name__)
llm_logger = get_llm_logger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504, 529}


def _is_retryable(exception: BaseException) -> bool:
    """Retry on rate limits, server errors, connection failures and timeouts"""
    if isinstance(exception, HTTPStatusError):
        return exception.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exception, (httpx.ConnectError, httpx.TimeoutException))


class LanguageModel(ABC):
    """A text-in, text-out model collaborator"""

    @abstractmethod
    async def generate(self, prompt: str, context: Optional[Dict[str, Any]] = None) -> str:
        """
        Produce the model's reply

        Args:
            prompt: The user turn for this phase
            context: ``system`` prompt, tool ``transcript`` and ``phase`` name

        Returns:
            Raw reply text

        Raises:
            LLMClientError: if the model cannot be reached
        """


class AnthropicClient(LanguageModel):
    """Client for the Anthropic messages API"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        app_settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.settings = app_settings or default_settings
        self.api_key = api_key or self.settings.anthropic_api_key
        self.model = model or self.settings.llm_model
        self.base_url = self.settings.llm_base_url
        self._http_client = http_client

        if not self.api_key:
            logger.warning("No Anthropic API key provided - model calls will fail and plan/fix will use fallbacks")

    def _build_messages(self, prompt: str, context: Dict[str, Any]) -> List[Dict[str, str]]:
        messages = [{"role": "user", "content": prompt}]
        for turn in context.get("transcript", []):
            messages.append({"role": turn["role"], "content": turn["content"]})
        return messages

    def _build_payload(self, prompt: str, context: Dict[str, Any]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.settings.llm_max_tokens,
            "messages": self._build_messages(prompt, context),
        }
        if context.get("system"):
            payload["system"] = context["system"]
        return payload

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": "2023-06-01"
        }
        if self._http_client is not None:
            response = await self._http_client.post(self.base_url, headers=headers, json=payload)
        else:
            async with httpx.AsyncClient(timeout=self.settings.llm_timeout_seconds) as client:
                response = await client.post(self.base_url, headers=headers, json=payload)
        response.raise_for_status()
        return response

    async def generate(self, prompt: str, context: Optional[Dict[str, Any]] = None) -> str:
        """Call the messages API, retrying transient failures with exponential backoff"""
        if not self.api_key:
            raise LLMClientError("Anthropic API key is required for model access")

        context = context or {}
        request_id = str(uuid.uuid4())[:8]
        payload = self._build_payload(prompt, context)
        llm_logger.log_llm_request(model=self.model, prompt=prompt, request_id=request_id,
                                   phase=context.get("phase"))

        start_time = time.time()
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.llm_max_retries),
            wait=wait_exponential(
                multiplier=self.settings.llm_base_backoff_seconds,
                min=self.settings.llm_base_backoff_seconds,
                max=self.settings.llm_max_backoff_seconds
            ),
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep_log(logger, logging.INFO),
            reraise=True
        )

        try:
            response = await retrying(self._post, payload)
            result = response.json()
            response_text = "".join(
                block.get("text", "") for block in result.get("content", []) if block.get("type") == "text"
            )
        except HTTPStatusError as e:
            message = f"HTTP {e.response.status_code} from model API"
            llm_logger.log_llm_error(model=self.model, error=message, request_id=request_id)
            raise LLMClientError(message) from e
        except (httpx.HTTPError, RetryError) as e:
            llm_logger.log_llm_error(model=self.model, error=str(e), request_id=request_id)
            raise LLMClientError(f"Model API request failed: {e}") from e
        except (ValueError, KeyError, AttributeError) as e:
            llm_logger.log_llm_error(model=self.model, error=f"Malformed API response: {e}", request_id=request_id)
            raise LLMClientError(f"Malformed model API response: {e}") from e

        llm_logger.log_llm_response(
            model=self.model,
            response=response_text,
            request_id=request_id,
            duration_ms=(time.time() - start_time) * 1000
        )
        return response_text
