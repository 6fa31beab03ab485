"""
Pytest configuration and fixtures for the workflow pipeline tests.
"""
import json
import pytest
from typing import Any, Dict, List, Optional

from core.catalog import Catalog
from core.catalog.builtin import (
    SCOPE_EXTERNAL_REQUEST,
    SCOPE_SCRIPTAPP,
    SCOPE_SHEETS,
    SCOPE_WEBAPP,
)
from core.config import Settings
from services.orchestrator import LanguageModel, LLMClientError


class ScriptedModel(LanguageModel):
    """Replays canned replies in order; exceptions in the script are raised."""

    def __init__(self, replies: List[Any]):
        self.replies = list(replies)
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, prompt: str, context: Optional[Dict[str, Any]] = None) -> str:
        self.calls.append({"prompt": prompt, "context": context or {}})
        if not self.replies:
            raise LLMClientError("No scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply if isinstance(reply, str) else json.dumps(reply)


@pytest.fixture(scope="session")
def catalog():
    """The built-in catalog."""
    return Catalog.builtin()


@pytest.fixture
def test_settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        anthropic_api_key="test-key",
        llm_max_retries=2,
        llm_base_backoff_seconds=0.0,
        llm_max_backoff_seconds=0.0,
    )


@pytest.fixture
def scripted_model():
    """Factory for a ScriptedModel with the given replies."""
    return ScriptedModel


@pytest.fixture
def schedule_graph() -> Dict[str, Any]:
    """Timer -> HTTP fetch -> Slack message."""
    return {
        "id": "wf_schedule",
        "name": "Item digest",
        "version": 1,
        "nodes": [
            {"id": "trigger_1", "type": "trigger.time.cron", "label": "Every 15 minutes",
             "params": {"everyMinutes": 15}},
            {"id": "fetch", "type": "action.http.request", "label": "Fetch items",
             "params": {"method": "GET", "url": "https://api.example.com/items"}},
            {"id": "notify", "type": "action.slack.post_message", "label": "Post summary",
             "params": {"text": "Got {{fetch.body.count}} items"}},
        ],
        "edges": [
            {"from": "trigger_1", "to": "fetch"},
            {"from": "fetch", "to": "notify"},
        ],
        "scopes": [SCOPE_SCRIPTAPP, SCOPE_EXTERNAL_REQUEST],
        "secrets": ["SLACK_WEBHOOK_URL"],
    }


@pytest.fixture
def webhook_graph() -> Dict[str, Any]:
    """Inbound webhook -> append a sheet row."""
    return {
        "id": "wf_webhook",
        "name": "Log orders",
        "version": 1,
        "nodes": [
            {"id": "hook", "type": "trigger.webhook.inbound", "params": {"path": "/orders"}},
            {"id": "log_row", "type": "action.sheets.append_row",
             "params": {"spreadsheetId": "sheet123", "sheetName": "Orders",
                        "values": ["{{hook.orderId}}", "{{hook.total}}"]}},
        ],
        "edges": [{"from": "hook", "to": "log_row"}],
        "scopes": [SCOPE_WEBAPP, SCOPE_SHEETS],
        "secrets": [],
    }
