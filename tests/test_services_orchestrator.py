"""
Tests for the orchestrator phases, tools and fallbacks.
"""
import copy
import pytest

from core.catalog.builtin import SCOPE_EXTERNAL_REQUEST, SCOPE_SCRIPTAPP
from core.graph import NodeGraph
from core.validator import Diagnostic, errors_only, validate_graph
from services.orchestrator import (
    AUTO_FIX_SUFFIX,
    FALLBACK_RATIONALE,
    ClarifyRequest,
    ErrorCode,
    FixRequest,
    LLMClientError,
    LLMTools,
    Orchestrator,
    OrchestratorError,
    PlanRequest,
    basic_error_fix,
    create_fallback_graph,
)
from services.orchestrator.fallback import placeholder_value
from services.orchestrator.templates import TOOL_BUDGET_EXHAUSTED


@pytest.fixture
def make_orchestrator(catalog, test_settings, scripted_model):
    def factory(replies, **overrides):
        app_settings = test_settings.model_copy(update=overrides) if overrides else test_settings
        model = scripted_model(replies)
        return Orchestrator(catalog, model=model, app_settings=app_settings), model
    return factory


@pytest.fixture
def broken_graph(schedule_graph):
    """The schedule graph with the HTTP node's url removed."""
    graph = copy.deepcopy(schedule_graph)
    del graph["nodes"][1]["params"]["url"]
    return graph


class TestClarify:
    """Test the clarify phase."""

    @pytest.mark.asyncio
    async def test_ask_questions_keeps_at_most_two(self, make_orchestrator):
        orchestrator, model = make_orchestrator([{
            "action": "ask_questions",
            "questions": ["Which sheet?", {"text": "Which channel?"}, "How often?"],
            "reasoning": "Targets are unclear",
        }])

        response = await orchestrator.clarify(ClarifyRequest(prompt="Post sheet updates to Slack"))

        assert response.needs_more_info is True
        assert [q.id for q in response.questions] == ["clarify_0", "clarify_1"]
        assert [q.text for q in response.questions] == ["Which sheet?", "Which channel?"]
        assert response.reasoning == "Targets are unclear"
        assert model.calls[0]["context"]["phase"] == "clarify"

    @pytest.mark.asyncio
    async def test_proceed_clamps_confidence(self, make_orchestrator):
        orchestrator, _ = make_orchestrator([
            '```json\n{"action": "proceed_to_planning", "confidence": 1.7, "summary": "Daily digest"}\n```'
        ])

        response = await orchestrator.clarify(ClarifyRequest(prompt="Email me a digest every day at 8am"))

        assert response.needs_more_info is False
        assert response.confidence == 1.0
        assert response.summary == "Daily digest"
        assert response.to_dict() == {"needsMoreInfo": False, "summary": "Daily digest", "confidence": 1.0}

    @pytest.mark.asyncio
    async def test_proceed_default_confidence(self, make_orchestrator):
        orchestrator, _ = make_orchestrator([{"action": "proceed_to_planning", "summary": "ok"}])
        response = await orchestrator.clarify(ClarifyRequest(prompt="Do the thing"))
        assert response.confidence == 0.8

    @pytest.mark.asyncio
    async def test_model_failure_is_clarification_failed(self, make_orchestrator):
        orchestrator, _ = make_orchestrator([LLMClientError("boom")])

        with pytest.raises(OrchestratorError) as exc_info:
            await orchestrator.clarify(ClarifyRequest(prompt="Anything"))
        assert exc_info.value.code == ErrorCode.CLARIFICATION_FAILED

    @pytest.mark.asyncio
    async def test_unusable_replies_are_retried_then_fail(self, make_orchestrator):
        orchestrator, model = make_orchestrator([{"action": "dance"}, "no json here"])

        with pytest.raises(OrchestratorError) as exc_info:
            await orchestrator.clarify(ClarifyRequest(prompt="Anything"))

        assert exc_info.value.code == ErrorCode.CLARIFICATION_FAILED
        assert len(model.calls) == 2
        assert "could not be used" in model.calls[1]["prompt"]

    @pytest.mark.asyncio
    async def test_empty_prompt_is_rejected_without_model_call(self, make_orchestrator):
        orchestrator, model = make_orchestrator([])

        with pytest.raises(OrchestratorError) as exc_info:
            await orchestrator.clarify(ClarifyRequest(prompt="   "))

        assert exc_info.value.code == ErrorCode.INVALID_PROMPT
        assert exc_info.value.to_dict()["message"] == "Prompt cannot be empty"
        assert model.calls == []


class TestPlan:
    """Test the plan phase."""

    @pytest.mark.asyncio
    async def test_valid_plan(self, make_orchestrator, schedule_graph):
        orchestrator, model = make_orchestrator([{"graph": schedule_graph, "rationale": "Fetch then notify"}])

        response = await orchestrator.plan(PlanRequest(prompt="Post item counts to Slack"))

        assert response.used_fallback is False
        assert response.rationale == "Fetch then notify"
        assert response.diagnostics == []
        assert response.graph.node_ids() == ["trigger_1", "fetch", "notify"]
        assert "Node catalog:" in model.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_answers_are_included_in_prompt(self, make_orchestrator, schedule_graph):
        orchestrator, model = make_orchestrator([{"graph": schedule_graph}])

        await orchestrator.plan(PlanRequest(prompt="Notify me", answers={"clarify_0": "Every 15 minutes"}))

        assert "- clarify_0: Every 15 minutes" in model.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_missing_name_is_filled(self, make_orchestrator, schedule_graph):
        schedule_graph["name"] = ""
        orchestrator, _ = make_orchestrator([{"graph": schedule_graph}])

        response = await orchestrator.plan(PlanRequest(prompt="Post item counts to Slack"))

        assert response.graph.name == "Automation: Post item counts to Slack"
        assert response.diagnostics == []

    @pytest.mark.asyncio
    async def test_fallback_when_model_unavailable(self, make_orchestrator):
        orchestrator, _ = make_orchestrator([LLMClientError("unreachable")])

        response = await orchestrator.plan(PlanRequest(prompt="send a Slack message every morning at 9am"))

        assert response.used_fallback is True
        assert response.rationale == FALLBACK_RATIONALE
        assert errors_only(response.diagnostics) == []
        trigger = response.graph.nodes[0]
        assert trigger.type == "trigger.time.cron"
        assert trigger.params["everyMinutes"] == 15
        assert response.graph.metadata["fallback"] is True

    @pytest.mark.asyncio
    async def test_fallback_after_unusable_replies(self, make_orchestrator):
        orchestrator, model = make_orchestrator(["I would build a workflow", {"rationale": "no graph"}])

        response = await orchestrator.plan(PlanRequest(prompt="Sync invoices"))

        assert response.used_fallback is True
        assert len(model.calls) == 2

    @pytest.mark.asyncio
    async def test_auto_fix_appends_suffix(self, make_orchestrator, broken_graph, schedule_graph):
        orchestrator, model = make_orchestrator([
            {"graph": broken_graph, "rationale": "Fetch then notify"},
            {"graph": schedule_graph},
        ])

        response = await orchestrator.plan(PlanRequest(prompt="Post item counts to Slack"))

        assert response.rationale == "Fetch then notify" + AUTO_FIX_SUFFIX
        assert response.diagnostics == []
        assert model.calls[1]["context"]["phase"] == "fix"
        assert "nodes[1].params.url: Missing required parameter: url (error)" in model.calls[1]["prompt"]

    @pytest.mark.asyncio
    async def test_auto_fix_falls_back_to_basic_repair(self, make_orchestrator, broken_graph):
        orchestrator, _ = make_orchestrator([{"graph": broken_graph, "rationale": "Fetch then notify"}])

        response = await orchestrator.plan(PlanRequest(prompt="Post item counts to Slack"))

        assert response.graph.nodes[1].params["url"] == "REPLACE_WITH_URL"
        assert errors_only(response.diagnostics) == []
        assert response.rationale.endswith(AUTO_FIX_SUFFIX)

    @pytest.mark.asyncio
    async def test_fix_rounds_are_bounded(self, make_orchestrator, broken_graph):
        unfixable = copy.deepcopy(broken_graph)
        unfixable["nodes"][1]["type"] = "action.nowhere.fly"
        orchestrator, model = make_orchestrator(
            [{"graph": unfixable}, {"graph": unfixable}, {"graph": unfixable}],
            max_fix_rounds=2,
        )

        response = await orchestrator.plan(PlanRequest(prompt="Anything"))

        assert len(model.calls) == 3
        assert errors_only(response.diagnostics)

    @pytest.mark.asyncio
    async def test_tool_calls_are_served(self, make_orchestrator, schedule_graph):
        orchestrator, model = make_orchestrator([
            {"tool": "searchApps", "arguments": {"query": "slack"}},
            {"graph": schedule_graph, "rationale": "done"},
        ])

        response = await orchestrator.plan(PlanRequest(prompt="Post to Slack"))

        assert response.rationale == "done"
        transcript = model.calls[1]["context"]["transcript"]
        assert transcript[0]["role"] == "assistant"
        assert transcript[1]["content"].startswith("Tool result for searchApps:")
        assert '"slack"' in transcript[1]["content"]

    @pytest.mark.asyncio
    async def test_tool_budget_is_enforced(self, make_orchestrator, schedule_graph):
        tool_call = {"tool": "getNodeCatalog", "arguments": {}}
        orchestrator, model = make_orchestrator(
            [tool_call, tool_call, tool_call, {"graph": schedule_graph}],
            max_tool_calls=2,
        )

        response = await orchestrator.plan(PlanRequest(prompt="Anything"))

        assert response.used_fallback is False
        assert len(model.calls) == 4
        assert model.calls[3]["context"]["transcript"][-1]["content"] == TOOL_BUDGET_EXHAUSTED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("break_graph,expected_error", [
        (lambda g: g["nodes"][2].pop("type"), "nodes[2].type: Node type is required (error)"),
        (lambda g: g["edges"][1].pop("to"), "edges[1].to: Edge target is required (error)"),
    ])
    async def test_incomplete_model_graph_is_auto_fixed(
        self, make_orchestrator, schedule_graph, break_graph, expected_error
    ):
        incomplete = copy.deepcopy(schedule_graph)
        break_graph(incomplete)
        orchestrator, model = make_orchestrator([
            {"graph": incomplete, "rationale": "Fetch then notify"},
            {"graph": schedule_graph},
        ])

        response = await orchestrator.plan(PlanRequest(prompt="Post item counts to Slack"))

        assert response.used_fallback is False
        assert response.rationale == "Fetch then notify" + AUTO_FIX_SUFFIX
        assert response.diagnostics == []
        assert model.calls[1]["context"]["phase"] == "fix"
        assert expected_error in model.calls[1]["prompt"]

    @pytest.mark.asyncio
    async def test_invalid_prompt(self, make_orchestrator):
        orchestrator, _ = make_orchestrator([])
        with pytest.raises(OrchestratorError) as exc_info:
            await orchestrator.plan(PlanRequest(prompt="x" * 60000))
        assert exc_info.value.code == ErrorCode.INVALID_PROMPT


class TestFix:
    """Test the fix phase."""

    @pytest.mark.asyncio
    async def test_no_errors_returns_equivalent_graph(self, make_orchestrator, schedule_graph):
        orchestrator, model = make_orchestrator([])
        graph = NodeGraph.from_dict(schedule_graph)

        response = await orchestrator.fix(FixRequest(graph=graph, errors=[]))

        assert response.graph.to_dict() == graph.to_dict()
        assert response.graph is not graph
        assert response.diagnostics == []
        assert model.calls == []

    @pytest.mark.asyncio
    async def test_warnings_alone_do_not_call_model(self, make_orchestrator, schedule_graph):
        orchestrator, model = make_orchestrator([])
        warning = Diagnostic.from_dict({"path": "scopes", "message": "Unnecessary scope: x", "severity": "warn"})

        await orchestrator.fix(FixRequest(graph=NodeGraph.from_dict(schedule_graph), errors=[warning]))

        assert model.calls == []

    @pytest.mark.asyncio
    async def test_model_fix_is_revalidated(self, make_orchestrator, catalog, broken_graph, schedule_graph):
        orchestrator, _ = make_orchestrator([{"graph": schedule_graph}])
        errors = errors_only(validate_graph(broken_graph, catalog))

        response = await orchestrator.fix(FixRequest(graph=NodeGraph.from_dict(broken_graph), errors=errors))

        assert response.used_fallback is False
        assert response.diagnostics == []

    @pytest.mark.asyncio
    async def test_fallback_repair(self, make_orchestrator, catalog, broken_graph):
        orchestrator, _ = make_orchestrator([LLMClientError("down")])
        broken_graph["scopes"] = [SCOPE_SCRIPTAPP]
        errors = errors_only(validate_graph(broken_graph, catalog))

        response = await orchestrator.fix(FixRequest(graph=NodeGraph.from_dict(broken_graph), errors=errors))

        assert response.used_fallback is True
        assert SCOPE_EXTERNAL_REQUEST in response.graph.scopes
        assert response.diagnostics == []

    @pytest.mark.asyncio
    async def test_fix_keeps_graph_identity(self, make_orchestrator, catalog, broken_graph, schedule_graph):
        reply = {key: value for key, value in schedule_graph.items() if key not in ("id", "name")}
        orchestrator, _ = make_orchestrator([{"graph": reply}])
        errors = errors_only(validate_graph(broken_graph, catalog))

        response = await orchestrator.fix(FixRequest(graph=NodeGraph.from_dict(broken_graph), errors=errors))

        assert response.graph.id == "wf_schedule"
        assert response.graph.name == "Item digest"
        assert response.diagnostics == []


class TestFallbacks:
    """Test the deterministic fallbacks."""

    def test_fallback_graph_validates(self, catalog, test_settings):
        graph = create_fallback_graph("x" * 80, catalog, test_settings)

        assert validate_graph(graph, catalog) == []
        assert graph.name == "Automation: " + "x" * 50 + "..."
        assert graph.id.startswith("workflow_")
        assert graph.edge_pairs() == [("trigger_1", "action_1")]
        assert graph.nodes[1].params == {"method": "GET", "url": "https://api.example.com/data"}

    def test_fallback_interval_comes_from_settings(self, catalog, test_settings):
        app_settings = test_settings.model_copy(update={"fallback_interval_minutes": 30})
        graph = create_fallback_graph("Sync", catalog, app_settings)
        assert graph.nodes[0].params == {"everyMinutes": 30}

    @pytest.mark.parametrize("schema,expected", [
        ({"default": 7}, 7),
        ({"enum": ["GET", "POST"]}, "GET"),
        ({"type": "number", "minimum": 5}, 5),
        ({"type": "integer"}, 1),
        ({"type": "boolean"}, False),
        ({"type": "array"}, []),
        ({"type": "object"}, {}),
        ({"type": "string"}, "REPLACE_WITH_TITLE"),
    ])
    def test_placeholder_value(self, schema, expected):
        assert placeholder_value(schema, "title") == expected

    def test_basic_error_fix_does_not_mutate_input(self, catalog, broken_graph):
        graph = NodeGraph.from_dict(broken_graph)
        errors = errors_only(validate_graph(graph, catalog))

        fixed = basic_error_fix(graph, errors, catalog)

        assert "url" not in graph.nodes[1].params
        assert fixed.nodes[1].params["url"] == "REPLACE_WITH_URL"

    def test_basic_error_fix_locates_node_by_id(self, catalog, broken_graph):
        graph = NodeGraph.from_dict(broken_graph)
        error = Diagnostic.from_dict({
            "path": "", "nodeId": "fetch", "message": "Missing required parameter: url", "severity": "error",
        })

        fixed = basic_error_fix(graph, [error], catalog)

        assert fixed.get_node("fetch").params["url"] == "REPLACE_WITH_URL"


class TestTools:
    """Test the tool surface."""

    def test_validate_graph_tool(self, catalog, broken_graph):
        result = LLMTools(catalog).execute("validateGraph", {"graph": broken_graph})
        assert result == [{
            "path": "nodes[1].params.url",
            "nodeId": "fetch",
            "message": "Missing required parameter: url",
            "severity": "error",
        }]

    def test_get_app_functions_tool(self, catalog):
        result = LLMTools(catalog).execute("getAppFunctions", {"appName": "gmail"})
        assert [spec["id"] for spec in result["actions"]] == ["action.gmail.send"]

    def test_get_node_catalog_tool(self, catalog):
        result = LLMTools(catalog).execute("getNodeCatalog", {})
        assert "trigger.time.cron" in result["triggers"]

    def test_unknown_tool(self, catalog):
        result = LLMTools(catalog).execute("launchRockets", {})
        assert result["error"].startswith("Unknown tool: launchRockets")
