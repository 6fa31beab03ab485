"""
Tests for the graph validator.
"""
import copy
import json
import pytest

from core.catalog.builtin import SCOPE_DRIVE, SCOPE_EXTERNAL_REQUEST, SCOPE_SCRIPTAPP
from core.graph import NodeGraph
from core.validator import (
    Diagnostic,
    DiagnosticCode,
    Rule,
    RuleRegistry,
    Severity,
    create_rule_registry,
    errors_only,
    has_errors,
    passes,
    summarize,
    validate_graph,
    validation_to_json,
    warnings_only,
)


def _messages(diagnostics):
    return [d.message for d in diagnostics]


class TestValidGraphs:
    """Graphs that should pass."""

    def test_schedule_graph_passes(self, catalog, schedule_graph):
        assert validate_graph(schedule_graph, catalog) == []

    def test_webhook_graph_passes(self, catalog, webhook_graph):
        assert validate_graph(webhook_graph, catalog) == []

    def test_accepts_node_graph_instances(self, catalog, schedule_graph):
        assert validate_graph(NodeGraph.from_dict(schedule_graph), catalog) == []

    def test_validation_is_pure(self, catalog, schedule_graph):
        before = copy.deepcopy(schedule_graph)
        first = validate_graph(schedule_graph, catalog)
        second = validate_graph(schedule_graph, catalog)

        assert schedule_graph == before
        assert first == second


class TestShape:
    """Top-level field checks."""

    def test_non_object_graph(self, catalog):
        diagnostics = validate_graph(["not", "a", "graph"], catalog)

        assert len(diagnostics) == 1
        assert diagnostics[0].message == "Graph must be an object"

    def test_missing_fields(self, catalog):
        diagnostics = validate_graph({"nodes": [], "edges": []}, catalog)
        messages = _messages(diagnostics)

        assert "Graph ID is required" in messages
        assert "Graph name is required" in messages
        assert "Scopes must be an array of strings" in messages
        assert all(d.severity == Severity.ERROR for d in diagnostics)

    def test_wrong_field_types(self, catalog, schedule_graph):
        schedule_graph["version"] = 0
        schedule_graph["scopes"] = "all"
        diagnostics = validate_graph(schedule_graph, catalog)
        paths = [d.path for d in diagnostics]

        assert "version" in paths
        assert "scopes" in paths


class TestNodeIds:
    """Node id presence and uniqueness."""

    def test_missing_node_id(self, catalog, schedule_graph):
        del schedule_graph["nodes"][1]["id"]
        diagnostics = validate_graph(schedule_graph, catalog)

        missing = [d for d in diagnostics if d.code == DiagnosticCode.MISSING_NODE_ID]
        assert [d.path for d in missing] == ["nodes[1].id"]

    @pytest.mark.parametrize("copies", [2, 3])
    def test_duplicate_id_reported_once(self, catalog, schedule_graph, copies):
        for _ in range(copies - 1):
            schedule_graph["nodes"].append(
                {"id": "fetch", "type": "action.http.request", "params": {"url": "https://x"}}
            )
        diagnostics = validate_graph(schedule_graph, catalog)

        duplicates = [d for d in diagnostics if d.code == DiagnosticCode.DUPLICATE_NODE_ID]
        assert len(duplicates) == 1
        assert duplicates[0].node_id == "fetch"
        assert duplicates[0].path == "nodes[3].id"
        assert f"appears {copies} times" in duplicates[0].message


class TestAcyclic:
    """Cycle detection."""

    def test_three_node_cycle_gives_one_error(self, catalog, schedule_graph):
        schedule_graph["edges"].append({"from": "notify", "to": "trigger_1"})
        diagnostics = validate_graph(schedule_graph, catalog)

        cycles = [d for d in diagnostics if d.code == DiagnosticCode.CYCLE_DETECTED]
        assert len(cycles) == 1
        assert cycles[0].path == "edges"
        assert cycles[0].message.startswith("Graph contains a cycle involving nodes:")

    def test_dag_has_no_cycle_error(self, catalog, schedule_graph):
        diagnostics = validate_graph(schedule_graph, catalog)
        assert not any(d.code == DiagnosticCode.CYCLE_DETECTED for d in diagnostics)

    def test_self_loop(self, catalog, schedule_graph):
        schedule_graph["edges"].append({"from": "fetch", "to": "fetch"})
        cycles = [d for d in validate_graph(schedule_graph, catalog) if d.code == DiagnosticCode.CYCLE_DETECTED]
        assert len(cycles) == 1


class TestNodeTypes:
    """Node type existence."""

    def test_unknown_type(self, catalog, schedule_graph):
        schedule_graph["nodes"][1]["type"] = "action.nowhere.fly"
        diagnostics = validate_graph(schedule_graph, catalog)

        unknown = [d for d in diagnostics if d.code == DiagnosticCode.UNKNOWN_NODE_TYPE]
        assert len(unknown) == 1
        assert unknown[0].path == "nodes[1].type"
        assert unknown[0].node_id == "fetch"
        assert unknown[0].message == "Unknown node type: action.nowhere.fly"

    def test_missing_type(self, catalog, schedule_graph):
        del schedule_graph["nodes"][0]["type"]
        messages = _messages(validate_graph(schedule_graph, catalog))
        assert "Node type is required" in messages


class TestParams:
    """Param schema conformance."""

    def test_missing_required_param_then_fixed(self, catalog, schedule_graph):
        del schedule_graph["nodes"][1]["params"]["url"]
        diagnostics = validate_graph(schedule_graph, catalog)

        missing = [d for d in diagnostics if d.code == DiagnosticCode.MISSING_PARAM]
        assert len(missing) == 1
        assert missing[0].path == "nodes[1].params.url"
        assert missing[0].message == "Missing required parameter: url"

        schedule_graph["nodes"][1]["params"]["url"] = "https://api.example.com/other"
        assert validate_graph(schedule_graph, catalog) == []

    def test_null_counts_as_missing(self, catalog, schedule_graph):
        schedule_graph["nodes"][1]["params"]["url"] = None
        assert "Missing required parameter: url" in _messages(validate_graph(schedule_graph, catalog))

    def test_type_mismatch(self, catalog, schedule_graph):
        schedule_graph["nodes"][0]["params"]["everyMinutes"] = "often"
        diagnostics = validate_graph(schedule_graph, catalog)

        assert [(d.path, d.message) for d in errors_only(diagnostics)] == [
            ("nodes[0].params.everyMinutes", "Expected number, got string")
        ]

    def test_boolean_is_not_a_number(self, catalog, schedule_graph):
        schedule_graph["nodes"][0]["params"]["everyMinutes"] = True
        assert "Expected number, got boolean" in _messages(validate_graph(schedule_graph, catalog))

    def test_enum_violation(self, catalog, schedule_graph):
        schedule_graph["nodes"][1]["params"]["method"] = "FETCH"
        diagnostics = errors_only(validate_graph(schedule_graph, catalog))

        assert len(diagnostics) == 1
        assert diagnostics[0].message.startswith("Value must be one of: GET, POST")

    def test_numeric_bounds(self, catalog, schedule_graph):
        schedule_graph["nodes"][0]["params"]["everyMinutes"] = 0
        assert "Value must be >= 1" in _messages(validate_graph(schedule_graph, catalog))

        schedule_graph["nodes"][0]["params"]["everyMinutes"] = 90
        assert "Value must be <= 60" in _messages(validate_graph(schedule_graph, catalog))

    def test_pure_placeholder_satisfies_any_kind(self, catalog, schedule_graph):
        schedule_graph["nodes"][1]["params"]["method"] = "{{trigger_1.method}}"
        schedule_graph["nodes"][0]["params"]["everyMinutes"] = "{{config.interval}}"
        assert validate_graph(schedule_graph, catalog) == []

    def test_params_must_be_object(self, catalog, schedule_graph):
        schedule_graph["nodes"][1]["params"] = ["https://x"]
        assert "Params must be an object" in _messages(validate_graph(schedule_graph, catalog))


class TestScopes:
    """Symmetric scope checks."""

    def test_missing_scope_is_error(self, catalog, schedule_graph):
        schedule_graph["scopes"] = [SCOPE_SCRIPTAPP]
        diagnostics = validate_graph(schedule_graph, catalog)

        assert [(d.path, d.message, d.severity) for d in diagnostics] == [
            ("scopes", f"Missing required scope: {SCOPE_EXTERNAL_REQUEST}", Severity.ERROR)
        ]

    def test_extra_scope_is_warning(self, catalog, schedule_graph):
        schedule_graph["scopes"].append(SCOPE_DRIVE)
        diagnostics = validate_graph(schedule_graph, catalog)

        assert passes(diagnostics)
        assert [(d.message, d.severity) for d in diagnostics] == [
            (f"Unnecessary scope: {SCOPE_DRIVE}", Severity.WARN)
        ]


class TestEdges:
    """Edge endpoint integrity."""

    def test_unknown_endpoint(self, catalog, schedule_graph):
        schedule_graph["edges"].append({"from": "notify", "to": "ghost"})
        diagnostics = validate_graph(schedule_graph, catalog)

        assert [(d.path, d.message) for d in diagnostics] == [
            ("edges[2].to", "Edge references unknown node: ghost")
        ]

    def test_missing_endpoint(self, catalog, schedule_graph):
        schedule_graph["edges"].append({"to": "notify"})
        assert "Edge source is required" in _messages(validate_graph(schedule_graph, catalog))


class TestRegistryAndOutput:
    """Rule registry and JSON output."""

    def test_default_pass_order(self):
        ids = [rule.id for rule in create_rule_registry().get_rules()]
        assert ids == ["shape", "node_ids", "acyclic", "node_types", "params", "scopes", "edges"]

    def test_custom_registry(self, catalog, schedule_graph):
        registry = RuleRegistry()
        registry.register_rule(Rule(
            id="always",
            description="Always warns",
            check=lambda doc, cat: [Diagnostic(path="", message="hello", severity=Severity.WARN)],
        ))
        diagnostics = validate_graph(schedule_graph, catalog, registry)
        assert _messages(diagnostics) == ["hello"]

    def test_diagnostic_wire_shape(self):
        diagnostic = Diagnostic(path="nodes[0].type", message="Unknown node type: x", node_id="a")
        assert diagnostic.to_dict() == {
            "path": "nodes[0].type", "nodeId": "a", "message": "Unknown node type: x", "severity": "error",
        }
        assert Diagnostic.from_dict(diagnostic.to_dict()) == diagnostic
        assert "nodeId" not in Diagnostic(path="scopes", message="m").to_dict()

    def test_summary_helpers(self, catalog, schedule_graph):
        schedule_graph["scopes"] = [SCOPE_DRIVE]
        diagnostics = validate_graph(schedule_graph, catalog)

        assert has_errors(diagnostics)
        assert len(errors_only(diagnostics)) == 2
        assert len(warnings_only(diagnostics)) == 1
        assert summarize(diagnostics)["passed"] is False

    def test_validation_to_json(self, catalog, schedule_graph):
        report = json.loads(validation_to_json(validate_graph(schedule_graph, catalog), graph_id="wf_schedule"))

        assert report["success"] is True
        assert report["graphId"] == "wf_schedule"
        assert report["summary"]["total_errors"] == 0
