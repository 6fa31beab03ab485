"""
Tests for the node type catalog.
"""
import json
import pytest
from pydantic import ValidationError

from core.catalog import Catalog, NodeKind, NodeTypeSpec, TriggerDelivery
from core.catalog.builtin import SCOPE_EXTERNAL_REQUEST, SCOPE_SCRIPTAPP


class TestNodeTypeSpec:
    """Test NodeTypeSpec construction rules."""

    def test_kind_is_inferred_from_id(self):
        spec = NodeTypeSpec.model_validate({"id": "action.demo.ping", "name": "Ping", "app": "Demo"})
        assert spec.kind == NodeKind.ACTION

    def test_transform_with_scopes_is_rejected(self):
        with pytest.raises(ValidationError):
            NodeTypeSpec.model_validate({
                "id": "transform.demo.upper",
                "name": "Upper",
                "app": "Demo",
                "requiredScopes": [SCOPE_EXTERNAL_REQUEST],
            })

    def test_mismatched_kind_is_rejected(self):
        with pytest.raises(ValidationError):
            NodeTypeSpec.model_validate({"id": "action.demo.ping", "name": "Ping", "app": "Demo", "kind": "trigger"})

    def test_delivery_only_on_triggers(self):
        with pytest.raises(ValidationError):
            NodeTypeSpec.model_validate({
                "id": "action.demo.ping", "name": "Ping", "app": "Demo", "delivery": "webhook",
            })

    def test_required_params_and_properties(self, catalog):
        spec = catalog.get_node_type("action.http.request")
        assert spec.required_params == ["method", "url"]
        assert spec.properties["method"]["enum"][0] == "GET"


class TestCatalog:
    """Test Catalog queries."""

    def test_builtin_groups_by_kind(self, catalog):
        node_catalog = catalog.get_node_catalog()

        assert "trigger.time.cron" in node_catalog.triggers
        assert "transform.filter.expr" in node_catalog.transforms
        assert "action.gmail.send" in node_catalog.actions
        assert set(node_catalog.flatten()) == {spec.id for spec in catalog.node_types()}

    def test_transforms_never_require_scopes(self, catalog):
        for spec in catalog.get_node_catalog().transforms.values():
            assert spec.required_scopes == []

    def test_trigger_delivery(self, catalog):
        assert catalog.get_node_type("trigger.webhook.inbound").delivery == TriggerDelivery.WEBHOOK
        assert catalog.get_node_type("trigger.time.cron").delivery == TriggerDelivery.SCHEDULE
        assert catalog.get_node_type("trigger.salesforce.new_record").delivery == TriggerDelivery.POLLING

    def test_connector_node_types_are_generated(self, catalog):
        functions = catalog.get_app_functions("salesforce")

        action_ids = {spec.id for spec in functions["actions"]}
        assert "action.salesforce.create" in action_ids
        assert "action.salesforce.search" in action_ids
        assert len(functions["triggers"]) == 3
        assert catalog.get_node_type("action.salesforce.create").secrets == ["SALESFORCE_API_KEY"]

    def test_get_app_functions_by_display_name(self, catalog):
        functions = catalog.get_app_functions("Google Sheets")
        assert [spec.id for spec in functions["actions"]] == ["action.sheets.append_row"]
        assert [spec.id for spec in functions["triggers"]] == ["trigger.sheets.new_row"]

    def test_get_app_functions_unknown_app(self, catalog):
        assert catalog.get_app_functions("nope") == {"actions": [], "triggers": [], "transforms": []}

    def test_search_apps(self, catalog):
        results = catalog.search_apps("crm")
        assert [app.id for app in results] == ["salesforce", "hubspot"]

    def test_search_apps_empty_query_returns_all_by_popularity(self, catalog):
        results = catalog.search_apps("")
        assert len(results) == len(catalog.apps())
        assert results[0].id == "gmail"

    def test_apps_link_their_node_types(self, catalog):
        gmail = next(app for app in catalog.apps() if app.id == "gmail")
        assert "action.gmail.send" in gmail.node_types

    def test_required_scopes_for_is_an_ordered_union(self, catalog):
        scopes = catalog.required_scopes_for(
            ["trigger.time.cron", "action.http.request", "action.slack.post_message", "unknown.type"]
        )
        assert scopes == [SCOPE_SCRIPTAPP, SCOPE_EXTERNAL_REQUEST]

    def test_capabilities(self, catalog):
        capabilities = catalog.get_capabilities()
        data = capabilities.to_dict()

        assert data["scopesByType"]["action.http.request"] == [SCOPE_EXTERNAL_REQUEST]
        assert data["schemasByType"]["action.http.request"]["required"] == ["method", "url"]

    def test_contains_and_len(self, catalog):
        assert "action.gmail.send" in catalog
        assert "action.nope.nothing" not in catalog
        assert 42 not in catalog
        assert len(catalog) == len(catalog.node_types())

    def test_from_file_merges_over_builtins(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({
            "apps": [{"id": "acme", "name": "Acme", "category": "CRM", "connector": True}],
            "nodeTypes": [{
                "id": "action.acme.ping",
                "name": "Ping Acme",
                "app": "Acme",
                "paramsSchema": {"type": "object", "required": ["host"], "properties": {"host": {"type": "string"}}},
            }],
        }))

        catalog = Catalog.from_file(path)

        assert catalog.has_type("action.acme.ping")
        assert catalog.has_type("action.acme.create")
        assert catalog.has_type("action.gmail.send")
        assert catalog.get_node_type("action.acme.ping").required_params == ["host"]

    def test_from_dict_without_builtins(self):
        catalog = Catalog.from_dict(
            {"nodeTypes": [{"id": "trigger.demo.tick", "name": "Tick", "app": "Demo", "delivery": "schedule"}]},
            include_builtins=False,
        )
        assert len(catalog) == 1
        assert catalog.get_node_type("trigger.demo.tick").kind == NodeKind.TRIGGER
