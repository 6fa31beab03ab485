"""
NodeGraph -> Google Apps Script compiler.

Emits a self-contained Apps Script project: entry points in ``main.gs``,
one step function per node in ``nodes.gs``, shared runtime in
``helpers.gs``, constants and secret declarations in ``config.gs``, the
``appsscript.json`` manifest and a README.
"""

import json
import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from core.catalog import Catalog, NodeKind, TriggerDelivery
from core.config import Settings, settings as default_settings
from core.graph import Node, NodeGraph, reachable_from, stable_topological_order
from .base import BaseCompiler, CompilerReport
from .gas_runtime import GET_SECRET_GS, HELPERS_GS
from .models import BundleStats, CodeFile, CompileResult
from .renderer import ValueRenderer
from .templates import EmitContext, templates

logger = logging.getLogger(__name__)

ENTRY_FILE = "main.gs"

# Intervals accepted by ClockTriggerBuilder
ALLOWED_MINUTE_INTERVALS = (1, 5, 10, 15, 30)
ALLOWED_HOUR_INTERVALS = (1, 2, 4, 6, 8, 12)


class AppsScriptCompiler(BaseCompiler):
    """
    Compiler: NodeGraph → Apps Script bundle

    The graph is expected to have passed validation; structural problems
    are not re-checked here.
    """

    def __init__(self, catalog: Optional[Catalog] = None, app_settings: Optional[Settings] = None):
        super().__init__()
        self.catalog = catalog or Catalog.builtin()
        self.settings = app_settings or default_settings

    def compile(self, graph: NodeGraph) -> CompileResult:
        """
        Main compilation method for NodeGraph → Apps Script

        Args:
            graph: A validated NodeGraph

        Returns:
            CompileResult with files, entry, stats and the compiler report
        """
        report = CompilerReport()

        # 1) Global execution order and per-node names
        edges = graph.edge_pairs()
        order = stable_topological_order(graph.node_ids(), edges)
        nodes_by_id = {node.id: node for node in graph.nodes}
        identifiers = self._identifier_map(order)
        positions = {node_id: index for index, node_id in enumerate(order)}

        # 2) Partition triggers by delivery
        triggers = [nodes_by_id[node_id] for node_id in order if nodes_by_id[node_id].kind == NodeKind.TRIGGER]
        webhooks = [node for node in triggers if self._delivery(node) == TriggerDelivery.WEBHOOK]
        timed = [node for node in triggers if self._delivery(node) != TriggerDelivery.WEBHOOK]

        # 3) Secrets: declared on the graph plus those the node types need
        secrets = self._collect_secrets(report, graph, webhooks, identifiers)

        # 4) Emit files
        files = [
            CodeFile(ENTRY_FILE, self._emit_main(report, graph, order, edges, triggers, webhooks, timed, identifiers)),
            CodeFile("nodes.gs", self._emit_nodes(report, graph, order, nodes_by_id, identifiers, positions)),
            CodeFile("helpers.gs", HELPERS_GS),
            CodeFile("config.gs", self._emit_config(graph, secrets)),
            CodeFile("appsscript.json", self._emit_manifest(graph, bool(webhooks))),
            CodeFile("README.md", self._emit_readme(graph, order, nodes_by_id, webhooks, timed, secrets)),
        ]

        stats = self._scan_stats(files)
        logger.info(
            f"🛠️ Compiled graph '{graph.id}' to {stats.file_count} files, {stats.line_count} lines "
            f"(webhook={stats.has_webhook}, scheduled={stats.has_scheduled})"
        )
        if report.has_warnings:
            logger.warning(f"⚠️ Compiler reported {len(report.warnings)} warnings for graph '{graph.id}'")

        return CompileResult(files=files, entry=ENTRY_FILE, stats=stats, report=report)

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def _delivery(self, node: Node) -> TriggerDelivery:
        spec = self.catalog.get_node_type(node.type)
        if spec is not None and spec.delivery is not None:
            return spec.delivery
        if node.type.startswith("trigger.time."):
            return TriggerDelivery.SCHEDULE
        if node.type.startswith("trigger.webhook."):
            return TriggerDelivery.WEBHOOK
        return TriggerDelivery.POLLING

    @staticmethod
    def _webhook_secret_name(identifier: str) -> str:
        return f"WEBHOOK_SECRET_{identifier.upper()}"

    def _collect_secrets(
        self, report: CompilerReport, graph: NodeGraph, webhooks: List[Node], identifiers: Dict[str, str]
    ) -> List[str]:
        secrets: List[str] = list(dict.fromkeys(graph.secrets))
        for secret in self.catalog.secrets_for(graph.node_types()):
            if secret not in secrets:
                report.add_warning(
                    "SECRET_NOT_DECLARED",
                    "secrets",
                    f"Secret {secret} is used by the graph but not listed in its secrets",
                    hint=f"Set the {secret} script property before running"
                )
                secrets.append(secret)
        for node in webhooks:
            if node.params.get("secret") is None:
                continue
            name = self._webhook_secret_name(identifiers[node.id])
            if name not in secrets:
                secrets.append(name)
            report.add_hint(
                f"Store the shared secret for webhook '{node.id}' in the {name} script property"
            )
        return secrets

    def _schedule_chain(self, report: CompilerReport, node: Node, path: str) -> str:
        """ClockTriggerBuilder calls (after ``.timeBased()``) for one trigger"""
        params = node.params
        if self._delivery(node) == TriggerDelivery.SCHEDULE:
            at_hour = self._number(params.get("atHour"))
            if at_hour is not None:
                hour = min(23, max(0, int(at_hour)))
                if hour != params.get("atHour"):
                    report.add_repair(f"{path}.params.atHour", params.get("atHour"), hour, "Hour must be 0-23")
                return f".everyDays(1).atHour({hour})"
            if params.get("everyMinutes") is not None:
                return self._minutes_chain(report, params.get("everyMinutes"), f"{path}.params.everyMinutes")
            if params.get("everyHours") is not None:
                return self._hours_chain(report, params.get("everyHours"), f"{path}.params.everyHours")
            if params.get("cron") is not None:
                report.add_warning(
                    "CRON_NOT_SUPPORTED",
                    f"{path}.params.cron",
                    "Apps Script time-based triggers do not accept cron expressions",
                    hint="Use everyMinutes, everyHours or atHour"
                )
            return self._minutes_chain(report, None, f"{path}.params.everyMinutes")
        return self._minutes_chain(report, params.get("intervalMinutes"), f"{path}.params.intervalMinutes")

    @staticmethod
    def _number(value: Any) -> Optional[float]:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return value

    def _minutes_chain(self, report: CompilerReport, value: Any, path: str) -> str:
        minutes = self._number(value)
        if minutes is None:
            minutes = self.settings.fallback_interval_minutes
            report.add_warning(
                "SCHEDULE_DEFAULTED",
                path,
                f"No usable interval ({value!r}); running every {minutes} minutes",
            )
        wanted = max(1, math.ceil(minutes))
        if wanted > ALLOWED_MINUTE_INTERVALS[-1]:
            chain = self._hours_chain(report, math.ceil(wanted / 60), path)
            report.add_repair(path, value, chain, "Intervals above 30 minutes run hourly")
            return chain
        chosen = next(allowed for allowed in ALLOWED_MINUTE_INTERVALS if allowed >= wanted)
        if value is not None and chosen != value:
            report.add_repair(path, value, chosen, "Apps Script allows every 1, 5, 10, 15 or 30 minutes")
        return f".everyMinutes({chosen})"

    def _hours_chain(self, report: CompilerReport, value: Any, path: str) -> str:
        hours = self._number(value)
        if hours is None:
            return self._minutes_chain(report, None, path)
        wanted = max(1, math.ceil(hours))
        if wanted > ALLOWED_HOUR_INTERVALS[-1]:
            report.add_repair(path, value, "everyDays(1)", "Intervals above 12 hours run daily")
            return ".everyDays(1)"
        chosen = next(allowed for allowed in ALLOWED_HOUR_INTERVALS if allowed >= wanted)
        if chosen != value:
            report.add_repair(path, value, chosen, "Apps Script allows every 1, 2, 4, 6, 8 or 12 hours")
        return f".everyHours({chosen})"

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def _emit_main(
        self,
        report: CompilerReport,
        graph: NodeGraph,
        order: List[str],
        edges: List[Tuple[str, str]],
        triggers: List[Node],
        webhooks: List[Node],
        timed: List[Node],
        identifiers: Dict[str, str],
    ) -> str:
        lines = [
            "/**",
            f" * {self.js_comment(graph.name or graph.id)}",
            f" * Workflow {self.js_comment(graph.id)} (version {graph.version})",
            " *",
            " * Generated file. Change the workflow graph and recompile instead of editing.",
            " */",
            "",
            "/**",
            " * Manual run: executes every node in order.",
            " */",
            "function executeWorkflow() {",
            "  return runSteps_(createContext_(null, null), EXECUTION_ORDER_);",
            "}",
        ]

        for trigger in triggers:
            reachable = reachable_from(trigger.id, edges)
            steps = [node_id for node_id in order if node_id in reachable]
            lines += [
                "",
                f"function run_{identifiers[trigger.id]}_(event) {{",
                f"  return runSteps_(createContext_({self.js_literal(trigger.id)}, event), {self.js_literal(steps)});",
                "}",
            ]

        if webhooks:
            lines += [""] + self._emit_do_post(webhooks, identifiers)
        if timed:
            lines += [""] + self._emit_setup_triggers(report, graph, timed, identifiers)

        return "\n".join(lines) + "\n"

    def _emit_do_post(self, webhooks: List[Node], identifiers: Dict[str, str]) -> List[str]:
        routes = []
        for node in webhooks:
            ident = identifiers[node.id]
            secret = "null"
            if node.params.get("secret") is not None:
                secret = self.js_literal(self._webhook_secret_name(ident))
            route_path = node.params.get("path")
            if not isinstance(route_path, str):
                route_path = ""
            routes.append(
                f"    {{ nodeId: {self.js_literal(node.id)}, path: {self.js_literal(route_path)}, "
                f"secretName: {secret}, run: run_{ident}_ }}"
            )

        lines = [
            "/**",
            " * Web app entry point for inbound webhooks.",
            " * With several webhooks, select one with ?path=<path>.",
            " */",
            "function doPost(e) {",
            "  var event = parseRequestBody_(e);",
            "  var params = (e && e.parameter) || {};",
            "  var routes = [",
            ",\n".join(routes),
            "  ];",
            "  var route = routes.length === 1 ? routes[0] : routes.filter(function(r) {",
            "    return r.path === params.path;",
            "  })[0];",
            "  if (!route) {",
            "    return jsonResponse_({ ok: false, error: 'No webhook for path: ' + params.path });",
            "  }",
            "  if (route.secretName && (params.secret || event.secret) !== getSecret_(route.secretName)) {",
            "    return jsonResponse_({ ok: false, error: 'Invalid webhook secret' });",
            "  }",
            "  try {",
            "    var result = route.run(event);",
            "    return jsonResponse_({ ok: true, executionId: result.executionId, halted: result.halted });",
            "  } catch (error) {",
            "    return jsonResponse_({ ok: false, error: error.message });",
            "  }",
            "}",
        ]
        return lines

    def _emit_setup_triggers(
        self, report: CompilerReport, graph: NodeGraph, timed: List[Node], identifiers: Dict[str, str]
    ) -> List[str]:
        index_of = {node.id: index for index, node in enumerate(graph.nodes)}
        lines = [
            "/**",
            " * Run once after deployment to (re)install the time-based triggers.",
            " */",
            "function setupTriggers() {",
            "  ScriptApp.getProjectTriggers().forEach(function(trigger) {",
            "    if (trigger.getHandlerFunction().indexOf('scheduled_') === 0) {",
            "      ScriptApp.deleteTrigger(trigger);",
            "    }",
            "  });",
        ]
        for node in timed:
            chain = self._schedule_chain(report, node, f"nodes[{index_of[node.id]}]")
            handler = f"scheduled_{identifiers[node.id]}"
            lines.append(f"  ScriptApp.newTrigger('{handler}').timeBased(){chain}.create();")
        lines.append("}")

        for node in timed:
            ident = identifiers[node.id]
            lines += [
                "",
                f"function scheduled_{ident}() {{",
                f"  return run_{ident}_(null);",
                "}",
            ]
        return lines

    def _emit_nodes(
        self,
        report: CompilerReport,
        graph: NodeGraph,
        order: List[str],
        nodes_by_id: Dict[str, Node],
        identifiers: Dict[str, str],
        positions: Dict[str, int],
    ) -> str:
        index_of = {node.id: index for index, node in enumerate(graph.nodes)}
        lines = [
            "/**",
            " * One step function per node. A step's return value is stored as",
            " * ctx.outputs[<node id>] for the nodes after it.",
            " */",
        ]

        for node_id in order:
            node = nodes_by_id[node_id]
            spec = self.catalog.get_node_type(node.type)
            if spec is None:
                report.add_warning(
                    "UNKNOWN_NODE_TYPE",
                    f"nodes[{index_of[node_id]}].type",
                    f"No catalog entry for {node.type}",
                )
            renderer = ValueRenderer(positions, node_id, report)
            ctx = EmitContext(node=node, spec=spec, renderer=renderer, path=f"nodes[{index_of[node_id]}].params")
            body = templates.get(node)(ctx)

            lines += ["", "/**"]
            if node.label:
                lines.append(f" * {self.js_comment(node.label)}")
            lines.append(f" * {self.js_comment(node.id)} ({self.js_comment(node.type)})")
            if node.note:
                lines.append(f" * {self.js_comment(node.note)}")
            lines += [" */", f"function step_{identifiers[node_id]}_(ctx) {{"]
            lines += [f"  {line}" for line in body]
            lines.append("}")

        steps = ",\n".join(f"  {self.js_literal(node_id)}: step_{identifiers[node_id]}_" for node_id in order)
        lines += [
            "",
            "var STEPS_ = {",
            steps,
            "};",
            "",
            f"var EXECUTION_ORDER_ = {self.js_literal(order)};",
        ]
        return "\n".join(lines) + "\n"

    def _emit_config(self, graph: NodeGraph, secrets: List[str]) -> str:
        declarations = ",\n".join(f"  {self.js_literal(name)}: null" for name in secrets)
        lines = [
            "/**",
            " * Workflow constants and secret declarations.",
            " * Secret values are never stored in source. Set them under",
            " * Project Settings > Script properties.",
            " */",
            "",
            f"var WORKFLOW_ID = {self.js_literal(graph.id)};",
            f"var WORKFLOW_NAME = {self.js_literal(graph.name)};",
            f"var WORKFLOW_VERSION = {self.js_literal(graph.version)};",
            "",
            "var SECRETS_ = {" + ("\n" + declarations + "\n" if secrets else ""),
            "};",
            "",
            GET_SECRET_GS,
        ]
        return "\n".join(lines)

    def _emit_manifest(self, graph: NodeGraph, has_webhook: bool) -> str:
        manifest: Dict[str, Any] = {
            "timeZone": self.settings.script_time_zone,
            "dependencies": {},
            "exceptionLogging": "STACKDRIVER",
            "runtimeVersion": "V8",
        }
        if graph.scopes:
            manifest["oauthScopes"] = list(dict.fromkeys(graph.scopes))
        if has_webhook:
            manifest["webapp"] = {"executeAs": "USER_DEPLOYING", "access": "ANYONE_ANONYMOUS"}
        return json.dumps(manifest, indent=2) + "\n"

    def _emit_readme(
        self,
        graph: NodeGraph,
        order: List[str],
        nodes_by_id: Dict[str, Node],
        webhooks: List[Node],
        timed: List[Node],
        secrets: List[str],
    ) -> str:
        description = graph.metadata.get("description") if isinstance(graph.metadata, dict) else None
        lines = [f"# {graph.name or graph.id}", ""]
        if description:
            lines += [str(description), ""]
        lines += [
            f"Workflow `{graph.id}`, version {graph.version}.",
            "",
            "## Files",
            "",
            "- `main.gs`: entry points",
            "- `nodes.gs`: one step function per node",
            "- `helpers.gs`: shared runtime helpers",
            "- `config.gs`: workflow constants and secret declarations",
            "- `appsscript.json`: project manifest",
            "",
            "## Setup",
            "",
            "1. Create an Apps Script project and copy these files into it.",
        ]
        step = 2
        if secrets:
            lines.append(f"{step}. Add these script properties: {', '.join(f'`{name}`' for name in secrets)}.")
            step += 1
        if webhooks:
            lines.append(f"{step}. Deploy as a web app and send POST requests to its URL.")
            step += 1
            for node in webhooks:
                path = node.params.get("path")
                if isinstance(path, str) and len(webhooks) > 1:
                    lines.append(f"   - `{node.id}`: add `?path={path}` to the URL")
        if timed:
            lines.append(f"{step}. Run `setupTriggers` once to install the time-based triggers.")
            step += 1
        lines.append(f"{step}. Run `executeWorkflow` to test every step manually.")

        lines += ["", "## Nodes", "", "| Order | Node | Type | Label |", "|---|---|---|---|"]
        for position, node_id in enumerate(order, start=1):
            node = nodes_by_id[node_id]
            label = (node.label or "").replace("|", "\\|")
            lines.append(f"| {position} | `{node.id}` | `{node.type}` | {label} |")

        if graph.scopes:
            lines += ["", "## OAuth scopes", ""]
            lines += [f"- {scope}" for scope in graph.scopes]
        return "\n".join(lines) + "\n"

    @staticmethod
    def _scan_stats(files: List[CodeFile]) -> BundleStats:
        scripts = [code_file.content for code_file in files if code_file.name.endswith(".gs")]
        return BundleStats(
            file_count=len(files),
            line_count=sum(code_file.line_count for code_file in files),
            has_webhook=any("function doPost(" in content for content in scripts),
            has_scheduled=any(".timeBased()" in content for content in scripts),
        )


def compile_graph(graph: NodeGraph, catalog: Optional[Catalog] = None,
                  app_settings: Optional[Settings] = None) -> CompileResult:
    """Compile a NodeGraph (or its dict form) with a fresh compiler"""
    if isinstance(graph, dict):
        graph = NodeGraph.from_dict(graph)
    return AppsScriptCompiler(catalog, app_settings).compile(graph)
