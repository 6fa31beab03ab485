"""
Apps Script emission templates, one per node type.

Each template returns the body lines of ``step_<id>_(ctx)``. The value a
step returns becomes ``ctx.outputs[<node id>]`` for downstream nodes.
Types without a dedicated template fall back to a generic template for
their kind.
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from core.catalog import NodeKind, NodeTypeSpec
from core.graph import Node, find_placeholders
from .renderer import ValueRenderer

Emitter = Callable[["EmitContext"], List[str]]


@dataclass
class EmitContext:
    """Everything a template needs to emit one node"""
    node: Node
    spec: Optional[NodeTypeSpec]
    renderer: ValueRenderer
    path: str

    def has(self, name: str) -> bool:
        return self.node.params.get(name) is not None

    def raw(self, name: str, default: Any = None) -> Any:
        value = self.node.params.get(name)
        return default if value is None else value

    def param(self, name: str, default: Any = None) -> str:
        """JavaScript expression for a param, or a literal default when absent"""
        if not self.has(name):
            return json.dumps(default)
        return self.renderer.render(self.node.params[name], f"{self.path}.{name}")

    def params_object(self) -> str:
        return self.renderer.render(dict(self.node.params), self.path)

    def with_aliases(self, aliases: Dict[str, str]) -> "EmitContext":
        renderer = ValueRenderer(
            self.renderer.positions, self.renderer.current_node, self.renderer.report, aliases
        )
        return EmitContext(node=self.node, spec=self.spec, renderer=renderer, path=self.path)

    def check_references(self, name: str):
        """Report unresolvable placeholders in a param evaluated at run time"""
        for ref in find_placeholders(self.node.params.get(name)):
            self.renderer.reference(ref, f"{self.path}.{name}")

    @property
    def secret_name(self) -> Optional[str]:
        if self.spec and self.spec.secrets:
            return self.spec.secrets[0]
        return None


class TemplateRegistry:
    """Maps node type ids to emitters, with per-kind fallbacks"""

    def __init__(self):
        self._by_type: Dict[str, Emitter] = {}
        self._by_kind: Dict[NodeKind, Emitter] = {}

    def register(self, type_id: str):
        def decorator(emitter: Emitter) -> Emitter:
            self._by_type[type_id] = emitter
            return emitter
        return decorator

    def register_kind(self, kind: NodeKind):
        def decorator(emitter: Emitter) -> Emitter:
            self._by_kind[kind] = emitter
            return emitter
        return decorator

    def has_template(self, type_id: str) -> bool:
        return type_id in self._by_type

    def get(self, node: Node) -> Emitter:
        if node.type in self._by_type:
            return self._by_type[node.type]
        return self._by_kind.get(node.kind, _emit_unknown)


templates = TemplateRegistry()


def _emit_unknown(ctx: EmitContext) -> List[str]:
    return [
        f"console.warn('No template for node type {ctx.node.type}; passing params through');",
        f"return {ctx.params_object()};",
    ]


# ----------------------------------------------------------------------
# Triggers
# ----------------------------------------------------------------------

@templates.register("trigger.time.cron")
def _emit_cron(ctx: EmitContext) -> List[str]:
    return ["return { firedAt: new Date().toISOString(), event: ctx.event };"]


@templates.register("trigger.webhook.inbound")
def _emit_webhook(ctx: EmitContext) -> List[str]:
    return ["return ctx.event || {};"]


@templates.register("trigger.gmail.new_email")
def _emit_gmail_new_email(ctx: EmitContext) -> List[str]:
    return [
        f"var query = {ctx.param('query', '')};",
        f"var watchLabel = {ctx.param('watchLabel')};",
        f"var dedupeKey = {ctx.param('dedupeKey', 'id')};",
        "var label = watchLabel ? (GmailApp.getUserLabelByName(watchLabel) || GmailApp.createLabel(watchLabel)) : null;",
        "var items = [];",
        "GmailApp.search(query, 0, 50).forEach(function(thread) {",
        "  thread.getMessages().forEach(function(message) {",
        "    var item = {",
        "      id: message.getId(),",
        "      threadId: thread.getId(),",
        "      from: message.getFrom(),",
        "      to: message.getTo(),",
        "      subject: message.getSubject(),",
        "      body: message.getPlainBody(),",
        "      date: message.getDate().toISOString()",
        "    };",
        f"    var key = {json.dumps(ctx.node.id + ':')} + (item[dedupeKey] || item.id);",
        "    if (isProcessed_(key)) return;",
        "    markProcessed_(key);",
        "    items.push(item);",
        "  });",
        "  if (label) thread.addLabel(label);",
        "});",
        "if (items.length === 0) ctx.halted = true;",
        "return { items: items, count: items.length, first: items[0] || null };",
    ]


@templates.register("trigger.sheets.new_row")
def _emit_sheets_new_row(ctx: EmitContext) -> List[str]:
    return [
        f"var sheetName = {ctx.param('sheetName')};",
        f"var sheet = SpreadsheetApp.openById({ctx.param('spreadsheetId')}).getSheetByName(sheetName);",
        "if (!sheet) throw new Error('Sheet not found: ' + sheetName);",
        f"var stateKey = {json.dumps('last_row_' + ctx.node.id)};",
        "var lastSeen = Number(getStore_().getProperty(stateKey) || 1);",
        "var lastRow = sheet.getLastRow();",
        "var items = [];",
        "if (lastRow > lastSeen) {",
        "  items = sheet.getRange(lastSeen + 1, 1, lastRow - lastSeen, sheet.getLastColumn()).getValues();",
        "}",
        "getStore_().setProperty(stateKey, String(lastRow));",
        "if (items.length === 0) ctx.halted = true;",
        "return { items: items, count: items.length, first: items[0] || null };",
    ]


@templates.register_kind(NodeKind.TRIGGER)
def _emit_generic_trigger(ctx: EmitContext) -> List[str]:
    """Connector triggers poll the app's API for changes"""
    if ctx.secret_name is None:
        return ["return { firedAt: new Date().toISOString(), event: ctx.event };"]
    return [
        f"var result = callConnector_({json.dumps(ctx.node.app)}, {json.dumps('poll_' + ctx.node.function)}, "
        f"{ctx.params_object()}, {json.dumps(ctx.secret_name)});",
        "var items = (result && result.items) || [];",
        f"var dedupeKey = {ctx.param('dedupeKey', 'id')};",
        "items = items.filter(function(item) {",
        f"  var key = {json.dumps(ctx.node.id + ':')} + (item[dedupeKey] || JSON.stringify(item));",
        "  if (isProcessed_(key)) return false;",
        "  markProcessed_(key);",
        "  return true;",
        "});",
        "if (items.length === 0) ctx.halted = true;",
        "return { items: items, count: items.length, first: items[0] || null };",
    ]


# ----------------------------------------------------------------------
# Transforms
# ----------------------------------------------------------------------

@templates.register("transform.filter.expr")
def _emit_filter(ctx: EmitContext) -> List[str]:
    ctx.check_references("expression")
    return [
        f"var passed = evaluateExpression_({json.dumps(str(ctx.raw('expression', 'true')))}, ctx);",
        "if (!passed) ctx.halted = true;",
        "return { passed: passed };",
    ]


@templates.register("transform.text.extract_regex")
def _emit_extract_regex(ctx: EmitContext) -> List[str]:
    return [
        f"var text = toText_({ctx.param('source', '')});",
        f"var flags = String({ctx.param('flags', '')}).replace('g', '');",
        f"var match = new RegExp({ctx.param('pattern')}, flags).exec(text);",
        "return { match: match ? match[0] : null, groups: match ? match.slice(1) : [], found: !!match };",
    ]


@templates.register("transform.template.interpolate")
def _emit_template(ctx: EmitContext) -> List[str]:
    bindings = ctx.raw("bindings", {})
    aliases = {}
    if isinstance(bindings, dict):
        aliases = {str(name): f"bindings[{json.dumps(str(name))}]" for name in bindings}
    templated = ctx.with_aliases(aliases)
    return [
        f"var bindings = {ctx.param('bindings', {})};",
        f"return {{ text: {templated.param('template', '')} }};",
    ]


@templates.register("transform.json.path")
def _emit_json_path(ctx: EmitContext) -> List[str]:
    return [
        f"var data = parseJsonSafe_({ctx.param('source')});",
        f"return {{ value: getPath_(data, {ctx.param('path', '')}) }};",
    ]


@templates.register_kind(NodeKind.TRANSFORM)
def _emit_generic_transform(ctx: EmitContext) -> List[str]:
    return [f"return {ctx.params_object()};"]


# ----------------------------------------------------------------------
# Actions
# ----------------------------------------------------------------------

@templates.register("action.gmail.send")
def _emit_gmail_send(ctx: EmitContext) -> List[str]:
    lines = [
        f"var to = {ctx.param('to')};",
        "var options = {};",
    ]
    if ctx.has("bodyHtml"):
        lines.append(f"options.htmlBody = toText_({ctx.param('bodyHtml')});")
    if ctx.has("cc"):
        lines.append(f"options.cc = {ctx.param('cc')};")
    if ctx.has("bcc"):
        lines.append(f"options.bcc = {ctx.param('bcc')};")
    lines.extend([
        f"GmailApp.sendEmail(to, toText_({ctx.param('subject')}), toText_({ctx.param('bodyText', '')}), options);",
        "return { sent: true, to: to, sentAt: new Date().toISOString() };",
    ])
    return lines


@templates.register("action.sheets.append_row")
def _emit_sheets_append(ctx: EmitContext) -> List[str]:
    return [
        f"var sheetName = {ctx.param('sheetName')};",
        f"var sheet = SpreadsheetApp.openById({ctx.param('spreadsheetId')}).getSheetByName(sheetName);",
        "if (!sheet) throw new Error('Sheet not found: ' + sheetName);",
        f"var values = {ctx.param('values', [])};",
        "sheet.appendRow(Array.isArray(values) ? values : [values]);",
        "return { appended: true, row: sheet.getLastRow() };",
    ]


@templates.register("action.calendar.create_event")
def _emit_calendar_event(ctx: EmitContext) -> List[str]:
    return [
        f"var calendarId = {ctx.param('calendarId', 'primary')};",
        "var calendar = calendarId === 'primary' ? CalendarApp.getDefaultCalendar() : CalendarApp.getCalendarById(calendarId);",
        "if (!calendar) throw new Error('Calendar not found: ' + calendarId);",
        f"var attendees = {ctx.param('attendees', [])};",
        "var event = calendar.createEvent(",
        f"  toText_({ctx.param('title')}),",
        f"  new Date({ctx.param('start')}),",
        f"  new Date({ctx.param('end')}),",
        f"  {{ description: toText_({ctx.param('description', '')}), guests: [].concat(attendees).join(',') }}",
        ");",
        "return { eventId: event.getId(), title: event.getTitle() };",
    ]


@templates.register("action.drive.create_file")
def _emit_drive_file(ctx: EmitContext) -> List[str]:
    lines = [
        f"var file = DriveApp.createFile(toText_({ctx.param('name')}), toText_({ctx.param('content')}), "
        f"{ctx.param('mimeType', 'text/plain')});",
    ]
    if ctx.has("folderId"):
        lines.append(f"file.moveTo(DriveApp.getFolderById({ctx.param('folderId')}));")
    lines.append("return { fileId: file.getId(), url: file.getUrl() };")
    return lines


@templates.register("action.http.request")
def _emit_http_request(ctx: EmitContext) -> List[str]:
    lines = [
        f"var method = String({ctx.param('method', 'GET')}).toLowerCase();",
        "var options = {",
        "  method: method,",
        f"  headers: {ctx.param('headers', {})},",
        "  muteHttpExceptions: true",
        "};",
    ]
    if ctx.has("body"):
        lines.extend([
            f"var body = {ctx.param('body')};",
            "options.payload = typeof body === 'string' ? body : JSON.stringify(body);",
            "if (typeof body !== 'string') options.contentType = 'application/json';",
        ])
    if ctx.has("timeoutSec"):
        # UrlFetchApp has no per-request timeout; the platform limit applies
        timeout = " ".join(str(ctx.raw("timeoutSec")).split())
        lines.append(f"// requested timeout: {timeout}s")
    lines.extend([
        f"var response = UrlFetchApp.fetch({ctx.param('url')}, options);",
        "var status = response.getResponseCode();",
        "if (status >= 400) console.warn('HTTP ' + status + ' from ' + method.toUpperCase() + ' request');",
        "return { status: status, body: parseJsonSafe_(response.getContentText()), headers: response.getAllHeaders() };",
    ])
    return lines


@templates.register("action.slack.post_message")
def _emit_slack_message(ctx: EmitContext) -> List[str]:
    url = ctx.param("webhookUrl") if ctx.has("webhookUrl") else f"getSecret_({json.dumps(ctx.secret_name or 'SLACK_WEBHOOK_URL')})"
    lines = [
        f"var payload = {{ text: toText_({ctx.param('text')}) }};",
    ]
    if ctx.has("channel"):
        lines.append(f"payload.channel = {ctx.param('channel')};")
    lines.extend([
        f"var response = UrlFetchApp.fetch({url}, {{",
        "  method: 'post',",
        "  contentType: 'application/json',",
        "  payload: JSON.stringify(payload),",
        "  muteHttpExceptions: true",
        "});",
        "return { status: response.getResponseCode(), ok: response.getResponseCode() < 300 };",
    ])
    return lines


@templates.register_kind(NodeKind.ACTION)
def _emit_connector_action(ctx: EmitContext) -> List[str]:
    """Connector actions call the app's API through callConnector_"""
    return [
        f"return callConnector_({json.dumps(ctx.node.app)}, {json.dumps(ctx.node.function)}, "
        f"{ctx.params_object()}, {json.dumps(ctx.secret_name)});",
    ]
