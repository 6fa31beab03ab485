"""
Built-in node types and apps.

Google Workspace nodes map directly onto Apps Script services. Third-party
connector apps get a generated set of CRUD actions and polling triggers that
call out through UrlFetchApp.
"""

from typing import Any, Dict, List

GOOGLE_AUTH = "https://www.googleapis.com/auth/"

SCOPE_SCRIPTAPP = GOOGLE_AUTH + "script.scriptapp"
SCOPE_WEBAPP = GOOGLE_AUTH + "script.webapp.deploy"
SCOPE_EXTERNAL_REQUEST = GOOGLE_AUTH + "script.external_request"
SCOPE_GMAIL_READONLY = GOOGLE_AUTH + "gmail.readonly"
SCOPE_GMAIL_SEND = GOOGLE_AUTH + "gmail.send"
SCOPE_SHEETS_READONLY = GOOGLE_AUTH + "spreadsheets.readonly"
SCOPE_SHEETS = GOOGLE_AUTH + "spreadsheets"
SCOPE_CALENDAR_EVENTS = GOOGLE_AUTH + "calendar.events"
SCOPE_DRIVE = GOOGLE_AUTH + "drive"


def _schema(properties: Dict[str, Any], required: List[str] = None) -> Dict[str, Any]:
    return {"type": "object", "required": list(required or []), "properties": properties}


BUILTIN_NODE_TYPES: List[Dict[str, Any]] = [
    # Triggers
    {
        "id": "trigger.time.cron",
        "name": "Time-based Trigger",
        "description": "Run the workflow on a fixed schedule",
        "app": "Time",
        "delivery": "schedule",
        "paramsSchema": _schema({
            "everyMinutes": {"type": "number", "minimum": 1, "maximum": 60,
                             "description": "Run every N minutes"},
            "everyHours": {"type": "number", "minimum": 1, "maximum": 24,
                           "description": "Run every N hours"},
            "atHour": {"type": "number", "minimum": 0, "maximum": 23,
                       "description": "Hour of day for daily runs"},
            "cron": {"type": "string", "description": "Cron expression, informational"},
        }),
        "requiredScopes": [SCOPE_SCRIPTAPP],
    },
    {
        "id": "trigger.webhook.inbound",
        "name": "Webhook Trigger",
        "description": "Run the workflow when an HTTP POST reaches the deployed web app",
        "app": "Webhook",
        "delivery": "webhook",
        "paramsSchema": _schema({
            "path": {"type": "string", "description": "Logical webhook path"},
            "secret": {"type": "string", "description": "Shared secret checked on each request"},
        }, ["path"]),
        "requiredScopes": [SCOPE_WEBAPP],
    },
    {
        "id": "trigger.gmail.new_email",
        "name": "New Gmail Email",
        "description": "Poll Gmail for new threads matching a search query",
        "app": "Gmail",
        "delivery": "polling",
        "paramsSchema": _schema({
            "query": {"type": "string", "description": "Gmail search query"},
            "watchLabel": {"type": "string", "description": "Label applied to processed threads"},
            "polling": {"type": "boolean", "default": True},
            "intervalMinutes": {"type": "number", "minimum": 1, "maximum": 60, "default": 15},
            "dedupeKey": {"type": "string", "description": "Field used to skip already seen messages"},
        }, ["query"]),
        "requiredScopes": [SCOPE_GMAIL_READONLY, SCOPE_SCRIPTAPP],
    },
    {
        "id": "trigger.sheets.new_row",
        "name": "New Sheet Row",
        "description": "Poll a sheet for rows added since the last run",
        "app": "Google Sheets",
        "delivery": "polling",
        "paramsSchema": _schema({
            "spreadsheetId": {"type": "string"},
            "sheetName": {"type": "string"},
            "polling": {"type": "boolean", "default": True},
            "intervalMinutes": {"type": "number", "minimum": 1, "maximum": 60, "default": 15},
            "dedupeKey": {"type": "string"},
        }, ["spreadsheetId", "sheetName"]),
        "requiredScopes": [SCOPE_SHEETS_READONLY, SCOPE_SCRIPTAPP],
    },
    # Transforms
    {
        "id": "transform.filter.expr",
        "name": "Filter",
        "description": "Stop the run unless a boolean expression over upstream outputs holds",
        "app": "Core",
        "paramsSchema": _schema({
            "expression": {"type": "string", "description": "JavaScript expression, e.g. {{trigger_1.count}} > 5"},
        }, ["expression"]),
    },
    {
        "id": "transform.text.extract_regex",
        "name": "Extract with Regex",
        "description": "Extract the first regex match and its groups from text",
        "app": "Core",
        "paramsSchema": _schema({
            "source": {"type": "string"},
            "pattern": {"type": "string"},
            "flags": {"type": "string", "default": ""},
        }, ["source", "pattern"]),
    },
    {
        "id": "transform.template.interpolate",
        "name": "Text Template",
        "description": "Render a text template with upstream values",
        "app": "Core",
        "paramsSchema": _schema({
            "template": {"type": "string"},
            "bindings": {"type": "object"},
        }, ["template"]),
    },
    {
        "id": "transform.json.path",
        "name": "JSON Path",
        "description": "Read a dotted path out of a JSON value",
        "app": "Core",
        "paramsSchema": _schema({
            "source": {"type": "string"},
            "path": {"type": "string"},
        }, ["source", "path"]),
    },
    # Actions
    {
        "id": "action.gmail.send",
        "name": "Send Email",
        "description": "Send an email through Gmail",
        "app": "Gmail",
        "paramsSchema": _schema({
            "to": {"type": "string"},
            "subject": {"type": "string"},
            "bodyText": {"type": "string"},
            "bodyHtml": {"type": "string"},
            "cc": {"type": "string"},
            "bcc": {"type": "string"},
        }, ["to", "subject"]),
        "requiredScopes": [SCOPE_GMAIL_SEND],
    },
    {
        "id": "action.sheets.append_row",
        "name": "Append Row",
        "description": "Append a row of values to a sheet",
        "app": "Google Sheets",
        "paramsSchema": _schema({
            "spreadsheetId": {"type": "string"},
            "sheetName": {"type": "string"},
            "values": {"type": "array"},
        }, ["spreadsheetId", "sheetName", "values"]),
        "requiredScopes": [SCOPE_SHEETS],
    },
    {
        "id": "action.calendar.create_event",
        "name": "Create Calendar Event",
        "description": "Create an event in Google Calendar",
        "app": "Google Calendar",
        "paramsSchema": _schema({
            "calendarId": {"type": "string", "default": "primary"},
            "title": {"type": "string"},
            "start": {"type": "string"},
            "end": {"type": "string"},
            "description": {"type": "string"},
            "attendees": {"type": "array"},
        }, ["title", "start", "end"]),
        "requiredScopes": [SCOPE_CALENDAR_EVENTS],
    },
    {
        "id": "action.drive.create_file",
        "name": "Create Drive File",
        "description": "Create a text file in Google Drive",
        "app": "Google Drive",
        "paramsSchema": _schema({
            "name": {"type": "string"},
            "content": {"type": "string"},
            "folderId": {"type": "string"},
            "mimeType": {"type": "string", "default": "text/plain"},
        }, ["name", "content"]),
        "requiredScopes": [SCOPE_DRIVE],
    },
    {
        "id": "action.http.request",
        "name": "HTTP Request",
        "description": "Call an HTTP endpoint with UrlFetchApp",
        "app": "HTTP",
        "paramsSchema": _schema({
            "method": {"type": "string", "enum": ["GET", "POST", "PUT", "DELETE", "PATCH"]},
            "url": {"type": "string"},
            "headers": {"type": "object"},
            "body": {"type": "string"},
            "timeoutSec": {"type": "number", "minimum": 1, "maximum": 300},
        }, ["method", "url"]),
        "requiredScopes": [SCOPE_EXTERNAL_REQUEST],
    },
    {
        "id": "action.slack.post_message",
        "name": "Post Slack Message",
        "description": "Post a message to a Slack incoming webhook",
        "app": "Slack",
        "paramsSchema": _schema({
            "webhookUrl": {"type": "string", "description": "Incoming webhook URL or a secret reference"},
            "channel": {"type": "string"},
            "text": {"type": "string"},
        }, ["text"]),
        "requiredScopes": [SCOPE_EXTERNAL_REQUEST],
        "secrets": ["SLACK_WEBHOOK_URL"],
    },
]

BUILTIN_APPS: List[Dict[str, Any]] = [
    {"id": "gmail", "name": "Gmail", "category": "Communication",
     "description": "Send and receive email", "popularity": 100},
    {"id": "google_sheets", "name": "Google Sheets", "category": "Productivity",
     "description": "Spreadsheets and tabular data", "popularity": 95},
    {"id": "google_calendar", "name": "Google Calendar", "category": "Productivity",
     "description": "Calendar events and scheduling", "popularity": 85},
    {"id": "google_drive", "name": "Google Drive", "category": "Storage",
     "description": "File storage and sharing", "popularity": 80},
    {"id": "slack", "name": "Slack", "category": "Communication",
     "description": "Team chat and channel messaging", "popularity": 90},
    {"id": "http", "name": "HTTP", "category": "Developer",
     "description": "Generic HTTP requests to any API", "popularity": 70, "authType": "none"},
    {"id": "time", "name": "Time", "category": "Core",
     "description": "Schedules and recurring timers", "popularity": 75, "authType": "none"},
    {"id": "webhook", "name": "Webhook", "category": "Developer",
     "description": "Inbound HTTP webhooks", "popularity": 65, "authType": "none"},
    {"id": "core", "name": "Core", "category": "Core",
     "description": "Filters, templates and data transforms", "popularity": 60, "authType": "none"},
    # Connector apps without a native Apps Script service
    {"id": "salesforce", "name": "Salesforce", "category": "CRM",
     "description": "Customer relationship management", "popularity": 78, "connector": True},
    {"id": "hubspot", "name": "HubSpot", "category": "CRM",
     "description": "Marketing and sales CRM", "popularity": 72, "connector": True},
    {"id": "stripe", "name": "Stripe", "category": "Payments",
     "description": "Online payments and invoices", "popularity": 74, "connector": True},
    {"id": "shopify", "name": "Shopify", "category": "E-commerce",
     "description": "Online store orders and products", "popularity": 68, "connector": True},
    {"id": "asana", "name": "Asana", "category": "Project Management",
     "description": "Tasks and projects", "popularity": 60, "connector": True},
    {"id": "trello", "name": "Trello", "category": "Project Management",
     "description": "Boards, lists and cards", "popularity": 58, "connector": True},
    {"id": "notion", "name": "Notion", "category": "Productivity",
     "description": "Docs and databases", "popularity": 66, "connector": True},
    {"id": "airtable", "name": "Airtable", "category": "Database",
     "description": "Spreadsheet-database hybrid", "popularity": 62, "connector": True},
]

CONNECTOR_ACTIONS = ["create", "update", "delete", "list", "get", "search"]
CONNECTOR_TRIGGERS = ["new_record", "updated_record", "deleted_record"]

_ACTION_COMPLEXITY = {
    "create": "simple",
    "update": "medium",
    "delete": "simple",
    "list": "simple",
    "get": "simple",
    "search": "medium",
}


def connector_action_schema(app_name: str, action: str) -> Dict[str, Any]:
    properties: Dict[str, Any] = {}
    required: List[str] = []
    if action in ("create", "update"):
        properties["data"] = {"type": "object", "description": f"Data to {action} in {app_name}"}
        required.append("data")
    if action in ("get", "update", "delete"):
        properties["id"] = {"type": "string", "description": f"Record ID in {app_name}"}
        required.append("id")
    if action in ("search", "list"):
        properties["query"] = {"type": "string", "description": f"Search query for {app_name}"}
        properties["limit"] = {"type": "number", "minimum": 1, "default": 100}
    return _schema(properties, required)


def connector_trigger_schema(app_name: str) -> Dict[str, Any]:
    return _schema({
        "polling": {"type": "boolean", "default": True,
                    "description": f"Enable polling for {app_name} changes"},
        "intervalMinutes": {"type": "number", "minimum": 1, "maximum": 60, "default": 15},
        "filter": {"type": "string", "description": f"Filter criteria for {app_name} records"},
        "dedupeKey": {"type": "string"},
    }, ["polling"])


def connector_node_types(app: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Generate generic CRUD actions and polling triggers for a connector app."""
    slug = app["id"].lower().replace(" ", "_")
    secret = f"{slug.upper()}_API_KEY"
    node_types: List[Dict[str, Any]] = []

    for action in CONNECTOR_ACTIONS:
        node_types.append({
            "id": f"action.{slug}.{action}",
            "name": f"{action.capitalize()} {app['name']}",
            "description": f"{action.capitalize()} data in {app['name']}",
            "app": app["name"],
            "paramsSchema": connector_action_schema(app["name"], action),
            "requiredScopes": [SCOPE_EXTERNAL_REQUEST],
            "complexity": _ACTION_COMPLEXITY[action],
            "secrets": [secret],
        })

    for trigger in CONNECTOR_TRIGGERS:
        readable = trigger.replace("_", " ")
        node_types.append({
            "id": f"trigger.{slug}.{trigger}",
            "name": f"{app['name']} {readable}",
            "description": f"Trigger when {readable} in {app['name']}",
            "app": app["name"],
            "delivery": "polling",
            "paramsSchema": connector_trigger_schema(app["name"]),
            "requiredScopes": [SCOPE_EXTERNAL_REQUEST, SCOPE_SCRIPTAPP],
            "complexity": "medium",
            "secrets": [secret],
        })

    return node_types
