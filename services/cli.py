"""
Command line interface for the workflow pipeline.

Usage:
    nodegraph validate graph.json [--safety]
    nodegraph compile graph.json --out build/
    nodegraph clarify "Email me when a new row lands in my sheet"
    nodegraph plan "Post to Slack every morning" --answers answers.json --out graph.json
    nodegraph fix graph.json --out fixed.json
    nodegraph catalog search sheets
    nodegraph catalog functions gmail
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from core.catalog import Catalog
from core.config import settings
from core.graph import NodeGraph
from core.logging_config import configure_logging_from_settings
from core.validator import check_safety, errors_only, validate_graph, validation_to_json
from services.compiler import AppsScriptCompiler
from services.orchestrator import (
    ClarifyRequest,
    FixRequest,
    Orchestrator,
    OrchestratorError,
    PlanRequest,
)

logger = logging.getLogger(__name__)


def load_json_file(file_path: str) -> Any:
    """Load and parse a JSON file"""
    try:
        with open(file_path, 'r') as f:
            return json.load(f)
    except FileNotFoundError:
        logger.error(f"File not found: {file_path}")
        sys.exit(1)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in {file_path}: {e}")
        sys.exit(1)


def write_output(data: Dict[str, Any], file_path: Optional[str] = None):
    """Write JSON to a file, or to stdout when no file is given"""
    text = json.dumps(data, indent=2)
    if not file_path:
        print(text)
        return
    Path(file_path).write_text(text + "\n")
    logger.info(f"💾 Output saved to: {file_path}")


def load_catalog() -> Catalog:
    if settings.catalog_path:
        logger.info(f"📚 Loading catalog from {settings.catalog_path}")
        return Catalog.from_file(settings.catalog_path)
    return Catalog.builtin()


def cmd_validate(args) -> int:
    doc = load_json_file(args.graph)
    catalog = load_catalog()
    diagnostics = validate_graph(doc, catalog)
    safety = check_safety(doc, catalog) if args.safety else None
    graph_id = doc.get("id") if isinstance(doc, dict) else None
    print(validation_to_json(diagnostics, graph_id=graph_id, safety=safety))
    return 1 if errors_only(diagnostics) else 0


def cmd_compile(args) -> int:
    doc = load_json_file(args.graph)
    catalog = load_catalog()

    errors = errors_only(validate_graph(doc, catalog))
    if errors:
        logger.error(f"❌ Graph has {len(errors)} validation errors; not compiling")
        for error in errors:
            logger.error(f"  {error.path}: {error.message}")
        return 1

    result = AppsScriptCompiler(catalog).compile(NodeGraph.from_dict(doc))
    if args.out:
        out_dir = Path(args.out)
        out_dir.mkdir(parents=True, exist_ok=True)
        for code_file in result.files:
            (out_dir / code_file.name).write_text(code_file.content)
        logger.info(f"📦 Wrote {len(result.files)} files to {out_dir}")
        for warning in result.report.warnings:
            logger.warning(f"  {warning['path']}: {warning['message']}")
    else:
        write_output(result.to_dict(include_details=True))
    return 0


async def cmd_clarify(args) -> int:
    orchestrator = Orchestrator(load_catalog())
    response = await orchestrator.clarify(ClarifyRequest(prompt=args.prompt, model=args.model))
    write_output(response.to_dict())
    return 0


async def cmd_plan(args) -> int:
    answers = load_json_file(args.answers) if args.answers else None
    orchestrator = Orchestrator(load_catalog())
    response = await orchestrator.plan(PlanRequest(prompt=args.prompt, answers=answers))
    if response.used_fallback:
        logger.warning("⚠️ Planning used the fallback graph")
    write_output(response.to_dict(), args.out)
    return 1 if errors_only(response.diagnostics) else 0


async def cmd_fix(args) -> int:
    doc = load_json_file(args.graph)
    catalog = load_catalog()
    errors = errors_only(validate_graph(doc, catalog))
    orchestrator = Orchestrator(catalog)
    response = await orchestrator.fix(FixRequest(graph=NodeGraph.from_dict(doc), errors=errors))
    write_output(response.to_dict(), args.out)
    return 1 if errors_only(response.diagnostics) else 0


def cmd_catalog(args) -> int:
    catalog = load_catalog()
    if args.catalog_command == "search":
        apps = catalog.search_apps(args.query or "")
        write_output({"apps": [app.to_dict() for app in apps]})
        return 0
    if args.catalog_command == "functions":
        functions = catalog.get_app_functions(args.app)
        write_output({kind: [spec.to_dict() for spec in specs] for kind, specs in functions.items()})
        return 0
    write_output(catalog.get_node_catalog().to_dict())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nodegraph",
        description="Natural language to Apps Script workflow pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check a graph against the catalog, including guardrails
  nodegraph validate graph.json --safety

  # Plan a graph and compile it
  nodegraph plan "Post new Gmail invoices to Slack" --out graph.json
  nodegraph compile graph.json --out build/
        """
    )
    subparsers = parser.add_subparsers(dest="command", help="Command")

    validate_parser = subparsers.add_parser("validate", help="Validate a graph JSON file")
    validate_parser.add_argument("graph", help="Graph file")
    validate_parser.add_argument("--safety", action="store_true", help="Also run guardrail policies")
    validate_parser.set_defaults(func=cmd_validate)

    compile_parser = subparsers.add_parser("compile", help="Compile a graph to Apps Script")
    compile_parser.add_argument("graph", help="Graph file")
    compile_parser.add_argument("--out", help="Directory for the emitted files (default: JSON to stdout)")
    compile_parser.set_defaults(func=cmd_compile)

    clarify_parser = subparsers.add_parser("clarify", help="Ask the model whether a prompt needs questions")
    clarify_parser.add_argument("prompt", help="Automation description")
    clarify_parser.add_argument("--model", help="Override the configured model")
    clarify_parser.set_defaults(func=cmd_clarify)

    plan_parser = subparsers.add_parser("plan", help="Plan a graph from a prompt")
    plan_parser.add_argument("prompt", help="Automation description")
    plan_parser.add_argument("--answers", help="JSON file of answers keyed by question id")
    plan_parser.add_argument("--out", help="Output file (default: stdout)")
    plan_parser.set_defaults(func=cmd_plan)

    fix_parser = subparsers.add_parser("fix", help="Repair a graph's validation errors")
    fix_parser.add_argument("graph", help="Graph file")
    fix_parser.add_argument("--out", help="Output file (default: stdout)")
    fix_parser.set_defaults(func=cmd_fix)

    catalog_parser = subparsers.add_parser("catalog", help="Inspect the node catalog")
    catalog_sub = catalog_parser.add_subparsers(dest="catalog_command")
    search_parser = catalog_sub.add_parser("search", help="Search apps")
    search_parser.add_argument("query", nargs="?", default="", help="Search text")
    functions_parser = catalog_sub.add_parser("functions", help="List an app's node types")
    functions_parser.add_argument("app", help="App name")
    catalog_parser.set_defaults(func=cmd_catalog)

    return parser


def main(argv=None) -> int:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    configure_logging_from_settings()

    try:
        outcome = args.func(args)
        if asyncio.iscoroutine(outcome):
            outcome = asyncio.run(outcome)
        return outcome
    except OrchestratorError as e:
        logger.error(f"❌ {e.code.value}: {e.message}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
