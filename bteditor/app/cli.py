# FILE: bteditor/app/cli.py
"""Command line front for the editor core.

    python -m bteditor validate tree.json
    python -m bteditor export tree.json -o tree.xml
    python -m bteditor node-types [--category composite]
    python -m bteditor serve [--host 127.0.0.1] [--port 8000]

Exit codes: 0 ok, 2 usage or I/O error, 3 format or semantic failure.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from ..errors import EditorIOError, FormatError, SemanticError
from ..io.config_loader import load_editor_config
from ..io.logging_setup import setup_from_config, setup_logging
from ..io.codec import write_file
from .session import EditorSession

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 2
EXIT_INVALID = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bteditor", description="Behavior tree editor core.")
    parser.add_argument("--config", type=str, default=None, help="YAML/JSON editor configuration.")
    parser.add_argument("--log-level", type=str, default=None, help="Override the configured log level.")
    sub = parser.add_subparsers(dest="command", required=True)

    p_validate = sub.add_parser("validate", help="Check file format and tree semantics.")
    p_validate.add_argument("file", type=str, help="Editor JSON file.")

    p_export = sub.add_parser("export", help="Write BehaviorTree.CPP XML.")
    p_export.add_argument("file", type=str, help="Editor JSON file.")
    p_export.add_argument("-o", "--output", type=str, default=None, help="Target file (default: stdout).")

    p_types = sub.add_parser("node-types", help="List available node types.")
    p_types.add_argument("--category", type=str, default=None, help="Only this category.")

    p_serve = sub.add_parser("serve", help="Run the HTTP backend with uvicorn.")
    p_serve.add_argument("--host", type=str, default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument("--reload", action="store_true")
    return parser


def _cmd_validate(session: EditorSession, args: argparse.Namespace) -> int:
    delta = session.load(args.file)
    print(f"{session.validate_tree().message} ({len(delta.nodes)} nodes, {len(delta.connections)} connections)")
    return EXIT_OK


def _cmd_export(session: EditorSession, args: argparse.Namespace) -> int:
    session.load(args.file)
    xml = session.export_xml()
    if args.output:
        write_file(args.output, xml)
    else:
        print(xml)
    return EXIT_OK


def _cmd_node_types(session: EditorSession, args: argparse.Namespace) -> int:
    types = [d.to_dict() for d in session.catalog.list_types(args.category)]
    print(json.dumps(types, indent=2, ensure_ascii=False))
    return EXIT_OK


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("bteditor_backend.api:app", host=args.host, port=args.port,
                reload=args.reload, log_level="info")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return EXIT_USAGE if e.code else EXIT_OK

    try:
        config = load_editor_config(args.config)
    except (OSError, ValueError) as e:
        setup_logging()
        log.error("Cannot load configuration: %s", e)
        return EXIT_USAGE
    if args.log_level:
        config.logging.level = args.log_level.upper()
    setup_from_config(config.logging)

    if args.command == "serve":
        return _cmd_serve(args)

    session = EditorSession(config=config)
    handlers = {
        "validate": _cmd_validate,
        "export": _cmd_export,
        "node-types": _cmd_node_types,
    }
    try:
        return handlers[args.command](session, args)
    except FormatError as e:
        print(str(e), file=sys.stderr)
        return EXIT_INVALID
    except SemanticError as e:
        print(e.message, file=sys.stderr)
        return EXIT_INVALID
    except EditorIOError as e:
        print(str(e), file=sys.stderr)
        return EXIT_USAGE
