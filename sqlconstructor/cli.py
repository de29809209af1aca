# File: sqlconstructor/cli.py
"""
SQL Constructor - Command-Line Interface
========================================

Built with the standard-library ``argparse`` module.

Usage examples::

    # Render a saved query against a schema
    sqlconstructor render -s schema.json -Q query.json --quotes

    # Validate a schema (and optionally a query against it)
    sqlconstructor validate -s schema.yaml -Q query.json

    # Show the join path between tables
    sqlconstructor path --source users --target roles

    # Export TypeScript interfaces
    sqlconstructor export-ts -s schema.json -o types.ts

Without ``-s`` every command uses the bundled "Project Management
(Default)" schema.

Exit codes:
    0 - success
    1 - validation error
    2 - render error
    4 - input/argument error
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, NoReturn, Optional, Sequence

from pydantic import ValidationError as ModelValidationError

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlconstructor")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_RENDER_ERROR: int = 2
EXIT_INPUT_ERROR: int = 4


class InputError(Exception):
    """A file argument could not be loaded or parsed."""


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the ``sqlconstructor`` logger.

    Args:
        verbosity: 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
    formatter: logging.Formatter = logging.Formatter(fmt, datefmt="%H:%M:%S")
    handler.setFormatter(formatter)

    root_logger: logging.Logger = logging.getLogger("sqlconstructor")
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from sqlconstructor import __version__

    common: argparse.ArgumentParser = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-s", "--schema",
        type=str,
        default=None,
        metavar="PATH",
        help="Schema document (JSON or YAML). Defaults to the bundled schema.",
    )
    verbosity_group = common.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all log output.",
    )

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="sqlconstructor",
        description=(
            "SQL Constructor: build SELECT statements from a schema and a "
            "field list, with automatic foreign-key joins."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s render -s schema.json -Q query.json\n"
            "  %(prog)s validate -s schema.yaml\n"
            "  %(prog)s path --source users --target roles\n"
            "  %(prog)s export-ts -s schema.json -o types.ts\n"
        ),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"SQL Constructor v{__version__}",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    render = commands.add_parser(
        "render", parents=[common], help="Print the SQL for a saved query."
    )
    render.add_argument(
        "-Q", "--query", type=str, required=True, metavar="PATH",
        help="Saved query or bare query state (JSON or YAML).",
    )
    render.add_argument(
        "--quotes", action="store_true", default=False,
        help="Double-quote every identifier.",
    )
    render.add_argument(
        "--limit", type=int, default=None, metavar="N",
        help="Append LIMIT N.",
    )

    validate = commands.add_parser(
        "validate", parents=[common], help="Validate a schema and optionally a query."
    )
    validate.add_argument(
        "-Q", "--query", type=str, default=None, metavar="PATH",
        help="Also validate this query against the schema.",
    )

    path = commands.add_parser(
        "path", parents=[common], help="Show the join path between tables."
    )
    path.add_argument(
        "--source", action="append", required=True, metavar="TABLE",
        help="Table already in the query (repeatable).",
    )
    path.add_argument("--target", required=True, metavar="TABLE", help="Table to reach.")
    path.add_argument(
        "--quotes", action="store_true", default=False,
        help="Double-quote every identifier.",
    )

    export_ts = commands.add_parser(
        "export-ts", parents=[common], help="Generate TypeScript interfaces."
    )
    export_ts.add_argument(
        "-o", "--output", type=str, default=None, metavar="FILE",
        help="Write to FILE instead of standard output.",
    )

    return parser


# ---------------------------------------------------------------------------
# Input loading
# ---------------------------------------------------------------------------


def _load_schema(path: Optional[str]):
    from sqlconstructor.defaults import default_schema
    from sqlconstructor.generator import load_schema_file

    if path is None:
        return default_schema().schema_def
    try:
        return load_schema_file(Path(path).resolve())
    except (FileNotFoundError, ValueError, ModelValidationError) as exc:
        raise InputError(f"Failed to load schema: {exc}") from exc


def _load_query(path: str):
    from sqlconstructor.generator import load_query_file

    try:
        return load_query_file(Path(path).resolve())
    except (FileNotFoundError, ValueError, ModelValidationError) as exc:
        raise InputError(f"Failed to load query: {exc}") from exc


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _run_render(args: argparse.Namespace) -> int:
    from sqlconstructor.generator import render_state

    schema = _load_schema(args.schema)
    saved = _load_query(args.query)

    result = render_state(saved.state, schema, use_quotes=args.quotes, limit=args.limit)

    if result.temp_error:
        print(result.temp_error, file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    if result.render_error:
        print(result.sql, file=sys.stderr)
        return EXIT_RENDER_ERROR
    if result.validation.has_errors:
        print(result.sql, file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    print(result.sql)
    return EXIT_SUCCESS


def _run_validate(args: argparse.Namespace) -> int:
    from sqlconstructor.generator import render_state
    from sqlconstructor.utils import Timer
    from sqlconstructor.validators import validate_schema

    schema = _load_schema(args.schema)

    with Timer("validation") as t:
        result = validate_schema(schema)
        if args.query:
            saved = _load_query(args.query)
            result.merge(render_state(saved.state, schema).validation)

    print(f"\n{'=' * 50}")
    print("  Validation Report")
    print(f"{'=' * 50}")
    print(f"  Schema:   {args.schema or '(bundled default)'}")
    if args.query:
        print(f"  Query:    {args.query}")
    print(f"  Tables:   {schema.table_count}")
    print(f"  Time:     {t.elapsed:.3f}s")
    print(f"  Valid:    {'Yes' if result.is_valid else 'No'}")
    print()
    print(result.format_report())
    print(f"{'=' * 50}\n")

    return EXIT_SUCCESS if result.is_valid else EXIT_VALIDATION_ERROR


def _run_path(args: argparse.Namespace) -> int:
    from sqlconstructor.pathfinder import find_join_path
    from sqlconstructor.sqlbuilder import render_join

    schema = _load_schema(args.schema)
    for table in [*args.source, args.target]:
        if not schema.has_table(table):
            raise InputError(f"Unknown table '{table}'.")

    path = find_join_path(args.source, args.target, schema)
    if path is None:
        print(
            f"Could not join table '{args.target}': No relationship found.",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    if not path:
        print(f"-- '{args.target}' is already part of the query.")
    for join in path:
        print(render_join(join, args.quotes))
    return EXIT_SUCCESS


def _run_export_ts(args: argparse.Namespace) -> int:
    from sqlconstructor.exporters import export_typescript, generate_typescript_interfaces

    schema = _load_schema(args.schema)
    if args.output:
        export_typescript(schema, Path(args.output).resolve())
    else:
        print(generate_typescript_interfaces(schema))
    return EXIT_SUCCESS


_COMMANDS = {
    "render": _run_render,
    "validate": _run_validate,
    "path": _run_path,
    "export-ts": _run_export_ts,
}


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or directly for testing.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    _setup_logging(-1 if args.quiet else args.verbose)
    if args.quiet:
        logger.setLevel(logging.CRITICAL + 1)

    try:
        exit_code: int = _COMMANDS[args.command](args)
    except InputError as exc:
        logger.error("%s", exc)
        print(f"error: {exc}", file=sys.stderr)
        exit_code = EXIT_INPUT_ERROR

    logger.debug("Command '%s' finished with exit code %d.", args.command, exit_code)
    sys.exit(exit_code)


def main() -> None:
    """Console-script entry point."""
    cli_main()


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "main",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_RENDER_ERROR",
    "EXIT_INPUT_ERROR",
]

logger.debug("sqlconstructor.cli loaded.")
