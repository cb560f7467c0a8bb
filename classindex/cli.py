"""Command-line interface for the class index."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from enum import IntEnum
from pathlib import Path
from typing import Optional

from classindex.builder import run
from classindex.config import (
    ConfigError,
    DEFAULT_CONFIG_PATH,
    IndexConfig,
    load_config,
    parse_base_classes,
    validate_config,
)
from classindex.header import FormatError, to_dotted
from classindex.query import get_summary, load_index, query_base
from classindex.writer import OutputShape

LOG_FORMAT = "[classindex] %(levelname)s %(message)s"


class ExitCode(IntEnum):
    """Process exit codes."""

    SUCCESS = 0
    CONFIG_ERROR = 1
    FILE_SYSTEM_ERROR = 2
    PARTIAL_SUCCESS = 3
    FORMAT_ERROR = 4


def configure_logging(verbose: bool) -> None:
    """Send classindex logs to stderr.

    Errors are always shown; everything else only when verbose.
    """
    logger = logging.getLogger("classindex")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(logging.INFO if verbose else logging.ERROR)


def _get_config(args: argparse.Namespace) -> IndexConfig:
    """Load config from --config, ./classindex.yaml, or defaults; apply CLI overrides."""
    config_path = Path(args.config) if args.config else Path.cwd() / DEFAULT_CONFIG_PATH
    config = load_config(config_path)

    overrides = {}
    if getattr(args, "classes_dir", None):
        overrides["classes_dir"] = args.classes_dir
    if getattr(args, "archive", None):
        overrides["archives"] = list(args.archive)
    if getattr(args, "base", None):
        names: list[str] = []
        for value in args.base:
            names.extend(parse_base_classes(value))
        overrides["base_classes"] = names
    if getattr(args, "output", None):
        overrides["output_path"] = args.output
    if getattr(args, "flat", False):
        overrides["output_shape"] = OutputShape.FLAT
    if getattr(args, "no_precomputed", False):
        overrides["use_precomputed"] = False
    if getattr(args, "verbose", False):
        overrides["verbose"] = True

    if overrides:
        config = replace(config, **overrides)
        validate_config(config, str(config_path))
    return config


def cmd_build(args: argparse.Namespace) -> int:
    """Scan classes and archives, then write the index."""
    try:
        config = _get_config(args)
    except ConfigError as e:
        print(json.dumps(e.to_json()), file=sys.stderr)
        return ExitCode.CONFIG_ERROR

    configure_logging(config.verbose)

    try:
        report = run(config)
    except FormatError as e:
        logging.getLogger("classindex").error(f"Malformed class file: {e}")
        return ExitCode.FORMAT_ERROR
    except OSError as e:
        logging.getLogger("classindex").error(f"Index build failed: {e}")
        return ExitCode.FILE_SYSTEM_ERROR

    result = report.result
    if result is None:
        print(f"No classes directory at {config.classes_dir}, nothing to index")
        return ExitCode.SUCCESS
    if not result.implementations:
        print("No base classes configured, nothing to index")
        return ExitCode.SUCCESS

    for base, names in result.implementations.items():
        print(f"{to_dotted(base)}: {len(names)} implementation(s)")
    if report.written:
        print(f"Output: {report.output_path}")
    else:
        print(f"Output unchanged: {report.output_path}")

    if result.skipped_archives:
        print(f"Skipped {len(result.skipped_archives)} unreadable archive(s)")
        return ExitCode.PARTIAL_SUCCESS
    return ExitCode.SUCCESS


def _load_generated(config: IndexConfig) -> Optional[dict[str, list[str]]]:
    flat_base = config.base_classes[0] if config.base_classes else None
    return load_index(config.output_file, config.output_shape, flat_base)


def cmd_query(args: argparse.Namespace) -> int:
    """Print the implementations recorded for one base."""
    try:
        config = _get_config(args)
    except ConfigError as e:
        print(json.dumps(e.to_json()), file=sys.stderr)
        return ExitCode.CONFIG_ERROR

    index = _load_generated(config)
    if index is None:
        print("Index not found. Run 'classindex build' first.")
        return ExitCode.FILE_SYSTEM_ERROR

    names = query_base(index, args.query_base)
    if names is None:
        print(f"Base not indexed: {args.query_base}")
        return ExitCode.SUCCESS
    for name in names:
        print(name)
    return ExitCode.SUCCESS


def cmd_status(args: argparse.Namespace) -> int:
    """Show the generated index summary."""
    try:
        config = _get_config(args)
    except ConfigError as e:
        print(json.dumps(e.to_json()), file=sys.stderr)
        return ExitCode.CONFIG_ERROR

    index_path = config.output_file
    print("Class Index Status")
    print("=" * 40)

    index = _load_generated(config)
    if index is None:
        print("\nIndex: NOT FOUND")
        print(f"  Expected at: {index_path}")
        return ExitCode.SUCCESS

    summary = get_summary(index)
    print(f"\nIndex: {index_path}")
    print(f"  Shape: {config.output_shape.value}")
    print(f"  Implementations: {summary['implementation_count']}")
    print("  By base:")
    for base, count in summary["by_base"].items():
        print(f"    {base}: {count}")
    return ExitCode.SUCCESS


def _add_config_arg(parser: argparse.ArgumentParser) -> None:
    """Add --config and source options to a parser."""
    parser.add_argument(
        "--config",
        "-c",
        help=f"Path to config file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--classes-dir", help="Compiled classes directory of the module")
    parser.add_argument("--output", help="Index path relative to the classes directory")
    parser.add_argument("--flat", action="store_true", help="Single-base flat index (one name per line)")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="classindex",
        description="Index concrete implementations of base classes across compiled classes and jars",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser(
        "build",
        help="Scan classes and dependency archives and write the index",
    )
    _add_config_arg(build_parser)
    build_parser.add_argument(
        "--archive",
        "-a",
        action="append",
        help="Dependency archive to scan (repeatable, in resolution order)",
    )
    build_parser.add_argument(
        "--base",
        "-b",
        action="append",
        help="Base class to index (dotted, repeatable or comma-separated)",
    )
    build_parser.add_argument(
        "--no-precomputed",
        action="store_true",
        help="Always scan archive classes instead of trusting embedded indices",
    )
    build_parser.add_argument("--verbose", "-v", action="store_true", help="Log progress to stderr")

    query_parser = subparsers.add_parser(
        "query",
        help="List implementations of a base from the generated index",
    )
    _add_config_arg(query_parser)
    query_parser.add_argument("--base", "-b", dest="query_base", required=True, help="Base class (dotted)")

    status_parser = subparsers.add_parser(
        "status",
        help="Show generated index status",
    )
    _add_config_arg(status_parser)

    args = parser.parse_args(argv)

    commands = {
        "build": cmd_build,
        "query": cmd_query,
        "status": cmd_status,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
