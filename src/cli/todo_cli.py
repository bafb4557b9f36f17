# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Command line access to the N+1 TODO file."""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import TextIO

import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.style import Style
from rich.table import Table
from rich.text import Text

from n_plus_one_todo.configuration import DEFAULT_FILENAME
from n_plus_one_todo.model import Entry
from n_plus_one_todo.persistence import TodoFileError
from n_plus_one_todo.tasks import migrate
from n_plus_one_todo.todo_store import TodoStore

logger = logging.getLogger(__name__)

TABLE_COLUMN_RATIOS: dict[str, int] = {
    "fingerprint": 2,
    "query": 5,
    "location": 5,
    "test_location": 2,
    "created_at": 2,
}


def configure_logging(level: int = logging.INFO) -> None:
    """Configure application logging with Rich handler.

    Args:
        level: Logging severity threshold.
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser instance.
    """
    parser = argparse.ArgumentParser(prog="n-plus-one-todo")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list")
    list_parser.add_argument(
        "--path", default=DEFAULT_FILENAME, help="TODO file to read."
    )
    list_parser.add_argument(
        "--format",
        choices=("table", "json"),
        default="table",
        help="Output format.",
    )

    migrate_parser = subparsers.add_parser("migrate")
    migrate_parser.add_argument(
        "--path", default=DEFAULT_FILENAME, help="TODO file to rewrite."
    )
    return parser


def run(argv: list[str], stdout: TextIO, stderr: TextIO) -> int:
    """Run CLI command.

    Args:
        argv: CLI arguments.
        stdout: Standard output stream.
        stderr: Standard error stream.

    Returns:
        Exit code.
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit:
        logger.warning(f"Argument parsing failed (argv={argv})")
        return 2
    if args.command == "list":
        return _run_list(args=args, stdout=stdout, stderr=stderr)
    if args.command == "migrate":
        return _run_migrate(args=args, stdout=stdout, stderr=stderr)

    logger.warning(f"Unsupported command (command={args.command})")
    stderr.write(f"Unsupported command: {args.command}\n")
    return 2


def _run_list(args: argparse.Namespace, stdout: TextIO, stderr: TextIO) -> int:
    store = TodoStore(Path(args.path))
    try:
        entries = store.entries
    except (TodoFileError, OSError) as exc:
        logger.warning(f"Failed to read TODO file (path={store.path} error={exc})")
        stderr.write(f"Failed to read TODO file: {exc}\n")
        return 2

    if args.format == "json":
        _write_json(entries=entries, stdout=stdout)
    else:
        _write_table(entries=entries, path=store.path, stdout=stdout)
    return 0


def _run_migrate(args: argparse.Namespace, stdout: TextIO, stderr: TextIO) -> int:
    path = Path(args.path)
    if not path.exists():
        logger.warning(f"TODO file does not exist (path={path})")
        stderr.write(f"TODO file does not exist: {path}\n")
        return 2
    try:
        migrate(path, output=stdout)
    except (TodoFileError, OSError, yaml.YAMLError) as exc:
        logger.warning(f"TODO file migration failed (path={path} error={exc})")
        stderr.write(f"Failed to migrate TODO file: {exc}\n")
        return 2
    return 0


def _write_json(entries: list[Entry], stdout: TextIO) -> None:
    """Write entries in JSON format.

    Args:
        entries: Loaded TODO entries.
        stdout: Standard output stream.
    """
    payload = {"entries": [asdict(entry) for entry in entries]}
    console = Console(file=stdout, force_terminal=False, color_system="truecolor")
    console.print(
        json.dumps(payload, indent=2, sort_keys=True),
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


def _write_table(entries: list[Entry], path: Path, stdout: TextIO) -> None:
    """Write one row per location record.

    Args:
        entries: Loaded TODO entries.
        path: TODO file path shown in the heading.
        stdout: Standard output stream.
    """
    console = Console(file=stdout, force_terminal=False, color_system="truecolor")
    if not entries:
        console.print(f"No entries in {path}", markup=False, highlight=False)
        return

    console.rule(f"{path}", style=Style(color="cyan"), characters="-")
    table = Table(show_header=True, show_lines=True, expand=True)
    for column, ratio in TABLE_COLUMN_RATIOS.items():
        table.add_column(column, ratio=ratio, overflow="fold")
    for entry in entries:
        records = entry.locations or [None]
        for record in records:
            table.add_row(
                Text(entry.fingerprint),
                Text(entry.query),
                Text(record.location if record else ""),
                Text((record.test_location or "") if record else ""),
                Text(str(entry.created_at or "")),
            )
    console.print(table)


def main() -> None:
    """Run the CLI application and exit."""
    configure_logging()
    exit_code = run(sys.argv[1:], stdout=sys.stdout, stderr=sys.stderr)
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
