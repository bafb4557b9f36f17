# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Operator tasks over the TODO file."""

import logging
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from n_plus_one_todo.configuration import clean_enabled
from n_plus_one_todo.coordinator import DetectionCoordinator
from n_plus_one_todo.fingerprint import compute_fingerprint
from n_plus_one_todo.model import FlushResult
from n_plus_one_todo.normalizer import normalize_query, normalize_test_location
from n_plus_one_todo.reconciliation import ReconciliationDriver
from n_plus_one_todo.todo_store import TodoStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationResult:
    """Represent the outcome of rewriting a TODO file to current fingerprints."""

    rewritten: int
    merged: int
    total: int


def generate(
    coordinator: DetectionCoordinator, output: TextIO | None = None
) -> FlushResult:
    """Replace the TODO file with the pending detections."""
    output = output or sys.stdout
    result = ReconciliationDriver(coordinator, output=output).regenerate()
    output.write(
        f"Generated {coordinator.todo_file_path} with {result.added} entries\n"
    )
    return result


def update(
    coordinator: DetectionCoordinator,
    output: TextIO | None = None,
    clean: bool | None = None,
    environ: Mapping[str, str] | None = None,
) -> FlushResult:
    """Flush pending detections into the TODO file.

    Args:
        coordinator: Buffer owner.
        output: Stream for the summary line.
        clean: Prune resolved locations; read from ``N_PLUS_ONE_TODO_CLEAN``
            when ``None``.
        environ: Environment used for the toggle; defaults to ``os.environ``.

    Returns:
        Added and removed counts.
    """
    if clean is None:
        clean = clean_enabled(environ)
    return ReconciliationDriver(coordinator, output=output or sys.stdout).flush(
        clean=clean
    )


def clean(
    coordinator: DetectionCoordinator, output: TextIO | None = None
) -> FlushResult:
    """Prune resolved locations without recording new detections."""
    return ReconciliationDriver(coordinator, output=output or sys.stdout).prune()


def list_entries(path: Path | str, output: TextIO | None = None) -> int:
    """Write a readable listing of the TODO file.

    Returns:
        Number of listed entries.
    """
    output = output or sys.stdout
    store = TodoStore(path)
    entries = store.entries
    if not entries:
        output.write(f"No entries in {store.path}\n")
        return 0

    output.write(f"Entries in {store.path}:\n\n")
    for number, entry in enumerate(entries, start=1):
        output.write(f"{number}. {entry.query}\n")
        for record in entry.locations:
            output.write(f"   Location: {record.location}\n")
            if record.test_location:
                output.write(f"   Test: {record.test_location}\n")
        output.write(f"   Fingerprint: {entry.fingerprint}\n\n")
    return len(entries)


def migrate(path: Path | str, output: TextIO | None = None) -> MigrationResult:
    """Rewrite a TODO file so every entry uses the current fingerprint.

    Older files keyed entries by query-only or query-plus-location hashes and
    may hold raw queries and a flat ``location`` key. Each stored location is
    re-keyed from its normalized query, location and test identity; records
    that land on the same fingerprint are merged and keep the earliest
    ``created_at``.

    Args:
        path: TODO file path.
        output: Stream for the summary line.

    Returns:
        Counts of re-keyed records, merged records and resulting entries.

    Raises:
        TodoFileError: If the file is malformed.
        OSError: If the file cannot be read or written.
    """
    output = output or sys.stdout
    source = TodoStore(path)
    target = TodoStore(path)
    target.clear()

    rewritten = 0
    merged = 0
    for entry in source.entries:
        query = normalize_query(entry.query) or ""
        records = entry.locations or [None]
        for record in records:
            location = record.location if record else None
            test_location = normalize_test_location(record.test_location) if record else None
            fingerprint = compute_fingerprint(query, location, test_location)
            if fingerprint != entry.fingerprint:
                rewritten += 1
            existing = target.find_entry(fingerprint)
            if existing is not None:
                merged += 1
                if entry.created_at and (
                    existing.created_at is None or entry.created_at < existing.created_at
                ):
                    existing.created_at = entry.created_at
            target.add_entry(
                fingerprint=fingerprint,
                query=query,
                location=location,
                test_location=test_location,
                created_at=entry.created_at,
            )
    target.save()

    result = MigrationResult(
        rewritten=rewritten, merged=merged, total=len(target.entries)
    )
    logger.info(
        f"TODO file migrated (path={target.path} rewritten={rewritten} "
        f"merged={merged} total={result.total})"
    )
    output.write(
        f"Migrated {target.path}: {rewritten} rewritten, {merged} merged, "
        f"{result.total} entries\n"
    )
    return result
