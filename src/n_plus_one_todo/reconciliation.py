# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Merge buffered detections into the TODO file."""

import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import TextIO

import yaml

from n_plus_one_todo.coordinator import DetectionCoordinator
from n_plus_one_todo.ingest import detected_locations, record_notifications
from n_plus_one_todo.model import FlushResult, PendingNotifications
from n_plus_one_todo.persistence import TodoFileError, TodoUpdateError
from n_plus_one_todo.todo_store import TodoStore

logger = logging.getLogger(__name__)

_RECOVERABLE_ERRORS = (OSError, yaml.YAMLError, TodoFileError)

Step = Callable[[TodoStore, PendingNotifications, set[str]], FlushResult]


class ReconciliationDriver:
    """Run flush cycles for one coordinator.

    Only the snapshot of the buffer is taken under the coordinator lock; file
    I/O happens afterwards. A failed cycle puts the snapshot back so a retry
    sees the same work. Flushes must not run concurrently with each other,
    and the TODO file is not locked against other processes.
    """

    def __init__(
        self, coordinator: DetectionCoordinator, output: TextIO | None = None
    ) -> None:
        """Initialize driver.

        Args:
            coordinator: Owner of the pending buffer and configuration.
            output: Stream for the one-line summary; defaults to ``sys.stderr``.
        """
        self._coordinator = coordinator
        self._output = output

    def flush(self, clean: bool = True) -> FlushResult:
        """Add pending detections and optionally prune resolved ones.

        Args:
            clean: Prune location records whose test ran without
                re-detecting them.

        Returns:
            Added entry and removed location counts.

        Raises:
            TodoUpdateError: If the TODO file cannot be read or written.
        """

        def step(
            store: TodoStore, pending: PendingNotifications, executed: set[str]
        ) -> FlushResult:
            removed = self._prune(store, pending, executed) if clean else 0
            added = self._record(store, pending)
            return FlushResult(added=added, removed=removed)

        return self._run(step)

    def regenerate(self) -> FlushResult:
        """Rebuild the TODO file from pending detections only.

        Returns:
            Entries written as ``added`` and discarded location records
            as ``removed``.
        """

        def step(
            store: TodoStore, pending: PendingNotifications, executed: set[str]
        ) -> FlushResult:
            try:
                removed = sum(len(entry.locations) for entry in store.entries)
            except TodoFileError as exc:
                logger.warning(
                    f"Discarding unreadable TODO file (path={store.path} error={exc})"
                )
                removed = 0
            store.clear()
            added = self._record(store, pending)
            return FlushResult(added=added, removed=removed)

        return self._run(step)

    def prune(self) -> FlushResult:
        """Prune resolved location records without adding new entries.

        Pending detections are only read; they stay buffered for the next
        flush. The executed test registry is consumed.
        """

        def step(
            store: TodoStore, pending: PendingNotifications, executed: set[str]
        ) -> FlushResult:
            return FlushResult(added=0, removed=self._prune(store, pending, executed))

        return self._run(step, keep_pending=True)

    def _run(self, step: Step, keep_pending: bool = False) -> FlushResult:
        pending, executed = self._coordinator.take_snapshot()
        path = self._coordinator.todo_file_path
        try:
            store = TodoStore(path)
            result = step(store, pending, executed)
            store.save()
        except _RECOVERABLE_ERRORS as exc:
            self._coordinator.restore_snapshot(pending, executed)
            logger.warning(f"TODO file update failed (path={path} error={exc})")
            raise TodoUpdateError(f"Failed to update TODO file {path}: {exc}") from exc

        if keep_pending:
            self._coordinator.restore_snapshot(pending, ())

        logger.info(
            f"TODO file reconciled (path={path} added={result.added} removed={result.removed})"
        )
        if result.changed:
            self._write_summary(result, path)
        return result

    def _prune(
        self, store: TodoStore, pending: PendingNotifications, executed: set[str]
    ) -> int:
        detected = detected_locations(pending, self._coordinator.configuration)
        return store.filter_by_test_locations(detected, executed)

    def _record(self, store: TodoStore, pending: PendingNotifications) -> int:
        before = len(store.entries)
        record_notifications(pending, store, self._coordinator.configuration)
        return len(store.entries) - before

    def _write_summary(self, result: FlushResult, path: Path) -> None:
        output = self._output or sys.stderr
        output.write(
            f"[n_plus_one_todo] {path}: added {result.added} N+1 entries, "
            f"removed {result.removed} resolved locations\n"
        )
