# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Process-wide accumulation of detections between reconciliations."""

import logging
import threading
from collections.abc import Iterable, Sequence
from pathlib import Path

from n_plus_one_todo.configuration import Configuration, default_todo_path
from n_plus_one_todo.model import PendingLocation, PendingNotifications
from n_plus_one_todo.normalizer import normalize_test_location
from n_plus_one_todo.running_test import detect_test_location

logger = logging.getLogger(__name__)

CallStack = Sequence[str]


class DetectionCoordinator:
    """Own the pending detection buffer and the executed test registry.

    The embedding application creates one coordinator for the lifetime of the
    process and hands it to the ingest callback and to the reconciliation
    driver. Every buffer operation runs under one lock; no I/O happens while
    it is held.
    """

    def __init__(
        self,
        configuration: Configuration | None = None,
        todo_file_path: Path | str | None = None,
    ) -> None:
        self._configuration = configuration or Configuration()
        self._todo_file_path = Path(todo_file_path) if todo_file_path else None
        self._lock = threading.Lock()
        self._pending: PendingNotifications = {}
        self._executed: set[str] = set()

    @property
    def configuration(self) -> Configuration:
        return self._configuration

    def reset_configuration(self) -> None:
        self._configuration = Configuration()

    @property
    def todo_file_path(self) -> Path:
        return self._todo_file_path or default_todo_path()

    @todo_file_path.setter
    def todo_file_path(self, value: Path | str | None) -> None:
        self._todo_file_path = Path(value) if value else None

    def add_pending_notification(
        self,
        query: str,
        locations: Iterable[CallStack | str],
        test_location: str | None = None,
    ) -> None:
        """Buffer one occurrence per call stack under ``query``.

        Args:
            query: Raw SQL text.
            locations: Call stacks; a bare string counts as a one-frame stack.
            test_location: Test identity; detected from the running test when
                omitted.
        """
        if test_location is None:
            test_location = detect_test_location()
        records = [
            PendingLocation(call_stack=_as_stack(stack), test_location=test_location)
            for stack in locations
        ]
        with self._lock:
            self._pending.setdefault(query, []).extend(records)

    def pending_notifications(self) -> PendingNotifications:
        """Return a copy of the buffer; changes to it do not reach the buffer."""
        with self._lock:
            return {query: list(records) for query, records in self._pending.items()}

    def clear_pending_notifications(self) -> None:
        with self._lock:
            self._pending = {}

    def register_executed_test(self, test_location: str | None) -> None:
        normalized = normalize_test_location(test_location)
        if normalized is None:
            return
        with self._lock:
            self._executed.add(normalized)

    def executed_test_locations(self) -> set[str]:
        with self._lock:
            return set(self._executed)

    def clear_executed_test_locations(self) -> None:
        with self._lock:
            self._executed = set()

    def take_snapshot(self) -> tuple[PendingNotifications, set[str]]:
        """Swap the buffer and registry for empty ones.

        Returns:
            The swapped out pending notifications and executed tests.
        """
        with self._lock:
            pending, self._pending = self._pending, {}
            executed, self._executed = self._executed, set()
        return pending, executed

    def restore_snapshot(
        self, pending: PendingNotifications, executed: Iterable[str]
    ) -> None:
        """Merge a snapshot back in front of anything buffered since.

        Args:
            pending: Notifications returned by :meth:`take_snapshot`.
            executed: Executed tests returned by :meth:`take_snapshot`.
        """
        with self._lock:
            for query, records in pending.items():
                self._pending[query] = list(records) + self._pending.get(query, [])
            self._executed.update(executed)
        logger.debug(f"Restored pending detections (queries={len(pending)})")


def _as_stack(stack: CallStack | str) -> tuple[str, ...]:
    if isinstance(stack, str):
        return (stack,)
    return tuple(str(frame) for frame in stack)
