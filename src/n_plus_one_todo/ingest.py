# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Bridge between an N+1 detector callback and the TODO machinery."""

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from n_plus_one_todo.configuration import Configuration
from n_plus_one_todo.coordinator import DetectionCoordinator
from n_plus_one_todo.fingerprint import Fingerprinter
from n_plus_one_todo.model import PendingNotifications
from n_plus_one_todo.normalizer import normalize_query, normalize_test_location
from n_plus_one_todo.running_test import detect_test_location
from n_plus_one_todo.todo_store import DetectedLocation, TodoStore

logger = logging.getLogger(__name__)

Notifications = dict[str, list[list[str]]]


def normalize_notifications(raw: Mapping[Any, Any]) -> Notifications:
    """Convert detector output to ``{query: [call_stack, ...]}``.

    Two shapes are accepted. Grouped: the key is a sequence of similar
    queries (the first is used) and the value is one call stack. Per
    location: the key is one query and the value is a list of call stacks,
    where a bare string counts as a one-frame stack.

    Args:
        raw: Detector notifications.

    Returns:
        Notifications keyed by raw query text.
    """
    result: Notifications = {}
    for key, value in raw.items():
        if isinstance(key, str):
            query = key
            stacks = _as_stack_list(value)
        else:
            queries = list(key)
            if not queries:
                continue
            query = str(queries[0])
            stacks = [_as_frames(value)]
        result.setdefault(query, []).extend(stacks)
    return result


def filter_notifications(
    notifications: Mapping[str, Sequence[Sequence[str]]],
    store: TodoStore,
    config: Configuration,
    test_location: str | None = None,
) -> Notifications:
    """Remove occurrences whose fingerprint is already in the store.

    Args:
        notifications: Normalized notifications.
        store: TODO store used for lookups.
        config: Active configuration.
        test_location: Test identity used for fingerprints.

    Returns:
        Notifications that are not ignored; queries with nothing left are
        omitted.
    """
    fingerprinter = Fingerprinter(config)
    result: Notifications = {}
    for query, stacks in notifications.items():
        remaining = [
            list(stack)
            for stack in stacks
            if not store.is_ignored(
                fingerprinter.fingerprint(query, stack, test_location)
            )
        ]
        if remaining:
            result[query] = remaining
    return result


def record_notifications(
    pending: PendingNotifications, store: TodoStore, config: Configuration
) -> None:
    """Add every pending occurrence to the store."""
    fingerprinter = Fingerprinter(config)
    for query, records in pending.items():
        normalized_query = normalize_query(query) or ""
        for record in records:
            store.add_entry(
                fingerprint=fingerprinter.fingerprint(
                    query, record.call_stack, record.test_location
                ),
                query=normalized_query,
                location=fingerprinter.location(record.call_stack),
                test_location=normalize_test_location(record.test_location),
            )


def detected_locations(
    pending: PendingNotifications, config: Configuration
) -> set[DetectedLocation]:
    """Return the ``(fingerprint, location)`` pairs implied by ``pending``."""
    fingerprinter = Fingerprinter(config)
    return {
        (
            fingerprinter.fingerprint(query, record.call_stack, record.test_location),
            fingerprinter.location(record.call_stack),
        )
        for query, records in pending.items()
        for record in records
    }


class DetectionCallback:
    """Callable handed to the N+1 detector as its finish callback.

    Every occurrence is buffered on the coordinator; only occurrences not
    already accepted in the TODO file are returned and forwarded.
    """

    def __init__(
        self,
        coordinator: DetectionCoordinator,
        store: TodoStore | None = None,
        downstream: Callable[[Notifications], object] | None = None,
    ) -> None:
        """Initialize callback.

        Args:
            coordinator: Buffer owner.
            store: TODO store for suppression lookups; defaults to the
                coordinator's TODO file.
            downstream: Callback receiving the filtered notifications.
        """
        self._coordinator = coordinator
        self._store = store or TodoStore(coordinator.todo_file_path)
        self._downstream = downstream

    def __call__(self, raw_notifications: Mapping[Any, Any]) -> Notifications:
        notifications = normalize_notifications(raw_notifications)
        test_location = detect_test_location()
        for query, stacks in notifications.items():
            self._coordinator.add_pending_notification(
                query, stacks, test_location=test_location
            )
        filtered = filter_notifications(
            notifications,
            self._store,
            self._coordinator.configuration,
            test_location=test_location,
        )
        suppressed = _count(notifications.values()) - _count(filtered.values())
        if suppressed:
            logger.debug(f"Suppressed known N+1 occurrences (count={suppressed})")
        if self._downstream is not None:
            self._downstream(filtered)
        return filtered


def _as_stack_list(value: object) -> list[list[str]]:
    if value is None or isinstance(value, str):
        return [_as_frames(value)]
    # A bare string element is a one-frame call stack of its own.
    return [_as_frames(item) for item in value]  # type: ignore[attr-defined]


def _as_frames(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(frame) for frame in value]  # type: ignore[attr-defined]


def _count(groups: Iterable[Sequence[object]]) -> int:
    return sum(len(group) for group in groups)
