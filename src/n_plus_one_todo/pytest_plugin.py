# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""pytest integration: track executed tests and flush at session end.

Enable with ``pytest_plugins = ["n_plus_one_todo.pytest_plugin"]`` and run
with ``N_PLUS_ONE_TODO_UPDATE=1``. Set ``N_PLUS_ONE_TODO_CLEAN=0`` to keep
resolved entries.
"""

import contextvars
import logging

import pytest

from n_plus_one_todo.configuration import clean_enabled, update_enabled
from n_plus_one_todo.coordinator import DetectionCoordinator
from n_plus_one_todo.reconciliation import ReconciliationDriver
from n_plus_one_todo.running_test import reset_current_test, set_current_test

logger = logging.getLogger(__name__)

coordinator_key = pytest.StashKey[DetectionCoordinator]()
_token_key = pytest.StashKey[contextvars.Token]()


def get_coordinator(config: pytest.Config) -> DetectionCoordinator:
    """Return the session coordinator, creating it on first use."""
    coordinator = config.stash.get(coordinator_key, None)
    if coordinator is None:
        coordinator = DetectionCoordinator()
        config.stash[coordinator_key] = coordinator
    return coordinator


def pytest_runtest_setup(item: pytest.Item) -> None:
    get_coordinator(item.config).register_executed_test(item.nodeid)
    item.stash[_token_key] = set_current_test(item.nodeid)


def pytest_runtest_teardown(item: pytest.Item) -> None:
    token = item.stash.get(_token_key, None)
    if token is not None:
        reset_current_test(token)
        del item.stash[_token_key]


def pytest_sessionfinish(session: pytest.Session) -> None:
    if not update_enabled():
        return
    result = ReconciliationDriver(get_coordinator(session.config)).flush(
        clean=clean_enabled()
    )
    logger.debug(f"Session TODO flush done (added={result.added} removed={result.removed})")


@pytest.fixture
def n_plus_one_todo(request: pytest.FixtureRequest) -> DetectionCoordinator:
    """Session coordinator to hand to the detector callback."""
    return get_coordinator(request.config)
