# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Runtime configuration for location cleaning and TODO file placement."""

import logging
import os
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_MAX_LOCATION_FRAMES = 5
DEFAULT_FILENAME = ".n_plus_one_todo.yaml"

UPDATE_ENV_VAR = "N_PLUS_ONE_TODO_UPDATE"
CLEAN_ENV_VAR = "N_PLUS_ONE_TODO_CLEAN"

_TRUTHY = {"1", "true", "yes"}
_FALSY = {"0", "false", "no"}

FrameFilter = Callable[[Sequence[str]], Sequence[str]]


def default_todo_path() -> Path:
    """Return the TODO file location inside the current working directory."""
    return Path.cwd() / DEFAULT_FILENAME


class Configuration:
    """Hold settings that shape how call stacks are cleaned and stored.

    Values are validated on assignment so that a bad setting fails where it is
    made instead of on the first detection.
    """

    def __init__(
        self,
        max_location_frames: int | None = DEFAULT_MAX_LOCATION_FRAMES,
        location_filter: FrameFilter | None = None,
        backtrace_cleaner: FrameFilter | None = None,
    ) -> None:
        """Initialize configuration.

        Args:
            max_location_frames: Number of leading frames kept per location;
                ``None`` keeps every frame.
            location_filter: User callable applied to raw frames. Takes
                precedence over ``backtrace_cleaner``.
            backtrace_cleaner: Framework supplied frame cleaner used when no
                ``location_filter`` is configured.

        Raises:
            TypeError: If a value has the wrong type.
            ValueError: If ``max_location_frames`` is negative.
        """
        self._max_location_frames: int | None = DEFAULT_MAX_LOCATION_FRAMES
        self._location_filter: FrameFilter | None = None
        self._backtrace_cleaner: FrameFilter | None = None
        self.max_location_frames = max_location_frames
        self.location_filter = location_filter
        self.backtrace_cleaner = backtrace_cleaner

    @property
    def max_location_frames(self) -> int | None:
        return self._max_location_frames

    @max_location_frames.setter
    def max_location_frames(self, value: int | None) -> None:
        if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
            raise TypeError(
                f"max_location_frames must be an int or None, got {type(value).__name__}"
            )
        if value is not None and value < 0:
            raise ValueError(f"max_location_frames must be non-negative, got {value}")
        self._max_location_frames = value

    @property
    def location_filter(self) -> FrameFilter | None:
        return self._location_filter

    @location_filter.setter
    def location_filter(self, value: FrameFilter | None) -> None:
        if value is not None and not callable(value):
            raise TypeError("location_filter must be callable or None")
        self._location_filter = value

    @property
    def backtrace_cleaner(self) -> FrameFilter | None:
        return self._backtrace_cleaner

    @backtrace_cleaner.setter
    def backtrace_cleaner(self, value: FrameFilter | None) -> None:
        if value is not None and not callable(value):
            raise TypeError("backtrace_cleaner must be callable or None")
        self._backtrace_cleaner = value


def update_enabled(environ: Mapping[str, str] | None = None) -> bool:
    """Return whether the end-of-session TODO update is switched on.

    Args:
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        ``True`` when ``N_PLUS_ONE_TODO_UPDATE`` is ``1``, ``true`` or ``yes``.
    """
    env = os.environ if environ is None else environ
    return env.get(UPDATE_ENV_VAR, "").strip().lower() in _TRUTHY


def clean_enabled(environ: Mapping[str, str] | None = None) -> bool:
    """Return whether resolved entries are pruned during an update.

    Pruning stays on unless ``N_PLUS_ONE_TODO_CLEAN`` is ``0``, ``false`` or ``no``.
    """
    env = os.environ if environ is None else environ
    return env.get(CLEAN_ENV_VAR, "").strip().lower() not in _FALSY
