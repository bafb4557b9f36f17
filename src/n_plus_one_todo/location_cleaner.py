# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Call-stack cleaning applied before locations are hashed or stored."""

import logging
from collections.abc import Sequence

from n_plus_one_todo.configuration import Configuration, FrameFilter

logger = logging.getLogger(__name__)

LOCATION_SEPARATOR = " -> "


def clean_location(frames: Sequence[str], config: Configuration) -> list[str]:
    """Filter and truncate raw call-stack frames.

    A configured ``location_filter`` wins over the framework
    ``backtrace_cleaner``. Filter failures and non-sequence results fall back
    to the raw frames with a warning.

    Args:
        frames: Raw call-stack frames.
        config: Active configuration.

    Returns:
        Cleaned frames, truncated to ``max_location_frames`` when positive.
    """
    if not frames:
        return []
    raw = list(frames)

    frame_filter = config.location_filter or config.backtrace_cleaner
    cleaned = raw if frame_filter is None else _apply_filter(frame_filter, raw)

    limit = config.max_location_frames
    if limit is not None and limit > 0:
        cleaned = cleaned[:limit]
    return cleaned


def join_location(frames: Sequence[str]) -> str:
    return LOCATION_SEPARATOR.join(frames)


def split_location(location: str | None) -> list[str]:
    if not location:
        return []
    return location.split(LOCATION_SEPARATOR)


def _apply_filter(frame_filter: FrameFilter, raw: list[str]) -> list[str]:
    try:
        result = frame_filter(list(raw))
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            f"Location filter raised; using unfiltered frames (filter={frame_filter!r} error={exc!r})"
        )
        return raw
    if result is None or isinstance(result, (str, bytes)) or not isinstance(result, Sequence):
        logger.warning(
            f"Location filter returned a non-sequence; using unfiltered frames "
            f"(filter={frame_filter!r} result_type={type(result).__name__})"
        )
        return raw
    return [str(frame) for frame in result]
