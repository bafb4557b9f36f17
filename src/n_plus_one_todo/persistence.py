# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""YAML persistence for TODO entries."""

import contextlib
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from n_plus_one_todo.model import Entry, LocationRecord

logger = logging.getLogger(__name__)


class TodoFileError(RuntimeError):
    """Represent malformed TODO file content."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Malformed TODO file {path}: {reason}")
        self.path = path
        self.reason = reason


class TodoUpdateError(RuntimeError):
    """Represent a failed reconciliation; pending detections were restored."""


def utc_timestamp() -> str:
    return datetime.now(tz=timezone.utc).replace(microsecond=0).isoformat()


def load_entries(path: Path) -> list[Entry]:
    """Read entries from a TODO file.

    Both the current ``locations`` list and the older flat ``location`` key
    are accepted.

    Args:
        path: TODO file path.

    Returns:
        Parsed entries; empty when the file is absent or empty.

    Raises:
        TodoFileError: If the content is not a sequence of valid entries.
        OSError: If the file exists but cannot be read.
    """
    if not path.exists():
        return []
    text = path.read_text(encoding="utf-8")
    try:
        content = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        logger.warning(f"TODO file is not valid YAML (path={path} error={exc})")
        raise TodoFileError(path, f"invalid YAML ({exc})") from exc
    if content is None:
        return []
    if not isinstance(content, list):
        raise TodoFileError(
            path, f"expected a list of entries, got {type(content).__name__}"
        )
    return [_parse_entry(path, index, item) for index, item in enumerate(content)]


def dump_entries(path: Path, entries: list[Entry]) -> None:
    """Write entries to a TODO file in the current format.

    The content goes to a temporary file next to ``path`` that then replaces
    it, so a failed write leaves the previous file intact.

    Raises:
        OSError: If the file cannot be written. Not caught here.
    """
    payload = [_serialize_entry(entry) for entry in entries]
    text = yaml.safe_dump(
        payload, sort_keys=False, allow_unicode=True, default_flow_style=False
    )
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.chmod(tmp_name, path.stat().st_mode & 0o7777 if path.exists() else 0o644)
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


def _serialize_entry(entry: Entry) -> dict[str, Any]:
    return {
        "fingerprint": entry.fingerprint,
        "query": entry.query,
        "locations": [
            {"location": record.location, "test_location": record.test_location}
            for record in entry.locations
        ],
        "created_at": entry.created_at,
    }


def _parse_entry(path: Path, index: int, item: object) -> Entry:
    if not isinstance(item, dict):
        raise TodoFileError(path, f"entry {index} is not a mapping")
    fingerprint = item.get("fingerprint")
    query = item.get("query")
    if not isinstance(fingerprint, str) or not fingerprint:
        raise TodoFileError(path, f"entry {index} has no string fingerprint")
    if not isinstance(query, str):
        raise TodoFileError(path, f"entry {index} has no string query")

    if "locations" in item:
        raw_locations = item["locations"] or []
        if not isinstance(raw_locations, list):
            raise TodoFileError(path, f"entry {index} locations is not a list")
        locations = [
            _parse_location(path, index, raw) for raw in raw_locations
        ]
    else:
        legacy = item.get("location")
        if legacy is not None and not isinstance(legacy, str):
            raise TodoFileError(path, f"entry {index} location is not a string")
        locations = [LocationRecord(location=legacy)] if legacy else []

    return Entry(
        fingerprint=fingerprint,
        query=query,
        locations=locations,
        created_at=_parse_timestamp(path, index, item.get("created_at")),
    )


def _parse_location(path: Path, index: int, raw: object) -> LocationRecord:
    if isinstance(raw, str):
        return LocationRecord(location=raw)
    if not isinstance(raw, dict) or not isinstance(raw.get("location"), str):
        raise TodoFileError(path, f"entry {index} has an invalid location record")
    test_location = raw.get("test_location")
    if test_location is not None and not isinstance(test_location, str):
        raise TodoFileError(path, f"entry {index} test_location is not a string")
    return LocationRecord(location=raw["location"], test_location=test_location or None)


def _parse_timestamp(path: Path, index: int, value: object) -> str | None:
    # Unquoted ISO timestamps come back from safe_load as datetime objects.
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    raise TodoFileError(path, f"entry {index} created_at is not a timestamp")
