# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""File-backed collection of accepted N+1 entries."""

import logging
from collections.abc import Iterable
from pathlib import Path

from n_plus_one_todo.configuration import default_todo_path
from n_plus_one_todo.model import Entry, LocationRecord
from n_plus_one_todo.persistence import dump_entries, load_entries, utc_timestamp

logger = logging.getLogger(__name__)

DetectedLocation = tuple[str, str]


class TodoStore:
    """Own the entries of one TODO file.

    Entries are loaded on first access. Mutations stay in memory until
    :meth:`save` is called.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        """Initialize store.

        Args:
            path: TODO file path; defaults to ``.n_plus_one_todo.yaml`` in the
                current working directory.
        """
        self._path = Path(path) if path is not None else default_todo_path()
        self._entries: list[Entry] | None = None
        self._index: dict[str, Entry] = {}

    @property
    def path(self) -> Path:
        return self._path

    @property
    def entries(self) -> list[Entry]:
        """Return entries, loading the backing file on first access.

        Raises:
            TodoFileError: If the file content is malformed.
        """
        return self._loaded()

    def fingerprints(self) -> list[str]:
        return [entry.fingerprint for entry in self.entries]

    def is_ignored(self, fingerprint: str) -> bool:
        """Return whether an entry with ``fingerprint`` exists."""
        return self.find_entry(fingerprint) is not None

    def find_entry(self, fingerprint: str) -> Entry | None:
        self._loaded()
        return self._index.get(fingerprint)

    def add_entry(
        self,
        fingerprint: str,
        query: str,
        location: str | None = None,
        test_location: str | None = None,
        created_at: str | None = None,
    ) -> Entry:
        """Add an occurrence, merging into an existing entry when possible.

        A location already present under the entry is not added twice. A
        ``None`` location adds no location record.

        Args:
            fingerprint: Occurrence identity.
            query: Normalized SQL text.
            location: Display location of the call site.
            test_location: Normalized test identity.
            created_at: Creation time for a new entry; defaults to now (UTC).

        Returns:
            The new or existing entry.
        """
        entry = self.find_entry(fingerprint)
        if entry is None:
            entry = Entry(
                fingerprint=fingerprint,
                query=query,
                created_at=created_at or utc_timestamp(),
            )
            self.entries.append(entry)
            self._index[fingerprint] = entry
        if location is not None and not entry.has_location(location):
            entry.locations.append(
                LocationRecord(location=location, test_location=test_location)
            )
        return entry

    def save(self) -> None:
        """Write all entries to the backing file.

        Raises:
            OSError: If writing fails. Callers decide how to recover.
        """
        dump_entries(self._path, self.entries)

    def clear(self) -> None:
        self._set_entries([])

    def test_locations(self) -> set[str]:
        return {
            record.test_location
            for entry in self.entries
            for record in entry.locations
            if record.test_location
        }

    def filter_by_test_locations(
        self,
        detected_locations: Iterable[DetectedLocation],
        executed_test_locations: Iterable[str],
    ) -> int:
        """Drop location records whose owning test ran without re-detecting them.

        A record is kept when it has no test location, when its test did not
        run, or when ``(fingerprint, location)`` was detected again. An entry
        whose last location record is removed is dropped.

        Args:
            detected_locations: ``(fingerprint, location)`` pairs seen this run.
            executed_test_locations: Normalized test identities that ran.

        Returns:
            Number of removed location records.
        """
        detected = set(detected_locations)
        executed = set(executed_test_locations)
        removed = 0
        kept_entries: list[Entry] = []
        for entry in self.entries:
            kept = [
                record
                for record in entry.locations
                if not record.test_location
                or record.test_location not in executed
                or (entry.fingerprint, record.location) in detected
            ]
            removed += len(entry.locations) - len(kept)
            if not kept and entry.locations:
                continue
            entry.locations = kept
            kept_entries.append(entry)

        dropped = len(self.entries) - len(kept_entries)
        if removed:
            logger.info(
                f"Pruned resolved locations (path={self._path} removed={removed} "
                f"entries_dropped={dropped})"
            )
        self._set_entries(kept_entries)
        return removed

    def _loaded(self) -> list[Entry]:
        if self._entries is None:
            return self._set_entries(load_entries(self._path))
        return self._entries

    def _set_entries(self, entries: list[Entry]) -> list[Entry]:
        index: dict[str, Entry] = {}
        merged: list[Entry] = []
        for entry in entries:
            existing = index.get(entry.fingerprint)
            if existing is None:
                index[entry.fingerprint] = entry
                merged.append(entry)
                continue
            logger.warning(
                f"Merging duplicate TODO entry (path={self._path} fingerprint={entry.fingerprint})"
            )
            for record in entry.locations:
                if not existing.has_location(record.location):
                    existing.locations.append(record)
        self._entries = merged
        self._index = index
        return merged
