# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Domain models for persisted TODO entries and pending detections."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class LocationRecord:
    """Represent one observed call site of an entry.

    Attributes:
        location: Cleaned call-stack frames joined with ``" -> "``.
        test_location: Normalized test file that produced the observation;
            ``None`` for records without provenance.
    """

    location: str
    test_location: str | None = None


@dataclass
class Entry:
    """Represent one persisted, accepted N+1 occurrence.

    Attributes:
        fingerprint: Unique identity within a TODO file.
        query: Normalized SQL text.
        locations: Observed call sites in insertion order.
        created_at: ISO-8601 UTC creation time; never updated.
    """

    fingerprint: str
    query: str
    locations: list[LocationRecord] = field(default_factory=list)
    created_at: str | None = None

    def has_location(self, location: str) -> bool:
        return any(record.location == location for record in self.locations)


@dataclass(frozen=True)
class PendingLocation:
    """Represent one buffered, not yet persisted detection.

    Attributes:
        call_stack: Raw call-stack frames, outermost call last.
        test_location: Test identity active when the detection happened.
    """

    call_stack: tuple[str, ...]
    test_location: str | None = None


PendingNotifications = dict[str, list[PendingLocation]]


@dataclass(frozen=True)
class FlushResult:
    """Represent the outcome of one reconciliation cycle."""

    added: int
    removed: int

    @property
    def changed(self) -> bool:
        return self.added > 0 or self.removed > 0
