# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Record accepted N+1 query detections and suppress repeated reports."""

from n_plus_one_todo.configuration import Configuration
from n_plus_one_todo.coordinator import DetectionCoordinator
from n_plus_one_todo.fingerprint import Fingerprinter, compute_fingerprint
from n_plus_one_todo.ingest import DetectionCallback, filter_notifications
from n_plus_one_todo.model import Entry, FlushResult, LocationRecord, PendingLocation
from n_plus_one_todo.normalizer import normalize_query, normalize_test_location
from n_plus_one_todo.persistence import TodoFileError, TodoUpdateError
from n_plus_one_todo.reconciliation import ReconciliationDriver
from n_plus_one_todo.todo_store import TodoStore

__all__ = [
    "Configuration",
    "DetectionCallback",
    "DetectionCoordinator",
    "Entry",
    "Fingerprinter",
    "FlushResult",
    "LocationRecord",
    "PendingLocation",
    "ReconciliationDriver",
    "TodoFileError",
    "TodoStore",
    "TodoUpdateError",
    "compute_fingerprint",
    "filter_notifications",
    "normalize_query",
    "normalize_test_location",
]
