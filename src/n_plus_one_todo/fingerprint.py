# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Stable identities for detected N+1 occurrences."""

import hashlib
import logging
from collections.abc import Sequence

from n_plus_one_todo.configuration import Configuration
from n_plus_one_todo.location_cleaner import clean_location, join_location
from n_plus_one_todo.normalizer import normalize_query, normalize_test_location

logger = logging.getLogger(__name__)

FINGERPRINT_LENGTH = 16


def compute_fingerprint(
    normalized_query: str | None,
    location: str | None = None,
    test_location: str | None = None,
) -> str:
    """Hash already normalized components into a fingerprint.

    Args:
        normalized_query: Query with literals replaced.
        location: Cleaned, joined call stack.
        test_location: Normalized test file identity.

    Returns:
        First 16 hex characters of the SHA-256 digest of
        ``query|location|test_location``.
    """
    content = f"{normalized_query or ''}|{location or ''}|{test_location or ''}"
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


class Fingerprinter:
    """Derive fingerprints and display locations under one configuration.

    Fingerprints depend on the configured frame limit and filter, so changing
    either one changes the identity of occurrences whose stacks are affected.
    """

    def __init__(self, config: Configuration) -> None:
        self._config = config

    def location(self, call_stack: Sequence[str] | None) -> str:
        """Return the display location for a raw call stack."""
        return join_location(clean_location(call_stack or [], self._config))

    def fingerprint(
        self,
        query: str | None,
        call_stack: Sequence[str] | None = None,
        test_location: str | None = None,
    ) -> str:
        """Fingerprint one occurrence from raw inputs.

        Args:
            query: Raw SQL text.
            call_stack: Raw call-stack frames.
            test_location: Raw test identity, line numbers allowed.

        Returns:
            16 hex character fingerprint.
        """
        return compute_fingerprint(
            normalize_query(query),
            self.location(call_stack),
            normalize_test_location(test_location),
        )
