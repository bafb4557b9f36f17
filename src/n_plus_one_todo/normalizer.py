# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""SQL and test identity normalization used for fingerprint input."""

import re

PLACEHOLDER = "?"

# Single-quoted literals with '' escapes. Double-quoted identifiers stay intact.
_RE_STRINGS = re.compile(r"'(?:[^']|'')*'")
# Digit runs touching a word character or ``$`` are identifiers or positional
# placeholders (users123, $1) and are left alone.
_RE_NUMBERS = re.compile(r"(?<![\w$])\d+(?:\.\d+)?(?!\w)")
_RE_TEST_LINE = re.compile(r":\d+$")


def normalize_query(query: str | None) -> str | None:
    """Replace literal values in a SQL query with a placeholder.

    String literals are replaced before numbers so that digits inside a
    string never reach the numeric pass.

    Args:
        query: Raw SQL text.

    Returns:
        Normalized SQL text. Empty or ``None`` input is returned unchanged.
    """
    if not query:
        return query
    normalized = _RE_STRINGS.sub(PLACEHOLDER, query)
    return _RE_NUMBERS.sub(PLACEHOLDER, normalized)


def normalize_test_location(test_location: str | None) -> str | None:
    """Reduce a test identity to its file path.

    Accepts ``path:line`` style locations as well as pytest node ids
    (``path::Class::test``).

    Args:
        test_location: Raw test identity.

    Returns:
        File path without line number or node suffix, or ``None`` when the
        result is empty.
    """
    if not test_location:
        return None
    path = test_location.strip().split("::", 1)[0]
    path = _RE_TEST_LINE.sub("", path)
    return path or None
