"""Location Name Normalization.

Warehouse names are typed by hand in two different systems, so the same
location often differs only in spacing or case:

    "Main  Warehouse "  -> "Main Warehouse"
    "main warehouse"    -> matches "Main Warehouse"

Unlike vendor names, no tokens are dropped: "Warehouse 2" and "Warehouse"
must remain distinct locations.
"""

from typing import Any


def normalize_location_name(value: Any) -> str:
    """Trim and collapse internal whitespace.

    Args:
        value: Location name or id (non-strings are stringified; None -> "")

    Returns:
        Normalized name, case preserved
    """
    if value is None:
        return ""
    return " ".join(str(value).split())


def location_key(value: Any) -> str:
    """Case-insensitive comparison key for a location name."""
    return normalize_location_name(value).lower()


def location_names_match(configured: Any, query: Any) -> bool:
    """Check whether a configured name matches a query.

    A match is exact string equality, or equality after whitespace
    normalization and lowercasing. Empty values never match.
    """
    if configured is None or query is None:
        return False
    configured_str = str(configured)
    query_str = str(query).strip()
    if not configured_str or not query_str:
        return False
    if configured_str == query_str:
        return True
    return location_key(configured_str) == location_key(query_str)
