"""Value substitution tables.

Tenants author per-connection lookup tables (e.g. list "country":
"Australia" -> "AU"). A lookup that misses anywhere returns the input
unchanged:
- no list with the requested name
- no entry for the value (keys are matched with exact casing)
- an empty mapped value
- an empty input value
"""

from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError

from core.models.config import SubstitutionList


SubstitutionSource = Union[SubstitutionList, dict]


def _as_list(entry: SubstitutionSource) -> Optional[SubstitutionList]:
    if isinstance(entry, SubstitutionList):
        return entry
    if isinstance(entry, dict):
        try:
            return SubstitutionList.model_validate(entry)
        except ValidationError:
            return None
    return None


def find_substitution_list(
    substitution_lists: Optional[Iterable[SubstitutionSource]],
    list_name: str,
) -> Optional[SubstitutionList]:
    """Return the first list named ``list_name`` (linear scan, array order)."""
    if not substitution_lists:
        return None
    for entry in substitution_lists:
        candidate = _as_list(entry)
        if candidate is not None and candidate.list_name == list_name:
            return candidate
    return None


def substitute(
    substitution_lists: Optional[Iterable[SubstitutionSource]],
    list_name: str,
    value: Any,
) -> Any:
    """Apply a named substitution list to a value.

    Args:
        substitution_lists: The connection's substitution lists
        list_name: Name of the list to apply (e.g. "country")
        value: Source value

    Returns:
        The mapped value, or ``value`` unchanged on any miss
    """
    if value is None or value == "":
        return value

    table = find_substitution_list(substitution_lists, list_name)
    if table is None:
        return value

    mapped = table.mapping.get(value) if isinstance(value, str) else None
    if mapped is None or mapped == "":
        return value
    return mapped
