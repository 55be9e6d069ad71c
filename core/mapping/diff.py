"""Structural diff of record versions.

Outbound updates only carry the fields that changed. A change set is a set
of dot paths ("status", "ship_to_address.city", "line_items.0.quantity")
built either by diffing two versions of the same record or from the
``previous_attributes`` object a webhook delivers alongside the new record.
"""

from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, Mapping, Set


def _join(prefix: str, key: Any) -> str:
    return f"{prefix}.{key}" if prefix else str(key)


def changed_field_paths(previous: Any, current: Any, prefix: str = "") -> Set[str]:
    """Return the dot paths whose values differ between two versions.

    Mappings are compared key by key; lists of equal length element by
    element (index segments); anything else, including lists whose length
    changed, is compared as a whole value.
    """
    if isinstance(previous, Mapping) and isinstance(current, Mapping):
        paths: Set[str] = set()
        for key in list(previous.keys()) + [k for k in current.keys() if k not in previous]:
            paths |= changed_field_paths(previous.get(key), current.get(key), _join(prefix, key))
        return paths

    if isinstance(previous, list) and isinstance(current, list) and len(previous) == len(current):
        paths = set()
        for index, (before, after) in enumerate(zip(previous, current)):
            paths |= changed_field_paths(before, after, _join(prefix, index))
        return paths

    if previous != current:
        return {prefix} if prefix else {""}
    return set()


def attribute_paths(attributes: Any, prefix: str = "") -> Set[str]:
    """Every dot path present in an attributes object, containers included."""
    paths: Set[str] = set()
    if isinstance(attributes, Mapping):
        items: Iterable = attributes.items()
    elif isinstance(attributes, list):
        items = enumerate(attributes)
    else:
        return paths

    for key, value in items:
        path = _join(prefix, key)
        paths.add(path)
        paths |= attribute_paths(value, path)
    return paths


@dataclass(frozen=True)
class ChangeSet:
    """Set of changed dot paths.

    ``everything`` marks a direct (non change-driven) sync in which every
    field counts as changed.
    """
    paths: FrozenSet[str] = field(default_factory=frozenset)
    everything: bool = False

    @classmethod
    def all(cls) -> "ChangeSet":
        return cls(everything=True)

    @classmethod
    def between(cls, previous: Any, current: Any) -> "ChangeSet":
        return cls(paths=frozenset(p for p in changed_field_paths(previous, current) if p))

    @classmethod
    def from_previous_attributes(cls, previous_attributes: Any) -> "ChangeSet":
        return cls(paths=frozenset(attribute_paths(previous_attributes)))

    def has(self, path: str) -> bool:
        """True if ``path`` or one of its ancestors changed."""
        if self.everything:
            return True
        segments = path.split(".")
        return any(".".join(segments[:i]) in self.paths for i in range(1, len(segments) + 1))

    def any_under(self, prefix: str) -> bool:
        """True if ``prefix`` or anything beneath it changed."""
        if self.everything:
            return True
        return self.has(prefix) or any(p.startswith(prefix + ".") for p in self.paths)

    def __bool__(self) -> bool:
        return self.everything or bool(self.paths)
