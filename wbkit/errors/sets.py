"""A set of strings with the membership helpers used by the error utilities."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Optional


class StringSet(set):
    """A set of strings with chainable insert/delete and sorted listing."""

    def insert(self, *items: str) -> "StringSet":
        """Add items to the set and return the set itself."""
        self.update(items)
        return self

    def delete(self, *items: str) -> "StringSet":
        """Remove items from the set, ignoring absent ones, and return the set."""
        self.difference_update(items)
        return self

    def has(self, item: str) -> bool:
        """Report whether item is in the set."""
        return item in self

    def has_all(self, *items: str) -> bool:
        """Report whether every item is in the set."""
        return all(item in self for item in items)

    def has_any(self, *items: str) -> bool:
        """Report whether at least one item is in the set."""
        return any(item in self for item in items)

    def is_superset(self, other: Iterable[str]) -> bool:
        """Report whether the set contains every element of other."""
        return self.issuperset(other)

    def equal(self, other: Iterable[str]) -> bool:
        """Report whether both sets have exactly the same members."""
        other_set = other if isinstance(other, (set, frozenset)) else set(other)
        return len(self) == len(other_set) and self.issuperset(other_set)

    def difference(self, *others: Iterable[str]) -> "StringSet":
        """Members of this set that are in none of the others."""
        return StringSet(set.difference(self, *others))

    def union(self, *others: Iterable[str]) -> "StringSet":
        """Members of this set or of any of the others."""
        return StringSet(set.union(self, *others))

    def intersection(self, *others: Iterable[str]) -> "StringSet":
        """Members found in this set and in all of the others."""
        return StringSet(set.intersection(self, *others))

    def sorted_list(self) -> list[str]:
        """The members in ascending order."""
        return sorted(self)

    def unsorted_list(self) -> list[str]:
        """The members in no particular order."""
        return list(self)

    def pop_any(self) -> Optional[str]:
        """Remove and return an arbitrary member, or None when the set is empty."""
        return self.pop() if self else None


def string_key_set(mapping: Mapping[str, Any]) -> StringSet:
    """Build a StringSet from the keys of a mapping with string keys."""
    if not isinstance(mapping, Mapping):
        raise TypeError(f"expected a mapping, got {type(mapping).__name__}")
    keys = list(mapping.keys())
    for key in keys:
        if not isinstance(key, str):
            raise TypeError(f"mapping key {key!r} is not a string")
    return StringSet(keys)