"""Maven version ordering.

Implements the ordering of Maven's ``ComparableVersion``: a version string is
split into a tree of numeric, qualifier and list items on ``.``, ``-`` and on
transitions between digits and letters, trailing "null" items are dropped,
and the trees are compared item by item.

Qualifier order::

    alpha < beta < milestone < rc == cr < snapshot < "" == ga == final == release < sp

Unknown qualifiers sort after ``sp``, lexically among themselves.
"""
from __future__ import annotations

import functools
from typing import List, Optional, Union

_QUALIFIERS = ("alpha", "beta", "milestone", "rc", "snapshot", "", "sp")
_ALIASES = {"ga": "", "final": "", "release": "", "cr": "rc"}
_SHORT_QUALIFIERS = {"a": "alpha", "b": "beta", "m": "milestone"}
_RELEASE_QUALIFIER = str(_QUALIFIERS.index(""))


def _comparable_qualifier(qualifier: str) -> str:
    try:
        return str(_QUALIFIERS.index(qualifier))
    except ValueError:
        return f"{len(_QUALIFIERS)}-{qualifier}"


def _cmp(left, right) -> int:
    return (left > right) - (left < right)


class _IntItem:
    __slots__ = ("value",)

    def __init__(self, value: int):
        self.value = value

    def is_null(self) -> bool:
        return self.value == 0

    def compare(self, other: Optional["_Item"]) -> int:
        if other is None:
            return 0 if self.value == 0 else 1
        if isinstance(other, _IntItem):
            return _cmp(self.value, other.value)
        return 1  # numbers sort after qualifiers and sub-lists

    def canonical(self):
        return ("i", self.value)


class _StringItem:
    __slots__ = ("value",)

    def __init__(self, value: str, followed_by_digit: bool = False):
        if followed_by_digit and len(value) == 1:
            value = _SHORT_QUALIFIERS.get(value, value)
        self.value = _ALIASES.get(value, value)

    def is_null(self) -> bool:
        return _comparable_qualifier(self.value) == _RELEASE_QUALIFIER

    def compare(self, other: Optional["_Item"]) -> int:
        if other is None:
            return _cmp(_comparable_qualifier(self.value), _RELEASE_QUALIFIER)
        if isinstance(other, _StringItem):
            return _cmp(_comparable_qualifier(self.value), _comparable_qualifier(other.value))
        return -1

    def canonical(self):
        return ("s", self.value)


class _ListItem(list):

    def is_null(self) -> bool:
        return len(self) == 0

    def normalize(self) -> None:
        for i in range(len(self) - 1, -1, -1):
            item = self[i]
            if item.is_null():
                del self[i]
            elif not isinstance(item, _ListItem):
                break

    def compare(self, other: Optional["_Item"]) -> int:
        if other is None:
            if not self:
                return 0
            return self[0].compare(None)
        if isinstance(other, _IntItem):
            return -1
        if isinstance(other, _StringItem):
            return 1
        for i in range(max(len(self), len(other))):
            left = self[i] if i < len(self) else None
            right = other[i] if i < len(other) else None
            if left is None:
                result = 0 if right is None else -right.compare(None)
            else:
                result = left.compare(right)
            if result != 0:
                return result
        return 0

    def canonical(self):
        return ("l", tuple(item.canonical() for item in self))


_Item = Union[_IntItem, _StringItem, _ListItem]


def _parse_item(buf: str) -> _Item:
    if buf and all("0" <= char <= "9" for char in buf):
        return _IntItem(int(buf))
    return _StringItem(buf, False)


def _parse(version: str) -> _ListItem:
    version = version.lower()
    items = current = _ListItem()
    stack: List[_ListItem] = [current]
    is_digit = False
    start = 0

    for i, char in enumerate(version):
        if char == ".":
            current.append(_IntItem(0) if i == start else _parse_item(version[start:i]))
            start = i + 1
        elif char == "-":
            current.append(_IntItem(0) if i == start else _parse_item(version[start:i]))
            start = i + 1
            sub = _ListItem()
            current.append(sub)
            current = sub
            stack.append(current)
        elif "0" <= char <= "9":
            if not is_digit and i > start:
                current.append(_StringItem(version[start:i], True))
                start = i
                sub = _ListItem()
                current.append(sub)
                current = sub
                stack.append(current)
            is_digit = True
        else:
            if is_digit and i > start:
                current.append(_parse_item(version[start:i]))
                start = i
                sub = _ListItem()
                current.append(sub)
                current = sub
                stack.append(current)
            is_digit = False

    if len(version) > start:
        current.append(_parse_item(version[start:]))

    while stack:
        stack.pop().normalize()
    return items


@functools.total_ordering
class MavenVersion:
    """A Maven version string with Maven ordering, equality and hashing."""

    __slots__ = ("raw", "_items", "_canonical")

    def __init__(self, raw: str):
        self.raw = raw
        self._items = _parse(raw.strip())
        self._canonical = self._items.canonical()

    def compare(self, other: "MavenVersion") -> int:
        """Return -1, 0 or 1 as this version sorts before, equal to or after ``other``."""
        return self._items.compare(other._items)

    def __eq__(self, other) -> bool:
        if not isinstance(other, MavenVersion):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other) -> bool:
        if not isinstance(other, MavenVersion):
            return NotImplemented
        return self.compare(other) < 0

    def __hash__(self) -> int:
        return hash(self._canonical)

    def __str__(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"MavenVersion({self.raw!r})"


def compare(left: str, right: str) -> int:
    """Compare two Maven version strings; returns -1, 0 or 1."""
    return MavenVersion(left).compare(MavenVersion(right))


sort_key = functools.cmp_to_key(compare)
