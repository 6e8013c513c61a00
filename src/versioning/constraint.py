"""Requirement expressions and matching against concrete Maven versions.

Three syntaxes are accepted:

- Maven ranges, optionally unioned: ``[1.0,2.0)``, ``(,1.0]``, ``[1.5]``,
  ``[1.0,2.0),[3.0,)``.
- Comparator expressions: ``>=1.0.0, <2.0.0``; alternatives joined with ``||``.
- Soft requirements: a bare version such as ``1.2.0``, matching versions equal
  to it under Maven ordering.

An empty expression or ``*`` matches every version.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from common.errors import MalformedInputError
from .maven_version import MavenVersion

_COMPARATOR_RE = re.compile(r"^(>=|<=|==|!=|>|<|=)?\s*([^\s<>=!,]+)$")
_COMPARATOR_CHARS = set("<>=!")


@dataclass(frozen=True)
class Bound:
    """One ``op version`` predicate of a constraint."""

    op: str
    version: MavenVersion

    def accepts(self, candidate: MavenVersion) -> bool:
        order = candidate.compare(self.version)
        if self.op == ">=":
            return order >= 0
        if self.op == ">":
            return order > 0
        if self.op == "<=":
            return order <= 0
        if self.op == "<":
            return order < 0
        if self.op == "!=":
            return order != 0
        return order == 0


@dataclass(frozen=True)
class Constraint:
    """A disjunction of conjunctions of bounds."""

    raw: str
    alternatives: Tuple[Tuple[Bound, ...], ...]
    soft: bool = False

    def matches(self, version: str) -> bool:
        """Return True when the concrete ``version`` satisfies the constraint."""
        candidate = MavenVersion(version)
        return any(all(bound.accepts(candidate) for bound in bounds) for bounds in self.alternatives)

    def filter(self, versions: Iterable[str]) -> List[str]:
        """Return the matching versions, keeping their input order."""
        return [v for v in versions if self.matches(v)]


def parse_constraint(raw: str) -> Constraint:
    """Parse a requirement expression.

    Raises:
        MalformedInputError: the expression is not a valid range, comparator
            expression or version.
    """
    if raw is None:
        raise MalformedInputError("requirement must be a string")
    text = raw.strip()
    if text in ("", "*"):
        return Constraint(raw=raw, alternatives=((),))
    if text[0] in "[(":
        return Constraint(raw=raw, alternatives=tuple(_parse_maven_ranges(text)))
    if "||" in text or _COMPARATOR_CHARS.intersection(text):
        return Constraint(raw=raw, alternatives=tuple(_parse_comparators(text)))
    if "," in text or any(ch.isspace() for ch in text) or any(ch in text for ch in "[]()"):
        raise MalformedInputError(f"invalid version requirement {raw!r}")
    return Constraint(raw=raw, alternatives=((Bound("==", MavenVersion(text)),),), soft=True)


def _split_ranges(text: str) -> List[str]:
    ranges = []
    i = 0
    while i < len(text):
        char = text[i]
        if char in ", \t":
            i += 1
            continue
        if char not in "[(":
            raise MalformedInputError(f"invalid version range {text!r}")
        end = i + 1
        while end < len(text) and text[end] not in "])":
            if text[end] in "[(":
                raise MalformedInputError(f"nested version range in {text!r}")
            end += 1
        if end >= len(text):
            raise MalformedInputError(f"unterminated version range {text!r}")
        ranges.append(text[i:end + 1])
        i = end + 1
    return ranges


def _parse_maven_ranges(text: str) -> List[Tuple[Bound, ...]]:
    alternatives = []
    for range_spec in _split_ranges(text):
        lower_inclusive = range_spec[0] == "["
        upper_inclusive = range_spec[-1] == "]"
        inner = range_spec[1:-1]
        if "," not in inner:
            version = inner.strip()
            if not version or not (lower_inclusive and upper_inclusive):
                raise MalformedInputError(f"single version range must be [v]: {range_spec!r}")
            alternatives.append((Bound("==", MavenVersion(version)),))
            continue

        parts = inner.split(",")
        if len(parts) != 2:
            raise MalformedInputError(f"invalid version range {range_spec!r}")
        lower, upper = parts[0].strip(), parts[1].strip()
        bounds = []
        if lower:
            bounds.append(Bound(">=" if lower_inclusive else ">", MavenVersion(lower)))
        if upper:
            bounds.append(Bound("<=" if upper_inclusive else "<", MavenVersion(upper)))
        if lower and upper and MavenVersion(upper) < MavenVersion(lower):
            raise MalformedInputError(f"range upper bound is below lower bound: {range_spec!r}")
        alternatives.append(tuple(bounds))
    if not alternatives:
        raise MalformedInputError(f"empty version range {text!r}")
    return alternatives


def _parse_comparators(text: str) -> List[Tuple[Bound, ...]]:
    alternatives = []
    for alternative in text.split("||"):
        bounds = []
        for part in alternative.split(","):
            part = part.strip()
            if not part:
                raise MalformedInputError(f"empty comparator in {text!r}")
            match = _COMPARATOR_RE.match(part)
            if match is None:
                raise MalformedInputError(f"invalid comparator {part!r} in {text!r}")
            op = match.group(1) or "=="
            bounds.append(Bound("==" if op == "=" else op, MavenVersion(match.group(2))))
        alternatives.append(tuple(bounds))
    return alternatives
