"""Version constraints in a canonical, intersectable form.

A Constraint is a conjunction of independent facets: a set of semver
intervals, a required branch or tag name, a required revision and a
prerelease flag. Each facet intersects on its own, which keeps
``intersect`` commutative and associative across every constraint kind.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

import semantic_version

from .models import Version, VersionKind


@dataclass(frozen=True)
class Interval:
    """A contiguous semver range; a None bound is unbounded."""
    lower: Optional[semantic_version.Version] = None
    lower_inclusive: bool = True
    upper: Optional[semantic_version.Version] = None
    upper_inclusive: bool = False

    @classmethod
    def point(cls, version: semantic_version.Version) -> "Interval":
        return cls(version, True, version, True)

    @property
    def is_empty(self) -> bool:
        if self.lower is None or self.upper is None:
            return False
        if self.lower > self.upper:
            return True
        return self.lower == self.upper and not (self.lower_inclusive and self.upper_inclusive)

    @property
    def is_point(self) -> bool:
        return self.lower is not None and self.lower == self.upper

    def contains(self, version: semantic_version.Version) -> bool:
        if self.lower is not None:
            if version < self.lower or (version == self.lower and not self.lower_inclusive):
                return False
        if self.upper is not None:
            if version > self.upper or (version == self.upper and not self.upper_inclusive):
                return False
        return True

    def intersect(self, other: "Interval") -> "Interval":
        lower, lower_inc = _tighter_lower(self.lower, self.lower_inclusive, other.lower, other.lower_inclusive)
        upper, upper_inc = _tighter_upper(self.upper, self.upper_inclusive, other.upper, other.upper_inclusive)
        return Interval(lower, lower_inc, upper, upper_inc)

    def __str__(self) -> str:
        if self.is_point:
            return f"=={self.lower}"
        parts = []
        if self.lower is not None:
            parts.append(f"{'>=' if self.lower_inclusive else '>'}{self.lower}")
        if self.upper is not None:
            parts.append(f"{'<=' if self.upper_inclusive else '<'}{self.upper}")
        return ", ".join(parts) if parts else "*"


def _tighter_lower(a, a_inc, b, b_inc):
    if a is None:
        return b, b_inc
    if b is None or a > b:
        return a, a_inc
    if b > a:
        return b, b_inc
    return a, a_inc and b_inc


def _tighter_upper(a, a_inc, b, b_inc):
    if a is None:
        return b, b_inc
    if b is None or a < b:
        return a, a_inc
    if b < a:
        return b, b_inc
    return a, a_inc and b_inc


def _lower_key(iv: Interval):
    if iv.lower is None:
        return (0,)
    return (1, iv.lower, 0 if iv.lower_inclusive else 1)


def normalize_intervals(intervals: Iterable[Interval]) -> Tuple[Interval, ...]:
    """Sort, drop empties and merge overlapping or touching intervals."""
    items = sorted((iv for iv in intervals if not iv.is_empty), key=_lower_key)
    merged: List[Interval] = []
    for iv in items:
        if not merged:
            merged.append(iv)
            continue
        cur = merged[-1]
        touches = (
            cur.upper is None
            or iv.lower is None
            or cur.upper > iv.lower
            or (cur.upper == iv.lower and (cur.upper_inclusive or iv.lower_inclusive))
        )
        if not touches:
            merged.append(iv)
            continue
        if cur.upper is None or iv.upper is None:
            upper, upper_inc = None, False
        elif iv.upper > cur.upper:
            upper, upper_inc = iv.upper, iv.upper_inclusive
        elif iv.upper < cur.upper:
            upper, upper_inc = cur.upper, cur.upper_inclusive
        else:
            upper, upper_inc = cur.upper, cur.upper_inclusive or iv.upper_inclusive
        merged[-1] = Interval(cur.lower, cur.lower_inclusive, upper, upper_inc)
    return tuple(merged)


def intersect_intervals(a: Tuple[Interval, ...], b: Tuple[Interval, ...]) -> Tuple[Interval, ...]:
    return normalize_intervals(x.intersect(y) for x in a for y in b)


def union_intervals(a: Iterable[Interval], b: Iterable[Interval]) -> Tuple[Interval, ...]:
    return normalize_intervals(list(a) + list(b))


_NAME_KINDS = (VersionKind.BRANCH, VersionKind.PLAIN)


@dataclass(frozen=True)
class Constraint:
    """Predicate over Versions. Build instances with the class constructors."""
    ranges: Optional[Tuple[Interval, ...]] = None
    name: Optional[str] = None
    name_kind: Optional[VersionKind] = None
    revision: Optional[str] = None
    allow_prerelease: bool = True
    empty: bool = False
    reason: Optional[str] = field(default=None, compare=False)

    @classmethod
    def any(cls) -> "Constraint":
        return cls()

    @classmethod
    def none(cls, reason: str = "no version can satisfy this constraint") -> "Constraint":
        return cls(empty=True, reason=reason)

    @classmethod
    def from_intervals(cls, intervals: Iterable[Interval], allow_prerelease: bool = False) -> "Constraint":
        return cls._make(normalize_intervals(intervals), None, None, None, allow_prerelease)

    @classmethod
    def branch(cls, name: str) -> "Constraint":
        return cls(name=name, name_kind=VersionKind.BRANCH)

    @classmethod
    def plain(cls, name: str) -> "Constraint":
        return cls(name=name, name_kind=VersionKind.PLAIN)

    @classmethod
    def revision_of(cls, revision: str) -> "Constraint":
        return cls(revision=revision)

    @classmethod
    def _make(cls, ranges, name, name_kind, revision, allow_prerelease) -> "Constraint":
        if ranges is not None and not ranges:
            return cls.none("version ranges do not overlap")
        if ranges is not None and name is not None:
            return cls.none(f"a semver range cannot match {name_kind.value} {name!r}")
        if ranges is not None and not allow_prerelease and all(
            iv.is_point and iv.lower.prerelease for iv in ranges
        ):
            return cls.none("only prerelease versions remain but prereleases are excluded")
        if ranges is None:
            allow_prerelease = True
        return cls(ranges, name, name_kind, revision, allow_prerelease)

    @property
    def is_empty(self) -> bool:
        return self.empty

    @property
    def is_any(self) -> bool:
        return self == Constraint()

    def matches(self, version: Version) -> bool:
        """Return True when the version satisfies every facet."""
        if self.empty:
            return False
        if self.ranges is not None:
            sv = version.semver
            if sv is None:
                return False
            if sv.prerelease and not self.allow_prerelease:
                return False
            if not any(iv.contains(sv) for iv in self.ranges):
                return False
        if self.name is not None:
            if version.kind is not self.name_kind or version.name != self.name:
                return False
        if self.revision is not None:
            if version.revision != self.revision:
                return False
        return True

    def intersect(self, other: "Constraint") -> "Constraint":
        """Most restrictive constraint satisfied by both; empty when incompatible."""
        if self.empty:
            return self
        if other.empty:
            return other
        if self.ranges is None:
            ranges = other.ranges
        elif other.ranges is None:
            ranges = self.ranges
        else:
            ranges = intersect_intervals(self.ranges, other.ranges)
        name, name_kind = self.name, self.name_kind
        if other.name is not None:
            if name is not None and (name, name_kind) != (other.name, other.name_kind):
                return Constraint.none(
                    f"{name_kind.value} {name!r} conflicts with {other.name_kind.value} {other.name!r}"
                )
            name, name_kind = other.name, other.name_kind
        revision = self.revision
        if other.revision is not None:
            if revision is not None and revision != other.revision:
                return Constraint.none(f"revision {revision} conflicts with revision {other.revision}")
            revision = other.revision
        allow = self.allow_prerelease and other.allow_prerelease
        return Constraint._make(ranges, name, name_kind, revision, allow)

    def __str__(self) -> str:
        if self.empty:
            return f"<none: {self.reason}>" if self.reason else "<none>"
        parts = []
        if self.ranges is not None:
            parts.append(" || ".join(str(iv) for iv in self.ranges))
        if self.name is not None:
            label = "branch" if self.name_kind is VersionKind.BRANCH else "tag"
            parts.append(f"{label} {self.name}")
        if self.revision is not None:
            parts.append(f"revision {self.revision}")
        return " & ".join(parts) if parts else "*"
