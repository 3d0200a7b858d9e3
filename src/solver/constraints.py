"""Aggregation of constraints declared across several manifests.

Each builder owns its accumulator and hands out an immutable ConstraintSet;
concurrent callers use independent builders.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from common.errors import ConflictEntry, ConflictTrace, Contribution, InputError, UnsatisfiableError
from common.logging_utils import extra_context, is_debug_enabled
from versioning.constraint import Constraint
from versioning.models import ProjectRoot
from .manifest import Manifest, ProjectProperties

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConstrainedProject:
    """Merged constraint for one project and every declaration behind it."""

    root: ProjectRoot
    constraint: Constraint
    origins: Tuple[Contribution, ...] = ()
    source: Optional[str] = None


class ConstraintSet(Mapping[ProjectRoot, ConstrainedProject]):
    """Immutable project root -> ConstrainedProject table."""

    def __init__(self, entries: Optional[Mapping[ProjectRoot, ConstrainedProject]] = None, kind: str = "constraints"):
        self._entries = MappingProxyType(dict(sorted((entries or {}).items())))
        self.kind = kind

    def __getitem__(self, root: ProjectRoot) -> ConstrainedProject:
        return self._entries[root]

    def __iter__(self) -> Iterator[ProjectRoot]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConstraintSet):
            return NotImplemented
        return dict(self._entries) == dict(other._entries)

    def __hash__(self) -> int:
        return hash(tuple(self._entries.items()))

    def constraint_for(self, root: ProjectRoot) -> Constraint:
        entry = self._entries.get(root)
        return entry.constraint if entry else Constraint.any()

    def __repr__(self) -> str:
        body = ", ".join(f"{r}: {e.constraint}" for r, e in self._entries.items())
        return f"ConstraintSet({self.kind}: {{{body}}})"


class ConstraintSetBuilder:
    """Accumulates declarations and intersects them per project root."""

    def __init__(self, kind: str = "constraints"):
        self.kind = kind
        self._origins: Dict[ProjectRoot, List[Contribution]] = {}
        self._sources: Dict[ProjectRoot, Tuple[str, str]] = {}
        self._built = False

    def add(self, root: ProjectRoot, props: ProjectProperties, origin: str) -> "ConstraintSetBuilder":
        """Record one declaration of ``root`` made by ``origin``.

        Raises:
            InputError: when two declarations name different sources.
        """
        if self._built:
            raise RuntimeError("ConstraintSetBuilder has already been built")
        self._origins.setdefault(root, []).append(Contribution(origin, props.constraint))
        if props.source:
            previous = self._sources.get(root)
            if previous and previous[0] != props.source:
                raise InputError(
                    f"{root}: source {previous[0]!r} (from {previous[1]}) "
                    f"conflicts with {props.source!r} (from {origin})"
                )
            self._sources[root] = (props.source, origin)
        return self

    def add_manifest(self, manifest: Manifest) -> "ConstraintSetBuilder":
        table = manifest.overrides if self.kind == "overrides" else manifest.constraints
        for root, props in table.items():
            self.add(root, props, manifest.name)
        return self

    def build(self) -> ConstraintSet:
        """Intersect every declaration and return the immutable set.

        Raises:
            UnsatisfiableError: when some root's declarations cannot all hold.
        """
        if self._built:
            raise RuntimeError("ConstraintSetBuilder has already been built")
        self._built = True
        entries: Dict[ProjectRoot, ConstrainedProject] = {}
        trace = ConflictTrace()
        for root in sorted(self._origins):
            origins = tuple(self._origins[root])
            merged = Constraint.any()
            for contribution in origins:
                merged = merged.intersect(contribution.constraint)
            if merged.is_empty:
                trace.add(ConflictEntry(
                    root=root,
                    message=f"declared {self.kind} cannot be satisfied together ({merged.reason})",
                    contributions=origins,
                ))
                continue
            source = self._sources.get(root)
            entries[root] = ConstrainedProject(root, merged, origins, source[0] if source else None)
        self._origins = {}
        if trace:
            raise UnsatisfiableError(
                f"{len(trace.entries)} project(s) have unsatisfiable {self.kind}",
                trace,
                before_solve=True,
            )
        if is_debug_enabled(logger):
            logger.debug(
                "Aggregated constraints",
                extra=extra_context(
                    event="aggregate",
                    component="constraints",
                    action="build",
                    kind=self.kind,
                    count=len(entries),
                ),
            )
        return ConstraintSet(entries, self.kind)


def aggregate(manifests: Iterable[Manifest]) -> ConstraintSet:
    """Merge dependency constraints of several manifests."""
    builder = ConstraintSetBuilder("constraints")
    for manifest in manifests:
        builder.add_manifest(manifest)
    return builder.build()


def aggregate_overrides(manifests: Iterable[Manifest]) -> ConstraintSet:
    """Merge override constraints of several manifests."""
    builder = ConstraintSetBuilder("overrides")
    for manifest in manifests:
        builder.add_manifest(manifest)
    return builder.build()
