"""Project manifests: declared constraints, overrides and prune options."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Flag
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple, Union

from common.errors import InputError
from pkgtree.ignored import IgnoredRuleset
from versioning.constraint import Constraint
from versioning.models import ProjectRoot
from versioning.parser import parse_constraint


class PruneOptions(Flag):
    """What may be removed from a vendored project."""
    NONE = 0
    NESTED_VENDOR_DIRS = 1
    UNUSED_PACKAGES = 2
    GO_TESTS = 4
    NON_GO = 8


DEFAULT_PRUNE = PruneOptions.NESTED_VENDOR_DIRS | PruneOptions.GO_TESTS | PruneOptions.UNUSED_PACKAGES


@dataclass(frozen=True)
class CascadingPruneOptions:
    """Default prune options with per-project replacements."""

    default: PruneOptions = DEFAULT_PRUNE
    per_project: Mapping[ProjectRoot, PruneOptions] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "per_project", MappingProxyType(dict(self.per_project)))

    def options_for(self, root: ProjectRoot) -> PruneOptions:
        return self.per_project.get(root, self.default)


@dataclass(frozen=True)
class ProjectProperties:
    """Constraint on one project plus an optional alternate source location."""

    constraint: Constraint = field(default_factory=Constraint.any)
    source: Optional[str] = None


PropertiesLike = Union[ProjectProperties, Constraint, str, None]


def _as_properties(value: PropertiesLike) -> ProjectProperties:
    if isinstance(value, ProjectProperties):
        return value
    if isinstance(value, Constraint):
        return ProjectProperties(value)
    if value is None or isinstance(value, str):
        return ProjectProperties(parse_constraint(value))
    raise InputError(f"Unsupported constraint value: {value!r}")


@dataclass(frozen=True)
class Manifest:
    """A project's declared dependency constraints, overrides and options.

    ``name`` identifies the manifest in conflict reports.
    """

    name: str
    constraints: Mapping[ProjectRoot, ProjectProperties] = field(default_factory=dict)
    overrides: Mapping[ProjectRoot, ProjectProperties] = field(default_factory=dict)
    ignored: Tuple[str, ...] = ()
    required: Tuple[str, ...] = ()
    prune: CascadingPruneOptions = field(default_factory=CascadingPruneOptions)

    def __post_init__(self) -> None:
        object.__setattr__(self, "constraints", MappingProxyType(dict(sorted(self.constraints.items()))))
        object.__setattr__(self, "overrides", MappingProxyType(dict(sorted(self.overrides.items()))))
        object.__setattr__(self, "ignored", tuple(self.ignored))
        object.__setattr__(self, "required", tuple(self.required))

    @classmethod
    def empty(cls, name: str) -> "Manifest":
        return cls(name)

    @classmethod
    def build(
        cls,
        name: str,
        constraints: Optional[Mapping[ProjectRoot, PropertiesLike]] = None,
        overrides: Optional[Mapping[ProjectRoot, PropertiesLike]] = None,
        ignored: Iterable[str] = (),
        required: Iterable[str] = (),
        prune: Optional[CascadingPruneOptions] = None,
    ) -> "Manifest":
        """Build a manifest, parsing constraint text where strings are given.

        Raises:
            InputError: on a malformed constraint or project root.
        """
        def convert(entries):
            result = {}
            for root, value in (entries or {}).items():
                root = root.strip().rstrip("/")
                if not root:
                    raise InputError(f"Empty project root in manifest {name!r}")
                result[root] = _as_properties(value)
            return result

        return cls(
            name=name,
            constraints=convert(constraints),
            overrides=convert(overrides),
            ignored=tuple(ignored),
            required=tuple(required),
            prune=prune or CascadingPruneOptions(),
        )

    def ignored_ruleset(self) -> IgnoredRuleset:
        return IgnoredRuleset(self.ignored)

    def constraint_for(self, root: ProjectRoot) -> Optional[Constraint]:
        props = self.constraints.get(root)
        return props.constraint if props else None
