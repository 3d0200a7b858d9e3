"""Locks: persisted solution snapshots and their diffs."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from versioning.models import ProjectRoot, Version, VersionKind


@dataclass(frozen=True)
class LockedProject:
    """One project's chosen version and the packages used from it.

    Packages are relative to the project root; ``"."`` is the root package.
    """

    root: ProjectRoot
    version: Version
    packages: Tuple[str, ...] = ()
    source: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "packages", tuple(sorted(set(self.packages))))

    def import_paths(self) -> List[str]:
        return [self.root if p == "." else f"{self.root}/{p}" for p in self.packages]

    def to_dict(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"name": self.root}
        if self.source:
            entry["source"] = self.source
        if self.version.kind is VersionKind.BRANCH:
            entry["branch"] = self.version.name
        elif self.version.kind is not VersionKind.REVISION:
            entry["version"] = self.version.name
        if self.version.revision:
            entry["revision"] = self.version.revision
        entry["packages"] = list(self.packages)
        return entry


@dataclass(frozen=True)
class Lock:
    """A previously computed solution, sorted by project root."""

    projects: Tuple[LockedProject, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "projects", tuple(sorted(self.projects, key=lambda p: p.root)))

    @classmethod
    def from_projects(cls, projects: Iterable[LockedProject]) -> "Lock":
        return cls(tuple(projects))

    @classmethod
    def from_solution(cls, solution: Any) -> "Lock":
        """Project a Solution (or anything iterating LockedProjects) into a Lock."""
        return cls(tuple(solution))

    def __iter__(self) -> Iterator[LockedProject]:
        return iter(self.projects)

    def __len__(self) -> int:
        return len(self.projects)

    def get(self, root: ProjectRoot) -> Optional[LockedProject]:
        for project in self.projects:
            if project.root == root:
                return project
        return None

    def roots(self) -> List[ProjectRoot]:
        return [p.root for p in self.projects]

    def to_dict(self) -> Dict[str, Any]:
        return {"projects": [p.to_dict() for p in self.projects]}


@dataclass(frozen=True)
class LockDiff:
    """Differences between two locks."""

    added: Tuple[LockedProject, ...] = ()
    removed: Tuple[LockedProject, ...] = ()
    changed: Tuple[Tuple[LockedProject, LockedProject], ...] = field(default=())

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)

    def describe(self) -> List[str]:
        lines = [f"+ {p.root} {p.version}" for p in self.added]
        lines.extend(f"- {p.root} {p.version}" for p in self.removed)
        for old, new in self.changed:
            if old.version != new.version:
                lines.append(f"~ {new.root} {old.version} -> {new.version}")
            else:
                lines.append(f"~ {new.root} packages {list(old.packages)} -> {list(new.packages)}")
        return lines


def diff_locks(old: Optional[Lock], new: Lock) -> LockDiff:
    """Compare two locks project by project; a missing old lock adds everything."""
    old_by_root = {p.root: p for p in (old or Lock())}
    new_by_root = {p.root: p for p in new}
    added = tuple(new_by_root[r] for r in sorted(new_by_root) if r not in old_by_root)
    removed = tuple(old_by_root[r] for r in sorted(old_by_root) if r not in new_by_root)
    changed = tuple(
        (old_by_root[r], new_by_root[r])
        for r in sorted(new_by_root)
        if r in old_by_root and old_by_root[r] != new_by_root[r]
    )
    return LockDiff(added, removed, changed)
