"""Solver output."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from versioning.models import ProjectRoot, ResolutionMode, Version
from .lock import LockedProject


@dataclass(frozen=True)
class Solution:
    """One locked version and package set per project, sorted by root."""

    projects: Tuple[LockedProject, ...]
    attempts: int = 0
    mode: ResolutionMode = ResolutionMode.STANDARD

    def __post_init__(self) -> None:
        object.__setattr__(self, "projects", tuple(sorted(self.projects, key=lambda p: p.root)))

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

    def versions(self) -> Dict[ProjectRoot, Version]:
        return {p.root: p.version for p in self.projects}

    def describe(self) -> str:
        return "\n".join(f"{p.root} {p.version} [{', '.join(p.packages)}]" for p in self.projects)
