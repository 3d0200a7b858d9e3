"""Godeps.json projection of a Solution, for tools that still read it."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from constants import Constants
from solver.solution import Solution
from versioning.models import VersionKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dependency:
    """One vendored package pinned to a revision."""

    import_path: str
    rev: str
    comment: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        entry = {"ImportPath": self.import_path}
        if self.comment:
            entry["Comment"] = self.comment
        entry["Rev"] = self.rev
        return entry


@dataclass(frozen=True)
class Godeps:
    """The Godeps.json document."""

    import_path: str
    deps: List[Dependency] = field(default_factory=list)
    comment: str = Constants.GODEPS_COMMENT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "_Comment": self.comment,
            "ImportPath": self.import_path,
            "Deps": [d.to_dict() for d in sorted(self.deps, key=lambda d: d.import_path)],
        }


def godeps_from_solution(solution: Solution, import_path: str) -> Godeps:
    """One Dependency per package used from each solved project."""
    deps: List[Dependency] = []
    for project in solution:
        version = project.version
        rev = version.revision or version.name
        comment = None if version.kind in (VersionKind.REVISION, VersionKind.BRANCH) else version.name
        for path in project.import_paths():
            deps.append(Dependency(path, rev, comment))
    return Godeps(import_path, deps)


def render_godeps(godeps: Godeps) -> str:
    """Tab-indented JSON, dependencies sorted by import path."""
    return json.dumps(godeps.to_dict(), indent="\t")


def write_godeps(root_dir: str, solution: Solution, import_path: str) -> str:
    """Write ``Godeps/Godeps.json`` under ``root_dir`` and return its path."""
    path = os.path.join(root_dir, Constants.GODEPS_DIR, Constants.GODEPS_FILE)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    godeps = godeps_from_solution(solution, import_path)
    text = render_godeps(godeps)
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(text)
    logger.info("Wrote %s (%d dependencies)", path, len(godeps.deps))
    return path
