"""Multi-project workspaces solved as one unit."""
from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from common.logging_utils import Timer, extra_context
from pkgtree.ignored import IgnoredRuleset
from pkgtree.tree import PackageTree, compose
from solver.constraints import ConstraintSet, aggregate, aggregate_overrides
from solver.lock import Lock
from solver.manifest import CascadingPruneOptions, Manifest
from solver.solver import SolveParameters, Solver
from solver.source import VersionSource
from versioning.models import ProjectRoot, ResolutionMode
from .project import ProjectOps
from .writer import PreparedWrite, VendorMode, plan_write

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemberSpec:
    """A workspace entry: the member's import path and its directory."""

    name: ProjectRoot
    path: str


class Workspace:
    """A set of member projects sharing one lock and one vendor tree.

    Members never resolve each other through the version source: their
    import roots are handed to the solver as local roots.
    """

    def __init__(
        self,
        root_dir: str,
        members: Sequence[Tuple[MemberSpec, ProjectOps]],
        lock: Optional[Lock] = None,
        prune: Optional[CascadingPruneOptions] = None,
    ):
        self.root_dir = root_dir
        self.members = list(members)
        self.lock = lock
        self.prune = prune or CascadingPruneOptions()

    @property
    def specs(self) -> List[MemberSpec]:
        return [spec for spec, _ in self.members]

    @property
    def projects(self) -> List[ProjectOps]:
        return [project for _, project in self.members]

    def manifests(self) -> List[Manifest]:
        return [m for project in self.projects for m in project.manifests()]

    def dependency_constraints(self) -> ConstraintSet:
        """Intersect member constraints.

        Raises:
            UnsatisfiableError: when two members can never agree on a project.
        """
        return aggregate(self.manifests())

    def overrides(self) -> ConstraintSet:
        return aggregate_overrides(self.manifests())

    def ignored_packages(self) -> IgnoredRuleset:
        return IgnoredRuleset(p for m in self.manifests() for p in m.ignored)

    def required_packages(self) -> Tuple[str, ...]:
        return tuple(sorted({r for m in self.manifests() for r in m.required}))

    def local_roots(self) -> Tuple[ProjectRoot, ...]:
        roots = [spec.name for spec in self.specs]
        for project in self.projects:
            roots.extend(project.local_roots())
        return tuple(sorted(set(roots)))

    def root_package_tree(self) -> PackageTree:
        """Compose every member's tree; later members win on shared paths.

        The composed tree has an empty import root: member identity comes
        from the local roots, not from a shared path prefix.
        """
        return compose([project.package_tree() for project in self.projects], import_root="")

    def extra_vendor_entries(self) -> Dict[ProjectRoot, str]:
        entries: Dict[ProjectRoot, str] = {}
        for spec, project in self.members:
            entries.update(project.extra_vendor_entries())
            entries[spec.name] = os.path.join(self.root_dir, spec.path)
        return entries

    def make_params(
        self,
        mode: ResolutionMode = ResolutionMode.STANDARD,
        cancel: Optional[threading.Event] = None,
        trace: bool = False,
    ) -> SolveParameters:
        return SolveParameters(
            root_tree=self.root_package_tree(),
            constraints=self.dependency_constraints(),
            overrides=self.overrides(),
            ignored=self.ignored_packages(),
            required=self.required_packages(),
            lock=self.lock,
            mode=mode,
            local_roots=self.local_roots(),
            cancel=cancel,
            trace=trace,
        )

    def prepare(
        self,
        source: VersionSource,
        mode: ResolutionMode = ResolutionMode.STANDARD,
        vendor_mode: VendorMode = VendorMode.ON_CHANGED,
        cancel: Optional[threading.Event] = None,
        trace: bool = False,
    ) -> PreparedWrite:
        """Solve the workspace and plan the resulting lock and vendor writes.

        Nothing is written; a cancelled or failed solve raises before any
        plan exists.
        """
        with Timer() as t:
            params = self.make_params(mode, cancel, trace)
            solution = Solver(params, source).solve()
            prepared = plan_write(self.lock, solution, vendor_mode, self.prune)
        logger.info(
            "Workspace solved: %d project(s), lock %s",
            len(solution),
            "changed" if prepared.write_lock else "unchanged",
            extra=extra_context(
                event="workspace_solve",
                component="workspace",
                action="prepare",
                outcome="success",
                members=len(self.members),
                count=len(solution),
                duration_ms=t.duration_ms(),
            ),
        )
        return prepared
