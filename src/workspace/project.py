"""Project capability interface, plain projects and the composite decorator."""
from __future__ import annotations

import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from common.logging_utils import extra_context, is_debug_enabled
from pkgtree.ignored import IgnoredRuleset
from pkgtree.scanner import build
from pkgtree.tree import PackageTree, compose
from solver.constraints import ConstraintSetBuilder, aggregate, aggregate_overrides
from solver.lock import Lock
from solver.manifest import Manifest, ProjectProperties
from solver.solver import SolveParameters
from versioning.models import ProjectRoot, ResolutionMode

logger = logging.getLogger(__name__)

# Reads the manifest of a sub-project: (directory, import root) -> Manifest.
ManifestLoader = Callable[[str, str], Manifest]


class ProjectOps(ABC):
    """What the workspace and the solver need from a project."""

    @property
    @abstractmethod
    def import_root(self) -> ProjectRoot:
        """Import path of the project's root package."""

    @property
    @abstractmethod
    def manifest(self) -> Manifest:
        """The project's effective manifest."""

    @property
    def lock(self) -> Optional[Lock]:
        return None

    @abstractmethod
    def package_tree(self) -> PackageTree:
        """Scan the project's sources."""

    def manifests(self) -> List[Manifest]:
        """Every manifest contributing constraints, in declaration order."""
        return [self.manifest]

    def local_roots(self) -> Tuple[ProjectRoot, ...]:
        """Import roots resolved from local sources rather than a version source."""
        return (self.import_root,)

    def extra_vendor_entries(self) -> Dict[ProjectRoot, str]:
        """Local projects to link into vendor/: import root -> directory."""
        return {}

    def make_params(
        self,
        mode: ResolutionMode = ResolutionMode.STANDARD,
        cancel: Optional[threading.Event] = None,
        trace: bool = False,
    ) -> SolveParameters:
        """Assemble solver parameters from this project's inputs."""
        manifests = self.manifests()
        ignored = IgnoredRuleset(p for m in manifests for p in m.ignored)
        return SolveParameters(
            root_tree=self.package_tree(),
            constraints=aggregate(manifests),
            overrides=aggregate_overrides(manifests),
            ignored=ignored,
            required=tuple(sorted({r for m in manifests for r in m.required})),
            lock=self.lock,
            mode=mode,
            local_roots=self.local_roots(),
            cancel=cancel,
            trace=trace,
        )


class LocalProject(ProjectOps):
    """A project checked out in a local directory."""

    def __init__(
        self,
        root_dir: str,
        import_root: ProjectRoot,
        manifest: Optional[Manifest] = None,
        lock: Optional[Lock] = None,
        source_paths: Optional[Sequence[str]] = None,
        skip_dirs: Sequence[str] = (),
    ):
        self.root_dir = root_dir
        self._import_root = import_root
        self._manifest = manifest or Manifest.empty(import_root)
        self._lock = lock
        self.source_paths = source_paths
        self.skip_dirs = tuple(skip_dirs)

    @property
    def import_root(self) -> ProjectRoot:
        return self._import_root

    @property
    def manifest(self) -> Manifest:
        return self._manifest

    @property
    def lock(self) -> Optional[Lock]:
        return self._lock

    def package_tree(self) -> PackageTree:
        return build(self.root_dir, self._import_root, self.source_paths, self.skip_dirs)

    def __repr__(self) -> str:
        return f"LocalProject({self._import_root!r}, {self.root_dir!r})"


class CompositeProject(ProjectOps):
    """A project plus the local sub-projects living in its local gopaths.

    Forwards to the wrapped project except for the package tree (gopath
    regions are replaced by the sub-projects' own trees), the manifest (sub
    manifests are merged in) and the vendor entries. In LEGACY_PASSTHROUGH
    mode every call is forwarded unchanged.
    """

    def __init__(
        self,
        base: ProjectOps,
        sub_projects: Sequence[ProjectOps] = (),
        local_gopaths: Sequence[str] = (),
        mode: ResolutionMode = ResolutionMode.STANDARD,
        sub_dirs: Optional[Dict[ProjectRoot, str]] = None,
    ):
        self.base = base
        self.sub_projects = tuple(sub_projects)
        self.local_gopaths = tuple(g.strip("/") for g in local_gopaths)
        self.mode = mode
        self._sub_dirs = dict(sub_dirs or {})
        self._merged: Optional[Manifest] = None

    @classmethod
    def discover(
        cls,
        base: LocalProject,
        local_deps: Sequence[ProjectRoot],
        local_gopaths: Sequence[str],
        load_manifest: Optional[ManifestLoader] = None,
        mode: ResolutionMode = ResolutionMode.STANDARD,
    ) -> "CompositeProject":
        """Find each local dependency under ``<root_dir>/<gopath>/src/<import path>``.

        The first gopath holding a dependency wins; dependencies found in none
        are logged and left to the version source.
        """
        if mode is ResolutionMode.LEGACY_PASSTHROUGH:
            return cls(base, mode=mode)
        subs: List[ProjectOps] = []
        dirs: Dict[ProjectRoot, str] = {}
        for dep in local_deps:
            for gopath in local_gopaths:
                candidate = os.path.join(base.root_dir, gopath, "src", *dep.split("/"))
                if os.path.isdir(candidate):
                    manifest = load_manifest(candidate, dep) if load_manifest else Manifest.empty(dep)
                    subs.append(LocalProject(candidate, dep, manifest))
                    dirs[dep] = candidate
                    break
            else:
                logger.warning("Local dependency %s not found in %s", dep, ", ".join(local_gopaths))
        return cls(base, subs, local_gopaths, mode, dirs)

    @property
    def passthrough(self) -> bool:
        return self.mode is ResolutionMode.LEGACY_PASSTHROUGH

    @property
    def import_root(self) -> ProjectRoot:
        return self.base.import_root

    @property
    def lock(self) -> Optional[Lock]:
        return self.base.lock

    @property
    def manifest(self) -> Manifest:
        if self.passthrough:
            return self.base.manifest
        if self._merged is None:
            self._merged = self._merge_manifests()
        return self._merged

    def manifests(self) -> List[Manifest]:
        if self.passthrough:
            return self.base.manifests()
        return self.base.manifests() + [m for sub in self.sub_projects for m in sub.manifests()]

    def _merge_manifests(self) -> Manifest:
        manifests = self.manifests()
        tables = []
        for kind in ("constraints", "overrides"):
            builder = ConstraintSetBuilder(kind)
            for m in manifests:
                builder.add_manifest(m)
            tables.append({
                root: ProjectProperties(entry.constraint, entry.source)
                for root, entry in builder.build().items()
            })
        head = self.base.manifest
        return Manifest(
            name=head.name,
            constraints=tables[0],
            overrides=tables[1],
            ignored=tuple(dict.fromkeys(p for m in manifests for p in m.ignored)),
            required=tuple(dict.fromkeys(r for m in manifests for r in m.required)),
            prune=head.prune,
        )

    def package_tree(self) -> PackageTree:
        tree = self.base.package_tree()
        if self.passthrough:
            return tree
        prefixes = [f"{self.import_root}/{gopath}" for gopath in self.local_gopaths]
        trees = [tree.without_prefixes(prefixes)] + [sub.package_tree() for sub in self.sub_projects]
        result = compose(trees, import_root="")
        if is_debug_enabled(logger):
            logger.debug(
                "Composed project tree",
                extra=extra_context(
                    event="compose",
                    component="workspace",
                    action="package_tree",
                    target=self.import_root,
                    sub_projects=len(self.sub_projects),
                    count=len(result),
                ),
            )
        return result

    def local_roots(self) -> Tuple[ProjectRoot, ...]:
        if self.passthrough:
            return self.base.local_roots()
        return self.base.local_roots() + tuple(sub.import_root for sub in self.sub_projects)

    def extra_vendor_entries(self) -> Dict[ProjectRoot, str]:
        if self.passthrough:
            return self.base.extra_vendor_entries()
        entries = dict(self.base.extra_vendor_entries())
        entries.update(self._sub_dirs)
        return entries
