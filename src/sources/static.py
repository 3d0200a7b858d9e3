"""In-memory version source for fixtures, tests and offline solves."""
from __future__ import annotations

import threading
from typing import Dict, List, Optional, Tuple

from common.errors import FetchError, NotFoundError
from pkgtree.tree import Package, PackageOrErr, PackageTree
from solver.manifest import Manifest
from solver.source import VersionSource
from versioning.models import ProjectRoot, Version, sort_versions

_Entry = Tuple[PackageTree, Manifest]


class StaticVersionSource(VersionSource):
    """A fixed universe of (root, version) -> (PackageTree, Manifest).

    Every call is recorded in ``calls`` as ``(method, root)`` so callers can
    check which projects were looked up. Reads are guarded by a lock and the
    universe is treated as frozen once solving starts.
    """

    def __init__(self) -> None:
        super().__init__()
        self._universe: Dict[ProjectRoot, Dict[Version, _Entry]] = {}
        self._failing: Dict[ProjectRoot, str] = {}
        self._lock = threading.Lock()
        self.calls: List[Tuple[str, ProjectRoot]] = []

    def add(
        self,
        root: ProjectRoot,
        version: Version,
        tree: Optional[PackageTree] = None,
        manifest: Optional[Manifest] = None,
    ) -> "StaticVersionSource":
        """Register one version; a missing tree becomes a single root package."""
        if tree is None:
            name = root.rsplit("/", 1)[-1].replace("-", "_").replace(".", "_")
            tree = PackageTree(root, {root: PackageOrErr(Package(name, root))})
        manifest = manifest or Manifest.empty(f"{root}@{version.name}")
        with self._lock:
            self._universe.setdefault(root, {})[version] = (tree, manifest)
        return self

    def fail(self, root: ProjectRoot, message: str = "simulated fetch failure") -> "StaticVersionSource":
        """Make every lookup of ``root`` raise FetchError."""
        with self._lock:
            self._failing[root] = message
        return self

    def lookups(self, root: ProjectRoot) -> int:
        with self._lock:
            return sum(1 for _, r in self.calls if r == root)

    def _versions_of(self, method: str, root: ProjectRoot) -> Dict[Version, _Entry]:
        with self._lock:
            self.calls.append((method, root))
            if root in self._failing:
                raise FetchError(self._failing[root], root)
            versions = self._universe.get(root)
        if versions is None:
            raise NotFoundError(f"unknown project root {root}", root)
        return versions

    def _entry(self, method: str, root: ProjectRoot, version: Version) -> _Entry:
        versions = self._versions_of(method, root)
        entry = versions.get(version)
        if entry is None:
            entry = next((e for v, e in versions.items() if v.same_as(version)), None)
        if entry is None:
            raise FetchError(f"{root} has no version {version}", root)
        return entry

    def list_versions(self, root, cancel=None):
        self.check_cancel(cancel)
        return sort_versions(self._versions_of("list_versions", root))

    def package_tree_at(self, root, version, cancel=None):
        self.check_cancel(cancel)
        return self._entry("package_tree_at", root, version)[0]

    def manifest_at(self, root, version, cancel=None):
        self.check_cancel(cancel)
        return self._entry("manifest_at", root, version)[1]
