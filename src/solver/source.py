"""The version source contract the solver consumes."""
from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import List, Optional

from common.errors import SolveCancelled
from pkgtree.tree import PackageTree
from versioning.cache import TTLCache
from versioning.models import ProjectRoot, Version
from .deduce import deduce_project_root
from .manifest import Manifest


class VersionSource(ABC):
    """Abstract provider of versions, package trees and manifests.

    Implementations own any retry policy; the solver never retries. A shared
    instance must tolerate concurrent reads from parallel solves.
    """

    def __init__(self, cache: Optional[TTLCache] = None):
        self.cache = cache

    @abstractmethod
    def list_versions(self, root: ProjectRoot, cancel: Optional[threading.Event] = None) -> List[Version]:
        """Return the project's versions newest first (possibly empty).

        Raises:
            NotFoundError: if the root cannot be resolved.
            FetchError: on I/O failure.
        """

    @abstractmethod
    def package_tree_at(
        self, root: ProjectRoot, version: Version, cancel: Optional[threading.Event] = None
    ) -> PackageTree:
        """Return the package tree of the project at ``version``.

        Raises:
            FetchError: on I/O failure.
        """

    def manifest_at(
        self, root: ProjectRoot, version: Version, cancel: Optional[threading.Event] = None
    ) -> Manifest:
        """Return the manifest the project declares at ``version``."""
        return Manifest.empty(f"{root}@{version.name}")

    def deduce_project_root(self, import_path: str) -> ProjectRoot:
        return deduce_project_root(import_path)

    @staticmethod
    def check_cancel(cancel: Optional[threading.Event]) -> None:
        if cancel is not None and cancel.is_set():
            raise SolveCancelled("solve cancelled by caller")
