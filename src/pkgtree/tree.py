"""Import-path keyed package trees and their composition.

A PackageTree maps every import path under its root to either a parsed
Package or the PartialParseError that stopped it from loading. Trees are
treated as values: merge and compose return new trees and never touch
their inputs.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from common.errors import InputError, PartialParseError
from common.logging_utils import extra_context, is_debug_enabled
from .ignored import IgnoredRuleset

logger = logging.getLogger(__name__)


def is_under(path: str, prefix: str) -> bool:
    """True when path equals prefix or lies below it (an empty prefix holds everything)."""
    if not prefix:
        return True
    return path == prefix or path.startswith(prefix + "/")


def is_standard_import(path: str) -> bool:
    """Go convention: a first path element without a dot is standard library."""
    first = path.split("/", 1)[0]
    return "." not in first


@dataclass(frozen=True)
class Package:
    """A parsed package: its name and the import paths it uses."""

    name: str
    import_path: str
    imports: Tuple[str, ...] = ()
    test_imports: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PackageOrErr:
    """Either a package or the error that kept it from loading."""

    package: Optional[Package] = None
    error: Optional[PartialParseError] = None

    @classmethod
    def failed(cls, import_path: str, reason: str) -> "PackageOrErr":
        return cls(error=PartialParseError(import_path, reason))

    @property
    def ok(self) -> bool:
        return self.package is not None and self.error is None


@dataclass(frozen=True)
class ReachEntry:
    """What one package transitively imports from outside its tree."""

    external: Tuple[str, ...] = ()
    internal: Tuple[str, ...] = ()
    broken: Tuple[str, ...] = ()


@dataclass
class PackageTree:
    """Import root plus the import path -> PackageOrErr mapping below it."""

    import_root: str
    packages: Dict[str, PackageOrErr] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.packages = dict(sorted(self.packages.items()))

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.packages))

    def __len__(self) -> int:
        return len(self.packages)

    def __contains__(self, import_path: object) -> bool:
        return import_path in self.packages

    def get(self, import_path: str) -> Optional[PackageOrErr]:
        return self.packages.get(import_path)

    def items(self) -> List[Tuple[str, PackageOrErr]]:
        return sorted(self.packages.items())

    def copy(self) -> "PackageTree":
        return PackageTree(self.import_root, dict(self.packages))

    def validate(self) -> None:
        """Raise InputError when a key lies outside the import root."""
        stray = [p for p in self.packages if not is_under(p, self.import_root)]
        if stray:
            raise InputError(
                f"Packages outside import root {self.import_root!r}: {', '.join(sorted(stray))}"
            )

    def errors(self) -> Dict[str, PartialParseError]:
        return {p: pe.error for p, pe in self.items() if pe.error is not None}

    def without_prefixes(self, prefixes: Iterable[str]) -> "PackageTree":
        """Copy of the tree minus every entry equal to or under a prefix."""
        prefixes = [p.rstrip("/") for p in prefixes]
        kept = {
            path: pe for path, pe in self.packages.items()
            if not any(is_under(path, prefix) for prefix in prefixes)
        }
        return PackageTree(self.import_root, kept)

    def is_internal(self, import_path: str, local_roots: Sequence[str] = ()) -> bool:
        if import_path in self.packages:
            return True
        if self.import_root and is_under(import_path, self.import_root):
            return True
        return any(is_under(import_path, root) for root in local_roots)

    def reach(
        self,
        ignored: Optional[IgnoredRuleset] = None,
        include_tests: bool = False,
        local_roots: Sequence[str] = (),
        sources: Optional[Iterable[str]] = None,
    ) -> Dict[str, ReachEntry]:
        """Compute, per package, everything it transitively imports.

        Ignored packages are dropped both as starting points and as import
        targets. Internal imports that are missing or failed to load are
        reported as ``broken``; outside imports (standard library included)
        as ``external``.
        """
        ignored = ignored or IgnoredRuleset()
        starts = sorted(sources) if sources is not None else list(self)
        result: Dict[str, ReachEntry] = {}
        for path in starts:
            if ignored.is_ignored(path):
                continue
            pe = self.packages.get(path)
            if pe is None or not pe.ok:
                continue
            ext, internal, broken = self._walk(path, ignored, include_tests, local_roots)
            result[path] = ReachEntry(tuple(sorted(ext)), tuple(sorted(internal)), tuple(sorted(broken)))
        return result

    def _walk(self, start, ignored, include_tests, local_roots):
        ext: Set[str] = set()
        internal: Set[str] = set()
        broken: Set[str] = set()
        queue = [start]
        while queue:
            path = queue.pop()
            if path in internal:
                continue
            internal.add(path)
            pkg = self.packages[path].package
            imports = list(pkg.imports)
            if include_tests and path == start:
                imports.extend(pkg.test_imports)
            for imp in imports:
                if imp == "C" or ignored.is_ignored(imp):
                    continue
                if not self.is_internal(imp, local_roots):
                    ext.add(imp)
                    continue
                target = self.packages.get(imp)
                if target is None or not target.ok:
                    broken.add(imp)
                elif imp not in internal:
                    queue.append(imp)
        return ext, internal, broken

    def external_reach(
        self,
        ignored: Optional[IgnoredRuleset] = None,
        is_external: Callable[[str], bool] = lambda p: not is_standard_import(p),
        local_roots: Sequence[str] = (),
    ) -> Dict[str, Tuple[str, ...]]:
        """Per package, the sorted outside imports that pass ``is_external``."""
        return {
            path: tuple(p for p in entry.external if is_external(p))
            for path, entry in self.reach(ignored, local_roots=local_roots).items()
        }


def merge(base: PackageTree, overlay: PackageTree, prefixes_to_strip: Iterable[str]) -> PackageTree:
    """Strip regions now owned by ``overlay`` from ``base``, then overlay it.

    Overlay entries win on conflict; stale base entries under a stripped
    prefix never survive.
    """
    prefixes = list(prefixes_to_strip)
    result = base.without_prefixes(prefixes)
    stripped = len(base) - len(result)
    result.packages.update(overlay.packages)
    result = PackageTree(base.import_root, result.packages)
    if is_debug_enabled(logger):
        logger.debug(
            "Merged package trees",
            extra=extra_context(
                event="merge",
                component="pkgtree",
                action="merge",
                base_root=base.import_root,
                overlay_root=overlay.import_root,
                stripped=stripped,
                overlaid=len(overlay),
                count=len(result),
            ),
        )
    return result


def common_root(paths: Iterable[str]) -> str:
    """Longest shared import-path prefix, element-wise."""
    split = [p.split("/") for p in paths if p]
    if not split:
        return ""
    prefix: List[str] = []
    for parts in zip(*split):
        if any(part != parts[0] for part in parts):
            break
        prefix.append(parts[0])
    return "/".join(prefix)


def compose(trees: Sequence[PackageTree], import_root: Optional[str] = None) -> PackageTree:
    """Union of several trees in order; later trees win on duplicate paths."""
    root = import_root if import_root is not None else common_root(t.import_root for t in trees)
    result = PackageTree(root)
    for tree in trees:
        result = merge(result, tree, [tree.import_root] if tree.import_root else [])
    return result

