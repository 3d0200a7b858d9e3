"""Build PackageTrees by scanning Go source directories.

Only the header of each file is read: build constraints, the package
clause and the import declarations. A package that cannot be loaded is
recorded as an error entry and never aborts the scan.
"""
from __future__ import annotations

import logging
import os
import posixpath
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants
from .tree import Package, PackageOrErr, PackageTree

logger = logging.getLogger(__name__)

_BLOCK_COMMENT = re.compile(r'/\*.*?\*/', re.DOTALL)
_LINE_COMMENT = re.compile(r'//[^\n]*')
_BUILD_IGNORE = re.compile(r'^\s*//\s*(?:\+build|go:build)\s+(?:.*\s)?ignore(?:\s|$)', re.MULTILINE)
_CLAUSE_LINE = re.compile(r'^package\s', re.MULTILINE)
_PACKAGE_CLAUSE = re.compile(r'\A\s*package\s+([A-Za-z_][A-Za-z0-9_]*)')
_IMPORT_SINGLE = re.compile(r'\A\s*import\s+(?:[A-Za-z_.][A-Za-z0-9_]*\s+)?"([^"]+)"\s*;?')
_IMPORT_BLOCK = re.compile(r'\A\s*import\s*\((.*?)\)\s*;?', re.DOTALL)
_IMPORT_SPEC = re.compile(r'(?:[A-Za-z_.][A-Za-z0-9_]*\s+)?"([^"]+)"')

# Either the file text or the reason it could not be read.
SourceText = Union[str, Exception]


@dataclass(frozen=True)
class ParsedFile:
    """Header information extracted from one Go file."""

    name: Optional[str]
    imports: Tuple[str, ...]
    ignored: bool = False


def parse_go_header(text: str) -> ParsedFile:
    """Extract build-ignore status, package name and imports from Go source."""
    clause = _CLAUSE_LINE.search(text)
    preamble = text[:clause.start()] if clause else text
    if _BUILD_IGNORE.search(preamble):
        return ParsedFile(None, (), ignored=True)
    body = _LINE_COMMENT.sub("", _BLOCK_COMMENT.sub(" ", text))
    m = _PACKAGE_CLAUSE.match(body)
    if not m:
        return ParsedFile(None, ())
    name = m.group(1)
    rest = body[m.end():]
    imports: List[str] = []
    while True:
        block = _IMPORT_BLOCK.match(rest)
        if block:
            imports.extend(_IMPORT_SPEC.findall(block.group(1)))
            rest = rest[block.end():]
            continue
        single = _IMPORT_SINGLE.match(rest)
        if single:
            imports.append(single.group(1))
            rest = rest[single.end():]
            continue
        break
    return ParsedFile(name, tuple(imports))


def _load_package(import_path: str, files: Sequence[Tuple[str, SourceText]]) -> PackageOrErr:
    names: Dict[str, List[str]] = {}
    imports: set = set()
    test_imports: set = set()
    buildable = 0
    for filename, source in sorted(files, key=lambda f: f[0]):
        if isinstance(source, Exception):
            return PackageOrErr.failed(import_path, f"cannot read {filename}: {source}")
        parsed = parse_go_header(source)
        if parsed.ignored:
            continue
        if parsed.name is None:
            return PackageOrErr.failed(import_path, f"{filename}: expected package clause")
        buildable += 1
        is_test = filename.endswith(Constants.GO_TEST_SUFFIX)
        if is_test:
            test_imports.update(parsed.imports)
            base = parsed.name[:-5] if parsed.name.endswith("_test") else parsed.name
        else:
            imports.update(parsed.imports)
            base = parsed.name
        names.setdefault(base, []).append(filename)
    if not buildable:
        return PackageOrErr.failed(import_path, "no buildable Go source files")
    if len(names) > 1:
        found = ", ".join(f"{n} ({', '.join(fs)})" for n, fs in sorted(names.items()))
        return PackageOrErr.failed(import_path, f"found multiple packages: {found}")
    name = next(iter(names))
    test_imports -= imports
    test_imports.discard(import_path)
    return PackageOrErr(package=Package(
        name=name,
        import_path=import_path,
        imports=tuple(sorted(imports)),
        test_imports=tuple(sorted(test_imports)),
    ))


def _skipped(dirname: str, skip_dirs: Iterable[str]) -> bool:
    return (
        dirname.startswith(".")
        or dirname.startswith("_")
        or dirname in Constants.SKIPPED_DIRS
        or dirname in skip_dirs
    )


def _join_import(import_root: str, rel_dir: str) -> str:
    if rel_dir in ("", "."):
        return import_root
    return posixpath.join(import_root, rel_dir) if import_root else rel_dir


def build(
    root_dir: str,
    import_root: str,
    source_paths: Optional[Sequence[str]] = None,
    skip_dirs: Sequence[str] = (),
) -> PackageTree:
    """Scan ``root_dir`` for Go packages and key them under ``import_root``.

    Args:
        root_dir: Filesystem directory of the project.
        import_root: Import path the directory corresponds to.
        source_paths: Optional relative subdirectories limiting the scan.
        skip_dirs: Extra directory names (or relative paths) to leave out.

    Returns:
        PackageTree with one entry per directory holding ``.go`` files.
    """
    skip_rel = {s.strip("/") for s in skip_dirs}
    starts = [os.path.join(root_dir, p) for p in source_paths] if source_paths else [root_dir]
    packages: Dict[str, PackageOrErr] = {}
    with Timer() as t:
        for start in sorted(starts):
            if not os.path.isdir(start):
                logger.warning("Source path does not exist: %s", start)
                continue
            for dirpath, dirnames, filenames in os.walk(start):
                rel_dir = os.path.relpath(dirpath, root_dir).replace(os.sep, "/")
                dirnames[:] = sorted(
                    d for d in dirnames
                    if not _skipped(d, skip_rel)
                    and posixpath.normpath(posixpath.join(rel_dir, d)) not in skip_rel
                )
                go_files = sorted(f for f in filenames if f.endswith(Constants.GO_FILE_SUFFIX))
                if not go_files:
                    continue
                sources: List[Tuple[str, SourceText]] = []
                for fname in go_files:
                    try:
                        with open(os.path.join(dirpath, fname), encoding="utf-8") as fh:
                            sources.append((fname, fh.read()))
                    except (OSError, UnicodeDecodeError) as exc:
                        sources.append((fname, exc))
                import_path = _join_import(import_root, rel_dir)
                packages[import_path] = _load_package(import_path, sources)
    tree = PackageTree(import_root, packages)
    if is_debug_enabled(logger):
        logger.debug(
            "Scanned package tree",
            extra=extra_context(
                event="scan",
                component="pkgtree",
                action="build",
                target=import_root,
                count=len(tree),
                errors=len(tree.errors()),
                duration_ms=t.duration_ms(),
            ),
        )
    return tree


def build_from_files(
    import_root: str,
    files: Mapping[str, SourceText],
    skip_dirs: Sequence[str] = (),
) -> PackageTree:
    """Build a PackageTree from in-memory ``relative path -> source`` entries."""
    by_dir: Dict[str, List[Tuple[str, SourceText]]] = {}
    for rel_path, source in files.items():
        rel_path = rel_path.replace("\\", "/").lstrip("/")
        if not rel_path.endswith(Constants.GO_FILE_SUFFIX):
            continue
        rel_dir, fname = posixpath.split(rel_path)
        parts = [p for p in rel_dir.split("/") if p]
        if any(_skipped(p, skip_dirs) for p in parts):
            continue
        by_dir.setdefault("/".join(parts), []).append((fname, source))
    packages = {
        _join_import(import_root, rel_dir): _load_package(_join_import(import_root, rel_dir), sources)
        for rel_dir, sources in sorted(by_dir.items())
    }
    return PackageTree(import_root, packages)
