"""Version source backed by a Go module proxy (GOPROXY protocol).

Versions come from ``<proxy>/<module>/@v/list``; sources are read from the
module zip at ``<proxy>/<module>/@v/<version>.zip`` and scanned in memory.
Responses are cached per instance with a TTL.
"""
from __future__ import annotations

import io
import logging
import re
import zipfile
from typing import Dict, Optional, Tuple

import requests

from common.errors import FetchError, NotFoundError
from common.http_client import robust_get
from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants
from pkgtree.scanner import build_from_files
from pkgtree.tree import PackageTree
from solver.manifest import Manifest
from solver.source import VersionSource
from versioning.cache import TTLCache
from versioning.constraint import Constraint
from versioning.models import ProjectRoot, Version, VersionKind, sort_versions
from versioning.parser import parse_constraint

logger = logging.getLogger(__name__)

_REQUIRE_LINE = re.compile(r'^\s*([^\s()]+)\s+(v[^\s/]+)(?:\s*//\s*(indirect))?\s*$')


def escape_module_path(path: str) -> str:
    """Case-encode a module path: each uppercase letter becomes ``!`` + lowercase."""
    return "".join(f"!{c.lower()}" if c.isupper() else c for c in path)


def parse_go_mod(text: str, name: str) -> Manifest:
    """Turn the ``require`` directives of a go.mod file into a Manifest.

    Each requirement becomes a caret constraint on its minimum version;
    indirect requirements are skipped.
    """
    constraints: Dict[str, Constraint] = {}
    in_block = False
    for raw in text.splitlines():
        line = raw.strip()
        if in_block:
            if line.startswith(")"):
                in_block = False
                continue
            spec = line
        elif line.startswith("require ("):
            in_block = True
            continue
        elif line.startswith("require "):
            spec = line[len("require "):]
        else:
            continue
        m = _REQUIRE_LINE.match(spec)
        if not m or m.group(3):
            continue
        constraints[m.group(1)] = parse_constraint(f"^{m.group(2)}")
    return Manifest.build(name, constraints=constraints)


class GoProxyVersionSource(VersionSource):
    """Fetch versions and package trees from a module proxy over HTTP."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        cache: Optional[TTLCache] = None,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(cache or TTLCache(Constants.VERSION_CACHE_TTL_SEC, Constants.VERSION_CACHE_MAX_ENTRIES))
        self.base_url = (base_url or Constants.GOPROXY_URL).rstrip("/")
        self.session = session

    def _url(self, root: ProjectRoot, suffix: str) -> str:
        return f"{self.base_url}/{escape_module_path(root)}/@v/{suffix}"

    def _get(self, root: ProjectRoot, suffix: str, binary: bool = False):
        url = self._url(root, suffix)
        try:
            status, _, body = robust_get(url, binary=binary, session=self.session)
        except FetchError as exc:
            raise FetchError(str(exc), root) from exc
        if status in (404, 410):
            raise NotFoundError(f"{root}: not found on {self.base_url}", root)
        if status != 200:
            raise FetchError(f"{root}: unexpected HTTP {status} for {suffix}", root)
        return body

    def list_versions(self, root, cancel=None):
        self.check_cancel(cancel)
        key = ("list", root)
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)
        with Timer() as t:
            body = self._get(root, "list")
            versions = sort_versions(
                Version.from_tag(line.strip()) for line in body.splitlines() if line.strip()
            )
        if is_debug_enabled(logger):
            logger.debug(
                "Listed versions",
                extra=extra_context(
                    event="list_versions",
                    component="goproxy",
                    action="list",
                    target=root,
                    count=len(versions),
                    duration_ms=t.duration_ms(),
                ),
            )
        self.cache.set(key, tuple(versions))
        return versions

    def _module(self, root: ProjectRoot, version: Version, cancel) -> Tuple[PackageTree, Manifest]:
        self.check_cancel(cancel)
        name = version.revision if version.kind is VersionKind.REVISION else version.name
        key = ("module", root, name)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        body = self._get(root, f"{name}.zip", binary=True)
        self.check_cancel(cancel)
        files, go_mod = self._read_zip(root, name, body)
        tree = build_from_files(root, files, skip_dirs=Constants.SKIPPED_DIRS)
        label = f"{root}@{name}"
        manifest = parse_go_mod(go_mod, label) if go_mod is not None else Manifest.empty(label)
        logger.info("Fetched %s (%d packages)", label, len(tree))
        self.cache.set(key, (tree, manifest))
        return tree, manifest

    @staticmethod
    def _read_zip(root: ProjectRoot, name: str, body: bytes) -> Tuple[Dict[str, object], Optional[str]]:
        prefix = f"{root}@{name}/"
        files: Dict[str, object] = {}
        go_mod = None
        try:
            with zipfile.ZipFile(io.BytesIO(body)) as archive:
                for info in archive.infolist():
                    if info.is_dir() or not info.filename.startswith(prefix):
                        continue
                    rel = info.filename[len(prefix):]
                    try:
                        text = archive.read(info).decode("utf-8")
                    except (UnicodeDecodeError, zipfile.BadZipFile) as exc:
                        files[rel] = exc
                        continue
                    if rel == "go.mod":
                        go_mod = text
                    else:
                        files[rel] = text
        except zipfile.BadZipFile as exc:
            raise FetchError(f"{root}@{name}: corrupt module archive: {exc}", root) from exc
        return files, go_mod

    def package_tree_at(self, root, version, cancel=None):
        return self._module(root, version, cancel)[0]

    def manifest_at(self, root, version, cancel=None):
        return self._module(root, version, cancel)[1]
