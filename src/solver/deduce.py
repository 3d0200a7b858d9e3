"""Project root deduction from import paths."""

import re
from typing import Iterable, Optional

from constants import Constants
from pkgtree.tree import is_under
from versioning.models import ProjectRoot

_VCS_SUFFIX = re.compile(r'\.(git|hg|bzr|svn)$')
_GOPKG_VERSION = re.compile(r'\.v\d+(-unstable)?$')


def longest_known_root(import_path: str, known_roots: Iterable[ProjectRoot]) -> Optional[ProjectRoot]:
    """The longest known root that holds ``import_path``, if any."""
    matches = [r for r in known_roots if r and is_under(import_path, r)]
    return max(matches, key=len) if matches else None


def deduce_project_root(import_path: str, known_roots: Iterable[ProjectRoot] = ()) -> ProjectRoot:
    """Map an import path to the root of the project that provides it.

    Known roots win; then explicit VCS suffixes; then per-host rules. Other
    dotted hosts use host/owner/repo, and undotted paths their first element.
    """
    path = import_path.strip().rstrip("/")
    known = longest_known_root(path, known_roots)
    if known:
        return known
    parts = path.split("/")
    for i, part in enumerate(parts):
        if _VCS_SUFFIX.search(part):
            return "/".join(parts[:i + 1])
    host = parts[0]
    if host == "gopkg.in":
        depth = 2 if len(parts) > 1 and _GOPKG_VERSION.search(parts[1]) else 3
        return "/".join(parts[:depth])
    depth = Constants.ROOT_DEPTH_BY_HOST.get(host)
    if depth:
        return "/".join(parts[:depth])
    if "." not in host:
        return host
    return "/".join(parts[:3])
