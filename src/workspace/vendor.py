"""Symlinks tying local projects into the shared vendor tree.

Failures are collected and returned, never swallowed: callers decide whether
a partially linked vendor tree is acceptable.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence

from constants import Constants
from .workspace import MemberSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkFailure:
    """A symlink that could not be created."""

    link: str
    target: str
    reason: str

    def __str__(self) -> str:
        return f"{self.link} -> {self.target}: {self.reason}"


def _symlink(link: str, target_path: str) -> Optional[LinkFailure]:
    parent = os.path.dirname(link)
    try:
        os.makedirs(parent, exist_ok=True)
        relative = os.path.relpath(target_path, parent)
        if os.path.islink(link):
            if os.readlink(link) == relative:
                return None
            return LinkFailure(link, target_path, f"already links to {os.readlink(link)}")
        if os.path.exists(link):
            return LinkFailure(link, target_path, "a file or directory is already there")
        os.symlink(relative, link)
    except OSError as exc:
        return LinkFailure(link, target_path, str(exc))
    return None


def link_local_projects(vendor_dir: str, entries: Mapping[str, str]) -> List[LinkFailure]:
    """Link ``vendor/<import path>`` to each local project directory."""
    failures: List[LinkFailure] = []
    for import_path in sorted(entries):
        link = os.path.join(vendor_dir, *import_path.split("/"))
        failure = _symlink(link, entries[import_path])
        if failure is not None:
            logger.warning("Cannot link local project %s: %s", import_path, failure.reason)
            failures.append(failure)
    return failures


def link_member_vendor_dirs(root_dir: str, members: Sequence[MemberSpec]) -> List[LinkFailure]:
    """Point each member's own vendor directory at the workspace vendor tree."""
    vendor_dir = os.path.join(root_dir, Constants.VENDOR_DIR)
    failures: List[LinkFailure] = []
    for spec in members:
        link = os.path.join(root_dir, spec.path, Constants.VENDOR_DIR)
        failure = _symlink(link, vendor_dir)
        if failure is not None:
            logger.warning("Cannot link vendor dir of %s: %s", spec.name, failure.reason)
            failures.append(failure)
    return failures
