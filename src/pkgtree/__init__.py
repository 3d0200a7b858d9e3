"""Package trees: scanning, composition and reachability."""

from .ignored import IgnoredRuleset
from .scanner import build, build_from_files
from .tree import (
    Package,
    PackageOrErr,
    PackageTree,
    ReachEntry,
    common_root,
    compose,
    is_standard_import,
    is_under,
    merge,
)

__all__ = [
    "IgnoredRuleset",
    "Package",
    "PackageOrErr",
    "PackageTree",
    "ReachEntry",
    "build",
    "build_from_files",
    "common_root",
    "compose",
    "is_standard_import",
    "is_under",
    "merge",
]
