"""Data models for versions and resolution modes."""

import functools
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, List, Optional

import semantic_version

# Import-path-like identifier of one resolvable project.
ProjectRoot = str

_PARTIAL_SEMVER = re.compile(r'^\d+(\.\d+){0,2}(-[0-9A-Za-z.\-]+)?(\+[0-9A-Za-z.\-]+)?$')


class VersionKind(Enum):
    """Kinds of version identifiers a source can report."""
    SEMVER = "semver"
    BRANCH = "branch"
    PLAIN = "plain"
    REVISION = "revision"


class ResolutionMode(Enum):
    """How a project takes part in resolution.

    LEGACY_PASSTHROUGH resolves a project exactly as a plain project would,
    ignoring any local sub-project composition.
    """
    STANDARD = "standard"
    LEGACY_PASSTHROUGH = "legacy-passthrough"


@functools.lru_cache(maxsize=4096)
def parse_semver(text: str) -> Optional[semantic_version.Version]:
    """Parse a tag like ``v1.2.3`` or ``1.2`` into a semantic version, or None."""
    s = text.strip()
    if s[:1] in ("v", "V"):
        s = s[1:]
    if not s:
        return None
    try:
        return semantic_version.Version(s)
    except ValueError:
        pass
    if _PARTIAL_SEMVER.match(s):
        try:
            return semantic_version.Version.coerce(s)
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class Version:
    """One revision of a project: a tag, a branch or a bare revision.

    ``revision`` pairs a tag or branch with the commit it points at.
    """
    kind: VersionKind
    name: str
    revision: Optional[str] = None
    default_branch: bool = False

    @classmethod
    def from_tag(cls, tag: str, revision: Optional[str] = None) -> "Version":
        """Semver tags become SEMVER versions, anything else PLAIN."""
        kind = VersionKind.SEMVER if parse_semver(tag) is not None else VersionKind.PLAIN
        return cls(kind, tag, revision)

    @classmethod
    def branch(cls, name: str, revision: Optional[str] = None, default: bool = False) -> "Version":
        return cls(VersionKind.BRANCH, name, revision, default)

    @classmethod
    def rev(cls, revision: str) -> "Version":
        return cls(VersionKind.REVISION, revision, revision)

    @property
    def semver(self) -> Optional[semantic_version.Version]:
        if self.kind is not VersionKind.SEMVER:
            return None
        return parse_semver(self.name)

    @property
    def is_prerelease(self) -> bool:
        sv = self.semver
        return bool(sv is not None and sv.prerelease)

    def with_revision(self, revision: Optional[str]) -> "Version":
        return replace(self, revision=revision)

    def unpaired(self) -> "Version":
        if self.kind is VersionKind.REVISION:
            return self
        return replace(self, revision=None)

    def same_as(self, other: "Version") -> bool:
        """Equal names and kinds; revisions must agree only when both are known."""
        if self.kind is VersionKind.REVISION or other.kind is VersionKind.REVISION:
            return bool(self.revision and self.revision == other.revision)
        if (self.kind, self.name) != (other.kind, other.name):
            return False
        if self.revision and other.revision:
            return self.revision == other.revision
        return True

    def __str__(self) -> str:
        if self.revision and self.kind is not VersionKind.REVISION:
            return f"{self.name} ({self.revision})"
        return self.name


def sort_versions(versions: Iterable[Version]) -> List[Version]:
    """Return versions newest first in a stable, canonical order.

    Releases (semver descending), prereleases, default branches, other
    branches, plain tags, then bare revisions.
    """
    releases, prereleases, defaults, branches, plains, revisions = [], [], [], [], [], []
    for v in versions:
        if v.kind is VersionKind.SEMVER:
            (prereleases if v.is_prerelease else releases).append(v)
        elif v.kind is VersionKind.BRANCH:
            (defaults if v.default_branch else branches).append(v)
        elif v.kind is VersionKind.PLAIN:
            plains.append(v)
        else:
            revisions.append(v)
    releases.sort(key=lambda v: (v.semver, v.name), reverse=True)
    prereleases.sort(key=lambda v: (v.semver, v.name), reverse=True)
    defaults.sort(key=lambda v: v.name)
    branches.sort(key=lambda v: v.name)
    plains.sort(key=lambda v: v.name)
    revisions.sort(key=lambda v: v.name)
    return releases + prereleases + defaults + branches + plains + revisions
