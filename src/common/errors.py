"""Error taxonomy for kdep.

InputError and UnsatisfiableError are fatal to a run; SourceError is raised
by version sources and propagated untouched; PartialParseError is recorded
inside package trees and only raised when a broken package is required.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple


class KdepError(Exception):
    """Base class for all kdep errors."""


class InputError(KdepError):
    """Malformed manifest, constraint or parameter."""


class SourceError(KdepError):
    """Version source I/O failure."""

    def __init__(self, message: str, root: Optional[str] = None):
        super().__init__(message)
        self.root = root


class NotFoundError(SourceError):
    """The project root cannot be resolved by the version source."""


class FetchError(SourceError):
    """Fetching versions or sources for a project failed."""


class SolveCancelled(KdepError):
    """The caller's cancellation signal was set during a solve."""


class PartialParseError(KdepError):
    """A package failed to load; kept inline in a PackageTree."""

    def __init__(self, import_path: str, reason: str):
        super().__init__(f"{import_path}: {reason}")
        self.import_path = import_path
        self.reason = reason

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, PartialParseError):
            return NotImplemented
        return (self.import_path, self.reason) == (other.import_path, other.reason)

    def __hash__(self) -> int:
        return hash((self.import_path, self.reason))


@dataclass(frozen=True)
class Contribution:
    """One constraint applied to a project and where it came from."""

    origin: str
    constraint: Any

    def __str__(self) -> str:
        return f"{self.constraint} (from {self.origin})"


@dataclass(frozen=True)
class ConflictEntry:
    """Why no version of one project could be chosen at some point."""

    root: str
    message: str
    contributions: Tuple[Contribution, ...] = ()
    rejected: Tuple[Tuple[str, str], ...] = ()
    exhausted: bool = False

    def render(self) -> List[str]:
        lines = [f"{self.root}: {self.message}"]
        for contribution in self.contributions:
            lines.append(f"    constraint {contribution}")
        for version, reason in self.rejected:
            lines.append(f"    rejected {version}: {reason}")
        return lines


@dataclass
class ConflictTrace:
    """Ordered chain of conflicts met while solving or aggregating.

    With a limit, the oldest entries are dropped first. Exhausted decisions
    are the conclusion of the chain and outlive every other entry.
    """

    entries: List[ConflictEntry] = field(default_factory=list)
    limit: Optional[int] = None
    omitted: int = 0

    def add(self, entry: ConflictEntry) -> None:
        self.entries.append(entry)
        if self.limit is None or len(self.entries) <= self.limit:
            return
        drop = next((i for i, e in enumerate(self.entries) if not e.exhausted), 0)
        del self.entries[drop]
        self.omitted += 1

    def roots(self) -> List[str]:
        seen: List[str] = []
        for entry in self.entries:
            if entry.root not in seen:
                seen.append(entry.root)
        return seen

    def origins(self) -> List[str]:
        return [c.origin for e in self.entries for c in e.contributions]

    def render(self) -> str:
        lines: List[str] = []
        if self.omitted:
            lines.append(f"({self.omitted} earlier conflict entries omitted)")
        for entry in self.entries:
            lines.extend(entry.render())
        return "\n".join(lines)

    def __bool__(self) -> bool:
        return bool(self.entries)


class UnsatisfiableError(KdepError):
    """No assignment satisfies the constraints; carries the conflict trace."""

    def __init__(self, message: str, trace: Optional[ConflictTrace] = None, before_solve: bool = False):
        self.trace = trace or ConflictTrace()
        self.before_solve = before_solve
        detail = self.trace.render()
        super().__init__(f"{message}\n{detail}" if detail else message)
        self.summary = message
