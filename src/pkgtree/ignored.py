"""Ignore rules for import paths excluded from resolution."""

import fnmatch
from typing import Iterable, List, Tuple


class IgnoredRuleset:
    """Exact import paths and glob patterns to leave out of resolution.

    A pattern ending in ``/*`` ignores everything below its prefix; other
    patterns containing ``*``, ``?`` or ``[`` are matched with fnmatch
    semantics, where ``*`` also crosses path separators.
    """

    def __init__(self, patterns: Iterable[str] = ()):
        exact: List[str] = []
        prefixes: List[str] = []
        globs: List[str] = []
        for raw in patterns:
            pattern = raw.strip()
            if not pattern:
                continue
            if pattern.endswith("/*") and not any(c in pattern[:-2] for c in "*?["):
                prefixes.append(pattern[:-1])
            elif any(c in pattern for c in "*?["):
                globs.append(pattern)
            else:
                exact.append(pattern.rstrip("/"))
        self._exact = frozenset(exact)
        self._prefixes = tuple(sorted(set(prefixes)))
        self._globs = tuple(sorted(set(globs)))

    @property
    def patterns(self) -> Tuple[str, ...]:
        return tuple(sorted(self._exact)) + tuple(p + "*" for p in self._prefixes) + self._globs

    def is_ignored(self, import_path: str) -> bool:
        if import_path in self._exact:
            return True
        if any(import_path.startswith(prefix) for prefix in self._prefixes):
            return True
        return any(fnmatch.fnmatchcase(import_path, g) for g in self._globs)

    def union(self, other: "IgnoredRuleset") -> "IgnoredRuleset":
        return IgnoredRuleset(self.patterns + other.patterns)

    def __len__(self) -> int:
        return len(self._exact) + len(self._prefixes) + len(self._globs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IgnoredRuleset):
            return NotImplemented
        return self.patterns == other.patterns

    def __hash__(self) -> int:
        return hash(self.patterns)

    def __repr__(self) -> str:
        return f"IgnoredRuleset({list(self.patterns)!r})"
