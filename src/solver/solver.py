"""Backtracking dependency solver.

The solver walks a queue of project roots reached from the root package
tree. For each root it intersects every constraint that applies, tries
candidate versions (the locked one first, then newest first) and follows
the imports of the chosen version. A conflict undoes the most recent
decision and moves on to its next candidate.

A Solver instance owns all of its search state; nothing is shared between
instances except the (thread-safe) version source.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from common.errors import (
    ConflictEntry,
    ConflictTrace,
    Contribution,
    PartialParseError,
    UnsatisfiableError,
)
from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants
from pkgtree.ignored import IgnoredRuleset
from pkgtree.tree import PackageTree, is_standard_import, is_under
from versioning.constraint import Constraint
from versioning.models import ProjectRoot, ResolutionMode, Version, VersionKind
from .constraints import ConstraintSet
from .deduce import longest_known_root
from .lock import Lock, LockedProject
from .manifest import Manifest
from .solution import Solution
from .source import VersionSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SolveParameters:
    """Everything a solve depends on besides the version source."""

    root_tree: PackageTree
    constraints: ConstraintSet = field(default_factory=ConstraintSet)
    overrides: ConstraintSet = field(default_factory=lambda: ConstraintSet(kind="overrides"))
    ignored: IgnoredRuleset = field(default_factory=IgnoredRuleset)
    required: Tuple[str, ...] = ()
    lock: Optional[Lock] = None
    mode: ResolutionMode = ResolutionMode.STANDARD
    local_roots: Tuple[str, ...] = ()
    cancel: Optional[threading.Event] = field(default=None, compare=False)
    trace: bool = False


@dataclass(frozen=True)
class _Selection:
    version: Version
    tree: PackageTree
    manifest: Manifest
    direct: FrozenSet[str] = frozenset()
    internal: FrozenSet[str] = frozenset()


class _State:
    """Mutable search state; copied at every decision point."""

    __slots__ = ("selected", "queue", "contributions", "required")

    def __init__(self) -> None:
        self.selected: Dict[ProjectRoot, _Selection] = {}
        self.queue: List[ProjectRoot] = []
        self.contributions: Dict[ProjectRoot, Tuple[Contribution, ...]] = {}
        self.required: Dict[ProjectRoot, FrozenSet[str]] = {}

    def copy(self) -> "_State":
        other = _State()
        other.selected = dict(self.selected)
        other.queue = list(self.queue)
        other.contributions = dict(self.contributions)
        other.required = dict(self.required)
        return other

    def enqueue(self, root: ProjectRoot) -> None:
        if root not in self.queue:
            self.queue.append(root)

    def pop(self) -> Optional[ProjectRoot]:
        return self.queue.pop(0) if self.queue else None


@dataclass
class _Frame:
    """A decision point: one root and the candidates left to try."""

    root: ProjectRoot
    constraint: Constraint
    candidates: List[Version]
    base: _State
    contributions: Tuple[Contribution, ...]
    index: int = 0
    rejected: List[Tuple[str, str]] = field(default_factory=list)


class Solver:
    """Single-use solver bound to one set of parameters and a version source."""

    def __init__(self, params: SolveParameters, source: VersionSource):
        self.params = params
        self.source = source
        self.attempts = 0
        self._trace = ConflictTrace(limit=Constants.CONFLICT_TRACE_LIMIT)
        self._versions: Dict[ProjectRoot, List[Version]] = {}
        known = set(params.constraints) | set(params.overrides)
        if params.lock is not None:
            known.update(params.lock.roots())
        self._known_roots = tuple(sorted(known))
        self._done = False

    def solve(self) -> Solution:
        """Compute a Solution.

        Raises:
            UnsatisfiableError: when every decision has been exhausted.
            PartialParseError: when a required root package cannot be loaded.
            SourceError: propagated untouched from the version source.
            SolveCancelled: when the cancellation event is set.
        """
        if self._done:
            raise RuntimeError("Solver instances are single-use")
        self._done = True
        with Timer() as t:
            state = self._seed()
            stack: List[_Frame] = []
            while True:
                self._check_cancel()
                root = state.pop()
                if root is None:
                    break
                if root in state.selected:
                    reason = self._extend(state, root)
                    if reason is not None:
                        self._record(ConflictEntry(root, reason))
                        state = self._backtrack(stack)
                    continue
                constraint, contributions = self._effective(state, root)
                if constraint.is_empty:
                    self._record(ConflictEntry(
                        root, f"constraints cannot all be satisfied ({constraint.reason})", contributions
                    ))
                    state = self._backtrack(stack)
                    continue
                candidates = self._candidates(root, constraint)
                if not candidates:
                    self._record(ConflictEntry(
                        root,
                        f"no version matches {constraint} "
                        f"({len(self._versions.get(root, []))} available)",
                        contributions,
                    ))
                    state = self._backtrack(stack)
                    continue
                frame = _Frame(root, constraint, candidates, state, contributions)
                stack.append(frame)
                next_state = self._advance(frame)
                if next_state is None:
                    stack.pop()
                    state = self._backtrack(stack)
                else:
                    state = next_state
        solution = self._solution(state)
        logger.info(
            "Solved %d project(s) in %d attempt(s)",
            len(solution),
            self.attempts,
            extra=extra_context(
                event="solve",
                component="solver",
                action="solve",
                outcome="success",
                count=len(solution),
                attempts=self.attempts,
                duration_ms=t.duration_ms(),
            ),
        )
        return solution

    # -- seeding -------------------------------------------------------

    def _seed(self) -> _State:
        params = self.params
        tree = params.root_tree
        reach = tree.reach(params.ignored, local_roots=params.local_roots)
        broken = sorted({b for entry in reach.values() for b in entry.broken})
        if broken:
            pe = tree.get(broken[0])
            reason = pe.error.reason if pe is not None and pe.error is not None else "imported but missing from the tree"
            raise PartialParseError(broken[0], reason)
        for path, err in tree.errors().items():
            if not params.ignored.is_ignored(path):
                logger.warning("Skipping package %s: %s", path, err.reason)

        external = {p for entry in reach.values() for p in entry.external}
        for path in params.required:
            if not params.ignored.is_ignored(path) and not tree.is_internal(path, params.local_roots):
                external.add(path)

        state = _State()
        grouped: Dict[ProjectRoot, set] = {}
        for path in sorted(external):
            if not self._is_external(path):
                continue
            grouped.setdefault(self._deduce(path), set()).add(path)
        for root in sorted(grouped):
            state.required[root] = frozenset(grouped[root])
            state.enqueue(root)
        self._log("Seeded solver", action="seed", count=len(state.queue))
        return state

    # -- constraint bookkeeping ---------------------------------------

    def _is_external(self, path: str, extra_known: Iterable[ProjectRoot] = ()) -> bool:
        if not is_standard_import(path):
            return True
        return any(is_under(path, r) for r in self._known_roots + tuple(extra_known))

    def _deduce(self, path: str, extra_known: Iterable[ProjectRoot] = ()) -> ProjectRoot:
        known = longest_known_root(path, self._known_roots + tuple(extra_known))
        return known if known else self.source.deduce_project_root(path)

    def _effective(self, state: _State, root: ProjectRoot) -> Tuple[Constraint, Tuple[Contribution, ...]]:
        """Constraint currently governing ``root`` and every contribution to it."""
        static = self.params.constraints.get(root)
        transitive = state.contributions.get(root, ())
        static_origins = static.origins if static else ()
        override = self.params.overrides.get(root)
        if override is not None:
            labelled = tuple(Contribution(f"override in {c.origin}", c.constraint) for c in override.origins)
            return override.constraint, labelled + static_origins + transitive
        constraint = static.constraint if static else Constraint.any()
        for contribution in transitive:
            constraint = constraint.intersect(contribution.constraint)
        return constraint, static_origins + transitive

    def _list_versions(self, root: ProjectRoot) -> List[Version]:
        if root not in self._versions:
            self._check_cancel()
            self._versions[root] = list(self.source.list_versions(root, cancel=self.params.cancel))
        return self._versions[root]

    def _candidates(self, root: ProjectRoot, constraint: Constraint) -> List[Version]:
        """Matching versions: the locked one first if still listed, then the source's order."""
        matching = [v for v in self._list_versions(root) if constraint.matches(v)]
        if not matching and constraint.revision and constraint.ranges is None and constraint.name is None:
            matching = [Version.rev(constraint.revision)]
        locked = self.params.lock.get(root) if self.params.lock is not None else None
        if locked is not None and constraint.matches(locked.version):
            preferred = next((v for v in matching if v.same_as(locked.version)), None)
            if preferred is None and locked.version.kind is VersionKind.REVISION:
                preferred = locked.version
            if preferred is not None:
                matching = [preferred] + [v for v in matching if not v.same_as(locked.version)]
        return matching

    # -- selection ------------------------------------------------------

    def _advance(self, frame: _Frame) -> Optional[_State]:
        """Try the frame's remaining candidates; None when exhausted."""
        while frame.index < len(frame.candidates):
            version = frame.candidates[frame.index]
            frame.index += 1
            state = frame.base.copy()
            reason = self._select(state, frame.root, version)
            if reason is None:
                self._log("Selected version", action="select", target=frame.root, version=str(version))
                return state
            self._log("Rejected version", action="reject", target=frame.root, version=str(version), reason=reason)
            frame.rejected.append((str(version), reason))
        self._record(ConflictEntry(
            frame.root,
            f"no candidate for {frame.constraint} works with the choices made so far",
            frame.contributions,
            tuple(frame.rejected),
            exhausted=True,
        ))
        return None

    def _backtrack(self, stack: List[_Frame]) -> _State:
        """Undo decisions until one has another candidate left."""
        while stack:
            frame = stack[-1]
            failed = frame.candidates[frame.index - 1]
            frame.rejected.append((str(failed), "led to a conflict further down"))
            self._log("Backtracking", action="backtrack", target=frame.root, version=str(failed))
            state = self._advance(frame)
            if state is not None:
                return state
            stack.pop()
        raise UnsatisfiableError("No version assignment satisfies all constraints", self._trace)

    def _select(self, state: _State, root: ProjectRoot, version: Version) -> Optional[str]:
        self.attempts += 1
        self._check_cancel()
        tree = self.source.package_tree_at(root, version, cancel=self.params.cancel)
        self._check_cancel()
        manifest = self.source.manifest_at(root, version, cancel=self.params.cancel)
        needed = state.required.get(root, frozenset())
        reason = self._check_packages(tree, needed)
        if reason is not None:
            return reason
        state.selected[root] = _Selection(version, tree, manifest)
        return self._use_packages(state, root, needed)

    def _extend(self, state: _State, root: ProjectRoot) -> Optional[str]:
        """Bring newly required packages of an already selected project in."""
        sel = state.selected[root]
        needed = state.required.get(root, frozenset())
        reason = self._check_packages(sel.tree, needed - sel.direct)
        if reason is not None:
            return f"{root}@{sel.version.name}: {reason}"
        return self._use_packages(state, root, needed)

    @staticmethod
    def _check_packages(tree: PackageTree, paths: Iterable[str]) -> Optional[str]:
        for path in sorted(paths):
            pe = tree.get(path)
            if pe is None:
                return f"package {path} does not exist at this version"
            if pe.error is not None:
                return f"package {path} cannot be loaded: {pe.error.reason}"
        return None

    @staticmethod
    def _check_local(root_tree: PackageTree, path: str) -> Optional[str]:
        """Imports of local packages are served by the root tree, never the source."""
        pe = root_tree.get(path)
        if pe is None:
            return f"imports local package {path}, which does not exist"
        if pe.error is not None:
            return f"imports local package {path}, which cannot be loaded: {pe.error.reason}"
        return None

    def _use_packages(self, state: _State, root: ProjectRoot, paths: FrozenSet[str]) -> Optional[str]:
        sel = state.selected[root]
        new = paths - sel.direct
        if not new:
            return None
        reach = sel.tree.reach(self.params.ignored, sources=new)
        internal = {p for entry in reach.values() for p in entry.internal}
        external = {p for entry in reach.values() for p in entry.external}
        broken = sorted({p for entry in reach.values() for p in entry.broken})
        if broken:
            pe = sel.tree.get(broken[0])
            detail = pe.error.reason if pe is not None and pe.error is not None else "missing"
            return f"package {broken[0]} is required but cannot be loaded: {detail}"
        state.selected[root] = replace(sel, direct=sel.direct | new, internal=sel.internal | internal)

        manifest_roots = tuple(sel.manifest.constraints)
        root_tree = self.params.root_tree
        deps: Dict[ProjectRoot, set] = {}
        for path in sorted(external):
            if root_tree.is_internal(path, self.params.local_roots):
                reason = self._check_local(root_tree, path)
                if reason is not None:
                    return reason
                continue
            if not self._is_external(path, manifest_roots):
                continue
            dep = self._deduce(path, manifest_roots)
            if dep != root:
                deps.setdefault(dep, set()).add(path)
        origin = f"{root}@{sel.version.name}"
        for dep in sorted(deps):
            declared = sel.manifest.constraint_for(dep)
            contribution = Contribution(origin, declared) if declared is not None else None
            reason = self._require(state, dep, frozenset(deps[dep]), contribution, origin)
            if reason is not None:
                return reason
        return None

    def _require(
        self,
        state: _State,
        dep: ProjectRoot,
        paths: FrozenSet[str],
        contribution: Optional[Contribution],
        origin: str,
    ) -> Optional[str]:
        if contribution is not None and contribution not in state.contributions.get(dep, ()):
            state.contributions[dep] = state.contributions.get(dep, ()) + (contribution,)
        state.required[dep] = state.required.get(dep, frozenset()) | paths
        constraint, contributions = self._effective(state, dep)
        if constraint.is_empty:
            self._record(ConflictEntry(dep, f"constraints cannot all be satisfied ({constraint.reason})", contributions))
            return f"{origin} makes the constraints on {dep} unsatisfiable"
        sel = state.selected.get(dep)
        if sel is None:
            state.enqueue(dep)
            return None
        if not constraint.matches(sel.version):
            self._record(ConflictEntry(
                dep, f"selected version {sel.version} does not satisfy {constraint}", contributions
            ))
            return f"{origin} requires {dep} {constraint}, but {dep} is already at {sel.version}"
        if not paths <= sel.direct:
            state.enqueue(dep)
        return None

    # -- output ---------------------------------------------------------

    def _solution(self, state: _State) -> Solution:
        projects = []
        for root in sorted(state.selected):
            sel = state.selected[root]
            packages = ["." if p == root else p[len(root) + 1:] for p in sel.internal if is_under(p, root)]
            entry = self.params.overrides.get(root) or self.params.constraints.get(root)
            projects.append(LockedProject(root, sel.version, tuple(packages), entry.source if entry else None))
        return Solution(tuple(projects), attempts=self.attempts, mode=self.params.mode)

    # -- helpers ----------------------------------------------------------

    def _check_cancel(self) -> None:
        VersionSource.check_cancel(self.params.cancel)

    def _record(self, entry: ConflictEntry) -> None:
        self._trace.add(entry)

    def _log(self, message: str, **fields) -> None:
        if self.params.trace:
            logger.info("%s %s", message, " ".join(f"{k}={v}" for k, v in fields.items() if v is not None))
        elif is_debug_enabled(logger):
            logger.debug(message, extra=extra_context(event="solver_step", component="solver", **fields))


def solve(params: SolveParameters, source: VersionSource) -> Solution:
    """Solve with a fresh Solver."""
    return Solver(params, source).solve()
