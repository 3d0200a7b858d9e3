"""Constraint aggregation, locks and the backtracking solver."""

from .constraints import ConstrainedProject, ConstraintSet, ConstraintSetBuilder, aggregate, aggregate_overrides
from .deduce import deduce_project_root
from .lock import Lock, LockDiff, LockedProject, diff_locks
from .manifest import CascadingPruneOptions, Manifest, ProjectProperties, PruneOptions
from .parallel import solve_parallel
from .solution import Solution
from .solver import SolveParameters, Solver, solve
from .source import VersionSource

__all__ = [
    "CascadingPruneOptions",
    "ConstrainedProject",
    "ConstraintSet",
    "ConstraintSetBuilder",
    "Lock",
    "LockDiff",
    "LockedProject",
    "Manifest",
    "ProjectProperties",
    "PruneOptions",
    "Solution",
    "SolveParameters",
    "Solver",
    "VersionSource",
    "aggregate",
    "aggregate_overrides",
    "deduce_project_root",
    "diff_locks",
    "solve",
    "solve_parallel",
]
