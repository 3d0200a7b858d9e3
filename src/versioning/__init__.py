"""Versions, constraints and constraint parsing."""

from .constraint import Constraint, Interval
from .models import ProjectRoot, ResolutionMode, Version, VersionKind, sort_versions
from .parser import constraint_from_fields, parse_constraint, parse_project_token

__all__ = [
    "Constraint",
    "Interval",
    "ProjectRoot",
    "ResolutionMode",
    "Version",
    "VersionKind",
    "sort_versions",
    "constraint_from_fields",
    "parse_constraint",
    "parse_project_token",
]
