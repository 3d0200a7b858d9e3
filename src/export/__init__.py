"""Legacy format exports of a Solution."""

from .godeps import Dependency, Godeps, godeps_from_solution, render_godeps, write_godeps

__all__ = ["Dependency", "Godeps", "godeps_from_solution", "render_godeps", "write_godeps"]
