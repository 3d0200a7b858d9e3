"""Tests for the Godeps.json export."""

import json

from export.godeps import Dependency, Godeps, godeps_from_solution, render_godeps, write_godeps
from solver.lock import LockedProject
from solver.solution import Solution
from versioning.models import Version

A = "github.com/x/a"
B = "github.com/x/b"


def _solution():
    return Solution((
        LockedProject(B, Version.rev("deadbeef"), (".",)),
        LockedProject(A, Version.from_tag("v1.2.0", "abc123"), (".", "util")),
    ))


class TestGodepsFromSolution:
    """Projection of a solution into Godeps entries."""

    def test_one_entry_per_package(self):
        """Test every used package gets its own entry."""
        godeps = godeps_from_solution(_solution(), "example.com/root")
        assert godeps.import_path == "example.com/root"
        assert [d.import_path for d in godeps.deps] == [A, f"{A}/util", B]

    def test_tag_keeps_comment_and_revision(self):
        """Test a paired tag exports its revision and tag name."""
        dep = godeps_from_solution(_solution(), "r").deps[0]
        assert dep == Dependency(A, "abc123", "v1.2.0")

    def test_bare_revision_has_no_comment(self):
        """Test a bare revision exports no comment."""
        dep = godeps_from_solution(_solution(), "r").deps[-1]
        assert dep.to_dict() == {"ImportPath": B, "Rev": "deadbeef"}

    def test_branch_has_no_comment(self):
        """Test a branch version exports its revision without a comment."""
        solution = Solution((LockedProject(A, Version.branch("master", "cafe"), (".",)),))
        assert godeps_from_solution(solution, "r").deps[0].to_dict() == {"ImportPath": A, "Rev": "cafe"}

    def test_unpaired_tag_falls_back_to_name(self):
        """Test an unpaired tag uses its name as Rev."""
        solution = Solution((LockedProject(A, Version.from_tag("v1.0.0"), (".",)),))
        assert godeps_from_solution(solution, "r").deps[0].rev == "v1.0.0"


class TestRender:
    """Rendering and writing Godeps.json."""

    def test_tab_indented_and_sorted(self):
        """Test rendering indents with tabs and sorts deps."""
        godeps = Godeps("r", [Dependency("z.io/z", "1"), Dependency("a.io/a", "2")])
        text = render_godeps(godeps)
        assert '\n\t"ImportPath": "r"' in text
        assert [d["ImportPath"] for d in json.loads(text)["Deps"]] == ["a.io/a", "z.io/z"]
        assert list(json.loads(text)) == ["_Comment", "ImportPath", "Deps"]

    def test_write_godeps(self, tmp_path):
        """Test Godeps.json is written under Godeps/."""
        path = write_godeps(str(tmp_path), _solution(), "example.com/root")
        assert path == str(tmp_path / "Godeps" / "Godeps.json")
        data = json.loads((tmp_path / "Godeps" / "Godeps.json").read_text(encoding="utf-8"))
        assert data["ImportPath"] == "example.com/root"
        assert len(data["Deps"]) == 3
