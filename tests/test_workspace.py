"""Tests for projects, composite projects, workspaces and vendor links."""

import os

import pytest

from common.errors import UnsatisfiableError
from solver.lock import Lock
from solver.manifest import Manifest
from sources.static import StaticVersionSource
from versioning.models import ResolutionMode, Version
from workspace import (
    CompositeProject,
    LocalProject,
    MemberSpec,
    VendorMode,
    Workspace,
    link_local_projects,
    link_member_vendor_dirs,
)

A = "github.com/x/a"
B = "github.com/x/b"
SVC_A = "example.com/svc-a"
SVC_B = "example.com/svc-b"


def write_go(directory, name, *imports, filename="main.go"):
    """Write a Go file declaring package ``name`` with the given imports."""
    os.makedirs(directory, exist_ok=True)
    body = "".join(f'\t"{imp}"\n' for imp in imports)
    with open(os.path.join(directory, filename), "w", encoding="utf-8") as fh:
        fh.write(f"package {name}\n\nimport (\n{body})\n")


@pytest.fixture
def source():
    src = StaticVersionSource()
    for tag in ("2.0.0", "1.3.0", "1.1.0"):
        src.add(A, Version.from_tag(tag))
    src.add(B, Version.from_tag("1.0.0"))
    return src


def make_workspace(tmp_path, a_constraint="^1.0.0", b_constraint="<1.2.0", lock=None):
    write_go(str(tmp_path / "a"), "main", "fmt", A, SVC_B)
    write_go(str(tmp_path / "b"), "svcb", B)
    members = [
        (MemberSpec(SVC_A, "a"), LocalProject(
            str(tmp_path / "a"), SVC_A, Manifest.build(SVC_A, constraints={A: a_constraint}))),
        (MemberSpec(SVC_B, "b"), LocalProject(
            str(tmp_path / "b"), SVC_B, Manifest.build(SVC_B, constraints={A: b_constraint}))),
    ]
    return Workspace(str(tmp_path), members, lock=lock)


class TestLocalProject:
    """Plain projects read from disk."""

    def test_params_from_manifest(self, tmp_path):
        """Test solve parameters come from the manifest and tree."""
        write_go(str(tmp_path), "main", A)
        write_go(str(tmp_path / "internal" / "util"), "util", "strings")
        manifest = Manifest.build("proj", constraints={A: "^1.0.0"}, ignored=["github.com/skip/*"], required=[B])
        project = LocalProject(str(tmp_path), "example.com/proj", manifest)

        params = project.make_params()

        assert sorted(params.root_tree) == ["example.com/proj", "example.com/proj/internal/util"]
        assert params.constraints.constraint_for(A) == manifest.constraint_for(A)
        assert params.ignored.is_ignored("github.com/skip/lib")
        assert params.required == (B,)
        assert params.local_roots == ("example.com/proj",)

    def test_solves_with_static_source(self, tmp_path, source):
        """Test a plain project solves end to end."""
        write_go(str(tmp_path), "main", A)
        project = LocalProject(str(tmp_path), "example.com/proj", Manifest.build("proj", constraints={A: "~1.1.0"}))

        solution = Workspace(str(tmp_path), [(MemberSpec("example.com/proj", "."), project)]).prepare(source).new_lock

        assert [(p.root, p.version.name) for p in solution] == [(A, "1.1.0")]


class TestCompositeProject:
    """Projects with local sub-projects under their gopaths."""

    @pytest.fixture
    def base(self, tmp_path):
        write_go(str(tmp_path), "main", "example.com/lib")
        lib_dir = tmp_path / "gopath" / "src" / "example.com" / "lib"
        write_go(str(lib_dir), "lib", A)
        return LocalProject(str(tmp_path), "example.com/proj", Manifest.build("proj"))

    def _load(self, directory, import_root):
        return Manifest.build(import_root, constraints={A: "^1.3.0"})

    def test_discovers_sub_projects(self, base, tmp_path):
        """Test sub-projects are found under the gopath."""
        composite = CompositeProject.discover(base, ["example.com/lib", "example.com/missing"], ["gopath"], self._load)

        assert [p.import_root for p in composite.sub_projects] == ["example.com/lib"]
        assert composite.local_roots() == ("example.com/proj", "example.com/lib")
        assert composite.extra_vendor_entries() == {
            "example.com/lib": str(tmp_path / "gopath" / "src" / "example.com" / "lib"),
        }

    def test_tree_replaces_gopath_region(self, base):
        """Test the gopath region is replaced by sub-project trees."""
        composite = CompositeProject.discover(base, ["example.com/lib"], ["gopath"], self._load)

        tree = composite.package_tree()

        assert sorted(tree) == ["example.com/lib", "example.com/proj"]
        assert tree.import_root == ""

    def test_manifest_merges_sub_manifests(self, base):
        """Test sub-project manifests are merged into the base."""
        composite = CompositeProject.discover(base, ["example.com/lib"], ["gopath"], self._load)

        assert composite.manifest.name == "proj"
        assert composite.manifest.constraint_for(A) == Manifest.build("x", constraints={A: "^1.3.0"}).constraint_for(A)
        assert [m.name for m in composite.manifests()] == ["proj", "example.com/lib"]

    def test_solve_uses_sub_project_constraints(self, base, source):
        """Test sub-project constraints apply and sub-projects are not looked up."""
        composite = CompositeProject.discover(base, ["example.com/lib"], ["gopath"], self._load)

        solution = Workspace(base.root_dir, [(MemberSpec("example.com/proj", "."), composite)]).prepare(source).new_lock

        assert [(p.root, p.version.name) for p in solution] == [(A, "1.3.0")]
        assert source.lookups("example.com/lib") == 0

    def test_passthrough_forwards_unchanged(self, base):
        """Test passthrough mode behaves as the base project."""
        composite = CompositeProject.discover(
            base, ["example.com/lib"], ["gopath"], self._load, mode=ResolutionMode.LEGACY_PASSTHROUGH
        )

        assert composite.passthrough
        assert composite.sub_projects == ()
        assert composite.manifest is base.manifest
        assert composite.package_tree() == base.package_tree()
        assert composite.local_roots() == base.local_roots()
        assert composite.extra_vendor_entries() == {}


class TestWorkspace:
    """Several members solved as one."""

    def test_members_are_local_roots(self, tmp_path):
        """Test every member is a local root."""
        ws = make_workspace(tmp_path)
        assert ws.local_roots() == (SVC_A, SVC_B)
        assert sorted(ws.root_package_tree()) == [SVC_A, SVC_B]

    def test_prepare(self, tmp_path, source):
        """Test preparing a workspace solves all members together."""
        ws = make_workspace(tmp_path)

        prepared = ws.prepare(source)

        assert [(p.root, p.version.name) for p in prepared.new_lock] == [(A, "1.1.0"), (B, "1.0.0")]
        assert prepared.write_lock and prepared.write_vendor
        assert source.lookups(SVC_B) == 0

    def test_prepare_with_unchanged_lock(self, tmp_path, source):
        """Test an unchanged lock writes nothing."""
        first = make_workspace(tmp_path).prepare(source)
        ws = make_workspace(tmp_path, lock=first.new_lock)

        prepared = ws.prepare(source, vendor_mode=VendorMode.ON_CHANGED)

        assert not prepared.write_lock
        assert prepared.describe() == ["No changes to write"]

    def test_member_conflict_before_solve(self, tmp_path, source):
        """Test member conflicts are reported before solving."""
        ws = make_workspace(tmp_path, b_constraint="^2.0.0")

        with pytest.raises(UnsatisfiableError) as excinfo:
            ws.make_params()

        assert excinfo.value.before_solve
        assert excinfo.value.trace.origins() == [SVC_A, SVC_B]
        assert source.calls == []

    def test_extra_vendor_entries(self, tmp_path):
        """Test each member gets a vendor entry."""
        ws = make_workspace(tmp_path)
        assert ws.extra_vendor_entries() == {
            SVC_A: os.path.join(str(tmp_path), "a"),
            SVC_B: os.path.join(str(tmp_path), "b"),
        }

    def test_lock_roundtrip_keeps_versions(self, tmp_path, source):
        """Test a written lock keeps its versions on the next solve."""
        lock = Lock.from_projects(make_workspace(tmp_path).prepare(source).new_lock)
        source.add(A, Version.from_tag("1.1.5"))
        prepared = make_workspace(tmp_path, lock=lock).prepare(source)
        assert prepared.new_lock.get(A).version.name == "1.1.0"


class TestVendorLinks:
    """Symlinks into the shared vendor tree."""

    def test_links_local_projects(self, tmp_path):
        """Test local projects are symlinked into vendor."""
        target = tmp_path / "lib"
        target.mkdir()
        vendor = tmp_path / "vendor"

        failures = link_local_projects(str(vendor), {"example.com/lib": str(target)})

        link = vendor / "example.com" / "lib"
        assert failures == []
        assert link.is_symlink()
        assert os.path.realpath(str(link)) == os.path.realpath(str(target))
        assert link_local_projects(str(vendor), {"example.com/lib": str(target)}) == []

    def test_existing_file_is_reported(self, tmp_path):
        """Test an occupied link path is reported."""
        vendor = tmp_path / "vendor" / "example.com"
        vendor.mkdir(parents=True)
        (vendor / "lib").write_text("occupied")

        failures = link_local_projects(str(tmp_path / "vendor"), {"example.com/lib": str(tmp_path)})

        assert len(failures) == 1
        assert "already there" in failures[0].reason

    def test_member_vendor_dirs(self, tmp_path):
        """Test member vendor dirs link to the shared vendor."""
        (tmp_path / "a").mkdir()
        (tmp_path / "vendor").mkdir()
        (tmp_path / "b" / "vendor").mkdir(parents=True)

        failures = link_member_vendor_dirs(str(tmp_path), [MemberSpec(SVC_A, "a"), MemberSpec(SVC_B, "b")])

        assert (tmp_path / "a" / "vendor").is_symlink()
        assert [f.link for f in failures] == [str(tmp_path / "b" / "vendor")]
