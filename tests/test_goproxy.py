"""Tests for the module proxy version source."""

import io
import zipfile
from unittest.mock import patch

import pytest

from common.errors import FetchError, NotFoundError
from sources.goproxy import GoProxyVersionSource, escape_module_path, parse_go_mod
from versioning.models import Version, VersionKind

MODULE = "github.com/Acme/widget"

GO_MOD = """module github.com/Acme/widget

go 1.21

require github.com/pkg/errors v0.9.1

require (
\tgolang.org/x/net v0.17.0
\tgithub.com/old/thing v1.2.0 // indirect
)
"""


def _zip(root, name, files):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as archive:
        for rel, text in files.items():
            archive.writestr(f"{root}@{name}/{rel}", text)
    return buf.getvalue()


class TestEscapeModulePath:
    """Case encoding of module paths."""

    def test_uppercase_is_escaped(self):
        """Test uppercase letters are escaped with !."""
        assert escape_module_path(MODULE) == "github.com/!acme/widget"

    def test_lowercase_unchanged(self):
        """Test lowercase paths pass through."""
        assert escape_module_path("golang.org/x/net") == "golang.org/x/net"


class TestParseGoMod:
    """go.mod require directives."""

    def test_direct_requirements_become_caret_constraints(self):
        """Test direct go.mod requirements become caret constraints."""
        manifest = parse_go_mod(GO_MOD, "widget@v1.0.0")
        assert sorted(manifest.constraints) == ["github.com/pkg/errors", "golang.org/x/net"]
        errors = manifest.constraint_for("github.com/pkg/errors")
        assert errors.matches(Version.from_tag("v0.9.3"))
        assert not errors.matches(Version.from_tag("v0.10.0"))
        assert manifest.constraint_for("golang.org/x/net").matches(Version.from_tag("v0.17.0"))

    def test_indirect_requirements_are_skipped(self):
        """Test // indirect requirements are skipped."""
        assert parse_go_mod(GO_MOD, "widget").constraint_for("github.com/old/thing") is None

    def test_empty(self):
        """Test an empty go.mod has no constraints."""
        assert not parse_go_mod("module x\n", "x").constraints


class TestGoProxyVersionSource:
    """HTTP behaviour with robust_get patched out."""

    @pytest.fixture
    def source(self):
        return GoProxyVersionSource("https://proxy.example/")

    @patch('sources.goproxy.robust_get')
    def test_list_versions(self, mock_get, source):
        """Versions are parsed, sorted newest first and cached."""
        mock_get.return_value = (200, {}, "v1.0.0\nv1.2.0\n\nv0.9.0\n")

        versions = source.list_versions(MODULE)

        assert [v.name for v in versions] == ["v1.2.0", "v1.0.0", "v0.9.0"]
        assert mock_get.call_args.args[0] == "https://proxy.example/github.com/!acme/widget/@v/list"
        source.list_versions(MODULE)
        assert mock_get.call_count == 1

    @patch('sources.goproxy.robust_get')
    def test_not_found(self, mock_get, source):
        """Test a 404 from the proxy is a NotFoundError."""
        mock_get.return_value = (410, {}, "gone")

        with pytest.raises(NotFoundError) as excinfo:
            source.list_versions(MODULE)
        assert excinfo.value.root == MODULE

    @patch('sources.goproxy.robust_get')
    def test_unexpected_status(self, mock_get, source):
        """Test other error statuses are FetchErrors."""
        mock_get.return_value = (403, {}, "")

        with pytest.raises(FetchError, match="HTTP 403"):
            source.list_versions(MODULE)

    @patch('sources.goproxy.robust_get')
    def test_transport_failure_names_root(self, mock_get, source):
        """Test a transport failure carries the project root."""
        mock_get.side_effect = FetchError("failed after 3 attempts")

        with pytest.raises(FetchError) as excinfo:
            source.list_versions(MODULE)
        assert excinfo.value.root == MODULE

    @patch('sources.goproxy.robust_get')
    def test_module_zip_is_scanned(self, mock_get, source):
        """The zip yields the package tree and the go.mod manifest."""
        mock_get.return_value = (200, {}, _zip(MODULE, "v1.0.0", {
            "go.mod": GO_MOD,
            "widget.go": 'package widget\n\nimport "github.com/pkg/errors"\n',
            "internal/util/util.go": 'package util\n\nimport "fmt"\n',
            "vendor/x/x.go": "package x\n",
            "README.md": "# widget",
        }))
        version = Version.from_tag("v1.0.0")

        tree = source.package_tree_at(MODULE, version)
        manifest = source.manifest_at(MODULE, version)

        assert list(tree) == [MODULE, f"{MODULE}/internal/util"]
        assert tree.get(MODULE).package.imports == ("github.com/pkg/errors",)
        assert manifest.name == f"{MODULE}@v1.0.0"
        assert "golang.org/x/net" in manifest.constraints
        assert mock_get.call_count == 1
        assert mock_get.call_args.kwargs["binary"] is True

    @patch('sources.goproxy.robust_get')
    def test_revision_uses_pseudo_version_name(self, mock_get, source):
        """Test bare revisions are fetched by their pseudo-version name."""
        name = "v0.0.0-20200101000000-abcdefabcdef"
        mock_get.return_value = (200, {}, _zip(MODULE, name, {"w.go": "package w\n"}))

        tree = source.package_tree_at(MODULE, Version.rev(name))

        assert mock_get.call_args.args[0].endswith(f"/@v/{name}.zip")
        assert Version.rev(name).kind is VersionKind.REVISION
        assert list(tree) == [MODULE]

    @patch('sources.goproxy.robust_get')
    def test_corrupt_zip(self, mock_get, source):
        """Test an unreadable module zip is a FetchError."""
        mock_get.return_value = (200, {}, b"not a zip")

        with pytest.raises(FetchError, match="corrupt"):
            source.package_tree_at(MODULE, Version.from_tag("v1.0.0"))

    @patch('sources.goproxy.robust_get')
    def test_missing_go_mod_gives_empty_manifest(self, mock_get, source):
        """Test a module without go.mod gets an empty manifest."""
        mock_get.return_value = (200, {}, _zip(MODULE, "v2.0.0", {"w.go": "package w\n"}))

        manifest = source.manifest_at(MODULE, Version.from_tag("v2.0.0"))

        assert not manifest.constraints
