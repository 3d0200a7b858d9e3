"""Tests for version models and the TTL cache."""

from unittest.mock import patch

import semantic_version

from versioning.cache import TTLCache
from versioning.models import Version, VersionKind, parse_semver, sort_versions


class TestVersion:
    """Version kinds, pairing and ordering."""

    def test_semver_tags(self):
        """Test semver tags with and without a leading v."""
        v = Version.from_tag("v1.2.3")
        assert v.kind is VersionKind.SEMVER
        assert v.semver == semantic_version.Version("1.2.3")

    def test_partial_semver_is_coerced(self):
        """Test partial versions are coerced to semver."""
        assert parse_semver("1.2") == semantic_version.Version("1.2.0")
        assert Version.from_tag("1.2").kind is VersionKind.SEMVER

    def test_other_tags_are_plain(self):
        """Test non-semver tags are plain versions."""
        v = Version.from_tag("release-candidate")
        assert v.kind is VersionKind.PLAIN
        assert v.semver is None

    def test_prerelease(self):
        """Test prerelease detection."""
        assert Version.from_tag("2.0.0-rc.1").is_prerelease
        assert not Version.from_tag("2.0.0").is_prerelease

    def test_pairing(self):
        """Test pairing a version with a revision."""
        paired = Version.from_tag("1.0.0", "abc")
        assert str(paired) == "1.0.0 (abc)"
        assert paired.unpaired() == Version.from_tag("1.0.0")
        assert Version.from_tag("1.0.0").with_revision("abc") == paired

    def test_same_as(self):
        """Test same_as compares revisions only where both sides carry one."""
        assert Version.from_tag("1.0.0", "abc").same_as(Version.from_tag("1.0.0"))
        assert not Version.from_tag("1.0.0", "abc").same_as(Version.from_tag("1.0.0", "def"))
        assert Version.rev("abc").same_as(Version.from_tag("1.0.0", "abc"))
        assert not Version.branch("1.0.0").same_as(Version.from_tag("1.0.0"))

    def test_sort_order(self):
        """Test the canonical version ordering."""
        versions = [
            Version.from_tag("1.0.0"),
            Version.from_tag("2.0.0-rc.1"),
            Version.branch("dev"),
            Version.branch("master", default=True),
            Version.from_tag("1.5.0"),
            Version.from_tag("nightly"),
            Version.rev("abc"),
        ]
        assert [v.name for v in sort_versions(versions)] == [
            "1.5.0", "1.0.0", "2.0.0-rc.1", "master", "dev", "nightly", "abc",
        ]

    def test_sort_is_stable_under_permutation(self):
        """Test sorting does not depend on input order."""
        versions = [Version.from_tag(t) for t in ("0.1.0", "0.10.0", "0.9.0", "v1.0.0")]
        assert sort_versions(versions) == sort_versions(reversed(versions))
        assert [v.name for v in sort_versions(versions)] == ["v1.0.0", "0.10.0", "0.9.0", "0.1.0"]


class TestTTLCache:
    """Thread-safe TTL cache behaviour."""

    def test_set_and_get(self):
        """Test a cached value is returned."""
        cache = TTLCache(default_ttl=60)
        cache.set(("github.com/a/b", "1.0.0"), "tree")
        assert cache.get(("github.com/a/b", "1.0.0")) == "tree"
        assert cache.stats()["hits"] == 1

    def test_miss(self):
        """Test a missing key returns None."""
        cache = TTLCache()
        assert cache.get("missing") is None
        assert cache.misses == 1

    def test_expiry(self):
        """Test entries expire after their TTL."""
        cache = TTLCache(default_ttl=10)
        with patch("versioning.cache.time.time", return_value=1000.0):
            cache.set("k", "v")
        with patch("versioning.cache.time.time", return_value=1011.0):
            assert cache.get("k") is None
        assert len(cache) == 0

    def test_per_entry_ttl(self):
        """Test a per-entry TTL overrides the default."""
        cache = TTLCache(default_ttl=10)
        with patch("versioning.cache.time.time", return_value=1000.0):
            cache.set("k", "v", ttl=100)
        with patch("versioning.cache.time.time", return_value=1050.0):
            assert cache.get("k") == "v"

    def test_eviction_drops_oldest(self):
        """Test the oldest entry is evicted at capacity."""
        cache = TTLCache(default_ttl=60, max_entries=10)
        for i in range(11):
            cache.set(i, i)
        assert len(cache) == 10
        assert cache.get(0) is None
        assert cache.get(10) == 10

    def test_invalidate_and_clear(self):
        """Test invalidation and clearing."""
        cache = TTLCache()
        cache.set("a", 1)
        cache.set("b", 2)
        cache.invalidate("a")
        assert cache.get("a") is None
        cache.clear()
        assert len(cache) == 0
