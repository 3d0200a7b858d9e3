"""Tests for the shared logging helpers."""

import logging

import pytest

from common.logging_utils import Timer, configure_logging, extra_context, is_debug_enabled, safe_url
from constants import Constants


class TestSafeUrl:
    """Credential stripping for logged URLs."""

    def test_strips_userinfo(self):
        """Test credentials are removed from URLs."""
        assert safe_url("https://user:pw@proxy.example:8443/m/@v/list") == "https://proxy.example:8443/m/@v/list"

    def test_drops_sensitive_query_keys(self):
        """Test sensitive query parameters are dropped."""
        assert safe_url("https://proxy.example/x?access_token=abc&page=2") == "https://proxy.example/x?page=2"

    def test_plain_url_unchanged(self):
        """Test a URL without secrets is unchanged."""
        assert safe_url("https://proxy.golang.org/golang.org/x/net/@v/list") == (
            "https://proxy.golang.org/golang.org/x/net/@v/list"
        )


def test_extra_context_drops_none():
    """Test extra_context omits None values."""
    assert extra_context(event="solve", target=None, count=0) == {"event": "solve", "count": 0}


def test_timer_measures():
    """Test Timer reports a non-negative duration."""
    with Timer() as t:
        pass
    assert t.duration_ms() >= 0


@pytest.fixture
def root_level():
    root = logging.getLogger()
    level = root.level
    yield root
    root.setLevel(level)


def test_configure_logging_from_environment(monkeypatch, root_level):
    """Test the log level is read from the environment."""
    monkeypatch.setenv(Constants.ENV_LOG_LEVEL, "debug")
    configure_logging()
    assert root_level.level == logging.DEBUG
    assert is_debug_enabled(logging.getLogger("kdep.test"))


def test_configure_logging_explicit_level_wins(monkeypatch, root_level):
    """Test an explicit level beats the environment."""
    monkeypatch.setenv(Constants.ENV_LOG_LEVEL, "DEBUG")
    configure_logging("warning")
    assert root_level.level == logging.WARNING
    assert not is_debug_enabled(logging.getLogger("kdep.test"))
