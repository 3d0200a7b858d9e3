"""Tests for YAML configuration loading."""

import pytest

from constants import Constants, load_config


@pytest.fixture(autouse=True)
def restore_constants(monkeypatch):
    """Keep Constants changes local to each test."""
    for attr in ("GOPROXY_URL", "REQUEST_TIMEOUT", "HTTP_RETRY_MAX", "DEFAULT_BRANCHES", "LOG_LEVEL"):
        monkeypatch.setattr(Constants, attr, getattr(Constants, attr))
    monkeypatch.delenv(Constants.ENV_GOPROXY, raising=False)
    monkeypatch.delenv(Constants.ENV_CONFIG, raising=False)


def _write(tmp_path, text):
    path = tmp_path / "kdep.yml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_applies_kdep_section(tmp_path):
    """Test known keys in the kdep section are coerced and applied."""
    path = _write(tmp_path, (
        "kdep:\n"
        "  goproxy_url: https://mirror.example\n"
        "  request_timeout: '5'\n"
        "  default_branches: [trunk]\n"
        "  unknown_key: 1\n"
    ))
    applied = load_config(path)
    assert applied == {
        "GOPROXY_URL": "https://mirror.example",
        "REQUEST_TIMEOUT": 5,
        "DEFAULT_BRANCHES": ["trunk"],
    }
    assert Constants.REQUEST_TIMEOUT == 5


def test_invalid_value_is_ignored(tmp_path):
    """Test a value that cannot be coerced leaves the default alone."""
    before = Constants.HTTP_RETRY_MAX
    assert load_config(_write(tmp_path, "kdep:\n  http_retry_max: lots\n")) == {}
    assert Constants.HTTP_RETRY_MAX == before


def test_environment_overrides_file(tmp_path, monkeypatch):
    """Test GOPROXY from the environment beats the config file."""
    monkeypatch.setenv(Constants.ENV_GOPROXY, "https://env.example/")
    load_config(_write(tmp_path, "kdep:\n  goproxy_url: https://file.example\n"))
    assert Constants.GOPROXY_URL == "https://env.example"


def test_config_path_from_environment(tmp_path, monkeypatch):
    """Test the config path can come from the environment."""
    monkeypatch.setenv(Constants.ENV_CONFIG, _write(tmp_path, "log_level: DEBUG\n"))
    assert load_config() == {"LOG_LEVEL": "DEBUG"}


def test_missing_or_malformed_file(tmp_path):
    """Test absent, non-mapping and unparsable files apply nothing."""
    assert load_config(str(tmp_path / "absent.yml")) == {}
    assert load_config(_write(tmp_path, "- just\n- a list\n")) == {}
    assert load_config(_write(tmp_path, "kdep: [unclosed\n")) == {}
