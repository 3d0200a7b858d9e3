"""Constants and runtime configuration used across kdep."""

import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL = "INFO"
    ENV_LOG_LEVEL = "KDEP_LOG_LEVEL"
    ENV_CONFIG = "KDEP_CONFIG"
    ENV_GOPROXY = "KDEP_GOPROXY"
    DEFAULT_CONFIG_PATHS = [
        os.path.join("~", ".config", "kdep", "kdep.yml"),
        os.path.join("~", ".config", "kdep", "kdep.yaml"),
    ]

    GOPROXY_URL = "https://proxy.golang.org"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    VERSION_CACHE_TTL_SEC = 600
    VERSION_CACHE_MAX_ENTRIES = 10000
    CONFLICT_TRACE_LIMIT = 200
    SOLVE_MAX_WORKERS = 4

    DEFAULT_BRANCHES = ["master", "main"]
    GODEPS_COMMENT = "GENERATED BY DEP, DO NOT EDIT"
    GODEPS_DIR = "Godeps"
    GODEPS_FILE = "Godeps.json"
    LOCK_FILE = "Gopkg.lock"
    VENDOR_DIR = "vendor"

    # Directories never scanned for packages
    SKIPPED_DIRS = ["vendor", "testdata"]
    GO_FILE_SUFFIX = ".go"
    GO_TEST_SUFFIX = "_test.go"

    # Hosts with a fixed number of path elements in a project root
    ROOT_DEPTH_BY_HOST = {
        "github.com": 3,
        "gitlab.com": 3,
        "bitbucket.org": 3,
        "golang.org": 3,
        "gopkg.in": 2,
        "k8s.io": 2,
        "go.googlesource.com": 2,
    }


# Keys accepted under the "kdep:" section of the YAML config file.
_CONFIG_KEYS = {
    "log_level": "LOG_LEVEL",
    "log_format": "LOG_FORMAT",
    "goproxy_url": "GOPROXY_URL",
    "request_timeout": "REQUEST_TIMEOUT",
    "http_retry_max": "HTTP_RETRY_MAX",
    "http_retry_base_delay_sec": "HTTP_RETRY_BASE_DELAY_SEC",
    "version_cache_ttl_sec": "VERSION_CACHE_TTL_SEC",
    "default_branches": "DEFAULT_BRANCHES",
}


def _find_config_path() -> Optional[str]:
    env_path = os.environ.get(Constants.ENV_CONFIG)
    if env_path:
        return env_path
    for candidate in Constants.DEFAULT_CONFIG_PATHS:
        path = os.path.expanduser(candidate)
        if os.path.isfile(path):
            return path
    return None


def _load_yaml_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Read the YAML config file and return the raw mapping (empty on failure)."""
    path = path or _find_config_path()
    if not path:
        return {}
    if not os.path.isfile(path):
        logger.warning("Config file not found: %s", path)
        return {}
    import yaml  # pylint: disable=import-outside-toplevel

    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.error("Failed to load config %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: top level is not a mapping", path)
        return {}
    return data


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Apply the ``kdep:`` section of the config file onto Constants.

    Environment overrides (KDEP_GOPROXY) are applied last. Returns the
    values that were applied, keyed by Constants attribute name.
    """
    data = _load_yaml_config(path)
    section = data.get("kdep", data)
    applied: Dict[str, Any] = {}
    if isinstance(section, dict):
        for key, attr in _CONFIG_KEYS.items():
            if key not in section:
                continue
            current = getattr(Constants, attr)
            value = section[key]
            try:
                if isinstance(current, list):
                    value = [str(v) for v in value]
                elif isinstance(current, (int, float)) and not isinstance(current, bool):
                    value = type(current)(value)
                else:
                    value = str(value)
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid config value for %s: %r", key, section[key])
                continue
            setattr(Constants, attr, value)
            applied[attr] = value
    proxy = os.environ.get(Constants.ENV_GOPROXY)
    if proxy:
        Constants.GOPROXY_URL = proxy.rstrip("/")
        applied["GOPROXY_URL"] = Constants.GOPROXY_URL
    return applied
