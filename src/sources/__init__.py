"""Concrete version sources."""

from .goproxy import GoProxyVersionSource, escape_module_path, parse_go_mod
from .static import StaticVersionSource

__all__ = ["GoProxyVersionSource", "StaticVersionSource", "escape_module_path", "parse_go_mod"]
