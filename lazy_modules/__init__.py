"""Change-impact detection and per-module releases for multi-module repositories."""

from importlib.metadata import version as pkg_version

__version__ = pkg_version("lazy-modules")
