"""Version parsing and bumping utilities.

Released versions are plain ``major.minor.patch`` triples backed by
semver.Version, which provides the total ordering and the bump arithmetic.
Anything else (pre-release suffixes, two or four components) is not a
released version and parses to None.
"""

from __future__ import annotations

import re
from enum import Enum

import semver

_VERSION_RE = re.compile(r"v?([0-9]+)\.([0-9]+)\.([0-9]+)")

INITIAL_VERSION = semver.Version(0, 1, 0)


class Scope(str, Enum):
    """Granularity of a version bump."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"

    @classmethod
    def from_string(cls, value: str) -> Scope | None:
        """Case-insensitive lookup; None for anything that is not a scope."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


def parse_version(version_str: str) -> semver.Version | None:
    """Parse "1.2.3" or "v1.2.3" into a semver.Version.

    Examples:
        "1.2.3" → Version(1, 2, 3)
        "v0.1.0" → Version(0, 1, 0)
        "1.2", "1.2.3.4", "a.b.c", "" → None
    """
    match = _VERSION_RE.fullmatch(version_str)
    if match is None:
        return None
    major, minor, patch = (int(part) for part in match.groups())
    return semver.Version(major, minor, patch)


def format_version(version: semver.Version) -> str:
    """Canonical text form without a leading "v"."""
    return f"{version.major}.{version.minor}.{version.patch}"


def bump(version: semver.Version, scope: Scope) -> semver.Version:
    """Bump a version by scope.

    Examples:
        bump(1.2.3, MAJOR) → 2.0.0
        bump(1.2.3, MINOR) → 1.3.0
        bump(1.2.3, PATCH) → 1.2.4
    """
    if scope is Scope.MAJOR:
        return version.bump_major()
    if scope is Scope.MINOR:
        return version.bump_minor()
    return version.bump_patch()


def next_version(latest: semver.Version | None, scope: Scope) -> semver.Version:
    """Version to release after ``latest``; 0.1.0 when nothing was released yet."""
    if latest is None:
        return INITIAL_VERSION
    return bump(latest, scope)
