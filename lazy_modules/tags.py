"""Tag and version-line branch naming.

Tags:      ``<global-prefix>/<project-prefix>/v<major>.<minor>.<patch>``
Branches:  ``release/<project-prefix>/v<major>.<minor>.x``

The branch namespace is always ``release/`` regardless of the global tag
prefix, so changing the tag prefix never changes which branches count as
version lines.
"""

from __future__ import annotations

import re

import semver

from .versions import format_version, parse_version

RELEASE_BRANCH_NAMESPACE = "release"

_RELEASE_BRANCH_RE = re.compile(
    rf"{RELEASE_BRANCH_NAMESPACE}/(?P<prefix>.+)/v(?P<major>[0-9]+)\.(?P<minor>[0-9]+)\.x"
)


def format_tag(global_prefix: str, project_prefix: str, version: semver.Version) -> str:
    """Format a release tag, e.g. ("release", "api", 1.2.0) → "release/api/v1.2.0"."""
    return f"{global_prefix}/{project_prefix}/v{format_version(version)}"


def format_release_branch(project_prefix: str, version: semver.Version) -> str:
    """Format the version-line branch, e.g. ("api", 1.2.0) → "release/api/v1.2.x"."""
    return f"{RELEASE_BRANCH_NAMESPACE}/{project_prefix}/v{version.major}.{version.minor}.x"


def derive_project_prefix(module_id: str) -> str:
    """Derive a tag prefix from a module id.

    Examples:
        ":api" → "api"
        ":services:auth" → "services-auth"
    """
    return module_id.lstrip(":").replace(":", "-")


def parse_version_from_tag(
    tag: str, global_prefix: str, project_prefix: str
) -> semver.Version | None:
    """Inverse of format_tag; None when the tag belongs elsewhere or is malformed."""
    expected = f"{global_prefix}/{project_prefix}/v"
    if not tag.startswith(expected):
        return None
    return parse_version(tag[len(expected) :])


def is_release_branch(branch: str) -> bool:
    """True if ``branch`` has the version-line shape for any project."""
    return _RELEASE_BRANCH_RE.fullmatch(branch) is not None


def release_branch_prefix(branch: str) -> str | None:
    """Project prefix a version-line branch belongs to, or None."""
    match = _RELEASE_BRANCH_RE.fullmatch(branch)
    return match.group("prefix") if match else None


def parse_version_line_from_branch(branch: str) -> tuple[int, int]:
    """Extract (major, minor) from a version-line branch name.

    Raises:
        ValueError: If ``branch`` is not a version-line branch.
    """
    match = _RELEASE_BRANCH_RE.fullmatch(branch)
    if match is None:
        raise ValueError(f"Not a version-line branch: {branch!r}")
    return int(match.group("major")), int(match.group("minor"))
