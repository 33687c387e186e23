"""Released-version lookup.

Version scans query the remote, which is the authoritative record of what
was released. Tag existence is checked against local tags only: it is a
fast pre-flight before creating the tag locally, and a remote tag that was
never fetched is not detected here.
"""

from __future__ import annotations

import semver

from .git import GitRunner
from .tags import parse_version_from_tag


class VersionLedgerScanner:
    """Find released versions of a module from its tags.

    Args:
        runner: Runner bound to the repository root.
        remote: Remote whose tags are authoritative.
    """

    def __init__(self, runner: GitRunner, remote: str = "origin") -> None:
        self.runner = runner
        self.remote = remote

    def latest_version(self, global_prefix: str, project_prefix: str) -> semver.Version | None:
        """Highest released version for the project, or None if never released."""
        pattern = f"refs/tags/{global_prefix}/{project_prefix}/v*"
        return max(self._remote_versions(pattern, global_prefix, project_prefix), default=None)

    def latest_version_in_line(
        self, global_prefix: str, project_prefix: str, major: int, minor: int
    ) -> semver.Version | None:
        """Highest released patch of ``major.minor``, or None if that line has none."""
        pattern = f"refs/tags/{global_prefix}/{project_prefix}/v{major}.{minor}.*"
        versions = self._remote_versions(pattern, global_prefix, project_prefix)
        return max(
            (v for v in versions if v.major == major and v.minor == minor), default=None
        )

    def tag_exists(self, tag: str) -> bool:
        """True if ``tag`` exists in the local repository."""
        return bool(self.runner.output("tag", "--list", tag))

    def _remote_versions(
        self, pattern: str, global_prefix: str, project_prefix: str
    ) -> list[semver.Version]:
        # ls-remote lines look like "<sha>\trefs/tags/<name>"
        lines = self.runner.output("ls-remote", "--tags", "--refs", self.remote, pattern)
        versions: list[semver.Version] = []
        for line in lines:
            _, _, ref = line.partition("refs/tags/")
            version = parse_version_from_tag(ref.strip(), global_prefix, project_prefix)
            if version is not None:
                versions.append(version)
        return versions
