"""TOML reading utilities.

Uses tomlkit to read the root and per-module pyproject.toml files. Values
handed to the rest of the package are unwrapped to plain Python types.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
from packaging.utils import canonicalize_name

TOOL_NAME = "lazy-modules"


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a pyproject.toml file."""
    return tomlkit.parse(path.read_text())


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """Extract the canonical package name from [project].name.

    Names are normalized per PEP 503 (lowercase, hyphens instead of
    underscores) for consistent comparison.

    Args:
        doc: Parsed pyproject.toml document.
        fallback: Value to return if name is not specified.
    """
    return canonicalize_name(doc.get("project", {}).get("name", fallback))


def get_all_dependency_strings(doc: tomlkit.TOMLDocument) -> list[str]:
    """Collect all dependency strings from a pyproject.toml.

    Gathers dependencies from three locations:
    - [project].dependencies (main runtime deps)
    - [project].optional-dependencies.* (extras like [dev], [test])
    - [dependency-groups].* (PEP 735 dependency groups)

    Returns raw PEP 508 strings like "requests>=2.0" or "pkg[extra]~=1.0".
    Include-group tables inside dependency groups are skipped.
    """
    project = doc.get("project", {})
    deps: list[str] = [str(d) for d in project.get("dependencies", [])]
    for group_deps in project.get("optional-dependencies", {}).values():
        deps.extend(str(d) for d in group_deps)
    for group_deps in doc.get("dependency-groups", {}).values():
        deps.extend(str(d) for d in group_deps if isinstance(d, str))
    return deps


def get_workspace_member_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """Extract workspace member glob patterns from [tool.uv.workspace].

    These patterns (e.g., "packages/*", "libs/*") define which directories
    contain workspace packages. Returns [] when no uv workspace is declared.
    """
    members = doc.get("tool", {}).get("uv", {}).get("workspace", {}).get("members")
    return [str(m) for m in members] if members else []


def get_tool_table(doc: tomlkit.TOMLDocument) -> dict[str, Any]:
    """Return [tool.lazy-modules] as plain Python data ({} when absent)."""
    table = doc.get("tool", {}).get(TOOL_NAME)
    if table is None:
        return {}
    return table.unwrap()
