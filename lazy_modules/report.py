"""Human-readable changed-modules report."""

from __future__ import annotations

from collections.abc import Mapping

from .models import ImpactResult, ModuleInfo

FILE_DISPLAY_LIMIT = 50


def _display_files(info: ModuleInfo | None, files: list[str]) -> list[str]:
    """Paths relative to the module directory, sorted."""
    prefix = info.path.strip("/") + "/" if info is not None and info.path.strip("/") else ""
    shown = [f[len(prefix) :] if prefix and f.startswith(prefix) else f for f in files]
    return sorted(shown)


def build_report(
    header: str, impact: ImpactResult, modules: Mapping[str, ModuleInfo]
) -> str:
    """Format the report printed by the ``changed`` commands.

    Directly changed modules are listed with their changed files (at most
    FILE_DISPLAY_LIMIT each); transitively affected modules follow, each
    annotated with the affected dependencies that pulled it in.

    Example:
        Changed modules (since HEAD~1):

          :libs:core
            - src/core/api.py

          :services:auth  (affected via :libs:core)
    """
    if not impact.affected:
        return "No modules have changed."

    lines = [header]
    for module_id in impact.directly_changed:
        files = _display_files(modules.get(module_id), impact.changed_files.get(module_id, []))
        lines.append("")
        lines.append(f"  {module_id}")
        lines.extend(f"    - {f}" for f in files[:FILE_DISPLAY_LIMIT])
        if len(files) > FILE_DISPLAY_LIMIT:
            lines.append(f"    ... and {len(files) - FILE_DISPLAY_LIMIT} more")

    transitive = impact.transitively_affected
    if transitive:
        lines.append("")
        width = max(len(m) for m in transitive)
        for module_id in transitive:
            via = impact.affected_via.get(module_id, [])
            annotation = f"  (affected via {', '.join(via)})" if via else ""
            lines.append(f"  {module_id.ljust(width)}{annotation}".rstrip())

    return "\n".join(lines)
