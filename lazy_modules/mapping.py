"""Assign changed files to the modules that own them."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping

from .config import Settings
from .models import ROOT_MODULE, ChangeSet, ModuleInfo

logger = logging.getLogger(__name__)


def map_changed_files(
    modules: Mapping[str, ModuleInfo], changes: ChangeSet
) -> dict[str, list[str]]:
    """Map each changed path to the most specific module containing it.

    The module whose directory is the longest prefix of the path wins. The
    root module ":" owns a path only when no other module's directory
    contains it, so a change inside a module never counts as a root change.
    Paths outside every module are dropped if there is no root module.

    Returns:
        Map of module id → its directly changed paths (modules without
        changes are absent).
    """
    prefixes = sorted(
        (
            (info.path.strip("/") + "/", module_id)
            for module_id, info in modules.items()
            if not info.is_root and info.path.strip("/")
        ),
        key=lambda item: len(item[0]),
        reverse=True,
    )

    owned: dict[str, list[str]] = {}
    for path in changes.files:
        owner = next((mid for prefix, mid in prefixes if path.startswith(prefix)), None)
        if owner is None:
            if ROOT_MODULE not in modules:
                continue
            owner = ROOT_MODULE
        owned.setdefault(owner, []).append(path)
    return owned


def apply_module_excludes(
    owned: Mapping[str, list[str]],
    modules: Mapping[str, ModuleInfo],
    settings: Settings,
) -> dict[str, list[str]]:
    """Drop files matching a module's own exclude patterns.

    Patterns are matched against the path relative to the module directory.
    Modules left without files are removed from the result.
    """
    filtered: dict[str, list[str]] = {}
    for module_id, files in owned.items():
        patterns = [re.compile(p) for p in settings.module(module_id).exclude_patterns]
        if not patterns:
            filtered[module_id] = list(files)
            continue
        prefix = modules[module_id].path.strip("/")
        kept: list[str] = []
        for path in files:
            local = path[len(prefix) + 1 :] if prefix and path.startswith(prefix + "/") else path
            if not any(rx.fullmatch(local) for rx in patterns):
                kept.append(path)
        excluded = len(files) - len(kept)
        if excluded:
            logger.debug("[%s] Module excludes removed %d file(s)", module_id, excluded)
        if kept:
            filtered[module_id] = kept
    return filtered


def attach_changes(
    modules: Mapping[str, ModuleInfo], owned: Mapping[str, list[str]]
) -> dict[str, ModuleInfo]:
    """Return copies of ``modules`` carrying their directly changed files."""
    return {
        module_id: info.model_copy(update={"changed_files": tuple(sorted(owned.get(module_id, ())))})
        for module_id, info in modules.items()
    }
