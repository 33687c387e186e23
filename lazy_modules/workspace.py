"""Workspace discovery and per-module build metadata.

Modules come from the uv workspace (``[tool.uv.workspace].members``) plus any
``[tool.lazy-modules.modules]`` entry that declares a ``path``. Internal
dependency edges are read from each member's pyproject.toml: a PEP 508
requirement whose canonical name matches another member is an edge.
"""

from __future__ import annotations

import glob
import logging
from pathlib import Path

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

from .config import Settings
from .errors import ConfigError
from .models import ROOT_MODULE, ModuleInfo
from .toml import (
    get_all_dependency_strings,
    get_project_name,
    get_workspace_member_globs,
    load_pyproject,
)

logger = logging.getLogger(__name__)


def module_id_for(path: str) -> str:
    """Module identifier for a repository-relative directory.

    Examples:
        "services/auth" → ":services:auth"
        "" → ":"
    """
    path = path.strip("/")
    return ROOT_MODULE + path.replace("/", ":") if path else ROOT_MODULE


def dep_canonical_name(dep_str: str) -> str | None:
    """Extract the canonical package name from a PEP 508 dependency string.

    Examples:
        "requests>=2.0" → "requests"
        "My_Package[extra]~=1.0" → "my-package"
        "not a requirement" → None
    """
    try:
        return canonicalize_name(Requirement(dep_str).name)
    except InvalidRequirement:
        return None


class Workspace:
    """Build metadata provider for one repository.

    Args:
        root: Repository root (holds the root pyproject.toml).
        settings: Loaded configuration.
    """

    def __init__(self, root: Path, settings: Settings) -> None:
        self.root = root
        self.settings = settings
        self._modules: dict[str, ModuleInfo] | None = None
        self._working_versions: dict[str, str] = {}

    def discover(self) -> dict[str, ModuleInfo]:
        """Scan the workspace and return all modules keyed by id.

        The root module ":" is always present. Results are cached.

        Raises:
            ConfigError: If no module besides the root exists.
        """
        if self._modules is not None:
            return self._modules

        member_dirs = self._member_dirs()
        if not member_dirs:
            raise ConfigError(
                "No modules found. Declare [tool.uv.workspace] members or "
                '[tool.lazy-modules.modules."<id>"] entries with a path.'
            )

        # First pass: project names and raw requirement strings
        names: dict[str, str] = {}
        raw_deps: dict[str, list[str]] = {}
        for module_id, rel_path in member_dirs.items():
            pyproject = self.root / rel_path / "pyproject.toml"
            if pyproject.exists():
                doc = load_pyproject(pyproject)
                names[get_project_name(doc, Path(rel_path).name)] = module_id
                raw_deps[module_id] = get_all_dependency_strings(doc)
            else:
                raw_deps[module_id] = []

        # Second pass: keep only edges to other members, then configured extras
        modules: dict[str, ModuleInfo] = {
            ROOT_MODULE: ModuleInfo(
                id=ROOT_MODULE,
                path="",
                deps=tuple(self.settings.module(ROOT_MODULE).dependencies),
            )
        }
        for module_id, rel_path in member_dirs.items():
            deps: list[str] = []
            for dep_str in raw_deps[module_id]:
                dep_id = names.get(dep_canonical_name(dep_str) or "")
                if dep_id and dep_id != module_id and dep_id not in deps:
                    deps.append(dep_id)
            for dep_id in self.settings.module(module_id).dependencies:
                if dep_id not in deps:
                    deps.append(dep_id)
            modules[module_id] = ModuleInfo(id=module_id, path=rel_path, deps=tuple(deps))
            suffix = f" -> [{', '.join(deps)}]" if deps else ""
            logger.info("Discovered %s (%s)%s", module_id, rel_path, suffix)

        self._modules = modules
        return modules

    def _member_dirs(self) -> dict[str, str]:
        """Map module id → relative path for uv members and configured modules."""
        found: dict[str, str] = {}
        pyproject = self.root / "pyproject.toml"
        member_globs = (
            get_workspace_member_globs(load_pyproject(pyproject)) if pyproject.exists() else []
        )
        for pattern in member_globs:
            for match in sorted(glob.glob(str(self.root / pattern))):
                p = Path(match)
                if not (p / "pyproject.toml").exists():
                    continue
                rel_path = p.relative_to(self.root).as_posix()
                if rel_path != ".":
                    found[module_id_for(rel_path)] = rel_path

        by_path = {path: module_id for module_id, path in found.items()}
        for module_id, module_settings in self.settings.modules.items():
            if module_settings.path is None:
                continue
            rel_path = module_settings.path.strip("/")
            if rel_path in by_path:
                if by_path[rel_path] != module_id:
                    logger.warning(
                        "Module %s declares path %s, already discovered as %s; ignoring",
                        module_id,
                        rel_path,
                        by_path[rel_path],
                    )
                continue
            if not (self.root / rel_path).is_dir():
                raise ConfigError(f"Module {module_id} path does not exist: {rel_path}")
            found[module_id] = rel_path
            by_path[rel_path] = module_id
        return found

    def module(self, module_id: str) -> ModuleInfo:
        """Look up a module by id.

        Raises:
            ConfigError: If no such module exists.
        """
        modules = self.discover()
        if module_id not in modules:
            known = ", ".join(sorted(m for m in modules if m != ROOT_MODULE))
            raise ConfigError(f"Unknown module '{module_id}'. Known modules: {known}")
        return modules[module_id]

    def module_dir(self, module_id: str) -> Path:
        return self.root / self.module(module_id).path

    def build_output_dir(self, module_id: str) -> Path:
        return self.module_dir(module_id) / self.settings.module(module_id).build_output

    def has_build_output(self, module_id: str) -> bool:
        """True if the module's build output directory exists and is non-empty."""
        out = self.build_output_dir(module_id)
        return out.is_dir() and any(out.iterdir())

    def build_command(self, module_id: str) -> str:
        """The build step that produces the module's build output."""
        info = self.module(module_id)
        path = info.path or "."
        out_dir = self.build_output_dir(module_id).relative_to(self.root).as_posix()
        return f"uv build {path} --out-dir {out_dir}"

    def working_version(self, module_id: str) -> str | None:
        return self._working_versions.get(module_id)

    def set_working_version(self, module_id: str, version: str | None) -> str | None:
        """Assign (or clear, with None) a module's working version.

        Returns:
            The previous working version, so callers can restore it.
        """
        previous = self._working_versions.get(module_id)
        if version is None:
            self._working_versions.pop(module_id, None)
        else:
            self._working_versions[module_id] = version
        return previous

    def version_file(self, module_id: str) -> Path:
        return self.module_dir(module_id) / self.settings.module(module_id).version_file

    def write_version_marker(self, module_id: str, version: str) -> Path:
        """Persist the released version as plain text; returns the file path."""
        path = self.version_file(module_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(version)
        return path
