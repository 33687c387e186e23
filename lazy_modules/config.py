"""Configuration records.

Settings are read once from ``[tool.lazy-modules]`` in the root
pyproject.toml and validated into frozen models. Components receive the
record (or the per-module part of it) at construction; nothing reads
configuration from global state.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError
from .toml import TOOL_NAME, get_tool_table, load_pyproject


def _check_regexes(patterns: tuple[str, ...]) -> tuple[str, ...]:
    for pattern in patterns:
        try:
            re.compile(pattern)
        except re.error as exc:
            raise ValueError(f"invalid regular expression {pattern!r}: {exc}") from exc
    return patterns


class ModuleSettings(BaseModel):
    """Per-module options from ``[tool.lazy-modules.modules."<id>"]``.

    Attributes:
        path: Module directory, for modules outside the uv workspace.
        enabled: Release opt-in.
        tag_prefix: Replaces the prefix derived from the module id.
        exclude_patterns: Regexes matched against module-relative paths.
        dependencies: Extra dependency edges by module id.
        build_output: Module-relative directory that must hold build artifacts.
        version_file: Module-relative path of the release-version marker.
        post_release: Command run after a successful release.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    path: str | None = None
    enabled: bool = False
    tag_prefix: str | None = Field(default=None, alias="tag-prefix")
    exclude_patterns: tuple[str, ...] = Field(default=(), alias="exclude-patterns")
    dependencies: tuple[str, ...] = ()
    build_output: str = Field(default="dist", alias="build-output")
    version_file: str = Field(default="build/release-version.txt", alias="version-file")
    post_release: tuple[str, ...] = Field(default=(), alias="post-release")

    @field_validator("exclude_patterns")
    @classmethod
    def _check_excludes(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return _check_regexes(value)

    @field_validator("tag_prefix")
    @classmethod
    def _check_tag_prefix(cls, value: str | None) -> str | None:
        if value is not None and not value.strip("/"):
            raise ValueError("tag-prefix must not be empty")
        return value


class Settings(BaseModel):
    """Repository-wide options from ``[tool.lazy-modules]``."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    base_branch: str = Field(default="main", alias="base-branch")
    commit_ref: str = Field(default="HEAD~1", alias="commit-ref")
    include_untracked: bool = Field(default=True, alias="include-untracked")
    exclude_patterns: tuple[str, ...] = Field(default=(), alias="exclude-patterns")
    global_tag_prefix: str = Field(default="release", alias="global-tag-prefix")
    primary_branch_scope: str = Field(default="minor", alias="primary-branch-scope")
    release_branch_patterns: tuple[str, ...] = Field(
        default=("^main$",), alias="release-branch-patterns"
    )
    output_file: str = Field(
        default="build/lazy-modules/changed-modules.txt", alias="output-file"
    )
    remote: str = "origin"
    modules: dict[str, ModuleSettings] = Field(default_factory=dict)

    @field_validator("exclude_patterns", "release_branch_patterns")
    @classmethod
    def _check_patterns(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return _check_regexes(value)

    @field_validator("global_tag_prefix")
    @classmethod
    def _check_global_prefix(cls, value: str) -> str:
        if not value.strip("/"):
            raise ValueError("global-tag-prefix must not be empty")
        return value

    @field_validator("modules")
    @classmethod
    def _check_module_ids(cls, value: dict[str, ModuleSettings]) -> dict[str, ModuleSettings]:
        for module_id in value:
            if not module_id.startswith(":"):
                raise ValueError(f"module id {module_id!r} must start with ':'")
        return value

    def module(self, module_id: str) -> ModuleSettings:
        """Settings for one module; defaults when it has no table."""
        return self.modules.get(module_id) or ModuleSettings()

    def with_overrides(self, **overrides: object) -> Settings:
        """Copy with invocation-time overrides applied; None values are ignored."""
        update = {key: value for key, value in overrides.items() if value is not None}
        if not update:
            return self
        return self.model_validate({**self.model_dump(), **update})


def load_settings(root: Path) -> Settings:
    """Load settings from ``<root>/pyproject.toml``.

    A missing file or missing table yields the defaults.

    Raises:
        ConfigError: If the table contains unknown keys or invalid values.
    """
    pyproject = root / "pyproject.toml"
    table = get_tool_table(load_pyproject(pyproject)) if pyproject.exists() else {}
    try:
        return Settings.model_validate(table)
    except ValidationError as exc:
        raise ConfigError(f"Invalid [tool.{TOOL_NAME}] configuration:\n{exc}") from exc
