"""Module dependency graph and change-impact closure.

Edges point from a module to the modules it depends on. The graph is built
from whatever edges the workspace declares and may contain cycles, so both
the impact closure and the release ordering must tolerate them.

A module is affected when it has direct changes or when any module it
depends on is affected. The closure is evaluated by an iterative depth-first
search that marks each module unvisited, in-progress or resolved. Reaching
an in-progress module means a cycle; that back-edge contributes nothing at
the time it is seen, and all modules of the cycle are resolved together once
the DFS leaves the cycle's entry module (Tarjan's strongly connected
components), so every member of a cycle ends up with the same answer.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum

from .models import ImpactResult, ModuleInfo

logger = logging.getLogger(__name__)


class _Mark(Enum):
    IN_PROGRESS = 1
    RESOLVED = 2


class ModuleGraph:
    """Directed graph of modules keyed by id.

    Dependencies naming a module that does not exist are dropped with a
    warning; duplicate edges are collapsed.
    """

    def __init__(self, modules: Iterable[ModuleInfo]) -> None:
        module_list = list(modules)
        known = {m.id for m in module_list}
        self.modules: dict[str, ModuleInfo] = {}
        for info in module_list:
            kept: list[str] = []
            for dep in info.deps:
                if dep not in known:
                    logger.warning(
                        "Module %s depends on unknown module %s; ignoring that edge", info.id, dep
                    )
                    continue
                if dep not in kept:
                    kept.append(dep)
            if tuple(kept) != info.deps:
                info = info.model_copy(update={"deps": tuple(kept)})
            self.modules[info.id] = info

    def __contains__(self, module_id: object) -> bool:
        return module_id in self.modules

    def __len__(self) -> int:
        return len(self.modules)

    def __getitem__(self, module_id: str) -> ModuleInfo:
        return self.modules[module_id]

    def dependencies(self, module_id: str) -> tuple[str, ...]:
        return self.modules[module_id].deps

    def dependents(self, module_id: str) -> list[str]:
        """Modules that depend directly on ``module_id``, sorted."""
        return sorted(m for m, info in self.modules.items() if module_id in info.deps)

    def _resolve_affected(self) -> dict[str, bool]:
        marks: dict[str, _Mark] = {}
        affected: dict[str, bool] = {}
        index: dict[str, int] = {}
        low: dict[str, int] = {}
        on_path: list[str] = []
        counter = 0

        def enter(module_id: str) -> None:
            nonlocal counter
            marks[module_id] = _Mark.IN_PROGRESS
            index[module_id] = low[module_id] = counter
            counter += 1
            on_path.append(module_id)
            affected[module_id] = self.modules[module_id].has_direct_changes

        for start in sorted(self.modules):
            if start in marks:
                continue
            enter(start)
            stack = [(start, iter(self.modules[start].deps))]
            while stack:
                node, deps = stack[-1]
                descended = False
                for dep in deps:
                    mark = marks.get(dep)
                    if mark is None:
                        enter(dep)
                        stack.append((dep, iter(self.modules[dep].deps)))
                        descended = True
                        break
                    if mark is _Mark.IN_PROGRESS:
                        low[node] = min(low[node], index[dep])
                    elif affected[dep]:
                        affected[node] = True
                if descended:
                    continue

                stack.pop()
                if low[node] == index[node]:
                    # node entered this cycle (or stands alone): settle all its members
                    members: list[str] = []
                    while True:
                        member = on_path.pop()
                        members.append(member)
                        if member == node:
                            break
                    value = any(affected[m] for m in members)
                    for member in members:
                        affected[member] = value
                        marks[member] = _Mark.RESOLVED
                    if len(members) > 1:
                        logger.debug("Dependency cycle: %s", ", ".join(sorted(members)))

                if stack:
                    parent = stack[-1][0]
                    low[parent] = min(low[parent], low[node])
                    affected[parent] = affected[parent] or affected[node]
        return affected

    def impact(self) -> ImpactResult:
        """Compute which modules are affected by their changed files."""
        value = self._resolve_affected()
        affected = sorted(m for m, is_affected in value.items() if is_affected)
        direct = sorted(m for m, info in self.modules.items() if info.has_direct_changes)
        direct_set = set(direct)
        return ImpactResult(
            affected=affected,
            directly_changed=direct,
            affected_via={
                m: sorted(d for d in self.modules[m].deps if value[d])
                for m in affected
                if m not in direct_set
            },
            changed_files={m: sorted(self.modules[m].changed_files) for m in direct},
        )


def build_order(graph: ModuleGraph, module_ids: Iterable[str]) -> list[str]:
    """Order modules so dependencies come before dependents.

    Uses Kahn's algorithm restricted to ``module_ids``; edges to modules
    outside the selection are ignored. Ready modules are taken alphabetically
    for deterministic output. Modules left on a cycle are appended in
    alphabetical order with a warning.

    Example:
        If A depends on B, and B depends on C:
        build_order({A, B, C}) → [C, B, A]
    """
    selected = set(module_ids)
    in_degree = {n: 0 for n in selected}
    reverse_deps: dict[str, list[str]] = {n: [] for n in selected}
    for name in selected:
        for dep in graph.dependencies(name):
            if dep in selected and dep != name:
                in_degree[name] += 1
                reverse_deps[dep].append(name)

    queue = sorted(n for n, d in in_degree.items() if d == 0)
    order: list[str] = []
    while queue:
        node = queue.pop(0)
        order.append(node)
        for dependent in sorted(reverse_deps[node]):
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)
        queue.sort()

    if len(order) != len(selected):
        remaining = sorted(selected - set(order))
        logger.warning("Dependency cycle among %s; ordering them alphabetically", ", ".join(remaining))
        order.extend(remaining)
    return order
