"""Static dependency-cycle detection.

The graph is derived purely from bean definitions: nothing is instantiated.
A node is a bean name; an edge ``a -> b`` exists when a type referenced by
``a``'s constructor, fields or injection methods is satisfied by exactly one
bean ``b``. Unmatched and ambiguous references add no edge, so only provable
cycles are reported.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from ._definition import BeanDefinition
    from ._registry import BeanRegistry


logger = logging.getLogger(__name__)


class CircularDependencyDetector:
    def __init__(self, registry: BeanRegistry) -> None:
        if registry is None:
            msg = "BeanRegistry must not be None"
            raise ValueError(msg)
        self._registry = registry
        self._graph: dict[str, list[str]] = {}
        self._lock = threading.Lock()

    def build_dependency_graph(self) -> None:
        """Recompute the graph from every registered definition, in registration order."""
        graph: dict[str, list[str]] = {}
        for name in self._registry.definition_names():
            definition = self._registry.get_definition(name)
            if definition is not None:
                graph[name] = self._analyze_dependencies(definition)

        with self._lock:
            self._graph = graph
        logger.debug("Dependency graph built with %d beans", len(graph))

    def _analyze_dependencies(self, definition: BeanDefinition) -> list[str]:
        dependencies: dict[str, None] = {}
        for declared_type in definition.dependency_types():
            name = self._find_bean_name(declared_type)
            if name is not None:
                dependencies.setdefault(name, None)
        return list(dependencies)

    def _find_bean_name(self, declared_type: Any) -> str | None:
        names = self._registry.get_names_for_type(declared_type)
        if len(names) == 1:
            return names[0]
        return None

    def detect_circular_dependencies(self) -> list[list[str]]:
        """Every cycle reachable by a DFS over all nodes.

        Each cycle starts and ends with the same bean name, e.g. ``["a", "b", "a"]``.
        """
        graph = self.dependency_graph()
        cycles: list[list[str]] = []
        visited: set[str] = set()
        on_stack: set[str] = set()
        path: list[str] = []

        def visit(name: str) -> None:
            visited.add(name)
            on_stack.add(name)
            path.append(name)

            for dependency in graph.get(name, ()):
                if dependency not in visited:
                    visit(dependency)
                elif dependency in on_stack:
                    start = path.index(dependency)
                    cycles.append([*path[start:], dependency])

            on_stack.discard(name)
            path.pop()

        for name in graph:
            if name not in visited:
                visit(name)

        return cycles

    def has_circular_dependency(self, bean_name: str) -> bool:
        """Whether a cycle is reachable from ``bean_name``."""
        graph = self.dependency_graph()
        visited: set[str] = set()
        on_stack: set[str] = set()

        def visit(name: str) -> bool:
            visited.add(name)
            on_stack.add(name)
            for dependency in graph.get(name, ()):
                if dependency not in visited:
                    if visit(dependency):
                        return True
                elif dependency in on_stack:
                    return True
            on_stack.discard(name)
            return False

        return visit(bean_name)

    def direct_dependencies(self, bean_name: str) -> set[str]:
        with self._lock:
            return set(self._graph.get(bean_name, ()))

    def all_dependencies(self, bean_name: str) -> set[str]:
        """Transitive dependencies of ``bean_name``."""
        graph = self.dependency_graph()
        found: set[str] = set()
        pending = list(graph.get(bean_name, ()))
        while pending:
            name = pending.pop()
            if name in found:
                continue
            found.add(name)
            pending.extend(graph.get(name, ()))
        return found

    def dependency_graph(self) -> dict[str, list[str]]:
        with self._lock:
            return {name: list(deps) for name, deps in self._graph.items()}

    def bean_names(self) -> set[str]:
        with self._lock:
            return set(self._graph)

    def is_empty(self) -> bool:
        with self._lock:
            return not self._graph

    def clear(self) -> None:
        with self._lock:
            self._graph.clear()
