"""
Fetcher - Dependency Graph.

============================================================
RESPONSIBILITY
============================================================
Manages fetch task dependencies.

- Topological order (dependencies first)
- Cycle and unknown-dependency detection
- Dependents lookup for the scheduler
- Dependency closure for force-included tasks

============================================================
"""

from typing import Dict, Iterable, List, Set

from core.exceptions import ConfigurationError


class DependencyGraph:
    """
    Directed acyclic graph of task dependencies.

    Nodes keep registration order so every traversal is
    deterministic.
    """

    def __init__(self):
        self._edges: Dict[str, List[str]] = {}  # node -> dependencies

    def add_node(self, name: str, dependencies: Iterable[str] = ()) -> None:
        """Add a node with its dependencies."""
        self._edges[name] = list(dependencies)

    @property
    def nodes(self) -> List[str]:
        return list(self._edges)

    def validate(self) -> None:
        """
        Check every dependency is a node and the graph is acyclic.

        Raises:
            ConfigurationError: On unknown dependency or cycle
        """
        for node, deps in self._edges.items():
            for dep in deps:
                if dep not in self._edges:
                    raise ConfigurationError(
                        message=f"Task '{node}' depends on unknown task '{dep}'",
                        config_key="tasks",
                        actual_value=dep,
                    )
        self.get_order()

    def get_order(self) -> List[str]:
        """
        Get nodes in execution order (dependencies first).

        Raises:
            ConfigurationError: If circular dependency detected
        """
        visited: Set[str] = set()
        temp_visited: Set[str] = set()
        order: List[str] = []

        def visit(node: str) -> None:
            if node in temp_visited:
                raise ConfigurationError(
                    message=f"Circular dependency detected involving: {node}",
                    config_key="tasks",
                    actual_value=node,
                )
            if node in visited:
                return

            temp_visited.add(node)

            for dep in self._edges.get(node, []):
                visit(dep)

            temp_visited.remove(node)
            visited.add(node)
            order.append(node)

        for node in self._edges:
            if node not in visited:
                visit(node)

        return order

    def get_dependents(self, name: str) -> List[str]:
        """Get nodes that directly depend on the given node."""
        return [node for node, deps in self._edges.items() if name in deps]

    def closure(self, names: Iterable[str]) -> Set[str]:
        """Nodes plus all their transitive dependencies."""
        result: Set[str] = set()
        stack = list(names)

        while stack:
            node = stack.pop()
            if node in result:
                continue
            result.add(node)
            stack.extend(self._edges.get(node, []))

        return result

    def subgraph(self, names: Iterable[str]) -> "DependencyGraph":
        """Graph restricted to the given nodes, registration order kept."""
        keep = set(names)
        graph = DependencyGraph()
        for node, deps in self._edges.items():
            if node in keep:
                graph.add_node(node, [d for d in deps if d in keep])
        return graph


__all__ = [
    "DependencyGraph",
]
