"""Dependency graph construction and analysis."""

from __future__ import annotations

import heapq
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from ..models import Activity


@dataclass
class DependencyGraph:
    """Directed graph over entity ids with cycle detection and traversal.

    An edge ``a -> b`` means "a depends on b" (or "a's parent is b"). Edges to
    ids that are not nodes are kept but ignored by every traversal.
    """

    nodes: set[str] = field(default_factory=set)
    edges: dict[str, set[str]] = field(
        default_factory=lambda: defaultdict(set)
    )  # node -> dependencies
    reverse_edges: dict[str, set[str]] = field(
        default_factory=lambda: defaultdict(set)
    )  # node -> dependents

    @classmethod
    def from_edges(cls, adjacency: Mapping[str, Iterable[str]]) -> "DependencyGraph":
        """Build a graph from ``{node: [targets...]}``; every key becomes a node."""
        graph = cls()
        graph.nodes.update(adjacency)
        for src, targets in adjacency.items():
            for dst in targets:
                if dst:
                    graph.add_edge(src, dst)
        return graph

    @classmethod
    def from_activities(cls, activities: Iterable[Activity]) -> "DependencyGraph":
        """Build the ``depends_on`` graph of a set of activities."""
        return cls.from_edges({a.id: list(a.depends_on) for a in activities})

    def add_edge(self, src: str, dst: str) -> None:
        self.edges[src].add(dst)
        self.reverse_edges[dst].add(src)

    def get_dependencies(self, node: str) -> list[str]:
        """Direct dependencies that are nodes of this graph, sorted."""
        return sorted(d for d in self.edges.get(node, ()) if d in self.nodes)

    def get_dependents(self, node: str) -> list[str]:
        return sorted(d for d in self.reverse_edges.get(node, ()) if d in self.nodes)

    def transitive_dependents(self, start: str) -> set[str]:
        """All nodes that (transitively) depend on ``start``, excluding start."""
        visited: set[str] = set()
        stack = self.get_dependents(start)
        while stack:
            current = stack.pop()
            if current in visited or current == start:
                continue
            visited.add(current)
            stack.extend(d for d in self.get_dependents(current) if d not in visited)
        return visited

    def topological_sort(self) -> list[str]:
        """Return nodes in dependency order (dependencies first).

        Kahn's algorithm with a min-heap, so ties are broken by ascending id
        and the order is reproducible. Returns a partial order if cycles exist;
        callers compare the length against ``len(nodes)``.
        """
        in_degree = {node: len(self.get_dependencies(node)) for node in self.nodes}
        heap = [node for node, degree in in_degree.items() if degree == 0]
        heapq.heapify(heap)
        result: list[str] = []

        while heap:
            node = heapq.heappop(heap)
            result.append(node)
            for dependent in self.get_dependents(node):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(heap, dependent)

        return result

    def find_cycles(self) -> list[list[str]]:
        """Find cycles as ordered paths ``[A, B, ..., A]``.

        Depth-first search with an explicit stack and an in-progress set,
        visiting nodes and edges in id order. Each cycle is reported once,
        rotated to start at its smallest id.
        """
        cycles: list[list[str]] = []
        seen: set[tuple[str, ...]] = set()
        done: set[str] = set()

        for root in sorted(self.nodes):
            if root in done:
                continue
            path = [root]
            in_progress = {root}
            stack = [iter(self.get_dependencies(root))]
            while stack:
                for dep in stack[-1]:
                    if dep in in_progress:
                        cycle = path[path.index(dep):]
                        start = cycle.index(min(cycle))
                        normalized = tuple(cycle[start:] + cycle[:start])
                        if normalized not in seen:
                            seen.add(normalized)
                            cycles.append(list(normalized) + [normalized[0]])
                    elif dep not in done:
                        path.append(dep)
                        in_progress.add(dep)
                        stack.append(iter(self.get_dependencies(dep)))
                        break
                else:
                    # Every dependency of the top node has been explored
                    stack.pop()
                    node = path.pop()
                    in_progress.discard(node)
                    done.add(node)

        return cycles

    def find_cycle(self) -> list[str] | None:
        """The first cycle found, or None if the graph is acyclic."""
        cycles = self.find_cycles()
        return cycles[0] if cycles else None
