"""
Import Graph Builder — File-level import graph and cycle detection.

Only valid import edges take part; self-imports are ignored. Cycles are found
by a depth-first search per root node: a path that leads back to its root
closes a cycle, reported as the node sequence A → B → A.
"""

from __future__ import annotations

from contextguard.models.graph_models import (
    CrossFileDependency,
    DependencyGraph,
    DependencyKind,
    DependencyStatus,
)


def build_import_graph(dependencies: list[CrossFileDependency]) -> DependencyGraph:
    """Build the file → file graph from valid import dependencies."""
    graph = DependencyGraph()
    for dep in dependencies:
        if dep.kind != DependencyKind.IMPORT or dep.status != DependencyStatus.VALID:
            continue
        if dep.source == dep.target:
            continue
        graph.add_edge(dep.source, dep.target)
    return graph


def _canonical(cycle: list[str]) -> tuple[str, ...]:
    """Rotation-independent key for a closed cycle [a, b, ..., a]."""
    body = cycle[:-1]
    pivot = body.index(min(body))
    return tuple(body[pivot:] + body[:pivot])


def detect_cycles(graph: DependencyGraph) -> list[list[str]]:
    """
    Enumerate the elementary import cycles of the graph.

    Each node, in insertion order, is taken as a root; the DFS from a root only
    enters nodes that come after it, so every cycle is reported once, starting
    from its earliest node. Overlapping cycles (sharing nodes or edges) are all
    reported.

    Returns:
        Closed node sequences, e.g. [["a.ts", "b.ts", "a.ts"]], in discovery order.
    """
    position = {node: i for i, node in enumerate(graph.nodes)}
    cycles: list[list[str]] = []
    seen: set[tuple[str, ...]] = set()

    for root in graph.nodes:
        floor = position[root]

        # Iterative DFS: one neighbor iterator per node on the current path
        path: list[str] = [root]
        on_path: set[str] = {root}
        frames = [iter(graph.get_neighbors(root))]

        while frames:
            neighbor = next(frames[-1], None)
            if neighbor is None:
                frames.pop()
                on_path.discard(path.pop())
                continue

            if neighbor == root:
                cycle = path + [root]
                key = _canonical(cycle)
                if key not in seen:
                    seen.add(key)
                    cycles.append(cycle)
                continue

            if neighbor in on_path or position.get(neighbor, -1) < floor:
                continue

            on_path.add(neighbor)
            path.append(neighbor)
            frames.append(iter(graph.get_neighbors(neighbor)))

    return cycles
