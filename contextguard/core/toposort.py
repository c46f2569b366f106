"""
Topological Sort — DFS post-order over declared dependencies.

Shared by fix plans and workflow phases. Dependencies are emitted before
their dependents; otherwise declaration order is preserved. Unknown
dependency keys are ignored. A genuine cycle raises CycleError.
"""

from __future__ import annotations

import logging
from typing import Callable, Hashable, Iterable, TypeVar

from contextguard.errors import CycleError

logger = logging.getLogger("contextguard.core.toposort")

T = TypeVar("T")


def topological_order(
    items: list[T],
    key: Callable[[T], Hashable],
    depends_on: Callable[[T], Iterable[Hashable]],
) -> list[T]:
    """
    Order items so that every item follows all of its dependencies.

    Raises:
        CycleError: the dependency declarations contain a cycle.
    """
    by_key = {key(item): item for item in items}
    done: set[Hashable] = set()
    active: list[Hashable] = []
    ordered: list[T] = []

    def visit(item: T) -> None:
        item_key = key(item)
        if item_key in done:
            return
        if item_key in active:
            cycle = active[active.index(item_key):] + [item_key]
            raise CycleError([str(k) for k in cycle])

        active.append(item_key)
        for dep_key in depends_on(item) or []:
            dep = by_key.get(dep_key)
            if dep is None:
                logger.warning(f"Ignoring unknown dependency {dep_key!r} of {item_key!r}")
                continue
            visit(dep)
        active.pop()

        done.add(item_key)
        ordered.append(item)

    for item in items:
        visit(item)

    return ordered
