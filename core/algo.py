"""
Spire — core/algo.py
Small combinatorial helpers: disjoint sets and partial-order layering.
"""

from __future__ import annotations

from typing import Callable, List, Sequence, Tuple, TypeVar

T = TypeVar("T")


class DisjointSet:
    """Union-find over the integers 0..size-1 with path compression."""

    def __init__(self, size: int):
        self.parent = list(range(size))

    def find(self, x: int) -> int:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def is_joint(self, x: int, y: int) -> bool:
        return self.find(x) == self.find(y)

    def joint(self, x: int, y: int) -> None:
        self.parent[self.find(x)] = self.find(y)


def partial_order_layers(items: Sequence[T], dominates: Callable[[T, T], bool]) -> List[List[T]]:
    """
    Kahn-style layering of a strict partial order into antichains.

    dominates(a, b) True means a must come in an earlier layer than b.
    Layers are returned dominant-first; within a layer, input order is kept.
    Raises ValueError if the relation has a cycle.
    """
    count = len(items)
    successors: List[List[int]] = [[] for _ in range(count)]
    in_degree = [0] * count
    for i, a in enumerate(items):
        for j, b in enumerate(items):
            if i != j and dominates(a, b):
                successors[i].append(j)
                in_degree[j] += 1

    layers: List[List[T]] = []
    remaining = list(range(count))
    while remaining:
        free = [i for i in remaining if in_degree[i] == 0]
        if not free:
            raise ValueError("dominates() is not a strict partial order (cycle detected)")
        for i in free:
            for j in successors[i]:
                in_degree[j] -= 1
        layers.append([items[i] for i in free])
        placed = set(free)
        remaining = [i for i in remaining if i not in placed]
    return layers


def all_pairs(items: Sequence[T]) -> List[Tuple[T, T]]:
    """Every unordered pair (items[i], items[j]) with i < j."""
    return [(a, b) for i, a in enumerate(items) for b in items[i + 1:]]
