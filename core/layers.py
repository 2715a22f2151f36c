"""
Spire — core/layers.py
MapLayer: one typed value per cell, stored flat at y * size + x.
================================================================
Version:     0.1
Stack:       Python 3.12 | NumPy
Status:      Production-ready.

A floor is several aligned layers (blocks, room marks, room ids, debug
notes). Layers never share cells; copy() is deep for the cell list only,
so cell values must be immutable or replaced wholesale through set().
"""

from __future__ import annotations

from typing import Any, Callable, Generic, Iterable, Iterator, List, Tuple, TypeVar, Union

import numpy as np

from core.graph import Graph
from core.loc import MAP_SIZE, Loc

T = TypeVar("T")

Setter = Union[T, Callable[[T], T]]
GraphAccessor = Callable[[T, Loc, Callable[[Loc], T]], Iterable[Tuple[Loc, Any]]]


class MapLayer(Generic[T]):
    def __init__(self, size: int, initializer: Callable[[Loc], T]):
        self.size = size
        self._cells: List[T] = [initializer(Loc(i % size, i // size)) for i in range(size * size)]

    @classmethod
    def filled(cls, value: T, size: int = MAP_SIZE) -> MapLayer[T]:
        return cls(size, lambda _: value)

    # ----------------------------------------------------------
    # Access
    # ----------------------------------------------------------

    def get(self, loc: Loc) -> T:
        return self._cells[loc.y * self.size + loc.x]

    __getitem__ = get

    def get_many(self, locs: Iterable[Loc]) -> List[T]:
        return [self.get(loc) for loc in locs]

    def set(self, locs: Union[Loc, Iterable[Loc]], setter: Setter) -> None:
        """Assign a value (or apply old -> new) at one or many locations."""
        if isinstance(locs, Loc):
            locs = (locs,)
        for loc in locs:
            i = loc.y * self.size + loc.x
            self._cells[i] = setter(self._cells[i]) if callable(setter) else setter

    def __setitem__(self, loc: Loc, value: T) -> None:
        self._cells[loc.y * self.size + loc.x] = value

    def init(self, initializer: Callable[[Loc], T]) -> None:
        for i in range(len(self._cells)):
            self._cells[i] = initializer(Loc(i % self.size, i // self.size))

    # ----------------------------------------------------------
    # Traversal
    # ----------------------------------------------------------

    def locs(self) -> Iterator[Loc]:
        for i in range(len(self._cells)):
            yield Loc(i % self.size, i // self.size)

    def cells(self) -> Iterator[Tuple[Loc, T]]:
        """(loc, value) in row-major order."""
        for i, value in enumerate(self._cells):
            yield Loc(i % self.size, i // self.size), value

    def where(self, predicate: Callable[[T], bool]) -> List[Loc]:
        return [loc for loc, value in self.cells() if predicate(value)]

    def copy(self) -> MapLayer[T]:
        clone = MapLayer.__new__(MapLayer)
        clone.size = self.size
        clone._cells = list(self._cells)
        return clone

    def to_array(self, convert: Callable[[T], Any], dtype=np.int32) -> np.ndarray:
        """Dense (size, size) array indexed [y, x]."""
        flat = np.fromiter((convert(v) for v in self._cells), dtype=dtype, count=len(self._cells))
        return flat.reshape(self.size, self.size)

    # ----------------------------------------------------------
    # Graph construction
    # ----------------------------------------------------------

    def build_graph(self, accessor: GraphAccessor) -> Graph[Loc, Any]:
        """accessor(value, loc, getter) lists the (target, payload) edges of each cell."""
        graph: Graph[Loc, Any] = Graph()
        for loc, value in self.cells():
            graph.add_edges(loc, accessor(value, loc, self.get))
        return graph

    def build_graph_dir4(self, is_access: Callable[[Tuple[T, Loc], Tuple[T, Loc]], bool]) -> Graph[Loc, int]:
        """4-adjacency graph with unit weights, keeping edges where is_access(from, to)."""
        graph: Graph[Loc, int] = Graph()
        for loc, value in self.cells():
            graph.add_edges(loc, [
                (n, 1) for n in loc.dir4(self.size)
                if is_access((value, loc), (self.get(n), n))
            ])
        return graph

    def __eq__(self, other: object) -> bool:
        return isinstance(other, MapLayer) and self.size == other.size and self._cells == other._cells

    def __repr__(self) -> str:
        return f"MapLayer(size={self.size})"
