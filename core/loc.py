"""
Spire — core/loc.py
Grid Locations: fixed-size coordinates, neighbourhoods, and string keys.
========================================================================
Version:     0.1
Stack:       Python 3.12 | stdlib
Status:      Production-ready.

A Loc is a value type. It hashes and compares by (x, y), so it is used
directly as a dict/set key; dump()/load() remain for string-keyed formats.
All validity checks take the floor size explicitly (default MAP_SIZE).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List

MAP_SIZE: int = 13


@dataclass(frozen=True, order=True)
class Loc:
    x: int
    y: int

    # ----------------------------------------------------------
    # Serialization
    # ----------------------------------------------------------

    def dump(self) -> str:
        return f"{self.x},{self.y}"

    @staticmethod
    def load(key: str) -> Loc:
        x, y = key.split(",")
        return Loc(int(x), int(y))

    # ----------------------------------------------------------
    # Steps
    # ----------------------------------------------------------

    def up(self) -> Loc:
        return Loc(self.x, self.y - 1)

    def down(self) -> Loc:
        return Loc(self.x, self.y + 1)

    def left(self) -> Loc:
        return Loc(self.x - 1, self.y)

    def right(self) -> Loc:
        return Loc(self.x + 1, self.y)

    # ----------------------------------------------------------
    # Bounds
    # ----------------------------------------------------------

    def is_valid(self, size: int = MAP_SIZE) -> bool:
        return 0 <= self.x < size and 0 <= self.y < size

    def is_border(self, size: int = MAP_SIZE) -> bool:
        return self.x in (0, size - 1) or self.y in (0, size - 1)

    def is_corner(self, size: int = MAP_SIZE) -> bool:
        return self.x in (0, size - 1) and self.y in (0, size - 1)

    # ----------------------------------------------------------
    # Neighbourhoods
    # ----------------------------------------------------------

    def free_dir4(self) -> List[Loc]:
        """Up, down, left, right. May fall outside the floor."""
        return [self.up(), self.down(), self.left(), self.right()]

    def dir4(self, size: int = MAP_SIZE) -> List[Loc]:
        return [n for n in self.free_dir4() if n.is_valid(size)]

    def free_dir8(self) -> List[Loc]:
        up, down = self.up(), self.down()
        return [
            up, down, self.left(), self.right(),
            up.left(), up.right(), down.left(), down.right(),
        ]

    def dir8(self, size: int = MAP_SIZE) -> List[Loc]:
        return [n for n in self.free_dir8() if n.is_valid(size)]

    def is_near(self, other: Loc) -> bool:
        """True when other is 4-adjacent."""
        return abs(self.x - other.x) + abs(self.y - other.y) == 1

    def distance(self, other: Loc) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"
