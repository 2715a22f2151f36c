"""
Spire — dungeon/walk.py
Walk-distance maps over a floor grid.
=====================================
Version:     0.1
Stack:       Python 3.12 | NumPy | python-tcod (tcod.path)

Every non-wall cell is walkable at unit cost (events are obstacles the
player pays to pass, not barriers). Arrays are indexed [y, x].
"""

from __future__ import annotations

from typing import List

import numpy as np
import tcod.path

from core.loc import Loc
from dungeon.blocks import RoomMark, is_wall
from dungeon.context import MapContext

CARDINAL_EDGES = np.array([[0, 1, 0], [1, 0, 1], [0, 1, 0]], dtype=np.int8)


def walk_cost(ctx: MapContext) -> np.ndarray:
    return ctx.block_layer.to_array(lambda block: 0 if is_wall(block) else 1, dtype=np.int8)


def walk_distances(ctx: MapContext, origin: Loc) -> np.ndarray:
    """4-connected step counts from origin; unreachable cells hold the dtype max."""
    dist = tcod.path.maxarray((ctx.size, ctx.size), dtype=np.int32)
    dist[origin.y, origin.x] = 0
    return tcod.path.dijkstra2d(dist, walk_cost(ctx), edge_map=CARDINAL_EDGES, out=dist)


def unreachable_room_cells(ctx: MapContext, origin: Loc) -> List[Loc]:
    """INNER/ENTRY cells that cannot be walked to from origin."""
    dist = walk_distances(ctx, origin)
    unreachable = np.iinfo(dist.dtype).max
    return [
        loc for loc, mark in ctx.room_layer.cells()
        if mark in (RoomMark.INNER, RoomMark.ENTRY) and dist[loc.y, loc.x] == unreachable
    ]
