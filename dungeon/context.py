"""
Spire — dungeon/context.py
MapContext: the per-floor grid and its aligned layers.
======================================================
Version:     0.1
Stack:       Python 3.12 | dataclasses
Status:      Production-ready.

Lifecycle
---------
  1. created empty by the topology pass (walls + stairs)
  2. rooms pass works on a snapshot() and returns a new context
  3. plot pass works on a snapshot() and returns a new context

Stairs are permanent: place_block() refuses to overwrite a StairBlock with
anything else. debug_layer and mark_layer are annotations only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

from core.layers import MapLayer
from core.loc import MAP_SIZE, Loc
from dungeon.blocks import EMPTY, Block, RoomMark, StairBlock

DebugNote = Tuple[str, str]

DEFAULT_DEBUG_COLOR = "#123221"


@dataclass
class MapContext:
    size: int
    block_layer: MapLayer[Block]
    room_layer: MapLayer[RoomMark]
    mark_layer: MapLayer[Optional[str]]
    debug_layer: MapLayer[Tuple[DebugNote, ...]]
    up_stair_loc: Optional[Loc] = None
    down_stair_loc: Optional[Loc] = None

    @classmethod
    def create(cls, size: int = MAP_SIZE) -> MapContext:
        return cls(
            size=size,
            block_layer=MapLayer.filled(EMPTY, size),
            room_layer=MapLayer.filled(RoomMark.EMPTY, size),
            mark_layer=MapLayer.filled(None, size),
            debug_layer=MapLayer.filled((), size),
        )

    def snapshot(self) -> MapContext:
        """Independent copy; cell values are immutable so layer copies suffice."""
        return MapContext(
            size=self.size,
            block_layer=self.block_layer.copy(),
            room_layer=self.room_layer.copy(),
            mark_layer=self.mark_layer.copy(),
            debug_layer=self.debug_layer.copy(),
            up_stair_loc=self.up_stair_loc,
            down_stair_loc=self.down_stair_loc,
        )

    # ----------------------------------------------------------
    # Stairs
    # ----------------------------------------------------------

    @property
    def stair_locs(self) -> Tuple[Loc, ...]:
        return tuple(loc for loc in (self.down_stair_loc, self.up_stair_loc) if loc is not None)

    def is_stair_loc(self, loc: Loc) -> bool:
        return loc == self.down_stair_loc or loc == self.up_stair_loc

    # ----------------------------------------------------------
    # Blocks
    # ----------------------------------------------------------

    def place_block(self, locs: Union[Loc, Iterable[Loc]], block: Block) -> None:
        if isinstance(locs, Loc):
            locs = (locs,)
        for loc in locs:
            current = self.block_layer.get(loc)
            if isinstance(current, StairBlock) and current != block:
                raise ValueError(f"stair at {loc} cannot be replaced by {block}")
            self.block_layer[loc] = block

    # ----------------------------------------------------------
    # Annotations
    # ----------------------------------------------------------

    def debug(self, locs: Union[Loc, Iterable[Loc]], info: object, color: str = DEFAULT_DEBUG_COLOR) -> None:
        note = (str(info), color)
        self.debug_layer.set(locs, lambda notes: notes + (note,))

    def mark(self, locs: Union[Loc, Iterable[Loc]], color: Optional[str]) -> None:
        self.mark_layer.set(locs, lambda _: color)

    def clear_debug(self) -> None:
        self.debug_layer.init(lambda _: ())
