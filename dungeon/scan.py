"""
Spire — dungeon/scan.py
Room classifier: rebuilds rooms, entries, stair membership and articulation
classes from a floor's room-mark layer.
===========================================================================
Version:     0.1
Stack:       Python 3.12 | core.graph
Status:      Production-ready.

scan_rooms() is a pure function of the floor. It is called repeatedly by the
growth engine (after each structural change) and once per floor by the
stage/plot passes.

Cut classification (room-adjacency graph, one vertex per room)
---------------------------------------------------------------
  0 sub-components left after removing the room   -> ISOLATE
  1 sub-component, room has exactly one entry      -> LEAF
  1 sub-component, room has several entries        -> NORMAL
  2+ sub-components                                -> CUT
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntFlag
from functools import cached_property
from typing import Dict, FrozenSet, List, Tuple

from core.graph import Graph
from core.layers import MapLayer
from core.loc import Loc
from dungeon.blocks import DoorEvent, EnemyEvent, EventBlock, GemEvent, KeyEvent, PotionEvent, RoomMark
from dungeon.context import MapContext

NO_ROOM: int = -1


class StairFlag(IntFlag):
    NONE = 0
    DOWN = 1
    UP = 2
    BOTH = 3


class CutType(Enum):
    LEAF = "leaf"
    CUT = "cut"
    NORMAL = "normal"
    ISOLATE = "isolate"


CutBlock = Tuple[List[int], List[int]]  # (entry ids of this room, room ids on that side)


@dataclass
class RoomEntry:
    id: int
    to_room_id: int
    loc: Loc
    after_locs: List[Loc]
    belongs_to_flow: bool = False


@dataclass
class RoomCutMark:
    type: CutType
    blocks: List[CutBlock] = field(default_factory=list)


@dataclass
class StageMark:
    index: int = 0
    fix: int = 0


@dataclass
class Room:
    id: int
    inner: List[Loc]
    stair: StairFlag = StairFlag.NONE
    entries: List[RoomEntry] = field(default_factory=list)
    stage: StageMark = field(default_factory=StageMark)
    cut: RoomCutMark = field(default_factory=lambda: RoomCutMark(CutType.NORMAL))

    @cached_property
    def inner_set(self) -> FrozenSet[Loc]:
        return frozenset(self.inner)

    def contains(self, loc: Loc) -> bool:
        return loc in self.inner_set

    def is_after_entry(self, loc: Loc) -> bool:
        """loc is the sole cell directly behind one of this room's entries."""
        return any(len(e.after_locs) == 1 and e.after_locs[0] == loc for e in self.entries)


@dataclass
class RoomScan:
    rooms: List[Room]
    room_id_layer: MapLayer[int]
    room_graph: Graph[Loc, int]

    def room_at(self, loc: Loc) -> Room:
        return self.rooms[self.room_id_layer.get(loc)]

    def adjacent_room_ids(self, loc: Loc, eight: bool = False) -> List[int]:
        """Distinct room ids around loc, first-seen order."""
        size = self.room_id_layer.size
        neighbours = loc.dir8(size) if eight else loc.dir4(size)
        ids: List[int] = []
        for rid in self.room_id_layer.get_many(neighbours):
            if rid > NO_ROOM and rid not in ids:
                ids.append(rid)
        return ids


def _cut_mark(graph: Graph[int, None], room: Room) -> RoomCutMark:
    blocks = graph.scan_cut(room.id)
    if not blocks:
        return RoomCutMark(CutType.ISOLATE)
    if len(blocks) == 1:
        cut_block = ([e.id for e in room.entries], blocks[0])
        return RoomCutMark(CutType.LEAF if len(cut_block[0]) == 1 else CutType.NORMAL, [cut_block])
    return RoomCutMark(CutType.CUT, [
        ([e.id for e in room.entries if e.to_room_id in block], block)
        for block in blocks
    ])


def scan_rooms(ctx: MapContext) -> RoomScan:
    room_layer = ctx.room_layer
    room_graph = room_layer.build_graph_dir4(lambda f, t: f[0] == t[0])
    room_id_layer: MapLayer[int] = MapLayer.filled(NO_ROOM, ctx.size)

    rooms: List[Room] = []
    for locs in room_graph.multi_source_reach():
        if room_layer.get(locs[0]) != RoomMark.INNER:
            continue
        room = Room(id=len(rooms), inner=locs)
        room_id_layer.set(locs, room.id)
        rooms.append(room)

    scan = RoomScan(rooms, room_id_layer, room_graph)

    # Entries: each ENTRY cell bridging exactly two rooms is recorded on both sides.
    for loc in room_layer.where(lambda mark: mark == RoomMark.ENTRY):
        pair = scan.adjacent_room_ids(loc)
        if len(pair) != 2:
            continue
        for this, other in (pair, pair[::-1]):
            room = rooms[this]
            room.entries.append(RoomEntry(
                id=len(room.entries),
                to_room_id=other,
                loc=loc,
                after_locs=[n for n in loc.dir4(ctx.size) if room.contains(n)],
            ))

    for room in rooms:
        flag = StairFlag.NONE
        if ctx.down_stair_loc is not None and room.contains(ctx.down_stair_loc):
            flag |= StairFlag.DOWN
        if ctx.up_stair_loc is not None and room.contains(ctx.up_stair_loc):
            flag |= StairFlag.UP
        room.stair = flag

    adjacency = room_adjacency(scan)
    for room in rooms:
        room.cut = _cut_mark(adjacency, room)

    return scan


def room_adjacency(scan: RoomScan) -> Graph[int, None]:
    graph: Graph[int, None] = Graph()
    for room in scan.rooms:
        graph.add_edges(room.id, [(e.to_room_id, None) for e in room.entries])
    return graph


def floor_stats(ctx: MapContext) -> Dict[str, int]:
    """Counts used for per-floor logging."""
    stats = {
        "rooms": len(scan_rooms(ctx).rooms),
        "entries": len(ctx.room_layer.where(lambda mark: mark == RoomMark.ENTRY)),
        "doors": 0,
        "enemies": 0,
        "items": 0,
    }
    for _, block in ctx.block_layer.cells():
        if not isinstance(block, EventBlock):
            continue
        event = block.event
        if isinstance(event, DoorEvent):
            stats["doors"] += 1
        elif isinstance(event, EnemyEvent):
            stats["enemies"] += 1
        elif isinstance(event, (KeyEvent, GemEvent, PotionEvent)):
            stats["items"] += 1
    return stats
