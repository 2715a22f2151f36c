"""
Spire — dungeon/rooms.py
Room growth & graph repair: carves a walled floor into rooms joined by entries.
===============================================================================
Version:     0.1
Stack:       Python 3.12 | NumPy | core.graph | core.algo
Status:      Production-ready.

Pipeline (one floor attempt, always on a fresh snapshot)
--------------------------------------------------------
  1. seed rooms at the down stair, then the up stair
  2. grow rooms from weighted uncovered cells until every cell is covered
  3. absorb one-degree borders into their only neighbouring room
  4. connect rooms: spanning forest over border buckets + occasional loops
  5. split dead-end stubs of large rooms into side rooms
  6. finalize: borders become walls
The finished floor is validated (see validate_floor); a rejected floor is
discarded and the whole attempt is repeated, at most max_attempts times.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Set, Tuple

import numpy as np

from core.algo import DisjointSet, all_pairs
from core.errors import RoomGrowthExhausted
from core.loc import Loc
from core.rand import MAX_TRY_TIME, Dice
from dungeon.blocks import EMPTY, WALL, RoomMark, is_stair, is_wall
from dungeon.context import MapContext
from dungeon.scan import NO_ROOM, Room, RoomScan, room_adjacency, scan_rooms
from dungeon.walk import unreachable_room_cells

logger = logging.getLogger(__name__)

INNER_COLOR = "#23783380"
ENTRY_COLOR = "#29B6F680"

SUB_ROOM_MIN_AREA = 6
GROW_RETRY_LIMIT = 1000

# Chance to skip a redundant entry between two rooms that are already joined.
SKIP_PARALLEL_EDGE = 0.9     # the pair already shares an entry
SKIP_BUSY_ROOM = 0.8         # either room already has more than two entries
SKIP_LOOP_EDGE = 0.5


class GrowthStuck(Exception):
    """A single floor attempt ran out of growth retries."""


class RoomGenerator:
    """
    Turns a floor with walls and stairs into a room layout.
    One instance handles one floor; generate() returns a new context.
    """

    def __init__(self, base: MapContext, dice: Dice, room_size_factor: float = 1.0,
                 max_attempts: int = MAX_TRY_TIME, floor: Optional[int] = None):
        self.base = base
        self.dice = dice
        self.max_attempts = max_attempts
        self.floor = floor

        self.possible_threshold = int(5 * room_size_factor)
        self.area_min = int(2 * room_size_factor)
        self.area_mean = 3 * room_size_factor
        self.area_std = 1 * room_size_factor

        # Working state of the current attempt.
        self.ctx: MapContext = base
        self.predefined: Set[Loc] = set()
        self.grow_failures = 0
        self.grow_limit = min(max_attempts, GROW_RETRY_LIMIT)

    # ----------------------------------------------------------
    # Entry point
    # ----------------------------------------------------------

    def generate(self) -> MapContext:
        def attempt(_: int) -> Optional[MapContext]:
            try:
                return self._build()
            except GrowthStuck:
                logger.debug("floor %s: growth stuck after %d failures", self.floor, self.grow_failures)
                return None

        def accept(ctx: Optional[MapContext], number: int) -> bool:
            if ctx is None:
                return False
            problems = validate_floor(ctx)
            if problems:
                logger.debug("floor %s attempt %d rejected: %s", self.floor, number, "; ".join(problems))
                return False
            return True

        try:
            ctx = self.dice.plan_until(attempt, accept, limit=self.max_attempts,
                                       error_cls=RoomGrowthExhausted, label="room layout")
        except RoomGrowthExhausted as exc:
            exc.floor = self.floor
            raise
        logger.info("floor %s: %d rooms", self.floor, len(scan_rooms(ctx).rooms))
        return ctx

    def prepare(self) -> MapContext:
        """Start a fresh attempt on a snapshot of the base floor."""
        self.ctx = self.base.snapshot()
        self.grow_failures = 0

        # Walls act as borders. Anything marked at this point is predefined.
        self.ctx.room_layer.set(self.ctx.block_layer.where(is_wall), RoomMark.BORDER)
        self.predefined = set(self.ctx.room_layer.where(lambda mark: mark != RoomMark.EMPTY))
        return self.ctx

    def _build(self) -> MapContext:
        self.prepare()
        for stair in self.ctx.stair_locs:
            while not self.in_room(stair):
                self.grow(stair)
        self.fill_leftovers()
        self.absorb_one_degree_borders()
        self.connect_rooms()
        self.split_sub_rooms()
        self.finalize()
        return self.ctx

    # ----------------------------------------------------------
    # Predicates
    # ----------------------------------------------------------

    def in_room(self, loc: Loc) -> bool:
        return self.ctx.room_layer.get(loc) != RoomMark.EMPTY

    def is_stair(self, loc: Loc) -> bool:
        return is_stair(self.ctx.block_layer.get(loc))

    def _count_in_room(self, loc: Loc) -> int:
        return sum(1 for n in loc.dir4(self.ctx.size) if self.in_room(n))

    # ----------------------------------------------------------
    # Growth
    # ----------------------------------------------------------

    def grow(self, seed: Loc) -> bool:
        """
        Grow one room from seed. Returns False (and changes nothing) when the
        grown room would leave a stair on its border.
        """
        size = self.ctx.size
        possible = self._free_region(seed)

        inner: List[Loc] = []
        inner_set: Set[Loc] = set()
        if len(possible) < self.possible_threshold:
            inner = list(possible)
            inner_set = set(inner)
        else:
            area = self.dice.clamped_normal(self.area_mean, self.area_std, self.area_min, len(possible))
            frontier: List[Loc] = [seed]

            def weight(loc: Loc) -> float:
                outward = self._count_in_room(loc)
                inward = sum(1 for n in loc.dir4(size) if n in inner_set)
                return outward ** 2 + inward ** 2 + 1

            while len(inner) < area and frontier:
                loc = self.dice.pick_weighted(frontier, weight, remove=True)
                inner.append(loc)
                inner_set.add(loc)
                for n in loc.dir4(size):
                    if self.in_room(n) or n in inner_set or n in frontier:
                        continue
                    frontier.append(n)

            for loc in frontier:
                near_entry = any(self.ctx.room_layer.get(n) == RoomMark.ENTRY for n in loc.dir4(size))
                if self.is_stair(loc) or near_entry:
                    inner.append(loc)
                    inner_set.add(loc)

        border: List[Loc] = []
        for loc in inner:
            for n in loc.dir8(size):
                if self.in_room(n) or n in inner_set or n in border:
                    continue
                border.append(n)

        if any(self.is_stair(loc) for loc in border):
            self.grow_failures += 1
            if self.grow_failures >= self.grow_limit:
                raise GrowthStuck()
            return False

        self.ctx.room_layer.set(inner, RoomMark.INNER)
        self.ctx.room_layer.set(border, RoomMark.BORDER)
        return True

    def _free_region(self, seed: Loc) -> List[Loc]:
        """Uncovered cells 4-connected to seed, seed first."""
        if self.in_room(seed):
            return []
        size = self.ctx.size
        seen = {seed}
        region = []
        stack = [seed]
        while stack:
            loc = stack.pop()
            region.append(loc)
            for n in loc.dir4(size):
                if n not in seen and not self.in_room(n):
                    seen.add(n)
                    stack.append(n)
        return region

    def fill_leftovers(self) -> None:
        """Grow rooms until no uncovered cell remains."""
        while True:
            start = next((loc for loc, mark in self.ctx.room_layer.cells() if mark == RoomMark.EMPTY), None)
            if start is None:
                return
            free = self._free_region(start)
            seed = self.dice.pick_weighted(free, lambda loc: self._count_in_room(loc) + 1)
            self.grow(seed)

    # ----------------------------------------------------------
    # Repair
    # ----------------------------------------------------------

    def absorb_one_degree_borders(self) -> None:
        scan = scan_rooms(self.ctx)
        for loc, mark in self.ctx.room_layer.cells():
            if loc in self.predefined or mark != RoomMark.BORDER:
                continue
            rooms4 = scan.adjacent_room_ids(loc)
            rooms8 = scan.adjacent_room_ids(loc, eight=True)
            if len(rooms4) == 1 and len(rooms8) == 1:
                self.ctx.room_layer[loc] = RoomMark.INNER
                scan.room_id_layer[loc] = rooms4[0]

    def connect_rooms(self) -> None:
        scan = scan_rooms(self.ctx)
        count = len(scan.rooms)
        joint = DisjointSet(count)
        degrees = [0] * count
        linked: Set[Tuple[int, int]] = set()
        buckets: Dict[Tuple[int, int], List[Loc]] = defaultdict(list)

        def link(pair: Tuple[int, int]) -> None:
            degrees[pair[0]] += 1
            degrees[pair[1]] += 1
            linked.add(pair)
            joint.joint(*pair)

        for loc, mark in self.ctx.room_layer.cells():
            if mark == RoomMark.ENTRY:
                ids = scan.adjacent_room_ids(loc)
                if len(ids) == 2:
                    link(tuple(sorted(ids)))
            elif mark == RoomMark.BORDER and loc not in self.predefined:
                ids = scan.adjacent_room_ids(loc)
                if len(ids) == 2:
                    buckets[tuple(sorted(ids))].append(loc)

        for pair in self.dice.shuffled(all_pairs(list(range(count)))):
            candidates = buckets.get(pair)
            if not candidates:
                continue
            if joint.is_joint(*pair):
                if pair in linked:
                    skip = SKIP_PARALLEL_EDGE
                elif degrees[pair[0]] > 2 or degrees[pair[1]] > 2:
                    skip = SKIP_BUSY_ROOM
                else:
                    skip = SKIP_LOOP_EDGE
                if self.dice.judge(skip):
                    continue
            self._mark_entry(self.dice.pick(candidates, remove=True))
            link(pair)

    def _mark_entry(self, loc: Loc) -> None:
        self.ctx.room_layer[loc] = RoomMark.ENTRY
        if is_wall(self.ctx.block_layer.get(loc)):
            self.ctx.place_block(loc, EMPTY)

    def split_sub_rooms(self) -> None:
        scan = scan_rooms(self.ctx)
        for room in scan.rooms:
            if room.inner[0] in self.predefined:
                continue
            area = len(room.inner)
            if area < SUB_ROOM_MIN_AREA or not room.entries:
                continue
            if area == SUB_ROOM_MIN_AREA and self.dice.judge(0.5):
                continue
            candidates = self._stub_candidates(scan, room)
            if not candidates:
                continue
            stub, cut = self.dice.pick(candidates)
            self._mark_entry(cut)
            self.ctx.debug(cut, "SubRoom")
            logger.debug("floor %s: room %d split at %s (stub %s)", self.floor, room.id, cut, stub)

    def _stub_candidates(self, scan: RoomScan, room: Room) -> List[Tuple[Loc, Loc]]:
        candidates = []
        for loc in room.inner:
            if self.is_stair(loc) or room.is_after_entry(loc):
                continue
            neighbours = [n for n in loc.dir4(self.ctx.size) if room.contains(n)]
            if len(neighbours) != 1:
                continue
            cut = neighbours[0]
            if self.is_stair(cut) or room.is_after_entry(cut):
                continue
            if len(scan.room_graph.scan_cut(cut)) > 2:
                continue
            candidates.append((loc, cut))
        return candidates

    def finalize(self) -> None:
        room_layer = self.ctx.room_layer
        self.ctx.place_block(room_layer.where(lambda mark: mark == RoomMark.BORDER), WALL)
        self.ctx.mark(room_layer.where(lambda mark: mark == RoomMark.INNER), INNER_COLOR)
        self.ctx.mark(room_layer.where(lambda mark: mark == RoomMark.ENTRY), ENTRY_COLOR)


# ----------------------------------------------------------
# Validation
# ----------------------------------------------------------

def wall_clumps(ctx: MapContext) -> List[Loc]:
    """Top-left cells of 2x2 wall blocks that do not touch a map corner."""
    walls = ctx.block_layer.to_array(is_wall, dtype=bool)
    quads = walls[:-1, :-1] & walls[1:, :-1] & walls[:-1, 1:] & walls[1:, 1:]
    last = ctx.size - 2
    for y, x in ((0, 0), (0, last), (last, 0), (last, last)):
        quads[y, x] = False
    return [Loc(int(x), int(y)) for y, x in zip(*np.nonzero(quads))]


def bad_stairs(ctx: MapContext, scan: RoomScan) -> List[Loc]:
    """
    Stairs that are no longer stairs, lie outside every room, or cut their
    room's entries apart where some other cell of the room would not.
    """
    bad = []
    for stair in ctx.stair_locs:
        if not is_stair(ctx.block_layer.get(stair)) or scan.room_id_layer.get(stair) == NO_ROOM:
            bad.append(stair)
            continue
        room = scan.room_at(stair)

        def cuts_entries(loc: Loc) -> bool:
            if room.is_after_entry(loc):
                return True
            pieces = scan.room_graph.scan_cut(loc)
            touched = sum(1 for piece in pieces if any(room.is_after_entry(p) for p in piece))
            return touched > 1

        if len(room.inner) > 1 and cuts_entries(stair) \
                and not all(cuts_entries(loc) for loc in room.inner):
            bad.append(stair)
    return bad


def broken_entries(ctx: MapContext, scan: RoomScan) -> List[Loc]:
    return [
        loc for loc in ctx.room_layer.where(lambda mark: mark == RoomMark.ENTRY)
        if len(scan.adjacent_room_ids(loc)) != 2
    ]


def validate_floor(ctx: MapContext) -> List[str]:
    """Problems found on a finished floor; empty means the floor is accepted."""
    problems: List[str] = []
    clumps = wall_clumps(ctx)
    if clumps:
        problems.append(f"2x2 walls at {', '.join(map(str, clumps))}")

    scan = scan_rooms(ctx)
    stairs = bad_stairs(ctx, scan)
    if stairs:
        problems.append(f"bad stairs at {', '.join(map(str, stairs))}")
    entries = broken_entries(ctx, scan)
    if entries:
        problems.append(f"broken entries at {', '.join(map(str, entries))}")
    if problems:
        return problems

    components = room_adjacency(scan).multi_source_reach(list(range(len(scan.rooms))))
    if len(components) != 1:
        problems.append(f"{len(components)} disconnected room groups")
    elif ctx.down_stair_loc is not None and unreachable_room_cells(ctx, ctx.down_stair_loc):
        problems.append("room cells unreachable from the down stair")
    return problems


def generate_rooms(floors: List[MapContext], dice: Dice, room_size_factor: float = 1.0,
                   max_attempts: int = MAX_TRY_TIME) -> List[MapContext]:
    """Room pass over every floor; returns new contexts, inputs are untouched."""
    return [
        RoomGenerator(ctx, dice, room_size_factor, max_attempts, floor=i).generate()
        for i, ctx in enumerate(floors)
    ]