"""
Spire — dungeon/stage.py
Stage partitioner and room orientation over the whole tower.
============================================================
Version:     0.1
Stack:       Python 3.12 | core.graph
Status:      Production-ready.

Rooms of every floor form one region graph. Vertices are (floor, room id)
pairs; edges follow entries, and each floor's down-stair room is linked both
ways to the previous floor's up-stair room. The source is the first floor's
down-stair room, the terminal the last floor's up-stair room.

Stages are filled in order. The frontier is every unstaged room next to a
staged one; picks favour the furthest floor reached so far, and among its
rooms those closest to the terminal, so progress runs upward through the
tower instead of flooding one floor. An up-stair room drags the paired
down-stair room (and anything stacked on it) into the same stage.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from core.graph import Graph
from core.loc import Loc
from core.rand import Dice
from dungeon.context import MapContext
from dungeon.scan import Room, RoomScan, StairFlag, scan_rooms

logger = logging.getLogger(__name__)

RegionId = Tuple[int, int]

STAGE_COLORS = ("#66BB6A80", "#FBC02D80", "#D8431580")


@dataclass
class TowerRegions:
    floors: List[MapContext]
    scans: List[RoomScan]
    graph: Graph[RegionId, None]
    ids: List[RegionId]
    source: RegionId
    terminal: RegionId
    source_dist: Dict[RegionId, float] = field(default_factory=dict)
    terminal_dist: Dict[RegionId, float] = field(default_factory=dict)
    stages: List[List[RegionId]] = field(default_factory=list)

    def room(self, rid: RegionId) -> Room:
        floor, index = rid
        return self.scans[floor].rooms[index]

    def stair_room(self, floor: int, flag: StairFlag) -> Room:
        return next(room for room in self.scans[floor].rooms if room.stair & flag)

    def stage_of(self, rid: RegionId) -> int:
        return self.room(rid).stage.index


def build_regions(floors: Sequence[MapContext]) -> TowerRegions:
    graph: Graph[RegionId, None] = Graph()
    scans: List[RoomScan] = []
    ids: List[RegionId] = []
    source: Optional[RegionId] = None
    last_up: Optional[RegionId] = None

    for floor, ctx in enumerate(floors):
        scan = scan_rooms(ctx)
        scans.append(scan)
        up_here: Optional[RegionId] = None
        for room in scan.rooms:
            rid = (floor, room.id)
            ids.append(rid)
            graph.add_edges(rid, [])
            if room.stair & StairFlag.DOWN:
                if last_up is None:
                    source = rid
                else:
                    graph.add_edge(rid, last_up)
                    graph.add_edge(last_up, rid)
            if room.stair & StairFlag.UP:
                up_here = rid
            graph.add_edges(rid, [((floor, e.to_room_id), None) for e in room.entries])
            ctx.debug(room.inner[0], room.id)
        last_up = up_here

    if source is None or last_up is None:
        raise ValueError("tower has no stair rooms to anchor stages on")

    regions = TowerRegions(list(floors), scans, graph, ids, source, last_up)
    regions.terminal_dist = dict(graph.dijkstra(regions.terminal))
    regions.source_dist = dict(graph.dijkstra(regions.source))
    return regions


class StagePartitioner:
    """
    Fills stages one after another, each up to its target room count.

    Targets are proportional to the configured stage weights, so equal
    weights give every stage totalRooms / stageCount rooms. The last stage
    takes whatever is left.
    """

    def __init__(self, regions: TowerRegions, weights: Sequence[float], dice: Dice):
        self.regions = regions
        self.weights = list(weights)
        self.dice = dice
        self.floor_count = len(regions.floors)

    def targets(self) -> List[float]:
        total = len(self.regions.ids)
        weight_sum = sum(self.weights)
        targets = [total * weight / weight_sum for weight in self.weights[:-1]]
        return targets + [total]

    def run(self) -> List[List[RegionId]]:
        for i, threshold in enumerate(self.targets()):
            number = i + 1
            stage = self._fill(number, threshold)
            for rid in stage:
                self.regions.room(rid).stage.index = number
            self.regions.stages.append(stage)
            color = STAGE_COLORS[i % len(STAGE_COLORS)]
            for floor, index in stage:
                self.regions.floors[floor].mark(self.regions.room((floor, index)).inner, color)
            logger.debug("stage %d: %d rooms", number, len(stage))
        return self.regions.stages

    def _fill(self, number: int, threshold: float) -> List[RegionId]:
        regions = self.regions
        graph = regions.graph

        def staged(rid: RegionId) -> bool:
            return regions.stage_of(rid) != 0

        stage: List[RegionId] = []
        in_stage: Set[RegionId] = set()
        frontier: List[RegionId] = []
        reach = {"floor": 0, "dist": regions.terminal_dist[regions.source] + 1}

        if number == 1:
            frontier.append(regions.source)
        else:
            for rid in regions.ids:
                if not staged(rid):
                    continue
                reach["floor"] = max(reach["floor"], rid[0])
                reach["dist"] = min(reach["dist"], regions.terminal_dist[rid])
                for to, _ in graph.neighbors(rid):
                    if not staged(to) and to not in frontier:
                        frontier.append(to)

        def weight(rid: RegionId) -> float:
            delta = self.floor_count - rid[0] - 1
            if rid[0] == reach["floor"] and regions.terminal_dist[rid] < reach["dist"]:
                return delta * (len(frontier) - 1) + self.floor_count
            return delta + self.floor_count

        def add_room(first: RegionId) -> None:
            pending = [first]
            while pending:
                rid = pending.pop()
                if rid in in_stage:
                    continue
                stage.append(rid)
                in_stage.add(rid)
                if rid in frontier:
                    frontier.remove(rid)
                reach["floor"] = max(reach["floor"], rid[0])
                reach["dist"] = min(reach["dist"], regions.terminal_dist[rid])
                for to, _ in graph.neighbors(rid):
                    if to in in_stage or staged(to):
                        continue
                    if to[0] > rid[0]:
                        pending.append(to)
                    elif to not in frontier:
                        frontier.append(to)

        while len(stage) < threshold and frontier:
            add_room(self.dice.pick_weighted(frontier, weight, remove=True))
        return stage


def orient_entries(regions: TowerRegions) -> None:
    """
    Hand each physical entry to exactly one room: the first to claim it when
    rooms are visited latest-stage first, then furthest from the source first.
    """
    order = sorted(
        regions.source_dist,
        key=lambda rid: (-regions.stage_of(rid), -regions.source_dist[rid]),
    )
    seen: Set[Tuple[int, Loc]] = set()
    for rid in order:
        for entry in regions.room(rid).entries:
            key = (rid[0], entry.loc)
            if key in seen:
                continue
            entry.belongs_to_flow = True
            seen.add(key)
