"""
Spire — dungeon/plot.py
Plot designer & economic balancer: fills rooms with doors, enemies and loot.
===========================================================================
Version:     0.1
Stack:       Python 3.12 | core.graph | core.algo | core.stat
Status:      Production-ready.

Per room, in stage order:
  1. draft    — choose expense cells (a small DAG of door/enemy slots) and
                income cells (key/gem/potion slots) from the room's shape
  2. refine   — sample PLAN_SAMPLES concrete event assignments, sort them by
                score, drop the PLAN_DISCARD lowest and pick one of the rest
  3. validate — reject key trades that cannot pay off; redraft if rejected
  4. place    — write events onto the floors

Score of a plan (lower is better)
---------------------------------
  one expense path:   |path * ratio - income| / (path * ratio + income)
  several paths:      population variance of {path * ratio ...} + {income}

Down-stair rooms are never drafted on their own: the up-stair room of the
floor below folds them (recursively, while the stack of stair rooms goes on)
into one vault whose income may land on several floors.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Generic, List, Sequence, Tuple, TypeVar

from core.algo import partial_order_layers
from core.combat import evaluate_encounter
from core.data_loader import HeroStats, ValuesDef
from core.errors import NoFeasibleCandidates, PlotValidationExhausted
from core.loc import Loc
from core.rand import MAX_TRY_TIME, Dice
from core.stat import variance
from dungeon.blocks import (DoorEvent, EnemyEvent, Event, EventBlock, GemEvent, KeyEvent, KeyType,
                            PotionEvent, is_empty, is_wall)
from dungeon.context import MapContext
from dungeon.economy import ValueOracle
from dungeon.scan import CutType, Room, RoomEntry, RoomScan, StairFlag
from dungeon.stage import RegionId, TowerRegions

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

GlobalLoc = Tuple[int, Loc]

PLAN_SAMPLES = 9
PLAN_DISCARD = 3
ENEMY_DAMAGE_CAP = 10   # enemies costing base * cap or more are never drafted

INCOME_COLOR = "green"
EXPENSE_COLOR = "red"


class ExpenseKind(Enum):
    DOOR = "door"
    ENEMY = "enemy"


class IncomeKind(Enum):
    GEM = "gem"
    KEY = "key"
    POTION = "potion"


ALL_INCOME: Tuple[IncomeKind, ...] = (IncomeKind.GEM, IncomeKind.KEY, IncomeKind.POTION)

IncomeSlot = Tuple[GlobalLoc, Tuple[IncomeKind, ...]]


class ExpenseDAG(Generic[T]):
    """
    Expense cells of one room. An edge a -> b means b sits behind a; every
    source-to-sink path is one way through the room's tolls.
    """

    def __init__(self) -> None:
        self._blocks: Dict[Loc, T] = {}
        self._edges: Dict[Loc, List[Loc]] = {}

    def add_block(self, loc: Loc, info: T) -> None:
        self._blocks[loc] = info
        self._edges[loc] = []

    def add_edge(self, source: Loc, target: Loc) -> None:
        self._edges[source].append(target)

    def list_all_blocks(self) -> List[Tuple[Loc, T]]:
        return list(self._blocks.items())

    def locs(self) -> List[Loc]:
        return list(self._blocks)

    def list_all_paths(self) -> List[List[Tuple[Loc, T]]]:
        in_degree = {loc: 0 for loc in self._blocks}
        for targets in self._edges.values():
            for target in targets:
                in_degree[target] += 1

        paths: List[List[Loc]] = []
        for source in (loc for loc, degree in in_degree.items() if degree == 0):
            stack = [[source]]
            while stack:
                path = stack.pop()
                targets = self._edges[path[-1]]
                if not targets:
                    paths.append(path)
                    continue
                for target in reversed(targets):
                    stack.append(path + [target])
        return [[(loc, self._blocks[loc]) for loc in path] for path in paths]

    def map_blocks(self, mapper: Callable[[Loc, T], R]) -> ExpenseDAG[R]:
        dag: ExpenseDAG[R] = ExpenseDAG()
        for loc, info in self._blocks.items():
            dag._blocks[loc] = mapper(loc, info)
        dag._edges = {loc: list(targets) for loc, targets in self._edges.items()}
        return dag

    def __len__(self) -> int:
        return len(self._blocks)


@dataclass
class RoomPlotDraft:
    expense: ExpenseDAG[ExpenseKind] = field(default_factory=ExpenseDAG)
    income: List[IncomeSlot] = field(default_factory=list)
    ratio: float = 1.0


@dataclass
class RoomPlotPlan:
    expense: ExpenseDAG[Event]
    income: List[Tuple[GlobalLoc, Event]]


@dataclass
class EntryMeta:
    entry: RoomEntry
    dist: List[Tuple[Loc, float, float]]   # (cell, steps from entry, straight-line distance)


def _by_distance(item: Tuple[object, float, float]) -> Tuple[float, float]:
    return item[1], item[2]


class PlotDesigner:
    def __init__(self, regions: TowerRegions, oracle: ValueOracle, values: ValuesDef,
                 hero: HeroStats, dice: Dice, max_attempts: int = MAX_TRY_TIME):
        self.regions = regions
        self.floors = regions.floors
        self.oracle = oracle
        self.values = values
        self.hero = hero
        self.dice = dice
        self.max_attempts = max_attempts
        self.cell_graphs = [ctx.room_layer.build_graph_dir4(lambda f, t: True) for ctx in self.floors]

    # ----------------------------------------------------------
    # Whole tower
    # ----------------------------------------------------------

    def run(self) -> List[MapContext]:
        inflation = self.values.inflation
        total = len(self.regions.ids)
        points = [(i + 1) / inflation.step for i in range(inflation.step)][::-1]
        laid_out = 0
        for number, stage in enumerate(self.regions.stages, start=1):
            for rid in stage:
                self.plot_room(rid)
                if points and laid_out / total > points[-1]:
                    points.pop()
                    self.hero = self.hero.inflated(inflation.atk, inflation.def_, inflation.mdef)
                laid_out += 1
            logger.info("stage %d plotted: %d rooms, hero atk=%d def=%d mdef=%d",
                        number, len(stage), self.hero.atk, self.hero.def_, self.hero.mdef)
        return self.floors

    def plot_room(self, rid: RegionId) -> RoomPlotPlan:
        try:
            plan = self.dice.plan_until(
                lambda _: self.refine(self.draft(rid)),
                lambda candidate, _: self.validate(candidate),
                limit=self.max_attempts, error_cls=PlotValidationExhausted, label=f"plot of room {rid}",
            )
        except (PlotValidationExhausted, NoFeasibleCandidates) as exc:
            exc.floor = rid[0]
            raise
        self.place(rid, plan)
        return plan

    # ----------------------------------------------------------
    # Room shape helpers
    # ----------------------------------------------------------

    def _degree1_locs(self, ctx: MapContext, room: Room, entries: Sequence[RoomEntry]) -> List[Loc]:
        """Dead-end interior cells not directly behind an entry; always income."""
        behind = {loc for entry in entries for loc in entry.after_locs}
        return [
            loc for loc in room.inner
            if loc not in behind
            and not ctx.is_stair_loc(loc)
            and sum(1 for n in loc.dir4(ctx.size) if room.contains(n)) == 1
        ]

    def _room_dist(self, floor: int, room: Room, origin: Loc) -> List[Tuple[Loc, float, float]]:
        """Cells of room by walking distance from origin, origin excluded."""
        settled = self.cell_graphs[floor].dijkstra(
            origin, skip=lambda v: v != origin and not room.contains(v))
        dist = [(loc, d, loc.distance(origin)) for loc, d in settled if loc != origin]
        return sorted(dist, key=_by_distance)

    def _is_regular(self, ctx: MapContext, loc: Loc) -> bool:
        """Walls on both sides along one axis (a corridor-like cell)."""
        def walled(n: Loc) -> bool:
            return not n.is_valid(ctx.size) or is_wall(ctx.block_layer.get(n))
        return (walled(loc.up()) and walled(loc.down())) or (walled(loc.left()) and walled(loc.right()))

    def _expense_kind(self, door_ratio: float) -> ExpenseKind:
        return ExpenseKind.DOOR if self.dice.judge(door_ratio) else ExpenseKind.ENEMY

    def _real_entries(self, scan: RoomScan, room: Room) -> List[RoomEntry]:
        """Entries of a cut room that lead back toward the floor's down stair."""
        if room.cut.type != CutType.CUT:
            return list(room.entries)
        kept = []
        for entry in room.entries:
            block = next(b for b in room.cut.blocks if entry.id in b[0])
            if any(scan.rooms[rid].stair & StairFlag.DOWN for rid in block[1]):
                kept.append(entry)
        return kept

    # ----------------------------------------------------------
    # Drafting
    # ----------------------------------------------------------

    def draft(self, rid: RegionId) -> RoomPlotDraft:
        floor = rid[0]
        ctx = self.floors[floor]
        room = self.regions.room(rid)
        scan = self.regions.scans[floor]

        if room.stair & StairFlag.DOWN:
            return RoomPlotDraft()

        entries = self._real_entries(scan, room)
        degree1 = self._degree1_locs(ctx, room, entries)
        if room.stair == StairFlag.UP:
            return self._draft_vault(floor, room, entries, degree1)

        metas = [EntryMeta(entry, self._room_dist(floor, room, entry.loc)) for entry in entries]
        area = len(room.inner)
        if room.cut.type == CutType.LEAF or (
                room.cut.type == CutType.CUT and len(entries) == 1 and area > 3):
            return self._draft_single(floor, room, metas[0], degree1)
        return self._draft_branching(floor, room, metas, degree1)

    def _draft_vault(self, floor: int, room: Room, entries: List[RoomEntry],
                     degree1: List[Loc]) -> RoomPlotDraft:
        ctx = self.floors[floor]
        expense: ExpenseDAG[ExpenseKind] = ExpenseDAG()
        double = all(is_empty(ctx.block_layer.get(entry.after_locs[0])) for entry in entries)
        for entry in entries:
            if double:
                expense.add_block(entry.loc, self._expense_kind(1))
                expense.add_block(entry.after_locs[0], self._expense_kind(0))
                expense.add_edge(entry.loc, entry.after_locs[0])
            else:
                expense.add_block(entry.loc, self._expense_kind(0.5))
        expense_locs = set(expense.locs())

        pockets: List[GlobalLoc] = [(floor, loc) for loc in degree1]
        dist: List[Tuple[GlobalLoc, float, float]] = [
            ((floor, loc), 1, 0.0) for loc in room.inner
            if loc != ctx.up_stair_loc and loc not in expense_locs
        ]
        above = floor + 1
        while above < len(self.floors):
            upper = self.floors[above]
            attached = self.regions.stair_room(above, StairFlag.DOWN)
            pockets.extend((above, loc) for loc in self._degree1_locs(upper, attached, []))
            dist.extend(
                ((above, loc), d, e) for loc, d, e in self._room_dist(above, attached, upper.down_stair_loc)
                if not upper.is_stair_loc(loc)
            )
            if not attached.stair & StairFlag.UP:
                break
            above += 1

        total = len(dist)
        low = min(3 if double else 2, total)
        high = min(5 if double else 3, total)
        count = self.dice.clamped_normal((high + low) / 2, (high + low) / 6, low, high)

        candidates = list(pockets)
        for loc, _, _ in sorted(dist, key=_by_distance):
            if loc not in candidates:
                candidates.append(loc)
        income = [(loc, ALL_INCOME) for loc in candidates[:count]]
        return RoomPlotDraft(expense, income, self.dice.gauss(1.4, 0.1))

    def _draft_single(self, floor: int, room: Room, meta: EntryMeta,
                      degree1: List[Loc]) -> RoomPlotDraft:
        ctx = self.floors[floor]
        area = len(room.inner)
        entry = meta.entry

        count = self.dice.clamped_normal(area / 2, area / 6, max(len(degree1), math.ceil(area / 6)), area)
        income_locs = list(degree1)
        far_first = [loc for loc, _, _ in meta.dist]
        while len(income_locs) < count and far_first:
            loc = far_first.pop()
            if loc not in income_locs:
                income_locs.append(loc)

        after = entry.after_locs[0]
        left = area - count
        if left == 0 or after in income_locs:
            double = False
        elif left > count:
            double = True
        elif len(entry.after_locs) > 1:
            double = False
        elif count == 1:
            double = self.dice.judge(0.2)
        elif count == 2:
            double = self.dice.judge(0.5)
        elif count == 3:
            double = self.dice.judge(0.8)
        else:
            double = True

        expense: ExpenseDAG[ExpenseKind] = ExpenseDAG()
        if double:
            expense.add_block(entry.loc, self._expense_kind(0.8))
            if self._is_regular(ctx, after):
                expense.add_block(after, self._expense_kind(0.3))
            else:
                expense.add_block(after, ExpenseKind.ENEMY)
            expense.add_edge(entry.loc, after)
        elif not self._is_regular(ctx, entry.loc):
            expense.add_block(entry.loc, ExpenseKind.ENEMY)
        else:
            expense.add_block(entry.loc, self._expense_kind(0.8))

        income = [((floor, loc), ALL_INCOME) for loc in income_locs]
        return RoomPlotDraft(expense, income, self.dice.gauss(1.2, 0.1))

    def _draft_branching(self, floor: int, room: Room, metas: List[EntryMeta],
                         degree1: List[Loc]) -> RoomPlotDraft:
        area = len(room.inner)
        strong = [meta for meta in metas if meta.entry.belongs_to_flow]

        behind_strong = {loc for meta in strong for loc in meta.entry.after_locs}
        if area - len(behind_strong) < 2:
            double = False
        elif area >= 6:
            double = True
        elif area >= 4:
            double = self.dice.judge(0.5)
        else:
            double = False

        expense: ExpenseDAG[ExpenseKind] = ExpenseDAG()
        for meta in strong:
            entry = meta.entry
            if double:
                expense.add_block(entry.loc, self._expense_kind(0.8))
                expense.add_block(entry.after_locs[0], self._expense_kind(0))
                expense.add_edge(entry.loc, entry.after_locs[0])
            else:
                expense.add_block(entry.loc, self._expense_kind(0.4))
        expense_locs = set(expense.locs())
        left = area + len(strong) - len(expense_locs)

        # Multi-entry distances only form a partial order: farthest from
        # every entry comes first.
        tuples: Dict[Loc, List[float]] = {loc: [] for loc in room.inner}
        for meta in metas:
            for loc, d, _ in meta.dist:
                if loc in tuples:
                    tuples[loc].append(d)
        layers = partial_order_layers(
            [(loc, tuple(tuples[loc])) for loc in room.inner],
            lambda a, b: all(x >= y for x, y in zip(a[1], b[1])) and any(x > y for x, y in zip(a[1], b[1])),
        )
        ordered = [loc for layer in layers for loc, _ in layer]

        count = self.dice.clamped_normal(left / 1.8, left / 6, max(len(degree1), 1), left)
        income_locs = list(degree1)
        pocket_set = set(degree1)
        for loc in ordered:
            if len(income_locs) >= count:
                break
            if loc in pocket_set or loc in expense_locs:
                continue
            income_locs.append(loc)

        income = [((floor, loc), ALL_INCOME) for loc in income_locs]
        return RoomPlotDraft(expense, income, self.dice.gauss(1.2, 0.1))

    # ----------------------------------------------------------
    # Refinement
    # ----------------------------------------------------------

    def value_of(self, event: Event) -> float:
        return self.oracle.value_of(event, self.hero)

    def enemy_candidates(self) -> List[EnemyEvent]:
        cap = self.values.base * ENEMY_DAMAGE_CAP
        candidates = []
        for index, enemy in enumerate(self.oracle.catalog.enemies):
            damage = evaluate_encounter(self.hero, enemy)
            if damage is not None and 0 < damage < cap:
                candidates.append(EnemyEvent(index))
        return candidates

    def income_candidates(self, kinds: Sequence[IncomeKind]) -> List[Event]:
        catalog = self.oracle.catalog
        candidates: List[Event] = []
        if IncomeKind.KEY in kinds:
            candidates += [KeyEvent(KeyType.BLUE)] + [KeyEvent(KeyType.YELLOW)] * 3
        if IncomeKind.POTION in kinds:
            candidates += [PotionEvent(i) for i in range(len(catalog.potions))]
        if IncomeKind.GEM in kinds:
            candidates += [GemEvent(i) for i in range(len(catalog.gems))]
        return candidates

    def refine(self, draft: RoomPlotDraft) -> RoomPlotPlan:
        doors = [DoorEvent(KeyType.BLUE)] + [DoorEvent(KeyType.YELLOW)] * 3
        enemies = self.enemy_candidates()
        kinds = [kind for _, kind in draft.expense.list_all_blocks()]
        if ExpenseKind.ENEMY in kinds and not enemies:
            raise NoFeasibleCandidates(
                f"no enemy is beatable below {self.values.base * ENEMY_DAMAGE_CAP:g} damage "
                f"by hero atk={self.hero.atk} def={self.hero.def_}")

        def expense_event(_: Loc, kind: ExpenseKind) -> Event:
            return self.dice.pick(doors if kind == ExpenseKind.DOOR else enemies)

        def sample() -> RoomPlotPlan:
            expense = draft.expense.map_blocks(expense_event)
            income = []
            for loc, allowed in draft.income:
                candidates = self.income_candidates(allowed)
                if not candidates:
                    raise NoFeasibleCandidates(f"no income event fits {loc} ({allowed})")
                income.append((loc, self.dice.pick(candidates)))
            return RoomPlotPlan(expense, income)

        plans = [sample() for _ in range(PLAN_SAMPLES)]
        plans.sort(key=lambda plan: self.score(plan, draft.ratio))
        return self.dice.pick(plans[PLAN_DISCARD:])

    def score(self, plan: RoomPlotPlan, ratio: float) -> float:
        income_value = sum(self.value_of(event) for _, event in plan.income)
        path_values = [
            sum(self.value_of(event) for _, event in path) * ratio
            for path in plan.expense.list_all_paths()
        ]
        if len(path_values) == 1:
            total = path_values[0] + income_value
            if total == 0:
                return 0.0
            return abs(path_values[0] - income_value) / total
        return variance(path_values + [income_value])

    # ----------------------------------------------------------
    # Validation & placement
    # ----------------------------------------------------------

    def validate(self, plan: RoomPlotPlan) -> bool:
        """
        A lone toll path paid only with keys must leave some key tier in
        surplus, and must not amount to trading a higher key for a lower one.
        """
        if not plan.income:
            return True
        paths = plan.expense.list_all_paths()
        if len(paths) != 1:
            return True

        delta = [0] * len(KeyType)
        for _, event in paths[0]:
            if isinstance(event, DoorEvent):
                delta[event.key_type] -= 1
        for _, event in plan.income:
            if not isinstance(event, KeyEvent):
                return True
            delta[event.key_type] += 1

        gained = [tier for tier, d in enumerate(delta) if d > 0]
        if not gained:
            return False
        spent = [tier for tier, d in enumerate(delta) if d < 0]
        downgrade = bool(spent) and max(gained) < min(spent)
        return not (downgrade and sum(delta) == 0)

    def place(self, rid: RegionId, plan: RoomPlotPlan) -> None:
        floor = rid[0]
        ctx = self.floors[floor]
        for (target, loc), event in plan.income:
            upper = self.floors[target]
            upper.debug(loc, f"{self.value_of(event):.0f}", INCOME_COLOR)
            upper.place_block(loc, EventBlock(event))
        for loc, event in plan.expense.list_all_blocks():
            ctx.debug(loc, f"{self.value_of(event):.0f}", EXPENSE_COLOR)
            ctx.place_block(loc, EventBlock(event))
        ctx.debug(self.regions.room(rid).inner[0], f"{len(plan.income)}-{len(plan.expense)}")
