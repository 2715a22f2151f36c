"""
Spire — dungeon/topology.py
Base topology: outer walls and the stair chain linking consecutive floors.
=========================================================================

Floor n's up stair is floor n+1's down stair. The first floor's down stair
is the configured start location and may sit on the outer ring (it replaces
that wall cell).
"""

from __future__ import annotations

import logging
from typing import List

from core.errors import StairPlacementFailed
from core.loc import MAP_SIZE, Loc
from core.rand import MAX_TRY_TIME, Dice
from dungeon.blocks import WALL, RoomMark, StairBlock, StairDir, is_empty
from dungeon.context import MapContext

logger = logging.getLogger(__name__)

# Probability of rejecting an up-stair candidate 4-adjacent to the down stair.
NEAR_STAIR_REJECT_RATIO: float = 0.5


def build_outer_walls(ctx: MapContext) -> None:
    ctx.place_block([loc for loc in ctx.block_layer.locs() if loc.is_border(ctx.size)], WALL)


def place_stairs(ctx: MapContext, down_loc: Loc, dice: Dice, max_attempts: int = MAX_TRY_TIME) -> Loc:
    """Choose the up stair for a floor whose down stair is down_loc; returns it."""
    if not down_loc.is_valid(ctx.size) or down_loc.is_corner(ctx.size):
        raise StairPlacementFailed(f"down stair {down_loc} is outside the usable floor", attempts=0)

    candidates = [
        loc for loc, block in ctx.block_layer.cells()
        if loc != down_loc
        and not loc.is_corner(ctx.size)
        and is_empty(block)
        and ctx.room_layer.get(loc) != RoomMark.ENTRY
    ]
    if not candidates:
        raise StairPlacementFailed(f"no free cell for an up stair on a {ctx.size}x{ctx.size} floor", attempts=0)

    def accept(loc: Loc, _: int) -> bool:
        if loc.is_near(down_loc):
            return not dice.judge(NEAR_STAIR_REJECT_RATIO)
        return True

    up_loc = dice.plan_until(
        lambda _: dice.pick(candidates), accept,
        limit=max_attempts, error_cls=StairPlacementFailed, label="stair placement",
    )
    ctx.place_block(down_loc, StairBlock(StairDir.DOWN))
    ctx.place_block(up_loc, StairBlock(StairDir.UP))
    ctx.down_stair_loc = down_loc
    ctx.up_stair_loc = up_loc
    return up_loc


def generate_base(floor_count: int, start_loc: Loc, dice: Dice, size: int = MAP_SIZE,
                  max_attempts: int = MAX_TRY_TIME) -> List[MapContext]:
    """Create floor_count walled floors with chained stairs."""
    floors = [MapContext.create(size) for _ in range(floor_count)]
    for ctx in floors:
        build_outer_walls(ctx)

    last_loc = start_loc
    for i, ctx in enumerate(floors):
        try:
            last_loc = place_stairs(ctx, last_loc, dice, max_attempts)
        except StairPlacementFailed as exc:
            exc.floor = i
            raise
        logger.debug("floor %d stairs: down=%s up=%s", i, ctx.down_stair_loc, ctx.up_stair_loc)
    logger.info("base topology ready: %d floors of %dx%d", floor_count, size, size)
    return floors
