import pytest

from core.loc import Loc
from dungeon.blocks import WALL, RoomMark, StairBlock, StairDir
from dungeon.context import MapContext


# Art legend: '#' wall, '.' room cell, '+' entry, '<' down stair, '>' up stair.
def floor_from_art(*rows: str) -> MapContext:
    size = len(rows)
    assert all(len(row) == size for row in rows), "art must be square"
    ctx = MapContext.create(size)
    for y, row in enumerate(rows):
        for x, glyph in enumerate(row):
            loc = Loc(x, y)
            if glyph == "#":
                ctx.place_block(loc, WALL)
                ctx.room_layer[loc] = RoomMark.BORDER
            elif glyph == "+":
                ctx.room_layer[loc] = RoomMark.ENTRY
            else:
                ctx.room_layer[loc] = RoomMark.INNER
                if glyph == "<":
                    ctx.place_block(loc, StairBlock(StairDir.DOWN))
                    ctx.down_stair_loc = loc
                elif glyph == ">":
                    ctx.place_block(loc, StairBlock(StairDir.UP))
                    ctx.up_stair_loc = loc
    return ctx


def raw_floor_from_art(*rows: str) -> MapContext:
    """Walls and stairs only; every room mark stays EMPTY, as before the room pass."""
    size = len(rows)
    assert all(len(row) == size for row in rows), "art must be square"
    ctx = MapContext.create(size)
    for y, row in enumerate(rows):
        for x, glyph in enumerate(row):
            loc = Loc(x, y)
            if glyph == "#":
                ctx.place_block(loc, WALL)
            elif glyph == "<":
                ctx.place_block(loc, StairBlock(StairDir.DOWN))
                ctx.down_stair_loc = loc
            elif glyph == ">":
                ctx.place_block(loc, StairBlock(StairDir.UP))
                ctx.up_stair_loc = loc
    return ctx


CORRIDOR = (
    "#######",
    "#<#.#.#",
    "#.#.#.#",
    "#.+.+.#",
    "#.#.#.#",
    "#.#.#>#",
    "#######",
)


@pytest.fixture
def make_floor():
    return floor_from_art


@pytest.fixture
def make_raw_floor():
    return raw_floor_from_art


@pytest.fixture
def corridor_floor():
    """Three one-wide rooms in a row; the middle one is a cut room."""
    return floor_from_art(*CORRIDOR)


@pytest.fixture
def corridor_tower():
    """Two stacked corridor floors: rooms 0-1-2 on each, stairs in rooms 0 and 2."""
    return [floor_from_art(*CORRIDOR), floor_from_art(*CORRIDOR)]
