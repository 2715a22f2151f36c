"""
Spire — dungeon/blocks.py
Cell contents: blocks, events, and room marks.
==============================================
Version:     0.1
Stack:       Python 3.12 | dataclasses
Status:      Production-ready.

Block and Event are closed unions of frozen dataclasses. Code branches on
isinstance(); adding a variant means updating every such branch.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Union


class WallKind(Enum):
    NORMAL = "normal"
    UNBREAKABLE = "unbreakable"


class StairDir(Enum):
    UP = "up"
    DOWN = "down"


class KeyType(IntEnum):
    """Key/door colours in ascending tier."""
    YELLOW = 0
    BLUE = 1
    RED = 2
    GREEN = 3


class RoomMark(IntEnum):
    EMPTY = 0
    INNER = 1
    BORDER = 2
    ENTRY = 3


# ============================================================
# EVENTS
# ============================================================

@dataclass(frozen=True)
class DoorEvent:
    key_type: KeyType


@dataclass(frozen=True)
class KeyEvent:
    key_type: KeyType


@dataclass(frozen=True)
class EnemyEvent:
    index: int


@dataclass(frozen=True)
class PotionEvent:
    index: int


@dataclass(frozen=True)
class GemEvent:
    index: int


Event = Union[DoorEvent, KeyEvent, EnemyEvent, PotionEvent, GemEvent]


# ============================================================
# BLOCKS
# ============================================================

@dataclass(frozen=True)
class EmptyBlock:
    pass


@dataclass(frozen=True)
class WallBlock:
    kind: WallKind = WallKind.NORMAL


@dataclass(frozen=True)
class StairBlock:
    dir: StairDir


@dataclass(frozen=True)
class EventBlock:
    event: Event


Block = Union[EmptyBlock, WallBlock, StairBlock, EventBlock]

EMPTY = EmptyBlock()
WALL = WallBlock()


def is_wall(block: Block) -> bool:
    return isinstance(block, WallBlock)


def is_stair(block: Block) -> bool:
    return isinstance(block, StairBlock)


def is_empty(block: Block) -> bool:
    return isinstance(block, EmptyBlock)
