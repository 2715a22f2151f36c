"""
Spire — core/rand.py
Dice: the injectable random source threaded through every generation pass.
==========================================================================
Version:     0.1
Stack:       Python 3.12 | stdlib random
Status:      Production-ready.

Nothing in the pipeline touches the module-level `random` functions. A Dice
built from the same seed replays the same tower.
"""

from __future__ import annotations

import bisect
import logging
import math
import random
from typing import Callable, List, MutableSequence, Optional, Sequence, Type, TypeVar

from core.errors import GenerationFailed

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_TRY_TIME: int = 100_000


class Dice:
    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self.rng = random.Random(seed)

    # ----------------------------------------------------------
    # Scalars
    # ----------------------------------------------------------

    def judge(self, ratio: float) -> bool:
        """True with probability ratio."""
        return self.rng.random() < ratio

    def normal(self, mean: float, std: float) -> int:
        """Polar Box-Muller sample, truncated toward zero."""
        while True:
            u = self.rng.random() * 2 - 1.0
            v = self.rng.random() * 2 - 1.0
            w = u * u + v * v
            if 0.0 < w < 1.0:
                break
        c = math.sqrt(-2 * math.log(w) / w)
        return math.trunc(mean + u * c * std)

    def gauss(self, mean: float, std: float) -> float:
        """Untruncated normal sample."""
        return self.rng.gauss(mean, std)

    def clamped_normal(self, mean: float, std: float, low: float, high: float) -> int:
        return int(min(max(self.normal(mean, std), low), high))

    # ----------------------------------------------------------
    # Sequences
    # ----------------------------------------------------------

    def pick(self, items: MutableSequence[T], remove: bool = False) -> T:
        if not items:
            raise IndexError("pick() from an empty sequence")
        index = self.rng.randrange(len(items))
        item = items[index]
        if remove:
            del items[index]
        return item

    def pick_weighted(self, items: MutableSequence[T], weight: Callable[[T], float],
                      remove: bool = False) -> T:
        """
        Pick one item with probability proportional to weight(item).
        Items with zero weight are never picked unless every weight is zero.
        """
        if not items:
            raise IndexError("pick_weighted() from an empty sequence")
        starts: List[float] = []
        running = 0.0
        for item in items:
            starts.append(running)
            running += weight(item)
        if running <= 0:
            return self.pick(items, remove)
        index = bisect.bisect_right(starts, self.rng.random() * running) - 1
        item = items[index]
        if remove:
            del items[index]
        return item

    def shuffled(self, items: Sequence[T]) -> List[T]:
        copy = list(items)
        self.rng.shuffle(copy)
        return copy

    # ----------------------------------------------------------
    # Bounded retry
    # ----------------------------------------------------------

    def plan_until(self, planner: Callable[[int], T], validator: Callable[[T, int], bool],
                   limit: int = MAX_TRY_TIME,
                   error_cls: Type[GenerationFailed] = GenerationFailed,
                   label: str = "plan") -> T:
        """
        Call planner(attempt) until validator(plan, attempt) accepts, at most
        limit times. Raises error_cls when every attempt is rejected.
        """
        for attempt in range(1, limit + 1):
            plan = planner(attempt)
            if validator(plan, attempt):
                if attempt > 1:
                    logger.debug("%s accepted after %d attempts", label, attempt)
                return plan
        raise error_cls(f"{label}: no valid result after {limit} attempts", attempts=limit)
