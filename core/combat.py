"""
Spire — core/combat.py
Combat evaluator and enemy stat fitting.
========================================
Version:     0.1
Stack:       Python 3.12 | Pydantic v2 (schemas from core.data_loader)
Status:      Production-ready.

Fights are deterministic: hero and enemy trade blows, the hero striking
first, until the enemy's hp is gone. The evaluator answers one question:
how much hp does the hero lose? None means the hero cannot hurt the enemy.

Design Variables (all values configurable — do not hardcode)
-------------------------------------------------------------
  GROWTH_PRECISION    1e-3   — binary-search resolution of fit_enemy
  GROWTH_CEILING      1e7    — largest growth multiplier tried
  JITTER_SPREAD       5      — template std is value / JITTER_SPREAD
  MAX_STEP_GAP        2      — most inflation steps between two calibrated enemies
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Tuple

from core.data_loader import EnemyPreset, EnemySpecial, HeroStats, ValuesDef
from core.rand import Dice

logger = logging.getLogger(__name__)

# ============================================================
# DESIGN VARIABLE DEFAULTS
# ============================================================

GROWTH_PRECISION: float = 1e-3
GROWTH_CEILING: float = GROWTH_PRECISION * 1e10
JITTER_SPREAD: float = 5
MAX_STEP_GAP: int = 2


class Fighter(Protocol):
    hp: int
    atk: int
    def_: int
    special: Sequence[EnemySpecial]


@dataclass(frozen=True)
class Enemy:
    """A concrete enemy placed in the tower."""
    id: str
    name: str
    hp: int
    atk: int
    def_: int
    special: List[EnemySpecial] = field(default_factory=list)


# ============================================================
# EVALUATOR
# ============================================================

def evaluate_encounter(hero: HeroStats, enemy: Fighter) -> Optional[int]:
    """Hp the hero loses beating enemy, or None if the hero cannot hurt it."""
    specials = enemy.special
    enemy_def = enemy.def_
    if EnemySpecial.SOLID in specials:
        enemy_def = max(enemy_def, hero.atk - 1)

    per_round = enemy.atk if EnemySpecial.MAGIC_ATTACK in specials else enemy.atk - hero.def_
    per_round = max(per_round, 0)
    if EnemySpecial.DOUBLE_HIT in specials:
        per_round *= 2
    upfront = per_round if EnemySpecial.ATTACK_FIRST in specials else 0

    hero_per_round = max(hero.atk - enemy_def, 0)
    if hero_per_round <= 0:
        return None

    rounds = math.ceil(enemy.hp / hero_per_round)
    return max(upfront + (rounds - 1) * per_round - hero.mdef, 0)


def cpi(hero: HeroStats, exponent: float = 0.5) -> float:
    """Cost-per-increment: the value scale of one stat point for this hero."""
    return (hero.atk + hero.def_) ** exponent


# ============================================================
# ENEMY GENERATION
# ============================================================

def jitter_template(preset: EnemyPreset, dice: Dice) -> EnemyPreset:
    """Randomise a preset's growth bases around their configured values."""
    def jitter(value: int) -> int:
        return max(dice.normal(value, value / JITTER_SPREAD), 0)

    return preset.model_copy(update={
        "hp": jitter(preset.hp),
        "atk": jitter(preset.atk),
        "def_": jitter(preset.def_),
    })


def scale_enemy(template: EnemyPreset, growth: float) -> Enemy:
    return Enemy(
        id=template.id,
        name=template.name,
        hp=math.floor(template.hp * growth),
        atk=math.floor(template.atk * growth),
        def_=math.floor(template.def_ * growth),
        special=list(template.special),
    )


def fit_enemy(hero: HeroStats, template: EnemyPreset, damage: float) -> Enemy:
    """
    Scale template by the largest growth for which the hero still beats it
    taking less than damage.
    """
    low, high = GROWTH_PRECISION, GROWTH_CEILING
    while high - low > GROWTH_PRECISION * 2:
        mid = (low + high) / 2
        mid_damage = evaluate_encounter(hero, scale_enemy(template, mid))
        if mid_damage is not None and mid_damage < damage:
            low = mid + GROWTH_PRECISION
        else:
            high = mid
    return scale_enemy(template, low)


def enemy_slots(template_count: int, last_step: int) -> List[Tuple[int, int]]:
    """
    (template index, inflation step) pairs to calibrate.

    Steps spread evenly over 0..last_step, never more than MAX_STEP_GAP
    apart, and the final slot sits on last_step. Every template gets at
    least one slot; templates repeat in order when the range needs more.
    """
    if template_count <= 0:
        return []
    count = max(template_count, math.ceil(last_step / MAX_STEP_GAP) + 1)
    slots = []
    for k in range(count):
        step = round(k * last_step / (count - 1)) if count > 1 else 0
        slots.append((k * template_count // count, step))
    return slots


def generate_enemies(templates: Sequence[EnemyPreset], hero: HeroStats, values: ValuesDef) -> List[Enemy]:
    """
    Fit enemies for every hero the tower can produce.

    The plot pass inflates the hero at most inflation.step - 1 times, so the
    slots run from the initial hero up to that last checkpoint.
    """
    inflation = values.inflation
    last_step = max(inflation.step - 1, 0)
    enemies = []
    for index, step in enemy_slots(len(templates), last_step):
        template = templates[index]
        strong = hero.inflated(inflation.atk, inflation.def_, inflation.mdef, times=step)
        target = values.base * cpi(strong, values.cpi_exponent)
        enemy = fit_enemy(strong, template, target)
        logger.debug("enemy %s fitted at step %d: hp=%d atk=%d def=%d",
                     enemy.id, step, enemy.hp, enemy.atk, enemy.def_)
        enemies.append(enemy)
    return enemies
