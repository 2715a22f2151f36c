"""
Spire — dungeon/economy.py
Value oracle: prices every event against the current reference hero.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from core.combat import Enemy, cpi, evaluate_encounter
from core.data_loader import GemDef, HeroStats, PotionDef, ValuesDef
from dungeon.blocks import DoorEvent, EnemyEvent, Event, GemEvent, KeyEvent, KeyType, PotionEvent

INFEASIBLE_VALUE: float = 1e20


@dataclass(frozen=True)
class EventCatalog:
    enemies: Sequence[Enemy]
    potions: Sequence[PotionDef]
    gems: Sequence[GemDef]


class ValueOracle:
    def __init__(self, values: ValuesDef, catalog: EventCatalog):
        self.values = values
        self.catalog = catalog

    def key_value(self, key_type: KeyType) -> float:
        keys = self.values.keys
        return (keys.yellow, keys.blue, keys.red, keys.green)[key_type]

    def value_of(self, event: Event, hero: HeroStats) -> float:
        scale = cpi(hero, self.values.cpi_exponent)
        if isinstance(event, (DoorEvent, KeyEvent)):
            return self.key_value(event.key_type)
        if isinstance(event, GemEvent):
            gem = self.catalog.gems[event.index]
            ability = self.values.ability
            return (ability.atk * gem.atk + ability.def_ * gem.def_ + ability.mdef * gem.mdef) / scale
        if isinstance(event, PotionEvent):
            return self.catalog.potions[event.index].hp / scale
        if isinstance(event, EnemyEvent):
            damage = evaluate_encounter(hero, self.catalog.enemies[event.index])
            if damage is None:
                return INFEASIBLE_VALUE
            return damage / scale
        raise TypeError(f"unknown event {event!r}")
