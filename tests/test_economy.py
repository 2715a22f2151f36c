import math

import pytest

from core.combat import Enemy
from core.data_loader import HeroStats, get_gem_defs, get_potion_defs, get_tower_config
from dungeon.blocks import DoorEvent, EnemyEvent, GemEvent, KeyEvent, KeyType, PotionEvent
from dungeon.economy import INFEASIBLE_VALUE, EventCatalog, ValueOracle

HERO = HeroStats(atk=10, def_=10)
SCALE = math.sqrt(20)


@pytest.fixture
def oracle():
    enemies = [
        Enemy("slime", "Slime", hp=50, atk=20, def_=4),
        Enemy("wall", "Wall", hp=10, atk=1, def_=99),
    ]
    catalog = EventCatalog(enemies, get_potion_defs(), get_gem_defs())
    return ValueOracle(get_tower_config().values, catalog)


def test_doors_and_keys_use_the_key_table(oracle):
    assert oracle.value_of(DoorEvent(KeyType.YELLOW), HERO) == 30
    assert oracle.value_of(KeyEvent(KeyType.BLUE), HERO) == 75
    assert oracle.value_of(KeyEvent(KeyType.RED), HERO) == -1


def test_gems_are_weighted_by_ability_values(oracle):
    assert oracle.value_of(GemEvent(0), HERO) == pytest.approx(50 / SCALE)
    assert oracle.value_of(GemEvent(2), HERO) == pytest.approx(60 / SCALE)


def test_potions_are_hp_over_cpi(oracle):
    assert oracle.value_of(PotionEvent(1), HERO) == pytest.approx(300 / SCALE)


def test_enemy_value_is_damage_over_cpi(oracle):
    assert oracle.value_of(EnemyEvent(0), HERO) == pytest.approx(80 / SCALE)


def test_unbeatable_enemy_is_priced_out(oracle):
    assert oracle.value_of(EnemyEvent(1), HERO) == INFEASIBLE_VALUE


def test_stronger_hero_values_items_less(oracle):
    strong = HERO.inflated(10, 10, 0)
    assert oracle.value_of(PotionEvent(0), strong) < oracle.value_of(PotionEvent(0), HERO)


def test_unknown_event_type(oracle):
    with pytest.raises(TypeError):
        oracle.value_of("not an event", HERO)
