"""
Spire — core/data_loader.py
Cached loaders for TOML seed data powered by Pydantic.
======================================================
Version:     0.1
Stack:       Python 3.12 | Pydantic v2 | tomllib
Status:      Core data validation and loading layer.

Layout under data/
------------------
  towers/<name>.toml   tower generation presets (default.toml ships)
  enemies.toml         enemy templates ([[enemies]] tables)
  potions.toml         potion catalog ([[potions]] tables)
  gems.toml            gem catalog ([[gems]] tables)

`def` is a Python keyword; schemas expose it as `def_` and read the TOML key
`def` through a field alias.
"""

import tomllib
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# ================================================================================
# SCHEMAS
# ================================================================================

class EnemySpecial(str, Enum):
    ATTACK_FIRST = "attack_first"   # one free round of damage before the fight
    MAGIC_ATTACK = "magic_attack"   # ignores hero defence
    SOLID = "solid"                 # defence is at least hero attack - 1
    DOUBLE_HIT = "double_hit"       # strikes twice per round


class HeroStats(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)
    atk: int
    def_: int = Field(alias="def")
    mdef: int = 0

    def inflated(self, atk: int, def_: int, mdef: int, times: int = 1) -> "HeroStats":
        return self.model_copy(update={
            "atk": self.atk + atk * times,
            "def_": self.def_ + def_ * times,
            "mdef": self.mdef + mdef * times,
        })


class EnemyPreset(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)
    id: str
    name: str
    hp: int
    atk: int
    def_: int = Field(alias="def")
    special: List[EnemySpecial] = Field(default_factory=list)


class EnemyCollectionDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    enemies: List[EnemyPreset]


class PotionDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    id: str
    name: str
    hp: int


class PotionCollectionDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    potions: List[PotionDef]


class GemDef(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)
    id: str
    name: str
    atk: int = 0
    def_: int = Field(default=0, alias="def")
    mdef: int = 0


class GemCollectionDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    gems: List[GemDef]


class KeyValues(BaseModel):
    model_config = ConfigDict(frozen=True)
    yellow: float
    blue: float
    red: float = -1
    green: float = -1


class AbilityValues(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)
    atk: float
    def_: float = Field(alias="def")
    mdef: float


class InflationDef(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)
    atk: int = 0
    def_: int = Field(default=0, alias="def")
    mdef: int = 0
    step: int = Field(default=0, ge=0)


class ValuesDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    base: float
    keys: KeyValues
    ability: AbilityValues
    inflation: InflationDef = Field(default_factory=InflationDef)
    cpi_exponent: float = 0.5


class TowerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)
    floor_count: int = Field(ge=1)
    map_size: int = Field(default=13, ge=5)
    start_loc: Tuple[int, int]
    room_size_factor: float = Field(default=1.0, gt=0)
    stages: List[float] = Field(min_length=1)
    initial_hero: HeroStats
    max_attempts: int = Field(default=100_000, ge=1)
    seed: Optional[int] = None
    values: ValuesDef

    @field_validator("stages")
    @classmethod
    def _positive_weights(cls, stages: List[float]) -> List[float]:
        if any(weight <= 0 for weight in stages):
            raise ValueError("stage weights must be positive")
        return stages

    @model_validator(mode="after")
    def _start_on_floor(self) -> "TowerConfig":
        x, y = self.start_loc
        last = self.map_size - 1
        if not (0 <= x <= last and 0 <= y <= last):
            raise ValueError(f"start_loc {self.start_loc} is outside a {self.map_size}x{self.map_size} floor")
        if x in (0, last) and y in (0, last):
            raise ValueError(f"start_loc {self.start_loc} is a map corner")
        return self

# ================================================================================
# LOADERS & CACHE
# ================================================================================

_TOWER_CACHE: Dict[str, TowerConfig] = {}
_ENEMY_CACHE: Optional[List[EnemyPreset]] = None
_POTION_CACHE: Optional[List[PotionDef]] = None
_GEM_CACHE: Optional[List[GemDef]] = None


DATA_DIR = Path(__file__).parent.parent / "data"


def _read_toml(path: Path) -> dict:
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_tower_config(path: Path) -> TowerConfig:
    """Loads a tower preset from an explicit file path (not cached)."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Tower config not found: {path}")
    return TowerConfig(**_read_toml(path))


def get_tower_config(name: str = "default") -> TowerConfig:
    """Loads a named tower preset from data/towers. Cached per name."""
    if name in _TOWER_CACHE:
        return _TOWER_CACHE[name]

    config = load_tower_config(DATA_DIR / "towers" / f"{name}.toml")
    _TOWER_CACHE[name] = config
    return config


def get_enemy_presets() -> List[EnemyPreset]:
    """Loads the enemy templates in file order. Cached globally."""
    global _ENEMY_CACHE
    if _ENEMY_CACHE is not None:
        return _ENEMY_CACHE

    path = DATA_DIR / "enemies.toml"
    if not path.exists():
        raise FileNotFoundError(f"Enemy presets not found: {path}")

    _ENEMY_CACHE = EnemyCollectionDef(**_read_toml(path)).enemies
    return _ENEMY_CACHE


def get_potion_defs() -> List[PotionDef]:
    """Loads the potion catalog. Cached globally."""
    global _POTION_CACHE
    if _POTION_CACHE is not None:
        return _POTION_CACHE

    path = DATA_DIR / "potions.toml"
    if not path.exists():
        return []

    _POTION_CACHE = PotionCollectionDef(**_read_toml(path)).potions
    return _POTION_CACHE


def get_gem_defs() -> List[GemDef]:
    """Loads the gem catalog. Cached globally."""
    global _GEM_CACHE
    if _GEM_CACHE is not None:
        return _GEM_CACHE

    path = DATA_DIR / "gems.toml"
    if not path.exists():
        return []

    _GEM_CACHE = GemCollectionDef(**_read_toml(path)).gems
    return _GEM_CACHE


def clear_caches() -> None:
    global _ENEMY_CACHE, _POTION_CACHE, _GEM_CACHE
    _TOWER_CACHE.clear()
    _ENEMY_CACHE = None
    _POTION_CACHE = None
    _GEM_CACHE = None
