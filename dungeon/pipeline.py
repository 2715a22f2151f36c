"""
Spire — dungeon/pipeline.py
TowerPipeline: topology -> rooms -> stages -> plot for a whole tower.
====================================================================
Version:     0.1
Stack:       Python 3.12 | Pydantic v2 config (core.data_loader)
Status:      Production-ready.

Each pass consumes the previous pass's floors and works on snapshots, so the
intermediate results kept on the pipeline (base_floors, room_floors) stay
exactly as their pass left them.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from core.combat import Enemy, generate_enemies, jitter_template
from core.data_loader import (GemDef, PotionDef, TowerConfig, get_enemy_presets, get_gem_defs,
                              get_potion_defs)
from core.loc import Loc
from core.rand import Dice
from dungeon.context import MapContext
from dungeon.economy import EventCatalog, ValueOracle
from dungeon.plot import PlotDesigner
from dungeon.rooms import generate_rooms
from dungeon.scan import floor_stats
from dungeon.stage import StagePartitioner, TowerRegions, build_regions, orient_entries
from dungeon.topology import generate_base

logger = logging.getLogger(__name__)


class TowerPipeline:
    def __init__(self, config: TowerConfig, seed: Optional[int] = None,
                 enemies: Optional[List[Enemy]] = None,
                 potions: Optional[List[PotionDef]] = None,
                 gems: Optional[List[GemDef]] = None):
        self.config = config
        self.seed = config.seed if seed is None else seed
        self.dice = Dice(self.seed)
        self._enemies = enemies
        self.potions = get_potion_defs() if potions is None else potions
        self.gems = get_gem_defs() if gems is None else gems

        self.base_floors: List[MapContext] = []
        self.room_floors: List[MapContext] = []
        self.regions: Optional[TowerRegions] = None
        self.floors: List[MapContext] = []

    @property
    def enemies(self) -> List[Enemy]:
        if self._enemies is None:
            templates = [jitter_template(preset, self.dice) for preset in get_enemy_presets()]
            self._enemies = generate_enemies(templates, self.config.initial_hero, self.config.values)
        return self._enemies

    # ----------------------------------------------------------
    # Passes
    # ----------------------------------------------------------

    def build_topology(self) -> List[MapContext]:
        cfg = self.config
        self.base_floors = generate_base(cfg.floor_count, Loc(*cfg.start_loc), self.dice,
                                         cfg.map_size, cfg.max_attempts)
        return self.base_floors

    def build_rooms(self) -> List[MapContext]:
        cfg = self.config
        self.room_floors = generate_rooms(self.base_floors, self.dice, cfg.room_size_factor, cfg.max_attempts)
        return self.room_floors

    def build_stages(self) -> TowerRegions:
        floors = [ctx.snapshot() for ctx in self.room_floors]
        for ctx in floors:
            ctx.clear_debug()
        self.regions = build_regions(floors)
        StagePartitioner(self.regions, self.config.stages, self.dice).run()
        orient_entries(self.regions)
        return self.regions

    def build_plot(self) -> List[MapContext]:
        cfg = self.config
        catalog = EventCatalog(self.enemies, self.potions, self.gems)
        designer = PlotDesigner(self.regions, ValueOracle(cfg.values, catalog), cfg.values,
                                cfg.initial_hero, self.dice, cfg.max_attempts)
        self.floors = designer.run()
        return self.floors

    def run(self) -> List[MapContext]:
        logger.info("generating tower: %d floors of %dx%d, seed=%s",
                    self.config.floor_count, self.config.map_size, self.config.map_size, self.seed)
        self.build_topology()
        self.build_rooms()
        self.build_stages()
        self.build_plot()
        for i, ctx in enumerate(self.floors):
            stats = floor_stats(ctx)
            logger.info("floor %d: %s", i, " ".join(f"{key}: {value}" for key, value in stats.items()))
        return self.floors


def generate_tower(config: TowerConfig, seed: Optional[int] = None) -> List[MapContext]:
    return TowerPipeline(config, seed).run()
