"""
Spire — run.py
Main entry point: generate a tower from a TOML preset and log each floor.
"""

import argparse
import logging
import sys
from pathlib import Path

# Ensure we can import spire packages
project_root = Path(__file__).parent.resolve()
sys.path.insert(0, str(project_root))

from core.data_loader import get_tower_config, load_tower_config
from core.errors import GenerationFailed
from dungeon.blocks import DoorEvent, EnemyEvent, EventBlock, StairBlock, StairDir, is_wall
from dungeon.context import MapContext
from dungeon.pipeline import TowerPipeline

logger = logging.getLogger("spire")


def render_floor(ctx: MapContext) -> str:
    """One character per cell: # wall, < > stairs, D door, E enemy, $ item."""
    glyphs = []
    for _, block in ctx.block_layer.cells():
        if is_wall(block):
            glyph = "#"
        elif isinstance(block, StairBlock):
            glyph = "<" if block.dir == StairDir.DOWN else ">"
        elif isinstance(block, EventBlock):
            if isinstance(block.event, DoorEvent):
                glyph = "D"
            elif isinstance(block.event, EnemyEvent):
                glyph = "E"
            else:
                glyph = "$"
        else:
            glyph = "."
        glyphs.append(glyph)
    return "\n".join("".join(glyphs[y * ctx.size:(y + 1) * ctx.size]) for y in range(ctx.size))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Generate a multi-floor tower.")
    parser.add_argument("--preset", default="default", help="preset name under data/towers")
    parser.add_argument("--config", type=Path, help="explicit tower TOML file (overrides --preset)")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_tower_config(args.config) if args.config else get_tower_config(args.preset)
    try:
        floors = TowerPipeline(config, args.seed).run()
    except GenerationFailed as exc:
        logger.error("generation failed (%s) on floor %s after %s attempts: %s",
                     exc.reason, exc.floor, exc.attempts, exc)
        return 1

    for i, ctx in enumerate(floors):
        logger.info("floor %d\n%s", i, render_floor(ctx))
    return 0


if __name__ == "__main__":
    sys.exit(main())
