"""
Spire — core/errors.py
Typed generation failures.
==========================

Every bounded retry loop in the pipeline raises one of these when it runs
out of attempts. A failed floor aborts the whole run; partial towers are
never returned.
"""

from __future__ import annotations

from typing import Optional


class GenerationFailed(RuntimeError):
    """Base class. `reason` is a short machine-friendly tag."""

    reason: str = "generation_failed"

    def __init__(self, message: str, attempts: Optional[int] = None, floor: Optional[int] = None):
        super().__init__(message)
        self.attempts = attempts
        self.floor = floor


class StairPlacementFailed(GenerationFailed):
    reason = "stair_placement_failed"


class RoomGrowthExhausted(GenerationFailed):
    reason = "room_growth_exhausted"


class PlotValidationExhausted(GenerationFailed):
    reason = "plot_validation_exhausted"


class NoFeasibleCandidates(GenerationFailed):
    """A drafted slot has nothing it could legally hold (e.g. no beatable enemy)."""

    reason = "no_feasible_candidates"
