"""
Spire — core/stat.py
Descriptive statistics used by plan scoring.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np


def variance(values: Sequence[float]) -> float:
    """Population variance (divides by n)."""
    if not len(values):
        raise ValueError("variance() of an empty sequence")
    return float(np.var(values))
