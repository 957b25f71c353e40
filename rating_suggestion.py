"""Suggest a 1-10 rating from a player's eight attribute levels."""

from __future__ import annotations

import math
from typing import Dict

BASE_SUGGESTED_RATING = 5.51

ATTRIBUTE_STEPS: Dict[str, float] = {
    "shooting": 0.31,
    "control": 0.37,
    "passing": 0.34,
    "defense": 0.28,
    "pace": 0.26,
    "vision": 0.40,
    "grit": 0.34,
    "stamina": 0.26,
}

LEVEL_SIGN = {"low": -1, "mid": 0, "high": 1}


def clamp_rating(value: float) -> float:
    return max(1.0, min(10.0, value))


def suggested_rating_float(attributes: Dict[str, str] | None = None) -> float:
    suggested = BASE_SUGGESTED_RATING
    for key, step in ATTRIBUTE_STEPS.items():
        level = (attributes or {}).get(key) or "mid"
        suggested += step * LEVEL_SIGN.get(level, 0)
    return clamp_rating(suggested)


def suggested_rating(attributes: Dict[str, str] | None = None) -> int:
    return int(clamp_rating(math.floor(suggested_rating_float(attributes) + 0.5)))
