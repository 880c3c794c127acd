"""
Network level / experience conversions.

The network experience needed for each level grows linearly, so the total
experience for a whole level follows a parabola:

    total_xp(level) = (GROWTH / 2 * (level - 2) + BASE) * (level - 1)

Fractional levels are interpolated linearly between the surrounding whole
levels.
"""

from __future__ import annotations

import math

BASE = 10000.0
GROWTH = 2500.0

HALF_GROWTH = GROWTH * 0.5

REVERSE_PQ_PREFIX = -(BASE - 0.5 * GROWTH) / GROWTH
REVERSE_CONST = REVERSE_PQ_PREFIX * REVERSE_PQ_PREFIX
GROWTH_DIVIDES_2 = 2.0 / GROWTH


def calculate_level(exp: float) -> float:
    """
    Floored network level for an amount of experience. Never below 1.0.

        0 XP -> 1.0, 10000 XP -> 2.0, 50000 XP -> 4.0
    """
    if exp < 0.0:
        return 1.0
    return float(
        math.floor(1.0 + REVERSE_PQ_PREFIX + math.sqrt(REVERSE_CONST + GROWTH_DIVIDES_2 * exp))
    )


def exact_level(exp: float) -> float:
    """Network level including progress towards the next one (5000 XP -> 1.5)."""
    return calculate_level(exp) + percentage_to_next_level(exp)


def xp_to_next_level(level: float) -> float:
    """Experience needed to go from `level` to `level + 1`."""
    if level < 1.0:
        return BASE
    return GROWTH * (level - 1.0) + BASE


def total_xp_to_full_level(level: float) -> float:
    """Total experience for a whole level. Fractional input is not interpolated."""
    return (HALF_GROWTH * (level - 2.0) + BASE) * (level - 1.0)


def total_xp_to_level(level: float) -> float:
    """Total experience to reach `level`, fractional progress included."""
    whole = math.floor(level)
    x0 = total_xp_to_full_level(whole)
    return (total_xp_to_full_level(whole + 1.0) - x0) * (level % 1.0) + x0


def percentage_to_next_level(exp: float) -> float:
    """Progress (0..1) from the current whole level to the next."""
    level = calculate_level(exp)
    x0 = total_xp_to_level(level)
    return (exp - x0) / (total_xp_to_level(level + 1.0) - x0)
