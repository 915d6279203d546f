"""
arise.constants — Shared Constants & Leveling Curve
====================================================

Single source of truth for the leveling formula and the rounding rule every
pipeline stage uses.  Import from here instead of duplicating in the engine
modules and services.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Ranks: ordered ladder, lowest first
# ---------------------------------------------------------------------------
class Rank(enum.StrEnum):
    """Hunter rank tiers.  Declaration order is ladder order."""
    E = "E"
    D = "D"
    C = "C"
    B = "B"
    A = "A"
    S = "S"
    SS = "SS"
    SSS = "SSS"
    SSS_PLUS = "SSS+"
    NH = "NH"
    MONARCH = "Monarch"
    MONARCH_PLUS = "Monarch+"
    SHADOW_MONARCH = "Shadow Monarch"


RANK_LADDER: tuple[Rank, ...] = tuple(Rank)


def rank_index(rank: Rank | str) -> int:
    """Position of *rank* on the ladder (E → 0)."""
    return RANK_LADDER.index(Rank(rank))


# ---------------------------------------------------------------------------
# Daily quests: id → (display name, target, xp reward, stat point reward)
# ---------------------------------------------------------------------------
QUEST_DEFINITIONS: dict[str, tuple[str, float, int, int]] = {
    "message_master": ("Message Master", 20, 50, 1),
    "character_champion": ("Character Champion", 1000, 75, 0),
    "channel_explorer": ("Channel Explorer", 5, 50, 1),
    "active_adventurer": ("Active Adventurer", 30, 100, 0),
    "perfect_streak": ("Perfect Streak", 10, 150, 1),
}


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------
STAT_NAMES: tuple[str, ...] = (
    "strength",
    "agility",
    "intelligence",
    "vitality",
    "perception",
)

STAT_ABBREVIATIONS: dict[str, str] = {
    "strength": "STR",
    "agility": "AGI",
    "intelligence": "INT",
    "vitality": "VIT",
    "perception": "PER",
}


# ---------------------------------------------------------------------------
# Rounding
# ---------------------------------------------------------------------------
def round_half_up(value: float) -> int:
    """Round to the nearest integer, with .5 always rounding up.

    Python's built-in :func:`round` uses banker's rounding (16.5 → 16 but
    17.5 → 18).  Every XP stage uses this helper so the curve and the
    pipeline agree.
    """
    return int(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# Leveling formula: THE single canonical implementation
# ---------------------------------------------------------------------------
LEVEL_BASE_XP = 100
LEVEL_EXPONENT = 1.6
LEVEL_LINEAR_FACTOR = 0.25


def xp_required_for_level(level: int) -> int:
    """XP needed to complete *level* (move from *level* to *level + 1*).

    Uses the formula::

        required = round(100 * level ** 1.6 + 100 * level * 0.25)

    Strictly increasing with no upper bound — progression is unlimited.
    Levels below 1 are treated as level 1.
    """
    level = max(int(level), 1)
    return round_half_up(
        LEVEL_BASE_XP * level ** LEVEL_EXPONENT
        + LEVEL_BASE_XP * level * LEVEL_LINEAR_FACTOR
    )


def cumulative_xp_for_level(level: int) -> int:
    """Total XP at which *level* is reached.

    Level 1 is reached at 0 XP; level N at the sum of the requirements of
    levels 1 through N-1.
    """
    return sum(xp_required_for_level(lvl) for lvl in range(1, max(int(level), 1)))


@dataclass(frozen=True, slots=True)
class LevelInfo:
    """Result of :func:`resolve_level`."""

    level: int
    current_level_xp: int
    xp_required_for_next: int


def resolve_level(total_xp: float) -> LevelInfo:
    """Reconcile a level against cumulative XP.

    Starting at level 1, accumulate each level's requirement while the
    running total does not exceed *total_xp*.  The level stops at the first
    level whose full requirement would overshoot.

    Idempotent, and the only place that decides what level a given XP total
    means.  Negative or NaN totals are treated as 0.
    """
    if total_xp is None or not math.isfinite(total_xp) or total_xp < 0:
        total_xp = 0
    total_xp = int(total_xp)

    level = 1
    accumulated = 0
    required = xp_required_for_level(level)
    while accumulated + required <= total_xp:
        accumulated += required
        level += 1
        required = xp_required_for_level(level)

    return LevelInfo(
        level=level,
        current_level_xp=total_xp - accumulated,
        xp_required_for_next=required,
    )
