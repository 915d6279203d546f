"""
arise.engine.reward — XP Award Pipeline
========================================

Pure calculation: one message in, one :class:`XpBreakdown` out.  No DB I/O
and no snapshot mutation inside the pipeline.

Pipeline stages::

  MessageSent → Additive base → Percentage pool → Title → Milestone
              → Level diminishing returns → Critical hit → Rank → XpBreakdown

Every stage rounds half-up to an integer except stage 1, which is rounded
once by stage 2.  Malformed input (negative length, odd hours) is clamped,
never raised.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from arise.constants import Rank, round_half_up
from arise.engine.achievements import NO_BONUS, TitleBonus
from arise.engine.events import MessageSent
from arise.engine.quality import additive_base
from arise.engine.ranks import RANK_XP_MULTIPLIERS
from arise.engine.snapshot import ProgressionSnapshot
from arise.engine.stats import (
    NO_EXTERNAL_BONUSES,
    ExternalBonuses,
    effective_stats,
    total_perception_buff_percent,
)

logger = logging.getLogger(__name__)

__all__ = [
    "MILESTONE_MULTIPLIERS",
    "XpBreakdown",
    "apply_level_diminishing",
    "calculate_xp",
    "critical_multiplier",
    "intelligence_percent",
    "milestone_multiplier",
    "percentage_pool",
    "roll_mega_crit",
    "strength_percent",
]

POOL_CAP_PERCENT = 500

# Highest threshold reached wins; no stacking
MILESTONE_MULTIPLIERS: tuple[tuple[int, float], ...] = (
    (25, 1.05),
    (50, 1.10),
    (100, 1.15),
    (200, 1.20),
    (300, 1.25),
    (500, 1.30),
    (750, 1.40),
    (1000, 1.50),
    (1500, 1.65),
    (2000, 1.80),
)

DIMINISHING_START_LEVEL = 10
DIMINISHING_RATE = 0.008
DIMINISHING_FLOOR = 0.75
MIN_XP_AFTER_DIMINISHING = 10

CRIT_BASE = 0.25
CRIT_PER_AGILITY = 0.01
COMBO_EXPONENT = 1.5
COMBO_RATE = 0.02
MEGA_CRIT_TITLE = "Dagger Throw Master"
MEGA_CRIT_CHANCE_PER_AGILITY = 0.02
MEGA_CRIT_MULTIPLIER = 999.0


# ---------------------------------------------------------------------------
# XpBreakdown: output of the pipeline
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class XpBreakdown:
    """Every intermediate value of one award, for display and tests."""

    additive_base: float
    pool_percent: float
    after_pool: int
    after_title: int
    milestone_multiplier: float
    after_milestone: int
    after_diminishing: int
    crit_multiplier: float
    mega_crit: bool
    after_crit: int
    rank_multiplier: float
    total: int


# ---------------------------------------------------------------------------
# Stage 2: percentage pool
# ---------------------------------------------------------------------------
def strength_percent(strength: int) -> float:
    """2% per point up to 20 points, 0.5% per point beyond."""
    strength = max(strength, 0)
    return min(strength, 20) * 2.0 + max(strength - 20, 0) * 0.5


def intelligence_percent(intelligence: int, length: int) -> float:
    """Length-tiered rate per point; points past 15 earn a fifth of it."""
    intelligence = max(intelligence, 0)
    if length >= 400:
        rate = 12.0
    elif length >= 200:
        rate = 7.0
    else:
        rate = 3.0
    return min(intelligence, 15) * rate + max(intelligence - 15, 0) * (rate / 5)


def percentage_pool(
    snapshot: ProgressionSnapshot,
    length: int,
    stats: dict[str, int],
    external: ExternalBonuses = NO_EXTERNAL_BONUSES,
) -> float:
    """Uncapped sum of every percentage bonus source."""
    pool = external.skill_xp * 100
    if length > 200:
        pool += external.skill_long_message * 100
    pool += total_perception_buff_percent(snapshot)
    pool += strength_percent(stats["strength"])
    pool += intelligence_percent(stats["intelligence"], length)
    return max(pool, 0.0)


# ---------------------------------------------------------------------------
# Stage 4: milestones
# ---------------------------------------------------------------------------
def milestone_multiplier(level: int) -> float:
    multiplier = 1.0
    for threshold, value in MILESTONE_MULTIPLIERS:
        if level >= threshold:
            multiplier = value
    return multiplier


# ---------------------------------------------------------------------------
# Stage 5: level diminishing returns
# ---------------------------------------------------------------------------
def apply_level_diminishing(xp: int, level: int) -> int:
    if level <= DIMINISHING_START_LEVEL:
        return xp
    factor = max(1 / (1 + (level - DIMINISHING_START_LEVEL) * DIMINISHING_RATE), DIMINISHING_FLOOR)
    return max(round_half_up(xp * factor), MIN_XP_AFTER_DIMINISHING)


# ---------------------------------------------------------------------------
# Stage 6: critical hits
# ---------------------------------------------------------------------------
def critical_multiplier(agility: int, combo_count: int = 1) -> float:
    """Bonus multiplier (on top of 1×) for a critical hit."""
    agility_factor = max(agility, 0) * CRIT_PER_AGILITY
    combo_bonus = 0.0
    if combo_count > 1:
        combo_bonus = (combo_count - 1) ** COMBO_EXPONENT * COMBO_RATE
    return CRIT_BASE + agility_factor + combo_bonus * (1 + agility_factor)


def roll_mega_crit(
    active_title: str | None,
    agility: int,
    rng: random.Random | None = None,
) -> bool:
    """The title-gated 1000× easter egg."""
    if active_title != MEGA_CRIT_TITLE:
        return False
    rng = rng or random.Random()
    return rng.random() < max(agility, 0) * MEGA_CRIT_CHANCE_PER_AGILITY


# ---------------------------------------------------------------------------
# Full calculation pipeline
# ---------------------------------------------------------------------------
def calculate_xp(
    snapshot: ProgressionSnapshot,
    event: MessageSent,
    *,
    title_bonus: TitleBonus = NO_BONUS,
    external: ExternalBonuses = NO_EXTERNAL_BONUSES,
    critical: bool = False,
    combo_count: int = 1,
    rng: random.Random | None = None,
) -> XpBreakdown:
    """Run the full XP pipeline for one message.

    This is a PURE function of its arguments (plus *rng* for the mega-crit
    roll).  Stat-based bonuses use effective stats.

    Parameters
    ----------
    snapshot : state before the award (level, rank, stats, streak, buffs)
    event : the message
    title_bonus : bonus of the equipped title
    external : skill tree / shadow army bonuses
    critical : whether the message was a critical hit
    combo_count : crit combo length (1 = no combo)
    rng : random source for the mega-crit roll
    """
    length = event.effective_length
    stats = effective_stats(snapshot, title_bonus, external)

    # 1. Additive base
    base = additive_base(
        length,
        event.flags,
        hour=event.effective_hour,
        channel_id=event.channel_id,
        streak_days=snapshot.activity_streak.current_days,
    )

    # 2. Percentage pool, capped
    pool = percentage_pool(snapshot, length, stats, external)
    xp = round_half_up(base * (1 + min(pool, POOL_CAP_PERCENT) / 100))
    after_pool = xp

    # 3. Title
    if title_bonus.xp:
        xp = round_half_up(xp * (1 + title_bonus.xp))
    after_title = xp

    # 4. Milestone
    milestone = milestone_multiplier(snapshot.level)
    xp = round_half_up(xp * milestone)
    after_milestone = xp

    # 5. Level diminishing returns
    xp = apply_level_diminishing(xp, snapshot.level)
    after_diminishing = xp

    # 6. Critical hit
    crit_mult = 0.0
    mega = False
    if critical:
        crit_mult = critical_multiplier(stats["agility"], combo_count)
        if roll_mega_crit(snapshot.active_title, stats["agility"], rng):
            crit_mult = MEGA_CRIT_MULTIPLIER
            mega = True
            logger.info("MEGA CRIT! %s triggered a 1000x award", MEGA_CRIT_TITLE)
        xp = round_half_up(xp * (1 + crit_mult))
    after_crit = xp

    # 7. Rank
    rank_mult = RANK_XP_MULTIPLIERS.get(Rank(snapshot.rank), 1.0)
    xp = max(round_half_up(xp * rank_mult), 0)

    return XpBreakdown(
        additive_base=base,
        pool_percent=pool,
        after_pool=after_pool,
        after_title=after_title,
        milestone_multiplier=milestone,
        after_milestone=after_milestone,
        after_diminishing=after_diminishing,
        crit_multiplier=crit_mult,
        mega_crit=mega,
        after_crit=after_crit,
        rank_multiplier=rank_mult,
        total=xp,
    )
