"""
arise.engine.ranks — Rank Ladder & Promotion
=============================================

A one-way state machine over the 13-tier ladder.  Rank R moves to the next
tier when the snapshot's level *and* unlocked-achievement count both meet
that tier's gates.  Each promotion adds the tier's stat bonus to all five
base stats, recomputes and refills the resource pools, and appends a history
entry.  There is no demotion.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from arise.constants import RANK_LADDER, STAT_NAMES, Rank, rank_index
from arise.engine.snapshot import ProgressionSnapshot, RankHistoryEntry
from arise.engine.stats import NO_EXTERNAL_BONUSES, ExternalBonuses, recompute_resource_pools

if TYPE_CHECKING:
    from arise.engine.achievements import TitleBonus

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RankRequirement:
    level: int
    achievements: int


RANK_REQUIREMENTS: dict[Rank, RankRequirement] = {
    Rank.E: RankRequirement(1, 0),
    Rank.D: RankRequirement(10, 2),
    Rank.C: RankRequirement(25, 5),
    Rank.B: RankRequirement(50, 10),
    Rank.A: RankRequirement(100, 15),
    Rank.S: RankRequirement(200, 20),
    Rank.SS: RankRequirement(300, 22),
    Rank.SSS: RankRequirement(400, 24),
    Rank.SSS_PLUS: RankRequirement(500, 26),
    Rank.NH: RankRequirement(700, 28),
    Rank.MONARCH: RankRequirement(1000, 30),
    Rank.MONARCH_PLUS: RankRequirement(1500, 33),
    Rank.SHADOW_MONARCH: RankRequirement(2000, 35),
}

# Added to every base stat on promotion *into* the tier
RANK_STAT_BONUSES: dict[Rank, int] = {
    Rank.D: 15,
    Rank.C: 25,
    Rank.B: 40,
    Rank.A: 60,
    Rank.S: 90,
    Rank.SS: 130,
    Rank.SSS: 180,
    Rank.SSS_PLUS: 240,
    Rank.NH: 310,
    Rank.MONARCH: 400,
    Rank.MONARCH_PLUS: 500,
    Rank.SHADOW_MONARCH: 650,
}

RANK_XP_MULTIPLIERS: dict[Rank, float] = {
    Rank.E: 1.0,
    Rank.D: 1.1,
    Rank.C: 1.2,
    Rank.B: 1.3,
    Rank.A: 1.4,
    Rank.S: 1.5,
    Rank.SS: 1.7,
    Rank.SSS: 1.9,
    Rank.SSS_PLUS: 2.1,
    Rank.NH: 2.3,
    Rank.MONARCH: 2.6,
    Rank.MONARCH_PLUS: 3.0,
    Rank.SHADOW_MONARCH: 3.5,
}


def next_rank(rank: Rank) -> Rank | None:
    """The tier after *rank*, or None at the ceiling."""
    idx = rank_index(rank)
    return RANK_LADDER[idx + 1] if idx + 1 < len(RANK_LADDER) else None


def can_promote(snapshot: ProgressionSnapshot) -> Rank | None:
    """Return the tier *snapshot* qualifies for next, if any."""
    target = next_rank(snapshot.rank)
    if target is None:
        return None
    req = RANK_REQUIREMENTS[target]
    if snapshot.level >= req.level and snapshot.achievement_count >= req.achievements:
        return target
    return None


def evaluate_promotion(
    snapshot: ProgressionSnapshot,
    *,
    title_bonus: TitleBonus | None = None,
    external: ExternalBonuses = NO_EXTERNAL_BONUSES,
    now: float | None = None,
) -> list[Rank]:
    """Promote in place, one tier at a time, while the gates hold.

    A snapshot restored far above its stored rank climbs through every
    intermediate tier and collects each tier's bonus once.  At the ceiling
    this is a no-op.

    Returns
    -------
    The ranks entered, in order (empty if no promotion happened).
    """
    promoted: list[Rank] = []
    while (target := can_promote(snapshot)) is not None:
        bonus = RANK_STAT_BONUSES.get(target, 0)
        for stat in STAT_NAMES:
            snapshot.base_stats[stat] = snapshot.base_stats.get(stat, 0) + bonus
        snapshot.rank = target
        recompute_resource_pools(snapshot, restore=True, title_bonus=title_bonus, external=external)
        snapshot.rank_history.append(
            RankHistoryEntry(
                rank=str(target),
                level=snapshot.level,
                achievement_count=snapshot.achievement_count,
                timestamp=time.time() if now is None else now,
            )
        )
        logger.info(
            "Rank up → %s (level %d, %d achievements, +%d all stats)",
            target, snapshot.level, snapshot.achievement_count, bonus,
        )
        promoted.append(target)
    return promoted
