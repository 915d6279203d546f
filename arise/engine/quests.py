"""
arise.engine.quests — Daily Quest Tracker
==========================================

Five fixed daily quests.  Progress accumulates toward a target, is clamped
there, and completes exactly once per calendar day.  Completion pays out XP
(scaled by vitality) and, for some quests, a stat point.

Functions here mutate the snapshot in place; callers pass a working copy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from arise.constants import QUEST_DEFINITIONS, round_half_up
from arise.engine.snapshot import ProgressionSnapshot, QuestState
from arise.engine.stats import (
    NO_EXTERNAL_BONUSES,
    ExternalBonuses,
    effective_stats,
    total_perception_buff_percent,
)

if TYPE_CHECKING:
    from arise.engine.achievements import TitleBonus

logger = logging.getLogger(__name__)

VITALITY_RATE = 0.05
VITALITY_SOFT_CAP = 10
VITALITY_OVERFLOW_RATE = 0.01


@dataclass(frozen=True, slots=True)
class QuestReward:
    quest_id: str
    xp: int
    stat_points: int


# ---------------------------------------------------------------------------
# Daily reset
# ---------------------------------------------------------------------------
def reset_if_new_day(snapshot: ProgressionSnapshot, today: date) -> bool:
    """Clear all quest progress if the stored reset date is not *today*.

    Returns True when a reset happened.
    """
    today_iso = today.isoformat()
    if snapshot.last_reset_date == today_iso:
        return False
    snapshot.daily_quests = {
        quest_id: QuestState(progress=0, target=target, completed=False)
        for quest_id, (_name, target, _xp, _points) in QUEST_DEFINITIONS.items()
    }
    snapshot.last_reset_date = today_iso
    logger.info("Daily quests reset for %s", today_iso)
    return True


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------
def vitality_reward_multiplier(
    snapshot: ProgressionSnapshot,
    title_bonus: TitleBonus | None = None,
    external: ExternalBonuses = NO_EXTERNAL_BONUSES,
) -> float:
    """Quest XP multiplier.

    ``1 + (vit * 0.05 + max(0, vit - 10) * 0.01)
       * (1 + perception% / 100 + skill_all_stat) + skill_quest``
    """
    vitality = effective_stats(snapshot, title_bonus, external)["vitality"]
    vitality_bonus = vitality * VITALITY_RATE + max(0, vitality - VITALITY_SOFT_CAP) * VITALITY_OVERFLOW_RATE
    scale = 1 + total_perception_buff_percent(snapshot) / 100 + external.skill_all_stat
    return 1 + vitality_bonus * scale + external.skill_quest


def update_progress(
    snapshot: ProgressionSnapshot,
    quest_id: str,
    delta: float,
    *,
    title_bonus: TitleBonus | None = None,
    external: ExternalBonuses = NO_EXTERNAL_BONUSES,
) -> QuestReward | None:
    """Advance one quest in place.

    No-op for unknown or already-completed quests and for non-positive
    deltas.  On reaching the target the quest completes and the reward is
    returned; the caller applies the XP through the normal XP path.  Stat
    points are credited here.
    """
    quest = snapshot.daily_quests.get(quest_id)
    definition = QUEST_DEFINITIONS.get(quest_id)
    if quest is None or definition is None or quest.completed:
        return None

    quest.progress = min(quest.progress + max(delta, 0), quest.target)
    if quest.progress < quest.target:
        return None

    quest.completed = True
    name, _target, base_xp, points = definition
    xp = round_half_up(base_xp * vitality_reward_multiplier(snapshot, title_bonus, external))
    snapshot.unallocated_stat_points += points
    logger.info("Quest complete: %s (+%d XP, +%d stat points)", name, xp, points)
    return QuestReward(quest_id=quest_id, xp=xp, stat_points=points)
