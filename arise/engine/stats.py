"""
arise.engine.stats — Stat & Buff Model
========================================

Base stats, effective stats, perception buffs, point allocation and the
HP / mana resource pools.  Pure functions over a
:class:`~arise.engine.snapshot.ProgressionSnapshot`; the only side effect is
drawing from the injected random source when a perception buff is rolled.

Effective stat::

    round(round(base * (1 + title_percent)) * (1 + shadow_ally_percent))

Title first (exactly one title can be active), then the shadow-ally
percentage published by the shadow army subsystem.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from arise.constants import STAT_NAMES, rank_index, round_half_up
from arise.engine.snapshot import PerceptionBuff, ProgressionSnapshot
from arise.errors import InvalidStatName, NoPointsAvailable

if TYPE_CHECKING:
    from arise.engine.achievements import TitleBonus

logger = logging.getLogger(__name__)

# Accepted spellings → canonical stat name
STAT_ALIASES: dict[str, str] = {
    "str": "strength",
    "agi": "agility",
    "int": "intelligence",
    "vit": "vitality",
    "per": "perception",
    "luck": "perception",
    "luk": "perception",
}

PERCEPTION_BUFF_MIN = 2.0
PERCEPTION_BUFF_SPREAD = 3.0

BASE_HP = 100
HP_PER_VITALITY = 10
HP_PER_RANK = 50
BASE_MANA = 100
MANA_PER_INTELLIGENCE = 10
MANA_PER_SHADOW = 50

AGILITY_CRIT_PER_POINT = 0.02
AGILITY_CRIT_CAP = 0.25


# ---------------------------------------------------------------------------
# ExternalBonuses: read-only view of sibling subsystem state
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ExternalBonuses:
    """Bonuses owned by other subsystems, as last published.

    Every field defaults to zero so that absent or stale shared data simply
    contributes nothing.  Skill-tree values are fractions (0.10 = 10%).
    """

    skill_xp: float = 0.0
    skill_long_message: float = 0.0
    skill_all_stat: float = 0.0
    skill_quest: float = 0.0
    shadow_stat_percents: Mapping[str, float] = field(default_factory=dict)
    shadow_count: int = 0
    combo_count: int = 0

    def shadow_percent(self, stat: str) -> float:
        return float(self.shadow_stat_percents.get(stat, 0.0))


NO_EXTERNAL_BONUSES = ExternalBonuses()


# ---------------------------------------------------------------------------
# Names
# ---------------------------------------------------------------------------
def normalize_stat_name(stat_name: str) -> str:
    """Map user input onto one of :data:`~arise.constants.STAT_NAMES`.

    Raises
    ------
    InvalidStatName
        If the name is not a stat or a known alias.
    """
    if not isinstance(stat_name, str):
        raise InvalidStatName(stat_name)
    key = stat_name.strip().lower()
    key = STAT_ALIASES.get(key, key)
    if key not in STAT_NAMES:
        raise InvalidStatName(stat_name)
    return key


# ---------------------------------------------------------------------------
# Effective stats
# ---------------------------------------------------------------------------
def effective_stat(
    base: int,
    title_percent: float = 0.0,
    shadow_percent: float = 0.0,
) -> int:
    with_title = round_half_up(max(base, 0) * (1 + title_percent))
    return max(round_half_up(with_title * (1 + shadow_percent)), 0)


def effective_stats(
    snapshot: ProgressionSnapshot,
    title_bonus: TitleBonus | None = None,
    external: ExternalBonuses = NO_EXTERNAL_BONUSES,
) -> dict[str, int]:
    """Effective value of every stat after title and shadow-ally bonuses."""
    return {
        stat: effective_stat(
            snapshot.base_stats.get(stat, 0),
            title_bonus.stat_percent(stat) if title_bonus else 0.0,
            external.shadow_percent(stat),
        )
        for stat in STAT_NAMES
    }


# ---------------------------------------------------------------------------
# Perception buffs
# ---------------------------------------------------------------------------
def perception_buff_percent(snapshot: ProgressionSnapshot, stat: str) -> float:
    """Sum of perception buffs targeting *stat*."""
    return sum(b.percent for b in snapshot.perception_buffs if b.target_stat == stat)


def total_perception_buff_percent(snapshot: ProgressionSnapshot) -> float:
    """Sum of every perception buff — the amount fed into the XP pool."""
    return sum(b.percent for b in snapshot.perception_buffs)


def roll_perception_buff(rng: random.Random | None = None) -> PerceptionBuff:
    """One buff: 2.0–5.0% (one decimal) on a uniformly random stat."""
    rng = rng or random.Random()
    percent = round(rng.random() * PERCEPTION_BUFF_SPREAD + PERCEPTION_BUFF_MIN, 1)
    return PerceptionBuff(target_stat=rng.choice(STAT_NAMES), percent=percent)


# ---------------------------------------------------------------------------
# Resource pools
# ---------------------------------------------------------------------------
def compute_pool_maxima(
    snapshot: ProgressionSnapshot,
    title_bonus: TitleBonus | None = None,
    external: ExternalBonuses = NO_EXTERNAL_BONUSES,
) -> tuple[int, int]:
    """Return ``(max_hp, max_mana)`` for the snapshot's current stats and rank."""
    stats = effective_stats(snapshot, title_bonus, external)
    max_hp = BASE_HP + stats["vitality"] * HP_PER_VITALITY + rank_index(snapshot.rank) * HP_PER_RANK
    max_mana = (
        BASE_MANA
        + stats["intelligence"] * MANA_PER_INTELLIGENCE
        + max(external.shadow_count, 0) * MANA_PER_SHADOW
    )
    return max_hp, max_mana


def recompute_resource_pools(
    snapshot: ProgressionSnapshot,
    *,
    restore: bool,
    title_bonus: TitleBonus | None = None,
    external: ExternalBonuses = NO_EXTERNAL_BONUSES,
) -> None:
    """Recompute pool maxima in place.

    With ``restore`` the current values are refilled to the new maxima
    (level-up, promotion).  Otherwise they grow by however much the maximum
    grew and are clamped to it.
    """
    pools = snapshot.resource_pools
    max_hp, max_mana = compute_pool_maxima(snapshot, title_bonus, external)
    if restore:
        pools.hp, pools.mana = max_hp, max_mana
    else:
        pools.hp = min(pools.hp + max(max_hp - pools.max_hp, 0), max_hp)
        pools.mana = min(pools.mana + max(max_mana - pools.max_mana, 0), max_mana)
    pools.max_hp, pools.max_mana = max_hp, max_mana


# ---------------------------------------------------------------------------
# Allocation
# ---------------------------------------------------------------------------
def allocate_stat_point(
    snapshot: ProgressionSnapshot,
    stat_name: str,
    *,
    rng: random.Random | None = None,
    title_bonus: TitleBonus | None = None,
    external: ExternalBonuses = NO_EXTERNAL_BONUSES,
) -> ProgressionSnapshot:
    """Spend one unallocated point on *stat_name*.

    Returns a new snapshot; *snapshot* itself is never modified.

    Raises
    ------
    InvalidStatName
        Unknown stat.
    NoPointsAvailable
        ``unallocated_stat_points`` is zero.
    """
    stat = normalize_stat_name(stat_name)
    if snapshot.unallocated_stat_points <= 0:
        raise NoPointsAvailable()

    updated = snapshot.copy()
    updated.base_stats[stat] = updated.base_stats.get(stat, 0) + 1
    updated.unallocated_stat_points -= 1

    if stat == "perception":
        buff = roll_perception_buff(rng)
        updated.perception_buffs.append(buff)
        logger.info("Perception buff rolled: +%.1f%% %s", buff.percent, buff.target_stat)

    recompute_resource_pools(updated, restore=False, title_bonus=title_bonus, external=external)
    logger.info("Allocated 1 point to %s (now %d)", stat, updated.base_stats[stat])
    return updated


# ---------------------------------------------------------------------------
# Shared crit values
# ---------------------------------------------------------------------------
def agility_crit_bonus(
    snapshot: ProgressionSnapshot,
    title_bonus: TitleBonus | None = None,
    external: ExternalBonuses = NO_EXTERNAL_BONUSES,
) -> float:
    """Crit chance contributed by agility, published for the crit detector.

    Scaled by the perception buff total, plus the active title's crit chance,
    capped at 25%.
    """
    agility = effective_stats(snapshot, title_bonus, external)["agility"]
    bonus = agility * AGILITY_CRIT_PER_POINT * (1 + total_perception_buff_percent(snapshot) / 100)
    if title_bonus is not None:
        bonus += title_bonus.crit_chance
    return min(bonus, AGILITY_CRIT_CAP)


def perception_crit_bonus(snapshot: ProgressionSnapshot) -> float:
    return total_perception_buff_percent(snapshot) / 100


