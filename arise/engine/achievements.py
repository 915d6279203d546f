"""
arise.engine.achievements — Achievement & Title Registry
=========================================================

A static catalog of achievements, each gated by exactly one condition and
(optionally) granting an equippable title.  Conditions are a closed union of
frozen dataclasses; :func:`condition_met` has one branch per variant and
ends in :func:`typing.assert_never`, so a new variant without an evaluator
is a type error rather than a silent ``False``.

Title bonuses are fractions: ``xp=0.12`` is +12% XP, ``strength_percent=0.10``
is +10% effective strength.

This module is pure calculation — no database I/O.  Functions documented as
"in place" mutate the snapshot they are given; callers hand them a working
copy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import assert_never

from arise.constants import STAT_NAMES
from arise.engine.snapshot import RETIRED_TITLES, ProgressionSnapshot

logger = logging.getLogger(__name__)

# Sentinel accepted by set_active_title to unequip
NO_TITLE = "none"

# Legacy catalog entries granted flat stat points; each point is now 5%
PERCENT_PER_STAT_POINT = 0.05


# ---------------------------------------------------------------------------
# Conditions: closed tagged union
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class MessagesSent:
    value: int


@dataclass(frozen=True, slots=True)
class CharactersTyped:
    value: int


@dataclass(frozen=True, slots=True)
class LevelReached:
    value: int


@dataclass(frozen=True, slots=True)
class TimeActive:
    """Active minutes."""

    value: float


@dataclass(frozen=True, slots=True)
class UniqueChannels:
    value: int


@dataclass(frozen=True, slots=True)
class AchievementCount:
    value: int


@dataclass(frozen=True, slots=True)
class CritsLanded:
    value: int


@dataclass(frozen=True, slots=True)
class StatAtLeast:
    """Base (unbuffed) stat threshold."""

    stat: str
    value: int


Condition = (
    MessagesSent
    | CharactersTyped
    | LevelReached
    | TimeActive
    | UniqueChannels
    | AchievementCount
    | CritsLanded
    | StatAtLeast
)


def condition_met(condition: Condition, snapshot: ProgressionSnapshot) -> bool:
    """Evaluate one condition against the snapshot's counters."""
    activity = snapshot.activity
    match condition:
        case MessagesSent(value):
            return activity.messages_sent >= value
        case CharactersTyped(value):
            return activity.characters_typed >= value
        case LevelReached(value):
            return snapshot.level >= value
        case TimeActive(value):
            return activity.time_active_minutes >= value
        case UniqueChannels(value):
            return len(activity.unique_channels_visited) >= value
        case AchievementCount(value):
            return snapshot.achievement_count >= value
        case CritsLanded(value):
            return activity.crits_landed >= value
        case StatAtLeast(stat, value):
            return snapshot.base_stats.get(stat, 0) >= value
        case _:
            assert_never(condition)


# ---------------------------------------------------------------------------
# TitleBonus
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TitleBonus:
    """Bonuses granted while a title is equipped."""

    xp: float = 0.0
    crit_chance: float = 0.0
    strength_percent: float = 0.0
    agility_percent: float = 0.0
    intelligence_percent: float = 0.0
    vitality_percent: float = 0.0
    perception_percent: float = 0.0

    @classmethod
    def from_points(cls, xp: float = 0.0, crit_chance: float = 0.0, **points: int) -> TitleBonus:
        """Build a bonus from the legacy flat-point notation.

        ``TitleBonus.from_points(0.4, strength=2)`` → +40% XP, +10% strength.
        ``luck`` is accepted as the old name for perception.
        """
        percents: dict[str, float] = {}
        for stat, amount in points.items():
            stat = "perception" if stat == "luck" else stat
            if stat not in STAT_NAMES:
                raise ValueError(f"Unknown stat in title bonus: {stat!r}")
            percents[f"{stat}_percent"] = amount * PERCENT_PER_STAT_POINT
        return cls(xp=xp, crit_chance=crit_chance, **percents)

    def stat_percent(self, stat: str) -> float:
        return getattr(self, f"{stat}_percent", 0.0)

    def sort_value(self, field_name: str) -> float:
        """Value of *field_name*, accepting bare stat names as shorthand."""
        if field_name in STAT_NAMES:
            field_name = f"{field_name}_percent"
        if field_name not in TitleBonus.__dataclass_fields__:
            raise ValueError(f"Cannot sort titles by {field_name!r}")
        return getattr(self, field_name)


NO_BONUS = TitleBonus()


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Achievement:
    id: str
    name: str
    description: str
    condition: Condition
    title: str | None = None
    title_bonus: TitleBonus | None = None


def _entry(
    achievement_id: str,
    name: str,
    description: str,
    condition: Condition,
    bonus: TitleBonus,
) -> Achievement:
    # Every catalog entry's title matches its name
    return Achievement(achievement_id, name, description, condition, name, bonus)


_b = TitleBonus.from_points

ACHIEVEMENTS: tuple[Achievement, ...] = (
    # Messages
    _entry("weakest_hunter", "The Weakest Hunter", "Send 50 messages", MessagesSent(50), _b(0.03, strength=1)),
    _entry("e_rank", "E-Rank Hunter", "Send 200 messages", MessagesSent(200), _b(0.08)),
    _entry("d_rank", "D-Rank Hunter", "Send 500 messages", MessagesSent(500), _b(0.12)),
    _entry("c_rank", "C-Rank Hunter", "Send 1,000 messages", MessagesSent(1000), _b(0.18)),
    _entry("b_rank", "B-Rank Hunter", "Send 2,500 messages", MessagesSent(2500), _b(0.25)),
    _entry("a_rank", "A-Rank Hunter", "Send 5,000 messages", MessagesSent(5000), _b(0.32)),
    _entry("s_rank", "S-Rank Hunter", "Send 10,000 messages", MessagesSent(10000), _b(0.40, 0.02, strength=2)),
    # Characters
    _entry("shadow_extraction", "Shadow Extraction", "Type 25,000 characters", CharactersTyped(25000), _b(0.15, 0.02, agility=1)),
    _entry("domain_expansion", "Domain Expansion", "Type 75,000 characters", CharactersTyped(75000), _b(0.22)),
    _entry("ruler_authority", "Ruler's Authority", "Type 150,000 characters", CharactersTyped(150000), _b(0.30)),
    # Level
    _entry("awakened", "The Awakened", "Reach Level 15", LevelReached(15), _b(0.10)),
    _entry("shadow_army", "Shadow Army Commander", "Reach Level 30", LevelReached(30), _b(0.20)),
    _entry("necromancer", "Necromancer", "Reach Level 50", LevelReached(50), _b(0.28)),
    _entry("national_level", "National Level Hunter", "Reach Level 75", LevelReached(75), _b(0.35)),
    _entry("monarch_candidate", "Monarch Candidate", "Reach Level 100", LevelReached(100), _b(0.42)),
    # Time active
    _entry("dungeon_grinder", "Dungeon Grinder", "Be active for 5 hours", TimeActive(300), _b(0.06)),
    _entry("gate_explorer", "Gate Explorer", "Be active for 20 hours", TimeActive(1200), _b(0.14)),
    _entry("raid_veteran", "Raid Veteran", "Be active for 50 hours", TimeActive(3000), _b(0.24)),
    _entry("eternal_hunter", "Eternal Hunter", "Be active for 100 hours", TimeActive(6000), _b(0.33)),
    # Channels
    _entry("gate_traveler", "Gate Traveler", "Visit 5 unique channels", UniqueChannels(5), _b(0.04)),
    _entry("dungeon_master", "Dungeon Master", "Visit 15 unique channels", UniqueChannels(15), _b(0.11)),
    _entry("dimension_walker", "Dimension Walker", "Visit 30 unique channels", UniqueChannels(30), _b(0.19)),
    _entry("realm_conqueror", "Realm Conqueror", "Visit 50 unique channels", UniqueChannels(50), _b(0.27)),
    # Monarch tier
    _entry("shadow_monarch", "Shadow Monarch", "Reach Level 50", LevelReached(50), _b(0.38, 0.03, agility=2, strength=1)),
    _entry("monarch_of_destruction", "Monarch of Destruction", "Reach Level 75", LevelReached(75), _b(0.45)),
    _entry(
        "the_ruler", "The Ruler", "Reach Level 100", LevelReached(100),
        _b(0.50, 0.05, strength=2, agility=2, intelligence=2, vitality=2, luck=1),
    ),
    _entry("sung_jin_woo", "Sung Jin-Woo", "Reach Level 50", LevelReached(50), _b(0.35)),
    _entry("the_weakest", "The Weakest", "Send your first 10 messages", MessagesSent(10), _b(0.02)),
    _entry("s_rank_jin_woo", "S-Rank Hunter Jin-Woo", "Reach Level 50", LevelReached(50), _b(0.42)),
    _entry("shadow_sovereign", "Shadow Sovereign", "Reach Level 60", LevelReached(60), _b(0.40)),
    _entry(
        "ashborn_successor", "Ashborn's Successor", "Reach Level 75", LevelReached(75),
        _b(0.48, 0.04, intelligence=2, agility=2),
    ),
    _entry("arise", "Arise", "Unlock 10 achievements", AchievementCount(10), _b(0.12)),
    _entry("shadow_exchange", "Shadow Exchange", "Send 3,000 messages", MessagesSent(3000), _b(0.20)),
    _entry(
        "dagger_throw_master", "Dagger Throw Master",
        "Land 1,000 critical hits. Special: agility-scaled chance of a 1000x crit",
        CritsLanded(1000), _b(0.25, 0.05, agility=2),
    ),
    _entry("stealth_master", "Stealth Master", "Be active for 30 hours", TimeActive(1800), _b(0.18)),
    _entry(
        "mana_manipulator", "Mana Manipulator", "Reach 15 Intelligence",
        StatAtLeast("intelligence", 15), _b(0.22, intelligence=2),
    ),
    _entry("shadow_storage", "Shadow Storage", "Visit 25 unique channels", UniqueChannels(25), _b(0.16)),
    _entry("beast_monarch", "Beast Monarch", "Reach 15 Strength", StatAtLeast("strength", 15), _b(0.28, strength=2)),
    _entry("frost_monarch", "Frost Monarch", "Send 8,000 messages", MessagesSent(8000), _b(0.30)),
    _entry("plague_monarch", "Plague Monarch", "Reach Level 65", LevelReached(65), _b(0.32)),
    _entry(
        "monarch_white_flames", "Monarch of White Flames", "Land 500 critical hits",
        CritsLanded(500), _b(0.26, 0.04, agility=1),
    ),
    _entry("monarch_transfiguration", "Monarch of Transfiguration", "Reach Level 70", LevelReached(70), _b(0.34)),
    _entry("shadow_soldier", "Shadow Soldier", "Land 100 critical hits", CritsLanded(100), _b(0.08, 0.01, agility=1)),
    _entry(
        "kamish_slayer", "Kamish Slayer", "Reach Level 80", LevelReached(80),
        _b(0.40, 0.05, strength=2, agility=2),
    ),
    _entry(
        "demon_tower_conqueror", "Demon Tower Conqueror", "Reach Level 60", LevelReached(60),
        _b(0.32, intelligence=2, vitality=1),
    ),
    _entry(
        "double_awakening", "Double Awakening", "Reach Level 25", LevelReached(25),
        _b(0.15, 0.02, strength=1, agility=1),
    ),
    _entry(
        "system_user", "System User", "Unlock 15 achievements", AchievementCount(15),
        _b(0.20, intelligence=2, luck=1),
    ),
    _entry(
        "instant_dungeon_master", "Instant Dungeon Master", "Type 200,000 characters",
        CharactersTyped(200000), _b(0.35, intelligence=2, vitality=2),
    ),
    _entry(
        "shadow_army_general", "Shadow Army General", "Reach Level 55", LevelReached(55),
        _b(0.30, 0.03, agility=2, strength=1),
    ),
    _entry(
        "monarch_of_beasts", "Monarch of Beasts", "Reach 18 Strength",
        StatAtLeast("strength", 18), _b(0.32, 0.02, strength=3),
    ),
    _entry(
        "monarch_of_insects", "Monarch of Insects", "Send 12,000 messages",
        MessagesSent(12000), _b(0.42, agility=2, intelligence=1),
    ),
    _entry(
        "monarch_of_iron_body", "Monarch of Iron Body", "Reach 18 Vitality",
        StatAtLeast("vitality", 18), _b(0.30, vitality=3, strength=1),
    ),
    _entry(
        "monarch_of_beginning", "Monarch of Beginning", "Reach Level 90", LevelReached(90),
        _b(0.45, 0.04, strength=2, agility=2, intelligence=2),
    ),
    _entry(
        "absolute_ruler", "Absolute Ruler", "Reach Level 120", LevelReached(120),
        _b(0.52, 0.06, strength=3, agility=3, intelligence=2, vitality=2, luck=2),
    ),
    _entry(
        "shadow_sovereign_heir", "Shadow Sovereign Heir", "Reach Level 85", LevelReached(85),
        _b(0.43, 0.05, agility=3, intelligence=2),
    ),
    _entry(
        "ruler_of_chaos", "Ruler of Chaos", "Reach Level 110", LevelReached(110),
        _b(0.48, 0.05, strength=2, agility=2, luck=2),
    ),
)

ACHIEVEMENTS_BY_ID: dict[str, Achievement] = {a.id: a for a in ACHIEVEMENTS}

TITLE_BONUSES: dict[str, TitleBonus] = {
    a.title: a.title_bonus or NO_BONUS for a in ACHIEVEMENTS if a.title
}


# ---------------------------------------------------------------------------
# Unlocking
# ---------------------------------------------------------------------------
def unlock(snapshot: ProgressionSnapshot, achievement: Achievement) -> bool:
    """Unlock one achievement in place.  Returns False if already unlocked.

    The title is granted, and equipped when nothing is equipped yet.
    """
    if achievement.id in snapshot.unlocked_achievement_ids:
        return False
    snapshot.unlocked_achievement_ids.add(achievement.id)
    if achievement.title and achievement.title not in RETIRED_TITLES:
        snapshot.unlocked_titles.add(achievement.title)
        if snapshot.active_title is None:
            snapshot.active_title = achievement.title
    logger.info("Achievement unlocked: %s (%s)", achievement.name, achievement.id)
    return True


def check_achievements(snapshot: ProgressionSnapshot) -> list[Achievement]:
    """Unlock every satisfied achievement in place, in catalog order.

    Repeats the scan until nothing new unlocks, since an unlock can satisfy
    an :class:`AchievementCount` condition earlier in the catalog.

    Returns
    -------
    The newly unlocked achievements, in unlock order.
    """
    newly_unlocked: list[Achievement] = []
    while True:
        unlocked_this_pass = False
        for achievement in ACHIEVEMENTS:
            if achievement.id in snapshot.unlocked_achievement_ids:
                continue
            if condition_met(achievement.condition, snapshot) and unlock(snapshot, achievement):
                newly_unlocked.append(achievement)
                unlocked_this_pass = True
        if not unlocked_this_pass:
            return newly_unlocked


# ---------------------------------------------------------------------------
# Titles
# ---------------------------------------------------------------------------
def set_active_title(snapshot: ProgressionSnapshot, title: str | None) -> bool:
    """Equip *title* in place.

    ``None``, ``""`` and ``"none"`` unequip.  Returns False (and changes
    nothing) when the title is not unlocked or is retired.
    """
    if title is None or title == "" or title.lower() == NO_TITLE:
        snapshot.active_title = None
        return True
    if title in RETIRED_TITLES or title not in snapshot.unlocked_titles:
        return False
    snapshot.active_title = title
    return True


def get_active_title_bonus(snapshot: ProgressionSnapshot) -> TitleBonus:
    """Bonus of the equipped title, or an all-zero bonus."""
    if snapshot.active_title is None:
        return NO_BONUS
    return TITLE_BONUSES.get(snapshot.active_title, NO_BONUS)


def sorted_titles(snapshot: ProgressionSnapshot, sort_by: str = "xp") -> list[str]:
    """Unlocked titles ordered by one bonus field, highest first.

    *sort_by* is ``"xp"``, ``"crit_chance"``, or a stat name (with or
    without the ``_percent`` suffix).  Ties fall back to alphabetical order.

    Raises
    ------
    ValueError
        Unknown *sort_by* field.
    """
    NO_BONUS.sort_value(sort_by)
    return sorted(
        snapshot.unlocked_titles,
        key=lambda t: (-TITLE_BONUSES.get(t, NO_BONUS).sort_value(sort_by), t),
    )
