"""
arise.engine.snapshot — ProgressionSnapshot & Serialization
============================================================

The root entity: the complete progression state for one user.  Engine
functions receive a snapshot, work on a copy, and hand the copy back; the
live instance held by the service is only ever swapped, never half-edited.

Serialization produces a flat, JSON-compatible dict (sets become sorted
lists).  Loading migrates the legacy plugin layout (camelCase keys, a
``luck`` stat, bare-float ``luckBuffs``, nested ``achievements`` and
``dailyQuests`` blocks) and validates the result.
"""

from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from arise.constants import (
    QUEST_DEFINITIONS,
    STAT_NAMES,
    Rank,
    resolve_level,
)
from arise.errors import CorruptSnapshot, SaveRejected

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

# Titles from retired achievements.  Purged from every loaded snapshot.
RETIRED_TITLES: frozenset[str] = frozenset({
    "Scribe",
    "Wordsmith",
    "Author",
    "Explorer",
    "Wanderer",
    "Apprentice",
    "Message Warrior",
})


# ---------------------------------------------------------------------------
# Component records
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class PerceptionBuff:
    """One random buff rolled when a perception point was allocated."""

    target_stat: str
    percent: float


@dataclass(slots=True)
class QuestState:
    progress: float = 0
    target: float = 0
    completed: bool = False


@dataclass(slots=True)
class ActivityCounters:
    messages_sent: int = 0
    characters_typed: int = 0
    time_active_minutes: float = 0.0
    crits_landed: int = 0
    unique_channels_visited: set[str] = field(default_factory=set)


@dataclass(slots=True)
class ActivityStreak:
    """Consecutive calendar days with at least one message."""

    current_days: int = 0
    last_active_date: str | None = None  # ISO date


@dataclass(slots=True)
class ResourcePools:
    hp: int = 100
    max_hp: int = 100
    mana: int = 100
    max_mana: int = 100


@dataclass(slots=True)
class RankHistoryEntry:
    rank: str
    level: int
    achievement_count: int
    timestamp: float


def default_daily_quests() -> dict[str, QuestState]:
    return {
        quest_id: QuestState(progress=0, target=target, completed=False)
        for quest_id, (_name, target, _xp, _points) in QUEST_DEFINITIONS.items()
    }


def default_base_stats() -> dict[str, int]:
    return {name: 0 for name in STAT_NAMES}


# ---------------------------------------------------------------------------
# ProgressionSnapshot: the root entity
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class ProgressionSnapshot:
    """Complete serializable progression state for one user.

    ``level`` and ``current_level_xp`` are caches of
    :func:`~arise.constants.resolve_level` applied to ``total_xp`` and are
    recomputed whenever ``total_xp`` changes.
    """

    schema_version: int = SCHEMA_VERSION
    total_xp: int = 0
    level: int = 1
    current_level_xp: int = 0
    rank: Rank = Rank.E
    base_stats: dict[str, int] = field(default_factory=default_base_stats)
    unallocated_stat_points: int = 0
    perception_buffs: list[PerceptionBuff] = field(default_factory=list)
    unlocked_achievement_ids: set[str] = field(default_factory=set)
    unlocked_titles: set[str] = field(default_factory=set)
    active_title: str | None = None
    daily_quests: dict[str, QuestState] = field(default_factory=default_daily_quests)
    last_reset_date: str | None = None  # ISO date
    activity: ActivityCounters = field(default_factory=ActivityCounters)
    activity_streak: ActivityStreak = field(default_factory=ActivityStreak)
    resource_pools: ResourcePools = field(default_factory=ResourcePools)
    rank_history: list[RankHistoryEntry] = field(default_factory=list)

    @property
    def achievement_count(self) -> int:
        return len(self.unlocked_achievement_ids)

    def copy(self) -> ProgressionSnapshot:
        """Deep copy — the unit of work for every engine transition."""
        return copy.deepcopy(self)

    def reconcile_level(self) -> None:
        """Recompute the cached level fields from ``total_xp``."""
        info = resolve_level(self.total_xp)
        self.level = info.level
        self.current_level_xp = info.current_level_xp


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------
def snapshot_to_dict(snapshot: ProgressionSnapshot) -> dict[str, Any]:
    """Flatten *snapshot* into a JSON-compatible dict."""
    return {
        "schema_version": SCHEMA_VERSION,
        "total_xp": snapshot.total_xp,
        "level": snapshot.level,
        "current_level_xp": snapshot.current_level_xp,
        "rank": str(snapshot.rank),
        "base_stats": dict(snapshot.base_stats),
        "unallocated_stat_points": snapshot.unallocated_stat_points,
        "perception_buffs": [
            {"target_stat": b.target_stat, "percent": b.percent}
            for b in snapshot.perception_buffs
        ],
        "unlocked_achievement_ids": sorted(snapshot.unlocked_achievement_ids),
        "unlocked_titles": sorted(snapshot.unlocked_titles),
        "active_title": snapshot.active_title,
        "daily_quests": {
            quest_id: {
                "progress": q.progress,
                "target": q.target,
                "completed": q.completed,
            }
            for quest_id, q in snapshot.daily_quests.items()
        },
        "last_reset_date": snapshot.last_reset_date,
        "activity": {
            "messages_sent": snapshot.activity.messages_sent,
            "characters_typed": snapshot.activity.characters_typed,
            "time_active_minutes": snapshot.activity.time_active_minutes,
            "crits_landed": snapshot.activity.crits_landed,
            "unique_channels_visited": sorted(snapshot.activity.unique_channels_visited),
        },
        "activity_streak": {
            "current_days": snapshot.activity_streak.current_days,
            "last_active_date": snapshot.activity_streak.last_active_date,
        },
        "resource_pools": {
            "hp": snapshot.resource_pools.hp,
            "max_hp": snapshot.resource_pools.max_hp,
            "mana": snapshot.resource_pools.mana,
            "max_mana": snapshot.resource_pools.max_mana,
        },
        "rank_history": [
            {
                "rank": e.rank,
                "level": e.level,
                "achievement_count": e.achievement_count,
                "timestamp": e.timestamp,
            }
            for e in snapshot.rank_history
        ],
    }


def snapshot_from_dict(data: Any) -> ProgressionSnapshot:
    """Rebuild a snapshot from a stored dict, migrating legacy layouts.

    Raises
    ------
    CorruptSnapshot
        If the payload is not a dict, has ``level < 1``, a negative /
        NaN / non-numeric XP total, an unknown rank, or a nested block of
        the wrong shape.
    """
    if not isinstance(data, dict):
        raise CorruptSnapshot(f"Snapshot payload must be a dict, got {type(data).__name__}")
    try:
        return _build_snapshot(data)
    except CorruptSnapshot:
        raise
    except (TypeError, AttributeError, KeyError, ValueError) as exc:
        raise CorruptSnapshot(f"Malformed snapshot payload: {exc}") from exc


def _build_snapshot(data: dict[str, Any]) -> ProgressionSnapshot:
    if int(_num(data.get("schema_version"), 1)) < SCHEMA_VERSION:
        data = migrate_legacy(data)

    _validate_core(data, CorruptSnapshot)

    try:
        rank = Rank(data.get("rank", Rank.E))
    except ValueError:
        raise CorruptSnapshot(f"Unknown rank: {data.get('rank')!r}") from None

    stats_raw = data.get("base_stats") or {}
    base_stats = {
        name: max(0, int(_num(stats_raw.get(name), 0))) for name in STAT_NAMES
    }

    buffs = [
        PerceptionBuff(target_stat=str(b["target_stat"]), percent=float(b["percent"]))
        for b in data.get("perception_buffs") or []
        if isinstance(b, dict)
        and b.get("target_stat") in STAT_NAMES
        and _is_finite(b.get("percent"))
    ]

    quests = default_daily_quests()
    for quest_id, raw in (data.get("daily_quests") or {}).items():
        if quest_id not in quests or not isinstance(raw, dict):
            continue
        target = quests[quest_id].target
        progress = min(max(_num(raw.get("progress"), 0), 0), target)
        quests[quest_id] = QuestState(
            progress=progress,
            target=target,
            completed=bool(raw.get("completed", False)),
        )

    act_raw = data.get("activity") or {}
    activity = ActivityCounters(
        messages_sent=max(0, int(_num(act_raw.get("messages_sent"), 0))),
        characters_typed=max(0, int(_num(act_raw.get("characters_typed"), 0))),
        time_active_minutes=max(0.0, float(_num(act_raw.get("time_active_minutes"), 0))),
        crits_landed=max(0, int(_num(act_raw.get("crits_landed"), 0))),
        unique_channels_visited={
            str(c) for c in act_raw.get("unique_channels_visited") or []
        },
    )

    streak_raw = data.get("activity_streak") or {}
    streak = ActivityStreak(
        current_days=max(0, int(_num(streak_raw.get("current_days"), 0))),
        last_active_date=_parse_date(streak_raw.get("last_active_date")),
    )

    pools_raw = data.get("resource_pools") or {}
    defaults = ResourcePools()
    pools = ResourcePools(
        hp=int(_num(pools_raw.get("hp"), defaults.hp)),
        max_hp=int(_num(pools_raw.get("max_hp"), defaults.max_hp)),
        mana=int(_num(pools_raw.get("mana"), defaults.mana)),
        max_mana=int(_num(pools_raw.get("max_mana"), defaults.max_mana)),
    )

    history = [
        RankHistoryEntry(
            rank=str(e.get("rank")),
            level=int(_num(e.get("level"), 1)),
            achievement_count=int(_num(e.get("achievement_count"), 0)),
            timestamp=float(_num(e.get("timestamp"), 0)),
        )
        for e in data.get("rank_history") or []
        if isinstance(e, dict)
    ]

    snapshot = ProgressionSnapshot(
        schema_version=SCHEMA_VERSION,
        total_xp=int(data["total_xp"]),
        level=int(data["level"]),
        current_level_xp=0,
        rank=rank,
        base_stats=base_stats,
        unallocated_stat_points=max(0, int(_num(data.get("unallocated_stat_points"), 0))),
        perception_buffs=buffs,
        unlocked_achievement_ids={str(a) for a in data.get("unlocked_achievement_ids") or []},
        unlocked_titles={str(t) for t in data.get("unlocked_titles") or []},
        active_title=data.get("active_title") or None,
        daily_quests=quests,
        last_reset_date=_parse_date(data.get("last_reset_date")),
        activity=activity,
        activity_streak=streak,
        resource_pools=pools,
        rank_history=history,
    )
    snapshot.reconcile_level()
    if snapshot.active_title is not None and snapshot.active_title not in snapshot.unlocked_titles:
        snapshot.active_title = None
    purge_retired_titles(snapshot)
    return snapshot


def validate_for_save(snapshot: ProgressionSnapshot) -> None:
    """Reject a snapshot that must never reach the store.

    Raises
    ------
    SaveRejected
        On ``level < 1``, negative / NaN XP, or negative counters.
    """
    _validate_core(
        {
            "level": snapshot.level,
            "total_xp": snapshot.total_xp,
            "current_level_xp": snapshot.current_level_xp,
            "unallocated_stat_points": snapshot.unallocated_stat_points,
        },
        SaveRejected,
    )
    negative = [name for name, value in snapshot.base_stats.items() if value < 0]
    if negative:
        raise SaveRejected(f"Negative base stats: {', '.join(negative)}")


def purge_retired_titles(snapshot: ProgressionSnapshot) -> bool:
    """Remove retired titles in place.  Returns True if anything changed."""
    retired = snapshot.unlocked_titles & RETIRED_TITLES
    if retired:
        snapshot.unlocked_titles -= retired
    cleared = snapshot.active_title in RETIRED_TITLES
    if cleared:
        snapshot.active_title = None
    if retired or cleared:
        logger.info("Purged retired titles: %s", sorted(retired | ({snapshot.active_title} - {None})))
    return bool(retired or cleared)


# ---------------------------------------------------------------------------
# Legacy migration
# ---------------------------------------------------------------------------
_LEGACY_QUEST_IDS: dict[str, str] = {
    "messageMaster": "message_master",
    "characterChampion": "character_champion",
    "channelExplorer": "channel_explorer",
    "activeAdventurer": "active_adventurer",
    "perfectStreak": "perfect_streak",
}


def migrate_legacy(data: dict[str, Any]) -> dict[str, Any]:
    """Convert a version-less plugin save into the current flat layout.

    - ``stats.luck`` → ``base_stats.perception``
    - bare-float ``luckBuffs`` → ``perception_buffs`` targeting perception
    - ``achievements.{unlocked,titles,activeTitle}`` → top-level fields
    - ``dailyQuests.quests`` camelCase ids → snake_case ids
    - ``activity.timeActive`` / ``channelsVisited`` → renamed counters
    """
    stats = dict(data.get("base_stats") or data.get("stats") or {})
    if "luck" in stats and "perception" not in stats:
        stats["perception"] = stats.pop("luck")

    buffs_raw = data.get("perception_buffs")
    if buffs_raw is None:
        buffs_raw = [
            {"target_stat": "perception", "percent": b}
            for b in data.get("luckBuffs") or []
            if _is_finite(b)
        ]

    achievements = data.get("achievements") or {}
    quests_block = data.get("dailyQuests") or {}
    quests = {
        _LEGACY_QUEST_IDS.get(qid, qid): q
        for qid, q in (data.get("daily_quests") or quests_block.get("quests") or {}).items()
    }

    activity = data.get("activity") or {}
    total_xp = data.get("total_xp", data.get("totalXP", 0))

    migrated = {
        "schema_version": SCHEMA_VERSION,
        "total_xp": total_xp,
        "level": data.get("level", 1),
        "rank": data.get("rank", Rank.E),
        "base_stats": stats,
        "unallocated_stat_points": data.get(
            "unallocated_stat_points", data.get("unallocatedStatPoints", 0)
        ),
        "perception_buffs": buffs_raw,
        "unlocked_achievement_ids": data.get(
            "unlocked_achievement_ids", achievements.get("unlocked", [])
        ),
        "unlocked_titles": data.get("unlocked_titles", achievements.get("titles", [])),
        "active_title": data.get("active_title", achievements.get("activeTitle")),
        "daily_quests": quests,
        "last_reset_date": _parse_date(
            data.get("last_reset_date", quests_block.get("lastResetDate"))
        ),
        "activity": {
            "messages_sent": activity.get("messages_sent", activity.get("messagesSent", 0)),
            "characters_typed": activity.get(
                "characters_typed", activity.get("charactersTyped", 0)
            ),
            "time_active_minutes": activity.get(
                "time_active_minutes", activity.get("timeActive", 0)
            ),
            "crits_landed": activity.get("crits_landed", activity.get("critsLanded", 0)),
            "unique_channels_visited": activity.get(
                "unique_channels_visited", activity.get("channelsVisited", [])
            ),
        },
        "activity_streak": data.get("activity_streak") or {},
        "resource_pools": data.get("resource_pools") or {},
        "rank_history": [
            {
                "rank": e.get("rank"),
                "level": e.get("level"),
                "achievement_count": e.get("achievement_count", e.get("achievements", 0)),
                "timestamp": _legacy_timestamp(e.get("timestamp")),
            }
            for e in data.get("rank_history", data.get("rankHistory")) or []
            if isinstance(e, dict)
        ],
    }
    logger.info("Migrated legacy snapshot → schema v%d", SCHEMA_VERSION)
    return migrated


def _parse_date(value: Any) -> str | None:
    """Accept ISO dates and the old ``Mon Oct 19 2026`` day strings."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError:
        pass
    try:
        return datetime.strptime(value, "%a %b %d %Y").date().isoformat()
    except ValueError:
        return None


def _legacy_timestamp(value: Any) -> float:
    # Old saves stored epoch milliseconds
    ts = float(_num(value, 0))
    return ts / 1000 if ts > 1e11 else ts


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _is_finite(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _num(value: Any, default: float) -> float:
    return value if _is_finite(value) else default


def _validate_core(data: dict[str, Any], error: type[Exception]) -> None:
    level = data.get("level")
    total_xp = data.get("total_xp")
    if not _is_finite(level) or level < 1:
        raise error(f"Invalid level: {level!r}")
    if not _is_finite(total_xp) or total_xp < 0:
        raise error(f"Invalid total XP: {total_xp!r}")
    for key in ("current_level_xp", "unallocated_stat_points"):
        value = data.get(key, 0)
        if not _is_finite(value) or value < 0:
            raise error(f"Invalid {key}: {value!r}")
