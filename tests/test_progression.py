"""
tests/test_progression.py — Engine Transitions
===============================================

End-to-end behaviour of the pure transitions: copy-on-write, level-ups,
catch-up promotion, quest completion, streaks and daily resets.
"""

from __future__ import annotations

from datetime import date

import pytest

from arise.constants import STAT_NAMES, Rank, cumulative_xp_for_level
from arise.engine.events import ChannelVisited, MessageSent, TimeTick
from arise.engine.progression import (
    Context,
    Transition,
    allocate,
    apply_channel_visit,
    apply_message,
    apply_time_tick,
    award_xp,
    equip_title,
    reconcile,
    update_streak,
)
from arise.engine.ranks import RANK_STAT_BONUSES
from arise.engine.snapshot import ActivityStreak, ProgressionSnapshot
from arise.errors import InvalidStatName, NoPointsAvailable


def _message(length: int = 50, **kwargs) -> MessageSent:
    kwargs.setdefault("hour", 12)
    return MessageSent(length=length, **kwargs)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------
class TestApplyMessage:
    def test_input_snapshot_untouched(self, snapshot, ctx):
        result = apply_message(snapshot, _message(), ctx)
        assert snapshot.total_xp == 0
        assert snapshot.activity.messages_sent == 0
        assert result.snapshot is not snapshot

    def test_counters_and_xp(self, snapshot, ctx):
        result = apply_message(snapshot, _message(120), ctx)
        snap = result.snapshot
        assert result.xp_awarded == result.breakdown.total > 0
        assert snap.total_xp == result.xp_awarded
        assert snap.activity.messages_sent == 1
        assert snap.activity.characters_typed == 120
        assert snap.daily_quests["message_master"].progress == 1
        assert snap.daily_quests["character_champion"].progress == 120
        assert snap.daily_quests["perfect_streak"].progress == 1

    def test_overlong_message_counts_capped_length(self, snapshot, ctx):
        snap = apply_message(snapshot, _message(9000), ctx).snapshot
        assert snap.activity.characters_typed == 2000

    def test_critical_hit_counted(self, snapshot, ctx):
        result = apply_message(snapshot, _message(), ctx, critical=True, combo_count=2)
        assert result.snapshot.activity.crits_landed == 1
        assert result.breakdown.crit_multiplier > 0

    def test_quest_completion_awards_xp_and_point(self, snapshot, ctx):
        snapshot.daily_quests["message_master"].progress = 19
        result = apply_message(snapshot, _message(), ctx)
        completed = [r.quest_id for r in result.quests_completed]
        assert completed == ["message_master"]
        assert result.xp_awarded == result.breakdown.total + 50
        assert result.snapshot.unallocated_stat_points >= 1
        assert result.important

    def test_new_day_resets_quests_first(self, snapshot, ctx):
        snapshot.last_reset_date = "2026-10-18"
        snapshot.daily_quests["message_master"].progress = 12
        snap = apply_message(snapshot, _message(), ctx).snapshot
        assert snap.last_reset_date == ctx.today.isoformat()
        assert snap.daily_quests["message_master"].progress == 1

    def test_new_day_reset_is_important(self, snapshot, ctx):
        snapshot.last_reset_date = "2026-10-18"
        result = apply_message(snapshot, _message(), ctx)
        assert result.quests_reset and result.important

    def test_same_day_message_does_not_reset(self, snapshot, ctx):
        assert not apply_message(snapshot, _message(), ctx).quests_reset

    def test_tenth_message_unlocks_first_title(self, snapshot, ctx):
        snapshot.activity.messages_sent = 9
        result = apply_message(snapshot, _message(), ctx)
        assert [a.id for a in result.unlocked] == ["the_weakest"]
        assert result.snapshot.active_title == "The Weakest"


# ---------------------------------------------------------------------------
# Levels & ranks
# ---------------------------------------------------------------------------
class TestLevelUp:
    def test_points_per_level(self, snapshot, ctx):
        result = award_xp(snapshot, cumulative_xp_for_level(4), ctx)
        assert result.snapshot.level == 4
        assert result.levels_gained == 3
        assert result.snapshot.unallocated_stat_points == 3

    def test_level_up_refills_pools(self, snapshot, ctx):
        snapshot.resource_pools.hp = 10
        result = award_xp(snapshot, cumulative_xp_for_level(2), ctx)
        pools = result.snapshot.resource_pools
        assert pools.hp == pools.max_hp

    def test_zero_award_changes_nothing(self, snapshot, ctx):
        result = award_xp(snapshot, 0, ctx)
        assert result.xp_awarded == 0
        assert not result.important

    def test_e_to_d_during_award(self, snapshot, ctx):
        snapshot.unlocked_achievement_ids = {"first", "second"}
        result = award_xp(snapshot, cumulative_xp_for_level(10), ctx)
        snap = result.snapshot
        assert result.promotions[0] is Rank.D
        assert snap.rank is Rank.D
        assert all(snap.base_stats[s] == RANK_STAT_BONUSES[Rank.D] for s in STAT_NAMES)
        assert snap.rank_history[0].timestamp == ctx.now

    def test_reconcile_catches_up_stale_rank(self, ctx):
        snap = ProgressionSnapshot(total_xp=cumulative_xp_for_level(10))
        snap.unlocked_achievement_ids = {"first", "second"}
        result = reconcile(snap, ctx)
        assert result.snapshot.level == 10
        assert result.snapshot.rank is Rank.D

    def test_reconcile_resets_stale_quests(self, snapshot, ctx):
        snapshot.last_reset_date = "2026-10-18"
        snapshot.daily_quests["channel_explorer"].progress = 5
        snapshot.daily_quests["channel_explorer"].completed = True
        result = reconcile(snapshot, ctx)
        assert result.quests_reset and result.important
        assert result.snapshot.daily_quests["channel_explorer"].completed is False
        assert result.snapshot.last_reset_date == "2026-10-19"

    def test_reconcile_same_day_is_quiet(self, snapshot, ctx):
        result = reconcile(snapshot, ctx)
        assert not result.quests_reset
        assert not result.important


# ---------------------------------------------------------------------------
# Channels & time
# ---------------------------------------------------------------------------
class TestChannelAndTime:
    def test_first_visit_is_new(self, snapshot, ctx):
        result = apply_channel_visit(snapshot, ChannelVisited("general"), ctx)
        assert result.new_channel
        assert result.snapshot.daily_quests["channel_explorer"].progress == 1

    def test_repeat_visit_is_not_new(self, snapshot, ctx):
        first = apply_channel_visit(snapshot, ChannelVisited("general"), ctx).snapshot
        second = apply_channel_visit(first, ChannelVisited("general"), ctx)
        assert not second.new_channel
        assert second.snapshot.daily_quests["channel_explorer"].progress == 1

    def test_time_tick_completes_quest(self, snapshot, ctx):
        result = apply_time_tick(snapshot, TimeTick(30), ctx)
        assert result.snapshot.activity.time_active_minutes == 30
        assert [r.quest_id for r in result.quests_completed] == ["active_adventurer"]
        assert result.xp_awarded == 100

    def test_negative_tick_ignored(self, snapshot, ctx):
        result = apply_time_tick(snapshot, TimeTick(-5), ctx)
        assert result.snapshot.activity.time_active_minutes == 0


# ---------------------------------------------------------------------------
# Streak
# ---------------------------------------------------------------------------
class TestStreak:
    def test_first_activity(self):
        streak = ActivityStreak()
        update_streak(streak, date(2026, 10, 19))
        assert streak.current_days == 1

    def test_same_day_unchanged(self):
        streak = ActivityStreak(current_days=3, last_active_date="2026-10-19")
        update_streak(streak, date(2026, 10, 19))
        assert streak.current_days == 3

    def test_consecutive_day_extends(self):
        streak = ActivityStreak(current_days=3, last_active_date="2026-10-18")
        update_streak(streak, date(2026, 10, 19))
        assert streak.current_days == 4

    def test_gap_resets(self):
        streak = ActivityStreak(current_days=6, last_active_date="2026-10-10")
        update_streak(streak, date(2026, 10, 19))
        assert streak.current_days == 1


# ---------------------------------------------------------------------------
# Allocation & titles
# ---------------------------------------------------------------------------
class TestAllocateAndTitles:
    def test_allocate_spends_point(self, snapshot, ctx):
        snapshot.unallocated_stat_points = 2
        result = allocate(snapshot, "str", ctx)
        assert result.snapshot.base_stats["strength"] == 1
        assert result.snapshot.unallocated_stat_points == 1
        assert result.stat_allocated and result.important
        assert snapshot.unallocated_stat_points == 2

    def test_allocate_without_points(self, snapshot, ctx):
        with pytest.raises(NoPointsAvailable):
            allocate(snapshot, "strength", ctx)

    def test_allocate_unknown_stat(self, snapshot, ctx):
        snapshot.unallocated_stat_points = 1
        with pytest.raises(InvalidStatName):
            allocate(snapshot, "charisma", ctx)
        assert snapshot.unallocated_stat_points == 1

    def test_equip_locked_title_rejected(self, snapshot, ctx):
        assert equip_title(snapshot, "Necromancer", ctx) is None

    def test_equip_unlocked_title(self, snapshot, ctx):
        snapshot.unlocked_titles = {"Necromancer"}
        result = equip_title(snapshot, "Necromancer", ctx)
        assert isinstance(result, Transition)
        assert result.title_changed
        assert result.snapshot.active_title == "Necromancer"
        assert snapshot.active_title is None

    def test_default_context_uses_wall_clock(self):
        assert Context().current_date() == date.today()
