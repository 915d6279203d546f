"""
tests/test_progression_service.py — Service Facade Integration Tests
=====================================================================

Runs the full shell (engine + store + shared state + scheduler) against the
in-memory SQLite engine, with a fixed day and a hand-advanced clock.
"""

from __future__ import annotations

import random
from datetime import UTC, date, datetime
from unittest.mock import MagicMock

import pytest

from arise.config import AriseConfig
from arise.constants import STAT_NAMES, Rank, cumulative_xp_for_level
from arise.engine.events import ContentFlags
from arise.engine.quality import additive_base
from arise.engine.snapshot import ProgressionSnapshot
from arise.errors import InvalidStatName, NoPointsAvailable
from arise.services.progression_service import ProgressionService
from arise.services.shared_state import CRIT_BONUS_KEY, NAMESPACE, DatabaseSharedState
from arise.services.snapshot_store import load_snapshot, save_snapshot

TODAY = date(2026, 10, 19)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def config() -> AriseConfig:
    return AriseConfig(profile_name="tester", save_debounce_seconds=5, autosave_interval_seconds=30)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def shared(db_engine) -> DatabaseSharedState:
    return DatabaseSharedState(db_engine)


@pytest.fixture
def service(db_engine, config, shared, clock) -> ProgressionService:
    svc = ProgressionService(
        db_engine,
        config,
        shared_state=shared,
        rng=random.Random(7),
        today=lambda: TODAY,
        clock=clock,
    )
    svc.load()
    return svc


class TestLifecycle:
    def test_fresh_profile(self, service):
        assert service.get_current_level().level == 1
        assert service.get_rank() is Rank.E
        assert service.snapshot.last_reset_date == TODAY.isoformat()

    def test_load_publishes_crit_values(self, service, shared):
        assert shared.read(NAMESPACE, CRIT_BONUS_KEY) == 0

    def test_load_restores_saved_progress(self, db_engine, config, shared, service):
        service.on_time_tick(30)
        again = ProgressionService(db_engine, config, shared_state=shared, today=lambda: TODAY)
        again.load()
        assert again.snapshot.total_xp == service.snapshot.total_xp == 100

    def test_load_promotes_stale_rank(self, db_engine, config, shared):
        stale = ProgressionSnapshot(total_xp=cumulative_xp_for_level(10))
        stale.reconcile_level()
        stale.unlocked_achievement_ids = {"first", "second"}
        save_snapshot(db_engine, "tester", stale)

        svc = ProgressionService(db_engine, config, shared_state=shared, today=lambda: TODAY)
        svc.load()
        assert svc.get_rank() is Rank.D
        # promotion is important, so the upgrade is persisted at once
        assert load_snapshot(db_engine, "tester").rank is Rank.D

    def test_reset(self, db_engine, service):
        service.on_time_tick(30)
        service.reset()
        assert service.snapshot.total_xp == 0
        assert load_snapshot(db_engine, "tester").total_xp == 0


class TestMessages:
    def test_routine_message_is_debounced(self, db_engine, service, clock):
        transition = service.on_message_sent(50, hour=12)
        assert transition.xp_awarded > 0
        assert service.scheduler.dirty
        assert load_snapshot(db_engine, "tester").total_xp == 0

        clock.now += 5
        assert service.tick() is True
        assert load_snapshot(db_engine, "tester").total_xp == transition.xp_awarded

    def test_flags_derived_from_text(self, service):
        text = "Check https://example.com for the docs"
        transition = service.on_message_sent(len(text), text=text, hour=12)
        assert transition.breakdown.additive_base == pytest.approx(
            additive_base(len(text), ContentFlags.from_text(text), hour=12, streak_days=1)
        )

    def test_pending_crit_applies_once(self, service):
        service.on_critical_hit(combo_count=3)
        first = service.on_message_sent(50, hour=12)
        second = service.on_message_sent(50, hour=12)
        assert first.breakdown.crit_multiplier > 0
        assert second.breakdown.crit_multiplier == 0
        assert service.snapshot.activity.crits_landed == 1

    def test_pending_crit_survives_failed_message(self, service):
        service.on_critical_hit(combo_count=2)
        before = service.snapshot
        with pytest.raises(ValueError):
            service.on_message_sent("abc", hour=12)  # type: ignore[arg-type]
        assert service.snapshot is before

        transition = service.on_message_sent(50, hour=12)
        assert transition.breakdown.crit_multiplier > 0
        assert service.snapshot.activity.crits_landed == 1

    def test_current_channel_used_when_missing(self, service):
        service.on_channel_visited("general")
        transition = service.on_message_sent(50, hour=12)
        assert transition.breakdown.additive_base == pytest.approx(
            additive_base(50, ContentFlags(), hour=12, channel_id="general", streak_days=1)
        )

    def test_failing_shared_state_does_not_block_messages(self, db_engine, config, clock):
        broken = MagicMock()
        broken.read.side_effect = OSError("disk")
        broken.write.side_effect = OSError("disk")
        svc = ProgressionService(
            db_engine, config, shared_state=broken, today=lambda: TODAY, clock=clock
        )
        svc.load()
        transition = svc.on_message_sent(50, hour=12)
        assert transition.xp_awarded > 0

    def test_skill_bonus_read_from_shared_state(self, service, shared):
        shared.write("skill_tree", "bonuses", {"xp_bonus": 1.0})
        transition = service.on_message_sent(50, hour=12)
        assert transition.breakdown.pool_percent == pytest.approx(100)


class TestOperatorCalls:
    def test_new_channel_saves_immediately(self, db_engine, service):
        service.on_channel_visited("general")
        stored = load_snapshot(db_engine, "tester")
        assert stored.activity.unique_channels_visited == {"general"}

    def test_allocate_without_points(self, service):
        with pytest.raises(NoPointsAvailable):
            service.allocate_stat_point("strength")

    def test_allocate_spends_quest_point(self, db_engine, service):
        for i in range(5):
            service.on_channel_visited(f"c{i}")
        assert service.snapshot.unallocated_stat_points == 1
        service.allocate_stat_point("vit")
        assert service.snapshot.base_stats["vitality"] == 1
        assert load_snapshot(db_engine, "tester").base_stats["vitality"] == 1

    def test_allocate_invalid_stat_keeps_state(self, service):
        for i in range(5):
            service.on_channel_visited(f"c{i}")
        before = service.snapshot
        with pytest.raises(InvalidStatName):
            service.allocate_stat_point("charisma")
        assert service.snapshot is before

    def test_locked_title_rejected(self, service):
        assert service.set_active_title("Necromancer") is False
        assert service.set_active_title(None) is True


class TestQueries:
    def test_daily_quest_state_shape(self, service):
        state = service.get_daily_quest_state()
        assert set(state) == {
            "message_master",
            "character_champion",
            "channel_explorer",
            "active_adventurer",
            "perfect_streak",
        }
        assert state["message_master"] == {
            "name": "Message Master",
            "progress": 0,
            "target": 20,
            "completed": False,
        }

    def test_effective_stats_has_every_stat(self, service):
        assert set(service.get_effective_stats()) == set(STAT_NAMES)

    def test_title_bonus_defaults_to_zero(self, service):
        assert service.get_active_title_bonus().xp == 0
        assert service.get_sorted_titles() == []


class TestTimezone:
    def test_configured_zone_decides_today(self, db_engine):
        svc = ProgressionService(db_engine, AriseConfig(timezone="UTC"))
        assert svc._local_today() == datetime.now(UTC).date()


class TestDayRollover:
    @pytest.fixture
    def days(self) -> list[date]:
        return [TODAY]

    @pytest.fixture
    def rolling(self, db_engine, config, shared, clock, days) -> ProgressionService:
        svc = ProgressionService(
            db_engine,
            config,
            shared_state=shared,
            rng=random.Random(7),
            today=lambda: days[0],
            clock=clock,
        )
        svc.load()
        return svc

    def test_quest_state_resets_on_new_day(self, db_engine, rolling, days):
        for i in range(5):
            rolling.on_channel_visited(f"c{i}")
        assert rolling.get_daily_quest_state()["channel_explorer"]["completed"] is True

        days[0] = date(2026, 10, 20)
        state = rolling.get_daily_quest_state()
        assert state["channel_explorer"] == {
            "name": "Channel Explorer",
            "progress": 0,
            "target": 5,
            "completed": False,
        }
        assert load_snapshot(db_engine, "tester").last_reset_date == "2026-10-20"

    def test_same_day_query_leaves_snapshot_alone(self, rolling):
        before = rolling.snapshot
        rolling.get_daily_quest_state()
        assert rolling.snapshot is before

    def test_first_event_of_new_day_flushes(self, db_engine, rolling, days):
        rolling.on_message_sent(50, hour=12)
        days[0] = date(2026, 10, 20)
        transition = rolling.on_message_sent(50, hour=12)
        assert transition.quests_reset
        stored = load_snapshot(db_engine, "tester")
        assert stored.last_reset_date == "2026-10-20"
        assert stored.activity.messages_sent == 2
