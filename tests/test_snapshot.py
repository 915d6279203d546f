"""
tests/test_snapshot.py — Snapshot Serialization, Migration & Validation
========================================================================
"""

from __future__ import annotations

import json
import math

import pytest

from arise.constants import Rank
from arise.engine.snapshot import (
    SCHEMA_VERSION,
    PerceptionBuff,
    ProgressionSnapshot,
    purge_retired_titles,
    snapshot_from_dict,
    snapshot_to_dict,
    validate_for_save,
)
from arise.errors import CorruptSnapshot, SaveRejected


def _populated() -> ProgressionSnapshot:
    snap = ProgressionSnapshot(total_xp=5000, rank=Rank.C, unallocated_stat_points=3)
    snap.reconcile_level()
    snap.base_stats.update(strength=7, agility=4, perception=2)
    snap.perception_buffs = [PerceptionBuff("agility", 3.4), PerceptionBuff("vitality", 2.1)]
    snap.unlocked_achievement_ids = {"the_weakest", "weakest_hunter"}
    snap.unlocked_titles = {"The Weakest", "The Weakest Hunter"}
    snap.active_title = "The Weakest"
    snap.activity.unique_channels_visited = {"b", "a"}
    snap.activity.messages_sent = 60
    return snap


class TestSerialization:
    def test_dict_is_json_compatible(self):
        data = snapshot_to_dict(_populated())
        json.dumps(data)
        assert data["unlocked_achievement_ids"] == ["the_weakest", "weakest_hunter"]
        assert data["activity"]["unique_channels_visited"] == ["a", "b"]
        assert data["schema_version"] == SCHEMA_VERSION

    def test_round_trip_preserves_core_fields(self):
        original = _populated()
        restored = snapshot_from_dict(json.loads(json.dumps(snapshot_to_dict(original))))
        assert restored.total_xp == original.total_xp
        assert restored.rank == original.rank
        assert restored.base_stats == original.base_stats
        assert restored.unlocked_achievement_ids == original.unlocked_achievement_ids
        assert restored.perception_buffs == original.perception_buffs
        assert restored.active_title == "The Weakest"

    def test_level_reconciled_from_xp(self):
        data = snapshot_to_dict(_populated())
        data["level"] = 99
        assert snapshot_from_dict(data).level == _populated().level

    def test_copy_is_deep(self):
        snap = _populated()
        clone = snap.copy()
        clone.base_stats["strength"] = 100
        clone.activity.unique_channels_visited.add("z")
        assert snap.base_stats["strength"] == 7
        assert "z" not in snap.activity.unique_channels_visited


class TestLoadValidation:
    @pytest.mark.parametrize("payload", [None, [], "snapshot", 42])
    def test_non_dict_rejected(self, payload):
        with pytest.raises(CorruptSnapshot):
            snapshot_from_dict(payload)

    @pytest.mark.parametrize(
        "field, value",
        [("level", 0), ("total_xp", -1), ("total_xp", math.nan), ("total_xp", "lots")],
    )
    def test_invalid_core_values(self, field, value):
        data = snapshot_to_dict(ProgressionSnapshot())
        data[field] = value
        with pytest.raises(CorruptSnapshot):
            snapshot_from_dict(data)

    def test_unknown_rank(self):
        data = snapshot_to_dict(ProgressionSnapshot())
        data["rank"] = "Z"
        with pytest.raises(CorruptSnapshot):
            snapshot_from_dict(data)

    @pytest.mark.parametrize(
        "field, value",
        [("base_stats", [1, 2, 3]), ("perception_buffs", 7), ("activity", "oops")],
    )
    def test_wrong_shaped_block_rejected(self, field, value):
        data = snapshot_to_dict(ProgressionSnapshot())
        data[field] = value
        with pytest.raises(CorruptSnapshot):
            snapshot_from_dict(data)

    def test_legacy_wrong_shaped_block_rejected(self):
        with pytest.raises(CorruptSnapshot):
            snapshot_from_dict({"level": 1, "totalXP": 10, "achievements": "none"})

    def test_active_title_must_be_unlocked(self):
        data = snapshot_to_dict(ProgressionSnapshot())
        data["active_title"] = "Necromancer"
        assert snapshot_from_dict(data).active_title is None

    def test_quest_progress_clamped(self):
        data = snapshot_to_dict(ProgressionSnapshot())
        data["daily_quests"]["message_master"]["progress"] = 500
        assert snapshot_from_dict(data).daily_quests["message_master"].progress == 20


class TestRetiredTitles:
    def test_purged_on_load(self):
        data = snapshot_to_dict(ProgressionSnapshot())
        data["unlocked_titles"] = ["Scribe", "The Weakest", "Message Warrior"]
        data["active_title"] = "Scribe"
        snap = snapshot_from_dict(data)
        assert snap.unlocked_titles == {"The Weakest"}
        assert snap.active_title is None

    def test_purge_reports_change(self):
        snap = ProgressionSnapshot(unlocked_titles={"Wanderer"})
        assert purge_retired_titles(snap) is True
        assert purge_retired_titles(snap) is False


class TestLegacyMigration:
    LEGACY = {
        "level": 12,
        "totalXP": 9000,
        "rank": "D",
        "stats": {"strength": 5, "agility": 3, "intelligence": 1, "vitality": 2, "luck": 4},
        "unallocatedStatPoints": 2,
        "luckBuffs": [2.5, 3.1],
        "achievements": {
            "unlocked": ["the_weakest"],
            "titles": ["The Weakest", "Scribe"],
            "activeTitle": "The Weakest",
        },
        "dailyQuests": {
            "lastResetDate": "Mon Oct 19 2026",
            "quests": {
                "messageMaster": {"progress": 4, "target": 20, "completed": False},
                "perfectStreak": {"progress": 10, "target": 10, "completed": True},
            },
        },
        "activity": {
            "messagesSent": 120,
            "charactersTyped": 4000,
            "channelsVisited": ["x", "y"],
            "timeActive": 75,
            "critsLanded": 6,
        },
    }

    def test_migrates_stats_and_buffs(self):
        snap = snapshot_from_dict(self.LEGACY)
        assert snap.schema_version == SCHEMA_VERSION
        assert snap.total_xp == 9000
        assert snap.base_stats["perception"] == 4
        assert snap.perception_buffs == [
            PerceptionBuff("perception", 2.5),
            PerceptionBuff("perception", 3.1),
        ]
        assert snap.unallocated_stat_points == 2

    def test_migrates_achievements(self):
        snap = snapshot_from_dict(self.LEGACY)
        assert snap.unlocked_achievement_ids == {"the_weakest"}
        assert snap.unlocked_titles == {"The Weakest"}
        assert snap.active_title == "The Weakest"

    def test_migrates_quests_and_activity(self):
        snap = snapshot_from_dict(self.LEGACY)
        assert snap.last_reset_date == "2026-10-19"
        assert snap.daily_quests["message_master"].progress == 4
        assert snap.daily_quests["perfect_streak"].completed is True
        assert snap.activity.messages_sent == 120
        assert snap.activity.unique_channels_visited == {"x", "y"}
        assert snap.activity.time_active_minutes == 75
        assert snap.activity.crits_landed == 6


class TestSaveValidation:
    def test_valid_snapshot_passes(self):
        validate_for_save(_populated())

    def test_level_below_one_rejected(self):
        snap = ProgressionSnapshot(level=0)
        with pytest.raises(SaveRejected):
            validate_for_save(snap)

    def test_negative_xp_rejected(self):
        snap = ProgressionSnapshot(total_xp=-5)
        with pytest.raises(SaveRejected):
            validate_for_save(snap)

    def test_negative_stat_rejected(self):
        snap = ProgressionSnapshot()
        snap.base_stats["vitality"] = -1
        with pytest.raises(SaveRejected):
            validate_for_save(snap)
