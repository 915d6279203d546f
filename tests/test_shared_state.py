"""
tests/test_shared_state.py — Sibling Subsystem Shared State
============================================================
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from arise.database.engine import get_session
from arise.database.models import SharedState
from arise.engine.snapshot import ProgressionSnapshot
from arise.engine.stats import NO_EXTERNAL_BONUSES, agility_crit_bonus
from arise.services.shared_state import (
    CRIT_BONUS_KEY,
    NAMESPACE,
    PERCEPTION_BONUS_KEY,
    DatabaseSharedState,
    publish_crit_bonuses,
    read_external_bonuses,
)


@pytest.fixture
def provider(db_engine) -> DatabaseSharedState:
    return DatabaseSharedState(db_engine)


class TestDatabaseSharedState:
    def test_missing_key_reads_none(self, provider):
        assert provider.read("skill_tree", "bonuses") is None

    def test_write_then_read(self, provider):
        provider.write("skill_tree", "bonuses", {"xp_bonus": 0.2})
        assert provider.read("skill_tree", "bonuses") == {"xp_bonus": 0.2}

    def test_write_overwrites(self, provider):
        provider.write(NAMESPACE, CRIT_BONUS_KEY, 0.1)
        provider.write(NAMESPACE, CRIT_BONUS_KEY, 0.2)
        assert provider.read(NAMESPACE, CRIT_BONUS_KEY) == 0.2

    def test_malformed_value_reads_none(self, provider, db_engine):
        with get_session(db_engine) as session:
            session.add(SharedState(namespace="shadow_army", key="buffs", value_json="{oops"))
        assert provider.read("shadow_army", "buffs") is None


class TestReadExternalBonuses:
    def test_no_provider(self):
        assert read_external_bonuses(None) is NO_EXTERNAL_BONUSES

    def test_empty_store_defaults_to_zero(self, provider):
        bonuses = read_external_bonuses(provider)
        assert bonuses.skill_xp == 0
        assert bonuses.combo_count == 0
        assert all(v == 0 for v in bonuses.shadow_stat_percents.values())

    def test_reads_all_sources(self, provider):
        provider.write("skill_tree", "bonuses", {
            "xp_bonus": 0.15,
            "long_msg_bonus": 0.3,
            "all_stat_bonus": 0.05,
            "quest_bonus": 0.1,
        })
        provider.write("shadow_army", "buffs", {"strength": 0.2, "shadow_count": 7})
        provider.write("critical_hit", "combo", {"combo_count": 4})

        bonuses = read_external_bonuses(provider)
        assert bonuses.skill_xp == pytest.approx(0.15)
        assert bonuses.skill_long_message == pytest.approx(0.3)
        assert bonuses.skill_all_stat == pytest.approx(0.05)
        assert bonuses.skill_quest == pytest.approx(0.1)
        assert bonuses.shadow_stat_percents["strength"] == pytest.approx(0.2)
        assert bonuses.shadow_count == 7
        assert bonuses.combo_count == 4

    def test_legacy_shadow_luck_maps_to_perception(self, provider):
        provider.write("shadow_army", "buffs", {"luck": 0.12})
        assert read_external_bonuses(provider).shadow_stat_percents["perception"] == pytest.approx(0.12)

    def test_garbage_values_ignored(self, provider):
        provider.write("skill_tree", "bonuses", {"xp_bonus": "lots", "quest_bonus": True})
        provider.write("critical_hit", "combo", ["not", "a", "dict"])
        bonuses = read_external_bonuses(provider)
        assert bonuses.skill_xp == 0
        assert bonuses.skill_quest == 0
        assert bonuses.combo_count == 0

    def test_storage_error_reads_zero(self):
        broken = MagicMock()
        broken.read.side_effect = OperationalError("SELECT", {}, Exception("locked"))
        bonuses = read_external_bonuses(broken)
        assert bonuses.skill_xp == 0
        assert bonuses.shadow_count == 0

    @pytest.mark.parametrize("error", [OSError("disk"), RuntimeError("closed"), KeyError("bonuses")])
    def test_any_provider_error_reads_zero(self, error):
        broken = MagicMock()
        broken.read.side_effect = error
        bonuses = read_external_bonuses(broken)
        assert bonuses.skill_all_stat == 0
        assert bonuses.combo_count == 0
        assert broken.read.call_count == 3


class TestPublishCritBonuses:
    def test_publishes_both_keys(self, provider):
        snap = ProgressionSnapshot()
        snap.base_stats["agility"] = 20
        snap.base_stats["perception"] = 5
        values = publish_crit_bonuses(provider, snap)
        assert provider.read(NAMESPACE, CRIT_BONUS_KEY) == pytest.approx(values[CRIT_BONUS_KEY])
        assert provider.read(NAMESPACE, PERCEPTION_BONUS_KEY) == pytest.approx(values[PERCEPTION_BONUS_KEY])
        assert values[CRIT_BONUS_KEY] == pytest.approx(agility_crit_bonus(snap))

    def test_without_provider_returns_values(self):
        values = publish_crit_bonuses(None, ProgressionSnapshot())
        assert set(values) == {CRIT_BONUS_KEY, PERCEPTION_BONUS_KEY}

    def test_write_failure_swallowed(self):
        broken = MagicMock()
        broken.write.side_effect = OperationalError("UPDATE", {}, Exception("locked"))
        publish_crit_bonuses(broken, ProgressionSnapshot())
        broken.write.assert_called_once()

    def test_non_database_write_failure_swallowed(self):
        broken = MagicMock()
        broken.write.side_effect = OSError("read-only file system")
        values = publish_crit_bonuses(broken, ProgressionSnapshot())
        assert set(values) == {CRIT_BONUS_KEY, PERCEPTION_BONUS_KEY}
