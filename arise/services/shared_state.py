"""
arise.services.shared_state — Cross-Subsystem Keyed Storage
============================================================

Sibling subsystems (skill tree, shadow army, crit detector) exchange plain
JSON values through ``(namespace, key)`` slots.  The engine reads theirs
through a :class:`SharedStateProvider` and publishes its own crit values
back.  Reads are best effort: absent, stale or malformed data reads as
zero, and no provider failure (database or otherwise) ever reaches the
engine.

Keys read:
  - ``skill_tree/bonuses``  {xp_bonus, long_msg_bonus, all_stat_bonus, quest_bonus}
  - ``shadow_army/buffs``   {strength, agility, intelligence, vitality,
                             perception, shadow_count}
  - ``critical_hit/combo``  {combo_count}

Keys published:
  - ``arise/crit_bonus``       agility-derived crit chance (float)
  - ``arise/perception_bonus`` perception-derived crit bonus (float)
"""

from __future__ import annotations

import json
import logging
import math
from typing import TYPE_CHECKING, Any, Protocol

from arise.constants import STAT_NAMES
from arise.database.engine import get_session
from arise.database.models import SharedState
from arise.engine.achievements import get_active_title_bonus
from arise.engine.stats import (
    NO_EXTERNAL_BONUSES,
    ExternalBonuses,
    agility_crit_bonus,
    perception_crit_bonus,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from arise.engine.snapshot import ProgressionSnapshot

logger = logging.getLogger(__name__)

NAMESPACE = "arise"
CRIT_BONUS_KEY = "crit_bonus"
PERCEPTION_BONUS_KEY = "perception_bonus"


class SharedStateProvider(Protocol):
    """Keyed JSON storage shared with sibling subsystems."""

    def read(self, namespace: str, key: str) -> Any | None: ...

    def write(self, namespace: str, key: str, value: Any) -> None: ...


# ---------------------------------------------------------------------------
# Database-backed provider
# ---------------------------------------------------------------------------
class DatabaseSharedState:
    """:class:`SharedStateProvider` over the ``shared_state`` table."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def read(self, namespace: str, key: str) -> Any | None:
        with get_session(self.engine) as session:
            row = session.get(SharedState, (namespace, key))
            if row is None:
                return None
            raw = row.value_json
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Ignoring malformed shared value %s/%s", namespace, key)
            return None

    def write(self, namespace: str, key: str, value: Any) -> None:
        with get_session(self.engine) as session:
            session.merge(SharedState(namespace=namespace, key=key, value_json=json.dumps(value)))


# ---------------------------------------------------------------------------
# Reading external bonuses
# ---------------------------------------------------------------------------
def _number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value) if math.isfinite(value) else 0.0


def _safe_read(provider: SharedStateProvider, namespace: str, key: str) -> dict:
    try:
        value = provider.read(namespace, key)
    except Exception:
        logger.exception("Shared state read failed for %s/%s", namespace, key)
        return {}
    return value if isinstance(value, dict) else {}


def read_external_bonuses(provider: SharedStateProvider | None) -> ExternalBonuses:
    """Collect sibling bonuses, defaulting anything missing to zero."""
    if provider is None:
        return NO_EXTERNAL_BONUSES

    skills = _safe_read(provider, "skill_tree", "bonuses")
    shadows = _safe_read(provider, "shadow_army", "buffs")
    combo = _safe_read(provider, "critical_hit", "combo")

    shadow_percents = {stat: _number(shadows.get(stat)) for stat in STAT_NAMES}
    if not shadow_percents["perception"]:
        shadow_percents["perception"] = _number(shadows.get("luck"))

    return ExternalBonuses(
        skill_xp=_number(skills.get("xp_bonus")),
        skill_long_message=_number(skills.get("long_msg_bonus")),
        skill_all_stat=_number(skills.get("all_stat_bonus")),
        skill_quest=_number(skills.get("quest_bonus")),
        shadow_stat_percents=shadow_percents,
        shadow_count=max(int(_number(shadows.get("shadow_count"))), 0),
        combo_count=max(int(_number(combo.get("combo_count"))), 0),
    )


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------
def publish_crit_bonuses(
    provider: SharedStateProvider | None,
    snapshot: ProgressionSnapshot,
    external: ExternalBonuses = NO_EXTERNAL_BONUSES,
) -> dict[str, float]:
    """Write the current crit values for the crit detector.  Never raises.

    Returns the published values.
    """
    values = {
        CRIT_BONUS_KEY: agility_crit_bonus(snapshot, get_active_title_bonus(snapshot), external),
        PERCEPTION_BONUS_KEY: perception_crit_bonus(snapshot),
    }
    if provider is None:
        return values
    try:
        for key, value in values.items():
            provider.write(NAMESPACE, key, value)
    except Exception:
        logger.exception("Could not publish crit bonuses")
    return values
