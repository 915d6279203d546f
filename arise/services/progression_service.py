"""
arise.services.progression_service — Inbound Events & Outbound Queries
=======================================================================

The thin outer shell around :mod:`arise.engine.progression`.  It owns the
one live :class:`ProgressionSnapshot` for a profile and is the only place
that swaps it.  Each event runs an engine transition on a copy; on success
the copy replaces the live snapshot, the save scheduler is told whether the
change was important, and crit values are republished when they may have
moved.

Inbound:
  on_message_sent, on_critical_hit, on_channel_visited, on_time_tick,
  allocate_stat_point, set_active_title, reset

Outbound:
  get_current_level, get_effective_stats, get_active_title_bonus, get_rank,
  get_daily_quest_state
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from datetime import date, datetime
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

from arise.config import AriseConfig
from arise.constants import QUEST_DEFINITIONS, LevelInfo, Rank, resolve_level
from arise.engine import progression
from arise.engine.achievements import TitleBonus, get_active_title_bonus, sorted_titles
from arise.engine.events import ChannelVisited, ContentFlags, CriticalHit, MessageSent, TimeTick
from arise.engine.snapshot import ProgressionSnapshot
from arise.engine.stats import effective_stats
from arise.services.save_scheduler import SaveScheduler
from arise.services.shared_state import (
    SharedStateProvider,
    publish_crit_bonuses,
    read_external_bonuses,
)
from arise.services.snapshot_store import delete_snapshots, load_snapshot, save_snapshot

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


class ProgressionService:
    """Single-actor façade over one profile's progression."""

    def __init__(
        self,
        engine: Engine,
        config: AriseConfig | None = None,
        *,
        shared_state: SharedStateProvider | None = None,
        rng: random.Random | None = None,
        today: Callable[[], date] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.engine = engine
        self.config = config or AriseConfig()
        self.shared_state = shared_state
        self._rng = rng or random.Random()
        self._today = today or self._local_today
        self._snapshot = ProgressionSnapshot()
        self._pending_crit: CriticalHit | None = None
        self._current_channel: str | None = None

        scheduler_kwargs: dict[str, Any] = {
            "debounce_seconds": self.config.save_debounce_seconds,
            "autosave_interval_seconds": self.config.autosave_interval_seconds,
        }
        if clock is not None:
            scheduler_kwargs["clock"] = clock
        self.scheduler = SaveScheduler(self._save, **scheduler_kwargs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def load(self) -> ProgressionSnapshot:
        """Load the profile, run the startup reconciliation, publish."""
        loaded = load_snapshot(self.engine, self.config.profile_name)
        transition = progression.reconcile(loaded, self._context())
        self._snapshot = transition.snapshot
        publish_crit_bonuses(self.shared_state, self._snapshot, self._context().external)
        if transition.important:
            self.scheduler.mark_dirty(important=True)
        logger.info(
            "Loaded %r: level %d, rank %s, %d XP",
            self.config.profile_name, self._snapshot.level, self._snapshot.rank,
            self._snapshot.total_xp,
        )
        return self._snapshot

    def reset(self) -> ProgressionSnapshot:
        """Discard all progress for this profile."""
        delete_snapshots(self.engine, self.config.profile_name)
        self._snapshot = progression.reconcile(ProgressionSnapshot(), self._context()).snapshot
        self._pending_crit = None
        self._current_channel = None
        self.scheduler.mark_dirty(important=True)
        logger.warning("Progress reset for %r", self.config.profile_name)
        return self._snapshot

    def flush(self) -> bool:
        return self.scheduler.flush()

    def tick(self) -> bool:
        return self.scheduler.tick()

    @property
    def snapshot(self) -> ProgressionSnapshot:
        """The live snapshot.  Treat as read-only."""
        return self._snapshot

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------
    def on_message_sent(
        self,
        length: int,
        flags: ContentFlags | None = None,
        *,
        text: str | None = None,
        channel_id: str | None = None,
        hour: int | None = None,
        critical: bool = False,
        combo_count: int | None = None,
        timestamp: datetime | None = None,
    ) -> progression.Transition:
        """Award XP for a message.

        Flags come from *flags* or are derived from *text*.  A crit reported
        earlier through :meth:`on_critical_hit` applies to this message.
        """
        if flags is None:
            flags = ContentFlags.from_text(text) if text is not None else ContentFlags()
        event_kwargs: dict[str, Any] = {}
        if timestamp is not None:
            event_kwargs["timestamp"] = timestamp
        event = MessageSent(
            length=length,
            flags=flags,
            channel_id=channel_id or self._current_channel,
            hour=hour,
            critical=critical,
            combo_count=combo_count,
            **event_kwargs,
        )
        pending = self._pending_crit
        transition = progression.apply_message(
            self._snapshot,
            event,
            self._context(),
            critical=pending is not None,
            combo_count=pending.combo_count if pending is not None else None,
        )
        self._commit(transition)
        self._pending_crit = None
        return transition

    def on_critical_hit(self, combo_count: int = 1) -> None:
        """Flag the next message as a critical hit."""
        self._pending_crit = CriticalHit(combo_count=max(int(combo_count), 1))

    def on_channel_visited(self, channel_id: str) -> progression.Transition:
        self._current_channel = str(channel_id)
        transition = progression.apply_channel_visit(
            self._snapshot, ChannelVisited(channel_id=str(channel_id)), self._context()
        )
        self._commit(transition)
        return transition

    def on_time_tick(self, minutes_active: float) -> progression.Transition:
        transition = progression.apply_time_tick(
            self._snapshot, TimeTick(minutes=minutes_active), self._context()
        )
        self._commit(transition)
        return transition

    # ------------------------------------------------------------------
    # Operator calls
    # ------------------------------------------------------------------
    def allocate_stat_point(self, stat_name: str) -> progression.Transition:
        """Spend a stat point.  Raises InvalidStatName / NoPointsAvailable."""
        transition = progression.allocate(self._snapshot, stat_name, self._context())
        self._commit(transition)
        return transition

    def set_active_title(self, title: str | None) -> bool:
        transition = progression.equip_title(self._snapshot, title, self._context())
        if transition is None:
            return False
        self._commit(transition)
        return True

    # ------------------------------------------------------------------
    # Outbound queries
    # ------------------------------------------------------------------
    def get_current_level(self) -> LevelInfo:
        return resolve_level(self._snapshot.total_xp)

    def get_effective_stats(self) -> dict[str, int]:
        return effective_stats(
            self._snapshot,
            get_active_title_bonus(self._snapshot),
            self._context().external,
        )

    def get_active_title_bonus(self) -> TitleBonus:
        return get_active_title_bonus(self._snapshot)

    def get_rank(self) -> Rank:
        return self._snapshot.rank

    def get_daily_quest_state(self) -> dict[str, dict[str, Any]]:
        self._refresh_day()
        return {
            quest_id: {
                "name": QUEST_DEFINITIONS[quest_id][0],
                "progress": quest.progress,
                "target": quest.target,
                "completed": quest.completed,
            }
            for quest_id, quest in self._snapshot.daily_quests.items()
        }

    def get_sorted_titles(self, sort_by: str = "xp") -> list[str]:
        return sorted_titles(self._snapshot, sort_by)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _local_today(self) -> date:
        if self.config.timezone:
            return datetime.now(ZoneInfo(self.config.timezone)).date()
        return date.today()

    def _context(self) -> progression.Context:
        return progression.Context(
            external=read_external_bonuses(self.shared_state),
            today=self._today(),
            rng=self._rng,
        )

    def _refresh_day(self) -> None:
        transition = progression.start_day(self._snapshot, self._context())
        if transition.quests_reset:
            self._commit(transition)

    def _commit(self, transition: progression.Transition) -> None:
        self._snapshot = transition.snapshot
        if transition.important:
            publish_crit_bonuses(self.shared_state, self._snapshot, self._context().external)
        self.scheduler.mark_dirty(important=transition.important)

    def _save(self) -> bool:
        return save_snapshot(
            self.engine,
            self.config.profile_name,
            self._snapshot,
            retry_attempts=self.config.save_retry_attempts,
        )
