"""
arise.engine.progression — Snapshot Transitions
================================================

The engine's public operations.  Each takes the current
:class:`ProgressionSnapshot`, works on a deep copy, and returns a
:class:`Transition` holding the new snapshot plus what happened.  The input
snapshot is never touched, so a failure anywhere leaves the caller's state
exactly as it was.

After any XP or counter change the working copy is *settled*:

1. reconcile level with total XP (one stat point per level gained, pools
   refilled on level-up);
2. unlock achievements until a fixpoint;
3. promote rank while the gates hold;
4. repeat 2–3 until neither changes anything.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import date, timedelta

from arise.constants import Rank
from arise.engine.achievements import (
    Achievement,
    check_achievements,
    get_active_title_bonus,
    set_active_title,
)
from arise.engine.events import ChannelVisited, MessageSent, TimeTick
from arise.engine.quests import QuestReward, reset_if_new_day, update_progress
from arise.engine.ranks import evaluate_promotion
from arise.engine.reward import XpBreakdown, calculate_xp
from arise.engine.snapshot import ActivityStreak, ProgressionSnapshot
from arise.engine.stats import (
    NO_EXTERNAL_BONUSES,
    ExternalBonuses,
    allocate_stat_point,
    recompute_resource_pools,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Context & result
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Context:
    """Everything a transition needs from outside the snapshot.

    ``today`` decides the daily quest reset and the streak; ``now`` stamps
    rank history.  Both default to the wall clock.
    """

    external: ExternalBonuses = NO_EXTERNAL_BONUSES
    today: date | None = None
    now: float | None = None
    rng: random.Random | None = None

    def current_date(self) -> date:
        return self.today or date.today()


@dataclass(slots=True)
class Transition:
    """Result of one engine operation."""

    snapshot: ProgressionSnapshot
    xp_awarded: int = 0
    breakdown: XpBreakdown | None = None
    levels_gained: int = 0
    promotions: list[Rank] = field(default_factory=list)
    unlocked: list[Achievement] = field(default_factory=list)
    quests_completed: list[QuestReward] = field(default_factory=list)
    new_channel: bool = False
    title_changed: bool = False
    stat_allocated: bool = False
    quests_reset: bool = False

    @property
    def important(self) -> bool:
        """Whether the change should be persisted immediately."""
        return bool(
            self.levels_gained
            or self.promotions
            or self.unlocked
            or self.quests_completed
            or self.new_channel
            or self.title_changed
            or self.stat_allocated
            or self.quests_reset
        )


# ---------------------------------------------------------------------------
# Internal helpers: operate on the working copy in place
# ---------------------------------------------------------------------------
def _settle(work: ProgressionSnapshot, result: Transition, ctx: Context) -> None:
    old_level = work.level
    work.reconcile_level()
    gained = work.level - old_level
    if gained > 0:
        work.unallocated_stat_points += gained
        result.levels_gained += gained
        recompute_resource_pools(
            work, restore=True,
            title_bonus=get_active_title_bonus(work), external=ctx.external,
        )
        logger.info("Level up: %d → %d (+%d stat points)", old_level, work.level, gained)

    while True:
        unlocked = check_achievements(work)
        promoted = evaluate_promotion(
            work,
            title_bonus=get_active_title_bonus(work),
            external=ctx.external,
            now=ctx.now,
        )
        result.unlocked.extend(unlocked)
        result.promotions.extend(promoted)
        if not unlocked and not promoted:
            return


def _award(work: ProgressionSnapshot, amount: int, result: Transition, ctx: Context) -> None:
    if amount <= 0:
        _settle(work, result, ctx)
        return
    work.total_xp += amount
    result.xp_awarded += amount
    _settle(work, result, ctx)


def _advance_quest(
    work: ProgressionSnapshot,
    quest_id: str,
    delta: float,
    result: Transition,
    ctx: Context,
) -> None:
    reward = update_progress(
        work, quest_id, delta,
        title_bonus=get_active_title_bonus(work), external=ctx.external,
    )
    if reward is not None:
        result.quests_completed.append(reward)
        _award(work, reward.xp, result, ctx)


def update_streak(streak: ActivityStreak, today: date) -> None:
    """Count *today* toward the consecutive-day streak, in place."""
    today_iso = today.isoformat()
    if streak.last_active_date == today_iso:
        return
    yesterday = (today - timedelta(days=1)).isoformat()
    if streak.last_active_date == yesterday:
        streak.current_days += 1
    else:
        streak.current_days = 1
    streak.last_active_date = today_iso


# ---------------------------------------------------------------------------
# Public transitions
# ---------------------------------------------------------------------------
def apply_message(
    snapshot: ProgressionSnapshot,
    event: MessageSent,
    ctx: Context = Context(),
    *,
    critical: bool = False,
    combo_count: int | None = None,
) -> Transition:
    """Award XP for one message and update everything downstream.

    *critical* / *combo_count* carry a crit reported separately by the crit
    detector; the event's own ``critical`` flag is honoured as well.
    """
    work = snapshot.copy()
    result = Transition(snapshot=work)
    today = ctx.current_date()
    result.quests_reset = reset_if_new_day(work, today)
    update_streak(work.activity_streak, today)

    is_crit = critical or event.critical
    combo = event.combo_count or combo_count or ctx.external.combo_count or 1

    result.breakdown = calculate_xp(
        work,
        event,
        title_bonus=get_active_title_bonus(work),
        external=ctx.external,
        critical=is_crit,
        combo_count=combo,
        rng=ctx.rng,
    )

    length = event.effective_length
    work.activity.messages_sent += 1
    work.activity.characters_typed += length
    if is_crit:
        work.activity.crits_landed += 1

    _award(work, result.breakdown.total, result, ctx)
    _advance_quest(work, "message_master", 1, result, ctx)
    _advance_quest(work, "character_champion", length, result, ctx)
    _advance_quest(work, "perfect_streak", 1, result, ctx)
    return result


def apply_channel_visit(
    snapshot: ProgressionSnapshot,
    event: ChannelVisited,
    ctx: Context = Context(),
) -> Transition:
    """Record a channel visit; a first visit advances the explorer quest."""
    work = snapshot.copy()
    result = Transition(snapshot=work)
    result.quests_reset = reset_if_new_day(work, ctx.current_date())

    channel_id = str(event.channel_id)
    if channel_id and channel_id not in work.activity.unique_channels_visited:
        work.activity.unique_channels_visited.add(channel_id)
        result.new_channel = True
        _advance_quest(work, "channel_explorer", 1, result, ctx)
    _settle(work, result, ctx)
    return result


def apply_time_tick(
    snapshot: ProgressionSnapshot,
    event: TimeTick,
    ctx: Context = Context(),
) -> Transition:
    """Accumulate active minutes."""
    work = snapshot.copy()
    result = Transition(snapshot=work)
    result.quests_reset = reset_if_new_day(work, ctx.current_date())

    minutes = max(float(event.minutes), 0.0)
    work.activity.time_active_minutes += minutes
    _advance_quest(work, "active_adventurer", minutes, result, ctx)
    _settle(work, result, ctx)
    return result


def award_xp(
    snapshot: ProgressionSnapshot,
    amount: int,
    ctx: Context = Context(),
) -> Transition:
    """Grant a flat XP amount outside the message pipeline."""
    work = snapshot.copy()
    result = Transition(snapshot=work)
    _award(work, max(int(amount), 0), result, ctx)
    return result


def allocate(
    snapshot: ProgressionSnapshot,
    stat_name: str,
    ctx: Context = Context(),
) -> Transition:
    """Spend one stat point.

    Raises
    ------
    InvalidStatName, NoPointsAvailable
        Propagated from :func:`~arise.engine.stats.allocate_stat_point`.
    """
    work = allocate_stat_point(
        snapshot, stat_name,
        rng=ctx.rng, title_bonus=get_active_title_bonus(snapshot), external=ctx.external,
    )
    result = Transition(snapshot=work, stat_allocated=True)
    _settle(work, result, ctx)
    return result


def equip_title(
    snapshot: ProgressionSnapshot,
    title: str | None,
    ctx: Context = Context(),
) -> Transition | None:
    """Equip or clear a title.  Returns None if the title was rejected."""
    work = snapshot.copy()
    if not set_active_title(work, title):
        return None
    result = Transition(snapshot=work, title_changed=work.active_title != snapshot.active_title)
    recompute_resource_pools(
        work, restore=False,
        title_bonus=get_active_title_bonus(work), external=ctx.external,
    )
    return result


def start_day(snapshot: ProgressionSnapshot, ctx: Context = Context()) -> Transition:
    """Roll the daily quests over to *today* without recording any activity."""
    work = snapshot.copy()
    result = Transition(snapshot=work)
    result.quests_reset = reset_if_new_day(work, ctx.current_date())
    return result


def reconcile(snapshot: ProgressionSnapshot, ctx: Context = Context()) -> Transition:
    """Startup pass: daily reset, level reconciliation, catch-up promotions."""
    work = snapshot.copy()
    result = Transition(snapshot=work)
    result.quests_reset = reset_if_new_day(work, ctx.current_date())
    _settle(work, result, ctx)
    return result
