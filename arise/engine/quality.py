"""
arise.engine.quality — Additive Base Bonuses
=============================================

Stage 1 of the XP pipeline: flat points added on top of the base 10 for
message length, content, structure, time of day, channel activity and the
daily streak.  Every threshold is independent; nothing here multiplies.
"""

from __future__ import annotations

from arise.constants import round_half_up
from arise.engine.events import ContentFlags

# ---------------------------------------------------------------------------
# Thresholds (single source of truth)
# ---------------------------------------------------------------------------
BASE_MESSAGE_XP = 10
LENGTH_XP_PER_CHAR = 0.15
LENGTH_XP_CAP = 75

# (exclusive lower bound, bonus): each tier stacks
_LENGTH_TIERS: tuple[tuple[int, int], ...] = ((200, 20), (500, 15), (1000, 25))
_LINK_BONUS = 5
_CODE_BONUS = 10
_EMOJI_BONUS = 3
_EMOJI_MIN_LENGTH = 50
_MENTION_BONUS = 2
_DIVERSITY_MIN_WORDS = 10
_DIVERSITY_MIN_LENGTH = 100
_DIVERSITY_PER_WORD = 0.5
_DIVERSITY_CAP = 15
_QUESTION_BONUS = 5
_QUESTION_MIN_LENGTH = 30
_SENTENCE_BONUS = 3

_NUMBERED_LIST_BONUS = 5
_BULLET_BONUS = 5
_MULTILINE_BONUS = 8

_EVENING_BONUS = 5      # 18:00–23:59
_NIGHT_OWL_BONUS = 8    # 00:00–04:59
_CHANNEL_BONUS = 2

# Consecutive days → bonus; 7+ days caps at the last entry
STREAK_TIERS: tuple[int, ...] = (0, 1, 2, 4, 6, 8, 10, 12)


def length_bonus(length: int) -> float:
    return min(max(length, 0) * LENGTH_XP_PER_CHAR, LENGTH_XP_CAP)


def quality_bonus(length: int, flags: ContentFlags) -> int:
    """Content-quality points for one message."""
    bonus = 0.0
    for threshold, points in _LENGTH_TIERS:
        if length > threshold:
            bonus += points

    if flags.has_link:
        bonus += _LINK_BONUS
    if flags.has_code:
        bonus += _CODE_BONUS
    if flags.has_emoji and length > _EMOJI_MIN_LENGTH:
        bonus += _EMOJI_BONUS
    if flags.has_mentions:
        bonus += _MENTION_BONUS

    # Vocabulary only counts on messages long enough to carry it
    if flags.word_diversity > _DIVERSITY_MIN_WORDS and length > _DIVERSITY_MIN_LENGTH:
        bonus += min(flags.word_diversity * _DIVERSITY_PER_WORD, _DIVERSITY_CAP)

    if flags.is_question and length > _QUESTION_MIN_LENGTH:
        bonus += _QUESTION_BONUS
    if flags.is_proper_sentence:
        bonus += _SENTENCE_BONUS

    return round_half_up(bonus)


def structure_bonus(flags: ContentFlags) -> int:
    bonus = 0
    if flags.has_numbered_list:
        bonus += _NUMBERED_LIST_BONUS
    if flags.has_bullets:
        bonus += _BULLET_BONUS
    if flags.line_count > 2:
        bonus += _MULTILINE_BONUS
    return bonus


def time_bonus(hour: int) -> int:
    hour %= 24
    if 18 <= hour <= 23:
        return _EVENING_BONUS
    if 0 <= hour <= 4:
        return _NIGHT_OWL_BONUS
    return 0


def channel_bonus(channel_id: str | None) -> int:
    return _CHANNEL_BONUS if channel_id else 0


def streak_bonus(streak_days: int) -> int:
    """Tiered streak points, capped at the 7-day tier."""
    days = max(int(streak_days), 0)
    return STREAK_TIERS[min(days, len(STREAK_TIERS) - 1)]


def additive_base(
    length: int,
    flags: ContentFlags,
    *,
    hour: int,
    channel_id: str | None = None,
    streak_days: int = 0,
) -> float:
    """Stage 1 total.  Left unrounded; stage 2 rounds once."""
    length = max(int(length), 0)
    return (
        BASE_MESSAGE_XP
        + length_bonus(length)
        + quality_bonus(length, flags)
        + structure_bonus(flags)
        + time_bonus(hour)
        + channel_bonus(channel_id)
        + streak_bonus(streak_days)
    )
