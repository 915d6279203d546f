"""
arise.engine.events — Inbound Event Envelopes
==============================================

Every signal the host's activity detectors report is normalized into one of
these frozen envelopes before the engine processes it.  The detectors
themselves (DOM observers, crit animations) are outside this package.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime

__all__ = [
    "MAX_MESSAGE_LENGTH",
    "ChannelVisited",
    "ContentFlags",
    "CriticalHit",
    "MessageSent",
    "TimeTick",
]

# Host chat limit; longer captures are almost always scraping mistakes
MAX_MESSAGE_LENGTH = 2000

# ---------------------------------------------------------------------------
# Content detection patterns
# ---------------------------------------------------------------------------
_LINK_REGEX = re.compile(r"https?://")
_CODE_REGEX = re.compile(r"```|`")
_UNICODE_EMOJI_REGEX = re.compile("[\U0001F300-\U0001F9FF]")
_CUSTOM_EMOJI_REGEX = re.compile(r"<a?:[a-zA-Z0-9_]+:[0-9]+>")
_MENTION_REGEX = re.compile(r"<@|@everyone|@here")
_WORD_REGEX = re.compile(r"\b\w+\b")
_SENTENCE_REGEX = re.compile(r"^[A-Z].*[.!?]$")
_NUMBERED_LIST_REGEX = re.compile(r"^\d+[.)]\s")
_BULLET_REGEX = re.compile(r"^[-*]\s", re.MULTILINE)


# ---------------------------------------------------------------------------
# ContentFlags: what the message contained, not what it said
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ContentFlags:
    """Content signals for one message.

    Detectors may fill these directly, or hand the raw text to
    :meth:`from_text`.  ``word_diversity`` is the count of distinct words.
    """

    has_link: bool = False
    has_code: bool = False
    has_emoji: bool = False
    has_mentions: bool = False
    word_diversity: int = 0
    is_question: bool = False
    is_proper_sentence: bool = False
    has_numbered_list: bool = False
    has_bullets: bool = False
    line_count: int = 1

    @classmethod
    def from_text(cls, text: str) -> ContentFlags:
        """Derive flags from raw message text."""
        text = text or ""
        words = _WORD_REGEX.findall(text.lower())
        return cls(
            has_link=bool(_LINK_REGEX.search(text)),
            has_code=bool(_CODE_REGEX.search(text)),
            has_emoji=bool(
                _UNICODE_EMOJI_REGEX.search(text) or _CUSTOM_EMOJI_REGEX.search(text)
            ),
            has_mentions=bool(_MENTION_REGEX.search(text)),
            word_diversity=len(set(words)),
            is_question="?" in text,
            is_proper_sentence=bool(_SENTENCE_REGEX.match(text)),
            has_numbered_list=bool(_NUMBERED_LIST_REGEX.match(text)),
            has_bullets=bool(_BULLET_REGEX.search(text)),
            line_count=len(text.split("\n")),
        )


# ---------------------------------------------------------------------------
# Event envelopes
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class MessageSent:
    """The user sent a message.

    ``hour`` overrides the hour of day used for the time bonus; when None
    the hour of ``timestamp`` is used.  ``critical`` / ``combo_count`` let a
    detector flag the crit inline instead of via a separate
    :class:`CriticalHit` event.
    """

    length: int
    flags: ContentFlags = field(default_factory=ContentFlags)
    channel_id: str | None = None
    hour: int | None = None
    critical: bool = False
    combo_count: int | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def effective_length(self) -> int:
        return max(0, min(int(self.length), MAX_MESSAGE_LENGTH))

    @property
    def effective_hour(self) -> int:
        hour = self.timestamp.hour if self.hour is None else int(self.hour)
        return hour % 24


@dataclass(frozen=True, slots=True)
class CriticalHit:
    """The crit detector flagged the user's latest message as a critical hit."""

    combo_count: int = 1


@dataclass(frozen=True, slots=True)
class ChannelVisited:
    """The user opened a channel."""

    channel_id: str


@dataclass(frozen=True, slots=True)
class TimeTick:
    """The user was active for ``minutes`` since the previous tick."""

    minutes: float
