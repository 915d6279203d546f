"""
arise.services.replay_service — JSON-Lines Event Replay
========================================================

Feeds a recorded activity log through a :class:`ProgressionService`.  One
JSON object per line, discriminated on ``type``::

    {"type": "message", "length": 120, "text": "...", "hour": 21}
    {"type": "critical_hit", "combo_count": 3}
    {"type": "channel", "channel_id": "general"}
    {"type": "tick", "minutes": 5}
    {"type": "allocate", "stat": "agi"}
    {"type": "title", "title": "The Weakest"}

Blank lines and ``#`` comments are skipped.  A line that fails validation
is logged and counted, and the replay continues.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from arise.engine.events import ContentFlags
from arise.errors import ProgressionError
from arise.services.progression_service import ProgressionService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Payload models
# ---------------------------------------------------------------------------
class FlagsPayload(BaseModel):
    has_link: bool = False
    has_code: bool = False
    has_emoji: bool = False
    has_mentions: bool = False
    word_diversity: int = Field(default=0, ge=0)
    is_question: bool = False
    is_proper_sentence: bool = False
    has_numbered_list: bool = False
    has_bullets: bool = False
    line_count: int = Field(default=1, ge=1)


class MessageEvent(BaseModel):
    type: Literal["message"]
    length: int | None = Field(default=None, ge=0)
    text: str | None = None
    flags: FlagsPayload | None = None
    channel_id: str | None = None
    hour: int | None = Field(default=None, ge=0, le=23)
    critical: bool = False
    combo_count: int | None = Field(default=None, ge=1)
    timestamp: datetime | None = None


class CriticalHitEvent(BaseModel):
    type: Literal["critical_hit"]
    combo_count: int = Field(default=1, ge=1)


class ChannelEvent(BaseModel):
    type: Literal["channel"]
    channel_id: str


class TickEvent(BaseModel):
    type: Literal["tick"]
    minutes: float = Field(ge=0)


class AllocateEvent(BaseModel):
    type: Literal["allocate"]
    stat: str


class TitleEvent(BaseModel):
    type: Literal["title"]
    title: str | None = None


ReplayEvent = Annotated[
    MessageEvent | CriticalHitEvent | ChannelEvent | TickEvent | AllocateEvent | TitleEvent,
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter[ReplayEvent] = TypeAdapter(ReplayEvent)


def parse_event(line: str) -> ReplayEvent:
    """Validate one JSON line.  Raises :class:`pydantic.ValidationError`."""
    return _event_adapter.validate_json(line)


# ---------------------------------------------------------------------------
# Replay
# ---------------------------------------------------------------------------
@dataclass
class ReplaySummary:
    processed: int = 0
    skipped: int = 0
    xp_awarded: int = 0
    levels_gained: int = 0
    promotions: list[str] = field(default_factory=list)
    unlocked: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _dispatch(service: ProgressionService, event: ReplayEvent, summary: ReplaySummary) -> None:
    transition = None
    match event:
        case MessageEvent():
            flags = (
                ContentFlags(**event.flags.model_dump())
                if event.flags is not None
                else ContentFlags.from_text(event.text or "")
            )
            length = event.length if event.length is not None else len(event.text or "")
            transition = service.on_message_sent(
                length,
                flags,
                channel_id=event.channel_id,
                hour=event.hour,
                critical=event.critical,
                combo_count=event.combo_count,
                timestamp=event.timestamp,
            )
        case CriticalHitEvent():
            service.on_critical_hit(event.combo_count)
        case ChannelEvent():
            transition = service.on_channel_visited(event.channel_id)
        case TickEvent():
            transition = service.on_time_tick(event.minutes)
        case AllocateEvent():
            transition = service.allocate_stat_point(event.stat)
        case TitleEvent():
            if not service.set_active_title(event.title):
                raise ValueError(f"Title not available: {event.title!r}")

    if transition is not None:
        summary.xp_awarded += transition.xp_awarded
        summary.levels_gained += transition.levels_gained
        summary.promotions.extend(str(r) for r in transition.promotions)
        summary.unlocked.extend(a.name for a in transition.unlocked)


def replay_lines(service: ProgressionService, lines: Iterable[str]) -> ReplaySummary:
    """Replay every event in *lines*, then flush."""
    summary = ReplaySummary()
    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        try:
            event = parse_event(line)
            _dispatch(service, event, summary)
        except (ValidationError, ProgressionError, ValueError) as exc:
            summary.skipped += 1
            summary.errors.append(f"line {lineno}: {exc}")
            logger.warning("Skipping replay line %d: %s", lineno, exc)
            continue
        summary.processed += 1
        service.tick()

    service.flush()
    logger.info(
        "Replay finished: %d processed, %d skipped, +%d XP",
        summary.processed, summary.skipped, summary.xp_awarded,
    )
    return summary


def replay_file(service: ProgressionService, path: str | Path) -> ReplaySummary:
    with open(path, encoding="utf-8") as fh:
        return replay_lines(service, fh)
