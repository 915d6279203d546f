"""
arise.services.save_scheduler — Debounced / Immediate Persistence
==================================================================

Routine mutations (a message worth of XP, a time tick) mark the state dirty
and are written once things go quiet for ``debounce_seconds``.  Important
mutations (level-up, promotion, unlocks, quest completion, allocation, new
channel) flush at once.  Under continuous activity the debounce would never
fire, so a dirty state is also written once ``autosave_interval_seconds``
has passed since the last successful save.

There is no background thread: the host calls :meth:`SaveScheduler.tick`
from whatever loop it already runs.  The clock is injectable for tests.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class SaveScheduler:
    """Decides *when* to call ``save``; never *what* to save.

    ``save`` returns True on success.  A failed save leaves the state dirty
    so the next :meth:`tick` tries again.
    """

    def __init__(
        self,
        save: Callable[[], bool],
        *,
        debounce_seconds: float = 5.0,
        autosave_interval_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._save = save
        self.debounce_seconds = debounce_seconds
        self.autosave_interval_seconds = autosave_interval_seconds
        self._clock = clock
        self._dirty = False
        self._last_change: float | None = None
        self._last_save = clock()
        self.save_count = 0

    @property
    def dirty(self) -> bool:
        return self._dirty

    def mark_dirty(self, *, important: bool = False) -> bool:
        """Record a mutation.  Returns True if it was flushed right away."""
        self._dirty = True
        self._last_change = self._clock()
        if important:
            return self.flush()
        return False

    def tick(self) -> bool:
        """Flush if the debounce window or the autosave interval elapsed."""
        if not self._dirty:
            return False
        now = self._clock()
        quiet_for = now - (self._last_change or now)
        since_save = now - self._last_save
        if quiet_for >= self.debounce_seconds or since_save >= self.autosave_interval_seconds:
            return self.flush()
        return False

    def flush(self) -> bool:
        """Save now if anything is pending."""
        if not self._dirty:
            return False
        if not self._save():
            logger.warning("Save failed; state stays dirty for the next attempt")
            return False
        self._dirty = False
        self._last_save = self._clock()
        self.save_count += 1
        return True
