"""
arise.errors — Exception Taxonomy
==================================

Caller mistakes (bad stat name, empty point budget) raise ``ValueError``
subclasses straight to the caller.  Persistence problems are caught at the
store boundary, logged, and never crash the host.
"""

from __future__ import annotations


class ProgressionError(Exception):
    """Base class for every error raised by the engine."""


class InvalidStatName(ProgressionError, ValueError):
    """An unknown stat name was passed to a stat-mutating operation."""

    def __init__(self, stat_name: object) -> None:
        super().__init__(f"Invalid stat name: {stat_name!r}")
        self.stat_name = stat_name


class NoPointsAvailable(ProgressionError, ValueError):
    """Stat allocation was attempted with zero unallocated points."""

    def __init__(self) -> None:
        super().__init__("No stat points available")


class CorruptSnapshot(ProgressionError, ValueError):
    """A persisted snapshot failed load-time validation."""


class SaveRejected(ProgressionError, ValueError):
    """A snapshot failed save-time validation; the write was aborted."""


class PersistenceFailure(ProgressionError):
    """A transient write failure in the snapshot store."""
