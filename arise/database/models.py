"""
arise.database.models — SQLAlchemy 2.0 Data Models
===================================================

Tables:
- progression_snapshots — Opaque JSON snapshots, one row per slot
  (``<profile>:primary`` and ``<profile>:backup``)
- shared_state          — Keyed JSON values exchanged with sibling
  subsystems (skill tree, shadow army, crit detector)

The engine never reads these rows directly; the services in
:mod:`arise.services` own all I/O.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    DateTime,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Arise ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class SnapshotSlot(enum.StrEnum):
    """Which copy of a profile's snapshot a row holds."""
    PRIMARY = "primary"
    BACKUP = "backup"


# ---------------------------------------------------------------------------
# ProgressionSnapshotRow: one persisted snapshot per (profile, slot)
# ---------------------------------------------------------------------------
class ProgressionSnapshotRow(Base):
    """Serialized :class:`~arise.engine.snapshot.ProgressionSnapshot`.

    ``payload_json`` is the flat, JSON-compatible dict produced by
    :func:`~arise.engine.snapshot.snapshot_to_dict`.  The store never
    interprets it beyond validation.
    """
    __tablename__ = "progression_snapshots"

    slot_key: Mapped[str] = mapped_column(String(150), primary_key=True)
    profile_name: Mapped[str] = mapped_column(String(100), nullable=False)
    slot: Mapped[str] = mapped_column(String(20), nullable=False)
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    payload_json: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_progression_snapshots_profile", "profile_name"),
    )

    def __repr__(self) -> str:
        return f"<ProgressionSnapshotRow key={self.slot_key!r} v={self.schema_version}>"


# ---------------------------------------------------------------------------
# SharedState: cross-subsystem key-value store
# ---------------------------------------------------------------------------
class SharedState(Base):
    """Plain data snapshots shared between sibling subsystems.

    Keyed by ``(namespace, key)``, e.g. ``("skill_tree", "bonuses")`` or
    ``("arise", "crit_bonus")``.  Values are JSON strings.  Writers
    overwrite; readers tolerate absence and staleness.
    """
    __tablename__ = "shared_state"

    namespace: Mapped[str] = mapped_column(String(50), primary_key=True)
    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<SharedState {self.namespace}/{self.key}>"
