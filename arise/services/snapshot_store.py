"""
arise.services.snapshot_store — Validated Snapshot Persistence
===============================================================

Two rows per profile in ``progression_snapshots``: ``<profile>:primary``
and ``<profile>:backup``.

Save:
  validate → write primary (retried) → mirror to backup.  If every primary
  attempt fails the backup slot still receives the snapshot; if that fails
  too the failure is logged and the caller keeps running on its in-memory
  state.

Load:
  primary → backup → defaults.  A missing or corrupt slot falls through to
  the next one.  Legacy layouts are migrated and retired titles purged on
  the way in.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError

from arise.database.engine import get_session
from arise.database.models import ProgressionSnapshotRow, SnapshotSlot
from arise.engine.snapshot import (
    SCHEMA_VERSION,
    ProgressionSnapshot,
    snapshot_from_dict,
    snapshot_to_dict,
    validate_for_save,
)
from arise.errors import CorruptSnapshot, PersistenceFailure, SaveRejected

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

DEFAULT_RETRY_ATTEMPTS = 3


def slot_key(profile_name: str, slot: SnapshotSlot) -> str:
    return f"{profile_name}:{slot}"


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def _write_slot(engine: Engine, profile_name: str, slot: SnapshotSlot, payload: str) -> None:
    with get_session(engine) as session:
        session.merge(
            ProgressionSnapshotRow(
                slot_key=slot_key(profile_name, slot),
                profile_name=profile_name,
                slot=str(slot),
                schema_version=SCHEMA_VERSION,
                payload_json=payload,
            )
        )


def _write_with_retry(
    engine: Engine,
    profile_name: str,
    slot: SnapshotSlot,
    payload: str,
    attempts: int,
) -> None:
    """Write one slot, retrying on database errors.

    Raises
    ------
    PersistenceFailure
        After *attempts* consecutive failures.
    """
    for attempt in range(1, attempts + 1):
        try:
            _write_slot(engine, profile_name, slot, payload)
            return
        except SQLAlchemyError as exc:
            logger.warning(
                "Snapshot write to %s failed (attempt %d/%d): %s",
                slot_key(profile_name, slot), attempt, attempts, exc,
            )
    raise PersistenceFailure(f"Could not write {slot_key(profile_name, slot)} after {attempts} attempts")


def save_snapshot(
    engine: Engine,
    profile_name: str,
    snapshot: ProgressionSnapshot,
    *,
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
) -> bool:
    """Persist *snapshot*.  Never raises.

    Returns
    -------
    True if the primary slot was written.  False when validation rejected
    the snapshot or the primary slot could not be written (the backup slot
    may still hold it).
    """
    try:
        validate_for_save(snapshot)
    except SaveRejected:
        logger.exception("Snapshot for %r rejected; keeping previously saved state", profile_name)
        return False

    payload = json.dumps(snapshot_to_dict(snapshot), sort_keys=True)

    try:
        _write_with_retry(engine, profile_name, SnapshotSlot.PRIMARY, payload, retry_attempts)
        primary_ok = True
    except PersistenceFailure:
        logger.exception("Primary snapshot slot unavailable for %r; falling back to backup", profile_name)
        primary_ok = False

    try:
        _write_with_retry(engine, profile_name, SnapshotSlot.BACKUP, payload, 1)
    except PersistenceFailure:
        logger.exception("Backup snapshot slot unavailable for %r; progress not persisted", profile_name)

    if primary_ok:
        logger.debug("Snapshot saved for %r (total_xp=%d)", profile_name, snapshot.total_xp)
    return primary_ok


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def _read_slot(engine: Engine, profile_name: str, slot: SnapshotSlot) -> ProgressionSnapshot | None:
    """Load one slot.  None when the row does not exist.

    Raises
    ------
    CorruptSnapshot
        Unparseable JSON or a payload that fails validation.
    """
    with get_session(engine) as session:
        row = session.get(ProgressionSnapshotRow, slot_key(profile_name, slot))
        if row is None:
            return None
        raw = row.payload_json
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        raise CorruptSnapshot(f"{slot_key(profile_name, slot)} is not valid JSON") from exc
    return snapshot_from_dict(data)


def load_snapshot(engine: Engine, profile_name: str) -> ProgressionSnapshot:
    """Load the profile's snapshot, falling back to backup, then defaults."""
    for slot in (SnapshotSlot.PRIMARY, SnapshotSlot.BACKUP):
        try:
            snapshot = _read_slot(engine, profile_name, slot)
        except CorruptSnapshot:
            logger.exception("Corrupt %s snapshot for %r", slot, profile_name)
            continue
        except SQLAlchemyError:
            logger.exception("Could not read %s snapshot for %r", slot, profile_name)
            continue
        if snapshot is not None:
            if slot is SnapshotSlot.BACKUP:
                logger.warning("Restored %r from backup slot", profile_name)
            return snapshot

    logger.info("No usable snapshot for %r; starting fresh", profile_name)
    return ProgressionSnapshot()


def delete_snapshots(engine: Engine, profile_name: str) -> int:
    """Remove both slots for a profile.  Returns the number of rows deleted."""
    with get_session(engine) as session:
        result = session.execute(
            delete(ProgressionSnapshotRow).where(
                ProgressionSnapshotRow.profile_name == profile_name
            )
        )
        count = result.rowcount or 0
    logger.info("Deleted %d snapshot slot(s) for %r", count, profile_name)
    return count
