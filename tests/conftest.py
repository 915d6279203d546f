"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import random
from datetime import date

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

from arise.database.models import Base
from arise.engine.progression import Context
from arise.engine.snapshot import ProgressionSnapshot

TODAY = date(2026, 10, 19)


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Arise tables.

    Uses StaticPool so every session shares the same in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def snapshot() -> ProgressionSnapshot:
    """A fresh snapshot whose daily quests already belong to TODAY."""
    snap = ProgressionSnapshot()
    snap.last_reset_date = TODAY.isoformat()
    return snap


@pytest.fixture
def ctx() -> Context:
    """Deterministic transition context: fixed day, clock and seed."""
    return Context(today=TODAY, now=1_700_000_000.0, rng=random.Random(42))
