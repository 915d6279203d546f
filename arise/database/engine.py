"""
arise.database.engine — Database Connection & Session Helper
=============================================================

The engine is single-threaded and the host delivers events serially, so the
store is plain synchronous SQLAlchemy: one :class:`Engine`, short-lived
sessions, commit on success, roll back on error.

Usage::

    from arise.database.engine import create_db_engine, init_db, get_session

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    with get_session(engine) as session:
        session.add(row)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from arise.database.models import Base

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///arise.db"


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine`.

    Parameters
    ----------
    url:
        Explicit database URL.  When omitted, ``DATABASE_URL`` is read from
        the environment, falling back to a ``arise.db`` SQLite file in the
        working directory.

    Returns
    -------
    Engine
        A configured SQLAlchemy engine instance.
    """
    url = url or os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL

    engine = create_engine(
        url,
        echo=False,           # Set True for SQL debugging
        pool_pre_ping=True,   # Reconnect stale connections automatically
    )
    logger.info("Database engine created → %s", engine.url.render_as_string(hide_password=True))
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`arise.database.models`.

    Safe to call on every startup — ``CREATE TABLE IF NOT EXISTS`` under the
    hood.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """Yield a :class:`Session` that auto-commits on success and rolls back
    on exception.

    Usage::

        with get_session(engine) as session:
            session.merge(SharedState(namespace="arise", key="k", value_json="{}"))
            # commit happens automatically on block exit
    """
    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
