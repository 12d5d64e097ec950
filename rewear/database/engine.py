"""
rewear.database.engine — Database Connection & Session Helpers
===============================================================

SQLAlchemy + psycopg2 is **synchronous**.  FastAPI runs plain ``def``
route handlers on its thread pool, so services open their own sessions
and never block the event loop.  The few ``async`` call sites (rate-limit
dependencies) go through :func:`run_db`.

Every settlement runs inside one transaction.  On PostgreSQL the
conditional ``UPDATE … WHERE status = …`` statements take row locks, so a
second writer waits and then sees zero matched rows.  SQLite has no row
locks; :func:`configure_sqlite_locking` makes every transaction start with
``BEGIN IMMEDIATE`` so concurrent writers queue on the database lock
instead of failing on a lock upgrade.

Usage::

    from rewear.database.engine import create_db_engine, init_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session

from rewear.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# Seconds a SQLite writer waits for the database lock
SQLITE_BUSY_TIMEOUT = 30


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine`.

    *url* defaults to the ``DATABASE_URL`` env var.  PostgreSQL URLs get a
    small pool:

    * ``pool_size=5`` — five persistent connections.
    * ``max_overflow=10`` — up to 10 extra connections under load.
    * ``pool_timeout=10`` — fail after 10 s if no connection is available.
    * ``pool_recycle=3600`` — recycle connections after 1 hour.

    SQLite URLs (local development, tests) skip pool sizing and are wired
    through :func:`configure_sqlite_locking`.

    Raises
    ------
    RuntimeError
        If no URL is given and ``DATABASE_URL`` is not set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT},
        )
        configure_sqlite_locking(engine)
    else:
        engine = create_engine(
            url,
            echo=False,        # Set True for SQL debugging
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,   # Reconnect stale connections automatically
            pool_timeout=10,
            pool_recycle=3600,
        )
    logger.info("Database engine created → %s", engine.url.render_as_string(hide_password=True))
    return engine


def configure_sqlite_locking(engine: Engine) -> None:
    """Make pysqlite transactions start with ``BEGIN IMMEDIATE``.

    pysqlite's own implicit BEGIN is disabled so SQLAlchemy controls the
    transaction boundary; the ``begin`` hook then takes the write lock up
    front.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`rewear.database.models`.

    Safe to call on every startup (``CREATE TABLE IF NOT EXISTS`` under
    the hood).  Afterwards seeds default settings so the points tuning
    knobs exist.  Seeding is idempotent.

    .. note::

        In production the schema is managed by Alembic (``alembic upgrade
        head``).  ``create_all`` is retained for dev/test environments.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")

    from rewear.database.seed import seed_default_settings

    seed_default_settings(engine)


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that commits on success and rolls back
    on exception.

    Usage::

        with get_session(engine) as session:
            session.add(User(username="drew", ...))
            # commit happens automatically on block exit
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database function on a background thread.

    Used by ``async`` FastAPI dependencies so the event loop is never
    blocked::

        allowed, info = await run_db(limiter.check, "swap_request", user_id)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
