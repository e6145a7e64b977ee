"""
tidewatch.database.engine — Database Connection & Session Helpers
=================================================================

Every service opens its own unit of work through :func:`get_session`, which
commits on success, rolls back on exception, and translates storage failures
into the domain taxonomy:

* ``StaleDataError`` (optimistic version check lost) → ``ConflictingUpdate``
* ``OperationalError`` (connection / server failure) → ``DependencyUnavailable``

Async callers (web handlers, workers) must not call the synchronous services
directly on the event loop; they go through :func:`run_db`, which ships the
call to a worker thread.

Usage::

    from tidewatch.database.engine import create_db_engine, init_db, get_session

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS + seed

    with get_session(engine) as session:
        session.add(User(display_name="Asha"))
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from tidewatch.database.models import Base
from tidewatch.errors import ConflictingUpdate, DependencyUnavailable

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine` from *url* or ``DATABASE_URL``.

    PostgreSQL gets a bounded pool sized for a handful of concurrent
    service calls (5 persistent connections, 10 overflow, 10 s checkout
    timeout, hourly recycle, pre-ping).  SQLite URLs keep the dialect's
    default pool.

    Raises
    ------
    RuntimeError
        If neither *url* nor ``DATABASE_URL`` is set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    if url.startswith("sqlite"):
        engine = create_engine(url, echo=False)
    else:
        engine = create_engine(
            url,
            echo=False,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,   # Reconnect stale connections automatically
            pool_timeout=10,
            pool_recycle=3600,
        )
    logger.info("Database engine created → %s", engine.url.host or engine.url.database)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine, *, seed_catalog: bool = True, seeds_path: Path | None = None) -> None:
    """Create all tables and (optionally) seed the default achievement catalog.

    Safe to call on every startup — ``CREATE TABLE IF NOT EXISTS`` under the
    hood, and the seeder only inserts definitions whose name is missing.

    .. note::

        Deployed databases are migrated with ``alembic upgrade head``;
        ``create_all`` covers local development and the test suite.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")

    if seed_catalog:
        from tidewatch.database.seed import seed_achievement_catalog

        seed_achievement_catalog(engine, seeds_path)


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """Yield a :class:`Session` that auto-commits on success and rolls back
    on exception.

    Objects stay readable after the block (``expire_on_commit=False``) so
    services can hand them back to callers.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except StaleDataError as exc:
        session.rollback()
        raise ConflictingUpdate(
            "The record was modified concurrently; retry the operation."
        ) from exc
    except OperationalError as exc:
        session.rollback()
        logger.error("Storage unavailable: %s", exc)
        raise DependencyUnavailable("Storage is unavailable.") from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** service function on a background thread.

    Every call from async code should go through this wrapper::

        report = await run_db(report_service.get_report, engine, report_id)

    Under the hood it calls :func:`asyncio.to_thread`, which schedules
    *func* on the default ``ThreadPoolExecutor`` so the event loop is never
    blocked.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
