"""
tidewatch.__main__ — Entry point for ``python -m tidewatch``
=============================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Seed the default achievement catalog (idempotent).
5. Load the immutable AchievementCatalog.
6. Wire notification handlers onto the EventBus.
7. Log a summary of the community state.

Run with::

    python -m tidewatch [path/to/config.yaml]
"""

from __future__ import annotations

import logging
import sys

from dotenv import load_dotenv
from sqlalchemy.exc import OperationalError

from tidewatch.config import load_config
from tidewatch.database.engine import create_db_engine, init_db
from tidewatch.engine.catalog import load_catalog
from tidewatch.engine.events import EventBus
from tidewatch.errors import DependencyUnavailable
from tidewatch.services.leaderboard_service import get_leaderboard
from tidewatch.services.notification_service import LoggingNotifier, register_notification_handlers
from tidewatch.services.stats_service import report_statistics

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("tidewatch")


def main(argv: list[str] | None = None) -> int:
    """Bootstrap the Tidewatch core and report its state."""
    argv = sys.argv[1:] if argv is None else argv

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Soft configuration.
    try:
        cfg = load_config(argv[0] if argv else "config.yaml")
    except FileNotFoundError as exc:
        logger.critical("%s", exc)
        return 1
    logger.info("Config loaded — Community: %s", cfg.community_name)

    # 3–4. Database + catalog seed.
    try:
        engine = create_db_engine()
        init_db(engine, seed_catalog=cfg.seed_catalog)
    except RuntimeError as exc:
        logger.critical("%s", exc)
        return 1
    except (DependencyUnavailable, OperationalError) as exc:
        logger.critical("Database unavailable: %s", exc)
        return 1

    # 5. Catalog.
    catalog = load_catalog(engine)

    # 6. Notifications.
    bus = EventBus()
    register_notification_handlers(bus, engine, LoggingNotifier())

    # 7. Summary.
    stats = report_statistics(engine)
    top = get_leaderboard(engine, limit=cfg.leaderboard_default_limit,
                          max_limit=cfg.leaderboard_max_limit)
    logger.info(
        "Ready — %d achievements, %d reports (%d validated, %d pending), avg score %.1f",
        len(catalog), stats.total, stats.validated, stats.pending, stats.average_score,
    )
    for entry in top[:5]:
        logger.info("  #%d %s — %d pts (lvl %d, %d badges)",
                    entry.rank, entry.display_name, entry.points, entry.level, entry.badge_count)
    return 0


if __name__ == "__main__":
    sys.exit(main())
