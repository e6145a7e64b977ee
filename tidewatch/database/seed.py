"""
tidewatch.database.seed — Default Achievement Catalog Seeder
=============================================================

Seeds the default achievement definitions from ``seeds/achievements.yaml``.

Idempotent — only inserts definitions whose ``name`` doesn't exist yet.
Definitions edited later by administrators are never overwritten.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from tidewatch.database.models import AchievementCategory, AchievementDefinition

logger = logging.getLogger(__name__)

# Resolve the seeds directory relative to the project root
SEEDS_DIR = Path(__file__).resolve().parent.parent.parent / "seeds"


def load_seed_file(path: Path) -> list[dict[str, Any]]:
    """Load the list of achievement entries from a YAML seed file."""
    if not path.exists():
        logger.warning("Seed file not found: %s", path)
        return []
    with open(path, encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    return list(data.get("achievements") or [])


def seed_achievement_catalog(engine: Engine, path: Path | None = None) -> int:
    """Insert default achievement definitions that don't yet exist.

    Returns the number of inserted rows.
    """
    entries = load_seed_file(path or SEEDS_DIR / "achievements.yaml")
    if not entries:
        return 0

    inserted = 0
    with Session(engine) as session:
        existing = set(session.scalars(select(AchievementDefinition.name)).all())
        for item in entries:
            if item["name"] in existing:
                continue
            category = AchievementCategory(item["category"])
            session.add(AchievementDefinition(
                name=item["name"],
                description=item.get("description"),
                category=category.value,
                points=int(item.get("points", 0)),
                criteria=dict(item.get("criteria") or {}),
                icon=item.get("icon"),
            ))
            inserted += 1
        session.commit()

    if inserted:
        logger.info("Seeded %d achievement definitions.", inserted)
    return inserted
