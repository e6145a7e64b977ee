"""
tidewatch.services.achievement_service — Aggregates & Idempotent Grants
========================================================================

Builds an :class:`AchievementContext` from stored data, asks the pure
pipeline which definitions are newly satisfied, and grants them.

Grants are idempotent under concurrency: the ``user_achievements`` composite
primary key is the arbiter.  Each grant is inserted inside a SAVEPOINT; an
``IntegrityError`` means another transaction granted it first, so the grant
and its bonus are skipped while the outer transaction carries on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tidewatch.constants import achievement_action
from tidewatch.database.engine import get_session
from tidewatch.database.models import (
    AchievementDefinition,
    Report,
    ReportComment,
    ReportStatus,
    User,
    UserAchievement,
)
from tidewatch.engine.achievements import AchievementContext, check_achievements, criteria_progress
from tidewatch.engine.events import AchievementEarned
from tidewatch.errors import NotFound
from tidewatch.services.ledger_service import Reference, record_award

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from tidewatch.engine.catalog import AchievementCatalog, CatalogEntry

logger = logging.getLogger(__name__)

# Safety valve for the re-evaluation loop; a catalog can't chain deeper.
_MAX_PASSES = 32


@dataclass(frozen=True, slots=True)
class EarnedBadge:
    achievement_id: int
    name: str
    description: str | None
    category: str
    icon: str | None
    points: int
    earned_at: datetime


@dataclass(frozen=True, slots=True)
class AchievementProgress:
    achievement_id: int
    name: str
    category: str
    current: int
    target: int
    percent: int
    earned: bool


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------
def get_earned_achievement_ids(session: Session, user_id: int) -> set[int]:
    """Get set of achievement ids the user has already earned."""
    rows = session.scalars(
        select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
    ).all()
    return set(rows)


def build_context(session: Session, user_id: int) -> AchievementContext:
    """Aggregate the user's stored activity into an AchievementContext."""
    points = session.scalar(select(User.points).where(User.id == user_id))
    if points is None:
        raise NotFound(f"User {user_id} not found")

    live = (Report.reporter_id == user_id, Report.deleted_at.is_(None))

    report_count = session.scalar(select(func.count()).select_from(Report).where(*live))
    validated_count = session.scalar(
        select(func.count()).select_from(Report).where(
            *live, Report.status == ReportStatus.VALIDATED.value
        )
    )
    category_count = session.scalar(
        select(func.count(func.distinct(Report.category))).where(*live)
    )
    coords = session.execute(select(Report.longitude, Report.latitude).where(*live)).all()
    location_count = len({(round(lon, 2), round(lat, 2)) for lon, lat in coords})
    comment_count = session.scalar(
        select(func.count()).select_from(ReportComment).where(ReportComment.user_id == user_id)
    )

    return AchievementContext(
        report_count=report_count or 0,
        validated_count=validated_count or 0,
        category_count=category_count or 0,
        location_count=location_count,
        points=points,
        comment_count=comment_count or 0,
    )


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------
def evaluate_achievements(
    session: Session,
    catalog: AchievementCatalog,
    user_id: int,
) -> list[CatalogEntry]:
    """Grant every newly satisfied achievement and credit its reward.

    Bonus points can unlock point-based achievements, so evaluation repeats
    until a pass grants nothing.  Returns the entries granted by this call.
    """
    granted: list[CatalogEntry] = []

    for _ in range(_MAX_PASSES):
        earned = get_earned_achievement_ids(session, user_id)
        ctx = build_context(session, user_id)
        candidates = check_achievements(catalog, ctx, earned)

        progressed = False
        for entry in candidates:
            try:
                with session.begin_nested():   # SAVEPOINT
                    session.add(UserAchievement(user_id=user_id, achievement_id=entry.id))
                    session.flush()
            except IntegrityError:
                # Granted concurrently; the SAVEPOINT rolled back, outer txn is alive.
                logger.info("Achievement %s already granted to user %d", entry.name, user_id)
                continue

            record_award(
                session,
                user_id,
                achievement_action(entry.name),
                entry.points,
                reference=Reference("achievement", entry.id),
            )
            granted.append(entry)
            progressed = True
            logger.info("Achievement earned: %s (id=%d) by user %d", entry.name, entry.id, user_id)

        if not progressed:
            break

    return granted


def achievement_events(user_id: int, granted: list[CatalogEntry]) -> list[AchievementEarned]:
    return [
        AchievementEarned(
            user_id=user_id,
            achievement_id=entry.id,
            achievement_name=entry.name,
            points=entry.points,
        )
        for entry in granted
    ]


def evaluate_user(engine: Engine, catalog: AchievementCatalog, user_id: int) -> list[CatalogEntry]:
    """Standalone evaluation in its own transaction."""
    with get_session(engine) as session:
        return evaluate_achievements(session, catalog, user_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def list_user_achievements(engine: Engine, user_id: int) -> list[EarnedBadge]:
    """Earned badges for *user_id*, newest first."""
    with Session(engine) as session:
        rows = session.execute(
            select(UserAchievement, AchievementDefinition)
            .join(AchievementDefinition, AchievementDefinition.id == UserAchievement.achievement_id)
            .where(UserAchievement.user_id == user_id)
            .order_by(UserAchievement.earned_at.desc(), AchievementDefinition.id.desc())
        ).all()
        return [
            EarnedBadge(
                achievement_id=defn.id,
                name=defn.name,
                description=defn.description,
                category=defn.category,
                icon=defn.icon,
                points=defn.points,
                earned_at=grant.earned_at,
            )
            for grant, defn in rows
        ]


def achievement_progress(
    engine: Engine,
    catalog: AchievementCatalog,
    user_id: int,
) -> list[AchievementProgress]:
    """Progress toward every catalog achievement, in catalog order."""
    with Session(engine) as session:
        ctx = build_context(session, user_id)
        earned = get_earned_achievement_ids(session, user_id)

    result = []
    for entry in catalog:
        current, target, percent = criteria_progress(entry, ctx)
        is_earned = entry.id in earned
        result.append(AchievementProgress(
            achievement_id=entry.id,
            name=entry.name,
            category=entry.category.value,
            current=current,
            target=target,
            percent=100 if is_earned else percent,
            earned=is_earned,
        ))
    return result
