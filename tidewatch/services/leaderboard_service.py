"""
tidewatch.services.leaderboard_service — Ranked Leaderboard Snapshots
======================================================================

Read-only aggregation over users and the point ledger.

* All-time boards rank by the live ``users.points`` total.
* Windowed boards (``days=N``) rank by the sum of ledger entries written in
  the last N days; users without entries in the window are not listed.

Only active users appear.  Ordering is points desc, level desc, user id asc,
and rank is the 1-based position in that order (no ties, no gaps).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from tidewatch.database.models import PointLog, User, UserAchievement, utcnow
from tidewatch.errors import InvalidContent, NotFound

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
DEFAULT_MAX_LIMIT = 100


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    rank: int
    user_id: int
    display_name: str
    region: str | None
    level: int
    points: int
    badge_count: int


def _badge_counts():
    return (
        select(UserAchievement.user_id, func.count().label("badge_count"))
        .group_by(UserAchievement.user_id)
        .subquery()
    )


def get_leaderboard(
    engine: Engine,
    *,
    region: str | None = None,
    days: int | None = None,
    limit: int = DEFAULT_LIMIT,
    max_limit: int = DEFAULT_MAX_LIMIT,
) -> list[LeaderboardEntry]:
    """Return the top *limit* users, optionally by region and trailing window."""
    limit = max(1, min(limit, max_limit))
    badges = _badge_counts()

    if days is None:
        score = User.points
        stmt = select(
            User.id, User.display_name, User.region, User.level,
            score.label("score"),
            func.coalesce(badges.c.badge_count, 0).label("badge_count"),
        )
    else:
        if days < 1:
            raise InvalidContent(
                "Invalid leaderboard window",
                [{"field": "days", "message": "must be at least 1"}],
            )
        cutoff = utcnow() - timedelta(days=days)
        window = (
            select(PointLog.user_id, func.sum(PointLog.points).label("score"))
            .where(PointLog.created_at >= cutoff)
            .group_by(PointLog.user_id)
            .subquery()
        )
        score = window.c.score
        stmt = (
            select(
                User.id, User.display_name, User.region, User.level,
                score.label("score"),
                func.coalesce(badges.c.badge_count, 0).label("badge_count"),
            )
            .join(window, window.c.user_id == User.id)
        )

    stmt = stmt.outerjoin(badges, badges.c.user_id == User.id).where(User.is_active.is_(True))
    if region is not None:
        stmt = stmt.where(User.region == region)
    stmt = stmt.order_by(score.desc(), User.level.desc(), User.id.asc()).limit(limit)

    with Session(engine) as session:
        rows = session.execute(stmt).all()

    return [
        LeaderboardEntry(
            rank=i,
            user_id=row.id,
            display_name=row.display_name,
            region=row.region,
            level=row.level,
            points=int(row.score or 0),
            badge_count=row.badge_count,
        )
        for i, row in enumerate(rows, start=1)
    ]


def global_rank(session: Session, user_id: int) -> int | None:
    """Position of *user_id* on the all-time board, or None if inactive."""
    user = session.get(User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")
    if not user.is_active:
        return None

    ahead = session.scalar(
        select(func.count()).select_from(User).where(
            User.is_active.is_(True),
            or_(
                User.points > user.points,
                and_(User.points == user.points, User.level > user.level),
                and_(User.points == user.points, User.level == user.level, User.id < user.id),
            ),
        )
    )
    return (ahead or 0) + 1
