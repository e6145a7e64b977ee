"""
tidewatch.services.stats_service — Report Statistics & User Profiles
=====================================================================

Read-only summaries for dashboards.  Tombstoned reports are excluded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tidewatch.constants import level_progress
from tidewatch.database.models import Report, ReportStatus, User, UserAchievement
from tidewatch.errors import NotFound
from tidewatch.services.leaderboard_service import global_rank

if TYPE_CHECKING:
    from sqlalchemy import Engine


@dataclass(frozen=True, slots=True)
class ReportStatistics:
    total: int
    validated: int
    pending: int
    escalated: int
    average_score: float
    by_status: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class UserProfile:
    user_id: int
    display_name: str
    role: str
    region: str | None
    points: int
    level: int
    level_floor: int
    next_level_at: int | None
    level_percent: int
    reports_by_status: dict[str, int]
    reports_by_category: dict[str, int]
    report_count: int
    validation_rate: float
    badge_count: int
    rank: int | None


def report_statistics(engine: Engine) -> ReportStatistics:
    live = Report.deleted_at.is_(None)
    with Session(engine) as session:
        by_status = dict(session.execute(
            select(Report.status, func.count()).where(live).group_by(Report.status)
        ).all())
        average = session.scalar(select(func.avg(Report.validation_score)).where(live))

    return ReportStatistics(
        total=sum(by_status.values()),
        validated=by_status.get(ReportStatus.VALIDATED.value, 0),
        pending=by_status.get(ReportStatus.PENDING.value, 0),
        escalated=by_status.get(ReportStatus.ESCALATED.value, 0),
        average_score=round(float(average or 0), 2),
        by_status=by_status,
    )


def user_profile(engine: Engine, user_id: int) -> UserProfile:
    """Points, level progress, report breakdowns and rank for one user."""
    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")

        live = (Report.reporter_id == user_id, Report.deleted_at.is_(None))
        by_status = dict(session.execute(
            select(Report.status, func.count()).where(*live).group_by(Report.status)
        ).all())
        by_category = dict(session.execute(
            select(Report.category, func.count()).where(*live).group_by(Report.category)
        ).all())
        badge_count = session.scalar(
            select(func.count()).select_from(UserAchievement).where(UserAchievement.user_id == user_id)
        )
        rank = global_rank(session, user_id)

    level, floor, nxt, percent = level_progress(user.points)
    report_count = sum(by_status.values())
    validated = by_status.get(ReportStatus.VALIDATED.value, 0)
    return UserProfile(
        user_id=user.id,
        display_name=user.display_name,
        role=user.role,
        region=user.region,
        points=user.points,
        level=level,
        level_floor=floor,
        next_level_at=nxt,
        level_percent=percent,
        reports_by_status=by_status,
        reports_by_category=by_category,
        report_count=report_count,
        validation_rate=round(validated / report_count, 4) if report_count else 0.0,
        badge_count=badge_count or 0,
        rank=rank,
    )
