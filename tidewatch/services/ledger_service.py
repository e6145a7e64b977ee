"""
tidewatch.services.ledger_service — Append-Only Point Ledger
=============================================================

Every point a user holds is backed by a ``point_log`` row.  Awards append the
row and bump ``users.points`` with a single relative ``UPDATE … SET points =
points + :delta`` in the same transaction, so concurrent awards to one user
never lose updates and ``users.points`` always equals the ledger sum.
``users.level`` is rewritten from the new total right after.

Negative deltas (corrections) are legal and never clamped.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.orm import Session

from tidewatch.constants import PRIVILEGED_ROLES, LedgerAction, level_for_points
from tidewatch.database.engine import get_session
from tidewatch.database.models import PointLog, User
from tidewatch.errors import Forbidden, InvalidContent, NotFound

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from tidewatch.engine.catalog import AchievementCatalog
    from tidewatch.engine.events import EventBus
    from tidewatch.engine.lifecycle import Actor

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Reference:
    """What an award is about, e.g. ``Reference("report", 42)``."""

    type: str
    id: int


@dataclass(frozen=True, slots=True)
class AwardResult:
    user_id: int
    points: int
    old_level: int
    new_level: int

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


@dataclass(frozen=True, slots=True)
class PointEntry:
    """Detached snapshot of one ledger row."""

    id: int
    user_id: int
    action: str
    points: int
    reference_type: str | None
    reference_id: int | None
    metadata: dict | None
    created_at: datetime

    @classmethod
    def from_row(cls, row: PointLog) -> PointEntry:
        return cls(
            id=row.id,
            user_id=row.user_id,
            action=row.action,
            points=row.points,
            reference_type=row.reference_type,
            reference_id=row.reference_id,
            metadata=row.metadata_,
            created_at=row.created_at,
        )


# ---------------------------------------------------------------------------
# Award (session-level: callers own the transaction)
# ---------------------------------------------------------------------------
def record_award(
    session: Session,
    user_id: int,
    action: str,
    points: int,
    reference: Reference | None = None,
    metadata: dict[str, Any] | None = None,
) -> AwardResult:
    """Append a ledger entry and apply it to the user's total and level."""
    result = session.execute(
        update(User)
        .where(User.id == user_id)
        .values(points=User.points + points)
        .execution_options(synchronize_session="evaluate")
    )
    if result.rowcount == 0:
        raise NotFound(f"User {user_id} not found")

    session.add(PointLog(
        user_id=user_id,
        action=str(action),
        points=points,
        reference_type=reference.type if reference else None,
        reference_id=reference.id if reference else None,
        metadata_=metadata,
    ))

    new_total = session.scalar(select(User.points).where(User.id == user_id))
    old_level = level_for_points(new_total - points)
    new_level = level_for_points(new_total)
    session.execute(
        update(User)
        .where(User.id == user_id)
        .values(level=new_level)
        .execution_options(synchronize_session="evaluate")
    )
    session.flush()

    logger.debug("Award %s %+d → user %d (total=%d, level=%d)",
                 action, points, user_id, new_total, new_level)
    return AwardResult(user_id=user_id, points=points, old_level=old_level, new_level=new_level)


# ---------------------------------------------------------------------------
# Manual award (privileged)
# ---------------------------------------------------------------------------
def award_points(
    engine: Engine,
    catalog: AchievementCatalog,
    actor: Actor,
    user_id: int,
    points: int,
    reason: str = "",
    *,
    bus: EventBus | None = None,
) -> AwardResult:
    """Credit (or debit) *points* to *user_id* by hand.

    Only super admins and NGO admins may do this.  Achievements are
    re-evaluated afterwards; the returned ``new_level`` includes any
    achievement bonus.
    """
    from tidewatch.services.achievement_service import achievement_events, evaluate_achievements

    if actor.role not in PRIVILEGED_ROLES:
        raise Forbidden("Only super admins and NGO admins can award points")
    if points == 0:
        raise InvalidContent(
            "Award must be non-zero",
            [{"field": "points", "message": "must not be zero"}],
        )

    with get_session(engine) as session:
        award = record_award(
            session,
            user_id,
            LedgerAction.MANUAL_AWARD,
            points,
            metadata={"reason": reason, "awarded_by": actor.user_id},
        )
        granted = evaluate_achievements(session, catalog, user_id)
        final_level = session.scalar(select(User.level).where(User.id == user_id))

    logger.info("Manual award %+d to user %d by %d (%s)", points, user_id, actor.user_id, reason)
    if bus is not None:
        bus.publish_all(achievement_events(user_id, granted))
    return AwardResult(
        user_id=user_id,
        points=points,
        old_level=award.old_level,
        new_level=final_level,
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
class PointHistory:
    """Lazy, restartable view of a user's ledger, newest first.

    Each iteration issues fresh keyset-paginated queries, so iterating twice
    yields the current contents both times.
    """

    def __init__(self, engine: Engine, user_id: int, batch_size: int = 100) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self._engine = engine
        self._user_id = user_id
        self._batch_size = batch_size

    def __iter__(self) -> Iterator[PointEntry]:
        cursor: tuple[datetime, int] | None = None
        while True:
            stmt = select(PointLog).where(PointLog.user_id == self._user_id)
            if cursor is not None:
                ts, last_id = cursor
                stmt = stmt.where(or_(
                    PointLog.created_at < ts,
                    and_(PointLog.created_at == ts, PointLog.id < last_id),
                ))
            stmt = stmt.order_by(PointLog.created_at.desc(), PointLog.id.desc()).limit(self._batch_size)

            with Session(self._engine) as session:
                batch = [PointEntry.from_row(r) for r in session.scalars(stmt)]

            yield from batch
            if len(batch) < self._batch_size:
                return
            cursor = (batch[-1].created_at, batch[-1].id)


def point_history(engine: Engine, user_id: int, *, batch_size: int = 100) -> PointHistory:
    return PointHistory(engine, user_id, batch_size)


def ledger_total(engine: Engine, user_id: int) -> int:
    """Sum of every ledger entry for *user_id* (0 when there are none)."""
    with Session(engine) as session:
        return int(session.scalar(
            select(func.coalesce(func.sum(PointLog.points), 0)).where(PointLog.user_id == user_id)
        ))
