"""
tidewatch.services.reward_service — Transition → Points → Achievements
=======================================================================

Shared by every report operation that earns points.  Each function runs
inside the caller's session, so ledger appends, achievement grants and
level updates commit (or roll back) together with the report transition
that caused them.

Returned :class:`RewardOutcome` objects carry the achievement events the
caller publishes once the transaction has committed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tidewatch.constants import LedgerAction
from tidewatch.database.models import Report, ReportComment, ReportStatus, User
from tidewatch.engine.events import AchievementEarned
from tidewatch.services.achievement_service import achievement_events, evaluate_achievements
from tidewatch.services.ledger_service import AwardResult, Reference, record_award

if TYPE_CHECKING:
    from tidewatch.config import PointValues
    from tidewatch.engine.catalog import AchievementCatalog

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RewardOutcome:
    awards: list[AwardResult] = field(default_factory=list)
    events: list[AchievementEarned] = field(default_factory=list)

    @property
    def total_points(self) -> int:
        return sum(a.points for a in self.awards)


def _settle(
    session: Session,
    catalog: AchievementCatalog,
    outcome: RewardOutcome,
    *user_ids: int,
) -> RewardOutcome:
    """Evaluate achievements once per distinct user, in argument order."""
    for user_id in dict.fromkeys(user_ids):
        granted = evaluate_achievements(session, catalog, user_id)
        outcome.events.extend(achievement_events(user_id, granted))
    return outcome


def _author_lock(user_id: int):
    """Row lock on the author; concurrent submissions by one user queue here."""
    return select(User.id).where(User.id == user_id).with_for_update()


def reward_submission(
    session: Session,
    catalog: AchievementCatalog,
    points: PointValues,
    report: Report,
) -> RewardOutcome:
    """SUBMIT_REPORT for every report, plus FIRST_REPORT on the author's first."""
    outcome = RewardOutcome()
    ref = Reference("report", report.id)

    # Held until commit, so a second concurrent submission counts this report
    session.execute(_author_lock(report.reporter_id))

    outcome.awards.append(record_award(
        session, report.reporter_id, LedgerAction.SUBMIT_REPORT, points.submit_report, ref
    ))

    # Deleted reports still count, so delete-and-resubmit can't farm the bonus
    authored = session.scalar(
        select(func.count()).select_from(Report).where(Report.reporter_id == report.reporter_id)
    )
    if authored == 1:
        outcome.awards.append(record_award(
            session, report.reporter_id, LedgerAction.FIRST_REPORT, points.first_report, ref
        ))

    return _settle(session, catalog, outcome, report.reporter_id)


def reward_review(
    session: Session,
    catalog: AchievementCatalog,
    points: PointValues,
    report: Report,
    reviewer_id: int,
    previous_status: str,
    new_status: str,
) -> RewardOutcome:
    """Reviewer credit, reporter credit on validation, reversal when leaving validated."""
    outcome = RewardOutcome()
    ref = Reference("report", report.id)

    outcome.awards.append(record_award(
        session, reviewer_id, LedgerAction.VERIFY_REPORT, points.verify_report, ref
    ))

    if new_status == ReportStatus.VALIDATED:
        outcome.awards.append(record_award(
            session, report.reporter_id, LedgerAction.VERIFIED_REPORT, points.verified_report, ref
        ))
    elif previous_status == ReportStatus.VALIDATED:
        outcome.awards.append(record_award(
            session,
            report.reporter_id,
            LedgerAction.VERIFIED_REPORT_REVERSED,
            -points.verified_report,
            ref,
            metadata={"previous_status": previous_status, "new_status": new_status},
        ))
        logger.info("Reversed validation credit for report %d (%s → %s)",
                    report.id, previous_status, new_status)

    return _settle(session, catalog, outcome, report.reporter_id, reviewer_id)


def reward_comment(
    session: Session,
    catalog: AchievementCatalog,
    points: PointValues,
    comment: ReportComment,
) -> RewardOutcome:
    outcome = RewardOutcome()
    outcome.awards.append(record_award(
        session,
        comment.user_id,
        LedgerAction.COMMENT,
        points.comment,
        Reference("comment", comment.id),
    ))
    return _settle(session, catalog, outcome, comment.user_id)
