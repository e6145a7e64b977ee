"""
tests/test_reward_service.py — Reward Pipeline Unit Tests
==========================================================
Drives reward_service directly inside a session, checking which ledger
actions each transition writes and that achievement grants settle in the
same transaction.

Uses an in-memory SQLite database via the shared conftest fixtures.
"""

from __future__ import annotations

import pytest
from conftest import catalog_entry, draft_data
from sqlalchemy import event, select
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Session

from tidewatch.config import PointValues
from tidewatch.constants import LedgerAction
from tidewatch.database.models import (
    AchievementCategory,
    AchievementDefinition,
    PointLog,
    Report,
    ReportComment,
    ReportStatus,
    User,
)
from tidewatch.engine.catalog import AchievementCatalog
from tidewatch.services import reward_service
from tidewatch.services.report_service import submit_report


@pytest.fixture
def points() -> PointValues:
    return PointValues(submit_report=10, verified_report=20, comment=2, verify_report=5, first_report=50)


@pytest.fixture
def report(db_engine, empty_catalog, reporter) -> Report:
    return submit_report(db_engine, empty_catalog, draft_data(), reporter)


def _log(session: Session, user_id: int) -> list[tuple[str, int]]:
    rows = session.scalars(
        select(PointLog).where(PointLog.user_id == user_id).order_by(PointLog.id)
    ).all()
    return [(r.action, r.points) for r in rows]


class TestSubmission:
    def test_second_report_gets_no_first_bonus(self, db_session, empty_catalog, points, report):
        second = Report(
            reporter_id=report.reporter_id,
            title="Second sighting",
            description="y" * 40,
            category="pollution",
            longitude=79.9,
            latitude=9.3,
        )
        db_session.add(second)
        db_session.flush()

        outcome = reward_service.reward_submission(db_session, empty_catalog, points, second)

        assert [a.points for a in outcome.awards] == [10]
        assert outcome.total_points == 10
        assert outcome.events == []

    def test_zero_first_bonus_still_logged(self, db_session, empty_catalog, reporter):
        report = Report(
            reporter_id=reporter.user_id,
            title="Fresh sighting",
            description="z" * 40,
            category="dumping",
            longitude=80.0,
            latitude=10.0,
        )
        db_session.add(report)
        db_session.flush()

        outcome = reward_service.reward_submission(
            db_session, empty_catalog, PointValues(first_report=0), report
        )

        assert _log(db_session, reporter.user_id) == [
            (LedgerAction.SUBMIT_REPORT, 10),
            (LedgerAction.FIRST_REPORT, 0),
        ]
        assert outcome.total_points == 10

    def test_author_row_locked_before_counting(self):
        sql = str(reward_service._author_lock(7).compile(dialect=postgresql.dialect()))
        assert sql.rstrip().endswith("FOR UPDATE")
        assert "users" in sql

    def test_lock_issued_before_first_report_check(self, db_engine, empty_catalog, points, reporter):
        statements: list[str] = []
        event.listen(db_engine, "before_cursor_execute",
                     lambda conn, cursor, stmt, *args: statements.append(stmt))
        with Session(db_engine) as session:
            report = Report(
                reporter_id=reporter.user_id,
                title="Fresh sighting",
                description="z" * 40,
                category="dumping",
                longitude=80.0,
                latitude=10.0,
            )
            session.add(report)
            session.flush()
            statements.clear()
            reward_service.reward_submission(session, empty_catalog, points, report)

        lock = next(i for i, s in enumerate(statements) if s.startswith("SELECT users.id"))
        count = next(i for i, s in enumerate(statements) if "count(*)" in s and "reports" in s)
        assert lock < count


class TestReview:
    def test_validation_credits_both_parties(self, db_session, empty_catalog, points, report, ngo_admin):
        row = db_session.get(Report, report.id)
        outcome = reward_service.reward_review(
            db_session, empty_catalog, points, row, ngo_admin.user_id,
            ReportStatus.PENDING, ReportStatus.VALIDATED,
        )

        assert _log(db_session, ngo_admin.user_id) == [(LedgerAction.VERIFY_REPORT, 5)]
        assert _log(db_session, report.reporter_id)[-1] == (LedgerAction.VERIFIED_REPORT, 20)
        assert outcome.total_points == 25

    def test_rejection_only_credits_reviewer(self, db_session, empty_catalog, points, report, ngo_admin):
        row = db_session.get(Report, report.id)
        outcome = reward_service.reward_review(
            db_session, empty_catalog, points, row, ngo_admin.user_id,
            ReportStatus.PENDING, ReportStatus.REJECTED,
        )
        assert [a.user_id for a in outcome.awards] == [ngo_admin.user_id]

    def test_leaving_validated_reverses_credit(self, db_session, empty_catalog, points, report, super_admin):
        row = db_session.get(Report, report.id)
        before = db_session.get(User, report.reporter_id).points

        reward_service.reward_review(
            db_session, empty_catalog, points, row, super_admin.user_id,
            ReportStatus.VALIDATED, ReportStatus.REJECTED,
        )

        reversal = db_session.scalars(
            select(PointLog).where(PointLog.action == LedgerAction.VERIFIED_REPORT_REVERSED)
        ).one()
        assert reversal.points == -20
        assert reversal.metadata_ == {"previous_status": "validated", "new_status": "rejected"}
        assert db_session.get(User, report.reporter_id).points == before - 20

    def test_reporter_achievement_settles_in_same_call(self, db_session, points, report, ngo_admin):
        db_session.add(AchievementDefinition(
            id=1, name="verified_once", category="VERIFICATION", points=7, criteria={"validated_count": 1},
        ))
        catalog = AchievementCatalog([
            catalog_entry(1, "verified_once", AchievementCategory.VERIFICATION, {"validated_count": 1}, points=7),
        ])
        row = db_session.get(Report, report.id)
        row.status = ReportStatus.VALIDATED.value
        db_session.flush()

        outcome = reward_service.reward_review(
            db_session, catalog, points, row, ngo_admin.user_id,
            ReportStatus.PENDING, ReportStatus.VALIDATED,
        )

        assert [(e.user_id, e.achievement_name) for e in outcome.events] == [
            (report.reporter_id, "verified_once"),
        ]
        assert db_session.get(User, report.reporter_id).points == 10 + 50 + 20 + 7


class TestComment:
    def test_comment_reference(self, db_session, empty_catalog, points, report, ngo_admin):
        comment = ReportComment(report_id=report.id, user_id=ngo_admin.user_id, body="Seen it too")
        db_session.add(comment)
        db_session.flush()

        reward_service.reward_comment(db_session, empty_catalog, points, comment)

        row = db_session.scalars(select(PointLog).where(PointLog.user_id == ngo_admin.user_id)).one()
        assert (row.action, row.points) == (LedgerAction.COMMENT, 2)
        assert (row.reference_type, row.reference_id) == ("comment", comment.id)
