"""
tests/test_lifecycle.py — Unit Tests for the Report State Machine
==================================================================

Pure rules: transitions, reviewer permissions, overrides and ownership.
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from tidewatch.constants import Role
from tidewatch.database.models import EscalationTarget, ReportStatus
from tidewatch.engine import lifecycle
from tidewatch.engine.lifecycle import Actor
from tidewatch.errors import Forbidden, InvalidContent, InvalidTransition

S = ReportStatus

NGO = Actor(user_id=2, role=Role.NGO_ADMIN)
OFFICER = Actor(user_id=3, role=Role.GOVERNMENT_OFFICER)
ROOT = Actor(user_id=4, role=Role.SUPER_ADMIN)
AUTHOR = Actor(user_id=1, role=Role.FISHERMAN)
STRANGER = Actor(user_id=9, role=Role.RESEARCHER)


def _report(status=S.PENDING, reporter_id=1):
    return SimpleNamespace(status=status.value, reporter_id=reporter_id)


class TestTransitionTable:
    @pytest.mark.parametrize("target", [S.UNDER_REVIEW, S.VALIDATED, S.REJECTED, S.ESCALATED])
    def test_pending_edges(self, target):
        lifecycle.validate_transition(S.PENDING, target)

    @pytest.mark.parametrize("source", list(ReportStatus))
    def test_nothing_returns_to_pending(self, source):
        with pytest.raises(InvalidTransition):
            lifecycle.validate_transition(source, S.PENDING)

    def test_pending_cannot_be_resolved(self):
        with pytest.raises(InvalidTransition):
            lifecycle.validate_transition(S.PENDING, S.RESOLVED)

    def test_resolved_is_terminal(self):
        assert not any(lifecycle.is_allowed(S.RESOLVED, t) for t in ReportStatus)


class TestReview:
    def test_reviewer_roles_only(self):
        with pytest.raises(Forbidden):
            lifecycle.check_review(S.PENDING, S.VALIDATED, STRANGER)

    @pytest.mark.parametrize("actor", [NGO, OFFICER, ROOT])
    def test_regular_review_is_not_override(self, actor):
        assert lifecycle.check_review(S.UNDER_REVIEW, S.VALIDATED, actor) is False

    def test_unknown_decision_is_invalid_content(self):
        with pytest.raises(InvalidContent):
            lifecycle.check_review(S.PENDING, "approved", NGO)

    @pytest.mark.parametrize("decision", [S.PENDING, S.UNDER_REVIEW, S.RESOLVED])
    def test_non_outcome_status_is_invalid_transition(self, decision):
        with pytest.raises(InvalidTransition):
            lifecycle.check_review(S.VALIDATED, decision, ROOT)
        with pytest.raises(InvalidTransition):
            lifecycle.check_review(S.PENDING, decision, NGO)

    def test_ngo_cannot_re_review(self):
        with pytest.raises(InvalidTransition):
            lifecycle.check_review(S.VALIDATED, S.REJECTED, NGO)

    def test_super_admin_override(self):
        assert lifecycle.check_review(S.VALIDATED, S.REJECTED, ROOT) is True
        assert lifecycle.check_review(S.REJECTED, S.VALIDATED, ROOT) is True

    def test_override_to_same_status_rejected(self):
        with pytest.raises(InvalidTransition):
            lifecycle.check_review(S.VALIDATED, S.VALIDATED, ROOT)

    def test_resolved_never_re_reviewed(self):
        with pytest.raises(InvalidTransition):
            lifecycle.check_review(S.RESOLVED, S.VALIDATED, ROOT)

    def test_start_review_only_from_pending(self):
        lifecycle.check_start_review(S.PENDING, NGO)
        with pytest.raises(InvalidTransition):
            lifecycle.check_start_review(S.UNDER_REVIEW, NGO)

    def test_resolve(self):
        lifecycle.check_resolve(S.VALIDATED, OFFICER)
        lifecycle.check_resolve(S.ESCALATED, OFFICER)
        with pytest.raises(InvalidTransition):
            lifecycle.check_resolve(S.REJECTED, OFFICER)

    def test_escalation_target(self):
        assert lifecycle.escalation_target(OFFICER) == EscalationTarget.GOVERNMENT
        assert lifecycle.escalation_target(NGO) == EscalationTarget.NGO
        assert lifecycle.escalation_target(ROOT) == EscalationTarget.NGO


class TestOwnership:
    def test_author_can_edit_any_status(self):
        assert lifecycle.can_edit(_report(S.VALIDATED), AUTHOR)

    def test_admins_can_edit(self):
        assert lifecycle.can_edit(_report(), NGO)
        assert lifecycle.can_edit(_report(), ROOT)

    def test_others_cannot_edit(self):
        assert not lifecycle.can_edit(_report(), STRANGER)
        assert not lifecycle.can_edit(_report(), OFFICER)

    def test_delete_rules(self):
        assert lifecycle.can_delete(_report(S.RESOLVED), ROOT)
        assert lifecycle.can_delete(_report(), NGO)
        assert not lifecycle.can_delete(_report(S.VALIDATED), NGO)
        assert lifecycle.can_delete(_report(), AUTHOR)
        assert not lifecycle.can_delete(_report(S.UNDER_REVIEW), AUTHOR)
        assert not lifecycle.can_delete(_report(), STRANGER)

    def test_public_visitor_cannot_create(self):
        assert not lifecycle.can_create(Actor(user_id=5, role=Role.PUBLIC_VISITOR))
        assert lifecycle.can_create(AUTHOR)
