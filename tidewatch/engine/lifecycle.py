"""
tidewatch.engine.lifecycle — Report State Machine & Permission Predicates
==========================================================================

Pure rules only: which status changes are legal, who may perform them, and
who may edit or delete a report.  No database I/O; the report service loads
rows, asks these functions, and persists the outcome.

State graph::

    pending ──► under_review ──► validated ──► resolved
       │              │      ├─► rejected
       │              │      └─► escalated ──► resolved
       └──────────────┴── (pending may be reviewed directly)

No edge ever leads back to ``pending``.  A super_admin may re-review a report
that already has a review outcome (validated / rejected / escalated), but a
resolved report is final.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from tidewatch.constants import (
    NON_REPORTING_ROLES,
    OVERRIDE_ROLES,
    PRIVILEGED_ROLES,
    REVIEWER_ROLES,
    Role,
)
from tidewatch.database.models import EscalationTarget, ReportStatus
from tidewatch.errors import Forbidden, InvalidContent, InvalidTransition

S = ReportStatus


@dataclass(frozen=True, slots=True)
class Actor:
    """The authenticated caller, as resolved by the authorization collaborator."""

    user_id: int
    role: Role


class OwnedReport(Protocol):
    reporter_id: int
    status: str


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------
TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    S.PENDING: frozenset({S.UNDER_REVIEW, S.VALIDATED, S.REJECTED, S.ESCALATED}),
    S.UNDER_REVIEW: frozenset({S.VALIDATED, S.REJECTED, S.ESCALATED}),
    S.VALIDATED: frozenset({S.RESOLVED}),
    S.ESCALATED: frozenset({S.RESOLVED}),
    S.REJECTED: frozenset(),
    S.RESOLVED: frozenset(),
}

REVIEW_OUTCOMES: frozenset[ReportStatus] = frozenset({S.VALIDATED, S.REJECTED, S.ESCALATED})
RESOLVABLE: frozenset[ReportStatus] = frozenset({S.VALIDATED, S.ESCALATED})


def is_allowed(current: ReportStatus | str, target: ReportStatus | str) -> bool:
    """True when ``current → target`` is an edge of the ordinary graph."""
    return ReportStatus(target) in TRANSITIONS[ReportStatus(current)]


def validate_transition(current: ReportStatus | str, target: ReportStatus | str) -> None:
    """Raise :class:`InvalidTransition` unless ``current → target`` is legal."""
    if not is_allowed(current, target):
        raise InvalidTransition(f"Cannot move a report from {current} to {target}")


# ---------------------------------------------------------------------------
# Reviewer actions
# ---------------------------------------------------------------------------
def require_reviewer(actor: Actor) -> None:
    if actor.role not in REVIEWER_ROLES:
        raise Forbidden("Only NGO admins, government officers and super admins can review reports")


def check_start_review(current: ReportStatus | str, actor: Actor) -> None:
    require_reviewer(actor)
    validate_transition(current, S.UNDER_REVIEW)


def check_review(current: ReportStatus | str, decision: ReportStatus | str, actor: Actor) -> bool:
    """Validate a review decision and return whether it is an override.

    An override is a super_admin re-reviewing a report that already carries
    a review outcome.  Re-reviewing into the status it already has is not a
    change and is rejected.
    """
    require_reviewer(actor)
    try:
        decision = ReportStatus(decision)
    except ValueError as exc:
        raise InvalidContent(
            "Invalid review decision",
            [{"field": "decision", "message": "must be one of validated, rejected, escalated"}],
        ) from exc

    current = ReportStatus(current)
    if decision not in REVIEW_OUTCOMES:
        raise InvalidTransition(f"Cannot move a report from {current} to {decision}")
    if is_allowed(current, decision):
        return False
    if current in REVIEW_OUTCOMES and actor.role in OVERRIDE_ROLES and current != decision:
        return True
    raise InvalidTransition(f"Cannot review a report that is {current}")


def check_resolve(current: ReportStatus | str, actor: Actor) -> None:
    require_reviewer(actor)
    if ReportStatus(current) not in RESOLVABLE:
        raise InvalidTransition(f"Cannot resolve a report that is {current}")


def escalation_target(actor: Actor) -> EscalationTarget:
    """Government officers escalate to government; everyone else to NGOs."""
    if actor.role == Role.GOVERNMENT_OFFICER:
        return EscalationTarget.GOVERNMENT
    return EscalationTarget.NGO


# ---------------------------------------------------------------------------
# Ownership predicates
# ---------------------------------------------------------------------------
def can_create(actor: Actor) -> bool:
    return actor.role not in NON_REPORTING_ROLES


def can_edit(report: OwnedReport, actor: Actor) -> bool:
    """The author, super admins and NGO admins may edit a report."""
    return report.reporter_id == actor.user_id or actor.role in PRIVILEGED_ROLES


def can_delete(report: OwnedReport, actor: Actor) -> bool:
    """Super admins always; NGO admins and the author only while pending."""
    if actor.role == Role.SUPER_ADMIN:
        return True
    if report.status != S.PENDING:
        return False
    return actor.role == Role.NGO_ADMIN or report.reporter_id == actor.user_id
