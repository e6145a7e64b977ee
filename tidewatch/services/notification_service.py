"""
tidewatch.services.notification_service — Fire-and-Forget Notifications
========================================================================

Bridges domain events to the outbound notification collaborator.  Handlers
are registered on the :class:`EventBus` and run after commit; delivery
failures are logged by the bus and never affect the operation that emitted
the event.

Templates:

* ``reportSubmitted``     → reporter, on ``ReportSubmitted``
* ``reportStatusUpdate``  → reporter, on ``ReportReviewed`` / ``ReportResolved``
* ``achievementUnlocked`` → earner, on ``AchievementEarned``
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from sqlalchemy.orm import Session

from tidewatch.database.models import ReportStatus, User
from tidewatch.engine.events import (
    AchievementEarned,
    ReportResolved,
    ReportReviewed,
    ReportSubmitted,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from tidewatch.engine.events import EventBus

logger = logging.getLogger(__name__)

TEMPLATE_REPORT_SUBMITTED = "reportSubmitted"
TEMPLATE_STATUS_UPDATE = "reportStatusUpdate"
TEMPLATE_ACHIEVEMENT_UNLOCKED = "achievementUnlocked"


class Notifier(Protocol):
    def send(self, recipient: str, template: str, data: dict[str, Any]) -> None: ...


class LoggingNotifier:
    """Default notifier that only writes to the log."""

    def send(self, recipient: str, template: str, data: dict[str, Any]) -> None:
        logger.info("Notify %s [%s] %s", recipient, template, data)


def _recipient(engine: Engine, user_id: int) -> tuple[str, str] | None:
    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None or not user.email or not user.is_active:
            return None
        return user.email, user.display_name


def register_notification_handlers(bus: EventBus, engine: Engine, notifier: Notifier) -> None:
    """Subscribe the notification templates to *bus*."""

    def on_submitted(event: ReportSubmitted) -> None:
        target = _recipient(engine, event.reporter_id)
        if target is None:
            return
        email, name = target
        notifier.send(email, TEMPLATE_REPORT_SUBMITTED, {
            "name": name,
            "report_id": event.report_id,
            "title": event.title,
        })

    def on_reviewed(event: ReportReviewed) -> None:
        target = _recipient(engine, event.reporter_id)
        if target is None:
            return
        email, name = target
        notifier.send(email, TEMPLATE_STATUS_UPDATE, {
            "name": name,
            "report_id": event.report_id,
            "previous_status": event.previous_status,
            "status": event.new_status,
        })

    def on_resolved(event: ReportResolved) -> None:
        target = _recipient(engine, event.reporter_id)
        if target is None:
            return
        email, name = target
        notifier.send(email, TEMPLATE_STATUS_UPDATE, {
            "name": name,
            "report_id": event.report_id,
            "status": ReportStatus.RESOLVED.value,
        })

    def on_achievement(event: AchievementEarned) -> None:
        target = _recipient(engine, event.user_id)
        if target is None:
            return
        email, name = target
        notifier.send(email, TEMPLATE_ACHIEVEMENT_UNLOCKED, {
            "name": name,
            "achievement": event.achievement_name,
            "points": event.points,
        })

    bus.subscribe(ReportSubmitted, on_submitted)
    bus.subscribe(ReportReviewed, on_reviewed)
    bus.subscribe(ReportResolved, on_resolved)
    bus.subscribe(AchievementEarned, on_achievement)
