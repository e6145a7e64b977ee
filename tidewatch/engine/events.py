"""
tidewatch.engine.events — Domain Events & In-Process Event Bus
===============================================================

Services publish an event only after the transaction that produced it has
committed, so subscribers never observe state that was rolled back.

Delivery is fire-and-forget: a failing subscriber is logged and skipped, and
the remaining subscribers still run.  The publishing operation has already
succeeded and is never affected.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from tidewatch.database.models import utcnow

__all__ = [
    "AchievementEarned",
    "EventBus",
    "ReportResolved",
    "ReportReviewed",
    "ReportSubmitted",
]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ReportSubmitted:
    report_id: int
    reporter_id: int
    title: str
    occurred_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True, slots=True)
class ReportReviewed:
    """Emitted exactly once per successful review decision."""

    report_id: int
    previous_status: str
    new_status: str
    reporter_id: int
    reviewer_id: int
    occurred_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True, slots=True)
class ReportResolved:
    report_id: int
    reporter_id: int
    resolver_id: int
    occurred_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True, slots=True)
class AchievementEarned:
    user_id: int
    achievement_id: int
    achievement_name: str
    points: int
    occurred_at: datetime = field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# EventBus
# ---------------------------------------------------------------------------
Handler = Callable[[Any], None]


class EventBus:
    """Synchronous publish/subscribe keyed by event class.

    Usage::

        bus = EventBus()
        bus.subscribe(ReportReviewed, on_reviewed)
        bus.publish(ReportReviewed(...))
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def publish(self, event: Any) -> None:
        for handler in list(self._handlers.get(type(event), ())):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Subscriber %r failed for %s", handler, type(event).__name__
                )

    def publish_all(self, events: list[Any]) -> None:
        for event in events:
            self.publish(event)
