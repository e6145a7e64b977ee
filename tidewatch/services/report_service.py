"""
tidewatch.services.report_service — Report Lifecycle, Engagement & Queries
===========================================================================

Persistence side of the report lifecycle.  Each mutating operation:

1. validates input with the pydantic schemas (→ ``InvalidContent``),
2. checks permissions and the state machine in :mod:`tidewatch.engine.lifecycle`,
3. writes the change, the point awards and any achievement grants in one
   transaction (:mod:`tidewatch.services.reward_service`),
4. publishes domain events on the :class:`EventBus` after commit.

Concurrent writers to the same report are serialised by the optimistic
``version_id`` column; the loser gets ``ConflictingUpdate``.

Reports are never physically deleted.  Tombstoned reports behave as absent
for every read and write here.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import case, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from tidewatch.config import PointValues
from tidewatch.database.engine import get_session
from tidewatch.database.models import (
    Report,
    ReportComment,
    ReportLike,
    ReportMedia,
    ReportStatus,
    Severity,
    User,
    utcnow,
)
from tidewatch.engine import lifecycle
from tidewatch.engine.events import ReportResolved, ReportReviewed, ReportSubmitted
from tidewatch.engine.scoring import compute_validation_score
from tidewatch.errors import ConflictingUpdate, Forbidden, InvalidContent, NotFound
from tidewatch.schemas import (
    CommentDraft,
    MediaRef,
    ReportDraft,
    ReportUpdate,
    ReviewDraft,
    validate_payload,
)
from tidewatch.services.reward_service import reward_comment, reward_review, reward_submission

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from tidewatch.engine.catalog import AchievementCatalog
    from tidewatch.engine.events import EventBus
    from tidewatch.engine.lifecycle import Actor

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000.0
METERS_PER_DEGREE_LAT = 111_320.0
MAX_PAGE_SIZE = 100

SEVERITY_RANK = {Severity.LOW: 1, Severity.MEDIUM: 2, Severity.HIGH: 3, Severity.CRITICAL: 4}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _publish(bus: EventBus | None, events: list[Any]) -> None:
    if bus is not None:
        bus.publish_all(events)


def _get_live_report(session: Session, report_id: int) -> Report:
    report = session.get(Report, report_id)
    if report is None or report.is_deleted:
        raise NotFound(f"Report {report_id} not found")
    return report


def _require_user(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")
    return user


def _check_version(report: Report, expected_version: int | None) -> None:
    if expected_version is not None and report.version_id != expected_version:
        raise ConflictingUpdate(
            f"Report {report.id} is at version {report.version_id}, not {expected_version}"
        )


def _media_rows(refs: list[MediaRef]) -> list[ReportMedia]:
    return [
        ReportMedia(
            kind=ref.kind.value,
            url=ref.url,
            caption=ref.caption,
            duration=ref.duration,
            position=i,
        )
        for i, ref in enumerate(refs)
    ]


def _detach_ready(report: Report) -> Report:
    """Touch lazy collections so the row is usable after the session closes."""
    _ = report.media, report.likes, report.comments, report.reporter
    return report


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------
def submit_report(
    engine: Engine,
    catalog: AchievementCatalog,
    draft: ReportDraft | dict[str, Any],
    actor: Actor,
    *,
    points: PointValues | None = None,
    bus: EventBus | None = None,
) -> Report:
    """Create a pending report, award submission points and evaluate achievements."""
    if not lifecycle.can_create(actor):
        raise Forbidden(f"Role {actor.role} cannot create reports")
    draft = validate_payload(ReportDraft, draft)
    points = points or PointValues()

    with get_session(engine) as session:
        _require_user(session, actor.user_id)

        location = draft.location
        report = Report(
            reporter_id=actor.user_id,
            title=draft.title,
            description=draft.description,
            category=draft.category.value,
            sub_category=draft.sub_category,
            severity=draft.severity.value,
            tags=list(draft.tags),
            estimated_area=draft.estimated_area.model_dump(mode="json") if draft.estimated_area else None,
            incident_date=draft.incident_date or utcnow(),
            longitude=location.coordinates[0],
            latitude=location.coordinates[1],
            address=location.address.model_dump(exclude_none=True) if location.address else None,
            mangrove_area=draft.mangrove_area,
            nearest_landmark=draft.nearest_landmark,
            status=ReportStatus.PENDING.value,
            media=_media_rows(draft.media),
        )
        report.validation_score = compute_validation_score(report)
        session.add(report)
        session.flush()

        outcome = reward_submission(session, catalog, points, report)
        _detach_ready(report)

    logger.info("Report %d submitted by user %d (score=%d)",
                report.id, actor.user_id, report.validation_score)
    _publish(bus, [
        ReportSubmitted(report_id=report.id, reporter_id=report.reporter_id, title=report.title),
        *outcome.events,
    ])
    return report


# ---------------------------------------------------------------------------
# Review workflow
# ---------------------------------------------------------------------------
def start_review(engine: Engine, report_id: int, actor: Actor) -> Report:
    """Reviewer claims a pending report (pending → under_review)."""
    with get_session(engine) as session:
        report = _get_live_report(session, report_id)
        lifecycle.check_start_review(report.status, actor)
        report.status = ReportStatus.UNDER_REVIEW.value
        report.reviewer_id = actor.user_id
        session.flush()
        _detach_ready(report)

    logger.info("Report %d under review by user %d", report_id, actor.user_id)
    return report


def review_report(
    engine: Engine,
    catalog: AchievementCatalog,
    report_id: int,
    actor: Actor,
    decision: ReportStatus | str,
    notes: str | None = None,
    *,
    points: PointValues | None = None,
    bus: EventBus | None = None,
    expected_version: int | None = None,
) -> Report:
    """Record a review decision (validated / rejected / escalated).

    Emits exactly one :class:`ReportReviewed` after commit.
    """
    notes = validate_payload(ReviewDraft, {"notes": notes}).notes
    points = points or PointValues()

    with get_session(engine) as session:
        report = _get_live_report(session, report_id)
        _check_version(report, expected_version)
        previous = report.status
        is_override = lifecycle.check_review(previous, decision, actor)
        new_status = ReportStatus(decision)
        now = utcnow()

        report.status = new_status.value
        report.reviewer_id = actor.user_id
        report.review_notes = notes
        report.reviewed_at = now
        if new_status == ReportStatus.ESCALATED:
            report.escalated_to = lifecycle.escalation_target(actor).value
            report.escalation_notes = notes
            report.escalated_at = now
        session.flush()

        outcome = reward_review(
            session, catalog, points, report, actor.user_id, previous, new_status.value
        )
        _detach_ready(report)
        event = ReportReviewed(
            report_id=report.id,
            previous_status=previous,
            new_status=new_status.value,
            reporter_id=report.reporter_id,
            reviewer_id=actor.user_id,
            occurred_at=now,
        )

    logger.info("Report %d reviewed %s → %s by user %d%s",
                report_id, previous, new_status.value, actor.user_id,
                " (override)" if is_override else "")
    _publish(bus, [event, *outcome.events])
    return report


def resolve_report(
    engine: Engine,
    report_id: int,
    actor: Actor,
    notes: str | None = None,
    *,
    bus: EventBus | None = None,
) -> Report:
    """Close out a validated or escalated report."""
    notes = validate_payload(ReviewDraft, {"notes": notes}).notes

    with get_session(engine) as session:
        report = _get_live_report(session, report_id)
        lifecycle.check_resolve(report.status, actor)
        report.status = ReportStatus.RESOLVED.value
        report.resolved_at = utcnow()
        report.resolution_notes = notes
        session.flush()
        _detach_ready(report)

    logger.info("Report %d resolved by user %d", report_id, actor.user_id)
    _publish(bus, [
        ReportResolved(report_id=report.id, reporter_id=report.reporter_id, resolver_id=actor.user_id),
    ])
    return report


# ---------------------------------------------------------------------------
# Edit / delete
# ---------------------------------------------------------------------------
_NOT_NULLABLE = ("title", "description", "category", "severity", "location")


def update_report(
    engine: Engine,
    report_id: int,
    actor: Actor,
    changes: ReportUpdate | dict[str, Any],
    *,
    expected_version: int | None = None,
) -> Report:
    """Apply a partial content update and recompute the validation score."""
    changes = validate_payload(ReportUpdate, changes)
    cleared = [f for f in _NOT_NULLABLE if f in changes.model_fields_set and getattr(changes, f) is None]
    if cleared:
        raise InvalidContent(
            "Required fields cannot be cleared",
            [{"field": f, "message": "must not be null"} for f in cleared],
        )

    with get_session(engine) as session:
        report = _get_live_report(session, report_id)
        if not lifecycle.can_edit(report, actor):
            raise Forbidden("Only the author or an administrator can edit this report")
        _check_version(report, expected_version)

        for name in changes.model_fields_set:
            value = getattr(changes, name)
            if name == "location":
                report.longitude, report.latitude = value.coordinates
                report.address = value.address.model_dump(exclude_none=True) if value.address else None
            elif name == "media":
                report.media = _media_rows(value or [])
            elif name == "estimated_area":
                report.estimated_area = value.model_dump(mode="json") if value else None
            elif name == "tags":
                report.tags = list(value or [])
            elif name in ("category", "severity"):
                setattr(report, name, value.value)
            else:
                setattr(report, name, value)

        report.validation_score = compute_validation_score(report)
        session.flush()
        _detach_ready(report)

    logger.info("Report %d updated by user %d (score=%d)",
                report_id, actor.user_id, report.validation_score)
    return report


def delete_report(engine: Engine, report_id: int, actor: Actor) -> None:
    """Tombstone a report; it disappears from every query."""
    with get_session(engine) as session:
        report = _get_live_report(session, report_id)
        if not lifecycle.can_delete(report, actor):
            raise Forbidden("You cannot delete this report")
        report.deleted_at = utcnow()
        report.deleted_by = actor.user_id

    logger.info("Report %d deleted by user %d", report_id, actor.user_id)


# ---------------------------------------------------------------------------
# Engagement
# ---------------------------------------------------------------------------
def toggle_like(engine: Engine, report_id: int, actor: Actor) -> tuple[bool, int]:
    """Like the report, or unlike it if already liked.  Returns (liked, total)."""
    with get_session(engine) as session:
        _require_user(session, actor.user_id)
        _get_live_report(session, report_id)
        existing = session.get(ReportLike, (report_id, actor.user_id))
        if existing is not None:
            session.delete(existing)
            liked = False
        else:
            liked = True
            try:
                with session.begin_nested():   # SAVEPOINT
                    session.add(ReportLike(report_id=report_id, user_id=actor.user_id))
                    session.flush()
            except IntegrityError:
                # A concurrent request liked it first; the end state is the same.
                logger.debug("Like on report %d by user %d already present", report_id, actor.user_id)
        session.flush()
        total = session.scalar(
            select(func.count()).select_from(ReportLike).where(ReportLike.report_id == report_id)
        )
    return liked, total


def add_comment(
    engine: Engine,
    catalog: AchievementCatalog,
    report_id: int,
    actor: Actor,
    body: str,
    *,
    points: PointValues | None = None,
    bus: EventBus | None = None,
) -> ReportComment:
    body = validate_payload(CommentDraft, {"body": body}).body
    points = points or PointValues()

    with get_session(engine) as session:
        _require_user(session, actor.user_id)
        _get_live_report(session, report_id)
        comment = ReportComment(report_id=report_id, user_id=actor.user_id, body=body)
        session.add(comment)
        session.flush()
        outcome = reward_comment(session, catalog, points, comment)

    _publish(bus, outcome.events)
    return comment


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ReportFilters:
    category: str | None = None
    status: str | None = None
    severity: str | None = None
    reporter_id: int | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    search: str | None = None
    sort_by: str = "created_at"
    descending: bool = True
    page: int = 1
    page_size: int = 20


@dataclass(frozen=True, slots=True)
class ReportPage:
    items: list[Report]
    total: int
    page: int
    page_size: int

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total

    @property
    def has_prev(self) -> bool:
        return self.page > 1


@dataclass(frozen=True, slots=True)
class NearbyReport:
    report: Report
    distance_m: float


_SORT_COLUMNS = {
    "created_at": Report.created_at,
    "incident_date": Report.incident_date,
    "validation_score": Report.validation_score,
    "severity": case(
        {s.value: rank for s, rank in SEVERITY_RANK.items()},
        value=Report.severity,
        else_=0,
    ),
}


def _eager(stmt):
    return stmt.options(
        selectinload(Report.media),
        selectinload(Report.likes),
        selectinload(Report.comments),
        selectinload(Report.reporter),
    )


def get_report(engine: Engine, report_id: int) -> Report:
    with Session(engine) as session:
        report = session.scalar(
            _eager(select(Report)).where(Report.id == report_id, Report.deleted_at.is_(None))
        )
        if report is None:
            raise NotFound(f"Report {report_id} not found")
        return report


def list_reports(engine: Engine, filters: ReportFilters | None = None) -> ReportPage:
    """Filtered, searched, sorted and paginated listing of live reports."""
    f = filters or ReportFilters()
    if f.sort_by not in _SORT_COLUMNS:
        raise InvalidContent(
            "Invalid sort field",
            [{"field": "sort_by", "message": f"must be one of {', '.join(_SORT_COLUMNS)}"}],
        )
    page = max(f.page, 1)
    page_size = max(1, min(f.page_size, MAX_PAGE_SIZE))

    conditions = [Report.deleted_at.is_(None)]
    if f.category:
        conditions.append(Report.category == f.category)
    if f.status:
        conditions.append(Report.status == f.status)
    if f.severity:
        conditions.append(Report.severity == f.severity)
    if f.reporter_id is not None:
        conditions.append(Report.reporter_id == f.reporter_id)
    if f.date_from is not None:
        conditions.append(Report.incident_date >= f.date_from)
    if f.date_to is not None:
        conditions.append(Report.incident_date <= f.date_to)
    if f.search and f.search.strip():
        term = f.search.strip().lower()
        conditions.append(or_(
            func.lower(Report.title).contains(term, autoescape=True),
            func.lower(Report.description).contains(term, autoescape=True),
        ))

    sort_col = _SORT_COLUMNS[f.sort_by]
    order = sort_col.desc() if f.descending else sort_col.asc()
    tiebreak = Report.id.desc() if f.descending else Report.id.asc()

    with Session(engine) as session:
        total = session.scalar(select(func.count()).select_from(Report).where(*conditions))
        items = session.scalars(
            _eager(select(Report))
            .where(*conditions)
            .order_by(order, tiebreak)
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()

    return ReportPage(items=list(items), total=total or 0, page=page, page_size=page_size)


def haversine_m(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Great-circle distance in metres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = phi2 - phi1
    dlmb = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))


def find_nearby(
    engine: Engine,
    longitude: float,
    latitude: float,
    max_distance_m: float = 10_000,
    limit: int = 20,
) -> list[NearbyReport]:
    """Live reports within *max_distance_m* of a point, nearest first."""
    if not (-180.0 <= longitude <= 180.0 and -90.0 <= latitude <= 90.0):
        raise InvalidContent(
            "Invalid coordinates",
            [{"field": "coordinates", "message": "longitude in [-180, 180], latitude in [-90, 90]"}],
        )
    if max_distance_m <= 0:
        return []

    dlat = max_distance_m / METERS_PER_DEGREE_LAT
    cos_lat = math.cos(math.radians(latitude))
    dlon = 180.0 if cos_lat < 1e-6 else min(dlat / cos_lat, 180.0)

    with Session(engine) as session:
        candidates = session.scalars(
            _eager(select(Report)).where(
                Report.deleted_at.is_(None),
                Report.latitude.between(latitude - dlat, latitude + dlat),
                or_(
                    Report.longitude.between(longitude - dlon, longitude + dlon),
                    # bounding box wrapping the antimeridian
                    Report.longitude <= longitude + dlon - 360.0,
                    Report.longitude >= longitude - dlon + 360.0,
                ),
            )
        ).all()

    hits = []
    for report in candidates:
        dist = haversine_m(longitude, latitude, report.longitude, report.latitude)
        if dist <= max_distance_m:
            hits.append(NearbyReport(report=report, distance_m=dist))
    hits.sort(key=lambda h: (h.distance_m, h.report.id))
    return hits[:max(limit, 0)]
