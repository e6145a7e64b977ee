"""
tidewatch.database.models — SQLAlchemy 2.0 Data Models
=======================================================

Tables:
- users                  — Observers, reviewers and admins (gamification fields)
- reports                — Incident reports with lifecycle + review metadata
- report_media           — Ordered photo / video evidence references
- report_likes           — One like per (report, user)
- report_comments        — Free-text comments
- point_log              — Append-only point ledger
- achievement_definitions — Criteria-gated rewards (read-mostly catalog)
- user_achievements      — Earned badges, one per (user, achievement)
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Tidewatch ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ReportCategory(enum.StrEnum):
    ILLEGAL_CUTTING = "illegal_cutting"
    LAND_RECLAMATION = "land_reclamation"
    POLLUTION = "pollution"
    DUMPING = "dumping"
    CONSTRUCTION = "construction"
    OTHER = "other"


class Severity(enum.StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ReportStatus(enum.StrEnum):
    """Lifecycle states of a report (see tidewatch.engine.lifecycle)."""
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    VALIDATED = "validated"
    REJECTED = "rejected"
    ESCALATED = "escalated"
    RESOLVED = "resolved"


class EscalationTarget(enum.StrEnum):
    GOVERNMENT = "government"
    NGO = "ngo"


class MediaKind(enum.StrEnum):
    PHOTO = "photo"
    VIDEO = "video"


class AchievementCategory(enum.StrEnum):
    """Decides which predicate family evaluates an achievement's criteria."""
    REPORTING = "REPORTING"
    VERIFICATION = "VERIFICATION"
    COMMUNITY = "COMMUNITY"
    SPECIAL = "SPECIAL"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(254), default=None)
    role: Mapped[str] = mapped_column(String(30), nullable=False, default="coastal_resident")
    region: Mapped[str | None] = mapped_column(String(100), default=None)
    role_info: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Gamification: points == SUM(point_log.points); level derived from points
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    badges: Mapped[list[UserAchievement]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_users_points_desc", "points"),
        Index("ix_users_region", "region"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.display_name!r} lvl={self.level}>"


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------
class Report(Base):
    __tablename__ = "reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reporter_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # Content
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    sub_category: Mapped[str | None] = mapped_column(String(100), default=None)
    severity: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    tags: Mapped[list | None] = mapped_column(JSONB, default=list)
    estimated_area: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    incident_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Geolocation: [longitude, latitude] plus optional address details
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    address: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    mangrove_area: Mapped[str | None] = mapped_column(String(200), default=None)
    nearest_landmark: Mapped[str | None] = mapped_column(String(200), default=None)

    # Derived
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReportStatus.PENDING.value
    )
    validation_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Review
    reviewer_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    review_notes: Mapped[str | None] = mapped_column(Text, default=None)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    escalated_to: Mapped[str | None] = mapped_column(String(20), default=None)
    escalation_notes: Mapped[str | None] = mapped_column(Text, default=None)
    escalated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    resolution_notes: Mapped[str | None] = mapped_column(Text, default=None)

    # Tombstone: reports are never physically deleted
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    deleted_by: Mapped[int | None] = mapped_column(Integer, nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    reporter: Mapped[User] = relationship(foreign_keys=[reporter_id])
    media: Mapped[list[ReportMedia]] = relationship(
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportMedia.position",
    )
    likes: Mapped[list[ReportLike]] = relationship(
        back_populates="report", cascade="all, delete-orphan"
    )
    comments: Mapped[list[ReportComment]] = relationship(
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportComment.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index("ix_reports_reporter", "reporter_id"),
        Index("ix_reports_status", "status"),
        Index("ix_reports_category", "category"),
        Index("ix_reports_created_at", "created_at"),
        Index("ix_reports_lon_lat", "longitude", "latitude"),
    )

    # Content views consumed by the validation score
    @property
    def photos(self) -> list[ReportMedia]:
        return [m for m in self.media if m.kind == MediaKind.PHOTO.value]

    @property
    def coordinates(self) -> list[float]:
        return [c for c in (self.longitude, self.latitude) if c is not None]

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<Report id={self.id} status={self.status!r} score={self.validation_score}>"


class ReportMedia(Base):
    __tablename__ = "report_media"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    report_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[str] = mapped_column(String(10), nullable=False)
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    caption: Mapped[str | None] = mapped_column(String(500), default=None)
    verified: Mapped[bool] = mapped_column(Boolean, default=False)
    duration: Mapped[float | None] = mapped_column(Float, default=None)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    report: Mapped[Report] = relationship(back_populates="media")

    def __repr__(self) -> str:
        return f"<ReportMedia id={self.id} kind={self.kind!r} report={self.report_id}>"


class ReportLike(Base):
    __tablename__ = "report_likes"

    report_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("reports.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    liked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    report: Mapped[Report] = relationship(back_populates="likes")

    def __repr__(self) -> str:
        return f"<ReportLike report={self.report_id} user={self.user_id}>"


class ReportComment(Base):
    __tablename__ = "report_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    report_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    report: Mapped[Report] = relationship(back_populates="comments")

    __table_args__ = (
        Index("ix_report_comments_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<ReportComment id={self.id} report={self.report_id} user={self.user_id}>"


# ---------------------------------------------------------------------------
# PointLog: append-only point ledger
# ---------------------------------------------------------------------------
class PointLog(Base):
    __tablename__ = "point_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    action: Mapped[str] = mapped_column(String(120), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    reference_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    reference_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_point_log_user_time", "user_id", "created_at"),
        Index("ix_point_log_time", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<PointLog id={self.id} user={self.user_id} action={self.action} pts={self.points}>"


# ---------------------------------------------------------------------------
# AchievementDefinition: criteria-gated one-time rewards
# ---------------------------------------------------------------------------
class AchievementDefinition(Base):
    __tablename__ = "achievement_definitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    criteria: Mapped[dict | None] = mapped_column(JSONB, default=dict)
    icon: Mapped[str | None] = mapped_column(String(50), default=None)
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    earned_by: Mapped[list[UserAchievement]] = relationship(back_populates="achievement")

    def __repr__(self) -> str:
        return f"<AchievementDefinition id={self.id} name={self.name!r}>"


# ---------------------------------------------------------------------------
# UserAchievement: earned badges (composite PK enforces one grant ever)
# ---------------------------------------------------------------------------
class UserAchievement(Base):
    __tablename__ = "user_achievements"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    achievement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("achievement_definitions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    user: Mapped[User] = relationship(back_populates="badges")
    achievement: Mapped[AchievementDefinition] = relationship(back_populates="earned_by")

    def __repr__(self) -> str:
        return f"<UserAchievement user={self.user_id} achievement={self.achievement_id}>"
