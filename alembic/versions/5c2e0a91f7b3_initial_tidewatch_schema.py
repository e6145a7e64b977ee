"""Initial Tidewatch schema

Revision ID: 5c2e0a91f7b3
Revises:
Create Date: 2026-10-19 09:12:03.114208

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5c2e0a91f7b3'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Create users, reports and the gamification tables."""

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(254), nullable=True),
        sa.Column("role", sa.String(30), nullable=False, server_default="coastal_resident"),
        sa.Column("region", sa.String(100), nullable=True),
        sa.Column("role_info", postgresql.JSONB, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=True, server_default=sa.true()),
        sa.Column("points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("level", sa.Integer, nullable=False, server_default="1"),
        _ts("created_at"),
    )
    op.create_index("ix_users_points_desc", "users", ["points"])
    op.create_index("ix_users_region", "users", ["region"])

    # --- reports ---
    op.create_table(
        "reports",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("reporter_id", sa.Integer,
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("category", sa.String(30), nullable=False),
        sa.Column("sub_category", sa.String(100), nullable=True),
        sa.Column("severity", sa.String(10), nullable=False, server_default="medium"),
        sa.Column("tags", postgresql.JSONB, nullable=True),
        sa.Column("estimated_area", postgresql.JSONB, nullable=True),
        _ts("incident_date"),
        sa.Column("longitude", sa.Float, nullable=False),
        sa.Column("latitude", sa.Float, nullable=False),
        sa.Column("address", postgresql.JSONB, nullable=True),
        sa.Column("mangrove_area", sa.String(200), nullable=True),
        sa.Column("nearest_landmark", sa.String(200), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("validation_score", sa.Integer, nullable=False, server_default="0"),
        sa.Column("reviewer_id", sa.Integer,
                  sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("review_notes", sa.Text, nullable=True),
        _ts("reviewed_at"),
        sa.Column("escalated_to", sa.String(20), nullable=True),
        sa.Column("escalation_notes", sa.Text, nullable=True),
        _ts("escalated_at"),
        _ts("resolved_at"),
        sa.Column("resolution_notes", sa.Text, nullable=True),
        _ts("deleted_at"),
        sa.Column("deleted_by", sa.Integer, nullable=True),
        sa.Column("version_id", sa.Integer, nullable=False, server_default="1"),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_reports_reporter", "reports", ["reporter_id"])
    op.create_index("ix_reports_status", "reports", ["status"])
    op.create_index("ix_reports_category", "reports", ["category"])
    op.create_index("ix_reports_created_at", "reports", ["created_at"])
    op.create_index("ix_reports_lon_lat", "reports", ["longitude", "latitude"])

    # --- report_media ---
    op.create_table(
        "report_media",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("report_id", sa.Integer,
                  sa.ForeignKey("reports.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", sa.String(10), nullable=False),
        sa.Column("url", sa.String(500), nullable=False),
        sa.Column("caption", sa.String(500), nullable=True),
        sa.Column("verified", sa.Boolean, nullable=True, server_default=sa.false()),
        sa.Column("duration", sa.Float, nullable=True),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        _ts("uploaded_at"),
    )

    # --- report_likes / report_comments ---
    op.create_table(
        "report_likes",
        sa.Column("report_id", sa.Integer,
                  sa.ForeignKey("reports.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer,
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        _ts("liked_at"),
        sa.PrimaryKeyConstraint("report_id", "user_id"),
    )
    op.create_table(
        "report_comments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("report_id", sa.Integer,
                  sa.ForeignKey("reports.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer,
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_report_comments_user", "report_comments", ["user_id"])

    # --- point_log ---
    op.create_table(
        "point_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer,
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("action", sa.String(120), nullable=False),
        sa.Column("points", sa.Integer, nullable=False),
        sa.Column("reference_type", sa.String(30), nullable=True),
        sa.Column("reference_id", sa.Integer, nullable=True),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_point_log_user_time", "point_log", ["user_id", "created_at"])
    op.create_index("ix_point_log_time", "point_log", ["created_at"])

    # --- achievements ---
    op.create_table(
        "achievement_definitions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("criteria", postgresql.JSONB, nullable=True),
        sa.Column("icon", sa.String(50), nullable=True),
        sa.Column("active", sa.Boolean, nullable=True, server_default=sa.true()),
    )
    op.create_table(
        "user_achievements",
        sa.Column("user_id", sa.Integer,
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("achievement_id", sa.Integer,
                  sa.ForeignKey("achievement_definitions.id", ondelete="CASCADE"),
                  nullable=False),
        _ts("earned_at"),
        sa.PrimaryKeyConstraint("user_id", "achievement_id"),
    )


def downgrade() -> None:
    op.drop_table("user_achievements")
    op.drop_table("achievement_definitions")
    op.drop_index("ix_point_log_time", table_name="point_log")
    op.drop_index("ix_point_log_user_time", table_name="point_log")
    op.drop_table("point_log")
    op.drop_index("ix_report_comments_user", table_name="report_comments")
    op.drop_table("report_comments")
    op.drop_table("report_likes")
    op.drop_table("report_media")
    for name in ("ix_reports_lon_lat", "ix_reports_created_at", "ix_reports_category",
                 "ix_reports_status", "ix_reports_reporter"):
        op.drop_index(name, table_name="reports")
    op.drop_table("reports")
    op.drop_index("ix_users_region", table_name="users")
    op.drop_index("ix_users_points_desc", table_name="users")
    op.drop_table("users")
