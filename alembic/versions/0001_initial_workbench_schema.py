"""Initial workbench schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "pathway_templates",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("creator_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="draft"),
        sa.Column("last_updated_by", sa.Uuid(), nullable=True),
        sa.Column("application_open_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("participation_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("general_instructions", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "phases",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column(
            "pathway_template_id",
            sa.Uuid(),
            sa.ForeignKey("pathway_templates.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=30), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("config", JSON, nullable=False),
        sa.Column("last_updated_by", sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("pathway_template_id", "order_index", name="uq_phases_template_order"),
    )

    op.create_table(
        "pathway_template_versions",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column(
            "pathway_template_id",
            sa.Uuid(),
            sa.ForeignKey("pathway_templates.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("snapshot", JSON, nullable=False),
        sa.Column("created_by", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("pathway_template_id", "version_number", name="uq_template_versions_number"),
    )

    op.create_table(
        "template_activity_log",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column(
            "template_id",
            sa.Uuid(),
            sa.ForeignKey("pathway_templates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("details", JSON, nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_template_activity_log_template_created",
        "template_activity_log",
        ["template_id", "created_at"],
    )

    op.create_table(
        "programs",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("creator_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "campaigns",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("program_id", sa.Uuid(), sa.ForeignKey("programs.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "pathway_template_id",
            sa.Uuid(),
            sa.ForeignKey("pathway_templates.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        sa.Column("creator_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="draft"),
        sa.Column("config", JSON, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "applications",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column(
            "campaign_id",
            sa.Uuid(),
            sa.ForeignKey("campaigns.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("applicant_id", sa.Uuid(), nullable=False, index=True),
        sa.Column(
            "current_campaign_phase_id",
            sa.Uuid(),
            sa.ForeignKey("phases.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="draft"),
        sa.Column("screening_status", sa.String(length=30), nullable=False, server_default="Pending"),
        sa.Column("data", JSON, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
    )

    op.create_table(
        "application_notes",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column(
            "application_id",
            sa.Uuid(),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("author_id", sa.Uuid(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "reviewer_assignments",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("application_id", sa.Uuid(), sa.ForeignKey("applications.id", ondelete="CASCADE"), nullable=False),
        sa.Column("reviewer_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("campaign_phase_id", sa.Uuid(), sa.ForeignKey("phases.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="assigned"),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "reviewer_id",
            "application_id",
            "campaign_phase_id",
            name="uq_reviewer_assignment_per_phase",
        ),
    )

    op.create_table(
        "reviews",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("application_id", sa.Uuid(), sa.ForeignKey("applications.id", ondelete="CASCADE"), nullable=False),
        sa.Column("reviewer_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("campaign_phase_id", sa.Uuid(), sa.ForeignKey("phases.id", ondelete="CASCADE"), nullable=False),
        sa.Column("score", JSON, nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_reviews_application_phase", "reviews", ["application_id", "campaign_phase_id"])

    op.create_table(
        "decisions",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("application_id", sa.Uuid(), sa.ForeignKey("applications.id", ondelete="CASCADE"), nullable=False),
        sa.Column("campaign_phase_id", sa.Uuid(), sa.ForeignKey("phases.id", ondelete="CASCADE"), nullable=False),
        sa.Column("decider_id", sa.Uuid(), nullable=False),
        sa.Column("outcome", sa.String(length=255), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_final", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_decisions_application_phase", "decisions", ["application_id", "campaign_phase_id"])

    op.create_table(
        "recommendation_requests",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column(
            "application_id",
            sa.Uuid(),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("campaign_phase_id", sa.Uuid(), sa.ForeignKey("phases.id", ondelete="CASCADE"), nullable=False),
        sa.Column("recommender_email", sa.String(length=255), nullable=False),
        sa.Column("recommender_name", sa.String(length=255), nullable=True),
        sa.Column("unique_token", sa.String(length=128), nullable=False, unique=True, index=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
        sa.Column("request_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("viewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("form_data", JSON, nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "host_availabilities",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "scheduled_interviews",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("application_id", sa.Uuid(), sa.ForeignKey("applications.id", ondelete="CASCADE"), nullable=False),
        sa.Column("campaign_phase_id", sa.Uuid(), sa.ForeignKey("phases.id", ondelete="CASCADE"), nullable=False),
        sa.Column("host_id", sa.Uuid(), nullable=False),
        sa.Column("applicant_id", sa.Uuid(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("meeting_link", sa.String(length=500), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="booked"),
        *_timestamps(),
    )
    op.create_index("ix_scheduled_interviews_host_status", "scheduled_interviews", ["host_id", "status"])
    op.create_index("ix_scheduled_interviews_applicant_status", "scheduled_interviews", ["applicant_id", "status"])

    op.create_table(
        "communication_templates",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("creator_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False, server_default="email"),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("communication_templates")
    op.drop_index("ix_scheduled_interviews_applicant_status", table_name="scheduled_interviews")
    op.drop_index("ix_scheduled_interviews_host_status", table_name="scheduled_interviews")
    op.drop_table("scheduled_interviews")
    op.drop_table("host_availabilities")
    op.drop_table("recommendation_requests")
    op.drop_index("ix_decisions_application_phase", table_name="decisions")
    op.drop_table("decisions")
    op.drop_index("ix_reviews_application_phase", table_name="reviews")
    op.drop_table("reviews")
    op.drop_table("reviewer_assignments")
    op.drop_table("application_notes")
    op.drop_table("applications")
    op.drop_table("campaigns")
    op.drop_table("programs")
    op.drop_index("ix_template_activity_log_template_created", table_name="template_activity_log")
    op.drop_table("template_activity_log")
    op.drop_table("pathway_template_versions")
    op.drop_table("phases")
    op.drop_table("pathway_templates")
