"""
Evaluation models: reviewer assignments, rubric reviews and decisions.

All three are tied to a phase instance (application + phase).
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from workbench.db.base import JSONType
from workbench.models.base_model import TimestampedModel


class ReviewerAssignment(TimestampedModel):
    """Binding of a reviewer to an application for one phase."""

    __tablename__ = "reviewer_assignments"

    application_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )

    reviewer_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    campaign_phase_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("phases.id", ondelete="CASCADE"),
        nullable=False,
    )

    # assigned | accepted | declined | completed
    status: Mapped[str] = mapped_column(String(30), default="assigned", nullable=False)

    assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "reviewer_id",
            "application_id",
            "campaign_phase_id",
            name="uq_reviewer_assignment_per_phase",
        ),
    )


class Review(TimestampedModel):
    """Rubric-scored review of an application at a review phase."""

    __tablename__ = "reviews"

    application_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )

    reviewer_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    campaign_phase_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("phases.id", ondelete="CASCADE"),
        nullable=False,
    )

    # criterion id -> numeric score
    score: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # pending | submitted | reopened
    status: Mapped[str] = mapped_column(String(30), default="pending", nullable=False)

    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_reviews_application_phase", "application_id", "campaign_phase_id"),
    )


class Decision(TimestampedModel):
    """Recorded outcome for an application at a phase."""

    __tablename__ = "decisions"

    application_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )

    campaign_phase_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("phases.id", ondelete="CASCADE"),
        nullable=False,
    )

    decider_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    outcome: Mapped[str] = mapped_column(String(255), nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_final: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_decisions_application_phase", "application_id", "campaign_phase_id"),
    )
