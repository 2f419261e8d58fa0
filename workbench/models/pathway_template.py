"""
Pathway template models.

A PathwayTemplate owns an ordered list of Phases. Versions snapshot a
template with its phases; the activity log records every mutation.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from workbench.db.base import JSONType
from workbench.models.base_model import TimestampedModel


class PathwayTemplate(TimestampedModel):
    """Reusable multi-phase workflow definition."""

    __tablename__ = "pathway_templates"

    creator_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_private: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # draft | pending_review | published | archived
    status: Mapped[str] = mapped_column(String(30), default="draft", nullable=False)

    last_updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    application_open_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    participation_deadline: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    general_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Phase(TimestampedModel):
    """One typed stage of a pathway template."""

    __tablename__ = "phases"

    pathway_template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("pathway_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Form | Review | Email | Scheduling | Decision | Recommendation
    type: Mapped[str] = mapped_column(String(30), nullable=False)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    order_index: Mapped[int] = mapped_column(Integer, nullable=False)

    config: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    last_updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    __table_args__ = (
        UniqueConstraint("pathway_template_id", "order_index", name="uq_phases_template_order"),
    )


class PathwayTemplateVersion(TimestampedModel):
    """Point-in-time snapshot of a template and its ordered phases."""

    __tablename__ = "pathway_template_versions"

    pathway_template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("pathway_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    version_number: Mapped[int] = mapped_column(Integer, nullable=False)

    # {"template": {...}, "phases": [{...}, ...]}
    snapshot: Mapped[dict] = mapped_column(JSONType, nullable=False)

    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    __table_args__ = (
        UniqueConstraint("pathway_template_id", "version_number", name="uq_template_versions_number"),
    )


class TemplateActivityLog(TimestampedModel):
    """Audit trail entry for a template or one of its phases."""

    __tablename__ = "template_activity_log"

    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("pathway_templates.id", ondelete="CASCADE"),
        nullable=False,
    )

    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    event_type: Mapped[str] = mapped_column(String(50), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False)

    details: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    __table_args__ = (
        Index("ix_template_activity_log_template_created", "template_id", "created_at"),
    )
