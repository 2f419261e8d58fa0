"""
Program and Campaign models.

A Campaign binds a PathwayTemplate to a concrete program run and is the
aggregate root applications belong to.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from workbench.db.base import JSONType
from workbench.models.base_model import TimestampedModel


class Program(TimestampedModel):
    """Umbrella grouping of campaigns."""

    __tablename__ = "programs"

    creator_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Campaign(TimestampedModel):
    """Concrete run of a pathway template."""

    __tablename__ = "campaigns"

    program_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("programs.id", ondelete="SET NULL"),
        nullable=True,
    )

    pathway_template_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("pathway_templates.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    creator_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # draft | active | archived | completed
    status: Mapped[str] = mapped_column(String(30), default="draft", nullable=False)

    config: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
