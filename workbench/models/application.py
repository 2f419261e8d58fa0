"""
Application models.

An Application is one applicant's progress through a campaign's pathway.
"""

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from workbench.db.base import JSONType
from workbench.models.base_model import TimestampedModel


class Application(TimestampedModel):
    """
    Application table.

    current_campaign_phase_id points at the phase of the campaign's template
    the application currently occupies; NULL once the pathway is exhausted
    (or before submission). version is bumped on every phase transition and
    used for compare-and-swap updates.
    """

    __tablename__ = "applications"

    campaign_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    applicant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    current_campaign_phase_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("phases.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # draft | submitted | in_review | accepted | rejected | on_hold
    status: Mapped[str] = mapped_column(String(30), default="draft", nullable=False)

    # Pending | Accepted | On Hold | Denied
    screening_status: Mapped[str] = mapped_column(String(30), default="Pending", nullable=False)

    data: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)


class ApplicationNote(TimestampedModel):
    """Collaborative note left on an application by staff."""

    __tablename__ = "application_notes"

    application_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    author_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False)
