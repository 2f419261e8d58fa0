"""
RecommendationRequest model.

unique_token is the only credential the (unauthenticated) recommender holds.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from workbench.db.base import JSONType
from workbench.models.base_model import TimestampedModel


class RecommendationRequest(TimestampedModel):
    """Token-gated request for a letter of recommendation."""

    __tablename__ = "recommendation_requests"

    application_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    campaign_phase_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("phases.id", ondelete="CASCADE"),
        nullable=False,
    )

    recommender_email: Mapped[str] = mapped_column(String(255), nullable=False)

    recommender_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    unique_token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)

    # pending | sent | viewed | submitted | overdue
    status: Mapped[str] = mapped_column(String(30), default="pending", nullable=False)

    request_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    viewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    form_data: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
