"""
Scheduling models: host availability slots and booked interviews.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from workbench.models.base_model import TimestampedModel


class HostAvailability(TimestampedModel):
    """Time window a host offers for interviews."""

    __tablename__ = "host_availabilities"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class ScheduledInterview(TimestampedModel):
    """Interview booked between a host and an applicant."""

    __tablename__ = "scheduled_interviews"

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

    host_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    applicant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    meeting_link: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # booked | canceled | completed
    status: Mapped[str] = mapped_column(String(30), default="booked", nullable=False)

    __table_args__ = (
        Index("ix_scheduled_interviews_host_status", "host_id", "status"),
        Index("ix_scheduled_interviews_applicant_status", "applicant_id", "status"),
    )
