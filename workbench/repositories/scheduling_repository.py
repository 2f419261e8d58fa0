"""
Scheduling repository - database operations for host availability and interviews.
"""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from workbench.models.scheduling import HostAvailability, ScheduledInterview
from workbench.utils.time import utc_now


class SchedulingRepository:
    """Repository for HostAvailability and ScheduledInterview database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    async def get_availability(self, availability_id: UUID) -> Optional[HostAvailability]:
        result = await self.db.execute(select(HostAvailability).where(HostAvailability.id == availability_id))
        return result.scalar_one_or_none()

    async def list_availability(
        self,
        host_ids: Optional[List[UUID]] = None,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
        only_available: bool = False,
    ) -> List[HostAvailability]:
        """Availability slots, optionally restricted to hosts and a time window."""
        query = select(HostAvailability)
        if host_ids:
            query = query.where(HostAvailability.user_id.in_(host_ids))
        if window_start is not None:
            query = query.where(HostAvailability.end_time > window_start)
        if window_end is not None:
            query = query.where(HostAvailability.start_time < window_end)
        if only_available:
            query = query.where(HostAvailability.is_available.is_(True))
        result = await self.db.execute(query.order_by(HostAvailability.start_time.asc()))
        return list(result.scalars().all())

    async def create_availability(self, user_id: UUID, **fields) -> HostAvailability:
        slot = HostAvailability(id=uuid.uuid4(), user_id=user_id, **fields)
        self.db.add(slot)
        await self.db.flush()
        await self.db.refresh(slot)
        return slot

    async def lock_host(self, host_id: UUID) -> None:
        """Lock a host's availability rows so bookings for the host serialize."""
        await self.db.execute(
            select(HostAvailability.id)
            .where(HostAvailability.user_id == host_id)
            .order_by(HostAvailability.id)
            .with_for_update()
        )

    # ------------------------------------------------------------------
    # Interviews
    # ------------------------------------------------------------------

    async def get_interview(self, interview_id: UUID) -> Optional[ScheduledInterview]:
        result = await self.db.execute(select(ScheduledInterview).where(ScheduledInterview.id == interview_id))
        return result.scalar_one_or_none()

    async def list_interviews(
        self,
        application_id: Optional[UUID] = None,
        host_id: Optional[UUID] = None,
        campaign_phase_id: Optional[UUID] = None,
        status: Optional[str] = None,
    ) -> List[ScheduledInterview]:
        query = select(ScheduledInterview)
        if application_id is not None:
            query = query.where(ScheduledInterview.application_id == application_id)
        if host_id is not None:
            query = query.where(ScheduledInterview.host_id == host_id)
        if campaign_phase_id is not None:
            query = query.where(ScheduledInterview.campaign_phase_id == campaign_phase_id)
        if status is not None:
            query = query.where(ScheduledInterview.status == status)
        result = await self.db.execute(query.order_by(ScheduledInterview.start_time.asc()))
        return list(result.scalars().all())

    async def booked_overlapping(
        self,
        start: datetime,
        end: datetime,
        host_id: Optional[UUID] = None,
        applicant_id: Optional[UUID] = None,
    ) -> List[ScheduledInterview]:
        """Booked interviews for a host or applicant overlapping [start, end)."""
        query = select(ScheduledInterview).where(
            ScheduledInterview.status == "booked",
            ScheduledInterview.start_time < end,
            ScheduledInterview.end_time > start,
        )
        if host_id is not None:
            query = query.where(ScheduledInterview.host_id == host_id)
        if applicant_id is not None:
            query = query.where(ScheduledInterview.applicant_id == applicant_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create_interview(self, **fields) -> ScheduledInterview:
        fields.setdefault("id", uuid.uuid4())
        interview = ScheduledInterview(**fields)
        self.db.add(interview)
        await self.db.flush()
        await self.db.refresh(interview)
        return interview

    async def transition_interview(self, interview: ScheduledInterview, from_status: str, to_status: str) -> bool:
        """
        Conditionally move an interview between statuses.

        Returns:
            True if the interview was in from_status and has been updated
        """
        result = await self.db.execute(
            update(ScheduledInterview)
            .where(ScheduledInterview.id == interview.id, ScheduledInterview.status == from_status)
            .values(status=to_status, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await self.db.refresh(interview)
        return True

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    async def update(self, entity, update_data: Dict):
        for field, value in update_data.items():
            setattr(entity, field, value)
        await self.db.flush()
        await self.db.refresh(entity)
        return entity

    async def delete(self, entity) -> None:
        await self.db.delete(entity)
        await self.db.flush()
