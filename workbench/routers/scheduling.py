"""
Scheduling router - host availability, open slots and interviews.
"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from workbench.core.dependencies import get_current_actor, get_db
from workbench.core.permissions import Actor
from workbench.schemas.scheduling import (
    AvailableSlots,
    HostAvailabilityCreate,
    HostAvailabilityRead,
    HostAvailabilityUpdate,
    InterviewBook,
    ScheduledInterviewRead,
)
from workbench.services.scheduling_service import SchedulingService

router = APIRouter(tags=["scheduling"])


@router.get("/availability", response_model=List[HostAvailabilityRead])
async def list_availability(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    host_id: Optional[UUID] = None,
):
    service = SchedulingService(db)
    return await service.list_availability(host_id)


@router.post("/availability", response_model=HostAvailabilityRead, status_code=status.HTTP_201_CREATED)
async def create_availability(
    data: HostAvailabilityCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    host_id: Optional[UUID] = None,
):
    """Offer a time window. host_id defaults to the caller."""
    service = SchedulingService(db)
    return await service.create_availability(actor, data, host_id=host_id)


@router.patch("/availability/{availability_id}", response_model=HostAvailabilityRead)
async def update_availability(
    availability_id: UUID,
    data: HostAvailabilityUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = SchedulingService(db)
    return await service.update_availability(actor, availability_id, data)


@router.delete("/availability/{availability_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_availability(
    availability_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = SchedulingService(db)
    await service.delete_availability(actor, availability_id)


@router.get("/phases/{phase_id}/slots", response_model=AvailableSlots)
async def available_slots(
    phase_id: UUID,
    day: date = Query(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Bookable interview slots for a Scheduling phase on one day (UTC)."""
    service = SchedulingService(db)
    slots = await service.available_slots(phase_id, day)
    return AvailableSlots(campaign_phase_id=phase_id, day=day, slots=slots)


@router.get("/interviews", response_model=List[ScheduledInterviewRead])
async def list_interviews(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    application_id: Optional[UUID] = None,
    host_id: Optional[UUID] = None,
    status: Optional[str] = None,
):
    service = SchedulingService(db)
    return await service.list_interviews(actor, application_id=application_id, host_id=host_id, status=status)


@router.post("/interviews", response_model=ScheduledInterviewRead, status_code=status.HTTP_201_CREATED)
async def book_interview(
    data: InterviewBook,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Book an interview. 409 if the host or the applicant is already booked."""
    service = SchedulingService(db)
    return await service.book_interview(actor, data)


@router.post("/interviews/{interview_id}/cancel", response_model=ScheduledInterviewRead)
async def cancel_interview(
    interview_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = SchedulingService(db)
    return await service.cancel_interview(actor, interview_id)


@router.post("/interviews/{interview_id}/complete", response_model=ScheduledInterviewRead)
async def complete_interview(
    interview_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = SchedulingService(db)
    return await service.complete_interview(actor, interview_id)
