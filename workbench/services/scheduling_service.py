"""
Interview scheduling.

Hosts publish availability; applicants (or staff) book interviews for an
application's Scheduling phase. A booking must sit inside one of the host's
available windows and may not overlap another booked interview of the host
(widened by the phase's buffer time) or of the applicant.
"""

import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from workbench.core.config import settings
from workbench.core.permissions import Actor, Capability, ensure_any, ensure_capability
from workbench.errors import (
    AlreadyFinalizedError,
    ApplicantDoubleBooked,
    HostUnavailable,
    InputValidationError,
    InterviewNotCancelable,
    UnauthorizedError,
    not_found,
)
from workbench.models.scheduling import HostAvailability, ScheduledInterview
from workbench.repositories.application_repository import ApplicationRepository
from workbench.repositories.pathway_template_repository import PathwayTemplateRepository
from workbench.repositories.scheduling_repository import SchedulingRepository
from workbench.schemas.phase_config import PhaseType, SchedulingConfig, validate_phase_config
from workbench.schemas.scheduling import (
    HostAvailabilityCreate,
    HostAvailabilityUpdate,
    InterviewBook,
    TimeSlot,
)
from workbench.services.campaign_service import CampaignService
from workbench.utils.time import as_utc, intervals_overlap

logger = logging.getLogger(__name__)


def free_slots(
    availability: List[HostAvailability],
    booked: List[ScheduledInterview],
    duration: timedelta,
    buffer: timedelta,
    window_start: datetime,
    window_end: datetime,
) -> List[TimeSlot]:
    """
    Cut availability windows into interview-sized slots.

    Slots are laid end to end with the buffer between them and dropped when
    they overlap a booked interview of the same host widened by the buffer.
    """
    slots = []
    for window in availability:
        cursor = max(as_utc(window.start_time), as_utc(window_start))
        end = min(as_utc(window.end_time), as_utc(window_end))
        while cursor + duration <= end:
            slot_end = cursor + duration
            clash = any(
                b.host_id == window.user_id
                and intervals_overlap(cursor, slot_end, as_utc(b.start_time) - buffer, as_utc(b.end_time) + buffer)
                for b in booked
            )
            if not clash:
                slots.append(TimeSlot(host_id=window.user_id, start_time=cursor, end_time=slot_end))
            cursor = slot_end + buffer
    return sorted(slots, key=lambda s: (s.start_time, str(s.host_id)))


class SchedulingService:
    """Service for host availability and interview bookings."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = SchedulingRepository(db)
        self.applications = ApplicationRepository(db)
        self.templates = PathwayTemplateRepository(db)
        self.campaigns = CampaignService(db)

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    @staticmethod
    def _ensure_can_manage_host(actor: Actor, host_id: UUID) -> None:
        if host_id == actor.user_id:
            ensure_any(
                actor,
                [Capability.AVAILABILITY_MANAGE_OWN, Capability.SCHEDULING_MANAGE_ANY],
                action="manage availability",
            )
        else:
            ensure_capability(actor, Capability.SCHEDULING_MANAGE_ANY, action="manage another host's availability")

    async def create_availability(
        self,
        actor: Actor,
        payload: HostAvailabilityCreate,
        host_id: Optional[UUID] = None,
    ) -> HostAvailability:
        host_id = host_id or actor.user_id
        self._ensure_can_manage_host(actor, host_id)
        slot = await self.repo.create_availability(host_id, **payload.model_dump())
        logger.info("Host %s offered %s - %s", host_id, slot.start_time, slot.end_time)
        return slot

    async def _get_availability(self, availability_id: UUID) -> HostAvailability:
        slot = await self.repo.get_availability(availability_id)
        if slot is None:
            raise not_found("Availability", availability_id)
        return slot

    async def update_availability(
        self,
        actor: Actor,
        availability_id: UUID,
        payload: HostAvailabilityUpdate,
    ) -> HostAvailability:
        slot = await self._get_availability(availability_id)
        self._ensure_can_manage_host(actor, slot.user_id)
        update_data = payload.model_dump(exclude_unset=True)
        start = update_data.get("start_time", slot.start_time)
        end = update_data.get("end_time", slot.end_time)
        if as_utc(end) <= as_utc(start):
            raise InputValidationError("end_time must be after start_time")
        return await self.repo.update(slot, update_data)

    async def delete_availability(self, actor: Actor, availability_id: UUID) -> None:
        slot = await self._get_availability(availability_id)
        self._ensure_can_manage_host(actor, slot.user_id)
        await self.repo.delete(slot)

    async def list_availability(self, host_id: Optional[UUID] = None) -> List[HostAvailability]:
        return await self.repo.list_availability(host_ids=[host_id] if host_id else None)

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------

    async def _scheduling_phase(self, phase_id: UUID):
        phase = await self.templates.get_phase(phase_id)
        if phase is None:
            raise not_found("Phase", phase_id)
        if phase.type != PhaseType.SCHEDULING.value:
            raise InputValidationError(
                f"Phase '{phase.name}' is not a Scheduling phase",
                details={"phase_id": str(phase.id), "phase_type": phase.type},
            )
        config: SchedulingConfig = validate_phase_config(phase.type, phase.config)
        return phase, config

    async def available_slots(self, phase_id: UUID, day: date) -> List[TimeSlot]:
        """Bookable slots for a Scheduling phase on one (UTC) day."""
        _, config = await self._scheduling_phase(phase_id)
        window_start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        window_end = window_start + timedelta(days=1)
        host_ids = config.host_ids or None
        availability = await self.repo.list_availability(
            host_ids=host_ids,
            window_start=window_start,
            window_end=window_end,
            only_available=True,
        )
        buffer = timedelta(minutes=config.buffer_time)
        booked = await self.repo.booked_overlapping(window_start - buffer, window_end + buffer)
        return free_slots(
            availability,
            booked,
            timedelta(minutes=config.interview_duration),
            buffer,
            window_start,
            window_end,
        )

    # ------------------------------------------------------------------
    # Interviews
    # ------------------------------------------------------------------

    async def book_interview(self, actor: Actor, payload: InterviewBook) -> ScheduledInterview:
        """
        Book an interview for an application's Scheduling phase.

        Both the host and the applicant are checked before anything is written.

        Raises:
            HostUnavailable: The host is not offered for the phase, has no
                available window covering the interview, or is already booked
            ApplicantDoubleBooked: The applicant has an overlapping booking
        """
        application = await self.applications.get_by_id(payload.application_id)
        if application is None:
            raise not_found("Application", payload.application_id)
        campaign = await self.campaigns.load_campaign(application.campaign_id)
        phase, config = await self._scheduling_phase(payload.campaign_phase_id)
        if phase.pathway_template_id != campaign.pathway_template_id:
            raise not_found("Phase", payload.campaign_phase_id)

        if application.applicant_id == actor.user_id:
            ensure_capability(actor, Capability.INTERVIEW_BOOK_OWN, action="book interviews")
        else:
            ensure_capability(
                actor,
                Capability.SCHEDULING_MANAGE_ANY,
                owner_id=campaign.creator_id,
                action="book interviews for other applicants",
            )

        start = as_utc(payload.start_time)
        end = as_utc(payload.end_time) if payload.end_time else start + timedelta(minutes=config.interview_duration)
        if end <= start:
            raise InputValidationError("end_time must be after start_time")
        buffer = timedelta(minutes=config.buffer_time)

        host_ids = config.host_ids
        if host_ids and payload.host_id not in host_ids:
            raise HostUnavailable(
                "Host is not offered for this phase",
                details={"host_id": str(payload.host_id)},
            )

        # Applicant rows first, then host rows; every booking takes them in this order
        await self.applications.lock_applicant(application.applicant_id)
        await self.repo.lock_host(payload.host_id)
        windows = await self.repo.list_availability(
            host_ids=[payload.host_id],
            window_start=start,
            window_end=end,
            only_available=True,
        )
        if not any(as_utc(w.start_time) <= start and as_utc(w.end_time) >= end for w in windows):
            raise HostUnavailable(
                "Host has no availability covering the requested time",
                details={"host_id": str(payload.host_id), "start_time": start.isoformat(), "end_time": end.isoformat()},
            )
        if await self.repo.booked_overlapping(start - buffer, end + buffer, host_id=payload.host_id):
            raise HostUnavailable(
                "Host already has an interview at that time",
                details={"host_id": str(payload.host_id), "start_time": start.isoformat(), "end_time": end.isoformat()},
            )
        if await self.repo.booked_overlapping(start, end, applicant_id=application.applicant_id):
            raise ApplicantDoubleBooked(
                "Applicant already has an interview at that time",
                details={"applicant_id": str(application.applicant_id), "start_time": start.isoformat()},
            )

        interview_id = uuid.uuid4()
        meeting_link = payload.meeting_link
        if not meeting_link:
            if config.automated_meeting_link:
                meeting_link = str(config.automated_meeting_link)
            else:
                meeting_link = f"{settings.MEETING_LINK_BASE_URL.rstrip('/')}/{interview_id}"

        interview = await self.repo.create_interview(
            id=interview_id,
            application_id=application.id,
            campaign_phase_id=phase.id,
            host_id=payload.host_id,
            applicant_id=application.applicant_id,
            start_time=start,
            end_time=end,
            meeting_link=meeting_link,
            status="booked",
        )
        logger.info("Booked interview %s: host %s, application %s", interview.id, payload.host_id, application.id)
        return interview

    async def _get_interview(self, interview_id: UUID) -> ScheduledInterview:
        interview = await self.repo.get_interview(interview_id)
        if interview is None:
            raise not_found("Interview", interview_id)
        return interview

    async def cancel_interview(self, actor: Actor, interview_id: UUID) -> ScheduledInterview:
        """
        Cancel a booked interview.

        Raises:
            InterviewNotCancelable: The interview is not currently booked
        """
        interview = await self._get_interview(interview_id)
        if actor.user_id not in (interview.host_id, interview.applicant_id):
            ensure_capability(actor, Capability.SCHEDULING_MANAGE_ANY, action="cancel this interview")
        if not await self.repo.transition_interview(interview, "booked", "canceled"):
            raise InterviewNotCancelable(
                f"Interview is {interview.status}, not booked",
                details={"interview_id": str(interview.id), "status": interview.status},
            )
        logger.info("Canceled interview %s", interview.id)
        return interview

    async def complete_interview(self, actor: Actor, interview_id: UUID) -> ScheduledInterview:
        """Mark a booked interview as held (the Scheduling phase's completion signal)."""
        interview = await self._get_interview(interview_id)
        if actor.user_id != interview.host_id:
            ensure_capability(actor, Capability.SCHEDULING_MANAGE_ANY, action="complete this interview")
        if not await self.repo.transition_interview(interview, "booked", "completed"):
            raise AlreadyFinalizedError(
                f"Interview is {interview.status}, not booked",
                details={"interview_id": str(interview.id), "status": interview.status},
            )
        logger.info("Completed interview %s", interview.id)
        return interview

    async def list_interviews(
        self,
        actor: Actor,
        application_id: Optional[UUID] = None,
        host_id: Optional[UUID] = None,
        status: Optional[str] = None,
    ) -> List[ScheduledInterview]:
        """Interviews visible to the actor; hosts and applicants see their own."""
        interviews = await self.repo.list_interviews(application_id=application_id, host_id=host_id, status=status)
        if actor.can(Capability.SCHEDULING_MANAGE_ANY) or actor.can(Capability.APPLICATION_READ_ANY):
            return interviews
        visible = [i for i in interviews if actor.user_id in (i.host_id, i.applicant_id)]
        if not visible and (application_id or host_id) and interviews:
            raise UnauthorizedError("Insufficient permissions to view these interviews.")
        return visible
