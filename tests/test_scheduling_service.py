"""
Host availability, slot computation and interview booking.
"""

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
import pytest_asyncio

from conftest import APPLICANT_DATA, form_config, make_actor, scheduling_config
from workbench.core.permissions import Roles
from workbench.errors import (
    AlreadyFinalizedError,
    ApplicantDoubleBooked,
    HostUnavailable,
    InterviewNotCancelable,
    UnauthorizedError,
)
from workbench.models.scheduling import HostAvailability, ScheduledInterview
from workbench.repositories.application_repository import ApplicationRepository
from workbench.repositories.scheduling_repository import SchedulingRepository
from workbench.schemas.application import ApplicationCreate
from workbench.schemas.scheduling import HostAvailabilityCreate, InterviewBook
from workbench.services.application_service import ApplicationService
from workbench.services.progression_service import ProgressionService
from workbench.services.scheduling_service import SchedulingService, free_slots

# Coroutine tests run under asyncio_mode = "auto"
pytestmark = pytest.mark.db

DAY = date(2030, 5, 6)


def at(hour, minute=0):
    return datetime(DAY.year, DAY.month, DAY.day, hour, minute, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def interview_stage(db, host, start_application):
    application, phases = await start_application(
        [
            ("Application", "Form", form_config()),
            ("Interview", "Scheduling", scheduling_config()),
        ]
    )
    await SchedulingService(db).create_availability(
        host, HostAvailabilityCreate(start_time=at(9), end_time=at(11))
    )
    return application, phases[1]


async def _book(db, actor, application, phase, host, start, **extra):
    return await SchedulingService(db).book_interview(
        actor,
        InterviewBook(
            application_id=application.id,
            campaign_phase_id=phase.id,
            host_id=host.user_id,
            start_time=start,
            **extra,
        ),
    )


async def _second_application(db, campaign_id):
    other = make_actor(Roles.APPLICANT)
    applications = ApplicationService(db)
    application = await applications.create_application(
        other, ApplicationCreate(campaign_id=campaign_id, data=APPLICANT_DATA)
    )
    return other, await applications.submit(other, application.id)


# ---------------------------------------------------------------------------
# free_slots
# ---------------------------------------------------------------------------


def test_free_slots_skip_buffered_bookings():
    host_id = uuid.uuid4()
    window = HostAvailability(user_id=host_id, start_time=at(9), end_time=at(10, 30), is_available=True)
    booking = ScheduledInterview(host_id=host_id, start_time=at(9, 40), end_time=at(10, 10), status="booked")

    slots = free_slots([window], [booking], timedelta(minutes=30), timedelta(minutes=10), at(0), at(23, 59))

    assert [(s.start_time, s.end_time) for s in slots] == [(at(9), at(9, 30))]


def test_free_slots_ignore_other_hosts_bookings():
    host_id = uuid.uuid4()
    window = HostAvailability(user_id=host_id, start_time=at(9), end_time=at(10), is_available=True)
    booking = ScheduledInterview(host_id=uuid.uuid4(), start_time=at(9), end_time=at(9, 30), status="booked")

    slots = free_slots([window], [booking], timedelta(minutes=30), timedelta(0), at(0), at(23, 59))

    assert [s.start_time for s in slots] == [at(9), at(9, 30)]


def test_free_slots_are_clipped_to_the_query_window():
    host_id = uuid.uuid4()
    window = HostAvailability(user_id=host_id, start_time=at(8), end_time=at(12), is_available=True)

    slots = free_slots([window], [], timedelta(minutes=60), timedelta(0), at(10), at(12))

    assert [s.start_time for s in slots] == [at(10), at(11)]


# ---------------------------------------------------------------------------
# Availability
# ---------------------------------------------------------------------------


async def test_hosts_manage_only_their_own_availability(db, host):
    service = SchedulingService(db)
    window = HostAvailabilityCreate(start_time=at(13), end_time=at(14))

    with pytest.raises(UnauthorizedError):
        await service.create_availability(host, window, host_id=uuid.uuid4())
    with pytest.raises(UnauthorizedError):
        await service.create_availability(make_actor(Roles.APPLICANT), window)

    created = await service.create_availability(make_actor(Roles.ADMIN), window, host_id=host.user_id)
    assert created.user_id == host.user_id


async def test_available_slots_for_phase(db, interview_stage):
    _, phase = interview_stage

    slots = await SchedulingService(db).available_slots(phase.id, DAY)

    assert [s.start_time for s in slots] == [at(9), at(9, 40), at(10, 20)]
    assert await SchedulingService(db).available_slots(phase.id, DAY + timedelta(days=1)) == []


# ---------------------------------------------------------------------------
# Booking
# ---------------------------------------------------------------------------


async def test_applicant_books_inside_availability(db, applicant, host, interview_stage):
    application, phase = interview_stage

    interview = await _book(db, applicant, application, phase, host, at(9, 40))

    assert interview.status == "booked"
    assert interview.applicant_id == applicant.user_id
    assert interview.end_time.replace(tzinfo=timezone.utc) == at(10, 10)
    assert interview.meeting_link.endswith(str(interview.id))

    # The booking plus its buffer covers 09:30-10:20
    slots = await SchedulingService(db).available_slots(phase.id, DAY)
    assert [s.start_time for s in slots] == [at(9), at(10, 20)]


async def test_offset_times_are_stored_as_utc(db, applicant, interview_stage):
    application, phase = interview_stage
    plus_two = timezone(timedelta(hours=2))
    abroad = make_actor(Roles.HOST)

    window = HostAvailabilityCreate(
        start_time=datetime(DAY.year, DAY.month, DAY.day, 9, tzinfo=plus_two),
        end_time=datetime(DAY.year, DAY.month, DAY.day, 11, tzinfo=plus_two),
    )
    assert window.start_time == at(7)
    assert window.start_time.utcoffset() == timedelta(0)
    await SchedulingService(db).create_availability(abroad, window)

    interview = await _book(db, applicant, application, phase, abroad, at(7, 30))

    assert interview.start_time.replace(tzinfo=timezone.utc) == at(7, 30)
    assert interview.end_time.replace(tzinfo=timezone.utc) == at(8)


async def test_booking_outside_availability(db, applicant, host, interview_stage):
    application, phase = interview_stage

    with pytest.raises(HostUnavailable):
        await _book(db, applicant, application, phase, host, at(10, 45))


async def test_host_overlap_includes_buffer(db, applicant, host, interview_stage):
    application, phase = interview_stage
    await _book(db, applicant, application, phase, host, at(9))
    other, second = await _second_application(db, application.campaign_id)

    with pytest.raises(HostUnavailable):
        await _book(db, other, second, phase, host, at(9, 35))

    booked = await _book(db, other, second, phase, host, at(9, 40))
    assert booked.applicant_id == other.user_id


async def test_applicant_cannot_double_book(db, applicant, host, interview_stage):
    application, phase = interview_stage
    second_host = make_actor(Roles.HOST)
    await SchedulingService(db).create_availability(
        second_host, HostAvailabilityCreate(start_time=at(9), end_time=at(11))
    )
    await _book(db, applicant, application, phase, host, at(9))

    with pytest.raises(ApplicantDoubleBooked):
        await _book(db, applicant, application, phase, second_host, at(9, 15))


async def test_booking_locks_applicant_before_host(db, applicant, host, interview_stage, monkeypatch):
    application, phase = interview_stage
    locks = []
    lock_applicant = ApplicationRepository.lock_applicant
    lock_host = SchedulingRepository.lock_host
    create_interview = SchedulingRepository.create_interview

    async def record_applicant(self, applicant_id):
        locks.append(("applicant", applicant_id))
        await lock_applicant(self, applicant_id)

    async def record_host(self, host_id):
        locks.append(("host", host_id))
        await lock_host(self, host_id)

    async def record_insert(self, **fields):
        locks.append(("insert", fields["host_id"]))
        return await create_interview(self, **fields)

    monkeypatch.setattr(ApplicationRepository, "lock_applicant", record_applicant)
    monkeypatch.setattr(SchedulingRepository, "lock_host", record_host)
    monkeypatch.setattr(SchedulingRepository, "create_interview", record_insert)

    await _book(db, applicant, application, phase, host, at(9))

    assert locks == [
        ("applicant", applicant.user_id),
        ("host", host.user_id),
        ("insert", host.user_id),
    ]


async def test_host_must_be_offered_by_phase(db, coordinator, applicant, host, start_application):
    listed = make_actor(Roles.HOST)
    application, phases = await start_application(
        [("Interview", "Scheduling", scheduling_config(hostSelection=str(listed.user_id)))]
    )
    await SchedulingService(db).create_availability(host, HostAvailabilityCreate(start_time=at(9), end_time=at(11)))

    with pytest.raises(HostUnavailable):
        await _book(db, applicant, application, phases[0], host, at(9))


async def test_others_cannot_book_for_an_applicant(db, host, interview_stage):
    application, phase = interview_stage

    with pytest.raises(UnauthorizedError):
        await _book(db, make_actor(Roles.APPLICANT), application, phase, host, at(9))


async def test_cancel_is_single_use(db, applicant, host, interview_stage):
    application, phase = interview_stage
    interview = await _book(db, applicant, application, phase, host, at(9))
    service = SchedulingService(db)

    canceled = await service.cancel_interview(applicant, interview.id)
    assert canceled.status == "canceled"

    with pytest.raises(InterviewNotCancelable):
        await service.cancel_interview(applicant, interview.id)
    with pytest.raises(AlreadyFinalizedError):
        await service.complete_interview(host, interview.id)

    rebooked = await _book(db, applicant, application, phase, host, at(9))
    assert rebooked.id != interview.id


async def test_completed_interview_completes_phase(db, coordinator, applicant, host, dispatcher, interview_stage):
    application, phase = interview_stage
    progression = ProgressionService(db, dispatcher)
    await progression.advance(coordinator, application.id)

    interview = await _book(db, applicant, application, phase, host, at(10, 20))
    report = await progression.preview(coordinator, application.id)
    assert report.evaluation.reason == "no completed interview"

    with pytest.raises(UnauthorizedError):
        await SchedulingService(db).complete_interview(applicant, interview.id)
    await SchedulingService(db).complete_interview(host, interview.id)

    result = await progression.advance(coordinator, application.id, expected_phase_id=phase.id)
    assert result.application.status == "accepted"


async def test_interview_listing_is_scoped(db, applicant, host, interview_stage):
    application, phase = interview_stage
    await _book(db, applicant, application, phase, host, at(9))
    service = SchedulingService(db)

    assert len(await service.list_interviews(applicant)) == 1
    assert len(await service.list_interviews(host, host_id=host.user_id)) == 1
    assert await service.list_interviews(make_actor(Roles.APPLICANT)) == []
    with pytest.raises(UnauthorizedError):
        await service.list_interviews(make_actor(Roles.APPLICANT), application_id=application.id)
