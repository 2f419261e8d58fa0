"""
Screening, coordinator status changes and application notes.
"""

import pytest

from conftest import form_config, make_actor
from workbench.core.permissions import Roles
from workbench.errors import InvalidStatusTransition, NotFoundError, UnauthorizedError
from workbench.services.application_service import ApplicationService, check_status_transition
from workbench.services.progression_service import ProgressionService

# Coroutine tests run under asyncio_mode = "auto"
pytestmark = pytest.mark.db

TWO_FORMS = [
    ("Application", "Form", form_config()),
    ("Supplement", "Form", form_config()),
]


@pytest.mark.parametrize(
    "current, new, allowed",
    [
        ("draft", "submitted", True),
        ("submitted", "in_review", True),
        ("in_review", "on_hold", True),
        ("on_hold", "in_review", True),
        ("draft", "accepted", False),
        ("accepted", "in_review", False),
        ("rejected", "accepted", False),
    ],
)
def test_status_table(current, new, allowed):
    if allowed:
        check_status_transition(current, new)
    else:
        with pytest.raises(InvalidStatusTransition):
            check_status_transition(current, new)


async def test_screening_status_requires_screen_capability(db, coordinator, reviewer, start_application):
    application, _ = await start_application(TWO_FORMS)
    service = ApplicationService(db)

    with pytest.raises(UnauthorizedError):
        await service.update_screening_status(reviewer, application.id, "Passed")

    screened = await service.update_screening_status(coordinator, application.id, "Passed")
    assert screened.screening_status == "Passed"


async def test_coordinator_holds_and_resumes(db, coordinator, dispatcher, start_application):
    application, _ = await start_application(TWO_FORMS)
    service = ApplicationService(db)

    # Submitted applications only move on through progression
    with pytest.raises(InvalidStatusTransition):
        await service.set_status(coordinator, application.id, "accepted")

    await ProgressionService(db, dispatcher).advance(coordinator, application.id)
    held = await service.set_status(coordinator, application.id, "on_hold")
    assert held.status == "on_hold"
    version = held.version

    resumed = await service.set_status(coordinator, application.id, "in_review")
    assert resumed.status == "in_review"
    assert resumed.version == version + 1

    accepted = await service.set_status(coordinator, application.id, "accepted")
    assert accepted.status == "accepted"
    with pytest.raises(InvalidStatusTransition):
        await service.set_status(coordinator, application.id, "in_review")


async def test_applicants_cannot_set_status(db, applicant, start_application):
    application, _ = await start_application(TWO_FORMS)

    with pytest.raises(UnauthorizedError):
        await ApplicationService(db).set_status(applicant, application.id, "on_hold")


async def test_other_applicants_see_nothing(db, start_application):
    application, _ = await start_application(TWO_FORMS)

    with pytest.raises(NotFoundError):
        await ApplicationService(db).get_application(make_actor(Roles.APPLICANT), application.id)


async def test_notes_belong_to_their_author(db, coordinator, applicant, start_application):
    application, _ = await start_application(TWO_FORMS)
    service = ApplicationService(db)
    colleague = make_actor(Roles.COORDINATOR)

    note = await service.add_note(coordinator, application.id, "Strong essay.")
    await service.add_note(colleague, application.id, "Agreed.")
    assert [n.content for n in await service.list_notes(coordinator, application.id)] == ["Strong essay.", "Agreed."]

    with pytest.raises(UnauthorizedError):
        await service.list_notes(applicant, application.id)
    with pytest.raises(UnauthorizedError):
        await service.update_note(colleague, application.id, note.id, "Edited")

    edited = await service.update_note(coordinator, application.id, note.id, "Very strong essay.")
    assert edited.content == "Very strong essay."

    await service.delete_note(make_actor(Roles.ADMIN), application.id, note.id)
    assert [n.content for n in await service.list_notes(coordinator, application.id)] == ["Agreed."]
