"""
Progression engine: phase completion, branching and the phase pointer CAS.
"""

import uuid

import pytest
import pytest_asyncio
from sqlalchemy import select, update

from conftest import APPLICANT_DATA, decision_config, email_config, form_config, review_config
from workbench.errors import (
    BrokenBranchReference,
    ConcurrentTransition,
    InvalidStatusTransition,
    PathwayComplete,
    PhaseIncomplete,
    UnauthorizedError,
)
from workbench.models.application import Application
from workbench.models.pathway_template import Phase
from workbench.schemas.application import ApplicationCreate
from workbench.schemas.evaluation import DecisionCreate, ReviewCreate, ReviewerAssignmentCreate
from workbench.schemas.pathway_template import BranchingUpdate
from workbench.services.application_service import ApplicationService
from workbench.services.evaluation_service import EvaluationService
from workbench.services.pathway_template_service import PathwayTemplateService
from workbench.services.progression_service import (
    FAILURE,
    SUCCESS,
    ProgressionService,
    Transition,
    resolve_next_phase,
    status_path,
)

# Coroutine tests run under asyncio_mode = "auto"
pytestmark = pytest.mark.db


@pytest_asyncio.fixture
async def fellowship(db, coordinator, start_application):
    """
    Form(0) -> Review(1) -> Decision(3), with a gap left by a deleted phase at 2.

    Review branches to Decision on success and ends the pathway on failure.
    """
    application, phases = await start_application(
        [
            ("Application", "Form", form_config()),
            ("Committee review", "Review", review_config()),
            ("Retired step", "Email", email_config()),
            ("Final decision", "Decision", decision_config()),
        ]
    )
    templates = PathwayTemplateService(db)
    form, review, retired, decision = phases
    await templates.delete_phase(coordinator, retired.id)
    await templates.update_phase_branching(
        coordinator, review.id, BranchingUpdate(next_phase_id_on_success=decision.id)
    )
    return application, form, review, decision


async def _decide(db, actor, application, phase, outcome):
    service = EvaluationService(db)
    return await service.record_decision(
        actor,
        DecisionCreate(application_id=application.id, campaign_phase_id=phase.id, outcome=outcome, is_final=True),
    )


# ---------------------------------------------------------------------------
# resolve_next_phase
# ---------------------------------------------------------------------------


def _phase(phase_type, order_index, config, template_id):
    return Phase(
        id=uuid.uuid4(),
        pathway_template_id=template_id,
        name=f"{phase_type} {order_index}",
        type=phase_type,
        order_index=order_index,
        config=config,
    )


def test_linear_resolution_skips_index_gaps():
    template_id = uuid.uuid4()
    form = _phase("Form", 0, form_config(), template_id)
    decision = _phase("Decision", 5, decision_config(), template_id)
    email = _phase("Email", 2, email_config(), template_id)
    ordered = [form, email, decision]

    assert resolve_next_phase(form, ordered, SUCCESS).to_phase_id == email.id
    assert resolve_next_phase(email, ordered, SUCCESS).to_phase_id == decision.id
    last = resolve_next_phase(decision, ordered, SUCCESS)
    assert last.to_phase_id is None
    assert last.pathway_complete


def test_branch_targets_are_deterministic():
    template_id = uuid.uuid4()
    decision = _phase("Decision", 2, decision_config(), template_id)
    review = _phase("Review", 0, {}, template_id)
    review.config = review_config(nextPhaseIdOnSuccess=str(decision.id))
    middle = _phase("Form", 1, form_config(), template_id)
    ordered = [review, middle, decision]

    first = resolve_next_phase(review, ordered, SUCCESS)
    assert first == resolve_next_phase(review, ordered, SUCCESS)
    assert first == Transition(review.id, decision.id, SUCCESS, branched=True)

    failure = resolve_next_phase(review, ordered, FAILURE)
    assert failure.to_phase_id is None
    assert failure.branched


def test_missing_branch_target_is_reported():
    template_id = uuid.uuid4()
    review = _phase("Review", 0, review_config(nextPhaseIdOnSuccess=str(uuid.uuid4())), template_id)
    after = _phase("Form", 1, form_config(), template_id)

    with pytest.raises(BrokenBranchReference):
        resolve_next_phase(review, [review, after], SUCCESS)


def test_status_path_for_transitions():
    phase_id = uuid.uuid4()
    assert status_path("submitted", Transition(phase_id, uuid.uuid4(), SUCCESS, False)) == ["in_review"]
    assert status_path("in_review", Transition(phase_id, uuid.uuid4(), FAILURE, False)) == []
    assert status_path("in_review", Transition(phase_id, None, SUCCESS, False)) == ["accepted"]
    assert status_path("in_review", Transition(phase_id, None, FAILURE, True)) == ["rejected"]
    assert status_path("in_review", Transition(phase_id, None, SUCCESS, False, classified=False)) == []


def test_terminal_status_passes_through_review():
    phase_id = uuid.uuid4()
    assert status_path("submitted", Transition(phase_id, None, SUCCESS, False)) == ["in_review", "accepted"]
    assert status_path("submitted", Transition(phase_id, None, FAILURE, True)) == ["in_review", "rejected"]
    assert status_path("submitted", Transition(phase_id, None, SUCCESS, False, classified=False)) == ["in_review"]
    assert status_path("in_review", Transition(phase_id, uuid.uuid4(), SUCCESS, False)) == []

    with pytest.raises(InvalidStatusTransition):
        status_path("on_hold", Transition(phase_id, None, SUCCESS, False))


# ---------------------------------------------------------------------------
# Advance
# ---------------------------------------------------------------------------


async def test_fellowship_accept_path(db, coordinator, dispatcher, fellowship):
    application, form, review, decision = fellowship
    service = ProgressionService(db, dispatcher)

    result = await service.advance(coordinator, application.id, expected_phase_id=form.id)
    assert result.transition.to_phase_id == review.id
    assert result.application.status == "in_review"

    await _decide(db, coordinator, application, review, "Accept")
    result = await service.advance(coordinator, application.id)
    assert result.transition.to_phase_id == decision.id
    assert result.transition.branched

    await _decide(db, coordinator, application, decision, "Admit")
    result = await service.advance(coordinator, application.id)
    assert result.transition.pathway_complete
    assert result.application.status == "accepted"
    assert result.application.current_campaign_phase_id is None


async def test_fellowship_reject_ends_pathway(db, coordinator, dispatcher, fellowship):
    application, form, review, _ = fellowship
    service = ProgressionService(db, dispatcher)
    await service.advance(coordinator, application.id)

    await _decide(db, coordinator, application, review, "Reject")
    result = await service.advance(coordinator, application.id)

    assert result.transition.outcome == FAILURE
    assert result.transition.to_phase_id is None
    assert result.application.status == "rejected"

    with pytest.raises(PathwayComplete):
        await service.advance(coordinator, application.id)


async def test_incomplete_phase_blocks_advance(db, coordinator, dispatcher, fellowship):
    application, form, review, _ = fellowship
    service = ProgressionService(db, dispatcher)
    await service.advance(coordinator, application.id)

    with pytest.raises(PhaseIncomplete) as exc_info:
        await service.advance(coordinator, application.id)
    assert exc_info.value.details["phase_id"] == str(review.id)

    report = await service.preview(coordinator, application.id)
    assert report.phase_id == review.id
    assert not report.evaluation.complete
    assert report.transition is None


async def test_stale_expected_phase_is_a_conflict(db, coordinator, dispatcher, fellowship):
    application, form, review, _ = fellowship
    service = ProgressionService(db, dispatcher)
    await service.advance(coordinator, application.id, expected_phase_id=form.id)

    with pytest.raises(ConcurrentTransition):
        await service.advance(coordinator, application.id, expected_phase_id=form.id)

    current = await ApplicationService(db).load(application.id)
    assert current.current_campaign_phase_id == review.id


async def test_lost_compare_and_swap_leaves_application_in_place(db, coordinator, dispatcher, fellowship):
    application, form, review, _ = fellowship
    service = ProgressionService(db, dispatcher)
    loaded = await ApplicationService(db).load(application.id)
    stale_version = loaded.version

    # Another writer bumps the row; the session keeps the version it read
    await db.execute(
        update(Application)
        .where(Application.id == application.id)
        .values(version=Application.version + 1)
        .execution_options(synchronize_session=False)
    )

    with pytest.raises(ConcurrentTransition):
        await service.advance(coordinator, application.id, expected_phase_id=form.id)

    row = (
        await db.execute(
            select(Application.current_campaign_phase_id, Application.version, Application.status).where(
                Application.id == application.id
            )
        )
    ).one()
    assert row.current_campaign_phase_id == form.id
    assert row.version == stale_version + 1
    assert row.status == "submitted"


async def test_stale_branch_target_keeps_application_on_phase(db, coordinator, dispatcher, fellowship):
    application, form, review, _ = fellowship
    service = ProgressionService(db, dispatcher)
    await service.advance(coordinator, application.id)
    await _decide(db, coordinator, application, review, "Accept")

    # A target written before guarded deletion existed
    review.config = review_config(nextPhaseIdOnSuccess=str(uuid.uuid4()))
    await db.flush()
    version = (await ApplicationService(db).load(application.id)).version

    with pytest.raises(BrokenBranchReference):
        await service.advance(coordinator, application.id)

    current = await ApplicationService(db).load(application.id)
    assert current.current_campaign_phase_id == review.id
    assert current.version == version
    assert current.status == "in_review"


async def test_untagged_final_decision_leaves_status_for_coordinator(db, coordinator, dispatcher, start_application):
    untagged = decision_config(
        decisionOutcomes=[
            {"id": "accept", "label": "Accept", "isFinal": True},
            {"id": "reject", "label": "Reject", "isFinal": True},
        ]
    )
    application, phases = await start_application([("Committee", "Decision", untagged)])
    await _decide(db, coordinator, application, phases[0], "Reject")

    result = await ProgressionService(db, dispatcher).advance(coordinator, application.id)

    assert result.transition.pathway_complete
    assert not result.transition.classified
    assert result.status_path == ["in_review"]
    assert result.application.status == "in_review"
    assert result.application.current_campaign_phase_id is None

    settled = await ApplicationService(db).set_status(coordinator, application.id, "rejected")
    assert settled.status == "rejected"


async def test_single_phase_pathway_goes_through_review(db, coordinator, dispatcher, start_application):
    application, _ = await start_application([("Application", "Form", form_config())])
    assert application.status == "submitted"

    result = await ProgressionService(db, dispatcher).advance(coordinator, application.id)

    assert result.status_path == ["in_review", "accepted"]
    assert result.application.status == "accepted"


async def test_version_is_bumped_on_each_transition(db, coordinator, dispatcher, fellowship):
    application, *_ = fellowship
    before = application.version
    result = await ProgressionService(db, dispatcher).advance(coordinator, application.id)

    assert result.application.version == before + 1


async def test_draft_applications_cannot_advance(db, coordinator, applicant, dispatcher, build_template, build_campaign):
    template, _ = await build_template(coordinator, [("Application", "Form", form_config())])
    campaign = await build_campaign(coordinator, template.id)
    draft = await ApplicationService(db).create_application(
        applicant, ApplicationCreate(campaign_id=campaign.id, data=APPLICANT_DATA)
    )

    with pytest.raises(InvalidStatusTransition):
        await ProgressionService(db, dispatcher).advance(coordinator, draft.id)


async def test_on_hold_applications_cannot_advance(db, coordinator, dispatcher, fellowship):
    application, *_ = fellowship
    service = ProgressionService(db, dispatcher)
    await service.advance(coordinator, application.id)
    await ApplicationService(db).set_status(coordinator, application.id, "on_hold")

    with pytest.raises(InvalidStatusTransition):
        await service.advance(coordinator, application.id)


async def test_applicants_cannot_advance(db, applicant, dispatcher, fellowship):
    application, *_ = fellowship

    with pytest.raises(UnauthorizedError):
        await ProgressionService(db, dispatcher).advance(applicant, application.id)


async def test_review_scores_classify_against_passing_score(db, coordinator, reviewer, dispatcher, start_application):
    application, phases = await start_application(
        [
            ("Application", "Form", form_config()),
            ("Scored review", "Review", review_config(decisionOutcomes=[], passingScore=8)),
            ("Final decision", "Decision", decision_config()),
        ]
    )
    form, review, decision = phases
    progression = ProgressionService(db, dispatcher)
    evaluations = EvaluationService(db, dispatcher)
    await progression.advance(coordinator, application.id)

    await evaluations.create_assignment(
        coordinator,
        ReviewerAssignmentCreate(application_id=application.id, reviewer_id=reviewer.user_id, campaign_phase_id=review.id),
    )
    await evaluations.create_review(
        reviewer,
        ReviewCreate(
            application_id=application.id,
            campaign_phase_id=review.id,
            score={"merit": 5, "fit": 2},
            status="submitted",
        ),
    )

    report = await progression.preview(coordinator, application.id)
    assert report.evaluation.complete
    assert report.evaluation.outcome == FAILURE
    # No branch targets, so a failed review still moves on in order
    assert report.transition.to_phase_id == decision.id


async def test_email_phase_dispatches_when_left(db, coordinator, dispatcher, start_application):
    application, phases = await start_application(
        [
            ("Application", "Form", form_config()),
            ("Welcome", "Email", email_config()),
        ]
    )
    service = ProgressionService(db, dispatcher)
    await service.advance(coordinator, application.id)
    assert dispatcher.sent == []

    result = await service.advance(coordinator, application.id)

    assert result.application.status == "accepted"
    assert len(dispatcher.sent) == 1
    message = dispatcher.sent[0]
    assert message.subject == "Welcome Ada Lovelace"
    assert message.recipients == ["ada@example.org"]
    assert "2026 Intake" in message.body
