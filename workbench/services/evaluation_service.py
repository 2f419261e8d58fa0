"""
Evaluation subsystem: reviewer assignments, rubric reviews and decisions.

All three hang off a phase instance (application + phase of the campaign's
template). Assignments and decisions are managed by admins and the
campaign's creator; reviews are written by the assigned reviewer.
"""

import logging
from typing import Dict, FrozenSet, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from workbench.core.permissions import Actor, Capability, ensure_capability
from workbench.errors import (
    ConflictError,
    DuplicateAssignment,
    InputValidationError,
    InvalidOutcome,
    InvalidStatusTransition,
    ScoreOutOfRange,
    UnauthorizedError,
    not_found,
)
from workbench.models.application import Application
from workbench.models.campaign import Campaign
from workbench.models.evaluation import Decision, Review, ReviewerAssignment
from workbench.models.pathway_template import Phase
from workbench.repositories.application_repository import ApplicationRepository
from workbench.repositories.communication_repository import CommunicationRepository
from workbench.repositories.evaluation_repository import EvaluationRepository
from workbench.repositories.pathway_template_repository import PathwayTemplateRepository
from workbench.schemas.evaluation import (
    DecisionCreate,
    DecisionUpdate,
    ReviewCreate,
    ReviewerAssignmentCreate,
    ReviewUpdate,
)
from workbench.schemas.phase_config import DecisionConfig, PhaseType, ReviewConfig, validate_phase_config
from workbench.services.campaign_service import CampaignService
from workbench.services.communication_service import build_message_context, compose_message, resolve_recipients
from workbench.services.notifications import MessageDispatcher, get_dispatcher
from workbench.utils.time import utc_now

logger = logging.getLogger(__name__)


ASSIGNMENT_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "assigned": frozenset({"accepted", "declined", "completed"}),
    "accepted": frozenset({"completed", "declined"}),
    "declined": frozenset(),
    "completed": frozenset(),
}

REVIEW_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"submitted"}),
    "submitted": frozenset({"reopened"}),
    "reopened": frozenset({"submitted"}),
}

INITIAL_REVIEW_STATUSES = frozenset({"pending", "submitted"})


def check_scores(config: ReviewConfig, score: Dict[str, float]) -> None:
    """
    Validate a score map against the rubric.

    Raises:
        ScoreOutOfRange: Unknown criterion, or a value outside [0, maxScore]
    """
    for criterion_id, value in score.items():
        criterion = config.criterion(criterion_id)
        if criterion is None:
            raise ScoreOutOfRange(
                f"Unknown rubric criterion '{criterion_id}'",
                details={"criterion_id": criterion_id, "allowed": [c.id for c in config.rubric_criteria]},
            )
        if value < 0 or value > criterion.max_score:
            raise ScoreOutOfRange(
                f"Score for '{criterion.name}' must be between 0 and {criterion.max_score}",
                details={"criterion_id": criterion_id, "score": value, "max_score": criterion.max_score},
            )


def check_review_transition(current: str, new: str) -> None:
    if new == current:
        return
    if new not in REVIEW_TRANSITIONS.get(current, frozenset()):
        raise InvalidStatusTransition(
            f"Cannot move a review from '{current}' to '{new}'",
            details={"from": current, "to": new, "allowed": sorted(REVIEW_TRANSITIONS.get(current, frozenset()))},
        )


class EvaluationService:
    """Service for assignments, reviews and decisions."""

    def __init__(self, db: AsyncSession, dispatcher: Optional[MessageDispatcher] = None):
        self.db = db
        self.repo = EvaluationRepository(db)
        self.applications = ApplicationRepository(db)
        self.templates = PathwayTemplateRepository(db)
        self.communications = CommunicationRepository(db)
        self.campaigns = CampaignService(db)
        self.dispatcher = dispatcher or get_dispatcher()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _phase_instance(self, application_id: UUID, phase_id: UUID):
        """Load application, campaign and a phase that belongs to the campaign's template."""
        application = await self.applications.get_by_id(application_id)
        if application is None:
            raise not_found("Application", application_id)
        campaign = await self.campaigns.load_campaign(application.campaign_id)
        phase = await self.templates.get_phase(phase_id)
        if phase is None or phase.pathway_template_id != campaign.pathway_template_id:
            raise not_found("Phase", phase_id)
        return application, campaign, phase

    @staticmethod
    def _review_config(phase: Phase) -> ReviewConfig:
        if phase.type != PhaseType.REVIEW.value:
            raise InputValidationError(
                f"Phase '{phase.name}' is a {phase.type} phase, not a Review phase",
                details={"phase_id": str(phase.id), "phase_type": phase.type},
            )
        return validate_phase_config(phase.type, phase.config)

    @staticmethod
    def _ensure_manager(actor: Actor, campaign: Campaign, capability: Capability, action: str) -> None:
        ensure_capability(actor, capability, owner_id=campaign.creator_id, action=action)

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    async def create_assignment(self, actor: Actor, payload: ReviewerAssignmentCreate) -> ReviewerAssignment:
        """
        Assign a reviewer to an application's review phase.

        Raises:
            DuplicateAssignment: The reviewer is already assigned to this phase instance
        """
        application, campaign, phase = await self._phase_instance(payload.application_id, payload.campaign_phase_id)
        self._ensure_manager(actor, campaign, Capability.ASSIGNMENT_MANAGE_ANY, "assign reviewers")
        self._review_config(phase)

        duplicate = DuplicateAssignment(
            "Reviewer is already assigned to this application for this phase",
            details={
                "reviewer_id": str(payload.reviewer_id),
                "application_id": str(application.id),
                "campaign_phase_id": str(phase.id),
            },
        )
        if await self.repo.find_assignment(payload.reviewer_id, application.id, phase.id):
            raise duplicate
        try:
            assignment = await self.repo.create_assignment(
                application_id=application.id,
                reviewer_id=payload.reviewer_id,
                campaign_phase_id=phase.id,
                status="assigned",
                assigned_at=utc_now(),
            )
        except IntegrityError:
            # Lost a race with a concurrent identical assignment; the request
            # transaction is rolled back by the session dependency
            raise duplicate from None
        logger.info("Assigned reviewer %s to application %s phase %s", payload.reviewer_id, application.id, phase.id)
        return assignment

    async def list_assignments(
        self,
        actor: Actor,
        application_id: Optional[UUID] = None,
        reviewer_id: Optional[UUID] = None,
    ) -> List[ReviewerAssignment]:
        """Assignments visible to the actor; reviewers only see their own."""
        if not (actor.can(Capability.ASSIGNMENT_MANAGE_ANY) or actor.can(Capability.APPLICATION_READ_ANY)):
            reviewer_id = actor.user_id
        return await self.repo.list_assignments(application_id=application_id, reviewer_id=reviewer_id)

    async def _get_assignment(self, assignment_id: UUID) -> ReviewerAssignment:
        assignment = await self.repo.get_assignment(assignment_id)
        if assignment is None:
            raise not_found("Reviewer assignment", assignment_id)
        return assignment

    async def update_assignment_status(self, actor: Actor, assignment_id: UUID, new_status: str) -> ReviewerAssignment:
        assignment = await self._get_assignment(assignment_id)
        if assignment.reviewer_id != actor.user_id:
            _, campaign, _ = await self._phase_instance(assignment.application_id, assignment.campaign_phase_id)
            self._ensure_manager(actor, campaign, Capability.ASSIGNMENT_MANAGE_ANY, "update this assignment")
        if new_status not in ASSIGNMENT_TRANSITIONS.get(assignment.status, frozenset()):
            raise InvalidStatusTransition(
                f"Cannot move an assignment from '{assignment.status}' to '{new_status}'",
                details={"from": assignment.status, "to": new_status},
            )
        update_data = {"status": new_status}
        if new_status == "completed":
            update_data["completed_at"] = utc_now()
        return await self.repo.update(assignment, update_data)

    async def delete_assignment(self, actor: Actor, assignment_id: UUID) -> None:
        assignment = await self._get_assignment(assignment_id)
        _, campaign, _ = await self._phase_instance(assignment.application_id, assignment.campaign_phase_id)
        self._ensure_manager(actor, campaign, Capability.ASSIGNMENT_MANAGE_ANY, "remove reviewer assignments")
        await self.repo.delete(assignment)
        logger.info("Removed reviewer assignment %s", assignment_id)

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    async def _complete_assignment(self, review: Review) -> None:
        assignment = await self.repo.find_assignment(review.reviewer_id, review.application_id, review.campaign_phase_id)
        if assignment is not None and assignment.status in ("assigned", "accepted"):
            await self.repo.update(assignment, {"status": "completed", "completed_at": utc_now()})

    async def create_review(self, actor: Actor, payload: ReviewCreate) -> Review:
        """
        Write the actor's review for a phase instance.

        Only an assigned reviewer (or someone allowed to write any review)
        may review; scores are checked against the phase rubric.
        """
        application, _, phase = await self._phase_instance(payload.application_id, payload.campaign_phase_id)
        config = self._review_config(phase)

        if not actor.can(Capability.REVIEW_WRITE_ANY):
            ensure_capability(actor, Capability.REVIEW_WRITE_OWN, action="write reviews")
            if await self.repo.find_assignment(actor.user_id, application.id, phase.id) is None:
                raise UnauthorizedError(
                    "You are not assigned to review this application for this phase.",
                    details={"application_id": str(application.id), "campaign_phase_id": str(phase.id)},
                )
        existing = [r for r in await self.repo.list_reviews(application.id, phase.id) if r.reviewer_id == actor.user_id]
        if existing:
            raise ConflictError(
                "A review by this reviewer already exists for this phase; update it instead",
                details={"review_id": str(existing[0].id)},
            )
        if payload.status not in INITIAL_REVIEW_STATUSES:
            raise InvalidStatusTransition(
                f"A new review cannot start as '{payload.status}'",
                details={"allowed": sorted(INITIAL_REVIEW_STATUSES)},
            )
        check_scores(config, payload.score)
        if payload.comments and not config.allow_comments:
            raise InputValidationError("Comments are not enabled for this review phase")

        review = await self.repo.create_review(
            application_id=application.id,
            reviewer_id=actor.user_id,
            campaign_phase_id=phase.id,
            score=dict(payload.score),
            comments=payload.comments,
            status=payload.status,
            submitted_at=utc_now() if payload.status == "submitted" else None,
        )
        if review.status == "submitted":
            await self._complete_assignment(review)
        logger.info("Review %s created for application %s phase %s", review.id, application.id, phase.id)
        return review

    async def _get_review(self, review_id: UUID) -> Review:
        review = await self.repo.get_review(review_id)
        if review is None:
            raise not_found("Review", review_id)
        return review

    async def update_review(self, actor: Actor, review_id: UUID, payload: ReviewUpdate) -> Review:
        """
        Edit a review or move it along pending -> submitted -> reopened -> submitted.

        A submitted review must be reopened before its scores or comments change.
        """
        review = await self._get_review(review_id)
        ensure_capability(actor, Capability.REVIEW_WRITE_ANY, owner_id=review.reviewer_id, action="edit this review")
        _, _, phase = await self._phase_instance(review.application_id, review.campaign_phase_id)
        config = self._review_config(phase)

        update_data = payload.model_dump(exclude_unset=True)
        new_status = update_data.get("status", review.status)
        check_review_transition(review.status, new_status)
        edits_content = "score" in update_data or "comments" in update_data
        if edits_content and review.status == "submitted" and new_status == "submitted":
            raise InvalidStatusTransition(
                "Reopen a submitted review before changing it",
                details={"review_id": str(review.id)},
            )
        if "score" in update_data:
            update_data["score"] = dict(update_data["score"] or {})
            check_scores(config, update_data["score"])
        if update_data.get("comments") and not config.allow_comments:
            raise InputValidationError("Comments are not enabled for this review phase")
        if new_status == "submitted" and review.status != "submitted":
            update_data["submitted_at"] = utc_now()

        review = await self.repo.update(review, update_data)
        if review.status == "submitted":
            await self._complete_assignment(review)
        return review

    async def delete_review(self, actor: Actor, review_id: UUID) -> None:
        review = await self._get_review(review_id)
        ensure_capability(actor, Capability.REVIEW_WRITE_ANY, owner_id=review.reviewer_id, action="delete this review")
        await self.repo.delete(review)

    async def list_reviews(self, actor: Actor, application_id: UUID, campaign_phase_id: Optional[UUID] = None) -> List[Review]:
        """Reviews of an application; reviewers without wider access see only their own."""
        application = await self.applications.get_by_id(application_id)
        if application is None:
            raise not_found("Application", application_id)
        reviews = await self.repo.list_reviews(application.id, campaign_phase_id)
        campaign = await self.campaigns.load_campaign(application.campaign_id)
        if actor.can(Capability.APPLICATION_READ_ANY) or CampaignService.can_manage(actor, campaign):
            return reviews
        return [r for r in reviews if r.reviewer_id == actor.user_id]

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    @staticmethod
    def _check_outcome(phase: Phase, label: str) -> None:
        if phase.type not in (PhaseType.DECISION.value, PhaseType.REVIEW.value):
            raise InputValidationError(
                f"Decisions cannot be recorded on {phase.type} phases",
                details={"phase_id": str(phase.id)},
            )
        config = validate_phase_config(phase.type, phase.config)
        if config.outcome_for(label) is None:
            raise InvalidOutcome(
                f"'{label}' is not a declared outcome of phase '{phase.name}'",
                details={"phase_id": str(phase.id), "allowed": [o.label for o in config.decision_outcomes]},
            )

    async def record_decision(self, actor: Actor, payload: DecisionCreate) -> Decision:
        """
        Record a decision on a phase instance.

        Several decisions may exist per phase; the newest is_final one is
        authoritative for progression.
        """
        application, campaign, phase = await self._phase_instance(payload.application_id, payload.campaign_phase_id)
        self._ensure_manager(actor, campaign, Capability.DECISION_RECORD_ANY, "record decisions")
        self._check_outcome(phase, payload.outcome)

        decision = await self.repo.create_decision(
            application_id=application.id,
            campaign_phase_id=phase.id,
            decider_id=actor.user_id,
            outcome=payload.outcome,
            notes=payload.notes,
            is_final=payload.is_final,
        )
        logger.info(
            "Decision %s recorded for application %s phase %s: %s%s",
            decision.id,
            application.id,
            phase.id,
            decision.outcome,
            " (final)" if decision.is_final else "",
        )
        if decision.is_final:
            await self._send_decision_email(application, campaign, phase, decision)
        return decision

    async def _send_decision_email(self, application: Application, campaign: Campaign, phase: Phase, decision: Decision) -> None:
        if phase.type != PhaseType.DECISION.value:
            return
        config: DecisionConfig = validate_phase_config(phase.type, phase.config)
        if not config.associated_email_template:
            return
        try:
            template_id = UUID(config.associated_email_template)
        except ValueError:
            template_id = None
        template = await self.communications.get_by_id(template_id) if template_id else None
        if template is None:
            logger.warning(
                "Decision email template %s for phase %s not found; no message sent",
                config.associated_email_template,
                phase.id,
            )
            return
        context = build_message_context(application, campaign, phase)
        context["decision"] = {"outcome": decision.outcome, "notes": decision.notes}
        context["decision_outcome"] = decision.outcome
        message = compose_message(
            kind="decision_made",
            recipients=resolve_recipients(["applicant"], application),
            subject=template.subject,
            body=template.body,
            context=context,
            template_id=str(template.id),
        )
        await self.dispatcher.dispatch(message)

    async def _get_decision(self, decision_id: UUID) -> Decision:
        decision = await self.repo.get_decision(decision_id)
        if decision is None:
            raise not_found("Decision", decision_id)
        return decision

    async def update_decision(self, actor: Actor, decision_id: UUID, payload: DecisionUpdate) -> Decision:
        decision = await self._get_decision(decision_id)
        _, campaign, phase = await self._phase_instance(decision.application_id, decision.campaign_phase_id)
        self._ensure_manager(actor, campaign, Capability.DECISION_RECORD_ANY, "edit decisions")
        update_data = payload.model_dump(exclude_unset=True)
        if "outcome" in update_data:
            self._check_outcome(phase, update_data["outcome"])
        return await self.repo.update(decision, update_data)

    async def delete_decision(self, actor: Actor, decision_id: UUID) -> None:
        decision = await self._get_decision(decision_id)
        _, campaign, _ = await self._phase_instance(decision.application_id, decision.campaign_phase_id)
        self._ensure_manager(actor, campaign, Capability.DECISION_RECORD_ANY, "delete decisions")
        await self.repo.delete(decision)

    async def list_decisions(self, actor: Actor, application_id: UUID, campaign_phase_id: Optional[UUID] = None) -> List[Decision]:
        application = await self.applications.get_by_id(application_id)
        if application is None:
            raise not_found("Application", application_id)
        campaign = await self.campaigns.load_campaign(application.campaign_id)
        if not (
            application.applicant_id == actor.user_id
            or actor.can(Capability.APPLICATION_READ_ANY)
            or CampaignService.can_manage(actor, campaign)
        ):
            raise not_found("Application", application_id)
        return await self.repo.list_decisions(application.id, campaign_phase_id)
