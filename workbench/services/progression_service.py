"""
Application progression engine.

Moves an application out of its current phase once that phase's completion
signal is present:

    Form            required fields present in application data
    Review          a final decision on the phase, or all reviews submitted
    Decision        a final decision
    Recommendation  enough submitted recommendation requests
    Scheduling      a completed interview
    Email           the message is dispatched as part of the advance

The next phase comes from resolve_next_phase(): branch targets for
branch-capable phases that declare them, otherwise the next phase by
order_index. The phase pointer is written with a compare-and-swap on
(current_campaign_phase_id, version) so concurrent advances cannot both win.
"""

import logging
from dataclasses import dataclass, field
from statistics import mean
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from workbench.core.permissions import Actor, Capability, ensure_capability
from workbench.errors import (
    BrokenBranchReference,
    ConcurrentTransition,
    InvalidOutcome,
    InvalidStatusTransition,
    PathwayComplete,
    PhaseIncomplete,
    not_found,
)
from workbench.models.application import Application
from workbench.models.campaign import Campaign
from workbench.models.pathway_template import Phase
from workbench.repositories.application_repository import ApplicationRepository
from workbench.repositories.evaluation_repository import EvaluationRepository
from workbench.repositories.pathway_template_repository import PathwayTemplateRepository
from workbench.repositories.recommendation_repository import RecommendationRepository
from workbench.repositories.scheduling_repository import SchedulingRepository
from workbench.schemas.phase_config import (
    BRANCH_CAPABLE_TYPES,
    EmailConfig,
    PhaseConfig,
    PhaseType,
    ReviewConfig,
    check_form_data,
    parse_phase_type,
    validate_phase_config,
)
from workbench.services.application_service import check_status_transition
from workbench.services.campaign_service import CampaignService
from workbench.services.communication_service import build_message_context, compose_message, resolve_recipients
from workbench.services.notifications import MessageDispatcher, get_dispatcher

logger = logging.getLogger(__name__)

SUCCESS = "success"
FAILURE = "failure"

TERMINAL_STATUSES = frozenset({"accepted", "rejected"})


@dataclass(frozen=True)
class PhaseEvaluation:
    """
    Whether a phase instance is complete, and how it was classified.

    classified is False when the completing decision carries no
    branchCategory; outcome is then only used to pick the linear next phase.
    """

    complete: bool
    outcome: Optional[str] = None
    reason: Optional[str] = None
    classified: bool = True


@dataclass(frozen=True)
class Transition:
    """Where an application goes after leaving a phase."""

    from_phase_id: UUID
    to_phase_id: Optional[UUID]
    outcome: str
    branched: bool
    classified: bool = True

    @property
    def pathway_complete(self) -> bool:
        return self.to_phase_id is None


@dataclass
class AdvanceOutcome:
    application: Application
    transition: Transition
    status_path: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ProgressReport:
    phase_id: UUID
    evaluation: PhaseEvaluation
    transition: Optional[Transition]


def resolve_next_phase(
    phase: Phase,
    ordered_phases: Sequence[Phase],
    outcome: str,
    classified: bool = True,
) -> Transition:
    """
    Compute the phase that follows `phase` for a success/failure outcome.

    Branch targets are consulted only when the phase is branch-capable and
    declares at least one; a null target then ends the pathway. Otherwise
    the next phase is the one with the next higher order_index.

    Raises:
        BrokenBranchReference: The branch target is not a phase of the template
    """
    if outcome not in (SUCCESS, FAILURE):
        raise ValueError(f"outcome must be '{SUCCESS}' or '{FAILURE}', got {outcome!r}")

    phase_type = parse_phase_type(phase.type)
    if phase_type in BRANCH_CAPABLE_TYPES:
        config = validate_phase_config(phase_type, phase.config)
        if config.has_branching:
            target = config.next_phase_id_on_success if outcome == SUCCESS else config.next_phase_id_on_failure
            if target is not None and target not in {p.id for p in ordered_phases}:
                raise BrokenBranchReference(
                    f"Phase '{phase.name}' branches to a phase that no longer exists",
                    details={"phase_id": str(phase.id), "target_phase_id": str(target), "outcome": outcome},
                )
            return Transition(phase.id, target, outcome, branched=True, classified=classified)

    later = [p for p in ordered_phases if p.order_index > phase.order_index]
    following = min(later, key=lambda p: p.order_index) if later else None
    return Transition(phase.id, following.id if following else None, outcome, branched=False, classified=classified)


def status_path(current_status: str, transition: Transition) -> List[str]:
    """
    Statuses an application passes through when a transition is applied.

    Leaving a phase always puts a submitted application in review first, so
    a one-phase pathway still goes submitted -> in_review -> accepted. An
    exhausted pathway whose last outcome is unclassified stays in review for
    a coordinator to settle with set_status.

    Raises:
        InvalidStatusTransition: A step is not in the status table
    """
    path: List[str] = []
    if current_status == "submitted":
        path.append("in_review")
    if transition.pathway_complete and transition.classified:
        path.append("rejected" if transition.outcome == FAILURE else "accepted")

    previous = current_status
    for status in path:
        check_status_transition(previous, status)
        previous = status
    return path


def review_total(score: dict) -> float:
    return sum(float(value) for value in (score or {}).values())


class ProgressionService:
    """Service that walks applications through their campaign's pathway."""

    def __init__(self, db: AsyncSession, dispatcher: Optional[MessageDispatcher] = None):
        self.db = db
        self.applications = ApplicationRepository(db)
        self.templates = PathwayTemplateRepository(db)
        self.evaluations = EvaluationRepository(db)
        self.recommendations = RecommendationRepository(db)
        self.scheduling = SchedulingRepository(db)
        self.campaigns = CampaignService(db)
        self.dispatcher = dispatcher or get_dispatcher()

    # ------------------------------------------------------------------
    # Completion signals
    # ------------------------------------------------------------------

    async def evaluate_phase(self, application: Application, phase: Phase, config: PhaseConfig) -> PhaseEvaluation:
        """Check a phase's completion signal and classify its outcome."""
        phase_type = parse_phase_type(phase.type)

        if phase_type == PhaseType.FORM:
            problems = check_form_data(config.fields, application.data or {})
            if problems:
                return PhaseEvaluation(False, reason=f"form fields incomplete: {', '.join(sorted(problems))}")
            return PhaseEvaluation(True, SUCCESS)

        if phase_type == PhaseType.REVIEW:
            return await self._evaluate_review(application, phase, config)

        if phase_type == PhaseType.DECISION:
            decision = await self.evaluations.latest_final_decision(application.id, phase.id)
            if decision is None:
                return PhaseEvaluation(False, reason="no final decision recorded")
            return self._classify_decision(phase, config, decision.outcome)

        if phase_type == PhaseType.RECOMMENDATION:
            submitted = await self.recommendations.count_submitted(application.id, phase.id)
            if submitted < config.num_recommenders_required:
                return PhaseEvaluation(
                    False,
                    reason=f"{submitted} of {config.num_recommenders_required} recommendations submitted",
                )
            return PhaseEvaluation(True, SUCCESS)

        if phase_type == PhaseType.SCHEDULING:
            completed = await self.scheduling.list_interviews(
                application_id=application.id,
                campaign_phase_id=phase.id,
                status="completed",
            )
            if not completed:
                return PhaseEvaluation(False, reason="no completed interview")
            return PhaseEvaluation(True, SUCCESS)

        # Email phases complete by being sent during the advance
        return PhaseEvaluation(True, SUCCESS)

    async def _evaluate_review(self, application: Application, phase: Phase, config: ReviewConfig) -> PhaseEvaluation:
        decision = await self.evaluations.latest_final_decision(application.id, phase.id)
        if decision is not None:
            return self._classify_decision(phase, config, decision.outcome)

        reviews = await self.evaluations.list_reviews(application.id, phase.id)
        if not reviews:
            return PhaseEvaluation(False, reason="no reviews")
        pending = [r for r in reviews if r.status != "submitted"]
        if pending:
            return PhaseEvaluation(False, reason=f"{len(pending)} review(s) not submitted")

        if config.passing_score is not None:
            average = mean(review_total(r.score) for r in reviews)
            return PhaseEvaluation(True, SUCCESS if average >= config.passing_score else FAILURE)
        return PhaseEvaluation(True, SUCCESS)

    @staticmethod
    def _classify_decision(phase: Phase, config, label: str) -> PhaseEvaluation:
        """Map a decision label to success/failure through its branch category."""
        declared = config.decision_outcomes
        if not declared:
            return PhaseEvaluation(True, SUCCESS, classified=False)
        outcome = config.outcome_for(label)
        if outcome is None:
            raise InvalidOutcome(
                f"Decision outcome '{label}' is not declared on phase '{phase.name}'",
                details={"phase_id": str(phase.id), "allowed": [o.label for o in declared]},
            )
        if outcome.branch_category is None:
            return PhaseEvaluation(True, SUCCESS, classified=False)
        return PhaseEvaluation(True, outcome.branch_category)

    # ------------------------------------------------------------------
    # Advance
    # ------------------------------------------------------------------

    async def _load_context(self, application_id: UUID):
        application = await self.applications.get_by_id(application_id)
        if application is None:
            raise not_found("Application", application_id)
        campaign = await self.campaigns.load_campaign(application.campaign_id)
        return application, campaign

    async def _current_phase(self, application: Application, campaign: Campaign) -> tuple:
        if application.status == "draft":
            raise InvalidStatusTransition(
                "Draft applications must be submitted before they can advance",
                details={"application_id": str(application.id)},
            )
        if application.current_campaign_phase_id is None or application.status in TERMINAL_STATUSES:
            raise PathwayComplete(
                "Application has already completed its pathway",
                details={"application_id": str(application.id), "status": application.status},
            )
        phases: List[Phase] = (
            await self.templates.list_phases(campaign.pathway_template_id) if campaign.pathway_template_id else []
        )
        phase = next((p for p in phases if p.id == application.current_campaign_phase_id), None)
        if phase is None:
            raise BrokenBranchReference(
                "Application is on a phase that is not part of the campaign's template",
                details={
                    "application_id": str(application.id),
                    "phase_id": str(application.current_campaign_phase_id),
                },
            )
        return phase, phases

    async def preview(self, actor: Actor, application_id: UUID) -> ProgressReport:
        """
        Report the current phase's completion state and, if complete, where
        the application would go next. Nothing is written.
        """
        application, campaign = await self._load_context(application_id)
        ensure_capability(
            actor,
            Capability.APPLICATION_READ_ANY,
            owner_id=campaign.creator_id,
            action="inspect application progress",
        )
        phase, phases = await self._current_phase(application, campaign)
        config = validate_phase_config(phase.type, phase.config)
        evaluation = await self.evaluate_phase(application, phase, config)
        transition = (
            resolve_next_phase(phase, phases, evaluation.outcome, evaluation.classified) if evaluation.complete else None
        )
        return ProgressReport(phase.id, evaluation, transition)

    async def advance(
        self,
        actor: Actor,
        application_id: UUID,
        expected_phase_id: Optional[UUID] = None,
    ) -> AdvanceOutcome:
        """
        Move an application out of its current phase.

        Args:
            actor: Coordinator, admin or the campaign's creator
            application_id: Application to advance
            expected_phase_id: Phase the caller believes the application is on

        Raises:
            PathwayComplete: No current phase (pathway exhausted)
            PhaseIncomplete: The phase's completion signal is missing
            BrokenBranchReference: The resolved target is not in the template;
                the application stays where it is
            ConcurrentTransition: Another transition moved the application first
        """
        application, campaign = await self._load_context(application_id)
        ensure_capability(
            actor,
            Capability.APPLICATION_ADVANCE,
            owner_id=campaign.creator_id,
            action="advance applications",
        )
        if application.status == "on_hold":
            raise InvalidStatusTransition(
                "Applications on hold cannot advance",
                details={"application_id": str(application.id)},
            )
        phase, phases = await self._current_phase(application, campaign)
        if expected_phase_id is not None and expected_phase_id != phase.id:
            raise ConcurrentTransition(
                "Application is no longer on the expected phase",
                details={"expected_phase_id": str(expected_phase_id), "current_phase_id": str(phase.id)},
            )

        config = validate_phase_config(phase.type, phase.config)
        evaluation = await self.evaluate_phase(application, phase, config)
        if not evaluation.complete:
            raise PhaseIncomplete(
                f"Phase '{phase.name}' is not complete: {evaluation.reason}",
                details={"phase_id": str(phase.id), "reason": evaluation.reason},
            )

        transition = resolve_next_phase(phase, phases, evaluation.outcome, evaluation.classified)
        path = status_path(application.status, transition)
        new_status = path[-1] if path else application.status
        moved = await self.applications.compare_and_set_phase(application, phase.id, transition.to_phase_id, new_status)
        if not moved:
            logger.warning("Lost transition race for application %s on phase %s", application.id, phase.id)
            raise ConcurrentTransition(
                "Application was moved by a concurrent transition",
                details={"application_id": str(application.id), "phase_id": str(phase.id)},
            )

        if isinstance(config, EmailConfig):
            await self._send_phase_email(application, campaign, phase, config)

        logger.info(
            "Advanced application %s: %s -> %s (%s%s)",
            application.id,
            transition.from_phase_id,
            transition.to_phase_id,
            transition.outcome,
            ", branched" if transition.branched else "",
        )
        if transition.pathway_complete and not transition.classified:
            logger.warning(
                "Application %s finished its pathway on an unclassified decision; status left %s",
                application.id,
                new_status,
            )
        return AdvanceOutcome(application=application, transition=transition, status_path=path)

    async def _send_phase_email(self, application: Application, campaign: Campaign, phase: Phase, config: EmailConfig) -> None:
        context = build_message_context(application, campaign, phase)
        message = compose_message(
            kind=f"phase_email:{config.trigger_event}",
            recipients=resolve_recipients(config.recipient_roles, application),
            subject=config.subject,
            body=config.body,
            context=context,
            template_id=str(config.selected_template_id) if config.selected_template_id else None,
        )
        await self.dispatcher.dispatch(message)
