"""
Recommendation request flow.

Applicants (or staff) open requests for an application's Recommendation
phase; each request carries an unguessable token that is the recommender's
only credential. A request accepts exactly one submission.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from workbench.core.config import settings
from workbench.core.permissions import Actor, Capability, ensure_capability
from workbench.errors import (
    InputValidationError,
    InvalidRecommendationToken,
    MissingRequiredField,
    RecommendationAlreadySubmitted,
    not_found,
)
from workbench.models.recommendation import RecommendationRequest
from workbench.repositories.application_repository import ApplicationRepository
from workbench.repositories.pathway_template_repository import PathwayTemplateRepository
from workbench.repositories.recommendation_repository import RecommendationRepository
from workbench.schemas.phase_config import PhaseType, RecommendationConfig, validate_phase_config
from workbench.schemas.recommendation import RecommendationRequestCreate
from workbench.services.campaign_service import CampaignService
from workbench.services.communication_service import build_message_context, compose_message
from workbench.services.notifications import MessageDispatcher, get_dispatcher
from workbench.utils.time import as_utc, utc_now

logger = logging.getLogger(__name__)

REMINDER_THRESHOLDS: Dict[str, Optional[timedelta]] = {
    "none": None,
    "daily": timedelta(days=1),
    "weekly": timedelta(days=7),
    "bi-weekly": timedelta(days=14),
}

OPEN_STATUSES = frozenset({"pending", "sent", "viewed"})

REQUEST_SUBJECT = "Recommendation request for {{applicant_name}}"
REQUEST_BODY = (
    "Dear {{recommender_name}},\n\n"
    "{{applicant_name}} has asked you for a recommendation for {{campaign_name}}.\n"
    "Please submit it at: {{recommendation_link}}"
)


def generate_token() -> str:
    return secrets.token_urlsafe(settings.RECOMMENDATION_TOKEN_BYTES)


def is_overdue(request: RecommendationRequest, reminder_schedule: str, now: Optional[datetime] = None) -> bool:
    """
    Whether an open request has waited longer than its reminder schedule allows.

    Used by the scheduled job that flags overdue requests; "none" never expires.
    """
    threshold = REMINDER_THRESHOLDS.get(reminder_schedule)
    if threshold is None or request.status not in OPEN_STATUSES:
        return False
    sent_at = request.request_sent_at or request.created_at
    if sent_at is None:
        return False
    now = now or utc_now()
    return as_utc(now) - as_utc(sent_at) > threshold


class RecommendationService:
    """Service for recommendation requests and token-based submission."""

    def __init__(self, db: AsyncSession, dispatcher: Optional[MessageDispatcher] = None):
        self.db = db
        self.repo = RecommendationRepository(db)
        self.applications = ApplicationRepository(db)
        self.templates = PathwayTemplateRepository(db)
        self.campaigns = CampaignService(db)
        self.dispatcher = dispatcher or get_dispatcher()

    async def _phase_config(self, phase_id: UUID) -> RecommendationConfig:
        phase = await self.templates.get_phase(phase_id)
        if phase is None:
            raise not_found("Phase", phase_id)
        if phase.type != PhaseType.RECOMMENDATION.value:
            raise InputValidationError(
                f"Phase '{phase.name}' is not a Recommendation phase",
                details={"phase_id": str(phase.id), "phase_type": phase.type},
            )
        return validate_phase_config(phase.type, phase.config)

    async def create_request(self, actor: Actor, payload: RecommendationRequestCreate) -> RecommendationRequest:
        """
        Open a recommendation request and notify the recommender.

        The applicant, the campaign's creator and recommendation managers may
        open requests.
        """
        application = await self.applications.get_by_id(payload.application_id)
        if application is None:
            raise not_found("Application", payload.application_id)
        campaign = await self.campaigns.load_campaign(application.campaign_id)
        phase = await self.templates.get_phase(payload.campaign_phase_id)
        if phase is None or phase.pathway_template_id != campaign.pathway_template_id:
            raise not_found("Phase", payload.campaign_phase_id)
        await self._phase_config(phase.id)

        if application.applicant_id != actor.user_id:
            ensure_capability(
                actor,
                Capability.RECOMMENDATION_MANAGE_ANY,
                owner_id=campaign.creator_id,
                action="request recommendations for this application",
            )

        request = await self.repo.create(
            application_id=application.id,
            campaign_phase_id=phase.id,
            recommender_email=str(payload.recommender_email),
            recommender_name=payload.recommender_name,
            unique_token=generate_token(),
            status="sent",
            request_sent_at=utc_now(),
        )

        context = build_message_context(application, campaign, phase)
        context["recommender_name"] = payload.recommender_name or str(payload.recommender_email)
        context["recommendation_link"] = f"/recommendation/{request.unique_token}"
        message = compose_message(
            kind="recommendation_request",
            recipients=[request.recommender_email],
            subject=REQUEST_SUBJECT,
            body=REQUEST_BODY,
            context=context,
        )
        await self.dispatcher.dispatch(message)
        logger.info("Recommendation request %s sent for application %s", request.id, application.id)
        return request

    async def list_requests(self, actor: Actor, application_id: UUID) -> List[RecommendationRequest]:
        application = await self.applications.get_by_id(application_id)
        if application is None:
            raise not_found("Application", application_id)
        if application.applicant_id != actor.user_id:
            campaign = await self.campaigns.load_campaign(application.campaign_id)
            if not (actor.can(Capability.APPLICATION_READ_ANY) or CampaignService.can_manage(actor, campaign)):
                raise not_found("Application", application_id)
        return await self.repo.list_for_application(application.id)

    async def get_by_token(self, token: str) -> RecommendationRequest:
        request = await self.repo.get_by_token(token)
        if request is None:
            raise InvalidRecommendationToken("Recommendation link is invalid or has expired")
        return request

    async def mark_viewed(self, token: str) -> RecommendationRequest:
        """Record that the recommender opened the form (pending/sent -> viewed)."""
        request = await self.get_by_token(token)
        if request.status in ("pending", "sent"):
            request = await self.repo.update(request, {"status": "viewed", "viewed_at": utc_now()})
        return request

    async def submit(self, token: str, form_data: Dict[str, Any]) -> RecommendationRequest:
        """
        Submit the recommender's letter.

        Raises:
            InvalidRecommendationToken: Unknown token
            RecommendationAlreadySubmitted: The request was already submitted;
                the stored form data is left untouched
            MissingRequiredField: A required recommender field is empty
        """
        request = await self.get_by_token(token)
        already = RecommendationAlreadySubmitted(
            "This recommendation has already been submitted",
            details={"request_id": str(request.id)},
        )
        if request.status == "submitted":
            raise already

        config = await self._phase_config(request.campaign_phase_id)
        missing = [
            field.key
            for field in config.recommender_information_fields
            if field.required and form_data.get(field.key) in (None, "", [])
        ]
        if missing:
            raise MissingRequiredField(
                "Recommendation form is missing required fields",
                details={"fields": missing},
            )

        if not await self.repo.submit_if_open(request, form_data):
            raise already
        logger.info("Recommendation request %s submitted", request.id)
        return request

    async def mark_overdue(self, now: Optional[datetime] = None) -> List[RecommendationRequest]:
        """Flag open requests past their reminder threshold; returns the flagged requests."""
        flagged = []
        configs: Dict[UUID, RecommendationConfig] = {}
        for request in await self.repo.list_open():
            if request.campaign_phase_id not in configs:
                configs[request.campaign_phase_id] = await self._phase_config(request.campaign_phase_id)
            if is_overdue(request, configs[request.campaign_phase_id].reminder_schedule, now):
                flagged.append(await self.repo.update(request, {"status": "overdue"}))
        if flagged:
            logger.info("Marked %d recommendation request(s) overdue", len(flagged))
        return flagged

    async def delete_request(self, actor: Actor, request_id: UUID) -> None:
        request = await self.repo.get_by_id(request_id)
        if request is None:
            raise not_found("Recommendation request", request_id)
        application = await self.applications.get_by_id(request.application_id)
        campaign = await self.campaigns.load_campaign(application.campaign_id)
        owner = application.applicant_id if request.status != "submitted" else None
        if owner != actor.user_id:
            ensure_capability(
                actor,
                Capability.RECOMMENDATION_MANAGE_ANY,
                owner_id=campaign.creator_id,
                action="withdraw this recommendation request",
            )
        await self.repo.delete(request)
