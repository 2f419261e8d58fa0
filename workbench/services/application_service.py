"""
Service for applications: creation, submission, screening, lifecycle
status and collaborative notes.

Phase-to-phase movement lives in progression_service; this module owns the
status table both of them enforce.
"""

import logging
from typing import Dict, FrozenSet, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from workbench.core.permissions import Actor, Capability, ensure_capability
from workbench.errors import (
    ConcurrentTransition,
    InputValidationError,
    InvalidStatusTransition,
    MissingRequiredField,
    UnauthorizedError,
    not_found,
)
from workbench.models.application import Application, ApplicationNote
from workbench.models.campaign import Campaign
from workbench.repositories.application_repository import ApplicationRepository
from workbench.repositories.evaluation_repository import EvaluationRepository
from workbench.repositories.pathway_template_repository import PathwayTemplateRepository
from workbench.schemas.application import ApplicationCreate
from workbench.schemas.phase_config import FormConfig, PhaseType, check_form_data, validate_phase_config
from workbench.services.campaign_service import CampaignService

logger = logging.getLogger(__name__)


STATUS_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "draft": frozenset({"submitted"}),
    "submitted": frozenset({"in_review"}),
    "in_review": frozenset({"accepted", "rejected", "on_hold"}),
    "on_hold": frozenset({"in_review"}),
    "accepted": frozenset(),
    "rejected": frozenset(),
}

# Transitions a coordinator may set directly; the rest are driven by
# submission and phase progression.
MANUAL_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "in_review": frozenset({"accepted", "rejected", "on_hold"}),
    "on_hold": frozenset({"in_review"}),
}

CLOSED_CAMPAIGN_STATUSES = frozenset({"archived", "completed"})


def check_status_transition(current: str, new: str, table: Dict[str, FrozenSet[str]] = STATUS_TRANSITIONS) -> None:
    """Raise InvalidStatusTransition unless current -> new is in the table."""
    if new not in table.get(current, frozenset()):
        raise InvalidStatusTransition(
            f"Cannot move an application from '{current}' to '{new}'",
            details={"from": current, "to": new, "allowed": sorted(table.get(current, frozenset()))},
        )


class ApplicationService:
    """Service for applications and their notes."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = ApplicationRepository(db)
        self.campaigns = CampaignService(db)
        self.templates = PathwayTemplateRepository(db)
        self.evaluations = EvaluationRepository(db)

    # ------------------------------------------------------------------
    # Access helpers
    # ------------------------------------------------------------------

    async def can_read(self, actor: Actor, application: Application, campaign: Campaign) -> bool:
        if application.applicant_id == actor.user_id:
            return True
        if actor.can(Capability.APPLICATION_READ_ANY) or CampaignService.can_manage(actor, campaign):
            return True
        # Reviewers see applications they are assigned to
        assignments = await self.evaluations.list_assignments(application_id=application.id, reviewer_id=actor.user_id)
        return bool(assignments)

    async def load(self, application_id: UUID) -> Application:
        """Get an application without access checks."""
        application = await self.repo.get_by_id(application_id)
        if application is None:
            raise not_found("Application", application_id)
        return application

    async def get_application(self, actor: Actor, application_id: UUID) -> Application:
        """Get an application the actor may read; others are reported as missing."""
        application = await self.load(application_id)
        campaign = await self.campaigns.load_campaign(application.campaign_id)
        if not await self.can_read(actor, application, campaign):
            raise not_found("Application", application_id)
        return application

    async def list_applications(
        self,
        actor: Actor,
        campaign_id: Optional[UUID] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Application]:
        """
        List applications visible to the actor.

        Staff with read access and campaign managers see a campaign's
        applications; everyone else sees only their own.
        """
        if actor.can(Capability.APPLICATION_READ_ANY):
            return await self.repo.list(campaign_id=campaign_id, status=status, limit=limit, offset=offset)
        if campaign_id is not None:
            campaign = await self.campaigns.get_campaign(actor, campaign_id)
            if CampaignService.can_manage(actor, campaign):
                return await self.repo.list(campaign_id=campaign_id, status=status, limit=limit, offset=offset)
        return await self.repo.list(
            campaign_id=campaign_id,
            applicant_id=actor.user_id,
            status=status,
            limit=limit,
            offset=offset,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_application(self, actor: Actor, payload: ApplicationCreate) -> Application:
        """Start a draft application in a campaign."""
        ensure_capability(actor, Capability.APPLICATION_CREATE, action="apply to campaigns")
        campaign = await self.campaigns.get_campaign(actor, payload.campaign_id)
        if campaign.status in CLOSED_CAMPAIGN_STATUSES:
            raise InputValidationError(
                "Campaign is not accepting applications",
                details={"campaign_id": str(campaign.id), "status": campaign.status},
            )
        application = await self.repo.create(campaign.id, actor.user_id, payload.data)
        logger.info("Created application %s in campaign %s", application.id, campaign.id)
        return application

    async def update_data(self, actor: Actor, application_id: UUID, data: Dict) -> Application:
        """Replace the data payload of an application that is still open."""
        application = await self.get_application(actor, application_id)
        if application.applicant_id != actor.user_id and not actor.is_admin:
            raise UnauthorizedError("Only the applicant can edit this application.")
        if application.status in ("accepted", "rejected"):
            raise InvalidStatusTransition(
                "Closed applications cannot be edited",
                details={"status": application.status},
            )
        return await self.repo.update(application, {"data": data})

    async def delete_application(self, actor: Actor, application_id: UUID) -> None:
        application = await self.get_application(actor, application_id)
        if not actor.is_admin:
            if application.applicant_id != actor.user_id or application.status != "draft":
                raise UnauthorizedError("Only draft applications can be withdrawn by their applicant.")
        await self.repo.delete(application)
        logger.info("Deleted application %s", application_id)

    async def submit(self, actor: Actor, application_id: UUID) -> Application:
        """
        Submit a draft and place it on the first phase of the campaign's template.

        When the first phase is a Form, its required fields must be present
        in the application data.

        Raises:
            InvalidStatusTransition: The application is not a draft
            InputValidationError: The campaign has no pathway phases
            MissingRequiredField: Required form fields are empty
        """
        application = await self.get_application(actor, application_id)
        if application.applicant_id != actor.user_id and not actor.is_admin:
            raise UnauthorizedError("Only the applicant can submit this application.")
        check_status_transition(application.status, "submitted")

        campaign = await self.campaigns.load_campaign(application.campaign_id)
        phases = await self.templates.list_phases(campaign.pathway_template_id) if campaign.pathway_template_id else []
        if not phases:
            raise InputValidationError(
                "Campaign has no pathway phases to enter",
                details={"campaign_id": str(campaign.id)},
            )
        first = phases[0]
        if first.type == PhaseType.FORM.value:
            form: FormConfig = validate_phase_config(first.type, first.config)
            problems = check_form_data(form.fields, application.data or {})
            if problems:
                raise MissingRequiredField(
                    "Application data does not satisfy the form",
                    details={"phase_id": str(first.id), "fields": problems},
                )

        moved = await self.repo.compare_and_set_phase(application, None, first.id, "submitted")
        if not moved:
            raise ConcurrentTransition(
                "Application changed while being submitted",
                details={"application_id": str(application.id)},
            )
        logger.info("Submitted application %s onto phase %s", application.id, first.id)
        return application

    async def update_screening_status(self, actor: Actor, application_id: UUID, screening_status: str) -> Application:
        application = await self.load(application_id)
        campaign = await self.campaigns.load_campaign(application.campaign_id)
        ensure_capability(
            actor,
            Capability.APPLICATION_SCREEN,
            owner_id=campaign.creator_id,
            action="change screening status",
        )
        application = await self.repo.update(application, {"screening_status": screening_status})
        logger.info("Application %s screening status -> %s", application.id, screening_status)
        return application

    async def set_status(self, actor: Actor, application_id: UUID, new_status: str) -> Application:
        """Coordinator-driven status change (accept, reject, hold, resume)."""
        application = await self.load(application_id)
        campaign = await self.campaigns.load_campaign(application.campaign_id)
        ensure_capability(
            actor,
            Capability.APPLICATION_ADVANCE,
            owner_id=campaign.creator_id,
            action="change application status",
        )
        check_status_transition(application.status, new_status, MANUAL_TRANSITIONS)
        application = await self.repo.update(
            application,
            {"status": new_status, "version": application.version + 1},
        )
        logger.info("Application %s status -> %s", application.id, new_status)
        return application

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    async def _ensure_can_note(self, actor: Actor, application: Application) -> None:
        campaign = await self.campaigns.load_campaign(application.campaign_id)
        ensure_capability(
            actor,
            Capability.APPLICATION_NOTE,
            owner_id=campaign.creator_id,
            action="access notes on this application",
        )

    async def list_notes(self, actor: Actor, application_id: UUID) -> List[ApplicationNote]:
        application = await self.load(application_id)
        await self._ensure_can_note(actor, application)
        return await self.repo.list_notes(application.id)

    async def add_note(self, actor: Actor, application_id: UUID, content: str) -> ApplicationNote:
        application = await self.load(application_id)
        await self._ensure_can_note(actor, application)
        return await self.repo.add_note(application.id, actor.user_id, content)

    async def _get_note(self, application_id: UUID, note_id: UUID) -> ApplicationNote:
        note = await self.repo.get_note(note_id)
        if note is None or note.application_id != application_id:
            raise not_found("Note", note_id)
        return note

    async def update_note(self, actor: Actor, application_id: UUID, note_id: UUID, content: str) -> ApplicationNote:
        note = await self._get_note(application_id, note_id)
        if not actor.is_admin and note.author_id != actor.user_id:
            raise UnauthorizedError("Only the author can edit this note.")
        return await self.repo.update_note(note, content)

    async def delete_note(self, actor: Actor, application_id: UUID, note_id: UUID) -> None:
        note = await self._get_note(application_id, note_id)
        if not actor.is_admin and note.author_id != actor.user_id:
            raise UnauthorizedError("Only the author can delete this note.")
        await self.repo.delete_note(note)
