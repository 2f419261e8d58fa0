"""
Service for programs and campaigns.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from workbench.core.permissions import Actor, Capability, ensure_capability
from workbench.errors import not_found
from workbench.models.campaign import Campaign, Program
from workbench.repositories.campaign_repository import CampaignRepository
from workbench.schemas.campaign import (
    CampaignCreate,
    CampaignUpdate,
    ProgramCreate,
    ProgramUpdate,
)
from workbench.services.pathway_template_service import PathwayTemplateService

logger = logging.getLogger(__name__)


class CampaignService:
    """Service for programs and the campaigns applications belong to."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = CampaignRepository(db)
        self.templates = PathwayTemplateService(db)

    # ------------------------------------------------------------------
    # Programs
    # ------------------------------------------------------------------

    async def get_program(self, program_id: UUID) -> Program:
        program = await self.repo.get_program(program_id)
        if program is None:
            raise not_found("Program", program_id)
        return program

    async def list_programs(self, limit: int = 50, offset: int = 0) -> List[Program]:
        return await self.repo.list_programs(limit=limit, offset=offset)

    async def create_program(self, actor: Actor, payload: ProgramCreate) -> Program:
        ensure_capability(actor, Capability.CAMPAIGN_CREATE, action="create programs")
        program = await self.repo.create_program(actor.user_id, **payload.model_dump())
        logger.info("Created program %s", program.id)
        return program

    async def update_program(self, actor: Actor, program_id: UUID, payload: ProgramUpdate) -> Program:
        program = await self.get_program(program_id)
        ensure_capability(actor, Capability.CAMPAIGN_MANAGE_ANY, owner_id=program.creator_id, action="edit this program")
        return await self.repo.update(program, payload.model_dump(exclude_unset=True))

    async def delete_program(self, actor: Actor, program_id: UUID) -> None:
        program = await self.get_program(program_id)
        ensure_capability(actor, Capability.CAMPAIGN_MANAGE_ANY, owner_id=program.creator_id, action="delete this program")
        await self.repo.delete(program)

    # ------------------------------------------------------------------
    # Campaigns
    # ------------------------------------------------------------------

    @staticmethod
    def can_read(actor: Actor, campaign: Campaign) -> bool:
        return (
            campaign.is_public
            or campaign.creator_id == actor.user_id
            or actor.can(Capability.CAMPAIGN_READ_PRIVATE)
        )

    @staticmethod
    def can_manage(actor: Actor, campaign: Campaign) -> bool:
        """Admins (or other campaign managers) and the campaign's creator."""
        return campaign.creator_id == actor.user_id or actor.can(Capability.CAMPAIGN_MANAGE_ANY)

    async def get_campaign(self, actor: Actor, campaign_id: UUID) -> Campaign:
        """Get a campaign the actor may see; hidden campaigns are reported as missing."""
        campaign = await self.repo.get_by_id(campaign_id)
        if campaign is None or not self.can_read(actor, campaign):
            raise not_found("Campaign", campaign_id)
        return campaign

    async def load_campaign(self, campaign_id: UUID) -> Campaign:
        """Get a campaign without visibility checks (for internal lookups)."""
        campaign = await self.repo.get_by_id(campaign_id)
        if campaign is None:
            raise not_found("Campaign", campaign_id)
        return campaign

    async def list_campaigns(
        self,
        actor: Actor,
        program_id: Optional[UUID] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Campaign]:
        return await self.repo.list_visible(
            actor.user_id,
            include_private=actor.can(Capability.CAMPAIGN_READ_PRIVATE),
            program_id=program_id,
            status=status,
            limit=limit,
            offset=offset,
        )

    async def create_campaign(self, actor: Actor, payload: CampaignCreate) -> Campaign:
        ensure_capability(actor, Capability.CAMPAIGN_CREATE, action="create campaigns")
        if payload.program_id is not None:
            await self.get_program(payload.program_id)
        if payload.pathway_template_id is not None:
            # Binding a template requires being able to read it
            await self.templates.get_template(actor, payload.pathway_template_id)
        campaign = await self.repo.create(actor.user_id, **payload.model_dump())
        logger.info("Created campaign %s (template %s)", campaign.id, campaign.pathway_template_id)
        return campaign

    async def update_campaign(self, actor: Actor, campaign_id: UUID, payload: CampaignUpdate) -> Campaign:
        campaign = await self.get_campaign(actor, campaign_id)
        ensure_capability(
            actor,
            Capability.CAMPAIGN_MANAGE_ANY,
            owner_id=campaign.creator_id,
            action="edit this campaign",
        )
        update_data = payload.model_dump(exclude_unset=True)
        if update_data.get("program_id") is not None:
            await self.get_program(update_data["program_id"])
        if update_data.get("pathway_template_id") is not None:
            await self.templates.get_template(actor, update_data["pathway_template_id"])
        campaign = await self.repo.update(campaign, update_data)
        logger.info("Updated campaign %s", campaign.id)
        return campaign

    async def delete_campaign(self, actor: Actor, campaign_id: UUID) -> None:
        campaign = await self.get_campaign(actor, campaign_id)
        ensure_capability(
            actor,
            Capability.CAMPAIGN_MANAGE_ANY,
            owner_id=campaign.creator_id,
            action="delete this campaign",
        )
        await self.repo.delete(campaign)
        logger.info("Deleted campaign %s", campaign_id)
