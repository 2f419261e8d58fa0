"""
Campaign router - API endpoints for programs and campaigns.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from workbench.core.dependencies import get_current_actor, get_db
from workbench.core.permissions import Actor
from workbench.schemas.campaign import (
    CampaignCreate,
    CampaignRead,
    CampaignUpdate,
    ProgramCreate,
    ProgramRead,
    ProgramUpdate,
)
from workbench.services.campaign_service import CampaignService

router = APIRouter(prefix="/campaigns", tags=["campaigns"])
program_router = APIRouter(prefix="/programs", tags=["programs"])


@program_router.get("", response_model=List[ProgramRead])
async def list_programs(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    service = CampaignService(db)
    return await service.list_programs(limit=limit, offset=offset)


@program_router.post("", response_model=ProgramRead, status_code=status.HTTP_201_CREATED)
async def create_program(
    data: ProgramCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = CampaignService(db)
    return await service.create_program(actor, data)


@program_router.get("/{program_id}", response_model=ProgramRead)
async def get_program(
    program_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = CampaignService(db)
    return await service.get_program(program_id)


@program_router.patch("/{program_id}", response_model=ProgramRead)
async def update_program(
    program_id: UUID,
    data: ProgramUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = CampaignService(db)
    return await service.update_program(actor, program_id, data)


@program_router.delete("/{program_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_program(
    program_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = CampaignService(db)
    await service.delete_program(actor, program_id)


@router.get("", response_model=List[CampaignRead])
async def list_campaigns(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    program_id: Optional[UUID] = None,
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """
    List campaigns visible to the caller.

    Filters: program_id, status.
    """
    service = CampaignService(db)
    return await service.list_campaigns(actor, program_id=program_id, status=status, limit=limit, offset=offset)


@router.post("", response_model=CampaignRead, status_code=status.HTTP_201_CREATED)
async def create_campaign(
    data: CampaignCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = CampaignService(db)
    return await service.create_campaign(actor, data)


@router.get("/{campaign_id}", response_model=CampaignRead)
async def get_campaign(
    campaign_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = CampaignService(db)
    return await service.get_campaign(actor, campaign_id)


@router.patch("/{campaign_id}", response_model=CampaignRead)
async def update_campaign(
    campaign_id: UUID,
    data: CampaignUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = CampaignService(db)
    return await service.update_campaign(actor, campaign_id, data)


@router.delete("/{campaign_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_campaign(
    campaign_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = CampaignService(db)
    await service.delete_campaign(actor, campaign_id)
