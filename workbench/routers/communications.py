"""
Communication template router.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from workbench.core.dependencies import get_current_actor, get_db
from workbench.core.permissions import Actor
from workbench.schemas.communication import (
    CommunicationTemplateCreate,
    CommunicationTemplateRead,
    CommunicationTemplateUpdate,
)
from workbench.services.communication_service import CommunicationService

router = APIRouter(prefix="/communication-templates", tags=["communications"])


@router.get("", response_model=List[CommunicationTemplateRead])
async def list_templates(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = CommunicationService(db)
    return await service.list_templates(actor)


@router.post("", response_model=CommunicationTemplateRead, status_code=status.HTTP_201_CREATED)
async def create_template(
    data: CommunicationTemplateCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = CommunicationService(db)
    return await service.create_template(actor, data)


@router.get("/{template_id}", response_model=CommunicationTemplateRead)
async def get_template(
    template_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = CommunicationService(db)
    return await service.get_template(actor, template_id)


@router.patch("/{template_id}", response_model=CommunicationTemplateRead)
async def update_template(
    template_id: UUID,
    data: CommunicationTemplateUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = CommunicationService(db)
    return await service.update_template(actor, template_id, data)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = CommunicationService(db)
    await service.delete_template(actor, template_id)
