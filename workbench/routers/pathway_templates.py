"""
Pathway template router - templates, phases, ordering, versions and activity.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from workbench.core.dependencies import get_current_actor, get_db
from workbench.core.permissions import Actor
from workbench.schemas.pathway_template import (
    BranchingUpdate,
    CloneRequest,
    PathwayTemplateCreate,
    PathwayTemplateRead,
    PathwayTemplateUpdate,
    PathwayTemplateVersionRead,
    PhaseCreate,
    PhaseRead,
    PhaseUpdate,
    ReorderRequest,
    TemplateActivityRead,
)
from workbench.services.pathway_template_service import PathwayTemplateService

router = APIRouter(prefix="/pathway-templates", tags=["pathway-templates"])
phase_router = APIRouter(prefix="/phases", tags=["phases"])


@router.get("", response_model=List[PathwayTemplateRead])
async def list_templates(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """List templates visible to the caller (public, own, or all for admins)."""
    service = PathwayTemplateService(db)
    return await service.list_templates(actor, limit=limit, offset=offset)


@router.post("", response_model=PathwayTemplateRead, status_code=status.HTTP_201_CREATED)
async def create_template(
    data: PathwayTemplateCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = PathwayTemplateService(db)
    return await service.create_template(actor, data)


@router.get("/{template_id}", response_model=PathwayTemplateRead)
async def get_template(
    template_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = PathwayTemplateService(db)
    return await service.get_template(actor, template_id)


@router.patch("/{template_id}", response_model=PathwayTemplateRead)
async def update_template(
    template_id: UUID,
    data: PathwayTemplateUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = PathwayTemplateService(db)
    return await service.update_template(actor, template_id, data)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = PathwayTemplateService(db)
    await service.delete_template(actor, template_id)


@router.post("/{template_id}/clone", response_model=PathwayTemplateRead, status_code=status.HTTP_201_CREATED)
async def clone_template(
    template_id: UUID,
    data: CloneRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Deep-copy a template and its phases; branch targets are remapped to the copies."""
    service = PathwayTemplateService(db)
    return await service.clone_template(actor, template_id, data.new_name)


# ----------------------------------------------------------------------
# Phases
# ----------------------------------------------------------------------


@router.get("/{template_id}/phases", response_model=List[PhaseRead])
async def list_phases(
    template_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = PathwayTemplateService(db)
    return await service.list_phases(actor, template_id)


@router.post("/{template_id}/phases", response_model=PhaseRead, status_code=status.HTTP_201_CREATED)
async def create_phase(
    template_id: UUID,
    data: PhaseCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Append a phase; its config is validated against the phase type."""
    service = PathwayTemplateService(db)
    return await service.create_phase(actor, template_id, data)


@router.put("/{template_id}/phases/order", response_model=List[PhaseRead])
async def reorder_phases(
    template_id: UUID,
    data: ReorderRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Apply a full permutation of the template's phase order."""
    service = PathwayTemplateService(db)
    return await service.reorder_phases(actor, template_id, data.phases)


@phase_router.get("/{phase_id}", response_model=PhaseRead)
async def get_phase(
    phase_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = PathwayTemplateService(db)
    return await service.get_phase(actor, phase_id)


@phase_router.patch("/{phase_id}", response_model=PhaseRead)
async def update_phase(
    phase_id: UUID,
    data: PhaseUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = PathwayTemplateService(db)
    return await service.update_phase(actor, phase_id, data)


@phase_router.put("/{phase_id}/branching", response_model=PhaseRead)
async def update_phase_branching(
    phase_id: UUID,
    data: BranchingUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = PathwayTemplateService(db)
    return await service.update_phase_branching(actor, phase_id, data)


@phase_router.delete("/{phase_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_phase(
    phase_id: UUID,
    detach_references: bool = Query(False),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Delete a phase.

    Fails while other phases branch to it unless detach_references is set,
    in which case those branch targets are cleared.
    """
    service = PathwayTemplateService(db)
    await service.delete_phase(actor, phase_id, detach_references=detach_references)


# ----------------------------------------------------------------------
# Versions and activity
# ----------------------------------------------------------------------


@router.post(
    "/{template_id}/versions",
    response_model=PathwayTemplateVersionRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_version(
    template_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = PathwayTemplateService(db)
    return await service.create_version(actor, template_id)


@router.get("/{template_id}/versions", response_model=List[PathwayTemplateVersionRead])
async def list_versions(
    template_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = PathwayTemplateService(db)
    return await service.list_versions(actor, template_id)


@router.get("/{template_id}/versions/{version_id}", response_model=PathwayTemplateVersionRead)
async def get_version(
    template_id: UUID,
    version_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = PathwayTemplateService(db)
    return await service.get_version(actor, template_id, version_id)


@router.post("/{template_id}/versions/{version_id}/rollback", response_model=PathwayTemplateRead)
async def rollback_template(
    template_id: UUID,
    version_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = PathwayTemplateService(db)
    return await service.rollback(actor, template_id, version_id)


@router.get("/{template_id}/activity", response_model=List[TemplateActivityRead])
async def list_activity(
    template_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    limit: int = Query(100, ge=1, le=500),
):
    service = PathwayTemplateService(db)
    return await service.list_activity(actor, template_id, limit=limit)
