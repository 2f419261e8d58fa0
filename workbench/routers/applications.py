"""
Application router - lifecycle, progression and notes.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from workbench.core.dependencies import get_current_actor, get_db
from workbench.core.permissions import Actor
from workbench.schemas.application import (
    AdvanceRequest,
    AdvanceResult,
    ApplicationCreate,
    ApplicationDataUpdate,
    ApplicationNoteCreate,
    ApplicationNoteRead,
    ApplicationRead,
    ProgressPreview,
    ScreeningStatusUpdate,
    StatusUpdate,
)
from workbench.services.application_service import ApplicationService
from workbench.services.progression_service import ProgressionService

router = APIRouter(prefix="/applications", tags=["applications"])


@router.get("", response_model=List[ApplicationRead])
async def list_applications(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    campaign_id: Optional[UUID] = None,
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """
    List applications visible to the caller.

    Filters: campaign_id, status.
    """
    service = ApplicationService(db)
    return await service.list_applications(actor, campaign_id=campaign_id, status=status, limit=limit, offset=offset)


@router.post("", response_model=ApplicationRead, status_code=status.HTTP_201_CREATED)
async def create_application(
    data: ApplicationCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = ApplicationService(db)
    return await service.create_application(actor, data)


@router.get("/{application_id}", response_model=ApplicationRead)
async def get_application(
    application_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = ApplicationService(db)
    return await service.get_application(actor, application_id)


@router.put("/{application_id}/data", response_model=ApplicationRead)
async def update_application_data(
    application_id: UUID,
    data: ApplicationDataUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = ApplicationService(db)
    return await service.update_data(actor, application_id, data.data)


@router.delete("/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_application(
    application_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = ApplicationService(db)
    await service.delete_application(actor, application_id)


@router.post("/{application_id}/submit", response_model=ApplicationRead)
async def submit_application(
    application_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Submit a draft and place it on the first phase of its pathway."""
    service = ApplicationService(db)
    return await service.submit(actor, application_id)


@router.put("/{application_id}/screening-status", response_model=ApplicationRead)
async def update_screening_status(
    application_id: UUID,
    data: ScreeningStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = ApplicationService(db)
    return await service.update_screening_status(actor, application_id, data.screening_status)


@router.put("/{application_id}/status", response_model=ApplicationRead)
async def set_application_status(
    application_id: UUID,
    data: StatusUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = ApplicationService(db)
    return await service.set_status(actor, application_id, data.status)


# ----------------------------------------------------------------------
# Progression
# ----------------------------------------------------------------------


@router.get("/{application_id}/progress", response_model=ProgressPreview)
async def preview_progress(
    application_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Whether the current phase is complete and where an advance would lead."""
    service = ProgressionService(db)
    report = await service.preview(actor, application_id)
    evaluation, transition = report.evaluation, report.transition
    return ProgressPreview(
        application_id=application_id,
        current_phase_id=report.phase_id,
        complete=evaluation.complete,
        outcome=evaluation.outcome,
        reason=evaluation.reason,
        to_phase_id=transition.to_phase_id if transition else None,
        pathway_complete=transition.pathway_complete if transition else False,
    )


@router.post("/{application_id}/advance", response_model=AdvanceResult)
async def advance_application(
    application_id: UUID,
    data: Optional[AdvanceRequest] = None,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Move the application out of its current phase.

    Returns 409 if the phase is incomplete, the pathway is already finished,
    a branch target is broken, or a concurrent transition won.
    """
    service = ProgressionService(db)
    result = await service.advance(actor, application_id, expected_phase_id=data.expected_phase_id if data else None)
    return AdvanceResult(
        application=ApplicationRead.model_validate(result.application),
        from_phase_id=result.transition.from_phase_id,
        to_phase_id=result.transition.to_phase_id,
        outcome=result.transition.outcome,
        pathway_complete=result.transition.pathway_complete,
        classified=result.transition.classified,
        status_path=result.status_path,
    )


# ----------------------------------------------------------------------
# Notes
# ----------------------------------------------------------------------


@router.get("/{application_id}/notes", response_model=List[ApplicationNoteRead])
async def list_notes(
    application_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = ApplicationService(db)
    return await service.list_notes(actor, application_id)


@router.post("/{application_id}/notes", response_model=ApplicationNoteRead, status_code=status.HTTP_201_CREATED)
async def add_note(
    application_id: UUID,
    data: ApplicationNoteCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = ApplicationService(db)
    return await service.add_note(actor, application_id, data.content)


@router.put("/{application_id}/notes/{note_id}", response_model=ApplicationNoteRead)
async def update_note(
    application_id: UUID,
    note_id: UUID,
    data: ApplicationNoteCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = ApplicationService(db)
    return await service.update_note(actor, application_id, note_id, data.content)


@router.delete("/{application_id}/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    application_id: UUID,
    note_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = ApplicationService(db)
    await service.delete_note(actor, application_id, note_id)
