"""
Evaluation router - reviewer assignments, reviews and decisions.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from workbench.core.dependencies import get_current_actor, get_db
from workbench.core.permissions import Actor
from workbench.schemas.evaluation import (
    AssignmentStatusUpdate,
    DecisionCreate,
    DecisionRead,
    DecisionUpdate,
    ReviewCreate,
    ReviewerAssignmentCreate,
    ReviewerAssignmentRead,
    ReviewRead,
    ReviewUpdate,
)
from workbench.services.evaluation_service import EvaluationService

router = APIRouter(tags=["evaluations"])


# ----------------------------------------------------------------------
# Assignments
# ----------------------------------------------------------------------


@router.get("/assignments", response_model=List[ReviewerAssignmentRead])
async def list_assignments(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    application_id: Optional[UUID] = None,
    reviewer_id: Optional[UUID] = None,
):
    service = EvaluationService(db)
    return await service.list_assignments(actor, application_id=application_id, reviewer_id=reviewer_id)


@router.post("/assignments", response_model=ReviewerAssignmentRead, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    data: ReviewerAssignmentCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Assign a reviewer to an application's Review phase. 409 if already assigned."""
    service = EvaluationService(db)
    return await service.create_assignment(actor, data)


@router.put("/assignments/{assignment_id}/status", response_model=ReviewerAssignmentRead)
async def update_assignment_status(
    assignment_id: UUID,
    data: AssignmentStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = EvaluationService(db)
    return await service.update_assignment_status(actor, assignment_id, data.status)


@router.delete("/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(
    assignment_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = EvaluationService(db)
    await service.delete_assignment(actor, assignment_id)


# ----------------------------------------------------------------------
# Reviews
# ----------------------------------------------------------------------


@router.get("/reviews", response_model=List[ReviewRead])
async def list_reviews(
    application_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    campaign_phase_id: Optional[UUID] = None,
):
    service = EvaluationService(db)
    return await service.list_reviews(actor, application_id, campaign_phase_id)


@router.post("/reviews", response_model=ReviewRead, status_code=status.HTTP_201_CREATED)
async def create_review(
    data: ReviewCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = EvaluationService(db)
    return await service.create_review(actor, data)


@router.patch("/reviews/{review_id}", response_model=ReviewRead)
async def update_review(
    review_id: UUID,
    data: ReviewUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = EvaluationService(db)
    return await service.update_review(actor, review_id, data)


@router.delete("/reviews/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    review_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = EvaluationService(db)
    await service.delete_review(actor, review_id)


# ----------------------------------------------------------------------
# Decisions
# ----------------------------------------------------------------------


@router.get("/decisions", response_model=List[DecisionRead])
async def list_decisions(
    application_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    campaign_phase_id: Optional[UUID] = None,
):
    service = EvaluationService(db)
    return await service.list_decisions(actor, application_id, campaign_phase_id)


@router.post("/decisions", response_model=DecisionRead, status_code=status.HTTP_201_CREATED)
async def record_decision(
    data: DecisionCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Record a decision; the outcome must be one the phase declares."""
    service = EvaluationService(db)
    return await service.record_decision(actor, data)


@router.patch("/decisions/{decision_id}", response_model=DecisionRead)
async def update_decision(
    decision_id: UUID,
    data: DecisionUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = EvaluationService(db)
    return await service.update_decision(actor, decision_id, data)


@router.delete("/decisions/{decision_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_decision(
    decision_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = EvaluationService(db)
    await service.delete_decision(actor, decision_id)
