"""
Recommendation router.

Staff and applicants manage requests under /recommendation-requests; the
recommender uses the token-only routes under /recommendation/{token}, which
take no identity headers.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from workbench.core.dependencies import get_current_actor, get_db
from workbench.core.permissions import Actor
from workbench.schemas.recommendation import (
    RecommendationPublicRead,
    RecommendationRequestCreate,
    RecommendationRequestRead,
    RecommendationSubmit,
)
from workbench.services.recommendation_service import RecommendationService

router = APIRouter(prefix="/recommendation-requests", tags=["recommendations"])
public_router = APIRouter(prefix="/recommendation", tags=["recommendations"])


@router.get("", response_model=List[RecommendationRequestRead])
async def list_requests(
    application_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = RecommendationService(db)
    return await service.list_requests(actor, application_id)


@router.post("", response_model=RecommendationRequestRead, status_code=status.HTTP_201_CREATED)
async def create_request(
    data: RecommendationRequestCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Open a request and notify the recommender."""
    service = RecommendationService(db)
    return await service.create_request(actor, data)


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(
    request_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    service = RecommendationService(db)
    await service.delete_request(actor, request_id)


@public_router.get("/{token}", response_model=RecommendationPublicRead)
async def view_request(token: str, db: AsyncSession = Depends(get_db)):
    """Open the recommendation form; marks the request as viewed."""
    service = RecommendationService(db)
    return await service.mark_viewed(token)


@public_router.post("/{token}", response_model=RecommendationPublicRead)
async def submit_recommendation(
    token: str,
    data: RecommendationSubmit,
    db: AsyncSession = Depends(get_db),
):
    """Submit the letter. A second submission returns 409 and changes nothing."""
    service = RecommendationService(db)
    return await service.submit(token, data.form_data)
