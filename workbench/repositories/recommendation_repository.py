"""
RecommendationRequest repository - database operations for recommendation requests.
"""

from typing import Dict, List, Optional
from uuid import UUID
import uuid

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from workbench.models.recommendation import RecommendationRequest
from workbench.utils.time import utc_now


class RecommendationRepository:
    """Repository for RecommendationRequest database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, request_id: UUID) -> Optional[RecommendationRequest]:
        result = await self.db.execute(select(RecommendationRequest).where(RecommendationRequest.id == request_id))
        return result.scalar_one_or_none()

    async def get_by_token(self, token: str) -> Optional[RecommendationRequest]:
        result = await self.db.execute(
            select(RecommendationRequest).where(RecommendationRequest.unique_token == token)
        )
        return result.scalar_one_or_none()

    async def list_for_application(
        self,
        application_id: UUID,
        campaign_phase_id: Optional[UUID] = None,
    ) -> List[RecommendationRequest]:
        query = select(RecommendationRequest).where(RecommendationRequest.application_id == application_id)
        if campaign_phase_id is not None:
            query = query.where(RecommendationRequest.campaign_phase_id == campaign_phase_id)
        result = await self.db.execute(query.order_by(RecommendationRequest.created_at.asc()))
        return list(result.scalars().all())

    async def count_submitted(self, application_id: UUID, campaign_phase_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(RecommendationRequest.id)).where(
                RecommendationRequest.application_id == application_id,
                RecommendationRequest.campaign_phase_id == campaign_phase_id,
                RecommendationRequest.status == "submitted",
            )
        )
        return result.scalar_one()

    async def list_open(self) -> List[RecommendationRequest]:
        """Requests still waiting on the recommender."""
        result = await self.db.execute(
            select(RecommendationRequest).where(RecommendationRequest.status.in_(("pending", "sent", "viewed")))
        )
        return list(result.scalars().all())

    async def create(self, **fields) -> RecommendationRequest:
        request = RecommendationRequest(id=uuid.uuid4(), **fields)
        self.db.add(request)
        await self.db.flush()
        await self.db.refresh(request)
        return request

    async def submit_if_open(self, request: RecommendationRequest, form_data: Dict) -> bool:
        """
        Store the recommender's form data unless the request is already submitted.

        Returns:
            True if this call performed the submission
        """
        now = utc_now()
        result = await self.db.execute(
            update(RecommendationRequest)
            .where(
                RecommendationRequest.id == request.id,
                RecommendationRequest.status != "submitted",
            )
            .values(status="submitted", form_data=form_data, submitted_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await self.db.refresh(request)
        return True

    async def update(self, request: RecommendationRequest, update_data: Dict) -> RecommendationRequest:
        for field, value in update_data.items():
            setattr(request, field, value)
        await self.db.flush()
        await self.db.refresh(request)
        return request

    async def delete(self, request: RecommendationRequest) -> None:
        await self.db.delete(request)
        await self.db.flush()
