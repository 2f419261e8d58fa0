"""
Evaluation repository - database operations for reviewer assignments,
reviews and decisions.
"""

from typing import Dict, List, Optional
from uuid import UUID
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from workbench.models.evaluation import Decision, Review, ReviewerAssignment


class EvaluationRepository:
    """Repository for assignment, review and decision database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    async def get_assignment(self, assignment_id: UUID) -> Optional[ReviewerAssignment]:
        result = await self.db.execute(select(ReviewerAssignment).where(ReviewerAssignment.id == assignment_id))
        return result.scalar_one_or_none()

    async def find_assignment(
        self,
        reviewer_id: UUID,
        application_id: UUID,
        campaign_phase_id: UUID,
    ) -> Optional[ReviewerAssignment]:
        """Get the assignment for a (reviewer, application, phase) tuple, if any."""
        result = await self.db.execute(
            select(ReviewerAssignment).where(
                ReviewerAssignment.reviewer_id == reviewer_id,
                ReviewerAssignment.application_id == application_id,
                ReviewerAssignment.campaign_phase_id == campaign_phase_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_assignments(
        self,
        application_id: Optional[UUID] = None,
        reviewer_id: Optional[UUID] = None,
        campaign_phase_id: Optional[UUID] = None,
    ) -> List[ReviewerAssignment]:
        query = select(ReviewerAssignment)
        if application_id is not None:
            query = query.where(ReviewerAssignment.application_id == application_id)
        if reviewer_id is not None:
            query = query.where(ReviewerAssignment.reviewer_id == reviewer_id)
        if campaign_phase_id is not None:
            query = query.where(ReviewerAssignment.campaign_phase_id == campaign_phase_id)
        result = await self.db.execute(query.order_by(ReviewerAssignment.created_at.asc()))
        return list(result.scalars().all())

    async def create_assignment(self, **fields) -> ReviewerAssignment:
        assignment = ReviewerAssignment(id=uuid.uuid4(), **fields)
        self.db.add(assignment)
        await self.db.flush()
        await self.db.refresh(assignment)
        return assignment

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    async def get_review(self, review_id: UUID) -> Optional[Review]:
        result = await self.db.execute(select(Review).where(Review.id == review_id))
        return result.scalar_one_or_none()

    async def list_reviews(
        self,
        application_id: UUID,
        campaign_phase_id: Optional[UUID] = None,
    ) -> List[Review]:
        query = select(Review).where(Review.application_id == application_id)
        if campaign_phase_id is not None:
            query = query.where(Review.campaign_phase_id == campaign_phase_id)
        result = await self.db.execute(query.order_by(Review.created_at.asc()))
        return list(result.scalars().all())

    async def create_review(self, **fields) -> Review:
        review = Review(id=uuid.uuid4(), **fields)
        self.db.add(review)
        await self.db.flush()
        await self.db.refresh(review)
        return review

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    async def get_decision(self, decision_id: UUID) -> Optional[Decision]:
        result = await self.db.execute(select(Decision).where(Decision.id == decision_id))
        return result.scalar_one_or_none()

    async def list_decisions(self, application_id: UUID, campaign_phase_id: Optional[UUID] = None) -> List[Decision]:
        """Decisions for an application, newest first."""
        query = select(Decision).where(Decision.application_id == application_id)
        if campaign_phase_id is not None:
            query = query.where(Decision.campaign_phase_id == campaign_phase_id)
        result = await self.db.execute(query.order_by(Decision.created_at.desc()))
        return list(result.scalars().all())

    async def latest_final_decision(self, application_id: UUID, campaign_phase_id: UUID) -> Optional[Decision]:
        """The most recently created is_final decision for a phase instance."""
        result = await self.db.execute(
            select(Decision)
            .where(
                Decision.application_id == application_id,
                Decision.campaign_phase_id == campaign_phase_id,
                Decision.is_final.is_(True),
            )
            .order_by(Decision.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_decision(self, **fields) -> Decision:
        decision = Decision(id=uuid.uuid4(), **fields)
        self.db.add(decision)
        await self.db.flush()
        await self.db.refresh(decision)
        return decision

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    async def update(self, entity, update_data: Dict):
        """Apply field updates to an assignment, review or decision."""
        for field, value in update_data.items():
            setattr(entity, field, value)
        await self.db.flush()
        await self.db.refresh(entity)
        return entity

    async def delete(self, entity) -> None:
        await self.db.delete(entity)
        await self.db.flush()
