"""
Campaign repository - database operations for programs and campaigns.
"""

from typing import Dict, List, Optional
from uuid import UUID
import uuid

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from workbench.models.campaign import Campaign, Program


class CampaignRepository:
    """Repository for Program and Campaign database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_program(self, program_id: UUID) -> Optional[Program]:
        result = await self.db.execute(select(Program).where(Program.id == program_id))
        return result.scalar_one_or_none()

    async def list_programs(self, limit: int = 50, offset: int = 0) -> List[Program]:
        result = await self.db.execute(
            select(Program).order_by(Program.created_at.desc()).limit(limit).offset(offset)
        )
        return list(result.scalars().all())

    async def create_program(self, creator_id: UUID, **fields) -> Program:
        program = Program(id=uuid.uuid4(), creator_id=creator_id, **fields)
        self.db.add(program)
        await self.db.flush()
        await self.db.refresh(program)
        return program

    async def get_by_id(self, campaign_id: UUID) -> Optional[Campaign]:
        """Get a campaign by ID."""
        result = await self.db.execute(select(Campaign).where(Campaign.id == campaign_id))
        return result.scalar_one_or_none()

    async def list_visible(
        self,
        user_id: Optional[UUID],
        include_private: bool = False,
        program_id: Optional[UUID] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Campaign]:
        """List public campaigns plus the user's own (or all, when include_private)."""
        query = select(Campaign)
        if not include_private:
            conditions = [Campaign.is_public.is_(True)]
            if user_id is not None:
                conditions.append(Campaign.creator_id == user_id)
            query = query.where(or_(*conditions))
        if program_id is not None:
            query = query.where(Campaign.program_id == program_id)
        if status is not None:
            query = query.where(Campaign.status == status)
        query = query.order_by(Campaign.created_at.desc()).limit(limit).offset(offset)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create(self, creator_id: UUID, **fields) -> Campaign:
        """Create a new campaign."""
        campaign = Campaign(id=uuid.uuid4(), creator_id=creator_id, **fields)
        self.db.add(campaign)
        await self.db.flush()
        await self.db.refresh(campaign)
        return campaign

    async def update(self, entity, update_data: Dict):
        """Apply field updates to a campaign or program."""
        for field, value in update_data.items():
            setattr(entity, field, value)
        await self.db.flush()
        await self.db.refresh(entity)
        return entity

    async def delete(self, entity) -> None:
        await self.db.delete(entity)
        await self.db.flush()
