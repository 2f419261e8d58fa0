"""
CommunicationTemplate repository - database operations for message templates.
"""

from typing import Dict, List, Optional
from uuid import UUID
import uuid

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from workbench.models.communication import CommunicationTemplate


class CommunicationRepository:
    """Repository for CommunicationTemplate database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, template_id: UUID) -> Optional[CommunicationTemplate]:
        result = await self.db.execute(select(CommunicationTemplate).where(CommunicationTemplate.id == template_id))
        return result.scalar_one_or_none()

    async def list_visible(self, user_id: UUID, include_private: bool = False) -> List[CommunicationTemplate]:
        query = select(CommunicationTemplate)
        if not include_private:
            query = query.where(
                or_(CommunicationTemplate.is_public.is_(True), CommunicationTemplate.creator_id == user_id)
            )
        result = await self.db.execute(query.order_by(CommunicationTemplate.name.asc()))
        return list(result.scalars().all())

    async def create(self, creator_id: UUID, **fields) -> CommunicationTemplate:
        template = CommunicationTemplate(id=uuid.uuid4(), creator_id=creator_id, **fields)
        self.db.add(template)
        await self.db.flush()
        await self.db.refresh(template)
        return template

    async def update(self, template: CommunicationTemplate, update_data: Dict) -> CommunicationTemplate:
        for field, value in update_data.items():
            setattr(template, field, value)
        await self.db.flush()
        await self.db.refresh(template)
        return template

    async def delete(self, template: CommunicationTemplate) -> None:
        await self.db.delete(template)
        await self.db.flush()
