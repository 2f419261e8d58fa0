"""
PathwayTemplate repository - database operations for templates, phases,
versions and the template activity log.
"""

from typing import Dict, List, Optional
from uuid import UUID
import uuid

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from workbench.models.pathway_template import (
    PathwayTemplate,
    PathwayTemplateVersion,
    Phase,
    TemplateActivityLog,
)


class PathwayTemplateRepository:
    """Repository for PathwayTemplate and Phase database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    async def get_by_id(self, template_id: UUID) -> Optional[PathwayTemplate]:
        """Get a template by ID."""
        result = await self.db.execute(
            select(PathwayTemplate).where(PathwayTemplate.id == template_id)
        )
        return result.scalar_one_or_none()

    async def list_visible(
        self,
        user_id: Optional[UUID],
        include_private: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> List[PathwayTemplate]:
        """List public templates plus the user's own (or all, when include_private)."""
        query = select(PathwayTemplate)
        if not include_private:
            conditions = [PathwayTemplate.is_private.is_(False)]
            if user_id is not None:
                conditions.append(PathwayTemplate.creator_id == user_id)
            query = query.where(or_(*conditions))
        query = query.order_by(PathwayTemplate.created_at.desc()).limit(limit).offset(offset)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create(self, creator_id: UUID, **fields) -> PathwayTemplate:
        """Create a new template."""
        template = PathwayTemplate(id=uuid.uuid4(), creator_id=creator_id, **fields)
        self.db.add(template)
        await self.db.flush()
        await self.db.refresh(template)
        return template

    async def update(self, template: PathwayTemplate, update_data: Dict) -> PathwayTemplate:
        """Apply field updates to a template."""
        for field, value in update_data.items():
            setattr(template, field, value)
        await self.db.flush()
        await self.db.refresh(template)
        return template

    async def delete(self, template: PathwayTemplate) -> None:
        """Delete a template together with its phases, versions and log."""
        template_id = template.id
        await self.db.execute(delete(Phase).where(Phase.pathway_template_id == template_id))
        await self.db.execute(
            delete(PathwayTemplateVersion).where(PathwayTemplateVersion.pathway_template_id == template_id)
        )
        await self.db.execute(delete(TemplateActivityLog).where(TemplateActivityLog.template_id == template_id))
        await self.db.delete(template)
        await self.db.flush()

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def get_phase(self, phase_id: UUID) -> Optional[Phase]:
        """Get a phase by ID."""
        result = await self.db.execute(select(Phase).where(Phase.id == phase_id))
        return result.scalar_one_or_none()

    async def list_phases(self, template_id: UUID) -> List[Phase]:
        """Get all phases of a template ordered by order_index."""
        result = await self.db.execute(
            select(Phase)
            .where(Phase.pathway_template_id == template_id)
            .order_by(Phase.order_index.asc())
        )
        return list(result.scalars().all())

    async def next_order_index(self, template_id: UUID) -> int:
        """Index one past the highest existing index (0 for an empty template)."""
        result = await self.db.execute(
            select(func.max(Phase.order_index)).where(Phase.pathway_template_id == template_id)
        )
        highest = result.scalar_one_or_none()
        return 0 if highest is None else highest + 1

    async def add_phase(self, template_id: UUID, **fields) -> Phase:
        """Insert a phase."""
        fields.setdefault("id", uuid.uuid4())
        phase = Phase(pathway_template_id=template_id, **fields)
        self.db.add(phase)
        await self.db.flush()
        await self.db.refresh(phase)
        return phase

    async def update_phase(self, phase: Phase, update_data: Dict) -> Phase:
        """Apply field updates to a phase."""
        for field, value in update_data.items():
            setattr(phase, field, value)
        await self.db.flush()
        await self.db.refresh(phase)
        return phase

    async def delete_phase(self, phase: Phase) -> None:
        await self.db.delete(phase)
        await self.db.flush()

    async def apply_order(self, template_id: UUID, new_indices: Dict[UUID, int]) -> None:
        """
        Rewrite order_index for every phase of a template.

        Indices are first parked on negative values so the unique
        (template, order_index) constraint holds between the two passes.
        """
        for phase_id, index in new_indices.items():
            await self.db.execute(
                update(Phase)
                .where(Phase.id == phase_id, Phase.pathway_template_id == template_id)
                .values(order_index=-(index + 1))
            )
        await self.db.flush()
        for phase_id, index in new_indices.items():
            await self.db.execute(
                update(Phase)
                .where(Phase.id == phase_id, Phase.pathway_template_id == template_id)
                .values(order_index=index)
            )
        await self.db.flush()

    async def park_indices(self, template_id: UUID) -> None:
        """Move every phase of a template onto a distinct negative index."""
        await self.db.execute(
            update(Phase)
            .where(Phase.pathway_template_id == template_id)
            .values(order_index=-(Phase.order_index + 1))
            .execution_options(synchronize_session="fetch")
        )
        await self.db.flush()

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    async def next_version_number(self, template_id: UUID) -> int:
        result = await self.db.execute(
            select(func.max(PathwayTemplateVersion.version_number)).where(
                PathwayTemplateVersion.pathway_template_id == template_id
            )
        )
        highest = result.scalar_one_or_none()
        return 1 if highest is None else highest + 1

    async def add_version(self, template_id: UUID, version_number: int, snapshot: Dict, created_by: UUID) -> PathwayTemplateVersion:
        version = PathwayTemplateVersion(
            id=uuid.uuid4(),
            pathway_template_id=template_id,
            version_number=version_number,
            snapshot=snapshot,
            created_by=created_by,
        )
        self.db.add(version)
        await self.db.flush()
        await self.db.refresh(version)
        return version

    async def list_versions(self, template_id: UUID) -> List[PathwayTemplateVersion]:
        result = await self.db.execute(
            select(PathwayTemplateVersion)
            .where(PathwayTemplateVersion.pathway_template_id == template_id)
            .order_by(PathwayTemplateVersion.version_number.desc())
        )
        return list(result.scalars().all())

    async def get_version(self, template_id: UUID, version_id: UUID) -> Optional[PathwayTemplateVersion]:
        result = await self.db.execute(
            select(PathwayTemplateVersion).where(
                PathwayTemplateVersion.id == version_id,
                PathwayTemplateVersion.pathway_template_id == template_id,
            )
        )
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Activity log
    # ------------------------------------------------------------------

    async def log_activity(
        self,
        template_id: UUID,
        user_id: Optional[UUID],
        event_type: str,
        description: str,
        details: Optional[Dict] = None,
    ) -> TemplateActivityLog:
        entry = TemplateActivityLog(
            id=uuid.uuid4(),
            template_id=template_id,
            user_id=user_id,
            event_type=event_type,
            description=description,
            details=details,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def list_activity(self, template_id: UUID, limit: int = 100) -> List[TemplateActivityLog]:
        """Activity for a template, newest first."""
        result = await self.db.execute(
            select(TemplateActivityLog)
            .where(TemplateActivityLog.template_id == template_id)
            .order_by(TemplateActivityLog.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
