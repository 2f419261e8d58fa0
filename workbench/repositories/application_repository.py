"""
Application repository - database operations for applications and notes.
"""

from typing import Dict, List, Optional
from uuid import UUID
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from workbench.models.application import Application, ApplicationNote
from workbench.utils.time import utc_now


class ApplicationRepository:
    """Repository for Application database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, application_id: UUID) -> Optional[Application]:
        """Get an application by ID."""
        result = await self.db.execute(select(Application).where(Application.id == application_id))
        return result.scalar_one_or_none()

    async def list(
        self,
        campaign_id: Optional[UUID] = None,
        applicant_id: Optional[UUID] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Application]:
        """List applications with filters."""
        query = select(Application)
        if campaign_id is not None:
            query = query.where(Application.campaign_id == campaign_id)
        if applicant_id is not None:
            query = query.where(Application.applicant_id == applicant_id)
        if status is not None:
            query = query.where(Application.status == status)
        query = query.order_by(Application.created_at.desc()).limit(limit).offset(offset)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_on_phase(self, phase_id: UUID) -> List[Application]:
        """Applications currently occupying a phase."""
        result = await self.db.execute(
            select(Application).where(Application.current_campaign_phase_id == phase_id)
        )
        return list(result.scalars().all())

    async def lock_applicant(self, applicant_id: UUID) -> None:
        """Lock every application row of an applicant, in id order."""
        await self.db.execute(
            select(Application.id)
            .where(Application.applicant_id == applicant_id)
            .order_by(Application.id)
            .with_for_update()
        )

    async def create(self, campaign_id: UUID, applicant_id: UUID, data: Dict) -> Application:
        """Create a new draft application."""
        application = Application(
            id=uuid.uuid4(),
            campaign_id=campaign_id,
            applicant_id=applicant_id,
            data=data,
            status="draft",
            screening_status="Pending",
            version=1,
        )
        self.db.add(application)
        await self.db.flush()
        await self.db.refresh(application)
        return application

    async def update(self, application: Application, update_data: Dict) -> Application:
        """Apply field updates to an application."""
        for field, value in update_data.items():
            setattr(application, field, value)
        await self.db.flush()
        await self.db.refresh(application)
        return application

    async def compare_and_set_phase(
        self,
        application: Application,
        expected_phase_id: Optional[UUID],
        new_phase_id: Optional[UUID],
        new_status: str,
    ) -> bool:
        """
        Move an application to a new phase if nobody moved it first.

        The row is only updated while both the phase pointer and the version
        still match what the caller read; the version is bumped on success.

        Returns:
            True if the row was updated, False if a concurrent transition won
        """
        result = await self.db.execute(
            update(Application)
            .where(
                Application.id == application.id,
                Application.current_campaign_phase_id == expected_phase_id,
                Application.version == application.version,
            )
            .values(
                current_campaign_phase_id=new_phase_id,
                status=new_status,
                version=application.version + 1,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await self.db.refresh(application)
        return True

    async def delete(self, application: Application) -> None:
        await self.db.delete(application)
        await self.db.flush()

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    async def get_note(self, note_id: UUID) -> Optional[ApplicationNote]:
        result = await self.db.execute(select(ApplicationNote).where(ApplicationNote.id == note_id))
        return result.scalar_one_or_none()

    async def list_notes(self, application_id: UUID) -> List[ApplicationNote]:
        result = await self.db.execute(
            select(ApplicationNote)
            .where(ApplicationNote.application_id == application_id)
            .order_by(ApplicationNote.created_at.asc())
        )
        return list(result.scalars().all())

    async def add_note(self, application_id: UUID, author_id: UUID, content: str) -> ApplicationNote:
        note = ApplicationNote(id=uuid.uuid4(), application_id=application_id, author_id=author_id, content=content)
        self.db.add(note)
        await self.db.flush()
        await self.db.refresh(note)
        return note

    async def update_note(self, note: ApplicationNote, content: str) -> ApplicationNote:
        note.content = content
        await self.db.flush()
        await self.db.refresh(note)
        return note

    async def delete_note(self, note: ApplicationNote) -> None:
        await self.db.delete(note)
        await self.db.flush()
