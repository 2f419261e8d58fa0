"""
Pydantic schemas for applications, notes and progression results.
"""

from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from workbench.schemas.base import RecordRead


ApplicationStatus = Literal["draft", "submitted", "in_review", "accepted", "rejected", "on_hold"]
ScreeningStatus = Literal["Pending", "Accepted", "On Hold", "Denied"]


class ApplicationCreate(BaseModel):
    campaign_id: UUID
    data: Dict[str, Any] = Field(default_factory=dict)


class ApplicationDataUpdate(BaseModel):
    """Replace the applicant-supplied data payload."""

    data: Dict[str, Any]


class ScreeningStatusUpdate(BaseModel):
    screening_status: ScreeningStatus


class StatusUpdate(BaseModel):
    status: ApplicationStatus


class AdvanceRequest(BaseModel):
    """
    Advance an application out of its current phase.

    expected_phase_id guards against advancing from a phase the caller did
    not observe.
    """

    expected_phase_id: Optional[UUID] = None


class ApplicationRead(RecordRead):
    campaign_id: UUID
    applicant_id: UUID
    current_campaign_phase_id: Optional[UUID] = None
    status: str
    screening_status: str
    data: Dict[str, Any]
    version: int


class AdvanceResult(BaseModel):
    application: ApplicationRead
    from_phase_id: UUID
    to_phase_id: Optional[UUID] = None
    outcome: Literal["success", "failure"]
    pathway_complete: bool
    classified: bool = True
    status_path: List[str] = []


class ApplicationNoteCreate(BaseModel):
    content: str = Field(..., min_length=1)


class ApplicationNoteRead(RecordRead):
    application_id: UUID
    author_id: UUID
    content: str


class ProgressPreview(BaseModel):
    """Completion state of the current phase and where an advance would go."""

    application_id: UUID
    current_phase_id: UUID
    complete: bool
    outcome: Optional[Literal["success", "failure"]] = None
    reason: Optional[str] = None
    to_phase_id: Optional[UUID] = None
    pathway_complete: bool = False
