"""
Pydantic schemas for pathway templates, phases, versions and activity.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from workbench.schemas.base import RecordRead
from workbench.schemas.phase_config import PhaseType


TemplateStatus = Literal["draft", "pending_review", "published", "archived"]


class PathwayTemplateCreate(BaseModel):
    """Payload to create a pathway template."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    is_private: bool = False
    application_open_date: Optional[datetime] = None
    participation_deadline: Optional[datetime] = None
    general_instructions: Optional[str] = None


class PathwayTemplateUpdate(BaseModel):
    """Partial metadata update; only provided fields are applied."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_private: Optional[bool] = None
    status: Optional[TemplateStatus] = None
    application_open_date: Optional[datetime] = None
    participation_deadline: Optional[datetime] = None
    general_instructions: Optional[str] = None


class PathwayTemplateRead(RecordRead):
    creator_id: UUID
    name: str
    description: Optional[str] = None
    is_private: bool
    status: str
    last_updated_by: Optional[UUID] = None
    application_open_date: Optional[datetime] = None
    participation_deadline: Optional[datetime] = None
    general_instructions: Optional[str] = None


class CloneRequest(BaseModel):
    new_name: str = Field(..., min_length=1, max_length=255)


class PhaseCreate(BaseModel):
    """Payload to append a phase to a template."""

    name: str = Field(..., min_length=1, max_length=255)
    type: PhaseType
    description: Optional[str] = None
    config: Dict[str, Any]


class PhaseUpdate(BaseModel):
    """Partial phase update. A new config replaces the stored one after validation."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    config: Optional[Dict[str, Any]] = None


class PhaseRead(RecordRead):
    pathway_template_id: UUID
    name: str
    type: str
    description: Optional[str] = None
    order_index: int
    config: Dict[str, Any]
    last_updated_by: Optional[UUID] = None


class PhaseOrder(BaseModel):
    id: UUID
    order_index: int


class ReorderRequest(BaseModel):
    phases: List[PhaseOrder]


class BranchingUpdate(BaseModel):
    next_phase_id_on_success: Optional[UUID] = None
    next_phase_id_on_failure: Optional[UUID] = None


class PathwayTemplateVersionRead(RecordRead):
    pathway_template_id: UUID
    version_number: int
    snapshot: Dict[str, Any]
    created_by: UUID


class TemplateActivityRead(RecordRead):
    template_id: UUID
    user_id: Optional[UUID] = None
    event_type: str
    description: str
    details: Optional[Dict[str, Any]] = None
