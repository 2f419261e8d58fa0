"""
Pydantic schemas for reviewer assignments, reviews and decisions.
"""

from datetime import datetime
from typing import Dict, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from workbench.schemas.base import RecordRead


AssignmentStatus = Literal["assigned", "accepted", "declined", "completed"]
ReviewStatus = Literal["pending", "submitted", "reopened"]


class ReviewerAssignmentCreate(BaseModel):
    application_id: UUID
    reviewer_id: UUID
    campaign_phase_id: UUID


class AssignmentStatusUpdate(BaseModel):
    status: AssignmentStatus


class ReviewerAssignmentRead(RecordRead):
    application_id: UUID
    reviewer_id: UUID
    campaign_phase_id: UUID
    status: str
    assigned_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class ReviewCreate(BaseModel):
    application_id: UUID
    campaign_phase_id: UUID
    score: Dict[str, float] = Field(default_factory=dict)
    comments: Optional[str] = None
    status: ReviewStatus = "pending"


class ReviewUpdate(BaseModel):
    score: Optional[Dict[str, float]] = None
    comments: Optional[str] = None
    status: Optional[ReviewStatus] = None


class ReviewRead(RecordRead):
    application_id: UUID
    reviewer_id: UUID
    campaign_phase_id: UUID
    score: Dict[str, float]
    comments: Optional[str] = None
    status: str
    submitted_at: Optional[datetime] = None


class DecisionCreate(BaseModel):
    application_id: UUID
    campaign_phase_id: UUID
    outcome: str = Field(..., min_length=1)
    notes: Optional[str] = None
    is_final: bool = False


class DecisionUpdate(BaseModel):
    outcome: Optional[str] = Field(default=None, min_length=1)
    notes: Optional[str] = None
    is_final: Optional[bool] = None


class DecisionRead(RecordRead):
    application_id: UUID
    campaign_phase_id: UUID
    decider_id: UUID
    outcome: str
    notes: Optional[str] = None
    is_final: bool
