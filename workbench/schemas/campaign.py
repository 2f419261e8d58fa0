"""
Pydantic schemas for programs and campaigns.
"""

from datetime import datetime
from typing import Any, Dict, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from workbench.schemas.base import RecordRead


CampaignStatus = Literal["draft", "active", "archived", "completed"]


class ProgramCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class ProgramUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None


class ProgramRead(RecordRead):
    creator_id: UUID
    name: str
    description: Optional[str] = None


class CampaignCreate(BaseModel):
    """Payload to create a campaign bound to a pathway template."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    program_id: Optional[UUID] = None
    pathway_template_id: Optional[UUID] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_public: bool = False
    status: CampaignStatus = "draft"
    config: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_dates(self) -> "CampaignCreate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class CampaignUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    program_id: Optional[UUID] = None
    pathway_template_id: Optional[UUID] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_public: Optional[bool] = None
    status: Optional[CampaignStatus] = None
    config: Optional[Dict[str, Any]] = None


class CampaignRead(RecordRead):
    program_id: Optional[UUID] = None
    pathway_template_id: Optional[UUID] = None
    creator_id: UUID
    name: str
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_public: bool
    status: str
    config: Dict[str, Any]
