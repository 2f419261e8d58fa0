"""
Pydantic schemas for recommendation requests.

The public (token) read model deliberately omits the token and form data.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from workbench.schemas.base import RecordRead


class RecommendationRequestCreate(BaseModel):
    application_id: UUID
    campaign_phase_id: UUID
    recommender_email: EmailStr
    recommender_name: Optional[str] = Field(default=None, max_length=255)


class RecommendationSubmit(BaseModel):
    form_data: Dict[str, Any]


class RecommendationRequestRead(RecordRead):
    application_id: UUID
    campaign_phase_id: UUID
    recommender_email: str
    recommender_name: Optional[str] = None
    unique_token: str
    status: str
    request_sent_at: Optional[datetime] = None
    viewed_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    form_data: Optional[Dict[str, Any]] = None


class RecommendationPublicRead(BaseModel):
    """What the unauthenticated recommender sees."""

    id: UUID
    recommender_name: Optional[str] = None
    status: str
    submitted_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
