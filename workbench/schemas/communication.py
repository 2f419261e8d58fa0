"""
Pydantic schemas for communication templates.
"""

from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from workbench.schemas.base import RecordRead


TemplateType = Literal["email", "in-app", "sms"]


class CommunicationTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    subject: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1)
    type: TemplateType = "email"
    is_public: bool = False


class CommunicationTemplateUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    subject: Optional[str] = Field(default=None, min_length=1, max_length=200)
    body: Optional[str] = Field(default=None, min_length=1)
    type: Optional[TemplateType] = None
    is_public: Optional[bool] = None


class CommunicationTemplateRead(RecordRead):
    creator_id: UUID
    name: str
    subject: str
    body: str
    type: str
    is_public: bool
