"""
CommunicationTemplate model.

Reusable subject/body pairs that Email phases copy in at selection time.
"""

import uuid

from sqlalchemy import Boolean, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from workbench.models.base_model import TimestampedModel


class CommunicationTemplate(TimestampedModel):
    """Reusable message template."""

    __tablename__ = "communication_templates"

    creator_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    subject: Mapped[str] = mapped_column(String(255), nullable=False)

    body: Mapped[str] = mapped_column(Text, nullable=False)

    # email | in-app | sms
    type: Mapped[str] = mapped_column(String(20), default="email", nullable=False)

    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
