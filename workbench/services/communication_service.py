"""
Service for communication templates and placeholder rendering.
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from workbench.core.permissions import Actor, Capability, ensure_capability
from workbench.errors import not_found
from workbench.models.application import Application
from workbench.models.campaign import Campaign
from workbench.models.communication import CommunicationTemplate
from workbench.models.pathway_template import Phase
from workbench.repositories.communication_repository import CommunicationRepository
from workbench.schemas.communication import CommunicationTemplateCreate, CommunicationTemplateUpdate
from workbench.services.notifications import OutboundMessage

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z0-9_.]+)\s*\}\}")

_MISSING = object()


def _lookup(context: Mapping[str, Any], path: str) -> Any:
    if path in context:
        return context[path]
    current: Any = context
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


def render_placeholders(text: str, context: Mapping[str, Any]) -> str:
    """
    Resolve {{placeholder}} tokens against a context mapping.

    A token is either a flat key ("applicant_name") or a dotted path into
    nested mappings ("application.data.city"). Unknown tokens are left as-is.
    """

    def replace(match: re.Match) -> str:
        value = _lookup(context, match.group(1))
        if value is _MISSING or value is None:
            return match.group(0)
        return str(value)

    return PLACEHOLDER_PATTERN.sub(replace, text)


def build_message_context(
    application: Application,
    campaign: Optional[Campaign] = None,
    phase: Optional[Phase] = None,
) -> Dict[str, Any]:
    """Variables available to Email phases and decision messages."""
    data = dict(application.data or {})
    applicant_name = data.get("applicant_name") or data.get("full_name") or data.get("name")
    context: Dict[str, Any] = {
        "application": {
            "id": str(application.id),
            "status": application.status,
            "screening_status": application.screening_status,
            "data": data,
        },
        "applicant": {
            "id": str(application.applicant_id),
            "name": applicant_name,
            "email": data.get("email"),
        },
        "applicant_name": applicant_name,
        "applicant_email": data.get("email"),
        "application_status": application.status,
    }
    if campaign is not None:
        context["campaign"] = {"id": str(campaign.id), "name": campaign.name}
        context["campaign_name"] = campaign.name
    if phase is not None:
        context["phase"] = {"id": str(phase.id), "name": phase.name, "type": phase.type}
        context["phase_name"] = phase.name
    return context


def resolve_recipients(roles: List[str], application: Application) -> List[str]:
    """
    Map recipient roles to addresses.

    The applicant resolves to the email in the application data (or an
    applicant:<id> handle); other roles are passed on as role:<name> for the
    dispatcher to expand.
    """
    recipients = []
    for role in roles:
        if role == "applicant":
            email = (application.data or {}).get("email")
            recipients.append(email or f"applicant:{application.applicant_id}")
        else:
            recipients.append(f"role:{role}")
    return recipients


def compose_message(
    kind: str,
    recipients: List[str],
    subject: str,
    body: str,
    context: Mapping[str, Any],
    template_id: Optional[str] = None,
) -> OutboundMessage:
    """Render subject and body against context and wrap them for dispatch."""
    return OutboundMessage(
        kind=kind,
        recipients=recipients,
        subject=render_placeholders(subject, context),
        body=render_placeholders(body, context),
        variables=dict(context),
        template_id=template_id,
    )


class CommunicationService:
    """Service for reusable communication templates."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = CommunicationRepository(db)

    async def get_template(self, actor: Actor, template_id: UUID) -> CommunicationTemplate:
        template = await self.repo.get_by_id(template_id)
        if template is None:
            raise not_found("Communication template", template_id)
        if not template.is_public:
            # Private templates are hidden rather than refused
            if template.creator_id != actor.user_id and not actor.can(Capability.COMMUNICATION_MANAGE):
                raise not_found("Communication template", template_id)
        return template

    async def list_templates(self, actor: Actor) -> List[CommunicationTemplate]:
        return await self.repo.list_visible(actor.user_id, include_private=actor.is_admin)

    async def create_template(self, actor: Actor, payload: CommunicationTemplateCreate) -> CommunicationTemplate:
        ensure_capability(actor, Capability.COMMUNICATION_MANAGE, action="create communication templates")
        template = await self.repo.create(actor.user_id, **payload.model_dump())
        logger.info("Created communication template %s", template.id)
        return template

    async def update_template(
        self,
        actor: Actor,
        template_id: UUID,
        payload: CommunicationTemplateUpdate,
    ) -> CommunicationTemplate:
        template = await self.get_template(actor, template_id)
        ensure_capability(
            actor,
            Capability.COMMUNICATION_MANAGE,
            owner_id=template.creator_id,
            action="edit this communication template",
        )
        return await self.repo.update(template, payload.model_dump(exclude_unset=True))

    async def delete_template(self, actor: Actor, template_id: UUID) -> None:
        template = await self.get_template(actor, template_id)
        ensure_capability(
            actor,
            Capability.COMMUNICATION_MANAGE,
            owner_id=template.creator_id,
            action="delete this communication template",
        )
        await self.repo.delete(template)
        logger.info("Deleted communication template %s", template_id)
