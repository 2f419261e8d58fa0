"""
Placeholder rendering and communication template access.
"""

import pytest

from conftest import make_actor
from workbench.core.permissions import Roles
from workbench.errors import NotFoundError, UnauthorizedError
from workbench.schemas.communication import CommunicationTemplateCreate, CommunicationTemplateUpdate
from workbench.services.communication_service import CommunicationService, render_placeholders

# Coroutine tests run under asyncio_mode = "auto"
pytestmark = pytest.mark.db

CONTEXT = {
    "applicant_name": "Ada Lovelace",
    "campaign": {"name": "2026 Intake"},
    "application": {"data": {"city": "London"}},
    "score": 0,
}


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Dear {{applicant_name}},", "Dear Ada Lovelace,"),
        ("Dear {{ applicant_name }},", "Dear Ada Lovelace,"),
        ("Welcome to {{campaign.name}}", "Welcome to 2026 Intake"),
        ("From {{application.data.city}}", "From London"),
        ("Score: {{score}}", "Score: 0"),
        ("Hello {{unknown}}", "Hello {{unknown}}"),
        ("Hello {{campaign.missing}}", "Hello {{campaign.missing}}"),
        ("No tokens here", "No tokens here"),
    ],
)
def test_render_placeholders(text, expected):
    assert render_placeholders(text, CONTEXT) == expected


def _payload(**overrides):
    fields = {"name": "Welcome", "subject": "Welcome {{applicant_name}}", "body": "Hello!"}
    fields.update(overrides)
    return CommunicationTemplateCreate(**fields)


async def test_private_templates_are_hidden_from_non_managers(db, coordinator):
    service = CommunicationService(db)
    template = await service.create_template(coordinator, _payload())

    with pytest.raises(NotFoundError):
        await service.get_template(make_actor(Roles.REVIEWER), template.id)
    assert await service.get_template(make_actor(Roles.COORDINATOR), template.id)


async def test_public_templates_are_readable(db, coordinator):
    service = CommunicationService(db)
    template = await service.create_template(coordinator, _payload(is_public=True))

    found = await service.get_template(make_actor(Roles.REVIEWER), template.id)
    assert found.subject == "Welcome {{applicant_name}}"


async def test_only_managers_write_templates(db, coordinator, reviewer):
    service = CommunicationService(db)

    with pytest.raises(UnauthorizedError):
        await service.create_template(reviewer, _payload())

    template = await service.create_template(coordinator, _payload(is_public=True))
    with pytest.raises(UnauthorizedError):
        await service.update_template(reviewer, template.id, CommunicationTemplateUpdate(body="Changed"))

    updated = await service.update_template(coordinator, template.id, CommunicationTemplateUpdate(body="Changed"))
    assert updated.body == "Changed"

    await service.delete_template(coordinator, template.id)
    with pytest.raises(NotFoundError):
        await service.get_template(coordinator, template.id)
