"""Capability policy table."""

import uuid

import pytest

from workbench.core.permissions import (
    ROLE_CAPABILITIES,
    Actor,
    Capability,
    Roles,
    ensure_any,
    ensure_capability,
    has_capability,
)
from workbench.errors import UnauthorizedError

pytestmark = pytest.mark.unit


def test_admin_has_every_capability():
    assert all(has_capability(Roles.ADMIN, capability) for capability in Capability)


def test_every_known_role_has_an_entry():
    assert set(Roles.ALL) == set(ROLE_CAPABILITIES)


@pytest.mark.parametrize("role", [None, "", "superuser", "Admin "])
def test_unknown_roles_grant_nothing(role):
    assert not any(has_capability(role, capability) for capability in Capability)


def test_applicant_cannot_advance():
    assert not has_capability(Roles.APPLICANT, Capability.APPLICATION_ADVANCE)
    assert has_capability(Roles.COORDINATOR, Capability.APPLICATION_ADVANCE)


def test_ensure_capability_accepts_ownership():
    actor = Actor(user_id=uuid.uuid4(), role=Roles.APPLICANT)
    ensure_capability(actor, Capability.TEMPLATE_WRITE_ANY, owner_id=actor.user_id)

    with pytest.raises(UnauthorizedError) as exc_info:
        ensure_capability(actor, Capability.TEMPLATE_WRITE_ANY, owner_id=uuid.uuid4())
    assert exc_info.value.status_code == 403
    assert exc_info.value.details["capability"] == Capability.TEMPLATE_WRITE_ANY.value


def test_ensure_any_checks_each_capability():
    host = Actor(user_id=uuid.uuid4(), role=Roles.HOST)
    ensure_any(host, [Capability.AVAILABILITY_MANAGE_OWN, Capability.SCHEDULING_MANAGE_ANY])

    with pytest.raises(UnauthorizedError):
        ensure_any(host, [Capability.SCHEDULING_MANAGE_ANY])
