"""
Role and capability policy for the workbench.

Roles arrive as free-text strings from the identity provider. Every
authorization decision goes through has_capability() so all call sites
share one table instead of repeating their own role lists.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional
from uuid import UUID

from workbench.errors import UnauthorizedError


class Roles:
    """Role strings issued by the identity provider."""
    ADMIN = "admin"
    COORDINATOR = "coordinator"
    EVALUATOR = "evaluator"
    SCREENER = "screener"
    REVIEWER = "reviewer"
    HOST = "host"
    APPLICANT = "applicant"

    ALL = [ADMIN, COORDINATOR, EVALUATOR, SCREENER, REVIEWER, HOST, APPLICANT]


class Capability(str, Enum):
    """Actions gated by the policy table."""

    # Pathway templates
    TEMPLATE_CREATE = "template.create"
    TEMPLATE_WRITE_ANY = "template.write_any"
    TEMPLATE_READ_PRIVATE = "template.read_private"

    # Programs and campaigns
    CAMPAIGN_CREATE = "campaign.create"
    CAMPAIGN_MANAGE_ANY = "campaign.manage_any"
    CAMPAIGN_READ_PRIVATE = "campaign.read_private"

    # Applications
    APPLICATION_CREATE = "application.create"
    APPLICATION_READ_ANY = "application.read_any"
    APPLICATION_SCREEN = "application.screen"
    APPLICATION_ADVANCE = "application.advance"
    APPLICATION_NOTE = "application.note"

    # Evaluation
    ASSIGNMENT_MANAGE_ANY = "assignment.manage_any"
    REVIEW_WRITE_OWN = "review.write_own"
    REVIEW_WRITE_ANY = "review.write_any"
    DECISION_RECORD_ANY = "decision.record_any"

    # Ancillary phases
    RECOMMENDATION_MANAGE_ANY = "recommendation.manage_any"
    AVAILABILITY_MANAGE_OWN = "availability.manage_own"
    SCHEDULING_MANAGE_ANY = "scheduling.manage_any"
    INTERVIEW_BOOK_OWN = "interview.book_own"

    # Communications
    COMMUNICATION_MANAGE = "communication.manage"


ROLE_CAPABILITIES: Dict[str, FrozenSet[Capability]] = {
    Roles.ADMIN: frozenset(Capability),
    Roles.COORDINATOR: frozenset({
        Capability.TEMPLATE_CREATE,
        Capability.CAMPAIGN_CREATE,
        Capability.APPLICATION_READ_ANY,
        Capability.APPLICATION_SCREEN,
        Capability.APPLICATION_ADVANCE,
        Capability.APPLICATION_NOTE,
        Capability.COMMUNICATION_MANAGE,
    }),
    Roles.EVALUATOR: frozenset({
        Capability.TEMPLATE_CREATE,
        Capability.REVIEW_WRITE_OWN,
        Capability.APPLICATION_NOTE,
    }),
    Roles.SCREENER: frozenset({
        Capability.APPLICATION_READ_ANY,
        Capability.APPLICATION_NOTE,
    }),
    Roles.REVIEWER: frozenset({
        Capability.REVIEW_WRITE_OWN,
    }),
    Roles.HOST: frozenset({
        Capability.AVAILABILITY_MANAGE_OWN,
    }),
    Roles.APPLICANT: frozenset({
        Capability.APPLICATION_CREATE,
        Capability.INTERVIEW_BOOK_OWN,
    }),
}


@dataclass(frozen=True)
class Actor:
    """Resolved identity for one request."""

    user_id: UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == Roles.ADMIN

    def can(self, capability: Capability) -> bool:
        return has_capability(self.role, capability)


def has_capability(role: Optional[str], capability: Capability) -> bool:
    """
    Check whether a role grants a capability.

    Unknown or empty roles grant nothing.

    Args:
        role: Role string from the identity provider
        capability: Action being attempted

    Returns:
        True if the role grants the capability
    """
    if not role:
        return False
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def ensure_capability(
    actor: Actor,
    capability: Capability,
    owner_id: Optional[UUID] = None,
    action: str = "perform this action",
) -> None:
    """
    Raise UnauthorizedError unless the actor may perform the action.

    Ownership (owner_id == actor.user_id) is an alternative grant for
    actions on the actor's own resources.

    Args:
        actor: Current actor
        capability: Capability that grants the action globally
        owner_id: Owner of the target resource, if ownership also grants it
        action: Description of the action for the error message

    Raises:
        UnauthorizedError: If neither the role nor ownership allows it
    """
    if has_capability(actor.role, capability):
        return
    if owner_id is not None and owner_id == actor.user_id:
        return
    raise UnauthorizedError(
        f"Insufficient permissions to {action}.",
        details={"role": actor.role, "capability": capability.value},
    )


def ensure_any(actor: Actor, capabilities, owner_ids=(), action: str = "perform this action") -> None:
    """Like ensure_capability, for actions granted by several capabilities or owners."""
    if any(has_capability(actor.role, capability) for capability in capabilities):
        return
    if any(owner_id is not None and owner_id == actor.user_id for owner_id in owner_ids):
        return
    raise UnauthorizedError(
        f"Insufficient permissions to {action}.",
        details={"role": actor.role, "capabilities": [c.value for c in capabilities]},
    )
