"""
Pytest configuration and shared fixtures.

Database tests run against a fresh in-memory SQLite database per test,
built straight from the model metadata.
"""

import uuid
from typing import Any, Dict, List

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from workbench.core.permissions import Actor, Roles
from workbench.db.base import Base
import workbench.models  # noqa: F401
from workbench.schemas.application import ApplicationCreate
from workbench.schemas.campaign import CampaignCreate
from workbench.schemas.pathway_template import PathwayTemplateCreate, PhaseCreate
from workbench.services.application_service import ApplicationService
from workbench.services.campaign_service import CampaignService
from workbench.services.notifications import LoggingDispatcher
from workbench.services.pathway_template_service import PathwayTemplateService

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests, no external deps")
    config.addinivalue_line("markers", "db: uses the in-memory SQLite database")


def make_actor(role: str) -> Actor:
    return Actor(user_id=uuid.uuid4(), role=role)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session
        await session.rollback()

    await engine.dispose()


@pytest.fixture
def dispatcher() -> LoggingDispatcher:
    return LoggingDispatcher(record=True)


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------


@pytest.fixture
def admin() -> Actor:
    return make_actor(Roles.ADMIN)


@pytest.fixture
def coordinator() -> Actor:
    return make_actor(Roles.COORDINATOR)


@pytest.fixture
def reviewer() -> Actor:
    return make_actor(Roles.REVIEWER)


@pytest.fixture
def applicant() -> Actor:
    return make_actor(Roles.APPLICANT)


@pytest.fixture
def host() -> Actor:
    return make_actor(Roles.HOST)


# ---------------------------------------------------------------------------
# Sample configs
# ---------------------------------------------------------------------------


def form_config() -> Dict[str, Any]:
    return {
        "fields": [
            {"type": "SectionHeader", "sectionTitle": "About you"},
            {"id": "full_name", "label": "Full name", "type": "Text", "required": True},
            {"id": "email", "label": "Email", "type": "Email", "required": True},
            {"id": "essay", "label": "Essay", "type": "RichTextArea"},
        ]
    }


def review_config(**overrides) -> Dict[str, Any]:
    config = {
        "rubricCriteria": [
            {"id": "merit", "name": "Merit", "maxScore": 10},
            {"id": "fit", "name": "Fit", "maxScore": 5},
        ],
        "allowComments": True,
        "decisionOutcomes": [
            {"id": "accept", "label": "Accept", "isFinal": True, "branchCategory": "success"},
            {"id": "reject", "label": "Reject", "isFinal": True, "branchCategory": "failure"},
        ],
    }
    config.update(overrides)
    return config


def decision_config(**overrides) -> Dict[str, Any]:
    config = {
        "decisionOutcomes": [
            {"id": "admit", "label": "Admit", "isFinal": True, "branchCategory": "success"},
            {"id": "decline", "label": "Decline", "isFinal": True, "branchCategory": "failure"},
            {"id": "waitlist", "label": "Waitlist", "isFinal": False},
        ],
    }
    config.update(overrides)
    return config


def email_config(**overrides) -> Dict[str, Any]:
    config = {
        "subject": "Welcome {{applicant_name}}",
        "body": "Hello {{applicant_name}}, you are now in {{campaign_name}}.",
        "recipientRoles": ["applicant"],
        "triggerEvent": "phase_complete",
    }
    config.update(overrides)
    return config


def scheduling_config(**overrides) -> Dict[str, Any]:
    config = {"interviewDuration": 30, "bufferTime": 10, "hostSelection": "any"}
    config.update(overrides)
    return config


def recommendation_config(**overrides) -> Dict[str, Any]:
    config = {
        "numRecommendersRequired": 1,
        "recommenderInformationFields": [
            {"id": "relationship", "label": "Relationship", "type": "Text", "required": True},
            {"id": "letter", "label": "Letter", "type": "RichTextArea", "required": True},
        ],
        "reminderSchedule": "weekly",
    }
    config.update(overrides)
    return config


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


@pytest.fixture
def build_template(db):
    """Create a template with phases given as (name, type, config) tuples."""

    async def build(actor: Actor, phases: List[tuple], name: str = "Pathway", is_private: bool = False):
        service = PathwayTemplateService(db)
        template = await service.create_template(actor, PathwayTemplateCreate(name=name, is_private=is_private))
        created = []
        for phase_name, phase_type, config in phases:
            created.append(
                await service.create_phase(
                    actor,
                    template.id,
                    PhaseCreate(name=phase_name, type=phase_type, config=config),
                )
            )
        return template, created

    return build


@pytest.fixture
def build_campaign(db):
    """Create an active public campaign bound to a template."""

    async def build(actor: Actor, template_id, name: str = "2026 Intake"):
        service = CampaignService(db)
        return await service.create_campaign(
            actor,
            CampaignCreate(name=name, pathway_template_id=template_id, is_public=True, status="active"),
        )

    return build


APPLICANT_DATA = {"full_name": "Ada Lovelace", "email": "ada@example.org"}


@pytest.fixture
def start_application(db, coordinator, applicant, build_template, build_campaign):
    """Build a pathway, open a campaign on it and submit one application."""

    async def start(phases, data=None):
        template, created = await build_template(coordinator, phases)
        campaign = await build_campaign(coordinator, template.id)
        applications = ApplicationService(db)
        application = await applications.create_application(
            applicant, ApplicationCreate(campaign_id=campaign.id, data=dict(data or APPLICANT_DATA))
        )
        application = await applications.submit(applicant, application.id)
        return application, created

    return start
