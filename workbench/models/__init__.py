"""
Models package.

Import all models here so they are registered with SQLAlchemy.
This file also makes it easy to import models from one place.
"""

from workbench.models.pathway_template import (
    PathwayTemplate,
    Phase,
    PathwayTemplateVersion,
    TemplateActivityLog,
)
from workbench.models.campaign import Program, Campaign
from workbench.models.application import Application, ApplicationNote
from workbench.models.evaluation import ReviewerAssignment, Review, Decision
from workbench.models.recommendation import RecommendationRequest
from workbench.models.scheduling import HostAvailability, ScheduledInterview
from workbench.models.communication import CommunicationTemplate

# Export all models
__all__ = [
    "PathwayTemplate",
    "Phase",
    "PathwayTemplateVersion",
    "TemplateActivityLog",
    "Program",
    "Campaign",
    "Application",
    "ApplicationNote",
    "ReviewerAssignment",
    "Review",
    "Decision",
    "RecommendationRequest",
    "HostAvailability",
    "ScheduledInterview",
    "CommunicationTemplate",
]
