"""
Phase configuration schemas.

Every phase type has one configuration shape. Configs are stored as JSON
with camelCase keys (decisionOutcomes, nextPhaseIdOnSuccess, ...); the models
below accept either spelling and always dump camelCase.

A phase is the closed tagged union PhaseDefinition: the "type" tag selects the
config model, so adding a phase type means adding a union member and a
PHASE_CONFIG_MODELS entry.
"""

import re
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import UUID

from pydantic import (
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from workbench.errors import ConfigValidationError


class PhaseType(str, Enum):
    FORM = "Form"
    REVIEW = "Review"
    EMAIL = "Email"
    SCHEDULING = "Scheduling"
    DECISION = "Decision"
    RECOMMENDATION = "Recommendation"


BRANCH_CAPABLE_TYPES = frozenset({PhaseType.DECISION, PhaseType.REVIEW})


class FieldType(str, Enum):
    TEXT = "Text"
    NUMBER = "Number"
    DATE = "Date"
    CHECKBOX = "Checkbox"
    RADIO_GROUP = "RadioGroup"
    FILE_UPLOAD = "FileUpload"
    RICH_TEXT_AREA = "RichTextArea"
    EMAIL = "Email"
    URL = "URL"
    SECTION_HEADER = "SectionHeader"


RECOMMENDER_FIELD_TYPES = frozenset(FieldType) - {FieldType.SECTION_HEADER, FieldType.FILE_UPLOAD}

BranchCategory = Literal["success", "failure"]


def _normalize_field_type(value: Any) -> Any:
    # Older forms spell multi-word types with spaces ("Radio Group")
    if isinstance(value, str):
        return value.replace(" ", "")
    return value


def _reject_duplicates(values: List[str], what: str) -> None:
    seen = set()
    duplicates = []
    for value in values:
        if value in seen and value not in duplicates:
            duplicates.append(value)
        seen.add(value)
    if duplicates:
        raise ValueError(f"duplicate {what}: {', '.join(duplicates)}")


class ConfigModel(BaseModel):
    """Base for config payload models."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready camelCase payload for persistence."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class BranchingConfig(ConfigModel):
    """Branch targets shared by branch-capable phase types."""

    next_phase_id_on_success: Optional[UUID] = None
    next_phase_id_on_failure: Optional[UUID] = None

    @property
    def has_branching(self) -> bool:
        return self.next_phase_id_on_success is not None or self.next_phase_id_on_failure is not None

    def branch_targets(self) -> List[UUID]:
        return [t for t in (self.next_phase_id_on_success, self.next_phase_id_on_failure) if t is not None]


# ---------------------------------------------------------------------------
# Form
# ---------------------------------------------------------------------------


class FormField(ConfigModel):
    id: Optional[str] = None
    label: Optional[str] = None
    type: FieldType
    required: bool = False
    helper_text: Optional[str] = None
    default_value: Optional[Any] = None
    options: Optional[List[str]] = None
    section_title: Optional[str] = None
    conditional_logic: Optional[Dict[str, Any]] = None
    validation_regex: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        return _normalize_field_type(value)

    @field_validator("validation_regex")
    @classmethod
    def _regex_compiles(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"invalid validationRegex: {exc}") from exc
        return value

    @model_validator(mode="after")
    def _check_shape(self) -> "FormField":
        if self.type == FieldType.SECTION_HEADER:
            if not self.section_title:
                raise ValueError("SectionHeader fields require sectionTitle")
        elif not self.label:
            raise ValueError(f"{self.type.value} fields require a label")
        if self.type == FieldType.RADIO_GROUP and not self.options:
            raise ValueError("RadioGroup fields require options")
        return self

    @property
    def key(self) -> str:
        """Key of this field's value inside application data."""
        return self.id or self.label or ""

    @property
    def carries_data(self) -> bool:
        return self.type != FieldType.SECTION_HEADER


class FormConfig(ConfigModel):
    fields: List[FormField]

    @model_validator(mode="after")
    def _unique_keys(self) -> "FormConfig":
        _reject_duplicates([f.key for f in self.fields if f.carries_data], "form field keys")
        return self

    def data_fields(self) -> List[FormField]:
        return [f for f in self.fields if f.carries_data]


def check_form_data(fields: List[FormField], data: Dict[str, Any]) -> Dict[str, str]:
    """
    Validate submitted data against form fields.

    SectionHeader fields carry no data and are skipped.

    Returns:
        Mapping of field key -> problem ("required" or "pattern"); empty when valid
    """
    problems: Dict[str, str] = {}
    for field in fields:
        if not field.carries_data:
            continue
        value = data.get(field.key)
        if value is None or value == "" or value == []:
            if field.required:
                problems[field.key] = "required"
            continue
        if field.validation_regex and isinstance(value, str):
            if not re.fullmatch(field.validation_regex, value):
                problems[field.key] = "pattern"
    return problems


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


class RubricCriterion(ConfigModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    max_score: float = Field(ge=1, le=100)
    description: Optional[str] = None
    weight: Optional[float] = Field(default=None, ge=0, le=100)


class DecisionOutcome(ConfigModel):
    id: str = Field(min_length=1)
    label: str = Field(min_length=1)
    is_final: bool
    branch_category: Optional[BranchCategory] = None


def _check_outcomes(outcomes: List[DecisionOutcome], branching: bool) -> None:
    _reject_duplicates([o.id for o in outcomes], "decision outcome ids")
    _reject_duplicates([o.label for o in outcomes], "decision outcome labels")
    if branching:
        untagged = [o.label for o in outcomes if o.branch_category is None]
        if untagged:
            raise ValueError(
                f"branch targets are declared but outcomes lack branchCategory: {', '.join(untagged)}"
            )


class ReviewConfig(BranchingConfig):
    rubric_criteria: List[RubricCriterion]
    allow_comments: bool
    scoring_scale: Optional[Literal["1-5", "1-10", "Custom"]] = None
    anonymization_settings: Optional[Literal["None", "Blind", "Double-Blind"]] = None
    # Mean review total at or above this classifies the phase as success
    passing_score: Optional[float] = Field(default=None, ge=0)
    decision_outcomes: List[DecisionOutcome] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_rubric(self) -> "ReviewConfig":
        _reject_duplicates([c.id for c in self.rubric_criteria], "rubric criterion ids")
        _check_outcomes(self.decision_outcomes, self.has_branching)
        if self.passing_score is not None and self.passing_score > self.max_total:
            raise ValueError(f"passingScore {self.passing_score} exceeds the rubric maximum {self.max_total}")
        if self.next_phase_id_on_failure is not None and self.passing_score is None:
            if not any(o.branch_category == "failure" for o in self.decision_outcomes):
                raise ValueError("a failure branch needs passingScore or a failure-tagged decision outcome")
        return self

    @property
    def max_total(self) -> float:
        return sum(c.max_score for c in self.rubric_criteria)

    def criterion(self, criterion_id: str) -> Optional[RubricCriterion]:
        return next((c for c in self.rubric_criteria if c.id == criterion_id), None)

    def outcome_for(self, label: str) -> Optional[DecisionOutcome]:
        return next((o for o in self.decision_outcomes if o.label == label), None)


# ---------------------------------------------------------------------------
# Decision
# ---------------------------------------------------------------------------


class DecisionConfig(BranchingConfig):
    decision_outcomes: List[DecisionOutcome] = Field(min_length=1)
    # Communication template id sent when a final decision is recorded
    associated_email_template: Optional[str] = None
    automated_next_step: Optional[str] = None

    @model_validator(mode="after")
    def _check_outcomes(self) -> "DecisionConfig":
        _check_outcomes(self.decision_outcomes, self.has_branching)
        return self

    def outcome_for(self, label: str) -> Optional[DecisionOutcome]:
        return next((o for o in self.decision_outcomes if o.label == label), None)


# ---------------------------------------------------------------------------
# Recommendation
# ---------------------------------------------------------------------------


class RecommenderField(ConfigModel):
    id: Optional[str] = None
    label: str = Field(min_length=1)
    type: FieldType
    required: bool = False

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        return _normalize_field_type(value)

    @field_validator("type")
    @classmethod
    def _allowed_type(cls, value: FieldType) -> FieldType:
        if value not in RECOMMENDER_FIELD_TYPES:
            raise ValueError(f"{value.value} is not allowed for recommender fields")
        return value

    @property
    def key(self) -> str:
        return self.id or self.label


class RecommendationConfig(ConfigModel):
    num_recommenders_required: int = Field(ge=1, le=5)
    recommender_information_fields: List[RecommenderField] = Field(default_factory=list)
    reminder_schedule: Literal["none", "daily", "weekly", "bi-weekly"]

    @model_validator(mode="after")
    def _unique_keys(self) -> "RecommendationConfig":
        _reject_duplicates([f.key for f in self.recommender_information_fields], "recommender field keys")
        return self


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


class SchedulingConfig(ConfigModel):
    interview_duration: int = Field(ge=5, le=240)
    buffer_time: int = Field(ge=0, le=60)
    host_selection: str = Field(min_length=1)
    automated_meeting_link: Optional[AnyHttpUrl] = None

    @property
    def host_ids(self) -> List[UUID]:
        """Hosts named in hostSelection (comma-separated ids); empty means any host."""
        ids = []
        for part in self.host_selection.split(","):
            try:
                ids.append(UUID(part.strip()))
            except ValueError:
                continue
        return ids


# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------


class EmailConfig(ConfigModel):
    subject: str = Field(min_length=1, max_length=200)
    body: str = Field(min_length=1)
    recipient_roles: List[str] = Field(min_length=1)
    trigger_event: Literal["phase_start", "application_submitted", "phase_complete", "decision_made", "custom_event"]
    selected_template_id: Optional[UUID] = None


# ---------------------------------------------------------------------------
# Tagged union
# ---------------------------------------------------------------------------


class FormPhase(BaseModel):
    type: Literal["Form"]
    config: FormConfig


class ReviewPhase(BaseModel):
    type: Literal["Review"]
    config: ReviewConfig


class EmailPhase(BaseModel):
    type: Literal["Email"]
    config: EmailConfig


class SchedulingPhase(BaseModel):
    type: Literal["Scheduling"]
    config: SchedulingConfig


class DecisionPhase(BaseModel):
    type: Literal["Decision"]
    config: DecisionConfig


class RecommendationPhase(BaseModel):
    type: Literal["Recommendation"]
    config: RecommendationConfig


PhaseDefinition = Annotated[
    Union[FormPhase, ReviewPhase, EmailPhase, SchedulingPhase, DecisionPhase, RecommendationPhase],
    Field(discriminator="type"),
]

PhaseConfig = Union[FormConfig, ReviewConfig, EmailConfig, SchedulingConfig, DecisionConfig, RecommendationConfig]

PHASE_CONFIG_MODELS = {
    PhaseType.FORM: FormConfig,
    PhaseType.REVIEW: ReviewConfig,
    PhaseType.EMAIL: EmailConfig,
    PhaseType.SCHEDULING: SchedulingConfig,
    PhaseType.DECISION: DecisionConfig,
    PhaseType.RECOMMENDATION: RecommendationConfig,
}

_phase_adapter = TypeAdapter(PhaseDefinition)


def parse_phase_type(value: Any) -> PhaseType:
    """Coerce a phase type string, raising ConfigValidationError if unknown."""
    try:
        return PhaseType(value)
    except ValueError:
        raise ConfigValidationError(
            f"Unknown phase type {value!r}",
            details={"allowed": [t.value for t in PhaseType]},
        ) from None


def validate_phase_config(phase_type: Any, config: Optional[Dict[str, Any]]) -> PhaseConfig:
    """
    Validate a config payload against its phase type.

    Raises:
        ConfigValidationError: Unknown type, missing sub-fields, duplicate
            outcome/criterion ids or out-of-range numbers
    """
    phase_type = parse_phase_type(phase_type)
    try:
        definition = _phase_adapter.validate_python({"type": phase_type.value, "config": config or {}})
    except ValidationError as exc:
        errors = [
            {"loc": ".".join(str(part) for part in error["loc"][2:]) or "config", "msg": error["msg"]}
            for error in exc.errors()
        ]
        raise ConfigValidationError(
            f"Invalid {phase_type.value} phase configuration",
            details={"phase_type": phase_type.value, "errors": errors},
        ) from exc
    return definition.config


def normalize_phase_config(phase_type: Any, config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Validate and return the canonical camelCase payload to persist."""
    return validate_phase_config(phase_type, config).to_payload()
