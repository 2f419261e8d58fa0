"""Phase configuration schema validation."""

import uuid

import pytest

from conftest import decision_config, email_config, form_config, recommendation_config, review_config, scheduling_config
from workbench.errors import ConfigValidationError
from workbench.schemas.phase_config import (
    DecisionConfig,
    FieldType,
    FormConfig,
    PhaseType,
    ReviewConfig,
    SchedulingConfig,
    check_form_data,
    normalize_phase_config,
    parse_phase_type,
    validate_phase_config,
)

pytestmark = pytest.mark.unit


def _error_locs(exc_info):
    return [e["loc"] for e in exc_info.value.details["errors"]]


@pytest.mark.parametrize(
    "phase_type, config",
    [
        ("Form", form_config()),
        ("Review", review_config()),
        ("Decision", decision_config()),
        ("Email", email_config()),
        ("Scheduling", scheduling_config()),
        ("Recommendation", recommendation_config()),
    ],
)
def test_valid_configs_validate_to_their_model(phase_type, config):
    validated = validate_phase_config(phase_type, config)
    assert type(validated).__name__ == f"{phase_type}Config"


def test_unknown_phase_type_is_rejected():
    with pytest.raises(ConfigValidationError) as exc_info:
        parse_phase_type("Quiz")
    assert "Form" in exc_info.value.details["allowed"]


def test_form_requires_fields():
    with pytest.raises(ConfigValidationError) as exc_info:
        validate_phase_config("Form", {})
    assert "fields" in _error_locs(exc_info)
    assert exc_info.value.details["phase_type"] == "Form"


def test_review_requires_rubric_and_allow_comments():
    with pytest.raises(ConfigValidationError) as exc_info:
        validate_phase_config("Review", {"rubricCriteria": []})
    assert "allowComments" in _error_locs(exc_info)


def test_rubric_max_score_bounds():
    config = review_config(rubricCriteria=[{"id": "merit", "name": "Merit", "maxScore": 101}])
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Review", config)

    config = review_config(rubricCriteria=[{"id": "merit", "name": "Merit", "maxScore": 0}])
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Review", config)


def test_duplicate_rubric_ids_rejected():
    config = review_config(
        rubricCriteria=[
            {"id": "merit", "name": "Merit", "maxScore": 10},
            {"id": "merit", "name": "Merit again", "maxScore": 5},
        ]
    )
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Review", config)


def test_decision_needs_at_least_one_outcome():
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Decision", {"decisionOutcomes": []})


def test_duplicate_outcome_ids_rejected():
    config = decision_config(
        decisionOutcomes=[
            {"id": "a", "label": "Admit", "isFinal": True},
            {"id": "a", "label": "Also admit", "isFinal": True},
        ]
    )
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Decision", config)


def test_branch_targets_require_tagged_outcomes():
    config = decision_config(nextPhaseIdOnSuccess=str(uuid.uuid4()))
    # "Waitlist" has no branchCategory
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Decision", config)


def test_review_failure_branch_needs_a_failure_signal():
    target = str(uuid.uuid4())
    config = review_config(decisionOutcomes=[], nextPhaseIdOnFailure=target)
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Review", config)

    config = review_config(decisionOutcomes=[], nextPhaseIdOnFailure=target, passingScore=8)
    validated = validate_phase_config("Review", config)
    assert isinstance(validated, ReviewConfig)
    assert validated.next_phase_id_on_failure == uuid.UUID(target)


def test_passing_score_cannot_exceed_rubric_total():
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Review", review_config(passingScore=16))


def test_recommenders_required_bounds():
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Recommendation", recommendation_config(numRecommendersRequired=0))
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Recommendation", recommendation_config(numRecommendersRequired=6))


def test_recommender_fields_reject_file_upload():
    config = recommendation_config(
        recommenderInformationFields=[{"label": "CV", "type": "FileUpload"}],
    )
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Recommendation", config)


def test_scheduling_bounds():
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Scheduling", scheduling_config(interviewDuration=4))
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Scheduling", scheduling_config(bufferTime=61))


def test_scheduling_host_ids_parsed_from_selection():
    host_a, host_b = uuid.uuid4(), uuid.uuid4()
    config = validate_phase_config("Scheduling", scheduling_config(hostSelection=f"{host_a}, {host_b}"))
    assert isinstance(config, SchedulingConfig)
    assert config.host_ids == [host_a, host_b]

    assert validate_phase_config("Scheduling", scheduling_config()).host_ids == []


def test_email_subject_length_and_recipients():
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Email", email_config(subject="x" * 201))
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Email", email_config(recipientRoles=[]))


def test_section_header_needs_title_not_label():
    config = {"fields": [{"type": "SectionHeader"}]}
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Form", config)


def test_radio_group_needs_options():
    config = {"fields": [{"label": "Track", "type": "RadioGroup"}]}
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Form", config)


def test_field_type_spelled_with_spaces_is_normalized():
    config = validate_phase_config("Form", {"fields": [{"label": "Track", "type": "Radio Group", "options": ["A"]}]})
    assert isinstance(config, FormConfig)
    assert config.fields[0].type == FieldType.RADIO_GROUP


def test_invalid_regex_rejected():
    config = {"fields": [{"label": "Code", "type": "Text", "validationRegex": "("}]}
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Form", config)


def test_unknown_keys_rejected():
    with pytest.raises(ConfigValidationError):
        validate_phase_config("Scheduling", scheduling_config(colour="blue"))


def test_normalize_dumps_camel_case():
    payload = normalize_phase_config(
        PhaseType.DECISION,
        {"decision_outcomes": [{"id": "a", "label": "Admit", "is_final": True, "branch_category": "success"}]},
    )
    assert payload == {
        "decisionOutcomes": [{"id": "a", "label": "Admit", "isFinal": True, "branchCategory": "success"}],
    }


def test_decision_outcome_lookup():
    config = validate_phase_config("Decision", decision_config())
    assert isinstance(config, DecisionConfig)
    assert config.outcome_for("Admit").branch_category == "success"
    assert config.outcome_for("Maybe") is None


def test_check_form_data_skips_section_headers():
    form = validate_phase_config("Form", form_config())
    assert check_form_data(form.fields, {"full_name": "Ada", "email": "ada@example.org"}) == {}
    assert check_form_data(form.fields, {"full_name": ""}) == {"full_name": "required", "email": "required"}


def test_check_form_data_applies_patterns():
    form = validate_phase_config(
        "Form",
        {"fields": [{"id": "zip", "label": "ZIP", "type": "Text", "validationRegex": r"\d{5}"}]},
    )
    assert check_form_data(form.fields, {"zip": "12345"}) == {}
    assert check_form_data(form.fields, {"zip": "12a45"}) == {"zip": "pattern"}
