"""
Pathway template service: cloning, ordering, deletion guards and versions.
"""

import uuid

import pytest

from conftest import decision_config, email_config, form_config, make_actor, review_config
from workbench.core.permissions import Roles
from workbench.errors import (
    ConfigValidationError,
    NotFoundError,
    PhaseReferenced,
    ReorderConflict,
    UnauthorizedError,
)
from workbench.schemas.communication import CommunicationTemplateCreate
from workbench.schemas.pathway_template import (
    BranchingUpdate,
    PathwayTemplateUpdate,
    PhaseCreate,
    PhaseOrder,
    PhaseUpdate,
)
from workbench.services.communication_service import CommunicationService
from workbench.services.pathway_template_service import PathwayTemplateService, remap_branch_targets

# Coroutine tests run under asyncio_mode = "auto"
pytestmark = pytest.mark.db


def _standard_phases():
    return [
        ("Application", "Form", form_config()),
        ("Review", "Review", review_config()),
        ("Decision", "Decision", decision_config()),
    ]


async def test_phases_append_in_order(db, coordinator, build_template):
    template, phases = await build_template(coordinator, _standard_phases())

    assert [p.order_index for p in phases] == [0, 1, 2]
    assert template.status == "draft"
    assert template.creator_id == coordinator.user_id


async def test_phase_config_is_stored_camel_case(db, coordinator, build_template):
    _, phases = await build_template(coordinator, [("Review", "Review", review_config())])

    config = phases[0].config
    assert config["allowComments"] is True
    assert config["rubricCriteria"][0]["maxScore"] == 10


async def test_invalid_config_is_rejected_on_create(db, coordinator, build_template):
    template, _ = await build_template(coordinator, [])
    service = PathwayTemplateService(db)

    with pytest.raises(ConfigValidationError):
        await service.create_phase(coordinator, template.id, PhaseCreate(name="Bad", type="Review", config={}))


async def test_applicants_cannot_create_templates(db, applicant, build_template):
    with pytest.raises(UnauthorizedError):
        await build_template(applicant, [])


async def test_private_templates_are_hidden(db, coordinator, build_template):
    template, _ = await build_template(coordinator, [], is_private=True)
    service = PathwayTemplateService(db)
    outsider = make_actor(Roles.COORDINATOR)

    with pytest.raises(NotFoundError):
        await service.get_template(outsider, template.id)
    assert await service.get_template(coordinator, template.id)
    assert await service.get_template(make_actor(Roles.ADMIN), template.id)
    assert template.id not in [t.id for t in await service.list_templates(outsider)]


async def test_only_owner_or_admin_edits(db, coordinator, build_template):
    template, _ = await build_template(coordinator, [])
    service = PathwayTemplateService(db)

    with pytest.raises(UnauthorizedError):
        await service.update_template(make_actor(Roles.COORDINATOR), template.id, PathwayTemplateUpdate(name="Taken"))

    updated = await service.update_template(make_actor(Roles.ADMIN), template.id, PathwayTemplateUpdate(name="Renamed"))
    assert updated.name == "Renamed"


# ---------------------------------------------------------------------------
# Branching
# ---------------------------------------------------------------------------


async def test_branching_targets_must_be_siblings(db, coordinator, build_template):
    _, phases = await build_template(coordinator, _standard_phases())
    _, foreign = await build_template(coordinator, [("Other", "Form", form_config())], name="Other")
    service = PathwayTemplateService(db)
    review = phases[1]

    with pytest.raises(ConfigValidationError):
        await service.update_phase_branching(
            coordinator, review.id, BranchingUpdate(next_phase_id_on_success=foreign[0].id)
        )
    with pytest.raises(ConfigValidationError):
        await service.update_phase_branching(
            coordinator, review.id, BranchingUpdate(next_phase_id_on_success=review.id)
        )

    updated = await service.update_phase_branching(
        coordinator, review.id, BranchingUpdate(next_phase_id_on_success=phases[2].id)
    )
    assert updated.config["nextPhaseIdOnSuccess"] == str(phases[2].id)
    assert "nextPhaseIdOnFailure" not in updated.config


async def test_branching_rejected_on_form_phases(db, coordinator, build_template):
    _, phases = await build_template(coordinator, _standard_phases())
    service = PathwayTemplateService(db)

    with pytest.raises(ConfigValidationError):
        await service.update_phase_branching(
            coordinator, phases[0].id, BranchingUpdate(next_phase_id_on_success=phases[2].id)
        )


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


async def test_delete_referenced_phase_requires_detach(db, coordinator, build_template):
    _, phases = await build_template(coordinator, _standard_phases())
    service = PathwayTemplateService(db)
    review, decision = phases[1], phases[2]
    await service.update_phase_branching(
        coordinator, review.id, BranchingUpdate(next_phase_id_on_success=decision.id)
    )

    with pytest.raises(PhaseReferenced) as exc_info:
        await service.delete_phase(coordinator, decision.id)
    assert exc_info.value.details["referenced_by"] == [str(review.id)]

    await service.delete_phase(coordinator, decision.id, detach_references=True)

    remaining = await service.list_phases(coordinator, review.pathway_template_id)
    assert [p.id for p in remaining] == [phases[0].id, review.id]
    refreshed = await service.get_phase(coordinator, review.id)
    assert "nextPhaseIdOnSuccess" not in refreshed.config


async def test_delete_leaves_index_gap(db, coordinator, build_template):
    _, phases = await build_template(coordinator, _standard_phases())
    service = PathwayTemplateService(db)

    await service.delete_phase(coordinator, phases[1].id)
    remaining = await service.list_phases(coordinator, phases[0].pathway_template_id)
    assert [p.order_index for p in remaining] == [0, 2]

    appended = await service.create_phase(
        coordinator, phases[0].pathway_template_id, PhaseCreate(name="Notify", type="Email", config=email_config())
    )
    assert appended.order_index == 3


# ---------------------------------------------------------------------------
# Reorder
# ---------------------------------------------------------------------------


async def test_reorder_applies_permutation(db, coordinator, build_template):
    template, phases = await build_template(coordinator, _standard_phases())
    service = PathwayTemplateService(db)
    form, review, decision = phases

    reordered = await service.reorder_phases(
        coordinator,
        template.id,
        [
            PhaseOrder(id=decision.id, order_index=0),
            PhaseOrder(id=form.id, order_index=1),
            PhaseOrder(id=review.id, order_index=2),
        ],
    )

    assert [p.id for p in reordered] == [decision.id, form.id, review.id]
    assert [p.order_index for p in reordered] == [0, 1, 2]


async def test_reorder_closes_gaps(db, coordinator, build_template):
    template, phases = await build_template(coordinator, _standard_phases())
    service = PathwayTemplateService(db)
    await service.delete_phase(coordinator, phases[1].id)

    reordered = await service.reorder_phases(
        coordinator,
        template.id,
        [PhaseOrder(id=phases[0].id, order_index=0), PhaseOrder(id=phases[2].id, order_index=1)],
    )
    assert [p.order_index for p in reordered] == [0, 1]


@pytest.mark.parametrize(
    "indices",
    [
        [0, 1, 1],
        [0, 1, 3],
        [1, 2, 3],
    ],
)
async def test_reorder_rejects_non_permutations(db, coordinator, build_template, indices):
    template, phases = await build_template(coordinator, _standard_phases())
    service = PathwayTemplateService(db)

    with pytest.raises(ReorderConflict):
        await service.reorder_phases(
            coordinator,
            template.id,
            [PhaseOrder(id=p.id, order_index=i) for p, i in zip(phases, indices)],
        )

    unchanged = await service.list_phases(coordinator, template.id)
    assert [p.id for p in unchanged] == [p.id for p in phases]


async def test_reorder_rejects_partial_or_foreign_ids(db, coordinator, build_template):
    template, phases = await build_template(coordinator, _standard_phases())
    service = PathwayTemplateService(db)

    with pytest.raises(ReorderConflict):
        await service.reorder_phases(
            coordinator,
            template.id,
            [PhaseOrder(id=phases[0].id, order_index=0), PhaseOrder(id=phases[1].id, order_index=1)],
        )

    with pytest.raises(ReorderConflict) as exc_info:
        await service.reorder_phases(
            coordinator,
            template.id,
            [
                PhaseOrder(id=phases[0].id, order_index=0),
                PhaseOrder(id=phases[1].id, order_index=1),
                PhaseOrder(id=uuid.uuid4(), order_index=2),
            ],
        )
    assert exc_info.value.details["missing"] == [str(phases[2].id)]


# ---------------------------------------------------------------------------
# Clone
# ---------------------------------------------------------------------------


def test_remap_branch_targets_drops_outside_targets():
    inside, outside, copy = str(uuid.uuid4()), str(uuid.uuid4()), str(uuid.uuid4())
    config = {"allowComments": True, "nextPhaseIdOnSuccess": inside, "nextPhaseIdOnFailure": outside}

    remapped = remap_branch_targets(config, {inside: copy})

    assert remapped == {"allowComments": True, "nextPhaseIdOnSuccess": copy}
    assert config["nextPhaseIdOnFailure"] == outside


async def test_clone_copies_phases_and_rewrites_targets(db, coordinator, build_template):
    template, phases = await build_template(coordinator, _standard_phases())
    service = PathwayTemplateService(db)
    review, decision = phases[1], phases[2]
    await service.update_phase_branching(
        coordinator, review.id, BranchingUpdate(next_phase_id_on_success=decision.id)
    )

    clone = await service.clone_template(coordinator, template.id, "Pathway (copy)")
    copies = await service.list_phases(coordinator, clone.id)

    assert clone.id != template.id
    assert clone.name == "Pathway (copy)"
    assert clone.creator_id == coordinator.user_id
    assert [(p.name, p.type, p.order_index) for p in copies] == [
        (p.name, p.type, p.order_index) for p in phases
    ]
    assert not {p.id for p in copies} & {p.id for p in phases}

    copied_review, copied_decision = copies[1], copies[2]
    assert copied_review.config["nextPhaseIdOnSuccess"] == str(copied_decision.id)
    assert copied_review.config["rubricCriteria"] == review.config["rubricCriteria"]

    source_review = await service.get_phase(coordinator, review.id)
    assert source_review.config["nextPhaseIdOnSuccess"] == str(decision.id)


async def test_clone_of_unreadable_template_is_not_found(db, coordinator, build_template):
    template, _ = await build_template(coordinator, [], is_private=True)
    service = PathwayTemplateService(db)

    with pytest.raises(NotFoundError):
        await service.clone_template(make_actor(Roles.COORDINATOR), template.id, "Mine now")


# ---------------------------------------------------------------------------
# Versions and activity
# ---------------------------------------------------------------------------


async def test_rollback_restores_phases_under_saved_ids(db, coordinator, build_template):
    template, phases = await build_template(coordinator, _standard_phases())
    service = PathwayTemplateService(db)
    version = await service.create_version(coordinator, template.id)
    assert version.version_number == 1
    assert [p["id"] for p in version.snapshot["phases"]] == [str(p.id) for p in phases]

    await service.update_phase(coordinator, phases[0].id, PhaseUpdate(name="Renamed form"))
    await service.delete_phase(coordinator, phases[2].id)
    added = await service.create_phase(
        coordinator, template.id, PhaseCreate(name="Notify", type="Email", config=email_config())
    )
    await service.update_template(coordinator, template.id, PathwayTemplateUpdate(name="Changed"))

    restored = await service.rollback(coordinator, template.id, version.id)
    current = await service.list_phases(coordinator, template.id)

    assert restored.name == "Pathway"
    assert [p.id for p in current] == [p.id for p in phases]
    assert [p.name for p in current] == ["Application", "Review", "Decision"]
    assert [p.order_index for p in current] == [0, 1, 2]
    assert added.id not in {p.id for p in current}


async def test_version_numbers_increase(db, coordinator, build_template):
    template, _ = await build_template(coordinator, _standard_phases())
    service = PathwayTemplateService(db)

    await service.create_version(coordinator, template.id)
    await service.create_version(coordinator, template.id)

    versions = await service.list_versions(coordinator, template.id)
    assert [v.version_number for v in versions] == [2, 1]


async def test_activity_log_records_changes(db, coordinator, build_template):
    template, phases = await build_template(coordinator, _standard_phases())
    service = PathwayTemplateService(db)
    await service.delete_phase(coordinator, phases[2].id)

    events = [entry.event_type for entry in await service.list_activity(coordinator, template.id)]

    assert events.count("phase_created") == 3
    assert "template_created" in events
    assert "phase_deleted" in events
    assert all(
        entry.user_id == coordinator.user_id for entry in await service.list_activity(coordinator, template.id)
    )


async def test_email_phase_copies_selected_template(db, coordinator, build_template):
    message = await CommunicationService(db).create_template(
        coordinator,
        CommunicationTemplateCreate(name="Invite", subject="Interview for {{applicant_name}}", body="See you soon."),
    )
    template, _ = await build_template(coordinator, [])
    service = PathwayTemplateService(db)

    phase = await service.create_phase(
        coordinator,
        template.id,
        PhaseCreate(
            name="Invite",
            type="Email",
            config={"selectedTemplateId": str(message.id), "recipientRoles": ["applicant"], "triggerEvent": "phase_start"},
        ),
    )

    assert phase.config["subject"] == "Interview for {{applicant_name}}"
    assert phase.config["body"] == "See you soon."
