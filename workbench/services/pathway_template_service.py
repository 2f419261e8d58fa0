"""
Pathway template store.

Templates own an ordered list of typed phases. Every write validates phase
configs through the phase_config schemas, keeps order_index dense within a
template, and appends to the template activity log.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from workbench.core.permissions import Actor, Capability, ensure_capability
from workbench.errors import (
    ConfigValidationError,
    PhaseReferenced,
    ReorderConflict,
    not_found,
)
from workbench.models.pathway_template import PathwayTemplate, PathwayTemplateVersion, Phase, TemplateActivityLog
from workbench.repositories.application_repository import ApplicationRepository
from workbench.repositories.pathway_template_repository import PathwayTemplateRepository
from workbench.schemas.pathway_template import (
    BranchingUpdate,
    PathwayTemplateCreate,
    PathwayTemplateUpdate,
    PhaseCreate,
    PhaseOrder,
    PhaseUpdate,
)
from workbench.schemas.phase_config import (
    BRANCH_CAPABLE_TYPES,
    BranchingConfig,
    PhaseType,
    parse_phase_type,
    validate_phase_config,
)
from workbench.services.communication_service import CommunicationService

logger = logging.getLogger(__name__)

BRANCH_KEYS = ("nextPhaseIdOnSuccess", "nextPhaseIdOnFailure")

_METADATA_FIELDS = (
    "name",
    "description",
    "is_private",
    "application_open_date",
    "participation_deadline",
    "general_instructions",
)
_DATE_FIELDS = ("application_open_date", "participation_deadline")


def remap_branch_targets(config: Dict[str, Any], id_map: Dict[str, str]) -> Dict[str, Any]:
    """
    Return a copy of a phase config with branch targets translated through id_map.

    Targets missing from the map point outside the template being copied and
    are cleared.
    """
    remapped = dict(config)
    for key in BRANCH_KEYS:
        target = remapped.get(key)
        if target is None:
            continue
        new_target = id_map.get(str(target))
        if new_target is None:
            remapped.pop(key)
        else:
            remapped[key] = new_target
    return remapped


def _serialize_metadata(template: PathwayTemplate) -> Dict[str, Any]:
    data = {}
    for field in _METADATA_FIELDS:
        value = getattr(template, field)
        data[field] = value.isoformat() if isinstance(value, datetime) else value
    return data


def _serialize_phase(phase: Phase) -> Dict[str, Any]:
    return {
        "id": str(phase.id),
        "name": phase.name,
        "type": phase.type,
        "description": phase.description,
        "order_index": phase.order_index,
        "config": dict(phase.config or {}),
    }


class PathwayTemplateService:
    """Service for pathway templates and their phases."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = PathwayTemplateRepository(db)
        self.applications = ApplicationRepository(db)
        self.communications = CommunicationService(db)

    # ------------------------------------------------------------------
    # Access helpers
    # ------------------------------------------------------------------

    @staticmethod
    def can_read(actor: Actor, template: PathwayTemplate) -> bool:
        return (
            not template.is_private
            or template.creator_id == actor.user_id
            or actor.can(Capability.TEMPLATE_READ_PRIVATE)
        )

    @staticmethod
    def _ensure_can_edit(actor: Actor, template: PathwayTemplate, action: str = "edit this template") -> None:
        ensure_capability(actor, Capability.TEMPLATE_WRITE_ANY, owner_id=template.creator_id, action=action)

    async def _log(
        self,
        template_id: UUID,
        actor: Actor,
        event_type: str,
        description: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self.repo.log_activity(template_id, actor.user_id, event_type, description, details)

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    async def get_template(self, actor: Actor, template_id: UUID) -> PathwayTemplate:
        """
        Get a template the actor may read.

        Private templates the actor cannot see are reported as missing.
        """
        template = await self.repo.get_by_id(template_id)
        if template is None or not self.can_read(actor, template):
            raise not_found("Pathway template", template_id)
        return template

    async def list_templates(self, actor: Actor, limit: int = 50, offset: int = 0) -> List[PathwayTemplate]:
        return await self.repo.list_visible(
            actor.user_id,
            include_private=actor.can(Capability.TEMPLATE_READ_PRIVATE),
            limit=limit,
            offset=offset,
        )

    async def create_template(self, actor: Actor, payload: PathwayTemplateCreate) -> PathwayTemplate:
        ensure_capability(actor, Capability.TEMPLATE_CREATE, action="create pathway templates")
        template = await self.repo.create(
            actor.user_id,
            status="draft",
            last_updated_by=actor.user_id,
            **payload.model_dump(),
        )
        await self._log(template.id, actor, "template_created", f"Created template '{template.name}'")
        logger.info("Created template %s", template.id)
        return template

    async def update_template(
        self,
        actor: Actor,
        template_id: UUID,
        payload: PathwayTemplateUpdate,
    ) -> PathwayTemplate:
        template = await self.get_template(actor, template_id)
        self._ensure_can_edit(actor, template)
        update_data = payload.model_dump(exclude_unset=True)
        update_data["last_updated_by"] = actor.user_id
        template = await self.repo.update(template, update_data)
        await self._log(
            template.id,
            actor,
            "template_updated",
            "Updated template metadata",
            {"fields": sorted(k for k in update_data if k != "last_updated_by")},
        )
        return template

    async def delete_template(self, actor: Actor, template_id: UUID) -> None:
        """Delete a template and all of its phases (creator or admin only)."""
        template = await self.get_template(actor, template_id)
        self._ensure_can_edit(actor, template, action="delete this template")
        await self.repo.delete(template)
        logger.info("Deleted template %s", template_id)

    async def clone_template(self, actor: Actor, template_id: UUID, new_name: str) -> PathwayTemplate:
        """
        Deep-copy a template and its phases under new ids.

        Phases keep their order_index, type and config; branch targets are
        rewritten to the copies of the phases they pointed at.
        """
        ensure_capability(actor, Capability.TEMPLATE_CREATE, action="clone pathway templates")
        source = await self.get_template(actor, template_id)
        source_phases = await self.repo.list_phases(source.id)

        fields = {f: getattr(source, f) for f in _METADATA_FIELDS}
        fields["name"] = new_name
        clone = await self.repo.create(actor.user_id, status="draft", last_updated_by=actor.user_id, **fields)

        id_map = {str(phase.id): str(uuid.uuid4()) for phase in source_phases}
        for phase in source_phases:
            await self.repo.add_phase(
                clone.id,
                id=UUID(id_map[str(phase.id)]),
                name=phase.name,
                type=phase.type,
                description=phase.description,
                order_index=phase.order_index,
                config=remap_branch_targets(phase.config or {}, id_map),
                last_updated_by=actor.user_id,
            )

        await self._log(
            clone.id,
            actor,
            "template_cloned",
            f"Cloned from template '{source.name}'",
            {"source_template_id": str(source.id), "phase_id_map": id_map},
        )
        logger.info("Cloned template %s -> %s (%d phases)", source.id, clone.id, len(source_phases))
        return clone

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def get_phase(self, actor: Actor, phase_id: UUID) -> Phase:
        phase = await self.repo.get_phase(phase_id)
        if phase is None:
            raise not_found("Phase", phase_id)
        await self.get_template(actor, phase.pathway_template_id)
        return phase

    async def list_phases(self, actor: Actor, template_id: UUID) -> List[Phase]:
        template = await self.get_template(actor, template_id)
        return await self.repo.list_phases(template.id)

    async def _prepare_config(
        self,
        actor: Actor,
        template_id: UUID,
        phase_type: PhaseType,
        config: Dict[str, Any],
        phase_id: Optional[UUID] = None,
        previous: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Validate a phase config and return the payload to persist."""
        config = dict(config or {})
        if phase_type == PhaseType.EMAIL:
            config = await self._apply_selected_template(actor, config, previous or {})

        validated = validate_phase_config(phase_type, config)
        if isinstance(validated, BranchingConfig) and validated.has_branching:
            siblings = await self.repo.list_phases(template_id)
            self._check_branch_targets(phase_id, validated, {p.id for p in siblings})
        return validated.to_payload()

    async def _apply_selected_template(
        self,
        actor: Actor,
        config: Dict[str, Any],
        previous: Dict[str, Any],
    ) -> Dict[str, Any]:
        # Subject and body are copied in once, when a template is (re)selected
        selected = config.get("selectedTemplateId") or config.get("selected_template_id")
        if not selected or str(selected) == str(previous.get("selectedTemplateId")):
            return config
        try:
            template_id = UUID(str(selected))
        except ValueError:
            raise ConfigValidationError(
                "selectedTemplateId is not a valid id",
                details={"selectedTemplateId": str(selected)},
            ) from None
        template = await self.communications.get_template(actor, template_id)
        config["subject"] = template.subject
        config["body"] = template.body
        return config

    @staticmethod
    def _check_branch_targets(phase_id: Optional[UUID], config: BranchingConfig, sibling_ids) -> None:
        for target in config.branch_targets():
            if phase_id is not None and target == phase_id:
                raise ConfigValidationError(
                    "A phase cannot branch to itself",
                    details={"phase_id": str(phase_id)},
                )
            if target not in sibling_ids:
                raise ConfigValidationError(
                    "Branch target must be a phase of the same template",
                    details={"target_phase_id": str(target)},
                )

    async def create_phase(self, actor: Actor, template_id: UUID, payload: PhaseCreate) -> Phase:
        """Append a phase after the template's last phase."""
        template = await self.get_template(actor, template_id)
        self._ensure_can_edit(actor, template)
        phase_type = parse_phase_type(payload.type)
        config = await self._prepare_config(actor, template.id, phase_type, payload.config)

        phase = await self.repo.add_phase(
            template.id,
            name=payload.name,
            type=phase_type.value,
            description=payload.description,
            order_index=await self.repo.next_order_index(template.id),
            config=config,
            last_updated_by=actor.user_id,
        )
        await self._log(
            template.id,
            actor,
            "phase_created",
            f"Added {phase.type} phase '{phase.name}'",
            {"phase_id": str(phase.id), "order_index": phase.order_index},
        )
        logger.info("Created phase %s (%s) in template %s", phase.id, phase.type, template.id)
        return phase

    async def update_phase(self, actor: Actor, phase_id: UUID, payload: PhaseUpdate) -> Phase:
        phase = await self.get_phase(actor, phase_id)
        template = await self.repo.get_by_id(phase.pathway_template_id)
        self._ensure_can_edit(actor, template)

        update_data = payload.model_dump(exclude_unset=True)
        if "config" in update_data:
            update_data["config"] = await self._prepare_config(
                actor,
                template.id,
                parse_phase_type(phase.type),
                update_data["config"],
                phase_id=phase.id,
                previous=phase.config,
            )
        update_data["last_updated_by"] = actor.user_id
        phase = await self.repo.update_phase(phase, update_data)
        await self._log(
            template.id,
            actor,
            "phase_updated",
            f"Updated phase '{phase.name}'",
            {"phase_id": str(phase.id), "fields": sorted(k for k in update_data if k != "last_updated_by")},
        )
        return phase

    async def update_phase_branching(self, actor: Actor, phase_id: UUID, payload: BranchingUpdate) -> Phase:
        """Set or clear the success/failure branch targets of a branch-capable phase."""
        phase = await self.get_phase(actor, phase_id)
        template = await self.repo.get_by_id(phase.pathway_template_id)
        self._ensure_can_edit(actor, template)
        phase_type = parse_phase_type(phase.type)
        if phase_type not in BRANCH_CAPABLE_TYPES:
            raise ConfigValidationError(
                f"{phase_type.value} phases do not support branching",
                details={"phase_id": str(phase.id), "phase_type": phase_type.value},
            )

        config = dict(phase.config or {})
        for key, value in (
            ("nextPhaseIdOnSuccess", payload.next_phase_id_on_success),
            ("nextPhaseIdOnFailure", payload.next_phase_id_on_failure),
        ):
            if value is None:
                config.pop(key, None)
            else:
                config[key] = str(value)

        config = await self._prepare_config(actor, template.id, phase_type, config, phase_id=phase.id)
        phase = await self.repo.update_phase(phase, {"config": config, "last_updated_by": actor.user_id})
        await self._log(
            template.id,
            actor,
            "branching_updated",
            f"Updated branching for phase '{phase.name}'",
            {
                "phase_id": str(phase.id),
                "next_phase_id_on_success": config.get("nextPhaseIdOnSuccess"),
                "next_phase_id_on_failure": config.get("nextPhaseIdOnFailure"),
            },
        )
        return phase

    async def delete_phase(self, actor: Actor, phase_id: UUID, detach_references: bool = False) -> None:
        """
        Delete a phase.

        Sibling branch targets pointing at the phase block the deletion unless
        detach_references is set, in which case they are cleared in the same
        transaction. Applications currently on the phase always block it.
        Remaining indices are not compacted; call reorder_phases for that.

        Raises:
            PhaseReferenced: The phase is still referenced
        """
        phase = await self.get_phase(actor, phase_id)
        template = await self.repo.get_by_id(phase.pathway_template_id)
        self._ensure_can_edit(actor, template)

        occupants = await self.applications.list_on_phase(phase.id)
        if occupants:
            raise PhaseReferenced(
                "Applications are currently on this phase",
                details={"phase_id": str(phase.id), "application_ids": [str(a.id) for a in occupants]},
            )

        siblings = await self.repo.list_phases(template.id)
        referencing = [
            p for p in siblings
            if p.id != phase.id and any(str(p.config.get(k)) == str(phase.id) for k in BRANCH_KEYS)
        ]
        if referencing and not detach_references:
            raise PhaseReferenced(
                "Other phases branch to this phase",
                details={"phase_id": str(phase.id), "referenced_by": [str(p.id) for p in referencing]},
            )
        for sibling in referencing:
            config = {
                k: v for k, v in sibling.config.items()
                if not (k in BRANCH_KEYS and str(v) == str(phase.id))
            }
            await self.repo.update_phase(sibling, {"config": config, "last_updated_by": actor.user_id})

        await self.repo.delete_phase(phase)
        await self._log(
            template.id,
            actor,
            "phase_deleted",
            f"Deleted phase '{phase.name}'",
            {"phase_id": str(phase_id), "detached_from": [str(p.id) for p in referencing]},
        )
        logger.info("Deleted phase %s from template %s", phase_id, template.id)

    async def reorder_phases(self, actor: Actor, template_id: UUID, orders: List[PhaseOrder]) -> List[Phase]:
        """
        Replace the whole phase order of a template in one unit.

        Raises:
            ReorderConflict: The supplied ids are not exactly the template's
                phases, or the indices are not a permutation of 0..N-1
        """
        template = await self.get_template(actor, template_id)
        self._ensure_can_edit(actor, template)
        phases = await self.repo.list_phases(template.id)

        existing_ids = {p.id for p in phases}
        supplied_ids = [o.id for o in orders]
        if len(supplied_ids) != len(set(supplied_ids)) or set(supplied_ids) != existing_ids:
            raise ReorderConflict(
                "Reorder must list every phase of the template exactly once",
                details={
                    "missing": sorted(str(i) for i in existing_ids - set(supplied_ids)),
                    "unknown": sorted(str(i) for i in set(supplied_ids) - existing_ids),
                },
            )
        indices = sorted(o.order_index for o in orders)
        if indices != list(range(len(phases))):
            raise ReorderConflict(
                f"Order indices must be a permutation of 0..{len(phases) - 1}",
                details={"order_indices": indices},
            )

        await self.repo.apply_order(template.id, {o.id: o.order_index for o in orders})
        await self._log(
            template.id,
            actor,
            "phases_reordered",
            "Reordered phases",
            {"order": [str(o.id) for o in sorted(orders, key=lambda o: o.order_index)]},
        )
        return await self.repo.list_phases(template.id)

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    async def create_version(self, actor: Actor, template_id: UUID) -> PathwayTemplateVersion:
        """Snapshot template metadata and its ordered phases."""
        template = await self.get_template(actor, template_id)
        self._ensure_can_edit(actor, template)
        phases = await self.repo.list_phases(template.id)
        snapshot = {
            "template": _serialize_metadata(template),
            "phases": [_serialize_phase(p) for p in phases],
        }
        number = await self.repo.next_version_number(template.id)
        version = await self.repo.add_version(template.id, number, snapshot, actor.user_id)
        await self._log(template.id, actor, "version_created", f"Saved version {number}", {"version_id": str(version.id)})
        logger.info("Saved version %d of template %s", number, template.id)
        return version

    async def list_versions(self, actor: Actor, template_id: UUID) -> List[PathwayTemplateVersion]:
        template = await self.get_template(actor, template_id)
        return await self.repo.list_versions(template.id)

    async def get_version(self, actor: Actor, template_id: UUID, version_id: UUID) -> PathwayTemplateVersion:
        template = await self.get_template(actor, template_id)
        version = await self.repo.get_version(template.id, version_id)
        if version is None:
            raise not_found("Template version", version_id)
        return version

    async def rollback(self, actor: Actor, template_id: UUID, version_id: UUID) -> PathwayTemplate:
        """
        Restore a template to a saved version.

        Phases come back under their snapshot ids so branch targets and
        application pointers into surviving phases stay valid. Phases added
        after the snapshot are deleted.

        Raises:
            PhaseReferenced: Applications occupy a phase the version lacks
        """
        version = await self.get_version(actor, template_id, version_id)
        template = await self.repo.get_by_id(template_id)
        self._ensure_can_edit(actor, template, action="restore this template")

        snapshot_phases = version.snapshot.get("phases", [])
        snapshot_ids = {UUID(p["id"]) for p in snapshot_phases}
        current = {p.id: p for p in await self.repo.list_phases(template.id)}

        removed = [p for pid, p in current.items() if pid not in snapshot_ids]
        for phase in removed:
            occupants = await self.applications.list_on_phase(phase.id)
            if occupants:
                raise PhaseReferenced(
                    f"Applications are on phase '{phase.name}', which this version does not contain",
                    details={"phase_id": str(phase.id), "application_ids": [str(a.id) for a in occupants]},
                )

        await self.repo.park_indices(template.id)
        for phase in removed:
            await self.repo.delete_phase(phase)
        for data in snapshot_phases:
            phase_id = UUID(data["id"])
            fields = {
                "name": data["name"],
                "type": data["type"],
                "description": data.get("description"),
                "order_index": data["order_index"],
                "config": data.get("config") or {},
                "last_updated_by": actor.user_id,
            }
            if phase_id in current:
                await self.repo.update_phase(current[phase_id], fields)
            else:
                await self.repo.add_phase(template.id, id=phase_id, **fields)

        metadata = dict(version.snapshot.get("template", {}))
        for field in _DATE_FIELDS:
            if metadata.get(field):
                metadata[field] = datetime.fromisoformat(metadata[field])
        metadata["last_updated_by"] = actor.user_id
        template = await self.repo.update(template, metadata)

        await self._log(
            template.id,
            actor,
            "version_restored",
            f"Restored version {version.version_number}",
            {"version_id": str(version.id), "removed_phase_ids": [str(p.id) for p in removed]},
        )
        logger.info("Restored template %s to version %d", template.id, version.version_number)
        return template

    # ------------------------------------------------------------------
    # Activity
    # ------------------------------------------------------------------

    async def list_activity(self, actor: Actor, template_id: UUID, limit: int = 100) -> List[TemplateActivityLog]:
        """Template activity, newest first."""
        template = await self.get_template(actor, template_id)
        return await self.repo.list_activity(template.id, limit=limit)
