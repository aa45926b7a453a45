"""
Sub-Process Materializer

During import, SUB_PROCESS task nodes reference other templates by id. Those
templates are copied into the target project depth-first (deepest first) so
that every level can point at the new local copy of the level below it.
"""

import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

from flowtemplates.exceptions import ErrorCode, ValidationError
from flowtemplates.logging_config import get_logger
from flowtemplates.models import ProcessTemplate, Project
from flowtemplates.schemas.operator import Operator
from flowtemplates.services.template_store import TemplateStore
from flowtemplates.workflows.parameters import TaskType, load_params
from flowtemplates.workflows.transforms import dump_payload, load_payload

logger = get_logger(__name__)

PROCESS_TEMPLATE_ID = "processTemplateId"

_SUB_PROCESS_ID_PATTERN = re.compile(r'"processTemplateId"\s*:\s*(\d+)')


def is_sub_process(task_node: Mapping[str, Any]) -> bool:
    task_type = task_node.get("type")
    return bool(task_type) and task_type.upper() == TaskType.SUB_PROCESS.value


def rewrite_sub_process_ids(payload_json: str, remap: Mapping[int, int]) -> str:
    """
    Replace every ``"processTemplateId": <old>`` in serialized JSON by its
    remapped id. All ids are replaced in one pass, so a new id that equals
    another old id is not rewritten twice.
    """
    if not remap:
        return payload_json

    def _replace(match: "re.Match[str]") -> str:
        old_id = int(match.group(1))
        if old_id not in remap:
            return match.group(0)
        return f'"{PROCESS_TEMPLATE_ID}":{remap[old_id]}'

    return _SUB_PROCESS_ID_PATTERN.sub(_replace, payload_json)


def _reference_of(params: Optional[Dict[str, Any]]) -> Optional[int]:
    value = params.get(PROCESS_TEMPLATE_ID) if params else None
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class SubProcessMaterializer:
    """
    Copies the templates referenced by sub-process nodes into a target project.

    The remap returned by ``materialize`` belongs to one task array; nested
    levels get their own and it is discarded once applied to their payload.
    Callers apply it with ``rewrite_sub_process_ids`` to the re-serialized
    task array, whose sub-process params ``materialize`` has turned into
    objects.
    """

    def __init__(self, store: TemplateStore):
        self.store = store

    async def materialize(
        self,
        tasks: List[Dict[str, Any]],
        target_project: Project,
        operator: Operator,
        chain: Sequence[int] = (),
    ) -> Dict[int, int]:
        """
        Materialize the sub-process references of ``tasks``.

        Sub-process params given as JSON text are replaced by the parsed
        object, so the references stay visible once the array is serialized
        again. The references themselves keep their source ids until the
        returned remap is applied.

        Args:
            tasks: Raw task node dicts of one template
            target_project: Project receiving the copies
            operator: Owner of the copies
            chain: Source template ids currently being materialized above
                this level

        Returns:
            Mapping of source template id -> new template id for this level

        Raises:
            ValidationError: If a reference leads back to a template already
                on the chain
        """
        remap: Dict[int, int] = {}

        sub_process_nodes = [t for t in tasks if is_sub_process(t)]
        if not sub_process_nodes:
            return remap

        for task_node in sub_process_nodes:
            params = load_params(task_node.get("params"))
            if params is not None:
                task_node["params"] = params
            source_id = _reference_of(params)
            if not source_id:
                logger.warning("Sub-process node without template reference", node=task_node.get("name"))
                continue
            if source_id in remap:
                # copied for an earlier node of this level; the remap covers both
                continue

            source = await self.store.select_by_id(source_id)
            if source is None:
                logger.warning(
                    "Sub-process template not found, reference left as is",
                    node=task_node.get("name"),
                    source_template_id=source_id,
                )
                continue

            existing = await self.store.select_by_name(target_project.id, source.name)
            if existing is not None:
                logger.info(
                    "Sub-process template already in target project",
                    name=source.name,
                    target_project_id=target_project.id,
                    existing_template_id=existing.id,
                )
                continue

            if source.id in chain:
                raise ValidationError(
                    f"Sub-process reference cycle through template {source.name}",
                    details={"template_chain": [*chain, source.id]},
                    error_code=ErrorCode.SUB_PROCESS_REFERENCE_CYCLE,
                )

            copy = await self._copy_into(source, target_project, operator, [*chain, source.id])

            remap[source.id] = copy.id

        return remap

    async def _copy_into(
        self,
        source: ProcessTemplate,
        target_project: Project,
        operator: Operator,
        chain: Sequence[int],
    ) -> ProcessTemplate:
        payload = source.payload
        document, tasks = load_payload(payload)
        nested_remap = await self.materialize(tasks, target_project, operator, chain)
        if nested_remap:
            payload = rewrite_sub_process_ids(dump_payload(document, tasks), nested_remap)

        copy = ProcessTemplate(
            name=source.name,
            project_id=target_project.id,
            user_id=operator.id,
            modify_by=operator.name or None,
            release_state=source.release_state,
            flag=source.flag,
            version=source.version,
            description=source.description,
            locations=source.locations,
            connects=source.connects,
            payload=payload,
            global_params=source.global_params,
            resource_ids=source.resource_ids,
            tenant_id=source.tenant_id,
            biz_type_id=source.biz_type_id,
            biz_form_url=source.biz_form_url,
        )
        copy = await self.store.insert(copy)

        logger.info(
            "Sub-process template created",
            name=copy.name,
            source_template_id=source.id,
            template_id=copy.id,
            target_project=target_project.name,
            nested_remap=nested_remap or None,
        )
        return copy

