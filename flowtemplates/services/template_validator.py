"""
Template Validator

Structural validation of a template payload and the fields derived from it:
- DAG check over preTasks edges
- per-node parameter checks, dispatched on task type
- resource ids referenced by the task list
- deduplicated global params
"""

import json
from typing import Any, Iterable, List, Optional, Set

from pydantic import ValidationError as PydanticValidationError

from flowtemplates.exceptions import (
    CycleDetectedError,
    ErrorCode,
    NodeParameterInvalidError,
    ValidationError,
)
from flowtemplates.logging_config import get_logger
from flowtemplates.schemas.template import Property, TaskNode, TemplateData
from flowtemplates.workflows.graph import graph_has_cycle
from flowtemplates.workflows.parameters import (
    check_other_params,
    check_task_node_parameters,
    parse_task_params,
)

logger = get_logger(__name__)


def validate_payload(payload_json: Any) -> TemplateData:
    """
    Parse a template payload into ``TemplateData``.

    Raises:
        ValidationError: If the payload is not JSON or does not have the
            template shape
    """
    if payload_json is None or (isinstance(payload_json, str) and not payload_json.strip()):
        raise ValidationError(
            "Template payload is empty",
            error_code=ErrorCode.PROCESS_DATA_EMPTY,
        )

    try:
        if isinstance(payload_json, (str, bytes)):
            return TemplateData.model_validate_json(payload_json)
        return TemplateData.model_validate(payload_json)
    except PydanticValidationError as e:
        raise ValidationError(
            "Template payload is malformed",
            details={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
        )


def check_process_node_list(data: Optional[TemplateData]) -> None:
    """
    Validate the task list of a parsed payload.

    Checks run in order and stop at the first failure: task list present and
    non-empty, the preTasks edges form a DAG, then each node's params pass
    their type-specific check. A malformed ``extras`` is only logged.

    Raises:
        ValidationError: If there is no task list
        CycleDetectedError: If the edges do not form a DAG
        NodeParameterInvalidError: For the first node with invalid params
    """
    if data is None:
        raise ValidationError("Template data is empty", error_code=ErrorCode.PROCESS_DATA_EMPTY)

    task_nodes = data.tasks
    if not task_nodes:
        raise ValidationError("Template task list is empty", error_code=ErrorCode.PROCESS_DATA_EMPTY)

    if graph_has_cycle(task_nodes):
        raise CycleDetectedError(details={"task_count": len(task_nodes)})

    for task_node in task_nodes:
        if not check_task_node_parameters(task_node.params, task_node.type):
            logger.info("Task node parameter invalid", node=task_node.name, task_type=task_node.type)
            raise NodeParameterInvalidError(task_node.name, task_node.type)

        if not check_other_params(task_node.extras):
            logger.warning("Task node extras invalid", node=task_node.name)


def collect_resource_ids(task_nodes: Optional[Iterable[TaskNode]]) -> Set[int]:
    """Union of the non-zero resource ids referenced by a task list."""
    resource_ids = set()
    for task_node in task_nodes or []:
        params = parse_task_params(task_node.type, task_node.params)
        if params is None:
            continue
        for resource in params.resource_files():
            if resource.id != 0:
                resource_ids.add(resource.id)
    return resource_ids


def format_resource_ids(resource_ids: Iterable[int]) -> str:
    return ",".join(str(resource_id) for resource_id in sorted(set(resource_ids)))


def parse_resource_ids(text: Optional[str]) -> List[int]:
    """Inverse of ``format_resource_ids``; blank input yields an empty list."""
    if not text:
        return []
    return [int(part) for part in text.split(",") if part.strip()]


def dedup_global_params(global_params: Iterable[Property]) -> List[Property]:
    """Drop repeated (prop, value, direct, type) entries, keeping first-seen order."""
    seen = set()
    result = []
    for prop in global_params:
        key = prop.dedup_key()
        if key in seen:
            continue
        seen.add(key)
        result.append(prop)
    return result


def dump_global_params(global_params: Iterable[Property]) -> str:
    return json.dumps(
        [prop.model_dump(by_alias=True, exclude_none=True) for prop in global_params],
        ensure_ascii=False,
    )
