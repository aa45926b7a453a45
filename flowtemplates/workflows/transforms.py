"""
Template Transforms

Export/import corrections of a template payload, dispatched per task type.

Export strips identifiers that only mean something in the source environment
(datasource ids, dependency project/definition ids) and replaces them with
portable names. Import resolves those names back against the target
environment. Both directions work on the raw JSON task array so they can run
before structural validation.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional, Protocol, Tuple

from flowtemplates.exceptions import ValidationError
from flowtemplates.logging_config import get_logger
from flowtemplates.workflows.parameters import TaskType, load_params

logger = get_logger(__name__)


class EnvironmentResolver(Protocol):
    """Lookups against the environment a template is exported from or imported into."""

    async def datasource_name(self, datasource_id: int) -> Optional[str]:
        ...

    async def datasource_id(self, name: str) -> Optional[int]:
        ...

    async def dependency_names(self, project_id: int, definition_id: int) -> Optional[Tuple[str, str]]:
        """(project name, definition name) of a dependency, if known."""
        ...

    async def dependency_ids(self, project_name: str, definition_name: str) -> Optional[Tuple[int, int]]:
        """(project id, definition id) of a dependency, if known."""
        ...


class TaskParamCorrector(ABC):
    """Per-task-type export/import correction of a task node dict (mutated in place)."""

    @abstractmethod
    async def correct_for_export(self, task_node: Dict[str, Any], resolver: EnvironmentResolver) -> None:
        pass

    @abstractmethod
    async def correct_for_import(self, task_node: Dict[str, Any], resolver: EnvironmentResolver) -> None:
        pass


class NoopParamCorrector(TaskParamCorrector):
    """Pass-through for task types without environment-specific fields."""

    async def correct_for_export(self, task_node: Dict[str, Any], resolver: EnvironmentResolver) -> None:
        return None

    async def correct_for_import(self, task_node: Dict[str, Any], resolver: EnvironmentResolver) -> None:
        return None


def _node_params(task_node: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Params of a node as a dict, written back onto the node so edits stick."""
    params = load_params(task_node.get("params"))
    if params is None:
        return None
    task_node["params"] = params
    return params


class DataSourceParamCorrector(TaskParamCorrector):
    """
    SQL and procedure tasks.

    Export: ``datasource`` id -> ``datasourceName``.
    Import: ``datasourceName`` -> target ``datasource`` id.
    """

    async def correct_for_export(self, task_node: Dict[str, Any], resolver: EnvironmentResolver) -> None:
        params = _node_params(task_node)
        if not params or not params.get("datasource"):
            return
        name = await resolver.datasource_name(params["datasource"])
        if name is None:
            logger.warning(
                "Datasource not found for export, id kept",
                task=task_node.get("name"),
                datasource=params["datasource"],
            )
            return
        params["datasourceName"] = name
        del params["datasource"]

    async def correct_for_import(self, task_node: Dict[str, Any], resolver: EnvironmentResolver) -> None:
        params = _node_params(task_node)
        if not params or not params.get("datasourceName"):
            return
        datasource_id = await resolver.datasource_id(params["datasourceName"])
        if datasource_id is None:
            logger.warning(
                "Datasource not found in target environment",
                task=task_node.get("name"),
                datasource_name=params["datasourceName"],
            )
            return
        params["datasource"] = datasource_id
        del params["datasourceName"]


class DependentParamCorrector(TaskParamCorrector):
    """
    Dependent tasks.

    Every item of ``dependence.dependTaskList[*].dependItemList`` swaps
    ``projectId``/``definitionId`` for ``projectName``/``definitionName`` on
    export and back on import.
    """

    @staticmethod
    def _depend_items(task_node: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
        holder = task_node
        if task_node.get("dependence") is None:
            holder = _node_params(task_node) or {}
        dependence = holder.get("dependence")
        if isinstance(dependence, str):
            try:
                dependence = json.loads(dependence) if dependence else None
            except ValueError:
                logger.warning("Dependence is not valid JSON, left as is", task=task_node.get("name"))
                return
            holder["dependence"] = dependence
        if not isinstance(dependence, dict):
            return
        for depend_task in dependence.get("dependTaskList") or []:
            if not isinstance(depend_task, dict):
                continue
            for item in depend_task.get("dependItemList") or []:
                if isinstance(item, dict):
                    yield item

    async def correct_for_export(self, task_node: Dict[str, Any], resolver: EnvironmentResolver) -> None:
        for item in self._depend_items(task_node):
            if item.get("definitionId") is None:
                continue
            names = await resolver.dependency_names(item.get("projectId"), item["definitionId"])
            if names is None:
                logger.warning(
                    "Dependency not found for export, ids kept",
                    task=task_node.get("name"),
                    definition_id=item["definitionId"],
                )
                continue
            item["projectName"], item["definitionName"] = names
            item.pop("projectId", None)
            item.pop("definitionId", None)

    async def correct_for_import(self, task_node: Dict[str, Any], resolver: EnvironmentResolver) -> None:
        for item in self._depend_items(task_node):
            if not item.get("definitionName"):
                continue
            ids = await resolver.dependency_ids(item.get("projectName"), item["definitionName"])
            if ids is None:
                logger.warning(
                    "Dependency not found in target environment",
                    task=task_node.get("name"),
                    definition_name=item["definitionName"],
                )
                continue
            item["projectId"], item["definitionId"] = ids
            item.pop("projectName", None)
            item.pop("definitionName", None)


class TransformRegistry:
    """Maps task types to their correctors; unregistered types pass through."""

    def __init__(self, correctors: Optional[Dict[str, TaskParamCorrector]] = None):
        self._correctors: Dict[str, TaskParamCorrector] = dict(correctors or {})
        self._default = NoopParamCorrector()

    def register(self, task_type: str, corrector: TaskParamCorrector) -> None:
        self._correctors[task_type.upper()] = corrector

    def resolve(self, task_type: Optional[str]) -> TaskParamCorrector:
        if not task_type:
            return self._default
        return self._correctors.get(task_type.upper(), self._default)


def default_transform_registry() -> TransformRegistry:
    """Registry with the built-in datasource and dependency correctors."""
    datasource = DataSourceParamCorrector()
    return TransformRegistry({
        TaskType.SQL.value: datasource,
        TaskType.PROCEDURE.value: datasource,
        TaskType.DEPENDENT.value: DependentParamCorrector(),
    })


def load_payload(payload_json: str) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
    """
    Parse a payload into (document, tasks array).

    Raises:
        ValidationError: If the payload is not a JSON object with a task list
    """
    try:
        document = json.loads(payload_json)
    except (TypeError, ValueError) as e:
        raise ValidationError(
            "Template payload is not valid JSON",
            details={"error": str(e)},
        )
    if not isinstance(document, dict):
        raise ValidationError("Template payload must be a JSON object")

    tasks = document.get("tasks")
    if tasks is None:
        tasks = []
    if not isinstance(tasks, list) or not all(isinstance(t, dict) for t in tasks):
        raise ValidationError("Template payload tasks must be a list of objects")
    return document, tasks


def dump_payload(document: Dict[str, Any], tasks: List[Dict[str, Any]]) -> str:
    document["tasks"] = tasks
    return json.dumps(document, ensure_ascii=False)


async def correct_tasks_for_export(
    tasks: List[Dict[str, Any]],
    resolver: EnvironmentResolver,
    registry: TransformRegistry,
) -> None:
    for task_node in tasks:
        await registry.resolve(task_node.get("type")).correct_for_export(task_node, resolver)


async def correct_tasks_for_import(
    tasks: List[Dict[str, Any]],
    resolver: EnvironmentResolver,
    registry: TransformRegistry,
) -> None:
    for task_node in tasks:
        await registry.resolve(task_node.get("type")).correct_for_import(task_node, resolver)


async def correct_payload_for_export(
    payload_json: str,
    resolver: EnvironmentResolver,
    registry: TransformRegistry,
) -> str:
    """Apply export corrections to every task and re-serialize the payload."""
    document, tasks = load_payload(payload_json)
    await correct_tasks_for_export(tasks, resolver, registry)
    return dump_payload(document, tasks)


async def correct_payload_for_import(
    payload_json: str,
    resolver: EnvironmentResolver,
    registry: TransformRegistry,
) -> str:
    """Apply import corrections to every task and re-serialize the payload."""
    document, tasks = load_payload(payload_json)
    await correct_tasks_for_import(tasks, resolver, registry)
    return dump_payload(document, tasks)
