"""
Task Parameter Types

Typed views over a task node's ``params`` blob, one per task type:
- Shell / Python: inline scripts plus attached resource files
- SQL / Procedure: statements against a datasource
- MR / Spark / Flink: jar-based jobs
- HTTP, DataX, Sub-process, Dependent, Conditions

Each variant knows how to check itself and which resource files it
references. Unknown task types resolve to ``DefaultParameters``, which
accepts anything and references nothing.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from flowtemplates.logging_config import get_logger

logger = get_logger(__name__)


class TaskType(str, Enum):
    """Known task node types."""
    SHELL = "SHELL"
    SQL = "SQL"
    SUB_PROCESS = "SUB_PROCESS"
    PROCEDURE = "PROCEDURE"
    MR = "MR"
    SPARK = "SPARK"
    FLINK = "FLINK"
    PYTHON = "PYTHON"
    DEPENDENT = "DEPENDENT"
    HTTP = "HTTP"
    DATAX = "DATAX"
    CONDITIONS = "CONDITIONS"


class ResourceInfo(BaseModel):
    """A reference to an uploaded resource file. Id 0 means "no resource"."""
    id: int = 0
    name: Optional[str] = None
    res: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class AbstractParameters(BaseModel):
    """
    Base class for task parameters.

    Subclasses override ``check_parameters`` with their structural rules and
    ``resource_files`` when they reference uploaded files.
    """
    local_params: List[Any] = Field(default_factory=list)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def check_parameters(self) -> bool:
        return True

    def resource_files(self) -> List[ResourceInfo]:
        return []


def _not_blank(value: Optional[str]) -> bool:
    return value is not None and value.strip() != ""


class DefaultParameters(AbstractParameters):
    """Parameters of a task type with no registered variant."""


class ShellParameters(AbstractParameters):
    raw_script: Optional[str] = None
    resource_list: List[ResourceInfo] = Field(default_factory=list)

    def check_parameters(self) -> bool:
        return _not_blank(self.raw_script)

    def resource_files(self) -> List[ResourceInfo]:
        return list(self.resource_list)


class PythonParameters(ShellParameters):
    """Same shape and rules as shell tasks."""


class SqlParameters(AbstractParameters):
    type: Optional[str] = None
    datasource: int = 0
    sql: Optional[str] = None

    def check_parameters(self) -> bool:
        return self.datasource != 0 and _not_blank(self.type) and _not_blank(self.sql)


class ProcedureParameters(AbstractParameters):
    type: Optional[str] = None
    datasource: int = 0
    method: Optional[str] = None

    def check_parameters(self) -> bool:
        return self.datasource != 0 and _not_blank(self.type) and _not_blank(self.method)


class SubProcessParameters(AbstractParameters):
    process_template_id: Optional[int] = None

    def check_parameters(self) -> bool:
        return bool(self.process_template_id)


class JarParameters(AbstractParameters):
    """Shared shape of MR, Spark and Flink jobs."""
    main_jar: Optional[ResourceInfo] = None
    program_type: Optional[str] = None
    main_class: Optional[str] = None
    resource_list: List[ResourceInfo] = Field(default_factory=list)

    def check_parameters(self) -> bool:
        return self.main_jar is not None and self.program_type is not None

    def resource_files(self) -> List[ResourceInfo]:
        files = list(self.resource_list)
        if self.main_jar is not None:
            files.append(self.main_jar)
        return files


class MapReduceParameters(JarParameters):
    pass


class SparkParameters(JarParameters):
    pass


class FlinkParameters(JarParameters):
    pass


class HttpParameters(AbstractParameters):
    url: Optional[str] = None
    http_method: Optional[str] = None

    def check_parameters(self) -> bool:
        return _not_blank(self.url) and self.http_method is not None


class DataxParameters(AbstractParameters):
    custom_config: int = 0
    json_: Optional[str] = Field(default=None, alias="json")
    data_source: int = 0
    data_target: int = 0
    sql: Optional[str] = None
    target_table: Optional[str] = None

    def check_parameters(self) -> bool:
        if self.custom_config == 1:
            return _not_blank(self.json_)
        return (
            self.data_source != 0
            and self.data_target != 0
            and _not_blank(self.sql)
            and _not_blank(self.target_table)
        )


class DependentParameters(AbstractParameters):
    pass


class ConditionsParameters(AbstractParameters):
    pass


PARAMETER_TYPES: Dict[str, Type[AbstractParameters]] = {
    TaskType.SHELL: ShellParameters,
    TaskType.SQL: SqlParameters,
    TaskType.SUB_PROCESS: SubProcessParameters,
    TaskType.PROCEDURE: ProcedureParameters,
    TaskType.MR: MapReduceParameters,
    TaskType.SPARK: SparkParameters,
    TaskType.FLINK: FlinkParameters,
    TaskType.PYTHON: PythonParameters,
    TaskType.DEPENDENT: DependentParameters,
    TaskType.HTTP: HttpParameters,
    TaskType.DATAX: DataxParameters,
    TaskType.CONDITIONS: ConditionsParameters,
}


def register_parameter_type(task_type: str, parameters_cls: Type[AbstractParameters]) -> None:
    """Register (or replace) the parameter variant for a task type."""
    PARAMETER_TYPES[task_type.upper()] = parameters_cls


def parameters_class(task_type: Optional[str]) -> Type[AbstractParameters]:
    """Resolve the parameter variant for a task type, defaulting to DefaultParameters."""
    if not task_type:
        return DefaultParameters
    return PARAMETER_TYPES.get(task_type.upper(), DefaultParameters)


def load_params(raw: Any) -> Optional[Dict[str, Any]]:
    """Normalize a params blob (dict or JSON text) to a dict, or None if it is neither."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            value = json.loads(raw)
        except ValueError:
            return None
        return value if isinstance(value, dict) else None
    return None


def parse_task_params(task_type: Optional[str], raw: Any) -> Optional[AbstractParameters]:
    """
    Parse a params blob into its typed variant.

    Returns None when the blob is not a JSON object or does not fit the
    variant's field types.
    """
    data = load_params(raw)
    if data is None:
        return None
    try:
        return parameters_class(task_type).model_validate(data)
    except PydanticValidationError as e:
        logger.debug("Task params do not fit their type", task_type=task_type, error=str(e))
        return None


def check_task_node_parameters(raw: Any, task_type: Optional[str]) -> bool:
    """True when the params blob parses and passes its type-specific check."""
    params = parse_task_params(task_type, raw)
    if params is None:
        return False
    return params.check_parameters()


def check_other_params(extras: Any) -> bool:
    """
    Generic check of a node's ``extras``: empty, a dict, or JSON text of an object.
    """
    if extras is None or extras == "":
        return True
    if isinstance(extras, dict):
        return True
    if isinstance(extras, str):
        try:
            return isinstance(json.loads(extras), dict)
        except ValueError:
            return False
    return False
