"""
Template Workflow Graph

Components:
- Graph: preTasks precedence DAG and cycle detection
- Parameters: per-task-type parameter variants and their checks
- Transforms: per-task-type export/import corrections
"""

from .graph import TaskGraph, build_task_graph, graph_has_cycle
from .parameters import (
    AbstractParameters,
    ResourceInfo,
    TaskType,
    check_other_params,
    check_task_node_parameters,
    parameters_class,
    parse_task_params,
    register_parameter_type,
)
from .transforms import (
    DataSourceParamCorrector,
    DependentParamCorrector,
    EnvironmentResolver,
    NoopParamCorrector,
    TaskParamCorrector,
    TransformRegistry,
    correct_payload_for_export,
    correct_payload_for_import,
    default_transform_registry,
)

__all__ = [
    "TaskGraph",
    "build_task_graph",
    "graph_has_cycle",
    "AbstractParameters",
    "ResourceInfo",
    "TaskType",
    "check_other_params",
    "check_task_node_parameters",
    "parameters_class",
    "parse_task_params",
    "register_parameter_type",
    "DataSourceParamCorrector",
    "DependentParamCorrector",
    "EnvironmentResolver",
    "NoopParamCorrector",
    "TaskParamCorrector",
    "TransformRegistry",
    "correct_payload_for_export",
    "correct_payload_for_import",
    "default_transform_registry",
]
