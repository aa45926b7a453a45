"""
Template engine errors.

Every error the engine raises on purpose is an ``AppException``: it carries the
HTTP status the API answers with, a stable ``ErrorCode`` clients can switch on,
and a ``details`` dict with the offending ids or names.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """
    Codes returned in the ``error_code`` field of error responses.

    Prefixes group them: AUTH, RESOURCE, VALIDATION, PROCESS, IO, INTERNAL.
    """
    # Permissions
    AUTH_FORBIDDEN = "AUTH_002"
    AUTH_RESOURCE_NOT_PERMITTED = "AUTH_005"

    # Stored objects
    RESOURCE_NOT_FOUND = "RESOURCE_001"
    RESOURCE_CONFLICT = "RESOURCE_002"
    RESOURCE_ALREADY_EXISTS = "RESOURCE_003"
    TEMPLATE_ONLINE = "RESOURCE_005"

    # Request and payload shape
    VALIDATION_FAILED = "VALIDATION_001"
    VALIDATION_FIELD_REQUIRED = "VALIDATION_002"
    VALIDATION_FIELD_INVALID = "VALIDATION_003"

    # Task graph
    PROCESS_NODE_HAS_CYCLE = "PROCESS_001"
    PROCESS_NODE_PARAMETER_INVALID = "PROCESS_002"
    PROCESS_DATA_EMPTY = "PROCESS_003"
    SUB_PROCESS_REFERENCE_CYCLE = "PROCESS_004"

    EXPORT_WRITE_FAILED = "IO_001"

    INTERNAL_ERROR = "INTERNAL_001"
    UNKNOWN_ERROR = "INTERNAL_999"


class AppException(Exception):
    """
    Root of the engine's errors; the API maps it to a JSON error response.

    Attributes:
        message: Text shown to the caller
        status_code: HTTP status of the response
        error_code: Machine-readable code
        details: Ids, names or sub-errors describing the failure
    """
    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(AppException):
    """A template or project id that is not stored (404)."""
    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} with id {identifier} not found",
            status_code=404,
            error_code=ErrorCode.RESOURCE_NOT_FOUND,
            details={"resource": resource, "identifier": str(identifier)},
        )


class ValidationError(AppException):
    """
    Malformed template payload or import bundle (400).

    Raised before any row is written, e.g.:

        raise ValidationError("Template payload is not valid JSON", details={"field": "payload"})
    """
    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
    ):
        super().__init__(message, status_code=400, error_code=error_code, details=details)


class CycleDetectedError(ValidationError):
    """preTasks edges form a cycle, or name a task that is not in the list."""
    def __init__(self, message: str = "Process DAG has cycle", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details, error_code=ErrorCode.PROCESS_NODE_HAS_CYCLE)


class NodeParameterInvalidError(ValidationError):
    """First task node whose params fail the check of its task type."""
    def __init__(self, node_name: str, task_type: Optional[str] = None):
        details = {"node": node_name}
        if task_type:
            details["task_type"] = task_type
        super().__init__(
            f"Task node {node_name} parameter invalid",
            details=details,
            error_code=ErrorCode.PROCESS_NODE_PARAMETER_INVALID,
        )
        self.node_name = node_name


class ConflictError(AppException):
    """
    The template's current state forbids the operation (409): its name is
    taken in the project, or it is ONLINE and cannot be edited.
    """
    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: ErrorCode = ErrorCode.RESOURCE_CONFLICT,
    ):
        super().__init__(message, status_code=409, error_code=error_code, details=details)


class PermissionDeniedError(AppException):
    """
    The operator may not act on the template, or a resource the template uses
    is deleted or not granted to them (403).
    """
    def __init__(
        self,
        message: str = "Access forbidden",
        details: Optional[Dict[str, Any]] = None,
        error_code: ErrorCode = ErrorCode.AUTH_FORBIDDEN,
    ):
        super().__init__(message, status_code=403, error_code=error_code, details=details)


class ExportWriteError(AppException):
    """Export bytes could not be written to the output stream."""
    def __init__(self, message: str = "Export process template failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            status_code=500,
            error_code=ErrorCode.EXPORT_WRITE_FAILED,
            details=details,
        )
