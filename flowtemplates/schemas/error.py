"""
Error Response Schemas

Pydantic models documenting the error bodies returned by the API.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ValidationErrorDetail(BaseModel):
    """One rejected request field"""
    field: str = Field(..., description="Dotted location, e.g. body.name or header.x-user-id")
    message: str = Field(..., description="Why the value was rejected")
    type: str = Field(..., description="pydantic error type")


class ErrorResponse(BaseModel):
    """
    Body of every error response

    Example:
        {
            "status": "error",
            "error_code": "PROCESS_001",
            "message": "Process DAG has cycle",
            "details": {"task_count": 3},
            "path": "/api/v1/projects/1/templates",
            "timestamp": "2024-01-01T00:00:00+00:00"
        }
    """
    status: str = Field(default="error", description="Always 'error'")
    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Message for humans")
    details: Dict[str, Any] = Field(default_factory=dict, description="Ids, names or sub-errors of the failure")
    path: Optional[str] = Field(None, description="Path of the failed request")
    timestamp: Optional[datetime] = Field(None, description="Time the error was produced")
    request_id: Optional[str] = Field(None, description="Request id, when one was assigned")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "error",
                "error_code": "RESOURCE_001",
                "message": "ProcessTemplate with id 42 not found",
                "details": {"resource": "ProcessTemplate", "identifier": "42"},
                "path": "/api/v1/projects/1/templates/42",
                "timestamp": "2024-01-01T00:00:00+00:00",
            }
        }
    )


class ValidationErrorResponse(ErrorResponse):
    """422 body: ``details.validation_errors`` lists the rejected fields"""
    message: str = "Request validation failed"
    details: Dict[str, List[ValidationErrorDetail]]
