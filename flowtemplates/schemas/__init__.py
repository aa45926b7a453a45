"""Pydantic schemas for template payloads and API request/response validation"""

from .error import ErrorResponse, ValidationErrorDetail, ValidationErrorResponse
from .operator import Operator
from .template import (
    BatchDeleteResponse,
    BatchDeleteResult,
    Flag,
    ImportResponse,
    ImportResult,
    Property,
    ReleaseState,
    TaskNode,
    TaskNodeListResponse,
    TemplateCreateResponse,
    TemplateData,
    TemplateIdsRequest,
    TemplateListResponse,
    TemplateMeta,
    TemplateReleaseRequest,
    TemplateResponse,
    TemplateWriteRequest,
)

__all__ = [
    "ErrorResponse",
    "ValidationErrorDetail",
    "ValidationErrorResponse",
    "Operator",
    "BatchDeleteResponse",
    "BatchDeleteResult",
    "Flag",
    "ImportResponse",
    "ImportResult",
    "Property",
    "ReleaseState",
    "TaskNode",
    "TaskNodeListResponse",
    "TemplateCreateResponse",
    "TemplateData",
    "TemplateIdsRequest",
    "TemplateListResponse",
    "TemplateMeta",
    "TemplateReleaseRequest",
    "TemplateResponse",
    "TemplateWriteRequest",
]
